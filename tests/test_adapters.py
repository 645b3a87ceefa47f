import pytest

from catalog_scrape.adapters import ADAPTERS, get_adapter, pick_adapter
from catalog_scrape.adapters.adapter_best import BestAdapter
from catalog_scrape.adapters.base import (
    StockSignals,
    TraversalStrategy,
    classify_stock,
    clean_description,
    parse_price,
    resolve_url,
)
from catalog_scrape.schema import PLACEHOLDER_IMAGE, UNKNOWN, StockStatus

from fakes import best_listing, best_product, best_tile, jarir_listing, jarir_tile, xcite_listing, xcite_tile

best = ADAPTERS["best"]
jarir = ADAPTERS["jarir"]
xcite = ADAPTERS["xcite"]


def test_registry_strategies_and_batch_sizes():
    assert best.strategy is TraversalStrategy.PAGED
    assert jarir.strategy is TraversalStrategy.INFINITE_SCROLL
    assert xcite.strategy is TraversalStrategy.CLICK_TO_LOAD
    assert (best.batch_size, jarir.batch_size, xcite.batch_size) == (10, 5, 10)


@pytest.mark.parametrize(
    "url,key",
    [
        ("https://best.com.kw/en/c/tablets-nn", "best"),
        ("https://www.jarir.com/kw-en/2-in-1-laptops.html?page=2", "jarir"),
        ("https://www.xcite.com/laptops/c", "xcite"),
    ],
)
def test_pick_adapter_by_domain(url, key):
    assert pick_adapter(url).key == key


def test_pick_adapter_needs_exact_store_domain():
    assert pick_adapter("https://www.notbest.com.kw/en/c/x") is None
    assert pick_adapter("https://shop.jarir.com.evil.example/kw-en/x.html") is None
    assert pick_adapter("https://m.xcite.com/laptops/c").key == "xcite"


def test_pick_adapter_unknown_site():
    assert pick_adapter("https://www.example.org/shop") is None
    with pytest.raises(KeyError):
        get_adapter("noon")


def test_parse_price_and_resolve_url():
    assert parse_price("KD 1,299.900") == pytest.approx(1299.9)
    assert parse_price("N/A") == 0.0
    assert parse_price(None) == 0.0
    assert resolve_url("/en/p/1", "https://best.com.kw") == "https://best.com.kw/en/p/1"
    assert resolve_url("en/p/1", "https://best.com.kw/") == "https://best.com.kw/en/p/1"
    assert resolve_url("https://other.example/p", "https://best.com.kw") == "https://other.example/p"
    assert resolve_url("", "https://best.com.kw") == UNKNOWN


def test_clean_description_strips_bullets_and_whitespace():
    raw = "• Fast charging\n- Wi-Fi 6E\r\n*  Dual SIM   |  10-20 hours"
    assert clean_description(raw) == "Fast charging Wi-Fi 6E Dual SIM | 10-20 hours"
    assert clean_description("15.6&quot; display") == "15.6 display"
    assert clean_description(None) == ""
    assert len(clean_description("word " * 400)) <= 1000


def test_classify_stock_precedence():
    in_stock_meta = "https://schema.org/InStock"
    assert classify_stock(StockSignals(out_of_stock_label=True, add_to_cart=True), StockStatus.IN_STOCK) == StockStatus.OUT_OF_STOCK
    assert classify_stock(StockSignals(purchase_disabled=True, availability=in_stock_meta), StockStatus.IN_STOCK) == StockStatus.OUT_OF_STOCK
    assert classify_stock(StockSignals(add_to_cart=False, availability=in_stock_meta), StockStatus.IN_STOCK) == StockStatus.OUT_OF_STOCK
    assert classify_stock(StockSignals(availability=in_stock_meta), StockStatus.OUT_OF_STOCK) == StockStatus.IN_STOCK
    assert classify_stock(StockSignals(availability="https://schema.org/OutOfStock"), StockStatus.IN_STOCK) == StockStatus.OUT_OF_STOCK
    assert classify_stock(StockSignals(), StockStatus.OUT_OF_STOCK) == StockStatus.OUT_OF_STOCK


# --- best ------------------------------------------------------------------

def test_best_tiles():
    html = best_listing([best_tile("a1", price="KD 129.900"), best_tile("a2", title="")])
    tiles = best.extract_tiles(html, "tablets")
    assert len(tiles) == 2
    first = tiles[0]
    assert first.store_name == "Best.kw"
    assert first.category == "tablets"
    assert first.title == "Product a1"
    assert first.price == pytest.approx(129.9)
    assert first.product_url == "https://best.com.kw/en/p/a1"
    assert first.image_url == "https://img.best.com.kw/a1.jpg"
    # missing fields survive extraction for the validator to judge
    assert tiles[1].title == UNKNOWN


def test_tile_that_raises_is_dropped_not_fatal():
    class Brittle(BestAdapter):
        def parse_tile(self, node, category):
            if "boom" in node.get_text():
                raise AttributeError("'NoneType' object has no attribute 'get'")
            return super().parse_tile(node, category)

    html = best_listing([best_tile("a1"), best_tile("a2", title="boom"), best_tile("a3")])
    tiles = Brittle().extract_tiles(html, "tablets")
    assert [t.title for t in tiles] == ["Product a1", "Product a3"]


def test_best_next_page_url():
    assert best.next_page_url(best_listing([], next_href="/en/c/tablets-nn?page=1")) == "https://best.com.kw/en/c/tablets-nn?page=1"
    assert best.next_page_url(best_listing([], next_href="https://best.com.kw/en/c/x?page=2")) == "https://best.com.kw/en/c/x?page=2"
    assert best.next_page_url(best_listing([], next_href="/en/c/x?page=2", next_disabled=True)) is None
    assert best.next_page_url(best_listing([])) is None


def test_best_details():
    res = best.extract_details(best_product())
    assert res.stock == StockStatus.IN_STOCK
    assert res.description == "Display: 6.1 inch | Storage: 128GB"

    assert best.extract_details(best_product(cart_disabled=True)).stock == StockStatus.OUT_OF_STOCK
    assert best.extract_details(best_product(label=True)).stock == StockStatus.OUT_OF_STOCK

    res = best.extract_details(best_product(items=(), summary="Light\nand   thin"))
    assert res.description == "Light and thin"


# --- jarir -----------------------------------------------------------------

def test_jarir_tiles():
    tiles = jarir.extract_tiles(jarir_listing([jarir_tile("ipad-air")]), "tablets")
    assert len(tiles) == 1
    tile = tiles[0]
    assert tile.title == "Jarir ipad-air"
    assert tile.price == pytest.approx(1299.5)
    assert tile.product_url == "https://www.jarir.com/kw-en/ipad-air.html"
    assert tile.image_url == "https://ak-asset.jarir.com/ipad-air-1x.jpg"


def test_jarir_start_url_drops_query():
    assert jarir.start_url("https://www.jarir.com/kw-en/laptops.html?sort=price#top") == "https://www.jarir.com/kw-en/laptops.html"
    assert best.start_url("https://best.com.kw/en/c/x?query=:relevance") == "https://best.com.kw/en/c/x?query=:relevance"


@pytest.mark.parametrize(
    "body,expected",
    [
        ('<div class="add-to-cart"><button data-testid="addToCart">Add to Cart</button></div>', StockStatus.IN_STOCK),
        ('<div class="add-to-cart"><span>Add to Cart</span></div>', StockStatus.IN_STOCK),
        ('<div class="add-to-cart"><button>Notify Me When It’s Available</button></div>', StockStatus.OUT_OF_STOCK),
        ('<div class="notification__title">Not available online</div><button class="button--add-to-cart">x</button>', StockStatus.OUT_OF_STOCK),
        ("<div>nothing useful</div>", StockStatus.OUT_OF_STOCK),
    ],
)
def test_jarir_stock(body, expected):
    res = jarir.extract_details(f"<html><body>{body}</body></html>")
    assert res.stock == expected
    assert res.description == ""


# --- xcite -----------------------------------------------------------------

def _xcite_product(label="", availability=None, description=None, specs=(), badge=""):
    offers = ""
    if availability:
        offers = f'<div itemprop="offers"><meta itemprop="availability" content="{availability}"></div>'
    desc = f'<meta itemprop="description" content="{description}">' if description else ""
    lis = "".join(f"<li>{s}</li>" for s in specs)
    return f"""<html><body>
      <div itemscope itemtype="https://schema.org/Product">{desc}{offers}</div>
      <p class="typography-small text-functional-red-800">{label}</p>
      <div class="flex items-center gap-x-1"><span class="typography-small">{badge}</span></div>
      <div class="ProductOverview_list__7LEwB"><ul>{lis}</ul></div>
    </body></html>"""


def test_xcite_tiles():
    html = xcite_listing([
        xcite_tile("lenovo-aio"),
        xcite_tile("hp-15", price_html="<h4>KD 199.900 <s>KD 249.900</s></h4>"),
    ])
    tiles = xcite.extract_tiles(html, "desktops")
    assert [t.price for t in tiles] == pytest.approx([49.9, 199.9])
    assert tiles[0].product_url == "https://www.xcite.com/lenovo-aio/p"
    assert tiles[0].image_url == "https://cdn.xcite.com/lenovo-aio-2x.png"


def test_xcite_tile_without_usable_image_gets_placeholder():
    html = xcite_listing([xcite_tile("x").replace("srcset=", "data-old=")])
    assert xcite.extract_tiles(html, "c")[0].image_url == PLACEHOLDER_IMAGE


def test_xcite_stock_signals():
    in_stock = "https://schema.org/InStock"
    assert xcite.extract_details(_xcite_product(availability=in_stock)).stock == StockStatus.IN_STOCK
    assert xcite.extract_details(_xcite_product(label="Out of stock online", availability=in_stock)).stock == StockStatus.OUT_OF_STOCK
    assert xcite.extract_details(_xcite_product(availability="https://schema.org/OutOfStock")).stock == StockStatus.OUT_OF_STOCK
    assert xcite.extract_details(_xcite_product(badge="In Stock")).stock == StockStatus.IN_STOCK
    # no evidence either way keeps the store's default
    assert xcite.extract_details(_xcite_product()).stock == StockStatus.IN_STOCK


def test_xcite_description_sources():
    res = xcite.extract_details(_xcite_product(description="• 23.8-inch FHD\n• 8GB RAM", specs=("ignored",)))
    assert res.description == "23.8-inch FHD 8GB RAM"
    res = xcite.extract_details(_xcite_product(specs=("CPU: i5", "RAM: 8GB")))
    assert res.description == "CPU: i5 | RAM: 8GB"
