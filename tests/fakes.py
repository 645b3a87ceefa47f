"""In-process stand-ins for the browser and HTML builders for the three stores."""
from contextlib import asynccontextmanager
from typing import Callable, Dict, Optional, Set

from catalog_scrape.fetcher import InteractionError, NavigationError, RenderTimeout


class FakePage:
    """Scriptable tab.

    ``pages`` maps URL -> HTML served after ``navigate``. For growing grids
    ``tile_count`` is what ``count`` reports; it grows by ``grow_per_scroll``
    on each scroll to the bottom and by ``grow_per_click`` on each click,
    capped at ``max_tiles``.
    """

    def __init__(
        self,
        html: str = "",
        pages: Optional[Dict[str, str]] = None,
        fail_urls: Optional[Set[str]] = None,
        tile_count: int = 0,
        grow_per_scroll: int = 0,
        grow_per_click: int = 0,
        max_tiles: Optional[int] = None,
        button: bool = False,
        click_error: bool = False,
        selector_timeout: bool = False,
        count_error_after: Optional[int] = None,
    ):
        self.html = html
        self.pages = pages or {}
        self.fail_urls = fail_urls or set()
        self.tile_count = tile_count
        self.grow_per_scroll = grow_per_scroll
        self.grow_per_click = grow_per_click
        self.max_tiles = max_tiles
        self.button = button
        self.click_error = click_error
        self.selector_timeout = selector_timeout
        self.count_error_after = count_error_after

        self.visited = []
        self.scrolls = 0
        self.clicks = 0
        self.counts = 0
        self.tiles_primed = False
        self.closed = False

    def _grow(self, by: int):
        self.tile_count += by
        if self.max_tiles is not None:
            self.tile_count = min(self.tile_count, self.max_tiles)

    async def navigate(self, url, wait_until="domcontentloaded", timeout_ms=30000):
        self.visited.append(url)
        if url in self.fail_urls:
            raise NavigationError(f"{url}: net::ERR_TIMED_OUT")
        if self.pages:
            if url not in self.pages:
                raise NavigationError(f"{url}: 404")
            self.html = self.pages[url]

    async def wait_for_selector(self, selector, timeout_ms, visible=False):
        if self.selector_timeout:
            raise RenderTimeout(selector)

    async def wait_for_response(self, url_fragment, timeout_ms):
        raise RenderTimeout(url_fragment)

    async def count(self, selector):
        self.counts += 1
        if self.count_error_after is not None and self.counts > self.count_error_after:
            raise RuntimeError("Target page, context or browser has been closed")
        return self.tile_count

    async def exists(self, selector):
        return self.button

    async def click(self, selector, timeout_ms=8000):
        self.clicks += 1
        if self.click_error:
            raise InteractionError(f"click on {selector} failed")
        self._grow(self.grow_per_click)

    async def scroll_to_bottom(self):
        self.scrolls += 1
        self._grow(self.grow_per_scroll)

    async def scroll_through(self, step=500, pause_ms=50):
        pass

    async def scroll_tiles_into_view(self, selector, pause_ms=50):
        self.tiles_primed = True

    async def wait(self, ms):
        pass

    async def content(self):
        return self.html

    async def close(self):
        self.closed = True


class FakeRenderer:
    def __init__(self, make_page: Callable[[], FakePage]):
        self.make_page = make_page
        self.pages = []
        self.open_now = 0
        self.max_open = 0
        self.blocked = 0

    @asynccontextmanager
    async def page(self, block_resources=False):
        page = self.make_page()
        self.pages.append(page)
        self.blocked += int(block_resources)
        self.open_now += 1
        self.max_open = max(self.max_open, self.open_now)
        try:
            yield page
        finally:
            self.open_now -= 1
            await page.close()

    @property
    def all_closed(self) -> bool:
        return all(p.closed for p in self.pages)


# --- best.com.kw -----------------------------------------------------------

def best_tile(slug: str, title: str = None, price: str = "KD 99.900") -> str:
    title = title if title is not None else f"Product {slug}"
    return f"""
    <best-product-grid-item>
      <cx-media><img src="https://img.best.com.kw/{slug}.jpg"></cx-media>
      <a class="cx-product-name" href="/en/p/{slug}">{title}</a>
      <div class="cx-product-price">{price}</div>
    </best-product-grid-item>"""


def best_listing(tiles, next_href: str = None, next_disabled: bool = False) -> str:
    pager = ""
    if next_href is not None:
        cls = "next disabled" if next_disabled else "next"
        pager = f'<div class="cx-pagination"><a class="start" href="/en/c/x">«</a><a class="{cls}" href="{next_href}">›</a></div>'
    return f"<html><body><div class='grid'>{''.join(tiles)}</div>{pager}</body></html>"


def best_product(cart_disabled=False, label=False, items=("Display: 6.1 inch", "Storage: 128GB"), summary=None) -> str:
    disabled = " disabled" if cart_disabled else ""
    oos = '<span class="outofstock">Out of stock</span>' if label else ""
    lis = "".join(f"<li>{i}</li>" for i in items)
    tab = f"<best-product-details-tab><div class='container-fluid'><ul>{lis}</ul></div></best-product-details-tab>" if items else ""
    desc = f"<div class='best-product-summary'><p class='description'>{summary}</p></div>" if summary else ""
    return f"""<html><body><best-product-summary>{oos}
      <button class="add-to-cart-btn"{disabled}>Add to cart</button>
      <button class="buy-now-btn"{disabled}>Buy now</button></best-product-summary>
      {desc}{tab}</body></html>"""


# --- jarir.com -------------------------------------------------------------

def jarir_tile(slug: str, price: str = "1,299.500 KWD") -> str:
    return f"""
    <div class="product-tile__item--spacer">
      <a class="product-tile__link" href="/kw-en/{slug}.html">
        <img data-cs-capture srcset="https://ak-asset.jarir.com/{slug}-1x.jpg 1x, https://ak-asset.jarir.com/{slug}-2x.jpg 2x">
        <p class="product-title__title">Jarir {slug}</p>
      </a>
      <div class="price-box"><span class="price"><span>was</span><span>{price}</span></span></div>
    </div>"""


def jarir_listing(tiles) -> str:
    return f"<html><body>{''.join(tiles)}</body></html>"


# --- xcite.com -------------------------------------------------------------

def xcite_tile(slug: str, price_html: str = '<span class="text-2xl text-functional-red-800 block">KD 49.900</span>') -> str:
    return f"""
    <div class="ProductList_tileWrapper__V1Z9h">
      <a href="/{slug}/p"><img data-cs-capture srcset="https://cdn.xcite.com/{slug}-1x.png 1x, https://cdn.xcite.com/{slug}-2x.png 2x"></a>
      <h3 class="ProductTile_productName__wEJB5">Xcite {slug}</h3>
      {price_html}
    </div>"""


def xcite_listing(tiles) -> str:
    return f"<html><body>{''.join(tiles)}<button class='secondaryOnLight'>Show more</button></body></html>"
