# adapter_jarir.py
from typing import Optional

from bs4 import BeautifulSoup, Tag

from ..schema import UNKNOWN, RawTile, StockStatus
from .base import (
    SiteAdapter,
    StockSignals,
    TraversalStrategy,
    parse_price,
    pick_image,
    resolve_url,
    text_of,
)

NOTIFY_TEXT = "Notify Me"
NOT_AVAILABLE_TEXT = "Not available online"
ADD_TO_CART_TEXT = "Add to Cart"


class JarirAdapter(SiteAdapter):
    """jarir.com: infinite scroll fed by ``/search/GetProductsList`` XHRs.

    Product pages carry no usable description, only stock.
    """

    key = "jarir"
    store_name = "Jarir"
    origin = "https://www.jarir.com"
    domains = ("jarir.com",)
    strategy = TraversalStrategy.INFINITE_SCROLL
    tile_selector = ".product-tile__item--spacer"
    batch_size = 5

    listing_timeout_ms = 120000
    growth_response_fragment = "/search/GetProductsList"
    strip_query = True

    detail_wait_until = "networkidle"
    detail_timeout_ms = 60000
    detail_ready_selector = ".add-to-cart"
    detail_ready_timeout_ms = 10000
    block_resources = True
    unknown_stock = StockStatus.OUT_OF_STOCK

    def parse_tile(self, node: Tag, category: str) -> Optional[RawTile]:
        link = node.select_one("a.product-tile__link")
        img = node.select_one("img[data-cs-capture]") or node.select_one("img")
        return RawTile(
            store_name=self.store_name,
            category=category,
            title=text_of(node.select_one(".product-title__title")) or UNKNOWN,
            price=parse_price(text_of(node.select_one(".price-box .price span:last-child"))),
            image_url=pick_image(img),
            product_url=resolve_url(link.get("href") if link else None, self.origin),
        )

    def read_stock_signals(self, soup: BeautifulSoup) -> StockSignals:
        buttons = soup.find_all("button")
        notify = any(NOTIFY_TEXT in b.get_text(" ", strip=True) for b in buttons)
        notice = text_of(soup.select_one(".notification__title")) or ""

        container = soup.select_one(".add-to-cart")
        add_to_cart = (
            soup.select_one('[data-testid="addToCart"]') is not None
            or soup.select_one(".button--add-to-cart") is not None
            or (container is not None and ADD_TO_CART_TEXT in container.get_text(" ", strip=True))
        )
        return StockSignals(
            out_of_stock_label=notify or NOT_AVAILABLE_TEXT in notice,
            add_to_cart=add_to_cart,
        )
