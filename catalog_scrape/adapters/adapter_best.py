# adapter_best.py
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


class BestAdapter(SiteAdapter):
    """best.com.kw: server-paged Angular grid with a ``.cx-pagination`` next arrow."""

    key = "best"
    store_name = "Best.kw"
    origin = "https://best.com.kw"
    domains = ("best.com.kw",)
    strategy = TraversalStrategy.PAGED
    tile_selector = "best-product-grid-item"
    batch_size = 10

    next_selector = ".cx-pagination a.next"

    # Product summaries render late; a page without one is treated as unreadable.
    detail_wait_until = "networkidle"
    detail_timeout_ms = 45000
    detail_ready_selector = "best-product-summary"
    detail_ready_required = True
    detail_ready_timeout_ms = 20000
    unknown_stock = StockStatus.IN_STOCK

    def parse_tile(self, node: Tag, category: str) -> Optional[RawTile]:
        link = node.select_one('a.cx-product-name, a[class="cx-product-name"]')
        href = link.get("href") if link else None
        img = node.select_one("cx-media img") or node.select_one("img")
        return RawTile(
            store_name=self.store_name,
            category=category,
            title=text_of(link) or UNKNOWN,
            price=parse_price(text_of(node.select_one(".cx-product-price"))),
            image_url=pick_image(img),
            product_url=resolve_url(href, self.origin),
        )

    def read_stock_signals(self, soup: BeautifulSoup) -> StockSignals:
        buttons = (soup.select_one("button.add-to-cart-btn"), soup.select_one("button.buy-now-btn"))
        return StockSignals(
            out_of_stock_label=soup.select_one(".outofstock") is not None,
            purchase_disabled=any(b is not None and b.has_attr("disabled") for b in buttons),
        )

    def read_description(self, soup: BeautifulSoup) -> Optional[str]:
        container = soup.select_one("best-product-details-tab .container-fluid")
        if container is not None:
            items = [li.get_text(" ", strip=True) for li in container.select("li")]
            text = " | ".join(i for i in items if i) if items else container.get_text(" ", strip=True)
            if text:
                return text
        return text_of(soup.select_one(".best-product-summary .description"))
