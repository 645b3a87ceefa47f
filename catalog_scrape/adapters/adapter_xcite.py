# adapter_xcite.py
from typing import Optional

from bs4 import BeautifulSoup, NavigableString, Tag

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

SCHEMA_PRODUCT = '[itemtype="https://schema.org/Product"]'


def _own_text(node: Optional[Tag]) -> Optional[str]:
    # Text directly inside the node, skipping nested strike-through prices.
    if node is None:
        return None
    parts = [s.strip() for s in node.children if isinstance(s, NavigableString)]
    return " ".join(p for p in parts if p) or None


class XciteAdapter(SiteAdapter):
    """xcite.com: one long grid grown by a "show more" button."""

    key = "xcite"
    store_name = "Xcite"
    origin = "https://www.xcite.com"
    domains = ("xcite.com",)
    strategy = TraversalStrategy.CLICK_TO_LOAD
    tile_selector = ".ProductList_tileWrapper__V1Z9h"
    batch_size = 10

    load_more_selector = "button.secondaryOnLight"
    tile_wait_ms = 30000

    detail_wait_until = "domcontentloaded"
    detail_timeout_ms = 30000
    unknown_stock = StockStatus.IN_STOCK

    def parse_tile(self, node: Tag, category: str) -> Optional[RawTile]:
        link = node.select_one("a")
        price_text = text_of(node.select_one("span.text-2xl.text-functional-red-800.block"))
        if not price_text:
            price_text = _own_text(node.select_one("h4"))
        img = node.select_one("img[data-cs-capture]") or node.select_one("img")
        return RawTile(
            store_name=self.store_name,
            category=category,
            title=text_of(node.select_one(".ProductTile_productName__wEJB5")) or UNKNOWN,
            price=parse_price(price_text),
            image_url=pick_image(img, prefer_2x=True),
            product_url=resolve_url(link.get("href") if link else None, self.origin),
        )

    def read_stock_signals(self, soup: BeautifulSoup) -> StockSignals:
        label = (text_of(soup.select_one(".typography-small.text-functional-red-800")) or "").lower()

        availability = None
        product = soup.select_one(SCHEMA_PRODUCT)
        if product is not None:
            node = product.select_one('[itemprop="offers"] [itemprop="availability"]')
            if node is not None:
                availability = node.get("content") or node.get("href")
        if not availability:
            badge = (text_of(soup.select_one(".flex.items-center.gap-x-1 .typography-small")) or "").lower()
            if "in stock" in badge:
                availability = "In Stock"

        return StockSignals(out_of_stock_label="out of stock" in label, availability=availability)

    def read_description(self, soup: BeautifulSoup) -> Optional[str]:
        product = soup.select_one(SCHEMA_PRODUCT)
        if product is not None:
            meta = product.select_one('[itemprop="description"]')
            if meta is not None and meta.get("content"):
                return meta["content"]
        specs = soup.select(".ProductOverview_list__7LEwB ul li")
        if specs:
            return " | ".join(li.get_text(" ", strip=True) for li in specs)
        return None
