import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, Tag

from ..schema import (
    DESCRIPTION_LIMIT,
    PLACEHOLDER_IMAGE,
    UNKNOWN,
    EnrichmentResult,
    RawTile,
    StockStatus,
)

logger = logging.getLogger(__name__)


class TraversalStrategy(str, Enum):
    PAGED = "paged"
    INFINITE_SCROLL = "infinite_scroll"
    CLICK_TO_LOAD = "click_to_load"


@dataclass
class StockSignals:
    """Raw availability evidence read from a product page.

    ``None`` means the adapter does not look for that signal.
    """

    out_of_stock_label: bool = False
    purchase_disabled: bool = False
    add_to_cart: Optional[bool] = None
    availability: Optional[str] = None


def classify_stock(signals: StockSignals, unknown: StockStatus) -> StockStatus:
    # Precedence: explicit label, disabled buttons, add-to-cart, metadata.
    if signals.out_of_stock_label:
        return StockStatus.OUT_OF_STOCK
    if signals.purchase_disabled:
        return StockStatus.OUT_OF_STOCK
    if signals.add_to_cart is not None:
        return StockStatus.IN_STOCK if signals.add_to_cart else StockStatus.OUT_OF_STOCK
    if signals.availability:
        value = signals.availability.lower().replace(" ", "")
        if "outofstock" in value:
            return StockStatus.OUT_OF_STOCK
        if "instock" in value:
            return StockStatus.IN_STOCK
    return unknown


_BULLET_CHARS = re.compile(r"[•●▪◦*]|&quot;")
_DASH_BULLETS = re.compile(r"(^|\s)[-–]+(?=\s|$)")
_WS = re.compile(r"\s+")


def clean_description(raw: Optional[str], limit: int = DESCRIPTION_LIMIT) -> str:
    if not raw:
        return ""
    text = re.sub(r"(\r\n|\n|\r)", " ", raw)
    text = _BULLET_CHARS.sub(" ", text)
    # Hyphens inside words ("Wi-Fi") are kept; free-standing dashes are list markers.
    text = _DASH_BULLETS.sub(r"\1", text)
    text = _WS.sub(" ", text).strip()
    return text[:limit].rstrip()


def parse_price(text: Optional[str]) -> float:
    if not text:
        return 0.0
    v = re.sub(r"[^0-9.]", "", text.replace(",", ""))
    try:
        return float(v)
    except ValueError:
        return 0.0


def resolve_url(href: Optional[str], origin: str) -> str:
    if not href:
        return UNKNOWN
    href = href.strip()
    if href.startswith("http"):
        return href
    if href.startswith("//"):
        return "https:" + href
    return urljoin(origin.rstrip("/") + "/", href.lstrip("/"))


def pick_image(img: Optional[Tag], prefer_2x: bool = False) -> str:
    """Best image URL from an <img>: srcset (optionally its 2x entry), then src."""
    if img is None:
        return PLACEHOLDER_IMAGE
    srcset = img.get("srcset") or ""
    if srcset:
        entries = [s.strip() for s in srcset.split(",") if s.strip()]
        chosen = None
        if prefer_2x:
            chosen = next((s for s in entries if "2x" in s), None)
        if chosen is None and entries:
            chosen = entries[0]
        url = chosen.split(" ")[0] if chosen else ""
        if url.startswith("http"):
            return url
        return PLACEHOLDER_IMAGE
    src = img.get("src") or ""
    if src.startswith("http") and "data:image" not in src:
        return src
    return PLACEHOLDER_IMAGE


def text_of(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    return node.get_text(" ", strip=True)


class SiteAdapter:
    """Per-store configuration plus pure extraction over rendered HTML.

    Subclasses set the selectors and implement ``parse_tile``,
    ``read_stock_signals`` and (when the store has one) ``read_description``.
    """

    key: str = ""
    store_name: str = ""
    origin: str = ""
    domains: tuple = ()
    strategy: TraversalStrategy = TraversalStrategy.PAGED
    tile_selector: str = ""
    batch_size: int = 10

    # traversal
    listing_wait_until: str = "networkidle"
    listing_timeout_ms: int = 60000
    tile_wait_ms: int = 20000
    next_selector: Optional[str] = None
    load_more_selector: Optional[str] = None
    growth_response_fragment: Optional[str] = None
    strip_query: bool = False

    # enrichment
    detail_wait_until: str = "domcontentloaded"
    detail_timeout_ms: int = 30000
    detail_ready_selector: Optional[str] = None
    detail_ready_required: bool = False
    detail_ready_timeout_ms: int = 10000
    block_resources: bool = False
    unknown_stock: StockStatus = StockStatus.OUT_OF_STOCK

    def start_url(self, url: str) -> str:
        if not self.strip_query:
            return url
        parts = urlsplit(url)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

    def extract_tiles(self, html: str, category: str) -> List[RawTile]:
        soup = BeautifulSoup(html, "lxml")
        tiles: List[RawTile] = []
        for node in soup.select(self.tile_selector):
            try:
                tile = self.parse_tile(node, category)
            except Exception as exc:
                logger.warning("[%s] tile extraction failed: %s", self.store_name, exc)
                tile = None
            if tile is not None:
                tiles.append(tile)
        return tiles

    def parse_tile(self, node: Tag, category: str) -> Optional[RawTile]:
        raise NotImplementedError

    def next_page_url(self, html: str) -> Optional[str]:
        """Target of an enabled "next" control, resolved against the origin."""
        if not self.next_selector:
            return None
        soup = BeautifulSoup(html, "lxml")
        nxt = soup.select_one(self.next_selector)
        if nxt is None:
            return None
        if "disabled" in (nxt.get("class") or []) or nxt.has_attr("disabled"):
            return None
        if nxt.get("aria-disabled") == "true":
            return None
        href = nxt.get("href")
        if not href:
            return None
        return resolve_url(href, self.origin)

    def extract_details(self, html: str) -> EnrichmentResult:
        soup = BeautifulSoup(html, "lxml")
        stock = classify_stock(self.read_stock_signals(soup), self.unknown_stock)
        return EnrichmentResult(stock=stock, description=clean_description(self.read_description(soup)))

    def read_stock_signals(self, soup: BeautifulSoup) -> StockSignals:
        raise NotImplementedError

    def read_description(self, soup: BeautifulSoup) -> Optional[str]:
        return None

    def __repr__(self):
        return f"<{type(self).__name__} {self.key} {self.strategy.value}>"
