import logging
from typing import Iterable, List, Tuple
from urllib.parse import urlparse

from .schema import UNKNOWN, RawTile

logger = logging.getLogger(__name__)


def is_absolute_url(url: str) -> bool:
    if not url or url == UNKNOWN:
        return False
    parts = urlparse(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def is_valid(tile: RawTile) -> bool:
    title = (tile.title or "").strip()
    return bool(title) and title != UNKNOWN and is_absolute_url(tile.product_url) and tile.price > 0


def validate_tiles(tiles: Iterable[RawTile]) -> Tuple[List[RawTile], int]:
    """Keep well-formed tiles, first occurrence per product URL.

    Returns the kept tiles and how many were dropped.
    """
    kept: List[RawTile] = []
    seen = set()
    invalid = duplicates = 0
    for tile in tiles:
        if not is_valid(tile):
            invalid += 1
            continue
        if tile.product_url in seen:
            duplicates += 1
            continue
        seen.add(tile.product_url)
        kept.append(tile)

    if invalid or duplicates:
        logger.info("Validator dropped %d invalid and %d duplicate tiles", invalid, duplicates)
    return kept, invalid + duplicates
