from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

# Marker for a field an adapter could not read from a tile.
UNKNOWN = "N/A"
PLACEHOLDER_IMAGE = "https://example.com/placeholder-image.png"
DESCRIPTION_LIMIT = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class RawTile(BaseModel):
    store_name: str
    category: str
    title: str = UNKNOWN
    price: float = 0.0
    image_url: Optional[str] = None
    product_url: str = UNKNOWN


class EnrichmentResult(BaseModel):
    stock: StockStatus
    description: str = ""

    @classmethod
    def safe_default(cls) -> "EnrichmentResult":
        # Unreadable pages are reported unavailable rather than in stock.
        return cls(stock=StockStatus.OUT_OF_STOCK, description="")


class EnrichedProduct(RawTile):
    stock: StockStatus
    description: str = Field(default="", max_length=DESCRIPTION_LIMIT)
    last_checked_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_tile(cls, tile: RawTile, details: EnrichmentResult, checked_at: Optional[datetime] = None):
        return cls(
            **tile.model_dump(),
            stock=details.stock,
            description=details.description,
            last_checked_at=checked_at or utcnow(),
        )

    def catalog_fields(self) -> dict:
        """Mutable columns written on every upsert (everything except the key)."""
        return {
            "title": self.title,
            "category": self.category,
            "price": self.price,
            "image_url": self.image_url,
            "stock": self.stock.value,
            "description": self.description,
            "last_seen_at": self.last_checked_at.isoformat(),
        }


class CatalogRecord(BaseModel):
    id: Optional[Union[str, int]] = None
    store_name: str
    product_url: str
    title: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    stock: Optional[StockStatus] = None
    description: Optional[str] = None
    created_at: datetime
    last_seen_at: Optional[datetime] = None


class JobSummary(BaseModel):
    category: str
    total_found: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def merge(self, **counts: int) -> "JobSummary":
        data = self.model_dump()
        for name, value in counts.items():
            data[name] += value
        return JobSummary(**data)


class CrawlJob(BaseModel):
    url: str
    category: str
    store: Optional[str] = None  # adapter key; inferred from the URL when absent
