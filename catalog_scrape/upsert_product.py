# catalog_scrape/upsert_product.py
import json
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Protocol, Tuple

from .enrichment import Settled
from .schema import CatalogRecord, EnrichedProduct, StockStatus, utcnow

logger = logging.getLogger(__name__)

KEY_COLUMNS = ("store_name", "product_url")
FRESHNESS_WINDOW = timedelta(seconds=5)


class StoreError(RuntimeError):
    pass


class CatalogStore(Protocol):
    def upsert(self, key: Dict[str, str], fields: Dict[str, Any]) -> Dict[str, Any]:
        """Create or update the row for ``key``; return it including ``id`` and ``created_at``."""
        ...

    def category_counts(self, store_name: str) -> List[Tuple[str, int]]:
        ...

    def delete_store(self, store_name: str) -> int:
        ...


class SupabaseCatalogStore:
    """
    Catalog rows in a Supabase table with a UNIQUE (store_name, product_url)
    constraint. ``created_at`` is left to the column default so an update
    never touches it.
    """

    def __init__(self, client=None, table: str = "products", page_size: int = 1000):
        if client is None:
            from .supabase_client import get_supabase

            client = get_supabase()
        self.client = client
        self.table = table
        self.page_size = page_size

    def upsert(self, key: Dict[str, str], fields: Dict[str, Any]) -> Dict[str, Any]:
        record = {**fields, **key}
        logger.debug("Upserting catalog record:\n%s", json.dumps(record, indent=2, default=str))

        response = (
            self.client
            .table(self.table)
            .upsert(record, on_conflict=",".join(KEY_COLUMNS))
            .execute()
        )
        data = getattr(response, "data", None)
        if not data:
            raise StoreError(f"Supabase returned no row for {key['store_name']} {key['product_url']}")
        return data[0]

    def category_counts(self, store_name: str) -> List[Tuple[str, int]]:
        counts: Counter = Counter()
        start = 0
        while True:
            response = (
                self.client.table(self.table)
                .select("category")
                .ilike("store_name", f"%{store_name}%")
                .range(start, start + self.page_size - 1)
                .execute()
            )
            batch = getattr(response, "data", None) or []
            counts.update(row.get("category") or "" for row in batch)
            if len(batch) < self.page_size:
                break
            start += self.page_size
        return counts.most_common()

    def delete_store(self, store_name: str) -> int:
        response = self.client.table(self.table).delete().ilike("store_name", f"%{store_name}%").execute()
        return len(getattr(response, "data", None) or [])


class InMemoryCatalogStore:
    """Dict-backed store with the same upsert contract, for dry runs."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.rows: Dict[Tuple[str, str], Dict[str, Any]] = {}

    def upsert(self, key: Dict[str, str], fields: Dict[str, Any]) -> Dict[str, Any]:
        k = tuple(key[c] for c in KEY_COLUMNS)
        row = self.rows.get(k)
        if row is None:
            row = {"id": str(uuid.uuid4()), "created_at": self.clock(), **key}
            self.rows[k] = row
        row.update(fields)
        return dict(row)

    def category_counts(self, store_name: str) -> List[Tuple[str, int]]:
        needle = store_name.lower()
        counts = Counter(r.get("category") or "" for (s, _), r in self.rows.items() if needle in s.lower())
        return counts.most_common()

    def delete_store(self, store_name: str) -> int:
        needle = store_name.lower()
        doomed = [k for k in self.rows if needle in k[0].lower()]
        for k in doomed:
            del self.rows[k]
        return len(doomed)


@dataclass
class ReconcileTally:
    created: int = 0
    updated: int = 0
    errors: int = 0

    def __add__(self, other: "ReconcileTally") -> "ReconcileTally":
        return ReconcileTally(
            self.created + other.created,
            self.updated + other.updated,
            self.errors + other.errors,
        )


class Reconciler:
    """Writes enriched products to the catalog and counts created vs updated.

    A row whose ``created_at`` lies within ``window`` of now is reported as
    created. This holds only while this class is the sole writer of
    ``created_at`` for these keys.
    """

    def __init__(
        self,
        store: CatalogStore,
        clock: Callable[[], datetime] = utcnow,
        window: timedelta = FRESHNESS_WINDOW,
    ):
        self.store = store
        self.clock = clock
        self.window = window

    def upsert(self, product: EnrichedProduct) -> Tuple[CatalogRecord, bool]:
        row = self.store.upsert(
            {"store_name": product.store_name, "product_url": product.product_url},
            product.catalog_fields(),
        )
        record = CatalogRecord.model_validate(row)
        created_at = record.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return record, created_at > self.clock() - self.window

    def reconcile(self, settled: Iterable[Settled]) -> ReconcileTally:
        tally = ReconcileTally()
        for outcome in settled:
            if not outcome.ok:
                tally.errors += 1
                continue
            product: EnrichedProduct = outcome.value
            try:
                record, is_new = self.upsert(product)
            except Exception:
                logger.exception("Catalog upsert failed for %s", product.product_url)
                tally.errors += 1
                continue
            if is_new:
                tally.created += 1
            else:
                tally.updated += 1
            if record.stock == StockStatus.OUT_OF_STOCK:
                logger.info("   [%s] %s", record.stock.value, (record.title or "")[:60])
        return tally

