"""Per-product detail fetches, run in fixed-size batches.

A batch is dispatched all at once and fully settled (every task finished,
successfully or not) before the next batch starts, so at most ``batch_size``
browser tabs are open at any time.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Generic, Iterator, List, Optional, Sequence, TypeVar

from .adapters.base import SiteAdapter
from .fetcher import RenderTimeout
from .schema import EnrichedProduct, EnrichmentResult, RawTile

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def fetch_details(renderer, adapter: SiteAdapter, url: str) -> EnrichmentResult:
    """Stock and description for one product page.

    Never raises: any failure yields ``EnrichmentResult.safe_default()``.
    """
    try:
        async with renderer.page(block_resources=adapter.block_resources) as page:
            await page.navigate(url, adapter.detail_wait_until, adapter.detail_timeout_ms)
            if adapter.detail_ready_selector:
                try:
                    await page.wait_for_selector(adapter.detail_ready_selector, adapter.detail_ready_timeout_ms)
                except RenderTimeout:
                    if adapter.detail_ready_required:
                        raise
                    logger.debug("[%s] %s missing on %s", adapter.store_name, adapter.detail_ready_selector, url)
            html = await page.content()
        return adapter.extract_details(html)
    except Exception as exc:
        logger.warning(
            "[%s] details failed for %s, marking out of stock: %s: %s",
            adapter.store_name,
            url,
            type(exc).__name__,
            exc,
        )
        return EnrichmentResult.safe_default()


async def enrich_tile(renderer, adapter: SiteAdapter, tile: RawTile) -> EnrichedProduct:
    details = await fetch_details(renderer, adapter, tile.product_url)
    return EnrichedProduct.from_tile(tile, details)


@dataclass
class Settled(Generic[T, R]):
    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def settle_all(items: Sequence[T], task: Callable[[T], Awaitable[R]]) -> List[Settled]:
    """Run ``task`` over every item concurrently; failures are collected, not raised."""
    outcomes = await asyncio.gather(*(task(item) for item in items), return_exceptions=True)
    settled = []
    for item, outcome in zip(items, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            settled.append(Settled(item, error=outcome))
        else:
            settled.append(Settled(item, value=outcome))
    return settled


class EnrichmentPool:
    def __init__(self, batch_size: int, task: Callable[[T], Awaitable[R]], label: str = ""):
        self.batch_size = batch_size
        self.task = task
        self.label = label

    async def batches(self, items: Sequence[T]) -> AsyncIterator[List[Settled]]:
        """Yield each settled batch.

        The next batch is only dispatched once the caller asks for it, so
        whatever the caller does with batch n (catalog writes) happens before
        batch n+1 starts.
        """
        total = (len(items) + self.batch_size - 1) // self.batch_size
        for number, batch in enumerate(batched(items, self.batch_size), start=1):
            logger.info("%s batch %d/%d (%d items)", self.label, number, total, len(batch))
            settled = await settle_all(batch, self.task)
            for s in settled:
                if not s.ok:
                    logger.error("%s task failed: %s: %s", self.label, type(s.error).__name__, s.error)
            yield settled

    async def run(self, items: Sequence[T]) -> List[Settled]:
        results: List[Settled] = []
        async for settled in self.batches(items):
            results.extend(settled)
        return results
