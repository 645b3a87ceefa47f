"""Crawl state machines that exhaust one category listing.

Every strategy exposes the same contract::

    begin(page, adapter, state)   -> state
    advance(page, adapter, state) -> (tiles, next_state or None)
    salvage(page, adapter, state) -> tiles

``traverse`` drives any of them until ``advance`` reports a terminal step
(``None``). Each strategy carries a hard iteration ceiling, and a failure at
any point keeps the tiles already gathered instead of returning nothing.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import FrozenSet, List, Optional, Tuple

from .adapters.base import SiteAdapter, TraversalStrategy
from .fetcher import InteractionError, RenderTimeout
from .schema import RawTile

logger = logging.getLogger(__name__)

MAX_PAGES = 100
MAX_SCROLLS = 100
MAX_CLICKS = 50
MAX_STAGNANT = 3

SETTLE_MS = 2000
RESPONSE_WAIT_MS = 4000
AFTER_RESPONSE_MS = 1000
SCROLL_PAUSE_MS = 1500
BUTTON_WAIT_MS = 8000
AFTER_CLICK_MS = 6000


@dataclass(frozen=True)
class TraversalState:
    url: str
    category: str
    step: int = 0  # pages loaded, scrolls or clicks performed so far
    tile_count: int = 0  # tiles in the DOM after the last growth
    misses: int = 0  # consecutive steps without growth
    visited: FrozenSet[str] = field(default_factory=frozenset)


Step = Tuple[List[RawTile], Optional[TraversalState]]


class Paged:
    """Load page, extract, follow the next link until there is none."""

    async def begin(self, page, adapter: SiteAdapter, state: TraversalState) -> TraversalState:
        return state

    async def advance(self, page, adapter: SiteAdapter, state: TraversalState) -> Step:
        number = state.step + 1
        logger.info("[%s] page %d: %s", adapter.store_name, number, state.url)
        await page.navigate(state.url, adapter.listing_wait_until, adapter.listing_timeout_ms)
        try:
            await page.wait_for_selector(adapter.tile_selector, adapter.tile_wait_ms)
        except RenderTimeout:
            logger.warning("[%s] no tiles rendered on page %d, checking pagination", adapter.store_name, number)
        await page.scroll_through()
        await page.wait(AFTER_RESPONSE_MS)

        html = await page.content()
        tiles = adapter.extract_tiles(html, state.category)
        logger.info("[%s] page %d yielded %d tiles", adapter.store_name, number, len(tiles))

        visited = state.visited | {state.url}
        next_url = adapter.next_page_url(html)
        if not next_url:
            logger.info("[%s] last page reached", adapter.store_name)
            return tiles, None
        if next_url in visited:
            logger.warning("[%s] next link loops back to %s, stopping", adapter.store_name, next_url)
            return tiles, None
        if number >= MAX_PAGES:
            logger.warning("[%s] page ceiling (%d) reached", adapter.store_name, MAX_PAGES)
            return tiles, None
        return tiles, replace(state, url=next_url, step=number, visited=visited)

    async def salvage(self, page, adapter: SiteAdapter, state: TraversalState) -> List[RawTile]:
        # Each finished page was already handed back by advance().
        return []


class _GrowingGrid:
    """Shared by the strategies that grow a single page in place.

    Tiles are extracted once, after the grid stops growing, so nothing is
    read twice.
    """

    ceiling = 0

    async def begin(self, page, adapter: SiteAdapter, state: TraversalState) -> TraversalState:
        await page.navigate(state.url, adapter.listing_wait_until, adapter.listing_timeout_ms)
        try:
            await page.wait_for_selector(adapter.tile_selector, adapter.tile_wait_ms)
        except RenderTimeout:
            logger.warning("[%s] no tiles rendered initially", adapter.store_name)
        await page.wait(SETTLE_MS)
        count = await page.count(adapter.tile_selector)
        logger.info("[%s] %d tiles on first load", adapter.store_name, count)
        return replace(state, tile_count=count)

    def _grew(self, state: TraversalState, count: int) -> TraversalState:
        if count > state.tile_count:
            return replace(state, tile_count=count, misses=0)
        return replace(state, misses=state.misses + 1)

    def _exhausted(self, state: TraversalState) -> bool:
        return state.misses >= MAX_STAGNANT or state.step >= self.ceiling

    async def finish(self, page, adapter: SiteAdapter, state: TraversalState) -> Step:
        logger.info(
            "[%s] grid settled after %d steps with %d tiles", adapter.store_name, state.step, state.tile_count
        )
        html = await page.content()
        return adapter.extract_tiles(html, state.category), None

    async def salvage(self, page, adapter: SiteAdapter, state: TraversalState) -> List[RawTile]:
        try:
            html = await page.content()
        except Exception as exc:
            logger.warning("[%s] could not read the grid after failure: %s", adapter.store_name, exc)
            return []
        return adapter.extract_tiles(html, state.category)


class InfiniteScroll(_GrowingGrid):
    ceiling = MAX_SCROLLS

    async def advance(self, page, adapter: SiteAdapter, state: TraversalState) -> Step:
        state = replace(state, step=state.step + 1)
        await page.scroll_to_bottom()
        if adapter.growth_response_fragment:
            try:
                await page.wait_for_response(adapter.growth_response_fragment, RESPONSE_WAIT_MS)
                await page.wait(AFTER_RESPONSE_MS)
            except RenderTimeout:
                await page.wait(SETTLE_MS)
        else:
            await page.wait(SETTLE_MS)

        state = self._grew(state, await page.count(adapter.tile_selector))
        logger.debug("[%s] scroll %d: %d tiles", adapter.store_name, state.step, state.tile_count)
        if self._exhausted(state):
            return await self.finish(page, adapter, state)
        return [], state


class ClickToLoad(_GrowingGrid):
    ceiling = MAX_CLICKS

    async def advance(self, page, adapter: SiteAdapter, state: TraversalState) -> Step:
        button = adapter.load_more_selector
        state = replace(state, step=state.step + 1)
        await page.scroll_to_bottom()
        await page.wait(SCROLL_PAUSE_MS)
        before = await page.count(adapter.tile_selector)

        if not await page.exists(button):
            state = replace(state, misses=state.misses + 1)
            logger.debug("[%s] no load-more control (%d in a row)", adapter.store_name, state.misses)
        else:
            try:
                await page.wait_for_selector(button, BUTTON_WAIT_MS, visible=True)
                await page.click(button, BUTTON_WAIT_MS)
                await page.wait(AFTER_CLICK_MS)
                after = await page.count(adapter.tile_selector)
                state = self._grew(replace(state, tile_count=max(state.tile_count, before)), after)
            except (RenderTimeout, InteractionError) as exc:
                state = replace(state, misses=state.misses + 1)
                logger.warning("[%s] load-more click failed: %s", adapter.store_name, exc)

        if self._exhausted(state):
            await page.scroll_tiles_into_view(adapter.tile_selector)
            return await self.finish(page, adapter, state)
        if state.misses:
            await page.wait(SETTLE_MS)
        return [], state


STRATEGIES = {
    TraversalStrategy.PAGED: Paged(),
    TraversalStrategy.INFINITE_SCROLL: InfiniteScroll(),
    TraversalStrategy.CLICK_TO_LOAD: ClickToLoad(),
}


async def traverse(renderer, adapter: SiteAdapter, url: str, category: str) -> List[RawTile]:
    """Run the adapter's strategy on one listing page and return every tile found."""
    strategy = STRATEGIES[adapter.strategy]
    gathered: List[RawTile] = []
    state: Optional[TraversalState] = TraversalState(url=adapter.start_url(url), category=category)

    async with renderer.page() as page:
        try:
            state = await strategy.begin(page, adapter, state)
            while state is not None:
                tiles, state = await strategy.advance(page, adapter, state)
                gathered.extend(tiles)
        except Exception as exc:
            logger.error(
                "[%s] traversal of %s stopped: %s: %s", adapter.store_name, category, type(exc).__name__, exc
            )
            gathered.extend(await strategy.salvage(page, adapter, state))

    logger.info("[%s] traversal of %s collected %d tiles", adapter.store_name, category, len(gathered))
    return gathered
