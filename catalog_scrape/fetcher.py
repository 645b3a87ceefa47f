import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import DEFAULT_UA

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1280, "height": 1080}
BLOCKED_RESOURCES = {"image", "font", "stylesheet", "media"}

SCROLL_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"

# Walk down the page in steps so lazy grids render, then jump back to the top.
SCROLL_THROUGH_JS = """
async ([step, pause]) => {
  const height = document.body.scrollHeight;
  for (let y = 0; y < height; y += step) {
    window.scrollBy(0, step);
    await new Promise((r) => setTimeout(r, pause));
  }
  window.scrollTo(0, 0);
}
"""

SCROLL_TILES_JS = """
async ([selector, pause]) => {
  for (const tile of document.querySelectorAll(selector)) {
    tile.scrollIntoView({ behavior: "auto", block: "center" });
    await new Promise((r) => setTimeout(r, pause));
  }
}
"""


class NavigationError(Exception):
    """A page could not be loaded (network failure or navigation timeout)."""


class RenderTimeout(TimeoutError):
    """A selector or response wait ran out of time."""


class InteractionError(Exception):
    """A click on a page control failed."""


async def _block_heavy(route):
    if route.request.resource_type in BLOCKED_RESOURCES:
        await route.abort()
    else:
        await route.continue_()


class RenderedPage:
    """One browser tab. Every wait carries an explicit timeout."""

    def __init__(self, page, context=None):
        self._page = page
        self._context = context

    async def navigate(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = 30000):
        try:
            await self._page.goto(url, timeout=timeout_ms, wait_until=wait_until)
        except PlaywrightError as exc:
            raise NavigationError(f"{url}: {exc}") from exc

    async def wait_for_selector(self, selector: str, timeout_ms: int, visible: bool = False):
        state = "visible" if visible else "attached"
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms, state=state)
        except PlaywrightTimeoutError as exc:
            raise RenderTimeout(f"{selector} not found after {timeout_ms}ms") from exc

    async def wait_for_response(self, url_fragment: str, timeout_ms: int):
        try:
            await self._page.wait_for_event(
                "response",
                predicate=lambda res: url_fragment in res.url and res.status == 200,
                timeout=timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            raise RenderTimeout(f"no {url_fragment} response after {timeout_ms}ms") from exc

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def count(self, selector: str) -> int:
        return await self._page.locator(selector).count()

    async def exists(self, selector: str) -> bool:
        return await self._page.query_selector(selector) is not None

    async def click(self, selector: str, timeout_ms: int = 8000):
        try:
            await self._page.click(selector, timeout=timeout_ms)
        except PlaywrightError as exc:
            raise InteractionError(f"click on {selector} failed: {exc}") from exc

    async def scroll_to_bottom(self):
        await self.evaluate(SCROLL_BOTTOM_JS)

    async def scroll_through(self, step: int = 500, pause_ms: int = 50):
        await self.evaluate(SCROLL_THROUGH_JS, [step, pause_ms])

    async def scroll_tiles_into_view(self, selector: str, pause_ms: int = 50):
        await self.evaluate(SCROLL_TILES_JS, [selector, pause_ms])

    async def wait(self, ms: int):
        await self._page.wait_for_timeout(ms)

    async def content(self) -> str:
        return await self._page.content()

    async def close(self):
        # Closing the context also closes the page.
        if self._context is not None:
            await self._context.close()
        else:
            await self._page.close()


class Renderer:
    """Shared browser session; hands out one isolated tab per caller."""

    def __init__(self, browser, user_agent: str = DEFAULT_UA):
        self._browser = browser
        self.user_agent = user_agent

    async def open_page(self, block_resources: bool = False) -> RenderedPage:
        ctx = await self._browser.new_context(user_agent=self.user_agent, viewport=VIEWPORT)
        try:
            page = await ctx.new_page()
            if block_resources:
                await page.route("**/*", _block_heavy)
        except PlaywrightError:
            await ctx.close()
            raise
        return RenderedPage(page, ctx)

    @asynccontextmanager
    async def page(self, block_resources: bool = False) -> AsyncIterator[RenderedPage]:
        tab = await self.open_page(block_resources=block_resources)
        try:
            yield tab
        finally:
            await tab.close()


@asynccontextmanager
async def open_renderer(headless: bool = True, user_agent: Optional[str] = None) -> AsyncIterator[Renderer]:
    """Launch Chromium once; it is closed when the block exits, whatever happened inside."""
    pw = await async_playwright().start()
    try:
        browser = await pw.chromium.launch(headless=headless, args=["--no-sandbox"])
    except PlaywrightError:
        await pw.stop()
        raise
    logger.info("Browser launched (headless=%s)", headless)
    try:
        yield Renderer(browser, user_agent or DEFAULT_UA)
    finally:
        await browser.close()
        await pw.stop()
        logger.info("Browser closed")
