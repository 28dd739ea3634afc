"""
Headless browser session used by every crawl phase.

One PageSession owns Playwright, the browser, one context and a single page for
the whole run. Navigation, selector waits and scrolling are strictly
sequential; every wait is bounded.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Optional

from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)
from playwright_stealth import Stealth

from config.settings import ScraperConfig, config
from src.exceptions import FatalStartupError, NavigationError, NavigationTimeout
from src.extractors.dom_strategies import parse_html
from src.utils.log import console

logger = logging.getLogger(__name__)

# Stamps rendered image sizes onto <img> so they survive page.content()
_STAMP_IMAGE_SIZES_JS = """
() => {
    document.querySelectorAll('img').forEach(img => {
        img.setAttribute('data-natural-width', String(img.naturalWidth || 0));
        img.setAttribute('data-natural-height', String(img.naturalHeight || 0));
    });
    return document.images.length;
}
"""

_DOCUMENT_HEIGHT_JS = "() => document.body ? document.body.scrollHeight : 0"
_SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"
_SCROLL_TO_TOP_JS = "() => window.scrollTo(0, 0)"


@dataclass
class PageSnapshot:
    """Serialized DOM of the current page, taken after rendering."""

    url: str
    html: str

    @cached_property
    def document(self) -> BeautifulSoup:
        return parse_html(self.html)


class PageSession:
    """Single browser navigation context (async context manager)."""

    def __init__(self, scraper_config: Optional[ScraperConfig] = None):
        self.config = scraper_config or config.scraper
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Launch the browser and open the single working page."""
        console.print(
            f"[bold blue]Starting {self.config.browser_type} browser...[/bold blue]"
        )
        try:
            self.playwright = await async_playwright().start()
            launchers = {
                "chromium": self.playwright.chromium,
                "firefox": self.playwright.firefox,
                "webkit": self.playwright.webkit,
            }
            launcher = launchers.get(self.config.browser_type, self.playwright.chromium)
            self.browser = await launcher.launch(headless=self.config.headless)
            self.context = await self.browser.new_context(
                viewport={
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                },
                user_agent=self.config.user_agent,
                locale="en-US",
            )
            await Stealth().apply_stealth_async(self.context)
            self.page = await self.context.new_page()
            self.page.set_default_timeout(self.config.default_timeout_ms)
        except Exception as e:
            await self.close()
            raise FatalStartupError(f"Could not start browser session: {e}") from e

        console.print("[bold green]Browser started successfully[/bold green]")

    async def close(self) -> None:
        """Close the page, context, browser and Playwright driver."""
        for resource in (self.context, self.browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as e:
                logger.debug("Ignoring error while closing browser: %s", e)
        if self.playwright is not None:
            await self.playwright.stop()
        was_open = self.browser is not None
        self.page = self.context = self.browser = self.playwright = None
        if was_open:
            console.print("[bold blue]Browser closed[/bold blue]")

    def _require_page(self) -> Page:
        if self.page is None:
            raise RuntimeError("PageSession is not started")
        return self.page

    @property
    def url(self) -> str:
        return self.page.url if self.page is not None else ""

    async def navigate(self, url: str) -> None:
        """Load a URL, waiting only for DOMContentLoaded."""
        page = self._require_page()
        try:
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.config.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(url, f"Timed out loading page: {e}") from e
        except PlaywrightError as e:
            raise NavigationError(url, f"Failed to load page: {e}") from e

    async def await_readiness(
        self,
        selectors: list[str],
        selector_timeout_ms: int,
        network_idle_timeout_ms: int,
        settle_seconds: float,
    ) -> Optional[str]:
        """
        Wait for the first of several candidate selectors to appear.

        Each selector gets its own bounded wait. When none appears, fall back to
        a bounded network-idle wait plus a fixed settle delay and return None.
        Returning None is not an error; extraction proceeds either way.
        """
        page = self._require_page()
        for selector in selectors:
            try:
                await page.wait_for_selector(selector, timeout=selector_timeout_ms)
                return selector
            except PlaywrightError:
                continue

        console.print(
            "  [dim]No ready selector found, waiting for network idle...[/dim]"
        )
        await self.wait_for_network_idle(network_idle_timeout_ms)
        await asyncio.sleep(settle_seconds)
        return None

    async def wait_for_network_idle(self, timeout_ms: int) -> bool:
        page = self._require_page()
        try:
            await page.wait_for_load_state("networkidle", timeout=timeout_ms)
            return True
        except PlaywrightError as e:
            logger.debug("Network idle wait ended early on %s: %s", page.url, e)
            return False

    async def exhaust_lazy_load(
        self,
        max_iterations: Optional[int] = None,
        settle_seconds: Optional[float] = None,
    ) -> int:
        """
        Scroll to the bottom until the document height stops growing.

        Stops when the height is unchanged between two iterations or after
        ``max_iterations`` scrolls, then scrolls back to the top. Returns the
        number of scrolls performed.
        """
        max_iterations = max_iterations or self.config.max_scroll_iterations
        if settle_seconds is None:
            settle_seconds = self.config.scroll_settle_seconds

        previous_height = 0
        scrolls = 0
        for _ in range(max_iterations):
            height = await self.evaluate(_DOCUMENT_HEIGHT_JS)
            if height == previous_height:
                break
            previous_height = height
            await self.evaluate(_SCROLL_TO_BOTTOM_JS)
            scrolls += 1
            await asyncio.sleep(settle_seconds)

        await self.evaluate(_SCROLL_TO_TOP_JS)
        return scrolls

    async def evaluate(self, function: str, *args: Any) -> Any:
        """
        Run a JavaScript function inside the page and return its result.

        With one argument it is passed through as-is; with several they are
        passed as a single array.
        """
        page = self._require_page()
        if not args:
            return await page.evaluate(function)
        if len(args) == 1:
            return await page.evaluate(function, args[0])
        return await page.evaluate(function, list(args))

    async def screenshot(self, path: Path) -> bool:
        """Best-effort full-page screenshot. Never raises."""
        try:
            page = self._require_page()
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
            return True
        except Exception as e:
            logger.warning("Screenshot failed for %s: %s", path, e)
            return False

    async def content(self) -> str:
        return await self._require_page().content()

    async def snapshot(self) -> PageSnapshot:
        """Serialize the rendered DOM, with image sizes stamped on each <img>."""
        await self.evaluate(_STAMP_IMAGE_SIZES_JS)
        html = await self.content()
        return PageSnapshot(url=self.url, html=html)

    async def settle(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
