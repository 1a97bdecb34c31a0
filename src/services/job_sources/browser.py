"""
Headless Browser

Lazily started Playwright Chromium shared by the scraping adapters.
Each page load gets a fresh browser context with a random user agent
from a fixed pool, so cookies and fingerprints never leak between loads.
"""

import asyncio
import logging
import random
from typing import Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.common.config import Config
from src.common.error_handling import UpstreamTransientError

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
]

DEFAULT_NAVIGATION_TIMEOUT_MS = 15000


class HeadlessBrowser:
    """
    Shared Chromium instance.

    Usage:
        browser = HeadlessBrowser()
        html = await browser.fetch_html("https://www.eluta.ca/search?keywords=sales")
        await browser.close()
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
    ):
        self.headless = Config.PLAYWRIGHT_HEADLESS if headless is None else headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None:
                logger.info(f"Launching Chromium (headless={self.headless})")
                playwright = await async_playwright().start()
                try:
                    browser = await playwright.chromium.launch(headless=self.headless)
                except Exception:
                    await playwright.stop()
                    raise
                self._playwright, self._browser = playwright, browser
            return self._browser

    async def fetch_html(self, url: str, wait_selector: Optional[str] = None) -> str:
        """
        Load a page and return its HTML.

        Args:
            url: Page URL
            wait_selector: Optional selector to wait for (missing is not an error)

        Raises:
            UpstreamTransientError: Navigation timed out or the browser errored
        """
        browser = await self._ensure_browser()
        context = await browser.new_context(
            user_agent=random.choice(USER_AGENTS),
            locale="en-CA",
        )
        try:
            page = await context.new_page()
            await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
            if wait_selector:
                try:
                    await page.wait_for_selector(wait_selector, timeout=self.navigation_timeout_ms // 3)
                except PlaywrightTimeoutError:
                    logger.debug(f"Selector {wait_selector!r} not found on {url}")
            return await page.content()
        except PlaywrightTimeoutError as e:
            raise UpstreamTransientError(f"Navigation timeout for {url}") from e
        except PlaywrightError as e:
            raise UpstreamTransientError(f"Browser error for {url}: {e}") from e
        finally:
            await context.close()

    async def close(self) -> None:
        """Close the browser and stop the Playwright driver. Safe to call twice."""
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
