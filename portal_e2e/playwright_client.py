"""
In-process Playwright launcher for the browser suite.

Launches the configured browser and a single context bound to the
application's base URL, with the suite's timeout tiers applied:

- actions wait up to the ``medium`` tier
- navigations wait up to the ``long`` tier

Usage:
    async with PlaywrightClient(base_url=settings.base_url) as client:
        await client.page.goto("/sign-in")
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from portal_e2e.config import TimeoutTiers, settings

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}
SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")


def apply_timeouts(context: BrowserContext, timeouts: TimeoutTiers) -> None:
    context.set_default_timeout(timeouts.medium)
    context.set_default_navigation_timeout(timeouts.long)


def context_options(base_url: Optional[str]) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "viewport": dict(DEFAULT_VIEWPORT),
        "ignore_https_errors": True,
    }
    if base_url:
        options["base_url"] = base_url
    return options


class PlaywrightClient:
    """
    Owns one Playwright browser, context and page for a test.

    Example:
        async with PlaywrightClient() as client:
            page = await client.new_page()
            await page.goto("/dashboard")
    """

    def __init__(
        self,
        browser_type: Optional[str] = None,
        headless: Optional[bool] = None,
        base_url: Optional[str] = None,
        timeouts: Optional[TimeoutTiers] = None,
    ):
        self.browser_type = browser_type or settings.browser_type
        if self.browser_type not in SUPPORTED_BROWSERS:
            raise ValueError(
                f"Unsupported browser {self.browser_type!r}; expected one of {SUPPORTED_BROWSERS}"
            )
        self.headless = settings.playwright_headless if headless is None else headless
        self.base_url = base_url if base_url is not None else settings.base_url
        self.timeouts = timeouts or settings.timeouts

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def __aenter__(self) -> "PlaywrightClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """Launch the browser and open the default context and page."""
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.browser_type)
        self._browser = await launcher.launch(headless=self.headless)
        logger.debug("Launched %s (headless=%s)", self.browser_type, self.headless)

        self._context = await self._browser.new_context(**context_options(self.base_url))
        apply_timeouts(self._context, self.timeouts)
        self._page = await self._context.new_page()

    async def new_page(self) -> Page:
        if not self._context:
            raise RuntimeError("Client not connected. Use 'async with' or call connect()")
        return await self._context.new_page()

    async def close(self) -> None:
        """Close page, context, browser and Playwright, in that order."""
        if self._page:
            await self._page.close()
            self._page = None
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @property
    def context(self) -> BrowserContext:
        if not self._context:
            raise RuntimeError("Client not connected")
        return self._context

    @property
    def page(self) -> Page:
        if not self._page:
            raise RuntimeError("Client not connected or page not created")
        return self._page
