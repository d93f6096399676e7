"""Playwright browser session owned by one crawl."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, BrowserContext, Playwright, Route, async_playwright
from pydantic import BaseModel, PrivateAttr

from permits_crawler.exceptions import BrowserLaunchError
from permits_crawler.scrapers.base.page_commands import PageCommands, PlaywrightPageCommands


class BrowserSession(BaseModel):
    """Browser process, context and primary page for one crawl.

    The primary page drives search and pagination. Detail pages are opened
    through :meth:`open_tab`, one record at a time, and are always closed
    when the ``async with`` block exits.

    Parameters
    ----------
    headless : bool, default=True
        Launch Chromium without a window.
    block_resources : bool, default=True
        Abort image, media, font and stylesheet requests.

    Examples
    --------
    >>> async def run():
    ...     async with BrowserSession() as session:
    ...         await session.commands.goto("https://example.org")
    """

    headless: bool = True
    block_resources: bool = True

    _playwright: Optional[Playwright] = PrivateAttr(default=None)
    _browser: Optional[Browser] = PrivateAttr(default=None)
    _context: Optional[BrowserContext] = PrivateAttr(default=None)
    _commands: Optional[PageCommands] = PrivateAttr(default=None)

    @property
    def commands(self) -> PageCommands:
        if self._commands is None:
            raise RuntimeError("Browser session has not been started")
        return self._commands

    async def start(self) -> PageCommands:
        """Launch the browser and open the primary page."""
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            self._context = await self._browser.new_context(viewport={"width": 1920, "height": 1080})
            if self.block_resources:
                await self._configure_network_blocking(self._context)
            page = await self._context.new_page()
        except Exception as e:
            await self.close()
            raise BrowserLaunchError(f"Could not launch browser: {e}") from e
        self._commands = PlaywrightPageCommands(page)
        return self._commands

    @asynccontextmanager
    async def open_tab(self) -> AsyncIterator[PageCommands]:
        """Open an isolated tab that is closed on exit, success or failure."""
        if self._context is None:
            raise RuntimeError("Browser session has not been started")
        page = await self._context.new_page()
        tab = PlaywrightPageCommands(page)
        try:
            yield tab
        finally:
            try:
                await tab.close()
            except Exception as e:
                logging.warning("Failed to close detail tab: %s", e)

    async def close(self) -> None:
        """Tear down browser and driver; safe to call more than once."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logging.warning("Failed to close browser: %s", e)
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logging.warning("Failed to stop Playwright: %s", e)
        self._browser = None
        self._context = None
        self._playwright = None
        self._commands = None

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()

    async def _configure_network_blocking(self, context: BrowserContext) -> None:
        """Block non-essential resources to reduce bandwidth usage.

        Parameters
        ----------
        context : BrowserContext
            The Playwright browser context to configure.

        Notes
        -----
        Blocks resource types: ``image``, ``media``, ``font``, ``stylesheet``.
        Keeps ``document``, ``script``, ``xhr``, and ``fetch`` so the client
        application still boots and renders its result lists.
        """
        blocked_types = {"image", "media", "font", "stylesheet"}

        async def handler(route: Route):  # type: ignore[no-untyped-def]
            try:
                if route.request.resource_type in blocked_types:
                    await route.abort()
                else:
                    await route.continue_()
            except Exception as e:
                logging.debug("Route handling failed for %s: %s", route.request.url, e)

        await context.route("**/*", handler)
