"""Playwright backed page lifecycle: open a page per run and wait for it to load.

A single Chromium browser is launched lazily (or attached over CDP when the
``CDP_URL`` environment variable is set) and every run gets its own page in
a shared browser context, so concurrently triggered tasks never share DOM
state.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional, Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from automation.errors import PageLoadTimeout, TransportError

log = logging.getLogger(__name__)


class PageLifecycle(Protocol):
    async def open_and_activate(self, url: str) -> Page: ...

    async def await_load_complete(self, page: Page, timeout_ms: int) -> None: ...

    async def release(self, page: Page) -> None: ...


class PlaywrightPageLifecycle:
    """Open and activate pages in a Chromium browser."""

    def __init__(self, *, headless: bool = True, cdp_url: Optional[str] = None) -> None:
        self.headless = headless
        self.cdp_url = cdp_url if cdp_url is not None else os.getenv("CDP_URL")
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._lock:
            if self.context is not None:
                return
            self.playwright = await async_playwright().start()
            chromium = self.playwright.chromium
            if self.cdp_url:
                try:
                    self.browser = await chromium.connect_over_cdp(self.cdp_url)
                except PlaywrightError as exc:
                    log.warning("Failed to connect over CDP (%s), launching instead", exc)
                    self.browser = await chromium.launch(headless=self.headless)
            else:
                self.browser = await chromium.launch(headless=self.headless)
            if self.browser.contexts:
                self.context = self.browser.contexts[0]
            else:
                self.context = await self.browser.new_context()
            log.info("Browser ready (headless=%s, cdp=%s)", self.headless, bool(self.cdp_url))

    async def close(self) -> None:
        try:
            if self.browser is not None:
                await self.browser.close()
            if self.playwright is not None:
                await self.playwright.stop()
        finally:
            self.playwright = None
            self.browser = None
            self.context = None

    async def open_and_activate(self, url: str) -> Page:
        await self.start()
        if self.context is None:
            raise TransportError("Browser context is not available")
        try:
            page = await self.context.new_page()
        except PlaywrightError as exc:
            raise TransportError(f"Could not open a page for {url}: {exc}", details={"url": url}) from exc
        # The caller never sees the page if activation fails, so close it here.
        try:
            await page.bring_to_front()
            await page.goto(url, wait_until="commit")
        except PlaywrightTimeoutError as exc:
            await self.release(page)
            raise PageLoadTimeout(f"Timed out opening {url}", details={"url": url}) from exc
        except PlaywrightError as exc:
            await self.release(page)
            raise TransportError(f"Could not open {url}: {exc}", details={"url": url}) from exc
        except asyncio.CancelledError:
            await self.release(page)
            raise
        return page

    async def await_load_complete(self, page: Page, timeout_ms: int) -> None:
        if timeout_ms <= 0:
            raise PageLoadTimeout("Page load timed out", details={"url": page.url})
        try:
            await page.wait_for_load_state("load", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise PageLoadTimeout(
                f"Page load timed out after {timeout_ms} ms", details={"url": page.url}
            ) from exc
        except PlaywrightError as exc:
            raise TransportError(f"Page failed while loading: {exc}", details={"url": page.url}) from exc

    async def release(self, page: Page) -> None:
        try:
            await page.close()
        except PlaywrightError as exc:
            log.debug("Page close failed: %s", exc)

    async def __aenter__(self) -> "PlaywrightPageLifecycle":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


__all__ = ["PageLifecycle", "PlaywrightPageLifecycle"]
