"""
Headless browser sessions.

A session owns one Playwright driver, one Chromium browser, one context and a
default page with stealth applied. Sessions are independent so the listing
search and the analytics run never share navigation state. Use the scoped
form so a session is always released:

    async with manager.session("redfin") as session:
        await session.page.goto(...)
"""

from __future__ import annotations

import itertools
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from loguru import logger
from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright_stealth import Stealth

from rentscout.config import USER_AGENT, Settings
from rentscout.errors import BrowserSessionError


async def apply_stealth(page: Page) -> None:
    """Apply stealth settings to a page to avoid bot detection."""
    await Stealth().apply_stealth_async(page)


@dataclass(eq=False)
class BrowserSession:
    name: str
    playwright: Any
    browser: Browser | None
    context: BrowserContext | None
    page: Page
    closed: bool = False


Launcher = Callable[[str], Awaitable[BrowserSession]]


class BrowserSessionManager:
    """Acquires and releases browser sessions; tracks the ones still open."""

    def __init__(self, settings: Settings, launcher: Launcher | None = None):
        self.settings = settings
        self._launcher = launcher or self._launch_chromium
        self._open: list[BrowserSession] = []
        self._ids = itertools.count(1)

    @property
    def open_sessions(self) -> int:
        return len(self._open)

    async def acquire(self, name: str = "session") -> BrowserSession:
        label = f"{name}-{next(self._ids)}"
        try:
            session = await self._launcher(label)
        except BrowserSessionError:
            raise
        except Exception as exc:
            logger.error(f"Browser launch failed for {label}: {exc}")
            raise BrowserSessionError(f"Could not start browser session '{label}': {exc}") from exc
        self._open.append(session)
        logger.debug(f"Browser session {label} acquired ({self.open_sessions} open)")
        return session

    async def release(self, session: BrowserSession) -> None:
        if session.closed:
            logger.debug(f"Browser session {session.name} already released")
            return
        session.closed = True
        if session in self._open:
            self._open.remove(session)
        await _teardown(session.name, session.context, session.browser, session.playwright)
        logger.debug(f"Browser session {session.name} released ({self.open_sessions} open)")

    @asynccontextmanager
    async def session(self, name: str = "session") -> AsyncIterator[BrowserSession]:
        session = await self.acquire(name)
        try:
            yield session
        finally:
            await self.release(session)

    async def close_all(self) -> None:
        for session in list(self._open):
            await self.release(session)

    async def _launch_chromium(self, name: str) -> BrowserSession:
        """Create stealth browser context."""
        playwright = await async_playwright().start()
        browser = None
        context = None
        try:
            browser = await playwright.chromium.launch(headless=self.settings.headless)
            context = await browser.new_context(
                user_agent=USER_AGENT,
                viewport={"width": 1920, "height": 1080},
                screen={"width": 1920, "height": 1080},
                locale="en-US",
                timezone_id="America/New_York",
                extra_http_headers={
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.9",
                    "Upgrade-Insecure-Requests": "1",
                },
            )
            context.set_default_navigation_timeout(self.settings.nav_timeout_ms)
            page = await context.new_page()
            await apply_stealth(page)
        except Exception:
            await _teardown(name, context, browser, playwright)
            raise
        return BrowserSession(name=name, playwright=playwright, browser=browser, context=context, page=page)


async def _teardown(name: str, context: Any, browser: Any, playwright: Any) -> None:
    """Close whatever was started. Cleanup failures are logged, not raised."""
    for label, closer in (
        ("context", getattr(context, "close", None)),
        ("browser", getattr(browser, "close", None)),
        ("playwright", getattr(playwright, "stop", None)),
    ):
        if closer is None:
            continue
        try:
            await closer()
        except Exception as exc:
            logger.warning(f"Error closing {label} for session {name}: {exc}")
