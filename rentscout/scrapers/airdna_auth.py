"""
AirDNA login.

One ``AuthSession`` per browser session, never persisted: every enrichment
run logs in again. ``failed`` is terminal for the session and retrying is the
caller's decision.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from rentscout.config import AIRDNA_LOGIN_URL, SCREENSHOT_DIR, Settings
from rentscout.errors import AuthenticationError, RentScoutError
from rentscout.utils.retry import navigate_with_retry

ACCOUNT_MENU_SELECTOR = 'button[aria-label="Account menu"]'
LOGIN_FORM_SELECTOR = "form"
EMAIL_SELECTOR = "#loginId"
PASSWORD_SELECTOR = "#password"
SUBMIT_SELECTOR = "#submit-button"


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


_TRANSITIONS = {
    AuthState.UNAUTHENTICATED: {AuthState.AUTHENTICATING, AuthState.AUTHENTICATED, AuthState.FAILED},
    AuthState.AUTHENTICATING: {AuthState.AUTHENTICATED, AuthState.FAILED},
    AuthState.AUTHENTICATED: set(),
    AuthState.FAILED: set(),
}


@dataclass
class AuthSession:
    state: AuthState = AuthState.UNAUTHENTICATED
    reason: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    def transition(self, new_state: AuthState, reason: Optional[str] = None) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal auth transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.reason = reason

    def fail(self, reason: str) -> None:
        self.transition(AuthState.FAILED, reason)
        logger.error(f"AirDNA login failed: {reason}")

    def raise_for_state(self) -> None:
        if not self.is_authenticated:
            raise AuthenticationError(self.reason or "Could not authenticate with AirDNA")


class AirDnaAuthenticator:
    def __init__(self, settings: Settings, screenshot_dir: Path = SCREENSHOT_DIR):
        self.settings = settings
        self.screenshot_dir = Path(screenshot_dir)

    async def login(self, page: Page) -> AuthSession:
        """Drive the login flow on ``page``. Never raises; the outcome is in the returned session."""
        auth = AuthSession()
        try:
            await navigate_with_retry(page, AIRDNA_LOGIN_URL, self.settings)
        except RentScoutError as e:
            auth.fail(f"login page unavailable: {e}")
            return auth

        if await _has(page, ACCOUNT_MENU_SELECTOR):
            logger.info("Already logged in to AirDNA")
            auth.transition(AuthState.AUTHENTICATED)
            return auth

        auth.transition(AuthState.AUTHENTICATING)
        if not self.settings.has_airdna_credentials:
            auth.fail("AIRDNA_EMAIL / AIRDNA_PASSWORD are not configured")
            return auth

        timeout = self.settings.selector_timeout_ms
        delay = self.settings.typing_delay_ms
        try:
            await page.wait_for_selector(LOGIN_FORM_SELECTOR, timeout=timeout)
            await page.wait_for_selector(EMAIL_SELECTOR, state="visible", timeout=timeout)
            await page.wait_for_selector(PASSWORD_SELECTOR, state="visible", timeout=timeout)

            # Per-character delay; instant fills trip the bot heuristics
            await page.type(EMAIL_SELECTOR, self.settings.airdna_email, delay=delay)
            await page.type(PASSWORD_SELECTOR, self.settings.airdna_password, delay=delay)

            button = await page.wait_for_selector(SUBMIT_SELECTOR, state="visible", timeout=timeout)
            if button is None:
                raise AuthenticationError("Login button not found")

            async with page.expect_navigation(wait_until="networkidle", timeout=self.settings.nav_timeout_ms):
                await button.click()
        except (PlaywrightError, AuthenticationError) as e:
            auth.fail(f"{type(e).__name__}: {e}")
            await self._save_screenshot(page)
            return auth

        if await _has(page, PASSWORD_SELECTOR):
            auth.fail("still on the login form after submit (credentials rejected?)")
            await self._save_screenshot(page)
            return auth

        auth.transition(AuthState.AUTHENTICATED)
        logger.success("Logged in to AirDNA")
        return auth

    async def _save_screenshot(self, page: Page) -> Optional[Path]:
        """Best-effort debug capture of the failed login page."""
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            path = self.screenshot_dir / f"airdna_login_error_{datetime.now():%Y%m%d_%H%M%S}.png"
            await page.screenshot(path=str(path))
            return path
        except Exception as e:
            logger.warning(f"Failed to capture login screenshot: {e}")
            return None


async def _has(page: Page, selector: str) -> bool:
    try:
        return await page.query_selector(selector) is not None
    except PlaywrightError as e:
        logger.debug(f"Selector probe failed for {selector}: {e}")
        return False
