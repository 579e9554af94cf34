"""
Bounded retry with jitter for browser navigation.

Every attempt is preceded by a randomized delay. A block/captcha page is a
hard failure and ends the loop immediately; anything else is retried until
the attempt budget is spent, then the last error is re-raised.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from tenacity import AsyncRetrying, RetryCallState, retry_if_not_exception_type, stop_after_attempt

from rentscout.config import Settings
from rentscout.errors import BlockedPageError, NavigationError, is_block_page

T = TypeVar("T")


def _log_retry(label: str) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(f"{label}: attempt {retry_state.attempt_number} failed ({exc}), retrying...")

    return _before_sleep


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    jitter: tuple[float, float] = (1.0, 3.0),
    non_retryable: tuple[type[BaseException], ...] = (BlockedPageError,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Run ``operation`` up to ``attempts`` times, sleeping a random jitter before each try."""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        retry=retry_if_not_exception_type(non_retryable),
        before_sleep=_log_retry(label),
        sleep=sleep,
        reraise=True,
    ):
        with attempt:
            await sleep(random.uniform(*jitter))  # noqa: S311
            return await operation()
    raise NavigationError(f"{label}: no attempts were made")  # pragma: no cover


async def _page_title(page: Page) -> str | None:
    try:
        return await page.title()
    except PlaywrightError:
        return None


async def goto_checked(page: Page, url: str, *, timeout_ms: int, wait_until: str = "networkidle") -> None:
    """Single navigation attempt with typed errors and block-page detection."""
    try:
        await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
    except PlaywrightTimeoutError as exc:
        raise NavigationError(f"Timed out loading {url}") from exc
    except PlaywrightError as exc:
        raise NavigationError(f"Failed to load {url}: {exc}") from exc

    if is_block_page(page.url, await _page_title(page)):
        raise BlockedPageError(f"Detected captcha or error page at {page.url}")


async def navigate_with_retry(
    page: Page,
    url: str,
    settings: Settings,
    *,
    wait_until: str = "networkidle",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    await retry_async(
        lambda: goto_checked(page, url, timeout_ms=settings.nav_timeout_ms, wait_until=wait_until),
        attempts=settings.nav_max_attempts,
        jitter=(settings.nav_jitter_min_s, settings.nav_jitter_max_s),
        sleep=sleep,
        label=f"GET {url}",
    )
