"""
Redfin search-results scraper.

Navigates a browser session to a search URL (with bounded retry) and turns
the settled page into listings. The page-level work here is the wait race;
everything after the DOM snapshot is in ``redfin_parser``.
"""

import asyncio

from loguru import logger
from playwright.async_api import Page

from rentscout.browser.session import BrowserSession
from rentscout.config import REDFIN_BASE_URL, Settings
from rentscout.errors import ExtractionTimeoutError
from rentscout.models import Listing
from rentscout.scrapers.redfin_parser import (
    NO_RESULTS_SELECTOR,
    RESULTS_SELECTOR,
    count_result_cards,
    parse_search_results,
)
from rentscout.utils.logging_utils import Timer, log_search
from rentscout.utils.retry import navigate_with_retry


async def wait_for_results(
    page: Page,
    timeout_ms: int,
    results_selector: str = RESULTS_SELECTOR,
    empty_selector: str = NO_RESULTS_SELECTOR,
) -> bool:
    """
    Race the results container against the no-results marker.

    Returns True when results showed up first, False for an explicit empty
    result. Raises ExtractionTimeoutError when neither appears.
    """
    results = asyncio.ensure_future(page.wait_for_selector(results_selector, timeout=timeout_ms))
    empty = asyncio.ensure_future(page.wait_for_selector(empty_selector, timeout=timeout_ms))
    outcome = {results: True, empty: False}
    pending = set(outcome)
    errors = []
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is None:
                    return outcome[task]
                errors.append(exc)
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    raise ExtractionTimeoutError(f"No results or no-results marker within {timeout_ms}ms: {errors[-1] if errors else ''}")


class RedfinSearchScraper:
    """Extraction of base listings from a Redfin search-results page."""

    def __init__(self, settings: Settings, base_url: str = REDFIN_BASE_URL):
        self.settings = settings
        self.base_url = base_url

    async def extract(self, page: Page) -> list[Listing]:
        """Listings on an already-navigated page. Same page state, same result."""
        listings, _ = await self._extract_counted(page)
        return listings

    async def _extract_counted(self, page: Page) -> tuple[list[Listing], int]:
        """Listings plus the number of result cards seen before filtering."""
        has_results = await wait_for_results(page, self.settings.selector_timeout_ms)
        if not has_results:
            logger.info("No listings found for this search")
            return [], 0
        html = await page.content()
        listings = parse_search_results(html, base_url=self.base_url)
        # JSON-LD pages can carry listings without any card markup
        return listings, max(count_result_cards(html), len(listings))

    async def search(self, session: BrowserSession, url: str) -> list[Listing]:
        logger.info(f"Searching Redfin: {url}")
        with Timer() as timer:
            await navigate_with_retry(session.page, url, self.settings)
            listings, cards_found = await self._extract_counted(session.page)
        log_search(
            source="Redfin",
            query=url,
            results_raw=cards_found,
            results_kept=len(listings),
            duration_ms=timer.elapsed_ms,
        )
        return listings
