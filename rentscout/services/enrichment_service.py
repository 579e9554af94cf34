"""
Enrichment Service: background financial enrichment for a search result.

Runs after the base listings have already gone back to the caller. Owns its
own browser session (separate from the search session), logs in to AirDNA
once per run and walks the listings one at a time. Every per-listing step has
its own time budget; a slow or failing listing is skipped and the batch moves
on. Enriched values are merged additively and written back to the result
cache if the entry is still live.
"""

import asyncio
from typing import Any, Awaitable, Optional

from loguru import logger

from rentscout.browser.session import BrowserSessionManager
from rentscout.config import Settings
from rentscout.errors import RentScoutError
from rentscout.finance import CostEstimator
from rentscout.models import Listing, SearchResultSet
from rentscout.scrapers.airdna_auth import AirDnaAuthenticator
from rentscout.scrapers.airdna_scraper import AirDnaScraper
from rentscout.services.result_cache import ResultCache
from rentscout.utils.logging_utils import Timer


def _new_summary() -> dict[str, Any]:
    return {
        "authenticated": False,
        "attempted": 0,
        "costed": 0,
        "enriched": 0,
        "timeouts": 0,
        "failures": 0,
        "skipped_over_cap": 0,
        "cached": False,
    }


class EnrichmentService:
    """Cost + AirDNA enrichment over a batch of listings."""

    def __init__(
        self,
        settings: Settings,
        sessions: BrowserSessionManager,
        cache: Optional[ResultCache] = None,
        authenticator: Optional[AirDnaAuthenticator] = None,
        scraper: Optional[AirDnaScraper] = None,
        cost_estimator: Optional[CostEstimator] = None,
    ):
        self.settings = settings
        self.sessions = sessions
        self.cache = cache
        self.authenticator = authenticator or AirDnaAuthenticator(settings)
        self.scraper = scraper or AirDnaScraper(settings)
        self.cost_estimator = cost_estimator or CostEstimator(settings)

    async def enrich_result(self, key: str, result: SearchResultSet) -> dict[str, Any]:
        """Enrich a cached search and supersede its cache entry. Entry point for background jobs."""
        listings = [listing.model_copy(deep=True) for listing in result.listings]
        summary = await self.enrich_listings(listings)

        if self.cache is not None and (summary["costed"] or summary["enriched"]):
            summary["cached"] = self.cache.put_if_present(
                key, result.superseded_by(listings), ttl=self.settings.cache_ttl_seconds
            )
        logger.success(f"Enrichment complete for {key}: {summary}")
        return summary

    async def enrich_listings(self, listings: list[Listing]) -> dict[str, Any]:
        """
        Enrich ``listings`` in place, up to the configured cap.

        An AirDNA login failure ends the run with every listing untouched.
        """
        summary = _new_summary()
        if not listings:
            return summary

        cap = max(0, self.settings.enrichment_max_listings)
        batch = listings[:cap]
        summary["skipped_over_cap"] = len(listings) - len(batch)
        if summary["skipped_over_cap"]:
            logger.info(f"Enriching first {len(batch)} of {len(listings)} listings (cap={cap})")

        try:
            async with self.sessions.session("airdna") as session:
                auth = await self.authenticator.login(session.page)
                if not auth.is_authenticated:
                    logger.warning(f"Failed to login to AirDNA, skipping rental data ({auth.reason})")
                    return summary
                summary["authenticated"] = True

                with Timer() as timer:
                    for listing in batch:
                        await self._enrich_one(session.page, listing, summary)
                logger.info(f"Enriched {summary['enriched']}/{len(batch)} listings in {timer.elapsed_ms / 1000:.1f}s")
        except RentScoutError as e:
            logger.error(f"Enrichment run aborted: {e}")
            summary["error"] = f"{e.error_code}: {e}"
        return summary

    async def _enrich_one(self, page, listing: Listing, summary: dict[str, Any]) -> None:
        summary["attempted"] += 1

        cost = await self._run_step(
            "cost", listing, self.cost_estimator.estimate(listing), self.settings.cost_timeout_s, summary
        )
        if listing.set_monthly_cost(cost):
            summary["costed"] += 1

        data = await self._run_step(
            "airdna",
            listing,
            self.scraper.fetch(page, listing.address, listing.beds, listing.baths),
            self.settings.listing_timeout_s,
            summary,
        )
        if data is not None and listing.merge_financials(data):
            summary["enriched"] += 1

    async def _run_step(
        self,
        step: str,
        listing: Listing,
        operation: Awaitable[Any],
        timeout_s: float,
        summary: dict[str, Any],
    ) -> Any:
        """Await one enrichment step under its own budget. Failures are logged and read as None."""
        try:
            return await asyncio.wait_for(operation, timeout=timeout_s)
        except asyncio.TimeoutError:
            summary["timeouts"] += 1
            logger.warning(f"{step} for {listing.address} timed out after {timeout_s}s, skipping")
        except RentScoutError as e:
            summary["failures"] += 1
            logger.warning(f"{step} for {listing.address} failed: {e}")
        except Exception as e:
            summary["failures"] += 1
            logger.exception(f"Unexpected {step} error for {listing.address}: {e}")
        return None
