"""
Listing Search Service: the request path behind ``/api/listings``.

Resolve the location, serve a cached result when there is one, otherwise
scrape Redfin in a short-lived browser session, cache the base listings and
hand them to the enrichment worker. The caller always gets the base result
back; enrichment lands in the cache later.
"""

from typing import Any, Optional

from loguru import logger

from rentscout.browser.session import BrowserSessionManager
from rentscout.config import REDFIN_BASE_URL, Settings
from rentscout.errors import FinancialDataUnavailableError
from rentscout.finance import CostEstimator
from rentscout.models import FinancialData, Listing, SearchCriteria, SearchResultSet
from rentscout.scrapers.airdna_auth import AirDnaAuthenticator
from rentscout.scrapers.airdna_scraper import AirDnaScraper
from rentscout.scrapers.redfin_search import RedfinSearchScraper
from rentscout.search_url import build_search_url, normalize_cache_key
from rentscout.services.enrichment_worker import EnrichmentWorker
from rentscout.services.result_cache import ResultCache
from rentscout.services.zipcode_resolver import ZipcodeResolver

NO_LISTINGS_MESSAGE = "No listings found matching your criteria"


class ListingSearchService:
    def __init__(
        self,
        settings: Settings,
        sessions: BrowserSessionManager,
        cache: ResultCache,
        worker: Optional[EnrichmentWorker] = None,
        resolver: Optional[ZipcodeResolver] = None,
        scraper: Optional[RedfinSearchScraper] = None,
        authenticator: Optional[AirDnaAuthenticator] = None,
        airdna: Optional[AirDnaScraper] = None,
        cost_estimator: Optional[CostEstimator] = None,
        base_url: str = REDFIN_BASE_URL,
    ):
        self.settings = settings
        self.sessions = sessions
        self.cache = cache
        self.worker = worker
        self.resolver = resolver or ZipcodeResolver(settings)
        self.base_url = base_url
        self.scraper = scraper or RedfinSearchScraper(settings, base_url=base_url)
        self.authenticator = authenticator or AirDnaAuthenticator(settings)
        self.airdna = airdna or AirDnaScraper(settings)
        self.cost_estimator = cost_estimator or CostEstimator(settings)

    async def resolve_zipcode(self, city: str, state: str) -> dict[str, str]:
        """Zipcode plus bare search URL for a city/state, as returned by ``POST /api/zipcode``."""
        zipcode = await self.resolver.resolve_async(city, state)
        return {
            "zipcode": zipcode,
            "searchUrl": f"{self.base_url}/zipcode/{zipcode}",
            "message": f"Found zipcode {zipcode} for {city.strip()}, {state.strip()}",
        }

    async def search_url_for(self, criteria: SearchCriteria) -> str:
        zip_code = criteria.zip_code
        if not zip_code:
            zip_code = await self.resolver.resolve_async(criteria.city, criteria.state)
        return build_search_url(criteria, zip_code, base_url=self.base_url)

    async def search(self, criteria: SearchCriteria, enrich: bool = True) -> SearchResultSet:
        """
        Base listings for ``criteria``.

        A live cache entry (enriched or not) is returned as-is. A fresh scrape
        is cached and, when ``enrich`` is set, queued for background
        enrichment.
        """
        url = await self.search_url_for(criteria)
        key = normalize_cache_key(url)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Cache hit for {key} ({cached.total_listings} listings, enriched={cached.enriched})")
            return cached

        async with self.sessions.session("redfin") as session:
            listings = await self.scraper.search(session, url)

        result = SearchResultSet.from_listings(
            source=url,
            listings=listings,
            message=None if listings else NO_LISTINGS_MESSAGE,
        )
        self.cache.put(key, result, ttl=self.settings.cache_ttl_seconds)

        if enrich and listings and self.worker is not None:
            self.worker.submit(key, result)
        return result

    async def fetch_financials(self, address: str, beds: float = 2, baths: float = 2) -> FinancialData:
        """
        One-off Rentalizer lookup for an address.

        Raises AuthenticationError when the login fails and
        FinancialDataUnavailableError when the page has no usable metrics.
        """
        async with self.sessions.session("airdna") as session:
            auth = await self.authenticator.login(session.page)
            auth.raise_for_state()
            data = await self.airdna.fetch(session.page, address, beds, baths)

        if data.is_empty:
            raise FinancialDataUnavailableError("Could not find rental data for this property")
        return data

    async def analyze(self, listings: list[Listing]) -> dict[str, Any]:
        """Carry cost and return metrics for client-supplied listings. No browser involved."""
        analyzed = []
        for listing in listings:
            listing = listing.model_copy(deep=True)
            listing.set_monthly_cost(await self.cost_estimator.estimate(listing))
            analyzed.append(listing)

        with_roi = [listing for listing in analyzed if listing.roi is not None]
        best = max(with_roi, key=lambda listing: listing.roi, default=None)
        summary = {
            "count": len(analyzed),
            "withRoi": len(with_roi),
            "bestRoi": best.roi if best else None,
            "bestAddress": best.address if best else None,
        }
        logger.info(f"Analyzed {summary['count']} listings (best ROI: {summary['bestRoi']})")
        return {"listings": analyzed, "summary": summary}
