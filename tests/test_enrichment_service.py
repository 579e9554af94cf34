import asyncio
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest

from rentscout.config import Settings
from rentscout.errors import BrowserSessionError, FinancialDataUnavailableError
from rentscout.models import FinancialData, Listing, SearchResultSet
from rentscout.scrapers.airdna_auth import AuthSession, AuthState
from rentscout.services.enrichment_service import EnrichmentService
from rentscout.services.result_cache import ResultCache

FAST = Settings(listing_timeout_s=0.05, cost_timeout_s=0.05)
KEY = "https://www.redfin.com/zipcode/33602"


class _FakeSessions:
    def __init__(self, error=None):
        self.error = error
        self.opened = 0
        self.released = 0

    @asynccontextmanager
    async def session(self, name="session"):
        if self.error:
            raise self.error
        self.opened += 1
        try:
            yield SimpleNamespace(name=f"{name}-{self.opened}", page=object())
        finally:
            self.released += 1


class _FakeAuthenticator:
    def __init__(self, ok=True, error=None):
        self.ok = ok
        self.error = error
        self.calls = 0

    async def login(self, page):
        self.calls += 1
        if self.error:
            raise self.error
        auth = AuthSession()
        if self.ok:
            auth.transition(AuthState.AUTHENTICATED)
        else:
            auth.fail("credentials rejected")
        return auth


class _FakeScraper:
    """Per-address outcome: FinancialData, an exception, or "hang"."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.fetched = []

    async def fetch(self, page, address, beds, baths):
        self.fetched.append(address)
        outcome = self.outcomes.get(address, FinancialData())
        if outcome == "hang":
            await asyncio.sleep(10)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _listings(*addresses):
    return [Listing(address=address, price=250_000) for address in addresses]


def _service(scraper, authenticator=None, sessions=None, settings=FAST, cache=None):
    return EnrichmentService(
        settings,
        sessions or _FakeSessions(),
        cache=cache,
        authenticator=authenticator or _FakeAuthenticator(),
        scraper=scraper,
    )


def test_slow_listing_does_not_stop_the_batch():
    listings = _listings("1 Slow St", "2 Fast St")
    scraper = _FakeScraper({"1 Slow St": "hang", "2 Fast St": FinancialData(monthly_rent=2500, occupancy_rate=70)})

    summary = asyncio.run(_service(scraper).enrich_listings(listings))

    assert summary["timeouts"] == 1
    assert summary["enriched"] == 1
    assert listings[0].monthly_cost is not None
    assert listings[0].monthly_rent is None
    assert listings[1].monthly_rent == 2500
    assert listings[1].roi is not None


def test_failing_listing_is_skipped():
    listings = _listings("1 Broken St", "2 Fine St")
    scraper = _FakeScraper(
        {
            "1 Broken St": FinancialDataUnavailableError("no metrics"),
            "2 Fine St": FinancialData(monthly_rent=2000),
        }
    )

    summary = asyncio.run(_service(scraper).enrich_listings(listings))

    assert summary["failures"] == 1
    assert summary["enriched"] == 1
    assert listings[0].monthly_rent is None
    assert listings[1].monthly_rent == 2000


def test_auth_failure_leaves_listings_untouched():
    listings = _listings("1 Main St", "2 Main St")
    before = [listing.model_dump() for listing in listings]
    scraper = _FakeScraper({})
    sessions = _FakeSessions()

    summary = asyncio.run(
        _service(scraper, authenticator=_FakeAuthenticator(ok=False), sessions=sessions).enrich_listings(listings)
    )

    assert summary["authenticated"] is False
    assert [listing.model_dump() for listing in listings] == before
    assert scraper.fetched == []
    assert sessions.released == 1


def test_second_run_without_data_keeps_first_values():
    listings = _listings("1 Main St")
    first = _FakeScraper({"1 Main St": FinancialData(monthly_rent=2200, net_operating_income=18_000)})
    asyncio.run(_service(first).enrich_listings(listings))

    second = _FakeScraper({"1 Main St": FinancialDataUnavailableError("no metrics")})
    asyncio.run(_service(second).enrich_listings(listings))

    assert listings[0].monthly_rent == 2200
    assert listings[0].air_dna_noi == 18_000


def test_enrichment_is_capped():
    listings = _listings("1 A St", "2 B St", "3 C St")
    scraper = _FakeScraper({address: FinancialData(monthly_rent=1000) for address in ("1 A St", "2 B St", "3 C St")})
    settings = Settings(listing_timeout_s=0.05, cost_timeout_s=0.05, enrichment_max_listings=2)

    summary = asyncio.run(_service(scraper, settings=settings).enrich_listings(listings))

    assert summary["attempted"] == 2
    assert summary["skipped_over_cap"] == 1
    assert scraper.fetched == ["1 A St", "2 B St"]
    assert listings[2].monthly_cost is None


def test_session_error_is_reported_not_raised():
    listings = _listings("1 Main St")
    sessions = _FakeSessions(error=BrowserSessionError("no chromium"))

    summary = asyncio.run(_service(_FakeScraper({}), sessions=sessions).enrich_listings(listings))

    assert summary["error"].startswith("browser_unavailable")
    assert listings[0].monthly_cost is None


def test_session_released_on_unexpected_error():
    sessions = _FakeSessions()
    service = _service(_FakeScraper({}), authenticator=_FakeAuthenticator(error=RuntimeError("driver crashed")), sessions=sessions)

    with pytest.raises(RuntimeError):
        asyncio.run(service.enrich_listings(_listings("1 Main St")))
    assert sessions.released == 1


def test_enrich_result_supersedes_cache_entry():
    cache = ResultCache()
    base = SearchResultSet.from_listings(KEY, _listings("1 Main St"))
    cache.put(KEY, base)
    scraper = _FakeScraper({"1 Main St": FinancialData(monthly_rent=2500)})

    summary = asyncio.run(_service(scraper, cache=cache).enrich_result(KEY, base))

    cached = cache.get(KEY)
    assert summary["cached"] is True
    assert cached.enriched is True
    assert cached.listings[0].monthly_rent == 2500
    assert base.listings[0].monthly_rent is None


def test_enrich_result_skips_expired_entry():
    cache = ResultCache()
    base = SearchResultSet.from_listings(KEY, _listings("1 Main St"))
    scraper = _FakeScraper({"1 Main St": FinancialData(monthly_rent=2500)})

    summary = asyncio.run(_service(scraper, cache=cache).enrich_result(KEY, base))

    assert summary["cached"] is False
    assert cache.get(KEY) is None
