import pytest
from pydantic import ValidationError

from rentscout.models import FinancialData, Listing, SearchCriteria, SearchResultSet


def test_listing_address_is_required_and_collapsed():
    assert Listing(address="  123   Main St ").address == "123 Main St"
    with pytest.raises(ValidationError):
        Listing(address="   ")


def test_listing_numeric_fields_default_to_zero():
    listing = Listing(address="1 Main St", price=None, beds="", sqft=None)

    assert listing.price == 0
    assert listing.beds == 0
    assert listing.sqft == 0


def test_roi_only_with_cost_rent_and_price():
    listing = Listing(address="1 Main St", price=200_000)
    assert listing.roi is None

    listing.set_monthly_cost(1500)
    assert listing.cash_flow is None
    assert listing.roi is None

    listing.merge_financials(FinancialData(monthly_rent=2500))
    assert listing.cash_flow == 1000
    assert listing.roi == 6.0


def test_roi_absent_without_price():
    listing = Listing(address="1 Main St", price=0)
    listing.set_monthly_cost(1000)
    listing.merge_financials(FinancialData(monthly_rent=1500))

    assert listing.cash_flow == 500
    assert listing.roi is None


def test_merge_is_additive():
    listing = Listing(address="1 Main St", price=300_000)
    assert listing.merge_financials(FinancialData(monthly_rent=2000, occupancy_rate=70))

    # A later fetch that found nothing must not clear what is there
    assert listing.merge_financials(FinancialData()) is False
    assert listing.monthly_rent == 2000
    assert listing.occupancy_rate == 70

    listing.merge_financials(FinancialData(net_operating_income=15_000))
    assert listing.monthly_rent == 2000
    assert listing.air_dna_noi == 15_000


def test_merge_keeps_negative_noi():
    listing = Listing(address="1 Main St", price=300_000)

    assert listing.merge_financials(FinancialData(net_operating_income=-3500)) is True
    assert listing.air_dna_noi == -3500

    assert listing.merge_financials(FinancialData()) is False
    assert listing.air_dna_noi == -3500
    assert listing.to_api()["airDnaNOI"] == -3500


def test_merge_ignores_negative_rent():
    listing = Listing(address="1 Main St", price=300_000)

    assert listing.merge_financials(FinancialData(monthly_rent=-100)) is False
    assert listing.monthly_rent is None


def test_set_monthly_cost_none_is_noop():
    listing = Listing(address="1 Main St", price=300_000)
    listing.set_monthly_cost(1800)

    assert listing.set_monthly_cost(None) is False
    assert listing.monthly_cost == 1800


def test_client_supplied_metrics_are_recomputed():
    listing = Listing.model_validate({"address": "1 Main St", "price": 100_000, "cashFlow": 999, "roi": 50})

    assert listing.cash_flow is None
    assert listing.roi is None


def test_listing_api_payload_uses_camel_case():
    listing = Listing(address="1 Main St", price=100_000, image_url="https://img/1.jpg")

    payload = listing.to_api()

    assert payload["imageUrl"] == "https://img/1.jpg"
    for key in ("monthlyCost", "monthlyRent", "airDnaNOI", "occupancyRate", "annualRevenue", "cashFlow", "roi"):
        assert key in payload
        assert payload[key] is None


def test_result_set_counts_and_copies_listings():
    listings = [Listing(address="1 Main St"), Listing(address="2 Main St")]

    result = SearchResultSet.from_listings("https://www.redfin.com/zipcode/33602", listings)
    listings[0].set_monthly_cost(1000)

    assert result.total_listings == 2
    assert result.listings[0].monthly_cost is None
    assert result.enriched is False


def test_result_set_superseded_by_marks_enriched():
    base = SearchResultSet.from_listings("src", [Listing(address="1 Main St", price=100_000)], message="hello")
    updated = [listing.model_copy(deep=True) for listing in base.listings]
    updated[0].set_monthly_cost(900)

    enriched = base.superseded_by(updated)

    assert enriched.enriched is True
    assert enriched.message == "hello"
    assert enriched.listings[0].monthly_cost == 900
    assert base.listings[0].monthly_cost is None


def test_result_set_api_payload():
    payload = SearchResultSet.from_listings("src", [Listing(address="1 Main St")]).to_api()

    assert payload["status"] == 200
    assert payload["totalListings"] == 1
    assert payload["listings"][0]["address"] == "1 Main St"


def test_search_criteria_requires_location():
    with pytest.raises(ValidationError, match="Either zipcode or city and state are required"):
        SearchCriteria()
    with pytest.raises(ValidationError):
        SearchCriteria(city="Tampa")
    with pytest.raises(ValidationError, match="invalid zipcode"):
        SearchCriteria(zip_code="3360")


def test_search_criteria_normalizes_inputs():
    criteria = SearchCriteria(zip_code="", city=" Tampa ", state="FL", features="pool, garage,,", min_price="150000")

    assert criteria.zip_code is None
    assert criteria.city == "Tampa"
    assert criteria.features == ["pool", "garage"]
    assert criteria.min_price == 150_000
