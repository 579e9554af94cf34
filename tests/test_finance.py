import asyncio

import pytest

from rentscout.config import Settings
from rentscout.finance import CostEstimator, cash_flow, estimate_monthly_cost, mortgage_payment, roi
from rentscout.models import Listing


def test_mortgage_payment_standard_loan():
    assert mortgage_payment(200_000, 6.0, 30) == pytest.approx(1199.10, abs=0.01)


def test_mortgage_payment_zero_rate_and_no_principal():
    assert mortgage_payment(120_000, 0.0, 10) == pytest.approx(1000.0)
    assert mortgage_payment(0, 6.0, 30) == 0.0


def test_estimate_monthly_cost_includes_tax_insurance_and_hoa():
    settings = Settings(interest_rate_pct=6.0, down_payment_pct=20.0, property_tax_rate=0.011, insurance_rate=0.004)

    cost = estimate_monthly_cost(250_000, 100, settings)

    # 1199.10 P&I + 229.17 tax + 83.33 insurance + 100 HOA
    assert cost == pytest.approx(1611.60, abs=0.01)


def test_estimate_monthly_cost_without_price_is_none():
    assert estimate_monthly_cost(0, 250, Settings()) is None


def test_roi_requires_positive_price():
    assert roi(500, 100_000) == 6.0
    assert roi(500, 0) is None
    assert roi(None, 100_000) is None


def test_cash_flow_is_rent_minus_cost():
    assert cash_flow(2000, 1500.5) == 499.5
    assert cash_flow(1000, 1500) == -500


def test_cost_estimator_matches_estimate_function():
    settings = Settings()
    listing = Listing(address="1 Main St", price=300_000, hoa=50)

    cost = asyncio.run(CostEstimator(settings).estimate(listing))

    assert cost == estimate_monthly_cost(300_000, 50, settings)
