"""
Carry-cost and return metrics for a listing.

All money values are monthly unless the name says otherwise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rentscout.config import Settings
    from rentscout.models import Listing


def mortgage_payment(principal: float, annual_rate_pct: float, years: int) -> float:
    """Monthly principal + interest for a fully amortizing loan."""
    if principal <= 0 or years <= 0:
        return 0.0
    r = (annual_rate_pct / 100) / 12
    n = years * 12
    if r == 0:
        return principal / n
    return principal * (r * (1 + r) ** n) / ((1 + r) ** n - 1)


def estimate_monthly_cost(price: float, hoa: float | None, settings: Settings) -> float | None:
    """P&I on the financed amount plus property tax, insurance and HOA.

    Returns None when there is no price to finance.
    """
    if not price or price <= 0:
        return None
    down_payment = price * settings.down_payment_pct / 100
    principal = max(0.0, price - down_payment)
    payment = mortgage_payment(principal, settings.interest_rate_pct, settings.loan_years)
    taxes = price * settings.property_tax_rate / 12
    insurance = price * settings.insurance_rate / 12
    return round(payment + taxes + insurance + (hoa or 0), 2)


def cash_flow(monthly_rent: float, monthly_cost: float) -> float:
    return round(monthly_rent - monthly_cost, 2)


def roi(monthly_cash_flow: float | None, price: float) -> float | None:
    """Annualized cash flow over purchase price, in percent."""
    if monthly_cash_flow is None or not price or price <= 0:
        return None
    return round(monthly_cash_flow * 12 / price * 100, 2)


class CostEstimator:
    """Async carry-cost source so the enrichment loop can time-box it like a fetch."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def estimate(self, listing: Listing) -> float | None:
        return estimate_monthly_cost(listing.price, listing.hoa, self.settings)
