from typing import Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger

from app.web.dependencies import get_search_service
from rentscout.errors import InvalidSearchError
from rentscout.models import FinancialData
from rentscout.services.listing_search_service import ListingSearchService

router = APIRouter(tags=["financials"])


def _financials_payload(data: FinancialData) -> dict:
    return {
        "netOperatingIncome": data.net_operating_income,
        "occupancyRate": data.occupancy_rate,
        "annualRevenue": data.annual_revenue,
        "monthlyRent": data.monthly_rent,
    }


async def lookup_financials(
    service: ListingSearchService,
    address: Optional[str],
    beds: float,
    baths: float,
) -> dict:
    """Shared body of both financials routes; errors go to the RentScoutError handler."""
    address = (address or "").strip()
    if not address:
        raise InvalidSearchError("Address is required")

    logger.info(f"Financials lookup: {address} ({beds} bd / {baths} ba)")
    data = await service.fetch_financials(address, beds=beds, baths=baths)
    return {"status": "success", "address": address, "data": _financials_payload(data)}


@router.get("/financials")
async def listing_financials(
    address: Optional[str] = None,
    beds: float = Query(2, ge=0),
    baths: float = Query(2, ge=0),
    service: ListingSearchService = Depends(get_search_service),
):
    """AirDNA Rentalizer projection for a single address."""
    return await lookup_financials(service, address, beds, baths)
