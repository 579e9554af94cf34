from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ValidationError

from app.web.dependencies import get_search_service
from app.web.routers.financials import lookup_financials
from rentscout.errors import InvalidSearchError
from rentscout.models import Listing, SearchCriteria
from rentscout.services.listing_search_service import ListingSearchService

router = APIRouter(tags=["api"])


class ZipcodeRequest(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    msg = errors[0].get("msg", str(exc))
    return msg.removeprefix("Value error, ")


@router.get("/listings")
async def listings(
    zip_code: Optional[str] = Query(None, alias="zip"),
    city: Optional[str] = None,
    state: Optional[str] = None,
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    min_beds: Optional[str] = Query(None, alias="minBeds"),
    max_hoa: Optional[str] = Query(None, alias="maxHOA"),
    features: Optional[str] = None,
    service: ListingSearchService = Depends(get_search_service),
):
    """Search Redfin; cached (possibly enriched) results are served directly."""
    raw = {
        "zip_code": zip_code,
        "city": city,
        "state": state,
        "min_price": min_price,
        "max_price": max_price,
        "min_beds": min_beds,
        "max_hoa": max_hoa,
        "features": features,
    }
    try:
        criteria = SearchCriteria(**{k: v for k, v in raw.items() if v not in (None, "")})
    except ValidationError as e:
        raise InvalidSearchError(_validation_message(e)) from e

    result = await service.search(criteria)
    return JSONResponse(result.to_api())


@router.get("/financials")
async def financials(
    address: Optional[str] = None,
    beds: float = Query(2, ge=0),
    baths: float = Query(2, ge=0),
    service: ListingSearchService = Depends(get_search_service),
):
    """Alias of /listings/financials."""
    return await lookup_financials(service, address, beds, baths)


@router.post("/zipcode")
async def zipcode(
    payload: ZipcodeRequest,
    service: ListingSearchService = Depends(get_search_service),
):
    """Resolve a city/state to its main zipcode."""
    if not (payload.city or "").strip() or not (payload.state or "").strip():
        raise InvalidSearchError("City and state are required")
    return await service.resolve_zipcode(payload.city, payload.state)


@router.post("/analyze")
async def analyze(
    listings: list[Listing] = Body(...),
    service: ListingSearchService = Depends(get_search_service),
):
    """Carry cost, cash flow and ROI for client-supplied listings."""
    logger.info(f"Analyze request for {len(listings)} listings")
    result = await service.analyze(listings)
    return {
        "listings": [listing.to_api() for listing in result["listings"]],
        "summary": result["summary"],
    }
