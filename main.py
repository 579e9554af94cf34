"""
Main entry point for RentScout.
Supports modes:
  --search: Search Redfin by zipcode or city/state (optionally enrich inline)
  --financials: AirDNA Rentalizer projection for one address
  --web: Start web server
"""
import argparse
import asyncio
import json
import os
import sys

from loguru import logger
from pydantic import ValidationError

from rentscout.browser.session import BrowserSessionManager
from rentscout.config import load_settings
from rentscout.errors import RentScoutError
from rentscout.models import SearchCriteria
from rentscout.services.enrichment_service import EnrichmentService
from rentscout.services.listing_search_service import ListingSearchService
from rentscout.services.result_cache import ResultCache
from rentscout.utils.logging_config import configure_logger


async def handle_search(args) -> dict:
    """Run one search; with --enrich the enrichment pass runs inline before printing."""
    criteria = SearchCriteria(
        zip_code=args.zip,
        city=args.city,
        state=args.state,
        min_price=args.min_price,
        max_price=args.max_price,
        min_beds=args.min_beds,
        max_hoa=args.max_hoa,
        features=args.features,
    )
    settings = load_settings()
    sessions = BrowserSessionManager(settings)
    cache = ResultCache(default_ttl=settings.cache_ttl_seconds)
    service = ListingSearchService(settings, sessions, cache)
    try:
        result = await service.search(criteria, enrich=False)
        logger.info(f"Found {result.total_listings} listings at {result.source}")

        if args.enrich and result.listings:
            enrichment = EnrichmentService(settings, sessions, cache=cache)
            summary = await enrichment.enrich_result(result.source, result)
            logger.info(f"Enrichment summary: {summary}")
            result = cache.get(result.source) or result
    finally:
        await sessions.close_all()
    return result.to_api()


async def handle_financials(address: str, beds: float, baths: float) -> dict:
    settings = load_settings()
    sessions = BrowserSessionManager(settings)
    service = ListingSearchService(settings, sessions, ResultCache())
    try:
        data = await service.fetch_financials(address, beds=beds, baths=baths)
    finally:
        await sessions.close_all()
    return {"status": "success", "address": address, "data": data.model_dump()}


def handle_web(port: int):
    """Start the FastAPI web server (app/web)."""
    import uvicorn

    logger.info(f"Starting FastAPI Web Server (app/web) on port {port}...")
    logger.info(f"Local Access: http://localhost:{port}")
    uvicorn.run(
        "app.web.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


def main():
    parser = argparse.ArgumentParser(description="RentScout listing search and rental analysis")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--search", action="store_true", help="Search Redfin listings and print JSON")
    group.add_argument("--financials", metavar="ADDRESS", help="Fetch AirDNA projections for one address")
    group.add_argument("--web", action="store_true", help="Start web server")

    search = parser.add_argument_group("search options")
    search.add_argument("--zip", help="5-digit zipcode")
    search.add_argument("--city", help="City (used with --state when no --zip is given)")
    search.add_argument("--state", help="State abbreviation")
    search.add_argument("--min-price", type=int, default=0)
    search.add_argument("--max-price", type=int, default=10_000_000)
    search.add_argument("--min-beds", type=int, default=0)
    search.add_argument("--max-hoa", type=int, default=10_000)
    search.add_argument("--features", default="", help="Comma-separated remarks keywords")
    search.add_argument("--enrich", action="store_true",
                        help="Add carry cost and AirDNA projections before printing")

    parser.add_argument("--beds", type=float, default=2, help="Bedrooms for --financials (default 2)")
    parser.add_argument("--baths", type=float, default=2, help="Bathrooms for --financials (default 2)")
    parser.add_argument("--port", type=int, default=int(os.getenv("WEB_PORT", "8080")),
                        help="Port for web server (default 8080 or WEB_PORT env var)")

    args = parser.parse_args()
    configure_logger("rentscout_cli.log")

    if args.web:
        handle_web(args.port)
        return

    try:
        if args.search:
            output = asyncio.run(handle_search(args))
        else:
            output = asyncio.run(handle_financials(args.financials, args.beds, args.baths))
    except ValidationError as e:
        logger.error(f"Invalid search: {e.errors()[0].get('msg', e)}")
        sys.exit(2)
    except RentScoutError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)

    print(json.dumps(output, indent=2, default=str))


if __name__ == "__main__":
    main()
