"""Request-scoped access to the services built in the app lifespan."""

from fastapi import Request

from rentscout.services.listing_search_service import ListingSearchService


def get_search_service(request: Request) -> ListingSearchService:
    return request.app.state.search_service
