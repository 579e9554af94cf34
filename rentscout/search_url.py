"""Redfin search URL construction and cache-key normalization."""

from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from rentscout.config import DEFAULT_MAX_HOA, DEFAULT_MAX_PRICE, REDFIN_BASE_URL
from rentscout.models import SearchCriteria


def build_search_url(criteria: SearchCriteria, zip_code: str, base_url: str = REDFIN_BASE_URL) -> str:
    """
    Build the zipcode search URL with Redfin's path-style filter segment.

    Filters left at their defaults are omitted so equivalent searches map to
    the same URL (and the same cache key).
    """
    url = f"{base_url}/zipcode/{zip_code}"

    filters = []
    if criteria.min_price > 0:
        filters.append(f"min-price={criteria.min_price // 1000}k")
    if 0 < criteria.max_price < DEFAULT_MAX_PRICE:
        filters.append(f"max-price={criteria.max_price // 1000}k")
    if criteria.min_beds > 0:
        filters.append(f"min-beds={criteria.min_beds}")
    if criteria.features:
        # Commas separate filters, so the remarks list is percent-encoded
        filters.append(f"remarks={quote(','.join(criteria.features), safe='')}")
    if criteria.max_hoa < DEFAULT_MAX_HOA:
        filters.append(f"hoa={criteria.max_hoa}")

    if filters:
        url += f"/filter/{','.join(filters)}"
    return url


def normalize_cache_key(url: str) -> str:
    """Canonical form of a search URL: lower-case scheme/host, no trailing slash, sorted query."""
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/") or "/"
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, query, ""))
