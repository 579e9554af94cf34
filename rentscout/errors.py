"""Typed errors shared by the scrapers, services and web layer."""

import re

# Markers of a captcha / WAF interstitial in a page body or URL
BLOCK_PAGE_PATTERN = re.compile(
    r"(captcha|cf-chl|hcaptcha|recaptcha|px-captcha|access\s*denied|are you a robot|security check)",
    re.IGNORECASE,
)


class RentScoutError(Exception):
    """Base class for pipeline failures that reach a caller."""

    http_status = 500
    error_code = "internal_error"


class InvalidSearchError(RentScoutError):
    """Search parameters are missing or malformed."""

    http_status = 400
    error_code = "invalid_search"


class ZipcodeResolutionError(RentScoutError):
    """City/state could not be resolved to a 5-digit zipcode."""

    http_status = 400
    error_code = "zipcode_unresolved"


class BrowserSessionError(RentScoutError):
    """A headless browser session could not be started."""

    http_status = 503
    error_code = "browser_unavailable"


class NavigationError(RentScoutError):
    """A page failed to load within its budget."""

    http_status = 502
    error_code = "navigation_failed"


class BlockedPageError(NavigationError):
    """Navigation landed on a captcha, challenge or error page."""

    error_code = "blocked"


class ExtractionTimeoutError(RentScoutError):
    """Neither results nor the no-results marker appeared in time."""

    http_status = 504
    error_code = "extraction_timeout"


class AuthenticationError(RentScoutError):
    """Login to the analytics site failed."""

    http_status = 401
    error_code = "authentication_failed"


class FinancialDataUnavailableError(RentScoutError):
    """The analytics page never rendered its headline metric."""

    http_status = 404
    error_code = "no_financial_data"


def is_block_page(url: str, title: str | None = None) -> bool:
    """True when the landed URL or page title looks like a captcha/error interstitial.

    Only the title is inspected, not the body: ordinary pages embed recaptcha
    scripts in their markup.
    """
    lowered = (url or "").lower()
    if "captcha" in lowered or "/error" in lowered or "error=" in lowered:
        return True
    if title and BLOCK_PAGE_PATTERN.search(title):
        return True
    return False
