"""
AirDNA Rentalizer scraper.

Requires a page that is already logged in (see ``airdna_auth``). Each metric
has its own lookup path, and a metric that cannot be found reads as 0; only a
page that never renders its headline figure counts as a failed fetch.
"""

import re
from urllib.parse import urlencode

from bs4 import BeautifulSoup, Tag
from loguru import logger
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from rentscout.config import AIRDNA_RENTALIZER_URL, Settings
from rentscout.errors import FinancialDataUnavailableError
from rentscout.models import FinancialData
from rentscout.utils.parsing import clean_text, parse_abbreviated_currency, parse_percent
from rentscout.utils.retry import navigate_with_retry

NOI_SELECTOR = "h3.MuiTypography-root.MuiTypography-titleM.css-sd2qa2"
OCCUPANCY_SELECTOR = "p.MuiTypography-root.MuiTypography-body1.css-kk2mec"
HEADLINE_SELECTOR = NOI_SELECTOR

# Positional path to the revenue card in the metrics grid
_METRICS_GRID = (
    "body > div:nth-of-type(2) > div > main > div > div > div:nth-of-type(2) > div:nth-of-type(1)"
    " > div:nth-of-type(2) > div:nth-of-type(2) > div > div:nth-of-type(2)"
)
REVENUE_PATH = f"{_METRICS_GRID} > div:nth-of-type(4) > div:nth-of-type(2) > h3"
OCCUPANCY_PATH = f"{_METRICS_GRID} > div:nth-of-type(3) > div:nth-of-type(2) > h3"

_LABEL_TAGS = ["p", "span", "h6", "h5", "div", "label"]


def build_rentalizer_url(address: str, beds: float, baths: float) -> str:
    bedrooms = int(round(beds or 0))
    bathrooms = int(baths) if float(baths or 0).is_integer() else baths
    params = {
        "address": address,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms or 1,
        "accommodates": max(2, bedrooms * 2),
    }
    return f"{AIRDNA_RENTALIZER_URL}?{urlencode(params)}"


def _select_text(soup: BeautifulSoup, selector: str) -> str:
    el = soup.select_one(selector)
    return clean_text(el.get_text(" ")) if el else ""


def _metric_by_label(soup: BeautifulSoup, label: str) -> str:
    """Value heading that follows a short caption matching ``label``."""
    pattern = re.compile(label, re.IGNORECASE)
    for el in soup.find_all(_LABEL_TAGS):
        if not isinstance(el, Tag):
            continue
        own_text = clean_text(el.get_text(" "))
        if not own_text or len(own_text) > 40 or not pattern.search(own_text):
            continue
        # A wrapper around the value itself is not a caption
        if el.find("h3") is not None:
            continue
        value = el.find_next("h3")
        if value is not None:
            return clean_text(value.get_text(" "))
    return ""


def _first(*candidates: str) -> str:
    return next((c for c in candidates if c), "")


def parse_rentalizer(html: str) -> FinancialData:
    """Metrics from a rendered Rentalizer page. Missing metrics are 0."""
    soup = BeautifulSoup(html or "", "lxml")

    noi_text = _first(
        _select_text(soup, NOI_SELECTOR),
        _metric_by_label(soup, r"net operating income|\bNOI\b"),
    )
    occupancy_text = _first(
        _select_text(soup, OCCUPANCY_SELECTOR),
        _select_text(soup, OCCUPANCY_PATH),
        _metric_by_label(soup, r"occupancy"),
    )
    revenue_text = _first(
        _select_text(soup, REVENUE_PATH),
        _metric_by_label(soup, r"revenue"),
    )

    annual_revenue = parse_abbreviated_currency(revenue_text)
    return FinancialData(
        net_operating_income=parse_abbreviated_currency(noi_text),
        occupancy_rate=parse_percent(occupancy_text),
        annual_revenue=annual_revenue,
        monthly_rent=round(annual_revenue / 12, 2) if annual_revenue > 0 else 0.0,
    )


class AirDnaScraper:
    def __init__(self, settings: Settings):
        self.settings = settings

    async def fetch(self, page: Page, address: str, beds: float, baths: float) -> FinancialData:
        """
        Rentalizer projection for one property.

        Raises FinancialDataUnavailableError if the headline metric never
        renders, NavigationError if the page cannot be loaded.
        """
        url = build_rentalizer_url(address, beds, baths)
        logger.info(f"AirDNA GET: {url}")
        await navigate_with_retry(page, url, self.settings)

        try:
            await page.wait_for_selector(HEADLINE_SELECTOR, timeout=self.settings.selector_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise FinancialDataUnavailableError(f"No Rentalizer metrics rendered for {address}") from e

        data = parse_rentalizer(await page.content())
        if data.is_empty:
            logger.warning(f"Rentalizer page for {address} rendered without readable metrics")
        else:
            logger.debug(
                f"AirDNA {address}: NOI={data.net_operating_income} occupancy={data.occupancy_rate} "
                f"monthly_rent={data.monthly_rent}"
            )
        return data
