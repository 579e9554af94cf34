"""
Redfin search-results parsing.

Pure functions over a DOM snapshot (``page.content()``): the same HTML always
yields the same listings in the same order. Markup changes are absorbed by an
ordered list of strategies; the first one that recognizes result cards wins.
A card that cannot be read is logged and skipped without affecting the rest.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Protocol
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from loguru import logger

from rentscout.config import REDFIN_BASE_URL
from rentscout.models import Listing
from rentscout.utils.parsing import (
    clean_text,
    parse_abbreviated_currency,
    parse_decimal,
    parse_int,
    parse_price,
)

HOA_MARKER = "HOA"

# Markup for results present / no results, used by the page-level wait race
RESULTS_SELECTOR = ".HomeCardContainer, [data-rf-test-name='mapHomeCard']"
NO_RESULTS_SELECTOR = ".no-results-message, [data-rf-test-id='no-results-message']"

# Badges that mark a card as a paid placement
SPONSORED_SELECTOR = ".bp-Homecard__Sponsored, [data-rf-test-id='sponsored-label'], .sponsored-badge"


@dataclass(frozen=True)
class CardSelectors:
    name: str
    card: str
    address: str
    price: str
    beds: str
    baths: str
    sqft: str
    fact_items: str
    link: str
    image: str


HOMECARD_V3 = CardSelectors(
    name="homecard",
    card=".HomeCardContainer:not(.InlineResultStaticPlacement)",
    address=".bp-Homecard__Content .bp-Homecard__Address, .bp-Homecard__Address",
    price=".bp-Homecard__Content .bp-Homecard__Price--value, .bp-Homecard__Price--value",
    beds=".bp-Homecard__Stats--beds",
    baths=".bp-Homecard__Stats--baths",
    sqft=".bp-Homecard__Stats--sqft",
    fact_items=".KeyFactsExtension .KeyFacts-item",
    link="a.bp-Homecard__Photo, .bp-Homecard__Photo, a.bp-Homecard__Address",
    image=".bp-Homecard__Photo--image, img",
)

MAP_HOMECARD = CardSelectors(
    name="map-homecard",
    card="[data-rf-test-name='mapHomeCard']:not(.InlineResultStaticPlacement)",
    address=".homeAddressV2, .homeAddress",
    price=".homecardV2Price, [data-rf-test-name='homecard-price']",
    beds=".HomeStatsV2 .stats:nth-of-type(1)",
    baths=".HomeStatsV2 .stats:nth-of-type(2)",
    sqft=".HomeStatsV2 .stats:nth-of-type(3)",
    fact_items=".KeyFacts .KeyFacts-item, .keyFacts .keyFact",
    link="a.slider-item, a[href*='/home/']",
    image="img.homecard-image, img",
)


class ExtractionStrategy(Protocol):
    name: str

    def extract(self, soup: BeautifulSoup, base_url: str) -> Optional[list[Listing]]:
        """Listings in page order, or None when this strategy finds no cards at all."""


def _text(card: Tag, selector: str) -> str:
    el = card.select_one(selector)
    return clean_text(el.get_text(" ")) if el else ""


def _attr(card: Tag, selector: str, *names: str) -> str:
    el = card.select_one(selector)
    if el is None:
        return ""
    for name in names:
        value = el.get(name)
        if value:
            return str(value).strip()
    return ""


def _unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def parse_hoa(features: list[str]) -> Optional[int]:
    """Monthly HOA from the first fact mentioning it; None when absent or unpriced."""
    for fact in features:
        if HOA_MARKER in fact:
            amount = parse_abbreviated_currency(fact, default=-1)
            return int(round(amount)) if amount >= 0 else None
    return None


def is_sponsored(card: Tag) -> bool:
    return card.select_one(SPONSORED_SELECTOR) is not None


class CssCardStrategy:
    """Reads result cards with a fixed set of CSS selectors."""

    def __init__(self, selectors: CardSelectors):
        self.selectors = selectors
        self.name = selectors.name

    def extract(self, soup: BeautifulSoup, base_url: str) -> Optional[list[Listing]]:
        cards = [card for card in soup.select(self.selectors.card) if not is_sponsored(card)]
        if not cards:
            return None

        listings = []
        for index, card in enumerate(cards):
            try:
                listing = self._extract_card(card, base_url)
            except Exception as e:
                logger.warning(f"Error extracting listing data from card {index} ({self.name}): {e}")
                continue
            if listing is None:
                logger.warning(f"Skipping card {index} ({self.name}): no address")
                continue
            listings.append(listing)
        return listings

    def _extract_card(self, card: Tag, base_url: str) -> Optional[Listing]:
        sel = self.selectors
        address = _text(card, sel.address)
        if not address:
            return None

        features = _unique(clean_text(item.get_text(" ")) for item in card.select(sel.fact_items))
        href = _attr(card, sel.link, "href")
        image = _attr(card, sel.image, "src", "data-src")

        return Listing(
            address=address,
            url=urljoin(base_url, href) if href else "",
            price=parse_price(_text(card, sel.price)),
            beds=parse_decimal(_text(card, sel.beds)),
            baths=parse_decimal(_text(card, sel.baths)),
            sqft=parse_int(_text(card, sel.sqft)),
            hoa=parse_hoa(features),
            features=features,
            image_url=urljoin(base_url, image) if image else None,
        )


RESIDENCE_TYPES = {"SingleFamilyResidence", "Residence", "House", "Apartment", "Townhouse"}


class JsonLdStrategy:
    """
    Fallback over schema.org blocks embedded in the page.

    Redfin emits one ``[Residence, Product]`` pair per result; the Product's
    offer carries the list price.
    """

    name = "json-ld"

    def extract(self, soup: BeautifulSoup, base_url: str) -> Optional[list[Listing]]:
        listings = []
        found = False
        for group in self._groups(soup):
            residence = next((item for item in group if _ld_type(item) & RESIDENCE_TYPES), None)
            if residence is None:
                continue
            found = True
            try:
                listing = self._to_listing(residence, group, base_url)
            except Exception as e:
                logger.warning(f"Error extracting listing data from JSON-LD: {e}")
                continue
            if listing is not None:
                listings.append(listing)
        return listings if found else None

    def _groups(self, soup: BeautifulSoup) -> Iterator[list[dict]]:
        for script in soup.select("script[type='application/ld+json']"):
            try:
                payload = json.loads(script.string or script.get_text() or "null")
            except ValueError as e:
                logger.debug(f"Unparseable JSON-LD block: {e}")
                continue
            if isinstance(payload, dict):
                yield [payload]
            elif isinstance(payload, list):
                if any(isinstance(item, list) for item in payload):
                    for item in payload:
                        if isinstance(item, list):
                            yield [x for x in item if isinstance(x, dict)]
                else:
                    yield [x for x in payload if isinstance(x, dict)]

    def _to_listing(self, residence: dict, group: list[dict], base_url: str) -> Optional[Listing]:
        address = residence.get("name") or ""
        addr = residence.get("address")
        if isinstance(addr, dict):
            parts = [
                addr.get("streetAddress"),
                addr.get("addressLocality"),
                " ".join(p for p in (addr.get("addressRegion"), addr.get("postalCode")) if p),
            ]
            address = ", ".join(p for p in parts if p) or address
        address = clean_text(address)
        if not address:
            return None

        offers = {}
        for item in group:
            if isinstance(item.get("offers"), dict):
                offers = item["offers"]
                break
        floor = residence.get("floorSize")
        sqft = floor.get("value") if isinstance(floor, dict) else floor
        url = residence.get("url") or ""
        image = residence.get("image")
        if isinstance(image, list):
            image = image[0] if image else None

        return Listing(
            address=address,
            url=urljoin(base_url, url) if url else "",
            price=parse_price(str(offers.get("price", ""))),
            beds=parse_decimal(str(residence.get("numberOfRooms", ""))),
            baths=parse_decimal(str(residence.get("numberOfBathroomsTotal", ""))),
            sqft=parse_int(str(sqft or "")),
            image_url=image if isinstance(image, str) else None,
        )


def _ld_type(item: dict) -> set[str]:
    value = item.get("@type")
    if isinstance(value, list):
        return {str(v) for v in value}
    return {str(value)} if value else set()


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    CssCardStrategy(HOMECARD_V3),
    CssCardStrategy(MAP_HOMECARD),
    JsonLdStrategy(),
)


def parse_search_results(
    html: str,
    base_url: str = REDFIN_BASE_URL,
    strategies: Iterable[ExtractionStrategy] = DEFAULT_STRATEGIES,
) -> list[Listing]:
    """Listings on a rendered search page, in page order. No cards means an empty list."""
    if not html:
        return []
    soup = BeautifulSoup(html, "lxml")
    for strategy in strategies:
        listings = strategy.extract(soup, base_url)
        if listings is not None:
            logger.debug(f"Search page parsed with '{strategy.name}' strategy: {len(listings)} listings")
            return listings
    return []


def count_result_cards(html: str) -> int:
    """Result cards on the page before any filtering, sponsored and unreadable ones included."""
    if not html:
        return 0
    return len(BeautifulSoup(html, "lxml").select(RESULTS_SELECTOR))
