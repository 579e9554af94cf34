"""Lenient number parsing for scraped text. Unparseable input yields the default."""

import re

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_MONEY_RE = re.compile(r"(-)?\s*\$?\s*(\d[\d,]*(?:\.\d+)?|\.\d+)(?:\s*([KkMmBb])(?![A-Za-z]))?")
_MULTIPLIERS = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}


def clean_text(text: str | None) -> str:
    """Collapse whitespace; None becomes an empty string."""
    return " ".join((text or "").split())


def parse_int(text: str | None, default: int = 0) -> int:
    """Keep digits only ("1,850 sq ft" -> 1850)."""
    digits = re.sub(r"[^0-9]", "", text or "")
    return int(digits) if digits else default


def parse_decimal(text: str | None, default: float = 0.0) -> float:
    """First decimal number in the text ("2.5 baths" -> 2.5, "—" -> default)."""
    match = _NUMBER_RE.search((text or "").replace(",", ""))
    return float(match.group()) if match else default


def parse_abbreviated_currency(text: str | None, default: float = 0.0) -> float:
    """
    Currency with an optional magnitude suffix.

    "$41K" -> 41000, "$950" -> 950, "$1.2M" -> 1200000, "-$3.5K" -> -3500.
    """
    match = _MONEY_RE.search(text or "")
    if not match:
        return default
    sign, number, suffix = match.groups()
    value = float(number.replace(",", ""))
    if suffix:
        value *= _MULTIPLIERS[suffix.lower()]
    return -value if sign else value


def parse_price(text: str | None, default: int = 0) -> int:
    """List price as an integer dollar amount."""
    return int(round(parse_abbreviated_currency(text, default=default)))


def parse_percent(text: str | None, default: float = 0.0) -> float:
    """Percentage-like value ("72%" -> 72.0)."""
    return parse_decimal(text, default=default)
