from rentscout.utils.parsing import (
    clean_text,
    parse_abbreviated_currency,
    parse_decimal,
    parse_int,
    parse_percent,
    parse_price,
)


def test_abbreviated_currency_handles_thousands_suffix():
    assert parse_abbreviated_currency("$41K") == 41_000
    assert parse_abbreviated_currency("$41.5k") == 41_500


def test_abbreviated_currency_plain_amount():
    assert parse_abbreviated_currency("$950") == 950
    assert parse_abbreviated_currency("$1,250") == 1_250


def test_abbreviated_currency_ignores_words_after_amount():
    # "m" of "monthly" is not a millions suffix
    assert parse_abbreviated_currency("$950 monthly") == 950
    assert parse_abbreviated_currency("$1.2M") == 1_200_000


def test_abbreviated_currency_negative_and_missing():
    assert parse_abbreviated_currency("-$3.5K") == -3_500
    assert parse_abbreviated_currency("") == 0.0
    assert parse_abbreviated_currency(None, default=-1) == -1
    assert parse_abbreviated_currency("Price unavailable") == 0.0


def test_parse_price_returns_whole_dollars():
    assert parse_price("$425,000") == 425_000
    assert parse_price("$1.25M") == 1_250_000
    assert parse_price("Contact agent") == 0


def test_parse_int_and_decimal():
    assert parse_int("1,850 sq ft") == 1850
    assert parse_int("—") == 0
    assert parse_decimal("2.5 baths") == 2.5
    assert parse_decimal("—", default=0.0) == 0.0
    assert parse_percent("72%") == 72.0


def test_clean_text_collapses_whitespace():
    assert clean_text("  123   Main\n St ") == "123 Main St"
    assert clean_text(None) == ""
