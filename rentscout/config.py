"""
RentScout configuration.

Module-level defaults, overridable through environment variables (a local
``.env`` file is loaded on import). Services receive a frozen ``Settings``
snapshot built by ``load_settings()`` rather than reading the environment
themselves.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOG_DIR = PROJECT_ROOT / "logs"
SCREENSHOT_DIR = LOG_DIR / "screenshots"

# Listing site
REDFIN_BASE_URL = "https://www.redfin.com"

# Analytics site
AIRDNA_LOGIN_URL = (
    "https://auth.airdna.co/oauth2/authorize?tenantId=1fb206a8-177b-4684-af1f-8fff7cc153a0"
    "&client_id=5f040464-0aef-48a1-a1d1-daa9fbf81415&redirect_uri=https%3A%2F%2Fapp.airdna.co"
    "&response_type=code&scope=profile%20openid"
    "&state=%7B%22path%22%3A%22%2Fdata%22%2C%22search%22%3A%22%22%7D"
)
AIRDNA_RENTALIZER_URL = "https://app.airdna.co/data/rentalizer"

# Browser
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)

# Search URL filter defaults (a filter at its default is left off the URL)
DEFAULT_MAX_PRICE = 10_000_000
DEFAULT_MAX_HOA = 10_000


def _env_true(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    # Credentials
    airdna_email: str = ""
    airdna_password: str = ""

    # Browser
    headless: bool = True
    nav_timeout_ms: int = 60_000
    selector_timeout_ms: int = 15_000
    typing_delay_ms: int = 50

    # Retry / backoff
    nav_max_attempts: int = 3
    nav_jitter_min_s: float = 1.0
    nav_jitter_max_s: float = 3.0

    # Enrichment
    listing_timeout_s: float = 30.0
    cost_timeout_s: float = 5.0
    enrichment_max_listings: int = 20

    # Cache
    cache_ttl_seconds: int = 3600

    # Carry-cost assumptions
    down_payment_pct: float = 20.0
    interest_rate_pct: float = 7.0
    loan_years: int = 30
    property_tax_rate: float = 0.011
    insurance_rate: float = 0.004

    # City -> zipcode resolver
    zipcode_llm_url: str = "http://localhost:1234/v1/chat/completions"
    zipcode_llm_model: str = "llama-3.1-8b-instruct"
    zipcode_llm_api_key: str = ""

    @property
    def has_airdna_credentials(self) -> bool:
        return bool(self.airdna_email and self.airdna_password)


def load_settings() -> Settings:
    """Build a Settings snapshot from the environment."""
    return Settings(
        airdna_email=os.getenv("AIRDNA_EMAIL", ""),
        airdna_password=os.getenv("AIRDNA_PASSWORD", ""),
        headless=_env_true(os.getenv("HEADLESS"), default=True),
        nav_timeout_ms=_env_int("NAV_TIMEOUT_MS", 60_000),
        selector_timeout_ms=_env_int("SELECTOR_TIMEOUT_MS", 15_000),
        typing_delay_ms=_env_int("TYPING_DELAY_MS", 50),
        nav_max_attempts=_env_int("NAV_MAX_ATTEMPTS", 3),
        nav_jitter_min_s=_env_float("NAV_JITTER_MIN_S", 1.0),
        nav_jitter_max_s=_env_float("NAV_JITTER_MAX_S", 3.0),
        listing_timeout_s=_env_float("LISTING_TIMEOUT_S", 30.0),
        cost_timeout_s=_env_float("COST_TIMEOUT_S", 5.0),
        enrichment_max_listings=_env_int("ENRICHMENT_MAX_LISTINGS", 20),
        cache_ttl_seconds=_env_int("CACHE_TTL_SECONDS", 3600),
        down_payment_pct=_env_float("DOWN_PAYMENT_PCT", 20.0),
        interest_rate_pct=_env_float("INTEREST_RATE_PCT", 7.0),
        loan_years=_env_int("LOAN_YEARS", 30),
        property_tax_rate=_env_float("PROPERTY_TAX_RATE", 0.011),
        insurance_rate=_env_float("INSURANCE_RATE", 0.004),
        zipcode_llm_url=os.getenv("ZIPCODE_LLM_URL", "http://localhost:1234/v1/chat/completions"),
        zipcode_llm_model=os.getenv("ZIPCODE_LLM_MODEL", "llama-3.1-8b-instruct"),
        zipcode_llm_api_key=os.getenv("ZIPCODE_LLM_API_KEY", ""),
    )
