import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rentscout.config import DEFAULT_MAX_HOA, DEFAULT_MAX_PRICE
from rentscout.finance import cash_flow as compute_cash_flow
from rentscout.finance import roi as compute_roi

ZIP_RE = re.compile(r"^\d{5}$")

# Analytics fields that can legitimately be below zero
_SIGNED_FIELDS = {"air_dna_noi"}


class FinancialData(BaseModel):
    """Projection read from the analytics site for one property. Missing fields are 0."""

    net_operating_income: float = 0.0
    occupancy_rate: float = 0.0
    annual_revenue: float = 0.0
    monthly_rent: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not (
            self.net_operating_income or self.occupancy_rate or self.annual_revenue or self.monthly_rent
        )


class Listing(BaseModel):
    """
    One scraped property.

    Enriched fields start out as None and are only ever filled in, never
    cleared. cash_flow and roi are derived and kept in step with their inputs.
    """

    model_config = ConfigDict(populate_by_name=True)

    address: str
    url: str = ""
    price: int = 0
    beds: float = 0
    baths: float = 0
    sqft: int = 0
    hoa: Optional[int] = None
    features: List[str] = Field(default_factory=list)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    # Enriched
    monthly_cost: Optional[float] = Field(default=None, alias="monthlyCost")
    monthly_rent: Optional[float] = Field(default=None, alias="monthlyRent")
    air_dna_noi: Optional[float] = Field(default=None, alias="airDnaNOI")
    occupancy_rate: Optional[float] = Field(default=None, alias="occupancyRate")
    annual_revenue: Optional[float] = Field(default=None, alias="annualRevenue")

    # Derived
    cash_flow: Optional[float] = Field(default=None, alias="cashFlow")
    roi: Optional[float] = None

    @field_validator("address")
    @classmethod
    def _address_required(cls, value: str) -> str:
        value = " ".join((value or "").split())
        if not value:
            raise ValueError("address must not be empty")
        return value

    @field_validator("price", "sqft", mode="before")
    @classmethod
    def _non_negative_int(cls, value):
        if value in (None, ""):
            return 0
        return max(0, int(float(value)))

    @field_validator("beds", "baths", mode="before")
    @classmethod
    def _non_negative_float(cls, value):
        if value in (None, ""):
            return 0.0
        return max(0.0, float(value))

    @model_validator(mode="after")
    def _sync_derived(self) -> "Listing":
        # Derived values supplied by a client are never trusted.
        self.recompute_metrics()
        return self

    def recompute_metrics(self) -> None:
        """Recompute cash_flow/roi from current inputs; absent unless both inputs exist."""
        if self.monthly_rent is None or self.monthly_cost is None:
            self.cash_flow = None
            self.roi = None
            return
        self.cash_flow = compute_cash_flow(self.monthly_rent, self.monthly_cost)
        self.roi = compute_roi(self.cash_flow, self.price)

    def set_monthly_cost(self, value: Optional[float]) -> bool:
        """Record a carry-cost estimate. None leaves the current value in place."""
        if value is None:
            return False
        self.monthly_cost = round(float(value), 2)
        self.recompute_metrics()
        return True

    def merge_financials(self, data: FinancialData) -> bool:
        """
        Merge an analytics fetch into this listing.

        A zero means the field was missing on the page and must not overwrite
        (or stand in for) a real value. NOI may be negative; the other
        figures are taken only when positive.
        Returns True when anything changed.
        """
        updates = {
            "monthly_rent": data.monthly_rent,
            "air_dna_noi": data.net_operating_income,
            "occupancy_rate": data.occupancy_rate,
            "annual_revenue": data.annual_revenue,
        }
        changed = False
        for field, value in updates.items():
            if not value:
                continue
            if value > 0 or field in _SIGNED_FIELDS:
                setattr(self, field, round(float(value), 2))
                changed = True
        if changed:
            self.recompute_metrics()
        return changed

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class SearchResultSet(BaseModel):
    """A completed search as stored in the result cache. Replaced, never edited."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    total_listings: int = Field(default=0, alias="totalListings")
    listings: List[Listing] = Field(default_factory=list)
    enriched: bool = False
    message: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data):
        if isinstance(data, dict) and "total_listings" not in data and "totalListings" not in data:
            data = dict(data)
            data["total_listings"] = len(data.get("listings") or [])
        return data

    @classmethod
    def from_listings(cls, source: str, listings: List[Listing], message: Optional[str] = None) -> "SearchResultSet":
        return cls(
            source=source,
            listings=[listing.model_copy(deep=True) for listing in listings],
            message=message,
        )

    def superseded_by(self, listings: List[Listing], enriched: bool = True) -> "SearchResultSet":
        """New result set for the same search carrying updated listings."""
        return SearchResultSet(
            source=self.source,
            listings=[listing.model_copy(deep=True) for listing in listings],
            enriched=enriched,
            message=self.message,
        )

    def to_api(self) -> dict:
        payload = self.model_dump(by_alias=True, mode="json")
        payload["status"] = 200
        return payload


class SearchCriteria(BaseModel):
    """Parameters of a listing search, as accepted by the HTTP and CLI layers."""

    zip_code: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    min_price: int = Field(default=0, ge=0)
    max_price: int = Field(default=DEFAULT_MAX_PRICE, ge=0)
    min_beds: int = Field(default=0, ge=0)
    max_hoa: int = Field(default=DEFAULT_MAX_HOA, ge=0)
    features: List[str] = Field(default_factory=list)

    @field_validator("zip_code", "city", "state", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("features", mode="before")
    @classmethod
    def _split_features(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(item).strip() for item in value if str(item).strip()]

    @model_validator(mode="after")
    def _location_required(self) -> "SearchCriteria":
        if self.zip_code:
            if not ZIP_RE.match(self.zip_code):
                raise ValueError(f"invalid zipcode: {self.zip_code!r}")
        elif not (self.city and self.state):
            raise ValueError("Either zipcode or city and state are required")
        return self
