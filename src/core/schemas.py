"""Core data models for the listings finder.

Wire-facing models serialize in camelCase (``model_dump(by_alias=True)``) and
accept either spelling on input.
"""

import re
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Category = Literal["rental", "sale"]
JobStatus = Literal["processing", "completed", "failed"]
ResultSource = Literal["cache_only", "cache_and_fresh", "similar_listings", "no_results"]
FallbackStrategy = Literal[
    "progressive_budget_increase",
    "bedroom_flexibility",
    "similar_neighborhood",
    "last_resort",
]

# Provider amenity filter names, in the order they are sent.
AMENITY_FLAGS: tuple[str, ...] = (
    "doorman",
    "elevator",
    "laundry",
    "private_outdoor_space",
    "washer_dryer",
    "dishwasher",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_area(value: str) -> str:
    """Lowercase an area name and join words with dashes ('Park Slope' -> 'park-slope')."""
    return re.sub(r"\s+", "-", value.strip().lower())


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchCriteria(WireModel):
    """One normalized search request.

    Frozen; fallback strategies derive copies via :meth:`derive`.
    """

    model_config = ConfigDict(frozen=True)

    area: str
    category: Category = "rental"
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    min_price: int | None = Field(default=None, ge=0)
    max_price: int | None = Field(default=None, ge=0)
    no_fee: bool = False
    amenities: frozenset[str] = frozenset()
    property_types: tuple[str, ...] = ()
    desired_count: int = Field(default=1, ge=1)
    threshold: int = Field(default=15, ge=1, le=100)

    @field_validator("area")
    @classmethod
    def area_not_empty(cls, v: str) -> str:
        area = normalize_area(v)
        if not area:
            msg = "area must not be empty"
            raise ValueError(msg)
        return area

    @field_validator("bedrooms")
    @classmethod
    def zero_bedrooms_is_unset(cls, v: int | None) -> int | None:
        # 0 carries no filter, same as leaving it out.
        return v or None

    @field_validator("amenities")
    @classmethod
    def amenities_known(cls, v: frozenset[str]) -> frozenset[str]:
        unknown = v - set(AMENITY_FLAGS)
        if unknown:
            msg = f"unknown amenities {sorted(unknown)}; allowed: {list(AMENITY_FLAGS)}"
            raise ValueError(msg)
        return v

    def derive(self, **overrides: object) -> "SearchCriteria":
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=overrides)


class RawListing(WireModel):
    """A listing as returned by the listings provider.

    Unknown provider fields are kept as extra attributes (market metadata).
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    listing_id: str
    address: str = ""
    price: float = 0.0
    bedrooms: float = 0
    bathrooms: float = 0
    sqft: int | None = None
    description: str = ""
    amenities: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    neighborhood: str = ""
    zipcode: str = ""
    url: str = ""
    built_in: int | None = None
    days_on_market: int = 0
    no_fee: bool = False
    doorman_building: bool = False
    elevator_building: bool = False
    pet_friendly: bool = False
    gym_available: bool = False
    property_type: str = ""
    monthly_hoa: float | None = None
    monthly_tax: float | None = None


class FallbackAnnotation(WireModel):
    """Why a listing was returned although it misses the original criteria."""

    model_config = ConfigDict(frozen=True)

    strategy: FallbackStrategy
    original_criteria: SearchCriteria
    original_budget: int | None = None
    new_budget: int | None = None
    actual_price: float | None = None
    budget_increase_percent: int | None = None
    budget_multiplier: float | None = None
    original_bedrooms: int | None = None
    original_area: str | None = None
    actual_area: str | None = None
    is_last_resort: bool = False


class ScoredListing(WireModel):
    """Wrapper that pairs a frozen RawListing with its valuation."""

    model_config = ConfigDict(frozen=True)

    listing: RawListing
    discount_percent: float = 0.0
    qualifies: bool = False
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    grade: str = "F"
    reasoning: str = ""
    analyzed: bool = True
    origin: Literal["cache", "fresh"] = "fresh"
    fallback: FallbackAnnotation | None = None

    @property
    def listing_id(self) -> str:
        return self.listing.listing_id

    @property
    def effective_price(self) -> float:
        return self.listing.price or 0.0


class FetchStats(WireModel):
    """Counters summed across provider and valuation calls."""

    provider_calls: int = 0
    listings_fetched: int = 0
    listings_analyzed: int = 0
    valuation_calls: int = 0
    valuation_tokens: int = 0
    valuation_cost_usd: float = 0.0

    def add(self, other: "FetchStats") -> "FetchStats":
        """Accumulate ``other`` into this instance and return self."""
        self.provider_calls += other.provider_calls
        self.listings_fetched += other.listings_fetched
        self.listings_analyzed += other.listings_analyzed
        self.valuation_calls += other.valuation_calls
        self.valuation_tokens += other.valuation_tokens
        self.valuation_cost_usd += other.valuation_cost_usd
        return self


class DeliveryImage(WireModel):
    model_config = ConfigDict(frozen=True)

    url: str
    caption: str
    alt_text: str
    is_primary: bool


class DeliveryListing(WireModel):
    """Chat-ready view of one final listing."""

    model_config = ConfigDict(frozen=True)

    listing_id: str
    address: str
    neighborhood: str
    borough: str
    bedrooms: float
    bathrooms: float
    sqft: int | None = None
    monthly_rent: float | None = None
    price: float | None = None
    potential_monthly_savings: int | None = None
    annual_savings: int | None = None
    potential_savings: int | None = None
    estimated_market_price: int | None = None
    discount_percent: float
    score: float
    grade: str
    listing_url: str
    is_similar_fallback: bool
    primary_image: str | None = None
    image_count: int = 0
    images: list[DeliveryImage] = Field(default_factory=list)
    dm_message: str


class Job(WireModel):
    """Mutable lifecycle record of one search job, owned by the JobEngine."""

    job_id: str
    status: JobStatus = "processing"
    progress: int = Field(default=0, ge=0, le=100)
    start_time: datetime = Field(default_factory=utcnow)
    last_update: datetime = Field(default_factory=utcnow)
    message: str = ""
    original_threshold: int
    cache_hits: int = 0
    threshold_used: int | None = None
    threshold_lowered: bool = False
    error: str | None = None

    def status_view(self) -> "JobStatusView":
        return JobStatusView(
            job_id=self.job_id,
            status=self.status,
            progress=self.progress,
            start_time=self.start_time,
            last_update=self.last_update,
            message=self.message,
            cache_hits=self.cache_hits,
            threshold_used=self.threshold_used or self.original_threshold,
            threshold_lowered=self.threshold_lowered,
            error=self.error,
        )


class JobStatusView(WireModel):
    """What polling clients see for a job."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    status: JobStatus
    progress: int
    start_time: datetime
    last_update: datetime
    message: str
    cache_hits: int
    threshold_used: int
    threshold_lowered: bool
    error: str | None


class JobSummary(WireModel):
    model_config = ConfigDict(frozen=True)

    total_found: int
    cache_hits: int
    newly_scraped: int
    threshold_used: int
    threshold_lowered: bool
    processing_time_ms: int
    fallback_used: bool = False
    fallback_message: str | None = None
    valuation_calls: int = 0
    valuation_cost_usd: float = 0.0


class JobResult(WireModel):
    """Final payload of a successful job. Written exactly once."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    type: Literal["smart_search"] = "smart_search"
    source: ResultSource
    parameters: SearchCriteria
    properties: list[ScoredListing] = Field(default_factory=list)
    instagram_ready: list[DeliveryListing] = Field(default_factory=list)
    cached: list[ScoredListing] = Field(default_factory=list)
    newly_scraped: list[ScoredListing] = Field(default_factory=list)
    used_similar_fallback: bool = False
    similar_fallback_message: str | None = None
    summary: JobSummary
    completed_at: datetime = Field(default_factory=utcnow)
