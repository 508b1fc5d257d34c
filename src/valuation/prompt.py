"""Valuation prompt assembly and response parsing."""

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from src.core.schemas import RawListing, SearchCriteria

logger = logging.getLogger(__name__)

DESCRIPTION_CHARS = 300

_NULL_DEFAULTS: dict[str, Any] = {
    "percent_below_market": 0.0,
    "is_undervalued": False,
    "reasoning": "",
    "score": 0.0,
    "grade": "F",
}


class ValuationRecord(BaseModel):
    """One per-listing verdict returned by the valuation model."""

    model_config = ConfigDict(populate_by_name=True)

    property_index: int = Field(alias="propertyIndex")
    percent_below_market: float = Field(default=0.0, alias="percentBelowMarket")
    is_undervalued: bool = Field(default=False, alias="isUndervalued")
    reasoning: str = ""
    score: float = 0.0
    grade: str = "F"

    @field_validator(*_NULL_DEFAULTS, mode="before")
    @classmethod
    def null_to_default(cls, v: Any, info: ValidationInfo) -> Any:
        return _NULL_DEFAULTS[info.field_name] if v is None else v


def build_valuation_prompt(
    listings: list[RawListing],
    criteria: SearchCriteria,
    threshold: int,
) -> str:
    """Assemble the user prompt for one batch. Listings are numbered from 1."""
    price_label = "Monthly Rent" if criteria.category == "rental" else "Sale Price"
    blocks = [_listing_block(i, listing, price_label) for i, listing in enumerate(listings, 1)]

    return (
        f"Analyze these {len(listings)} {criteria.category} listings in "
        f"{criteria.area} for undervaluation.\n\n"
        "LISTINGS\n"
        + "\n".join(blocks)
        + "\n\nREQUIREMENTS\n"
        f"- Compare each listing against typical {criteria.area} market rates\n"
        "- Consider location, amenities, condition, and comparable listings\n"
        f"- Only mark a listing as undervalued if it is {threshold}% or more below market\n"
        "- Give a score (0-100) and a letter grade (A+ to F)\n"
        "- Return one entry per listing, using its listing number as propertyIndex\n\n"
        'Return ONLY a JSON array like: [{"propertyIndex": 1, "percentBelowMarket": 20, '
        '"isUndervalued": true, "reasoning": "...", "score": 85, "grade": "A-"}]'
    )


def _listing_block(index: int, listing: RawListing, price_label: str) -> str:
    price = f"${listing.price:,.0f}" if listing.price else "Not listed"
    description = listing.description[:DESCRIPTION_CHARS] if listing.description else "None"
    amenities = ", ".join(listing.amenities) if listing.amenities else "None listed"
    return (
        f"\nListing {index}:\n"
        f"- Address: {listing.address or 'Not listed'}\n"
        f"- {price_label}: {price}\n"
        f"- Layout: {_num(listing.bedrooms)}BR/{_num(listing.bathrooms)}BA\n"
        f"- Square Feet: {listing.sqft or 'Not listed'}\n"
        f"- Description: {description}\n"
        f"- Amenities: {amenities}\n"
        f"- Building Year: {listing.built_in or 'Unknown'}\n"
        f"- Days on Market: {listing.days_on_market or 'Unknown'}"
    )


def _num(value: float) -> str:
    if not value:
        return "N/A"
    return str(int(value)) if float(value).is_integer() else str(value)


def parse_valuation_response(raw_text: str) -> list[ValuationRecord]:
    """Parse the model's JSON array into records.

    Handles markdown-wrapped JSON. Raises ValueError on a malformed response;
    individual invalid records are skipped, leaving their listing unscored.
    """
    cleaned = re.sub(r"^```(?:json)?\s*\n?", "", raw_text.strip())
    cleaned = re.sub(r"\n?```\s*$", "", cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse valuation response as JSON: {e}"
        raise ValueError(msg) from e

    if not isinstance(data, list):
        msg = f"Valuation response must be a JSON array, got {type(data).__name__}"
        raise ValueError(msg)

    records: list[ValuationRecord] = []
    for item in data:
        try:
            records.append(ValuationRecord.model_validate(item))
        except ValidationError as e:
            logger.debug("Skipping invalid valuation record %r: %s", item, e)
    return records
