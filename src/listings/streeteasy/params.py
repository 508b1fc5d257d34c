"""StreetEasy search request builder.

Pure functions, no network access.
"""

from src.core.config import ProviderConfig
from src.core.schemas import AMENITY_FLAGS, SearchCriteria

ENDPOINTS: dict[str, str] = {
    "rental": "/rentals/search",
    "sale": "/sales/search",
}


def build_endpoint(criteria: SearchCriteria, config: ProviderConfig) -> str:
    """Return the absolute search URL for the criteria's listing category."""
    return f"{config.base_url.rstrip('/')}{ENDPOINTS[criteria.category]}"


def fetch_limit(desired_count: int, config: ProviderConfig) -> int:
    """Listings requested per call: a few candidates per wanted result, capped."""
    return min(config.max_limit, desired_count * config.limit_per_result)


def build_search_params(criteria: SearchCriteria, config: ProviderConfig) -> dict[str, str | int]:
    """Translate criteria into provider query parameters.

    Only threshold-independent filters are sent; the undervaluation threshold
    is applied after valuation.
    """
    params: dict[str, str | int] = {
        "areas": criteria.area,
        "limit": fetch_limit(criteria.desired_count, config),
        "offset": 0,
    }

    if criteria.min_price is not None:
        params["minPrice"] = criteria.min_price
    if criteria.max_price is not None:
        params["maxPrice"] = criteria.max_price

    if criteria.bedrooms is not None:
        params["minBeds"] = criteria.bedrooms
        params["maxBeds"] = criteria.bedrooms

    if criteria.bathrooms is not None:
        # Rentals and sales spell this parameter differently.
        key = "minBath" if criteria.category == "rental" else "minBaths"
        params[key] = _format_number(criteria.bathrooms)

    if criteria.no_fee and criteria.category == "rental":
        params["noFee"] = "true"

    amenities = [a for a in AMENITY_FLAGS if a in criteria.amenities]
    if amenities:
        params["amenities"] = ",".join(amenities)

    if criteria.category == "sale" and criteria.property_types:
        params["types"] = ",".join(criteria.property_types)

    return params


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
