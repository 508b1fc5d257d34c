"""StreetEasy payload decoder: converts response bodies into RawListing objects.

Design rules:
  - The body shape is decoded explicitly: bare array, then ``results``, then
    ``listings``. Anything else is an error, never a silent empty list.
  - Every optional field lookup goes through a fallback tuple of keys.
  - Missing optional fields get defaults; non-object or invalid records are skipped.
"""

import logging
import uuid
from typing import Any

from pydantic import ValidationError

from src.core.schemas import RawListing
from src.listings.base import ListingsDecodeError

logger = logging.getLogger(__name__)

MAX_IMAGES = 10

# Keys tried in order for each normalized field.
ID_KEYS = ("id", "listing_id")
ZIP_KEYS = ("zipcode", "zip_code")
URL_KEYS = ("url", "listing_url")
BUILT_KEYS = ("built_in", "year_built")
NO_FEE_KEYS = ("no_fee", "noFee")
IMAGE_KEYS = ("images", "photos")

_CDN_HOST = "streeteasy.com"
_CDN_UPGRADES = (("/small/", "/large/"), ("/medium/", "/large/"), ("_sm.", "_lg."), ("_md.", "_lg."))

# Fields handled explicitly; everything else is carried as market metadata.
_CONSUMED = {
    *ID_KEYS, *ZIP_KEYS, *URL_KEYS, *BUILT_KEYS, *NO_FEE_KEYS, *IMAGE_KEYS,
    "media", "listingPhotos",
}


def decode_payload(payload: Any) -> list[dict[str, Any]]:
    """Extract the listing array from a decoded JSON body.

    Raises ListingsDecodeError if the body matches no known shape.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("results", "listings"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
        keys = sorted(payload)
        msg = f"Unrecognized listings payload: object with keys {keys}"
        raise ListingsDecodeError(msg)
    msg = f"Unrecognized listings payload of type {type(payload).__name__}"
    raise ListingsDecodeError(msg)


def parse_listings(records: list[Any]) -> list[RawListing]:
    """Parse every record, skipping entries that are not objects or fail validation."""
    results: list[RawListing] = []
    for record in records:
        if not isinstance(record, dict):
            logger.debug("Skipping non-object listing record: %r", record)
            continue
        try:
            results.append(parse_listing(record))
        except ValidationError:
            logger.warning("Skipping malformed listing %r", _first(record, ID_KEYS), exc_info=True)
    return results


def parse_listing(record: dict[str, Any]) -> RawListing:
    """Normalize one provider record into a RawListing."""
    listing_id = _first(record, ID_KEYS)
    if listing_id in (None, ""):
        listing_id = f"generated_{uuid.uuid4().hex[:12]}"
        logger.debug("Listing without id at '%s', assigned %s", record.get("address"), listing_id)

    extra = {k: v for k, v in record.items() if k not in _CONSUMED}
    extra.update(
        listing_id=str(listing_id),
        zipcode=str(_first(record, ZIP_KEYS) or ""),
        url=str(_first(record, URL_KEYS) or ""),
        built_in=_first(record, BUILT_KEYS),
        no_fee=bool(_first(record, NO_FEE_KEYS) or False),
        images=extract_images(record),
    )
    for key, default in (
        ("address", ""), ("description", ""), ("neighborhood", ""),
        ("price", 0.0), ("bedrooms", 0), ("bathrooms", 0), ("days_on_market", 0),
    ):
        if extra.get(key) is None:
            extra[key] = default
    if not isinstance(extra.get("amenities"), list):
        extra["amenities"] = []
    return RawListing.model_validate(extra)


def extract_images(record: dict[str, Any]) -> list[str]:
    """Collect up to MAX_IMAGES image URLs from the known image fields."""
    raw: Any = []
    for key in IMAGE_KEYS:
        if isinstance(record.get(key), list):
            raw = record[key]
            break
    else:
        media = record.get("media")
        if isinstance(media, dict) and media.get("images"):
            raw = media["images"]
        elif record.get("listingPhotos"):
            raw = record["listingPhotos"]

    if not isinstance(raw, list):
        return []

    urls: list[str] = []
    for item in raw:
        url = item if isinstance(item, str) else (item.get("url") if isinstance(item, dict) else None)
        optimized = optimize_image_url(url) if url else None
        if optimized:
            urls.append(optimized)
        if len(urls) == MAX_IMAGES:
            break
    return urls


def optimize_image_url(url: str) -> str:
    """Prefer the large CDN rendition and https."""
    if _CDN_HOST in url:
        for small, large in _CDN_UPGRADES:
            url = url.replace(small, large)
        return url
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


def _first(record: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None
