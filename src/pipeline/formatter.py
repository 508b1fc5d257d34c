"""Chat-ready delivery view of final listings (images, captions, DM text)."""

from src.core.schemas import Category, DeliveryImage, DeliveryListing, ScoredListing
from src.pipeline.neighborhoods import NeighborhoodTable

REASONING_CHARS = 150


def format_for_delivery(
    listings: list[ScoredListing],
    category: Category,
    neighborhoods: NeighborhoodTable,
) -> list[DeliveryListing]:
    return [format_listing(s, category, neighborhoods) for s in listings]


def format_listing(
    scored: ScoredListing,
    category: Category,
    neighborhoods: NeighborhoodTable,
) -> DeliveryListing:
    listing = scored.listing
    price = listing.price or 0.0
    discount = scored.discount_percent or 0.0

    money: dict[str, float | int | None]
    if category == "rental":
        money = {
            "monthly_rent": price,
            "potential_monthly_savings": round(price * discount / 100),
            "annual_savings": round(price * discount * 12 / 100),
        }
    else:
        market = round(price / (1 - discount / 100)) if discount < 100 else round(price)
        money = {
            "price": price,
            "potential_savings": round(price * discount / 100),
            "estimated_market_price": market,
        }

    images = [
        DeliveryImage(
            url=url,
            caption=_caption(scored, category, i),
            alt_text=f"{listing.address} - Photo {i + 1}",
            is_primary=i == 0,
        )
        for i, url in enumerate(listing.images)
    ]

    return DeliveryListing(
        listing_id=listing.listing_id,
        address=listing.address,
        neighborhood=listing.neighborhood,
        borough=neighborhoods.borough_of(listing.neighborhood),
        bedrooms=listing.bedrooms,
        bathrooms=listing.bathrooms,
        sqft=listing.sqft,
        discount_percent=discount,
        score=scored.score,
        grade=scored.grade,
        listing_url=listing.url,
        is_similar_fallback=scored.fallback is not None,
        primary_image=images[0].url if images else None,
        image_count=len(images),
        images=images,
        dm_message=build_dm_message(scored, category, neighborhoods),
        **money,
    )


def build_dm_message(
    scored: ScoredListing,
    category: Category,
    neighborhoods: NeighborhoodTable,
) -> str:
    """Plain-text direct message describing one listing."""
    listing = scored.listing
    is_fallback = scored.fallback is not None
    rental = category == "rental"
    price = listing.price or 0.0
    savings = round(price * (scored.discount_percent or 0.0) / 100)

    lines = ["*ALTERNATIVE FOUND*" if is_fallback else "*UNDERVALUED PROPERTY ALERT*", ""]
    lines.append(f"**{listing.address or 'Address on request'}**")
    lines.append(f"{listing.neighborhood}, {neighborhoods.borough_of(listing.neighborhood)}")
    lines.append("")
    lines.append(f"**{_price_text(price, rental)}**")
    if is_fallback:
        lines.append("Cheapest available option")
    else:
        lines.append(f"{_pct(scored.discount_percent)}% below market")
        lines.append(f"Save ${savings:,} {'per month' if rental else 'total'}")
    lines.append("")

    layout = f"{_num(listing.bedrooms)}BR/{_num(listing.bathrooms)}BA"
    if listing.sqft:
        layout += f" | {listing.sqft} sqft"
    lines.append(layout)
    lines.append(f"Score: {_pct(scored.score)}/100 ({scored.grade})")

    highlights = [
        label for label, present in (
            ("No Fee", listing.no_fee),
            ("Doorman", listing.doorman_building),
            ("Elevator", listing.elevator_building),
            ("Pet Friendly", listing.pet_friendly),
            ("Gym", listing.gym_available),
        ) if present
    ]
    if highlights:
        lines.append(" • ".join(highlights))
    lines.append("")

    lines.append("*AI Analysis:*")
    lines.append(f'"{scored.reasoning[:REASONING_CHARS]}..."')
    lines.append("")
    lines.append(f"[View Full Listing]({listing.url})")
    return "\n".join(lines)


def _caption(scored: ScoredListing, category: Category, index: int) -> str:
    listing = scored.listing
    if index > 0:
        return f"{listing.address} - Photo {index + 1}"
    return (
        f"{_num(listing.bedrooms)}BR/{_num(listing.bathrooms)}BA in {listing.neighborhood}\n"
        f"{_price_text(listing.price or 0.0, category == 'rental')} "
        f"({_pct(scored.discount_percent)}% below market)\n"
        f"{listing.address}"
    )


def _price_text(price: float, rental: bool) -> str:
    text = f"${price:,.0f}"
    return f"{text}/month" if rental else text


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _pct(value: float) -> str:
    return _num(round(value, 1))
