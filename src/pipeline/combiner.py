"""Merge cached and fresh listings into the final ranked list."""

import logging

from src.core.schemas import ScoredListing

logger = logging.getLogger(__name__)


def combine_results(
    cache_results: list[ScoredListing],
    fresh_results: list[ScoredListing],
    desired_count: int,
) -> list[ScoredListing]:
    """Cache first, then unseen fresh listings; rank by discount and truncate.

    Every entry is tagged with where it came from. Deduplication is by
    listing id and cache entries always win. The sort is stable, so equal discounts keep their original order (cache before fresh).
    """
    combined = [s.model_copy(update={"origin": "cache"}) for s in cache_results]
    seen = {s.listing_id for s in cache_results}
    duplicates = 0
    for s in fresh_results:
        if s.listing_id in seen:
            duplicates += 1
            continue
        seen.add(s.listing_id)
        combined.append(s.model_copy(update={"origin": "fresh"}))

    if duplicates:
        logger.debug("combine_results: dropped %d fresh duplicates", duplicates)

    ranked = sorted(combined, key=lambda s: s.discount_percent or 0.0, reverse=True)
    return ranked[:desired_count]
