"""Progressive relaxation fallback for searches that found nothing.

Strategy order (first non-empty result wins):
  1. progressive_budget_increase: raise max price through a multiplier ladder
  2. bedroom_flexibility: drop the bedroom filter, double the budget
  3. similar_neighborhood: same search in hand-curated nearby areas
  4. last_resort: cheapest listing in a few affordable areas

Every step is a single fetch-and-score pass at the relaxed threshold, and
results are the cheapest listings found rather than the most undervalued.
"""

import logging
import math

from src.core.config import SearchTuning
from src.core.schemas import (
    FallbackAnnotation,
    FallbackStrategy,
    FetchStats,
    ScoredListing,
    SearchCriteria,
)
from src.pipeline.attempt import SearchAttempt
from src.pipeline.neighborhoods import NeighborhoodTable

logger = logging.getLogger(__name__)


class RelaxationResult:
    """Outcome of the relaxation strategies."""

    def __init__(
        self,
        listings: list[ScoredListing],
        fallback_message: str | None,
        strategy_used: FallbackStrategy | None,
        stats: FetchStats,
    ) -> None:
        self.listings = listings
        self.fallback_message = fallback_message
        self.strategy_used = strategy_used
        self.stats = stats


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def cheapest(listings: list[ScoredListing], count: int) -> list[ScoredListing]:
    """The ``count`` lowest-priced listings; equal prices keep their order."""
    return sorted(listings, key=lambda s: s.effective_price)[:count]


def annotate(listings: list[ScoredListing], annotation: FallbackAnnotation) -> list[ScoredListing]:
    return [s.model_copy(update={"fallback": annotation}) for s in listings]


class RelaxationFallbackSearch:
    """Runs the relaxation strategies in fixed priority order."""

    def __init__(
        self,
        attempt: SearchAttempt,
        tuning: SearchTuning,
        neighborhoods: NeighborhoodTable,
    ) -> None:
        self._attempt = attempt
        self._tuning = tuning
        self._neighborhoods = neighborhoods

    async def run(self, criteria: SearchCriteria) -> RelaxationResult:
        stats = FetchStats()
        strategies = (
            self._budget_expansion,
            self._bedroom_relaxation,
            self._neighborhood_substitution,
            self._last_resort,
        )
        for strategy in strategies:
            result = await strategy(criteria, stats)
            if result is not None:
                logger.info(
                    "Relaxation '%s' found %d listings for '%s'",
                    result.strategy_used, len(result.listings), criteria.area,
                )
                return result

        logger.info("No relaxation strategy found listings for '%s'", criteria.area)
        return RelaxationResult([], None, None, stats)

    async def _try(
        self, criteria: SearchCriteria, stats: FetchStats,
    ) -> list[ScoredListing]:
        result = await self._attempt.run(criteria, self._tuning.relaxed_threshold)
        stats.add(result.stats)
        return result.listings

    def _relaxed(self, criteria: SearchCriteria, **overrides: object) -> SearchCriteria:
        return criteria.derive(threshold=self._tuning.relaxed_threshold, **overrides)

    async def _budget_expansion(
        self, original: SearchCriteria, stats: FetchStats,
    ) -> RelaxationResult | None:
        if original.max_price is None:
            return None

        for multiplier in self._tuning.budget_multipliers:
            new_budget = round_half_up(original.max_price * multiplier)
            logger.info("Budget expansion x%s: max price %d -> %d", multiplier, original.max_price, new_budget)
            found = await self._try(
                self._relaxed(original, max_price=new_budget, min_price=None), stats,
            )
            if not found:
                continue

            take = cheapest(found, original.desired_count)
            listings = [
                s.model_copy(update={"fallback": FallbackAnnotation(
                    strategy="progressive_budget_increase",
                    original_criteria=original,
                    original_budget=original.max_price,
                    new_budget=new_budget,
                    actual_price=s.effective_price,
                    budget_increase_percent=round_half_up((multiplier - 1) * 100),
                    budget_multiplier=multiplier,
                )})
                for s in take
            ]
            message = (
                f"There were no matches in {original.area} under ${original.max_price:,}, "
                "but here's the cheapest we found there:"
            )
            return RelaxationResult(listings, message, "progressive_budget_increase", stats)
        return None

    async def _bedroom_relaxation(
        self, original: SearchCriteria, stats: FetchStats,
    ) -> RelaxationResult | None:
        if original.bedrooms is None:
            return None

        max_price = original.max_price * 2 if original.max_price is not None else None
        logger.info("Bedroom relaxation: dropping %d-bedroom filter", original.bedrooms)
        found = await self._try(
            self._relaxed(original, bedrooms=None, max_price=max_price), stats,
        )
        if not found:
            return None

        listings = annotate(cheapest(found, original.desired_count), FallbackAnnotation(
            strategy="bedroom_flexibility",
            original_criteria=original,
            original_bedrooms=original.bedrooms,
        ))
        message = (
            f"There were no {original.bedrooms}-bedroom listings in {original.area}, "
            "but here's the cheapest we found there:"
        )
        return RelaxationResult(listings, message, "bedroom_flexibility", stats)

    async def _neighborhood_substitution(
        self, original: SearchCriteria, stats: FetchStats,
    ) -> RelaxationResult | None:
        multipliers = self._tuning.neighborhood_multipliers if original.max_price is not None else [1.0]

        for area in self._neighborhoods.similar_to(original.area):
            for multiplier in multipliers:
                max_price = (
                    round_half_up(original.max_price * multiplier)
                    if original.max_price is not None else None
                )
                logger.info("Neighborhood substitution: %s -> %s (x%s)", original.area, area, multiplier)
                found = await self._try(
                    self._relaxed(original, area=area, max_price=max_price), stats,
                )
                if not found:
                    continue

                listings = annotate(cheapest(found, original.desired_count), FallbackAnnotation(
                    strategy="similar_neighborhood",
                    original_criteria=original,
                    original_area=original.area,
                    actual_area=area,
                    budget_multiplier=multiplier,
                ))
                message = (
                    f"There were no matches in {original.area}, "
                    f"but here's the cheapest we found in nearby {area}:"
                )
                return RelaxationResult(listings, message, "similar_neighborhood", stats)
        return None

    async def _last_resort(
        self, original: SearchCriteria, stats: FetchStats,
    ) -> RelaxationResult | None:
        for area in self._neighborhoods.last_resort:
            logger.info("Last resort: cheapest listing in %s", area)
            found = await self._try(
                self._relaxed(original, area=area, bedrooms=None, max_price=None, min_price=None),
                stats,
            )
            if not found:
                continue

            # Only the single cheapest listing, whatever the desired count.
            listings = annotate(cheapest(found, 1), FallbackAnnotation(
                strategy="last_resort",
                original_criteria=original,
                original_area=original.area,
                actual_area=area,
                is_last_resort=True,
            ))
            message = (
                f"We couldn't find what you were looking for in {original.area}, "
                f"but here's the cheapest in {self._neighborhoods.last_resort_region}:"
            )
            return RelaxationResult(listings, message, "last_resort", stats)
        return None
