"""Threshold fallback: retry the search at lower undervaluation thresholds."""

import logging

from src.core.schemas import FetchStats, ScoredListing, SearchCriteria
from src.pipeline.attempt import SearchAttempt

logger = logging.getLogger(__name__)


class ThresholdSearchResult:
    """Outcome of the threshold ladder."""

    def __init__(
        self,
        listings: list[ScoredListing],
        threshold_used: int,
        threshold_lowered: bool,
        stats: FetchStats,
    ) -> None:
        self.listings = listings
        self.threshold_used = threshold_used
        self.threshold_lowered = threshold_lowered
        self.stats = stats


def threshold_ladder(threshold: int, steps: list[int]) -> list[int]:
    """Candidate thresholds: the original, then ``threshold - step`` for each step, kept if >= 1.

    >>> threshold_ladder(15, [5, 4, 3, 2, 1])
    [15, 10, 11, 12, 13, 14]
    >>> threshold_ladder(3, [5, 4, 3, 2, 1])
    [3, 1, 2]
    """
    return [threshold] + [threshold - s for s in steps if threshold - s >= 1]


class ThresholdFallbackSearch:
    """Tries each candidate threshold in order and stops at the first non-empty result.

    Every step is a fresh provider call; the threshold only affects which
    valued listings qualify.
    """

    def __init__(self, attempt: SearchAttempt, steps: list[int]) -> None:
        self._attempt = attempt
        self._steps = steps

    async def run(self, criteria: SearchCriteria) -> ThresholdSearchResult:
        stats = FetchStats()
        for threshold in threshold_ladder(criteria.threshold, self._steps):
            logger.info("Trying threshold %d%% for '%s'", threshold, criteria.area)
            result = await self._attempt.run(criteria, threshold)
            stats.add(result.stats)
            if result.listings:
                lowered = threshold < criteria.threshold
                if lowered:
                    logger.info(
                        "Threshold lowered from %d%% to %d%% for '%s'",
                        criteria.threshold, threshold, criteria.area,
                    )
                return ThresholdSearchResult(result.listings, threshold, lowered, stats)

        logger.info("No qualifying listings at any threshold for '%s'", criteria.area)
        return ThresholdSearchResult([], criteria.threshold, False, stats)
