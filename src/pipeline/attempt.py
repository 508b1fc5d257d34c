"""One provider fetch plus valuation at a given threshold.

This is the boundary for expected provider failures: a ProviderError
degrades the attempt to zero results and the caller moves on to its next
threshold or strategy. Anything else propagates and fails the job.
"""

import logging

from src.core.schemas import FetchStats, ScoredListing, SearchCriteria
from src.listings.base import ListingsProvider, ProviderError
from src.valuation.service import ValuationService

logger = logging.getLogger(__name__)


class AttemptResult:
    """Qualifying listings from one attempt and what it cost."""

    def __init__(self, listings: list[ScoredListing], stats: FetchStats) -> None:
        self.listings = listings
        self.stats = stats


class SearchAttempt:
    """Runs a single fetch-then-score pass."""

    def __init__(self, provider: ListingsProvider, valuation: ValuationService) -> None:
        self._provider = provider
        self._valuation = valuation

    async def run(self, criteria: SearchCriteria, threshold: int) -> AttemptResult:
        stats = FetchStats(provider_calls=1)
        try:
            raw = await self._provider.search(criteria)
        except ProviderError as e:
            logger.warning("Provider fetch failed for '%s': %s", criteria.area, e)
            return AttemptResult([], stats)

        stats.listings_fetched = len(raw)
        if not raw:
            return AttemptResult([], stats)

        outcome = await self._valuation.score(raw, criteria, threshold)
        stats.listings_analyzed = len(raw)
        stats.valuation_calls = outcome.calls
        stats.valuation_tokens = outcome.tokens
        stats.valuation_cost_usd = outcome.cost_usd
        return AttemptResult(outcome.qualifying, stats)
