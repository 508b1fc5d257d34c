"""AI valuation: batch-scores listings for undervaluation against a threshold."""

import asyncio
import logging
from abc import ABC, abstractmethod

from src.core.config import ValuationConfig
from src.core.schemas import RawListing, ScoredListing, SearchCriteria
from src.valuation.llm import get_provider
from src.valuation.llm.base import LLMProvider
from src.valuation.prompt import ValuationRecord, build_valuation_prompt, parse_valuation_response

logger = logging.getLogger(__name__)

_MISSING_RECORD = ValuationRecord(
    property_index=0,
    percent_below_market=0.0,
    is_undervalued=False,
    reasoning="Analysis failed",
    score=0.0,
    grade="F",
)


class ValuationOutcome:
    """Qualifying listings plus the cost of producing them."""

    def __init__(
        self,
        qualifying: list[ScoredListing] | None = None,
        calls: int = 0,
        tokens: int = 0,
        cost_usd: float = 0.0,
    ) -> None:
        self.qualifying = qualifying or []
        self.calls = calls
        self.tokens = tokens
        self.cost_usd = cost_usd


class ValuationService(ABC):
    """Scores listings and keeps those at or above the threshold."""

    @abstractmethod
    async def score(
        self,
        listings: list[RawListing],
        criteria: SearchCriteria,
        threshold: int,
    ) -> ValuationOutcome:
        """Return the listings whose discount percent is >= threshold."""


class LLMValuationService(ValuationService):
    """Valuation backed by an LLM provider.

    Listings are sent in fixed-size batches, one round trip each, with a fixed
    pause between consecutive batches to throttle the outbound call rate.
    """

    def __init__(self, config: ValuationConfig, provider: LLMProvider | None = None) -> None:
        self._config = config
        self._provider = provider or get_provider(config.llm_provider)

    async def score(
        self,
        listings: list[RawListing],
        criteria: SearchCriteria,
        threshold: int,
    ) -> ValuationOutcome:
        outcome = ValuationOutcome()
        size = self._config.batch_size

        for start in range(0, len(listings), size):
            batch = listings[start:start + size]
            qualifying, tokens = await self._score_batch(batch, criteria, threshold)
            outcome.qualifying.extend(qualifying)
            outcome.calls += 1
            outcome.tokens += tokens
            outcome.cost_usd += tokens / 1_000_000 * self._config.cost_per_million_tokens

            if start + size < len(listings):
                await asyncio.sleep(self._config.batch_delay_seconds)

        logger.info(
            "Valuation: %d/%d listings qualify at %d%% (%d calls, $%.4f)",
            len(outcome.qualifying), len(listings), threshold, outcome.calls, outcome.cost_usd,
        )
        return outcome

    async def _score_batch(
        self,
        batch: list[RawListing],
        criteria: SearchCriteria,
        threshold: int,
    ) -> tuple[list[ScoredListing], int]:
        """Score one batch. On any provider or parse error, logs and qualifies nothing."""
        prompt = build_valuation_prompt(batch, criteria, threshold)
        try:
            # SDK clients are blocking; keep the event loop free for other jobs.
            completion = await asyncio.to_thread(
                self._provider.complete,
                prompt,
                self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
            )
            records = parse_valuation_response(completion.text)
        except Exception:
            logger.warning(
                "Valuation batch of %d listings failed, treating as no matches",
                len(batch),
                exc_info=True,
            )
            return [], 0

        return apply_records(batch, records, threshold), completion.total_tokens


def apply_records(
    batch: list[RawListing],
    records: list[ValuationRecord],
    threshold: int,
) -> list[ScoredListing]:
    """Match records to listings by 1-based index and keep those meeting the threshold."""
    by_index = {r.property_index: r for r in records}
    scored: list[ScoredListing] = []
    for i, listing in enumerate(batch, 1):
        record = by_index.get(i, _MISSING_RECORD)
        scored.append(ScoredListing(
            listing=listing,
            discount_percent=record.percent_below_market,
            qualifies=record.is_undervalued,
            score=max(0.0, min(100.0, record.score)),
            grade=record.grade or "F",
            reasoning=record.reasoning,
            analyzed=True,
        ))
    return [s for s in scored if s.discount_percent >= threshold]
