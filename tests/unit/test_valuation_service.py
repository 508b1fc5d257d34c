"""Tests for batched LLM valuation."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.core.config import ValuationConfig
from src.core.schemas import RawListing, SearchCriteria
from src.valuation.llm.base import LLMCompletion
from src.valuation.prompt import ValuationRecord
from src.valuation.service import LLMValuationService, apply_records

CRITERIA = SearchCriteria(area="soho")


def _listings(n: int) -> list[RawListing]:
    return [RawListing(listing_id=str(i), price=3000) for i in range(n)]


def _response(discounts: list[float]) -> LLMCompletion:
    records = [
        {
            "propertyIndex": i,
            "percentBelowMarket": d,
            "isUndervalued": d >= 15,
            "reasoning": f"listing {i}",
            "score": 60 + d,
            "grade": "B",
        }
        for i, d in enumerate(discounts, 1)
    ]
    return LLMCompletion(text=json.dumps(records), input_tokens=600, output_tokens=400)


def _mock_provider(*completions: LLMCompletion | Exception) -> MagicMock:
    provider = MagicMock()
    provider.complete.side_effect = list(completions)
    return provider


class TestApplyRecords:
    def test_threshold_is_inclusive(self) -> None:
        records = [
            ValuationRecord(property_index=1, percent_below_market=15),
            ValuationRecord(property_index=2, percent_below_market=14.9),
        ]
        kept = apply_records(_listings(2), records, 15)
        assert [s.listing_id for s in kept] == ["0"]

    def test_missing_record_gets_failure_default(self) -> None:
        kept = apply_records(_listings(2), [ValuationRecord(property_index=1, percent_below_market=30)], 0)
        assert len(kept) == 2
        assert kept[1].reasoning == "Analysis failed"
        assert kept[1].discount_percent == 0.0
        assert kept[1].grade == "F"

    def test_score_clamped(self) -> None:
        kept = apply_records(
            _listings(1), [ValuationRecord(property_index=1, percent_below_market=50, score=140)], 15,
        )
        assert kept[0].score == 100.0


@patch("src.valuation.service.asyncio.sleep", new_callable=AsyncMock)
class TestLLMValuationService:
    async def test_single_batch(self, mock_sleep: AsyncMock) -> None:
        provider = _mock_provider(_response([20, 5, 16]))
        service = LLMValuationService(ValuationConfig(), provider=provider)

        outcome = await service.score(_listings(3), CRITERIA, 15)

        assert [s.listing_id for s in outcome.qualifying] == ["0", "2"]
        assert outcome.calls == 1
        assert outcome.tokens == 1000
        assert outcome.cost_usd == pytest.approx(1000 / 1_000_000 * 1.25)
        mock_sleep.assert_not_awaited()

    async def test_batches_with_delay_between(self, mock_sleep: AsyncMock) -> None:
        provider = _mock_provider(_response([20, 20]), _response([20, 20]), _response([20]))
        config = ValuationConfig(batch_size=2, batch_delay_seconds=0.5)
        service = LLMValuationService(config, provider=provider)

        outcome = await service.score(_listings(5), CRITERIA, 15)

        assert provider.complete.call_count == 3
        assert outcome.calls == 3
        assert len(outcome.qualifying) == 5
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.5)

    async def test_batch_indices_are_local(self, mock_sleep: AsyncMock) -> None:
        provider = _mock_provider(_response([0, 0]), _response([30]))
        service = LLMValuationService(ValuationConfig(batch_size=2), provider=provider)

        outcome = await service.score(_listings(3), CRITERIA, 15)

        assert [s.listing_id for s in outcome.qualifying] == ["2"]

    async def test_failed_batch_yields_nothing(self, mock_sleep: AsyncMock) -> None:
        provider = _mock_provider(RuntimeError("rate limited"), _response([40]))
        service = LLMValuationService(ValuationConfig(batch_size=1), provider=provider)

        outcome = await service.score(_listings(2), CRITERIA, 15)

        assert [s.listing_id for s in outcome.qualifying] == ["1"]
        assert outcome.calls == 2
        assert outcome.tokens == 1000

    async def test_unparseable_response_yields_nothing(self, mock_sleep: AsyncMock) -> None:
        provider = _mock_provider(LLMCompletion(text="no json here"))
        service = LLMValuationService(ValuationConfig(), provider=provider)

        outcome = await service.score(_listings(1), CRITERIA, 15)

        assert outcome.qualifying == []

    async def test_bad_record_does_not_drop_batch(self, mock_sleep: AsyncMock) -> None:
        records = [
            {"propertyIndex": 1, "percentBelowMarket": 30, "score": 80, "grade": "A"},
            {"propertyIndex": 2, "score": None, "grade": None, "reasoning": None},
            {"propertyIndex": "third", "percentBelowMarket": 50},
        ]
        provider = _mock_provider(LLMCompletion(text=json.dumps(records)))
        service = LLMValuationService(ValuationConfig(), provider=provider)

        outcome = await service.score(_listings(3), CRITERIA, 15)

        assert [s.listing_id for s in outcome.qualifying] == ["0"]
        assert outcome.qualifying[0].grade == "A"

    async def test_passes_model_and_sampling_options(self, mock_sleep: AsyncMock) -> None:
        provider = _mock_provider(_response([20]))
        config = ValuationConfig(model="claude-test", max_tokens=500, temperature=0.0)
        service = LLMValuationService(config, provider=provider)

        await service.score(_listings(1), CRITERIA, 15)

        args, kwargs = provider.complete.call_args
        assert args[1] == "claude-test"
        assert kwargs == {"max_tokens": 500, "temperature": 0.0}
        assert "Listing 1:" in args[0]

    async def test_empty_input(self, mock_sleep: AsyncMock) -> None:
        provider = _mock_provider()
        outcome = await LLMValuationService(ValuationConfig(), provider=provider).score([], CRITERIA, 15)
        assert outcome.calls == 0
        provider.complete.assert_not_called()

    def test_provider_from_registry(self, mock_sleep: AsyncMock) -> None:
        service = LLMValuationService(ValuationConfig(llm_provider="ollama"))
        assert service._provider.provider_id == "ollama"
