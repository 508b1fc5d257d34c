"""Tests for core data models."""

import pytest
from pydantic import ValidationError

from src.core.schemas import (
    FetchStats,
    Job,
    RawListing,
    ScoredListing,
    SearchCriteria,
    normalize_area,
)


class TestNormalizeArea:
    def test_lowercases_and_dashes(self) -> None:
        assert normalize_area("Park  Slope") == "park-slope"

    def test_strips(self) -> None:
        assert normalize_area("  SoHo ") == "soho"


class TestSearchCriteria:
    def test_defaults(self) -> None:
        c = SearchCriteria(area="soho")
        assert c.category == "rental"
        assert c.threshold == 15
        assert c.desired_count == 1
        assert c.bedrooms is None
        assert c.amenities == frozenset()

    def test_area_normalized(self) -> None:
        assert SearchCriteria(area="Upper West Side").area == "upper-west-side"

    def test_blank_area_rejected(self) -> None:
        with pytest.raises(ValidationError, match="area must not be empty"):
            SearchCriteria(area="   ")

    @pytest.mark.parametrize("threshold", [0, 101])
    def test_threshold_bounds(self, threshold: int) -> None:
        with pytest.raises(ValidationError):
            SearchCriteria(area="soho", threshold=threshold)

    def test_desired_count_min(self) -> None:
        with pytest.raises(ValidationError):
            SearchCriteria(area="soho", desired_count=0)

    def test_zero_bedrooms_means_no_filter(self) -> None:
        assert SearchCriteria(area="soho", bedrooms=0).bedrooms is None
        assert SearchCriteria(area="soho", bedrooms=1).bedrooms == 1

    def test_unknown_amenity_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unknown amenities"):
            SearchCriteria(area="soho", amenities=frozenset({"pool"}))

    def test_frozen(self) -> None:
        c = SearchCriteria(area="soho")
        with pytest.raises(ValidationError):
            c.threshold = 5  # type: ignore[misc]

    def test_derive_leaves_original_untouched(self) -> None:
        c = SearchCriteria(area="soho", max_price=3000, bedrooms=2)
        d = c.derive(max_price=6000, bedrooms=None)
        assert d.max_price == 6000
        assert d.bedrooms is None
        assert c.max_price == 3000
        assert c.bedrooms == 2

    def test_accepts_camel_case(self) -> None:
        c = SearchCriteria.model_validate({"area": "soho", "maxPrice": 4000, "desiredCount": 3})
        assert c.max_price == 4000
        assert c.desired_count == 3

    def test_dumps_camel_case(self) -> None:
        data = SearchCriteria(area="soho", max_price=4000).model_dump(by_alias=True)
        assert data["maxPrice"] == 4000
        assert "max_price" not in data


class TestRawListing:
    def test_extra_fields_preserved(self) -> None:
        listing = RawListing(listing_id="1", price=2500, median_rent=3100)  # type: ignore[call-arg]
        assert listing.model_extra == {"median_rent": 3100}

    def test_defaults(self) -> None:
        listing = RawListing(listing_id="1")
        assert listing.images == []
        assert listing.no_fee is False
        assert listing.sqft is None


class TestScoredListing:
    def test_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ScoredListing(listing=RawListing(listing_id="1"), score=101)

    def test_accessors(self) -> None:
        s = ScoredListing(listing=RawListing(listing_id="abc", price=2000))
        assert s.listing_id == "abc"
        assert s.effective_price == 2000
        assert s.origin == "fresh"
        assert s.fallback is None


class TestFetchStats:
    def test_add_accumulates(self) -> None:
        total = FetchStats(provider_calls=1, valuation_cost_usd=0.5)
        total.add(FetchStats(provider_calls=2, listings_fetched=8, valuation_cost_usd=0.25))
        assert total.provider_calls == 3
        assert total.listings_fetched == 8
        assert total.valuation_cost_usd == pytest.approx(0.75)


class TestJob:
    def test_initial_state(self) -> None:
        job = Job(job_id="smart_1_abc", original_threshold=15)
        assert job.status == "processing"
        assert job.progress == 0
        assert job.error is None

    def test_status_view_falls_back_to_original_threshold(self) -> None:
        view = Job(job_id="j", original_threshold=15).status_view()
        assert view.threshold_used == 15
        assert view.threshold_lowered is False

    def test_status_view_wire_names(self) -> None:
        job = Job(job_id="j", original_threshold=15, threshold_used=10, threshold_lowered=True)
        data = job.status_view().model_dump(mode="json", by_alias=True)
        assert data["jobId"] == "j"
        assert data["thresholdUsed"] == 10
        assert data["thresholdLowered"] is True
        assert set(data) == {
            "jobId", "status", "progress", "startTime", "lastUpdate", "message",
            "cacheHits", "thresholdUsed", "thresholdLowered", "error",
        }
