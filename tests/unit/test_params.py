"""Tests for StreetEasy endpoint and query parameter building."""

import pytest

from src.core.config import ProviderConfig
from src.core.schemas import SearchCriteria
from src.listings.streeteasy.params import build_endpoint, build_search_params, fetch_limit

CONFIG = ProviderConfig()


class TestBuildEndpoint:
    def test_rental(self) -> None:
        url = build_endpoint(SearchCriteria(area="soho"), CONFIG)
        assert url == "https://streeteasy-api.p.rapidapi.com/rentals/search"

    def test_sale(self) -> None:
        url = build_endpoint(SearchCriteria(area="soho", category="sale"), CONFIG)
        assert url.endswith("/sales/search")

    def test_trailing_slash_in_base_url(self) -> None:
        config = ProviderConfig(base_url="https://example.test/")
        assert build_endpoint(SearchCriteria(area="soho"), config) == "https://example.test/rentals/search"


class TestFetchLimit:
    @pytest.mark.parametrize(("desired", "expected"), [(1, 4), (3, 12), (5, 20), (10, 20)])
    def test_capped(self, desired: int, expected: int) -> None:
        assert fetch_limit(desired, CONFIG) == expected


class TestBuildSearchParams:
    def test_minimal(self) -> None:
        params = build_search_params(SearchCriteria(area="soho"), CONFIG)
        assert params == {"areas": "soho", "limit": 4, "offset": 0}

    def test_prices(self) -> None:
        params = build_search_params(SearchCriteria(area="soho", min_price=1000, max_price=4000), CONFIG)
        assert params["minPrice"] == 1000
        assert params["maxPrice"] == 4000

    def test_bedrooms_exact(self) -> None:
        params = build_search_params(SearchCriteria(area="soho", bedrooms=2), CONFIG)
        assert params["minBeds"] == 2
        assert params["maxBeds"] == 2

    def test_zero_bedrooms_sends_no_bed_filter(self) -> None:
        params = build_search_params(SearchCriteria(area="soho", bedrooms=0), CONFIG)
        assert "minBeds" not in params
        assert "maxBeds" not in params

    def test_bathrooms_spelling_by_category(self) -> None:
        rental = build_search_params(SearchCriteria(area="soho", bathrooms=1.5), CONFIG)
        sale = build_search_params(SearchCriteria(area="soho", category="sale", bathrooms=2), CONFIG)
        assert rental["minBath"] == "1.5"
        assert "minBaths" not in rental
        assert sale["minBaths"] == "2"

    def test_no_fee_rental_only(self) -> None:
        rental = build_search_params(SearchCriteria(area="soho", no_fee=True), CONFIG)
        sale = build_search_params(SearchCriteria(area="soho", category="sale", no_fee=True), CONFIG)
        assert rental["noFee"] == "true"
        assert "noFee" not in sale

    def test_amenities_in_fixed_order(self) -> None:
        criteria = SearchCriteria(area="soho", amenities=frozenset({"dishwasher", "doorman", "laundry"}))
        assert build_search_params(criteria, CONFIG)["amenities"] == "doorman,laundry,dishwasher"

    def test_property_types_for_sales(self) -> None:
        criteria = SearchCriteria(area="soho", category="sale", property_types=("condo", "coop"))
        assert build_search_params(criteria, CONFIG)["types"] == "condo,coop"

    def test_threshold_not_sent(self) -> None:
        params = build_search_params(SearchCriteria(area="soho", threshold=30), CONFIG)
        assert all("threshold" not in key.lower() for key in params)
