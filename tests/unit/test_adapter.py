"""Tests for the StreetEasy provider over a mocked HTTP transport."""

import httpx
import pytest

from src.core.config import ProviderConfig
from src.core.schemas import SearchCriteria
from src.listings.base import ListingsDecodeError, ProviderHTTPError, ProviderTimeoutError
from src.listings.streeteasy.adapter import StreetEasyProvider


def _provider(handler) -> StreetEasyProvider:  # type: ignore[no-untyped-def]
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StreetEasyProvider(ProviderConfig(), api_key="test-key", client=client)


class TestStreetEasyProvider:
    async def test_success_sends_headers_and_params(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"results": [{"id": "1", "price": 2500}, {"id": "2"}]})

        provider = _provider(handler)
        listings = await provider.search(SearchCriteria(area="bushwick", max_price=3000))

        assert [item.listing_id for item in listings] == ["1", "2"]
        request = seen[0]
        assert request.url.path == "/rentals/search"
        assert request.url.params["areas"] == "bushwick"
        assert request.url.params["maxPrice"] == "3000"
        assert request.headers["X-RapidAPI-Key"] == "test-key"
        assert request.headers["X-RapidAPI-Host"] == "streeteasy-api.p.rapidapi.com"

    async def test_bare_array_body(self) -> None:
        provider = _provider(lambda _request: httpx.Response(200, json=[{"id": "9"}]))
        listings = await provider.search(SearchCriteria(area="soho"))
        assert listings[0].listing_id == "9"

    async def test_http_error_status(self) -> None:
        provider = _provider(lambda _request: httpx.Response(429, json={"message": "slow down"}))
        with pytest.raises(ProviderHTTPError) as exc_info:
            await provider.search(SearchCriteria(area="soho"))
        assert exc_info.value.status_code == 429

    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ProviderTimeoutError, match="timed out"):
            await _provider(handler).search(SearchCriteria(area="soho"))

    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderHTTPError, match="request failed"):
            await _provider(handler).search(SearchCriteria(area="soho"))

    async def test_non_json_body(self) -> None:
        provider = _provider(lambda _request: httpx.Response(200, text="<html>"))
        with pytest.raises(ListingsDecodeError, match="not JSON"):
            await provider.search(SearchCriteria(area="soho"))

    async def test_unknown_shape(self) -> None:
        provider = _provider(lambda _request: httpx.Response(200, json={"data": []}))
        with pytest.raises(ListingsDecodeError):
            await provider.search(SearchCriteria(area="soho"))

    def test_api_key_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RAPIDAPI_KEY", "from-env")
        provider = StreetEasyProvider(ProviderConfig())
        assert provider._api_key == "from-env"
        assert provider.provider_id == "streeteasy"
