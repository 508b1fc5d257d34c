"""StreetEasy listings provider: wires request builder, HTTP client, and parser."""

import logging
import os

import httpx

from src.core.config import ProviderConfig
from src.core.schemas import RawListing, SearchCriteria
from src.listings.base import (
    ListingsDecodeError,
    ListingsProvider,
    ProviderHTTPError,
    ProviderTimeoutError,
)
from src.listings.streeteasy.params import build_endpoint, build_search_params
from src.listings.streeteasy.parser import decode_payload, parse_listings

logger = logging.getLogger(__name__)


class StreetEasyProvider(ListingsProvider):
    """StreetEasy search via RapidAPI.

    An ``httpx.AsyncClient`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise a client is created per call.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._api_key = api_key if api_key is not None else os.environ.get(config.api_key_env, "")
        self._client = client
        if not self._api_key:
            logger.warning("%s is not set, provider calls will be rejected", config.api_key_env)

    @property
    def provider_id(self) -> str:
        return "streeteasy"

    async def search(self, criteria: SearchCriteria) -> list[RawListing]:
        """One HTTP call per invocation. Raises ProviderError subclasses on failure."""
        url = build_endpoint(criteria, self._config)
        params = build_search_params(criteria, self._config)
        headers = {
            "X-RapidAPI-Key": self._api_key,
            "X-RapidAPI-Host": self._config.host,
        }

        logger.info("Provider fetch: %s %s", criteria.area, params)
        try:
            if self._client is not None:
                response = await self._client.get(
                    url, params=params, headers=headers, timeout=self._config.timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                    response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            msg = f"Provider timed out after {self._config.timeout_seconds}s: {e}"
            raise ProviderTimeoutError(msg) from e
        except httpx.HTTPStatusError as e:
            msg = f"Provider returned HTTP {e.response.status_code}"
            raise ProviderHTTPError(msg, status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            msg = f"Provider request failed: {e}"
            raise ProviderHTTPError(msg) from e

        try:
            payload = response.json()
        except ValueError as e:
            msg = f"Provider response is not JSON: {e}"
            raise ListingsDecodeError(msg) from e

        listings = parse_listings(decode_payload(payload))
        logger.info("Provider returned %d listings for '%s'", len(listings), criteria.area)
        return listings
