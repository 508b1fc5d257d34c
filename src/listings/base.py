"""Abstract bases for listing sources: the provider API and the listing cache."""

import logging
from abc import ABC, abstractmethod

from src.core.schemas import RawListing, ScoredListing, SearchCriteria

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """An expected failure of a single provider call.

    Callers degrade the attempt to zero results instead of failing the job.
    """


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within the configured timeout."""


class ProviderHTTPError(ProviderError):
    """Transport failure or a non-2xx response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ListingsDecodeError(ProviderError):
    """The response body matched none of the known listing shapes."""


class ListingsProvider(ABC):
    """Base class that every listings provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'streeteasy')."""

    @abstractmethod
    async def search(self, criteria: SearchCriteria) -> list[RawListing]:
        """Fetch candidate listings for the criteria. Raises ProviderError on failure."""


class ListingCache(ABC):
    """Read path for previously scored listings, consulted before any paid call."""

    @abstractmethod
    async def search(self, criteria: SearchCriteria) -> list[ScoredListing]:
        """Return cached listings matching the criteria (may be empty)."""


class EmptyListingCache(ListingCache):
    """Cache that never has anything. Every job goes to the provider."""

    async def search(self, criteria: SearchCriteria) -> list[ScoredListing]:
        logger.debug("Listing cache disabled, no cached matches for '%s'", criteria.area)
        return []
