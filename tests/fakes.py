"""In-memory doubles for the engine's collaborators (no network, no LLM)."""

from collections.abc import Callable
from typing import Any

from src.core.schemas import RawListing, ScoredListing, SearchCriteria
from src.jobs.audit import AuditHandle, AuditLog
from src.listings.base import ListingCache, ListingsProvider
from src.valuation.service import ValuationOutcome, ValuationService


def make_listing(listing_id: str = "1", **overrides: object) -> RawListing:
    defaults: dict[str, object] = {
        "listing_id": listing_id,
        "address": f"{listing_id} Bedford Ave",
        "price": 3000.0,
        "bedrooms": 1,
        "bathrooms": 1,
        "neighborhood": "williamsburg",
        "url": f"https://streeteasy.com/rental/{listing_id}",
    }
    defaults.update(overrides)
    return RawListing(**defaults)  # type: ignore[arg-type]


def make_scored(
    listing_id: str = "1",
    discount: float = 20.0,
    *,
    origin: str = "fresh",
    **listing_overrides: object,
) -> ScoredListing:
    return ScoredListing(
        listing=make_listing(listing_id, **listing_overrides),
        discount_percent=discount,
        qualifies=True,
        score=80.0,
        grade="B+",
        reasoning="Priced well under comparable units.",
        origin=origin,  # type: ignore[arg-type]
    )


class FakeProvider(ListingsProvider):
    """Returns whatever ``handler(criteria)`` returns; records every call."""

    def __init__(self, handler: Callable[[SearchCriteria], list[RawListing]] | None = None) -> None:
        self._handler = handler or (lambda _criteria: [])
        self.calls: list[SearchCriteria] = []

    @property
    def provider_id(self) -> str:
        return "fake"

    async def search(self, criteria: SearchCriteria) -> list[RawListing]:
        self.calls.append(criteria)
        return self._handler(criteria)


class FakeValuation(ValuationService):
    """Discounts come from a fixed table keyed by listing id (0 when absent)."""

    def __init__(self, discounts: dict[str, float] | None = None, tokens_per_call: int = 1000) -> None:
        self._discounts = discounts or {}
        self._tokens = tokens_per_call
        self.calls: list[tuple[SearchCriteria, int]] = []

    async def score(
        self,
        listings: list[RawListing],
        criteria: SearchCriteria,
        threshold: int,
    ) -> ValuationOutcome:
        self.calls.append((criteria, threshold))
        scored = [
            ScoredListing(
                listing=listing,
                discount_percent=self._discounts.get(listing.listing_id, 0.0),
                score=70.0,
                grade="B",
                reasoning="Fake valuation.",
            )
            for listing in listings
        ]
        qualifying = [s for s in scored if s.discount_percent >= threshold]
        return ValuationOutcome(
            qualifying=qualifying,
            calls=1,
            tokens=self._tokens,
            cost_usd=self._tokens / 1_000_000 * 1.25,
        )


class FakeCache(ListingCache):
    def __init__(self, listings: list[ScoredListing] | None = None) -> None:
        self._listings = listings or []

    async def search(self, criteria: SearchCriteria) -> list[ScoredListing]:
        return list(self._listings)


class RecordingAudit(AuditLog):
    """Keeps every create/update in memory. ``fail_on`` makes that step raise."""

    def __init__(self, fail_on: str | None = None) -> None:
        self._fail_on = fail_on
        self.created: list[str] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []

    def create(self, job_id: str, criteria: SearchCriteria) -> AuditHandle:
        if self._fail_on == "create":
            msg = "audit database unavailable"
            raise RuntimeError(msg)
        self.created.append(job_id)
        return AuditHandle(len(self.created), job_id)

    def update(self, handle: AuditHandle, fields: dict[str, Any]) -> None:
        if self._fail_on == "update":
            msg = "audit write failed"
            raise RuntimeError(msg)
        self.updates.append((handle.job_id, fields))
