"""Job engine: owns job lifecycle and sequences the search pipeline.

Pipeline (progress shown in brackets):
  1. Audit record                          [0 -> 20]
  2. Cache lookup; enough hits -> done      [20]   cache_only
  3. Threshold fallback search              [40]
  4. Relaxation if nothing found anywhere   [70]   no_results / similar_listings
  5. Combine cache + fresh, rank, truncate  [90]
  6. Store result, mark completed           [100]  cache_and_fresh / similar_listings

Any exception escaping a step marks the job failed at its last progress and
no result is stored.
"""

import asyncio
import logging
import secrets
import string
import time
from typing import Any

from src.core.config import Settings
from src.core.db import init_db
from src.core.schemas import (
    FetchStats,
    Job,
    JobResult,
    JobSummary,
    ResultSource,
    ScoredListing,
    SearchCriteria,
    utcnow,
)
from src.jobs.audit import AuditHandle, AuditLog, NullAuditLog, SqliteAuditLog
from src.jobs.store import InMemoryJobStore, JobStore
from src.listings.base import EmptyListingCache, ListingCache, ListingsProvider
from src.listings.streeteasy.adapter import StreetEasyProvider
from src.pipeline.attempt import SearchAttempt
from src.pipeline.combiner import combine_results
from src.pipeline.formatter import format_for_delivery
from src.pipeline.neighborhoods import NeighborhoodTable
from src.pipeline.relaxation import RelaxationFallbackSearch
from src.pipeline.threshold_search import ThresholdFallbackSearch
from src.valuation.service import LLMValuationService, ValuationService

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_job_id() -> str:
    """``smart_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"smart_{int(time.time() * 1000)}_{suffix}"


class JobEngine:
    """Runs search jobs and publishes their state to a JobStore.

    Usage::

        engine = build_engine(settings)
        engine.start(generate_job_id(), criteria)   # returns immediately
        ...
        engine.store.get_job(job_id)                # poll
    """

    def __init__(
        self,
        store: JobStore,
        cache: ListingCache,
        threshold_search: ThresholdFallbackSearch,
        relaxation: RelaxationFallbackSearch,
        neighborhoods: NeighborhoodTable,
        audit: AuditLog | None = None,
    ) -> None:
        self.store = store
        self._cache = cache
        self._threshold_search = threshold_search
        self._relaxation = relaxation
        self._neighborhoods = neighborhoods
        self._audit = audit or NullAuditLog()
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def start(self, job_id: str, criteria: SearchCriteria) -> Job:
        """Register the job and schedule its pipeline on the running loop.

        Returns the freshly registered job (status 'processing', progress 0).
        Must be called from within a running event loop.
        """
        job = self._register(job_id, criteria)
        task = asyncio.get_running_loop().create_task(
            self._execute(job, criteria), name=f"job-{job_id}",
        )
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        return job.model_copy()

    async def run(self, job_id: str, criteria: SearchCriteria) -> Job:
        """Register and run a job to its terminal state; returns the final job."""
        job = self._register(job_id, criteria)
        await self._execute(job, criteria)
        return job.model_copy()

    async def join(self) -> None:
        """Wait until every started job has reached a terminal state."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()))

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # --- Pipeline ---

    def _register(self, job_id: str, criteria: SearchCriteria) -> Job:
        if self.store.get_job(job_id) is not None:
            msg = f"Job '{job_id}' already exists"
            raise ValueError(msg)
        job = Job(
            job_id=job_id,
            message="Starting smart cache-first search…",
            original_threshold=criteria.threshold,
        )
        self.store.put_job(job)
        logger.info("Job %s registered for '%s' (%s)", job_id, criteria.area, criteria.category)
        return job

    async def _execute(self, job: Job, criteria: SearchCriteria) -> None:
        started = time.monotonic()
        handle: AuditHandle | None = None
        try:
            handle = await asyncio.to_thread(self._audit.create, job.job_id, criteria)

            self._advance(job, 20, "Checking cache…")
            cache_results = await self._cache.search(criteria)
            job.cache_hits = len(cache_results)

            if len(cache_results) >= criteria.desired_count:
                await self._finish_cache_only(job, criteria, cache_results, handle, started)
                return

            self._advance(job, 40, f"Found {len(cache_results)} cached; fetching fresh…")
            fresh = await self._threshold_search.run(criteria)
            stats = FetchStats().add(fresh.stats)
            fresh_listings = fresh.listings
            fallback_message: str | None = None
            used_fallback = False

            if not fresh_listings and not cache_results:
                self._advance(job, 70, "No matches; looking for similar…")
                relaxed = await self._relaxation.run(criteria)
                stats.add(relaxed.stats)
                if not relaxed.listings:
                    await self._finish_empty(job, criteria, stats, handle, started)
                    return
                fresh_listings = relaxed.listings
                fallback_message = relaxed.fallback_message
                used_fallback = True

            self._advance(job, 90, "Combining results…")
            combined = combine_results(cache_results, fresh_listings, criteria.desired_count)
            job.threshold_used = fresh.threshold_used
            job.threshold_lowered = fresh.threshold_lowered

            source: ResultSource = "similar_listings" if used_fallback else "cache_and_fresh"
            elapsed_ms = _elapsed_ms(started)
            self.store.put_result(JobResult(
                job_id=job.job_id,
                source=source,
                parameters=criteria,
                properties=combined,
                instagram_ready=format_for_delivery(combined, criteria.category, self._neighborhoods),
                cached=cache_results,
                newly_scraped=fresh_listings,
                used_similar_fallback=used_fallback,
                similar_fallback_message=fallback_message,
                summary=JobSummary(
                    total_found=len(combined),
                    cache_hits=len(cache_results),
                    newly_scraped=len(fresh_listings),
                    threshold_used=fresh.threshold_used,
                    threshold_lowered=fresh.threshold_lowered,
                    processing_time_ms=elapsed_ms,
                    fallback_used=used_fallback,
                    fallback_message=fallback_message,
                    valuation_calls=stats.valuation_calls,
                    valuation_cost_usd=stats.valuation_cost_usd,
                ),
            ))

            kind = "similar" if used_fallback else "new"
            self._complete(
                job,
                f"Found {len(combined)} {'similar' if used_fallback else 'total'} "
                f"({len(cache_results)} cached + {len(fresh_listings)} {kind})",
            )
            await self._audit_update(handle, {
                "status": "completed",
                "completed_at": utcnow().isoformat(),
                "processing_duration_ms": elapsed_ms,
                "used_cache_only": False,
                "cache_hits": len(cache_results),
                "provider_calls": stats.provider_calls,
                "listings_fetched": stats.listings_fetched,
                "listings_analyzed": stats.listings_analyzed,
                "total_found": len(combined),
                "qualifying_saved": len(fresh_listings),
                "threshold_used": fresh.threshold_used,
                "threshold_lowered": fresh.threshold_lowered,
                "valuation_calls": stats.valuation_calls,
                "valuation_cost_usd": stats.valuation_cost_usd,
                "used_similar_fallback": used_fallback,
            })
        except Exception as e:
            logger.exception("Job %s failed at %d%%", job.job_id, job.progress)
            job.status = "failed"
            job.error = str(e) or type(e).__name__
            job.last_update = utcnow()
            self.store.put_job(job)
            if handle is not None:
                await self._audit_update(handle, {
                    "status": "failed",
                    "completed_at": utcnow().isoformat(),
                    "processing_duration_ms": _elapsed_ms(started),
                    "error_message": job.error,
                })

    async def _finish_cache_only(
        self,
        job: Job,
        criteria: SearchCriteria,
        cache_results: list[ScoredListing],
        handle: AuditHandle,
        started: float,
    ) -> None:
        elapsed_ms = _elapsed_ms(started)
        combined = combine_results(cache_results, [], len(cache_results))
        self.store.put_result(JobResult(
            job_id=job.job_id,
            source="cache_only",
            parameters=criteria,
            properties=combined,
            instagram_ready=format_for_delivery(combined, criteria.category, self._neighborhoods),
            cached=cache_results,
            summary=JobSummary(
                total_found=len(combined),
                cache_hits=len(cache_results),
                newly_scraped=0,
                threshold_used=criteria.threshold,
                threshold_lowered=False,
                processing_time_ms=elapsed_ms,
            ),
        ))
        self._complete(job, f"Found {len(combined)} properties from cache (instant)")
        await self._audit_update(handle, {
            "status": "completed",
            "completed_at": utcnow().isoformat(),
            "processing_duration_ms": elapsed_ms,
            "used_cache_only": True,
            "cache_hits": len(cache_results),
            "total_found": len(combined),
        })

    async def _finish_empty(
        self,
        job: Job,
        criteria: SearchCriteria,
        stats: FetchStats,
        handle: AuditHandle,
        started: float,
    ) -> None:
        elapsed_ms = _elapsed_ms(started)
        self.store.put_result(JobResult(
            job_id=job.job_id,
            source="no_results",
            parameters=criteria,
            summary=JobSummary(
                total_found=0,
                cache_hits=0,
                newly_scraped=0,
                threshold_used=criteria.threshold,
                threshold_lowered=False,
                processing_time_ms=elapsed_ms,
                valuation_calls=stats.valuation_calls,
                valuation_cost_usd=stats.valuation_cost_usd,
            ),
        ))
        self._complete(job, "No properties found")
        await self._audit_update(handle, {
            "status": "completed",
            "completed_at": utcnow().isoformat(),
            "processing_duration_ms": elapsed_ms,
            "provider_calls": stats.provider_calls,
            "total_found": 0,
        })

    # --- Job state helpers ---

    def _advance(self, job: Job, progress: int, message: str) -> None:
        """Move progress forward (never back), update the message, publish."""
        job.progress = max(job.progress, progress)
        job.message = message
        job.last_update = utcnow()
        self.store.put_job(job)
        logger.debug("Job %s: %d%% %s", job.job_id, job.progress, message)

    def _complete(self, job: Job, message: str) -> None:
        job.status = "completed"
        self._advance(job, 100, message)
        logger.info("Job %s completed: %s", job.job_id, message)

    async def _audit_update(self, handle: AuditHandle, fields: dict[str, Any]) -> None:
        """Mirror fields to the audit log off the event loop; failures are logged, never raised."""
        try:
            await asyncio.to_thread(self._audit.update, handle, fields)
        except Exception:
            logger.warning("Audit update failed for job %s", handle.job_id, exc_info=True)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def build_engine(
    settings: Settings,
    store: JobStore | None = None,
    *,
    provider: ListingsProvider | None = None,
    valuation: ValuationService | None = None,
    cache: ListingCache | None = None,
    audit: AuditLog | None = None,
    neighborhoods: NeighborhoodTable | None = None,
) -> JobEngine:
    """Wire a JobEngine from settings; any collaborator can be overridden."""
    provider = provider or StreetEasyProvider(settings.provider)
    valuation = valuation or LLMValuationService(settings.valuation)
    neighborhoods = neighborhoods or NeighborhoodTable.from_yaml(settings.neighborhoods_path)
    if audit is None:
        audit = (
            SqliteAuditLog(init_db(settings.database.path))
            if settings.database.audit_enabled else NullAuditLog()
        )

    attempt = SearchAttempt(provider, valuation)
    return JobEngine(
        store=store or InMemoryJobStore(),
        cache=cache or EmptyListingCache(),
        threshold_search=ThresholdFallbackSearch(attempt, settings.search.threshold_steps),
        relaxation=RelaxationFallbackSearch(attempt, settings.search, neighborhoods),
        neighborhoods=neighborhoods,
        audit=audit,
    )
