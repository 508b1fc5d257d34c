"""Keyed storage for job state and final results."""

import threading
from abc import ABC, abstractmethod

from src.core.schemas import Job, JobResult


class JobStore(ABC):
    """Jobs and results by job id.

    Implementations must tolerate concurrent writers (one per job) and
    concurrent readers (status pollers).
    """

    @abstractmethod
    def get_job(self, job_id: str) -> Job | None:
        """Return a snapshot of the job, or None if unknown."""

    @abstractmethod
    def put_job(self, job: Job) -> None:
        """Insert or replace a job record."""

    @abstractmethod
    def list_jobs(self) -> list[Job]:
        """Snapshots of every known job."""

    @abstractmethod
    def get_result(self, job_id: str) -> JobResult | None:
        """Return the job's final result, or None."""

    @abstractmethod
    def put_result(self, result: JobResult) -> None:
        """Store a final result. Raises ValueError if one already exists for the job."""

    def count_active(self) -> int:
        return sum(1 for job in self.list_jobs() if job.status == "processing")


class InMemoryJobStore(JobStore):
    """Process-local store guarded by a lock.

    Jobs are copied on the way in and out so a poller never holds the
    engine's live object. Nothing is evicted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {}
        self._results: dict[str, JobResult] = {}

    def get_job(self, job_id: str) -> Job | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job is not None else None

    def put_job(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.job_id] = job.model_copy()

    def list_jobs(self) -> list[Job]:
        with self._lock:
            return [job.model_copy() for job in self._jobs.values()]

    def get_result(self, job_id: str) -> JobResult | None:
        with self._lock:
            return self._results.get(job_id)

    def put_result(self, result: JobResult) -> None:
        with self._lock:
            if result.job_id in self._results:
                msg = f"Result for job '{result.job_id}' already stored"
                raise ValueError(msg)
            self._results[result.job_id] = result
