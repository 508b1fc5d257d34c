"""Best-effort audit mirror of job progress (fetch records)."""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Any

from src.core.db import insert_fetch_job, update_fetch_job
from src.core.schemas import SearchCriteria

logger = logging.getLogger(__name__)


class AuditHandle:
    """Opaque reference to one audit record."""

    def __init__(self, record_id: str | int, job_id: str) -> None:
        self.record_id = record_id
        self.job_id = job_id

    def __repr__(self) -> str:
        return f"AuditHandle({self.record_id!r}, job_id={self.job_id!r})"


class AuditLog(ABC):
    @abstractmethod
    def create(self, job_id: str, criteria: SearchCriteria) -> AuditHandle:
        """Open an audit record for a new job."""

    @abstractmethod
    def update(self, handle: AuditHandle, fields: dict[str, Any]) -> None:
        """Merge fields into an existing audit record."""


class NullAuditLog(AuditLog):
    """Audit log that records nothing. Returns synthetic handles."""

    def create(self, job_id: str, criteria: SearchCriteria) -> AuditHandle:
        logger.debug("Audit disabled, synthetic record for %s", job_id)
        return AuditHandle(f"fake_{job_id}", job_id)

    def update(self, handle: AuditHandle, fields: dict[str, Any]) -> None:
        logger.debug("Audit disabled, skipping update of %s (%s)", handle.job_id, fields.get("status"))


class SqliteAuditLog(AuditLog):
    """Audit records in the ``fetch_jobs`` table.

    Calls may arrive from several worker threads; the lock keeps each
    insert or update and its commit together on the shared connection.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    def create(self, job_id: str, criteria: SearchCriteria) -> AuditHandle:
        with self._lock:
            row_id = insert_fetch_job(
                self._conn,
                job_id=job_id,
                area=criteria.area,
                category=criteria.category,
                criteria_json=criteria.model_dump_json(),
            )
        return AuditHandle(row_id, job_id)

    def update(self, handle: AuditHandle, fields: dict[str, Any]) -> None:
        with self._lock:
            update_fetch_job(self._conn, int(handle.record_id), fields)
