"""Tests for the audit database layer and the audit log implementations."""

import pytest

from src.core.db import get_fetch_job, init_db, insert_fetch_job, update_fetch_job
from src.core.schemas import SearchCriteria
from src.jobs.audit import AuditHandle, NullAuditLog, SqliteAuditLog


@pytest.fixture()
def db(tmp_path):  # type: ignore[no-untyped-def]
    """Provide a fresh SQLite connection per test."""
    return init_db(tmp_path / "test.db")


class TestInitDb:
    def test_creates_table(self, db) -> None:  # type: ignore[no-untyped-def]
        tables = {
            row[0]
            for row in db.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        assert "fetch_jobs" in tables

    def test_idempotent(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        p = tmp_path / "nested" / "double.db"
        init_db(p).close()
        init_db(p).close()


class TestFetchJobs:
    def test_insert_and_get(self, db) -> None:  # type: ignore[no-untyped-def]
        row_id = insert_fetch_job(db, "smart_1_a", "soho", "rental", '{"area": "soho"}')
        assert row_id > 0
        record = get_fetch_job(db, "smart_1_a")
        assert record is not None
        assert record["status"] == "processing"
        assert record["criteria"] == {"area": "soho"}
        assert record["fields"] == {}

    def test_update_merges_fields(self, db) -> None:  # type: ignore[no-untyped-def]
        row_id = insert_fetch_job(db, "smart_1_a", "soho", "rental", "{}")
        update_fetch_job(db, row_id, {"cache_hits": 0})
        update_fetch_job(db, row_id, {"status": "completed", "total_found": 2})

        record = get_fetch_job(db, "smart_1_a")
        assert record["status"] == "completed"  # type: ignore[index]
        assert record["fields"] == {"cache_hits": 0, "status": "completed", "total_found": 2}  # type: ignore[index]

    def test_update_unknown_row(self, db) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(KeyError):
            update_fetch_job(db, 999, {"status": "failed"})

    def test_unknown_job(self, db) -> None:  # type: ignore[no-untyped-def]
        assert get_fetch_job(db, "nope") is None


class TestSqliteAuditLog:
    def test_create_then_update(self, db) -> None:  # type: ignore[no-untyped-def]
        audit = SqliteAuditLog(db)
        handle = audit.create("smart_1_a", SearchCriteria(area="Park Slope", max_price=3500))
        audit.update(handle, {"status": "failed", "error_message": "boom"})

        record = get_fetch_job(db, "smart_1_a")
        assert record["area"] == "park-slope"  # type: ignore[index]
        assert record["criteria"]["max_price"] == 3500  # type: ignore[index]
        assert record["status"] == "failed"  # type: ignore[index]
        assert record["fields"]["error_message"] == "boom"  # type: ignore[index]


class TestNullAuditLog:
    def test_synthetic_handle(self) -> None:
        audit = NullAuditLog()
        handle = audit.create("smart_1_a", SearchCriteria(area="soho"))
        assert handle.record_id == "fake_smart_1_a"
        audit.update(handle, {"status": "completed"})

    def test_handle_repr(self) -> None:
        assert "smart_1_a" in repr(AuditHandle(3, "smart_1_a"))
