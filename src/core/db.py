"""SQLite database layer for job audit records (fetch jobs)."""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_FETCH_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS fetch_jobs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id          TEXT    NOT NULL UNIQUE,
    area            TEXT    NOT NULL,
    category        TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'processing',
    criteria_json   TEXT    NOT NULL,
    fields_json     TEXT    NOT NULL DEFAULT '{}',
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # Jobs run on the event loop thread while the API may read from a worker thread.
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_FETCH_JOBS_TABLE)
    conn.commit()
    return conn


def insert_fetch_job(
    conn: sqlite3.Connection,
    job_id: str,
    area: str,
    category: str,
    criteria_json: str,
) -> int:
    """Record a new fetch job in 'processing' state. Returns the row ID."""
    now = datetime.now(timezone.utc).isoformat()
    cursor = conn.execute(
        """
        INSERT INTO fetch_jobs (job_id, area, category, criteria_json, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (job_id, area, category, criteria_json, now, now),
    )
    conn.commit()
    return cursor.lastrowid or 0


def update_fetch_job(conn: sqlite3.Connection, row_id: int, fields: dict[str, Any]) -> None:
    """Merge ``fields`` into a fetch job's JSON blob; a ``status`` key also updates the column.

    Raises KeyError if the row does not exist.
    """
    row = conn.execute(
        "SELECT status, fields_json FROM fetch_jobs WHERE id = ?", (row_id,),
    ).fetchone()
    if row is None:
        msg = f"fetch job {row_id} not found"
        raise KeyError(msg)

    merged = json.loads(row["fields_json"])
    merged.update(fields)
    status = str(fields.get("status", row["status"]))
    conn.execute(
        """
        UPDATE fetch_jobs
        SET status = ?, fields_json = ?, updated_at = ?
        WHERE id = ?
        """,
        (
            status,
            json.dumps(merged, default=str),
            datetime.now(timezone.utc).isoformat(),
            row_id,
        ),
    )
    conn.commit()


def get_fetch_job(conn: sqlite3.Connection, job_id: str) -> dict[str, Any] | None:
    """Return a fetch job as a dict (fields blob decoded), or None."""
    row = conn.execute(
        """
        SELECT id, job_id, area, category, status, criteria_json, fields_json,
               created_at, updated_at
        FROM fetch_jobs WHERE job_id = ?
        """,
        (job_id,),
    ).fetchone()
    if row is None:
        return None
    record = dict(row)
    record["criteria"] = json.loads(record.pop("criteria_json"))
    record["fields"] = json.loads(record.pop("fields_json"))
    return record
