"""
SQLite-backed persistence for job records.

One ``jobs`` table keyed by job id, with secondary indexes on status,
created_at and command. Timestamps are stored as fixed-width ISO-8601 UTC
strings (microsecond precision) so lexical order equals time order.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from .events import JobEvents
from .models import Job, JobProgress, JobStats, JobStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def new_job_id() -> str:
    """Time-ordered prefix plus random suffix, e.g. ``job_1760870400123_3f9c0a1b2d4e``."""
    return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


# Column name -> encoder for values passed to update()
_ENCODERS: dict[str, Callable[[Any], Any]] = {
    "status": lambda v: JobStatus(v).value,
    "progress_current": lambda v: v,
    "progress_total": lambda v: v,
    "progress_message": lambda v: v,
    "result": lambda v: json.dumps(v),
    "error": lambda v: v,
    "started_at": _ts,
    "completed_at": _ts,
}

_ORDER = "ORDER BY created_at DESC, rowid DESC"


class JobStore:
    """
    File-backed SQLite store for job lifecycle tracking.

    Every mutation is a single committed statement, so each record update is
    atomic. Successful updates publish the re-read record on ``events``.
    """

    def __init__(
        self,
        db_path: Path,
        events: Optional[JobEvents] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Open (and create if needed) the job database.

        Args:
            db_path: Path to SQLite database file
            events: Channel receiving ``jobUpdated`` notifications
            clock: Source of "now"; injectable for retention tests
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.events = events if events is not None else JobEvents()
        self.clock = clock

        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            timeout=10.0,
        )
        self._conn.row_factory = sqlite3.Row

        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._init_tables()

    def _init_tables(self) -> None:
        """Create the jobs table and its indexes if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id TEXT PRIMARY KEY,
                command TEXT NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('pending', 'running', 'completed', 'failed')),
                progress_current INTEGER,
                progress_total INTEGER,
                progress_message TEXT,
                result TEXT,
                error TEXT,
                created_at TEXT NOT NULL,
                started_at TEXT,
                completed_at TEXT
            )
        """)
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status)")
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_created_at ON jobs(created_at DESC)")
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_command ON jobs(command)")
        self._conn.commit()

    # ── CRUD ─────────────────────────────────────────────────────────

    def create(self, command: str) -> str:
        """
        Insert a new pending job.

        Args:
            command: Name of the unit of work

        Returns:
            Job ID
        """
        with self._lock:
            while True:
                job_id = new_job_id()
                try:
                    self._conn.execute(
                        "INSERT INTO jobs (id, command, status, created_at) VALUES (?, ?, ?, ?)",
                        (job_id, command, JobStatus.pending.value, _ts(self.clock())),
                    )
                except sqlite3.IntegrityError:
                    continue
                self._conn.commit()
                return job_id

    def get(self, job_id: str) -> Optional[Job]:
        """Fetch a single job by ID, or None if it does not exist."""
        with self._lock:
            row = self._conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return self._row_to_job(row) if row is not None else None

    def list(self, limit: int = 100, offset: int = 0) -> list[Job]:
        """List jobs newest first within the ``limit``/``offset`` window."""
        return self._select(f"SELECT * FROM jobs {_ORDER} LIMIT ? OFFSET ?", (limit, offset))

    def list_by_status(
        self,
        status: JobStatus | str,
        limit: int = -1,
        offset: int = 0,
    ) -> list[Job]:
        """List jobs in ``status`` newest first (unbounded when limit is -1)."""
        return self._select(
            f"SELECT * FROM jobs WHERE status = ? {_ORDER} LIMIT ? OFFSET ?",
            (JobStatus(status).value, limit, offset),
        )

    def list_by_command(self, command: str, limit: int = -1, offset: int = 0) -> list[Job]:
        """List jobs for ``command`` newest first (unbounded when limit is -1)."""
        return self._select(
            f"SELECT * FROM jobs WHERE command = ? {_ORDER} LIMIT ? OFFSET ?",
            (command, limit, offset),
        )

    def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        """
        Apply a partial update.

        Only the keyword arguments given are written; everything else is left
        untouched. Passing ``result=None`` stores an explicit JSON null.

        Args:
            job_id: Job ID
            **fields: Any of status, progress_current, progress_total,
                progress_message, result, error, started_at, completed_at

        Returns:
            The updated job, or None if nothing was written
        """
        unknown = set(fields) - set(_ENCODERS)
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")
        if not fields:
            return None

        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [_ENCODERS[name](value) for name, value in fields.items()]

        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE jobs SET {assignments} WHERE id = ?",
                (*values, job_id),
            )
            self._conn.commit()
            if cursor.rowcount == 0:
                return None
            job = self.get(job_id)

        if job is not None:
            self.events.publish(job)
        return job

    def claim(self, job_id: str) -> Optional[Job]:
        """
        Atomically move a pending job to running and stamp ``started_at``.

        Returns:
            The running job for the single caller that won the transition,
            None if the job is missing or no longer pending
        """
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE jobs SET status = ?, started_at = ? WHERE id = ? AND status = ?",
                (JobStatus.running.value, _ts(self.clock()), job_id, JobStatus.pending.value),
            )
            self._conn.commit()
            if cursor.rowcount == 0:
                return None
            job = self.get(job_id)

        if job is not None:
            self.events.publish(job)
        return job

    def delete(self, job_id: str) -> bool:
        """Delete a job; True if a row was removed."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            self._conn.commit()
        return cursor.rowcount > 0

    def delete_older_than(self, days: float) -> int:
        """
        Delete jobs created strictly before ``now - days``.

        Returns:
            Number of rows deleted
        """
        cutoff = _ts(self.clock() - timedelta(days=days))
        with self._lock:
            cursor = self._conn.execute("DELETE FROM jobs WHERE created_at < ?", (cutoff,))
            self._conn.commit()
        return cursor.rowcount

    def stats(self) -> JobStats:
        """Count jobs per status plus the overall total."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) AS count FROM jobs GROUP BY status"
            ).fetchall()

        stats = JobStats()
        for row in rows:
            setattr(stats, row["status"], row["count"])
            stats.total += row["count"]
        return stats

    def close(self) -> None:
        """Close database connection."""
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ── Helpers ───────────────────────────────────────────────────────

    def _select(self, sql: str, params: tuple) -> list[Job]:
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_job(row) for row in rows]

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> Job:
        progress = None
        if row["progress_current"] is not None and row["progress_total"] is not None:
            progress = JobProgress(
                current=row["progress_current"],
                total=row["progress_total"],
                message=row["progress_message"],
            )

        return Job(
            id=row["id"],
            command=row["command"],
            status=JobStatus(row["status"]),
            created_at=_parse_ts(row["created_at"]),
            progress=progress,
            result=json.loads(row["result"]) if row["result"] is not None else None,
            error=row["error"],
            started_at=_parse_ts(row["started_at"]),
            completed_at=_parse_ts(row["completed_at"]),
        )
