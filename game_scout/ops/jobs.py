"""
Job management system for async operations.

Runs registered commands as background asyncio tasks while the JobStore
keeps the durable record. State machine:

    pending -> running -> completed | failed

Transitions only move forward. A job is claimed atomically before it runs,
so a second ``run_job`` for the same ID does nothing.
"""
from __future__ import annotations

import asyncio
import json
from contextvars import ContextVar
from functools import partial
from typing import Any, Optional

import structlog

from .commands import CommandRegistry, UnitOfWork
from .events import JobEvents
from .models import Job, JobStats, JobStatus
from .store import JobStore

logger = structlog.get_logger(__name__)

ORPHANED_ERROR = "Interrupted by process restart"
INTERRUPTED_ERROR = "Job interrupted"

# ID of the job whose unit of work is executing in the current task
_current_job: ContextVar[Optional[str]] = ContextVar("current_job", default=None)


def current_job_id() -> Optional[str]:
    return _current_job.get()


def describe_error(exc: BaseException) -> str:
    """Human-readable failure description for the job record."""
    return str(exc) or type(exc).__name__


class JobManager:
    """
    In-process async job runner with persistent state.

    Each submitted job gets its own task; the handle is kept until the task
    settles so no failure goes unrecorded. Store calls are synchronous and
    never yield to the event loop.
    """

    def __init__(self, store: JobStore, registry: Optional[CommandRegistry] = None):
        """
        Initialize job manager.

        Args:
            store: Durable job store
            registry: Commands resolvable by name in ``submit``
        """
        self.store = store
        self.registry = registry if registry is not None else CommandRegistry()
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def events(self) -> JobEvents:
        return self.store.events

    @property
    def active_count(self) -> int:
        """Number of jobs whose tasks have not settled yet."""
        return len(self._tasks)

    # ── Submit & Run ─────────────────────────────────────────────────

    def create_job(self, command: str) -> str:
        job_id = self.store.create(command)
        logger.info("job_created", job_id=job_id, command=command)
        return job_id

    def submit(self, command: str, unit_of_work: Optional[UnitOfWork] = None) -> str:
        """
        Create a job and schedule it without waiting for it.

        Must be called with a running event loop.

        Args:
            command: Command name recorded on the job
            unit_of_work: Coroutine function to run; looked up in the
                registry by ``command`` when omitted

        Returns:
            Job ID

        Raises:
            UnknownCommandError: If ``command`` is not registered and no
                unit of work was given (no job is created)
        """
        if unit_of_work is None:
            unit_of_work = self.registry.get(command)

        job_id = self.create_job(command)
        task = asyncio.create_task(self.run_job(job_id, unit_of_work), name=f"job:{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(partial(self._on_task_done, job_id))
        return job_id

    async def run_job(self, job_id: str, unit_of_work: UnitOfWork) -> bool:
        """
        Execute ``unit_of_work`` under job bookkeeping.

        The job must exist and still be pending; otherwise nothing happens.
        Failures of the unit of work are recorded on the job and never raised.

        Returns:
            True if this call ran the job
        """
        job = self.store.claim(job_id)
        if job is None:
            existing = self.store.get(job_id)
            if existing is not None:
                logger.warning("job_not_pending", job_id=job_id, status=existing.status.value)
            return False

        token = _current_job.set(job_id)
        logger.info("job_started", job_id=job_id, command=job.command)
        try:
            result = await unit_of_work()
            # Results are stored as JSON; an unstorable result fails the job
            json.dumps(result)
        except asyncio.CancelledError:
            self._fail(job_id, INTERRUPTED_ERROR)
            raise
        except Exception as exc:
            logger.error("job_failed", job_id=job_id, command=job.command, error=describe_error(exc), exc_info=True)
            self._fail(job_id, describe_error(exc))
        else:
            self.store.update(
                job_id,
                status=JobStatus.completed,
                completed_at=self.store.clock(),
                result=result,
            )
            logger.info("job_completed", job_id=job_id, command=job.command)
        finally:
            _current_job.reset(token)
        return True

    def _fail(self, job_id: str, error: str) -> None:
        self.store.update(
            job_id,
            status=JobStatus.failed,
            completed_at=self.store.clock(),
            error=error,
        )

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # Only reachable when the store itself failed while finalising
            logger.error("job_task_crashed", job_id=job_id, error=describe_error(exc))

    # ── Progress ─────────────────────────────────────────────────────

    def update_progress(
        self,
        job_id: str,
        current: int,
        total: int,
        message: Optional[str] = None,
    ) -> Optional[Job]:
        """
        Record progress for a job (called from workers).

        Status is never touched. A ``message`` of None keeps the previous one.
        """
        fields: dict[str, Any] = {"progress_current": current, "progress_total": total}
        if message is not None:
            fields["progress_message"] = message
        return self.store.update(job_id, **fields)

    def report_progress(self, current: int, total: int, message: Optional[str] = None) -> Optional[Job]:
        """Record progress for the job running in the current task, if any."""
        job_id = _current_job.get()
        if job_id is None:
            return None
        return self.update_progress(job_id, current, total, message)

    # ── Queries ──────────────────────────────────────────────────────

    def get(self, job_id: str) -> Optional[Job]:
        """
        Get job by ID.

        Returns:
            Job if found, None otherwise
        """
        return self.store.get(job_id)

    def list(self, limit: int = 100, offset: int = 0) -> list[Job]:
        return self.store.list(limit, offset)

    def list_by_status(self, status: JobStatus | str) -> list[Job]:
        return self.store.list_by_status(status)

    def list_by_command(self, command: str) -> list[Job]:
        return self.store.list_by_command(command)

    def list_jobs(
        self,
        limit: int = 100,
        offset: int = 0,
        status: Optional[JobStatus | str] = None,
        command: Optional[str] = None,
    ) -> tuple[list[Job], JobStats]:
        """
        List jobs with optional filters plus a stats snapshot.

        A status filter takes precedence over a command filter.
        """
        if status is not None:
            jobs = self.store.list_by_status(status, limit, offset)
        elif command is not None:
            jobs = self.store.list_by_command(command, limit, offset)
        else:
            jobs = self.store.list(limit, offset)
        return jobs, self.store.stats()

    def stats(self) -> JobStats:
        return self.store.stats()

    # ── Deletion & retention ─────────────────────────────────────────

    def delete(self, job_id: str) -> bool:
        return self.store.delete(job_id)

    def delete_older_than(self, days: float) -> int:
        return self.store.delete_older_than(days)

    def cleanup(self, days: float = 30) -> int:
        """
        Remove jobs created more than ``days`` ago.

        Returns:
            Number of jobs removed
        """
        removed = self.store.delete_older_than(days)
        logger.info("jobs_cleaned_up", older_than_days=days, removed=removed)
        return removed

    def fail_orphaned(self) -> int:
        """
        Fail pending/running jobs that no task of this process owns.

        Meant for startup: such jobs were in flight when a previous process
        exited and can never settle.

        Returns:
            Number of jobs marked failed
        """
        failed = 0
        for status in (JobStatus.pending, JobStatus.running):
            for job in self.store.list_by_status(status):
                if job.id in self._tasks:
                    continue
                self._fail(job.id, ORPHANED_ERROR)
                failed += 1
        if failed:
            logger.warning("orphaned_jobs_failed", count=failed)
        return failed

    # ── Lifecycle ────────────────────────────────────────────────────

    async def wait_all(self) -> None:
        """Wait until every in-flight job task has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Wait for in-flight jobs, then close the store.

        Args:
            timeout: Seconds to wait before interrupting remaining jobs
                (None waits indefinitely). Interrupted jobs are marked failed.
        """
        tasks = list(self._tasks.values())
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        self.store.close()
