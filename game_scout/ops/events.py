"""
Fan-out channel for job change notifications.

Publishers never wait on subscribers: callbacks run inline and any error
they raise is logged and dropped, queue subscribers are fed with
``put_nowait`` and a full queue discards its oldest entry, so the latest
record (the terminal one included) is always delivered.
"""
from __future__ import annotations

import asyncio
from typing import AsyncGenerator, Callable, Optional

import structlog

from .models import Job

logger = structlog.get_logger(__name__)

JOB_UPDATED = "jobUpdated"

Listener = Callable[[Job], None]


class JobEvents:
    """Publish/subscribe hub for ``jobUpdated`` notifications."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._queues: list[tuple[asyncio.Queue, Optional[str]]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners) + len(self._queues)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked with the post-update job.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def open_queue(self, job_id: Optional[str] = None, maxsize: int = 100) -> asyncio.Queue:
        """
        Register a bounded queue that receives updated jobs.

        Args:
            job_id: Only deliver updates for this job (all jobs when None)
            maxsize: Queue bound; once reached the oldest queued event is dropped

        Returns:
            The queue; pass it to ``close_queue`` when done
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._queues.append((queue, job_id))
        return queue

    def close_queue(self, queue: asyncio.Queue) -> None:
        self._queues = [entry for entry in self._queues if entry[0] is not queue]

    async def stream(
        self,
        job_id: Optional[str] = None,
        maxsize: int = 100,
    ) -> AsyncGenerator[Job, None]:
        """Yield updated jobs as they are published, until the consumer stops."""
        queue = self.open_queue(job_id, maxsize)
        try:
            while True:
                yield await queue.get()
        finally:
            self.close_queue(queue)

    def publish(self, job: Job) -> None:
        """Deliver ``job`` to every subscriber without blocking."""
        for listener in list(self._listeners):
            try:
                listener(job)
            except Exception as exc:
                logger.warning("listener_failed", channel=JOB_UPDATED, job_id=job.id, error=str(exc))

        for queue, job_id in list(self._queues):
            if job_id is not None and job_id != job.id:
                continue
            if queue.full():
                # Drop the oldest snapshot; the newest one supersedes it
                queue.get_nowait()
                logger.debug("event_dropped", channel=JOB_UPDATED, job_id=job.id)
            queue.put_nowait(job)
