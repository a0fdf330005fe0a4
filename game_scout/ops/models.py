"""Job data models."""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional


class JobStatus(str, enum.Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.completed, JobStatus.failed)


@dataclass
class JobProgress:
    """Incremental progress reported by a running command."""

    current: int
    total: int
    message: Optional[str] = None


@dataclass
class Job:
    """
    Persistent record of one background unit of work.

    ``result`` is only meaningful once ``status`` is ``completed`` and
    ``error`` only once it is ``failed``.
    """

    id: str
    command: str
    status: JobStatus
    created_at: datetime
    progress: Optional[JobProgress] = None
    result: Any = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dict (ISO timestamps, no empty fields)."""
        data = {
            "id": self.id,
            "command": self.command,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }
        if self.progress is not None:
            data["progress"] = {k: v for k, v in asdict(self.progress).items() if v is not None}
        if self.status == JobStatus.completed:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        if self.started_at is not None:
            data["started_at"] = self.started_at.isoformat()
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at.isoformat()
        return data


@dataclass
class JobStats:
    """Job counts per status."""

    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return asdict(self)
