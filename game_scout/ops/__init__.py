"""
Async job management for long-running corpus commands.

Provides background job execution with durable state, progress tracking
and change notifications.
"""

from .models import Job, JobProgress, JobStats, JobStatus
from .events import JobEvents, JOB_UPDATED
from .store import JobStore
from .commands import CommandRegistry, UnitOfWork
from .jobs import JobManager, current_job_id
from .embed_worker import GENERATE_EMBEDDINGS, run_generate_embeddings, register_default_commands

__all__ = [
    "Job",
    "JobProgress",
    "JobStats",
    "JobStatus",
    "JobEvents",
    "JOB_UPDATED",
    "JobStore",
    "CommandRegistry",
    "UnitOfWork",
    "JobManager",
    "current_job_id",
    "GENERATE_EMBEDDINGS",
    "run_generate_embeddings",
    "register_default_commands",
]
