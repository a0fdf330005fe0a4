"""Request dependencies backed by ``app.state``."""

from fastapi import HTTPException, Request

from ..config.settings import Settings
from ..ops.jobs import JobManager


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_job_manager(request: Request) -> JobManager:
    """Dependency to get the job manager."""
    manager = getattr(request.app.state, "job_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Job manager not initialized")
    return manager
