"""Main FastAPI application and server startup."""

import asyncio
import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Query
from fastapi.responses import StreamingResponse

from .. import __version__
from ..config.settings import Settings
from ..errors import JobNotFoundError, register_error_handlers
from ..ops.commands import CommandRegistry
from ..ops.embed_worker import register_default_commands
from ..ops.events import JOB_UPDATED
from ..ops.jobs import JobManager
from ..ops.models import JobStatus
from ..ops.store import JobStore
from ..telemetry import configure_logging
from .deps import get_job_manager, get_settings
from .games import router as games_router
from .games import stats_router
from .schemas import (
    ApiResponse,
    CleanupOut,
    DeleteOut,
    HealthOut,
    JobListOut,
    JobOut,
    JobStatsOut,
    SubmitOut,
    ok,
)

logger = structlog.get_logger(__name__)

# Seconds between store re-reads when a job stream sees no events
STREAM_POLL_SECONDS = 1.0


def build_job_manager(settings: Settings, registry: Optional[CommandRegistry] = None) -> JobManager:
    """Open the job store and register this package's commands."""
    store = JobStore(Path(settings.paths.jobs_db))
    manager = JobManager(store, registry)
    register_default_commands(manager, settings)
    return manager


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings: Settings = app.state.settings

    if getattr(app.state, "job_manager", None) is None:
        app.state.job_manager = build_job_manager(settings)
    manager: JobManager = app.state.job_manager

    if settings.jobs.fail_orphaned_on_startup:
        manager.fail_orphaned()

    logger.info("api_started", version=__version__, commands=manager.registry.names())

    yield

    await manager.shutdown(timeout=5.0)
    logger.info("api_stopped")


def create_app(
    settings: Optional[Settings] = None,
    job_manager: Optional[JobManager] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Defaults to ``Settings.from_env()``
        job_manager: Pre-built manager (tests); built from settings on startup otherwise
    """
    if settings is None:
        settings = Settings.from_env()

    app = FastAPI(
        title="Game Scout API",
        description="Background corpus commands and similarity search over game experiences",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.settings = settings
    app.state.job_manager = job_manager
    app.state.encoder = None

    register_error_handlers(app)
    app.include_router(games_router)
    app.include_router(stats_router)

    @app.get("/health", response_model=HealthOut)
    async def health(manager: JobManager = Depends(get_job_manager)):
        """Health check endpoint."""
        return HealthOut(
            status="ok",
            active_jobs=manager.active_count,
            commands=manager.registry.names(),
        )

    # ===== Commands =====

    @app.get("/commands", response_model=ApiResponse[list[str]])
    async def list_commands(manager: JobManager = Depends(get_job_manager)):
        """Names of the commands that can be started."""
        return ok(manager.registry.names())

    @app.post("/commands/{command}", response_model=ApiResponse[SubmitOut])
    async def start_command(command: str, manager: JobManager = Depends(get_job_manager)):
        """
        Start a background job for ``command``.

        Returns immediately with the job ID; poll ``/jobs/{id}`` for progress.
        """
        job_id = manager.submit(command)
        return ok(SubmitOut(jobId=job_id, message=f"Job {job_id} started for {command}").model_dump())

    # ===== Jobs =====

    @app.get("/jobs", response_model=ApiResponse[JobListOut])
    async def list_jobs(
        limit: int = Query(settings.jobs.list_limit_default, ge=1, le=settings.jobs.list_limit_max),
        offset: int = Query(0, ge=0),
        status: Optional[JobStatus] = Query(None, description="Filter by status"),
        command: Optional[str] = Query(None, description="Filter by command"),
        manager: JobManager = Depends(get_job_manager),
    ):
        """List jobs newest first, with counts per status."""
        jobs, stats = manager.list_jobs(limit=limit, offset=offset, status=status, command=command)
        return ok(JobListOut(
            jobs=[JobOut.from_job(job) for job in jobs],
            stats=JobStatsOut.from_stats(stats),
        ).model_dump())

    @app.post("/jobs/cleanup", response_model=ApiResponse[CleanupOut])
    async def cleanup_jobs(
        days: Optional[float] = Query(None, ge=0, description="Age threshold in days"),
        manager: JobManager = Depends(get_job_manager),
        settings: Settings = Depends(get_settings),
    ):
        """Delete jobs older than ``days`` (configured retention by default)."""
        if days is None:
            days = settings.jobs.retention_days
        removed = manager.cleanup(days)
        return ok({"removed": removed, "older_than_days": days})

    @app.get("/jobs/{job_id}", response_model=ApiResponse[JobOut])
    async def get_job(job_id: str, manager: JobManager = Depends(get_job_manager)):
        """Get details of a specific job by ID."""
        job = manager.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return ok(JobOut.from_job(job).model_dump())

    @app.delete("/jobs/{job_id}", response_model=ApiResponse[DeleteOut])
    async def delete_job(job_id: str, manager: JobManager = Depends(get_job_manager)):
        """Delete a job record."""
        if not manager.delete(job_id):
            raise JobNotFoundError(f"Job not found: {job_id}")
        return ok({"deleted": True})

    @app.get("/jobs/{job_id}/events")
    async def job_events(job_id: str, manager: JobManager = Depends(get_job_manager)):
        """
        Server-sent events for one job.

        Sends the current record first, then each change until the job
        reaches a terminal status.
        """
        if manager.get(job_id) is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return StreamingResponse(_event_stream(manager, job_id), media_type="text/event-stream")

    return app


async def _event_stream(
    manager: JobManager,
    job_id: str,
    poll_interval: float = STREAM_POLL_SECONDS,
) -> AsyncIterator[str]:
    """
    Yield ``jobUpdated`` frames until the job is terminal or deleted.

    Queued events only wake the loop; each frame is the record re-read from
    the store, so a dropped event can never leave the stream behind.
    """
    # Subscribe before the snapshot so no update falls in between
    queue = manager.events.open_queue(job_id)
    try:
        last = None
        job = manager.get(job_id)
        while job is not None:
            data = job.to_dict()
            if data != last:
                yield f"event: {JOB_UPDATED}\ndata: {json.dumps(data)}\n\n"
                last = data
            if job.is_terminal:
                break
            try:
                await asyncio.wait_for(queue.get(), timeout=poll_interval)
            except asyncio.TimeoutError:
                pass
            job = manager.get(job_id)
    finally:
        manager.events.close_queue(queue)


def run(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Run the API server."""
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)
    uvicorn.run("game_scout.api.main:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
