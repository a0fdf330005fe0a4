"""
Pydantic schemas for FastAPI endpoints.

Every response is wrapped in ``{"success": true, "data": ...}``; failures
are ``{"success": false, "message": ...}`` (see errors.py).
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from ..corpus import CorpusStats
from ..ops.models import Job, JobStats

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope."""

    success: bool = Field(default=True, description="Always true for successful responses")
    data: T


def ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


# ===== Jobs =====


class JobProgressOut(BaseModel):
    current: int = Field(..., description="Units of work done so far")
    total: int = Field(..., description="Units of work expected")
    message: Optional[str] = Field(default=None, description="Latest progress message")


class JobOut(BaseModel):
    """Full job record."""

    id: str = Field(..., description="Job ID")
    command: str = Field(..., description="Command the job runs")
    status: str = Field(..., description="Job status: pending, running, completed, failed")
    progress: Optional[JobProgressOut] = Field(default=None, description="Progress, once reported")
    result: Any = Field(default=None, description="Command payload (completed jobs only)")
    error: Optional[str] = Field(default=None, description="Failure description (failed jobs only)")
    created_at: str = Field(..., description="ISO timestamp when the job was created")
    started_at: Optional[str] = Field(default=None, description="ISO timestamp when the job started")
    completed_at: Optional[str] = Field(default=None, description="ISO timestamp when the job finished")

    @classmethod
    def from_job(cls, job: Job) -> "JobOut":
        return cls(**job.to_dict())


class JobStatsOut(BaseModel):
    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0

    @classmethod
    def from_stats(cls, stats: JobStats) -> "JobStatsOut":
        return cls(**stats.to_dict())


class JobListOut(BaseModel):
    jobs: List[JobOut] = Field(..., description="Matching jobs, newest first")
    stats: JobStatsOut = Field(..., description="Counts per status over all jobs")


class SubmitOut(BaseModel):
    """Response for a started command."""

    jobId: str = Field(..., description="Job ID for polling")
    message: str = Field(..., description="Status message")
    status: str = Field(default="pending", description="Initial job status")


class DeleteOut(BaseModel):
    deleted: bool


class CleanupOut(BaseModel):
    removed: int = Field(..., description="Number of jobs deleted")
    older_than_days: float


# ===== Games =====


class GameOut(BaseModel):
    universeId: int
    rootPlaceId: int
    name: str
    description: Optional[str] = None
    gameplayDescription: Optional[str] = None


class SimilarGameOut(GameOut):
    similarity: float = Field(..., description="Cosine similarity, popularity-weighted if requested")


class SearchHitOut(GameOut):
    matchType: str = Field(..., description="title, description or gameplayDescription")
    relevanceScore: float


class CorpusStatsOut(BaseModel):
    totalGames: int
    gamesLackingDescriptions: int
    gamesLackingGameplayDescriptions: int
    gamesLackingEmbeddings: int

    @classmethod
    def from_stats(cls, stats: CorpusStats) -> "CorpusStatsOut":
        return cls(
            totalGames=stats.total_games,
            gamesLackingDescriptions=stats.games_lacking_descriptions,
            gamesLackingGameplayDescriptions=stats.games_lacking_gameplay_descriptions,
            gamesLackingEmbeddings=stats.games_lacking_embeddings,
        )


class HealthOut(BaseModel):
    status: str = Field(..., description="Service status")
    active_jobs: int = Field(default=0, description="Jobs currently in flight")
    commands: List[str] = Field(default_factory=list, description="Registered commands")
