"""Pydantic schemas and enums for search indexing and reindex jobs."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SearchEntityType(str, Enum):
    """Searchable entity kinds. Each kind owns exactly one index."""

    REPOSITORY_CASE = "repository_case"
    SHARED_STEP = "shared_step"
    TEST_RUN = "test_run"
    SESSION = "session"
    PROJECT = "project"
    ISSUE = "issue"
    MILESTONE = "milestone"


class ReindexEntityType(str, Enum):
    """Entity filter accepted by a reindex job."""

    ALL = "all"
    REPOSITORY_CASES = "repositoryCases"
    SHARED_STEPS = "sharedSteps"
    TEST_RUNS = "testRuns"
    SESSIONS = "sessions"
    ISSUES = "issues"
    MILESTONES = "milestones"
    PROJECTS = "projects"

    def includes(self, kind: "ReindexEntityType") -> bool:
        """True when a job filtered on self must process kind."""
        return self is ReindexEntityType.ALL or self is kind


class ReindexRequest(BaseModel):
    """Schema for triggering a reindex job."""

    entity_type: ReindexEntityType = Field(
        ReindexEntityType.ALL,
        description="Entity kind to reindex, or 'all'",
        examples=["all", "repositoryCases"],
    )
    project_id: Optional[int] = Field(
        None,
        ge=1,
        description="Restrict the reindex to one project",
    )


class ReindexJobResponse(BaseModel):
    """Schema returned when a reindex job is queued."""

    job_id: str = Field(..., description="ARQ job id")
    status: str = Field(..., description="Job status at enqueue time")


class ReindexJobStatus(BaseModel):
    """Progress snapshot of a reindex job."""

    job_id: str
    status: str
    progress: float = Field(0, ge=0, le=100, description="Completion percentage")
    logs: list[str] = Field(default_factory=list, description="Human-readable log lines")
    result: Optional[dict] = Field(None, description="Job result once complete")


class SearchHealthResponse(BaseModel):
    """Search backend health summary."""

    status: str = Field(..., description="'healthy', 'degraded' or 'disabled'")
    indices: dict[str, Optional[int]] = Field(
        default_factory=dict,
        description="Document count per index (null when the index is missing)",
    )
