"""Search administration API endpoints.

Queues reindex jobs on the ARQ worker, reports their progress and
exposes backend health.
"""

import logging
from typing import Any, Optional

from arq.connections import ArqRedis
from arq.jobs import Job, JobStatus
from elasticsearch import AsyncElasticsearch
from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..schemas.search import (
    ReindexJobResponse,
    ReindexJobStatus,
    ReindexRequest,
    SearchHealthResponse,
)
from ..services.elasticsearch_client import check_search_health
from ..services.reindex_service import read_job_progress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/search", tags=["search-admin"])

REINDEX_JOB_FUNCTION = "reindex_search_indices"


def get_search_client(request: Request) -> Optional[AsyncElasticsearch]:
    """Search client built by the application lifespan (None = disabled)."""
    return getattr(request.app.state, "es", None)


def get_arq_pool(request: Request) -> Optional[ArqRedis]:
    """ARQ Redis pool opened by the application lifespan."""
    return getattr(request.app.state, "arq_pool", None)


@router.post("/reindex", response_model=ReindexJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_reindex(
    body: ReindexRequest,
    es: Optional[AsyncElasticsearch] = Depends(get_search_client),
    pool: Optional[ArqRedis] = Depends(get_arq_pool),
):
    """Queue a reindex job for one entity kind (or all), optionally one project."""
    if es is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Elasticsearch is not configured")
    if pool is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Job queue is not available")

    job = await pool.enqueue_job(REINDEX_JOB_FUNCTION, body.entity_type.value, body.project_id)
    if job is None:
        raise HTTPException(status.HTTP_409_CONFLICT, "A reindex job with this id already exists")

    logger.info(
        "Queued reindex job %s (entity_type=%s, project_id=%s)",
        job.job_id,
        body.entity_type.value,
        body.project_id,
    )
    return ReindexJobResponse(job_id=job.job_id, status=JobStatus.queued.value)


@router.get("/reindex/{job_id}", response_model=ReindexJobStatus)
async def get_reindex_status(
    job_id: str,
    pool: Optional[ArqRedis] = Depends(get_arq_pool),
):
    """Progress, log lines and (once finished) result of a reindex job."""
    if pool is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Job queue is not available")

    job = Job(job_id, redis=pool)
    job_status = await job.status()
    if job_status == JobStatus.not_found:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Reindex job not found")

    progress, logs = await read_job_progress(pool, job_id)

    result: Optional[dict[str, Any]] = None
    if job_status == JobStatus.complete:
        info = await job.result_info()
        if info is not None:
            result = info.result if info.success else {"success": False, "error": str(info.result)}

    return ReindexJobStatus(
        job_id=job_id,
        status=job_status.value,
        progress=progress,
        logs=logs,
        result=result,
    )


@router.get("/health", response_model=SearchHealthResponse)
async def search_health(es: Optional[AsyncElasticsearch] = Depends(get_search_client)):
    """Backend reachability and per-index document counts."""
    return SearchHealthResponse(**await check_search_health(es))
