"""
ARQ Worker Configuration

Runs search reindex jobs off the request path. Each job reads the store
through its own session and writes progress and log lines to Redis.

Run with:
    arq search_sync.worker.WorkerSettings
"""

import logging
from typing import Any, Optional

from arq.connections import RedisSettings

from .config import settings
from .database import async_session_maker
from .schemas.search import ReindexEntityType
from .services.elasticsearch_client import close_elasticsearch_client, create_elasticsearch_client
from .services.reindex_service import RedisJobReporter, run_reindex

logger = logging.getLogger(__name__)

# Parse Redis URL into components for ARQ
# Format: redis://host:port/db or redis://:password@host:port/db
def parse_redis_url(url: str) -> RedisSettings:
    """Parse Redis URL into ARQ RedisSettings."""
    from urllib.parse import urlparse

    parsed = urlparse(url)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        password=parsed.password,
        database=int(parsed.path.lstrip("/") or 0),
    )


# =============================================================================
# Reindex Jobs
# =============================================================================

async def reindex_search_indices(
    ctx: dict[str, Any],
    entity_type: str = ReindexEntityType.ALL.value,
    project_id: Optional[int] = None,
) -> dict[str, Any]:
    """
    Rebuild search documents.

    Args:
        entity_type: "all" or one ReindexEntityType value
        project_id: Restrict to a single project

    Returns:
        dict with per-kind indexed/failed counts and the total
    """
    job_id = ctx.get("job_id", "local")
    logger.info(
        "Reindex job %s started (entity_type=%s, project_id=%s, try=%s)",
        job_id,
        entity_type,
        project_id,
        ctx.get("job_try", 1),
    )

    reporter = RedisJobReporter(ctx["redis"], job_id)
    async with async_session_maker() as db:
        result = await run_reindex(
            db,
            ctx.get("es"),
            entity_type=ReindexEntityType(entity_type),
            project_id=project_id,
            reporter=reporter,
            batch_size=settings.reindex_batch_size,
        )

    logger.info("Reindex job %s completed: %d documents", job_id, result["total_documents"])
    return result


# =============================================================================
# Lifecycle
# =============================================================================

async def startup(ctx: dict[str, Any]) -> None:
    """Build the search client shared by every job of this worker."""
    ctx["es"] = create_elasticsearch_client(settings)
    logger.info("Reindex worker started (search %s)", "enabled" if ctx["es"] is not None else "disabled")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Close the search client."""
    await close_elasticsearch_client(ctx.get("es"))
    logger.info("Reindex worker stopped")


# =============================================================================
# Worker Settings
# =============================================================================

class WorkerSettings:
    """ARQ worker configuration."""

    # Redis connection
    redis_settings = parse_redis_url(settings.redis_url)

    # Job functions that can be called via arq.enqueue_job()
    functions = [
        reindex_search_indices,
    ]

    # Lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown

    # Worker behavior
    max_jobs = settings.arq_reindex_max_jobs  # Two reindex jobs at a time
    job_timeout = settings.arq_reindex_job_timeout  # Wall-clock cap; a healthy backfill may run for hours
    max_tries = settings.arq_reindex_max_tries  # One retry after a crashed run
    keep_result = settings.arq_reindex_keep_result

    # Health check
    health_check_interval = 30
