"""Full and project-scoped search reindexing.

Provides:
- Job progress / log reporting (Redis-backed for ARQ jobs)
- Monotonic progress tracking over pre-counted documents
- The reindex orchestrator run by the ARQ worker

Progress model: 0 at start, 5 while indices are initialised, 10 once
documents are counted, then 10 + processed/total * 80 (never above 90 and
never decreasing), and 100 only after every project finished.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from elasticsearch import AsyncElasticsearch
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.project import Project
from ..schemas.search import ReindexEntityType, SearchEntityType
from .index_registry import ensure_index
from .issue_sync import count_project_issues, sync_project_issues
from .milestone_sync import count_project_milestones, sync_project_milestones
from .project_sync import sync_all_projects
from .repository_case_sync import count_project_repository_cases, sync_project_repository_cases
from .search_indexing import BulkSyncResult
from .session_sync import count_project_sessions, sync_project_sessions
from .shared_step_sync import count_project_shared_step_groups, sync_project_shared_step_groups
from .test_run_sync import count_project_test_runs, sync_project_test_runs

logger = logging.getLogger(__name__)

PROGRESS_START = 0
PROGRESS_INDICES = 5
PROGRESS_COUNTED = 10
PROGRESS_SPAN = 80
PROGRESS_CEILING = 90
PROGRESS_DONE = 100


class SearchUnavailableError(RuntimeError):
    """Raised when a reindex is requested but no search backend is configured."""


# ---- Job reporting ----

class JobReporter(Protocol):
    async def update_progress(self, progress: float) -> None: ...

    async def log(self, message: str) -> None: ...


class LoggingJobReporter:
    """Reporter used outside a queued job; writes to the module logger."""

    async def update_progress(self, progress: float) -> None:
        logger.debug("Reindex progress: %.1f%%", progress)

    async def log(self, message: str) -> None:
        logger.info(message)


def progress_key(job_id: str) -> str:
    return f"search:reindex:{job_id}:progress"


def logs_key(job_id: str) -> str:
    return f"search:reindex:{job_id}:logs"


class RedisJobReporter:
    """
    Publishes job progress and log lines to Redis.

    Both keys expire with the job result, so a finished job stays
    inspectable for as long as ARQ keeps its result.
    """

    def __init__(self, redis: Any, job_id: str, ttl: int = settings.arq_reindex_keep_result) -> None:
        self._redis = redis
        self._job_id = job_id
        self._ttl = ttl

    async def update_progress(self, progress: float) -> None:
        await self._redis.set(progress_key(self._job_id), progress, ex=self._ttl)

    async def log(self, message: str) -> None:
        key = logs_key(self._job_id)
        await self._redis.rpush(key, message)
        await self._redis.expire(key, self._ttl)


def _decode(value: Any) -> Any:
    return value.decode() if isinstance(value, (bytes, bytearray)) else value


async def read_job_progress(redis: Any, job_id: str) -> tuple[float, list[str]]:
    """Current progress and log lines of a job; (0, []) when none were written."""
    raw_progress = await redis.get(progress_key(job_id))
    raw_logs = await redis.lrange(logs_key(job_id), 0, -1)
    progress = float(_decode(raw_progress)) if raw_progress is not None else 0.0
    return progress, [_decode(line) for line in raw_logs or []]


class ProgressTracker:
    """Maps processed document counts onto the 10..90 progress band."""

    def __init__(self, reporter: JobReporter) -> None:
        self._reporter = reporter
        self.total = 0
        self.processed = 0
        self.last_reported: float = PROGRESS_START

    async def set(self, progress: float) -> None:
        """Report progress, ignoring any value below the last one reported."""
        if progress < self.last_reported:
            return
        self.last_reported = progress
        await self._reporter.update_progress(progress)

    async def begin(self, total: int) -> None:
        self.total = total
        await self.set(PROGRESS_COUNTED)

    def progress_for(self, processed: int) -> float:
        if self.total <= 0:
            return PROGRESS_COUNTED
        progress = PROGRESS_COUNTED + (processed / self.total) * PROGRESS_SPAN
        return max(PROGRESS_COUNTED, min(progress, PROGRESS_CEILING))

    async def report_within(self, processed_in_step: int) -> None:
        """Report progress part way through the current step."""
        await self.set(self.progress_for(self.processed + processed_in_step))

    async def advance(self, count: int) -> None:
        """Mark a whole step of ``count`` documents as done."""
        self.processed += count
        await self.set(self.progress_for(self.processed))

    async def complete(self) -> None:
        await self.set(PROGRESS_DONE)


# ---- Per-kind backfill table ----

CountFn = Callable[[AsyncSession, int], Awaitable[int]]
ProgressCallback = Callable[[int, int, str], Awaitable[None]]
SyncFn = Callable[
    [AsyncSession, AsyncElasticsearch, int, int, Optional[ProgressCallback]],
    Awaitable[BulkSyncResult],
]


def _paged(fn: Callable[..., Awaitable[BulkSyncResult]]) -> SyncFn:
    async def run(db, es, project_id, batch_size, progress_callback):
        return await fn(db, es, project_id, batch_size=batch_size, progress_callback=progress_callback)
    return run


def _single_bulk(fn: Callable[..., Awaitable[BulkSyncResult]]) -> SyncFn:
    async def run(db, es, project_id, batch_size, progress_callback):
        return await fn(db, es, project_id)
    return run


# Processing order within a project
PROJECT_KINDS: list[tuple[ReindexEntityType, str, CountFn, SyncFn]] = [
    (ReindexEntityType.REPOSITORY_CASES, "repository cases",
     count_project_repository_cases, _paged(sync_project_repository_cases)),
    (ReindexEntityType.SHARED_STEPS, "shared steps",
     count_project_shared_step_groups, _paged(sync_project_shared_step_groups)),
    (ReindexEntityType.TEST_RUNS, "test runs", count_project_test_runs, _single_bulk(sync_project_test_runs)),
    (ReindexEntityType.SESSIONS, "sessions", count_project_sessions, _single_bulk(sync_project_sessions)),
    (ReindexEntityType.ISSUES, "issues", count_project_issues, _single_bulk(sync_project_issues)),
    (ReindexEntityType.MILESTONES, "milestones", count_project_milestones, _single_bulk(sync_project_milestones)),
]


async def _load_projects(db: AsyncSession, project_id: Optional[int]) -> list[Project]:
    query = select(Project).where(Project.is_deleted.is_(False)).order_by(Project.id)
    if project_id is not None:
        query = query.where(Project.id == project_id)
    result = await db.execute(query)
    return list(result.scalars().unique().all())


# ---- Orchestrator ----

async def run_reindex(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    entity_type: ReindexEntityType = ReindexEntityType.ALL,
    project_id: Optional[int] = None,
    reporter: Optional[JobReporter] = None,
    batch_size: int = settings.reindex_batch_size,
) -> dict[str, Any]:
    """Rebuild search documents for one kind (or all) across projects.

    Args:
        db: Session used for every read of the job.
        es: Search client; None fails the job with SearchUnavailableError.
        entity_type: Kind filter; "all" processes every kind.
        project_id: Restrict to one (non-deleted) project.
        reporter: Sink for progress and log lines.
        batch_size: Window size for paged kinds.

    Returns:
        {"success": True, "results": {kind: indexed}, "failed": {kind: failed},
         "total_documents": indexed across kinds}

    Raises:
        SearchUnavailableError: search is not configured.
        Exception: any store or backend error, after logging "Error: ..."
            to the job log.
    """
    if es is None:
        raise SearchUnavailableError("Elasticsearch is not configured or unavailable")

    entity_type = ReindexEntityType(entity_type)
    reporter = reporter or LoggingJobReporter()
    tracker = ProgressTracker(reporter)

    try:
        await tracker.set(PROGRESS_START)
        await reporter.log("Starting reindex operation...")

        if entity_type.includes(ReindexEntityType.REPOSITORY_CASES):
            await tracker.set(PROGRESS_INDICES)
            await reporter.log("Initializing Elasticsearch indexes...")
            await ensure_index(es, db, SearchEntityType.REPOSITORY_CASE)

        projects = await _load_projects(db, project_id)
        await reporter.log(f"Found {len(projects)} projects to process")

        kinds = [entry for entry in PROJECT_KINDS if entity_type.includes(entry[0])]

        # -- Counting ---
        counts: dict[int, dict[ReindexEntityType, int]] = {}
        for project in projects:
            counts[project.id] = {kind: await count_fn(db, project.id) for kind, _, count_fn, _ in kinds}
        total = sum(sum(per_kind.values()) for per_kind in counts.values())
        await reporter.log(f"Total documents to index: {total}")
        await tracker.begin(total)

        results: dict[str, int] = {kind.value: 0 for kind, _, _, _ in kinds}
        failed: dict[str, int] = {kind.value: 0 for kind, _, _, _ in kinds}

        # -- Projects ---
        if entity_type.includes(ReindexEntityType.PROJECTS):
            await reporter.log("Indexing projects...")
            outcome = await sync_all_projects(db, es)
            results[ReindexEntityType.PROJECTS.value] = outcome.indexed
            failed[ReindexEntityType.PROJECTS.value] = outcome.failed
            if not outcome:
                await reporter.log(f"Warning: {outcome.failed} projects failed to index")

        # -- Per project ---
        for project in projects:
            await reporter.log(f"Processing project: {project.name}")

            for kind, label, _, sync_fn in kinds:
                count = counts[project.id][kind]
                if count == 0:
                    continue
                await reporter.log(f"Syncing {count} {label} for project {project.name}")

                async def on_progress(processed: int, kind_total: int, message: str) -> None:
                    await tracker.report_within(processed)
                    await reporter.log(message)

                outcome = await sync_fn(db, es, project.id, batch_size, on_progress)
                results[kind.value] += outcome.indexed
                failed[kind.value] += outcome.failed
                if not outcome:
                    await reporter.log(
                        f"Warning: {outcome.failed} {label} failed to index for project {project.name}"
                    )
                await tracker.advance(count)

            await reporter.log(f"Completed project: {project.name}")

        await tracker.complete()
        await reporter.log("Reindex completed successfully!")

        total_documents = sum(results.values())
        logger.info("Reindex (%s) completed: %d documents indexed", entity_type.value, total_documents)
        return {
            "success": True,
            "results": results,
            "failed": failed,
            "total_documents": total_documents,
        }
    except Exception as e:
        logger.error("Reindex (%s) failed: %s", entity_type.value, e, exc_info=True)
        await reporter.log(f"Error: {e}")
        raise
