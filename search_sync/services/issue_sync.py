"""Issue documents and their sync paths.

Issues are linked from external trackers and only optionally carry a
project of their own. The owning project is resolved through a fallback
chain over everything the issue is linked to; an issue that reaches no
project is never indexed.
"""

import logging
from typing import Any, Iterable, Optional

from elasticsearch import AsyncElasticsearch
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from ..models.issue import Issue
from ..models.project import Project
from ..models.repository import RepositoryCase
from ..models.session import SessionResult, TestSession
from ..models.test_run import TestRun, TestRunResult, TestRunStepResult
from ..schemas.search import SearchEntityType
from .content_converter import extract_step_text
from .document_fields import created_by_fields, format_iso_utc, project_fields
from .index_registry import ensure_index
from .search_indexing import (
    BulkSyncResult,
    DocumentAction,
    build_searchable_content,
    bulk_index_documents,
    sync_document,
)

logger = logging.getLogger(__name__)

DEFAULT_ISSUE_SYSTEM = "Unknown"


def issue_load_options() -> list:
    """Eager loads for the issue and every link the project chain walks."""
    return [
        joinedload(Issue.project),
        joinedload(Issue.created_by),
        joinedload(Issue.integration),
        selectinload(Issue.repository_cases).joinedload(RepositoryCase.project),
        selectinload(Issue.sessions).joinedload(TestSession.project),
        selectinload(Issue.test_runs).joinedload(TestRun.project),
        selectinload(Issue.session_results)
        .joinedload(SessionResult.session)
        .joinedload(TestSession.project),
        selectinload(Issue.test_run_results)
        .joinedload(TestRunResult.test_run)
        .joinedload(TestRun.project),
        selectinload(Issue.test_run_step_results)
        .joinedload(TestRunStepResult.test_run_result)
        .joinedload(TestRunResult.test_run)
        .joinedload(TestRun.project),
    ]


def resolve_issue_project(issue: Issue) -> Optional[Project]:
    """First project reachable from the issue, or None for an orphan.

    Order: direct project, first linked repository case, session, test run,
    session result, test run result, test run step result.
    """
    if issue.project is not None:
        return issue.project
    if issue.repository_cases:
        return issue.repository_cases[0].project
    if issue.sessions:
        return issue.sessions[0].project
    if issue.test_runs:
        return issue.test_runs[0].project
    if issue.session_results:
        session = issue.session_results[0].session
        return session.project if session is not None else None
    if issue.test_run_results:
        test_run = issue.test_run_results[0].test_run
        return test_run.project if test_run is not None else None
    if issue.test_run_step_results:
        test_run_result = issue.test_run_step_results[0].test_run_result
        if test_run_result is not None and test_run_result.test_run is not None:
            return test_run_result.test_run.project
    return None


def issue_to_document(issue: Issue) -> dict[str, Any]:
    """Project a loaded issue; projectId is None when no project resolves."""
    note_text = extract_step_text(issue.note)
    integration_name = issue.integration.name if issue.integration is not None else None
    data = issue.data if isinstance(issue.data, dict) else {}

    return {
        "id": issue.id,
        **project_fields(resolve_issue_project(issue)),
        "name": issue.name,
        "title": issue.title,
        "description": issue.description,
        "externalId": issue.external_id,
        "note": note_text,
        "url": data.get("url"),
        "issueSystem": integration_name or DEFAULT_ISSUE_SYSTEM,
        "isDeleted": issue.is_deleted,
        "createdAt": format_iso_utc(issue.created_at),
        **created_by_fields(issue.created_by, issue.created_by_id),
        "searchableContent": build_searchable_content(
            issue.name,
            issue.title,
            issue.description,
            issue.external_id,
            note_text,
            integration_name,
        ),
    }


def issue_policy(document: dict[str, Any]) -> DocumentAction:
    """Orphaned issues are left out of the index."""
    if document.get("projectId") is None:
        logger.warning("Issue %s (%s) has no linked project, skipping indexing", document["id"], document.get("name"))
        return DocumentAction.SKIP
    return DocumentAction.INDEX


async def build_issue_document(db: AsyncSession, issue_id: int) -> Optional[dict[str, Any]]:
    result = await db.execute(
        select(Issue)
        .where(Issue.id == issue_id)
        .options(*issue_load_options())
        .execution_options(populate_existing=True)
    )
    issue = result.scalars().unique().one_or_none()
    if issue is None:
        return None
    return issue_to_document(issue)


async def sync_issue(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    issue_id: int,
) -> bool:
    return await sync_document(es, db, SearchEntityType.ISSUE, issue_id, build_issue_document, issue_policy)


async def bulk_sync_issues(
    es: Optional[AsyncElasticsearch],
    issues: Iterable[Issue],
) -> BulkSyncResult:
    return await bulk_index_documents(es, SearchEntityType.ISSUE, issues, issue_to_document, issue_policy)


def _live_project():
    return Project.is_deleted.is_(False)


def _live_session(project_id: int):
    return and_(
        TestSession.project_id == project_id,
        TestSession.is_deleted.is_(False),
        TestSession.project.has(_live_project()),
    )


def _live_test_run(project_id: int):
    return and_(
        TestRun.project_id == project_id,
        TestRun.is_deleted.is_(False),
        TestRun.project.has(_live_project()),
    )


def project_issue_filter(project_id: int):
    """Issues owned by a project directly or through any linked entity.

    The project must not be deleted, and links through deleted sessions or
    test runs do not count.
    """
    return or_(
        and_(Issue.project_id == project_id, Issue.project.has(_live_project())),
        Issue.repository_cases.any(
            and_(RepositoryCase.project_id == project_id, RepositoryCase.project.has(_live_project()))
        ),
        Issue.sessions.any(_live_session(project_id)),
        Issue.test_runs.any(_live_test_run(project_id)),
        Issue.session_results.any(SessionResult.session.has(_live_session(project_id))),
        Issue.test_run_results.any(TestRunResult.test_run.has(_live_test_run(project_id))),
        Issue.test_run_step_results.any(
            TestRunStepResult.test_run_result.has(TestRunResult.test_run.has(_live_test_run(project_id)))
        ),
    )


async def count_project_issues(db: AsyncSession, project_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(Issue).where(project_issue_filter(project_id))
    )
    return result.scalar_one()


async def sync_project_issues(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    project_id: int,
) -> BulkSyncResult:
    """Backfill every issue reaching a project with a single bulk call."""
    if es is None:
        return BulkSyncResult()

    await ensure_index(es, db, SearchEntityType.ISSUE)

    rows = await db.execute(
        select(Issue)
        .where(project_issue_filter(project_id))
        .order_by(Issue.id)
        .options(*issue_load_options())
        .execution_options(populate_existing=True)
    )
    result = await bulk_sync_issues(es, rows.scalars().unique().all())
    logger.info(
        "Project %s issues synced: %d indexed, %d skipped, %d failed",
        project_id,
        result.indexed,
        result.skipped,
        result.failed,
    )
    return result
