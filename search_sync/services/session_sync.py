"""Exploratory session documents and their sync paths."""

import logging
from typing import Any, Iterable, Optional

from elasticsearch import AsyncElasticsearch
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from ..models.session import TestSession
from ..schemas.search import SearchEntityType
from .content_converter import extract_step_text
from .custom_field_transformer import build_custom_field_documents
from .document_fields import (
    created_by_fields,
    format_iso_utc,
    project_fields,
    state_fields,
    tag_documents,
)
from .index_registry import ensure_index
from .search_indexing import (
    BulkSyncResult,
    build_searchable_content,
    bulk_index_documents,
    sync_document,
)

logger = logging.getLogger(__name__)


def session_load_options() -> list:
    return [
        joinedload(TestSession.project),
        joinedload(TestSession.template),
        joinedload(TestSession.configuration),
        joinedload(TestSession.milestone),
        joinedload(TestSession.state),
        joinedload(TestSession.assigned_to),
        joinedload(TestSession.created_by),
        selectinload(TestSession.tags),
        selectinload(TestSession.session_field_values),
    ]


def session_to_document(session: TestSession) -> dict[str, Any]:
    """Project a loaded session into its search document."""
    note_text = extract_step_text(session.note)
    mission_text = extract_step_text(session.mission)
    tags = tag_documents(session.tags)
    custom_fields = build_custom_field_documents(session.session_field_values)
    assignee = session.assigned_to

    return {
        "id": session.id,
        **project_fields(session.project),
        "templateId": session.template_id,
        "templateName": session.template.template_name if session.template is not None else None,
        "name": session.name,
        "note": note_text,
        "mission": mission_text,
        "configId": session.config_id,
        "configurationName": session.configuration.name if session.configuration is not None else None,
        "milestoneId": session.milestone_id,
        "milestoneName": session.milestone.name if session.milestone is not None else None,
        **state_fields(session.state, session.state_id),
        "assignedToId": session.assigned_to_id,
        "assignedToName": assignee.name if assignee is not None else None,
        "assignedToImage": assignee.image if assignee is not None else None,
        "estimate": session.estimate,
        "forecastManual": session.forecast_manual,
        "forecastAutomated": session.forecast_automated,
        "elapsed": session.elapsed,
        "isCompleted": session.is_completed,
        "isDeleted": session.is_deleted,
        "completedAt": format_iso_utc(session.completed_at),
        "createdAt": format_iso_utc(session.created_at),
        **created_by_fields(session.created_by, session.created_by_id),
        "tags": tags,
        "customFields": custom_fields,
        "searchableContent": build_searchable_content(
            session.name,
            note_text,
            mission_text,
            [tag["name"] for tag in tags],
            [field["value"] for field in custom_fields],
        ),
    }


async def build_session_document(db: AsyncSession, session_id: int) -> Optional[dict[str, Any]]:
    result = await db.execute(
        select(TestSession)
        .where(TestSession.id == session_id)
        .options(*session_load_options())
        .execution_options(populate_existing=True)
    )
    session = result.scalars().unique().one_or_none()
    if session is None:
        return None
    return session_to_document(session)


async def sync_session(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    session_id: int,
) -> bool:
    return await sync_document(es, db, SearchEntityType.SESSION, session_id, build_session_document)


async def bulk_sync_sessions(
    es: Optional[AsyncElasticsearch],
    sessions: Iterable[TestSession],
) -> BulkSyncResult:
    return await bulk_index_documents(es, SearchEntityType.SESSION, sessions, session_to_document)


async def count_project_sessions(db: AsyncSession, project_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(TestSession).where(TestSession.project_id == project_id)
    )
    return result.scalar_one()


async def sync_project_sessions(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    project_id: int,
) -> BulkSyncResult:
    """Backfill all of a project's sessions with a single bulk call."""
    if es is None:
        return BulkSyncResult()

    await ensure_index(es, db, SearchEntityType.SESSION)

    rows = await db.execute(
        select(TestSession)
        .where(TestSession.project_id == project_id)
        .order_by(TestSession.id)
        .options(*session_load_options())
        .execution_options(populate_existing=True)
    )
    result = await bulk_sync_sessions(es, rows.scalars().unique().all())
    logger.info("Project %s sessions synced: %d indexed, %d failed", project_id, result.indexed, result.failed)
    return result
