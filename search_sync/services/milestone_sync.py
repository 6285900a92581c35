"""Milestone documents and their sync paths."""

import logging
from typing import Any, Iterable, Optional

from elasticsearch import AsyncElasticsearch
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from ..models.milestone import Milestone
from ..schemas.search import SearchEntityType
from .content_converter import extract_step_text
from .document_fields import created_by_fields, format_iso_utc, project_fields
from .index_registry import ensure_index
from .search_indexing import (
    BulkSyncResult,
    build_searchable_content,
    bulk_index_documents,
    sync_document,
)

logger = logging.getLogger(__name__)


def milestone_load_options() -> list:
    return [
        joinedload(Milestone.project),
        joinedload(Milestone.created_by),
        joinedload(Milestone.milestone_type),
        joinedload(Milestone.parent),
    ]


def milestone_to_document(milestone: Milestone) -> dict[str, Any]:
    """Project a loaded milestone into its search document."""
    note_text = extract_step_text(milestone.note)
    docs_text = extract_step_text(milestone.docs)
    milestone_type = milestone.milestone_type
    parent = milestone.parent

    return {
        "id": milestone.id,
        **project_fields(milestone.project),
        "name": milestone.name,
        "note": note_text,
        "docs": docs_text,
        "milestoneTypeId": milestone.milestone_type_id,
        "milestoneTypeName": milestone_type.name if milestone_type is not None else None,
        "milestoneTypeIcon": (
            milestone_type.icon.name
            if milestone_type is not None and milestone_type.icon is not None
            else None
        ),
        "parentId": milestone.parent_id,
        "parentName": parent.name if parent is not None else None,
        "dueDate": format_iso_utc(milestone.due_date),
        "isCompleted": milestone.is_completed,
        "completedAt": format_iso_utc(milestone.completed_at),
        "isDeleted": milestone.is_deleted,
        "createdAt": format_iso_utc(milestone.created_at),
        **created_by_fields(milestone.created_by, milestone.created_by_id),
        "searchableContent": build_searchable_content(milestone.name, note_text, docs_text),
    }


async def build_milestone_document(db: AsyncSession, milestone_id: int) -> Optional[dict[str, Any]]:
    result = await db.execute(
        select(Milestone)
        .where(Milestone.id == milestone_id)
        .options(*milestone_load_options())
        .execution_options(populate_existing=True)
    )
    milestone = result.scalars().unique().one_or_none()
    if milestone is None:
        return None
    return milestone_to_document(milestone)


async def sync_milestone(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    milestone_id: int,
) -> bool:
    return await sync_document(es, db, SearchEntityType.MILESTONE, milestone_id, build_milestone_document)


async def bulk_sync_milestones(
    es: Optional[AsyncElasticsearch],
    milestones: Iterable[Milestone],
) -> BulkSyncResult:
    return await bulk_index_documents(es, SearchEntityType.MILESTONE, milestones, milestone_to_document)


async def get_child_milestone_ids(db: AsyncSession, milestone_id: int) -> list[int]:
    """Direct children; their parentName changes when the parent is renamed."""
    result = await db.execute(
        select(Milestone.id).where(Milestone.parent_id == milestone_id).order_by(Milestone.id)
    )
    return list(result.scalars().all())


async def count_project_milestones(db: AsyncSession, project_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(Milestone).where(Milestone.project_id == project_id)
    )
    return result.scalar_one()


async def sync_project_milestones(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    project_id: int,
) -> BulkSyncResult:
    """Backfill all of a project's milestones with a single bulk call."""
    if es is None:
        return BulkSyncResult()

    await ensure_index(es, db, SearchEntityType.MILESTONE)

    rows = await db.execute(
        select(Milestone)
        .where(Milestone.project_id == project_id)
        .order_by(Milestone.id)
        .options(*milestone_load_options())
        .execution_options(populate_existing=True)
    )
    result = await bulk_sync_milestones(es, rows.scalars().unique().all())
    logger.info("Project %s milestones synced: %d indexed, %d failed", project_id, result.indexed, result.failed)
    return result
