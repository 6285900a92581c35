"""Project documents and their sync paths.

Project documents carry no projectId fields of their own; every other
entity copies projectName and projectIconUrl from here, so a rename has
to resync the project's whole document set (see search_sync_hooks).
"""

import logging
from typing import Any, Iterable, Optional

from elasticsearch import AsyncElasticsearch
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from ..models.project import Project
from ..schemas.search import SearchEntityType
from .content_converter import extract_step_text
from .document_fields import created_by_fields, format_iso_utc
from .index_registry import ensure_index
from .search_indexing import (
    BulkSyncResult,
    build_searchable_content,
    bulk_index_documents,
    sync_document,
)

logger = logging.getLogger(__name__)


def project_to_document(project: Project) -> dict[str, Any]:
    """Project a loaded project row into its search document."""
    note_text = extract_step_text(project.note)
    docs_text = extract_step_text(project.docs)
    return {
        "id": project.id,
        "name": project.name,
        "iconUrl": project.icon_url,
        "note": note_text,
        "docs": docs_text,
        "isDeleted": project.is_deleted,
        "createdAt": format_iso_utc(project.created_at),
        **created_by_fields(project.creator, project.created_by),
        "searchableContent": build_searchable_content(project.name, note_text, docs_text),
    }


async def build_project_document(db: AsyncSession, project_id: int) -> Optional[dict[str, Any]]:
    result = await db.execute(
        select(Project)
        .where(Project.id == project_id)
        .options(joinedload(Project.creator))
        .execution_options(populate_existing=True)
    )
    project = result.scalars().unique().one_or_none()
    if project is None:
        return None
    return project_to_document(project)


async def sync_project(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    project_id: int,
) -> bool:
    return await sync_document(es, db, SearchEntityType.PROJECT, project_id, build_project_document)


async def bulk_sync_projects(
    es: Optional[AsyncElasticsearch],
    projects: Iterable[Project],
) -> BulkSyncResult:
    return await bulk_index_documents(es, SearchEntityType.PROJECT, projects, project_to_document)


async def sync_all_projects(db: AsyncSession, es: Optional[AsyncElasticsearch]) -> BulkSyncResult:
    """Index every project, soft-deleted ones included, in one bulk call."""
    if es is None:
        return BulkSyncResult()

    await ensure_index(es, db, SearchEntityType.PROJECT)

    rows = await db.execute(
        select(Project)
        .order_by(Project.id)
        .options(joinedload(Project.creator))
        .execution_options(populate_existing=True)
    )
    result = await bulk_sync_projects(es, rows.scalars().unique().all())
    logger.info("Projects synced: %d indexed, %d failed", result.indexed, result.failed)
    return result
