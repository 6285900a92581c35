"""Shared step group documents and their sync paths."""

import logging
from typing import Any, Iterable, Optional

from elasticsearch import AsyncElasticsearch
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from ..models.shared_step import SharedStepGroup
from ..schemas.search import SearchEntityType
from .content_converter import extract_step_text
from .document_fields import created_by_fields, format_iso_utc, project_fields
from .index_registry import ensure_index
from .repository_case_sync import DEFAULT_BATCH_SIZE, ProgressCallback
from .search_indexing import (
    BulkSyncResult,
    build_searchable_content,
    bulk_index_documents,
    sync_document,
)

logger = logging.getLogger(__name__)


def shared_step_load_options() -> list:
    return [
        joinedload(SharedStepGroup.project),
        joinedload(SharedStepGroup.created_by),
        selectinload(SharedStepGroup.items),
    ]


def shared_step_to_document(group: SharedStepGroup) -> dict[str, Any]:
    """Project a loaded shared step group into its search document."""
    items = [
        {
            "id": item.id,
            "order": item.order,
            "step": extract_step_text(item.step),
            "expectedResult": extract_step_text(item.expected_result),
        }
        for item in group.items
    ]
    return {
        "id": group.id,
        **project_fields(group.project),
        "name": group.name,
        "items": items,
        "isDeleted": group.is_deleted,
        "createdAt": format_iso_utc(group.created_at),
        **created_by_fields(group.created_by, group.created_by_id),
        "searchableContent": build_searchable_content(
            group.name,
            [item["step"] for item in items],
            [item["expectedResult"] for item in items],
        ),
    }


async def build_shared_step_document(db: AsyncSession, group_id: int) -> Optional[dict[str, Any]]:
    result = await db.execute(
        select(SharedStepGroup)
        .where(SharedStepGroup.id == group_id)
        .options(*shared_step_load_options())
        .execution_options(populate_existing=True)
    )
    group = result.scalars().unique().one_or_none()
    if group is None:
        return None
    return shared_step_to_document(group)


async def sync_shared_step_group(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    group_id: int,
) -> bool:
    return await sync_document(es, db, SearchEntityType.SHARED_STEP, group_id, build_shared_step_document)


async def bulk_sync_shared_step_groups(
    es: Optional[AsyncElasticsearch],
    groups: Iterable[SharedStepGroup],
) -> BulkSyncResult:
    return await bulk_index_documents(es, SearchEntityType.SHARED_STEP, groups, shared_step_to_document)


async def count_project_shared_step_groups(db: AsyncSession, project_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(SharedStepGroup).where(SharedStepGroup.project_id == project_id)
    )
    return result.scalar_one()


async def sync_project_shared_step_groups(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    project_id: int,
    batch_size: int = DEFAULT_BATCH_SIZE,
    progress_callback: Optional[ProgressCallback] = None,
) -> BulkSyncResult:
    """Backfill a project's shared step groups ``batch_size`` at a time."""
    result = BulkSyncResult()
    if es is None:
        return result

    await ensure_index(es, db, SearchEntityType.SHARED_STEP)

    total = await count_project_shared_step_groups(db, project_id)
    if progress_callback is not None:
        await progress_callback(0, total, f"Starting sync of {total} shared step groups")

    processed = 0
    while processed < total:
        rows = await db.execute(
            select(SharedStepGroup)
            .where(SharedStepGroup.project_id == project_id)
            .order_by(SharedStepGroup.id)
            .offset(processed)
            .limit(batch_size)
            .options(*shared_step_load_options())
            .execution_options(populate_existing=True)
        )
        groups = rows.scalars().unique().all()
        if not groups:
            break

        result.merge(await bulk_sync_shared_step_groups(es, groups))
        processed += len(groups)
        if progress_callback is not None:
            await progress_callback(processed, total, f"Synced {processed}/{total} shared step groups")

    logger.info(
        "Project %s shared step groups synced: %d indexed, %d failed",
        project_id,
        result.indexed,
        result.failed,
    )
    return result
