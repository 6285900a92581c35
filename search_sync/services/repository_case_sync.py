"""Repository case documents and their sync paths.

A repository case document flattens the case with its folder path,
template, workflow state, tags, steps (shared step groups expanded inline)
and custom field values. Archived cases are kept out of the index.
"""

import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from elasticsearch import AsyncElasticsearch
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from ..models.repository import RepositoryCase, RepositoryCaseStep, RepositoryFolder
from ..models.shared_step import SharedStepGroup
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
    DocumentAction,
    build_searchable_content,
    bulk_index_documents,
    sync_document,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], Awaitable[None]]

# Expanded shared step items get id = step.id * stride + item index
SHARED_STEP_ID_STRIDE = 1000

DEFAULT_BATCH_SIZE = 100


def repository_case_load_options() -> list:
    """Eager-load options covering every relation the document reads."""
    return [
        joinedload(RepositoryCase.project),
        joinedload(RepositoryCase.template),
        joinedload(RepositoryCase.state),
        joinedload(RepositoryCase.creator),
        selectinload(RepositoryCase.tags),
        selectinload(RepositoryCase.steps)
        .selectinload(RepositoryCaseStep.shared_step_group)
        .selectinload(SharedStepGroup.items),
        selectinload(RepositoryCase.case_field_values),
    ]


# ---- Folder path ----

async def build_folder_path(db: AsyncSession, folder_id: Optional[int]) -> str:
    """Slash-joined folder names from the root down to ``folder_id``.

    Returns "/" when the case has no folder or the folder is gone. A parent
    cycle stops the walk at the first repeated folder.
    """
    if folder_id is None:
        return "/"

    names: list[str] = []
    seen: set[int] = set()
    current_id: Optional[int] = folder_id

    while current_id is not None:
        if current_id in seen:
            logger.warning("Folder parent cycle detected at folder %s (starting from %s)", current_id, folder_id)
            break
        seen.add(current_id)

        folder = await db.get(RepositoryFolder, current_id, populate_existing=True)
        if folder is None:
            break
        names.append(folder.name)
        current_id = folder.parent_id

    if not names:
        return "/"
    return "/" + "/".join(reversed(names))


async def build_folder_paths(db: AsyncSession, cases: Iterable[RepositoryCase]) -> dict[Optional[int], str]:
    """Folder path per distinct folder id of ``cases``."""
    paths: dict[Optional[int], str] = {}
    for case in cases:
        if case.folder_id not in paths:
            paths[case.folder_id] = await build_folder_path(db, case.folder_id)
    return paths


# ---- Steps ----

def expand_steps(steps: Iterable[RepositoryCaseStep]) -> list[dict[str, Any]]:
    """Flatten case steps, replacing shared step references with their items."""
    expanded: list[dict[str, Any]] = []
    for step in steps:
        if step.is_deleted:
            continue

        group = step.shared_step_group
        if step.shared_step_group_id is not None and group is not None:
            items = list(group.items)
            if len(items) >= SHARED_STEP_ID_STRIDE:
                logger.warning(
                    "Shared step group %s has %d items; expanded ids for step %s may collide",
                    group.id,
                    len(items),
                    step.id,
                )
            for index, item in enumerate(items):
                expanded.append({
                    "id": step.id * SHARED_STEP_ID_STRIDE + index,
                    "order": step.order,
                    "step": extract_step_text(item.step),
                    "expectedResult": extract_step_text(item.expected_result),
                    "isSharedStep": True,
                    "sharedStepGroupId": step.shared_step_group_id,
                    "sharedStepGroupName": group.name,
                })
            continue

        expanded.append({
            "id": step.id,
            "order": step.order,
            "step": extract_step_text(step.step),
            "expectedResult": extract_step_text(step.expected_result),
            "isSharedStep": False,
            "sharedStepGroupId": None,
            "sharedStepGroupName": None,
        })
    return expanded


def _step_content(steps: list[dict[str, Any]]) -> list[str]:
    return [
        build_searchable_content(step["step"], step["expectedResult"], step["sharedStepGroupName"])
        for step in steps
    ]


# ---- Document projection ----

def repository_case_to_document(case: RepositoryCase, folder_path: str = "/") -> dict[str, Any]:
    """Project a fully loaded repository case into its search document."""
    tags = tag_documents(case.tags)
    steps = expand_steps(case.steps)
    custom_fields = build_custom_field_documents(case.case_field_values)

    return {
        "id": case.id,
        **project_fields(case.project),
        "repositoryId": case.repository_id,
        "folderId": case.folder_id,
        "folderPath": folder_path,
        "templateId": case.template_id,
        "templateName": case.template.template_name if case.template is not None else None,
        "name": case.name,
        "className": case.class_name,
        "source": case.source,
        **state_fields(case.state, case.state_id),
        "estimate": case.estimate,
        "forecastManual": case.forecast_manual,
        "forecastAutomated": case.forecast_automated,
        "automated": case.automated,
        "isArchived": case.is_archived,
        "isDeleted": case.is_deleted,
        "createdAt": format_iso_utc(case.created_at),
        **created_by_fields(case.creator, case.creator_id),
        "tags": tags,
        "steps": steps,
        "customFields": custom_fields,
        "searchableContent": build_searchable_content(
            case.name,
            case.class_name,
            [tag["name"] for tag in tags],
            _step_content(steps),
            [field["value"] for field in custom_fields],
        ),
    }


def repository_case_policy(document: dict[str, Any]) -> DocumentAction:
    """Archived cases are removed from the index."""
    return DocumentAction.DELETE if document.get("isArchived") else DocumentAction.INDEX


async def build_repository_case_document(db: AsyncSession, case_id: int) -> Optional[dict[str, Any]]:
    """Load one case with its relations and project it; None when gone."""
    result = await db.execute(
        select(RepositoryCase)
        .where(RepositoryCase.id == case_id)
        .options(*repository_case_load_options())
        .execution_options(populate_existing=True)
    )
    case = result.scalars().unique().one_or_none()
    if case is None:
        return None

    folder_path = await build_folder_path(db, case.folder_id)
    return repository_case_to_document(case, folder_path)


# ---- Sync ----

async def sync_repository_case(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    case_id: int,
) -> bool:
    """Bring one case's document in line with the store. Never raises."""
    return await sync_document(
        es,
        db,
        SearchEntityType.REPOSITORY_CASE,
        case_id,
        build_repository_case_document,
        repository_case_policy,
    )


async def bulk_sync_repository_cases(
    es: Optional[AsyncElasticsearch],
    cases: Iterable[RepositoryCase],
    folder_paths: dict[Optional[int], str],
) -> BulkSyncResult:
    """Index loaded cases in one bulk call; archived cases are skipped."""
    return await bulk_index_documents(
        es,
        SearchEntityType.REPOSITORY_CASE,
        cases,
        lambda case: repository_case_to_document(case, folder_paths.get(case.folder_id, "/")),
        repository_case_policy,
    )


def _project_cases_filter(project_id: int) -> list:
    return [
        RepositoryCase.project_id == project_id,
        RepositoryCase.is_archived.is_(False),
    ]


async def count_project_repository_cases(db: AsyncSession, project_id: int) -> int:
    """Cases a project backfill will visit (non-archived, deleted included)."""
    result = await db.execute(
        select(func.count()).select_from(RepositoryCase).where(*_project_cases_filter(project_id))
    )
    return result.scalar_one()


async def sync_project_repository_cases(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    project_id: int,
    batch_size: int = DEFAULT_BATCH_SIZE,
    progress_callback: Optional[ProgressCallback] = None,
) -> BulkSyncResult:
    """Backfill every non-archived case of a project in id order.

    Cases are loaded and indexed ``batch_size`` at a time; the callback
    receives (processed, total, message) once before the first window and
    after each one. A failed window does not stop the remaining ones.
    """
    result = BulkSyncResult()
    if es is None:
        return result

    await ensure_index(es, db, SearchEntityType.REPOSITORY_CASE)

    total = await count_project_repository_cases(db, project_id)
    if progress_callback is not None:
        await progress_callback(0, total, f"Starting sync of {total} cases")

    processed = 0
    while processed < total:
        rows = await db.execute(
            select(RepositoryCase)
            .where(*_project_cases_filter(project_id))
            .order_by(RepositoryCase.id)
            .offset(processed)
            .limit(batch_size)
            .options(*repository_case_load_options())
            .execution_options(populate_existing=True)
        )
        cases = rows.scalars().unique().all()
        if not cases:
            break

        folder_paths = await build_folder_paths(db, cases)
        result.merge(await bulk_sync_repository_cases(es, cases, folder_paths))

        processed += len(cases)
        if progress_callback is not None:
            await progress_callback(processed, total, f"Synced {processed}/{total} cases")

    logger.info(
        "Project %s repository cases synced: %d indexed, %d skipped, %d failed",
        project_id,
        result.indexed,
        result.skipped,
        result.failed,
    )
    return result
