"""Entity sync dispatch and cascade tables.

Each document kind maps to its single-document sync function. Rows whose
fields are copied into other documents map to a query for those documents.
"""

import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from elasticsearch import AsyncElasticsearch
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.issue import Integration, Issue
from ..models.milestone import Milestone, MilestoneType
from ..models.project import Project
from ..models.repository import RepositoryCase, RepositoryFolder
from ..models.session import TestSession
from ..models.shared_step import SharedStepGroup
from ..models.tag import Tag, repository_case_tags, session_tags, test_run_tags
from ..models.test_run import TestRun
from ..models.user import User
from ..models.workflow import Configuration, Template, Workflow
from ..schemas.search import SearchEntityType
from .issue_sync import project_issue_filter, sync_issue
from .milestone_sync import get_child_milestone_ids, sync_milestone
from .project_sync import sync_project
from .repository_case_sync import sync_repository_case
from .session_sync import sync_session
from .shared_step_sync import sync_shared_step_group
from .test_run_sync import sync_test_run

logger = logging.getLogger(__name__)

EntitySyncFn = Callable[[AsyncSession, Optional[AsyncElasticsearch], int], Awaitable[bool]]

ENTITY_SYNC_FUNCTIONS: dict[SearchEntityType, EntitySyncFn] = {
    SearchEntityType.REPOSITORY_CASE: sync_repository_case,
    SearchEntityType.SHARED_STEP: sync_shared_step_group,
    SearchEntityType.TEST_RUN: sync_test_run,
    SearchEntityType.SESSION: sync_session,
    SearchEntityType.PROJECT: sync_project,
    SearchEntityType.ISSUE: sync_issue,
    SearchEntityType.MILESTONE: sync_milestone,
}

SyncTarget = tuple[SearchEntityType, int]


async def sync_entity(
    db: AsyncSession,
    es: Optional[AsyncElasticsearch],
    entity_type: SearchEntityType,
    entity_id: int,
) -> bool:
    """Sync one entity of any kind."""
    return await ENTITY_SYNC_FUNCTIONS[entity_type](db, es, entity_id)


# ---- Cascades ----

CascadeFn = Callable[[AsyncSession, Any], Awaitable[list[SyncTarget]]]


async def _collect_targets(db: AsyncSession, sources: Iterable[tuple]) -> list[SyncTarget]:
    """(kind, id column, condition) triples to sync targets, ordered by id per kind."""
    targets: list[SyncTarget] = []
    for entity_type, id_column, condition in sources:
        result = await db.execute(select(id_column).where(condition).order_by(id_column))
        targets.extend((entity_type, entity_id) for entity_id in result.scalars().all())
    return targets


async def milestone_cascade_targets(db: AsyncSession, milestone_id: int) -> list[SyncTarget]:
    """Child milestones embed their parent's name."""
    return [(SearchEntityType.MILESTONE, child_id) for child_id in await get_child_milestone_ids(db, milestone_id)]


async def project_cascade_targets(db: AsyncSession, project_id: int) -> list[SyncTarget]:
    """Every document embedding the project's name or icon."""
    return await _collect_targets(db, (
        (SearchEntityType.REPOSITORY_CASE, RepositoryCase.id, RepositoryCase.project_id == project_id),
        (SearchEntityType.SHARED_STEP, SharedStepGroup.id, SharedStepGroup.project_id == project_id),
        (SearchEntityType.TEST_RUN, TestRun.id, TestRun.project_id == project_id),
        (SearchEntityType.SESSION, TestSession.id, TestSession.project_id == project_id),
        (SearchEntityType.MILESTONE, Milestone.id, Milestone.project_id == project_id),
        (SearchEntityType.ISSUE, Issue.id, project_issue_filter(project_id)),
    ))


async def folder_cascade_targets(db: AsyncSession, folder_id: int) -> list[SyncTarget]:
    """Cases in the folder or below it; their folderPath spells out its name."""
    folder_ids = [folder_id]
    seen = {folder_id}
    frontier = [folder_id]
    while frontier:
        result = await db.execute(select(RepositoryFolder.id).where(RepositoryFolder.parent_id.in_(frontier)))
        frontier = [child_id for child_id in result.scalars().all() if child_id not in seen]
        seen.update(frontier)
        folder_ids.extend(frontier)

    return await _collect_targets(db, (
        (SearchEntityType.REPOSITORY_CASE, RepositoryCase.id, RepositoryCase.folder_id.in_(folder_ids)),
    ))


async def workflow_cascade_targets(db: AsyncSession, workflow_id: int) -> list[SyncTarget]:
    return await _collect_targets(db, (
        (SearchEntityType.REPOSITORY_CASE, RepositoryCase.id, RepositoryCase.state_id == workflow_id),
        (SearchEntityType.TEST_RUN, TestRun.id, TestRun.state_id == workflow_id),
        (SearchEntityType.SESSION, TestSession.id, TestSession.state_id == workflow_id),
    ))


async def template_cascade_targets(db: AsyncSession, template_id: int) -> list[SyncTarget]:
    return await _collect_targets(db, (
        (SearchEntityType.REPOSITORY_CASE, RepositoryCase.id, RepositoryCase.template_id == template_id),
        (SearchEntityType.SESSION, TestSession.id, TestSession.template_id == template_id),
    ))


async def configuration_cascade_targets(db: AsyncSession, config_id: int) -> list[SyncTarget]:
    return await _collect_targets(db, (
        (SearchEntityType.TEST_RUN, TestRun.id, TestRun.config_id == config_id),
        (SearchEntityType.SESSION, TestSession.id, TestSession.config_id == config_id),
    ))


async def milestone_type_cascade_targets(db: AsyncSession, type_id: int) -> list[SyncTarget]:
    return await _collect_targets(db, (
        (SearchEntityType.MILESTONE, Milestone.id, Milestone.milestone_type_id == type_id),
    ))


async def user_cascade_targets(db: AsyncSession, user_id: str) -> list[SyncTarget]:
    """Documents showing the user as creator or assignee."""
    return await _collect_targets(db, (
        (SearchEntityType.REPOSITORY_CASE, RepositoryCase.id, RepositoryCase.creator_id == user_id),
        (SearchEntityType.TEST_RUN, TestRun.id, TestRun.created_by_id == user_id),
        (
            SearchEntityType.SESSION,
            TestSession.id,
            or_(TestSession.created_by_id == user_id, TestSession.assigned_to_id == user_id),
        ),
        (SearchEntityType.SHARED_STEP, SharedStepGroup.id, SharedStepGroup.created_by_id == user_id),
        (SearchEntityType.PROJECT, Project.id, Project.created_by == user_id),
        (SearchEntityType.ISSUE, Issue.id, Issue.created_by_id == user_id),
        (SearchEntityType.MILESTONE, Milestone.id, Milestone.created_by_id == user_id),
    ))


async def integration_cascade_targets(db: AsyncSession, integration_id: int) -> list[SyncTarget]:
    """Issues carry their integration's name as issueSystem."""
    return await _collect_targets(db, (
        (SearchEntityType.ISSUE, Issue.id, Issue.integration_id == integration_id),
    ))


async def tag_cascade_targets(db: AsyncSession, tag_id: int) -> list[SyncTarget]:
    return await _collect_targets(db, (
        (SearchEntityType.REPOSITORY_CASE, repository_case_tags.c.case_id, repository_case_tags.c.tag_id == tag_id),
        (SearchEntityType.TEST_RUN, test_run_tags.c.test_run_id, test_run_tags.c.tag_id == tag_id),
        (SearchEntityType.SESSION, session_tags.c.session_id, session_tags.c.tag_id == tag_id),
    ))


CASCADE_FUNCTIONS: dict[type, CascadeFn] = {
    Milestone: milestone_cascade_targets,
    Project: project_cascade_targets,
    RepositoryFolder: folder_cascade_targets,
    Workflow: workflow_cascade_targets,
    Template: template_cascade_targets,
    Configuration: configuration_cascade_targets,
    MilestoneType: milestone_type_cascade_targets,
    User: user_cascade_targets,
    Integration: integration_cascade_targets,
    Tag: tag_cascade_targets,
}

# Document kinds whose own fields are embedded in other documents
CASCADING_KINDS: dict[SearchEntityType, type] = {
    SearchEntityType.MILESTONE: Milestone,
    SearchEntityType.PROJECT: Project,
}


async def cascade_targets(db: AsyncSession, source: type, source_id: Any) -> list[SyncTarget]:
    """Documents embedding fields of the ``source`` row ``source_id``."""
    fn = CASCADE_FUNCTIONS.get(source)
    if fn is None:
        return []
    return await fn(db, source_id)
