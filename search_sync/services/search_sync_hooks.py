"""SQLAlchemy session hooks that keep the search index in step with writes.

Every flush records which search documents the flushed rows affect; a
commit hands them to the dispatcher; a rollback drops them. Child rows
resolve to the document that embeds them (a step or case field value to
its repository case, a shared step item to its group, a session field
value to its session). Linking or unlinking related rows (tags, issue
links) marks the owning document as changed.

Reference rows whose names are copied into documents (folders, workflow
states, templates, users, ...) are not documents themselves; renaming one
schedules a cascade over every document that embeds it.
"""

import logging
from typing import Any, Callable, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session
from sqlalchemy.orm.base import NO_VALUE

from ..models.custom_field import CaseFieldValue, SessionFieldValue
from ..models.issue import Integration, Issue
from ..models.milestone import Milestone, MilestoneType
from ..models.project import Project
from ..models.repository import RepositoryCase, RepositoryCaseStep, RepositoryFolder
from ..models.session import TestSession
from ..models.shared_step import SharedStepGroup, SharedStepItem
from ..models.tag import Tag
from ..models.test_run import TestRun
from ..models.user import User
from ..models.workflow import Configuration, Template, Workflow
from ..schemas.search import SearchEntityType
from .search_sync_dispatcher import SearchSyncDispatcher

logger = logging.getLogger(__name__)

PENDING_KEY = "search_sync_targets"
PENDING_CASCADES_KEY = "search_sync_cascades"

# model -> (document kind, attribute holding the document id)
_TRACKED: dict[type, tuple[SearchEntityType, str]] = {
    RepositoryCase: (SearchEntityType.REPOSITORY_CASE, "id"),
    RepositoryCaseStep: (SearchEntityType.REPOSITORY_CASE, "test_case_id"),
    CaseFieldValue: (SearchEntityType.REPOSITORY_CASE, "test_case_id"),
    SharedStepGroup: (SearchEntityType.SHARED_STEP, "id"),
    SharedStepItem: (SearchEntityType.SHARED_STEP, "shared_step_group_id"),
    TestRun: (SearchEntityType.TEST_RUN, "id"),
    TestSession: (SearchEntityType.SESSION, "id"),
    SessionFieldValue: (SearchEntityType.SESSION, "session_id"),
    Issue: (SearchEntityType.ISSUE, "id"),
    Milestone: (SearchEntityType.MILESTONE, "id"),
    Project: (SearchEntityType.PROJECT, "id"),
}

# Attributes copied into other documents; changing one triggers a cascade
_CASCADE_ATTRIBUTES: dict[type, tuple[str, ...]] = {
    Milestone: ("name",),
    Project: ("name", "icon_url"),
    RepositoryFolder: ("name", "parent_id"),
    Workflow: ("name", "icon", "icon_id", "color", "color_id"),
    Template: ("template_name",),
    Configuration: ("name",),
    MilestoneType: ("name", "icon", "icon_id"),
    User: ("name", "image"),
    Integration: ("name",),
    Tag: ("name", "is_deleted"),
}


def _loaded_value(obj: Any, attribute: str) -> Any:
    """Attribute value without triggering a lazy load."""
    value = inspect(obj).attrs[attribute].loaded_value
    return None if value is NO_VALUE else value


def _needs_cascade(obj: Any) -> bool:
    attributes = _CASCADE_ATTRIBUTES.get(type(obj))
    if not attributes:
        return False
    state = inspect(obj)
    return any(state.attrs[name].history.has_changes() for name in attributes)


def _modified(session: Session) -> list[Any]:
    """Dirty objects with a real change, collection membership included."""
    return [obj for obj in session.dirty if session.is_modified(obj, include_collections=True)]


def collect_sync_targets(session: Session) -> dict[tuple[SearchEntityType, int], bool]:
    """Documents affected by the pending flush, mapped to their cascade flag."""
    targets: dict[tuple[SearchEntityType, int], bool] = {}

    def add(obj: Any, cascade: bool) -> None:
        tracked = _TRACKED.get(type(obj))
        if tracked is None:
            return
        entity_type, attribute = tracked
        entity_id = _loaded_value(obj, attribute)
        if entity_id is None:
            return
        key = (entity_type, entity_id)
        targets[key] = targets.get(key, False) or cascade

    for obj in session.new:
        add(obj, False)
    for obj in _modified(session):
        add(obj, _needs_cascade(obj))
    for obj in session.deleted:
        add(obj, False)
    return targets


def collect_cascade_sources(session: Session) -> set[tuple[type, Any]]:
    """Renamed reference rows that are not search documents themselves."""
    sources: set[tuple[type, Any]] = set()
    for obj in _modified(session):
        if type(obj) in _TRACKED or not _needs_cascade(obj):
            continue
        source_id = _loaded_value(obj, "id")
        if source_id is not None:
            sources.add((type(obj), source_id))
    return sources


def register_search_sync_hooks(
    dispatcher: SearchSyncDispatcher,
    session_class: type[Session] = Session,
) -> Callable[[], None]:
    """Attach flush/commit/rollback listeners to ``session_class``.

    Returns:
        A callable that removes the listeners again.
    """

    def after_flush(session: Session, flush_context: Any) -> None:
        pending: dict = session.info.setdefault(PENDING_KEY, {})
        for key, cascade in collect_sync_targets(session).items():
            pending[key] = pending.get(key, False) or cascade
        session.info.setdefault(PENDING_CASCADES_KEY, set()).update(collect_cascade_sources(session))

    def after_commit(session: Session) -> None:
        pending: Optional[dict] = session.info.pop(PENDING_KEY, None)
        cascades: Optional[set] = session.info.pop(PENDING_CASCADES_KEY, None)
        if pending:
            logger.debug("Scheduling search sync for %d documents", len(pending))
            dispatcher.schedule_many(
                (entity_type, entity_id, cascade) for (entity_type, entity_id), cascade in pending.items()
            )
        for source, source_id in cascades or ():
            dispatcher.schedule_cascade(source, source_id)

    def after_rollback(session: Session) -> None:
        session.info.pop(PENDING_KEY, None)
        session.info.pop(PENDING_CASCADES_KEY, None)

    listeners = (
        ("after_flush", after_flush),
        ("after_commit", after_commit),
        ("after_rollback", after_rollback),
    )
    for name, fn in listeners:
        event.listen(session_class, name, fn)

    def unregister() -> None:
        for name, fn in listeners:
            if event.contains(session_class, name, fn):
                event.remove(session_class, name, fn)

    return unregister
