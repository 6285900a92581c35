"""
Post-commit search sync dispatcher

Runs single-document syncs as fire-and-forget asyncio tasks so the write
that triggered them never waits on (or fails because of) the search
backend. Each task opens its own session; the committing session may
already be closed by the time the task runs.
"""

import asyncio
import logging
from typing import Any, Coroutine, Iterable, Optional

from elasticsearch import AsyncElasticsearch
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..schemas.search import SearchEntityType
from .entity_sync import CASCADING_KINDS, SyncTarget, cascade_targets, sync_entity

logger = logging.getLogger(__name__)


class SearchSyncDispatcher:
    """
    Schedules post-commit index updates.

    Pending tasks are held in a set until they finish; the event loop only
    keeps weak references to tasks.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        es: Optional[AsyncElasticsearch],
    ) -> None:
        self._session_maker = session_maker
        self._es = es
        self._tasks: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._es is not None

    @property
    def pending(self) -> int:
        """Number of sync tasks not yet finished."""
        return len(self._tasks)

    def schedule(
        self,
        entity_type: SearchEntityType,
        entity_id: int,
        cascade: bool = False,
    ) -> Optional[asyncio.Task]:
        """Start a background sync of one entity.

        With ``cascade`` set, documents that embed this entity's name (child
        milestones, a project's documents) are resynced afterwards.

        Returns the task, or None when search is disabled or no event loop
        is running.
        """
        return self._spawn(self._run(entity_type, entity_id, cascade), f"{entity_type.value} {entity_id}")

    def schedule_many(self, targets: Iterable[tuple[SearchEntityType, int, bool]]) -> None:
        for entity_type, entity_id, cascade in targets:
            self.schedule(entity_type, entity_id, cascade)

    def schedule_cascade(self, source: type, source_id: Any) -> Optional[asyncio.Task]:
        """Resync every document embedding fields of a reference row (folder, user, ...)."""
        return self._spawn(self._run_cascade(source, source_id), f"{source.__name__} {source_id} cascade")

    async def drain(self) -> None:
        """Wait for every pending sync task (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine, label: str) -> Optional[asyncio.Task]:
        if self._es is None:
            coro.close()
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop, dropping search sync of %s", label)
            return None

        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, entity_type: SearchEntityType, entity_id: int, cascade: bool) -> None:
        try:
            async with self._session_maker() as db:
                ok = await sync_entity(db, self._es, entity_type, entity_id)
                if not ok:
                    logger.warning("Search sync of %s %s did not complete", entity_type.value, entity_id)

                source = CASCADING_KINDS.get(entity_type)
                if cascade and source is not None:
                    await self._sync_targets(db, await cascade_targets(db, source, entity_id))
        except Exception as e:
            logger.error("Search sync task for %s %s failed: %s", entity_type.value, entity_id, e, exc_info=True)

    async def _run_cascade(self, source: type, source_id: Any) -> None:
        try:
            async with self._session_maker() as db:
                targets = await cascade_targets(db, source, source_id)
                logger.debug("Cascading %s %s to %d documents", source.__name__, source_id, len(targets))
                await self._sync_targets(db, targets)
        except Exception as e:
            logger.error("Search sync cascade for %s %s failed: %s", source.__name__, source_id, e, exc_info=True)

    async def _sync_targets(self, db: AsyncSession, targets: list[SyncTarget]) -> None:
        for target_type, target_id in targets:
            await sync_entity(db, self._es, target_type, target_id)
