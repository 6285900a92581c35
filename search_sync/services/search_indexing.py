"""Low-level search index writes shared by every entity kind.

Provides:
- Searchable content aggregation
- Single document sync (index / delete / skip) with the never-raise policy
- Bulk indexing with per-item error reporting

Documents are always written whole (index with the same id), never
patched, so concurrent writers for the same entity converge on the last
full write.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

from elasticsearch import AsyncElasticsearch, NotFoundError
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.search import SearchEntityType
from .index_registry import ENTITY_INDICES

logger = logging.getLogger(__name__)

DocumentBuilder = Callable[[AsyncSession, int], Awaitable[Optional[dict[str, Any]]]]


class DocumentAction(str, Enum):
    """What a freshly built document means for the index."""

    INDEX = "index"
    DELETE = "delete"
    SKIP = "skip"


DocumentPolicy = Callable[[dict[str, Any]], DocumentAction]


def index_always(document: dict[str, Any]) -> DocumentAction:
    return DocumentAction.INDEX


@dataclass
class BulkSyncResult:
    """Outcome of one or more bulk calls.

    Truthy only when no document was rejected by the backend.
    """

    indexed: int = 0
    skipped: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_ids)

    @property
    def success(self) -> bool:
        return not self.failed_ids

    def __bool__(self) -> bool:
        return self.success

    def merge(self, other: "BulkSyncResult") -> "BulkSyncResult":
        self.indexed += other.indexed
        self.skipped += other.skipped
        self.failed_ids.extend(other.failed_ids)
        return self


def build_searchable_content(*parts: Any) -> str:
    """Join text fragments with single spaces, dropping empty ones.

    Each part may be a string, None, or an iterable of strings (tag names,
    step texts, custom field values).
    """
    fragments: list[str] = []
    for part in parts:
        if part is None:
            continue
        if isinstance(part, str):
            candidates: Iterable[Any] = (part,)
        else:
            candidates = part
        for candidate in candidates:
            if candidate is None:
                continue
            text = str(candidate).strip()
            if text:
                fragments.append(text)
    return " ".join(fragments)


# ---- Single document operations ----

async def index_document(
    es: AsyncElasticsearch,
    entity_type: SearchEntityType,
    document: dict[str, Any],
) -> None:
    """Write a full document, replacing any previous version."""
    await es.index(
        index=ENTITY_INDICES[entity_type],
        id=str(document["id"]),
        document=document,
        refresh=True,
    )


async def delete_document(
    es: AsyncElasticsearch,
    entity_type: SearchEntityType,
    entity_id: int,
) -> None:
    """Remove a document. An already absent document is not an error."""
    try:
        await es.delete(index=ENTITY_INDICES[entity_type], id=str(entity_id), refresh=True)
    except NotFoundError:
        logger.debug("%s %s already absent from index", entity_type.value, entity_id)


async def sync_document(
    es: Optional[AsyncElasticsearch],
    db: AsyncSession,
    entity_type: SearchEntityType,
    entity_id: int,
    builder: DocumentBuilder,
    policy: DocumentPolicy = index_always,
) -> bool:
    """Rebuild one entity's document and bring the index in line with it.

    Steps: build, then delete when the entity is gone (or the policy says
    so), skip when the policy says so, otherwise index. Any failure is
    logged and reported as False; nothing propagates to the caller.

    Returns:
        True when the index now reflects the entity (or the document was
        deliberately skipped), False when search is disabled or a call failed.
    """
    if es is None:
        logger.debug("Search disabled, skipping %s %s sync", entity_type.value, entity_id)
        return False

    try:
        document = await builder(db, entity_id)
        action = DocumentAction.DELETE if document is None else policy(document)

        if action is DocumentAction.DELETE:
            await delete_document(es, entity_type, entity_id)
            return True
        if action is DocumentAction.SKIP:
            return True

        await index_document(es, entity_type, document)
        return True
    except Exception as e:
        logger.error("Failed to sync %s %s to search index: %s", entity_type.value, entity_id, e)
        return False


# ---- Bulk operations ----

def _log_bulk_item_error(entity_type: SearchEntityType, doc_id: str, error: Any) -> None:
    if isinstance(error, dict):
        logger.error(
            "Failed to index %s %s: type=%s reason=%s caused_by=%s",
            entity_type.value,
            doc_id,
            error.get("type"),
            error.get("reason"),
            error.get("caused_by"),
        )
    else:
        logger.error("Failed to index %s %s: %s", entity_type.value, doc_id, error)


async def bulk_index_documents(
    es: Optional[AsyncElasticsearch],
    entity_type: SearchEntityType,
    entities: Iterable[Any],
    project: Callable[[Any], dict[str, Any]],
    policy: DocumentPolicy = index_always,
) -> BulkSyncResult:
    """Project and index many entities in one bulk call.

    Entities whose projection raises are logged and left out; entities the
    policy does not index are counted as skipped. Rejected items are logged
    one by one and do not affect the accepted ones.
    """
    result = BulkSyncResult()
    if es is None:
        return result

    index_name = ENTITY_INDICES[entity_type]
    operations: list[dict[str, Any]] = []
    doc_ids: list[str] = []

    for entity in entities:
        entity_id = getattr(entity, "id", None)
        try:
            document = project(entity)
        except Exception as e:
            logger.error("Failed to build %s %s document, excluding it: %s", entity_type.value, entity_id, e)
            result.skipped += 1
            continue

        if policy(document) is not DocumentAction.INDEX:
            result.skipped += 1
            continue

        doc_id = str(document["id"])
        operations.append({"index": {"_index": index_name, "_id": doc_id}})
        operations.append(document)
        doc_ids.append(doc_id)

    if not operations:
        return result

    try:
        resp = await es.bulk(operations=operations, refresh=True)
    except Exception as e:
        logger.error("Bulk index of %d %s documents failed: %s", len(doc_ids), entity_type.value, e)
        result.failed_ids.extend(doc_ids)
        return result

    items = resp.get("items") or []
    if not resp.get("errors"):
        result.indexed += len(doc_ids)
        return result

    for position, doc_id in enumerate(doc_ids):
        outcome = items[position].get("index", {}) if position < len(items) else {}
        error = outcome.get("error")
        if error:
            result.failed_ids.append(outcome.get("_id", doc_id))
            _log_bulk_item_error(entity_type, outcome.get("_id", doc_id), error)
        else:
            result.indexed += 1

    logger.error(
        "Bulk index of %s finished with %d failed documents (%d indexed)",
        entity_type.value,
        result.failed,
        result.indexed,
    )
    return result
