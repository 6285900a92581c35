"""Index names, field mappings and index creation for every entity kind.

Each SearchEntityType owns one index. Indices are created on demand with
one shard, a replica count read from the runtime ``elasticsearch_replicas``
setting, and a ``standard`` analyzer with English stopwords.

Existing indices are never altered: a changed replica count only applies
to indices created afterwards. Reindexing rewrites documents, not settings.
"""

import logging
from typing import Any, Optional

from elasticsearch import AsyncElasticsearch, BadRequestError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.app_config import AppConfig
from ..schemas.search import SearchEntityType

logger = logging.getLogger(__name__)

REPLICAS_CONFIG_KEY = "elasticsearch_replicas"
DEFAULT_REPLICAS = 0

ENTITY_INDICES: dict[SearchEntityType, str] = {
    SearchEntityType.REPOSITORY_CASE: "testplanit-repository-cases",
    SearchEntityType.SHARED_STEP: "testplanit-shared-steps",
    SearchEntityType.TEST_RUN: "testplanit-test-runs",
    SearchEntityType.SESSION: "testplanit-sessions",
    SearchEntityType.PROJECT: "testplanit-projects",
    SearchEntityType.ISSUE: "testplanit-issues",
    SearchEntityType.MILESTONE: "testplanit-milestones",
}


# ---- Mapping building blocks ----

def _searchable_text() -> dict[str, Any]:
    """Analyzed text with an exact keyword sub-field and an autocomplete sub-field."""
    return {
        "type": "text",
        "analyzer": "standard",
        "fields": {
            "keyword": {"type": "keyword", "ignore_above": 256},
            "suggest": {"type": "completion"},
        },
    }


def _option_properties() -> dict[str, Any]:
    return {
        "id": {"type": "integer"},
        "name": {"type": "keyword"},
        "icon": {"type": "object", "properties": {"name": {"type": "keyword"}}},
        "iconColor": {"type": "object", "properties": {"value": {"type": "keyword"}}},
    }


_TAGS = {
    "type": "nested",
    "properties": {
        "id": {"type": "integer"},
        "name": {"type": "keyword"},
    },
}

_CUSTOM_FIELDS = {
    "type": "nested",
    "properties": {
        "fieldId": {"type": "integer"},
        "fieldName": {"type": "keyword"},
        "fieldType": {"type": "keyword"},
        "value": {"type": "text"},
        "valueKeyword": {"type": "keyword"},
        "valueNumeric": {"type": "double"},
        "valueBoolean": {"type": "boolean"},
        "valueDate": {"type": "date"},
        "valueArray": {"type": "keyword"},
        "fieldOption": {"type": "object", "properties": _option_properties()},
        "fieldOptions": {"type": "nested", "properties": _option_properties()},
    },
}

# Fields shared by every project-scoped entity
_BASE_PROPERTIES: dict[str, Any] = {
    "id": {"type": "integer"},
    "projectId": {"type": "integer"},
    "projectName": {"type": "keyword"},
    "projectIconUrl": {"type": "keyword"},
    "createdAt": {"type": "date"},
    "updatedAt": {"type": "date"},
    "createdById": {"type": "keyword"},
    "createdByName": {"type": "keyword"},
    "createdByImage": {"type": "keyword"},
    "isDeleted": {"type": "boolean"},
    "searchableContent": {
        "type": "text",
        "analyzer": "standard",
        "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
    },
    "customFields": _CUSTOM_FIELDS,
}

# Workflow state, configuration and milestone columns of runs and sessions
_EXECUTION_PROPERTIES: dict[str, Any] = {
    "note": {"type": "text"},
    "configId": {"type": "integer"},
    "configurationName": {"type": "keyword"},
    "milestoneId": {"type": "integer"},
    "milestoneName": {"type": "keyword"},
    "stateId": {"type": "integer"},
    "stateName": {"type": "keyword"},
    "stateIcon": {"type": "keyword"},
    "stateColor": {"type": "keyword"},
    "forecastManual": {"type": "integer"},
    "forecastAutomated": {"type": "float"},
    "elapsed": {"type": "integer"},
    "isCompleted": {"type": "boolean"},
    "completedAt": {"type": "date"},
    "tags": _TAGS,
}


def _with_base(**properties: Any) -> dict[str, Any]:
    return {"properties": {**_BASE_PROPERTIES, **properties}}


ENTITY_MAPPINGS: dict[SearchEntityType, dict[str, Any]] = {
    SearchEntityType.REPOSITORY_CASE: _with_base(
        name=_searchable_text(),
        repositoryId={"type": "integer"},
        folderId={"type": "integer"},
        folderPath={"type": "keyword"},
        templateId={"type": "integer"},
        templateName={"type": "keyword"},
        className={"type": "keyword"},
        source={"type": "keyword"},
        stateId={"type": "integer"},
        stateName={"type": "keyword"},
        stateIcon={"type": "keyword"},
        stateColor={"type": "keyword"},
        estimate={"type": "integer"},
        forecastManual={"type": "integer"},
        forecastAutomated={"type": "float"},
        automated={"type": "boolean"},
        isArchived={"type": "boolean"},
        tags=_TAGS,
        steps={
            "type": "nested",
            "properties": {
                "id": {"type": "long"},
                "order": {"type": "integer"},
                "step": {"type": "text"},
                "expectedResult": {"type": "text"},
                "isSharedStep": {"type": "boolean"},
                "sharedStepGroupId": {"type": "integer"},
                "sharedStepGroupName": {"type": "text"},
            },
        },
    ),
    SearchEntityType.SHARED_STEP: _with_base(
        name=_searchable_text(),
        items={
            "type": "nested",
            "properties": {
                "id": {"type": "integer"},
                "order": {"type": "integer"},
                "step": {"type": "text"},
                "expectedResult": {"type": "text"},
            },
        },
    ),
    SearchEntityType.TEST_RUN: _with_base(
        name=_searchable_text(),
        docs={"type": "text"},
        testRunType={"type": "keyword"},
        **_EXECUTION_PROPERTIES,
    ),
    SearchEntityType.SESSION: _with_base(
        name=_searchable_text(),
        mission={"type": "text"},
        templateId={"type": "integer"},
        templateName={"type": "keyword"},
        assignedToId={"type": "keyword"},
        assignedToName={"type": "keyword"},
        assignedToImage={"type": "keyword"},
        estimate={"type": "integer"},
        **_EXECUTION_PROPERTIES,
    ),
    SearchEntityType.PROJECT: {
        "properties": {
            "id": {"type": "integer"},
            "name": _searchable_text(),
            "iconUrl": {"type": "keyword"},
            "note": {"type": "text"},
            "docs": {"type": "text"},
            "isDeleted": {"type": "boolean"},
            "createdAt": {"type": "date"},
            "createdById": {"type": "keyword"},
            "createdByName": {"type": "keyword"},
            "createdByImage": {"type": "keyword"},
            "searchableContent": {"type": "text"},
        },
    },
    SearchEntityType.ISSUE: _with_base(
        name=_searchable_text(),
        title=_searchable_text(),
        description={"type": "text"},
        externalId={"type": "keyword"},
        note={"type": "text"},
        url={"type": "keyword"},
        issueSystem={"type": "text"},
    ),
    SearchEntityType.MILESTONE: _with_base(
        name=_searchable_text(),
        note={"type": "text"},
        docs={"type": "text"},
        milestoneTypeId={"type": "integer"},
        milestoneTypeName={"type": "keyword"},
        milestoneTypeIcon={"type": "keyword"},
        parentId={"type": "integer"},
        parentName={"type": "keyword"},
        dueDate={"type": "date"},
        isCompleted={"type": "boolean"},
        completedAt={"type": "date"},
    ),
}


# ---- Index settings ----

async def get_replica_count(db: AsyncSession) -> int:
    """Read the configured replica count, defaulting to 0.

    A missing key, a non-integer value or a failed read all fall back to
    the default; this never blocks index creation.
    """
    try:
        config = await db.get(AppConfig, REPLICAS_CONFIG_KEY)
    except Exception as e:
        logger.warning("Failed to read %s, using %d: %s", REPLICAS_CONFIG_KEY, DEFAULT_REPLICAS, e)
        return DEFAULT_REPLICAS

    if config is None or config.value is None or isinstance(config.value, bool):
        return DEFAULT_REPLICAS
    try:
        replicas = int(config.value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer %s value: %r", REPLICAS_CONFIG_KEY, config.value)
        return DEFAULT_REPLICAS
    return max(replicas, 0)


def build_index_settings(replicas: int) -> dict[str, Any]:
    """Index settings for a newly created entity index."""
    return {
        "number_of_shards": 1,
        "number_of_replicas": replicas,
        "analysis": {
            "analyzer": {
                "standard": {
                    "type": "standard",
                    "stopwords": "_english_",
                },
            },
        },
    }


async def ensure_index(
    es: Optional[AsyncElasticsearch],
    db: AsyncSession,
    entity_type: SearchEntityType,
) -> bool:
    """Create the entity's index if it does not exist.

    Returns:
        True when the index exists or was created; False when search is
        disabled or the backend call failed.
    """
    if es is None:
        return False

    index_name = ENTITY_INDICES[entity_type]
    try:
        if await es.indices.exists(index=index_name):
            return True

        replicas = await get_replica_count(db)
        await es.indices.create(
            index=index_name,
            mappings=ENTITY_MAPPINGS[entity_type],
            settings=build_index_settings(replicas),
        )
        logger.info("Created search index %s (replicas=%d)", index_name, replicas)
        return True
    except BadRequestError as e:
        # Another writer created it between exists() and create()
        if e.message == "resource_already_exists_exception":
            return True
        logger.error("Failed to ensure index %s: %s", index_name, e)
        return False
    except Exception as e:
        logger.error("Failed to ensure index %s: %s", index_name, e)
        return False


async def ensure_all_indices(es: Optional[AsyncElasticsearch], db: AsyncSession) -> dict[str, bool]:
    """Ensure every entity index exists. Called at application startup."""
    results: dict[str, bool] = {}
    for entity_type in SearchEntityType:
        results[ENTITY_INDICES[entity_type]] = await ensure_index(es, db, entity_type)
    return results
