"""Elasticsearch client construction and health checks.

The client is built once at process startup (API lifespan or worker
startup) and passed explicitly to every indexing function. ``None`` means
search is disabled: no endpoint is configured, or the client could not be
constructed. Every sync path treats ``None`` as "skip silently".
"""

import logging
from typing import Any, Optional

from elasticsearch import AsyncElasticsearch

from ..config import Settings
from ..schemas.search import SearchEntityType
from .index_registry import ENTITY_INDICES

logger = logging.getLogger(__name__)


def create_elasticsearch_client(settings: Settings) -> Optional[AsyncElasticsearch]:
    """Build the async Elasticsearch client, or None when search is disabled."""
    if not settings.search_enabled:
        logger.info("ELASTICSEARCH_NODE not set -- search indexing disabled")
        return None

    try:
        client = AsyncElasticsearch(
            hosts=[settings.elasticsearch_node],
            request_timeout=settings.elasticsearch_request_timeout,
            max_retries=settings.elasticsearch_max_retries,
            retry_on_timeout=True,
        )
    except Exception as e:
        logger.error("Failed to create Elasticsearch client for %s: %s", settings.elasticsearch_node, e)
        return None

    logger.info("Elasticsearch client configured: node=%s", settings.elasticsearch_node)
    return client


async def close_elasticsearch_client(es: Optional[AsyncElasticsearch]) -> None:
    """Close the client transport if one was created."""
    if es is None:
        return
    try:
        await es.close()
    except Exception as e:
        logger.warning("Error closing Elasticsearch client: %s", e)


async def check_search_health(es: Optional[AsyncElasticsearch]) -> dict[str, Any]:
    """Check backend reachability and per-index document counts."""
    if es is None:
        return {"status": "disabled", "indices": {}}

    try:
        if not await es.ping():
            return {"status": "degraded", "indices": {}}

        indices: dict[str, Optional[int]] = {}
        for entity_type in SearchEntityType:
            index_name = ENTITY_INDICES[entity_type]
            if await es.indices.exists(index=index_name):
                resp = await es.count(index=index_name)
                indices[index_name] = resp["count"]
            else:
                indices[index_name] = None
        return {"status": "healthy", "indices": indices}
    except Exception as e:
        logger.warning("Search health check failed: %s", e)
        return {"status": "degraded", "indices": {}}
