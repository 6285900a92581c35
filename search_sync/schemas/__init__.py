"""Pydantic schemas package for request/response validation."""

from .search import (
    ReindexEntityType,
    ReindexJobResponse,
    ReindexJobStatus,
    ReindexRequest,
    SearchEntityType,
    SearchHealthResponse,
)

__all__ = [
    "ReindexEntityType",
    "ReindexJobResponse",
    "ReindexJobStatus",
    "ReindexRequest",
    "SearchEntityType",
    "SearchHealthResponse",
]
