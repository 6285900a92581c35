"""Tests for the shared index write primitives."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from elasticsearch import NotFoundError

from conftest import api_error
from search_sync.schemas.search import SearchEntityType
from search_sync.services.search_indexing import (
    BulkSyncResult,
    DocumentAction,
    build_searchable_content,
    bulk_index_documents,
    delete_document,
    sync_document,
)


def entity(entity_id: int, name: str = "thing") -> SimpleNamespace:
    return SimpleNamespace(id=entity_id, name=name)


def to_document(obj) -> dict:
    return {"id": obj.id, "name": obj.name}


class TestBuildSearchableContent:

    def test_joins_with_single_spaces(self):
        assert build_searchable_content("Login", "works") == "Login works"

    def test_flattens_iterables_and_drops_empty(self):
        content = build_searchable_content("Name", None, "", ["smoke", "", None, "auth"], ("  padded  ",))
        assert content == "Name smoke auth padded"

    def test_all_empty(self):
        assert build_searchable_content(None, [], "") == ""


class TestBulkSyncResult:

    def test_truthy_only_without_failures(self):
        assert BulkSyncResult(indexed=3)
        assert not BulkSyncResult(indexed=3, failed_ids=["4"])

    def test_merge(self):
        total = BulkSyncResult(indexed=1).merge(BulkSyncResult(indexed=2, skipped=1, failed_ids=["9"]))
        assert (total.indexed, total.skipped, total.failed) == (3, 1, 1)


class TestSyncDocument:

    @pytest.mark.asyncio
    async def test_disabled_search_returns_false(self):
        builder = AsyncMock()
        assert await sync_document(None, None, SearchEntityType.PROJECT, 1, builder) is False
        builder.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_indexes_full_document(self, es):
        builder = AsyncMock(return_value={"id": 5, "name": "Checkout"})

        assert await sync_document(es, None, SearchEntityType.PROJECT, 5, builder) is True

        es.index.assert_awaited_once_with(
            index="testplanit-projects",
            id="5",
            document={"id": 5, "name": "Checkout"},
            refresh=True,
        )

    @pytest.mark.asyncio
    async def test_missing_entity_is_deleted(self, es):
        builder = AsyncMock(return_value=None)

        assert await sync_document(es, None, SearchEntityType.TEST_RUN, 8, builder) is True

        es.delete.assert_awaited_once_with(index="testplanit-test-runs", id="8", refresh=True)
        es.index.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_of_absent_document_succeeds(self, es):
        es.delete.side_effect = api_error(NotFoundError, "not_found", 404)
        builder = AsyncMock(return_value=None)
        assert await sync_document(es, None, SearchEntityType.TEST_RUN, 8, builder) is True

    @pytest.mark.asyncio
    async def test_policy_delete_and_skip(self, es):
        builder = AsyncMock(return_value={"id": 1})

        assert await sync_document(es, None, SearchEntityType.ISSUE, 1, builder, lambda d: DocumentAction.SKIP)
        es.index.assert_not_awaited()
        es.delete.assert_not_awaited()

        assert await sync_document(es, None, SearchEntityType.ISSUE, 1, builder, lambda d: DocumentAction.DELETE)
        es.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_builder_failure_returns_false(self, es):
        builder = AsyncMock(side_effect=RuntimeError("db went away"))
        assert await sync_document(es, None, SearchEntityType.SESSION, 2, builder) is False

    @pytest.mark.asyncio
    async def test_index_failure_returns_false(self, es):
        es.index.side_effect = RuntimeError("timeout")
        builder = AsyncMock(return_value={"id": 2})
        assert await sync_document(es, None, SearchEntityType.SESSION, 2, builder) is False


class TestDeleteDocument:

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, es):
        es.delete.side_effect = RuntimeError("cluster red")
        with pytest.raises(RuntimeError):
            await delete_document(es, SearchEntityType.MILESTONE, 3)


class TestBulkIndexDocuments:

    @pytest.mark.asyncio
    async def test_builds_operations_in_input_order(self, es):
        result = await bulk_index_documents(
            es, SearchEntityType.MILESTONE, [entity(2, "b"), entity(1, "a")], to_document
        )

        operations = es.bulk.await_args.kwargs["operations"]
        assert operations == [
            {"index": {"_index": "testplanit-milestones", "_id": "2"}},
            {"id": 2, "name": "b"},
            {"index": {"_index": "testplanit-milestones", "_id": "1"}},
            {"id": 1, "name": "a"},
        ]
        assert es.bulk.await_args.kwargs["refresh"] is True
        assert result.indexed == 2
        assert result

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self, es):
        result = await bulk_index_documents(es, SearchEntityType.MILESTONE, [], to_document)
        es.bulk.assert_not_awaited()
        assert result == BulkSyncResult()

    @pytest.mark.asyncio
    async def test_disabled_search(self):
        result = await bulk_index_documents(None, SearchEntityType.MILESTONE, [entity(1)], to_document)
        assert result.indexed == 0

    @pytest.mark.asyncio
    async def test_item_errors_are_collected(self, es):
        es.bulk.side_effect = None
        es.bulk.return_value = {
            "errors": True,
            "items": [
                {"index": {"_id": "1", "status": 201}},
                {"index": {
                    "_id": "2",
                    "status": 400,
                    "error": {
                        "type": "mapper_parsing_exception",
                        "reason": "failed to parse field [dueDate]",
                        "caused_by": {"type": "illegal_argument_exception"},
                    },
                }},
                {"index": {"_id": "3", "status": 201}},
            ],
        }

        result = await bulk_index_documents(
            es, SearchEntityType.MILESTONE, [entity(1), entity(2), entity(3)], to_document
        )

        assert result.indexed == 2
        assert result.failed_ids == ["2"]
        assert not result

    @pytest.mark.asyncio
    async def test_transport_failure_fails_every_document(self, es):
        es.bulk.side_effect = RuntimeError("connection refused")
        result = await bulk_index_documents(es, SearchEntityType.MILESTONE, [entity(1), entity(2)], to_document)
        assert result.failed_ids == ["1", "2"]
        assert result.indexed == 0

    @pytest.mark.asyncio
    async def test_projection_failure_excludes_entity(self, es):
        def flaky(obj):
            if obj.id == 2:
                raise AttributeError("relation not loaded")
            return to_document(obj)

        result = await bulk_index_documents(es, SearchEntityType.MILESTONE, [entity(1), entity(2)], flaky)

        assert result.indexed == 1
        assert result.skipped == 1
        assert len(es.bulk.await_args.kwargs["operations"]) == 2

    @pytest.mark.asyncio
    async def test_policy_skips(self, es):
        def policy(document):
            return DocumentAction.SKIP if document["id"] == 1 else DocumentAction.INDEX

        result = await bulk_index_documents(
            es, SearchEntityType.ISSUE, [entity(1), entity(2)], to_document, policy
        )
        assert (result.indexed, result.skipped) == (1, 1)
