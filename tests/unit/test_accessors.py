"""
Unit tests for the query helpers: paging, text search and change streams.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson.timestamp import Timestamp

from repokit.accessors import (
    ChangeOperationType,
    ChangeStreamOptions,
    ChangeStreamWatcher,
    DocumentQueryFilter,
    FullDocumentOption,
    PagedResult,
    PaginationOptions,
    TextSearchOptions,
    aggregate_paged,
    build_paged_pipeline,
    build_text_filter,
    map_change_event,
    search_field,
    text_search,
    text_search_count,
    text_search_with_score,
)
from repokit.persistence import MongoDbContext
from repokit.repositories import TrackedRepository
from tests.helpers.entities import Note, Widget


def mock_cursor(documents):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=documents)
    return cursor


class TestPagination:

    @pytest.mark.parametrize("kwargs", [{"page_size": -1}, {"skip": -5}])
    def test_negative_window_rejected(self, kwargs):
        with pytest.raises(ValueError):
            PaginationOptions(**kwargs)

    def test_query_options(self):
        options = PaginationOptions(
            max_execution_time=timedelta(milliseconds=1500),
            max_await_time=timedelta(seconds=1),
        )
        assert options.query_options() == {"maxTimeMS": 1500, "maxAwaitTimeMS": 1000}
        assert PaginationOptions().query_options() == {}

    def test_has_more(self):
        assert PagedResult(items=[1, 2], total_count=5, page_size=2, skip=2).has_more
        assert not PagedResult(items=[5], total_count=5, page_size=2, skip=4).has_more


class TestPagedPipeline:

    def test_full_pipeline(self):
        pipeline = build_paged_pipeline({"status": "open"}, [("created_at", -1)], 20, 10)

        assert pipeline == [
            {"$match": {"status": "open"}},
            {"$facet": {
                "count": [{"$count": "count"}],
                "data": [{"$sort": {"created_at": -1}}, {"$skip": 20}, {"$limit": 10}],
            }},
        ]

    def test_data_facet_never_empty(self):
        pipeline = build_paged_pipeline({}, None, 0, 0)
        assert pipeline[1]["$facet"]["data"] == [{"$skip": 0}]

    @pytest.mark.asyncio
    async def test_aggregate_paged_parses_facets(self):
        collection = MagicMock()
        collection.aggregate = AsyncMock(return_value=mock_cursor([
            {"count": [{"count": 12}], "data": [{"_id": 1}, {"_id": 2}]}
        ]))

        count, data = await aggregate_paged(collection, {}, None, 0, 2, maxTimeMS=100)

        assert count == 12
        assert data == [{"_id": 1}, {"_id": 2}]
        assert collection.aggregate.await_args.kwargs == {"session": None, "maxTimeMS": 100}

    @pytest.mark.asyncio
    async def test_aggregate_paged_empty_result(self):
        collection = MagicMock()
        collection.aggregate = AsyncMock(return_value=mock_cursor([]))

        assert await aggregate_paged(collection, {}, None, 0, 10) == (0, [])


class TestTextSearch:

    def test_text_filter(self):
        text_filter = build_text_filter(
            "blue widget",
            TextSearchOptions(language="none", case_sensitive=True),
            {"is_deleted": False},
        )

        assert text_filter == {
            "$text": {
                "$search": "blue widget",
                "$language": "none",
                "$caseSensitive": True,
                "$diacriticSensitive": False,
            },
            "is_deleted": False,
        }

    @pytest.mark.asyncio
    async def test_text_search_sorts_and_windows(self):
        cursor = mock_cursor([{"_id": "w-1", "name": "Blue"}])
        collection = MagicMock()
        collection.find.return_value = cursor

        results = await text_search(collection, "blue", TextSearchOptions(skip=5, limit=10), entity_type=Widget)

        assert results == [Widget(id="w-1", name="Blue", created_at=results[0].created_at)]
        cursor.sort.assert_called_once_with([("score", {"$meta": "textScore"})])
        cursor.skip.assert_called_once_with(5)
        cursor.limit.assert_called_once_with(10)

    @pytest.mark.asyncio
    async def test_text_search_without_score_sort(self):
        cursor = mock_cursor([])
        collection = MagicMock()
        collection.find.return_value = cursor

        await text_search(collection, "blue", TextSearchOptions(sort_by_score=False, limit=0))

        cursor.sort.assert_not_called()
        cursor.limit.assert_not_called()

    @pytest.mark.asyncio
    async def test_text_search_with_score(self):
        collection = MagicMock()
        collection.aggregate = AsyncMock(return_value=mock_cursor([
            {"_id": "a", "label": "x", "score": 2.5},
            {"_id": "b", "label": "y"},
        ]))

        results = await text_search_with_score(collection, "x", TextSearchOptions(limit=5))

        assert [(r.document, r.score) for r in results] == [
            ({"_id": "a", "label": "x"}, 2.5),
            ({"_id": "b", "label": "y"}, 0.0),
        ]
        pipeline = collection.aggregate.await_args.args[0]
        assert pipeline[1] == {"$addFields": {"score": {"$meta": "textScore"}}}
        assert pipeline[-1] == {"$limit": 5}

    @pytest.mark.asyncio
    async def test_search_field_escapes_input(self):
        cursor = mock_cursor([])
        collection = MagicMock()
        collection.find.return_value = cursor

        await search_field(collection, "name", "a.b*", filter={"is_deleted": False})

        query = collection.find.call_args.args[0]
        assert query == {"name": {"$regex": r"a\.b\*", "$options": "i"}, "is_deleted": False}

    @pytest.mark.asyncio
    async def test_text_search_count(self):
        collection = MagicMock()
        collection.count_documents = AsyncMock(return_value=4)

        assert await text_search_count(collection, "blue") == 4

    @pytest.mark.asyncio
    async def test_repository_search_hides_soft_deleted(self, replica_client):
        repo = TrackedRepository(MongoDbContext(replica_client), replica_client["db"]["notes"], Note)
        replica_client.store["notes"] = {
            "n-1": {"_id": "n-1", "text": "blue sky", "is_deleted": False},
            "n-2": {"_id": "n-2", "text": "blue sea", "is_deleted": True},
        }

        results = await repo.text_search("blue", TextSearchOptions(sort_by_score=False))

        assert [n.id for n in results] == ["n-1"]


class TestChangeStreams:

    def test_map_change_event(self):
        event = map_change_event({
            "_id": {"_data": "token"},
            "operationType": "update",
            "clusterTime": Timestamp(1700000000, 1),
            "ns": {"db": "shop", "coll": "widgets"},
            "documentKey": {"_id": "w-1"},
            "fullDocument": {"_id": "w-1", "name": "w", "version": 2},
            "updateDescription": {"updatedFields": {"version": 2}, "removedFields": ["old"]},
        }, Widget)

        assert event.operation_type == ChangeOperationType.UPDATE
        assert event.full_document.version == 2
        assert event.document_key == {"_id": "w-1"}
        assert event.resume_token == {"_data": "token"}
        assert event.namespace == "shop.widgets"
        assert event.timestamp == datetime.fromtimestamp(1700000000, timezone.utc)
        assert event.update_description.updated_fields == {"version": 2}
        assert event.update_description.removed_fields == ["old"]

    def test_unknown_operation_maps_to_other(self):
        event = map_change_event({"operationType": "shardCollection"})
        assert event.operation_type == ChangeOperationType.OTHER
        assert event.full_document is None
        assert event.namespace is None

    def test_watch_kwargs(self):
        options = ChangeStreamOptions(
            full_document=FullDocumentOption.DEFAULT,
            resume_after={"_data": "t"},
            max_await_time=timedelta(seconds=2),
            batch_size=50,
        )
        assert options.watch_kwargs() == {
            "resume_after": {"_data": "t"},
            "max_await_time_ms": 2000,
            "batch_size": 50,
        }
        assert ChangeStreamOptions().watch_kwargs() == {"full_document": "updateLookup"}

    @pytest.mark.asyncio
    async def test_watcher_yields_events(self):
        changes = [
            {"operationType": "insert", "fullDocument": {"_id": "w-1", "name": "a"}},
            {"operationType": "delete", "documentKey": {"_id": "w-1"}},
        ]

        class Stream:
            async def __aenter__(self):
                return self

            async def __aexit__(self, *exc):
                return False

            def __aiter__(self):
                return self._iterate()

            async def _iterate(self):
                for change in changes:
                    yield change

        collection = MagicMock()
        collection.watch = AsyncMock(return_value=Stream())

        events = [e async for e in ChangeStreamWatcher(collection, Widget).watch([{"$match": {}}])]

        assert [e.operation_type for e in events] == [ChangeOperationType.INSERT, ChangeOperationType.DELETE]
        assert events[0].full_document.name == "a"
        collection.watch.assert_awaited_once_with([{"$match": {}}], session=None, full_document="updateLookup")
