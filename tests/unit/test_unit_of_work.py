"""
Unit tests for MongoUnitOfWork.commit().
"""

from unittest.mock import AsyncMock, MagicMock, PropertyMock

import pytest
from pymongo.errors import DuplicateKeyError

from repokit.persistence import InsertOne, MongoDbContext, MongoUnitOfWork, UnitOfWork
from tests.helpers.entities import Tag


def mock_context(pending: int, executed: int) -> MagicMock:
    context = MagicMock(spec=MongoDbContext)
    type(context).pending_commands = PropertyMock(return_value=pending)
    context.save_changes = AsyncMock(return_value=executed)
    return context


class TestCommitResult:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "pending,executed,expected",
        [
            (0, 0, True),
            (3, 3, True),
            (3, 2, False),
        ],
    )
    async def test_true_only_when_every_pending_command_ran(self, pending, executed, expected):
        uow = MongoUnitOfWork(mock_context(pending, executed))

        assert await uow.commit() is expected

    @pytest.mark.asyncio
    async def test_empty_commit_opens_no_session(self, replica_client):
        uow = MongoUnitOfWork(MongoDbContext(replica_client))

        assert await uow.commit() is True
        assert replica_client.sessions == []

    @pytest.mark.asyncio
    async def test_commit_persists_buffered_writes(self, replica_client):
        context = MongoDbContext(replica_client)
        collection = replica_client["db"]["tags"]
        context.add_command(InsertOne.from_entity(collection, Tag(id=1, label="a")))
        context.add_command(InsertOne.from_entity(collection, Tag(id=2, label="b")))

        assert await MongoUnitOfWork(context).commit() is True
        assert sorted(replica_client.store["tags"]) == [1, 2]
        assert context.pending_commands == 0


class TestCommitFailure:

    @pytest.mark.asyncio
    async def test_failure_propagates_and_clears_buffer(self, replica_client):
        context = MongoDbContext(replica_client)
        collection = replica_client["db"]["tags"]
        context.add_command(InsertOne.from_entity(collection, Tag(id=1)))
        context.add_command(InsertOne.from_entity(collection, Tag(id=1)))

        with pytest.raises(DuplicateKeyError):
            await MongoUnitOfWork(context).commit()

        assert context.pending_commands == 0
        assert replica_client.store["tags"] == {}

    def test_is_a_unit_of_work(self, replica_client):
        uow = MongoUnitOfWork(MongoDbContext(replica_client))
        assert isinstance(uow, UnitOfWork)
        assert uow.context.client is replica_client
