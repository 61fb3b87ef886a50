"""
Unit tests for TrackedRepository.

Covers:
- Audit stamping on create and update
- Version initialisation and conditional replace (optimistic concurrency)
- Soft delete, restore and the not-deleted read scope
- Capability-less entity types are left untouched
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from repokit.common.exceptions import ConcurrencyError, InvalidOperationError
from repokit.persistence import (
    AnonymousAuditContext,
    MongoDbContext,
    MongoUnitOfWork,
    ReplaceOne,
    StaticAuditContext,
    UpdateOne,
)
from repokit.repositories import TrackedRepository
from tests.helpers.entities import Customer, Note, Tag, Widget


def recently(moment: datetime) -> bool:
    return datetime.now(timezone.utc) - moment < timedelta(seconds=5)


def widget_repo(client, user_id="alice"):
    return TrackedRepository(MongoDbContext(client), client["shop"]["widgets"], Widget, StaticAuditContext(user_id))


async def commit(repo) -> bool:
    return await MongoUnitOfWork(repo.context).commit()


class TestWidgetLifecycle:
    """Create, update and soft-delete one fully featured entity."""

    @pytest.mark.asyncio
    async def test_widget_scenario(self, widgets, unit_of_work):
        widget = Widget(id="w-1", name="Widget", price=10)
        widgets.add(widget)
        assert await unit_of_work.commit()

        stored = await widgets.get_by_id("w-1")
        assert recently(stored.created_at)
        assert stored.created_by == "alice"
        assert stored.version == 1
        assert stored.is_deleted is False

        stored.price = 15
        widgets.update(stored)
        assert await unit_of_work.commit()

        updated = await widgets.get_by_id("w-1")
        assert updated.price == 15
        assert updated.version == 2
        assert recently(updated.modified_at)
        assert updated.modified_by == "alice"

        widgets.soft_delete(updated)
        assert await unit_of_work.commit()

        assert await widgets.get_by_id("w-1") is None
        deleted = await widgets.get_by_id_including_deleted("w-1")
        assert deleted.is_deleted is True
        assert deleted.deleted_by == "alice"
        assert recently(deleted.deleted_at)


class TestAuditStamping:

    def test_add_stamps_creation_fields(self, widgets):
        widget = Widget(id="w-1", name="w", version=7, is_deleted=True)
        widgets.add(widget)

        assert widget.version == 1
        assert widget.is_deleted is False
        assert widget.created_by == "alice"
        assert recently(widget.created_at)

    def test_add_many_stamps_every_entity(self, widgets):
        batch = [Widget(id=f"w-{i}", name="w") for i in range(3)]
        widgets.add_many(batch)

        assert all(w.version == 1 and w.created_by == "alice" for w in batch)
        assert widgets.context.pending_commands == 1

    def test_anonymous_actor_is_stored_as_none(self, replica_client):
        repo = TrackedRepository(
            MongoDbContext(replica_client), replica_client["db"]["customers"], Customer, AnonymousAuditContext()
        )
        customer = Customer(id="c-1", created_by="spoofed")
        repo.add(customer)
        assert customer.created_by is None

    def test_missing_audit_context_means_no_actor(self, replica_client):
        repo = TrackedRepository(MongoDbContext(replica_client), replica_client["db"]["customers"], Customer)
        customer = Customer(id="c-1")
        repo.update(customer)

        assert customer.modified_by is None
        assert recently(customer.modified_at)

    def test_auditable_only_type_gets_plain_replace(self, replica_client):
        context = MongoDbContext(replica_client)
        repo = TrackedRepository(context, replica_client["db"]["customers"], Customer, StaticAuditContext("bob"))
        repo.update(Customer(id="c-1"))

        (command,) = context.commands
        assert isinstance(command, ReplaceOne)
        assert command.filter == {"_id": "c-1"}
        assert command.version_check is None

    def test_plain_entity_is_not_stamped(self, replica_client):
        context = MongoDbContext(replica_client)
        repo = TrackedRepository(context, replica_client["db"]["tags"], Tag, StaticAuditContext("bob"))
        tag = Tag(id=1, label="x")
        repo.add(tag)
        repo.update(tag)

        assert tag.to_document() == {"_id": 1, "label": "x"}


class TestOptimisticConcurrency:

    def test_update_builds_conditional_replace(self, widgets):
        widget = Widget(id="w-1", name="w", version=4)
        widgets.update(widget)

        (command,) = widgets.context.commands
        assert command.filter == {"_id": "w-1", "version": 4}
        assert command.version_check.expected_version == 4
        assert widget.version == 5

    def test_update_without_id_fails_before_stamping(self, widgets):
        widget = Widget(name="w", version=4)
        with pytest.raises(InvalidOperationError):
            widgets.update(widget)

        assert widget.version == 4
        assert widget.modified_at is None
        assert widgets.context.pending_commands == 0

    @pytest.mark.asyncio
    async def test_two_concurrent_updates_one_conflict(self, replica_client):
        seeder = widget_repo(replica_client)
        seeder.add(Widget(id="w-1", name="w", price=10))
        await commit(seeder)

        first = widget_repo(replica_client, "alice")
        second = widget_repo(replica_client, "bob")
        copy_a = await first.get_by_id("w-1")
        copy_b = await second.get_by_id("w-1")

        copy_a.price = 20
        first.update(copy_a)
        assert await commit(first)

        copy_b.price = 30
        second.update(copy_b)
        with pytest.raises(ConcurrencyError) as exc_info:
            await commit(second)

        error = exc_info.value
        assert error.entity_id == "w-1"
        assert error.entity_type is Widget
        assert error.expected_version == 1
        assert "Expected version 1" in str(error)

        stored = await first.get_by_id("w-1")
        assert stored.price == 20
        assert stored.version == 2
        assert stored.modified_by == "alice"

    @pytest.mark.asyncio
    async def test_conflict_aborts_the_whole_unit_of_work(self, replica_client):
        repo = widget_repo(replica_client)
        repo.add(Widget(id="w-1", name="w"))
        await commit(repo)

        repo.add(Widget(id="w-2", name="other"))
        repo.update(Widget(id="w-1", name="stale", version=0))
        with pytest.raises(ConcurrencyError):
            await commit(repo)

        assert "w-2" not in replica_client.store["widgets"]

    @pytest.mark.asyncio
    async def test_two_updates_in_one_unit_of_work(self, widgets, unit_of_work, replica_client):
        widgets.add(Widget(id="w-1", name="w"))
        await unit_of_work.commit()

        widget = await widgets.get_by_id("w-1")
        widget.price = 5
        widgets.update(widget)
        widget.price = 6
        widgets.update(widget)

        assert [c.filter["version"] for c in widgets.context.commands] == [1, 2]
        assert await unit_of_work.commit()

        stored = replica_client.store["widgets"]["w-1"]
        assert stored["version"] == 3
        assert stored["price"] == 6
        assert widget.version == 3

    @pytest.mark.asyncio
    async def test_changes_after_add_are_not_written(self, widgets, unit_of_work, replica_client):
        widget = Widget(id="w-1", name="queued")
        widgets.add(widget)
        widget.name = "changed-after-add"

        await unit_of_work.commit()

        assert replica_client.store["widgets"]["w-1"]["name"] == "queued"

    @pytest.mark.asyncio
    async def test_update_with_session_raises_immediately(self, replica_client):
        repo = widget_repo(replica_client)
        repo.add(Widget(id="w-1", name="w"))
        await commit(repo)

        session = replica_client.start_session()
        fresh = await repo.get_by_id("w-1")
        await repo.update_with_session(session, fresh)
        assert fresh.version == 2

        with pytest.raises(ConcurrencyError) as exc_info:
            await repo.update_with_session(session, Widget(id="w-1", name="stale", version=1))
        assert exc_info.value.expected_version == 1


class TestSoftDelete:

    @pytest_asyncio.fixture
    async def seeded(self, widgets, unit_of_work):
        widgets.add_many([Widget(id="w-1", name="a"), Widget(id="w-2", name="b")])
        await unit_of_work.commit()
        return widgets

    @pytest.mark.asyncio
    async def test_default_reads_hide_deleted(self, seeded, unit_of_work):
        seeded.soft_delete_by_id("w-1")
        await unit_of_work.commit()

        assert [w.id for w in await seeded.get_all()] == ["w-2"]
        assert await seeded.count() == 1
        assert len(await seeded.get_all_including_deleted()) == 2

    @pytest.mark.asyncio
    async def test_restore_clears_deletion_fields(self, seeded, unit_of_work):
        seeded.soft_delete_by_id("w-1")
        await unit_of_work.commit()
        seeded.restore("w-1")
        await unit_of_work.commit()

        restored = await seeded.get_by_id("w-1")
        assert restored.is_deleted is False
        assert restored.deleted_at is None
        assert restored.deleted_by is None

    @pytest.mark.asyncio
    async def test_soft_delete_does_not_bump_version(self, seeded, unit_of_work):
        seeded.soft_delete_by_id("w-1")
        await unit_of_work.commit()

        assert (await seeded.get_by_id_including_deleted("w-1")).version == 1

    @pytest.mark.asyncio
    async def test_immediate_variants(self, seeded, replica_client):
        session = replica_client.start_session()
        widget = await seeded.get_by_id("w-2")

        await seeded.soft_delete_with_session(session, widget)
        assert await seeded.get_by_id("w-2") is None

        await seeded.restore_with_session(session, "w-2")
        assert await seeded.get_by_id("w-2") is not None

    def test_soft_delete_command_shape(self, widgets):
        widgets.soft_delete_by_id("w-1")

        (command,) = widgets.context.commands
        assert isinstance(command, UpdateOne)
        assert command.filter == {"_id": "w-1"}
        assert command.update["$set"]["is_deleted"] is True
        assert command.update["$set"]["deleted_by"] == "alice"

    def test_soft_delete_requires_capability(self, replica_client):
        repo = TrackedRepository(MongoDbContext(replica_client), replica_client["db"]["customers"], Customer)

        with pytest.raises(InvalidOperationError, match="does not support soft delete"):
            repo.soft_delete_by_id("c-1")
        with pytest.raises(InvalidOperationError):
            repo.restore("c-1")

    def test_soft_delete_requires_id(self, widgets):
        with pytest.raises(InvalidOperationError):
            widgets.soft_delete(Widget(name="w"))
        with pytest.raises(InvalidOperationError):
            widgets.soft_delete_by_id(None)
        assert widgets.context.pending_commands == 0


class TestReadScope:

    @pytest.mark.parametrize(
        "filter,expected",
        [
            ({}, {"is_deleted": False}),
            ({"name": "a"}, {"name": "a", "is_deleted": False}),
            ({"is_deleted": True}, {"$and": [{"is_deleted": True}, {"is_deleted": False}]}),
        ],
    )
    def test_soft_deletable_filters_are_scoped(self, widgets, filter, expected):
        assert widgets._read_filter(filter) == expected

    def test_other_types_are_unscoped(self, replica_client):
        repo = TrackedRepository(MongoDbContext(replica_client), replica_client["db"]["customers"], Customer)
        assert repo._read_filter({"email": "x"}) == {"email": "x"}

    @pytest.mark.asyncio
    async def test_note_soft_delete_without_versioning(self, replica_client):
        context = MongoDbContext(replica_client)
        notes = TrackedRepository(context, replica_client["db"]["notes"], Note, StaticAuditContext("carol"))
        notes.add(Note(id="n-1", text="hello"))
        notes.soft_delete_by_id("n-1")
        await MongoUnitOfWork(context).commit()

        assert await notes.get_all() == []
        assert (await notes.get_all_including_deleted())[0].deleted_by == "carol"
