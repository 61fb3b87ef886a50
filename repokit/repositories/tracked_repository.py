"""
Tracked repository: audit trail, soft delete and optimistic concurrency.

Behaviour depends on the capabilities of the entity type (resolved once):

- Auditable: created_at/created_by stamped on add, modified_at/modified_by
  on update, using the injected AuditContext for the actor
- SoftDeletable: default reads only see documents with is_deleted == False;
  soft_delete/restore flip the flag; *_including_deleted reads see everything
- Versioned: add sets version = 1; update replaces only if the stored
  version still equals the caller's version, then the caller's object
  already holds the new version. No match raises ConcurrencyError.

Conflicts are reported, never retried here. Re-fetch and re-apply in the
caller if a retry is wanted.

Soft delete and restore do not check or bump the version, so they can race
with a concurrent versioned update without a conflict being reported.
"""

from typing import Any, Dict, Iterable, List, Optional, Type

from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.collection import AsyncCollection

from ..common.exceptions import InvalidOperationError
from ..entities import (
    DELETED_AT_FIELD,
    DELETED_BY_FIELD,
    IS_DELETED_FIELD,
    VERSION_FIELD,
    utcnow,
)
from ..persistence.audit import AuditContext
from ..persistence.commands import ReplaceOne, UpdateOne, VersionCheck, execute_command
from ..persistence.context import MongoDbContext
from .base import TEntity, TId
from .mongo_repository import MongoRepository


class TrackedRepository(MongoRepository[TEntity, TId]):
    """
    MongoRepository that tracks who/when created, modified and deleted documents.

    Args:
        context: Command buffer shared by the repositories of a unit of work
        collection: pymongo AsyncCollection holding the documents
        entity_type: Entity class used to build results
        audit_context: Supplies the current actor; None stores no actor
    """

    def __init__(
        self,
        context: MongoDbContext,
        collection: AsyncCollection,
        entity_type: Type[TEntity],
        audit_context: Optional[AuditContext] = None,
    ):
        super().__init__(context, collection, entity_type)
        self._audit_context = audit_context

    @property
    def not_deleted_filter(self) -> Dict[str, Any]:
        """Filter matching documents that are not soft-deleted."""
        return {IS_DELETED_FIELD: False}

    # ===== Helpers =====

    def _current_user_id(self) -> Optional[str]:
        return self._audit_context.current_user_id if self._audit_context else None

    def _read_filter(self, filter: Dict[str, Any]) -> Dict[str, Any]:
        if not self._capabilities.soft_deletable:
            return filter
        if not filter:
            return self.not_deleted_filter
        if IS_DELETED_FIELD in filter:
            return {"$and": [filter, self.not_deleted_filter]}
        return {**filter, **self.not_deleted_filter}

    def _stamp_created(self, entity: TEntity) -> None:
        if self._capabilities.auditable:
            entity.created_at = utcnow()
            entity.created_by = self._current_user_id()
        if self._capabilities.versioned:
            entity.version = 1
        if self._capabilities.soft_deletable:
            entity.is_deleted = False

    def _stamp_modified(self, entity: TEntity) -> None:
        if self._capabilities.auditable:
            entity.modified_at = utcnow()
            entity.modified_by = self._current_user_id()

    def _versioned_replace(self, entity: TEntity) -> ReplaceOne:
        """
        Build the conditional replace for a versioned entity.

        The in-memory version is incremented before the payload is captured,
        so the caller's object matches the stored document once it succeeds
        and a second update in the same unit of work expects the new version.
        """
        expected_version = entity.version
        entity.version = expected_version + 1
        return ReplaceOne.from_entity(
            self._collection,
            {**self._id_filter(entity.id), VERSION_FIELD: expected_version},
            entity,
            version_check=VersionCheck(entity.id, self._entity_type, expected_version),
        )

    def _ensure_soft_deletable(self) -> None:
        if not self._capabilities.soft_deletable:
            raise InvalidOperationError(
                f"{self._entity_type.__name__} does not support soft delete"
            )

    def _soft_delete_command(self, id: TId) -> UpdateOne:
        self._ensure_soft_deletable()
        self._ensure_id_value(id)
        return UpdateOne(self._collection, self._id_filter(id), {"$set": {
            IS_DELETED_FIELD: True,
            DELETED_AT_FIELD: utcnow(),
            DELETED_BY_FIELD: self._current_user_id(),
        }})

    def _restore_command(self, id: TId) -> UpdateOne:
        self._ensure_soft_deletable()
        self._ensure_id_value(id)
        return UpdateOne(self._collection, self._id_filter(id), {"$set": {
            IS_DELETED_FIELD: False,
            DELETED_AT_FIELD: None,
            DELETED_BY_FIELD: None,
        }})

    # ===== Reads including soft-deleted documents =====

    async def get_by_id_including_deleted(
        self,
        id: TId,
        session: Optional[AsyncClientSession] = None,
    ) -> Optional[TEntity]:
        return await self._find_single(self._id_filter(id), session)

    async def get_all_including_deleted(self, session: Optional[AsyncClientSession] = None) -> List[TEntity]:
        return await self._find_all({}, session)

    # ===== Create =====

    def add(self, entity: TEntity) -> None:
        self._stamp_created(entity)
        super().add(entity)

    def add_many(self, entities: Iterable[TEntity]) -> None:
        entities = list(entities)
        for entity in entities:
            self._stamp_created(entity)
        super().add_many(entities)

    async def add_with_session(self, session: AsyncClientSession, entity: TEntity) -> None:
        self._stamp_created(entity)
        await super().add_with_session(session, entity)

    async def add_many_with_session(self, session: AsyncClientSession, entities: Iterable[TEntity]) -> None:
        entities = list(entities)
        for entity in entities:
            self._stamp_created(entity)
        await super().add_many_with_session(session, entities)

    # ===== Update =====

    def update(self, entity: TEntity) -> None:
        """
        Enqueue an update; versioned entities get a conditional replace.

        The ConcurrencyError of a versioned conflict is raised when the unit
        of work commits.
        """
        self._ensure_id(entity)
        self._stamp_modified(entity)
        if self._capabilities.versioned:
            self._context.add_command(self._versioned_replace(entity))
        else:
            super().update(entity)

    async def update_with_session(self, session: AsyncClientSession, entity: TEntity) -> None:
        """
        Update now; versioned entities get a conditional replace.

        Raises:
            InvalidOperationError: If the entity id is not set
            ConcurrencyError: If the stored version no longer matches
        """
        self._ensure_id(entity)
        self._stamp_modified(entity)
        if self._capabilities.versioned:
            await execute_command(self._versioned_replace(entity), session)
        else:
            await super().update_with_session(session, entity)

    # ===== Soft delete / restore =====

    def soft_delete(self, entity: TEntity) -> None:
        self._ensure_id(entity)
        self.soft_delete_by_id(entity.id)

    def soft_delete_by_id(self, id: TId) -> None:
        self._context.add_command(self._soft_delete_command(id))

    async def soft_delete_with_session(self, session: AsyncClientSession, entity: TEntity) -> None:
        self._ensure_id(entity)
        await self.soft_delete_by_id_with_session(session, entity.id)

    async def soft_delete_by_id_with_session(self, session: AsyncClientSession, id: TId) -> None:
        await execute_command(self._soft_delete_command(id), session)

    def restore(self, id: TId) -> None:
        self._context.add_command(self._restore_command(id))

    async def restore_with_session(self, session: AsyncClientSession, id: TId) -> None:
        await execute_command(self._restore_command(id), session)
