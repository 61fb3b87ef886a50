"""
Repository Interface Definitions

Defines the abstract interfaces for entity repositories. Writes are
deferred: they are buffered in a MongoDbContext and executed together by a
unit of work, so consumer code never depends on when I/O happens.
"""

from abc import ABC, abstractmethod
from typing import Generic, Iterable, List, Optional, TypeVar

from ..entities import Entity

TEntity = TypeVar("TEntity", bound=Entity)
TId = TypeVar("TId")


class ReadRepository(ABC, Generic[TEntity, TId]):
    """Read access to one collection of one entity type."""

    @abstractmethod
    async def get_by_id(self, id: TId) -> Optional[TEntity]:
        """
        Find an entity by identifier.

        Args:
            id: Entity identifier

        Returns:
            Entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_all(self) -> List[TEntity]:
        """
        Return every entity of the collection.

        Returns:
            List of entities (empty if none)
        """
        pass


class Repository(ReadRepository[TEntity, TId]):
    """
    Read access plus deferred writes.

    Every write method only enqueues a command; nothing is sent to the
    database until the owning unit of work commits.
    """

    @abstractmethod
    def add(self, entity: TEntity) -> None:
        """Enqueue an insert."""
        pass

    @abstractmethod
    def add_many(self, entities: Iterable[TEntity]) -> None:
        """Enqueue an insert of several entities."""
        pass

    @abstractmethod
    def update(self, entity: TEntity) -> None:
        """
        Enqueue a full replace of the stored document.

        Raises:
            InvalidOperationError: If the entity id is not set
        """
        pass

    @abstractmethod
    def upsert(self, entity: TEntity) -> None:
        """
        Enqueue a replace that inserts when nothing matches.

        Raises:
            InvalidOperationError: If the entity id is not set
        """
        pass

    @abstractmethod
    def upsert_many(self, entities: Iterable[TEntity]) -> None:
        """Enqueue a bulk replace-or-insert by id."""
        pass

    @abstractmethod
    def delete(self, entity: TEntity) -> None:
        """
        Enqueue a hard delete of the entity.

        Raises:
            InvalidOperationError: If the entity id is not set
        """
        pass

    @abstractmethod
    def delete_by_id(self, id: TId) -> None:
        """Enqueue a hard delete by identifier."""
        pass

    @abstractmethod
    def delete_many(self, entities: Iterable[TEntity]) -> None:
        """Enqueue a hard delete of several entities."""
        pass

    @abstractmethod
    def delete_many_by_ids(self, ids: Iterable[TId]) -> None:
        """Enqueue a hard delete of several identifiers."""
        pass
