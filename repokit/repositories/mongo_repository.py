"""
MongoDB repository.

Two execution modes per write:

- deferred (add, update, delete, ...): enqueue a command in the context;
  the unit of work executes all of them later in one transaction
- immediate (*_with_session): execute now inside a session supplied by the
  caller, so several repositories can take part in one transaction built
  with with_transaction()

Update, upsert and delete require the entity id to be set and fail with
InvalidOperationError before any I/O otherwise. Driver errors propagate
unchanged.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type, TypeVar

from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.collection import AsyncCollection

from ..accessors.aggregation import aggregate_paged
from ..accessors.change_streams import ChangeStreamWatcher
from ..accessors.paging import PagedResult, QueryFilter
from ..accessors.search import TextSearchOptions, TextSearchResult, text_search, text_search_with_score
from ..common.exceptions import DataIntegrityError, InvalidOperationError
from ..entities import ID_FIELD, capabilities_for
from ..persistence.commands import (
    DeleteMany,
    DeleteOne,
    InsertMany,
    InsertOne,
    ReplaceOne,
    UpsertMany,
    insert_document,
    insert_documents,
    replace_document,
    upsert_documents,
)
from ..persistence.context import MongoDbContext
from .base import Repository, TEntity, TId

TResult = TypeVar("TResult")

TransactionCallback = Callable[[AsyncClientSession], Awaitable[TResult]]


class MongoRepository(Repository[TEntity, TId]):
    """
    Repository over one collection of one entity type.

    Args:
        context: Command buffer shared by the repositories of a unit of work
        collection: pymongo AsyncCollection holding the documents
        entity_type: Entity class used to build results

    Usage:
        class OrderRepository(MongoRepository[Order, ObjectId]):
            pass

        orders = OrderRepository(context, db["orders"], Order)
    """

    def __init__(self, context: MongoDbContext, collection: AsyncCollection, entity_type: Type[TEntity]):
        self._context = context
        self._collection = collection
        self._entity_type = entity_type
        self._capabilities = capabilities_for(entity_type)

    @property
    def context(self) -> MongoDbContext:
        return self._context

    @property
    def collection(self) -> AsyncCollection:
        return self._collection

    @property
    def entity_type(self) -> Type[TEntity]:
        return self._entity_type

    # ===== Helpers =====

    def _read_filter(self, filter: Dict[str, Any]) -> Dict[str, Any]:
        """Scope a filter for default read paths. Unscoped here."""
        return filter

    def _to_entity(self, document: Dict[str, Any]) -> TEntity:
        return self._entity_type.from_document(document)

    @staticmethod
    def _id_filter(id: Any) -> Dict[str, Any]:
        return {ID_FIELD: id}

    @classmethod
    def _ids_filter(cls, ids: Iterable[Any]) -> Dict[str, Any]:
        ids = list(ids)
        for id in ids:
            cls._ensure_id_value(id)
        return {ID_FIELD: {"$in": ids}}

    @staticmethod
    def _ensure_id(entity: TEntity) -> None:
        if not entity.has_id():
            raise InvalidOperationError("Entity Id must not be null")

    @staticmethod
    def _ensure_id_value(id: Any) -> None:
        if id is None or id == "":
            raise InvalidOperationError("Entity Id must not be null")

    def _ids_of(self, entities: Iterable[TEntity]) -> List[Any]:
        ids = []
        for entity in entities:
            self._ensure_id(entity)
            ids.append(entity.id)
        return ids

    async def _find_single(
        self,
        filter: Dict[str, Any],
        session: Optional[AsyncClientSession] = None,
    ) -> Optional[TEntity]:
        # Zero or one match expected; fetch two to detect duplicates
        cursor = self._collection.find(filter, session=session).limit(2)
        documents = await cursor.to_list(length=None)
        if len(documents) > 1:
            raise DataIntegrityError(
                f"Expected at most one {self._entity_type.__name__} for {filter}, found several"
            )
        return self._to_entity(documents[0]) if documents else None

    async def _find_all(
        self,
        filter: Dict[str, Any],
        session: Optional[AsyncClientSession] = None,
    ) -> List[TEntity]:
        cursor = self._collection.find(filter, session=session)
        return [self._to_entity(doc) for doc in await cursor.to_list(length=None)]

    # ===== Reads =====

    async def get_by_id(self, id: TId, session: Optional[AsyncClientSession] = None) -> Optional[TEntity]:
        """
        Find an entity by identifier.

        Raises:
            DataIntegrityError: If more than one document matches
        """
        return await self._find_single(self._read_filter(self._id_filter(id)), session)

    async def get_all(self, session: Optional[AsyncClientSession] = None) -> List[TEntity]:
        return await self._find_all(self._read_filter({}), session)

    async def count(
        self,
        filter: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncClientSession] = None,
    ) -> int:
        """Count documents matching the filter."""
        return await self._collection.count_documents(self._read_filter(filter or {}), session=session)

    async def find_paged(
        self,
        query_filter: QueryFilter,
        session: Optional[AsyncClientSession] = None,
    ) -> PagedResult[TEntity]:
        """
        Fetch one page and the total match count in a single aggregation.

        Args:
            query_filter: Filter, sort, page window and time limits
            session: Optional session

        Returns:
            PagedResult with items, total_count, page_size and skip
        """
        count, documents = await aggregate_paged(
            self._collection,
            self._read_filter(query_filter.to_filter()),
            query_filter.to_sort(),
            query_filter.skip,
            query_filter.page_size,
            session=session,
            **query_filter.query_options(),
        )
        return PagedResult(
            items=[self._to_entity(doc) for doc in documents],
            total_count=count,
            page_size=query_filter.page_size,
            skip=query_filter.skip,
        )

    async def text_search(
        self,
        search_text: str,
        options: Optional[TextSearchOptions] = None,
        session: Optional[AsyncClientSession] = None,
    ) -> List[TEntity]:
        """Full-text search (requires a text index)."""
        return await text_search(
            self._collection,
            search_text,
            options,
            entity_type=self._entity_type,
            filter=self._read_filter({}),
            session=session,
        )

    async def text_search_with_score(
        self,
        search_text: str,
        options: Optional[TextSearchOptions] = None,
        session: Optional[AsyncClientSession] = None,
    ) -> List[TextSearchResult[TEntity]]:
        """Full-text search returning relevance scores (requires a text index)."""
        return await text_search_with_score(
            self._collection,
            search_text,
            options,
            entity_type=self._entity_type,
            filter=self._read_filter({}),
            session=session,
        )

    def watcher(self) -> ChangeStreamWatcher[TEntity]:
        """Change stream watcher for this collection."""
        return ChangeStreamWatcher(self._collection, self._entity_type)

    # ===== Deferred writes =====

    def add(self, entity: TEntity) -> None:
        self._context.add_command(InsertOne.from_entity(self._collection, entity))

    def add_many(self, entities: Iterable[TEntity]) -> None:
        self._context.add_command(InsertMany.from_entities(self._collection, entities))

    def update(self, entity: TEntity) -> None:
        self._ensure_id(entity)
        self._context.add_command(ReplaceOne.from_entity(self._collection, self._id_filter(entity.id), entity))

    def upsert(self, entity: TEntity) -> None:
        self._ensure_id(entity)
        self._context.add_command(
            ReplaceOne.from_entity(self._collection, self._id_filter(entity.id), entity, upsert=True)
        )

    def upsert_many(self, entities: Iterable[TEntity]) -> None:
        entities = list(entities)
        self._ids_of(entities)
        self._context.add_command(UpsertMany.from_entities(self._collection, entities))

    def delete(self, entity: TEntity) -> None:
        self._ensure_id(entity)
        self.delete_by_id(entity.id)

    def delete_by_id(self, id: TId) -> None:
        self._ensure_id_value(id)
        self._context.add_command(DeleteOne(self._collection, self._id_filter(id)))

    def delete_many(self, entities: Iterable[TEntity]) -> None:
        self.delete_many_by_ids(self._ids_of(entities))

    def delete_many_by_ids(self, ids: Iterable[TId]) -> None:
        self._context.add_command(DeleteMany(self._collection, self._ids_filter(ids)))

    # ===== Immediate writes =====

    async def add_with_session(self, session: AsyncClientSession, entity: TEntity) -> None:
        await insert_document(self._collection, entity.to_document(), entity, session)

    async def add_many_with_session(self, session: AsyncClientSession, entities: Iterable[TEntity]) -> None:
        entities = list(entities)
        await insert_documents(self._collection, [e.to_document() for e in entities], entities, session)

    async def update_with_session(self, session: AsyncClientSession, entity: TEntity) -> None:
        self._ensure_id(entity)
        await replace_document(self._collection, self._id_filter(entity.id), entity.to_document(), session=session)

    async def upsert_with_session(self, session: AsyncClientSession, entity: TEntity) -> None:
        self._ensure_id(entity)
        await replace_document(
            self._collection, self._id_filter(entity.id), entity.to_document(), upsert=True, session=session
        )

    async def upsert_many_with_session(self, session: AsyncClientSession, entities: Iterable[TEntity]) -> None:
        entities = list(entities)
        self._ids_of(entities)
        await upsert_documents(self._collection, [e.to_document() for e in entities], session)

    async def delete_with_session(self, session: AsyncClientSession, entity: TEntity) -> None:
        self._ensure_id(entity)
        await self.delete_by_id_with_session(session, entity.id)

    async def delete_by_id_with_session(self, session: AsyncClientSession, id: TId) -> None:
        self._ensure_id_value(id)
        await self._collection.delete_one(self._id_filter(id), session=session)

    async def delete_many_with_session(self, session: AsyncClientSession, entities: Iterable[TEntity]) -> None:
        await self.delete_many_by_ids_with_session(session, self._ids_of(entities))

    async def delete_many_by_ids_with_session(self, session: AsyncClientSession, ids: Iterable[TId]) -> None:
        await self._collection.delete_many(self._ids_filter(ids), session=session)

    # ===== Transactions =====

    async def with_transaction(
        self,
        callback: TransactionCallback,
        read_concern=None,
        write_concern=None,
        read_preference=None,
        max_commit_time_ms: Optional[int] = None,
    ) -> TResult:
        """
        Run callback(session) atomically when the deployment allows it.

        On replica sets and sharded clusters the callback runs inside a
        driver-managed transaction (the driver retries transient errors and
        unknown commit results). On a standalone server it runs with a plain
        session and no transactional guarantee.

        Args:
            callback: Coroutine function taking the session
            read_concern, write_concern, read_preference, max_commit_time_ms:
                Transaction options passed to the driver

        Returns:
            Whatever the callback returns
        """
        client = self._context.client
        async with client.start_session(causal_consistency=True) as session:
            if await self._context.supports_transactions():
                return await session.with_transaction(
                    callback,
                    read_concern=read_concern,
                    write_concern=write_concern,
                    read_preference=read_preference,
                    max_commit_time_ms=max_commit_time_ms,
                )
            return await callback(session)
