"""
Change stream subscription.

Maps raw change stream documents to ChangeEvent objects. Change streams
require a replica set or sharded cluster.

Usage:
    watcher = ChangeStreamWatcher(db["orders"], Order)
    async for event in watcher.watch():
        if event.operation_type == ChangeOperationType.INSERT:
            handle(event.full_document)
        save_checkpoint(event.resume_token)
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, Generic, List, Optional, Type, TypeVar

from bson.timestamp import Timestamp
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.collection import AsyncCollection

from ..entities import Entity

T = TypeVar("T")


class ChangeOperationType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    INVALIDATE = "invalidate"
    DROP = "drop"
    DROP_DATABASE = "dropDatabase"
    RENAME = "rename"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ChangeOperationType":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class FullDocumentOption(str, Enum):
    """
    - default: no full document for update events
    - updateLookup: look up the current document for update events
    - whenAvailable: post-image when the collection records one (MongoDB 6.0+)
    """
    DEFAULT = "default"
    UPDATE_LOOKUP = "updateLookup"
    WHEN_AVAILABLE = "whenAvailable"


@dataclass
class ChangeStreamOptions:
    full_document: FullDocumentOption = FullDocumentOption.UPDATE_LOOKUP
    resume_after: Optional[Dict[str, Any]] = None
    start_at_operation_time: Optional[Timestamp] = None
    max_await_time: Optional[timedelta] = None
    batch_size: Optional[int] = None

    def watch_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for AsyncCollection.watch()."""
        kwargs: Dict[str, Any] = {}
        if self.full_document != FullDocumentOption.DEFAULT:
            kwargs["full_document"] = self.full_document.value
        if self.resume_after is not None:
            kwargs["resume_after"] = self.resume_after
        if self.start_at_operation_time is not None:
            kwargs["start_at_operation_time"] = self.start_at_operation_time
        if self.max_await_time is not None:
            kwargs["max_await_time_ms"] = int(self.max_await_time.total_seconds() * 1000)
        if self.batch_size is not None:
            kwargs["batch_size"] = self.batch_size
        return kwargs


@dataclass
class UpdateDescription:
    updated_fields: Dict[str, Any] = field(default_factory=dict)
    removed_fields: List[str] = field(default_factory=list)


@dataclass
class ChangeEvent(Generic[T]):
    """
    One change on the watched collection.

    Attributes:
        operation_type: Kind of change
        full_document: Document after the change (insert/replace, and update
            when requested via FullDocumentOption)
        document_key: Key of the changed document (contains _id)
        resume_token: Token to resume the stream after this event
        timestamp: Cluster time of the change (UTC)
        namespace: "database.collection" where the change occurred
        update_description: Changed/removed fields for update events
    """
    operation_type: ChangeOperationType
    full_document: Optional[T] = None
    document_key: Optional[Dict[str, Any]] = None
    resume_token: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None
    namespace: Optional[str] = None
    update_description: Optional[UpdateDescription] = None


def map_change_event(change: Dict[str, Any], entity_type: Optional[Type[Entity]] = None) -> ChangeEvent:
    """Convert a raw change stream document into a ChangeEvent."""
    full_document = change.get("fullDocument")
    if full_document is not None and entity_type is not None:
        full_document = entity_type.from_document(full_document)

    cluster_time = change.get("clusterTime")
    if isinstance(cluster_time, Timestamp):
        timestamp = cluster_time.as_datetime()
    else:
        timestamp = datetime.now(timezone.utc)

    ns = change.get("ns") or {}
    namespace = f"{ns.get('db', '')}.{ns.get('coll', '')}" if ns else None

    update_description = None
    raw_update = change.get("updateDescription")
    if raw_update is not None:
        update_description = UpdateDescription(
            updated_fields=dict(raw_update.get("updatedFields") or {}),
            removed_fields=list(raw_update.get("removedFields") or []),
        )

    return ChangeEvent(
        operation_type=ChangeOperationType.parse(change.get("operationType")),
        full_document=full_document,
        document_key=change.get("documentKey"),
        resume_token=change.get("_id"),
        timestamp=timestamp,
        namespace=namespace,
        update_description=update_description,
    )


class ChangeStreamWatcher(Generic[T]):
    """Watches a collection and yields mapped change events."""

    def __init__(self, collection: AsyncCollection, entity_type: Optional[Type[Entity]] = None):
        self._collection = collection
        self._entity_type = entity_type

    async def watch(
        self,
        pipeline: Optional[List[Dict[str, Any]]] = None,
        options: Optional[ChangeStreamOptions] = None,
        session: Optional[AsyncClientSession] = None,
    ) -> AsyncIterator[ChangeEvent]:
        """
        Yield change events until the stream is closed or the task is cancelled.

        Args:
            pipeline: Optional aggregation stages to filter/shape events
            options: Stream options (defaults to ChangeStreamOptions())
            session: Optional session
        """
        options = options or ChangeStreamOptions()
        stream = await self._collection.watch(pipeline, session=session, **options.watch_kwargs())
        async with stream:
            async for change in stream:
                yield map_change_event(change, self._entity_type)
