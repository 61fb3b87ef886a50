"""
Buffered write intents.

A command describes one pending write (what kind, which collection, which
filter/payload) without holding a session, so a buffer can be inspected
and tested before anything touches the database. execute_command() maps
each intent to the matching pymongo call inside a session.

Payloads are documents captured when the command is built. Changes made to
an entity after it was queued do not reach the queued write; the entity is
kept on inserts only to receive a server-generated id.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pymongo import ReplaceOne as ReplaceOneModel
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.collection import AsyncCollection

from ..common.exceptions import ConcurrencyError
from ..entities import ID_FIELD, Entity

Document = Dict[str, Any]


@dataclass(frozen=True)
class VersionCheck:
    """Expected state of a versioned document; no match means a conflict."""

    entity_id: Any
    entity_type: type
    expected_version: int


@dataclass
class InsertOne:
    collection: AsyncCollection
    document: Document
    entity: Optional[Entity] = None

    @classmethod
    def from_entity(cls, collection: AsyncCollection, entity: Entity) -> "InsertOne":
        return cls(collection, entity.to_document(), entity)


@dataclass
class InsertMany:
    collection: AsyncCollection
    documents: List[Document]
    entities: List[Entity] = field(default_factory=list)

    @classmethod
    def from_entities(cls, collection: AsyncCollection, entities: Iterable[Entity]) -> "InsertMany":
        entities = list(entities)
        return cls(collection, [e.to_document() for e in entities], entities)


@dataclass
class ReplaceOne:
    collection: AsyncCollection
    filter: Document
    document: Document
    upsert: bool = False
    version_check: Optional[VersionCheck] = None

    @classmethod
    def from_entity(
        cls,
        collection: AsyncCollection,
        filter: Document,
        entity: Entity,
        upsert: bool = False,
        version_check: Optional[VersionCheck] = None,
    ) -> "ReplaceOne":
        return cls(collection, filter, entity.to_document(), upsert, version_check)


@dataclass
class UpsertMany:
    """Replace-or-insert by _id; every document carries its _id."""

    collection: AsyncCollection
    documents: List[Document]

    @classmethod
    def from_entities(cls, collection: AsyncCollection, entities: Iterable[Entity]) -> "UpsertMany":
        return cls(collection, [e.to_document() for e in entities])


@dataclass
class UpdateOne:
    collection: AsyncCollection
    filter: Document
    update: Document


@dataclass
class DeleteOne:
    collection: AsyncCollection
    filter: Document


@dataclass
class DeleteMany:
    collection: AsyncCollection
    filter: Document = field(default_factory=dict)


WriteCommand = Union[InsertOne, InsertMany, ReplaceOne, UpsertMany, UpdateOne, DeleteOne, DeleteMany]


async def insert_document(
    collection: AsyncCollection,
    document: Document,
    entity: Optional[Entity] = None,
    session: Optional[AsyncClientSession] = None,
) -> None:
    """Insert one document and write a server-generated id back onto the entity."""
    # insert_one adds _id to the dict it is given
    result = await collection.insert_one(dict(document), session=session)
    if entity is not None and not entity.has_id():
        entity.id = result.inserted_id


async def insert_documents(
    collection: AsyncCollection,
    documents: Sequence[Document],
    entities: Sequence[Entity] = (),
    session: Optional[AsyncClientSession] = None,
) -> None:
    """Insert many documents in order and write generated ids back."""
    if not documents:
        return
    result = await collection.insert_many([dict(d) for d in documents], session=session)
    for entity, inserted_id in zip(entities, result.inserted_ids):
        if not entity.has_id():
            entity.id = inserted_id


async def replace_document(
    collection: AsyncCollection,
    filter: Document,
    document: Document,
    upsert: bool = False,
    version_check: Optional[VersionCheck] = None,
    session: Optional[AsyncClientSession] = None,
) -> None:
    """
    Replace the document matching filter.

    Raises:
        ConcurrencyError: If version_check is given and nothing matched
    """
    result = await collection.replace_one(filter, document, upsert=upsert, session=session)
    if version_check is not None and result.matched_count == 0:
        raise ConcurrencyError(
            version_check.entity_id,
            version_check.entity_type,
            version_check.expected_version,
        )


async def upsert_documents(
    collection: AsyncCollection,
    documents: Sequence[Document],
    session: Optional[AsyncClientSession] = None,
) -> None:
    """Replace-or-insert every document by _id in one bulk write."""
    if not documents:
        return
    operations = [
        ReplaceOneModel({ID_FIELD: d[ID_FIELD]}, d, upsert=True)
        for d in documents
    ]
    await collection.bulk_write(operations, session=session)


async def execute_command(command: WriteCommand, session: AsyncClientSession) -> None:
    """Run one buffered write intent inside the given session."""
    if isinstance(command, InsertOne):
        await insert_document(command.collection, command.document, command.entity, session)
    elif isinstance(command, InsertMany):
        await insert_documents(command.collection, command.documents, command.entities, session)
    elif isinstance(command, ReplaceOne):
        await replace_document(
            command.collection,
            command.filter,
            command.document,
            upsert=command.upsert,
            version_check=command.version_check,
            session=session,
        )
    elif isinstance(command, UpsertMany):
        await upsert_documents(command.collection, command.documents, session)
    elif isinstance(command, UpdateOne):
        await command.collection.update_one(command.filter, command.update, session=session)
    elif isinstance(command, DeleteOne):
        await command.collection.delete_one(command.filter, session=session)
    elif isinstance(command, DeleteMany):
        await command.collection.delete_many(command.filter, session=session)
    else:
        raise TypeError(f"Unsupported write command: {type(command).__name__}")
