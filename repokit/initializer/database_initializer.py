"""
Database initializer.

Applies the collection policy from MongoSettings: creates missing
collections (with their validator), creates configured indexes that do not
exist yet, and (re)applies schema validation. Safe to run on every start.
"""

from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING, GEOSPHERE, TEXT, AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.collation import Collation, CollationStrength
from pymongo.errors import ConnectionFailure
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..common.config import (
    CollectionSettings,
    IndexKind,
    IndexSettings,
    MongoSettings,
    SchemaValidationSettings,
    SortDirection,
)
from ..common.error_handling import log_on_exception, warn_on_exception
from ..common.logger import get_logger

logger = get_logger(__name__)

IndexKeys = List[Tuple[str, Any]]


def validate_index(name: str, index: IndexSettings) -> bool:
    """
    Check an index definition before creating it.

    TTL indexes must cover exactly one field and have a positive duration.
    """
    if not index.fields:
        logger.error(f"Index {name} has no fields")
        return False
    if index.ttl is None:
        return True
    if len(index.fields) != 1 or index.ttl.total_seconds() <= 0:
        logger.error(f"Invalid TTL index: {name}")
        return False
    return True


def build_index_model(name: str, index: IndexSettings) -> Tuple[IndexKeys, Dict[str, Any]]:
    """
    Translate an index definition into create_index() keys and options.

    Returns:
        Tuple of (keys, keyword options)
    """
    if index.is_text_index:
        keys: IndexKeys = [
            (f.property_name, TEXT) for f in index.fields if f.index_kind == IndexKind.TEXT
        ]
    else:
        keys = []
        for f in index.fields:
            if f.index_kind == IndexKind.GEO_2DSPHERE:
                keys.append((f.property_name, GEOSPHERE))
            elif f.sort_direction == SortDirection.DESCENDING:
                keys.append((f.property_name, DESCENDING))
            else:
                keys.append((f.property_name, ASCENDING))

    options: Dict[str, Any] = {"name": name, "unique": index.unique}
    if index.ttl is not None:
        options["expireAfterSeconds"] = int(index.ttl.total_seconds())
    if index.case_insensitive:
        options["collation"] = Collation(locale="en", strength=CollationStrength.SECONDARY)

    if index.is_text_index:
        if index.text_language:
            options["default_language"] = index.text_language
        if index.text_weights:
            options["weights"] = dict(index.text_weights)

    return keys, options


def build_validator(validation: SchemaValidationSettings) -> Dict[str, Any]:
    return {"$jsonSchema": validation.json_schema}


class DatabaseInitializer:
    """
    Creates collections, indexes and validators described by MongoSettings.

    Usage:
        initializer = DatabaseInitializer(get_client(), get_settings())
        await initializer.initialize()
    """

    def __init__(self, client: AsyncMongoClient, settings: MongoSettings):
        self._client = client
        self._settings = settings

    @retry(
        retry=retry_if_exception_type(ConnectionFailure),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def _ping(self) -> None:
        await self._client.admin.command("ping")

    async def initialize(self) -> None:
        """
        Apply the configured policy to every collection.

        Raises:
            PyMongoError: If connecting, creating a collection or an index fails
        """
        logger.info(f"Initializing MongoDB database {self._settings.database_name}")

        with log_on_exception(logger, "Initialize MongoDB"):
            await self._ping()
            database = self._client[self._settings.database_name]

            for name, config in self._settings.collections.items():
                collection = await self._ensure_collection(database, name, config)
                await self._create_indexes(collection, name, config)
                await self._apply_schema_validation(database, name, config)

        logger.info("MongoDB database initialized")

    async def _ensure_collection(
        self,
        database: AsyncDatabase,
        name: str,
        config: CollectionSettings,
    ) -> AsyncCollection:
        existing = {n.lower() for n in await database.list_collection_names()}
        if name.lower() not in existing:
            logger.info(f"Creating collection {name}")
            validation = config.validation
            if validation is not None and validation.json_schema is not None:
                await database.create_collection(
                    name,
                    validator=build_validator(validation),
                    validationLevel=validation.level.value,
                    validationAction=validation.action.value,
                )
            else:
                await database.create_collection(name)
        return database[name]

    async def _create_indexes(
        self,
        collection: AsyncCollection,
        name: str,
        config: CollectionSettings,
    ) -> None:
        existing = set((await collection.index_information()).keys())
        col_logger = logger.bind(name)

        for index_name, index in config.indexes.items():
            if index_name in existing:
                continue
            if not validate_index(index_name, index):
                continue

            keys, options = build_index_model(index_name, index)
            col_logger.info(f"Creating index {index_name}")
            await collection.create_index(keys, **options)

    async def _apply_schema_validation(
        self,
        database: AsyncDatabase,
        name: str,
        config: CollectionSettings,
    ) -> Optional[Dict[str, Any]]:
        validation = config.validation
        if validation is None or validation.json_schema is None:
            return None

        result = None
        with warn_on_exception(logger, f"Apply schema validation to {name}"):
            result = await database.command({
                "collMod": name,
                "validator": build_validator(validation),
                "validationLevel": validation.level.value,
                "validationAction": validation.action.value,
            })
            logger.info(f"Applied schema validation to {name}")
        return result
