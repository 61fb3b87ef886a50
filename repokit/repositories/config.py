"""
Client Factory

Provides the process-wide AsyncMongoClient and helpers to build the
per-unit-of-work objects (context, unit of work) from MongoSettings.

Usage:
    context = create_context()
    orders = OrderRepository(context, get_database()["orders"], Order)
    orders.add(order)
    await create_unit_of_work(context).commit()
"""

from typing import Optional

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from ..common.config import MongoSettings, get_settings
from ..common.logger import get_logger
from ..persistence.context import MongoDbContext
from ..persistence.unit_of_work import MongoUnitOfWork

logger = get_logger(__name__)

# Singleton client instance (pymongo pools connections internally)
_client_instance: Optional[AsyncMongoClient] = None
_client_settings: Optional[MongoSettings] = None


def get_client(settings: Optional[MongoSettings] = None) -> AsyncMongoClient:
    """
    Get the shared MongoDB client.

    Created on first use from the given settings (or get_settings()).

    Raises:
        ValueError: If the connection is not configured
    """
    global _client_instance, _client_settings

    if _client_instance is None:
        settings = settings or get_settings()
        settings.validate_required()
        _client_instance = AsyncMongoClient(
            settings.connection_string.get_secret_value(),
            tz_aware=True,
            uuidRepresentation="standard",
        )
        _client_settings = settings
        logger.info(f"Initialized MongoDB client ({settings.summary()})")

    return _client_instance


def get_database(settings: Optional[MongoSettings] = None) -> AsyncDatabase:
    """Get the configured database of the shared client."""
    client = get_client(settings)
    return client[(settings or _client_settings or get_settings()).database_name]


def create_context(settings: Optional[MongoSettings] = None) -> MongoDbContext:
    """Create a command buffer for one logical unit of work."""
    client = get_client(settings)
    settings = settings or _client_settings or get_settings()
    return MongoDbContext(client, supports_transactions=settings.supports_transactions)


def create_unit_of_work(context: MongoDbContext) -> MongoUnitOfWork:
    return MongoUnitOfWork(context)


async def reset_client() -> None:
    """
    Close and forget the shared client.

    Used for testing or when configuration changes.
    """
    global _client_instance, _client_settings

    if _client_instance is not None:
        await _client_instance.close()
        logger.info("MongoDB client closed")

    _client_instance = None
    _client_settings = None
