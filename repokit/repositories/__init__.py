"""
Repository Pattern for MongoDB Operations

Public API:
- MongoRepository: CRUD, paging, text search, deferred and immediate writes
- TrackedRepository: adds audit trail, soft delete and optimistic concurrency
- ReadRepository / Repository: abstract interfaces
- get_client(), get_database(), create_context(), create_unit_of_work()

Usage:
    from repokit.repositories import TrackedRepository, create_context, create_unit_of_work

    context = create_context()
    products = TrackedRepository(context, get_database()["products"], Product, audit)
    products.add(Product(name="Widget", price=10))
    await create_unit_of_work(context).commit()
"""

from .base import ReadRepository, Repository
from .config import create_context, create_unit_of_work, get_client, get_database, reset_client
from .mongo_repository import MongoRepository
from .tracked_repository import TrackedRepository

__all__ = [
    "ReadRepository",
    "Repository",
    "MongoRepository",
    "TrackedRepository",
    "get_client",
    "get_database",
    "create_context",
    "create_unit_of_work",
    "reset_client",
]
