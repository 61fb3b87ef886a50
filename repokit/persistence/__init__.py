"""
Persistence: command buffer, unit of work and audit context.

Usage:
    context = MongoDbContext(client)
    orders = OrderRepository(context, db["orders"])
    orders.add(order)
    orders.update(other_order)
    committed = await MongoUnitOfWork(context).commit()
"""

from .audit import AnonymousAuditContext, AuditContext, StaticAuditContext
from .commands import (
    DeleteMany,
    DeleteOne,
    InsertMany,
    InsertOne,
    ReplaceOne,
    UpdateOne,
    UpsertMany,
    VersionCheck,
    WriteCommand,
    execute_command,
)
from .context import MongoDbContext, is_standalone
from .unit_of_work import MongoUnitOfWork, UnitOfWork

__all__ = [
    "AuditContext",
    "AnonymousAuditContext",
    "StaticAuditContext",
    "WriteCommand",
    "InsertOne",
    "InsertMany",
    "ReplaceOne",
    "UpsertMany",
    "UpdateOne",
    "DeleteOne",
    "DeleteMany",
    "VersionCheck",
    "execute_command",
    "MongoDbContext",
    "is_standalone",
    "UnitOfWork",
    "MongoUnitOfWork",
]
