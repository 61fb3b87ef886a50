"""
repokit: repository and unit-of-work layer over pymongo.

Entities with optional audit trail, soft delete and optimistic concurrency;
repositories with deferred (unit of work) and immediate (session) writes;
declarative index and schema-validation policy.
"""

from .common.exceptions import (
    ConcurrencyError,
    DataIntegrityError,
    InvalidOperationError,
    RepositoryError,
)
from .entities import (
    Auditable,
    AuditableEntity,
    Entity,
    FullFeaturedEntity,
    SoftDeletable,
    SoftDeleteEntity,
    Versioned,
    VersionedEntity,
)
from .persistence import (
    AnonymousAuditContext,
    AuditContext,
    MongoDbContext,
    MongoUnitOfWork,
    StaticAuditContext,
    UnitOfWork,
)
from .repositories import MongoRepository, TrackedRepository
from .version import __version__

__all__ = [
    "__version__",
    "RepositoryError",
    "InvalidOperationError",
    "ConcurrencyError",
    "DataIntegrityError",
    "Entity",
    "AuditableEntity",
    "SoftDeleteEntity",
    "VersionedEntity",
    "FullFeaturedEntity",
    "Auditable",
    "SoftDeletable",
    "Versioned",
    "AuditContext",
    "AnonymousAuditContext",
    "StaticAuditContext",
    "MongoDbContext",
    "UnitOfWork",
    "MongoUnitOfWork",
    "MongoRepository",
    "TrackedRepository",
]
