"""
Entity model: base shapes and capability mixins.

Public API:
- Entity, AuditableEntity, SoftDeleteEntity, VersionedEntity, FullFeaturedEntity
- Auditable, SoftDeletable, Versioned: composable capability mixins
- capabilities_for(): static capability set of an entity type
"""

from .base import (
    ID_FIELD,
    AuditableEntity,
    Entity,
    FullFeaturedEntity,
    SoftDeleteEntity,
    VersionedEntity,
)
from .features import (
    DELETED_AT_FIELD,
    DELETED_BY_FIELD,
    IS_DELETED_FIELD,
    VERSION_FIELD,
    Auditable,
    EntityCapabilities,
    SoftDeletable,
    Versioned,
    capabilities_for,
    utcnow,
)

__all__ = [
    "ID_FIELD",
    "IS_DELETED_FIELD",
    "DELETED_AT_FIELD",
    "DELETED_BY_FIELD",
    "VERSION_FIELD",
    "Entity",
    "AuditableEntity",
    "SoftDeleteEntity",
    "VersionedEntity",
    "FullFeaturedEntity",
    "Auditable",
    "SoftDeletable",
    "Versioned",
    "EntityCapabilities",
    "capabilities_for",
    "utcnow",
]
