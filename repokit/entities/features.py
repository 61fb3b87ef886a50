"""
Entity capability mixins.

Each capability is an independent group of top-level document fields.
Entities pick the combination they need at the class definition site:

    class Order(Entity, Auditable, SoftDeletable, Versioned):
        customer_id: str
        total: float

Repositories resolve the capability set of an entity type once, via
capabilities_for(), instead of inspecting every instance on every write.
A capability that is absent means its fields are never touched.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field

# Field names as persisted. Queries and indexes built outside this package
# can reference them directly.
IS_DELETED_FIELD = "is_deleted"
DELETED_AT_FIELD = "deleted_at"
DELETED_BY_FIELD = "deleted_by"
VERSION_FIELD = "version"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Auditable(BaseModel):
    """Creation and last-modification audit trail."""

    created_at: datetime = Field(default_factory=utcnow)
    created_by: Optional[str] = None
    modified_at: Optional[datetime] = None
    modified_by: Optional[str] = None


class SoftDeletable(BaseModel):
    """Documents are flagged as deleted instead of being removed."""

    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None


class Versioned(BaseModel):
    """Optimistic concurrency counter, incremented on every tracked update."""

    version: int = 0


@dataclass(frozen=True)
class EntityCapabilities:
    """Static capability set of an entity type."""

    auditable: bool = False
    soft_deletable: bool = False
    versioned: bool = False


@lru_cache(maxsize=None)
def capabilities_for(entity_type: type) -> EntityCapabilities:
    """Resolve (and cache) which capability groups an entity type carries."""
    return EntityCapabilities(
        auditable=issubclass(entity_type, Auditable),
        soft_deletable=issubclass(entity_type, SoftDeletable),
        versioned=issubclass(entity_type, Versioned),
    )
