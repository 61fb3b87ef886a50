"""
Entity base shapes.

Every entity is a Pydantic model whose identifier is stored under MongoDB's
native primary key "_id". The identifier type is chosen by the subclass:

    class Product(FullFeaturedEntity):
        id: Optional[str] = Field(default=None, alias="_id")
        name: str
        price: float

The default identifier type is anything (ObjectId when generated by the
server on insert).
"""

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .features import Auditable, SoftDeletable, Versioned

ID_FIELD = "_id"

TEntity = TypeVar("TEntity", bound="Entity")


class Entity(BaseModel):
    """Plain document with an identifier and no tracked capabilities."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    id: Optional[Any] = Field(default=None, alias=ID_FIELD)

    def has_id(self) -> bool:
        """True when the identifier is set (not None and not an empty string)."""
        return self.id is not None and self.id != ""

    def to_document(self) -> Dict[str, Any]:
        """
        Convert to a MongoDB document.

        "_id" is omitted while the identifier is unset so the server
        generates one on insert.
        """
        doc = self.model_dump(by_alias=True)
        if not self.has_id():
            doc.pop(ID_FIELD, None)
        return doc

    @classmethod
    def from_document(cls: Type[TEntity], document: Dict[str, Any]) -> TEntity:
        """Build an entity from a MongoDB document."""
        return cls.model_validate(document)


class AuditableEntity(Entity, Auditable):
    """Entity with audit trail (created/modified tracking)."""


class SoftDeleteEntity(Entity, Auditable, SoftDeletable):
    """Entity with audit trail and soft delete."""


class VersionedEntity(Entity, Auditable, Versioned):
    """Entity with audit trail and optimistic concurrency."""


class FullFeaturedEntity(Entity, Auditable, SoftDeletable, Versioned):
    """Entity with audit trail, soft delete and optimistic concurrency."""
