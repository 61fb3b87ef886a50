"""
Configuration for repokit.

Connection and per-collection policy (indexes, schema validation) with
Pydantic validation. Values come from environment variables (prefix MONGO_,
nested keys separated by "__"), a .env file, or a JSON settings file.

Example JSON:
    {
        "connection_string": "mongodb://localhost:27017",
        "database_name": "shop",
        "collections": {
            "orders": {
                "indexes": {
                    "ix_orders_customer": {
                        "fields": [{"property_name": "customer_id"}],
                        "unique": false
                    }
                },
                "validation": {"json_schema": {"bsonType": "object"}}
            }
        }
    }
"""

import json
from datetime import timedelta
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class IndexKind(str, Enum):
    STANDARD = "standard"
    GEO_2DSPHERE = "2dsphere"
    TEXT = "text"


class ValidationLevel(str, Enum):
    """
    - off: No validation
    - moderate: Validate inserts and updates to existing valid documents
    - strict: Validate all inserts and updates
    """
    OFF = "off"
    MODERATE = "moderate"
    STRICT = "strict"


class ValidationAction(str, Enum):
    """
    - error: Reject documents that fail validation
    - warn: Allow documents but log a warning on the server
    """
    ERROR = "error"
    WARN = "warn"


class IndexField(BaseModel):
    """One key of an index definition."""

    property_name: str = Field(..., min_length=1)
    sort_direction: SortDirection = SortDirection.ASCENDING
    index_kind: IndexKind = IndexKind.STANDARD


class IndexSettings(BaseModel):
    """Named index definition for a collection."""

    fields: List[IndexField] = Field(default_factory=list)
    unique: bool = False
    case_insensitive: bool = False
    ttl: Optional[timedelta] = Field(
        default=None,
        description="Expire documents this long after the indexed date field"
    )
    text_language: Optional[str] = Field(
        default=None,
        description="Default language for text indexes"
    )
    text_weights: Optional[Dict[str, int]] = Field(
        default=None,
        description="Text index field weights (field name -> weight)"
    )

    @property
    def is_text_index(self) -> bool:
        return any(f.index_kind == IndexKind.TEXT for f in self.fields)


class SchemaValidationSettings(BaseModel):
    """Server-side $jsonSchema validation for a collection."""

    json_schema: Optional[Dict[str, Any]] = None
    level: ValidationLevel = ValidationLevel.STRICT
    action: ValidationAction = ValidationAction.ERROR


class CollectionSettings(BaseModel):
    """Index and validation policy for one collection."""

    indexes: Dict[str, IndexSettings] = Field(default_factory=dict)
    validation: Optional[SchemaValidationSettings] = None


class MongoSettings(BaseSettings):
    """
    MongoDB connection and collection policy.

    All settings can be overridden via environment variables, e.g.
    MONGO_CONNECTION_STRING, MONGO_DATABASE_NAME, MONGO_SUPPORTS_TRANSACTIONS.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONGO_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    connection_string: SecretStr = Field(
        default=SecretStr(""),
        description="MongoDB connection URI (masked in logs)"
    )
    database_name: str = Field(
        default="",
        description="MongoDB database name"
    )
    collections: Dict[str, CollectionSettings] = Field(default_factory=dict)
    supports_transactions: Optional[bool] = Field(
        default=None,
        description="Force transactional batches on/off; None inspects the cluster topology"
    )

    @field_validator("database_name")
    @classmethod
    def validate_database_name(cls, v: str) -> str:
        if any(ch in v for ch in "/\\. \"$"):
            raise ValueError(f"Invalid database name: {v!r}")
        return v

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MongoSettings":
        """
        Load settings from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Mongo settings file not found: {path}")
        with path.open(encoding="utf-8") as fh:
            return cls(**json.load(fh))

    def validate_required(self) -> None:
        """
        Fail fast when the connection is not configured.

        Raises:
            ValueError: If connection string or database name is missing
        """
        missing = []
        if not self.connection_string.get_secret_value():
            missing.append("MONGO_CONNECTION_STRING")
        if not self.database_name:
            missing.append("MONGO_DATABASE_NAME")
        if missing:
            raise ValueError(
                f"Missing required configuration: {', '.join(missing)}. "
                f"Please check your .env file."
            )

    def summary(self) -> str:
        """Return a summary of the current configuration (safe for logging)."""
        return (
            f"MongoDB: {'configured' if self.connection_string.get_secret_value() else 'missing'}, "
            f"database={self.database_name or '-'}, "
            f"collections={len(self.collections)}, "
            f"transactions={'auto' if self.supports_transactions is None else self.supports_transactions}"
        )


@lru_cache()
def get_settings() -> MongoSettings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return MongoSettings()
