"""Database initialization from configured collection policy."""

from .database_initializer import (
    DatabaseInitializer,
    build_index_model,
    build_validator,
    validate_index,
)

__all__ = [
    "DatabaseInitializer",
    "build_index_model",
    "build_validator",
    "validate_index",
]
