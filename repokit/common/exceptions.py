"""
Error taxonomy for repokit.

- InvalidOperationError: local and fatal, raised before any I/O
- ConcurrencyError: optimistic-lock conflict, recoverable by the caller
- DataIntegrityError: a read that must match at most one document matched more

Transport and server errors (pymongo.errors.PyMongoError) are never wrapped;
they propagate to the caller unchanged.
"""

from typing import Any, Optional


class RepositoryError(Exception):
    """Base class for errors raised by repokit itself."""


class InvalidOperationError(RepositoryError):
    """Operation cannot be attempted with the given arguments (e.g. id not set)."""


class DataIntegrityError(RepositoryError):
    """Stored data violates an invariant the caller relies on."""


class ConcurrencyError(RepositoryError):
    """
    Raised when an optimistic concurrency conflict is detected.

    The document was modified by another writer between the time the caller
    loaded it and the time the conditional replace was issued.

    Attributes:
        entity_id: Identifier of the conflicting entity
        entity_type: Entity class
        expected_version: Version the update expected to find in the database
    """

    def __init__(
        self,
        entity_id: Any = None,
        entity_type: Optional[type] = None,
        expected_version: int = 0,
        message: Optional[str] = None,
    ):
        self.entity_id = entity_id
        self.entity_type = entity_type
        self.expected_version = expected_version

        if message is None:
            type_name = entity_type.__name__ if entity_type is not None else "entity"
            message = (
                f"Concurrency conflict detected for {type_name} with Id '{entity_id}'. "
                f"Expected version {expected_version} but document was modified by another process."
            )
        super().__init__(message)
