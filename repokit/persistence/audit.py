"""
Audit context: who is performing the current write.

Passed explicitly to TrackedRepository. Implement AuditContext to plug in
your authentication system.
"""

from abc import ABC, abstractmethod
from typing import Optional


class AuditContext(ABC):
    """Provides the current actor for audit fields."""

    @property
    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        """Identifier of the current user, None if anonymous."""
        pass


class AnonymousAuditContext(AuditContext):
    """No user tracking; every audit actor field is stored as None."""

    @property
    def current_user_id(self) -> Optional[str]:
        return None


class StaticAuditContext(AuditContext):
    """Fixed actor, e.g. one per request or per background job."""

    def __init__(self, user_id: Optional[str]):
        self._user_id = user_id

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user_id
