"""
Unit of Work over a MongoDbContext.

Commit failure is signalled by the propagated exception; an incomplete
commit (fewer commands executed than were pending) by a False return.
"""

from abc import ABC, abstractmethod

from .context import MongoDbContext


class UnitOfWork(ABC):
    """A batch of pending writes committed together."""

    @abstractmethod
    async def commit(self) -> bool:
        """
        Commit all pending writes.

        Returns:
            True if every command pending at commit time was executed
        """
        pass


class MongoUnitOfWork(UnitOfWork):
    """Commits the command buffer of one MongoDbContext."""

    def __init__(self, context: MongoDbContext):
        self._context = context

    @property
    def context(self) -> MongoDbContext:
        return self._context

    async def commit(self) -> bool:
        expected = self._context.pending_commands
        executed = await self._context.save_changes()
        return executed == expected
