"""
MongoDB context: the command buffer behind a unit of work.

Repositories enqueue write intents here; save_changes() replays them in
order inside one causally-consistent session, wrapped in a multi-document
transaction when the deployment supports it.

Standalone servers have no transactions. There the buffered commands run
sequentially without atomicity: a failure part-way leaves the earlier
writes applied. Callers targeting standalone deployments must treat
batched writes as non-atomic.

A context belongs to one logical unit of work (e.g. one request). It is not
safe to share between concurrently running tasks.
"""

from typing import List, Optional, Tuple

from pymongo import AsyncMongoClient
from pymongo.topology_description import TOPOLOGY_TYPE

from ..common.logger import get_logger
from .commands import WriteCommand, execute_command

logger = get_logger(__name__)


def is_standalone(client: AsyncMongoClient) -> bool:
    """True when the client is connected to a single standalone server."""
    return client.topology_description.topology_type == TOPOLOGY_TYPE.Single


class MongoDbContext:
    """
    Ordered buffer of pending write commands.

    Args:
        client: Shared AsyncMongoClient
        supports_transactions: Force transactional execution on/off.
            None inspects the cluster topology (anything but a standalone
            server is treated as transaction capable).
    """

    def __init__(self, client: AsyncMongoClient, supports_transactions: Optional[bool] = None):
        self._client = client
        self._supports_transactions = supports_transactions
        self._commands: List[WriteCommand] = []

    @property
    def client(self) -> AsyncMongoClient:
        return self._client

    @property
    def pending_commands(self) -> int:
        """Number of buffered commands not yet executed."""
        return len(self._commands)

    @property
    def commands(self) -> Tuple[WriteCommand, ...]:
        """Snapshot of the buffered commands in execution order."""
        return tuple(self._commands)

    def add_command(self, command: WriteCommand) -> None:
        """Append a write intent. Nothing is sent to the database."""
        self._commands.append(command)

    async def discover_topology(self) -> None:
        """
        Wait for server discovery when the topology is still unknown.

        A client that has not talked to the server yet reports an Unknown
        topology, which would be mistaken for a transaction capable cluster.
        """
        if self._client.topology_description.topology_type != TOPOLOGY_TYPE.Unknown:
            return
        logger.debug("Topology unknown, connecting before choosing the transaction mode")
        await self._client.aconnect()
        await self._client.admin.command("ping")

    async def supports_transactions(self) -> bool:
        """
        Whether buffered writes run inside a multi-document transaction.

        The explicit override wins; otherwise the discovered topology decides
        (anything but a standalone server is transaction capable).
        """
        if self._supports_transactions is not None:
            return self._supports_transactions
        await self.discover_topology()
        return not is_standalone(self._client)

    async def save_changes(self) -> int:
        """
        Execute all buffered commands and clear the buffer.

        Returns:
            Number of commands executed (0 without opening a session when
            the buffer is empty)

        Raises:
            Exception: Whatever the first failing command raised. Inside a
                transaction nothing is committed; without one the commands
                before the failure stay applied. The buffer is cleared either way.
        """
        if not self._commands:
            return 0

        transactional = await self.supports_transactions()
        executed = 0
        logger.debug(
            f"Saving {len(self._commands)} command(s) "
            f"({'transactional' if transactional else 'sequential, non-atomic'})"
        )

        try:
            async with self._client.start_session(causal_consistency=True) as session:
                if transactional:
                    await session.start_transaction()

                for command in self._commands:
                    await execute_command(command, session)
                    executed += 1

                # Leaving the session without committing aborts the transaction.
                if transactional:
                    await session.commit_transaction()
        finally:
            self._commands.clear()

        return executed
