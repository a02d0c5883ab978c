"""
MCP Connection Manager.

Owns one client per configured server and reconciles the set of live
connections with the registry's descriptors.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from toolbridge.domain.model.mcp.connection import ConnectionState, ConnectionStatus
from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.infrastructure.mcp.client import MCPClient
from toolbridge.infrastructure.mcp.registry import ServerRegistry

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ServerDescriptor], MCPClient]


@dataclass
class ServerConnection:
    """Runtime binding of one descriptor to one client instance."""

    descriptor: ServerDescriptor
    client: MCPClient
    state: ConnectionState = ConnectionState.DISCONNECTED
    error: str | None = None
    connected_at: datetime | None = None

    @property
    def server_id(self) -> str:
        return self.descriptor.id

    @property
    def is_live(self) -> bool:
        """Connected, and the transport has not signalled closure since."""
        return self.state is ConnectionState.CONNECTED and self.client.is_connected

    def status(self) -> ConnectionStatus:
        state = self.state
        if state is ConnectionState.CONNECTED and not self.client.is_connected:
            state = ConnectionState.DISCONNECTED
        return ConnectionStatus(
            server_id=self.server_id,
            state=state,
            transport=self.descriptor.transport.value,
            endpoint=self.descriptor.endpoint,
            error=self.error,
            connected_at=self.connected_at,
            server_info=self.client.server_info or None,
        )


@dataclass(frozen=True)
class SyncReport:
    """What one reconciliation pass did."""

    opened: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    closed: tuple[str, ...] = ()


class ConnectionManager:
    """
    Manager of per-server connections.

    ``sync`` takes a fresh snapshot of the registry before acting, so a
    change arriving mid-pass is picked up by the next pass. Work for
    different servers runs concurrently; work for the same server id is
    serialized by a per-id lock. Connection failures are logged and
    recorded as ``failed``, never raised.
    """

    def __init__(self, registry: ServerRegistry, client_factory: ClientFactory) -> None:
        """
        Initialize connection manager.

        Args:
            registry: Source of the desired server set.
            client_factory: Builds an unconnected client for a descriptor.
        """
        self._registry = registry
        self._client_factory = client_factory
        self._connections: dict[str, ServerConnection] = {}
        self._order: list[str] = []
        self._id_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, server_id: str) -> asyncio.Lock:
        return self._id_locks.setdefault(server_id, asyncio.Lock())

    @property
    def registry(self) -> ServerRegistry:
        """Registry the desired server set is read from."""
        return self._registry

    async def sync(self) -> SyncReport:
        """Reconcile connections with the registry's current descriptors."""
        desired = {d.id: d for d in self._registry.list() if d.enabled}
        self._order = list(desired)

        to_close = [
            sid
            for sid, conn in self._connections.items()
            if sid not in desired or conn.descriptor != desired[sid]
        ]
        to_open = [
            d
            for sid, d in desired.items()
            if sid in to_close or sid not in self._connections or not self._connections[sid].is_live
        ]

        await asyncio.gather(*(self._close(sid) for sid in to_close))
        results = await asyncio.gather(*(self._open(d) for d in to_open))

        opened = tuple(d.id for d, ok in zip(to_open, results) if ok)
        failed = tuple(d.id for d, ok in zip(to_open, results) if not ok)
        closed = tuple(sid for sid in to_close if sid not in desired)
        if opened or failed or closed:
            logger.info(
                f"Connection sync: opened={list(opened)} failed={list(failed)} closed={list(closed)}"
            )
        return SyncReport(opened=opened, failed=failed, closed=closed)

    async def _open(self, descriptor: ServerDescriptor) -> bool:
        async with self._lock_for(descriptor.id):
            existing = self._connections.get(descriptor.id)
            if existing is not None:
                if existing.is_live and existing.descriptor == descriptor:
                    return True
                await self._teardown(existing)

            client = self._client_factory(descriptor)
            connection = ServerConnection(
                descriptor=descriptor, client=client, state=ConnectionState.CONNECTING
            )
            self._connections[descriptor.id] = connection

            try:
                await client.connect()
            except Exception as e:
                connection.state = ConnectionState.FAILED
                connection.error = str(e)
                logger.error(f"Failed to connect to MCP server '{descriptor.id}': {e}")
                await self._release(connection)
                return False

            connection.state = ConnectionState.CONNECTED
            connection.connected_at = datetime.now()
            connection.error = None
            return True

    async def _close(self, server_id: str) -> None:
        async with self._lock_for(server_id):
            connection = self._connections.pop(server_id, None)
            if connection is not None:
                await self._teardown(connection)
            if server_id not in self._order:
                # No longer desired; sync will not open it again
                self._id_locks.pop(server_id, None)

    async def _teardown(self, connection: ServerConnection) -> None:
        """Release the transport before the connection is discarded."""
        await self._release(connection)
        connection.state = ConnectionState.DISCONNECTED
        logger.info(f"Closed connection to MCP server '{connection.server_id}'")

    async def _release(self, connection: ServerConnection) -> None:
        try:
            await connection.client.disconnect()
        except Exception as e:
            logger.error(f"Error disconnecting MCP server '{connection.server_id}': {e}")

    async def close_all(self) -> None:
        """Close every connection."""
        self._order = []
        await asyncio.gather(*(self._close(sid) for sid in list(self._connections)))

    def get(self, server_id: str) -> ServerConnection | None:
        """Return the live connection for a server, or None."""
        connection = self._connections.get(server_id)
        if connection is not None and connection.is_live:
            return connection
        return None

    def is_live(self, server_id: str) -> bool:
        return self.get(server_id) is not None

    def live_connections(self) -> dict[str, ServerConnection]:
        """Copy of the live connections, in registry order."""
        return {
            sid: self._connections[sid]
            for sid in self._order
            if sid in self._connections and self._connections[sid].is_live
        }

    def statuses(self) -> dict[str, ConnectionStatus]:
        """Status of every known connection, in registry order."""
        ordered = [sid for sid in self._order if sid in self._connections]
        ordered += [sid for sid in self._connections if sid not in ordered]
        return {sid: self._connections[sid].status() for sid in ordered}
