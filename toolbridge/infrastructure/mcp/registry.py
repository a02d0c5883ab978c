"""
MCP Server Registry.

Holds the configured server descriptors, merged from layered
configuration stores, and announces every change.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from toolbridge.domain.exceptions.mcp import MCPServerNotFoundError, ServerConfigurationError
from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.infrastructure.mcp.config import (
    ConfigLayer,
    ServerConfigStore,
    parse_server_record,
)
from toolbridge.infrastructure.mcp.events import EventEmitter, Listener, RegistryChanged

logger = logging.getLogger(__name__)


class ServerRegistry:
    """
    Registry of configured MCP servers.

    Layers are merged lowest priority first and keyed by id, so a later
    layer overrides an earlier one. The last layer receives every change
    made through ``add`` and ``remove``; removing an id that a lower layer
    defines records a tombstone there. Mutation is serialized, readers get
    copies.
    """

    def __init__(
        self,
        stores: Sequence[ServerConfigStore],
        default_server: ServerDescriptor | None = None,
    ) -> None:
        """
        Initialize server registry.

        Args:
            stores: Configuration layers, lowest priority first. The last
                one must be writable.
            default_server: Descriptor offered when no server is configured.
        """
        if not stores:
            raise ValueError("At least one configuration layer is required")
        if not stores[-1].writable:
            raise ValueError(f"The last configuration layer ({stores[-1].name}) must be writable")

        self._stores = list(stores)
        self._default_server = default_server
        self._servers: dict[str, ServerDescriptor] = {}
        self._lock = asyncio.Lock()
        self._events: EventEmitter[RegistryChanged] = EventEmitter("registry")

    @property
    def user_store(self) -> ServerConfigStore:
        return self._stores[-1]

    def subscribe(self, listener: Listener[RegistryChanged]) -> Callable[[], None]:
        """Subscribe to registry changes; returns an unsubscribe callable."""
        return self._events.subscribe(listener)

    async def load(self) -> list[ServerDescriptor]:
        """
        Merge all configuration layers into the active descriptor set.

        Malformed records are logged and skipped. A layer that cannot be
        read at all raises ServerConfigurationError and leaves the current
        set untouched.
        """
        async with self._lock:
            merged: dict[str, ServerDescriptor] = {}
            for store in self._stores:
                layer = store.load()
                for server_id in layer.removed:
                    merged.pop(server_id, None)
                for record in layer.servers:
                    try:
                        descriptor = parse_server_record(record)
                    except ServerConfigurationError as e:
                        logger.warning(f"Skipping server record in {store.name}: {e}")
                        continue
                    merged[descriptor.id] = descriptor

            self._servers = merged
            servers = self.list()
            logger.info(
                f"Loaded {len(merged)} configured MCP server(s) from {len(self._stores)} layer(s)"
            )

        await self._events.emit(RegistryChanged(servers=tuple(servers), reason="load"))
        return servers

    async def add(self, server: ServerDescriptor | dict[str, Any]) -> ServerDescriptor:
        """
        Insert or replace a server by id and persist it to the user layer.

        Args:
            server: Descriptor or raw configuration record.

        Returns:
            The stored descriptor.

        Raises:
            ServerConfigurationError: If the record is malformed or misses
                the fields its transport kind requires.
        """
        descriptor = server if isinstance(server, ServerDescriptor) else parse_server_record(server)

        async with self._lock:
            layer = self.user_store.load()
            layer.upsert(descriptor.to_dict())
            self.user_store.save(layer)

            replaced = descriptor.id in self._servers
            self._servers[descriptor.id] = descriptor
            servers = self.list()

        logger.info(f"{'Updated' if replaced else 'Added'} MCP server: {descriptor.id}")
        await self._events.emit(
            RegistryChanged(servers=tuple(servers), reason=f"add:{descriptor.id}")
        )
        return descriptor

    async def remove(self, server_id: str) -> bool:
        """
        Delete a server by id and persist the removal.

        Returns:
            True if a configured server was removed, False if the id was unknown.
        """
        async with self._lock:
            if server_id not in self._servers:
                return False

            layer = self.user_store.load()
            layer.discard(server_id)
            if self._defined_below_user_layer(server_id):
                layer.tombstone(server_id)
            self.user_store.save(layer)

            del self._servers[server_id]
            servers = self.list()

        logger.info(f"Removed MCP server: {server_id}")
        await self._events.emit(RegistryChanged(servers=tuple(servers), reason=f"remove:{server_id}"))
        return True

    def list(self) -> list[ServerDescriptor]:
        """
        Return the active descriptors in merge order.

        When nothing is configured, the default server (if any) stands in.
        """
        if not self._servers and self._default_server is not None:
            return [self._default_server]
        return list(self._servers.values())

    def get(self, server_id: str) -> ServerDescriptor | None:
        return next((s for s in self.list() if s.id == server_id), None)

    def require(self, server_id: str) -> ServerDescriptor:
        """
        Return a descriptor by id.

        Raises:
            MCPServerNotFoundError: If no such server is active.
        """
        descriptor = self.get(server_id)
        if descriptor is None:
            raise MCPServerNotFoundError(server_id)
        return descriptor

    @property
    def is_using_default(self) -> bool:
        """True when the default server stands in for an empty configuration."""
        return not self._servers and self._default_server is not None

    def _defined_below_user_layer(self, server_id: str) -> bool:
        effective: set[str] = set()
        for store in self._stores[:-1]:
            layer: ConfigLayer = store.load()
            effective.difference_update(layer.removed)
            effective.update(layer.ids())
        return server_id in effective
