"""
MCP Tool Catalog.

Enumerates the tools of every live connection, categorizes them and
publishes the result as an immutable snapshot.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from toolbridge.domain.model.mcp.catalog import CatalogSnapshot
from toolbridge.domain.model.mcp.category import (
    DomainCapabilities,
    categorize_tool,
    category_to_domain,
)
from toolbridge.domain.model.mcp.tool import ToolDescriptor
from toolbridge.infrastructure.mcp.connection_manager import ConnectionManager, ServerConnection
from toolbridge.infrastructure.mcp.events import CatalogChanged, EventEmitter, Listener

logger = logging.getLogger(__name__)


class ToolCatalog:
    """
    Aggregated, categorized index of the tools of all connected servers.

    ``refresh`` lists every live server concurrently (bounded by a
    semaphore, each listing with its own timeout) and only installs the
    new snapshot once the whole pass is done. Failed servers are logged
    and left out. When passes overlap, the one started last wins.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        discovery_timeout: float = 30.0,
        max_concurrency: int = 8,
    ) -> None:
        """
        Initialize tool catalog.

        Args:
            connections: Source of live connections.
            discovery_timeout: Per-server bound on one listing, in seconds.
            max_concurrency: Maximum number of servers listed at once.
        """
        self._connections = connections
        self._discovery_timeout = discovery_timeout
        self._max_concurrency = max_concurrency
        self._snapshot = CatalogSnapshot.empty()
        self._generation = 0
        self._events: EventEmitter[CatalogChanged] = EventEmitter("catalog")

    @property
    def snapshot(self) -> CatalogSnapshot:
        """The currently installed snapshot."""
        return self._snapshot

    @property
    def is_empty(self) -> bool:
        return self._snapshot.is_empty

    def subscribe(self, listener: Listener[CatalogChanged]) -> Callable[[], None]:
        """Subscribe to snapshot changes; returns an unsubscribe callable."""
        return self._events.subscribe(listener)

    async def refresh(self) -> CatalogSnapshot:
        """
        Run one discovery pass and install its snapshot.

        Returns:
            The installed snapshot, or the current one if a newer pass
            finished first.
        """
        self._generation += 1
        generation = self._generation
        connections = list(self._connections.live_connections().values())
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def discover(connection: ServerConnection) -> list[ToolDescriptor]:
            async with semaphore:
                capabilities = await asyncio.wait_for(
                    connection.client.list_capabilities(),
                    timeout=self._discovery_timeout,
                )
            server_categories = connection.descriptor.categories
            return [
                ToolDescriptor.from_capability(
                    capability,
                    server_id=connection.server_id,
                    category=categorize_tool(capability["name"], server_categories),
                )
                for capability in capabilities
            ]

        results = await asyncio.gather(
            *(discover(connection) for connection in connections),
            return_exceptions=True,
        )

        tools: list[ToolDescriptor] = []
        servers: list[str] = []
        for connection, result in zip(connections, results):
            if isinstance(result, TimeoutError):
                logger.warning(
                    f"Tool discovery for '{connection.server_id}' timed out after "
                    f"{self._discovery_timeout}s, skipping"
                )
            elif isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(f"Tool discovery failed for '{connection.server_id}': {result}")
            else:
                tools.extend(result)
                servers.append(connection.server_id)
                logger.debug(f"Discovered {len(result)} tool(s) on '{connection.server_id}'")

        if generation < self._snapshot.generation:
            logger.debug(f"Discarding stale discovery pass {generation}")
            return self._snapshot

        snapshot = CatalogSnapshot.build(tools, servers, generation)
        self._snapshot = snapshot
        logger.info(
            f"Catalog refreshed: {len(snapshot)} tool(s) from {len(servers)}/{len(connections)} server(s)"
        )
        await self._events.emit(CatalogChanged(snapshot=snapshot))
        return snapshot

    # Lookups, all served from one snapshot

    def lookup_by_name(self, name: str, server_id: str | None = None) -> ToolDescriptor | None:
        """Find a tool by name, optionally pinned to a server."""
        snapshot = self._snapshot
        if server_id is not None:
            return snapshot.get(server_id, name)
        candidates = snapshot.named(name)
        return candidates[0] if candidates else None

    def resolve(
        self,
        name: str,
        server_id: str | None = None,
        category: str | None = None,
    ) -> ToolDescriptor | None:
        """
        Find the tool an invocation refers to.

        When several servers expose the name, a candidate whose category
        (or, failing that, domain) matches the hint is preferred; otherwise
        the first in discovery order is used.
        """
        if server_id is not None:
            return self._snapshot.get(server_id, name)
        candidates = self._snapshot.named(name)
        if not candidates:
            return None
        if category:
            for tool in candidates:
                if tool.category == category:
                    return tool
            for tool in candidates:
                if category_to_domain(tool.category) == category:
                    return tool
        return candidates[0]

    def list_all(self) -> list[ToolDescriptor]:
        return self._snapshot.list_all()

    def by_category(self, category: str) -> list[ToolDescriptor]:
        return self._snapshot.by_category(category)

    def by_server(self, server_id: str) -> list[ToolDescriptor]:
        return self._snapshot.by_server(server_id)

    def categories(self) -> set[str]:
        return self._snapshot.categories()

    def available_domains(self) -> set[str]:
        return self._snapshot.domains()

    def tools_for_domain(self, domain: str) -> list[ToolDescriptor]:
        return self._snapshot.by_domain(domain)

    def tools_for_hint(self, hint: str) -> list[ToolDescriptor]:
        """Tools in a category, or in a domain when no category matches."""
        return self._snapshot.by_category(hint) or self._snapshot.by_domain(hint)

    def domain_capabilities(self) -> list[DomainCapabilities]:
        """Tools grouped by domain, in order of first appearance."""
        grouped: dict[str, list[str]] = {}
        for tool in self._snapshot.list_all():
            grouped.setdefault(category_to_domain(tool.category), []).append(tool.name)
        return [DomainCapabilities.for_domain(domain, names) for domain, names in grouped.items()]

    def describe_tools(self) -> str:
        """Markdown overview of the available tools by domain."""
        capabilities = self.domain_capabilities()
        if not capabilities:
            return (
                "No tools are currently available. "
                "Please configure MCP servers to enable tool-based assistance."
            )
        blocks = "\n".join(capability.format() for capability in capabilities)
        return f"Available tools organized by domain:\n\n{blocks}"

    def get_tool_info(self, server_id: str, name: str) -> dict[str, Any] | None:
        """Full record of one tool, including its domain."""
        tool = self._snapshot.get(server_id, name)
        if tool is None:
            return None
        return {**tool.to_dict(), "key": tool.key, "domain": category_to_domain(tool.category)}
