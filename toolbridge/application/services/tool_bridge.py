"""
Tool Bridge service.

Wires the server registry, connection manager, tool catalog, proxy router
and request classifier into one lifecycle: a registry change reconnects
the affected servers and then re-enumerates the catalog.
"""

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any

from toolbridge.application.services.proxy_router import ProxyRouter
from toolbridge.application.services.request_classifier import (
    RequestClassification,
    RequestClassifier,
)
from toolbridge.domain.model.mcp.catalog import CatalogSnapshot
from toolbridge.domain.model.mcp.invocation import InvocationRequest, InvocationResult
from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.infrastructure.mcp.catalog import ToolCatalog
from toolbridge.infrastructure.mcp.connection_manager import ConnectionManager
from toolbridge.infrastructure.mcp.events import CatalogChanged, Listener, RegistryChanged
from toolbridge.infrastructure.mcp.registry import ServerRegistry

logger = logging.getLogger(__name__)


class ToolBridge:
    """
    Facade over the discovery, catalog and routing core.

    Registry changes are applied one at a time: each runs a connection
    sync followed by a catalog refresh.
    """

    def __init__(
        self,
        registry: ServerRegistry,
        connections: ConnectionManager,
        catalog: ToolCatalog,
        router: ProxyRouter,
        classifier: RequestClassifier | None = None,
    ) -> None:
        self.registry = registry
        self.connections = connections
        self.catalog = catalog
        self.router = router
        self.classifier = classifier or RequestClassifier()
        self._unsubscribe: Callable[[], None] | None = None
        self._reconcile_lock = asyncio.Lock()
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> CatalogSnapshot:
        """Load configuration, connect every server and build the catalog."""
        if self._started:
            return self.catalog.snapshot

        await self.registry.load()
        snapshot = await self.reconcile()
        self._unsubscribe = self.registry.subscribe(self._on_registry_changed)
        self._started = True
        logger.info(
            f"Tool bridge started with {len(snapshot)} tool(s) from "
            f"{len(snapshot.servers)} server(s)"
        )
        return snapshot

    async def stop(self) -> None:
        """Stop reacting to registry changes and close every connection."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        async with self._reconcile_lock:
            await self.connections.close_all()
        self._started = False
        logger.info("Tool bridge stopped")

    async def reconcile(self) -> CatalogSnapshot:
        """Sync connections with the registry, then refresh the catalog."""
        async with self._reconcile_lock:
            await self.connections.sync()
            return await self.catalog.refresh()

    async def refresh(self) -> CatalogSnapshot:
        """Explicit discovery cycle; also retries failed servers."""
        return await self.reconcile()

    async def _on_registry_changed(self, event: RegistryChanged) -> None:
        logger.debug(f"Registry changed ({event.reason}), reconciling")
        await self.reconcile()

    # Registry operations

    async def add_server(self, server: ServerDescriptor | dict[str, Any]) -> ServerDescriptor:
        return await self.registry.add(server)

    async def remove_server(self, server_id: str) -> bool:
        return await self.registry.remove(server_id)

    # Routing and classification

    async def route(
        self,
        request: InvocationRequest | dict[str, Any],
        cancel_event: asyncio.Event | None = None,
    ) -> InvocationResult:
        if isinstance(request, dict):
            return await self.router.route_payload(request, cancel_event)
        return await self.router.route(request, cancel_event)

    def classify(self, text: str) -> RequestClassification:
        return self.classifier.classify(text)

    # Notifications

    def subscribe(
        self,
        listener: Listener[RegistryChanged | CatalogChanged],
    ) -> Callable[[], None]:
        """Subscribe to both registry and catalog changes."""
        unsubscribers = [self.registry.subscribe(listener), self.catalog.subscribe(listener)]

        def unsubscribe() -> None:
            for unsubscribe_one in unsubscribers:
                unsubscribe_one()

        return unsubscribe

    def status(self) -> list[dict[str, Any]]:
        """Per-server status for display: configuration, connection and tool count."""
        statuses = self.connections.statuses()
        rows = []
        for descriptor in self.registry.list():
            status = statuses.get(descriptor.id)
            rows.append(
                {
                    "id": descriptor.id,
                    "label": descriptor.label,
                    "transport": descriptor.transport.value,
                    "enabled": descriptor.enabled,
                    "state": status.state.value if status else "disconnected",
                    "error": status.error if status else None,
                    "tools": len(self.catalog.by_server(descriptor.id)),
                }
            )
        return rows

    async def __aenter__(self) -> "ToolBridge":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
