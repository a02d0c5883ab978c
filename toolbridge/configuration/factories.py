"""
Factory functions for assembling the tool bridge from settings.
"""

import logging

from toolbridge.application.services.proxy_router import ProxyRouter
from toolbridge.application.services.request_classifier import RequestClassifier
from toolbridge.application.services.tool_bridge import ToolBridge
from toolbridge.configuration.config import Settings, get_settings
from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.infrastructure.mcp.catalog import ToolCatalog
from toolbridge.infrastructure.mcp.client import MCPClient
from toolbridge.infrastructure.mcp.config import JsonFileConfigStore, ServerConfigStore
from toolbridge.infrastructure.mcp.connection_manager import ClientFactory, ConnectionManager
from toolbridge.infrastructure.mcp.registry import ServerRegistry
from toolbridge.infrastructure.mcp.transport.factory import TransportFactory

logger = logging.getLogger(__name__)


def create_default_server(settings: Settings) -> ServerDescriptor | None:
    """Build the fallback descriptor offered when nothing is configured."""
    if not settings.default_server_enabled:
        return None
    return ServerDescriptor.local_process(
        id=settings.default_server_id,
        label=settings.default_server_label,
        command=settings.default_server_command,
        args=settings.default_server_args,
        categories=settings.default_server_categories,
    )


def create_config_stores(settings: Settings) -> list[ServerConfigStore]:
    """Base layer (read-only, optional) followed by the writable user layer."""
    stores: list[ServerConfigStore] = []
    if settings.base_config_path is not None:
        stores.append(JsonFileConfigStore(settings.base_config_path, writable=False))
    stores.append(JsonFileConfigStore(settings.user_config_path, writable=True))
    return stores


def create_client_factory(settings: Settings) -> ClientFactory:
    """Client factory applying the configured timeouts to every connection."""

    def build(descriptor: ServerDescriptor) -> MCPClient:
        transport = TransportFactory.create(
            descriptor,
            shutdown_grace=settings.shutdown_grace,
            connect_timeout=settings.connect_timeout,
        )
        return MCPClient(
            descriptor,
            transport=transport,
            handshake_timeout=settings.handshake_timeout,
            invoke_timeout=descriptor.timeout_seconds or settings.invoke_timeout,
            client_name=settings.client_name,
            client_version=settings.client_version,
            protocol_version=settings.protocol_version,
        )

    return build


def create_tool_bridge(
    settings: Settings | None = None,
    stores: list[ServerConfigStore] | None = None,
    client_factory: ClientFactory | None = None,
) -> ToolBridge:
    """
    Assemble a ToolBridge.

    Args:
        settings: Settings to use (defaults to the cached environment settings).
        stores: Configuration layers overriding the ones derived from settings.
        client_factory: Client factory overriding the transport-based default.

    Returns:
        An unstarted ToolBridge.
    """
    settings = settings or get_settings()
    registry = ServerRegistry(
        stores if stores is not None else create_config_stores(settings),
        default_server=create_default_server(settings),
    )
    connections = ConnectionManager(registry, client_factory or create_client_factory(settings))
    catalog = ToolCatalog(
        connections,
        discovery_timeout=settings.discovery_timeout,
        max_concurrency=settings.discovery_concurrency,
    )
    router = ProxyRouter(catalog, connections, invoke_timeout=settings.invoke_timeout)
    logger.debug("Assembled tool bridge")
    return ToolBridge(registry, connections, catalog, router, RequestClassifier())
