"""
MCP (Model Context Protocol) Domain Models.

Key entities:
- ServerDescriptor: one configured remote tool server
- ToolDescriptor: one discovered capability
- CatalogSnapshot: immutable index of all discovered tools
- InvocationRequest / InvocationResult: proxy routing boundary
- ConnectionState / ConnectionStatus: connection lifecycle
"""

from toolbridge.domain.model.mcp.catalog import CatalogSnapshot
from toolbridge.domain.model.mcp.category import (
    DomainCapabilities,
    categorize_tool,
    category_to_domain,
)
from toolbridge.domain.model.mcp.connection import ConnectionState, ConnectionStatus
from toolbridge.domain.model.mcp.invocation import (
    InvocationErrorKind,
    InvocationRequest,
    InvocationResult,
)
from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.tool import ToolDescriptor, tool_key
from toolbridge.domain.model.mcp.transport import TransportKind

__all__ = [
    # Server
    "ServerDescriptor",
    # Tool
    "ToolDescriptor",
    "tool_key",
    # Catalog
    "CatalogSnapshot",
    "DomainCapabilities",
    "categorize_tool",
    "category_to_domain",
    # Invocation
    "InvocationErrorKind",
    "InvocationRequest",
    "InvocationResult",
    # Transport
    "TransportKind",
    # Connection
    "ConnectionState",
    "ConnectionStatus",
]
