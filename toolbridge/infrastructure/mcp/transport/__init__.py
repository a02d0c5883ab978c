"""
MCP Transport Layer.

Transport implementations for MCP protocol communication:
- stdio: child process, newline-delimited JSON-RPC (local-process)
- http: streamable HTTP POST exchanges (http-stream)
- sse: long-lived event stream plus POST endpoint (server-push)
- session: shared base running the MCP SDK client streams
"""

from toolbridge.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPRemoteError,
    MCPTransportClosedError,
    MCPTransportError,
    MCPTransportTimeoutError,
)
from toolbridge.infrastructure.mcp.transport.factory import TransportFactory
from toolbridge.infrastructure.mcp.transport.http import HTTPStreamTransport
from toolbridge.infrastructure.mcp.transport.sse import ServerPushTransport
from toolbridge.infrastructure.mcp.transport.stdio import StdioTransport

__all__ = [
    "BaseTransport",
    "TransportFactory",
    "StdioTransport",
    "HTTPStreamTransport",
    "ServerPushTransport",
    "MCPTransportError",
    "MCPTransportClosedError",
    "MCPTransportTimeoutError",
    "MCPRemoteError",
]
