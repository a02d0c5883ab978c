"""
MCP Client.

Uniform client over any transport kind: connect (with the MCP handshake),
capability listing, tool invocation and disconnect.
"""

import asyncio
import logging
from types import TracebackType
from typing import Any

from toolbridge.domain.exceptions.mcp import MCPConnectionError, MCPServerNotConnectedError
from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPTransportError,
    MCPTransportTimeoutError,
)
from toolbridge.infrastructure.mcp.transport.factory import TransportFactory

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOL_VERSION = "2024-11-05"


class MCPClient:
    """
    MCP Client for connecting to and interacting with one MCP server.

    Requests against a transport that is not multiplexed are serialized
    with a lock so two requests never interleave on the same pipe.
    """

    def __init__(
        self,
        descriptor: ServerDescriptor,
        transport: BaseTransport | None = None,
        handshake_timeout: float = 30.0,
        invoke_timeout: float = 60.0,
        client_name: str = "toolbridge",
        client_version: str = "0.1.0",
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
    ) -> None:
        """
        Initialize MCP client.

        Args:
            descriptor: Server to connect to.
            transport: Optional transport; created from the descriptor if omitted.
            handshake_timeout: Bounded wait for the initialize exchange, in seconds.
            invoke_timeout: Default bounded wait for requests, in seconds.
            client_name: Name announced in the handshake.
            client_version: Version announced in the handshake.
            protocol_version: MCP protocol version requested.
        """
        self.descriptor = descriptor
        self.transport = transport
        self.handshake_timeout = handshake_timeout
        self.invoke_timeout = invoke_timeout
        self._client_info = {"name": client_name, "version": client_version}
        self._protocol_version = protocol_version
        self._connected = False
        self._lock = asyncio.Lock()
        self.server_info: dict[str, Any] = {}
        self.server_capabilities: dict[str, Any] = {}

    @property
    def server_id(self) -> str:
        return self.descriptor.id

    @property
    def is_connected(self) -> bool:
        """True after a successful handshake while the transport stays open."""
        return self._connected and self.transport is not None and self.transport.is_open

    @property
    def multiplexed(self) -> bool:
        return bool(self.transport and self.transport.multiplexed)

    async def connect(self) -> None:
        """
        Start the transport and perform the MCP handshake.

        Raises:
            MCPConnectionError: If the transport cannot start or the
                handshake fails or times out. The transport is stopped.
        """
        if self.is_connected:
            return

        if self.transport is None:
            self.transport = TransportFactory.create(self.descriptor)

        try:
            await self.transport.start()
            result = await self.transport.request(
                "initialize",
                {
                    "protocolVersion": self._protocol_version,
                    "capabilities": {},
                    "clientInfo": self._client_info,
                },
                timeout=self.handshake_timeout,
            )
            await self.transport.notify("notifications/initialized")
        except MCPTransportError as e:
            await self.transport.stop()
            raise MCPConnectionError(
                endpoint=self.descriptor.endpoint,
                message=f"Failed to connect to MCP server '{self.server_id}'",
                original_error=e,
            ) from e

        self.server_info = result.get("serverInfo") or {}
        self.server_capabilities = result.get("capabilities") or {}
        self._connected = True
        logger.info(
            f"MCP client connected to '{self.server_id}' via {self.descriptor.transport.value} "
            f"(server: {self.server_info.get('name', 'unknown')})"
        )

    async def disconnect(self) -> None:
        """Close connection to MCP server."""
        self._connected = False
        if self.transport is not None:
            await self.transport.stop()
            logger.info(f"MCP client disconnected from '{self.server_id}'")

    async def list_capabilities(self, timeout: float | None = None) -> list[dict[str, Any]]:
        """
        List all tools exposed by the server, following pagination.

        Returns:
            Records of ``{name, description, inputSchema}``.
        """
        tools: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params = {"cursor": cursor} if cursor else {}
            result = await self._request("tools/list", params, timeout)
            tools.extend(t for t in result.get("tools", []) if isinstance(t, dict) and t.get("name"))
            cursor = result.get("nextCursor")
            if not cursor:
                return tools

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """
        Call a tool on the MCP server.

        Args:
            name: Tool name.
            arguments: Tool arguments.
            timeout: Bounded wait in seconds (defaults to invoke_timeout).

        Returns:
            The ``tools/call`` result, unmodified.

        Raises:
            MCPTransportTimeoutError: If no response arrives in time; the
                connection stays usable.
            MCPTransportError: On transport or remote failure.
        """
        return await self._request(
            "tools/call",
            {"name": name, "arguments": arguments or {}},
            timeout,
        )

    async def ping(self, timeout: float = 5.0) -> bool:
        """Send a ping request to check connection health."""
        if not self.is_connected:
            return False
        try:
            await self._request("ping", {}, timeout)
            return True
        except MCPTransportError as e:
            logger.warning(f"Ping to '{self.server_id}' failed: {e}")
            return False

    async def _request(
        self,
        method: str,
        params: dict[str, Any],
        timeout: float | None,
    ) -> dict[str, Any]:
        if not self.is_connected or self.transport is None:
            raise MCPServerNotConnectedError(self.server_id)

        timeout = timeout if timeout is not None else self.invoke_timeout
        if self.transport.multiplexed:
            return await self.transport.request(method, params, timeout=timeout)

        # The lock wait counts against the same budget as the request
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=timeout)
        except TimeoutError as e:
            raise MCPTransportTimeoutError(
                f"Timed out waiting for '{self.server_id}' to finish a previous request"
            ) from e
        try:
            remaining = max(timeout - (loop.time() - started), 0.001)
            return await self.transport.request(method, params, timeout=remaining)
        finally:
            self._lock.release()

    async def __aenter__(self) -> "MCPClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.disconnect()
