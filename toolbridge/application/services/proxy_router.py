"""
Proxy Router.

Resolves abstract invocation requests against the tool catalog and
forwards them to the owning server's connection. Every outcome, including
failure, is returned as an InvocationResult.
"""

import asyncio
import logging
import time
from typing import Any

from toolbridge.domain.exceptions.mcp import (
    InvalidInvocationRequestError,
    InvocationCancelledError,
    MCPError,
    MCPToolExecutionError,
    MCPToolNotFoundError,
)
from toolbridge.domain.model.mcp.invocation import (
    InvocationErrorKind,
    InvocationRequest,
    InvocationResult,
)
from toolbridge.domain.model.mcp.tool import ToolDescriptor
from toolbridge.infrastructure.mcp.catalog import ToolCatalog
from toolbridge.infrastructure.mcp.connection_manager import ConnectionManager, ServerConnection
from toolbridge.infrastructure.mcp.transport.base import (
    MCPRemoteError,
    MCPTransportError,
    MCPTransportTimeoutError,
)

logger = logging.getLogger(__name__)

NO_SERVERS_MESSAGE = (
    "No MCP servers are currently configured. Please add MCP servers with "
    "'toolbridge add-server' or by adding them to the server registry."
)

NO_ENABLED_SERVERS_MESSAGE = (
    "No tools are available: every configured MCP server is disabled. Enable one "
    "in the server registry to make its tools available."
)

NO_CONNECTED_SERVERS_MESSAGE = (
    "No tools are available: none of the configured MCP servers ({servers}) is "
    "connected. Check their status with 'toolbridge servers --connect' and fix the "
    "reported errors in the server registry."
)

NO_TOOLS_MESSAGE = (
    "No tools are available: the connected MCP servers ({servers}) expose no tools. "
    "Check the servers with 'toolbridge servers --connect'."
)


class ProxyRouter:
    """
    Router from invocation requests to server connections.

    Nothing raises across ``route``: unknown tools, dead connections,
    timeouts and remote failures all come back as typed failures. The
    router never retries. Cancelling the calling task still propagates,
    after the in-flight request has been released.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        connections: ConnectionManager,
        invoke_timeout: float = 60.0,
    ) -> None:
        """
        Initialize proxy router.

        Args:
            catalog: Tool catalog to resolve requests against.
            connections: Owner of the live connections.
            invoke_timeout: Default bounded wait per invocation, in seconds.
        """
        self._catalog = catalog
        self._connections = connections
        self._invoke_timeout = invoke_timeout

    async def route(
        self,
        request: InvocationRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> InvocationResult:
        """
        Route one invocation.

        Args:
            request: Tool name, optional hints and arguments.
            cancel_event: Optional signal that aborts dispatch when set.

        Returns:
            Success with the server's payload unmodified, or a failure.
        """
        started = time.monotonic()
        result = await self._route(request, cancel_event, started)
        log = logger.info if result.ok else logger.warning
        log(
            f"Route tool={request.tool_name} server={result.server_id or '-'} "
            f"outcome={result.outcome} duration_ms={result.duration_ms}"
        )
        return result

    async def route_dict(
        self,
        payload: dict[str, Any],
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Route a host boundary request dict and return the result dict."""
        return (await self.route_payload(payload, cancel_event)).to_dict()

    async def route_payload(
        self,
        payload: dict[str, Any],
        cancel_event: asyncio.Event | None = None,
    ) -> InvocationResult:
        """
        Route a host boundary request dict.

        A payload of the wrong shape comes back as an ``invalid-request``
        failure instead of raising.
        """
        try:
            request = InvocationRequest.from_dict(payload)
        except InvalidInvocationRequestError as e:
            tool_name = payload.get("toolName") if isinstance(payload, dict) else None
            logger.warning(f"Rejected invocation request: {e.message}")
            return InvocationResult.failure(
                InvocationErrorKind.INVALID_REQUEST,
                f"Invalid invocation request: {e.message}. Expected "
                "{toolName: string, domainHint?: string, arguments?: object}.",
                tool_name=tool_name if isinstance(tool_name, str) else None,
            )
        return await self.route(request, cancel_event)

    async def _route(
        self,
        request: InvocationRequest,
        cancel_event: asyncio.Event | None,
        started: float,
    ) -> InvocationResult:
        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        if self._catalog.is_empty:
            return InvocationResult.failure(
                InvocationErrorKind.NOT_FOUND,
                self._empty_catalog_message(),
                tool_name=request.tool_name,
                duration_ms=elapsed(),
            )

        try:
            tool = self._resolve(request)
        except MCPToolNotFoundError as e:
            return InvocationResult.failure(
                InvocationErrorKind.NOT_FOUND,
                e.message,
                tool_name=request.tool_name,
                server_id=request.server_id,
                duration_ms=elapsed(),
            )

        connection = self._connections.get(tool.server_id)
        if connection is None:
            return InvocationResult.failure(
                InvocationErrorKind.UNREACHABLE,
                f"MCP server '{tool.server_id}' hosting tool '{tool.name}' is not connected. "
                "Check the server configuration or try again after the next refresh.",
                tool_name=tool.name,
                server_id=tool.server_id,
                duration_ms=elapsed(),
            )

        try:
            payload = await self._dispatch(connection, tool, request.arguments, cancel_event)
        except MCPTransportTimeoutError as e:
            kind, message = InvocationErrorKind.TIMEOUT, str(e)
        except InvocationCancelledError as e:
            kind, message = InvocationErrorKind.CANCELLED, str(e)
        except MCPToolExecutionError as e:
            kind, message = InvocationErrorKind.REMOTE_ERROR, e.message
        except MCPRemoteError as e:
            kind, message = InvocationErrorKind.REMOTE_ERROR, f"Tool '{tool.name}' failed: {e}"
        except (MCPTransportError, MCPError) as e:
            kind, message = InvocationErrorKind.REMOTE_ERROR, f"Error executing tool '{tool.name}': {e}"
        except Exception as e:
            logger.error(f"Unexpected error invoking '{tool.key}': {e}", exc_info=True)
            kind, message = InvocationErrorKind.REMOTE_ERROR, f"Error executing tool '{tool.name}': {e}"
        else:
            return InvocationResult.success(
                payload, tool_name=tool.name, server_id=tool.server_id, duration_ms=elapsed()
            )

        return InvocationResult.failure(
            kind, message, tool_name=tool.name, server_id=tool.server_id, duration_ms=elapsed()
        )

    async def _dispatch(
        self,
        connection: ServerConnection,
        tool: ToolDescriptor,
        arguments: dict[str, Any],
        cancel_event: asyncio.Event | None,
    ) -> Any:
        payload = await self._invoke(connection, tool, arguments, cancel_event)
        if isinstance(payload, dict) and payload.get("isError"):
            raise MCPToolExecutionError(
                tool.name,
                message=f"Tool '{tool.name}' reported an error: "
                f"{_text_content(payload) or 'no details'}",
            )
        return payload

    async def _invoke(
        self,
        connection: ServerConnection,
        tool: ToolDescriptor,
        arguments: dict[str, Any],
        cancel_event: asyncio.Event | None,
    ) -> Any:
        timeout = connection.descriptor.timeout_seconds or self._invoke_timeout
        call = connection.client.invoke(tool.name, arguments, timeout=timeout)
        if cancel_event is None:
            return await call

        invoke_task = asyncio.ensure_future(call)
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({invoke_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not invoke_task.done():
                invoke_task.cancel()
                # Let the transport drop the pending request before returning
                await asyncio.wait({invoke_task})

        if invoke_task.cancelled():
            raise InvocationCancelledError(tool.name, tool.server_id)
        return invoke_task.result()

    def _resolve(self, request: InvocationRequest) -> ToolDescriptor:
        """
        Resolve a request to one catalog entry.

        Raises:
            MCPToolNotFoundError: With a message listing what is available.
        """
        tool = self._catalog.resolve(
            request.tool_name, server_id=request.server_id, category=request.domain_hint
        )
        if tool is None:
            raise MCPToolNotFoundError(
                request.tool_name,
                server_id=request.server_id,
                message=self._not_found_message(request),
            )
        return tool

    def _empty_catalog_message(self) -> str:
        servers = self._connections.registry.list()
        configured = [d.id for d in servers if d.enabled]
        if not configured:
            return NO_ENABLED_SERVERS_MESSAGE if servers else NO_SERVERS_MESSAGE
        if all(self._connections.is_live(sid) for sid in configured):
            return NO_TOOLS_MESSAGE.format(servers=", ".join(configured))
        return NO_CONNECTED_SERVERS_MESSAGE.format(servers=", ".join(configured))

    def _not_found_message(self, request: InvocationRequest) -> str:
        hint = request.domain_hint
        if hint:
            available = self._catalog.tools_for_hint(hint)
            if not available:
                categories = ", ".join(sorted(self._catalog.categories()))
                return (
                    f'Tool "{request.tool_name}" not found. No {hint} tools are currently '
                    f"available. Available categories: {categories}"
                )
            names = ", ".join(t.name for t in available)
            return f'Tool "{request.tool_name}" not found. Available {hint} tools: {names}'

        scope = f" on server '{request.server_id}'" if request.server_id else ""
        tools = (
            self._catalog.by_server(request.server_id)
            if request.server_id
            else self._catalog.list_all()
        )
        names = ", ".join(t.name for t in tools) or "none"
        return f'Tool "{request.tool_name}" not found{scope}. Available tools: {names}'


def _text_content(payload: dict[str, Any]) -> str:
    """Join the text items of a tool result's content list."""
    content = payload.get("content")
    if not isinstance(content, list):
        return ""
    return "\n".join(
        str(item.get("text", ""))
        for item in content
        if isinstance(item, dict) and item.get("type") == "text"
    )
