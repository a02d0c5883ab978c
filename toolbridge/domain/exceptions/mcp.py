"""
MCP domain exceptions.

Exception hierarchy for server configuration, connection handling,
tool resolution and tool execution.

Exception Hierarchy:
    MCPError (base)
    ├── MCPServerError
    │   ├── ServerConfigurationError    - Descriptor missing required fields
    │   ├── MCPServerNotFoundError      - Server not found by ID
    │   └── MCPServerNotConnectedError  - Server not in connected state
    ├── MCPToolError
    │   ├── MCPToolNotFoundError        - Tool not found in the catalog
    │   └── MCPToolExecutionError       - Tool execution failed
    ├── MCPConnectionError              - Connection/handshake failure
    ├── InvalidInvocationRequestError   - Malformed host invocation request
    └── InvocationCancelledError        - Caller cancelled an in-flight call
"""

from typing import Any


class MCPError(Exception):
    """Base exception for all MCP-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class MCPServerError(MCPError):
    """Base exception for MCP server errors."""


class ServerConfigurationError(MCPServerError, ValueError):
    """Raised when a server descriptor is malformed or incomplete."""

    def __init__(
        self,
        message: str,
        server_id: str | None = None,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.server_id = server_id
        merged = {"server_id": server_id, **(details or {})}
        super().__init__(message, original_error=original_error, details=merged)


class MCPServerNotFoundError(MCPServerError):
    """Raised when an MCP server cannot be found."""

    def __init__(self, server_id: str, message: str | None = None) -> None:
        self.server_id = server_id
        msg = message or f"MCP server '{server_id}' not found"
        super().__init__(msg, details={"server_id": server_id})


class MCPServerNotConnectedError(MCPServerError):
    """Raised when attempting operations on a disconnected server."""

    def __init__(self, server_id: str, message: str | None = None) -> None:
        self.server_id = server_id
        msg = message or f"MCP server '{server_id}' is not connected"
        super().__init__(msg, details={"server_id": server_id})


class MCPToolError(MCPError):
    """Base exception for MCP tool errors."""


class MCPToolNotFoundError(MCPToolError):
    """Raised when a tool cannot be found on any MCP server."""

    def __init__(
        self,
        tool_name: str,
        server_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.server_id = server_id
        if server_id:
            msg = message or f"Tool '{tool_name}' not found on server '{server_id}'"
        else:
            msg = message or f"Tool '{tool_name}' not found"
        super().__init__(msg, details={"tool_name": tool_name, "server_id": server_id})


class MCPToolExecutionError(MCPToolError):
    """Raised when a tool reports a failed execution."""

    def __init__(
        self,
        tool_name: str,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.tool_name = tool_name
        msg = message or f"Tool '{tool_name}' execution failed"
        super().__init__(msg, original_error=original_error, details={"tool_name": tool_name})


class MCPConnectionError(MCPError):
    """Raised when MCP connection or handshake fails."""

    def __init__(
        self,
        endpoint: str | None = None,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.endpoint = endpoint
        msg = message or "MCP connection failed"
        if endpoint:
            msg += f" (endpoint: {endpoint})"
        super().__init__(msg, original_error=original_error, details={"endpoint": endpoint})


class InvocationCancelledError(MCPError):
    """Raised when the caller cancels a dispatched invocation."""

    def __init__(self, tool_name: str, server_id: str | None = None) -> None:
        self.tool_name = tool_name
        self.server_id = server_id
        super().__init__(
            f"Invocation of '{tool_name}' was cancelled",
            details={"tool_name": tool_name, "server_id": server_id},
        )


class InvalidInvocationRequestError(MCPError, ValueError):
    """Raised when a host invocation request has the wrong shape."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message, details={"field": field})
