"""
Base transport implementation for MCP.

Provides request id management, JSON-RPC request/response correlation
and the abstract interface every wire transport implements.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any

from toolbridge.domain.model.mcp.server import ServerDescriptor

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


class BaseTransport(ABC):
    """
    Abstract base class for MCP transport implementations.

    Subclasses open and close the underlying resource and write single
    JSON-RPC messages; responses are handed to ``_dispatch`` which resolves
    the pending request with the same id. ``multiplexed`` declares whether
    several requests may be in flight on one connection at once.
    """

    multiplexed: bool = False

    def __init__(self, descriptor: ServerDescriptor) -> None:
        """
        Initialize base transport.

        Args:
            descriptor: Server the transport connects to.
        """
        self._descriptor = descriptor
        self._request_id = 0
        self._is_open = False
        self._pending: dict[int | str, asyncio.Future[dict[str, Any]]] = {}

    @property
    def is_open(self) -> bool:
        """Check if transport is currently open."""
        return self._is_open

    @property
    def descriptor(self) -> ServerDescriptor:
        return self._descriptor

    @property
    def server_id(self) -> str:
        return self._descriptor.id

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._pending)

    def _next_request_id(self) -> int:
        """Generate next request ID."""
        self._request_id += 1
        return self._request_id

    @abstractmethod
    async def start(self) -> None:
        """
        Open the transport connection.

        Raises:
            MCPTransportError: If transport fails to start.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """
        Close the transport connection and release its resources.

        Should be idempotent.
        """
        ...

    @abstractmethod
    async def _write(self, message: dict[str, Any]) -> None:
        """
        Write one JSON-RPC message to the wire.

        Raises:
            MCPTransportClosedError: If the transport is not open.
            MCPTransportError: If the write fails.
        """
        ...

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """
        Send a JSON-RPC request and wait for its response.

        Args:
            method: JSON-RPC method name.
            params: Request parameters.
            timeout: Bounded wait in seconds (None waits indefinitely).

        Returns:
            The ``result`` member of the response.

        Raises:
            MCPTransportTimeoutError: If no response arrives in time. The
                transport stays open.
            MCPTransportClosedError: If the transport closes mid-request.
            MCPRemoteError: If the server answers with a JSON-RPC error.
        """
        if not self._is_open:
            raise MCPTransportClosedError(f"Transport for '{self.server_id}' is not open")

        request_id = self._next_request_id()
        message = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": method,
            "params": params or {},
        }
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            response = await asyncio.wait_for(self._exchange(message, future), timeout=timeout)
        except TimeoutError as e:
            logger.warning(
                f"Request {method} (id={request_id}) to '{self.server_id}' "
                f"timed out after {timeout}s"
            )
            await self._notify_cancelled(request_id, "Request timed out")
            raise MCPTransportTimeoutError(
                f"No response to {method} from '{self.server_id}' within {timeout}s"
            ) from e
        except asyncio.CancelledError:
            logger.info(f"Request {method} (id={request_id}) to '{self.server_id}' cancelled")
            await self._notify_cancelled(request_id, "Request cancelled by client")
            raise
        finally:
            self._pending.pop(request_id, None)

        if "error" in response:
            error = response["error"] or {}
            raise MCPRemoteError(
                error.get("message", "Unknown error"),
                code=error.get("code"),
                data=error.get("data"),
            )
        result = response.get("result")
        return result if isinstance(result, dict) else {"value": result}

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a JSON-RPC notification (no response expected)."""
        message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
        if params is not None:
            message["params"] = params
        await self._write(message)

    async def _exchange(
        self,
        message: dict[str, Any],
        future: asyncio.Future[dict[str, Any]],
    ) -> dict[str, Any]:
        await self._write(message)
        return await future

    async def _notify_cancelled(self, request_id: int, reason: str) -> None:
        """Tell the server to abandon a request, if the transport is still open."""
        if not self._is_open:
            return
        try:
            await asyncio.wait_for(
                self.notify(
                    "notifications/cancelled",
                    {"requestId": request_id, "reason": reason},
                ),
                timeout=5.0,
            )
        except (MCPTransportError, TimeoutError) as e:
            logger.debug(f"Could not send cancellation for request {request_id}: {e}")

    def _dispatch(self, message: dict[str, Any]) -> None:
        """Route one incoming message to the pending request it answers."""
        if "id" not in message or "method" in message:
            # Notification or server-initiated request
            logger.debug(f"Ignoring server message from '{self.server_id}': {message.get('method')}")
            return

        future = self._pending.get(message["id"])
        if future is None:
            logger.debug(
                f"Dropping response for unknown request id={message['id']} from '{self.server_id}'"
            )
            return
        if not future.done():
            future.set_result(message)

    def _fail_pending(self, error: Exception) -> None:
        """Fail every pending request, used when the transport closes."""
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def __aenter__(self) -> "BaseTransport":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.stop()


class MCPTransportError(Exception):
    """Base exception for transport errors."""

    pass


class MCPTransportClosedError(MCPTransportError):
    """Exception raised when transport is closed."""

    pass


class MCPTransportTimeoutError(MCPTransportError):
    """Exception raised on transport timeout."""

    pass


class MCPRemoteError(MCPTransportError):
    """Exception raised when the server answers with a JSON-RPC error."""

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.args[0]} (code {self.code})"
        return str(self.args[0])
