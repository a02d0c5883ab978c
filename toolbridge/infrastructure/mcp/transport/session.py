"""
Session stream transport for MCP.

Base for the HTTP based transports. The MCP SDK client owns the wire
exchange and hands back a pair of message streams; this class runs the
SDK context in one session task and correlates responses by JSON-RPC id
on top of it.
"""

import asyncio
import contextlib
import logging
from abc import abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

import anyio
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage, JSONRPCNotification, JSONRPCRequest
from pydantic import ValidationError

from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPTransportClosedError,
    MCPTransportError,
)

logger = logging.getLogger(__name__)

# (read_stream, write_stream) as yielded by the SDK clients
SessionStreams = tuple[Any, Any]


class SessionStreamTransport(BaseTransport):
    """
    MCP transport over an SDK message stream pair.

    The SDK context is entered and exited by a single session task, so
    ``start`` and ``stop`` may be called from different tasks. Requests are
    correlated by id and may overlap.
    """

    multiplexed = True
    kind: TransportKind

    def __init__(self, descriptor: ServerDescriptor, connect_timeout: float = 10.0) -> None:
        """
        Initialize session stream transport.

        Args:
            descriptor: Server to connect to.
            connect_timeout: Bound on opening the session, in seconds.
        """
        super().__init__(descriptor)
        self._connect_timeout = connect_timeout
        self._write_stream: Any | None = None
        self._session_task: asyncio.Task[None] | None = None

    @abstractmethod
    def _open_streams(self) -> AbstractAsyncContextManager[SessionStreams]:
        """Return the SDK client context yielding the message streams."""
        ...

    async def start(self) -> None:
        """
        Open the session.

        Raises:
            MCPTransportError: If the descriptor does not fit this transport
                or the session cannot be opened within the connect timeout.
        """
        if self._is_open:
            logger.debug(f"{self.kind.value} transport already started")
            return

        descriptor = self._descriptor
        if descriptor.transport is not self.kind:
            raise MCPTransportError(
                f"Invalid transport kind for {self.kind.value}: {descriptor.transport}"
            )
        if not descriptor.url:
            raise MCPTransportError(f"URL is required for {self.kind.value} transport")

        logger.info(
            f"Connecting to MCP server '{self.server_id}' via {self.kind.value}: {descriptor.url}"
        )
        ready: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._session_task = asyncio.create_task(
            self._run_session(ready), name=f"mcp-session-{self.server_id}"
        )
        try:
            await asyncio.wait_for(asyncio.shield(ready), timeout=self._connect_timeout)
        except asyncio.CancelledError:
            await self.stop()
            raise
        except Exception as e:
            if isinstance(e, TimeoutError):
                cause: BaseException | str = f"no session within {self._connect_timeout}s"
            else:
                cause = _root_cause(e)
            logger.error(f"Failed to open session with '{self.server_id}': {cause}")
            await self.stop()
            raise MCPTransportError(
                f"Failed to open {self.kind.value} session with '{self.server_id}': {cause}"
            ) from e

    async def stop(self) -> None:
        """Close the session and fail every pending request."""
        task = self._session_task
        self._session_task = None
        self._is_open = False

        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._write_stream = None
        self._fail_pending(MCPTransportClosedError(f"Transport for '{self.server_id}' stopped"))
        if task is not None:
            logger.info(f"{self.kind.value} transport for '{self.server_id}' stopped")

    async def _run_session(self, ready: asyncio.Future[None]) -> None:
        """Own the SDK context and dispatch incoming messages until it ends."""
        try:
            async with self._open_streams() as (read_stream, write_stream):
                self._write_stream = write_stream
                self._is_open = True
                ready.set_result(None)
                async for item in read_stream:
                    if isinstance(item, Exception):
                        logger.error(f"Received exception from MCP server '{self.server_id}': {item}")
                        self._fail_pending(
                            MCPTransportError(f"Error from '{self.server_id}': {item}")
                        )
                        continue
                    self._dispatch(
                        item.message.model_dump(by_alias=True, mode="json", exclude_unset=True)
                    )
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
                return
            logger.error(f"Session with '{self.server_id}' failed: {_root_cause(e)}")
        finally:
            self._write_stream = None
            self._mark_closed(f"Session with '{self.server_id}' closed")

    async def _write(self, message: dict[str, Any]) -> None:
        """Hand one message to the SDK client."""
        stream = self._write_stream
        if not self._is_open or stream is None:
            raise MCPTransportClosedError(f"Session with '{self.server_id}' is not open")

        logger.debug(f"Sending: {message.get('method')} (id={message.get('id')})")
        try:
            await stream.send(_to_session_message(message))
        except ValidationError as e:
            raise MCPTransportError(f"Invalid JSON-RPC message for '{self.server_id}': {e}") from e
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            self._mark_closed(f"Session with '{self.server_id}' lost")
            raise MCPTransportClosedError(f"Session with '{self.server_id}' lost") from e

    def _mark_closed(self, reason: str) -> None:
        if self._is_open:
            logger.warning(reason)
        self._is_open = False
        self._fail_pending(MCPTransportClosedError(reason))


def _to_session_message(message: dict[str, Any]) -> SessionMessage:
    if "id" in message:
        root: JSONRPCRequest | JSONRPCNotification = JSONRPCRequest.model_validate(message)
    else:
        root = JSONRPCNotification.model_validate(message)
    return SessionMessage(message=JSONRPCMessage(root=root))


def _root_cause(error: BaseException) -> BaseException:
    """First leaf of a (possibly nested) exception group."""
    while isinstance(error, BaseExceptionGroup) and error.exceptions:
        error = error.exceptions[0]
    return error
