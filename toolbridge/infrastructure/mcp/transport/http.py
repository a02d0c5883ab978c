"""
HTTP stream transport for MCP.

Streamable HTTP through the MCP SDK client: every JSON-RPC message is
POSTed to the endpoint URL and the answer comes back either as a JSON
body or as an event stream. The SDK tracks the session id header.
"""

import contextlib
import logging
from collections.abc import AsyncIterator, Callable

import httpx
from mcp.client.streamable_http import streamable_http_client

from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.transport.session import SessionStreams, SessionStreamTransport

logger = logging.getLogger(__name__)


class HTTPStreamTransport(SessionStreamTransport):
    """
    MCP transport using streamable HTTP.

    Requests are independent HTTP exchanges correlated by JSON-RPC id, so
    several may be in flight at once.
    """

    kind = TransportKind.HTTP_STREAM

    def __init__(
        self,
        descriptor: ServerDescriptor,
        connect_timeout: float = 10.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize HTTP stream transport.

        Args:
            descriptor: Server to connect to.
            connect_timeout: TCP connect timeout in seconds.
            http_transport: Optional httpx transport for the underlying client.
        """
        super().__init__(descriptor, connect_timeout=connect_timeout)
        self._http_transport = http_transport
        self._get_session_id: Callable[[], str | None] | None = None

    @property
    def session_id(self) -> str | None:
        """Session id assigned by the server, once initialized."""
        if not self._is_open or self._get_session_id is None:
            return None
        return self._get_session_id()

    @contextlib.asynccontextmanager
    async def _open_streams(self) -> AsyncIterator[SessionStreams]:
        # Read timeouts are enforced per request by the caller
        http_client = httpx.AsyncClient(
            headers=self._descriptor.headers,
            timeout=httpx.Timeout(None, connect=self._connect_timeout),
            transport=self._http_transport,
        )
        async with http_client:
            async with streamable_http_client(
                self._descriptor.url or "", http_client=http_client
            ) as (read_stream, write_stream, get_session_id):
                self._get_session_id = get_session_id
                try:
                    yield read_stream, write_stream
                finally:
                    self._get_session_id = None
