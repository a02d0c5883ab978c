"""
Server-push transport for MCP.

A long-lived event stream through the MCP SDK client: the server
announces a message endpoint on the stream, outgoing messages are POSTed
there and responses arrive on the stream.
"""

import contextlib
import logging
from collections.abc import AsyncIterator

from mcp.client.sse import sse_client

from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.transport.session import SessionStreams, SessionStreamTransport

logger = logging.getLogger(__name__)


class ServerPushTransport(SessionStreamTransport):
    """
    MCP transport using a server-sent event stream.

    The stream stays open for the lifetime of the connection and carries
    every response, so requests are correlated by id and may overlap.
    """

    kind = TransportKind.SERVER_PUSH

    def __init__(
        self,
        descriptor: ServerDescriptor,
        connect_timeout: float = 10.0,
        read_timeout: float = 300.0,
    ) -> None:
        """
        Initialize server-push transport.

        Args:
            descriptor: Server to connect to.
            connect_timeout: Bound on opening the stream, in seconds.
            read_timeout: Longest silence tolerated on the stream, in seconds.
        """
        super().__init__(descriptor, connect_timeout=connect_timeout)
        self._read_timeout = read_timeout

    @contextlib.asynccontextmanager
    async def _open_streams(self) -> AsyncIterator[SessionStreams]:
        async with sse_client(
            self._descriptor.url or "",
            headers=dict(self._descriptor.headers) or None,
            timeout=self._connect_timeout,
            sse_read_timeout=self._read_timeout,
        ) as (read_stream, write_stream):
            yield read_stream, write_stream
