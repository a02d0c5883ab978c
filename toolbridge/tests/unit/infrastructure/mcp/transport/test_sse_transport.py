"""Tests for ServerPushTransport against a local aiohttp server."""

import asyncio
import json

import pytest
from aiohttp import test_utils, web

from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.client import MCPClient
from toolbridge.infrastructure.mcp.transport.base import MCPTransportError
from toolbridge.infrastructure.mcp.transport.sse import ServerPushTransport


def _answer(message: dict) -> dict:
    method = message["method"]
    if method == "initialize":
        result = {"capabilities": {}, "serverInfo": {"name": "push-server", "version": "1.0"}}
    elif method == "tools/list":
        result = {"tools": [{"name": "search_web", "inputSchema": {"type": "object"}}]}
    else:
        result = {"echo": method}
    return {"jsonrpc": "2.0", "id": message["id"], "result": result}


def _push_app(announce_endpoint: bool = True) -> web.Application:
    app = web.Application()
    outbox: asyncio.Queue = asyncio.Queue()

    async def stream(request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await response.prepare(request)
        if not announce_endpoint:
            return response
        await response.write(b"event: endpoint\ndata: /messages?session=abc\n\n")
        while True:
            try:
                message = await asyncio.wait_for(outbox.get(), timeout=0.05)
            except TimeoutError:
                if request.transport is None or request.transport.is_closing():
                    break
                continue
            await response.write(f"event: message\ndata: {json.dumps(message)}\n\n".encode())
        return response

    async def messages(request: web.Request) -> web.Response:
        assert request.query["session"] == "abc"
        message = await request.json()
        if "id" in message:
            await outbox.put(_answer(message))
        return web.Response(status=202)

    app.router.add_get("/sse", stream)
    app.router.add_post("/messages", messages)
    return app


@pytest.fixture
async def push_server():
    servers = []

    async def start(**kwargs) -> test_utils.TestServer:
        server = test_utils.TestServer(_push_app(**kwargs))
        await server.start_server()
        servers.append(server)
        return server

    yield start
    for server in servers:
        await server.close()


def _descriptor(server: test_utils.TestServer, path: str = "/sse") -> ServerDescriptor:
    return ServerDescriptor.remote(
        id="push", url=str(server.make_url(path)), transport=TransportKind.SERVER_PUSH
    )


@pytest.mark.integration
class TestServerPushTransport:
    """Tests for ServerPushTransport."""

    async def test_start_opens_multiplexed_session(self, push_server):
        server = await push_server()
        transport = ServerPushTransport(_descriptor(server), connect_timeout=5.0)

        async with transport:
            assert transport.is_open
            assert transport.multiplexed
            assert (await transport.request("ping", timeout=5.0)) == {"echo": "ping"}

        assert not transport.is_open

    async def test_concurrent_requests(self, push_server):
        """Test that overlapping requests are answered over the shared stream."""
        server = await push_server()

        async with ServerPushTransport(_descriptor(server), connect_timeout=5.0) as transport:
            results = await asyncio.gather(
                transport.request("tools/list", timeout=5.0),
                transport.request("ping", timeout=5.0),
            )

        assert results[0]["tools"][0]["name"] == "search_web"
        assert results[1] == {"echo": "ping"}

    async def test_client_session(self, push_server):
        server = await push_server()
        client = MCPClient(_descriptor(server), handshake_timeout=5.0)

        async with client:
            assert client.server_info["name"] == "push-server"
            tools = await client.list_capabilities(timeout=5.0)

        assert [t["name"] for t in tools] == ["search_web"]

    async def test_stream_without_endpoint_fails_start(self, push_server):
        server = await push_server(announce_endpoint=False)
        transport = ServerPushTransport(_descriptor(server), connect_timeout=2.0)

        with pytest.raises(MCPTransportError):
            await transport.start()
        assert not transport.is_open

    async def test_http_error_fails_start(self, push_server):
        server = await push_server()
        transport = ServerPushTransport(_descriptor(server, "/missing"), connect_timeout=5.0)

        with pytest.raises(MCPTransportError, match="404"):
            await transport.start()
        assert not transport.is_open
