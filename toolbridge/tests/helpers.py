"""Shared test doubles and descriptor builders."""

import asyncio
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPTransportClosedError,
    MCPTransportTimeoutError,
)

FAKE_SERVER_SCRIPT = Path(__file__).parent / "fixtures" / "fake_mcp_server.py"


class FakeMCPClient:
    """In-memory stand-in for MCPClient.

    Behaviour is driven by plain attributes so tests can flip them between
    calls: ``tools`` for listings, ``connect_error``/``list_error`` to fail,
    ``list_delay``/``invoke_delay`` to stall, ``invoke_result`` or
    ``invoke_error`` for calls.
    """

    def __init__(self, descriptor: ServerDescriptor, tools: list[dict[str, Any]] | None = None):
        self.descriptor = descriptor
        self.tools = tools or []
        self.connect_error: Exception | None = None
        self.list_error: Exception | None = None
        self.list_delay = 0.0
        self.invoke_result: Any = {"content": [{"type": "text", "text": "ok"}]}
        self.invoke_error: Exception | None = None
        self.invoke_delay = 0.0
        self.server_info: dict[str, Any] = {}
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.invocations: list[tuple[str, dict[str, Any], float | None]] = []

    @property
    def server_id(self) -> str:
        return self.descriptor.id

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        self.server_info = {"name": f"fake-{self.server_id}"}

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    async def list_capabilities(self, timeout: float | None = None) -> list[dict[str, Any]]:
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        if self.list_error is not None:
            raise self.list_error
        return [dict(tool) for tool in self.tools]

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        self.invocations.append((name, arguments or {}, timeout))
        if not self.connected:
            raise MCPTransportClosedError(f"Transport for '{self.server_id}' is not open")
        if self.invoke_delay:
            if timeout is not None and self.invoke_delay > timeout:
                await asyncio.sleep(timeout)
                raise MCPTransportTimeoutError(
                    f"No response to tools/call from '{self.server_id}' within {timeout}s"
                )
            await asyncio.sleep(self.invoke_delay)
        if self.invoke_error is not None:
            raise self.invoke_error
        return self.invoke_result


class FakeClientFactory:
    """Client factory handing out FakeMCPClient instances, keyed by server id."""

    def __init__(self, tools_by_server: dict[str, list[str]] | None = None):
        self.tools_by_server = tools_by_server or {}
        self.clients: dict[str, FakeMCPClient] = {}
        self.failing: set[str] = set()

    def __call__(self, descriptor: ServerDescriptor) -> FakeMCPClient:
        tools = [
            {"name": name, "description": f"{name} tool", "inputSchema": {"type": "object"}}
            for name in self.tools_by_server.get(descriptor.id, [])
        ]
        client = FakeMCPClient(descriptor, tools)
        if descriptor.id in self.failing:
            client.connect_error = OSError(f"cannot reach {descriptor.id}")
        self.clients[descriptor.id] = client
        return client


def local_server(server_id: str, categories: tuple[str, ...] = (), **kwargs: Any) -> ServerDescriptor:
    """Local-process descriptor with a placeholder command."""
    return ServerDescriptor(
        id=server_id,
        label=kwargs.pop("label", server_id.title()),
        transport=TransportKind.LOCAL_PROCESS,
        command=kwargs.pop("command", "fake-server"),
        categories=categories,
        **kwargs,
    )


def fake_stdio_server(server_id: str, tools: str = "echo,slow_echo", **kwargs: Any) -> ServerDescriptor:
    """Descriptor that launches the fake MCP server script."""
    return ServerDescriptor(
        id=server_id,
        label=server_id,
        transport=TransportKind.LOCAL_PROCESS,
        command=sys.executable,
        args=(str(FAKE_SERVER_SCRIPT),),
        env={"FAKE_MCP_TOOLS": tools},
        **kwargs,
    )


class ScriptedTransport(BaseTransport):
    """Transport double that records sent messages.

    ``responder`` maps each outgoing request to a response message (or None
    to leave it unanswered, so the test can ``_dispatch`` one later).
    """

    def __init__(
        self,
        responder: Callable[[dict[str, Any]], dict[str, Any] | None] | None = None,
        multiplexed: bool = True,
        descriptor: ServerDescriptor | None = None,
    ):
        super().__init__(descriptor or local_server("scripted"))
        self.multiplexed = multiplexed
        self.responder = responder
        self.sent: list[dict[str, Any]] = []
        self.stop_calls = 0

    async def start(self) -> None:
        self._is_open = True

    async def stop(self) -> None:
        self.stop_calls += 1
        self._is_open = False
        self._fail_pending(MCPTransportClosedError("stopped"))

    async def _write(self, message: dict[str, Any]) -> None:
        if not self._is_open:
            raise MCPTransportClosedError("not open")
        self.sent.append(message)
        if self.responder is not None and "id" in message:
            response = self.responder(message)
            if response is not None:
                asyncio.get_running_loop().call_soon(self._dispatch, response)

    def methods(self) -> list[str]:
        return [m["method"] for m in self.sent]

    def requests(self, method: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("method") == method and "id" in m]


def reply(message: dict[str, Any], result: Any) -> dict[str, Any]:
    """Successful JSON-RPC response to a request."""
    return {"jsonrpc": "2.0", "id": message["id"], "result": result}


def handshake_responder(
    handler: Callable[[dict[str, Any]], dict[str, Any] | None] | None = None,
) -> Callable[[dict[str, Any]], dict[str, Any] | None]:
    """Responder answering ``initialize`` and delegating everything else."""

    def respond(message: dict[str, Any]) -> dict[str, Any] | None:
        if message["method"] == "initialize":
            return reply(
                message,
                {
                    "protocolVersion": message["params"]["protocolVersion"],
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": "scripted-server", "version": "1.0"},
                },
            )
        return handler(message) if handler else None

    return respond
