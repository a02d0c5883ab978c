"""
Stdio transport for MCP.

Communicates with MCP servers via subprocess stdin/stdout.
"""

import asyncio
import contextlib
import json
import logging
import os
from typing import Any

from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPTransportClosedError,
    MCPTransportError,
)

logger = logging.getLogger(__name__)

# Tool listings of large servers easily exceed the 64 KiB default line limit
STREAM_LIMIT = 16 * 1024 * 1024


class StdioTransport(BaseTransport):
    """
    MCP transport using stdio (subprocess communication).

    Launches an MCP server as a subprocess and exchanges newline-delimited
    JSON-RPC messages over stdin/stdout. A reader task resolves responses
    by id; writes share one pipe, so the transport is not multiplexed.
    """

    multiplexed = False

    def __init__(self, descriptor: ServerDescriptor, shutdown_grace: float = 5.0) -> None:
        """Initialize stdio transport."""
        super().__init__(descriptor)
        self._shutdown_grace = shutdown_grace
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._write_lock = asyncio.Lock()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def start(self) -> None:
        """
        Start subprocess and the stdout reader.

        Raises:
            MCPTransportError: If subprocess fails to start.
        """
        if self._is_open:
            logger.debug("Stdio transport already started")
            return

        descriptor = self._descriptor
        if descriptor.transport is not TransportKind.LOCAL_PROCESS:
            raise MCPTransportError(f"Invalid transport kind for stdio: {descriptor.transport}")
        if not descriptor.command:
            raise MCPTransportError("Command is required for stdio transport")

        env = {**os.environ, **descriptor.env} if descriptor.env else None

        logger.info(f"Starting MCP server '{self.server_id}': {descriptor.endpoint}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                descriptor.command,
                *descriptor.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            logger.error(f"Failed to start MCP server process for '{self.server_id}': {e}")
            raise MCPTransportError(f"Failed to start subprocess: {e}") from e

        self._is_open = True
        self._reader_task = asyncio.create_task(
            self._read_loop(), name=f"mcp-stdio-reader-{self.server_id}"
        )
        self._stderr_task = asyncio.create_task(
            self._drain_stderr(), name=f"mcp-stdio-stderr-{self.server_id}"
        )
        logger.info(f"Started MCP server process (pid={self._process.pid})")

    async def stop(self) -> None:
        """Terminate subprocess, escalating to kill after the grace period."""
        if self._process is None:
            return

        self._is_open = False
        process = self._process
        self._process = None

        if process.stdin and not process.stdin.is_closing():
            process.stdin.close()

        if process.returncode is None:
            try:
                process.terminate()
                await asyncio.wait_for(process.wait(), timeout=self._shutdown_grace)
            except TimeoutError:
                logger.warning(f"MCP server '{self.server_id}' ignored terminate, killing")
                process.kill()
                await process.wait()
            except ProcessLookupError:
                logger.debug(f"MCP server '{self.server_id}' already exited")

        for task in (self._reader_task, self._stderr_task):
            if task and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reader_task = None
        self._stderr_task = None

        self._fail_pending(MCPTransportClosedError(f"Transport for '{self.server_id}' stopped"))
        logger.info(f"Stdio transport for '{self.server_id}' stopped")

    async def _write(self, message: dict[str, Any]) -> None:
        """Write one message to the subprocess stdin."""
        if not self._is_open or not self._process or not self._process.stdin:
            raise MCPTransportClosedError("Transport not connected")

        data = (json.dumps(message) + "\n").encode()
        logger.debug(f"Sending: {message.get('method', 'response')} (id={message.get('id')})")

        async with self._write_lock:
            try:
                self._process.stdin.write(data)
                await self._process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                self._mark_closed(f"Pipe to '{self.server_id}' broken: {e}")
                raise MCPTransportClosedError(f"Pipe to '{self.server_id}' broken") from e

    async def _read_loop(self) -> None:
        """Read stdout line by line and dispatch JSON-RPC messages."""
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        try:
            while True:
                line = await stdout.readline()
                if not line:
                    break
                text = line.decode(errors="replace").strip()
                if not text:
                    continue
                try:
                    message = json.loads(text)
                except json.JSONDecodeError:
                    logger.debug(f"Non-JSON output from '{self.server_id}': {text[:200]}")
                    continue
                if isinstance(message, list):
                    for item in message:
                        if isinstance(item, dict):
                            self._dispatch(item)
                elif isinstance(message, dict):
                    self._dispatch(message)
        except (ConnectionResetError, ValueError) as e:
            logger.error(f"Error reading from MCP server '{self.server_id}': {e}")

        self._mark_closed(f"MCP server '{self.server_id}' closed its output")

    async def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stderr = self._process.stderr
        while True:
            line = await stderr.readline()
            if not line:
                return
            logger.debug(f"[{self.server_id} stderr] {line.decode(errors='replace').rstrip()}")

    def _mark_closed(self, reason: str) -> None:
        if self._is_open:
            logger.warning(reason)
        self._is_open = False
        self._fail_pending(MCPTransportClosedError(reason))
