"""
Transport factory for MCP.

Creates the transport instance matching a server descriptor's kind.
"""

import logging
from typing import Any

from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.transport.base import BaseTransport, MCPTransportError

logger = logging.getLogger(__name__)


class TransportFactory:
    """
    Factory for creating MCP transport instances.

    Built-in transports are registered lazily on first use; hosts may
    register replacements for a kind with ``register``.
    """

    _transports: dict[TransportKind, type[BaseTransport]] = {}

    @classmethod
    def register(cls, kind: TransportKind, transport_class: type[BaseTransport]) -> None:
        """
        Register a transport implementation.

        Args:
            kind: Transport kind enum value.
            transport_class: Transport class implementing BaseTransport.
        """
        cls._transports[kind] = transport_class
        logger.debug(f"Registered transport: {kind.value} -> {transport_class.__name__}")

    @classmethod
    def create(
        cls,
        descriptor: ServerDescriptor,
        shutdown_grace: float = 5.0,
        connect_timeout: float = 10.0,
    ) -> BaseTransport:
        """
        Create a transport instance for a server.

        Args:
            descriptor: Server descriptor.
            shutdown_grace: Seconds a local process gets to exit before it is killed.
            connect_timeout: Connect timeout in seconds for HTTP based kinds.

        Returns:
            Unstarted transport instance.

        Raises:
            MCPTransportError: If the transport kind is not supported.
        """
        cls._lazy_register()
        transport_class = cls._transports.get(descriptor.transport)
        if not transport_class:
            raise MCPTransportError(f"Unsupported transport kind: {descriptor.transport.value}")

        options: dict[str, Any] = {}
        if descriptor.transport is TransportKind.LOCAL_PROCESS:
            options["shutdown_grace"] = shutdown_grace
        else:
            options["connect_timeout"] = connect_timeout
        return transport_class(descriptor, **options)

    @classmethod
    def supports(cls, kind: str) -> bool:
        """Check if a transport kind (or alias) is supported."""
        try:
            normalized = TransportKind.normalize(kind)
        except ValueError:
            return False
        cls._lazy_register()
        return normalized in cls._transports

    @classmethod
    def _lazy_register(cls) -> None:
        """Lazily register built-in transports."""
        if cls._transports:
            return

        from toolbridge.infrastructure.mcp.transport.http import HTTPStreamTransport
        from toolbridge.infrastructure.mcp.transport.sse import ServerPushTransport
        from toolbridge.infrastructure.mcp.transport.stdio import StdioTransport

        cls.register(TransportKind.LOCAL_PROCESS, StdioTransport)
        cls.register(TransportKind.HTTP_STREAM, HTTPStreamTransport)
        cls.register(TransportKind.SERVER_PUSH, ServerPushTransport)

    @classmethod
    def get_supported_kinds(cls) -> list[str]:
        """Get list of supported transport kind strings."""
        cls._lazy_register()
        return [kind.value for kind in cls._transports]
