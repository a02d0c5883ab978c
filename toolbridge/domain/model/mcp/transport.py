"""
MCP Transport Domain Models.

Defines the wire transport kinds a remote tool server can be reached over.
"""

from enum import Enum


class TransportKind(str, Enum):
    """MCP transport kinds."""

    LOCAL_PROCESS = "local-process"  # child process, JSON lines over stdio
    HTTP_STREAM = "http-stream"  # streamable HTTP, one POST per message
    SERVER_PUSH = "server-push"  # long-lived event stream plus POST endpoint

    @property
    def is_remote(self) -> bool:
        """Check if this kind is reached over HTTP."""
        return self is not TransportKind.LOCAL_PROCESS

    @classmethod
    def normalize(cls, value: "str | TransportKind") -> "TransportKind":
        """Normalize transport kind string (or common alias) to enum."""
        if isinstance(value, TransportKind):
            return value
        normalized = str(value).lower().strip().replace("_", "-")
        aliases = {
            "stdio": cls.LOCAL_PROCESS,
            "local": cls.LOCAL_PROCESS,
            "process": cls.LOCAL_PROCESS,
            "http": cls.HTTP_STREAM,
            "streamable-http": cls.HTTP_STREAM,
            "sse": cls.SERVER_PUSH,
        }
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)
