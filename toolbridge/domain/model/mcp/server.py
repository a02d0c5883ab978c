"""
MCP Server Domain Models.

Defines the ServerDescriptor value object: one configured remote tool server.
"""

from dataclasses import dataclass, field
from typing import Any

from toolbridge.domain.exceptions.mcp import ServerConfigurationError
from toolbridge.domain.model.mcp.transport import TransportKind


@dataclass(frozen=True)
class ServerDescriptor:
    """
    Remote tool server descriptor.

    Exactly one connection-parameter set is populated, matching the
    declared transport kind: ``command``/``args``/``env`` for a local
    process, ``url``/``headers`` for the HTTP-based kinds.
    """

    id: str
    label: str
    transport: TransportKind = TransportKind.LOCAL_PROCESS

    # Local process parameters
    command: str | None = None
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)

    # Remote (HTTP based) parameters
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    categories: tuple[str, ...] = ()
    timeout: int | None = None  # milliseconds, overrides the global invoke timeout
    enabled: bool = True

    def __post_init__(self) -> None:
        """Validate connection parameters against the transport kind."""
        if not self.id or not self.id.strip():
            raise ServerConfigurationError("Server id is required")
        if ":" in self.id:
            raise ServerConfigurationError(
                f"Server id '{self.id}' must not contain ':'", server_id=self.id
            )
        if not isinstance(self.transport, TransportKind):
            object.__setattr__(self, "transport", TransportKind.normalize(self.transport))
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "categories", tuple(self.categories))

        if self.transport is TransportKind.LOCAL_PROCESS:
            if not self.command:
                raise ServerConfigurationError(
                    f"Server '{self.id}': command is required for {self.transport.value} transport",
                    server_id=self.id,
                )
            if self.url or self.headers:
                raise ServerConfigurationError(
                    f"Server '{self.id}': url/headers are not allowed for "
                    f"{self.transport.value} transport",
                    server_id=self.id,
                )
        else:
            if not self.url:
                raise ServerConfigurationError(
                    f"Server '{self.id}': url is required for {self.transport.value} transport",
                    server_id=self.id,
                )
            if self.command or self.args or self.env:
                raise ServerConfigurationError(
                    f"Server '{self.id}': command/args/env are not allowed for "
                    f"{self.transport.value} transport",
                    server_id=self.id,
                )

        if self.timeout is not None and self.timeout <= 0:
            raise ServerConfigurationError(
                f"Server '{self.id}': timeout must be positive", server_id=self.id
            )

    @property
    def timeout_seconds(self) -> float | None:
        """Get the per-server timeout in seconds, if configured."""
        if self.timeout is None:
            return None
        return self.timeout / 1000.0

    @property
    def primary_category(self) -> str | None:
        """First category hint, used to categorize every tool of this server."""
        return self.categories[0] if self.categories else None

    @property
    def endpoint(self) -> str:
        """Human readable endpoint (URL or command line)."""
        if self.transport is TransportKind.LOCAL_PROCESS:
            return " ".join([self.command or "", *self.args]).strip()
        return self.url or ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to a configuration record."""
        record: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "transport": self.transport.value,
        }
        if self.transport is TransportKind.LOCAL_PROCESS:
            record["command"] = self.command
            record["args"] = list(self.args)
            record["env"] = dict(self.env)
        else:
            record["url"] = self.url
            if self.headers:
                record["headers"] = dict(self.headers)
        if self.categories:
            record["categories"] = list(self.categories)
        if self.timeout is not None:
            record["timeout"] = self.timeout
        if not self.enabled:
            record["enabled"] = False
        return record

    @classmethod
    def local_process(
        cls,
        id: str,
        command: str,
        args: list[str] | tuple[str, ...] = (),
        env: dict[str, str] | None = None,
        label: str | None = None,
        categories: list[str] | tuple[str, ...] = (),
    ) -> "ServerDescriptor":
        """Create a local-process descriptor."""
        return cls(
            id=id,
            label=label or id,
            transport=TransportKind.LOCAL_PROCESS,
            command=command,
            args=tuple(args),
            env=dict(env or {}),
            categories=tuple(categories),
        )

    @classmethod
    def remote(
        cls,
        id: str,
        url: str,
        transport: TransportKind = TransportKind.HTTP_STREAM,
        headers: dict[str, str] | None = None,
        label: str | None = None,
        categories: list[str] | tuple[str, ...] = (),
    ) -> "ServerDescriptor":
        """Create an http-stream or server-push descriptor."""
        return cls(
            id=id,
            label=label or id,
            transport=transport,
            url=url,
            headers=dict(headers or {}),
            categories=tuple(categories),
        )
