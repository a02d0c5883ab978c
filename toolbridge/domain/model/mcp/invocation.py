"""
MCP Invocation Domain Models.

Defines the request accepted by the proxy router and the discriminated
result it returns.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from toolbridge.domain.exceptions.mcp import InvalidInvocationRequestError


class InvocationErrorKind(str, Enum):
    """Failure classes of a routed invocation."""

    NOT_FOUND = "not-found"
    UNREACHABLE = "unreachable"
    REMOTE_ERROR = "remote-error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    INVALID_REQUEST = "invalid-request"


@dataclass(frozen=True)
class InvocationRequest:
    """An abstract invocation: tool name, optional hints, arguments."""

    tool_name: str
    domain_hint: str | None = None
    server_id: str | None = None
    arguments: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InvocationRequest":
        """
        Create from the host boundary shape ``{toolName, domainHint?, arguments}``.

        Raises:
            InvalidInvocationRequestError: If a field has the wrong type.
        """
        if not isinstance(data, dict):
            raise InvalidInvocationRequestError(
                f"Invocation request must be an object, got {type(data).__name__}"
            )

        tool_name = _pick(data, "toolName", "tool_name")
        if not isinstance(tool_name, str) or not tool_name:
            raise InvalidInvocationRequestError(
                f"'toolName' must be a non-empty string, got {tool_name!r}", field="toolName"
            )
        for name, alias in (("domainHint", "domain_hint"), ("serverId", "server_id")):
            value = _pick(data, name, alias)
            if value is not None and not isinstance(value, str):
                raise InvalidInvocationRequestError(
                    f"'{name}' must be a string, got {type(value).__name__}", field=name
                )
        arguments = data.get("arguments")
        if arguments is not None and not isinstance(arguments, dict):
            raise InvalidInvocationRequestError(
                f"'arguments' must be an object of named arguments, got "
                f"{type(arguments).__name__}: {arguments!r}",
                field="arguments",
            )

        return cls(
            tool_name=tool_name,
            domain_hint=_pick(data, "domainHint", "domain_hint") or None,
            server_id=_pick(data, "serverId", "server_id") or None,
            arguments=dict(arguments or {}),
        )


@dataclass(frozen=True)
class InvocationResult:
    """
    Outcome of one routed invocation.

    Either ``ok`` with the raw payload from the server, or a failure with
    an error kind and an actionable message.
    """

    ok: bool
    payload: Any = None
    kind: InvocationErrorKind | None = None
    message: str | None = None
    tool_name: str | None = None
    server_id: str | None = None
    duration_ms: int | None = None

    @property
    def outcome(self) -> str:
        """Outcome class used in logs (``ok`` or the error kind)."""
        if self.ok:
            return "ok"
        return self.kind.value if self.kind else "unknown"

    @classmethod
    def success(
        cls,
        payload: Any,
        tool_name: str | None = None,
        server_id: str | None = None,
        duration_ms: int | None = None,
    ) -> "InvocationResult":
        return cls(
            ok=True,
            payload=payload,
            tool_name=tool_name,
            server_id=server_id,
            duration_ms=duration_ms,
        )

    @classmethod
    def failure(
        cls,
        kind: InvocationErrorKind,
        message: str,
        tool_name: str | None = None,
        server_id: str | None = None,
        duration_ms: int | None = None,
    ) -> "InvocationResult":
        return cls(
            ok=False,
            kind=kind,
            message=message,
            tool_name=tool_name,
            server_id=server_id,
            duration_ms=duration_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        """Render the host boundary shape."""
        if self.ok:
            return {"ok": True, "payload": self.payload}
        return {"ok": False, "kind": self.outcome, "message": self.message or ""}


def _pick(data: dict[str, Any], name: str, alias: str) -> Any:
    """Value under the camelCase name, falling back to the snake_case alias."""
    value = data.get(name)
    return data.get(alias) if value is None else value
