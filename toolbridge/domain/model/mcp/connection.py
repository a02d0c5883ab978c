"""
MCP Connection Domain Models.

Defines connection state and the read-only status view of a connection.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class ConnectionState(str, Enum):
    """MCP connection state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"

    @property
    def is_live(self) -> bool:
        """Check if the connection can serve requests."""
        return self is ConnectionState.CONNECTED


@dataclass(frozen=True)
class ConnectionStatus:
    """
    Point-in-time view of one server connection.

    Handed to callers instead of the connection itself, which stays
    owned by the connection manager.
    """

    server_id: str
    state: ConnectionState
    transport: str
    endpoint: str
    error: str | None = None
    connected_at: datetime | None = None
    server_info: dict[str, Any] | None = None

    @property
    def is_live(self) -> bool:
        return self.state.is_live

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            "serverId": self.server_id,
            "state": self.state.value,
            "transport": self.transport,
            "endpoint": self.endpoint,
            "error": self.error,
            "connectedAt": self.connected_at.isoformat() if self.connected_at else None,
            "serverInfo": self.server_info,
        }
