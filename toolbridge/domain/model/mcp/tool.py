"""
MCP Tool Domain Models.

Defines the ToolDescriptor value object for one discovered capability.
"""

from dataclasses import dataclass, field
from typing import Any


def tool_key(server_id: str, tool_name: str) -> str:
    """Build the global identifier of a tool."""
    return f"{server_id}:{tool_name}"


@dataclass(frozen=True)
class ToolDescriptor:
    """
    One discovered capability.

    Names are only unique within the owning server, so a tool is globally
    identified by ``server_id:name``. The input schema is passed through
    as received and never validated here.
    """

    name: str
    server_id: str
    category: str = "general"
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Global identifier (``server_id:name``)."""
        return tool_key(self.server_id, self.name)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (MCP protocol field names)."""
        return {
            "name": self.name,
            "serverId": self.server_id,
            "category": self.category,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    @classmethod
    def from_capability(
        cls,
        data: dict[str, Any],
        server_id: str,
        category: str,
    ) -> "ToolDescriptor":
        """Create from a ``tools/list`` record (``{name, description, inputSchema}``)."""
        return cls(
            name=data["name"],
            server_id=server_id,
            category=category,
            description=data.get("description") or "",
            input_schema=data.get("inputSchema") or data.get("input_schema") or {},
        )
