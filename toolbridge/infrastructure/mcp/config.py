"""
MCP Configuration Models and Stores.

Defines the Pydantic model for server configuration records and the
stores that hold one configuration layer each. The server registry
merges layers lowest priority first; the last layer is the writable
user layer.

Layer file format (JSON):
    {
        "servers": [
            {
                "id": "pg",
                "label": "Postgres",
                "transport": "local-process",
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-postgres"],
                "env": {},
                "categories": ["database"]
            }
        ],
        "removed": ["default-postgres"]
    }

A bare list of records is accepted as a layer without tombstones.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from toolbridge.domain.exceptions.mcp import ServerConfigurationError
from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.domain.model.mcp.transport import TransportKind

logger = logging.getLogger(__name__)


class ServerRecord(BaseModel):
    """
    Configuration record for one MCP server.

    Example:
        {
            "id": "github",
            "label": "GitHub",
            "transport": "http-stream",
            "url": "https://example.com/mcp",
            "categories": ["git"]
        }
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique server id")
    label: str | None = Field(default=None, description="Display label (defaults to the id)")
    transport: TransportKind = Field(
        default=TransportKind.LOCAL_PROCESS,
        validation_alias=AliasChoices("transport", "type"),
        description="local-process, http-stream or server-push",
    )
    command: str | None = Field(default=None, description="Launch command (local-process)")
    args: list[str] = Field(default_factory=list, description="Command arguments")
    env: dict[str, str] = Field(default_factory=dict, description="Extra environment variables")
    url: str | None = Field(default=None, description="Endpoint URL (HTTP based kinds)")
    headers: dict[str, str] = Field(default_factory=dict, description="Static HTTP headers")
    categories: list[str] = Field(default_factory=list, description="Domain-category hints")
    timeout: int | None = Field(default=None, description="Invoke timeout override in ms")
    enabled: bool = Field(default=True, description="Connect this server on startup")

    @field_validator("transport", mode="before")
    @classmethod
    def normalize_transport(cls, value: Any) -> TransportKind:
        return TransportKind.normalize(value)

    def to_descriptor(self) -> ServerDescriptor:
        """Convert to a validated domain descriptor."""
        return ServerDescriptor(
            id=self.id,
            label=self.label or self.id,
            transport=self.transport,
            command=self.command,
            args=tuple(self.args),
            env=dict(self.env),
            url=self.url,
            headers=dict(self.headers),
            categories=tuple(self.categories),
            timeout=self.timeout,
            enabled=self.enabled,
        )


def parse_server_record(record: dict[str, Any]) -> ServerDescriptor:
    """
    Parse a raw configuration record into a ServerDescriptor.

    Raises:
        ServerConfigurationError: If the record is malformed or misses the
            fields its transport kind requires.
    """
    server_id = record.get("id") if isinstance(record, dict) else None
    try:
        return ServerRecord.model_validate(record).to_descriptor()
    except ValidationError as e:
        raise ServerConfigurationError(
            f"Invalid server record '{server_id or '?'}': {e.error_count()} validation error(s)",
            server_id=server_id,
            original_error=e,
            details={"errors": e.errors(include_url=False)},
        ) from e


@dataclass
class ConfigLayer:
    """Contents of one configuration layer."""

    servers: list[dict[str, Any]] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def ids(self) -> set[str]:
        return {record["id"] for record in self.servers if isinstance(record, dict) and "id" in record}

    def upsert(self, record: dict[str, Any]) -> None:
        """Insert or replace a record by id and clear any tombstone for it."""
        server_id = record["id"]
        self.removed = [rid for rid in self.removed if rid != server_id]
        for index, existing in enumerate(self.servers):
            if isinstance(existing, dict) and existing.get("id") == server_id:
                self.servers[index] = record
                return
        self.servers.append(record)

    def discard(self, server_id: str) -> bool:
        """Delete a record by id; returns whether one was present."""
        before = len(self.servers)
        self.servers = [
            r for r in self.servers if not (isinstance(r, dict) and r.get("id") == server_id)
        ]
        return len(self.servers) != before

    def tombstone(self, server_id: str) -> None:
        if server_id not in self.removed:
            self.removed.append(server_id)

    def to_dict(self) -> dict[str, Any]:
        return {"servers": self.servers, "removed": self.removed}

    @classmethod
    def from_data(cls, data: Any) -> "ConfigLayer":
        """Create from decoded JSON (an object or a bare list of records)."""
        if data is None:
            return cls()
        if isinstance(data, list):
            return cls(servers=list(data))
        if isinstance(data, dict):
            servers = data.get("servers") or data.get("mcpServers") or []
            removed = data.get("removed") or []
            if not isinstance(servers, list) or not isinstance(removed, list):
                raise ServerConfigurationError("'servers' and 'removed' must be lists")
            return cls(servers=list(servers), removed=[str(r) for r in removed])
        raise ServerConfigurationError(f"Unsupported configuration layer type: {type(data).__name__}")


class ServerConfigStore(ABC):
    """One configuration layer's backing storage."""

    writable: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Layer name used in logs."""
        ...

    @abstractmethod
    def load(self) -> ConfigLayer:
        """Read the layer."""
        ...

    def save(self, layer: ConfigLayer) -> None:
        """Persist the layer."""
        raise ServerConfigurationError(f"Configuration layer '{self.name}' is read-only")


class InMemoryConfigStore(ServerConfigStore):
    """Configuration layer kept in memory (hosts that manage persistence themselves, tests)."""

    def __init__(
        self,
        servers: list[dict[str, Any]] | None = None,
        removed: list[str] | None = None,
        writable: bool = True,
        name: str = "memory",
    ) -> None:
        self._layer = ConfigLayer(servers=list(servers or []), removed=list(removed or []))
        self.writable = writable
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def load(self) -> ConfigLayer:
        return ConfigLayer(servers=[dict(r) for r in self._layer.servers], removed=list(self._layer.removed))

    def save(self, layer: ConfigLayer) -> None:
        if not self.writable:
            super().save(layer)
        self._layer = ConfigLayer(servers=[dict(r) for r in layer.servers], removed=list(layer.removed))


class JsonFileConfigStore(ServerConfigStore):
    """Configuration layer stored as a JSON file; a missing file is an empty layer."""

    def __init__(self, path: Path | str, writable: bool = True) -> None:
        self.path = Path(path).expanduser()
        self.writable = writable

    @property
    def name(self) -> str:
        return str(self.path)

    def load(self) -> ConfigLayer:
        if not self.path.exists():
            logger.debug(f"Configuration layer {self.path} does not exist, treating as empty")
            return ConfigLayer()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "null")
        except (OSError, json.JSONDecodeError) as e:
            raise ServerConfigurationError(
                f"Cannot read configuration layer {self.path}: {e}", original_error=e
            ) from e
        return ConfigLayer.from_data(data)

    def save(self, layer: ConfigLayer) -> None:
        if not self.writable:
            super().save(layer)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(layer.to_dict(), indent=2) + "\n", encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug(f"Saved {len(layer.servers)} server record(s) to {self.path}")
