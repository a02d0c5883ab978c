"""
MCP Catalog Domain Models.

Defines the immutable CatalogSnapshot produced by one discovery pass.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from toolbridge.domain.model.mcp.category import category_to_domain
from toolbridge.domain.model.mcp.tool import ToolDescriptor


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    Immutable point-in-time view of the catalog.

    Maps ``(server_id, tool_name)`` to a ToolDescriptor and carries derived
    indices by category and by server. Snapshots are never edited; a new
    one is built for every discovery pass and swapped in whole.
    """

    tools: Mapping[tuple[str, str], ToolDescriptor] = field(
        default_factory=lambda: MappingProxyType({})
    )
    servers: tuple[str, ...] = ()
    generation: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    _by_category: Mapping[str, tuple[ToolDescriptor, ...]] = field(
        default_factory=lambda: MappingProxyType({}), repr=False
    )
    _by_server: Mapping[str, tuple[ToolDescriptor, ...]] = field(
        default_factory=lambda: MappingProxyType({}), repr=False
    )

    @classmethod
    def empty(cls) -> "CatalogSnapshot":
        return cls()

    @classmethod
    def build(
        cls,
        tools: Iterable[ToolDescriptor],
        servers: Iterable[str],
        generation: int,
    ) -> "CatalogSnapshot":
        """Build a snapshot and its indices from discovered tools."""
        by_key: dict[tuple[str, str], ToolDescriptor] = {}
        for tool in tools:
            by_key[(tool.server_id, tool.name)] = tool

        by_category: dict[str, list[ToolDescriptor]] = {}
        by_server: dict[str, list[ToolDescriptor]] = {}
        for tool in by_key.values():
            by_category.setdefault(tool.category, []).append(tool)
            by_server.setdefault(tool.server_id, []).append(tool)

        return cls(
            tools=MappingProxyType(by_key),
            servers=tuple(servers),
            generation=generation,
            _by_category=MappingProxyType({k: tuple(v) for k, v in by_category.items()}),
            _by_server=MappingProxyType({k: tuple(v) for k, v in by_server.items()}),
        )

    @property
    def is_empty(self) -> bool:
        return not self.tools

    def __len__(self) -> int:
        return len(self.tools)

    def get(self, server_id: str, tool_name: str) -> ToolDescriptor | None:
        return self.tools.get((server_id, tool_name))

    def list_all(self) -> list[ToolDescriptor]:
        return list(self.tools.values())

    def by_category(self, category: str) -> list[ToolDescriptor]:
        return list(self._by_category.get(category, ()))

    def by_server(self, server_id: str) -> list[ToolDescriptor]:
        return list(self._by_server.get(server_id, ()))

    def by_domain(self, domain: str) -> list[ToolDescriptor]:
        return [t for t in self.tools.values() if category_to_domain(t.category) == domain]

    def named(self, tool_name: str) -> list[ToolDescriptor]:
        """All tools with this name, in discovery order."""
        return [t for t in self.tools.values() if t.name == tool_name]

    def categories(self) -> set[str]:
        return set(self._by_category)

    def domains(self) -> set[str]:
        return {category_to_domain(category) for category in self._by_category}
