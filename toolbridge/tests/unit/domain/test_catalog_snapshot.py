"""Unit tests for tool categorization and catalog snapshots."""

import pytest

from toolbridge.domain.model.mcp.catalog import CatalogSnapshot
from toolbridge.domain.model.mcp.category import (
    DomainCapabilities,
    categorize_tool,
    category_to_domain,
)
from toolbridge.domain.model.mcp.tool import ToolDescriptor, tool_key


def _tool(name: str, server_id: str, category: str = "general") -> ToolDescriptor:
    return ToolDescriptor(name=name, server_id=server_id, category=category)


@pytest.mark.unit
class TestCategorizeTool:
    """Tests for categorize_tool."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("list_schemas", "query"),
            ("get_user", "query"),
            ("describe_table", "query"),
            ("generate_report", "analysis"),
            ("create_erd", "analysis"),
            ("run_query", "database"),
            ("execute_sql", "database"),
            ("ping", "general"),
        ],
    )
    def test_name_patterns(self, name, expected):
        """Test substring matching against the ordered pattern table."""
        assert categorize_tool(name) == expected

    def test_pattern_order_decides(self):
        """Test that earlier patterns win when several match."""
        # "list" (query) comes before "query" (database)
        assert categorize_tool("list_query_history") == "query"

    def test_matching_is_case_insensitive(self):
        assert categorize_tool("ListSchemas") == "query"

    def test_server_category_hint_wins(self):
        """Test that the owning server's first category overrides name patterns."""
        assert categorize_tool("list_schemas", ("git", "vcs")) == "git"

    def test_category_to_domain(self):
        assert category_to_domain("query") == "database"
        assert category_to_domain("database") == "database"
        assert category_to_domain("analysis") == "analysis"
        assert category_to_domain("postgresql") == "general"


@pytest.mark.unit
class TestToolDescriptor:
    """Tests for ToolDescriptor."""

    def test_key(self):
        tool = _tool("run_query", "pg")

        assert tool.key == "pg:run_query"
        assert tool_key("pg", "run_query") == tool.key

    def test_from_capability(self):
        """Test building a descriptor from a tools/list record."""
        tool = ToolDescriptor.from_capability(
            {
                "name": "run_query",
                "description": "Run SQL",
                "inputSchema": {"type": "object", "properties": {"sql": {"type": "string"}}},
            },
            server_id="pg",
            category="database",
        )

        assert tool.to_dict() == {
            "name": "run_query",
            "serverId": "pg",
            "category": "database",
            "description": "Run SQL",
            "inputSchema": {"type": "object", "properties": {"sql": {"type": "string"}}},
        }

    def test_from_capability_defaults(self):
        tool = ToolDescriptor.from_capability({"name": "ping"}, "s", "general")

        assert tool.description == ""
        assert tool.input_schema == {}


@pytest.mark.unit
class TestCatalogSnapshot:
    """Tests for CatalogSnapshot indices."""

    @pytest.fixture
    def snapshot(self):
        return CatalogSnapshot.build(
            [
                _tool("list_schemas", "pg", "query"),
                _tool("run_query", "pg", "database"),
                _tool("run_query", "warehouse", "database"),
                _tool("status", "git", "git"),
            ],
            servers=["pg", "warehouse", "git"],
            generation=3,
        )

    def test_empty(self):
        snapshot = CatalogSnapshot.empty()

        assert snapshot.is_empty
        assert len(snapshot) == 0
        assert snapshot.list_all() == []
        assert snapshot.by_category("query") == []

    def test_same_name_on_two_servers_are_distinct(self, snapshot):
        """Test that tool names are only unique per server."""
        assert len(snapshot) == 4
        assert snapshot.get("pg", "run_query") is not snapshot.get("warehouse", "run_query")
        assert [t.server_id for t in snapshot.named("run_query")] == ["pg", "warehouse"]

    def test_by_category(self, snapshot):
        assert [t.name for t in snapshot.by_category("query")] == ["list_schemas"]
        assert {t.server_id for t in snapshot.by_category("database")} == {"pg", "warehouse"}

    def test_by_server(self, snapshot):
        assert [t.name for t in snapshot.by_server("pg")] == ["list_schemas", "run_query"]
        assert snapshot.by_server("missing") == []

    def test_by_domain_folds_query_into_database(self, snapshot):
        """Test that query tools count as database domain tools."""
        names = [t.key for t in snapshot.by_domain("database")]

        assert names == ["pg:list_schemas", "pg:run_query", "warehouse:run_query"]

    def test_categories_and_domains(self, snapshot):
        assert snapshot.categories() == {"query", "database", "git"}
        assert snapshot.domains() == {"database", "git"}

    def test_metadata(self, snapshot):
        assert snapshot.generation == 3
        assert snapshot.servers == ("pg", "warehouse", "git")

    def test_tools_mapping_is_read_only(self, snapshot):
        with pytest.raises(TypeError):
            snapshot.tools[("pg", "new")] = _tool("new", "pg")

    def test_duplicate_key_keeps_last(self):
        """Test that a server reporting the same name twice yields one entry."""
        snapshot = CatalogSnapshot.build(
            [_tool("run", "pg", "database"), _tool("run", "pg", "general")],
            servers=["pg"],
            generation=1,
        )

        assert len(snapshot) == 1
        assert snapshot.get("pg", "run").category == "general"
        assert snapshot.by_category("database") == []


@pytest.mark.unit
class TestDomainCapabilities:
    """Tests for DomainCapabilities."""

    def test_for_known_domain(self):
        caps = DomainCapabilities.for_domain("database", ["run_query"])

        assert caps.description == "Database operations, queries, and schema management"
        assert "Execute SQL queries" in caps.examples
        assert caps.to_dict()["tools"] == ["run_query"]

    def test_format(self):
        text = DomainCapabilities.for_domain("git", ["status", "diff"]).format()

        assert text.startswith("**GIT** (2 tools)")
        assert "- Tools: status, diff" in text

    def test_unknown_domain_has_fallback_text(self):
        caps = DomainCapabilities.for_domain("weather", [])

        assert caps.description == "General operations"
