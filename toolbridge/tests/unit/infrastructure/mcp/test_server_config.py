"""Unit tests for server configuration records and stores."""

import json

import pytest

from toolbridge.domain.exceptions.mcp import ServerConfigurationError
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.config import (
    ConfigLayer,
    InMemoryConfigStore,
    JsonFileConfigStore,
    parse_server_record,
)


@pytest.mark.unit
class TestParseServerRecord:
    """Tests for parse_server_record."""

    def test_local_process_record(self):
        descriptor = parse_server_record(
            {
                "id": "pg",
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-postgres"],
                "categories": ["database"],
            }
        )

        assert descriptor.id == "pg"
        assert descriptor.label == "pg"
        assert descriptor.transport is TransportKind.LOCAL_PROCESS
        assert descriptor.args == ("-y", "@modelcontextprotocol/server-postgres")

    def test_type_alias_for_transport(self):
        """Test that records using 'type' instead of 'transport' are accepted."""
        descriptor = parse_server_record({"id": "s", "type": "sse", "url": "http://x/sse"})

        assert descriptor.transport is TransportKind.SERVER_PUSH

    def test_unknown_fields_are_ignored(self):
        descriptor = parse_server_record({"id": "pg", "command": "npx", "icon": "db.png"})

        assert descriptor.command == "npx"

    def test_missing_id_is_configuration_error(self):
        with pytest.raises(ServerConfigurationError) as exc_info:
            parse_server_record({"command": "npx"})

        assert exc_info.value.details["errors"]

    def test_unknown_transport_is_configuration_error(self):
        with pytest.raises(ServerConfigurationError):
            parse_server_record({"id": "x", "transport": "carrier-pigeon", "command": "npx"})

    def test_missing_command_is_configuration_error(self):
        """Test that descriptor-level validation surfaces as configuration error."""
        with pytest.raises(ServerConfigurationError, match="command is required"):
            parse_server_record({"id": "pg", "transport": "local-process"})


@pytest.mark.unit
class TestConfigLayer:
    """Tests for ConfigLayer."""

    def test_upsert_replaces_by_id_and_clears_tombstone(self):
        layer = ConfigLayer(servers=[{"id": "a", "command": "x"}], removed=["a", "b"])

        layer.upsert({"id": "a", "command": "y"})

        assert layer.servers == [{"id": "a", "command": "y"}]
        assert layer.removed == ["b"]

    def test_discard(self):
        layer = ConfigLayer(servers=[{"id": "a"}, {"id": "b"}])

        assert layer.discard("a") is True
        assert layer.discard("a") is False
        assert layer.ids() == {"b"}

    def test_tombstone_is_idempotent(self):
        layer = ConfigLayer()
        layer.tombstone("a")
        layer.tombstone("a")

        assert layer.removed == ["a"]

    def test_from_data_shapes(self):
        assert ConfigLayer.from_data(None).servers == []
        assert ConfigLayer.from_data([{"id": "a"}]).ids() == {"a"}
        assert ConfigLayer.from_data({"mcpServers": [{"id": "b"}]}).ids() == {"b"}
        assert ConfigLayer.from_data({"servers": [], "removed": ["c"]}).removed == ["c"]

    def test_from_data_rejects_scalars(self):
        with pytest.raises(ServerConfigurationError):
            ConfigLayer.from_data("servers")


@pytest.mark.unit
class TestInMemoryConfigStore:
    """Tests for InMemoryConfigStore."""

    def test_load_returns_copies(self):
        store = InMemoryConfigStore([{"id": "a", "command": "x"}])

        layer = store.load()
        layer.servers[0]["command"] = "changed"

        assert store.load().servers == [{"id": "a", "command": "x"}]

    def test_read_only_store_rejects_save(self):
        store = InMemoryConfigStore(writable=False, name="base")

        with pytest.raises(ServerConfigurationError, match="read-only"):
            store.save(ConfigLayer())


@pytest.mark.unit
class TestJsonFileConfigStore:
    """Tests for JsonFileConfigStore."""

    def test_missing_file_is_empty_layer(self, tmp_path):
        store = JsonFileConfigStore(tmp_path / "servers.json")

        layer = store.load()

        assert layer.servers == []
        assert layer.removed == []

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "servers.json"
        store = JsonFileConfigStore(path)

        store.save(ConfigLayer(servers=[{"id": "pg", "command": "npx"}], removed=["old"]))

        assert json.loads(path.read_text()) == {
            "servers": [{"id": "pg", "command": "npx"}],
            "removed": ["old"],
        }
        assert store.load().ids() == {"pg"}
        assert not path.with_suffix(".json.tmp").exists()

    def test_invalid_json_is_configuration_error(self, tmp_path):
        path = tmp_path / "servers.json"
        path.write_text("{not json")

        with pytest.raises(ServerConfigurationError, match="Cannot read"):
            JsonFileConfigStore(path).load()

    def test_empty_file_is_empty_layer(self, tmp_path):
        path = tmp_path / "servers.json"
        path.write_text("")

        assert JsonFileConfigStore(path).load().servers == []

    def test_read_only_file_store_rejects_save(self, tmp_path):
        store = JsonFileConfigStore(tmp_path / "base.json", writable=False)

        with pytest.raises(ServerConfigurationError):
            store.save(ConfigLayer())
        assert not (tmp_path / "base.json").exists()
