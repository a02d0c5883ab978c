"""Unit tests for settings and the assembly factories."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from toolbridge.configuration.config import Settings, get_settings
from toolbridge.configuration.factories import (
    create_client_factory,
    create_config_stores,
    create_default_server,
    create_tool_bridge,
)
from toolbridge.domain.model.mcp.transport import TransportKind
from toolbridge.infrastructure.mcp.client import MCPClient
from toolbridge.infrastructure.mcp.config import JsonFileConfigStore
from toolbridge.infrastructure.mcp.transport.http import HTTPStreamTransport
from toolbridge.infrastructure.mcp.transport.stdio import StdioTransport
from toolbridge.domain.model.mcp.server import ServerDescriptor
from toolbridge.tests.helpers import local_server


@pytest.mark.unit
class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.log_level == "INFO"
        assert settings.invoke_timeout == 60.0
        assert settings.discovery_concurrency == 8
        assert settings.protocol_version == "2024-11-05"
        assert settings.user_config_path == Path.home() / ".toolbridge" / "servers.json"
        assert settings.base_config_path is None

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TOOLBRIDGE_INVOKE_TIMEOUT", "5")
        monkeypatch.setenv("TOOLBRIDGE_LOG_LEVEL", "debug")
        monkeypatch.setenv("TOOLBRIDGE_BASE_CONFIG", str(tmp_path / "base.json"))
        monkeypatch.setenv("TOOLBRIDGE_DEFAULT_SERVER_ARGS", '["--stdio"]')

        settings = Settings(_env_file=None)

        assert settings.invoke_timeout == 5.0
        assert settings.log_level == "DEBUG"
        assert settings.base_config_path == tmp_path / "base.json"
        assert settings.default_server_args == ["--stdio"]

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, TOOLBRIDGE_LOG_LEVEL="chatty")

    @pytest.mark.parametrize(
        "name", ["TOOLBRIDGE_INVOKE_TIMEOUT", "TOOLBRIDGE_DISCOVERY_TIMEOUT", "TOOLBRIDGE_SHUTDOWN_GRACE"]
    )
    def test_timeouts_must_be_positive(self, name):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{name: 0})

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, TOOLBRIDGE_DISCOVERY_CONCURRENCY=0)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


@pytest.mark.unit
class TestFactories:
    """Tests for the assembly factories."""

    def test_default_server(self):
        descriptor = create_default_server(Settings(_env_file=None))

        assert descriptor.id == "default-postgres"
        assert descriptor.transport is TransportKind.LOCAL_PROCESS
        assert descriptor.args == ("-y", "@modelcontextprotocol/server-postgres")
        assert descriptor.categories == ("database", "postgresql")

    def test_default_server_disabled(self):
        settings = Settings(_env_file=None, TOOLBRIDGE_DEFAULT_SERVER_ENABLED=False)

        assert create_default_server(settings) is None

    def test_config_stores(self, tmp_path):
        settings = Settings(
            _env_file=None,
            TOOLBRIDGE_BASE_CONFIG=str(tmp_path / "base.json"),
            TOOLBRIDGE_USER_CONFIG=str(tmp_path / "user.json"),
        )

        stores = create_config_stores(settings)

        assert [type(s) for s in stores] == [JsonFileConfigStore, JsonFileConfigStore]
        assert [s.writable for s in stores] == [False, True]
        assert stores[1].path == tmp_path / "user.json"

    def test_user_store_only_without_base(self, tmp_path):
        settings = Settings(_env_file=None, TOOLBRIDGE_USER_CONFIG=str(tmp_path / "user.json"))

        assert len(create_config_stores(settings)) == 1

    def test_client_factory_applies_settings(self):
        settings = Settings(
            _env_file=None,
            TOOLBRIDGE_INVOKE_TIMEOUT=12,
            TOOLBRIDGE_HANDSHAKE_TIMEOUT=3,
            TOOLBRIDGE_CLIENT_NAME="host-app",
        )
        build = create_client_factory(settings)

        client = build(local_server("pg"))

        assert isinstance(client, MCPClient)
        assert isinstance(client.transport, StdioTransport)
        assert client.invoke_timeout == 12
        assert client.handshake_timeout == 3

    def test_client_factory_uses_descriptor_timeout(self):
        build = create_client_factory(Settings(_env_file=None))

        client = build(ServerDescriptor.remote(id="web", url="http://localhost:9/mcp"))
        slow = build(local_server("slow", timeout=90_000))

        assert isinstance(client.transport, HTTPStreamTransport)
        assert slow.invoke_timeout == 90.0

    async def test_create_tool_bridge_uses_user_config(self, tmp_path):
        path = tmp_path / "servers.json"
        path.write_text('{"servers": [{"id": "pg", "command": "npx"}]}')
        settings = Settings(_env_file=None, TOOLBRIDGE_USER_CONFIG=str(path))

        bridge = create_tool_bridge(settings=settings)
        servers = await bridge.registry.load()

        assert [s.id for s in servers] == ["pg"]
        assert bridge.registry.user_store.name == str(path)
