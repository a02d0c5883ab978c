"""Unit tests for the toolbridge command line."""

import json

import pytest

from toolbridge.cli.main import build_parser, main
from toolbridge.configuration.config import get_settings


@pytest.fixture
def user_config(tmp_path, monkeypatch):
    """Point the user configuration layer at a temporary file."""
    path = tmp_path / "servers.json"
    monkeypatch.setenv("TOOLBRIDGE_USER_CONFIG", str(path))
    monkeypatch.setenv("TOOLBRIDGE_DEFAULT_SERVER_ENABLED", "false")
    monkeypatch.delenv("TOOLBRIDGE_BASE_CONFIG", raising=False)
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


@pytest.mark.unit
class TestParser:
    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_call_arguments(self):
        args = build_parser().parse_args(["call", "run_query", "--hint", "database"])

        assert args.tool == "run_query"
        assert args.hint == "database"
        assert args.server is None


@pytest.mark.unit
class TestCommands:
    """Tests for the subcommands that need no live server."""

    def test_classify_prints_json(self, user_config, capsys):
        assert main(["classify", "show", "the", "postgres", "schemas"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["primaryDomain"] == "database"

    def test_add_list_and_remove_server(self, user_config, capsys):
        code = main(
            [
                "add-server",
                "--id",
                "pg",
                "--command",
                "npx",
                "--arg",
                "-y",
                "--arg",
                "@modelcontextprotocol/server-postgres",
                "--category",
                "database",
            ]
        )

        assert code == 0
        assert f"Saved server 'pg' to {user_config}" in capsys.readouterr().out
        saved = json.loads(user_config.read_text())
        assert saved["servers"][0]["args"] == ["-y", "@modelcontextprotocol/server-postgres"]

        assert main(["servers"]) == 0
        listed = json.loads(capsys.readouterr().out)
        assert [s["id"] for s in listed] == ["pg"]
        assert listed[0]["categories"] == ["database"]

        assert main(["remove-server", "pg"]) == 0
        assert json.loads(user_config.read_text())["servers"] == []

    def test_remove_unknown_server(self, user_config, capsys):
        assert main(["remove-server", "ghost"]) == 1
        assert "'ghost' is not configured" in capsys.readouterr().err

    def test_add_server_missing_command(self, user_config, capsys):
        assert main(["add-server", "--id", "pg"]) == 1
        assert "command is required" in capsys.readouterr().err
        assert not user_config.exists()

    def test_add_server_rejects_malformed_env(self, user_config):
        with pytest.raises(SystemExit) as exc_info:
            main(["add-server", "--id", "pg", "--command", "npx", "--env", "NOPE"])

        assert exc_info.value.code == 2

    def test_call_without_servers(self, user_config, capsys):
        assert main(["call", "run_query"]) == 2

        output = json.loads(capsys.readouterr().out)
        assert output["ok"] is False
        assert output["kind"] == "not-found"

    def test_call_rejects_non_object_args(self, user_config, capsys):
        assert main(["call", "run_query", "--args", "[1, 2]"]) == 1
        assert "must be a JSON object" in capsys.readouterr().err
