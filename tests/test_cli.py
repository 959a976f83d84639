"""Tests for CLI commands.

These tests verify that all CLI commands are properly registered and callable.
"""

import pytest

from bunq_sync.runner.main import create_cli, main


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, temp_db):
    """Point the CLI at the test database and clear any real API key."""
    monkeypatch.setenv("STATE_DB_PATH", str(temp_db))
    monkeypatch.delenv("BUNQ_API_KEY", raising=False)
    monkeypatch.delenv("BUNQ_SYNC_DATE_FROM", raising=False)
    monkeypatch.delenv("BUNQ_SYNC_MAX_ITEMS", raising=False)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.yaml"


class TestCLICommandRegistry:
    """Tests for CLI command registration."""

    def test_all_commands_registered(self):
        """Verify all expected commands are registered."""
        parser = create_cli()

        subparsers_action = None
        for action in parser._actions:
            if action.dest == "command":
                subparsers_action = action
                break

        assert subparsers_action is not None
        commands = set(subparsers_action.choices.keys())
        assert {"init", "setup", "accounts", "map", "sync", "status", "serve"} <= commands

    def test_setup_requires_household(self):
        parser = create_cli()

        with pytest.raises(SystemExit):
            parser.parse_args(["setup"])

    def test_sync_options(self):
        parser = create_cli()

        args = parser.parse_args(["sync"])
        assert args.household is None
        assert args.date_from is None

        args = parser.parse_args(["sync", "--household", "hh-1", "--date-from", "2024-03-01"])
        assert args.household == "hh-1"
        assert args.date_from == "2024-03-01"

    def test_map_remote_account_is_int(self):
        args = create_cli().parse_args(["map", "--household", "hh-1", "--account", "acc", "--remote-account", "42"])

        assert args.remote_account == 42

    def test_serve_defaults(self):
        args = create_cli().parse_args(["serve"])

        assert args.host == "127.0.0.1"
        assert args.port == 8080


class TestCommands:
    """Commands that need no network."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1

    def test_init_writes_config_once(self, config_path, capsys):
        assert main(["-c", str(config_path), "init"]) == 0
        assert config_path.exists()

        assert main(["-c", str(config_path), "init"]) == 1
        assert "already exists" in capsys.readouterr().out

    def test_status(self, config_path, household, capsys):
        assert main(["-c", str(config_path), "status"]) == 0

        out = capsys.readouterr().out
        assert "Connections:       1" in out
        assert "Subcategories:     2" in out

    def test_map(self, config_path, store, household, capsys):
        code = main(
            ["-c", str(config_path), "map", "--household", "hh-1", "--account", "acc-main", "--remote-account", "42"]
        )

        assert code == 0
        mappings = store.list_account_mappings(household["connection"].id)
        assert [m.bunq_monetary_account_id for m in mappings] == [42]

    def test_map_twice_fails_cleanly(self, config_path, store, household, capsys):
        args = ["-c", str(config_path), "map", "--household", "hh-1", "--account", "acc-main", "--remote-account", "5"]

        assert main(args) == 0
        assert main(args) == 1

        assert "already mapped" in capsys.readouterr().out
        assert len(store.list_account_mappings(household["connection"].id)) == 1

    def test_map_unknown_household(self, config_path, store, capsys):
        code = main(["-c", str(config_path), "map", "--household", "x", "--account", "a", "--remote-account", "1"])

        assert code == 1
        assert "Run setup first" in capsys.readouterr().out

    def test_map_unknown_account(self, config_path, household, capsys):
        code = main(
            ["-c", str(config_path), "map", "--household", "hh-1", "--account", "nope", "--remote-account", "42"]
        )

        assert code == 1
        assert "Unknown local account" in capsys.readouterr().out

    def test_sync_without_api_key_fails_cleanly(self, config_path, capsys):
        assert main(["-c", str(config_path), "sync"]) == 1
        assert "api_key" in capsys.readouterr().out

    def test_sync_all_with_nothing_configured(self, config_path, monkeypatch, capsys):
        monkeypatch.setenv("BUNQ_API_KEY", "api-key")

        assert main(["-c", str(config_path), "sync"]) == 0
        assert "No connections configured" in capsys.readouterr().out
