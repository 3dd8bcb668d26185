"""Tests for the dbsage command line."""

import json
from unittest.mock import AsyncMock, patch

from dbsage import __version__, cli
from dbsage.version import UpdateInfo


def add_sqlite(invoke, name, path):
    return invoke("add", name, "--url", f"sqlite:///{path}")


class TestAddCommand:
    def test_add_sqlite_url(self, invoke, sqlite_path, config_path):
        result = add_sqlite(invoke, "local", sqlite_path)

        assert result.exit_code == 0, result.output
        assert "Added connection 'local' (sqlite)" in result.output

        document = json.loads(config_path.read_text())
        assert document["current"] == "local"
        assert document["connections"]["local"]["database"] == str(sqlite_path)

    def test_add_with_kind(self, invoke, temp_dir, config_path):
        result = invoke("add", "scratch", "--kind", "sqlite", "--database", str(temp_dir / "scratch.db"))

        assert result.exit_code == 0, result.output
        assert "scratch" in json.loads(config_path.read_text())["connections"]

    def test_add_requires_url_or_kind(self, invoke):
        result = invoke("add", "local")

        assert result.exit_code == 1
        assert "either --url or --kind is required" in result.output

    def test_add_invalid_url(self, invoke):
        result = invoke("add", "local", "--url", "mysql://root@localhost/app")

        assert result.exit_code == 1
        assert "Unsupported URL scheme" in result.output

    def test_add_duplicate(self, invoke, sqlite_path):
        add_sqlite(invoke, "local", sqlite_path)

        result = add_sqlite(invoke, "local", sqlite_path)

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_add_unreachable(self, invoke, temp_dir, config_path):
        missing = temp_dir / "no-such-dir" / "app.db"

        result = invoke("add", "broken", "--kind", "sqlite", "--database", str(missing))

        assert result.exit_code == 1
        assert "Failed to open SQLite database" in result.output
        assert not config_path.exists()


class TestConnectionCommands:
    def test_list_empty(self, invoke):
        result = invoke("list")

        assert result.exit_code == 0
        assert "No connections configured" in result.output

    def test_list(self, invoke, sqlite_path, temp_dir):
        add_sqlite(invoke, "local", sqlite_path)
        add_sqlite(invoke, "other", temp_dir / "other.db")

        result = invoke("list")

        assert result.exit_code == 0
        assert "local" in result.output
        assert "other" in result.output
        assert "disconnected" in result.output

    def test_switch(self, invoke, sqlite_path, temp_dir, config_path):
        add_sqlite(invoke, "local", sqlite_path)
        add_sqlite(invoke, "other", temp_dir / "other.db")

        result = invoke("switch", "other")

        assert result.exit_code == 0, result.output
        assert "Switched to 'other'" in result.output
        assert json.loads(config_path.read_text())["current"] == "other"

    def test_switch_unknown(self, invoke, sqlite_path):
        add_sqlite(invoke, "local", sqlite_path)

        result = invoke("switch", "ghost")

        assert result.exit_code == 1
        assert "Connection 'ghost' not found" in result.output

    def test_remove_force(self, invoke, sqlite_path, temp_dir, config_path):
        add_sqlite(invoke, "local", sqlite_path)
        add_sqlite(invoke, "other", temp_dir / "other.db")

        result = invoke("remove", "local", "--force")

        assert result.exit_code == 0, result.output
        assert "Removed 'local'" in result.output
        assert "Current connection: other" in result.output
        document = json.loads(config_path.read_text())
        assert list(document["connections"]) == ["other"]
        assert document["current"] == "other"

    def test_remove_declined(self, invoke, sqlite_path, config_path):
        add_sqlite(invoke, "local", sqlite_path)

        result = invoke("remove", "local", input="n\n")

        assert result.exit_code == 0
        assert "local" in json.loads(config_path.read_text())["connections"]

    def test_remove_unknown(self, invoke):
        result = invoke("remove", "ghost", "-f")

        assert result.exit_code == 1

    def test_status(self, invoke, sqlite_path):
        add_sqlite(invoke, "local", sqlite_path)

        result = invoke("status")

        assert result.exit_code == 0, result.output
        assert "local" in result.output
        assert "sqlite_version" in result.output

    def test_status_without_connection(self, invoke):
        result = invoke("status")

        assert result.exit_code == 1
        assert "No current connection" in result.output


class TestInfoCommands:
    def test_tools(self, invoke):
        result = invoke("tools")

        assert result.exit_code == 0
        assert "execute_sql" in result.output
        assert "analyze_table_performance" in result.output

    def test_version(self, invoke):
        result = invoke("version")

        assert result.exit_code == 0
        assert f"dbsage {__version__}" in result.output

    def test_version_check_update(self, invoke):
        info = UpdateInfo(
            current_version=__version__,
            latest_version="v9.0.0",
            has_update=True,
            release_url="https://github.com/murongg/dbsage/releases/tag/v9.0.0",
        )

        with patch.object(cli.ReleaseChecker, "check", new=AsyncMock(return_value=info)):
            result = invoke("version", "--check")

        assert result.exit_code == 0
        assert "v9.0.0 is available" in result.output

    def test_version_check_latest(self, invoke):
        with patch.object(cli.ReleaseChecker, "check", new=AsyncMock(return_value=None)):
            result = invoke("version", "--check")

        assert result.exit_code == 0
        assert "latest version" in result.output

    def test_setup_logging_writes_to_home(self, temp_dir, monkeypatch):
        monkeypatch.setenv("DBSAGE_HOME", str(temp_dir))

        with patch.object(cli, "configure_logging") as configure:
            cli.setup_logging(debug=True)

        kwargs = configure.call_args.kwargs
        assert kwargs["level"] == "DEBUG"
        assert kwargs["console_output"] is False
        assert kwargs["file_path"] == str(temp_dir / "dbsage.log")
