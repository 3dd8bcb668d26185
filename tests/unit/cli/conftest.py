"""CLI fixtures: an isolated dbsage home and a typer runner."""

import pytest
from rich.console import Console
from typer.testing import CliRunner

from dbsage import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(temp_dir, monkeypatch):
    """Connections file inside a throwaway DBSAGE_HOME.

    File logging is disabled and the console is widened so tables do not wrap.
    """
    monkeypatch.setenv("DBSAGE_HOME", str(temp_dir))
    monkeypatch.setattr(cli, "setup_logging", lambda debug=False: None)
    monkeypatch.setattr(cli, "console", Console(width=200))
    return temp_dir / "connections.json"


@pytest.fixture
def invoke(runner, config_path):
    def run(*args, input=None):
        return runner.invoke(cli.app, ["--config", str(config_path), *args], input=input)

    return run
