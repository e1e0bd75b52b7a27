"""Tests for the command-line collaborator."""

import re

import pytest
from typer.testing import CliRunner

import main
from trackr import config as config_module

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a temp data dir and write a default config there."""
    config_path = tmp_path / "config.ini"
    monkeypatch.setattr(config_module, "DATA_DIR", tmp_path)
    monkeypatch.setattr(main, "DEFAULT_CONFIG_PATH", config_path)
    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)
    result = runner.invoke(main.app, ["init"])
    assert result.exit_code == 0, result.output
    return tmp_path


def _added_id(output: str) -> str:
    match = re.search(r"\((comic_[0-9a-f]+)\)", output)
    assert match, output
    return match.group(1)


def test_commands_require_config(tmp_path, monkeypatch):
    monkeypatch.setattr(main, "DEFAULT_CONFIG_PATH", tmp_path / "config.ini")
    result = runner.invoke(main.app, ["list"])
    assert result.exit_code == 1
    assert "config.ini not found" in result.output


def test_init_creates_database(cli_env):
    assert (cli_env / "config.ini").exists()
    assert (cli_env / "trackr.db").exists()


def test_add_list_and_show(cli_env):
    result = runner.invoke(main.app, ["add", "--title", "Saga", "--issue", "10", "--publisher", "Image"])
    assert result.exit_code == 0, result.output
    runner.invoke(main.app, ["add", "--title", "Saga", "--issue", "2"])
    comic_id = _added_id(result.output)

    result = runner.invoke(main.app, ["layout", "list"])
    assert result.exit_code == 0
    result = runner.invoke(main.app, ["list"])
    assert result.exit_code == 0
    lines = [line for line in result.output.splitlines() if "Saga" in line]
    assert "Saga #2" in lines[0]
    assert "Saga #10" in lines[1]

    result = runner.invoke(main.app, ["show", comic_id])
    assert result.exit_code == 0
    assert "Publisher: Image" in result.output


def test_add_removes_wanted_issue(cli_env):
    result = runner.invoke(main.app, ["want", "Saga", "3"])
    assert "Added Saga #3 to wishlist" in result.output

    result = runner.invoke(main.app, ["add", "--title", "saga", "--issue", "3"])
    assert result.exit_code == 0
    assert "removed it from your wishlist" in result.output

    result = runner.invoke(main.app, ["want", "Saga", "3"])
    assert "You already own Saga #3" in result.output


def test_read_toggle_and_delete(cli_env):
    result = runner.invoke(main.app, ["add", "--title", "Batman", "--issue", "404"])
    comic_id = _added_id(result.output)

    result = runner.invoke(main.app, ["read", comic_id])
    assert "Marked as Read" in result.output

    result = runner.invoke(main.app, ["delete", comic_id, "--yes"])
    assert result.exit_code == 0
    assert "Deleted Batman #404" in result.output

    result = runner.invoke(main.app, ["delete", comic_id, "--yes"])
    assert result.exit_code == 1
    assert "Comic not found" in result.output


def test_add_validation_error(cli_env):
    result = runner.invoke(main.app, ["add", "--title", "Saga", "--issue", "1", "--cost", "-4"])
    assert result.exit_code == 1
    assert "non-negative" in result.output


def test_series_uses_reference_list(cli_env):
    runner.invoke(main.app, ["add", "--title", "Saga", "--issue", "1"])
    runner.invoke(main.app, ["want", "Saga", "50"])

    result = runner.invoke(main.app, ["series", "saga"])
    assert result.exit_code == 0
    assert re.search(r"#1\s+Owned", result.output)
    assert re.search(r"#50\s+Wanted", result.output)
    assert re.search(r"#2\s+-", result.output)


def test_series_fallback_without_reference(cli_env):
    runner.invoke(main.app, ["want", "Monstress", "2"])
    result = runner.invoke(main.app, ["series", "Monstress"])
    assert re.search(r"#2\s+Wanted", result.output)

    result = runner.invoke(main.app, ["series", "Nothing Here"])
    assert "No issues found" in result.output


def test_stats(cli_env):
    runner.invoke(main.app, ["add", "--title", "Saga", "--issue", "1", "--cost", "2.99"])
    result = runner.invoke(main.app, ["stats"])
    assert result.exit_code == 0
    assert "Total comics: 1" in result.output
    assert "Total cost: 2.99" in result.output
