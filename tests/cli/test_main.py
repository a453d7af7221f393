"""Tests for CLI main entry point."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from nanobot_cli import __version__
from nanobot_cli.main import app, cli_main
from nanobot_cli.storage import MemoryStore


def test_cli_help(runner: CliRunner) -> None:
    """Test that --help lists the command groups."""
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "nanobot CLI" in result.stdout
    for command in ("connect", "tools", "chat", "threads", "config"):
        assert command in result.stdout


def test_cli_version(runner: CliRunner) -> None:
    """Test that --version prints the version."""
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_cli_no_args(runner: CliRunner) -> None:
    """Test that the CLI shows help when no arguments are given."""
    result = runner.invoke(app, [])

    assert result.exit_code in (0, 2)
    assert "Usage:" in result.output


def test_config_option_installs_file(
    runner: CliRunner, tmp_path: Path, cli_store: MemoryStore
) -> None:
    """Test --config loads the given file for the command."""
    path = tmp_path / "custom.yaml"
    path.write_text(yaml.dump({"server": {"url": "https://custom.example.com"}}))

    result = runner.invoke(app, ["--config", str(path), "config", "show", "--json"])

    assert result.exit_code == 0, result.output
    assert "https://custom.example.com" in result.stdout


def test_invalid_config_file_exits(runner: CliRunner, tmp_path: Path) -> None:
    """Test a broken config file stops non-config commands with code 2."""
    path = tmp_path / "broken.yaml"
    path.write_text(yaml.dump({"server": {"timeout": 0}}))

    result = runner.invoke(app, ["--config", str(path), "tools", "list"])

    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_cli_main_keyboard_interrupt() -> None:
    """Test that KeyboardInterrupt exits with code 130."""
    with patch("nanobot_cli.main.app", side_effect=KeyboardInterrupt()):
        with pytest.raises(SystemExit) as exc_info:
            cli_main()

    assert exc_info.value.code == 130


def test_cli_main_generic_exception() -> None:
    """Test that unexpected exceptions exit with code 1."""
    with patch("nanobot_cli.main.app", side_effect=RuntimeError("Test error")):
        with patch.object(sys, "exit") as mock_exit:
            cli_main()

    mock_exit.assert_called_once_with(1)
