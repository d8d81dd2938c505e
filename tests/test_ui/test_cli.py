"""Tests for the Typer command-line interface."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from chat_cli.config import AppConfig
from chat_cli.ui import cli

runner = CliRunner()


@pytest.fixture(autouse=True)
def patched_settings(monkeypatch: pytest.MonkeyPatch, config: AppConfig) -> AppConfig:
    """Point the CLI at the temporary project configuration."""
    monkeypatch.setattr(cli, "get_settings", lambda: config)
    return config


def test_tools_lists_builtins() -> None:
    """Test the tools command lists the built-in tools."""
    result = runner.invoke(cli.app, ["tools"])

    assert result.exit_code == 0
    assert "Available tools (10)" in result.output


def test_call_read_file(tmp_path: Path) -> None:
    """Test a read-only call runs without confirmation."""
    target = tmp_path / "notes.txt"
    target.write_text("hello from disk\n")

    result = runner.invoke(
        cli.app,
        ["call", "read_file", "--args", json.dumps({"absolute_path": str(target)}), "--raw"],
    )

    assert result.exit_code == 0
    assert "hello from disk" in result.output


def test_call_write_with_yes(tmp_path: Path) -> None:
    """Test --yes approves a mutating call."""
    target = tmp_path / "out.txt"
    args = json.dumps({"file_path": str(target), "content": "written"})

    result = runner.invoke(cli.app, ["call", "write_file", "--args", args, "--yes"])

    assert result.exit_code == 0
    assert target.read_text() == "written"


def test_call_write_declined(tmp_path: Path) -> None:
    """Test answering no at the prompt leaves the file untouched."""
    target = tmp_path / "out.txt"
    args = json.dumps({"file_path": str(target), "content": "written"})

    result = runner.invoke(cli.app, ["call", "write_file", "--args", args], input="n\n")

    assert result.exit_code == 0
    assert not target.exists()


def test_call_unknown_tool_fails() -> None:
    """Test an unknown tool exits with status 1."""
    result = runner.invoke(cli.app, ["call", "nope"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_chat_bad_script(tmp_path: Path) -> None:
    """Test an unreadable script exits with status 2."""
    result = runner.invoke(cli.app, ["chat", "--script", str(tmp_path / "missing.json")])

    assert result.exit_code == 2
