"""Shared fixtures for the chat-cli test suite."""

import os

# Keep test runs from writing telemetry/logs/current.jsonl.
os.environ.setdefault("AGENT_LOG_TO_FILE", "false")

from pathlib import Path  # noqa: E402

import pytest  # noqa: E402

from chat_cli.config import AppConfig  # noqa: E402
from chat_cli.tools.builtin import BuiltinToolContext  # noqa: E402
from chat_cli.tools.registry import ToolRegistry  # noqa: E402


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    """AppConfig rooted in a temporary project directory."""
    return AppConfig(
        project_root=tmp_path,
        memory_file=tmp_path / "memory" / "facts.txt",
        log_dir=tmp_path / "logs",
        log_to_file=False,
        remote_servers="",
        shell_timeout_seconds=30,
    )


@pytest.fixture
def builtin_context(config: AppConfig) -> BuiltinToolContext:
    """Runtime context for built-in tools."""
    return BuiltinToolContext(config)


@pytest.fixture
def registry() -> ToolRegistry:
    """Empty tool registry."""
    return ToolRegistry()
