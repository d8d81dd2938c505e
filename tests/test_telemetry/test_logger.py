"""Tests for structured logging configuration."""

import json
import logging
import pathlib
from collections.abc import Iterator

import pytest
import structlog

from chat_cli.telemetry.logger import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Leave logging configured without a file handler after each test."""
    yield
    structlog.reset_defaults()
    configure_logging(log_to_file=False)


def _last_entry(log_dir: pathlib.Path) -> dict:
    lines = (log_dir / "current.jsonl").read_text(encoding="utf-8").splitlines()
    assert lines
    return json.loads(lines[-1])


class TestLoggerConfiguration:
    """Test logger configuration and setup."""

    def test_get_logger_configures_on_first_call(self) -> None:
        """Test that get_logger configures structlog lazily."""
        structlog.reset_defaults()

        log = get_logger("test.module")

        assert structlog.is_configured()
        assert hasattr(log, "info")

    def test_file_entries_are_json(self, tmp_path: pathlib.Path) -> None:
        """Test events mirrored to current.jsonl carry their fields."""
        log_dir = tmp_path / "logs"
        configure_logging(log_level="DEBUG", log_dir=log_dir, log_to_file=True)

        get_logger("chat_cli.tools.shell").info(
            "shell_process_spawned", pgid=4242, trace_id="trace-123"
        )

        entry = _last_entry(log_dir)
        assert entry["event"] == "shell_process_spawned"
        assert entry["pgid"] == 4242
        assert entry["trace_id"] == "trace-123"
        assert entry["component"] == "shell"
        assert entry["level"] == "info"
        assert "T" in entry["timestamp"]

    def test_file_handler_skips_debug(self, tmp_path: pathlib.Path) -> None:
        """Test only INFO and above reach the log file."""
        log_dir = tmp_path / "logs"
        configure_logging(log_level="DEBUG", log_dir=log_dir, log_to_file=True)
        log = get_logger("chat_cli.orchestrator.executor")

        log.info("kept_event")
        log.debug("dropped_event")

        assert _last_entry(log_dir)["event"] == "kept_event"

    def test_foreign_records_are_structured(self, tmp_path: pathlib.Path) -> None:
        """Test plain stdlib records get a component and timestamp too."""
        log_dir = tmp_path / "logs"
        configure_logging(log_dir=log_dir, log_to_file=True)

        logging.getLogger("mcp.client.stdio").warning("child exited")

        entry = _last_entry(log_dir)
        assert entry["event"] == "child exited"
        assert entry["component"] == "stdio"
        assert "timestamp" in entry

    def test_no_file_when_disabled(self, tmp_path: pathlib.Path) -> None:
        """Test log_to_file=False creates no log directory."""
        log_dir = tmp_path / "logs"
        configure_logging(log_dir=log_dir, log_to_file=False)

        get_logger("test").info("event")

        assert not log_dir.exists()

    def test_console_handler_writes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test console output goes to stderr, keeping stdout for the transcript."""
        configure_logging(log_level="INFO", log_format="json", log_to_file=False)

        get_logger("test.console").warning("console_event", answer=42)

        captured = capsys.readouterr()
        assert "console_event" not in captured.out
        assert json.loads(captured.err.strip().splitlines()[-1])["answer"] == 42
