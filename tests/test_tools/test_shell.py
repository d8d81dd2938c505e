"""Tests for run_shell_command and the process-group arena."""

import asyncio
import importlib
import json
import signal
import threading
from pathlib import Path

import pytest

from chat_cli.tools import shell
from chat_cli.tools.errors import ErrorKind, InvalidArgumentError, NotFoundError
from chat_cli.tools.shell import (
    BoundedBuffer,
    ShellProcessArena,
    ShellProcessHandle,
    describe_run_shell_command,
    group_members,
    is_background_command,
    run_shell_command_executor,
)


@pytest.fixture
def arena() -> ShellProcessArena:
    """Fresh process arena."""
    return ShellProcessArena()


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("sleep 100 &", True),
        ("sleep 100 &   ", True),
        ("make && make test", False),
        ("echo done &&", False),
        ("echo hi", False),
    ],
)
def test_is_background_command(command: str, expected: bool) -> None:
    """Test only a trailing lone ampersand backgrounds a command."""
    assert is_background_command(command) is expected


def test_bounded_buffer_keeps_prefix() -> None:
    """Test the buffer keeps the first bytes and marks itself partial."""
    buffer = BoundedBuffer(4)
    buffer.write(b"abc")
    buffer.write(b"def")

    assert buffer.text() == "abcd"
    assert buffer.total_bytes == 6
    assert buffer.partial is True


@pytest.mark.asyncio
async def test_foreground_command(tmp_path: Path, arena: ShellProcessArena) -> None:
    """Test a foreground command's output and exit code are captured."""
    result = await run_shell_command_executor(
        "echo hello; echo oops >&2; exit 3", project_root=tmp_path, arena=arena
    )
    payload = json.loads(result.llm_content)

    assert result.is_error is False
    assert payload["stdout"] == "hello\n"
    assert payload["stderr"] == "oops\n"
    assert payload["exit_code"] == 3
    assert payload["signal"] is None
    assert result.metadata["exit_code"] == 3
    assert len(arena) == 0


@pytest.mark.asyncio
async def test_relative_directory(tmp_path: Path, arena: ShellProcessArena) -> None:
    """Test the command runs in a directory relative to the project root."""
    (tmp_path / "sub").mkdir()

    result = await run_shell_command_executor(
        "pwd", directory="sub", project_root=tmp_path, arena=arena
    )

    assert json.loads(result.llm_content)["stdout"].strip() == str(tmp_path / "sub")


@pytest.mark.asyncio
async def test_directory_errors(tmp_path: Path, arena: ShellProcessArena) -> None:
    """Test absolute and missing directories are rejected before spawning."""
    with pytest.raises(InvalidArgumentError, match="relative to project root"):
        await run_shell_command_executor(
            "pwd", directory="/tmp", project_root=tmp_path, arena=arena
        )
    with pytest.raises(NotFoundError):
        await run_shell_command_executor(
            "pwd", directory="missing", project_root=tmp_path, arena=arena
        )
    with pytest.raises(InvalidArgumentError, match="cannot be empty"):
        await run_shell_command_executor("  ", project_root=tmp_path, arena=arena)


@pytest.mark.asyncio
async def test_output_truncated(tmp_path: Path, arena: ShellProcessArena) -> None:
    """Test output beyond the limit is dropped and flagged."""
    result = await run_shell_command_executor(
        "head -c 100 /dev/zero | tr '\\0' x",
        project_root=tmp_path,
        arena=arena,
        output_limit_bytes=10,
    )
    payload = json.loads(result.llm_content)

    assert payload["stdout"] == "x" * 10
    assert payload["stdout_partial"] is True
    assert "Stdout (truncated):" in result.display_content


@pytest.mark.asyncio
async def test_timeout_kills_group(tmp_path: Path, arena: ShellProcessArena) -> None:
    """Test a foreground timeout is an error result and the group is gone."""
    result = await run_shell_command_executor(
        "echo started; sleep 30", project_root=tmp_path, arena=arena, timeout_seconds=0.5
    )

    assert result.is_error is True
    assert result.error_kind is ErrorKind.TIMEOUT
    assert "timed out after 0.5s" in result.llm_content
    assert result.metadata["stdout"] == "started\n"
    assert group_members(result.metadata["process_group_id"]) == []
    assert len(arena) == 0


@pytest.mark.asyncio
async def test_background_command(tmp_path: Path, arena: ShellProcessArena) -> None:
    """Test a trailing & returns immediately with the process group tracked."""
    result = await run_shell_command_executor(
        "sleep 100 &", project_root=tmp_path, arena=arena
    )
    payload = json.loads(result.llm_content)
    pgid = payload["process_group_id"]

    try:
        assert result.metadata["background"] is True
        assert payload["stdout"] == ""
        assert payload["child_pids"]
        assert pgid in arena
        assert group_members(pgid)
    finally:
        await arena.terminate_all(grace_seconds=1.0)

    assert len(arena) == 0
    assert group_members(pgid) == []


def test_describe_run_shell_command() -> None:
    """Test the description prefers the caller's summary."""
    assert describe_run_shell_command({"command": "ls -la"}) == "Execute: ls -la"
    assert describe_run_shell_command({"command": "ls", "description": "List files"}) == (
        "List files"
    )


@pytest.mark.parametrize(
    "module",
    ["chat_cli.tools", "chat_cli.orchestrator", "chat_cli.mcp", "chat_cli.ui.cli"],
)
def test_packages_import(module: str) -> None:
    """Test the packages that pull in the shell tool import cleanly."""
    assert importlib.import_module(module)


def test_signal_defaults_to_sigterm() -> None:
    """Test the arena's signal helpers default to SIGTERM."""
    assert ShellProcessArena.send_signal.__defaults__ == (signal.SIGTERM,)
    assert ShellProcessArena.signal_foreground.__defaults__ == (signal.SIGTERM,)


@pytest.mark.asyncio
async def test_prune_reaps_finished_background_group(
    tmp_path: Path, arena: ShellProcessArena
) -> None:
    """Test prune drops background groups whose processes have exited."""
    result = await run_shell_command_executor("sleep 1 &", project_root=tmp_path, arena=arena)
    pgid = result.metadata["process_group_id"]

    try:
        await asyncio.sleep(1.5)
        await arena.prune()
        assert pgid not in arena
    finally:
        await arena.terminate_all(grace_seconds=1.0)


@pytest.mark.asyncio
async def test_group_scan_runs_off_the_event_loop(
    monkeypatch: pytest.MonkeyPatch, arena: ShellProcessArena
) -> None:
    """Test process-table scans run in a worker thread."""
    scan_threads: list[threading.Thread] = []

    def fake_group_members(pgid: int) -> list[int]:
        scan_threads.append(threading.current_thread())
        return []

    monkeypatch.setattr(shell, "group_members", fake_group_members)
    arena.register(
        ShellProcessHandle(
            command="sleep 100 &",
            pid=999_999,
            process_group_id=999_999,
            background=True,
            stdout_buffer=BoundedBuffer(1),
            stderr_buffer=BoundedBuffer(1),
        )
    )

    assert await arena.prune() == [999_999]
    assert scan_threads
    assert all(thread is not threading.main_thread() for thread in scan_threads)
