"""Shell command execution with process-group tracking.

Every command runs as ``bash -c <command>`` in a new session, so its process
group id equals the shell's pid and a signal sent to the negated group id
reaches every descendant. Foreground commands are awaited with bounded output
capture; commands ending in ``&`` return as soon as the shell exits, leaving
their process group registered in the ``ShellProcessArena``.
"""

import asyncio
import json
import os
import signal
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import psutil

from chat_cli.telemetry import (
    SHELL_PROCESS_REAPED,
    SHELL_PROCESS_SIGNALLED,
    SHELL_PROCESS_SPAWNED,
    get_logger,
)
from chat_cli.tools.errors import (
    ErrorKind,
    InvalidArgumentError,
    NotDirectoryError,
    NotFoundError,
)
from chat_cli.tools.schema import object_schema, string
from chat_cli.tools.types import RiskClass, ToolDefinition, ToolResult

log = get_logger(__name__)

_READ_CHUNK = 64 * 1024
_BACKGROUND_SHELL_GRACE_SECONDS = 5.0
_READER_GRACE_SECONDS = 2.0


class BoundedBuffer:
    """Byte buffer that keeps the first ``limit`` bytes and counts the rest."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.data = bytearray()
        self.total_bytes = 0

    def write(self, chunk: bytes) -> None:
        self.total_bytes += len(chunk)
        room = self.limit - len(self.data)
        if room > 0:
            self.data.extend(chunk[:room])

    @property
    def partial(self) -> bool:
        return self.total_bytes > len(self.data)

    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


@dataclass
class ShellProcessHandle:
    """A spawned command and its process group."""

    command: str
    pid: int
    process_group_id: int
    background: bool
    stdout_buffer: BoundedBuffer
    stderr_buffer: BoundedBuffer
    started_at: float = field(default_factory=time.monotonic)
    child_pids: list[int] = field(default_factory=list)


def group_members(pgid: int) -> list[int]:
    """Live (non-zombie) pids whose process group is ``pgid``."""
    members = []
    for proc in psutil.process_iter(["pid", "status"]):
        if proc.info["status"] == psutil.STATUS_ZOMBIE:
            continue
        try:
            if os.getpgid(proc.info["pid"]) == pgid:
                members.append(proc.info["pid"])
        except (ProcessLookupError, PermissionError):
            continue
    return sorted(members)


async def group_members_async(pgid: int) -> list[int]:
    """``group_members`` in a worker thread; the scan walks every process on the host."""
    return await asyncio.to_thread(group_members, pgid)


async def _live_groups(pgids: list[int]) -> list[int]:
    return [pgid for pgid in pgids if await group_members_async(pgid)]


class ShellProcessArena:
    """Process groups started by run_shell_command, keyed by process group id.

    Handles are registered on spawn and removed once their group has no live
    members (reaped) or after they are killed.
    """

    def __init__(self) -> None:
        self._handles: dict[int, ShellProcessHandle] = {}

    def __contains__(self, pgid: object) -> bool:
        return pgid in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def register(self, handle: ShellProcessHandle) -> None:
        self._handles[handle.process_group_id] = handle
        log.info(
            SHELL_PROCESS_SPAWNED,
            command=handle.command,
            pid=handle.pid,
            pgid=handle.process_group_id,
            background=handle.background,
        )

    def remove(self, pgid: int) -> ShellProcessHandle | None:
        handle = self._handles.pop(pgid, None)
        if handle is not None:
            log.debug(SHELL_PROCESS_REAPED, pgid=pgid, background=handle.background)
        return handle

    def get(self, pgid: int) -> ShellProcessHandle | None:
        return self._handles.get(pgid)

    def handles(self, background: bool | None = None) -> list[ShellProcessHandle]:
        return [
            handle
            for handle in self._handles.values()
            if background is None or handle.background == background
        ]

    def send_signal(self, pgid: int, sig: int = signal.SIGTERM) -> bool:
        """Send ``sig`` to the negated process group id.

        Returns:
            False if the group no longer exists.
        """
        try:
            os.kill(-pgid, sig)
        except ProcessLookupError:
            return False
        except PermissionError:
            log.warning("shell_signal_permission_denied", pgid=pgid, signal=int(sig))
            return False
        log.info(SHELL_PROCESS_SIGNALLED, pgid=pgid, signal=int(sig))
        return True

    def signal_foreground(self, sig: int = signal.SIGTERM) -> list[int]:
        """Signal every running foreground command; used by abort."""
        return [
            handle.process_group_id
            for handle in self.handles(background=False)
            if self.send_signal(handle.process_group_id, sig)
        ]

    async def prune(self) -> list[int]:
        """Drop background handles whose process group has exited."""
        reaped = []
        for handle in self.handles(background=True):
            if not await group_members_async(handle.process_group_id):
                reaped.append(handle.process_group_id)
        for pgid in reaped:
            self.remove(pgid)
        return reaped

    async def terminate_all(self, grace_seconds: float = 2.0) -> None:
        """SIGTERM every tracked group, then SIGKILL whatever survives the grace period."""
        pgids = [handle.process_group_id for handle in self.handles()]
        for pgid in pgids:
            self.send_signal(pgid, signal.SIGTERM)
        deadline = time.monotonic() + grace_seconds
        survivors = await _live_groups(pgids)
        while survivors and time.monotonic() < deadline:
            await asyncio.sleep(0.1)
            survivors = await _live_groups(survivors)
        for pgid in pgids:
            if pgid in survivors:
                self.send_signal(pgid, signal.SIGKILL)
            self.remove(pgid)


def is_background_command(command: str) -> bool:
    """A command is backgrounded when it ends with a lone ``&``."""
    stripped = command.rstrip()
    return stripped.endswith("&") and not stripped.endswith("&&")


def _resolve_directory(directory: str | None, project_root: Path) -> Path:
    if not directory:
        return project_root
    if Path(directory).is_absolute():
        raise InvalidArgumentError(
            f"Directory must be relative to project root, but was absolute: {directory}"
        )
    target = project_root / directory
    if not target.exists():
        raise NotFoundError(f"Directory does not exist: {directory}")
    if not target.is_dir():
        raise NotDirectoryError(f"Path is not a directory: {directory}")
    return target


async def _drain(stream: asyncio.StreamReader | None, buffer: BoundedBuffer) -> None:
    if stream is None:
        return
    while chunk := await stream.read(_READ_CHUNK):
        buffer.write(chunk)


async def run_shell_command_executor(
    command: str,
    description: str | None = None,
    directory: str | None = None,
    *,
    project_root: Path,
    arena: ShellProcessArena,
    timeout_seconds: float = 600,
    output_limit_bytes: int = 1024 * 1024,
) -> ToolResult:
    """Run ``bash -c command`` in its own process group.

    Args:
        command: Exact bash command.
        description: Optional user-facing summary (not executed).
        directory: Working directory relative to ``project_root``.
        project_root: Root for relative directories.
        arena: Registry of live process groups.
        timeout_seconds: Foreground time budget; the group is killed on expiry.
        output_limit_bytes: Bytes kept per stream.

    Returns:
        ToolResult with exit code, signal, duration and captured output. A
        non-zero exit is not an error result; a timeout is.
    """
    if not command.strip():
        raise InvalidArgumentError("Command cannot be empty")
    cwd = _resolve_directory(directory, project_root)
    background = is_background_command(command)
    await arena.prune()

    started = time.monotonic()
    stream = asyncio.subprocess.DEVNULL if background else asyncio.subprocess.PIPE
    process = await asyncio.create_subprocess_exec(
        "bash",
        "-c",
        command,
        cwd=str(cwd),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=stream,
        stderr=stream,
        start_new_session=True,
    )
    # start_new_session makes the shell a session and group leader.
    pgid = process.pid
    handle = ShellProcessHandle(
        command=command,
        pid=process.pid,
        process_group_id=pgid,
        background=background,
        stdout_buffer=BoundedBuffer(output_limit_bytes),
        stderr_buffer=BoundedBuffer(output_limit_bytes),
    )
    arena.register(handle)

    if background:
        return await _finish_background(process, handle, arena, cwd, started)

    readers = [
        asyncio.create_task(_drain(process.stdout, handle.stdout_buffer)),
        asyncio.create_task(_drain(process.stderr, handle.stderr_buffer)),
    ]
    timed_out = False
    try:
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            timed_out = True
            arena.send_signal(pgid, signal.SIGKILL)
            await process.wait()
        # A grandchild may keep the pipes open; don't wait on it forever.
        await asyncio.wait(readers, timeout=_READER_GRACE_SECONDS)
    except asyncio.CancelledError:
        arena.send_signal(pgid, signal.SIGKILL)
        raise
    finally:
        for reader in readers:
            reader.cancel()
        arena.remove(pgid)

    duration = time.monotonic() - started
    returncode = process.returncode
    exit_code = returncode if returncode is not None and returncode >= 0 else None
    signal_number = -returncode if returncode is not None and returncode < 0 else None

    payload: dict[str, Any] = {
        "command": command,
        "directory": str(cwd),
        "exit_code": exit_code,
        "signal": signal_number,
        "duration_seconds": round(duration, 3),
        "stdout": handle.stdout_buffer.text(),
        "stderr": handle.stderr_buffer.text(),
        "stdout_partial": handle.stdout_buffer.partial,
        "stderr_partial": handle.stderr_buffer.partial,
        "process_group_id": pgid,
        "background": False,
    }
    if timed_out:
        result = ToolResult.error(
            "run_shell_command",
            f"Command timed out after {timeout_seconds}s and its process group was killed",
            kind=ErrorKind.TIMEOUT,
            **payload,
        )
        output = json.dumps(payload, ensure_ascii=False)
        return result.model_copy(update={"llm_content": f"{result.llm_content}\n{output}"})
    return ToolResult.ok(
        "run_shell_command",
        payload,
        _display(payload),
        process_group_id=pgid,
        exit_code=exit_code,
    )


async def _finish_background(
    process: asyncio.subprocess.Process,
    handle: ShellProcessHandle,
    arena: ShellProcessArena,
    cwd: Path,
    started: float,
) -> ToolResult:
    pgid = handle.process_group_id
    try:
        await asyncio.wait_for(process.wait(), timeout=_BACKGROUND_SHELL_GRACE_SECONDS)
    except asyncio.TimeoutError:
        # The shell itself is still running; its own pid stays in the group.
        log.debug("background_shell_still_running", pgid=pgid)
    members = await group_members_async(pgid)
    handle.child_pids = [pid for pid in members if pid != process.pid]
    if not handle.child_pids and process.returncode is not None:
        arena.remove(pgid)

    payload = {
        "command": handle.command,
        "directory": str(cwd),
        "background": True,
        "process_group_id": pgid,
        "child_pids": handle.child_pids,
        "exit_code": process.returncode,
        "duration_seconds": round(time.monotonic() - started, 3),
        "stdout": "",
        "stderr": "",
    }
    display = (
        f"Command: {handle.command}\n"
        f"Started in background (process group {pgid}, children {handle.child_pids})"
    )
    return ToolResult.ok(
        "run_shell_command", payload, display, process_group_id=pgid, background=True
    )


def _display(payload: dict[str, Any]) -> str:
    lines = [
        f"Command: {payload['command']}",
        f"Directory: {payload['directory']}",
        f"Exit code: {payload['exit_code']}",
        f"Duration: {payload['duration_seconds']:.2f}s",
    ]
    if payload["signal"] is not None:
        lines.append(f"Signal: {payload['signal']}")
    for stream in ("stdout", "stderr"):
        if payload[stream]:
            suffix = " (truncated)" if payload[f"{stream}_partial"] else ""
            lines.extend(["", f"{stream.capitalize()}{suffix}:", payload[stream].rstrip("\n")])
    return "\n".join(lines)


def describe_run_shell_command(arguments: dict[str, Any]) -> str:
    if arguments.get("description"):
        return str(arguments["description"])
    return f"Execute: {arguments.get('command', '')}"


run_shell_command_tool = ToolDefinition(
    name="run_shell_command",
    description=(
        "This tool executes a given shell command as `bash -c <command>`. Command can start "
        "background processes using `&`. Command is executed as a subprocess that leads its "
        "own process group."
    ),
    parameters=object_schema(
        {
            "command": string("Exact bash command to execute as `bash -c <command>`"),
            "description": string(
                "Brief description of the command for the user. Be specific and concise. "
                "Ideally a single sentence. Can be up to 3 sentences for clarity. No line breaks."
            ),
            "directory": string(
                "(OPTIONAL) Directory to run the command in, if not the project root directory. "
                "Must be relative to the project root directory and must already exist."
            ),
        },
        required=["command"],
    ),
    risk_class=RiskClass.DESTRUCTIVE,
    requires_confirmation=True,
)
