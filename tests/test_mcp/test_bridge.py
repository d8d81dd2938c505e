"""Tests for RemoteToolBridge with an in-memory transport."""

from contextlib import AsyncExitStack
from typing import Any
from unittest.mock import MagicMock

import pytest

from chat_cli.config import RemoteServerConfig, TransportKind
from chat_cli.mcp.bridge import RemoteToolAdapter, RemoteToolBridge
from chat_cli.mcp.client import ConnectionHandle
from chat_cli.mcp.errors import UnreachableError
from chat_cli.mcp.types import qualified_name
from chat_cli.tools.errors import DuplicateNameError, ErrorKind
from chat_cli.tools.registry import ToolRegistry
from chat_cli.tools.schema import object_schema, string
from chat_cli.tools.types import ToolDefinition, ToolResult, ValidatedArguments


class FakeChannel:
    """In-memory RemoteToolChannel serving canned tools per server."""

    def __init__(self, tools: dict[str, list[str]], unreachable: set[str] | None = None) -> None:
        self.tools = tools
        self.unreachable = unreachable or set()
        self.results: list[ToolResult] = []
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.closed: list[str] = []

    async def connect(self, server: RemoteServerConfig, timeout: float) -> ConnectionHandle:
        if server.name in self.unreachable:
            raise UnreachableError(f"Cannot reach '{server.endpoint}'")
        return ConnectionHandle(server=server, session=MagicMock(), exit_stack=AsyncExitStack())

    async def list_tools(self, handle: ConnectionHandle, timeout: float) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name=qualified_name(handle.server.name, tool),
                description=f"{tool} on {handle.server.name}",
                parameters=object_schema({"repo_path": string("Repository")}),
                requires_confirmation=True,
                source=handle.server.name,
            )
            for tool in self.tools.get(handle.server.name, [])
        ]

    async def invoke(
        self, handle: ConnectionHandle, name: str, arguments: dict[str, Any], timeout: float
    ) -> ToolResult:
        self.calls.append((handle.server.name, name, arguments))
        if self.results:
            return self.results.pop(0)
        return ToolResult.ok(qualified_name(handle.server.name, name), "ok")

    async def close(self, handle: ConnectionHandle) -> None:
        handle.closed = True
        self.closed.append(handle.server.name)


def _server(name: str) -> RemoteServerConfig:
    return RemoteServerConfig(name=name, transport_kind=TransportKind.STDIO_PIPE, endpoint=name)


def _bridge(channel: FakeChannel, *names: str) -> RemoteToolBridge:
    return RemoteToolBridge(
        [_server(name) for name in names],
        timeout_seconds=5,
        max_consecutive_failures=3,
        transports={TransportKind.STDIO_PIPE: channel},
    )


def _timeout(name: str) -> ToolResult:
    return ToolResult.error(name, "No response", ErrorKind.TIMEOUT)


@pytest.mark.asyncio
async def test_connect_all_registers_namespaced_tools() -> None:
    """Test each server's tools are registered as server:tool."""
    channel = FakeChannel({"git": ["git_status", "git_log"], "docs": ["search"]})
    registry = ToolRegistry()

    connected = await _bridge(channel, "git", "docs").connect_all(registry)

    assert connected == ["git", "docs"]
    assert registry.list_tool_names() == ["git:git_status", "git:git_log", "docs:search"]
    adapter = registry.resolve("git:git_status")
    assert isinstance(adapter, RemoteToolAdapter)
    assert adapter.remote_name == "git_status"


@pytest.mark.asyncio
async def test_unreachable_server_is_skipped() -> None:
    """Test an unreachable server is skipped and the rest still connect."""
    channel = FakeChannel({"git": ["git_status"], "down": ["x"]}, unreachable={"down"})
    registry = ToolRegistry()

    connected = await _bridge(channel, "down", "git").connect_all(registry)

    assert connected == ["git"]
    assert registry.list_tool_names() == ["git:git_status"]


@pytest.mark.asyncio
async def test_remote_tool_next_to_builtin_name() -> None:
    """Test a remote tool sharing a built-in's bare name does not collide."""
    registry = ToolRegistry()
    registry.register(
        ToolDefinition(name="git_status", description="local"), MagicMock(available=True)
    )

    await _bridge(FakeChannel({"git": ["git_status"]}), "git").connect_all(registry)

    assert registry.list_tool_names() == ["git_status", "git:git_status"]


@pytest.mark.asyncio
async def test_duplicate_qualified_name_is_fatal() -> None:
    """Test a colliding qualified name raises and closes every connection."""
    channel = FakeChannel({"git": ["git_status", "git_status"]})
    bridge = _bridge(channel, "git")

    with pytest.raises(DuplicateNameError):
        await bridge.connect_all(ToolRegistry())

    assert channel.closed == ["git"]
    assert bridge.connections == []


@pytest.mark.asyncio
async def test_invoke_forwards_unqualified_name() -> None:
    """Test calls are forwarded with the server-side tool name."""
    channel = FakeChannel({"git": ["git_status"]})
    registry = ToolRegistry()
    await _bridge(channel, "git").connect_all(registry)

    result = await registry.resolve("git:git_status").invoke(
        ValidatedArguments(tool_name="git:git_status", values={"repo_path": "/repo"})
    )

    assert channel.calls == [("git", "git_status", {"repo_path": "/repo"})]
    assert result.llm_content == "ok"


@pytest.mark.asyncio
async def test_server_disabled_after_consecutive_failures() -> None:
    """Test three transport failures in a row disable the server."""
    channel = FakeChannel({"git": ["git_status"], "docs": ["search"]})
    registry = ToolRegistry()
    await _bridge(channel, "git", "docs").connect_all(registry)
    adapter = registry.resolve("git:git_status")
    arguments = ValidatedArguments(tool_name="git:git_status", values={})
    channel.results = [_timeout("git:git_status") for _ in range(3)]

    for _ in range(3):
        result = await adapter.invoke(arguments)
        assert result.error_kind is ErrorKind.TIMEOUT

    assert adapter.available is False
    assert registry.list_tool_names() == ["docs:search"]

    result = await adapter.invoke(arguments)
    assert result.error_kind is ErrorKind.SERVER_DISABLED
    assert len(channel.calls) == 3


@pytest.mark.asyncio
async def test_tool_level_error_resets_failure_count() -> None:
    """Test an answered call, even a failing one, resets the failure counter."""
    channel = FakeChannel({"git": ["git_status"]})
    registry = ToolRegistry()
    await _bridge(channel, "git").connect_all(registry)
    adapter = registry.resolve("git:git_status")
    arguments = ValidatedArguments(tool_name="git:git_status", values={})
    channel.results = [
        _timeout("git:git_status"),
        _timeout("git:git_status"),
        ToolResult.error("git:git_status", "not a repository", ErrorKind.EXECUTION_ERROR),
        _timeout("git:git_status"),
        _timeout("git:git_status"),
    ]

    for _ in range(5):
        await adapter.invoke(arguments)

    assert adapter.available is True
    assert adapter.connection.consecutive_failures == 2


def test_describe_call_truncates() -> None:
    """Test the confirmation description names the server and truncates arguments."""
    definition = ToolDefinition(name="git:git_log", description="log", source="git")
    connection = MagicMock()
    connection.name = "git"
    adapter = RemoteToolAdapter(definition, "git_log", connection, timeout_seconds=5)

    assert adapter.describe_call({"max_count": 3}) == (
        "Call 'git_log' on remote server 'git' (max_count=3)"
    )
    long_description = adapter.describe_call({"message": "x" * 500})
    assert long_description.endswith("...)")


@pytest.mark.asyncio
async def test_aclose_closes_in_reverse_order() -> None:
    """Test connections are closed most recent first."""
    channel = FakeChannel({"git": ["a"], "docs": ["b"]})
    bridge = _bridge(channel, "git", "docs")
    await bridge.connect_all(ToolRegistry())

    await bridge.aclose()

    assert channel.closed == ["docs", "git"]
    assert bridge.connections == []
