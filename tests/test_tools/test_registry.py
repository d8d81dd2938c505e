"""Tests for ToolRegistry."""

from typing import Any

import pytest

from chat_cli.tools.builtin import BuiltinToolContext, register_builtin_tools
from chat_cli.tools.errors import DuplicateNameError, UnknownToolError
from chat_cli.tools.registry import ToolRegistry
from chat_cli.tools.types import ToolAdapter, ToolDefinition, ToolResult, ValidatedArguments


class FakeAdapter:
    """Minimal ToolAdapter for registry tests."""

    def __init__(self, name: str, available: bool = True) -> None:
        self.name = name
        self.available = available

    async def invoke(self, arguments: ValidatedArguments) -> ToolResult:
        return ToolResult.ok(self.name, "ok")

    def describe_call(self, arguments: dict[str, Any]) -> str:
        return f"Run {self.name}"


def _definition(name: str, source: str = "builtin") -> ToolDefinition:
    return ToolDefinition(name=name, description=f"{name} tool", source=source)


def test_registry_initialization() -> None:
    """Test ToolRegistry initializes empty."""
    registry = ToolRegistry()
    assert len(registry) == 0
    assert registry.list() == []
    assert registry.list_tool_names() == []


def test_register_and_resolve() -> None:
    """Test registering a tool and resolving its adapter."""
    registry = ToolRegistry()
    adapter = FakeAdapter("echo")
    definition = _definition("echo")

    registry.register(definition, adapter)

    assert "echo" in registry
    assert registry.resolve("echo") is adapter
    assert registry.get("echo") == (definition, adapter)
    assert isinstance(adapter, ToolAdapter)


def test_register_duplicate_raises() -> None:
    """Test registering a duplicate name raises DuplicateNameError."""
    registry = ToolRegistry()
    registry.register(_definition("echo"), FakeAdapter("echo"))

    with pytest.raises(DuplicateNameError, match="already registered"):
        registry.register(_definition("echo"), FakeAdapter("echo"))


def test_duplicate_is_a_value_error() -> None:
    """Test DuplicateNameError can be handled as a ValueError."""
    registry = ToolRegistry()
    registry.register(_definition("a"), FakeAdapter("a"))
    with pytest.raises(ValueError):
        registry.register(_definition("a"), FakeAdapter("a"))


def test_resolve_unknown_tool() -> None:
    """Test resolving an unknown name raises UnknownToolError."""
    registry = ToolRegistry()
    with pytest.raises(UnknownToolError, match="Tool 'missing' not found"):
        registry.resolve("missing")
    with pytest.raises(LookupError):
        registry.get("missing")


def test_namespaced_remote_tool_does_not_collide() -> None:
    """Test git:git_status can be registered next to a built-in git_status."""
    registry = ToolRegistry()
    registry.register(_definition("git_status"), FakeAdapter("git_status"))
    registry.register(_definition("git:git_status", source="git"), FakeAdapter("git:git_status"))

    assert registry.list_tool_names() == ["git_status", "git:git_status"]

    with pytest.raises(DuplicateNameError):
        registry.register(
            _definition("git:git_status", source="git"), FakeAdapter("git:git_status")
        )


def test_list_preserves_order_and_hides_unavailable() -> None:
    """Test list() keeps registration order and skips unavailable adapters."""
    registry = ToolRegistry()
    registry.register(_definition("first"), FakeAdapter("first"))
    registry.register(_definition("srv:gone", source="srv"), FakeAdapter("srv:gone", False))
    registry.register(_definition("last"), FakeAdapter("last"))

    assert [d.name for d in registry.list()] == ["first", "last"]
    assert [d.name for d in registry.list_all()] == ["first", "srv:gone", "last"]
    declarations = registry.get_function_declarations()
    assert [d["name"] for d in declarations] == ["first", "last"]
    assert declarations[0]["parameters"]["type"] == "OBJECT"


def test_builtin_registration_order(builtin_context: BuiltinToolContext) -> None:
    """Test every built-in is registered in the documented order."""
    registry = ToolRegistry()
    register_builtin_tools(registry, builtin_context)

    assert registry.list_tool_names() == [
        "list_directory",
        "read_file",
        "search_file_content",
        "glob",
        "replace",
        "write_file",
        "web_fetch",
        "read_many_files",
        "run_shell_command",
        "save_memory",
    ]


def test_builtin_schemas_match_wire_format(builtin_context: BuiltinToolContext) -> None:
    """Test built-in declarations carry the expected field names and required sets."""
    registry = ToolRegistry()
    register_builtin_tools(registry, builtin_context)
    declarations = {d["name"]: d["parameters"] for d in registry.get_function_declarations()}

    assert declarations["read_file"]["required"] == ["absolute_path"]
    assert set(declarations["read_file"]["properties"]) == {"absolute_path", "offset", "limit"}
    assert declarations["replace"]["required"] == ["file_path", "old_string", "new_string"]
    assert declarations["read_many_files"]["properties"]["paths"]["minItems"] == 1
    assert "useDefaultExcludes" in declarations["read_many_files"]["properties"]
    assert declarations["run_shell_command"]["required"] == ["command"]
    assert declarations["web_fetch"]["required"] == ["prompt"]
    assert declarations["save_memory"]["required"] == ["fact"]
    assert declarations["list_directory"]["properties"]["ignore"]["items"]["type"] == "STRING"
