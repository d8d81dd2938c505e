"""Tool registry for tool discovery and registration.

This module provides the ToolRegistry class that maps tool names to their
definitions and adapters. Built-ins are registered first, then each remote
server's tools in configured order. After startup the registry is only read.
"""

from __future__ import annotations

from typing import Any

from chat_cli.telemetry import TOOL_REGISTERED, get_logger
from chat_cli.tools.errors import DuplicateNameError, UnknownToolError
from chat_cli.tools.types import ToolAdapter, ToolDefinition

log = get_logger(__name__)


class ToolRegistry:
    """Central registry of available tools.

    The registry stores tool definitions along with the adapter that
    executes them, so built-in and remote tools dispatch the same way.
    """

    def __init__(self) -> None:
        """Initialize empty tool registry."""
        self._tools: dict[str, tuple[ToolDefinition, ToolAdapter]] = {}

    def register(self, definition: ToolDefinition, adapter: ToolAdapter) -> None:
        """Register a tool with its definition and adapter.

        Args:
            definition: Tool definition with metadata.
            adapter: Object implementing the ToolAdapter protocol.

        Raises:
            DuplicateNameError: If the tool name is already registered.
        """
        if definition.name in self._tools:
            raise DuplicateNameError(definition.name)

        self._tools[definition.name] = (definition, adapter)
        log.debug(
            TOOL_REGISTERED,
            tool_name=definition.name,
            source=definition.source,
            risk_class=definition.risk_class.value,
        )

    def get(self, name: str) -> tuple[ToolDefinition, ToolAdapter]:
        """Retrieve tool definition and adapter.

        Raises:
            UnknownToolError: If no tool has this name.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def resolve(self, name: str) -> ToolAdapter:
        """Adapter registered under ``name``.

        Raises:
            UnknownToolError: If no tool has this name.
        """
        return self.get(name)[1]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def list(self) -> list[ToolDefinition]:
        """Definitions of tools currently offered, in registration order.

        Tools whose adapter reports itself unavailable (a disabled remote
        server) are left out.
        """
        return [definition for definition, adapter in self._tools.values() if adapter.available]

    def list_all(self) -> list[ToolDefinition]:
        """Every registered definition, including unavailable ones."""
        return [definition for definition, _ in self._tools.values()]

    def list_tool_names(self) -> list[str]:
        """Names of the tools currently offered."""
        return [definition.name for definition in self.list()]

    def get_function_declarations(self) -> list[dict[str, Any]]:
        """Tool declarations in the provider function-calling format."""
        return [definition.to_function_declaration() for definition in self.list()]
