"""Type conversions between MCP and the tool layer."""

import json
from typing import Any

from mcp import types as mcp_types

from chat_cli.telemetry import get_logger
from chat_cli.tools.errors import ErrorKind
from chat_cli.tools.schema import from_json_schema
from chat_cli.tools.types import RiskClass, SchemaType, ToolDefinition, ToolResult

log = get_logger(__name__)

NAMESPACE_SEPARATOR = ":"


def qualified_name(server_name: str, tool_name: str) -> str:
    """``server:tool`` name a remote tool is registered under."""
    return f"{server_name}{NAMESPACE_SEPARATOR}{tool_name}"


def mcp_tool_to_definition(server_name: str, tool: mcp_types.Tool) -> ToolDefinition:
    """Convert an MCP tool to a namespaced ToolDefinition.

    Remote tools always require confirmation; the risk class is only
    informational and comes from the server's annotations or the tool name.
    """
    parameters = from_json_schema(tool.inputSchema)
    if parameters.type is None:
        parameters = parameters.model_copy(update={"type": SchemaType.OBJECT})

    return ToolDefinition(
        name=qualified_name(server_name, tool.name),
        description=tool.description or "",
        parameters=parameters,
        risk_class=_infer_risk_class(tool),
        requires_confirmation=True,
        source=server_name,
    )


def _infer_risk_class(tool: mcp_types.Tool) -> RiskClass:
    """Infer risk class from MCP annotations, falling back to name keywords."""
    annotations = tool.annotations
    if annotations is not None:
        if annotations.destructiveHint:
            return RiskClass.DESTRUCTIVE
        if annotations.readOnlyHint:
            return RiskClass.READ_ONLY

    name_lower = tool.name.lower()
    high_risk = ["write", "delete", "execute", "send", "create", "modify", "update", "remove"]
    if any(keyword in name_lower for keyword in high_risk):
        return RiskClass.DESTRUCTIVE
    low_risk = ["read", "get", "list", "search", "query", "view", "show", "status"]
    if any(keyword in name_lower for keyword in low_risk):
        return RiskClass.READ_ONLY
    return RiskClass.MUTATING


def call_result_to_tool_result(tool_name: str, result: mcp_types.CallToolResult) -> ToolResult:
    """Convert an MCP CallToolResult.

    A result flagged ``isError`` is a tool-level failure reported by the
    server, not a transport failure.
    """
    text = _content_to_text(result.content)
    if result.isError:
        return ToolResult.error(
            tool_name, text or "Remote tool reported an error", ErrorKind.EXECUTION_ERROR
        )

    if result.structuredContent:
        payload = json.dumps(result.structuredContent, ensure_ascii=False)
        return ToolResult.ok(tool_name, payload, text or payload)
    return ToolResult.ok(tool_name, text, text or "(no output)")


def _content_to_text(content: list[Any]) -> str:
    """Flatten MCP content items into text.

    Text items are used verbatim; binary items and resources are summarized.
    """
    parts: list[str] = []
    for item in content:
        if isinstance(item, mcp_types.TextContent):
            parts.append(item.text)
        elif isinstance(item, (mcp_types.ImageContent, mcp_types.AudioContent)):
            parts.append(
                json.dumps({"type": item.type, "mime_type": item.mimeType, "data": item.data})
            )
        elif isinstance(item, mcp_types.EmbeddedResource):
            resource = item.resource
            body = getattr(resource, "text", None)
            parts.append(body if body is not None else f"[resource {resource.uri}]")
        elif isinstance(item, mcp_types.ResourceLink):
            parts.append(f"[resource link {item.uri}]")
        else:
            log.warning("mcp_unknown_content_type", item_type=type(item).__name__)
            parts.append(str(item))
    return "\n".join(parts)
