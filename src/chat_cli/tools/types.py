"""Type definitions for the tool layer.

This module defines the Pydantic models for tool definitions, parameter
schemas and results, plus the adapter protocol every executable tool
implements.
"""

import json
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from chat_cli.tools.errors import ErrorKind, ToolError


class SchemaType(str, Enum):
    """Parameter types understood by model providers (upper-case on the wire)."""

    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    ARRAY = "ARRAY"
    OBJECT = "OBJECT"


class ParameterSchema(BaseModel):
    """One node of a tool's parameter tree.

    ``type`` is None for untyped nodes, which remote servers occasionally
    declare; such nodes accept any value.
    """

    model_config = ConfigDict(frozen=True)

    type: SchemaType | None = Field(None, description="Declared value type")
    description: str | None = Field(None, description="Human/LLM description")
    properties: dict[str, "ParameterSchema"] = Field(
        default_factory=dict, description="Child fields for OBJECT nodes"
    )
    required: tuple[str, ...] = Field(default=(), description="Required child field names")
    items: "ParameterSchema | None" = Field(None, description="Element schema for ARRAY nodes")
    default: Any = Field(None, description="Value used when the field is omitted")
    enum: tuple[Any, ...] | None = Field(None, description="Allowed values")
    minimum: float | None = Field(None, description="Lower bound for NUMBER")
    min_items: int | None = Field(None, description="Minimum length for ARRAY")
    min_length: int | None = Field(None, description="Minimum length for STRING")

    def to_declaration(self) -> dict[str, Any]:
        """Render in the provider function-declaration format."""
        out: dict[str, Any] = {}
        if self.type is not None:
            out["type"] = self.type.value
        if self.description:
            out["description"] = self.description
        if self.properties:
            out["properties"] = {
                name: child.to_declaration() for name, child in self.properties.items()
            }
        if self.required:
            out["required"] = list(self.required)
        if self.items is not None:
            out["items"] = self.items.to_declaration()
        if self.default is not None:
            out["default"] = self.default
        if self.enum is not None:
            out["enum"] = list(self.enum)
        if self.minimum is not None:
            out["minimum"] = self.minimum
        if self.min_items is not None:
            out["minItems"] = self.min_items
        if self.min_length is not None:
            out["minLength"] = self.min_length
        return out


class RiskClass(str, Enum):
    """How dangerous running a tool is; drives the confirmation gate."""

    READ_ONLY = "read_only"
    NETWORK = "network"
    MUTATING = "mutating"
    DESTRUCTIVE = "destructive"


class ToolDefinition(BaseModel):
    """Declared shape and governance metadata of one tool.

    Immutable once registered.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique tool name (remote tools are 'server:tool')")
    description: str = Field(..., description="Clear description for the model")
    parameters: ParameterSchema = Field(
        default_factory=lambda: ParameterSchema(type=SchemaType.OBJECT),
        description="Root OBJECT schema of the arguments",
    )

    risk_class: RiskClass = Field(RiskClass.READ_ONLY, description="Risk classification")
    requires_confirmation: bool = Field(
        False, description="Whether the user must approve each call"
    )
    timeout_seconds: float | None = Field(
        None, gt=0, description="Per-call timeout; None uses the configured default"
    )
    source: str = Field("builtin", description="'builtin' or the remote server name")

    def to_function_declaration(self) -> dict[str, Any]:
        """Tool declaration advertised to the model."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.to_declaration(),
        }


class ValidatedArguments(BaseModel):
    """Arguments that passed schema validation, with defaults filled in."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    values: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Result from tool execution."""

    model_config = ConfigDict(frozen=True)

    tool_name: str = Field(..., description="Name of the executed tool")
    llm_content: str = Field(..., description="Text fed back into the conversation")
    display_content: str = Field(..., description="Text shown in the user transcript")
    is_error: bool = Field(False, description="Whether the call failed")
    error_kind: ErrorKind | None = Field(None, description="Failure category if is_error")
    latency_ms: float = Field(0.0, ge=0, description="Execution latency in milliseconds")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Extra context (e.g., files touched, pgid)"
    )

    @classmethod
    def ok(
        cls,
        tool_name: str,
        payload: str | dict[str, Any] | list[Any],
        display: str | None = None,
        **metadata: Any,
    ) -> "ToolResult":
        """Successful result; structured payloads are serialized as JSON for the model."""
        content = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        return cls(
            tool_name=tool_name,
            llm_content=content,
            display_content=display if display is not None else content,
            metadata=metadata,
        )

    @classmethod
    def from_error(cls, tool_name: str, error: ToolError, **metadata: Any) -> "ToolResult":
        """Error result carrying the error's kind."""
        return cls.error(tool_name, error.message, error.kind, **metadata)

    @classmethod
    def error(
        cls, tool_name: str, message: str, kind: ErrorKind, **metadata: Any
    ) -> "ToolResult":
        """Error result from a plain message."""
        return cls(
            tool_name=tool_name,
            llm_content=f"Error: {message}",
            display_content=f"Error: {message}",
            is_error=True,
            error_kind=kind,
            metadata=metadata,
        )

    def with_latency(self, latency_ms: float) -> "ToolResult":
        """Copy of this result with the measured latency."""
        return self.model_copy(update={"latency_ms": latency_ms})


@runtime_checkable
class ToolAdapter(Protocol):
    """Executable backing of one registered tool.

    Built-in tools and bridged remote tools both implement this, so the
    registry can dispatch through one lookup table.
    """

    @property
    def available(self) -> bool:
        """False once the tool should no longer be offered (e.g. server disabled)."""
        ...

    async def invoke(self, arguments: ValidatedArguments) -> ToolResult:
        """Run the tool. Must convert every failure into an error ToolResult."""
        ...

    def describe_call(self, arguments: dict[str, Any]) -> str:
        """Short human description of a pending call, for confirmation prompts."""
        ...
