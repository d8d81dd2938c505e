"""Tool layer: definitions, validation, registry and the built-in tools."""

from chat_cli.tools.adapters import BuiltinAdapter
from chat_cli.tools.builtin import (
    BuiltinToolContext,
    build_builtin_adapters,
    register_builtin_tools,
)
from chat_cli.tools.errors import (
    AmbiguousMatchError,
    DuplicateNameError,
    ErrorKind,
    ExecutionError,
    FetchError,
    FileTooLargeError,
    InvalidArgumentError,
    IsDirectoryError,
    NoMatchError,
    NotDirectoryError,
    NotFoundError,
    ParentMissingError,
    ToolError,
    ToolValidationError,
    UnknownToolError,
)
from chat_cli.tools.registry import ToolRegistry
from chat_cli.tools.schema import from_json_schema, validate_arguments
from chat_cli.tools.types import (
    ParameterSchema,
    RiskClass,
    SchemaType,
    ToolAdapter,
    ToolDefinition,
    ToolResult,
    ValidatedArguments,
)

__all__ = [
    # Types
    "ParameterSchema",
    "RiskClass",
    "SchemaType",
    "ToolAdapter",
    "ToolDefinition",
    "ToolResult",
    "ValidatedArguments",
    # Registry and validation
    "ToolRegistry",
    "validate_arguments",
    "from_json_schema",
    # Built-ins
    "BuiltinAdapter",
    "BuiltinToolContext",
    "build_builtin_adapters",
    "register_builtin_tools",
    # Errors
    "ErrorKind",
    "ToolError",
    "ToolValidationError",
    "UnknownToolError",
    "DuplicateNameError",
    "ExecutionError",
    "NotFoundError",
    "NotDirectoryError",
    "IsDirectoryError",
    "ParentMissingError",
    "InvalidArgumentError",
    "AmbiguousMatchError",
    "NoMatchError",
    "FetchError",
    "FileTooLargeError",
]
