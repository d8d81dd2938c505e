"""Error taxonomy for tool validation and execution.

Every error a tool can produce maps onto an ``ErrorKind``. Adapters never let
these escape to the orchestrator: they are turned into error ``ToolResult``
objects so the model can see the failure and react to it.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable failure category carried by error results."""

    VALIDATION = "validation"
    UNKNOWN_TOOL = "unknown_tool"
    NOT_FOUND = "not_found"
    NOT_A_DIRECTORY = "not_a_directory"
    IS_A_DIRECTORY = "is_a_directory"
    PARENT_MISSING = "parent_missing"
    INVALID_ARGUMENT = "invalid_argument"
    AMBIGUOUS_MATCH = "ambiguous_match"
    NO_MATCH = "no_match"
    FETCH_ERROR = "fetch_error"
    FILE_TOO_LARGE = "file_too_large"
    EXECUTION_ERROR = "execution_error"
    TIMEOUT = "timeout"
    TRANSPORT_CLOSED = "transport_closed"
    UNREACHABLE = "unreachable"
    SERVER_DISABLED = "server_disabled"
    CANCELLED = "cancelled"


class ToolError(Exception):
    """Base class for errors reported back to the model as tool results."""

    kind: ErrorKind = ErrorKind.EXECUTION_ERROR

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ToolValidationError(ToolError):
    """Arguments do not satisfy the tool's parameter schema."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid argument '{field}': {reason}" if field else reason)


class UnknownToolError(ToolError, LookupError):
    """No tool with the requested name is registered."""

    kind = ErrorKind.UNKNOWN_TOOL

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' not found")


class DuplicateNameError(ValueError):
    """A tool with the same name is already registered.

    Fatal at startup, so it is deliberately not a ``ToolError``.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


class ExecutionError(ToolError):
    """Filesystem, shell or network failure while running a tool."""

    kind = ErrorKind.EXECUTION_ERROR


class NotFoundError(ExecutionError):
    kind = ErrorKind.NOT_FOUND


class NotDirectoryError(ExecutionError):
    kind = ErrorKind.NOT_A_DIRECTORY


class IsDirectoryError(ExecutionError):
    kind = ErrorKind.IS_A_DIRECTORY


class ParentMissingError(ExecutionError):
    kind = ErrorKind.PARENT_MISSING


class InvalidArgumentError(ExecutionError):
    kind = ErrorKind.INVALID_ARGUMENT


class AmbiguousMatchError(ExecutionError):
    kind = ErrorKind.AMBIGUOUS_MATCH


class NoMatchError(ExecutionError):
    kind = ErrorKind.NO_MATCH


class FetchError(ExecutionError):
    kind = ErrorKind.FETCH_ERROR


class FileTooLargeError(ExecutionError):
    kind = ErrorKind.FILE_TOO_LARGE
