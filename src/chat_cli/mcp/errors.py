"""Transport-level failures talking to remote tool servers."""

from chat_cli.tools.errors import ErrorKind, ToolError


class TransportError(ToolError):
    """A remote server could not be reached or stopped responding."""

    kind = ErrorKind.EXECUTION_ERROR


class SpawnError(TransportError):
    """The pipe transport's server executable could not be started."""

    kind = ErrorKind.UNREACHABLE


class UnreachableError(TransportError):
    """The streamed-HTTP endpoint refused or failed the connection."""

    kind = ErrorKind.UNREACHABLE


class TransportClosedError(TransportError):
    """The connection (or the child process behind it) is gone."""

    kind = ErrorKind.TRANSPORT_CLOSED


class TransportTimeoutError(TransportError):
    """A request received no response within its timeout."""

    kind = ErrorKind.TIMEOUT


# Result kinds that count against a server's consecutive-failure budget.
TRANSPORT_FAILURE_KINDS = frozenset(
    {ErrorKind.TIMEOUT, ErrorKind.TRANSPORT_CLOSED, ErrorKind.UNREACHABLE}
)
