"""Transport channels to remote MCP tool servers.

Two transports share one contract (``connect``, ``list_tools``, ``invoke``):

- ``StdioPipeTransport`` spawns the server as a child process and exchanges
  line-delimited JSON-RPC over its stdin/stdout.
- ``StreamedHTTPTransport`` talks to a streamable-HTTP endpoint.

Request/response correlation, concurrent in-flight requests and per-request
read timeouts are handled by the MCP SDK's ``ClientSession``.
"""

import asyncio
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

import anyio
import httpx
from mcp import ClientSession, StdioServerParameters
from mcp import types as mcp_types
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError

from chat_cli.config import RemoteServerConfig, TransportKind
from chat_cli.mcp.errors import (
    SpawnError,
    TransportClosedError,
    TransportError,
    TransportTimeoutError,
    UnreachableError,
)
from chat_cli.mcp.types import (
    call_result_to_tool_result,
    mcp_tool_to_definition,
    qualified_name,
)
from chat_cli.telemetry import get_logger
from chat_cli.tools.errors import ErrorKind
from chat_cli.tools.types import ToolDefinition, ToolResult

log = get_logger(__name__)

# JSON-RPC error codes the SDK uses for request timeouts and dropped connections.
_REQUEST_TIMEOUT_CODE = httpx.codes.REQUEST_TIMEOUT
_CONNECTION_CLOSED_CODE = mcp_types.CONNECTION_CLOSED

_CLOSED_ERRORS = (anyio.ClosedResourceError, anyio.BrokenResourceError, anyio.EndOfStream)


@dataclass
class ConnectionHandle:
    """An initialized session with one remote server."""

    server: RemoteServerConfig
    session: ClientSession
    exit_stack: AsyncExitStack
    server_name: str | None = None
    closed: bool = False
    in_flight: set[asyncio.Task[Any]] = field(default_factory=set)

    def cancel_in_flight(self) -> int:
        """Cancel outstanding requests without waiting for them to finish."""
        pending = [task for task in self.in_flight if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)


class RemoteToolChannel(Protocol):
    """Transport contract shared by both channel kinds."""

    async def connect(self, server: RemoteServerConfig, timeout: float) -> ConnectionHandle: ...

    async def list_tools(
        self, handle: ConnectionHandle, timeout: float
    ) -> list[ToolDefinition]: ...

    async def invoke(
        self, handle: ConnectionHandle, name: str, arguments: dict[str, Any], timeout: float
    ) -> ToolResult: ...

    async def close(self, handle: ConnectionHandle) -> None: ...


def _first_cause(
    error: BaseException, kinds: tuple[type[BaseException], ...]
) -> BaseException | None:
    """Find an exception of ``kinds`` in ``error``, its group members or its causes."""
    if isinstance(error, kinds):
        return error
    if isinstance(error, BaseExceptionGroup):
        for member in error.exceptions:
            found = _first_cause(member, kinds)
            if found is not None:
                return found
    if error.__cause__ is not None:
        return _first_cause(error.__cause__, kinds)
    return None


class _SessionTransport:
    """Operations common to both transports once a session exists."""

    kind: TransportKind

    async def _open_streams(
        self, server: RemoteServerConfig, stack: AsyncExitStack
    ) -> tuple[Any, Any]:
        raise NotImplementedError

    async def _preflight(self, server: RemoteServerConfig, timeout: float) -> None:
        """Fail fast before the SDK starts its background tasks."""

    async def connect(self, server: RemoteServerConfig, timeout: float) -> ConnectionHandle:
        """Open the channel and run the MCP initialize handshake.

        Raises:
            SpawnError: The pipe server could not be started.
            UnreachableError: The HTTP endpoint refused the connection.
            TransportTimeoutError: The handshake did not finish in time.
            TransportError: Any other failure while connecting.
        """
        log.info("mcp_client_connecting", server=server.name, transport=self.kind.value)
        await self._preflight(server, timeout)

        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await self._open_streams(server, stack)
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            init = await asyncio.wait_for(session.initialize(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._close_stack(stack, server.name)
            raise TransportTimeoutError(
                f"Server '{server.name}' did not complete initialization within {timeout}s"
            ) from None
        except TransportError:
            await self._close_stack(stack, server.name)
            raise
        except Exception as e:
            await self._close_stack(stack, server.name)
            raise self._connect_error(server, e) from e

        server_info = getattr(init, "serverInfo", None)
        handle = ConnectionHandle(
            server=server,
            session=session,
            exit_stack=stack,
            server_name=getattr(server_info, "name", None),
        )
        log.info("mcp_client_connected", server=server.name, server_name=handle.server_name)
        return handle

    def _connect_error(self, server: RemoteServerConfig, error: Exception) -> TransportError:
        return TransportError(f"Failed to connect to server '{server.name}': {error}")

    async def list_tools(self, handle: ConnectionHandle, timeout: float) -> list[ToolDefinition]:
        """Tools the server exposes, namespaced with the server name."""
        if handle.closed:
            raise TransportClosedError(f"Connection to '{handle.server.name}' is closed")
        try:
            result = await asyncio.wait_for(handle.session.list_tools(), timeout=timeout)
        except asyncio.TimeoutError:
            raise TransportTimeoutError(
                f"Listing tools on '{handle.server.name}' timed out after {timeout}s"
            ) from None
        except McpError as e:
            raise TransportError(f"Server '{handle.server.name}' rejected tools/list: {e}") from e
        except _CLOSED_ERRORS as e:
            handle.closed = True
            raise TransportClosedError(f"Connection to '{handle.server.name}' closed") from e

        definitions = [mcp_tool_to_definition(handle.server.name, tool) for tool in result.tools]
        log.debug("mcp_tools_listed", server=handle.server.name, count=len(definitions))
        return definitions

    async def invoke(
        self, handle: ConnectionHandle, name: str, arguments: dict[str, Any], timeout: float
    ) -> ToolResult:
        """Call a remote tool by its unqualified name.

        Never raises for transport problems: timeouts, closed connections and
        cancelled requests come back as error results.
        """
        qualified = qualified_name(handle.server.name, name)
        closed_message = f"Connection to '{handle.server.name}' is closed"
        if handle.closed:
            return ToolResult.error(qualified, closed_message, ErrorKind.TRANSPORT_CLOSED)

        # The SDK enforces the read timeout itself; asyncio.wait_for around
        # call_tool conflicts with its anyio cancel scopes.
        read_timeout = timedelta(seconds=timeout)
        task = asyncio.create_task(
            handle.session.call_tool(name, arguments, read_timeout_seconds=read_timeout)
        )
        handle.in_flight.add(task)
        task.add_done_callback(handle.in_flight.discard)
        try:
            result = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return ToolResult.error(qualified, "Request was cancelled", ErrorKind.CANCELLED)
        except McpError as e:
            code = e.error.code
            if code == _REQUEST_TIMEOUT_CODE:
                message = f"No response from '{handle.server.name}' within {timeout}s"
                return ToolResult.error(qualified, message, ErrorKind.TIMEOUT)
            if code == _CONNECTION_CLOSED_CODE:
                handle.closed = True
                return ToolResult.error(qualified, closed_message, ErrorKind.TRANSPORT_CLOSED)
            return ToolResult.error(qualified, f"Remote error: {e}", ErrorKind.EXECUTION_ERROR)
        except _CLOSED_ERRORS:
            handle.closed = True
            return ToolResult.error(qualified, closed_message, ErrorKind.TRANSPORT_CLOSED)
        return call_result_to_tool_result(qualified, result)

    async def close(self, handle: ConnectionHandle) -> None:
        """Cancel outstanding requests and tear the connection down."""
        handle.cancel_in_flight()
        handle.closed = True
        await self._close_stack(handle.exit_stack, handle.server.name)

    async def _close_stack(self, stack: AsyncExitStack, server_name: str) -> None:
        try:
            await stack.aclose()
        except RuntimeError as e:
            # anyio cancel scope errors during cleanup are expected when
            # the stack is closed from a different task than it was opened in.
            if "cancel scope" not in str(e):
                raise
            log.debug("mcp_client_cleanup_cancel_scope_ignored", server=server_name, error=str(e))
        except Exception as e:
            log.warning("mcp_client_disconnect_error", server=server_name, error=str(e))
        log.info("mcp_client_disconnected", server=server_name)


class StdioPipeTransport(_SessionTransport):
    """Remote server as a child process speaking JSON-RPC over stdin/stdout."""

    kind = TransportKind.STDIO_PIPE

    async def _open_streams(
        self, server: RemoteServerConfig, stack: AsyncExitStack
    ) -> tuple[Any, Any]:
        params = StdioServerParameters(
            command=server.endpoint,
            args=list(server.args),
            env=None,  # Use current environment
        )
        try:
            return await stack.enter_async_context(stdio_client(params))
        except Exception as e:
            cause = _first_cause(e, (OSError,))
            if cause is not None:
                raise SpawnError(
                    f"Cannot start '{server.endpoint}' for server '{server.name}': {cause}"
                ) from e
            raise

    def _connect_error(self, server: RemoteServerConfig, error: Exception) -> TransportError:
        if _first_cause(error, _CLOSED_ERRORS) is not None or isinstance(error, McpError):
            return TransportClosedError(f"Server '{server.name}' exited during initialization")
        return super()._connect_error(server, error)


class StreamedHTTPTransport(_SessionTransport):
    """Remote server behind a streamable-HTTP endpoint."""

    kind = TransportKind.STREAMED_HTTP

    async def _preflight(self, server: RemoteServerConfig, timeout: float) -> None:
        # The SDK reports connection failures from a background task, so a
        # refused connection would otherwise only show up as a handshake timeout.
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                async with client.stream(
                    "GET", server.endpoint, headers={"Accept": "text/event-stream"}
                ):
                    pass
        except httpx.TimeoutException as e:
            raise UnreachableError(f"Timed out connecting to '{server.endpoint}'") from e
        except httpx.TransportError as e:
            raise UnreachableError(f"Cannot reach '{server.endpoint}': {e!r}") from e

    async def _open_streams(
        self, server: RemoteServerConfig, stack: AsyncExitStack
    ) -> tuple[Any, Any]:
        read_stream, write_stream, _ = await stack.enter_async_context(
            streamablehttp_client(server.endpoint)
        )
        return read_stream, write_stream

    def _connect_error(self, server: RemoteServerConfig, error: Exception) -> TransportError:
        cause = _first_cause(error, (httpx.TransportError,))
        if cause is not None:
            return UnreachableError(f"Cannot reach '{server.endpoint}': {cause!r}")
        return super()._connect_error(server, error)


def default_transports() -> dict[TransportKind, RemoteToolChannel]:
    """One transport instance per channel kind."""
    return {
        TransportKind.STDIO_PIPE: StdioPipeTransport(),
        TransportKind.STREAMED_HTTP: StreamedHTTPTransport(),
    }
