"""Bridge between remote MCP tool servers and the tool registry."""

import time
from typing import Any

from chat_cli.config import RemoteServerConfig, TransportKind
from chat_cli.mcp.client import ConnectionHandle, RemoteToolChannel, default_transports
from chat_cli.mcp.errors import TRANSPORT_FAILURE_KINDS, TransportError
from chat_cli.telemetry import (
    REMOTE_SERVER_CLOSED,
    REMOTE_SERVER_CONNECTED,
    REMOTE_SERVER_DISABLED,
    REMOTE_SERVER_SKIPPED,
    REMOTE_TOOL_DISCOVERED,
    get_logger,
)
from chat_cli.tools.errors import DuplicateNameError, ErrorKind
from chat_cli.tools.registry import ToolRegistry
from chat_cli.tools.types import ToolDefinition, ToolResult, ValidatedArguments

log = get_logger(__name__)


class RemoteServerConnection:
    """One connected server plus its consecutive transport-failure count."""

    def __init__(
        self,
        config: RemoteServerConfig,
        transport: RemoteToolChannel,
        handle: ConnectionHandle,
        max_failures: int,
    ) -> None:
        self.config = config
        self.transport = transport
        self.handle = handle
        self.max_failures = max_failures
        self.consecutive_failures = 0
        self.disabled = False

    @property
    def name(self) -> str:
        return self.config.name

    def record(self, result: ToolResult) -> None:
        """Update the failure budget from one call's outcome.

        Only transport failures count; a tool-level error means the server
        answered and resets the counter like a success does.
        """
        if result.is_error and result.error_kind in TRANSPORT_FAILURE_KINDS:
            self.consecutive_failures += 1
            if not self.disabled and self.consecutive_failures >= self.max_failures:
                self.disabled = True
                log.warning(
                    REMOTE_SERVER_DISABLED,
                    server=self.name,
                    consecutive_failures=self.consecutive_failures,
                    last_error=result.error_kind.value if result.error_kind else None,
                )
        else:
            self.consecutive_failures = 0


class RemoteToolAdapter:
    """ToolAdapter that forwards a call to its server over the connection."""

    def __init__(
        self,
        definition: ToolDefinition,
        remote_name: str,
        connection: RemoteServerConnection,
        timeout_seconds: float,
    ) -> None:
        self.definition = definition
        self.remote_name = remote_name
        self.connection = connection
        self.timeout_seconds = timeout_seconds

    @property
    def available(self) -> bool:
        return not self.connection.disabled

    def describe_call(self, arguments: dict[str, Any]) -> str:
        shown = ", ".join(f"{key}={value!r}" for key, value in arguments.items())
        if len(shown) > 200:
            shown = shown[:197] + "..."
        return f"Call '{self.remote_name}' on remote server '{self.connection.name}' ({shown})"

    async def invoke(self, arguments: ValidatedArguments) -> ToolResult:
        name = self.definition.name
        if self.connection.disabled:
            return ToolResult.error(
                name,
                f"Remote server '{self.connection.name}' is disabled after repeated failures",
                ErrorKind.SERVER_DISABLED,
            )

        start_time = time.monotonic()
        result = await self.connection.transport.invoke(
            self.connection.handle, self.remote_name, arguments.values, self.timeout_seconds
        )
        self.connection.record(result)
        return result.with_latency((time.monotonic() - start_time) * 1000)


class RemoteToolBridge:
    """Connects configured remote servers and registers their tools.

    Servers are connected one at a time in configured order. A server that
    cannot be reached is skipped with a warning; a tool name that collides
    with an already registered one is a startup failure.

    Usage:
        bridge = RemoteToolBridge(config.remote_server_configs(), timeout=60.0)
        await bridge.connect_all(registry)
        # ... tool calls go through the registry ...
        await bridge.aclose()
    """

    def __init__(
        self,
        configs: list[RemoteServerConfig],
        timeout_seconds: float,
        max_consecutive_failures: int = 3,
        transports: dict[TransportKind, RemoteToolChannel] | None = None,
    ) -> None:
        self.configs = list(configs)
        self.timeout_seconds = timeout_seconds
        self.max_consecutive_failures = max_consecutive_failures
        self.transports = transports if transports is not None else default_transports()
        self.connections: list[RemoteServerConnection] = []

    async def connect_all(self, registry: ToolRegistry) -> list[str]:
        """Connect every configured server and register its tools.

        Returns:
            Names of the servers that connected.

        Raises:
            DuplicateNameError: A remote tool's qualified name is already
                registered. All connections are closed first.
        """
        for config in self.configs:
            transport = self.transports[config.transport_kind]
            try:
                handle = await transport.connect(config, self.timeout_seconds)
            except TransportError as e:
                log.warning(
                    REMOTE_SERVER_SKIPPED,
                    server=config.name,
                    transport=config.transport_kind.value,
                    error=e.message,
                    error_kind=e.kind.value,
                )
                continue

            connection = RemoteServerConnection(
                config, transport, handle, self.max_consecutive_failures
            )
            self.connections.append(connection)
            try:
                definitions = await transport.list_tools(handle, self.timeout_seconds)
            except TransportError as e:
                log.warning(
                    REMOTE_SERVER_SKIPPED,
                    server=config.name,
                    transport=config.transport_kind.value,
                    error=e.message,
                    error_kind=e.kind.value,
                )
                self.connections.remove(connection)
                await transport.close(handle)
                continue

            try:
                self._register(registry, connection, definitions)
            except DuplicateNameError:
                await self.aclose()
                raise

            log.info(
                REMOTE_SERVER_CONNECTED,
                server=config.name,
                transport=config.transport_kind.value,
                tools_count=len(definitions),
            )
        return [connection.name for connection in self.connections]

    def _register(
        self,
        registry: ToolRegistry,
        connection: RemoteServerConnection,
        definitions: list[ToolDefinition],
    ) -> None:
        prefix_length = len(connection.name) + 1
        for definition in definitions:
            adapter = RemoteToolAdapter(
                definition,
                remote_name=definition.name[prefix_length:],
                connection=connection,
                timeout_seconds=self.timeout_seconds,
            )
            registry.register(definition, adapter)
            log.debug(
                REMOTE_TOOL_DISCOVERED,
                server=connection.name,
                tool_name=definition.name,
                risk_class=definition.risk_class.value,
            )

    def cancel_in_flight(self) -> int:
        """Cancel outstanding remote requests without waiting for them."""
        return sum(connection.handle.cancel_in_flight() for connection in self.connections)

    async def aclose(self) -> None:
        """Close every connection, most recently opened first."""
        while self.connections:
            connection = self.connections.pop()
            await connection.transport.close(connection.handle)
            log.info(REMOTE_SERVER_CLOSED, server=connection.name)
