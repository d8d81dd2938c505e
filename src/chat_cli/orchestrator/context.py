"""Startup wiring: the registry plus the live resources its tools depend on."""

from dataclasses import dataclass

from chat_cli.config import AppConfig, TransportKind
from chat_cli.mcp.bridge import RemoteToolBridge
from chat_cli.mcp.client import RemoteToolChannel
from chat_cli.telemetry import get_logger
from chat_cli.tools.builtin import BuiltinToolContext, register_builtin_tools
from chat_cli.tools.registry import ToolRegistry
from chat_cli.tools.shell import ShellProcessArena

log = get_logger(__name__)


@dataclass
class RegistryContext:
    """Everything a running session needs to dispatch tool calls.

    Built once at startup and passed to the Orchestrator explicitly; there is
    no module-level connection state.
    """

    config: AppConfig
    registry: ToolRegistry
    builtins: BuiltinToolContext
    bridge: RemoteToolBridge | None = None

    @property
    def arena(self) -> ShellProcessArena:
        return self.builtins.arena

    async def aclose(self) -> None:
        """Close remote connections and terminate tracked process groups."""
        if self.bridge is not None:
            await self.bridge.aclose()
        await self.arena.terminate_all()
        log.info("registry_context_closed")


async def build_registry_context(
    config: AppConfig,
    builtins: BuiltinToolContext | None = None,
    transports: dict[TransportKind, RemoteToolChannel] | None = None,
) -> RegistryContext:
    """Register built-ins, then connect remote servers in configured order.

    Raises:
        DuplicateNameError: A remote tool collides with a registered name.
    """
    registry = ToolRegistry()
    builtins = builtins or BuiltinToolContext(config)
    register_builtin_tools(registry, builtins)

    bridge = None
    servers = config.remote_server_configs()
    if servers:
        bridge = RemoteToolBridge(
            servers,
            timeout_seconds=config.remote_timeout_seconds,
            max_consecutive_failures=config.remote_max_consecutive_failures,
            transports=transports,
        )
        await bridge.connect_all(registry)

    log.info(
        "registry_context_ready",
        tools_count=len(registry),
        remote_servers=[c.name for c in bridge.connections] if bridge else [],
    )
    return RegistryContext(config=config, registry=registry, builtins=builtins, bridge=bridge)
