"""Parsing of the remote tool-server list (``AGENT_REMOTE_SERVERS``).

Format: comma-separated entries, each ``name|transport|endpoint|args``::

    git|stdio-pipe|uvx|mcp-server-git --repository .,docs|streamed-http|http://localhost:8931/mcp

``args`` is optional and shell-split. For ``stdio-pipe`` the endpoint is the
executable; for ``streamed-http`` it is the URL and ``args`` must be empty.
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum


class RemoteServerConfigError(ValueError):
    """Raised when the remote-server list cannot be parsed."""


class TransportKind(str, Enum):
    """Channel used to reach a remote tool server."""

    STDIO_PIPE = "stdio-pipe"
    STREAMED_HTTP = "streamed-http"


_TRANSPORT_ALIASES = {
    "stdio-pipe": TransportKind.STDIO_PIPE,
    "stdio": TransportKind.STDIO_PIPE,
    "pipe": TransportKind.STDIO_PIPE,
    "streamed-http": TransportKind.STREAMED_HTTP,
    "streamable-http": TransportKind.STREAMED_HTTP,
    "http": TransportKind.STREAMED_HTTP,
}


@dataclass(frozen=True)
class RemoteServerConfig:
    """One configured remote tool server."""

    name: str
    transport_kind: TransportKind
    endpoint: str
    args: tuple[str, ...] = field(default_factory=tuple)


def parse_remote_server_entry(entry: str) -> RemoteServerConfig:
    """Parse a single ``name|transport|endpoint|args`` entry."""
    parts = [part.strip() for part in entry.split("|")]
    if len(parts) not in (3, 4):
        raise RemoteServerConfigError(
            f"Remote server entry must be name|transport|endpoint|args, got {entry!r}"
        )

    name, transport, endpoint = parts[0], parts[1].lower(), parts[2]
    if not name:
        raise RemoteServerConfigError(f"Remote server entry has an empty name: {entry!r}")
    if ":" in name:
        raise RemoteServerConfigError(f"Remote server name may not contain ':': {name!r}")
    if transport not in _TRANSPORT_ALIASES:
        raise RemoteServerConfigError(
            f"Unknown transport {parts[1]!r} for server {name!r} "
            f"(expected stdio-pipe or streamed-http)"
        )
    if not endpoint:
        raise RemoteServerConfigError(f"Remote server {name!r} has an empty endpoint")

    try:
        args = tuple(shlex.split(parts[3])) if len(parts) == 4 else ()
    except ValueError as e:
        raise RemoteServerConfigError(f"Bad arguments for server {name!r}: {e}") from e

    kind = _TRANSPORT_ALIASES[transport]
    if kind is TransportKind.STREAMED_HTTP:
        if args:
            raise RemoteServerConfigError(f"streamed-http server {name!r} does not take args")
        if not endpoint.startswith(("http://", "https://")):
            raise RemoteServerConfigError(
                f"streamed-http server {name!r} needs an http(s) URL, got {endpoint!r}"
            )

    return RemoteServerConfig(name=name, transport_kind=kind, endpoint=endpoint, args=args)


def parse_remote_servers(raw: str | None) -> list[RemoteServerConfig]:
    """Parse the full remote-server list, preserving order.

    Raises:
        RemoteServerConfigError: On a malformed entry or a repeated server name.
    """
    if not raw or not raw.strip():
        return []

    servers: list[RemoteServerConfig] = []
    seen: set[str] = set()
    for entry in raw.split(","):
        if not entry.strip():
            continue
        server = parse_remote_server_entry(entry)
        if server.name in seen:
            raise RemoteServerConfigError(f"Remote server {server.name!r} is configured twice")
        seen.add(server.name)
        servers.append(server)
    return servers
