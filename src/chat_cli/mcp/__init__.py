"""Remote MCP tool servers.

Transports reach a server over a child-process pipe or streamable HTTP; the
bridge namespaces each server's tools as ``server:tool`` and registers them
next to the built-ins.
"""

from chat_cli.mcp.bridge import RemoteServerConnection, RemoteToolAdapter, RemoteToolBridge
from chat_cli.mcp.client import (
    ConnectionHandle,
    RemoteToolChannel,
    StdioPipeTransport,
    StreamedHTTPTransport,
    default_transports,
)
from chat_cli.mcp.errors import (
    TRANSPORT_FAILURE_KINDS,
    SpawnError,
    TransportClosedError,
    TransportError,
    TransportTimeoutError,
    UnreachableError,
)
from chat_cli.mcp.types import NAMESPACE_SEPARATOR, qualified_name

__all__ = [
    "ConnectionHandle",
    "RemoteToolChannel",
    "StdioPipeTransport",
    "StreamedHTTPTransport",
    "default_transports",
    "RemoteServerConnection",
    "RemoteToolAdapter",
    "RemoteToolBridge",
    "TransportError",
    "SpawnError",
    "UnreachableError",
    "TransportClosedError",
    "TransportTimeoutError",
    "TRANSPORT_FAILURE_KINDS",
    "NAMESPACE_SEPARATOR",
    "qualified_name",
]
