"""Configuration for the chat CLI.

Settings come from environment variables (prefix ``AGENT_``) and optional
``.env`` files. Components take an explicit ``AppConfig``; ``get_settings()``
builds the process-wide instance on first use.
"""

from chat_cli.config.env_loader import Environment, get_environment, load_env_files
from chat_cli.config.remote_servers import (
    RemoteServerConfig,
    RemoteServerConfigError,
    TransportKind,
    parse_remote_servers,
)
from chat_cli.config.settings import AppConfig, get_settings, load_app_config

__all__ = [
    "AppConfig",
    "get_settings",
    "load_app_config",
    "Environment",
    "get_environment",
    "load_env_files",
    # Remote servers
    "RemoteServerConfig",
    "TransportKind",
    "parse_remote_servers",
    "RemoteServerConfigError",
]
