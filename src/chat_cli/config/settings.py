"""Application configuration settings.

This module provides the AppConfig class and settings singleton.
"""

from pathlib import Path

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_cli.config.env_loader import Environment, get_environment, load_env_files
from chat_cli.config.remote_servers import RemoteServerConfig, parse_remote_servers
from chat_cli.config.validators import resolve_path, validate_log_format, validate_log_level

log = structlog.get_logger(__name__)


class AppConfig(BaseSettings):
    """Unified application configuration.

    Loads configuration from environment variables and defaults.
    Validates all values using Pydantic.
    """

    model_config = SettingsConfigDict(
        # .env files are loaded manually via env_loader to support the
        # environment-specific priority order; values are read from os.environ.
        env_prefix="AGENT_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )
    project_root: Path = Field(
        default_factory=Path.cwd,
        description="Root for relative shell directories and default search/glob roots",
    )

    # Telemetry
    log_dir: Path = Field(default=Path("telemetry/logs"), description="Log directory path")
    log_level: str = Field(
        default="INFO",
        alias="APP_LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="console", alias="APP_LOG_FORMAT", description="Log format (json or console)"
    )
    log_to_file: bool = Field(default=True, description="Mirror logs to a rotating JSONL file")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        return validate_log_format(v)

    @field_validator("log_dir", "project_root", "memory_file", mode="before")
    @classmethod
    def resolve_paths(cls, v: Path | str) -> Path:
        """Resolve relative paths to absolute."""
        return resolve_path(v)

    # Orchestrator
    orchestrator_max_tool_rounds: int = Field(
        default=10, ge=1, description="Maximum model/tool rounds per user turn"
    )
    orchestrator_max_parallel_tools: int = Field(
        default=8, ge=1, description="Maximum read-only tool calls executed concurrently"
    )
    tool_timeout_seconds: float = Field(
        default=120, gt=0, description="Default per-call timeout for built-in tools"
    )

    # Built-in tools
    shell_timeout_seconds: float = Field(
        default=600, gt=0, description="Timeout for foreground shell commands"
    )
    shell_output_limit_bytes: int = Field(
        default=1024 * 1024, ge=1024, description="Captured bytes per stream before truncation"
    )
    read_file_max_size_mb: float = Field(
        default=20, gt=0, description="Largest file read_file will return"
    )
    write_file_create_parents: bool = Field(
        default=False, description="Create missing parent directories in write_file"
    )
    web_fetch_timeout_seconds: float = Field(default=30, gt=0, description="Per-URL fetch timeout")
    web_fetch_max_content_chars: int = Field(
        default=50000, ge=1, description="Characters kept per fetched URL"
    )
    memory_file: Path = Field(
        default=Path("chat_memory.txt"), description="Append-only fact store used by save_memory"
    )

    # Remote tool servers
    remote_servers: str = Field(
        default="",
        description="Remote servers as comma-separated name|transport|endpoint|args entries",
    )
    remote_timeout_seconds: float = Field(
        default=60, gt=0, le=600, description="Timeout for remote connect and tool calls"
    )
    remote_max_consecutive_failures: int = Field(
        default=3, ge=1, description="Transport failures before a server's tools are withdrawn"
    )

    @field_validator("remote_servers")
    @classmethod
    def validate_remote_servers(cls, v: str) -> str:
        """Reject unparseable server lists at load time."""
        parse_remote_servers(v)
        return v

    def remote_server_configs(self) -> list[RemoteServerConfig]:
        """Parsed remote-server list, in configured order."""
        return parse_remote_servers(self.remote_servers)


_settings: AppConfig | None = None


def load_app_config() -> AppConfig:
    """Load and validate application configuration.

    This function:
    1. Loads .env files in priority order (via env_loader)
    2. Creates AppConfig instance (reads from environment variables)
    3. Validates all values using Pydantic

    Returns:
        Validated AppConfig instance.

    Raises:
        ValidationError: If configuration validation fails.
    """
    log.debug("loading_app_config", environment=get_environment().value)

    load_env_files()

    try:
        config = AppConfig()
        log.debug(
            "app_config_loaded",
            environment=config.environment.value,
            log_level=config.log_level,
            log_format=config.log_format,
            remote_servers=[server.name for server in config.remote_server_configs()],
        )
        return config
    except Exception as e:
        log.error("app_config_load_failed", error=str(e), error_type=type(e).__name__)
        raise


def get_settings() -> AppConfig:
    """Get the application settings singleton.

    Returns:
        AppConfig instance (singleton pattern).
    """
    global _settings
    if _settings is None:
        _settings = load_app_config()
    return _settings
