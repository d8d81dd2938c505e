"""Bootstrap configuration helpers (pre-settings).

These helpers exist for "chicken-and-egg" situations where logging must be
configured before the full Pydantic settings singleton can be imported.

Constraints:
- Keep this module dependency-light (no telemetry imports) to avoid circular imports.
- Prefer validating values using existing config validators.
"""

from __future__ import annotations

import os
from pathlib import Path

from chat_cli.config.validators import parse_bool, validate_log_format, validate_log_level


def get_bootstrap_log_level(default: str = "INFO") -> str:
    """Get logging level from environment without importing settings.

    Args:
        default: Default log level if not set or invalid.

    Returns:
        Uppercased, validated log level string.
    """
    value = os.getenv("APP_LOG_LEVEL", default)
    try:
        return validate_log_level(value)
    except ValueError:
        return validate_log_level(default)


def get_bootstrap_log_format(default: str = "console") -> str:
    """Get log renderer ("console" or "json") from the environment."""
    value = os.getenv("APP_LOG_FORMAT", default)
    try:
        return validate_log_format(value)
    except ValueError:
        return validate_log_format(default)


def get_bootstrap_log_to_file(default: bool = True) -> bool:
    """Whether the rotating JSON-lines file handler should be attached."""
    value = os.getenv("AGENT_LOG_TO_FILE")
    if value is None:
        return default
    try:
        return parse_bool(value)
    except ValueError:
        return default


def get_bootstrap_log_dir() -> Path:
    """Directory for the JSON-lines log file."""
    return Path(os.getenv("AGENT_LOG_DIR", "telemetry/logs")).expanduser()
