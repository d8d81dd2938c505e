"""Telemetry module for structured logging and trace correlation.

This module provides:
- TraceContext for per-turn trace correlation
- Structured logging via structlog
- Semantic event constants
"""

from chat_cli.telemetry.events import (
    APPROVAL_DENIED,
    APPROVAL_GRANTED,
    APPROVAL_REQUIRED,
    FACT_SAVED,
    MODEL_CALL_COMPLETED,
    MODEL_CALL_ERROR,
    MODEL_CALL_STARTED,
    ORCHESTRATOR_FATAL_ERROR,
    REMOTE_SERVER_CLOSED,
    REMOTE_SERVER_CONNECTED,
    REMOTE_SERVER_DISABLED,
    REMOTE_SERVER_SKIPPED,
    REMOTE_TOOL_DISCOVERED,
    REPLY_READY,
    ROUND_COMPLETED,
    ROUND_LIMIT_EXCEEDED,
    ROUND_STARTED,
    SHELL_PROCESS_REAPED,
    SHELL_PROCESS_SIGNALLED,
    SHELL_PROCESS_SPAWNED,
    TOOL_CALL_COMPLETED,
    TOOL_CALL_FAILED,
    TOOL_CALL_STARTED,
    TOOL_REGISTERED,
    TOOL_VALIDATION_FAILED,
    TURN_ABORTED,
    TURN_COMPLETED,
    TURN_FAILED,
    TURN_STARTED,
)
from chat_cli.telemetry.logger import configure_logging, get_logger
from chat_cli.telemetry.trace import TraceContext

__all__ = [
    # Core exports
    "TraceContext",
    "get_logger",
    "configure_logging",
    # Event constants
    "TURN_STARTED",
    "TURN_COMPLETED",
    "TURN_FAILED",
    "TURN_ABORTED",
    "ROUND_STARTED",
    "ROUND_COMPLETED",
    "ROUND_LIMIT_EXCEEDED",
    "REPLY_READY",
    "ORCHESTRATOR_FATAL_ERROR",
    "MODEL_CALL_STARTED",
    "MODEL_CALL_COMPLETED",
    "MODEL_CALL_ERROR",
    "TOOL_REGISTERED",
    "TOOL_CALL_STARTED",
    "TOOL_CALL_COMPLETED",
    "TOOL_CALL_FAILED",
    "TOOL_VALIDATION_FAILED",
    "APPROVAL_REQUIRED",
    "APPROVAL_GRANTED",
    "APPROVAL_DENIED",
    "SHELL_PROCESS_SPAWNED",
    "SHELL_PROCESS_REAPED",
    "SHELL_PROCESS_SIGNALLED",
    "REMOTE_SERVER_CONNECTED",
    "REMOTE_SERVER_SKIPPED",
    "REMOTE_SERVER_DISABLED",
    "REMOTE_SERVER_CLOSED",
    "REMOTE_TOOL_DISCOVERED",
    "FACT_SAVED",
]
