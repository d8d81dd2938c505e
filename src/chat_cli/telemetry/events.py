"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings to ensure
consistency and enable reliable querying and analysis.
"""

# Orchestrator events
TURN_STARTED = "turn_started"
TURN_COMPLETED = "turn_completed"
TURN_FAILED = "turn_failed"
TURN_ABORTED = "turn_aborted"
ROUND_STARTED = "round_started"
ROUND_COMPLETED = "round_completed"
ROUND_LIMIT_EXCEEDED = "round_limit_exceeded"
REPLY_READY = "reply_ready"
ORCHESTRATOR_FATAL_ERROR = "orchestrator_fatal_error"

# Model collaborator events
MODEL_CALL_STARTED = "model_call_started"
MODEL_CALL_COMPLETED = "model_call_completed"
MODEL_CALL_ERROR = "model_call_error"

# Tool execution events
TOOL_REGISTERED = "tool_registered"
TOOL_CALL_STARTED = "tool_call_started"
TOOL_CALL_COMPLETED = "tool_call_completed"
TOOL_CALL_FAILED = "tool_call_failed"
TOOL_VALIDATION_FAILED = "tool_validation_failed"

# Confirmation gate events
APPROVAL_REQUIRED = "approval_required"
APPROVAL_GRANTED = "approval_granted"
APPROVAL_DENIED = "approval_denied"

# Shell process events
SHELL_PROCESS_SPAWNED = "shell_process_spawned"
SHELL_PROCESS_REAPED = "shell_process_reaped"
SHELL_PROCESS_SIGNALLED = "shell_process_signalled"

# Remote tool server events
REMOTE_SERVER_CONNECTED = "remote_server_connected"
REMOTE_SERVER_SKIPPED = "remote_server_skipped"
REMOTE_SERVER_DISABLED = "remote_server_disabled"
REMOTE_SERVER_CLOSED = "remote_server_closed"
REMOTE_TOOL_DISCOVERED = "remote_tool_discovered"

# Memory events
FACT_SAVED = "fact_saved"
