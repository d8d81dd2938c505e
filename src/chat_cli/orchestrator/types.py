"""Core types for the orchestrator.

This module defines the data structures used by the round loop:
- CallState: Lifecycle of one tool call through the gate
- PendingCall: Mutable per-call record carried through validate/gate/execute
- ToolResultMessage: One entry of the synthetic tool turn
- OrchestratorStep / OrchestratorResult: What a turn returns to the UI
- RoundLimitExceededError: Fatal to the current turn
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from typing_extensions import TypedDict

from chat_cli.tools.types import (
    RiskClass,
    ToolAdapter,
    ToolDefinition,
    ToolResult,
    ValidatedArguments,
)


class RoundLimitExceededError(Exception):
    """The model kept requesting tools past the configured round limit."""

    def __init__(self, max_rounds: int) -> None:
        super().__init__(
            f"Tool-call round limit of {max_rounds} exceeded; the model kept requesting tools"
        )
        self.max_rounds = max_rounds


class CallState(str, Enum):
    """State machine states for one tool call."""

    CREATED = "created"
    CLASSIFIED = "classified"
    AUTO_APPROVED = "auto_approved"
    PENDING_CONFIRMATION = "pending_confirmation"
    APPROVED = "approved"
    DENIED = "denied"
    EXECUTED = "executed"
    SKIPPED = "skipped"


@dataclass
class PendingCall:
    """One tool call from the current model reply.

    ``result`` is set exactly once, either by an early failure (bad JSON,
    unknown tool, invalid arguments), by a denial, or by execution.
    """

    index: int
    call_id: str
    name: str
    raw_arguments: Any
    definition: ToolDefinition | None = None
    adapter: ToolAdapter | None = None
    arguments: ValidatedArguments | None = None
    result: ToolResult | None = None
    state: CallState = CallState.CREATED
    span_id: str | None = None

    @property
    def runs_concurrently(self) -> bool:
        """Auto-approved read-only and network calls may share a batch."""
        return (
            self.result is None
            and self.state is CallState.AUTO_APPROVED
            and self.definition is not None
            and self.definition.risk_class in (RiskClass.READ_ONLY, RiskClass.NETWORK)
        )


class ToolResultMessage(TypedDict):
    """One result inside the synthetic ``tool`` turn.

    Fields:
        tool_call_id: Id of the call this answers.
        name: Tool name.
        content: Text fed back to the model.
        is_error: Whether the call failed.
    """

    tool_call_id: str
    name: str
    content: str
    is_error: bool


class OrchestratorStep(TypedDict):
    """Step metadata for observability.

    Fields:
        type: Step type ("llm_call", "tool_call", "error").
        description: Human-readable description of what this step did.
        metadata: Additional structured data (tool_name, span_id, etc.).
    """

    type: str
    description: str
    metadata: dict[str, Any]


class OrchestratorResult(TypedDict, total=False):
    """Final result returned to the UI for one user turn.

    Fields:
        reply: Final user-facing text response.
        steps: List of OrchestratorStep records for transparency.
        trace_id: Trace ID for telemetry correlation.
        rounds: Number of tool rounds the turn took.
    """

    reply: str
    steps: list[OrchestratorStep]
    trace_id: str | None
    rounds: int
