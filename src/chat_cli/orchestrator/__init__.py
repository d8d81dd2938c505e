"""Orchestrator: the tool-calling round loop and its confirmation gate."""

from chat_cli.orchestrator.confirmation import (
    ConfirmationGate,
    ConfirmationHandler,
    ConfirmationRequest,
    Resolution,
    approve_all,
    deny_all,
)
from chat_cli.orchestrator.context import RegistryContext, build_registry_context
from chat_cli.orchestrator.executor import Orchestrator
from chat_cli.orchestrator.types import (
    CallState,
    OrchestratorResult,
    OrchestratorStep,
    PendingCall,
    RoundLimitExceededError,
    ToolResultMessage,
)

__all__ = [
    "Orchestrator",
    "RegistryContext",
    "build_registry_context",
    "ConfirmationGate",
    "ConfirmationHandler",
    "ConfirmationRequest",
    "Resolution",
    "approve_all",
    "deny_all",
    "CallState",
    "PendingCall",
    "OrchestratorResult",
    "OrchestratorStep",
    "RoundLimitExceededError",
    "ToolResultMessage",
]
