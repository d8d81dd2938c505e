"""User confirmation gate for tool calls.

Read-only built-ins run without asking. Built-ins that declare
``requires_confirmation`` (writes, replacements, shell commands) and every
remote tool wait for an explicit decision from the confirmation handler.
A denial is a user decision, not a failure: it yields a non-error result.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from chat_cli.telemetry import (
    APPROVAL_DENIED,
    APPROVAL_GRANTED,
    APPROVAL_REQUIRED,
    TraceContext,
    get_logger,
)
from chat_cli.tools.types import RiskClass, ToolDefinition, ToolResult

log = get_logger(__name__)


class Resolution(str, Enum):
    """Resolution of a confirmation request."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class ConfirmationRequest:
    """A call waiting for the user's decision.

    Resolves exactly once; later ``resolve`` calls are ignored.
    """

    def __init__(
        self,
        call_id: str,
        tool_name: str,
        arguments: dict[str, Any],
        risk_class: RiskClass,
        description: str,
    ) -> None:
        self.call_id = call_id
        self.tool_name = tool_name
        self.arguments = arguments
        self.risk_class = risk_class
        self.description = description
        self.resolution = Resolution.PENDING
        self._decided: asyncio.Future[bool] = asyncio.get_running_loop().create_future()

    @property
    def pending(self) -> bool:
        return self.resolution is Resolution.PENDING

    def resolve(self, approved: bool) -> bool:
        """Record the decision. Returns False if it was already resolved."""
        if not self.pending:
            return False
        self.resolution = Resolution.APPROVED if approved else Resolution.DENIED
        self._decided.set_result(approved)
        return True

    async def wait(self) -> bool:
        return await asyncio.shield(self._decided)


# Asked for each request; returns True to approve.
ConfirmationHandler = Callable[[ConfirmationRequest], Awaitable[bool]]


async def deny_all(request: ConfirmationRequest) -> bool:
    """Handler for non-interactive runs: nothing that needs approval runs."""
    return False


async def approve_all(request: ConfirmationRequest) -> bool:
    """Handler that approves everything (``--yes``)."""
    return True


class ConfirmationGate:
    """Classifies tool calls and blocks the risky ones on user approval."""

    def __init__(self, handler: ConfirmationHandler | None = None) -> None:
        self.handler = handler or deny_all
        self._pending: dict[str, ConfirmationRequest] = {}

    @staticmethod
    def needs_confirmation(definition: ToolDefinition) -> bool:
        """Whether a call to this tool must be approved first.

        Remote tools always need approval since their behavior is unknown.
        """
        return definition.requires_confirmation or definition.source != "builtin"

    @property
    def pending(self) -> list[ConfirmationRequest]:
        return list(self._pending.values())

    async def request_approval(
        self,
        call_id: str,
        definition: ToolDefinition,
        arguments: dict[str, Any],
        description: str,
        trace_ctx: TraceContext | None = None,
    ) -> bool:
        """Ask the handler about one call and wait for the decision.

        A handler that raises counts as a denial. ``deny_all_pending`` ends
        the wait early with a denial.
        """
        request = ConfirmationRequest(
            call_id, definition.name, arguments, definition.risk_class, description
        )
        trace_id = trace_ctx.trace_id if trace_ctx else None
        self._pending[call_id] = request
        log.info(
            APPROVAL_REQUIRED,
            trace_id=trace_id,
            tool_call_id=call_id,
            tool_name=definition.name,
            risk_class=definition.risk_class.value,
            description=description,
        )

        ask = asyncio.ensure_future(self.handler(request))
        ask.add_done_callback(lambda task: self._on_answer(request, task))
        try:
            approved = await request.wait()
        finally:
            self._pending.pop(call_id, None)
            if not ask.done():
                ask.cancel()

        log.info(
            APPROVAL_GRANTED if approved else APPROVAL_DENIED,
            trace_id=trace_id,
            tool_call_id=call_id,
            tool_name=definition.name,
        )
        return approved

    def _on_answer(self, request: ConfirmationRequest, task: "asyncio.Future[bool]") -> None:
        if task.cancelled():
            request.resolve(False)
            return
        error = task.exception()
        if error is not None:
            log.warning(
                "confirmation_handler_failed",
                tool_call_id=request.call_id,
                tool_name=request.tool_name,
                error=str(error),
            )
            request.resolve(False)
            return
        request.resolve(bool(task.result()))

    def deny_all_pending(self) -> int:
        """Deny every request still waiting for an answer."""
        denied = 0
        for request in list(self._pending.values()):
            if request.resolve(False):
                denied += 1
        return denied

    @staticmethod
    def declined_result(tool_name: str) -> ToolResult:
        """Non-error result reported for a denied call."""
        return ToolResult(
            tool_name=tool_name,
            llm_content=(
                f"The user declined to run '{tool_name}'. The tool was not executed; "
                "do not retry this call."
            ),
            display_content=f"Declined: {tool_name}",
            is_error=False,
            metadata={"declined": True},
        )
