"""Round loop: model reply, tool calls, results, resubmit.

One user turn runs as follows:

1. Submit the conversation and the currently offered tools to the model
2. If the reply has no tool calls, it is the final answer
3. Otherwise parse, validate and classify every call, then dispatch them in
   issue order: consecutive auto-approved read-only/network calls run
   concurrently, anything else waits for its confirmation and runs alone
4. Append the assistant turn and one synthetic ``tool`` turn holding every
   result in call order, then go back to 1

The number of tool rounds per turn is bounded; exceeding it is fatal to the
turn (``RoundLimitExceededError``) but not to the session.
"""

import asyncio
import json
import time
from typing import Any

from chat_cli.llm_client.types import LLMResponse, ModelClient, ToolCall
from chat_cli.orchestrator.confirmation import ConfirmationGate
from chat_cli.orchestrator.context import RegistryContext
from chat_cli.orchestrator.types import (
    CallState,
    OrchestratorResult,
    OrchestratorStep,
    PendingCall,
    RoundLimitExceededError,
    ToolResultMessage,
)
from chat_cli.telemetry import (
    MODEL_CALL_COMPLETED,
    MODEL_CALL_ERROR,
    MODEL_CALL_STARTED,
    ORCHESTRATOR_FATAL_ERROR,
    REPLY_READY,
    ROUND_COMPLETED,
    ROUND_LIMIT_EXCEEDED,
    ROUND_STARTED,
    TOOL_CALL_COMPLETED,
    TOOL_CALL_FAILED,
    TOOL_CALL_STARTED,
    TOOL_VALIDATION_FAILED,
    TURN_ABORTED,
    TURN_COMPLETED,
    TURN_FAILED,
    TURN_STARTED,
    TraceContext,
    get_logger,
)
from chat_cli.tools.errors import ErrorKind, ToolError, ToolValidationError
from chat_cli.tools.schema import validate_arguments
from chat_cli.tools.types import ToolResult

log = get_logger(__name__)


class Orchestrator:
    """Drives tool-calling turns against one RegistryContext.

    The conversation history lives on the instance, so consecutive turns see
    earlier ones.
    """

    def __init__(
        self,
        context: RegistryContext,
        model: ModelClient,
        gate: ConfirmationGate | None = None,
        max_rounds: int | None = None,
        max_parallel: int | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            context: Registry and live resources built at startup.
            model: Model collaborator producing assistant replies.
            gate: Confirmation gate; the default denies every risky call.
            max_rounds: Tool rounds allowed per turn (config default if None).
            max_parallel: Concurrent read-only calls per batch (config default if None).
        """
        config = context.config
        self.context = context
        self.model = model
        self.gate = gate or ConfirmationGate()
        self.max_rounds = (
            max_rounds if max_rounds is not None else config.orchestrator_max_tool_rounds
        )
        self.max_parallel = (
            max_parallel if max_parallel is not None else config.orchestrator_max_parallel_tools
        )
        self.messages: list[dict[str, Any]] = []
        self._turn_task: asyncio.Task[OrchestratorResult] | None = None

    async def execute_turn(
        self,
        user_message: str,
        trace_ctx: TraceContext | None = None,
        steps: list[OrchestratorStep] | None = None,
    ) -> OrchestratorResult:
        """Run one user turn to completion.

        Raises:
            RoundLimitExceededError: The model kept requesting tools.
            Exception: Whatever the model collaborator raised.
        """
        trace_ctx = trace_ctx or TraceContext.new_trace()
        steps = steps if steps is not None else []
        start = len(self.messages)
        self.messages.append({"role": "user", "content": user_message})
        log.info(TURN_STARTED, trace_id=trace_ctx.trace_id, message_length=len(user_message))

        rounds = 0
        try:
            while True:
                response = await self._call_model(trace_ctx, steps)
                content = response.get("content") or ""
                tool_calls = response.get("tool_calls") or []
                if not tool_calls:
                    self.messages.append({"role": "assistant", "content": content})
                    log.info(TURN_COMPLETED, trace_id=trace_ctx.trace_id, rounds=rounds)
                    return {
                        "reply": content,
                        "steps": steps,
                        "trace_id": trace_ctx.trace_id,
                        "rounds": rounds,
                    }

                if rounds >= self.max_rounds:
                    log.warning(
                        ROUND_LIMIT_EXCEEDED,
                        trace_id=trace_ctx.trace_id,
                        max_rounds=self.max_rounds,
                        requested_calls=len(tool_calls),
                    )
                    raise RoundLimitExceededError(self.max_rounds)

                rounds += 1
                log.info(
                    ROUND_STARTED,
                    trace_id=trace_ctx.trace_id,
                    round=rounds,
                    tool_count=len(tool_calls),
                )
                calls = self.prepare_calls(tool_calls, trace_ctx)
                self.messages.append(
                    {
                        "role": "assistant",
                        "content": content,
                        "tool_calls": [
                            {"id": call.call_id, "name": call.name, "arguments": call.raw_arguments}
                            for call in calls
                        ],
                    }
                )
                await self.dispatch(calls, trace_ctx, steps)
                results = [_result_message(call) for call in calls]
                self.messages.append({"role": "tool", "results": results})
                log.info(
                    ROUND_COMPLETED,
                    trace_id=trace_ctx.trace_id,
                    round=rounds,
                    errors=sum(1 for result in results if result["is_error"]),
                )
        except asyncio.CancelledError:
            # Drop the partial turn so history never holds calls without results.
            del self.messages[start:]
            log.warning(TURN_ABORTED, trace_id=trace_ctx.trace_id, rounds=rounds)
            raise

    async def execute_turn_safe(
        self, user_message: str, trace_ctx: TraceContext | None = None
    ) -> OrchestratorResult:
        """Run a turn, turning every failure into an ``Error: ...`` reply.

        ``abort()`` ends the turn with an aborted reply instead of raising.
        """
        trace_ctx = trace_ctx or TraceContext.new_trace()
        steps: list[OrchestratorStep] = []
        self._turn_task = asyncio.create_task(self.execute_turn(user_message, trace_ctx, steps))
        try:
            result = await self._turn_task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            steps.append(
                {"type": "error", "description": "Turn aborted by user", "metadata": {}}
            )
            result = {"reply": "Aborted.", "steps": steps, "trace_id": trace_ctx.trace_id}
        except RoundLimitExceededError as e:
            log.error(TURN_FAILED, trace_id=trace_ctx.trace_id, error=str(e))
            result = self._error_result(e, steps, trace_ctx)
        except Exception as e:
            log.critical(ORCHESTRATOR_FATAL_ERROR, trace_id=trace_ctx.trace_id, exc_info=True)
            result = self._error_result(e, steps, trace_ctx)
        finally:
            self._turn_task = None

        log.info(REPLY_READY, trace_id=trace_ctx.trace_id, reply_length=len(result["reply"]))
        return result

    def abort(self) -> None:
        """Stop the running turn.

        Signals foreground shell process groups, cancels in-flight remote
        requests without waiting on them, denies pending confirmations and
        cancels the turn itself.
        """
        signalled = self.context.arena.signal_foreground()
        cancelled = self.context.bridge.cancel_in_flight() if self.context.bridge else 0
        denied = self.gate.deny_all_pending()
        if self._turn_task is not None and not self._turn_task.done():
            self._turn_task.cancel()
        log.info(
            TURN_ABORTED,
            signalled_pgids=signalled,
            cancelled_requests=cancelled,
            denied_confirmations=denied,
        )

    async def call_tool(
        self, name: str, arguments: Any, trace_ctx: TraceContext | None = None
    ) -> ToolResult:
        """Run a single call through validation, confirmation and execution."""
        trace_ctx = trace_ctx or TraceContext.new_trace()
        calls = self.prepare_calls([{"id": name, "name": name, "arguments": arguments}], trace_ctx)
        await self.dispatch(calls, trace_ctx, [])
        result = calls[0].result
        assert result is not None
        return result

    def prepare_calls(
        self, tool_calls: list[ToolCall], trace_ctx: TraceContext
    ) -> list[PendingCall]:
        """Parse, resolve, validate and classify the calls of one reply.

        Calls that fail here get their error result immediately and never
        reach an adapter.
        """
        registry = self.context.registry
        calls: list[PendingCall] = []
        for index, tool_call in enumerate(tool_calls):
            name = tool_call.get("name") or ""
            call = PendingCall(
                index=index,
                call_id=tool_call.get("id") or f"{name}-{index}",
                name=name,
                raw_arguments=tool_call.get("arguments", {}),
            )
            calls.append(call)

            try:
                raw = _parse_arguments(call.raw_arguments)
                call.definition, call.adapter = registry.get(name)
                call.arguments = validate_arguments(call.definition, raw)
            except ToolError as e:
                if e.kind is ErrorKind.VALIDATION:
                    log.warning(
                        TOOL_VALIDATION_FAILED,
                        trace_id=trace_ctx.trace_id,
                        tool_call_id=call.call_id,
                        tool_name=name,
                        error=e.message,
                    )
                call.result = ToolResult.from_error(name, e)
                call.state = CallState.SKIPPED
                continue

            call.state = CallState.CLASSIFIED
            if ConfirmationGate.needs_confirmation(call.definition):
                call.state = CallState.PENDING_CONFIRMATION
            else:
                call.state = CallState.AUTO_APPROVED
        return calls

    async def dispatch(
        self,
        calls: list[PendingCall],
        trace_ctx: TraceContext,
        steps: list[OrchestratorStep],
    ) -> None:
        """Execute prepared calls in issue order, batching the safe ones."""
        semaphore = asyncio.Semaphore(max(1, self.max_parallel))

        async def limited(call: PendingCall) -> None:
            async with semaphore:
                await self._execute(call, trace_ctx, steps)

        index = 0
        while index < len(calls):
            call = calls[index]
            if call.result is not None:
                index += 1
                continue

            if call.runs_concurrently:
                batch: list[PendingCall] = []
                while index < len(calls) and (
                    calls[index].result is not None or calls[index].runs_concurrently
                ):
                    if calls[index].result is None:
                        batch.append(calls[index])
                    index += 1
                await asyncio.gather(*(limited(member) for member in batch))
                continue

            index += 1
            if call.state is CallState.PENDING_CONFIRMATION:
                if not await self._confirm(call, trace_ctx):
                    call.state = CallState.DENIED
                    call.result = ConfirmationGate.declined_result(call.name)
                    steps.append(
                        {
                            "type": "tool_call",
                            "description": f"Declined {call.name}",
                            "metadata": {"tool_name": call.name, "declined": True},
                        }
                    )
                    continue
                call.state = CallState.APPROVED
            await self._execute(call, trace_ctx, steps)

    async def _confirm(self, call: PendingCall, trace_ctx: TraceContext) -> bool:
        assert call.definition is not None and call.adapter is not None
        values = call.arguments.values if call.arguments else {}
        return await self.gate.request_approval(
            call.call_id,
            call.definition,
            values,
            call.adapter.describe_call(values),
            trace_ctx,
        )

    async def _execute(
        self, call: PendingCall, trace_ctx: TraceContext, steps: list[OrchestratorStep]
    ) -> None:
        assert call.adapter is not None and call.arguments is not None
        _, span_id = trace_ctx.new_span()
        call.span_id = span_id
        log.info(
            TOOL_CALL_STARTED,
            trace_id=trace_ctx.trace_id,
            span_id=span_id,
            tool_call_id=call.call_id,
            tool_name=call.name,
        )

        start_time = time.monotonic()
        try:
            result = await call.adapter.invoke(call.arguments)
        except Exception as e:
            log.error(
                TOOL_CALL_FAILED,
                trace_id=trace_ctx.trace_id,
                span_id=span_id,
                tool_name=call.name,
                error=str(e),
                exc_info=True,
            )
            result = ToolResult.error(
                call.name, f"{type(e).__name__}: {e}", ErrorKind.EXECUTION_ERROR
            ).with_latency((time.monotonic() - start_time) * 1000)

        call.result = result
        call.state = CallState.EXECUTED
        log.info(
            TOOL_CALL_FAILED if result.is_error else TOOL_CALL_COMPLETED,
            trace_id=trace_ctx.trace_id,
            span_id=span_id,
            tool_call_id=call.call_id,
            tool_name=call.name,
            latency_ms=round(result.latency_ms, 1),
            error_kind=result.error_kind.value if result.error_kind else None,
        )
        steps.append(
            {
                "type": "tool_call",
                "description": f"Executed {call.name}",
                "metadata": {
                    "tool_name": call.name,
                    "span_id": span_id,
                    "is_error": result.is_error,
                    "latency_ms": result.latency_ms,
                },
            }
        )

    async def _call_model(
        self, trace_ctx: TraceContext, steps: list[OrchestratorStep]
    ) -> LLMResponse:
        tools = self.context.registry.get_function_declarations()
        log.debug(
            MODEL_CALL_STARTED,
            trace_id=trace_ctx.trace_id,
            messages=len(self.messages),
            tools=len(tools),
        )
        start_time = time.monotonic()
        try:
            response = await self.model.respond(self.messages, tools)
        except Exception as e:
            log.error(MODEL_CALL_ERROR, trace_id=trace_ctx.trace_id, error=str(e))
            raise
        latency_ms = (time.monotonic() - start_time) * 1000
        tool_calls = response.get("tool_calls") or []
        log.debug(
            MODEL_CALL_COMPLETED,
            trace_id=trace_ctx.trace_id,
            latency_ms=round(latency_ms, 1),
            tool_calls=len(tool_calls),
        )
        steps.append(
            {
                "type": "llm_call",
                "description": "Model response",
                "metadata": {"tool_calls": len(tool_calls), "latency_ms": latency_ms},
            }
        )
        return response

    def _error_result(
        self, error: Exception, steps: list[OrchestratorStep], trace_ctx: TraceContext
    ) -> OrchestratorResult:
        steps.append(
            {
                "type": "error",
                "description": f"Turn failed: {error}",
                "metadata": {"error_type": type(error).__name__},
            }
        )
        return {"reply": f"Error: {error}", "steps": steps, "trace_id": trace_ctx.trace_id}


def _parse_arguments(raw: Any) -> Any:
    """Decode arguments sent as a JSON string; mappings pass through."""
    if not isinstance(raw, str):
        return raw
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolValidationError("", f"arguments are not valid JSON: {e}") from e


def _result_message(call: PendingCall) -> ToolResultMessage:
    assert call.result is not None
    return {
        "tool_call_id": call.call_id,
        "name": call.name,
        "content": call.result.llm_content,
        "is_error": call.result.is_error,
    }
