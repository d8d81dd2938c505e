"""Adapter that runs a built-in executor function behind the ToolAdapter protocol."""

import asyncio
import functools
import inspect
import time
from collections.abc import Callable
from typing import Any

from chat_cli.telemetry import get_logger
from chat_cli.tools.errors import ErrorKind, ToolError
from chat_cli.tools.types import RiskClass, ToolDefinition, ToolResult, ValidatedArguments

log = get_logger(__name__)

_MUTATING_RISKS = frozenset({RiskClass.MUTATING, RiskClass.DESTRUCTIVE})


class BuiltinAdapter:
    """Runs an executor with the validated arguments it declares.

    Arguments the definition does not declare are dropped before the call.
    Sync executors run in the default thread pool so they never block the
    event loop. A worker thread cannot be cancelled, so sync executors that
    mutate state are not put under the time budget: a timed-out write could
    still land after the timeout was reported. Every failure comes back as an
    error ToolResult.
    """

    available = True

    def __init__(
        self,
        definition: ToolDefinition,
        executor: Callable[..., Any],
        describe: Callable[[dict[str, Any]], str] | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            definition: Tool definition; its properties bound the arguments passed.
            executor: Function taking the tool's arguments as keywords, already
                bound (e.g. via functools.partial) to any runtime context.
            describe: Short description of a pending call for confirmation prompts.
            timeout_seconds: Time budget, or None to let the executor manage its own.
        """
        self.definition = definition
        self._executor = executor
        self._describe = describe
        self.timeout_seconds = timeout_seconds
        self._is_async = inspect.iscoroutinefunction(
            executor.func if isinstance(executor, functools.partial) else executor
        )
        self._enforce_timeout = timeout_seconds is not None and (
            self._is_async or definition.risk_class not in _MUTATING_RISKS
        )

    def describe_call(self, arguments: dict[str, Any]) -> str:
        if self._describe is None:
            return f"Run {self.definition.name}"
        try:
            return self._describe(arguments)
        except (TypeError, ValueError):
            return f"Run {self.definition.name}"

    async def invoke(self, arguments: ValidatedArguments) -> ToolResult:
        name = self.definition.name
        declared = self.definition.parameters.properties
        kwargs = {k: v for k, v in arguments.values.items() if k in declared and v is not None}

        start_time = time.monotonic()
        try:
            if self._is_async:
                call = self._executor(**kwargs)
            else:
                loop = asyncio.get_running_loop()
                call = loop.run_in_executor(None, functools.partial(self._executor, **kwargs))
            if self._enforce_timeout:
                result = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                result = await call
        except ToolError as e:
            result = ToolResult.from_error(name, e)
        except asyncio.TimeoutError:
            result = ToolResult.error(
                name, f"Tool timed out after {self.timeout_seconds}s", ErrorKind.TIMEOUT
            )
        except PermissionError as e:
            result = ToolResult.error(name, f"Permission denied: {e}", ErrorKind.EXECUTION_ERROR)
        except Exception as e:
            log.error("builtin_tool_crashed", tool_name=name, error=str(e), exc_info=True)
            result = ToolResult.error(name, f"{type(e).__name__}: {e}", ErrorKind.EXECUTION_ERROR)

        if not isinstance(result, ToolResult):
            result = ToolResult.ok(name, result)
        return result.with_latency((time.monotonic() - start_time) * 1000)
