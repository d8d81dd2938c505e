"""Type definitions for the model collaborator boundary.

The orchestrator only needs one thing from a language model: given the
conversation so far and the tools on offer, return a reply that may request
tool calls. Provider HTTP clients live outside this package and adapt their
wire format to these types.
"""

from typing import Any, Protocol, runtime_checkable

from typing_extensions import NotRequired, TypedDict


class ToolCall(TypedDict):
    """Tool call structure for function calling.

    Attributes:
        id: Identifier correlating the call with its result within one round.
            Providers that omit it get a generated ``<name>-<index>`` id.
        name: Name of the tool to call.
        arguments: JSON string or already-decoded mapping of arguments.
    """

    id: NotRequired[str]
    name: str
    arguments: str | dict[str, Any]


class LLMResponse(TypedDict):
    """One model reply.

    Attributes:
        content: Natural language content (may be empty when only tools are called).
        tool_calls: Tool calls the model wants executed; empty ends the turn.
        response_id: Provider response id, if any.
    """

    content: str
    tool_calls: list[ToolCall]
    response_id: NotRequired[str | None]


@runtime_checkable
class ModelClient(Protocol):
    """Anything that can produce the next assistant reply."""

    async def respond(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> LLMResponse:
        """Return the next reply for ``messages`` with ``tools`` available."""
        ...


class LLMClientError(Exception):
    """Base exception for model collaborator errors."""

    pass


class ScriptError(LLMClientError):
    """Raised when a scripted conversation file cannot be loaded."""

    pass
