"""Scripted model client for offline runs and tests.

Replays canned replies in order and records every submission so tests can
inspect exactly what the orchestrator sent. Replies can also be triggered by
a phrase in the latest user message.
"""

import copy
import json
from pathlib import Path
from typing import Any

from chat_cli.llm_client.types import LLMResponse, ScriptError, ToolCall
from chat_cli.telemetry import get_logger

log = get_logger(__name__)

DEFAULT_REPLY = "Mock LLM: No responses configured"


class ScriptedLLMClient:
    """ModelClient that replays a fixed script.

    Once the script is exhausted every further reply is ``default_reply``
    with no tool calls, so a turn always terminates.
    """

    def __init__(
        self,
        responses: list[LLMResponse] | None = None,
        default_reply: str = DEFAULT_REPLY,
    ) -> None:
        self.responses: list[LLMResponse] = list(responses or [])
        self.default_reply = default_reply
        self.response_index = 0
        self.submissions: list[dict[str, Any]] = []
        self._triggers: dict[str, list[ToolCall]] = {}

    def add_trigger(self, phrase: str, tool_calls: list[ToolCall]) -> None:
        """Answer any user message containing ``phrase`` with ``tool_calls``."""
        self._triggers[phrase.lower()] = list(tool_calls)

    @classmethod
    def from_json(cls, path: Path) -> "ScriptedLLMClient":
        """Load a script file.

        The file holds either a list of replies or an object with
        ``responses``, optional ``triggers`` (phrase to tool-call list) and
        optional ``default_reply``.

        Raises:
            ScriptError: The file is missing or malformed.
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ScriptError(f"Cannot read script {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ScriptError(f"Script {path} is not valid JSON: {e}") from e

        if isinstance(data, list):
            data = {"responses": data}
        if not isinstance(data, dict):
            raise ScriptError(f"Script {path} must be a list or an object")

        responses = [_normalize_response(item, path) for item in data.get("responses", [])]
        client = cls(responses, default_reply=data.get("default_reply", DEFAULT_REPLY))
        for phrase, calls in data.get("triggers", {}).items():
            triggered = _normalize_response({"tool_calls": calls}, path)
            client.add_trigger(phrase, triggered["tool_calls"])
        log.debug("mock_script_loaded", path=str(path), responses=len(responses))
        return client

    @property
    def remaining(self) -> int:
        return len(self.responses) - self.response_index

    async def respond(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> LLMResponse:
        self.submissions.append(
            {
                "messages": copy.deepcopy(messages),
                "tools": [tool.get("name") for tool in tools],
            }
        )

        last = messages[-1] if messages else {}
        if last.get("role") == "user":
            text = str(last.get("content", ""))
            for phrase, calls in self._triggers.items():
                if phrase in text.lower():
                    return {
                        "content": f"I need to call a function to help with: {text}",
                        "tool_calls": copy.deepcopy(calls),
                    }

        if self.response_index < len(self.responses):
            response = self.responses[self.response_index]
            self.response_index += 1
            return copy.deepcopy(response)
        return {"content": self.default_reply, "tool_calls": []}


def _normalize_response(item: Any, path: Path) -> LLMResponse:
    if isinstance(item, str):
        return {"content": item, "tool_calls": []}
    if not isinstance(item, dict):
        raise ScriptError(f"Script {path}: each reply must be a string or an object")

    calls: list[ToolCall] = []
    for call in item.get("tool_calls", []):
        if not isinstance(call, dict) or not call.get("name"):
            raise ScriptError(f"Script {path}: every tool call needs a 'name'")
        normalized: ToolCall = {"name": call["name"], "arguments": call.get("arguments", {})}
        if "id" in call:
            normalized["id"] = str(call["id"])
        calls.append(normalized)
    return {"content": str(item.get("content", "")), "tool_calls": calls}
