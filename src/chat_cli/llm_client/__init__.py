"""Model collaborator boundary: reply types, the client protocol and a scripted client."""

from chat_cli.llm_client.mock import ScriptedLLMClient
from chat_cli.llm_client.types import (
    LLMClientError,
    LLMResponse,
    ModelClient,
    ScriptError,
    ToolCall,
)

__all__ = [
    "LLMClientError",
    "LLMResponse",
    "ModelClient",
    "ScriptError",
    "ScriptedLLMClient",
    "ToolCall",
]
