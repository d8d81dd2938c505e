"""save_memory and the append-only fact store behind it."""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from chat_cli.telemetry import FACT_SAVED, get_logger
from chat_cli.tools.errors import InvalidArgumentError
from chat_cli.tools.schema import object_schema, string
from chat_cli.tools.types import RiskClass, ToolDefinition, ToolResult

log = get_logger(__name__)


class FactStore:
    """Append-only text file of ``[timestamp] fact`` lines.

    Appends are serialized with a lock; existing lines are never rewritten.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def append(self, fact: str) -> dict[str, Any]:
        """Append one fact and report the file sizes before and after."""
        # Keep one fact per line.
        fact = " ".join(fact.split())
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        entry = f"[{timestamp}] {fact}\n"

        with self._lock:
            existed = self.path.exists()
            previous_size = self.path.stat().st_size if existed else 0
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(entry)
            new_size = self.path.stat().st_size

        log.info(FACT_SAVED, memory_file=str(self.path), bytes_added=new_size - previous_size)
        return {
            "fact": fact,
            "timestamp": timestamp,
            "memory_file": str(self.path),
            "file_existed": existed,
            "previous_size": previous_size,
            "new_size": new_size,
        }

    def facts(self) -> list[str]:
        """Stored lines, oldest first."""
        if not self.path.exists():
            return []
        return self.path.read_text(encoding="utf-8").splitlines()


def save_memory_executor(fact: str, *, store: FactStore) -> ToolResult:
    """Append ``fact`` to the store."""
    if not fact.strip():
        raise InvalidArgumentError("Fact cannot be empty")
    info = store.append(fact)
    display = f"Saved to memory ({info['memory_file']}): {info['fact']}"
    return ToolResult.ok("save_memory", info, display)


def describe_save_memory(arguments: dict[str, Any]) -> str:
    fact = str(arguments.get("fact", ""))
    preview = f"{fact[:50]}..." if len(fact) > 50 else fact
    return f"Save to memory: {preview}"


save_memory_tool = ToolDefinition(
    name="save_memory",
    description=(
        "Saves a specific piece of information or fact to your long-term memory. Use this "
        "tool when the user explicitly asks you to remember something or when the user states "
        "a clear, concise fact about themselves, their preferences, or their environment that "
        "seems important for you to retain for future interactions."
    ),
    parameters=object_schema(
        {
            "fact": string(
                "The specific fact or piece of information to remember. Should be a clear, "
                "self-contained statement."
            ),
        },
        required=["fact"],
    ),
    risk_class=RiskClass.MUTATING,
)
