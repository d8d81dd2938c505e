"""Tests for save_memory and FactStore."""

import json
import re
from pathlib import Path

import pytest

from chat_cli.tools.errors import InvalidArgumentError
from chat_cli.tools.memory import FactStore, describe_save_memory, save_memory_executor


def test_append_creates_file(tmp_path: Path) -> None:
    """Test the first fact creates the file and its parent directory."""
    store = FactStore(tmp_path / "memory" / "facts.txt")

    info = store.append("User prefers tabs")

    assert info["file_existed"] is False
    assert info["previous_size"] == 0
    assert store.facts()[0].endswith("] User prefers tabs")
    assert re.match(r"^\[\d{4}-\d{2}-\d{2}T", store.facts()[0])


def test_append_only(tmp_path: Path) -> None:
    """Test later facts are appended without rewriting earlier lines."""
    store = FactStore(tmp_path / "facts.txt")
    store.append("first")
    first_line = store.facts()[0]

    info = store.append("second\nfact")

    assert store.facts()[0] == first_line
    assert store.facts()[1].endswith("] second fact")
    assert info["file_existed"] is True
    assert info["new_size"] > info["previous_size"]


def test_save_memory_executor(tmp_path: Path) -> None:
    """Test the executor result reports the stored fact."""
    store = FactStore(tmp_path / "facts.txt")

    result = save_memory_executor("Project uses Python 3.11", store=store)

    assert json.loads(result.llm_content)["fact"] == "Project uses Python 3.11"
    assert result.display_content.startswith("Saved to memory")


def test_save_memory_rejects_blank(tmp_path: Path) -> None:
    """Test a blank fact is an invalid argument and nothing is written."""
    store = FactStore(tmp_path / "facts.txt")

    with pytest.raises(InvalidArgumentError):
        save_memory_executor("   ", store=store)
    assert store.facts() == []


def test_describe_save_memory_preview() -> None:
    """Test long facts are previewed."""
    assert describe_save_memory({"fact": "short"}) == "Save to memory: short"
    assert describe_save_memory({"fact": "x" * 60}) == f"Save to memory: {'x' * 50}..."
