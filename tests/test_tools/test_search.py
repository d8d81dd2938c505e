"""Tests for glob, search_file_content and read_many_files."""

import json
import os
from pathlib import Path

import pytest

from chat_cli.tools.errors import InvalidArgumentError, NotFoundError
from chat_cli.tools.ignore import detect_file_kind, glob_matches
from chat_cli.tools.search import (
    glob_executor,
    read_many_files_executor,
    search_file_content_executor,
)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Small project tree with controlled modification times."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "old.py").write_text("def old():\n    return 1\n")
    (tmp_path / "src" / "new.py").write_text("def new():\n    return 2\n")
    (tmp_path / "README.md").write_text("# Project\nTODO: write docs\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.py").write_text("def dep():\n    pass\n")
    os.utime(tmp_path / "src" / "old.py", (1_000_000, 1_000_000))
    os.utime(tmp_path / "node_modules" / "dep.py", (500_000, 500_000))
    os.utime(tmp_path / "src" / "new.py", (2_000_000, 2_000_000))
    return tmp_path


def test_glob_matches_semantics() -> None:
    """Test single stars stay inside a segment and ** crosses them."""
    assert glob_matches("*.py", "a.py")
    assert not glob_matches("*.py", "src/a.py")
    assert glob_matches("**/*.py", "a.py")
    assert glob_matches("**/*.py", "src/pkg/a.py")
    assert glob_matches("src/*.{py,md}", "src/a.md")
    assert not glob_matches("*.PY", "a.py")
    assert glob_matches("*.PY", "a.py", case_sensitive=False)


def test_glob_newest_first(project: Path) -> None:
    """Test glob results are sorted by modification time, newest first."""
    result = glob_executor("**/*.py", root=project)
    payload = json.loads(result.llm_content)

    assert payload["files"] == [
        str(project / "src" / "new.py"),
        str(project / "src" / "old.py"),
        str(project / "node_modules" / "dep.py"),
    ]


def test_glob_case_insensitive_by_default(project: Path) -> None:
    """Test glob ignores case unless asked not to."""
    payload = json.loads(glob_executor("readme.MD", root=project).llm_content)
    assert payload["files"] == [str(project / "README.md")]

    payload = json.loads(
        glob_executor("readme.MD", case_sensitive=True, root=project).llm_content
    )
    assert payload["total_matches"] == 0


def test_glob_no_matches(project: Path) -> None:
    """Test an unmatched pattern is a successful empty result."""
    result = glob_executor("*.rs", root=project)

    assert result.is_error is False
    assert "No files found" in result.display_content


def test_glob_bad_path(project: Path) -> None:
    """Test a missing search path is reported."""
    with pytest.raises(NotFoundError):
        glob_executor("*.py", path=str(project / "missing"), root=project)
    with pytest.raises(InvalidArgumentError):
        glob_executor("   ", root=project)


def test_search_file_content(project: Path) -> None:
    """Test matching lines come back with 1-based line numbers."""
    payload = json.loads(search_file_content_executor(r"return \d", root=project).llm_content)

    found = {(Path(m["file_path"]).name, m["line_number"]) for m in payload["matches"]}
    assert found == {("old.py", 2), ("new.py", 2)}
    assert payload["files_with_matches"] == 2


def test_search_skips_dependency_dirs(project: Path) -> None:
    """Test node_modules is never searched."""
    payload = json.loads(search_file_content_executor("def dep", root=project).llm_content)
    assert payload["total_matches"] == 0


def test_search_include_filter(project: Path) -> None:
    """Test the include glob narrows the files searched."""
    payload = json.loads(
        search_file_content_executor("TODO|def", include="*.md", root=project).llm_content
    )

    assert [m["line"] for m in payload["matches"]] == ["TODO: write docs"]


def test_search_invalid_regex(project: Path) -> None:
    """Test an invalid regular expression is an invalid argument."""
    with pytest.raises(InvalidArgumentError, match="Invalid regex"):
        search_file_content_executor("(unclosed", root=project)


def test_read_many_files_concatenates(project: Path) -> None:
    """Test text files are joined under path headers."""
    result = read_many_files_executor(["src/*.py"], root=project)
    payload = json.loads(result.llm_content)

    new_file = project / "src" / "new.py"
    old_file = project / "src" / "old.py"
    assert payload["files_read"] == [str(new_file), str(old_file)]
    assert f"--- {new_file} ---\ndef new():" in payload["content"]
    assert f"--- {old_file} ---\ndef old():" in payload["content"]


def test_read_many_files_default_excludes(project: Path) -> None:
    """Test default excludes drop dependency directories unless disabled."""
    payload = json.loads(read_many_files_executor(["**/*.py"], root=project).llm_content)
    assert str(project / "node_modules" / "dep.py") not in payload["files_read"]

    payload = json.loads(
        read_many_files_executor(["**/*.py"], useDefaultExcludes=False, root=project).llm_content
    )
    assert str(project / "node_modules" / "dep.py") in payload["files_read"]


def test_read_many_files_skips_unrequested_media(project: Path) -> None:
    """Test images are only returned when named explicitly."""
    (project / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 8)

    payload = json.loads(read_many_files_executor(["*"], root=project).llm_content)
    assert payload["media"] == []
    assert str(project / "logo.png") not in payload["files_read"]

    payload = json.loads(
        read_many_files_executor(["*"], useDefaultExcludes=False, root=project).llm_content
    )
    assert payload["media"] == []
    assert any(item["reason"] == "image not requested" for item in payload["skipped"])

    payload = json.loads(read_many_files_executor(["*.png"], root=project).llm_content)
    assert payload["media"][0]["mime_type"] == "image/png"


def test_read_many_files_empty_path(project: Path) -> None:
    """Test an empty path entry is rejected."""
    with pytest.raises(InvalidArgumentError, match="Path cannot be empty"):
        read_many_files_executor([" "], root=project)


def test_detect_file_kind(tmp_path: Path) -> None:
    """Test sniffing distinguishes text, binary and BMP."""
    text = tmp_path / "a.txt"
    text.write_text("hello")
    blob = tmp_path / "a.bin"
    blob.write_bytes(b"\x00\xff\x00")
    fake_bmp = tmp_path / "notes.txt"
    fake_bmp.write_text("BM is not a bitmap here")
    bitmap = tmp_path / "real.bmp"
    bitmap.write_bytes(b"BM" + b"\x00" * 16)

    assert detect_file_kind(text) == ("text", None)
    assert detect_file_kind(blob) == ("binary", None)
    assert detect_file_kind(fake_bmp) == ("text", None)
    assert detect_file_kind(bitmap) == ("image", "image/bmp")
