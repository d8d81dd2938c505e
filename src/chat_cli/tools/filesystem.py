"""Filesystem tools: list_directory, read_file, write_file and replace.

Executors take their arguments as keyword parameters, raise ``ToolError``
subclasses on failure and return a ``ToolResult`` on success. All paths must
be absolute.
"""

import os
import re
from pathlib import Path
from typing import Any

from chat_cli.tools.errors import (
    AmbiguousMatchError,
    FileTooLargeError,
    InvalidArgumentError,
    IsDirectoryError,
    NoMatchError,
    NotDirectoryError,
    NotFoundError,
    ParentMissingError,
)
from chat_cli.tools.ignore import GitIgnoreFilter, detect_file_kind, encode_payload, glob_to_regex
from chat_cli.tools.schema import boolean, number, object_schema, string, string_array
from chat_cli.tools.types import RiskClass, ToolDefinition, ToolResult


def require_absolute(path: str, field: str) -> Path:
    """Path for ``path``, which must be absolute."""
    candidate = Path(os.path.expanduser(path))
    if not candidate.is_absolute():
        raise InvalidArgumentError(f"{field} must be absolute, but was relative: {path}")
    return candidate


def _count_lines(text: str) -> int:
    return len(text.splitlines())


# ---------------------------------------------------------------------------
# list_directory
# ---------------------------------------------------------------------------


def list_directory_executor(
    path: str, ignore: list[str] | None = None, respect_git_ignore: bool = True
) -> ToolResult:
    """List immediate children of a directory.

    Args:
        path: Absolute directory path.
        ignore: Glob patterns matched against entry names.
        respect_git_ignore: Apply ``.gitignore`` rules when inside a repository.

    Returns:
        ToolResult whose payload lists directories and files separately, each
        sorted by name.
    """
    directory = require_absolute(path, "path")
    if not directory.exists():
        raise NotFoundError(f"Directory does not exist: {path}")
    if not directory.is_dir():
        raise NotDirectoryError(f"Path is not a directory: {path}")

    try:
        ignore_patterns = [glob_to_regex(pattern) for pattern in ignore or []]
    except re.error as e:
        raise InvalidArgumentError(f"Invalid ignore pattern: {e}") from e
    git_filter = GitIgnoreFilter.for_path(directory) if respect_git_ignore else None

    directories: list[str] = []
    files: list[str] = []
    for entry in directory.iterdir():
        if any(pattern.match(entry.name) for pattern in ignore_patterns):
            continue
        is_dir = entry.is_dir()
        if git_filter is not None and git_filter.is_ignored(entry, is_dir):
            continue
        (directories if is_dir else files).append(entry.name)
    directories.sort()
    files.sort()

    total = len(directories) + len(files)
    display = [f"Directory: {path}", f"Total items: {total}", ""]
    if directories:
        display.append("Directories:")
        display.extend(f"  {name}/" for name in directories)
        display.append("")
    if files:
        display.append("Files:")
        display.extend(f"  {name}" for name in files)

    payload = {
        "directory": path,
        "total_items": total,
        "directories": directories,
        "files": files,
    }
    return ToolResult.ok("list_directory", payload, "\n".join(display).rstrip())


def describe_list_directory(arguments: dict[str, Any]) -> str:
    return f"List contents of directory: {arguments.get('path', '?')}"


list_directory_tool = ToolDefinition(
    name="list_directory",
    description=(
        "Lists the names of files and subdirectories directly within a specified directory "
        "path. Can optionally ignore entries matching provided glob patterns."
    ),
    parameters=object_schema(
        {
            "path": string(
                "The absolute path to the directory to list (must be absolute, not relative)"
            ),
            "ignore": string_array("List of glob patterns to ignore"),
            "respect_git_ignore": boolean(
                "Optional: Whether to respect .gitignore patterns when listing files. Only "
                "available in git repositories. Defaults to true."
            ),
        },
        required=["path"],
    ),
    risk_class=RiskClass.READ_ONLY,
)


# ---------------------------------------------------------------------------
# read_file
# ---------------------------------------------------------------------------


def read_file_executor(
    absolute_path: str,
    offset: float | None = None,
    limit: float | None = None,
    *,
    max_size_mb: float = 20,
) -> ToolResult:
    """Read a file, optionally a window of lines.

    Images and PDFs are returned as base64 payloads instead of text.
    """
    file_path = require_absolute(absolute_path, "absolute_path")
    if offset is not None and limit is None:
        raise InvalidArgumentError("offset requires limit to be set")
    if not file_path.exists():
        raise NotFoundError(f"File does not exist: {absolute_path}")
    if file_path.is_dir():
        raise IsDirectoryError(f"Path is a directory, not a file: {absolute_path}")

    size_bytes = file_path.stat().st_size
    max_bytes = int(max_size_mb * 1024 * 1024)
    if size_bytes > max_bytes:
        raise FileTooLargeError(
            f"File size {size_bytes} bytes exceeds limit {max_bytes} bytes ({max_size_mb} MB)"
        )

    kind, mime_type = detect_file_kind(file_path)
    if kind in ("image", "pdf") and mime_type is not None:
        payload = {"file_path": absolute_path, **encode_payload(file_path, mime_type)}
        return ToolResult.ok(
            "read_file",
            payload,
            f"Read {kind} file {file_path.name} ({mime_type}, {size_bytes} bytes)",
            media=True,
        )
    if kind == "binary":
        raise InvalidArgumentError(f"Cannot display content of binary file: {absolute_path}")

    lines = file_path.read_text(encoding="utf-8", errors="replace").splitlines()
    total = len(lines)
    start = int(offset) if offset is not None else 0
    if start > 0 and start >= total:
        raise InvalidArgumentError(f"Offset {start} is beyond file length {total}")
    end = min(start + int(limit), total) if limit is not None else total
    selected = lines[start:end]

    payload = {
        "file_path": absolute_path,
        "content": "\n".join(selected),
        "total_lines": total,
        "start_line": start,
        "end_line": max(end - 1, start),
        "truncated": len(selected) < total,
    }
    display = [
        f"File: {absolute_path}",
        f"Lines: {total} (showing {start + 1}-{end})",
        "",
    ]
    display.extend(f"{start + i + 1:4} | {line}" for i, line in enumerate(selected))
    return ToolResult.ok("read_file", payload, "\n".join(display))


def describe_read_file(arguments: dict[str, Any]) -> str:
    name = Path(str(arguments.get("absolute_path", ""))).name or "file"
    offset, limit = arguments.get("offset"), arguments.get("limit")
    if offset is not None and limit is not None:
        return f"Read lines {int(offset)}-{int(offset) + int(limit) - 1} from {name}"
    if limit is not None:
        return f"Read first {int(limit)} lines from {name}"
    return f"Read file: {name}"


read_file_tool = ToolDefinition(
    name="read_file",
    description=(
        "Reads and returns the content of a specified file from the local filesystem. "
        "Handles text, images (PNG, JPG, GIF, WEBP, SVG, BMP), and PDF files. For text "
        "files, it can read specific line ranges."
    ),
    parameters=object_schema(
        {
            "absolute_path": string(
                "The absolute path to the file to read (e.g., '/home/user/project/file.txt'). "
                "Relative paths are not supported. You must provide an absolute path."
            ),
            "offset": number(
                "Optional: For text files, the 0-based line number to start reading from. "
                "Requires 'limit' to be set. Use for paginating through large files.",
                minimum=0,
            ),
            "limit": number(
                "Optional: For text files, maximum number of lines to read. Use with 'offset' "
                "to paginate through large files. If omitted, reads the entire file (if "
                "feasible, up to a default limit).",
                minimum=1,
            ),
        },
        required=["absolute_path"],
    ),
    risk_class=RiskClass.READ_ONLY,
)


# ---------------------------------------------------------------------------
# write_file
# ---------------------------------------------------------------------------


def write_file_executor(
    file_path: str, content: str, *, create_parents: bool = False
) -> ToolResult:
    """Create or overwrite a file."""
    path = require_absolute(file_path, "file_path")
    if path.is_dir():
        raise IsDirectoryError(f"Path is a directory, not a file: {file_path}")
    if not path.parent.exists():
        if not create_parents:
            raise ParentMissingError(f"Parent directory does not exist: {path.parent}")
        path.parent.mkdir(parents=True, exist_ok=True)

    existed = path.exists()
    original_size = path.stat().st_size if existed else 0
    data = content.encode("utf-8")
    path.write_bytes(data)

    line_count = _count_lines(content)
    operation = "updated" if existed else "created"
    payload = {
        "file_path": file_path,
        "operation": operation,
        "bytes_written": len(data),
        "lines_written": line_count,
        "original_size": original_size,
    }
    display = [
        f"File: {file_path}",
        f"Operation: {operation.capitalize()}",
        f"Size: {len(data)} bytes ({line_count} lines)",
        f"Previous size: {original_size} bytes" if existed else "New file created",
    ]
    return ToolResult.ok("write_file", payload, "\n".join(display), files_touched=[file_path])


def describe_write_file(arguments: dict[str, Any]) -> str:
    content = str(arguments.get("content", ""))
    name = Path(str(arguments.get("file_path", ""))).name or "file"
    return f"Write {len(content.encode('utf-8'))} bytes ({_count_lines(content)} lines) to {name}"


write_file_tool = ToolDefinition(
    name="write_file",
    description="Writes content to a specified file in the local filesystem.",
    parameters=object_schema(
        {
            "file_path": string(
                "The absolute path to the file to write to (e.g., "
                "'/home/user/project/file.txt'). Relative paths are not supported."
            ),
            "content": string("The content to write to the file."),
        },
        required=["file_path", "content"],
    ),
    risk_class=RiskClass.MUTATING,
    requires_confirmation=True,
)


# ---------------------------------------------------------------------------
# replace
# ---------------------------------------------------------------------------


def replace_executor(
    file_path: str, old_string: str, new_string: str, expected_replacements: float = 1
) -> ToolResult:
    """Replace exact occurrences of ``old_string``.

    The file is only written when the number of occurrences equals
    ``expected_replacements``.
    """
    path = require_absolute(file_path, "file_path")
    if not old_string:
        raise InvalidArgumentError("old_string cannot be empty")
    expected = int(expected_replacements)
    if expected < 1:
        raise InvalidArgumentError("expected_replacements must be greater than 0")
    if not path.exists():
        raise NotFoundError(f"File does not exist: {file_path}")
    if path.is_dir():
        raise IsDirectoryError(f"Path is a directory, not a file: {file_path}")

    # newline="" keeps CRLF intact so old_string matches the bytes on disk.
    try:
        with path.open(encoding="utf-8", newline="") as handle:
            original = handle.read()
    except UnicodeDecodeError as e:
        raise InvalidArgumentError(f"File is not valid UTF-8 text: {file_path}") from e

    actual = original.count(old_string)
    if actual == 0:
        raise NoMatchError(
            f"String not found in {file_path}. Check the exact text including whitespace "
            "and line endings."
        )
    if actual != expected:
        raise AmbiguousMatchError(
            f"Expected {expected} occurrence(s) of old_string but found {actual} in "
            f"{file_path}. Add more context or set expected_replacements."
        )

    updated = original.replace(old_string, new_string)
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(updated)

    payload = {
        "file_path": file_path,
        "replacements_made": actual,
        "original_size": len(original),
        "new_size": len(updated),
        "size_change": len(updated) - len(original),
        "original_lines": _count_lines(original),
        "new_lines": _count_lines(updated),
    }
    display = [
        f"File: {file_path}",
        f"Replacements made: {actual}",
        f"Size change: {payload['size_change']} bytes",
        f"Lines: {payload['original_lines']} -> {payload['new_lines']}",
    ]
    return ToolResult.ok("replace", payload, "\n".join(display), files_touched=[file_path])


def describe_replace(arguments: dict[str, Any]) -> str:
    name = Path(str(arguments.get("file_path", ""))).name or "file"
    expected = int(arguments.get("expected_replacements") or 1)
    if expected == 1:
        return f"Replace text in {name}"
    return f"Replace {expected} occurrences in {name}"


replace_tool = ToolDefinition(
    name="replace",
    description=(
        "Replaces text within a file. By default, replaces a single occurrence, but can "
        "replace multiple occurrences when `expected_replacements` is specified. This tool "
        "requires providing significant context around the change to ensure precise targeting."
    ),
    parameters=object_schema(
        {
            "file_path": string(
                "The absolute path to the file to modify. Must start with '/'."
            ),
            "old_string": string(
                "The exact literal text to replace, preferably unescaped. For single "
                "replacements (default), include at least 3 lines of context BEFORE and AFTER "
                "the target text, matching whitespace and indentation precisely. For multiple "
                "replacements, specify expected_replacements parameter. If this string is not "
                "the exact literal text (i.e. you escaped it) or does not match exactly, the "
                "tool will fail."
            ),
            "new_string": string(
                "The exact literal text to replace `old_string` with, preferably unescaped. "
                "Provide the EXACT text. Ensure the resulting code is correct and idiomatic."
            ),
            "expected_replacements": number(
                "Number of replacements expected. Defaults to 1 if not specified. Use when you "
                "want to replace multiple occurrences.",
                minimum=1,
            ),
        },
        required=["file_path", "old_string", "new_string"],
    ),
    risk_class=RiskClass.MUTATING,
    requires_confirmation=True,
)
