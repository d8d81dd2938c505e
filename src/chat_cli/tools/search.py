"""Search tools: glob, search_file_content and read_many_files."""

import os
import re
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from chat_cli.tools.errors import InvalidArgumentError, NotDirectoryError, NotFoundError
from chat_cli.tools.filesystem import require_absolute
from chat_cli.tools.ignore import (
    ALWAYS_SKIPPED_DIRS,
    DEFAULT_EXCLUDES,
    GitIgnoreFilter,
    detect_file_kind,
    encode_payload,
    glob_to_regex,
)
from chat_cli.tools.schema import boolean, object_schema, string, string_array
from chat_cli.tools.types import ParameterSchema, RiskClass, SchemaType, ToolDefinition, ToolResult

# Dependency and build directories search_file_content never descends into.
_SEARCH_SKIPPED_DIRS = frozenset({"node_modules", "target", "build", "dist", "__pycache__"})

_GLOB_CHARS = frozenset("*?[{")


def iter_files(
    base: Path,
    git_filter: GitIgnoreFilter | None = None,
    skip_dir: Callable[[Path], bool] | None = None,
) -> Iterator[Path]:
    """Yield files below ``base`` depth-first, pruning ignored directories."""
    for dirpath, dirnames, filenames in os.walk(base):
        current = Path(dirpath)
        kept = []
        for name in sorted(dirnames):
            child = current / name
            if name in ALWAYS_SKIPPED_DIRS:
                continue
            if git_filter is not None and git_filter.is_ignored(child, True):
                continue
            if skip_dir is not None and skip_dir(child):
                continue
            kept.append(name)
        dirnames[:] = kept
        for name in sorted(filenames):
            child = current / name
            if git_filter is not None and git_filter.is_ignored(child, False):
                continue
            yield child


def _resolve_root(path: str | None, default_root: Path) -> Path:
    if path is None:
        return default_root
    root = require_absolute(path, "path")
    if not root.exists():
        raise NotFoundError(f"Search path does not exist: {path}")
    return root


# ---------------------------------------------------------------------------
# glob
# ---------------------------------------------------------------------------


def glob_executor(
    pattern: str,
    path: str | None = None,
    case_sensitive: bool = False,
    respect_git_ignore: bool = True,
    *,
    root: Path,
) -> ToolResult:
    """Find files matching a glob, newest first.

    Ties in modification time are broken by path, ascending.
    """
    if not pattern.strip():
        raise InvalidArgumentError("Pattern cannot be empty")
    search_root = _resolve_root(path, root)
    if not search_root.is_dir():
        raise NotDirectoryError(f"Search path is not a directory: {path}")

    absolute_pattern = pattern.startswith("/")
    try:
        regex = glob_to_regex(pattern, case_sensitive)
    except re.error as e:
        raise InvalidArgumentError(f"Invalid glob pattern '{pattern}': {e}") from e
    git_filter = GitIgnoreFilter.for_path(search_root) if respect_git_ignore else None

    matched: list[tuple[float, str]] = []
    for file_path in iter_files(search_root, git_filter):
        if absolute_pattern:
            subject = str(file_path)
        else:
            subject = file_path.relative_to(search_root).as_posix()
        if regex.match(subject):
            try:
                mtime = file_path.stat().st_mtime
            except OSError:
                continue
            matched.append((mtime, str(file_path)))
    matched.sort(key=lambda item: (-item[0], item[1]))
    files = [file_path for _, file_path in matched]

    payload = {
        "pattern": pattern,
        "search_path": str(search_root),
        "case_sensitive": case_sensitive,
        "total_matches": len(files),
        "files": files,
    }
    display = [
        f"Pattern: {pattern}",
        f"Search path: {search_root}",
        f"Total matches: {len(files)}",
        "",
    ]
    if not files:
        display.append("No files found matching the pattern.")
    else:
        display.append("Files (sorted by modification time, newest first):")
        display.extend(f"  {file_path}" for file_path in files[:50])
        if len(files) > 50:
            display.append(f"  ... and {len(files) - 50} more files")
    return ToolResult.ok("glob", payload, "\n".join(display))


def describe_glob(arguments: dict[str, Any]) -> str:
    where = arguments.get("path") or "current directory"
    return f"Find files matching '{arguments.get('pattern', '')}' in {where}"


glob_tool = ToolDefinition(
    name="glob",
    description=(
        "Efficiently finds files matching specific glob patterns (e.g., `src/**/*.ts`, "
        "`**/*.md`), returning absolute paths sorted by modification time (newest first). "
        "Ideal for quickly locating files based on their name or path structure, especially "
        "in large codebases."
    ),
    parameters=object_schema(
        {
            "pattern": string(
                "The glob pattern to match against (e.g., '**/*.py', 'docs/*.md')."
            ),
            "path": string(
                "Optional: The absolute path to the directory to search within. If omitted, "
                "searches the root directory."
            ),
            "case_sensitive": boolean(
                "Optional: Whether the search should be case-sensitive. Defaults to false."
            ),
            "respect_git_ignore": boolean(
                "Optional: Whether to respect .gitignore patterns when finding files. Only "
                "available in git repositories. Defaults to true."
            ),
        },
        required=["pattern"],
    ),
    risk_class=RiskClass.READ_ONLY,
)


# ---------------------------------------------------------------------------
# search_file_content
# ---------------------------------------------------------------------------


def search_file_content_executor(
    pattern: str, path: str | None = None, include: str | None = None, *, root: Path
) -> ToolResult:
    """Grep text files below a directory for a regular expression.

    Returns one match record per matching line with its 1-based line number.
    """
    if not pattern:
        raise InvalidArgumentError("Pattern cannot be empty")
    try:
        regex = re.compile(pattern)
    except re.error as e:
        raise InvalidArgumentError(f"Invalid regex pattern '{pattern}': {e}") from e
    search_root = _resolve_root(path, root)

    include_regex = None
    if include:
        try:
            include_regex = glob_to_regex(include)
        except re.error as e:
            raise InvalidArgumentError(f"Invalid include pattern '{include}': {e}") from e
    match_path = include is not None and "/" in include

    if search_root.is_file():
        candidates: Iterator[Path] = iter([search_root])
        base = search_root.parent
    else:
        candidates = iter_files(
            search_root,
            GitIgnoreFilter.for_path(search_root),
            skip_dir=lambda d: d.name in _SEARCH_SKIPPED_DIRS,
        )
        base = search_root

    matches: list[dict[str, Any]] = []
    files_with_matches = 0
    for file_path in candidates:
        if include_regex is not None:
            subject = file_path.relative_to(base).as_posix() if match_path else file_path.name
            if not include_regex.match(subject):
                continue
        try:
            if detect_file_kind(file_path)[0] != "text":
                continue
            text = file_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        found = False
        for line_number, line in enumerate(text.splitlines(), start=1):
            if regex.search(line):
                matches.append(
                    {"file_path": str(file_path), "line_number": line_number, "line": line}
                )
                found = True
        files_with_matches += found

    payload = {
        "pattern": pattern,
        "search_path": str(search_root),
        "include_pattern": include,
        "total_matches": len(matches),
        "files_with_matches": files_with_matches,
        "matches": matches,
    }
    display = [
        f"Search pattern: {pattern}",
        f"Search path: {search_root}",
        f"Include pattern: {include or 'all files'}",
        f"Total matches: {len(matches)} in {files_with_matches} files",
        "",
    ]
    display.extend(f"{m['file_path']}:{m['line_number']}: {m['line']}" for m in matches)
    return ToolResult.ok("search_file_content", payload, "\n".join(display))


def describe_search_file_content(arguments: dict[str, Any]) -> str:
    where = arguments.get("path") or "current directory"
    which = arguments.get("include") or "all files"
    return f"Search for '{arguments.get('pattern', '')}' in {where} ({which})"


search_file_content_tool = ToolDefinition(
    name="search_file_content",
    description=(
        "Searches for a regular expression pattern within the content of files in a "
        "specified directory (or current working directory). Can filter files by a glob "
        "pattern. Returns the lines containing matches, along with their file paths and "
        "line numbers."
    ),
    parameters=object_schema(
        {
            "pattern": string(
                "The regular expression (regex) pattern to search for within file contents "
                "(e.g., 'function\\s+myFunction', 'import\\s+\\{.*\\}\\s+from\\s+.*')."
            ),
            "path": string(
                "Optional: The absolute path to the directory to search within. If omitted, "
                "searches the current working directory."
            ),
            "include": string(
                "Optional: A glob pattern to filter which files are searched (e.g., '*.js', "
                "'*.{ts,tsx}', 'src/**'). If omitted, searches all files (respecting potential "
                "global ignores)."
            ),
        },
        required=["pattern"],
    ),
    risk_class=RiskClass.READ_ONLY,
)


# ---------------------------------------------------------------------------
# read_many_files
# ---------------------------------------------------------------------------


def _explicitly_requested(file_path: Path, pattern: str) -> bool:
    """A glob names a media file when its last segment mentions the file's extension."""
    suffix = file_path.suffix.lower()
    return bool(suffix) and suffix in pattern.rsplit("/", 1)[-1].lower()


def read_many_files_executor(
    paths: list[str],
    include: list[str] | None = None,
    exclude: list[str] | None = None,
    recursive: bool = True,
    useDefaultExcludes: bool = True,  # noqa: N803 - wire name
    respect_git_ignore: bool = True,
    *,
    root: Path,
) -> ToolResult:
    """Read and concatenate files named by paths and glob patterns.

    Text files are joined under ``--- {path} ---`` headers. Images and PDFs
    that were asked for explicitly come back as base64 payloads; binary files
    are skipped.
    """
    exclude_patterns = list(exclude or [])
    if useDefaultExcludes:
        exclude_patterns.extend(DEFAULT_EXCLUDES)
    try:
        exclude_regexes = [glob_to_regex(p) for p in exclude_patterns]
    except re.error as e:
        raise InvalidArgumentError(f"Invalid exclude pattern: {e}") from e
    git_filter = GitIgnoreFilter.for_path(root) if respect_git_ignore else None

    def rel(path: Path) -> str:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return path.as_posix()

    def excluded(path: Path, is_dir: bool = False) -> bool:
        subject = rel(path) + ("/" if is_dir else "")
        return any(regex.match(subject) for regex in exclude_regexes)

    # path -> whether media content was explicitly requested
    selected: dict[Path, bool] = {}

    def add_walk(base: Path, regex: re.Pattern[str] | None, pattern: str) -> None:
        walker = iter_files(base, git_filter, skip_dir=lambda d: excluded(d, True))
        for file_path in walker:
            if regex is not None and not regex.match(rel(file_path)):
                continue
            explicit = regex is not None and _explicitly_requested(file_path, pattern)
            if not explicit and excluded(file_path):
                continue
            selected.setdefault(file_path, explicit)

    for entry in [*paths, *(include or [])]:
        if not entry.strip():
            raise InvalidArgumentError("Path cannot be empty")
        if _GLOB_CHARS.intersection(entry):
            pattern = entry
            if Path(entry).is_absolute():
                try:
                    pattern = Path(entry).relative_to(root).as_posix()
                except ValueError:
                    raise InvalidArgumentError(
                        f"Absolute pattern must be inside {root}: {entry}"
                    ) from None
            if not recursive and "**" in pattern:
                pattern = pattern.replace("**/", "").replace("**", "*")
            try:
                regex = glob_to_regex(pattern)
            except re.error as e:
                raise InvalidArgumentError(f"Invalid glob pattern '{entry}': {e}") from e
            add_walk(root, regex, pattern)
            continue

        target = Path(entry) if Path(entry).is_absolute() else root / entry
        if target.is_file():
            selected[target] = True
        elif target.is_dir():
            if recursive:
                add_walk(target, None, entry)
            else:
                for child in sorted(target.iterdir()):
                    if child.is_file() and not excluded(child):
                        selected.setdefault(child, False)

    sections: list[str] = []
    media: list[dict[str, Any]] = []
    read_files: list[str] = []
    skipped: list[dict[str, str]] = []
    for file_path in sorted(selected):
        explicit = selected[file_path]
        try:
            kind, mime_type = detect_file_kind(file_path)
            if kind in ("image", "pdf") and mime_type is not None:
                if not explicit:
                    skipped.append({"path": str(file_path), "reason": f"{kind} not requested"})
                    continue
                media.append({"path": str(file_path), **encode_payload(file_path, mime_type)})
            elif kind == "binary":
                skipped.append({"path": str(file_path), "reason": "binary file"})
                continue
            else:
                text = file_path.read_text(encoding="utf-8", errors="replace")
                sections.append(f"--- {file_path} ---\n{text}")
        except OSError as e:
            skipped.append({"path": str(file_path), "reason": str(e)})
            continue
        read_files.append(str(file_path))

    payload = {
        "paths_requested": paths,
        "files_read": read_files,
        "skipped": skipped,
        "content": "\n\n".join(sections),
        "media": media,
    }
    display = [f"Read {len(read_files)} file(s), skipped {len(skipped)}"]
    display.extend(f"  {file_path}" for file_path in read_files)
    if skipped:
        display.append("Skipped:")
        display.extend(f"  {item['path']} ({item['reason']})" for item in skipped)
    return ToolResult.ok("read_many_files", payload, "\n".join(display))


def describe_read_many_files(arguments: dict[str, Any]) -> str:
    return f"Read multiple files from {len(arguments.get('paths') or [])} path patterns"


def _non_empty_string_array(description: str, **extra: Any) -> ParameterSchema:
    return string_array(description, **extra).model_copy(
        update={"items": ParameterSchema(type=SchemaType.STRING, min_length=1)}
    )


read_many_files_tool = ToolDefinition(
    name="read_many_files",
    description=(
        "Reads content from multiple files specified by paths or glob patterns within a "
        "configured target directory. For text files, it concatenates their content into a "
        "single string."
    ),
    parameters=object_schema(
        {
            "paths": _non_empty_string_array(
                "Required. An array of glob patterns or paths relative to the tool's target "
                "directory. Examples: ['src/**/*.ts'], ['README.md', 'docs/']",
                min_items=1,
            ),
            "include": _non_empty_string_array(
                "Optional. Additional glob patterns to include. These are merged with `paths`. "
                'Example: ["*.test.ts"] to specifically add test files if they were broadly '
                "excluded."
            ),
            "exclude": _non_empty_string_array(
                "Optional. Glob patterns for files/directories to exclude. Added to default "
                'excludes if useDefaultExcludes is true. Example: ["**/*.log", "temp/"]'
            ),
            "recursive": boolean(
                "Optional. Whether to search recursively (primarily controlled by `**` in glob "
                "patterns). Defaults to true."
            ),
            "useDefaultExcludes": boolean(
                "Optional. Whether to apply a list of default exclusion patterns (e.g., "
                "node_modules, .git, binary files). Defaults to true."
            ),
            "respect_git_ignore": boolean(
                "Optional. Whether to respect .gitignore patterns when discovering files. Only "
                "available in git repositories. Defaults to true."
            ),
        },
        required=["paths"],
    ),
    risk_class=RiskClass.READ_ONLY,
)
