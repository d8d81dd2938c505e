"""Path filtering helpers shared by the filesystem and search tools.

Covers glob-to-regex translation (``**`` and ``{a,b}`` included), a small
``.gitignore`` evaluator, default exclusions for ``read_many_files`` and
content sniffing for images/PDFs/binary files.
"""

import base64
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

FileKind = Literal["text", "image", "pdf", "binary"]

# Directories never descended into by recursive walks.
ALWAYS_SKIPPED_DIRS = frozenset({".git"})

DEFAULT_EXCLUDES = (
    "node_modules/**",
    "target/**",
    "build/**",
    "dist/**",
    ".git/**",
    "**/*.log",
    "**/*.tmp",
    "**/*.temp",
    "**/.DS_Store",
    "**/Thumbs.db",
    "**/__pycache__/**",
    "**/*.pyc",
    "**/*.pyo",
    "**/*.class",
    "**/*.o",
    "**/*.so",
    "**/*.dll",
    "**/*.exe",
    "**/*.bin",
    "**/*.zip",
    "**/*.tar.gz",
    "**/*.rar",
    "**/*.7z",
    "**/*.pdf",
    "**/*.jpg",
    "**/*.jpeg",
    "**/*.png",
    "**/*.gif",
    "**/*.bmp",
    "**/*.ico",
    "**/*.svg",
    "**/*.mp3",
    "**/*.mp4",
    "**/*.avi",
    "**/*.mov",
    "**/*.wmv",
)

_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF-", "application/pdf"),
)

_SNIFF_BYTES = 8192


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str, case_sensitive: bool = True) -> re.Pattern[str]:
    """Compile a glob into a regex matching a whole ``/``-separated path.

    ``*`` and ``?`` never cross ``/``; ``**`` does, and ``**/`` also matches
    zero directories. ``[...]`` classes and ``{a,b}`` alternation are supported.

    Raises:
        re.error: If the resulting expression is invalid (e.g. bad class).
    """
    out: list[str] = []
    i, n = 0, len(pattern)
    brace_depth = 0
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                if pattern.startswith("**/", i):
                    out.append("(?:.*/)?")
                    i += 3
                else:
                    out.append(".*")
                    i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        elif c == "{":
            brace_depth += 1
            out.append("(?:")
        elif c == "}" and brace_depth:
            brace_depth -= 1
            out.append(")")
        elif c == "," and brace_depth:
            out.append("|")
        else:
            out.append(re.escape(c))
        i += 1
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile("".join(out) + r"\Z", flags)


def glob_matches(pattern: str, rel_path: str, case_sensitive: bool = True) -> bool:
    """Whether ``rel_path`` (posix, relative) matches ``pattern``."""
    return glob_to_regex(pattern, case_sensitive).match(rel_path) is not None


def find_git_root(path: Path) -> Path | None:
    """Closest ancestor (inclusive) containing a ``.git`` entry."""
    for candidate in (path, *path.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


class GitIgnoreFilter:
    """Evaluates ``.gitignore`` files between a repository root and a path.

    Rules from deeper ``.gitignore`` files are applied after shallower ones and
    the last matching rule wins, so ``!`` negations work as in git.
    """

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root
        self._rules: dict[Path, list[tuple[re.Pattern[str], bool, bool]]] = {}

    @classmethod
    def for_path(cls, path: Path) -> "GitIgnoreFilter | None":
        """Filter for the repository containing ``path``, or None outside git."""
        root = find_git_root(path)
        return cls(root) if root is not None else None

    def _load(self, directory: Path) -> list[tuple[re.Pattern[str], bool, bool]]:
        if directory in self._rules:
            return self._rules[directory]

        rules: list[tuple[re.Pattern[str], bool, bool]] = []
        ignore_file = directory / ".gitignore"
        if ignore_file.is_file():
            for raw in ignore_file.read_text(encoding="utf-8", errors="replace").splitlines():
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue
                negated = line.startswith("!")
                if negated:
                    line = line[1:]
                dir_only = line.endswith("/")
                line = line.rstrip("/")
                if not line:
                    continue
                # A slash anywhere but the end anchors the pattern to this directory.
                if "/" in line:
                    pattern = line.lstrip("/")
                else:
                    pattern = f"**/{line}"
                try:
                    rules.append((glob_to_regex(pattern), negated, dir_only))
                except re.error:
                    continue
        self._rules[directory] = rules
        return rules

    def is_ignored(self, path: Path, is_dir: bool | None = None) -> bool:
        """Whether ``path`` (absolute, inside the repository) is ignored."""
        try:
            rel = path.relative_to(self.repo_root)
        except ValueError:
            return False
        if not rel.parts:
            return False
        if ALWAYS_SKIPPED_DIRS.intersection(rel.parts):
            return True

        # A path inside an ignored directory is ignored too.
        for depth in range(1, len(rel.parts)):
            if self._match(rel.parts[:depth], True):
                return True
        if is_dir is None:
            is_dir = path.is_dir()
        return self._match(rel.parts, is_dir)

    def _match(self, parts: tuple[str, ...], is_dir: bool) -> bool:
        ignored = False
        for depth in range(len(parts)):
            directory = self.repo_root.joinpath(*parts[:depth])
            sub_path = "/".join(parts[depth:])
            for regex, negated, dir_only in self._load(directory):
                if dir_only and not is_dir:
                    continue
                if regex.match(sub_path):
                    ignored = not negated
        return ignored


def detect_file_kind(path: Path) -> tuple[FileKind, str | None]:
    """Sniff a file's leading bytes.

    Returns:
        ``(kind, mime_type)``; mime_type is set for images and PDFs.
    """
    with path.open("rb") as handle:
        head = handle.read(_SNIFF_BYTES)

    for signature, mime in _SIGNATURES:
        if head.startswith(signature):
            return ("pdf" if mime == "application/pdf" else "image"), mime
    if head.startswith(b"RIFF") and head[8:12] == b"WEBP":
        return "image", "image/webp"
    # Two-byte BMP magic is too weak on its own.
    if head.startswith(b"BM") and path.suffix.lower() == ".bmp":
        return "image", "image/bmp"
    if path.suffix.lower() == ".svg":
        return "image", "image/svg+xml"
    if b"\x00" in head:
        return "binary", None
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte character cut at the sniff boundary is still text.
        if e.start < len(head) - 4:
            return "binary", None
    return "text", None


def encode_payload(path: Path, mime_type: str) -> dict[str, Any]:
    """Opaque base64 payload for an image or PDF."""
    data = path.read_bytes()
    return {
        "mime_type": mime_type,
        "encoding": "base64",
        "size_bytes": len(data),
        "data": base64.b64encode(data).decode("ascii"),
    }
