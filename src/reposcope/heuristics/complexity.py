"""Lexical per-file metrics: language, complexity, function spans, test coverage.

Everything here is a pattern-based approximation. Nothing parses an AST,
so string literals and comments are counted like code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "py": "python",
    "java": "java",
    "kt": "kotlin",
    "cpp": "cpp",
    "cc": "cpp",
    "c": "c",
    "h": "c",
    "cs": "csharp",
    "php": "php",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "swift": "swift",
}

_BRANCH_TOKEN_RE = re.compile(r"\b(?:if|for|while|switch|catch)\b|&&|\|\|")
_DECLARATION_RE = re.compile(r"\b(?:function|def|class|interface)\b")

# Each pattern captures the declaration's leading indent and its name
_FUNCTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(?P<indent>[ \t]*)(?:async\s+)?def\s+(?P<name>\w+)\s*\("),
    re.compile(
        r"^(?P<indent>[ \t]*)(?:export\s+)?(?:default\s+)?(?:async\s+)?"
        r"function\s*\*?\s*(?P<name>\w+)\s*\("
    ),
    re.compile(
        r"^(?P<indent>[ \t]*)(?:export\s+)?(?:const|let|var)\s+(?P<name>\w+)\s*="
        r"\s*(?:async\s+)?(?:\([^)]*\)|\w+)\s*=>"
    ),
    re.compile(r"^(?P<indent>[ \t]*)func\s+(?:\([^)]*\)\s*)?(?P<name>\w+)\s*\("),
    re.compile(
        r"^(?P<indent>[ \t]*)(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?fn\s+(?P<name>\w+)"
    ),
    re.compile(
        r"^(?P<indent>[ \t]*)(?:(?:public|private|protected|static|final|override"
        r"|async|virtual)\s+)+[\w<>\[\],.? ]+?\s+(?P<name>\w+)\s*\([^;]*$"
    ),
)

_CLOSING_RE = re.compile(r"^[ \t]*[)\]}]")
_MAX_SIGNATURE_LINES = 30
_TEST_NAME_RE = re.compile(r"(?:^test_.*\.py$|_test\.(?:py|go)$|\.(?:test|spec)\.\w+$)")
_TEST_DIR_RE = re.compile(r"(?:^|/)(?:tests?|__tests__|spec)/")
_TEST_CONTENT_RE = re.compile(r"\bdescribe\s*\(|\bit\s*\(|\bdef test_\w+|@Test\b")


@dataclass(frozen=True, slots=True)
class FunctionSpan:
    """A function declaration and the number of lines its body spans."""

    name: str
    line: int
    length: int
    body: str


# ---------------------------------------------------------------------------
# Language and complexity
# ---------------------------------------------------------------------------


def detect_language(path: str) -> str | None:
    """Map a file extension to a language name, or ``None`` if unknown."""
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return None
    return _LANGUAGE_BY_EXTENSION.get(name.rsplit(".", 1)[-1].lower())


def file_complexity(content: str | None) -> int:
    """Score a file from 0 to 100.

    ``2 * branching tokens + lines / 50 + 3 * declarations``, rounded half
    up and capped at 100.

    Args:
        content: File text; ``None`` or empty scores 0.

    Returns:
        Integer complexity score.
    """
    if not content:
        return 0
    branches = len(_BRANCH_TOKEN_RE.findall(content))
    declarations = len(_DECLARATION_RE.findall(content))
    lines = content.count("\n") + 1
    raw = 2 * branches + lines / 50 + 3 * declarations
    return min(100, int(raw + 0.5))


def count_lines(content: str | None) -> int:
    if not content:
        return 0
    return content.count("\n") + 1


def _indent_width(indent: str) -> int:
    return len(indent.expandtabs(4))


def _signature_end(lines: list[str], start: int) -> int:
    """Index of the line that closes the parameter list opened at ``start``.

    Falls back to ``start`` when the brackets never balance within
    ``_MAX_SIGNATURE_LINES`` lines.
    """
    depth = 0
    for offset, line in enumerate(lines[start : start + _MAX_SIGNATURE_LINES]):
        depth += line.count("(") + line.count("[")
        depth -= line.count(")") + line.count("]")
        if depth <= 0:
            return start + offset
    return start


def extract_functions(content: str | None) -> list[FunctionSpan]:
    """Find function declarations and the textual span of each body.

    The signature may wrap over several lines; the body starts after the
    line that balances its parameter list. A body ends at the first
    following non-blank line indented no deeper than the declaration,
    unless that line only closes a bracket, in which case it is included.
    Trailing blank lines are not counted.

    Args:
        content: File text.

    Returns:
        Spans in source order.
    """
    if not content:
        return []
    lines = content.splitlines()
    spans: list[FunctionSpan] = []

    for index, line in enumerate(lines):
        match = None
        for pattern in _FUNCTION_PATTERNS:
            match = pattern.match(line)
            if match:
                break
        if match is None:
            continue

        indent = _indent_width(match.group("indent"))
        end = len(lines)
        for cursor in range(_signature_end(lines, index) + 1, len(lines)):
            candidate = lines[cursor]
            if not candidate.strip():
                continue
            leading = candidate[: len(candidate) - len(candidate.lstrip())]
            if _indent_width(leading) > indent:
                continue
            end = cursor + 1 if _CLOSING_RE.match(candidate) else cursor
            break

        while end > index + 1 and not lines[end - 1].strip():
            end -= 1

        spans.append(
            FunctionSpan(
                name=match.group("name"),
                line=index + 1,
                length=end - index,
                body="\n".join(lines[index:end]),
            )
        )
    return spans


# ---------------------------------------------------------------------------
# Test coverage
# ---------------------------------------------------------------------------


def is_test_file(path: str, content: str | None = None) -> bool:
    """Return whether a file looks like a test module."""
    name = path.rsplit("/", 1)[-1]
    if _TEST_NAME_RE.search(name) or _TEST_DIR_RE.search(path):
        return True
    return bool(content and _TEST_CONTENT_RE.search(content))


def module_stem(path: str) -> str:
    """Strip directories, extension, and test affixes from a path.

    ``src/app/user.py``, ``tests/test_user.py`` and ``user.spec.ts`` all
    map to ``user``.
    """
    name = path.rsplit("/", 1)[-1]
    stem = name.split(".", 1)[0]
    if stem.startswith("test_"):
        stem = stem[len("test_") :]
    if stem.endswith("_test"):
        stem = stem[: -len("_test")]
    return stem.lower()


def estimate_test_coverage(
    path: str, content: str | None, tested_stems: frozenset[str]
) -> int:
    """Deterministic coverage estimate for one file.

    Test files score 100, a code file whose stem matches some test file
    scores 80, every other file with content scores 0.

    Args:
        path: File path.
        content: File text.
        tested_stems: Stems of every test file in the repository
            (:func:`module_stem`).

    Returns:
        Coverage estimate in percent.
    """
    if is_test_file(path, content):
        return 100
    if module_stem(path) in tested_stems:
        return 80
    return 0
