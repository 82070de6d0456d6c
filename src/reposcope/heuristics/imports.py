"""Internal import graph: which repository files import which.

Only imports that resolve to a file in the tree become links; package
imports from an index or ``site-packages`` are ignored. Resolution is
textual, so aliased paths (``@/components``) and dynamic imports are not
followed.
"""

from __future__ import annotations

import posixpath
import re
from typing import TYPE_CHECKING

from reposcope.heuristics.complexity import detect_language, is_test_file
from reposcope.models import DependencyGraph, GraphLink, GraphNode

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from reposcope.models import FileRecord

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_JS_LANGUAGES = frozenset({"javascript", "typescript"})

_JS_FROM_RE = re.compile(r"""\bfrom\s+['"]([^'"]+)['"]""")
_JS_REQUIRE_RE = re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)""")
_JS_SIDE_EFFECT_RE = re.compile(r"""^\s*import\s+['"]([^'"]+)['"]""", re.MULTILINE)
_PY_FROM_RE = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\b", re.MULTILINE)
_PY_IMPORT_RE = re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)", re.MULTILINE)

_JS_SUFFIXES = ("", ".js", ".ts", ".jsx", ".tsx", ".mjs")
_JS_INDEX_FILES = ("index.js", "index.ts", "index.jsx", "index.tsx")
_PY_SOURCE_ROOTS = ("", "src/")

# First match wins; "test" is decided by is_test_file before these
_MODULE_TYPES: tuple[tuple[str, str], ...] = (
    ("component", "component"),
    ("service", "service"),
    ("api", "api"),
    ("page", "page"),
    ("hook", "hook"),
    ("util", "utility"),
)


# ---------------------------------------------------------------------------
# Parsing and resolution
# ---------------------------------------------------------------------------


def infer_module_type(path: str) -> str:
    """Classify a file by path keywords: ``component``, ``service`` and so on.

    Returns ``test`` for test files and ``module`` when nothing matches.
    """
    if is_test_file(path):
        return "test"
    lowered = path.lower()
    for keyword, module_type in _MODULE_TYPES:
        if keyword in lowered:
            return module_type
    return "module"


def parse_imports(path: str, content: str | None) -> list[str]:
    """Import specifiers in ``content``, first occurrence order, no duplicates.

    JavaScript and TypeScript files yield ``from '...'``, side-effect
    ``import '...'`` and ``require('...')`` targets. Python files yield
    module names, with leading dots kept for relative imports.
    """
    if not content:
        return []
    language = detect_language(path)
    if language in _JS_LANGUAGES:
        patterns = (_JS_FROM_RE, _JS_SIDE_EFFECT_RE, _JS_REQUIRE_RE)
        found = sorted(
            (match.start(), match.group(1))
            for pattern in patterns
            for match in pattern.finditer(content)
        )
        return list(dict.fromkeys(spec for _, spec in found))
    if language == "python":
        found = [
            (match.start(), match.group(1)) for match in _PY_FROM_RE.finditer(content)
        ]
        for match in _PY_IMPORT_RE.finditer(content):
            found.extend(
                (match.start(), name.strip()) for name in match.group(1).split(",")
            )
        found.sort(key=lambda entry: entry[0])
        return list(dict.fromkeys(spec for _, spec in found if spec))
    return []


def _js_candidates(specifier: str, current: str) -> Iterable[str]:
    if not specifier.startswith("."):
        return
    base = posixpath.normpath(posixpath.join(posixpath.dirname(current), specifier))
    base = base.lstrip("/")
    for suffix in _JS_SUFFIXES:
        yield f"{base}{suffix}"
    for index_file in _JS_INDEX_FILES:
        yield f"{base}/{index_file}"


def _python_candidates(specifier: str, current: str) -> Iterable[str]:
    dots = len(specifier) - len(specifier.lstrip("."))
    module = specifier[dots:].replace(".", "/")
    if dots:
        package = posixpath.dirname(current)
        for _ in range(dots - 1):
            package = posixpath.dirname(package)
        base = posixpath.join(package, module) if module else package
        roots: Sequence[str] = ("",)
    else:
        base = module
        roots = _PY_SOURCE_ROOTS
    for root in roots:
        if module:
            yield f"{root}{base}.py"
        yield f"{root}{base}/__init__.py"


def find_node_by_path(
    paths: Iterable[str], specifier: str, current: str
) -> str | None:
    """Resolve an import specifier to a repository path.

    Args:
        paths: Paths of the graph nodes.
        specifier: Import target as written, e.g. ``./utils`` or
            ``.models``.
        current: Path of the importing file.

    Returns:
        The matching path, or ``None`` when the import points outside the
        repository or at a file that is not a node.
    """
    known = paths if isinstance(paths, (set, frozenset)) else set(paths)
    language = detect_language(current)
    if language in _JS_LANGUAGES:
        candidates = _js_candidates(specifier, current)
    elif language == "python":
        candidates = _python_candidates(specifier, current)
    else:
        return None
    for candidate in candidates:
        if candidate in known and candidate != current:
            return candidate
    return None


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


def build_dependency_graph(files: Sequence[FileRecord]) -> DependencyGraph:
    """Build the import graph over every code file in ``files``.

    Nodes are all files with a recognized language, in tree order. Links
    come from files whose content was fetched; each importing file links
    to a given target at most once.
    """
    nodes = [
        GraphNode(
            id=record.path,
            name=record.name,
            type=infer_module_type(record.path),
            path=record.path,
        )
        for record in files
        if detect_language(record.path) is not None
    ]
    known = frozenset(node.path for node in nodes)

    links: list[GraphLink] = []
    for record in files:
        if record.path not in known or not record.content:
            continue
        targets: dict[str, None] = {}
        for specifier in parse_imports(record.path, record.content):
            target = find_node_by_path(known, specifier, record.path)
            if target is not None:
                targets.setdefault(target)
        links.extend(GraphLink(source=record.path, target=t) for t in targets)
    return DependencyGraph(nodes=nodes, links=links)
