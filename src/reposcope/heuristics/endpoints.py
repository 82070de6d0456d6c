"""API endpoint extraction from route-registration idioms."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from reposcope.heuristics.complexity import detect_language
from reposcope.models import APIEndpoint

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reposcope.models import FileRecord


@dataclass(frozen=True, slots=True)
class _RoutePattern:
    framework: str
    pattern: re.Pattern[str]


# Group 1 is the HTTP method (or methods list for Flask), group 2 the path
ROUTE_PATTERNS: tuple[_RoutePattern, ...] = (
    _RoutePattern(
        "express",
        re.compile(
            r"(?<![@\w.])(?:app|router)\.(get|post|put|delete|patch)"
            r"\s*\(\s*['\"`]([^'\"`]+)['\"`]"
        ),
    ),
    _RoutePattern(
        "fastapi",
        re.compile(
            r"@\w+\.(get|post|put|delete|patch)\s*\(\s*['\"]([^'\"]+)['\"]"
        ),
    ),
    _RoutePattern(
        "spring",
        re.compile(
            r"@(Get|Post|Put|Delete|Patch)Mapping\s*\(\s*(?:(?:value|path)\s*=\s*)?"
            r"[\"']([^\"']+)[\"']"
        ),
    ),
    _RoutePattern(
        "aspnet",
        re.compile(r"\[Http(Get|Post|Put|Delete|Patch)\s*\(\s*\"([^\"]+)\""),
    ),
    _RoutePattern(
        "gin",
        re.compile(r"\b\w+\.(GET|POST|PUT|DELETE|PATCH)\s*\(\s*\"([^\"]+)\""),
    ),
)

_FLASK_ROUTE_RE = re.compile(
    r"@\w+\.route\s*\(\s*['\"]([^'\"]+)['\"](?:[^)]*methods\s*=\s*[\[(]([^\])]*)[\])])?"
)
_FLASK_METHOD_RE = re.compile(r"['\"](\w+)['\"]")

_PATH_PARAM_RE = re.compile(r":(\w+)|\{(\w+)(?::[^}]*)?\}|<(?:\w+:)?(\w+)>")
_COMMENT_RE = re.compile(r"^\s*(?://+|#+|\*+|/\*\*?)\s*(.*?)\s*(?:\*/)?$")


def path_parameters(path: str) -> tuple[str, ...]:
    """Return parameter names from ``:name``, ``{name}`` and ``<name>`` segments."""
    return tuple(
        next(group for group in match.groups() if group)
        for match in _PATH_PARAM_RE.finditer(path)
    )


def _documentation(lines: list[str], index: int) -> str | None:
    cursor = index - 1
    while cursor >= 0 and lines[cursor].lstrip().startswith("@"):
        cursor -= 1
    if cursor < 0:
        return None
    match = _COMMENT_RE.match(lines[cursor])
    if match and match.group(1):
        return match.group(1)
    return None


def _endpoint(
    method: str,
    path: str,
    record: FileRecord,
    line: int,
    framework: str,
    documentation: str | None,
) -> APIEndpoint:
    return APIEndpoint(
        method=method.upper(),
        path=path,
        file=record.path,
        line=line,
        path_parameters=path_parameters(path),
        framework=framework,
        documentation=documentation,
    )


def extract_api_endpoints(files: Iterable[FileRecord]) -> list[APIEndpoint]:
    """Find route registrations in code files.

    Args:
        files: Files in report order; non-code files and files without
            content are skipped.

    Returns:
        Endpoints ordered by file, then line, then pattern order.
    """
    endpoints: list[APIEndpoint] = []
    for record in files:
        if not record.content or detect_language(record.path) is None:
            continue
        lines = record.content.splitlines()
        for index, line in enumerate(lines):
            for route in ROUTE_PATTERNS:
                for match in route.pattern.finditer(line):
                    endpoints.append(
                        _endpoint(
                            match.group(1),
                            match.group(2),
                            record,
                            index + 1,
                            route.framework,
                            _documentation(lines, index),
                        )
                    )
            flask = _FLASK_ROUTE_RE.search(line)
            if flask:
                methods = _FLASK_METHOD_RE.findall(flask.group(2) or "") or ["GET"]
                for method in methods:
                    endpoints.append(
                        _endpoint(
                            method,
                            flask.group(1),
                            record,
                            index + 1,
                            "flask",
                            _documentation(lines, index),
                        )
                    )
    return endpoints
