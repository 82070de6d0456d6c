"""Hotspots, key functions, and the composite scores behind ``Metrics``."""

from __future__ import annotations

import math
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from reposcope.heuristics.complexity import (
    count_lines,
    detect_language,
    extract_functions,
    file_complexity,
    is_test_file,
)
from reposcope.models import Hotspot, KeyFunction, RiskLevel, Severity

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reposcope.models import (
        Commit,
        FileRecord,
        PerformanceMetric,
        RepositorySnapshot,
        SecurityIssue,
        TechnicalDebtItem,
    )

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HOTSPOT_COMPLEXITY_THRESHOLD = 20
MAX_HOTSPOTS = 20
MAX_KEY_FUNCTIONS = 10

_DEBT_WEIGHTS: dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 3,
    Severity.HIGH: 5,
    Severity.CRITICAL: 5,
}
_SECURITY_WEIGHTS: dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 3,
    Severity.HIGH: 5,
    Severity.CRITICAL: 10,
}

_DEFAULT_DEBT_SCORE = 8.5
_DEFAULT_SECURITY_SCORE = 9.0
_DEFAULT_PERFORMANCE_SCORE = 7.5
_RECENT_ACTIVITY_WINDOW = timedelta(days=30)

_SUPERLINEAR_RE = re.compile(
    r"O\(\s*n\s*(?:\^\s*[23]|²|³|\*\*\s*[23])\s*\)|O\(\s*2\s*\^\s*n\s*\)"
)


# ---------------------------------------------------------------------------
# Hotspots and key functions
# ---------------------------------------------------------------------------


def _risk_level(complexity: int) -> RiskLevel:
    if complexity > 60:
        return RiskLevel.CRITICAL
    if complexity > 40:
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def find_hotspots(
    files: Sequence[FileRecord], commits: Sequence[Commit]
) -> list[Hotspot]:
    """Flag files whose complexity exceeds the hotspot threshold.

    ``changes`` counts the commits that list the file among their touched
    paths. Only the detailed recent commits carry paths, so churn reflects
    that window rather than the full history.

    Returns:
        At most 20 hotspots, most complex first, ties by path.
    """
    churn: Counter[str] = Counter(
        path for commit in commits for path in commit.files
    )
    hotspots = [
        Hotspot(
            path=record.path,
            file=record.name,
            complexity=record.complexity or 0,
            changes=churn.get(record.path, 0),
            size=count_lines(record.content),
            risk_level=_risk_level(record.complexity or 0),
        )
        for record in files
        if (record.complexity or 0) > HOTSPOT_COMPLEXITY_THRESHOLD
    ]
    hotspots.sort(key=lambda h: (-h.complexity, h.path))
    return hotspots[:MAX_HOTSPOTS]


def find_key_functions(files: Sequence[FileRecord]) -> list[KeyFunction]:
    """Pick the most complex functions across non-test code files.

    Returns:
        At most 10 functions, most complex first, ties by file then line.
    """
    candidates: list[KeyFunction] = []
    for record in files:
        if not record.content or detect_language(record.path) is None:
            continue
        if is_test_file(record.path, record.content):
            continue
        for span in extract_functions(record.content):
            if span.name.startswith("_") and span.name != "__init__":
                continue
            candidates.append(
                KeyFunction(
                    name=span.name,
                    file=record.path,
                    line=span.line,
                    complexity=file_complexity(span.body),
                )
            )
    candidates.sort(key=lambda f: (-f.complexity, f.file, f.line))
    return candidates[:MAX_KEY_FUNCTIONS]


# ---------------------------------------------------------------------------
# Composite scores
# ---------------------------------------------------------------------------


def _clamp(value: float, low: float = 1.0, high: float = 10.0) -> float:
    return round(max(low, min(high, value)), 1)


def technical_debt_score(items: Sequence[TechnicalDebtItem]) -> float:
    """``max(1, 10 - weighted / 10)``; 8.5 when there is no debt."""
    if not items:
        return _DEFAULT_DEBT_SCORE
    weighted = sum(_DEBT_WEIGHTS[item.severity] for item in items)
    return _clamp(10 - weighted / 10)


def security_score(issues: Sequence[SecurityIssue]) -> float:
    """``max(1, 10 - weighted / 5)``; 9.0 when there are no issues."""
    if not issues:
        return _DEFAULT_SECURITY_SCORE
    weighted = sum(_SECURITY_WEIGHTS[issue.severity] for issue in issues)
    return _clamp(10 - weighted / 5)


def performance_score(metrics: Sequence[PerformanceMetric] | None) -> float:
    """7.5 without estimates; else ``max(1, 10 - 2 * superlinear estimates)``."""
    if not metrics:
        return _DEFAULT_PERFORMANCE_SCORE
    superlinear = sum(1 for m in metrics if _SUPERLINEAR_RE.search(m.complexity))
    return _clamp(10 - 2 * superlinear)


def code_quality_score(
    snapshot: RepositorySnapshot,
    commit_count: int,
    contributor_count: int,
    now: datetime,
) -> float:
    """Blend activity, diversity, popularity and maintenance into 1..10.

    Activity contributes up to 3 (one point per hundred commits),
    diversity up to 3 (one per ten contributors), popularity up to 2
    (``log10(stars + 1)``), and a push within the last 30 days adds 2.
    """
    activity = min(3.0, commit_count / 100)
    diversity = min(3.0, contributor_count / 10)
    popularity = min(2.0, math.log10(snapshot.stars + 1))
    maintained = (
        2.0
        if snapshot.updated_at is not None
        and now - snapshot.updated_at <= _RECENT_ACTIVITY_WINDOW
        else 0.0
    )
    return _clamp(activity + diversity + popularity + maintained)


def coverage_percent(files: Sequence[FileRecord]) -> float:
    """Mean per-file coverage estimate over non-test code files with content."""
    values = [
        record.test_coverage or 0
        for record in files
        if record.content
        and detect_language(record.path) is not None
        and not is_test_file(record.path, record.content)
    ]
    if not values:
        return 0.0
    return round(sum(values) / len(values), 1)
