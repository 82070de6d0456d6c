"""Technical-debt detection: long functions, TODO markers, repeated lines."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from reposcope.heuristics.complexity import extract_functions
from reposcope.models import DebtType, Severity, TechnicalDebtItem

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reposcope.models import FileRecord

DEFAULT_LONG_FUNCTION_THRESHOLD = 50
DEFAULT_DUPLICATE_THRESHOLD = 5
_MIN_DUPLICATE_LENGTH = 20

_MARKER_RE = re.compile(r"\b(TODO|FIXME)\b")


def _long_functions(
    record: FileRecord, content: str, threshold: int
) -> list[TechnicalDebtItem]:
    return [
        TechnicalDebtItem(
            type=DebtType.COMPLEXITY,
            severity=Severity.MEDIUM,
            file=record.path,
            line=span.line,
            description=(
                f"Function '{span.name}' spans {span.length} lines "
                f"(threshold {threshold})"
            ),
            effort="2-4h",
            impact="Smaller functions are easier to test and review",
        )
        for span in extract_functions(content)
        if span.length > threshold
    ]


def _markers(record: FileRecord, content: str) -> list[TechnicalDebtItem]:
    items: list[TechnicalDebtItem] = []
    for number, line in enumerate(content.splitlines(), start=1):
        match = _MARKER_RE.search(line)
        if match is None:
            continue
        items.append(
            TechnicalDebtItem(
                type=DebtType.SMELL,
                severity=Severity.LOW,
                file=record.path,
                line=number,
                description=f"Unresolved {match.group(1)} at line {number}",
                effort="0.5h",
                impact="Completes pending work and removes ambiguity",
            )
        )
    return items


def _duplication(
    record: FileRecord, content: str, threshold: int
) -> TechnicalDebtItem | None:
    counts: dict[str, int] = {}
    first_seen: dict[str, int] = {}
    for number, line in enumerate(content.splitlines(), start=1):
        normalized = " ".join(line.split())
        if len(normalized) <= _MIN_DUPLICATE_LENGTH:
            continue
        counts[normalized] = counts.get(normalized, 0) + 1
        first_seen.setdefault(normalized, number)

    repeated = [(text, n) for text, n in counts.items() if n >= threshold]
    if not repeated:
        return None

    text, occurrences = repeated[0]
    preview = text if len(text) <= 60 else text[:57] + "..."
    return TechnicalDebtItem(
        type=DebtType.DUPLICATION,
        severity=Severity.MEDIUM,
        file=record.path,
        line=first_seen[text],
        description=(
            f"{len(repeated)} line(s) repeated {threshold}+ times; "
            f"'{preview}' appears {occurrences} times"
        ),
        effort="1-2h",
        impact="Extracting shared code reduces the cost of future changes",
    )


def scan_technical_debt(
    files: Iterable[FileRecord],
    long_function_threshold: int = DEFAULT_LONG_FUNCTION_THRESHOLD,
    duplicate_threshold: int = DEFAULT_DUPLICATE_THRESHOLD,
) -> list[TechnicalDebtItem]:
    """Scan file contents for technical-debt signals.

    Per file, in this order: functions longer than
    ``long_function_threshold`` lines, then ``TODO``/``FIXME`` markers,
    then at most one duplication item when some whitespace-normalized
    line (longer than 20 characters) repeats ``duplicate_threshold`` or
    more times.

    Args:
        files: Files in report order; files without content are skipped.
        long_function_threshold: Maximum function span before it is flagged.
        duplicate_threshold: Repetitions that make a line a duplicate.

    Returns:
        Findings in file order.
    """
    items: list[TechnicalDebtItem] = []
    for record in files:
        if not record.content:
            continue
        items.extend(_long_functions(record, record.content, long_function_threshold))
        items.extend(_markers(record, record.content))
        duplicate = _duplication(record, record.content, duplicate_threshold)
        if duplicate is not None:
            items.append(duplicate)
    return items
