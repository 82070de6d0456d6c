"""Heuristic metrics engine: one pure pass from fetched data to findings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from reposcope.heuristics.complexity import (
    count_lines,
    detect_language,
    estimate_test_coverage,
    file_complexity,
    is_test_file,
    module_stem,
)
from reposcope.heuristics.contributors import bus_factor
from reposcope.heuristics.debt import (
    DEFAULT_DUPLICATE_THRESHOLD,
    DEFAULT_LONG_FUNCTION_THRESHOLD,
    scan_technical_debt,
)
from reposcope.heuristics.endpoints import extract_api_endpoints
from reposcope.heuristics.imports import build_dependency_graph
from reposcope.heuristics.scoring import (
    code_quality_score,
    coverage_percent,
    find_hotspots,
    find_key_functions,
    performance_score,
    security_score,
    technical_debt_score,
)
from reposcope.heuristics.security import scan_security_issues
from reposcope.models import DependencyGraph, Metrics, Severity

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reposcope.models import (
        APIEndpoint,
        Commit,
        Contributor,
        FileRecord,
        Hotspot,
        KeyFunction,
        RepositorySnapshot,
        SecurityIssue,
        TechnicalDebtItem,
    )

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


@dataclass(slots=True)
class HeuristicResult:
    """Everything the engine derives from one repository's data."""

    files: list[FileRecord]
    metrics: Metrics
    security_issues: list[SecurityIssue] = field(default_factory=list)
    technical_debt: list[TechnicalDebtItem] = field(default_factory=list)
    api_endpoints: list[APIEndpoint] = field(default_factory=list)
    hotspots: list[Hotspot] = field(default_factory=list)
    key_functions: list[KeyFunction] = field(default_factory=list)
    dependency_graph: DependencyGraph = field(default_factory=DependencyGraph)


def annotate_files(files: Sequence[FileRecord]) -> list[FileRecord]:
    """Attach language, complexity and coverage estimates to each file.

    Files without content keep ``complexity`` and ``test_coverage`` unset.
    """
    tested_stems = frozenset(
        module_stem(record.path)
        for record in files
        if is_test_file(record.path, record.content)
    )
    annotated: list[FileRecord] = []
    for record in files:
        if record.content is None:
            annotated.append(
                record.with_metrics(
                    language=detect_language(record.path),
                    complexity=None,
                    test_coverage=None,
                )
            )
            continue
        annotated.append(
            record.with_metrics(
                language=detect_language(record.path),
                complexity=file_complexity(record.content),
                test_coverage=estimate_test_coverage(
                    record.path, record.content, tested_stems
                ),
            )
        )
    return annotated


def compute_metrics(
    snapshot: RepositorySnapshot,
    contributors: Sequence[Contributor],
    commits: Sequence[Commit],
    files: Sequence[FileRecord],
    security_issues: Sequence[SecurityIssue],
    technical_debt: Sequence[TechnicalDebtItem],
    now: datetime,
) -> Metrics:
    """Aggregate the scalar summary from data and findings."""
    severities = [issue.severity for issue in security_issues]
    return Metrics(
        total_commits=len(commits),
        total_contributors=len(contributors),
        lines_of_code=sum(count_lines(record.content) for record in files),
        bus_factor=bus_factor(contributors),
        test_coverage=coverage_percent(files),
        code_quality=code_quality_score(
            snapshot, len(commits), len(contributors), now
        ),
        security_score=security_score(security_issues),
        performance_score=performance_score(None),
        technical_debt_score=technical_debt_score(technical_debt),
        critical_vulnerabilities=severities.count(Severity.CRITICAL),
        high_vulnerabilities=severities.count(Severity.HIGH),
        medium_vulnerabilities=severities.count(Severity.MEDIUM),
        low_vulnerabilities=severities.count(Severity.LOW),
    )


class HeuristicEngine:
    """Runs every heuristic over one repository's fetched data.

    The engine performs no I/O and keeps no state between runs; identical
    input yields identical output.

    Attributes:
        long_function_threshold: Function span, in lines, flagged as debt.
        duplicate_threshold: Repetitions that make a line a duplicate.
    """

    def __init__(
        self,
        long_function_threshold: int = DEFAULT_LONG_FUNCTION_THRESHOLD,
        duplicate_threshold: int = DEFAULT_DUPLICATE_THRESHOLD,
    ) -> None:
        self.long_function_threshold = long_function_threshold
        self.duplicate_threshold = duplicate_threshold

    def run(
        self,
        snapshot: RepositorySnapshot,
        contributors: Sequence[Contributor],
        commits: Sequence[Commit],
        files: Sequence[FileRecord],
        now: datetime | None = None,
    ) -> HeuristicResult:
        """Compute findings and metrics.

        Args:
            snapshot: Repository metadata.
            contributors: Contributors, any order.
            commits: Recent commits, newest first.
            files: Tree listing, with content on the fetched subset.
            now: Reference time for the recent-activity score; defaults to
                the current UTC time.

        Returns:
            Annotated files, findings and metrics.
        """
        annotated = annotate_files(files)
        security_issues = scan_security_issues(annotated)
        technical_debt = scan_technical_debt(
            annotated,
            long_function_threshold=self.long_function_threshold,
            duplicate_threshold=self.duplicate_threshold,
        )
        api_endpoints = extract_api_endpoints(annotated)
        hotspots = find_hotspots(annotated, commits)
        key_functions = find_key_functions(annotated)
        dependency_graph = build_dependency_graph(annotated)
        metrics = compute_metrics(
            snapshot,
            contributors,
            commits,
            annotated,
            security_issues,
            technical_debt,
            now or datetime.now(tz=UTC),
        )

        logger.info(
            "heuristics_computed",
            files=len(annotated),
            security_issues=len(security_issues),
            technical_debt=len(technical_debt),
            api_endpoints=len(api_endpoints),
            hotspots=len(hotspots),
            import_links=len(dependency_graph.links),
            bus_factor=metrics.bus_factor,
        )
        return HeuristicResult(
            files=annotated,
            metrics=metrics,
            security_issues=security_issues,
            technical_debt=technical_debt,
            api_endpoints=api_endpoints,
            hotspots=hotspots,
            key_functions=key_functions,
            dependency_graph=dependency_graph,
        )
