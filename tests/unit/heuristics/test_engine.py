"""Unit tests for reposcope.heuristics.engine."""

from __future__ import annotations

from datetime import UTC, datetime

from reposcope.heuristics import HeuristicEngine, annotate_files, compute_metrics
from reposcope.models import (
    Commit,
    Contributor,
    DebtType,
    FileRecord,
    RepositorySnapshot,
)

NOW = datetime(2024, 6, 1, tzinfo=UTC)


def _team() -> list[Contributor]:
    return [
        Contributor(login="alice", contributions=50),
        Contributor(login="bob", contributions=30),
        Contributor(login="carol", contributions=20),
    ]


def _commits(count: int) -> list[Commit]:
    return [Commit(sha=f"{i:040x}") for i in range(count)]


class TestAnnotateFiles:
    """Per-file metrics are attached only where content exists."""

    def test_annotations(self, sample_files: list[FileRecord]) -> None:
        app, test, readme = annotate_files(sample_files)
        assert app.language == "python"
        assert app.complexity is not None
        assert app.test_coverage == 80
        assert test.test_coverage == 100
        assert readme.complexity is None
        assert readme.test_coverage is None
        assert readme.language is None

    def test_inputs_unchanged(self, sample_files: list[FileRecord]) -> None:
        annotate_files(sample_files)
        assert sample_files[0].complexity is None


class TestComputeMetrics:
    """Scalar summary."""

    def test_counts(
        self, snapshot: RepositorySnapshot, sample_files: list[FileRecord]
    ) -> None:
        files = annotate_files(sample_files)
        metrics = compute_metrics(
            snapshot, _team(), _commits(10), files, [], [], NOW
        )
        assert metrics.total_commits == 10
        assert metrics.total_contributors == 3
        assert metrics.bus_factor == 1
        assert metrics.test_coverage == 80.0
        assert metrics.security_score == 9.0
        assert metrics.technical_debt_score == 8.5
        assert metrics.performance_score == 7.5
        assert metrics.lines_of_code == sum(
            (f.content or "").count("\n") + 1 for f in files if f.content
        )

    def test_empty_repository(self, snapshot: RepositorySnapshot) -> None:
        metrics = compute_metrics(snapshot, [], [], [], [], [], NOW)
        assert metrics.bus_factor == 3
        assert metrics.lines_of_code == 0
        assert metrics.test_coverage == 0.0


class TestHeuristicEngine:
    """Full pass over one repository."""

    def test_run(
        self, snapshot: RepositorySnapshot, sample_files: list[FileRecord]
    ) -> None:
        result = HeuristicEngine().run(
            snapshot, _team(), _commits(10), sample_files, now=NOW
        )
        assert len(result.files) == 3
        assert result.metrics.bus_factor == 1
        assert result.security_issues == []
        assert result.api_endpoints == []
        assert [f.name for f in result.key_functions] == ["load_settings", "main"]

    def test_idempotent(
        self, snapshot: RepositorySnapshot, sample_files: list[FileRecord]
    ) -> None:
        engine = HeuristicEngine()
        first = engine.run(snapshot, _team(), _commits(5), sample_files, now=NOW)
        second = engine.run(snapshot, _team(), _commits(5), sample_files, now=NOW)
        assert first == second

    def test_findings_collected(self, snapshot: RepositorySnapshot) -> None:
        source = (
            "# TODO: remove hardcoded credentials\n"
            "password = 'hunter22'\n"
            "@app.get('/users/{user_id}')\n"
            "def get_user(user_id):\n"
            "    return eval(user_id)\n"
        )
        files = [FileRecord(path="api.py", size=len(source)).with_content(source)]
        result = HeuristicEngine().run(snapshot, [], [], files, now=NOW)

        assert [i.description for i in result.security_issues] == [
            "Hardcoded password",
            "Dynamic code evaluation",
        ]
        assert result.metrics.critical_vulnerabilities == 1
        assert result.metrics.high_vulnerabilities == 1
        assert [d.line for d in result.technical_debt] == [1]
        [endpoint] = result.api_endpoints
        assert endpoint.path_parameters == ("user_id",)

    def test_custom_thresholds(self, snapshot: RepositorySnapshot) -> None:
        source = "def build():\n" + "    total = compute_total(order, customer)\n" * 3
        files = [FileRecord(path="a.py").with_content(source)]
        engine = HeuristicEngine(long_function_threshold=3, duplicate_threshold=3)
        result = engine.run(snapshot, [], [], files, now=NOW)
        assert [d.type for d in result.technical_debt] == [
            DebtType.COMPLEXITY,
            DebtType.DUPLICATION,
        ]
