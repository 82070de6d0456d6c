"""Pipeline controller: one analysis run from reference to terminal event.

State machine::

    IDLE -> FETCHING_CORE -> COMPUTING_METRICS -> [ENRICHING] -> FINALIZING
         -> COMPLETED | ABORTED

Mandatory GitHub failures abort the run with a single ``error`` event.
Enrichment failures degrade only the field they affect. When the consumer
disconnects, the run stops at its next remote call and ends ``ABORTED``
without a terminal event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from reposcope.enrichment import EnrichmentOrchestrator
from reposcope.exceptions import (
    AnalysisCancelledError,
    EnrichmentError,
    GitHubAuthError,
    RepoScopeError,
)
from reposcope.github import GitHubClient
from reposcope.heuristics import HeuristicEngine, extract_functions, performance_score
from reposcope.heuristics.complexity import detect_language, is_test_file
from reposcope.logging import generate_run_id, stage_logging_context
from reposcope.models import AnalysisReport, DependencyInfo
from reposcope.reference import parse_repository_ref

if TYPE_CHECKING:
    from collections.abc import Awaitable

    import httpx

    from reposcope.api.stream import ProgressChannel
    from reposcope.config import Settings
    from reposcope.enrichment import TextProvider
    from reposcope.heuristics import HeuristicResult
    from reposcope.models import (
        AnalyzeRequest,
        Commit,
        Contributor,
        FileRecord,
        Hotspot,
        KeyFunction,
        PerformanceMetric,
        RepositoryRef,
        RepositorySnapshot,
        RoadmapItem,
    )

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_T = TypeVar("_T")

UNEXPECTED_ERROR_MESSAGE = (
    "Analysis failed due to an unexpected internal error. Please try again."
)
INVALID_TOKEN_MESSAGE = (
    "Invalid GitHub token. Please check that the Personal Access Token is "
    "correct and has not expired."
)
_MIN_COMPLEXITY_CONTENT = 100


def _required(value: _T | None, what: str) -> _T:
    """Return ``value``; a stage that runs before its inputs exist is a bug."""
    if value is None:
        raise RuntimeError(f"Pipeline stage reached without {what}.")
    return value


class PipelineState(StrEnum):
    """Lifecycle states of one analysis run."""

    IDLE = "idle"
    FETCHING_CORE = "fetching_core"
    COMPUTING_METRICS = "computing_metrics"
    ENRICHING = "enriching"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ABORTED = "aborted"


_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset(
        {PipelineState.FETCHING_CORE, PipelineState.ABORTED}
    ),
    PipelineState.FETCHING_CORE: frozenset(
        {PipelineState.COMPUTING_METRICS, PipelineState.ABORTED}
    ),
    PipelineState.COMPUTING_METRICS: frozenset(
        {PipelineState.ENRICHING, PipelineState.FINALIZING, PipelineState.ABORTED}
    ),
    PipelineState.ENRICHING: frozenset(
        {PipelineState.FINALIZING, PipelineState.ABORTED}
    ),
    PipelineState.FINALIZING: frozenset(
        {PipelineState.COMPLETED, PipelineState.ABORTED}
    ),
    PipelineState.COMPLETED: frozenset(),
    PipelineState.ABORTED: frozenset(),
}


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class PipelineRun:
    """Per-request state, passed explicitly between stages.

    Attributes:
        run_id: Identifier reused as the report id.
        state: Current lifecycle state.
        history: Every state entered, in order.
        error: Message sent in the ``error`` event, when aborted with one.
        report: The final report, when completed.
    """

    request: AnalyzeRequest
    run_id: str = field(default_factory=generate_run_id)
    state: PipelineState = PipelineState.IDLE
    history: list[PipelineState] = field(
        default_factory=lambda: [PipelineState.IDLE]
    )
    ref: RepositoryRef | None = None
    snapshot: RepositorySnapshot | None = None
    commits: list[Commit] = field(default_factory=list)
    contributors: list[Contributor] = field(default_factory=list)
    files: list[FileRecord] = field(default_factory=list)
    languages: dict[str, int] = field(default_factory=dict)
    dependencies: DependencyInfo | None = None
    heuristics: HeuristicResult | None = None
    enrichment: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    report: AnalysisReport | None = None

    def transition(self, state: PipelineState) -> None:
        """Move to ``state``.

        Raises:
            ValueError: If the transition is not part of the lifecycle.
        """
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Illegal transition {self.state} -> {state}")
        logger.debug(
            "pipeline_transition", run_id=self.run_id, source=self.state, target=state
        )
        self.state = state
        self.history.append(state)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class PipelineController:
    """Drives analysis runs; holds configuration only, never run state.

    Attributes:
        settings: Application settings.
        engine: Heuristic engine shared across runs (it is stateless).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        engine: HeuristicEngine | None = None,
        github_transport: httpx.AsyncBaseTransport | None = None,
        provider: TextProvider | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            settings: Application settings.
            engine: Optional engine override.
            github_transport: Optional httpx transport for the GitHub client.
            provider: Optional text provider used instead of the one built
                from the request's ``llm_config``. Enrichment still only runs
                when the request carries a config.
        """
        self.settings = settings
        self.engine = engine or HeuristicEngine()
        self._github_transport = github_transport
        self._provider = provider

    async def run(
        self, request: AnalyzeRequest, channel: ProgressChannel
    ) -> PipelineRun:
        """Execute one analysis and emit its events on ``channel``.

        Never raises for pipeline failures: they end the run ``ABORTED`` and,
        unless the consumer disconnected, send one ``error`` event.

        Args:
            request: Repository reference, optional token and provider config.
            channel: Per-request progress channel.

        Returns:
            The finished run, in state ``COMPLETED`` or ``ABORTED``.
        """
        run = PipelineRun(request=request)
        log = logger.bind(run_id=run.run_id)
        log.info("analysis_started", repo_url=request.repo_url)
        try:
            await self._execute(run, channel)
        except AnalysisCancelledError as exc:
            log.info("analysis_cancelled", state=run.state, reason=str(exc))
            run.transition(PipelineState.ABORTED)
        except RepoScopeError as exc:
            log.warning(
                "analysis_aborted",
                state=run.state,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            self._abort(run, channel, str(exc))
        except Exception:
            log.exception("analysis_failed", state=run.state)
            self._abort(run, channel, UNEXPECTED_ERROR_MESSAGE)
        else:
            log.info("analysis_completed", report_id=run.run_id)
        return run

    def _abort(self, run: PipelineRun, channel: ProgressChannel, message: str) -> None:
        run.error = message
        if run.state is not PipelineState.ABORTED:
            run.transition(PipelineState.ABORTED)
        if not channel.terminated:
            channel.fail(message)

    @staticmethod
    def _check_cancelled(channel: ProgressChannel) -> None:
        if channel.closed:
            raise AnalysisCancelledError("Progress channel closed by the client.")

    # -- stages --------------------------------------------------------

    async def _execute(self, run: PipelineRun, channel: ProgressChannel) -> None:
        request = run.request
        channel.progress("Validating repository URL", 0)
        run.ref = parse_repository_ref(request.repo_url)
        run.transition(PipelineState.FETCHING_CORE)

        async with GitHubClient(
            self.settings.github,
            request.github_token,
            transport=self._github_transport,
            is_cancelled=lambda: channel.closed,
        ) as client:
            with stage_logging_context(
                PipelineState.FETCHING_CORE.value, repository=run.ref.full_name
            ):
                await self._fetch_core(run, client, channel)

        run.transition(PipelineState.COMPUTING_METRICS)
        with stage_logging_context(PipelineState.COMPUTING_METRICS.value):
            self._compute_metrics(run, channel)

        if request.llm_config is not None:
            orchestrator = EnrichmentOrchestrator(
                request.llm_config, self.settings.enrichment, provider=self._provider
            )
            self._check_cancelled(channel)
            run.transition(PipelineState.ENRICHING)
            with stage_logging_context(
                PipelineState.ENRICHING.value,
                provider=request.llm_config.provider_id.value,
            ):
                await self._enrich(run, orchestrator, channel)

        self._check_cancelled(channel)
        run.transition(PipelineState.FINALIZING)
        with stage_logging_context(PipelineState.FINALIZING.value):
            channel.progress("Finalizing report", 98)
            run.report = self._build_report(run)
        self._check_cancelled(channel)
        channel.progress("Analysis complete", 100)
        channel.complete(run.report)
        run.transition(PipelineState.COMPLETED)

    async def _fetch_core(
        self, run: PipelineRun, client: GitHubClient, channel: ProgressChannel
    ) -> None:
        ref = _required(run.ref, "a repository reference")

        if run.request.github_token:
            channel.progress("Verifying GitHub token", 5)
            if not await client.verify_token():
                raise GitHubAuthError(
                    INVALID_TOKEN_MESSAGE,
                    status=401,
                    resource="authenticated user",
                    repository=ref.full_name,
                )

        channel.progress("Fetching repository information", 10)
        run.snapshot = await client.get_repository(ref)
        branch = run.snapshot.default_branch

        channel.progress("Fetching commit history", 20)
        run.commits = await client.fetch_commit_details(
            ref, await client.list_commits(ref, sha=branch)
        )

        channel.progress("Fetching contributors", 30)
        run.contributors = await client.list_contributors(ref)

        channel.progress("Fetching file tree", 40)
        files = await client.get_tree(ref, branch)
        if not files:
            files = await client.list_directory(ref)

        channel.progress("Fetching language breakdown", 45)
        run.languages = await client.get_languages(ref)

        channel.progress("Fetching file contents", 50)
        run.files = await client.fetch_contents(ref, files)
        run.dependencies = await client.get_dependencies(
            ref, {record.path for record in run.files}
        )

    def _compute_metrics(self, run: PipelineRun, channel: ProgressChannel) -> None:
        snapshot = _required(run.snapshot, "a repository snapshot")
        result = self.engine.run(
            snapshot, run.contributors, run.commits, run.files
        )
        run.heuristics = result
        channel.progress(
            f"Security scan found {len(result.security_issues)} potential issues", 70
        )
        channel.progress(
            f"Found {len(result.technical_debt)} technical debt items", 75
        )
        channel.progress(f"Detected {len(result.api_endpoints)} API endpoints", 80)
        channel.progress(f"Identified {len(result.hotspots)} code hotspots", 85)
        channel.progress("Computed repository metrics", 90)

    async def _enrich(
        self,
        run: PipelineRun,
        orchestrator: EnrichmentOrchestrator,
        channel: ProgressChannel,
    ) -> None:
        snapshot = _required(run.snapshot, "a repository snapshot")
        result = _required(run.heuristics, "heuristic results")
        settings = self.settings.enrichment

        channel.progress("Generating executive summary", 92)
        run.enrichment["ai_summary"] = await self._guarded(
            "ai_summary",
            orchestrator.executive_summary(
                snapshot, len(run.contributors), len(run.commits)
            ),
        )

        self._check_cancelled(channel)
        channel.progress("Analyzing architecture", 93)
        run.enrichment["architecture_analysis"] = await self._guarded(
            "architecture_analysis",
            orchestrator.architecture_analysis(result.files, run.languages),
        )

        self._check_cancelled(channel)
        channel.progress("Reviewing security posture", 94)
        run.enrichment["security_analysis"] = await self._guarded(
            "security_analysis",
            orchestrator.security_analysis(snapshot.full_name, result.files),
        )

        self._check_cancelled(channel)
        channel.progress("Explaining key functions", 95)
        explanations: dict[str, str] = {}
        explained: list[KeyFunction] = []
        contents = {record.path: record.content for record in result.files}
        for index, key_function in enumerate(result.key_functions):
            if index >= settings.max_functions_explained:
                explained.append(key_function)
                continue
            self._check_cancelled(channel)
            content = contents.get(key_function.file) or ""
            body = next(
                (
                    span.body
                    for span in extract_functions(content)
                    if span.line == key_function.line
                ),
                "",
            )
            text = await self._guarded(
                "function_explanations",
                orchestrator.explain_function(
                    key_function.name,
                    body,
                    key_function.file,
                    detect_language(key_function.file),
                    content,
                ),
            )
            if text:
                explanations[f"{key_function.file}:{key_function.name}"] = text
                key_function = key_function.model_copy(update={"explanation": text})
            explained.append(key_function)
        result.key_functions = explained
        run.enrichment["function_explanations"] = explanations or None

        hotspots: list[Hotspot] = []
        for index, hotspot in enumerate(result.hotspots):
            if index < settings.max_hotspots_explained:
                self._check_cancelled(channel)
                note = await self._guarded(
                    "hotspots",
                    orchestrator.explain_hotspot(hotspot, contents.get(hotspot.path)),
                )
                if note:
                    hotspot = hotspot.model_copy(update={"explanation": note})
            hotspots.append(hotspot)
        result.hotspots = hotspots

        channel.progress("Estimating algorithmic complexity", 96)
        estimates: list[PerformanceMetric] = []
        for record in self._complexity_candidates(result.files):
            self._check_cancelled(channel)
            spans = extract_functions(record.content)
            function = spans[0].name if spans else record.name
            metric = await self._guarded(
                "performance_metrics",
                orchestrator.algorithmic_complexity(
                    record.content or "", record.path, function
                ),
            )
            if metric is not None:
                estimates.append(metric)
        run.enrichment["performance_metrics"] = estimates or None

        self._check_cancelled(channel)
        channel.progress("Building refactoring roadmap", 97)
        roadmap: list[RoadmapItem] | None = await self._guarded(
            "refactoring_roadmap",
            orchestrator.refactoring_roadmap(
                result.technical_debt, result.hotspots, len(result.files)
            ),
        )
        run.enrichment["refactoring_roadmap"] = roadmap or None

        logger.info(
            "enrichment_finished",
            fields={name: value is not None for name, value in run.enrichment.items()},
        )

    def _complexity_candidates(self, files: list[FileRecord]) -> list[FileRecord]:
        candidates = [
            record
            for record in files
            if record.content
            and len(record.content) > _MIN_COMPLEXITY_CONTENT
            and detect_language(record.path) is not None
            and not is_test_file(record.path, record.content)
        ]
        return candidates[: self.settings.enrichment.max_complexity_estimates]

    @staticmethod
    async def _guarded(field_name: str, awaitable: Awaitable[_T]) -> _T | None:
        try:
            return await awaitable
        except EnrichmentError as exc:
            logger.warning(
                "enrichment_field_failed",
                field=field_name,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

    def _build_report(self, run: PipelineRun) -> AnalysisReport:
        ref = _required(run.ref, "a repository reference")
        snapshot = _required(run.snapshot, "a repository snapshot")
        result = _required(run.heuristics, "heuristic results")

        metrics = result.metrics
        performance_metrics = run.enrichment.get("performance_metrics")
        if performance_metrics:
            metrics = metrics.model_copy(
                update={"performance_score": performance_score(performance_metrics)}
            )

        return AnalysisReport(
            id=run.run_id,
            repository_url=snapshot.html_url
            or f"https://github.com/{ref.full_name}",
            repository=snapshot,
            contributors=run.contributors,
            commits=run.commits,
            files=result.files,
            languages=run.languages,
            dependencies=run.dependencies or DependencyInfo(),
            metrics=metrics,
            security_issues=result.security_issues,
            technical_debt=result.technical_debt,
            api_endpoints=result.api_endpoints,
            hotspots=result.hotspots,
            key_functions=result.key_functions,
            dependency_graph=result.dependency_graph,
            **run.enrichment,
        )
