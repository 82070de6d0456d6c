"""Report data model shared by the client, engine, enrichment and API layers.

Wire serialization uses camelCase aliases (``model_dump(by_alias=True)``)
so the JSON carried in the ``complete`` event matches what dashboard
consumers read; Python code uses the snake_case field names.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Severity(StrEnum):
    """Finding severity buckets."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityIssueType(StrEnum):
    """Kinds of security finding."""

    SECRET = "secret"
    VULNERABILITY = "vulnerability"


class DebtType(StrEnum):
    """Kinds of technical-debt finding."""

    COMPLEXITY = "complexity"
    DUPLICATION = "duplication"
    SMELL = "smell"


class RiskLevel(StrEnum):
    """Hotspot risk buckets."""

    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ProviderId(StrEnum):
    """Supported generative-text providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


_PROVIDER_ALIASES: dict[str, str] = {
    "claude": ProviderId.ANTHROPIC,
    "google": ProviderId.GEMINI,
}


# ---------------------------------------------------------------------------
# Base classes
# ---------------------------------------------------------------------------


class WireModel(BaseModel):
    """Base model with camelCase wire aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)


class Finding(WireModel):
    """Immutable finding record tied to a file path."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# ---------------------------------------------------------------------------
# Repository data
# ---------------------------------------------------------------------------


class RepositoryRef(BaseModel):
    """Owner and name of a GitHub repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


class LicenseInfo(WireModel):
    name: str = ""
    spdx_id: str | None = None


class RepositorySnapshot(WireModel):
    """Repository metadata as returned by ``GET /repos/{owner}/{name}``."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    name: str
    full_name: str
    description: str | None = None
    language: str | None = None
    stars: int = Field(default=0, ge=0)
    forks: int = Field(default=0, ge=0)
    watchers: int = Field(default=0, ge=0)
    default_branch: str = "main"
    size: int = Field(default=0, ge=0)
    open_issues: int = Field(default=0, ge=0)
    license: LicenseInfo | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    html_url: str = ""


class Contributor(WireModel):
    login: str
    contributions: int = Field(default=0, ge=0)
    avatar_url: str = ""
    profile_url: str = ""
    account_type: str = "User"

    @property
    def is_bot(self) -> bool:
        return self.account_type == "Bot" or self.login.endswith("[bot]")


class Commit(WireModel):
    sha: str
    message: str = ""
    author_name: str = ""
    author_email: str = ""
    authored_at: datetime | None = None
    author_login: str | None = None
    files: list[str] = Field(
        default_factory=list,
        description="Paths touched; filled only for commits fetched in detail.",
    )


class FileRecord(WireModel):
    """A file from the repository tree.

    Content is attached once after the tree listing (:meth:`with_content`)
    and the derived per-file metrics once by the engine (:meth:`with_metrics`).
    """

    path: str
    name: str = ""
    size: int = Field(default=0, ge=0)
    content: str | None = Field(default=None, exclude=True)
    language: str | None = None
    complexity: int | None = Field(default=None, ge=0, le=100)
    test_coverage: int | None = Field(default=None, ge=0, le=100)

    @model_validator(mode="after")
    def _default_name(self) -> FileRecord:
        if not self.name:
            self.name = self.path.rsplit("/", 1)[-1]
        return self

    def with_content(self, content: str) -> FileRecord:
        """Return a copy carrying fetched content."""
        return self.model_copy(update={"content": content})

    def with_metrics(
        self,
        *,
        language: str | None,
        complexity: int | None,
        test_coverage: int | None,
    ) -> FileRecord:
        """Return a copy carrying the heuristic per-file metrics."""
        return self.model_copy(
            update={
                "language": language,
                "complexity": complexity,
                "test_coverage": test_coverage,
            }
        )


class DependencyInfo(WireModel):
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------


class SecurityIssue(Finding):
    type: SecurityIssueType
    severity: Severity
    file: str
    line: int | None = None
    description: str
    recommendation: str = ""
    cwe: str | None = None
    code_snippet: str | None = None


class TechnicalDebtItem(Finding):
    type: DebtType
    severity: Severity
    file: str
    line: int | None = None
    description: str
    effort: str = ""
    impact: str = ""


class APIEndpoint(Finding):
    method: str
    path: str
    file: str
    line: int | None = None
    path_parameters: tuple[str, ...] = ()
    framework: str = ""
    documentation: str | None = None


class PerformanceMetric(Finding):
    function: str
    file: str
    complexity: str
    estimated_runtime: str
    recommendation: str = ""


class Hotspot(Finding):
    path: str
    file: str
    complexity: int
    changes: int = 0
    size: int = 0
    risk_level: RiskLevel
    explanation: str | None = None


class KeyFunction(Finding):
    name: str
    file: str
    line: int
    complexity: int
    explanation: str | None = None


class RoadmapItem(Finding):
    priority: int = Field(ge=1, le=5)
    title: str
    description: str = ""
    effort: str = ""
    impact: str = ""
    files: tuple[str, ...] = ()


class GraphNode(Finding):
    """One code file in the import graph; ``id`` is its path."""

    id: str
    name: str
    type: str = "module"
    path: str


class GraphLink(Finding):
    source: str
    target: str


class DependencyGraph(WireModel):
    """Internal import graph: code files and the repository files they import."""

    nodes: list[GraphNode] = Field(default_factory=list)
    links: list[GraphLink] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class Metrics(WireModel):
    """Scalar summary computed after the heuristic findings are collected."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    total_commits: int = Field(ge=0)
    total_contributors: int = Field(ge=0)
    lines_of_code: int = Field(ge=0)
    bus_factor: int = Field(ge=1, le=3)
    test_coverage: float = Field(ge=0.0, le=100.0)
    code_quality: float = Field(ge=0.0, le=10.0)
    security_score: float = Field(ge=0.0, le=10.0)
    performance_score: float = Field(ge=0.0, le=10.0)
    technical_debt_score: float = Field(ge=0.0, le=10.0)
    critical_vulnerabilities: int = Field(default=0, ge=0)
    high_vulnerabilities: int = Field(default=0, ge=0)
    medium_vulnerabilities: int = Field(default=0, ge=0)
    low_vulnerabilities: int = Field(default=0, ge=0)


class ProgressEvent(WireModel):
    step: str
    progress: int = Field(ge=0, le=100)


ENRICHMENT_FIELDS: tuple[str, ...] = (
    "ai_summary",
    "architecture_analysis",
    "security_analysis",
    "function_explanations",
    "performance_metrics",
    "refactoring_roadmap",
)


class AnalysisReport(WireModel):
    """Terminal aggregate handed to the caller in the ``complete`` event.

    Every field listed in ``ENRICHMENT_FIELDS`` is optional; ``None`` means
    enrichment was skipped or failed for that field.
    """

    id: str
    repository_url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    repository: RepositorySnapshot
    contributors: list[Contributor] = Field(default_factory=list)
    commits: list[Commit] = Field(default_factory=list)
    files: list[FileRecord] = Field(default_factory=list)
    languages: dict[str, int] = Field(default_factory=dict)
    dependencies: DependencyInfo = Field(default_factory=DependencyInfo)
    metrics: Metrics
    security_issues: list[SecurityIssue] = Field(default_factory=list)
    technical_debt: list[TechnicalDebtItem] = Field(default_factory=list)
    api_endpoints: list[APIEndpoint] = Field(default_factory=list)
    hotspots: list[Hotspot] = Field(default_factory=list)
    key_functions: list[KeyFunction] = Field(default_factory=list)
    dependency_graph: DependencyGraph = Field(default_factory=DependencyGraph)

    ai_summary: str | None = None
    architecture_analysis: str | None = None
    security_analysis: str | None = None
    function_explanations: dict[str, str] | None = None
    performance_metrics: list[PerformanceMetric] | None = None
    refactoring_roadmap: list[RoadmapItem] | None = None

    def enrichment_present(self) -> dict[str, bool]:
        """Map each enrichment field name to whether it carries a value."""
        return {name: getattr(self, name) is not None for name in ENRICHMENT_FIELDS}


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class EnrichmentConfig(WireModel):
    """Provider selection supplied by the caller (``llmConfig`` on the wire)."""

    provider_id: ProviderId = Field(alias="provider")
    api_key: SecretStr
    model_id: str | None = Field(default=None, alias="model")

    @field_validator("provider_id", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _PROVIDER_ALIASES.get(lowered, lowered)
        return value

    @field_validator("api_key")
    @classmethod
    def _require_api_key(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("API key is required.")
        return value


class AnalyzeRequest(WireModel):
    """Inbound analysis request."""

    repo_url: str = Field(min_length=1)
    github_token: str | None = None
    llm_config: EnrichmentConfig | None = None


class TokenValidationRequest(BaseModel):
    token: str = Field(min_length=1)


class LLMKeyValidationRequest(WireModel):
    llm_config: EnrichmentConfig


class ValidationResponse(WireModel):
    is_valid: bool
    error: str | None = None
