"""Centralized exception hierarchy for the reposcope package.

All domain-specific exceptions inherit from ``RepoScopeError`` so callers
can catch the entire family with a single ``except`` clause. The pipeline
treats ``GitHubAPIError`` as fatal and ``EnrichmentError`` as absorbable.
"""

from __future__ import annotations


class RepoScopeError(Exception):
    """Base exception for all reposcope errors."""


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


class InvalidRepositoryReferenceError(RepoScopeError):
    """Raised when a repository URL or ``owner/name`` string cannot be parsed."""


# ---------------------------------------------------------------------------
# GitHub errors
# ---------------------------------------------------------------------------


class GitHubAPIError(RepoScopeError):
    """Raised when a GitHub REST call fails.

    Attributes:
        status: Upstream HTTP status, or ``None`` for transport failures.
        resource: Name of the resource being fetched (``"contributors"``).
        repository: ``owner/name`` of the repository, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        resource: str = "",
        repository: str = "",
    ) -> None:
        super().__init__(message)
        self.status = status
        self.resource = resource
        self.repository = repository


class GitHubAuthError(GitHubAPIError):
    """Raised on HTTP 401 or when a supplied token is rejected."""


class GitHubRateLimitError(GitHubAPIError):
    """Raised on HTTP 403/429 carrying a rate-limit indicator."""


class GitHubPermissionError(GitHubAPIError):
    """Raised on a plain HTTP 403."""


class GitHubNotFoundError(GitHubAPIError):
    """Raised on HTTP 404."""


class GitHubUnprocessableError(GitHubAPIError):
    """Raised on HTTP 422 (malformed reference or branch)."""


# ---------------------------------------------------------------------------
# Enrichment errors
# ---------------------------------------------------------------------------


class EnrichmentError(RepoScopeError):
    """Base exception for generative-text provider failures."""


class NonRetryableProviderError(EnrichmentError):
    """Raised when a provider error is known not to succeed on retry."""


class ProviderRetryExhaustedError(EnrichmentError):
    """Raised when every retry attempt against a provider failed."""


class StructuredOutputError(EnrichmentError):
    """Raised when provider text cannot be parsed as the requested JSON."""


# ---------------------------------------------------------------------------
# Stream errors
# ---------------------------------------------------------------------------


class ChannelClosedError(RepoScopeError):
    """Raised when a second terminal event is sent on a progress channel."""


class AnalysisCancelledError(RepoScopeError):
    """Raised when the caller closed the progress channel mid-run."""
