"""Enrichment orchestrator: prompts, retry policy, structured parsing.

Every public method returns ``None`` when no provider is configured, so the
pipeline can call them unconditionally. With a provider configured, failures
surface as :class:`~reposcope.exceptions.EnrichmentError` subclasses and
the caller decides whether to absorb them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError
from tenacity import (
    RetryError,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from reposcope.config import EnrichmentSettings
from reposcope.enrichment import prompts
from reposcope.enrichment.providers import build_provider
from reposcope.enrichment.structured import extract_json
from reposcope.exceptions import (
    NonRetryableProviderError,
    ProviderRetryExhaustedError,
    StructuredOutputError,
)
from reposcope.models import PerformanceMetric, RoadmapItem

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from reposcope.enrichment.providers import TextProvider
    from reposcope.models import (
        EnrichmentConfig,
        FileRecord,
        Hotspot,
        RepositorySnapshot,
        TechnicalDebtItem,
    )

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def is_non_retryable(exc: BaseException) -> bool:
    """Whether a provider error cannot succeed on retry.

    Invalid credentials, permission denials, unknown models and malformed
    requests fail identically every time.
    """
    if isinstance(exc, (NonRetryableProviderError, StructuredOutputError)):
        return True

    import litellm

    return isinstance(
        exc,
        (
            litellm.AuthenticationError,
            litellm.PermissionDeniedError,
            litellm.NotFoundError,
            litellm.BadRequestError,
        ),
    )


def _is_retryable(exc: BaseException) -> bool:
    return not is_non_retryable(exc)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class EnrichmentOrchestrator:
    """Runs enrichment prompts against one provider with retry.

    Attributes:
        settings: Retry and request settings.
        provider: The resolved provider, or ``None`` when unconfigured.
    """

    def __init__(
        self,
        config: EnrichmentConfig | None,
        settings: EnrichmentSettings | None = None,
        provider: TextProvider | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Caller-supplied provider selection; ``None`` disables
                every enrichment method.
            settings: Retry and request settings. Defaults to
                ``EnrichmentSettings()``.
            provider: Pre-built provider, mainly for tests. Takes precedence
                over ``config``.
        """
        self.settings = settings or EnrichmentSettings()
        if provider is None and config is not None:
            provider = build_provider(config, self.settings)
        self.provider = provider

    @property
    def configured(self) -> bool:
        return self.provider is not None

    # -- transport ------------------------------------------------------

    async def _generate(self, operation: str, prompt: str, max_tokens: int) -> str:
        """Call the provider with exponential-backoff retry.

        Args:
            operation: Name used in log events.
            prompt: Prompt text.
            max_tokens: Output budget.

        Returns:
            Provider reply text.

        Raises:
            NonRetryableProviderError: On an error retrying cannot fix.
            ProviderRetryExhaustedError: When every attempt failed.
        """
        provider = self.provider
        if provider is None:
            raise NonRetryableProviderError(
                f"No text provider configured for {operation}."
            )
        attempts = self.settings.max_attempts

        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=self.settings.base_delay_seconds,
                max=self.settings.max_delay_seconds,
            ),
            retry=retry_if_exception(_is_retryable),
            reraise=False,
        )
        async def _do_call() -> str:
            return await provider.generate_text(prompt, max_tokens)

        try:
            text = await _do_call()
        except RetryError as exc:
            last_err = exc.last_attempt.exception() if exc.last_attempt else exc
            logger.warning(
                "enrichment_retries_exhausted",
                operation=operation,
                attempts=attempts,
                error=str(last_err),
            )
            raise ProviderRetryExhaustedError(
                f"{operation} failed after {attempts} attempts: {last_err}"
            ) from last_err
        except NonRetryableProviderError:
            raise
        except Exception as exc:
            if is_non_retryable(exc):
                logger.warning(
                    "enrichment_non_retryable",
                    operation=operation,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise NonRetryableProviderError(f"{operation} failed: {exc}") from exc
            raise

        logger.debug("enrichment_generated", operation=operation, chars=len(text))
        return text

    async def _generate_json(self, operation: str, prompt: str, max_tokens: int) -> Any:
        text = await self._generate(operation, prompt, max_tokens)
        return extract_json(text)

    # -- free text -----------------------------------------------------

    async def executive_summary(
        self,
        snapshot: RepositorySnapshot,
        contributor_count: int = 0,
        commit_count: int = 0,
    ) -> str | None:
        """Short narrative summary of the repository."""
        if not self.configured:
            return None
        prompt, max_tokens = prompts.summary_prompt(
            snapshot, contributor_count, commit_count
        )
        return (await self._generate("executive_summary", prompt, max_tokens)).strip()

    async def architecture_analysis(
        self, files: Sequence[FileRecord], languages: Mapping[str, int]
    ) -> str | None:
        if not self.configured:
            return None
        prompt, max_tokens = prompts.architecture_prompt(files, languages)
        text = await self._generate("architecture_analysis", prompt, max_tokens)
        return text.strip()

    async def security_analysis(
        self, full_name: str, files: Sequence[FileRecord]
    ) -> str | None:
        if not self.configured:
            return None
        prompt, max_tokens = prompts.security_prompt(full_name, files)
        text = await self._generate("security_analysis", prompt, max_tokens)
        return text.strip()

    async def explain_function(
        self,
        name: str,
        body: str,
        file_path: str,
        language: str | None = None,
        context: str | None = None,
    ) -> str | None:
        """Technical explanation of a single function."""
        if not self.configured:
            return None
        prompt, max_tokens = prompts.function_prompt(
            name, body, file_path, language, context
        )
        text = await self._generate("explain_function", prompt, max_tokens)
        return text.strip()

    async def explain_hotspot(
        self, hotspot: Hotspot, content: str | None = None
    ) -> str | None:
        """Short note on why a hotspot is risky; ``None`` when unconfigured."""
        if not self.configured:
            return None
        prompt, max_tokens = prompts.hotspot_prompt(hotspot, content)
        text = await self._generate("explain_hotspot", prompt, max_tokens)
        return text.strip() or None

    # -- structured ----------------------------------------------------

    async def algorithmic_complexity(
        self, content: str, file_path: str, function: str
    ) -> PerformanceMetric | None:
        """Estimate the dominant Big-O complexity of a file.

        Args:
            content: File text; only the head is sent.
            file_path: Path reported in the metric.
            function: Name of the function the estimate is attributed to.

        Returns:
            The estimate, or ``None`` when unconfigured.

        Raises:
            StructuredOutputError: If the reply lacks ``complexity`` or
                ``runtime``.
        """
        if not self.configured:
            return None
        prompt, max_tokens = prompts.complexity_prompt(content, file_path)
        payload = await self._generate_json(
            "algorithmic_complexity", prompt, max_tokens
        )
        if not isinstance(payload, dict):
            raise StructuredOutputError("Complexity estimate is not a JSON object")
        complexity = payload.get("complexity")
        runtime = payload.get("runtime")
        if not complexity or not runtime:
            raise StructuredOutputError(
                "Complexity estimate is missing 'complexity' or 'runtime'"
            )
        return PerformanceMetric(
            function=function,
            file=file_path,
            complexity=str(complexity),
            estimated_runtime=str(runtime),
            recommendation=str(payload.get("recommendation") or ""),
        )

    async def refactoring_roadmap(
        self,
        technical_debt: Sequence[TechnicalDebtItem],
        hotspots: Sequence[Hotspot],
        file_count: int,
    ) -> list[RoadmapItem] | None:
        """Prioritized refactoring plan, sorted by priority.

        Raises:
            StructuredOutputError: If the reply is not an array of valid
                roadmap items.
        """
        if not self.configured:
            return None
        prompt, max_tokens = prompts.roadmap_prompt(
            technical_debt, hotspots, file_count
        )
        payload = await self._generate_json("refactoring_roadmap", prompt, max_tokens)
        if isinstance(payload, dict) and isinstance(payload.get("roadmap"), list):
            payload = payload["roadmap"]
        if not isinstance(payload, list):
            raise StructuredOutputError("Refactoring roadmap is not a JSON array")
        try:
            items = [RoadmapItem.model_validate(entry) for entry in payload]
        except ValidationError as exc:
            raise StructuredOutputError(
                f"Refactoring roadmap item is invalid: {exc.error_count()} error(s)"
            ) from exc
        return sorted(items, key=lambda item: item.priority)

    # -- availability --------------------------------------------------

    async def check_availability(self) -> bool:
        """Send the provider a tiny prompt; ``False`` on any failure."""
        provider = self.provider
        if provider is None:
            return False
        try:
            await provider.generate_text(
                prompts.AVAILABILITY_PROMPT, prompts.AVAILABILITY_MAX_TOKENS
            )
        except Exception as exc:
            logger.warning(
                "provider_unavailable",
                provider=str(provider.provider_id),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False
        return True
