"""Generative-text providers behind a single ``generate_text`` call.

All providers go through litellm, which speaks each vendor's API behind
provider-prefixed model identifiers (``anthropic/claude-...``). The set of
providers is closed: :data:`PROVIDERS` maps every :class:`ProviderId` to
its class and is resolved once when a provider is built.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Protocol

import structlog

from reposcope.logging import redact_secret
from reposcope.models import ProviderId

if TYPE_CHECKING:
    from reposcope.config import EnrichmentSettings
    from reposcope.models import EnrichmentConfig

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

DEFAULT_MODELS: dict[ProviderId, str] = {
    ProviderId.OPENAI: "gpt-4o",
    ProviderId.ANTHROPIC: "claude-3-5-sonnet-20240620",
    ProviderId.GEMINI: "gemini-2.0-flash",
}


class TextProvider(Protocol):
    """Anything that turns a prompt into text."""

    provider_id: ProviderId
    model_id: str

    async def generate_text(self, prompt: str, max_output_tokens: int) -> str: ...


# ---------------------------------------------------------------------------
# litellm-backed providers
# ---------------------------------------------------------------------------


class LiteLLMProvider:
    """Single-shot chat completion through ``litellm.acompletion``.

    Retries are not handled here; the orchestrator owns the retry policy.

    Attributes:
        provider_id: Which vendor this instance talks to.
        model_id: Vendor model name, without the litellm prefix.
    """

    provider_id: ClassVar[ProviderId]
    litellm_prefix: ClassVar[str]

    def __init__(
        self,
        api_key: str,
        model_id: str | None = None,
        *,
        timeout: int = 60,
        temperature: float = 0.2,
    ) -> None:
        self.model_id = model_id or DEFAULT_MODELS[self.provider_id]
        self._api_key = api_key
        self._timeout = timeout
        self._temperature = temperature

    @property
    def litellm_model(self) -> str:
        """Provider-prefixed identifier passed to litellm."""
        return f"{self.litellm_prefix}/{self.model_id}"

    async def generate_text(self, prompt: str, max_output_tokens: int) -> str:
        """Send one user message and return the reply text.

        Args:
            prompt: The full prompt.
            max_output_tokens: Upper bound on reply length.

        Returns:
            The reply content, or an empty string when the provider sent none.
        """
        import litellm

        response = await litellm.acompletion(
            model=self.litellm_model,
            messages=[{"role": "user", "content": prompt}],
            api_key=self._api_key,
            max_tokens=max_output_tokens,
            temperature=self._temperature,
            timeout=self._timeout,
        )
        content = response.choices[0].message.content
        return content or ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model_id={self.model_id!r})"


class OpenAIProvider(LiteLLMProvider):
    provider_id = ProviderId.OPENAI
    litellm_prefix = "openai"


class AnthropicProvider(LiteLLMProvider):
    provider_id = ProviderId.ANTHROPIC
    litellm_prefix = "anthropic"


class GeminiProvider(LiteLLMProvider):
    provider_id = ProviderId.GEMINI
    litellm_prefix = "gemini"


PROVIDERS: dict[ProviderId, type[LiteLLMProvider]] = {
    ProviderId.OPENAI: OpenAIProvider,
    ProviderId.ANTHROPIC: AnthropicProvider,
    ProviderId.GEMINI: GeminiProvider,
}


def build_provider(
    config: EnrichmentConfig, settings: EnrichmentSettings
) -> LiteLLMProvider:
    """Instantiate the provider class selected by ``config.provider_id``.

    Args:
        config: Caller-supplied provider, key and optional model.
        settings: Timeout and temperature applied to every request.

    Returns:
        A ready provider; the model falls back to the provider default.
    """
    provider_cls = PROVIDERS[config.provider_id]
    provider = provider_cls(
        config.api_key.get_secret_value(),
        config.model_id,
        timeout=settings.timeout,
        temperature=settings.temperature,
    )
    logger.debug(
        "provider_built",
        provider=config.provider_id.value,
        model_id=provider.model_id,
        api_key=redact_secret(config.api_key.get_secret_value()),
    )
    return provider
