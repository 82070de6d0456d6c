"""Optional narrative and structured enrichment through generative-text providers."""

from __future__ import annotations

from reposcope.enrichment.orchestrator import EnrichmentOrchestrator, is_non_retryable
from reposcope.enrichment.providers import (
    DEFAULT_MODELS,
    PROVIDERS,
    AnthropicProvider,
    GeminiProvider,
    LiteLLMProvider,
    OpenAIProvider,
    TextProvider,
    build_provider,
)
from reposcope.enrichment.structured import extract_json

__all__ = [
    "DEFAULT_MODELS",
    "PROVIDERS",
    "AnthropicProvider",
    "EnrichmentOrchestrator",
    "GeminiProvider",
    "LiteLLMProvider",
    "OpenAIProvider",
    "TextProvider",
    "build_provider",
    "extract_json",
    "is_non_retryable",
]
