"""Configuration with layered resolution: defaults -> YAML -> env -> CLI.

Uses pydantic-settings with YamlConfigSettingsSource for layered configuration.
Supports ``.env`` file loading, ``REPOSCOPE_`` prefixed env vars, and nested
delimiter ``__`` for overriding sub-model fields
(``REPOSCOPE_GITHUB__TOKEN=...``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Literal

import structlog
from pydantic import BaseModel, Field, SecretStr, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class GitHubSettings(BaseModel):
    """GitHub REST client configuration."""

    api_url: str = "https://api.github.com"
    token: SecretStr | None = Field(
        default=None,
        description="Fallback token used when a request does not supply one.",
    )
    timeout: float = Field(
        default=30.0, gt=0.0, description="Per-request timeout in seconds."
    )
    per_page: int = Field(default=100, ge=1, le=100)
    max_contributor_pages: int = Field(default=5, ge=1)
    max_commits: int = Field(default=200, ge=1)
    max_content_files: int = Field(
        default=50, ge=0, description="Upper bound on files whose content is fetched."
    )
    max_file_size: int = Field(
        default=100_000,
        gt=0,
        description="Skip content for files at or above this size.",
    )
    content_concurrency: int = Field(default=8, ge=1, le=64)
    max_commit_details: int = Field(
        default=20,
        ge=0,
        description="Recent commits whose changed-file lists are fetched.",
    )


class EnrichmentSettings(BaseModel):
    """Generative-text provider retry and request configuration."""

    max_attempts: int = Field(default=4, ge=1, le=10)
    base_delay_seconds: float = Field(default=2.0, ge=0.0)
    max_delay_seconds: float = Field(default=30.0, gt=0.0)
    timeout: int = Field(default=60, gt=0, description="Request timeout in seconds.")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_functions_explained: int = Field(default=5, ge=0)
    max_complexity_estimates: int = Field(default=5, ge=0)
    max_hotspots_explained: int = Field(default=3, ge=0)


class APISettings(BaseModel):
    """FastAPI server settings."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    keepalive_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Idle interval between SSE keep-alive comments.",
    )


class LoggingSettings(BaseModel):
    """Logging / observability configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Main Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Top-level application settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. YAML config file (``config.yaml`` or ``--config`` path)
        3. ``.env`` file
        4. Environment variables (prefixed ``REPOSCOPE_``)
        5. CLI overrides (applied programmatically after loading)
    """

    model_config = SettingsConfigDict(
        env_prefix="REPOSCOPE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="config.yaml",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    api: APISettings = Field(default_factory=APISettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings (CLI) > env_settings > dotenv (.env) > yaml > defaults

        Args:
            settings_cls: The settings class.
            init_settings: Init / programmatic overrides.
            env_settings: Environment variable source.
            dotenv_settings: Dotenv file source (.env).
            file_secret_settings: Secret file source (unused).

        Returns:
            Ordered tuple of settings sources (first = highest priority).
        """
        yaml_file = cls._config_path_override or settings_cls.model_config.get(
            "yaml_file", "config.yaml"
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
        )

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings with optional config path and CLI overrides.

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Key-value CLI overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ValidationError: If any setting value fails validation.
        """
        cls._config_path_override = config_path
        try:
            return cls(**overrides)
        finally:
            cls._config_path_override = None


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if raw_input is not None:
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        else:
            lines.append(f"  {loc}: {msg}")
    return "Configuration error:\n" + "\n".join(lines)
