"""structlog configuration and pipeline stage logging.

Provides run ID generation, a stage-level logging context manager, secret
redaction, and structured log configuration for console and JSON output
with optional file logging.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

# ---------------------------------------------------------------------------
# Run ID
# ---------------------------------------------------------------------------


def generate_run_id() -> str:
    """Generate a unique identifier for one analysis run.

    Returns:
        A UUID4 string used as the report id and bound to log entries.
    """
    return str(uuid.uuid4())


def redact_secret(value: str | None) -> str:
    """Return a log-safe rendering of a credential.

    Args:
        value: The token or API key, possibly ``None``.

    Returns:
        ``"<unset>"``, ``"***"`` for short values, or the last four
        characters prefixed with ``***``.
    """
    if not value:
        return "<unset>"
    if len(value) <= 8:
        return "***"
    return f"***{value[-4:]}"


# ---------------------------------------------------------------------------
# structlog configuration
# ---------------------------------------------------------------------------


_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
    run_id: str | None = None,
) -> None:
    """Configure structlog for the application.

    Sets up structlog with shared processors and a format-specific
    renderer. Configures the stdlib logging root to respect the given
    level and optionally adds a file handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: Output format: ``"console"`` for human-readable or
            ``"json"`` for machine-parseable.
        log_file: Optional file path for log output (in addition to stderr).
        run_id: Optional run ID to bind to all log entries.

    Raises:
        ValueError: If ``level`` is not a recognized log level.
    """
    level_upper = level.upper()
    if level_upper not in _VALID_LEVELS:
        msg = f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}"
        raise ValueError(msg)

    numeric_level = getattr(logging, level_upper)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Re-configuration must not stack handlers
    root_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(numeric_level)
    root_logger.addHandler(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(numeric_level)
        root_logger.addHandler(file_handler)

    # litellm and httpx log every request at INFO
    for noisy in ("httpx", "httpcore", "LiteLLM"):
        logging.getLogger(noisy).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)

    if run_id:
        structlog.contextvars.bind_contextvars(run_id=run_id)


# ---------------------------------------------------------------------------
# Stage logging context manager
# ---------------------------------------------------------------------------


@contextmanager
def stage_logging_context(
    stage: str,
    **extra: Any,
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Context manager that binds pipeline-stage metadata to structlog.

    Logs stage start and end, logs and re-raises any exception, and binds
    the stage name to all log entries within the context.

    Args:
        stage: Name of the pipeline stage (``"fetching_core"``).
        **extra: Additional key-value pairs to bind.

    Yields:
        A bound structlog logger with stage context.

    Example::

        with stage_logging_context("fetching_core", repository="acme/widgets") as log:
            log.info("fetching_commits")
    """
    structlog.contextvars.bind_contextvars(stage=stage, **extra)

    log: structlog.stdlib.BoundLogger = structlog.get_logger(f"reposcope.{stage}")
    log.info("stage_start")

    try:
        yield log
    except Exception:
        log.exception("stage_error")
        raise
    finally:
        log.info("stage_end")
        structlog.contextvars.unbind_contextvars("stage", *extra.keys())
