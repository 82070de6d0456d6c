"""Uvicorn server runner for the reposcope API."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
import uvicorn

from reposcope.api.app import create_app

if TYPE_CHECKING:
    from reposcope.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def run_server(settings: Settings) -> None:
    """Run uvicorn with settings-backed host/port values."""
    app = create_app(settings)
    logger.info("server_starting", host=settings.api.host, port=settings.api.port)
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.logging.level.lower(),
    )
