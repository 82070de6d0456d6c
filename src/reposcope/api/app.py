"""FastAPI application: streamed analysis and credential validation."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from reposcope import __version__
from reposcope.api.stream import ProgressChannel
from reposcope.config import Settings
from reposcope.enrichment import EnrichmentOrchestrator
from reposcope.exceptions import GitHubAPIError
from reposcope.github import GitHubClient
from reposcope.models import (
    AnalyzeRequest,
    LLMKeyValidationRequest,
    TokenValidationRequest,
    ValidationResponse,
)
from reposcope.pipeline import PipelineController

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from reposcope.enrichment import TextProvider

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def _validation_message(exc: ValidationError, prefix: str) -> str:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
        for error in exc.errors()
    )
    return f"{prefix}: {details}"


def parse_analyze_request(payload: dict[str, Any]) -> AnalyzeRequest:
    """Build an :class:`AnalyzeRequest` from query or body fields.

    ``llmConfig`` may arrive as an object or as a JSON-encoded string.

    Raises:
        ValueError: With a user-facing message when the payload is invalid.
    """
    llm_config = payload.get("llmConfig")
    if isinstance(llm_config, str):
        if not llm_config.strip():
            llm_config = None
        else:
            try:
                llm_config = json.loads(llm_config)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid llmConfig: {exc.msg}") from exc

    if not payload.get("repoUrl"):
        raise ValueError("Repository URL is required.")

    try:
        return AnalyzeRequest.model_validate(
            {
                "repoUrl": payload.get("repoUrl"),
                "githubToken": payload.get("githubToken") or None,
                "llmConfig": llm_config,
            }
        )
    except ValidationError as exc:
        raise ValueError(_validation_message(exc, "Invalid analysis request")) from exc


def create_app(
    settings: Settings | None = None,
    *,
    github_transport: httpx.AsyncBaseTransport | None = None,
    provider: TextProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI app.

    Args:
        settings: Application settings; loaded from the environment when
            omitted.
        github_transport: Optional httpx transport for every GitHub call.
        provider: Optional text provider replacing the one built from
            ``llmConfig``.
    """
    app_settings = settings or Settings.load()

    app = FastAPI(title="reposcope API", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    controller = PipelineController(
        app_settings, github_transport=github_transport, provider=provider
    )
    running: set[asyncio.Task[Any]] = set()

    app.state.settings = app_settings
    app.state.controller = controller
    app.state.running = running

    def _stream(
        request: Request, analyze: AnalyzeRequest | None, error: str | None
    ) -> StreamingResponse:
        channel = ProgressChannel(app_settings.api.keepalive_seconds)

        async def event_gen() -> AsyncIterator[str]:
            if analyze is None:
                logger.info("analysis_rejected", error=error)
                channel.fail(error or "Invalid analysis request.")
            else:
                task = asyncio.create_task(controller.run(analyze, channel))
                running.add(task)
                task.add_done_callback(running.discard)
            try:
                async for frame in channel.events():
                    if await request.is_disconnected():
                        break
                    yield frame
            finally:
                channel.close()

        return StreamingResponse(
            event_gen(), media_type="text/event-stream", headers=_SSE_HEADERS
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/analyze")
    async def analyze_get(
        request: Request,
        repo_url: str = Query(default="", alias="repoUrl"),
        github_token: str | None = Query(default=None, alias="githubToken"),
        llm_config: str | None = Query(default=None, alias="llmConfig"),
    ) -> StreamingResponse:
        try:
            analyze = parse_analyze_request(
                {
                    "repoUrl": repo_url,
                    "githubToken": github_token,
                    "llmConfig": llm_config,
                }
            )
        except ValueError as exc:
            return _stream(request, None, str(exc))
        return _stream(request, analyze, None)

    @app.post("/api/analyze")
    async def analyze_post(request: Request) -> StreamingResponse:
        try:
            payload = await request.json()
        except ValueError:
            return _stream(request, None, "Request body must be JSON.")
        if not isinstance(payload, dict):
            return _stream(request, None, "Request body must be a JSON object.")
        try:
            analyze = parse_analyze_request(payload)
        except ValueError as exc:
            return _stream(request, None, str(exc))
        return _stream(request, analyze, None)

    @app.post("/api/validate-github-token")
    async def validate_github_token(
        body: TokenValidationRequest,
    ) -> ValidationResponse:
        async with GitHubClient(
            app_settings.github, body.token, transport=github_transport
        ) as client:
            try:
                valid = await client.verify_token()
            except GitHubAPIError as exc:
                logger.warning("token_validation_failed", error=str(exc))
                return ValidationResponse(is_valid=False, error=str(exc))
        if not valid:
            return ValidationResponse(
                is_valid=False, error="Invalid GitHub token or insufficient scopes."
            )
        return ValidationResponse(is_valid=True)

    @app.post("/api/validate-llm-key")
    async def validate_llm_key(body: LLMKeyValidationRequest) -> ValidationResponse:
        orchestrator = EnrichmentOrchestrator(
            body.llm_config, app_settings.enrichment, provider=provider
        )
        if not await orchestrator.check_availability():
            return ValidationResponse(
                is_valid=False,
                error=(
                    f"Invalid API key or {body.llm_config.provider_id.value} "
                    "is unavailable."
                ),
            )
        return ValidationResponse(is_valid=True)

    return app
