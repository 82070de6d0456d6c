"""Typer CLI entry point for reposcope."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from reposcope import __version__
from reposcope.api.server import run_server
from reposcope.api.stream import ProgressChannel, parse_sse_frame
from reposcope.config import Settings, format_validation_error
from reposcope.logging import configure_logging
from reposcope.models import AnalyzeRequest, EnrichmentConfig, ProviderId
from reposcope.pipeline import PipelineController

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="reposcope",
    help="Analyze GitHub repositories: metrics, risks and optional AI commentary.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(
    config_path: Path | None = None,
    **overrides: Any,
) -> Settings:
    """Load settings with error handling and user-friendly messages."""
    from pydantic import ValidationError

    try:
        return Settings.load(config_path=config_path, **overrides)
    except ValidationError as exc:
        err_console.print(
            Panel(
                format_validation_error(exc),
                title="Configuration Error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc


def _create_progress() -> Progress:
    """Create a Rich progress bar with spinner, text, bar, and time columns."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
    )


async def _run_analysis(
    settings: Settings, request: AnalyzeRequest, progress: Progress
) -> tuple[str, dict[str, Any]]:
    """Run the pipeline and mirror its progress events onto ``progress``.

    Returns:
        The terminal event name and its payload.
    """
    channel = ProgressChannel(settings.api.keepalive_seconds)
    controller = PipelineController(settings)
    task_id = progress.add_task("Starting analysis", total=100)
    runner = asyncio.create_task(controller.run(request, channel))

    terminal: tuple[str, dict[str, Any]] = ("error", {"error": "No result produced."})
    async for frame in channel.events():
        decoded = parse_sse_frame(frame)
        if decoded is None:
            continue
        event, data = decoded
        if event == "message":
            progress.update(
                task_id, description=data["step"], completed=data["progress"]
            )
        else:
            terminal = (event, data)
    await runner
    return terminal


def _display_summary(report: dict[str, Any]) -> None:
    """Render the headline metrics of a wire-format report."""
    repository = report["repository"]
    metrics = report["metrics"]

    table = Table(title=repository["fullName"], show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Commits analyzed", str(metrics["totalCommits"]))
    table.add_row("Contributors", str(metrics["totalContributors"]))
    table.add_row("Lines of code (sampled)", str(metrics["linesOfCode"]))
    table.add_row("Bus factor", str(metrics["busFactor"]))
    table.add_row("Test coverage (est.)", f"{metrics['testCoverage']:.1f}%")
    table.add_row("Code quality", f"{metrics['codeQuality']:.1f}/10")
    table.add_row("Security score", f"{metrics['securityScore']:.1f}/10")
    table.add_row("Performance score", f"{metrics['performanceScore']:.1f}/10")
    table.add_row("Technical debt score", f"{metrics['technicalDebtScore']:.1f}/10")
    table.add_row("Security issues", str(len(report["securityIssues"])))
    table.add_row("Technical debt items", str(len(report["technicalDebt"])))
    table.add_row("API endpoints", str(len(report["apiEndpoints"])))
    table.add_row("Hotspots", str(len(report["hotspots"])))
    console.print(table)

    summary = report.get("aiSummary")
    if summary:
        console.print(Panel(summary, title="AI Summary", border_style="green"))


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]reposcope[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """reposcope global options."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def analyze(
    repo: Annotated[
        str,
        typer.Argument(help="GitHub URL or owner/name of the repository."),
    ],
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            "-t",
            envvar="GITHUB_TOKEN",
            help="GitHub Personal Access Token.",
        ),
    ] = None,
    provider: Annotated[
        ProviderId | None,
        typer.Option("--provider", "-p", help="Enrichment provider."),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", help="API key for the enrichment provider."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Provider model; defaults per provider."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the full report as JSON."),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Analyze a repository and print its headline metrics."""
    settings = _load_settings(config)
    configure_logging(
        level="DEBUG" if verbose else settings.logging.level,
        fmt=settings.logging.format,
        log_file=settings.logging.file,
    )

    if (provider is None) != (api_key is None):
        err_console.print(
            "[red]--provider and --api-key must be given together.[/red]"
        )
        raise typer.Exit(code=2)

    llm_config = (
        EnrichmentConfig(provider_id=provider, api_key=api_key, model_id=model)
        if provider is not None and api_key is not None
        else None
    )
    request = AnalyzeRequest(repo_url=repo, github_token=token, llm_config=llm_config)

    with _create_progress() as progress:
        event, payload = asyncio.run(_run_analysis(settings, request, progress))

    if event != "complete":
        err_console.print(
            Panel(
                str(payload.get("error", "Analysis failed.")),
                title="Analysis Failed",
                border_style="red",
            )
        )
        raise typer.Exit(code=1)

    _display_summary(payload)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        console.print(f"\n[green]Report saved:[/green] {output}")


@app.command()
def serve(
    port: Annotated[
        int | None,
        typer.Option("--port", help="Port to bind the FastAPI server."),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", help="Host/interface to bind the FastAPI server."),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
) -> None:
    """Run the reposcope FastAPI server."""
    api_overrides: dict[str, Any] = {}
    if port is not None:
        api_overrides["port"] = port
    if host is not None:
        api_overrides["host"] = host
    settings = (
        _load_settings(config, api=api_overrides)
        if api_overrides
        else _load_settings(config)
    )
    configure_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        log_file=settings.logging.file,
    )
    run_server(settings)


@app.command()
def version() -> None:
    """Print the installed reposcope version."""
    console.print(f"[bold]reposcope[/bold] {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
