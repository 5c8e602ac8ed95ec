"""Command line interface for Commit Metrics."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table

from .config import settings
from .errors import CommitMetricsError
from .models import AnalysisResult, DataSource, TimeRange
from .services import RepositoryAnalysisService

app = typer.Typer(help="Commit Metrics - Git repository analytics")
console = Console()


def setup_logging(debug: bool = False) -> None:
    """Set up structured logging."""
    level = "DEBUG" if debug else settings.log_level
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except (CommitMetricsError, ValueError) as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(1)


async def _select(service: RepositoryAnalysisService, repository: Optional[str]) -> None:
    """Make a repository current, reusing a fresh cached analysis."""
    if repository:
        await service.analyze(repository)


def _provenance(source: DataSource, cached: bool) -> str:
    if source == DataSource.SYNTHETIC:
        label = "[yellow]synthetic (GitHub unreachable)[/yellow]"
    else:
        label = "[green]GitHub[/green]"
    return f"{label} [dim](cached)[/dim]" if cached else label


@app.command()
def analyze(
    repository: str = typer.Argument(..., help="Repository URL, e.g. https://github.com/owner/repo"),
    force: bool = typer.Option(False, "--force", help="Ignore a fresh cached result"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Analyze a repository and cache the result."""
    setup_logging(debug)

    async def _analyze():
        service = RepositoryAnalysisService()
        console.print(f"[bold blue]Analyzing {repository}[/bold blue]")
        result = await service.analyze(repository, force=force)
        _display_result(result)

    _run(_analyze())


@app.command()
def commits(
    repository: Optional[str] = typer.Argument(None, help="Repository URL (defaults to the cached one)"),
    time_range: TimeRange = typer.Option(TimeRange.ALL, "--range", help="Time window"),
    author: Optional[str] = typer.Option(None, "--author", help="Only commits by this author"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """List commits of the current repository."""
    setup_logging(debug)

    async def _commits():
        service = RepositoryAnalysisService()
        await _select(service, repository)
        view = await service.get_commits(time_range, author)

        table = Table(title=f"Commits ({time_range.value})")
        table.add_column("Hash", style="cyan")
        table.add_column("Date", style="green")
        table.add_column("Author", style="yellow")
        table.add_column("Message")
        for commit in view.commits:
            table.add_row(
                commit.hash, commit.date.strftime("%Y-%m-%d %H:%M"), commit.author, commit.message
            )
        console.print(table)
        console.print(f"Source: {_provenance(view.source, view.cached)}")

    _run(_commits())


@app.command()
def languages(
    repository: Optional[str] = typer.Argument(None, help="Repository URL (defaults to the cached one)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Show the language breakdown."""
    setup_logging(debug)

    async def _languages():
        service = RepositoryAnalysisService()
        await _select(service, repository)
        view = await service.get_languages()

        table = Table(title="Languages")
        table.add_column("Language", style="cyan")
        table.add_column("Weight", justify="right")
        table.add_column("Share", justify="right", style="green")
        for name, weight in view.languages.items():
            table.add_row(name, str(weight), f"{view.percentages[name]}%")
        console.print(table)
        console.print(f"Source: {_provenance(view.source, view.cached)}")

    _run(_languages())


@app.command()
def top_files(
    repository: Optional[str] = typer.Argument(None, help="Repository URL (defaults to the cached one)"),
    limit: int = typer.Option(10, "--limit", min=1, help="Number of files"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Show the most changed files among recently sampled commits."""
    setup_logging(debug)

    async def _top_files():
        service = RepositoryAnalysisService()
        await _select(service, repository)
        view = await service.get_top_files(limit)

        table = Table(title="Top files (sampled from recent commits)")
        table.add_column("File", style="cyan")
        table.add_column("Changes", justify="right", style="yellow")
        for file in view.files:
            table.add_row(file.filename, str(file.changes))
        console.print(table)
        console.print(f"Source: {_provenance(view.source, view.cached)}")

    _run(_top_files())


@app.command()
def activity(
    repository: Optional[str] = typer.Argument(None, help="Repository URL (defaults to the cached one)"),
    window: TimeRange = typer.Option(TimeRange.WEEK, "--window", help="Time window"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Show daily commit counts."""
    setup_logging(debug)

    async def _activity():
        service = RepositoryAnalysisService()
        await _select(service, repository)
        points = service.get_activity_series(window)

        table = Table(title=f"Activity ({window.value})")
        table.add_column("Date", style="cyan")
        table.add_column("Commits", justify="right")
        table.add_column("")
        for point in points:
            table.add_row(
                point.date.isoformat(), str(point.commit_count), "█" * point.commit_count
            )
        console.print(table)

    _run(_activity())


@app.command()
def export(
    repository: str = typer.Argument(..., help="Repository URL"),
    time_range: TimeRange = typer.Option(TimeRange.ALL, "--range", help="Reported window"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Export a report for an analyzed repository."""
    setup_logging(debug)

    async def _export():
        service = RepositoryAnalysisService()
        await _select(service, repository)
        artifact = await service.export_report(repository, time_range)
        path = output or Path(artifact.filename)
        path.write_bytes(artifact.content)
        console.print(
            f"[green]Wrote {artifact.media_type} report to {path}[/green] "
            f"- Source: {_provenance(artifact.source, artifact.cached)}"
        )

    _run(_export())


@app.command()
def serve(
    host: str = typer.Option(settings.api_host, "--host", help="Host to bind to"),
    port: int = typer.Option(settings.api_port, "--port", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Start the dashboard API server."""
    import uvicorn

    console.print(f"[bold blue]Starting Commit Metrics API on {host}:{port}[/bold blue]")

    uvicorn.run(
        "commit_metrics.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def config_check() -> None:
    """Show the effective configuration."""
    setup_logging()

    table = Table(title="Configuration Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Value", style="yellow")

    table.add_row(
        "GitHub Token",
        "✓" if settings.github_token else "✗",
        "Set" if settings.github_token else "Not set (60 requests/hour)",
    )
    table.add_row("GitHub API", "✓", settings.github_api_url)
    table.add_row("Report API", "✓", settings.report_api_url)
    table.add_row("Network", "✗" if settings.offline else "✓", "Offline" if settings.offline else "Online")
    table.add_row("Retries", "✓", f"{settings.max_retries} (base delay {settings.retry_base_delay}s)")
    table.add_row("Request Timeout", "✓", f"{settings.request_timeout}s")
    table.add_row("Cache", "✓", f"{settings.cache_dir} (max age {settings.cache_max_age}s)")
    table.add_row("Log Level", "✓", settings.log_level)

    console.print(table)


def _display_result(result: AnalysisResult) -> None:
    """Display an analysis summary."""
    console.print(f"\n[bold green]{result.repository_id}[/bold green]")
    console.print(f"Source: {_provenance(result.source, result.cached)}")
    console.print(f"Commits: {len(result.commits)}  Authors: {len(result.authors)}")

    table = Table(title="Top files (sampled from recent commits)")
    table.add_column("File", style="cyan")
    table.add_column("Changes", justify="right", style="yellow")
    for file in result.top_files(5):
        table.add_row(file.filename, str(file.changes))
    console.print(table)

    languages = ", ".join(f"{name} ({weight})" for name, weight in result.languages.items())
    console.print(f"Languages: {languages or 'none'}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
