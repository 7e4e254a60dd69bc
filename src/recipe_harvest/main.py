"""
Recipe Harvest - CLI Entry Point.

Usage:
    recipe-harvest extract URL             Extract one recipe in-process
    recipe-harvest extract URL --json      Print the recipe as JSON
    recipe-harvest submit URL              Submit to a running server and poll
    recipe-harvest serve                   Start the API server
    recipe-harvest health                  Check configuration and storage
    recipe-harvest --help                  Show help
"""

import asyncio
import json
import os
import time

import httpx
import typer
import uvicorn
from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner
from rich.table import Table

from recipe_harvest import __version__
from recipe_harvest.config import get_settings
from recipe_harvest.db.store import get_store
from recipe_harvest.logging_config import configure_logging
from recipe_harvest.recipe_import import (
    BrowserSession,
    ExtractionCandidate,
    InvalidURLError,
    RecipeHarvestError,
    extract_recipe,
)

app = typer.Typer(
    name="recipe-harvest",
    help="Recipe Harvest - extract structured recipes from recipe web pages.",
    add_completion=False,
)
console = Console()

TERMINAL_STATUSES = ("success", "failed")


async def _extract(url: str, use_browser: bool):
    settings = get_settings()
    if not use_browser or not settings.browser_enabled:
        return await extract_recipe(url, settings)
    async with BrowserSession(settings) as browser:
        return await extract_recipe(url, settings, browser=browser)


@app.command()
def extract(
    url: str = typer.Argument(..., help="Recipe page URL"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Skip the headless browser tier"),
    as_json: bool = typer.Option(False, "--json", help="Print the recipe as JSON"),
) -> None:
    """Run the extraction chain once and print the recipe."""
    configure_logging(get_settings().log_level)

    try:
        with Live(Spinner("dots", text="Extracting..."), console=console, transient=True):
            result = asyncio.run(_extract(url, use_browser=not no_browser))
    except InvalidURLError as e:
        console.print(f"[red]Invalid URL:[/red] {e}")
        raise typer.Exit(2)

    if not result.success or result.candidate is None:
        console.print(f"[red]FAIL[/red] {result.error}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(result.candidate.to_record()))
        return

    console.print(
        f"[green]OK[/green] Extracted via [bold]{result.method.value}[/bold] "
        f"([dim]{result.fetch_tier} fetch[/dim])"
    )
    _print_candidate(result.candidate)


def _print_candidate(candidate: ExtractionCandidate) -> None:
    """Show an extracted recipe as rich tables."""
    console.print(f"\n[bold green]{candidate.title}[/bold green]")
    console.print(f"[dim]{candidate.source_name} - {candidate.source_url}[/dim]")
    if candidate.summary:
        console.print(candidate.summary)

    meta = []
    if candidate.ready_in_minutes:
        meta.append(f"Ready in {candidate.ready_in_minutes} min")
    if candidate.servings:
        meta.append(f"Serves {candidate.servings}")
    if meta:
        console.print(" | ".join(meta))

    ingredients = Table(title="Ingredients", show_lines=False)
    ingredients.add_column("Amount", justify="right")
    ingredients.add_column("Unit")
    ingredients.add_column("Ingredient")
    for ing in candidate.ingredients:
        ingredients.add_row(f"{ing.amount:g}", ing.unit or "", ing.name)
    console.print(ingredients)

    steps = Table(title="Instructions", show_lines=True)
    steps.add_column("#", justify="right")
    steps.add_column("Step")
    for step in candidate.instructions:
        steps.add_row(str(step.number), step.text)
    console.print(steps)


@app.command()
def submit(
    url: str = typer.Argument(..., help="Recipe page URL"),
    api_url: str = typer.Option("http://localhost:8000", "--api-url", help="Running server base URL"),
) -> None:
    """Submit a URL to a running server and poll until the job finishes."""
    settings = get_settings()
    base = f"{api_url.rstrip('/')}/api/scraping"

    with httpx.Client(timeout=settings.http_timeout_seconds) as client:
        response = client.post(f"{base}/scrape", json={"url": url})
        if response.status_code >= 400:
            console.print(f"[red]FAIL[/red] {response.json().get('detail', response.text)}")
            raise typer.Exit(1)

        data = response.json()
        job_id = data["job_id"]
        if data.get("cached"):
            console.print(f"[green]OK[/green] Cached recipe (job {job_id})")
            console.print_json(json.dumps(data["recipe"]))
            return

        console.print(f"[dim]Job {job_id} processing, polling every {settings.poll_interval_seconds:g}s[/dim]")
        for _ in range(settings.poll_max_attempts):
            time.sleep(settings.poll_interval_seconds)
            status = client.get(f"{base}/status/{job_id}").json()
            if status["status"] in TERMINAL_STATUSES:
                break
        else:
            console.print(f"[yellow]WARN[/yellow] Gave up waiting; job {job_id} is still processing")
            raise typer.Exit(1)

    if status["status"] == "failed":
        console.print(
            f"[red]FAIL[/red] {status.get('error_message')} (attempts: {status['retry_count'] + 1})"
        )
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] Job {job_id} succeeded")
    console.print_json(json.dumps(status["recipe"]))


@app.command()
def health() -> None:
    """Check configuration and storage connectivity."""
    console.print("\n[bold]Recipe Harvest Health Check[/bold]\n")

    try:
        settings = get_settings()
        console.print("[green]OK[/green] Configuration loaded")
        console.print(f"   Environment: {settings.env}")
        console.print(f"   Log level: {settings.log_level}")
        console.print(f"   Max concurrent extractions: {settings.max_concurrent_extractions}")

        if settings.browser_enabled:
            console.print("[green]OK[/green] Headless browser tier enabled")
        else:
            console.print("[dim]INFO[/dim] Headless browser tier disabled")

        store = get_store(settings)
        _, total = asyncio.run(store.list_jobs(0, 1))
        console.print(f"[green]OK[/green] Storage ({settings.storage_backend}): {total} jobs")

        console.print("\n[green]All checks passed![/green]")

    except RecipeHarvestError as e:
        console.print(f"\n[red]FAIL Storage error: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"\n[red]FAIL Configuration error: {e}[/red]")
        console.print("[dim]Make sure HARVEST_* variables or a .env file are set.[/dim]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Recipe Harvest version {__version__}")


@app.command()
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
) -> None:
    """Start the API server."""
    # Hosting platforms set PORT
    actual_port = int(os.environ.get("PORT", port))

    console.print("\n[bold green]Recipe Harvest API[/bold green]")
    console.print(f"Starting server on http://localhost:{actual_port}")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        "recipe_harvest.web.app:app",
        host="0.0.0.0",
        port=actual_port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
