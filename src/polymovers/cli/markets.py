"""Markets subcommand: list, process, categories."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from polymovers.formatting import movement_band, price_as_percentage, truncate
from polymovers.ingestion.errors import FetchError
from polymovers.ingestion.polymarket.gamma import PolymarketClient, extract_records
from polymovers.models.market import Market
from polymovers.models.pipeline import PipelineResult, ProcessOptions
from polymovers.pipeline.categorize import matches_category
from polymovers.pipeline.processor import MarketPipeline

app = typer.Typer(help="Fetch, process and list market movers")


def _options(
    settings,
    limit: int | None,
    min_movement: float | None,
    min_volume: float | None,
    include_resolving_soon: bool,
) -> ProcessOptions:
    base = settings.process_options
    update = {}
    if limit is not None:
        update["limit"] = limit
    if min_movement is not None:
        update["minimum_movement"] = min_movement
    if min_volume is not None:
        update["minimum_volume"] = min_volume
    if include_resolving_soon:
        update["exclude_resolving_soon"] = False
    return base.model_copy(update=update)


def _echo_result(result: PipelineResult, category: str, as_json: bool, show_diagnostics: bool) -> None:
    markets: list[Market] = [m for m in result.markets if matches_category(m.category, category)]
    if as_json:
        typer.echo(json.dumps([m.model_dump(mode="json") for m in markets], indent=2))
    else:
        for m in markets:
            typer.echo(
                f"  {m.movement:6.4f}  {movement_band(m.movement):<7}  {price_as_percentage(m.current_price):>6}  "
                f"{m.category[:14]:<14}  {truncate(m.question, 60)}"
            )
        typer.echo(f"Total: {len(markets)} markets")
    if show_diagnostics:
        typer.echo(result.diagnostics.model_dump_json(indent=2), err=True)


@app.command("list")
def list_markets(
    ctx: typer.Context,
    category: str = typer.Option("all", "--category", "-c", help="Only show this category"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Max markets (overrides config)"),
    min_movement: float | None = typer.Option(None, "--min-movement", help="Minimum 24h movement (0-1)"),
    min_volume: float | None = typer.Option(None, "--min-volume", help="Minimum 24h volume (USD)"),
    include_resolving_soon: bool = typer.Option(
        False, "--include-resolving-soon", help="Keep markets resolving within the configured window"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print markets as JSON"),
    diagnostics: bool = typer.Option(False, "--diagnostics", help="Print pipeline counters to stderr"),
) -> None:
    """Fetch live markets from Polymarket and list the biggest 24h movers."""
    settings = ctx.obj["settings"]
    pipeline = MarketPipeline.from_settings(settings)
    options = _options(settings, limit, min_movement, min_volume, include_resolving_soon)
    with PolymarketClient.from_settings(settings) as client:
        try:
            raw = client.fetch_raw_markets(limit=settings.fetch_limit)
        except FetchError as e:
            typer.echo(e.message, err=True)
            raise typer.Exit(1)
        history = client.price_history_for if settings.with_price_history else None
        result = pipeline.run(raw, options, history_provider=history)
    _echo_result(result, category, as_json, diagnostics)


@app.command("process")
def process_file(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Saved API response (JSON)"),
    category: str = typer.Option("all", "--category", "-c", help="Only show this category"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Max markets (overrides config)"),
    min_movement: float | None = typer.Option(None, "--min-movement", help="Minimum 24h movement (0-1)"),
    min_volume: float | None = typer.Option(None, "--min-volume", help="Minimum 24h volume (USD)"),
    include_resolving_soon: bool = typer.Option(
        False, "--include-resolving-soon", help="Keep markets resolving within the configured window"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print markets as JSON"),
    diagnostics: bool = typer.Option(False, "--diagnostics", help="Print pipeline counters to stderr"),
) -> None:
    """Run the pipeline over a saved markets/events response instead of the live API."""
    settings = ctx.obj["settings"]
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        typer.echo(f"Not valid JSON: {path} ({e})", err=True)
        raise typer.Exit(1)
    pipeline = MarketPipeline.from_settings(settings)
    options = _options(settings, limit, min_movement, min_volume, include_resolving_soon)
    result = pipeline.run(extract_records(payload), options)
    _echo_result(result, category, as_json, diagnostics)


@app.command("categories")
def categories(ctx: typer.Context) -> None:
    """List the category filter values."""
    settings = ctx.obj["settings"]
    pipeline = MarketPipeline.from_settings(settings)
    for name in pipeline.categorizer.categories:
        typer.echo(name)
