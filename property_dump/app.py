"""Typer CLI entrypoint for property-dump."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, HarvestConfig, OutputMode, apply_overrides
from .engine import DedupIndex
from .engine.exporter import ArrayExporter
from .logging_conf import configure_logging
from .orchestrator import HarvestSetupError, Orchestrator, RunSummary

app = typer.Typer(
    help="Fetch per-locale JSON property dumps, resuming from what is already on disk.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


def build_orchestrator(config: HarvestConfig, home: Path, progress_enabled: bool) -> Orchestrator:
    return Orchestrator(config, home, progress_enabled=progress_enabled)


def _load_config(repository: ConfigRepository, **overrides: object) -> HarvestConfig:
    try:
        return apply_overrides(repository.load(), **overrides)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _render_summaries(summaries: list[RunSummary]) -> Table:
    table = Table(title="Harvest results", box=box.SIMPLE_HEAD)
    table.add_column("Locale", style="cyan")
    table.add_column("Status")
    for column in ("Filtered", "Scheduled", "OK", "Failed", "Skipped"):
        table.add_column(column, justify="right")
    totals = {"filtered": 0, "scheduled": 0, "succeeded": 0, "failed": 0, "skipped": 0}
    for summary in summaries:
        table.add_row(
            summary.locale,
            summary.status,
            str(summary.filtered),
            str(summary.scheduled),
            f"[green]{summary.succeeded}[/green]",
            f"[red]{summary.failed}[/red]",
            f"[yellow]{summary.skipped}[/yellow]",
        )
        for key in totals:
            totals[key] += getattr(summary, key)
    table.add_row(
        "Total",
        "",
        str(totals["filtered"]),
        str(totals["scheduled"]),
        str(totals["succeeded"]),
        str(totals["failed"]),
        str(totals["skipped"]),
        style="bold",
    )
    return table


@app.command("run", help="Fetch every pending URL of the given locales (default: configured locales).")
def run(
    locales: Optional[List[str]] = typer.Argument(None, help="Locales to process."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", help="Concurrent workers."),
    retries: Optional[int] = typer.Option(None, "--retries", "-r", help="Retries per URL."),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Per-request timeout in seconds."),
    start: Optional[int] = typer.Option(None, "--start", help="Skip the first N URLs."),
    limit: Optional[int] = typer.Option(None, "--limit", help="Fetch at most N URLs (0 = all)."),
    mode: Optional[OutputMode] = typer.Option(None, "--mode", help="Output discipline."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Print a one-line summary only."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    repository = ConfigRepository()
    config = _load_config(
        repository,
        locales=locales or None,
        concurrency=concurrency,
        retries=retries,
        timeout=timeout,
        start=start,
        limit=limit,
        output_mode=mode,
    )
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    orchestrator = build_orchestrator(config, repository.home, progress_enabled=not quiet)
    try:
        summaries = orchestrator.run_all(config.locales)
    except HarvestSetupError as exc:
        console.print(f"[red]Setup failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if quiet:
        ok = sum(summary.succeeded for summary in summaries)
        failed = sum(summary.failed for summary in summaries)
        skipped = sum(summary.skipped for summary in summaries)
        console.print(f"Done: appended={ok}, failed={failed}, skipped={skipped}")
        return
    console.print(_render_summaries(summaries))


@app.command("inspect", help="Count records and distinct identities in a locale dump.")
def inspect(
    locale: str = typer.Argument(..., help="Locale whose dump to inspect."),
    mode: Optional[OutputMode] = typer.Option(None, "--mode", help="Output discipline."),
) -> None:
    repository = ConfigRepository()
    config = _load_config(repository, output_mode=mode)
    path = config.dump_path(repository.home, locale)
    if not path.exists():
        console.print(f"No dump for `{locale}` at {path}", style="red")
        raise typer.Exit(code=1)
    if config.output_mode is OutputMode.ARRAY:
        try:
            records = ArrayExporter(path).read_existing()
        except ValueError as exc:
            console.print(f"[red]Unreadable dump:[/red] {exc}")
            raise typer.Exit(code=1) from exc
        index = DedupIndex.from_records(records, config.identity_param)
    else:
        index = DedupIndex.from_ndjson(path, config.identity_param)

    table = Table(title=f"{locale} dump", box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_row("Path", str(path))
    table.add_row("Records", str(index.seeded_records))
    table.add_row("Identities", str(len(index)))
    table.add_row("Unusable lines", str(index.seed_errors))
    console.print(table)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
