"""Typer CLI entrypoint for bulk-scraper."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import psutil
import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig, read_url_list
from .engine import ExtractError, Extractor
from .logging_conf import (
    available_batch_logs,
    batch_log_path,
    configure_logging,
    default_log_dir,
    tail_log,
)
from .runner import BatchRunner, RunResult

app = typer.Typer(
    help="Fetch a list of URLs concurrently and extract page titles and text.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="Inspect or create configuration.", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Inspect log files.", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(log_app, name="log")

console = Console()

# Below this much free memory the pool stays at the small default.
_LOW_MEMORY_GB = 1.0


@dataclass
class AppState:
    repository: ConfigRepository
    verbose: bool = False

    def load_config(self) -> GlobalConfig:
        return self.repository.load_global_config()


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    return AppState(repository=ConfigRepository(), verbose=verbose)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _auto_concurrency(url_count: int) -> int:
    """Size the pool from CPU count, capped hard on low-memory hosts."""

    cpu_count = os.cpu_count() or 4
    # Fetching is I/O bound, so allow a few threads per core.
    workers = min(cpu_count * 4, 32)
    available_gb = psutil.virtual_memory().available / (1024**3)
    if available_gb < _LOW_MEMORY_GB:
        workers = min(workers, 5)
    elif available_gb < 4:
        workers = min(workers, 10)
    return max(1, min(workers, url_count or 1))


def _render_summary(result: RunResult) -> Table:
    summary = result.summary
    table = Table(title=f"{result.name} results", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Total", str(summary.total))
    table.add_row("Succeeded", str(summary.succeeded))
    table.add_row("Failed", str(summary.failed))
    table.add_row("Elapsed", f"{summary.elapsed:.2f}s")
    table.add_row("Throughput", f"{summary.throughput:.2f} url/s")
    for reason, count in sorted(summary.failures.items()):
        table.add_row(f"  {reason}", str(count))
    if result.output_path:
        table.add_row("Output", str(result.output_path))
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Fetch every URL in URLS_FILE and export the extracted records.")
def run(
    ctx: typer.Context,
    urls_file: Path = typer.Argument(..., help="URL list (.txt, .json or .csv)."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", help="Concurrent workers."),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Per-request timeout in seconds."),
    fmt: Optional[str] = typer.Option(
        None, "--format", "-f", help="Output format: json, csv, txt, sqlite, mongodb or none."
    ),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Directory for output files."),
    auto_workers: bool = typer.Option(
        False, "--auto-workers", help="Size the pool from CPU count and free memory."
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Print a one-line summary only."),
    fail_on_error: bool = typer.Option(
        False, "--fail-on-error", help="Exit with code 1 when any URL failed."
    ),
) -> None:
    state = _get_state(ctx)
    try:
        urls = read_url_list(urls_file)
    except FileNotFoundError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    except ValueError as exc:
        console.print(f"Could not read URL list: {exc}", style="red")
        raise typer.Exit(code=1)

    try:
        config = state.load_config()
        updates: dict = {}
        if fmt is not None or output_dir is not None:
            output = config.output.model_dump()
            if fmt is not None:
                output["format"] = fmt
            if output_dir is not None:
                output["outputs_dir"] = output_dir
            updates["output"] = output
        if quiet or not _progress_default_enabled():
            updates["enable_progress_bar"] = False
        if updates:
            config = GlobalConfig.model_validate({**config.model_dump(), **updates})
        if auto_workers and concurrency is None:
            concurrency = _auto_concurrency(len(urls))
        runner = BatchRunner(global_config=config)
        result = runner.run(urls, name=urls_file.stem, concurrency=concurrency, timeout=timeout)
    except ValidationError as exc:
        console.print(f"Invalid configuration: {exc}", style="red")
        raise typer.Exit(code=2)
    except (RuntimeError, OSError) as exc:
        console.print(f"Run failed: {exc}", style="red")
        raise typer.Exit(code=1)

    summary = result.summary
    if quiet:
        console.print(
            f"Done: {summary.succeeded} ok, {summary.failed} failed, "
            f"{summary.elapsed:.2f}s, {summary.throughput:.2f} url/s"
        )
    else:
        console.print(_render_summary(result))
    if fail_on_error and summary.failed:
        raise typer.Exit(code=1)


@app.command("extract", help="Extract title and text from a local HTML file.")
def extract(
    ctx: typer.Context,
    html_file: Path = typer.Argument(..., help="HTML file to extract."),
    max_chars: int = typer.Option(500, "--max-chars", help="Truncate printed text (0 prints all)."),
) -> None:
    state = _get_state(ctx)
    if not html_file.exists():
        console.print(f"File not found: {html_file}", style="red")
        raise typer.Exit(code=1)
    extractor = Extractor(state.load_config().extract)
    try:
        page = extractor.extract(html_file.read_bytes())
    except ExtractError as exc:
        console.print(f"Extraction failed: {exc}", style="red")
        raise typer.Exit(code=1)
    text = page.text if max_chars <= 0 else page.text[:max_chars]
    console.print(f"Title: {page.title if page.title is not None else '(none)'}", markup=False)
    console.print(text, markup=False, soft_wrap=True)


@config_app.command("show", help="Print the effective configuration as YAML.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    payload = state.load_config().model_dump(mode="json")
    dumped = yaml.safe_dump(payload, allow_unicode=True, sort_keys=False)
    console.print(dumped, markup=False, soft_wrap=True)


@config_app.command("init", help="Write a default configuration file.")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.global_config_path()
    if path.exists() and not force:
        console.print(f"Configuration already exists at {path} (use --force).", style="yellow")
        raise typer.Exit(code=0)
    state.repository.save_global_config(GlobalConfig())
    console.print(f"Configuration written to {path}.", style="green")


@log_app.command("show", help="Show the last lines of the scraper or error log.")
def log_show(
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show error.log instead of scraper.log."),
    batch: Optional[str] = typer.Option(None, "--batch", help="Show the log of one batch."),
) -> None:
    if batch is not None:
        path = batch_log_path(batch)
        if not path.exists():
            known = ", ".join(p.stem for p in available_batch_logs()) or "none"
            console.print(f"No log for batch '{batch}'. Known batches: {known}", style="yellow")
            raise typer.Exit(code=1)
    else:
        path = default_log_dir() / ("error.log" if errors else "scraper.log")
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, soft_wrap=True)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
