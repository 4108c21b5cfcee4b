"""CLI entry point for sheet-dashboard."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from sheet_dashboard import __version__
from sheet_dashboard.config import DashboardConfig, load_config, parse_timeout
from sheet_dashboard.io import write_json
from sheet_dashboard.models import CardData, DashboardData
from sheet_dashboard.pipeline import format_de
from sheet_dashboard.report import write_report
from sheet_dashboard.service import DashboardService, load_dashboards
from sheet_dashboard.source import FileSource, RowSource, SheetClient
from sheet_dashboard.utils import ticker_key, utcnow_iso

app = typer.Typer(
    name="sheetdash",
    help="sheet-dashboard — Revenue cards and trends from company sheets.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheet-dashboard v{__version__}")
        raise typer.Exit()


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.INFO if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _resolve_config(
    config_path: Path | None, api_url: str | None, timeout: str | None
) -> DashboardConfig:
    config = load_config(config_path)
    if api_url:
        config.api_url = api_url
    if timeout is not None:
        config.timeout = parse_timeout(timeout)
    return config


def _build_source(config: DashboardConfig, data_dir: Path | None) -> RowSource:
    if data_dir is not None:
        return FileSource(data_dir)
    return SheetClient(config.api_url, timeout=config.timeout)


def _load(
    *,
    tickers: list[str] | None,
    config_path: Path | None,
    api_url: str | None,
    data_dir: Path | None,
    timeout: str | None,
) -> dict[str, DashboardData]:
    """Resolve settings and load every requested dashboard concurrently."""
    config = _resolve_config(config_path, api_url, timeout)
    keys = [ticker_key(t) for t in (tickers or config.tickers)]
    service = DashboardService(_build_source(config, data_dir))
    return asyncio.run(load_dashboards(service, keys))


def _change_style(card: CardData) -> str:
    pct = card.numeric_percentage_change
    if pct is None:
        return "dim"
    return "green" if pct >= 0 else "red"


def _cards_table(dashboards: dict[str, DashboardData]) -> RichTable:
    tbl = RichTable(title="Revenue Cards", show_lines=False)
    tbl.add_column("Ticker", style="bold")
    tbl.add_column("Period")
    tbl.add_column("Revenue", justify="right")
    tbl.add_column("Change", justify="right")
    tbl.add_column("% Change", justify="right")
    for ticker, data in dashboards.items():
        card = data.card_data
        style = _change_style(card)
        tbl.add_row(
            ticker,
            card.revenue_label,
            card.revenue,
            card.change,
            f"[{style}]{card.percentage_change}[/{style}]",
        )
    return tbl


def _history_table(data: DashboardData) -> RichTable:
    tbl = RichTable(title="Historical Series", show_lines=False)
    tbl.add_column("Metric", style="bold")
    tbl.add_column("Points", justify="right")
    tbl.add_column("From")
    tbl.add_column("To")
    tbl.add_column("Latest", justify="right")
    for metric, series in data.historical_data.items():
        tbl.add_row(
            metric,
            str(len(series)),
            series[0].period,
            series[-1].period,
            format_de(series[-1].value),
        )
    return tbl


# Shared options

_CONFIG_OPT = typer.Option(
    None, "--config", "-c",
    help="Config file with key=value lines (api_url, timeout, ticker).",
)
_API_URL_OPT = typer.Option(None, "--api-url", help="Sheet API base URL.")
_DATA_DIR_OPT = typer.Option(
    None, "--data-dir", "-d",
    help="Read <ticker>.csv/.xlsx exports from this directory instead of the API.",
    exists=True, file_okay=False,
)
_TIMEOUT_OPT = typer.Option(None, "--timeout", help="Request timeout in seconds, or 'none'.")
_VERBOSE_OPT = typer.Option(False, "--verbose", "-v", help="Log fetch progress.")
_QUIET_OPT = typer.Option(False, "--quiet", "-q", help="Suppress informational output.")


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """sheet-dashboard CLI."""


# ── cards command ────────────────────────────────────────────────


@app.command()
def cards(
    tickers: list[str] | None = typer.Argument(None, help="Tickers, e.g. GOOG or '$GOOG'."),
    config_path: Path | None = _CONFIG_OPT,
    api_url: str | None = _API_URL_OPT,
    data_dir: Path | None = _DATA_DIR_OPT,
    timeout: str | None = _TIMEOUT_OPT,
    verbose: bool = _VERBOSE_OPT,
    quiet: bool = _QUIET_OPT,
) -> None:
    """Print the revenue card of every tracked company."""
    _configure_logging(verbose=verbose, quiet=quiet)
    try:
        dashboards = _load(
            tickers=tickers, config_path=config_path, api_url=api_url,
            data_dir=data_dir, timeout=timeout,
        )
    except ValueError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)
    except Exception as exc:
        _err(f"Unexpected internal error: {exc}")
        raise typer.Exit(code=1)

    console.print(_cards_table(dashboards))


# ── inspect command ──────────────────────────────────────────────


@app.command()
def inspect(
    ticker: str = typer.Argument(..., help="Ticker, e.g. GOOG or '$GOOG'."),
    config_path: Path | None = _CONFIG_OPT,
    api_url: str | None = _API_URL_OPT,
    data_dir: Path | None = _DATA_DIR_OPT,
    timeout: str | None = _TIMEOUT_OPT,
    verbose: bool = _VERBOSE_OPT,
    quiet: bool = _QUIET_OPT,
) -> None:
    """Show one company's card and historical series."""
    _configure_logging(verbose=verbose, quiet=quiet)
    try:
        dashboards = _load(
            tickers=[ticker], config_path=config_path, api_url=api_url,
            data_dir=data_dir, timeout=timeout,
        )
    except ValueError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)
    except Exception as exc:
        _err(f"Unexpected internal error: {exc}")
        raise typer.Exit(code=1)

    key, data = next(iter(dashboards.items()))
    card = data.card_data
    style = _change_style(card)
    console.print(Panel(
        f"[bold]{card.revenue}[/bold]  {card.revenue_label}\n"
        f"Change: {card.change}  [{style}]{card.percentage_change}[/{style}]\n"
        f"Rows: {len(data.all_rows)}  Metrics: {len(data.historical_data)}",
        title=key, border_style="blue",
    ))
    if data.historical_data:
        console.print(_history_table(data))
    elif not quiet:
        console.print("  [yellow]![/yellow] No historical data")


# ── export command ───────────────────────────────────────────────


@app.command()
def export(
    tickers: list[str] | None = typer.Argument(None, help="Tickers, e.g. GOOG or '$GOOG'."),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for dashboard.json + Dashboard_Report.xlsx.",
    ),
    config_path: Path | None = _CONFIG_OPT,
    api_url: str | None = _API_URL_OPT,
    data_dir: Path | None = _DATA_DIR_OPT,
    timeout: str | None = _TIMEOUT_OPT,
    verbose: bool = _VERBOSE_OPT,
    quiet: bool = _QUIET_OPT,
) -> None:
    """Write every dashboard to JSON and an Excel report."""
    _configure_logging(verbose=verbose, quiet=quiet)
    echo = _printer(quiet)
    try:
        echo("[blue]>[/blue] Loading dashboards …")
        dashboards = _load(
            tickers=tickers, config_path=config_path, api_url=api_url,
            data_dir=data_dir, timeout=timeout,
        )
        payload = {
            "tool": "sheet-dashboard",
            "version": __version__,
            "created_at_utc": utcnow_iso(),
            "companies": {ticker: data.to_dict() for ticker, data in dashboards.items()},
        }
        json_path = write_json(out_dir / "dashboard.json", payload)
        echo(f"  JSON   -> {json_path}")
        report_path = write_report(out_dir, dashboards)
        echo(f"  Report -> {report_path}")
    except ValueError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)
    except Exception as exc:
        _err(f"Unexpected internal error: {exc}")
        raise typer.Exit(code=1)

    if not quiet:
        console.print(Panel(
            f"[green]Done[/green] — {len(dashboards)} companies -> {out_dir}",
            title="Export Complete", border_style="green",
        ))
