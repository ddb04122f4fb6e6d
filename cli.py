#!/usr/bin/env python3
"""
Tradebook CLI - Reconcile a trade event file into P&L and performance
"""
import json
from decimal import Decimal
from pathlib import Path
from typing import Optional
from loguru import logger
import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from shared.config.settings import configure_logging, settings
from tradebook.errors import TradebookError
from tradebook.events import TradeEvent
from tradebook.portfolio import PositionMatcher, parse_mark
from tradebook.analytics import analyze, export_report_json, export_trades_csv


app = typer.Typer(help="Tradebook CLI - trade reconciliation and performance analytics")
console = Console()


def load_events(path: Path) -> list[TradeEvent]:
    """Read a JSON array of raw events (or {"events": [...]})"""
    raw = _read_json(path)
    if isinstance(raw, dict):
        raw = raw.get("events", [])
    if not isinstance(raw, list):
        raise TradebookError(f"{path}: expected a list of events")
    return [TradeEvent.from_dict(item) for item in raw]


def load_marks(path: Path) -> dict[str, Optional[Decimal]]:
    """Read a JSON object of symbol -> mark; unparseable marks become None"""
    raw = _read_json(path)
    if not isinstance(raw, dict):
        raise TradebookError(f"{path}: expected an object of symbol -> mark price")
    return {symbol: parse_mark(price) for symbol, price in raw.items()}


def _read_json(path: Path):
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise TradebookError(f"{path}: invalid JSON ({e})") from e


@app.command()
def info():
    """Display system information"""
    console.print(Panel.fit(
        f"[bold blue]{settings.app_name}[/bold blue] v{settings.app_version}\n"
        f"Environment: {settings.environment}\n"
        f"Epsilon: {settings.analytics.epsilon}\n"
        f"Sessions (UTC): asia {settings.sessions.asia_start}h, "
        f"london {settings.sessions.london_start}h, "
        f"new york {settings.sessions.new_york_start}h",
        title="System Information"
    ))


@app.command("analyze")
def analyze_events(
    events_file: Path = typer.Argument(..., exists=True, help="JSON file of trade events"),
    marks: Optional[Path] = typer.Option(None, "--marks", exists=True, help="JSON map of symbol -> mark price"),
    csv_out: Optional[Path] = typer.Option(None, "--csv", help="Write annotated trades to CSV"),
    json_out: Optional[Path] = typer.Option(None, "--json", help="Write the full report to JSON")
):
    """Match fills, value open positions and print performance"""
    configure_logging()

    try:
        events = load_events(events_file)
        result = PositionMatcher().run(events)
        mark_prices = load_marks(marks) if marks else None
    except TradebookError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    report = analyze(result.events, book=result.book, marks=mark_prices)

    summary = report.summary()
    table = Table(title="Performance")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    for name, value in summary.items():
        table.add_row(name, str(value))
    console.print(table)

    if report.symbols:
        symbols = Table(title="Symbols")
        symbols.add_column("Symbol", style="cyan")
        symbols.add_column("Fills", justify="right")
        symbols.add_column("P&L", justify="right")
        symbols.add_column("Win Rate", justify="right")
        symbols.add_column("Volume", justify="right")
        for stats in report.symbols:
            symbols.add_row(
                str(stats.key),
                str(stats.count),
                f"{float(stats.pnl):,.2f}",
                f"{float(stats.win_rate):.1f}%",
                f"{float(stats.volume):,.2f}",
            )
        console.print(symbols)

    if result.diagnostics:
        console.print(f"[yellow]⚠ {len(result.diagnostics)} exits had unmatched quantity[/yellow]")
    if report.valuation and report.valuation.unpriced:
        console.print(f"[yellow]⚠ {len(report.valuation.unpriced)} open lots have no mark price[/yellow]")

    if csv_out:
        rows = export_trades_csv(result.events, str(csv_out))
        console.print(f"[green]✓ Wrote {rows} trades to {csv_out}[/green]")
    if json_out:
        export_report_json(report, str(json_out))
        console.print(f"[green]✓ Wrote report to {json_out}[/green]")

    logger.debug("CLI analyze finished")


if __name__ == "__main__":
    app()
