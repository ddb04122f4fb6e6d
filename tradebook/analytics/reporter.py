"""
Report Generator

Formats annotated trades and performance reports:
- Text reports (console-friendly)
- JSON reports (machine-readable)
- CSV trade exports with a stable column order
- pandas DataFrames for notebooks and downstream tooling
"""
from dataclasses import fields, is_dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable
import csv
import json

import pandas as pd
from loguru import logger

from ..events import AnnotatedEvent
from .analyzer import PerformanceReport


# Column order consumed by downstream tooling; do not reorder
TRADE_EXPORT_COLUMNS = [
    "id",
    "timestamp",
    "symbol",
    "side",
    "price",
    "quantity",
    "fee_total",
    "pnl",
    "pnl_pct",
    "status",
]


def trade_row(event: AnnotatedEvent) -> Dict[str, Any]:
    """One annotated event as an export row"""
    return {
        "id": event.event_id,
        "timestamp": event.timestamp.isoformat(),
        "symbol": event.symbol,
        "side": event.side.value,
        "price": event.price,
        "quantity": event.quantity,
        "fee_total": event.fees.total,
        "pnl": event.pnl,
        "pnl_pct": event.pnl_pct,
        "status": event.status.value,
    }


def export_trades_csv(events: Iterable[AnnotatedEvent], filepath: str) -> int:
    """
    Export annotated trades to CSV

    Args:
        events: Annotated events
        filepath: Output file path

    Returns:
        Number of rows written
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = 0
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=TRADE_EXPORT_COLUMNS)
        writer.writeheader()
        for event in events:
            writer.writerow({k: str(v) for k, v in trade_row(event).items()})
            rows += 1

    logger.info(f"Exported {rows} trades to CSV: {filepath}")
    return rows


def trades_to_dataframe(events: Iterable[AnnotatedEvent]) -> pd.DataFrame:
    """Annotated trades as a DataFrame with the export columns"""
    df = pd.DataFrame([trade_row(e) for e in events], columns=TRADE_EXPORT_COLUMNS)
    if not df.empty:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
        for column in ("price", "quantity", "fee_total", "pnl", "pnl_pct"):
            df[column] = df[column].astype(float)
    return df


def to_serializable(obj: Any) -> Any:
    """Recursively convert report objects into JSON-friendly values"""
    if isinstance(obj, Decimal):
        if not obj.is_finite():
            return str(obj)
        return float(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "to_dict"):
        return to_serializable(obj.to_dict())
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_serializable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_serializable(item) for item in obj]
    return obj


def export_report_json(report: PerformanceReport, filepath: str) -> None:
    """
    Export a performance report to JSON

    Args:
        report: Report from analyze()
        filepath: Output file path
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        f.write(ReportGenerator().generate_json_report(report))

    logger.info(f"Exported report to JSON: {filepath}")


class ReportGenerator:
    """
    Generate formatted performance reports

    Converts a PerformanceReport into console text or JSON.
    """

    def generate_text_report(self, report: PerformanceReport) -> str:
        """
        Generate console-friendly text report

        Args:
            report: Report from analyze()

        Returns:
            Formatted text report
        """
        core = report.core
        risk = report.risk

        lines = []
        lines.append("╔" + "═" * 58 + "╗")
        lines.append("║" + "PERFORMANCE REPORT".center(58) + "║")
        lines.append("╚" + "═" * 58 + "╝")
        lines.append("")

        lines.append("┌─ P&L " + "─" * 52)
        lines.append(f"│ Total P&L:           {self._money(report.total_pnl)}")
        lines.append(f"│ Realized P&L:        {self._money(core.realized_pnl)}")
        lines.append(f"│ Unrealized P&L:      {self._money(report.unrealized_pnl)}")
        lines.append(f"│ Net P&L:             {self._money(core.net_pnl)}")
        lines.append(f"│ Volume:              {self._money(core.total_volume)}")
        lines.append(f"│ Fees:                {self._money(core.total_fees)}")
        lines.append(f"│ Funding:             {self._money(core.total_funding)}")
        lines.append("")

        lines.append("┌─ TRADES " + "─" * 49)
        lines.append(f"│ Fills:               {core.num_fills:>14,d}")
        lines.append(f"│ Closing Fills:       {core.num_closing_fills:>14,d}")
        lines.append(f"│ Win Rate:            {self._pct(core.win_rate)}")
        lines.append(f"│ Profit Factor:       {float(risk.profit_factor):>14.2f}")
        lines.append(f"│ Average Win:         {self._money(risk.avg_win)}")
        lines.append(f"│ Average Loss:        {self._money(risk.avg_loss)}")
        lines.append(f"│ Largest Gain:        {self._money(risk.largest_gain)}")
        lines.append(f"│ Largest Loss:        {self._money(risk.largest_loss)}")
        if core.avg_trade_duration is not None:
            lines.append(f"│ Avg Hold:            {str(core.avg_trade_duration):>14}")
        lines.append("")

        lines.append("┌─ RISK " + "─" * 51)
        lines.append(f"│ Max Drawdown:        {self._money(report.drawdown.max_drawdown)}")
        lines.append(f"│ Current Drawdown:    {self._money(report.drawdown.current_drawdown)}")
        lines.append(f"│ Drawdown Episodes:   {len(report.drawdown.episodes):>14,d}")
        lines.append(
            f"│ Bias:                {report.directional.label:>14} "
            f"({report.directional.long_count}L / {report.directional.short_count}S)"
        )

        if report.symbols:
            lines.append("")
            lines.append("┌─ SYMBOLS " + "─" * 48)
            for stats in report.symbols:
                lines.append(
                    f"│ {str(stats.key):<18} {stats.count:>5,d} fills  "
                    f"{self._money(stats.pnl)}  {self._pct(stats.win_rate)}"
                )

        if report.valuation and report.valuation.unpriced:
            lines.append("")
            lines.append(f"! {len(report.valuation.unpriced)} open lots without a mark price")

        return "\n".join(lines)

    def generate_json_report(self, report: PerformanceReport) -> str:
        """JSON string of the full report"""
        data = to_serializable(report)
        data["summary"] = to_serializable(report.summary())
        return json.dumps(data, indent=2, default=str)

    def _money(self, value: Decimal) -> str:
        return f"${float(value):>13,.2f}"

    def _pct(self, value: Decimal) -> str:
        return f"{float(value):>13.2f}%"
