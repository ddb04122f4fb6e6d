"""
Performance Analyzer

Assembles every analytics sub-computation into one PerformanceReport:
- Core, directional and risk metrics
- Drawdown series
- Time buckets (including ISO weeks) and daily net P&L series
- Fee composition
- Symbol and order-type performance
- Unrealized P&L when a book and marks are supplied
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from ..events import ZERO, AnnotatedEvent
from ..portfolio import PositionBook, ValuationResult, sort_events, value_open_positions
from .breakdowns import (
    BucketStats,
    DailyPoint,
    FeeComposition,
    by_day,
    by_hour,
    by_month,
    by_session,
    by_week,
    by_weekday,
    calculate_fee_composition,
    daily_time_series,
    order_type_performance,
    symbol_performance,
)
from .metrics import (
    CoreMetrics,
    DirectionalBias,
    DrawdownSeries,
    FinancialTotals,
    RiskMetrics,
    calculate_core_metrics,
    calculate_directional_bias,
    calculate_drawdown,
    calculate_risk_metrics,
)


@dataclass
class PerformanceReport:
    """Everything the dashboards consume"""
    core: CoreMetrics
    directional: DirectionalBias
    risk: RiskMetrics
    drawdown: DrawdownSeries
    fees: FeeComposition

    daily: Dict[str, BucketStats] = field(default_factory=dict)
    hourly: Dict[int, BucketStats] = field(default_factory=dict)
    weekday: Dict[str, BucketStats] = field(default_factory=dict)
    sessions: Dict[str, BucketStats] = field(default_factory=dict)
    weekly: Dict[str, BucketStats] = field(default_factory=dict)
    monthly: Dict[str, BucketStats] = field(default_factory=dict)
    time_series: List[DailyPoint] = field(default_factory=list)

    symbols: List[BucketStats] = field(default_factory=list)
    order_types: Dict[str, BucketStats] = field(default_factory=dict)

    valuation: Optional[ValuationResult] = None

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.valuation.total_unrealized_pnl if self.valuation else ZERO

    @property
    def total_pnl(self) -> Decimal:
        """Realized plus unrealized"""
        return self.core.realized_pnl + self.unrealized_pnl

    def summary(self) -> Dict[str, Any]:
        """Flat headline figures"""
        return {
            "total_pnl": self.total_pnl,
            "realized_pnl": self.core.realized_pnl,
            "unrealized_pnl": self.unrealized_pnl,
            "net_pnl": self.core.net_pnl,
            "total_volume": self.core.total_volume,
            "total_fees": self.core.total_fees,
            "total_funding": self.core.total_funding,
            "num_fills": self.core.num_fills,
            "num_closing_fills": self.core.num_closing_fills,
            "win_rate": self.core.win_rate,
            "avg_trade_duration": self.core.avg_trade_duration,
            "profit_factor": self.risk.profit_factor,
            "avg_win": self.risk.avg_win,
            "avg_loss": self.risk.avg_loss,
            "largest_gain": self.risk.largest_gain,
            "largest_loss": self.risk.largest_loss,
            "max_drawdown": self.drawdown.max_drawdown,
            "drawdown_episodes": len(self.drawdown.episodes),
            "current_drawdown": self.drawdown.current_drawdown,
            "bias": self.directional.label,
            "long_short_ratio": self.directional.ratio,
        }


def analyze(
    events: Sequence[AnnotatedEvent],
    financials: Optional[FinancialTotals] = None,
    book: Optional[PositionBook] = None,
    marks: Optional[Mapping[str, Decimal]] = None
) -> PerformanceReport:
    """
    Build the full performance report

    Args:
        events: PnL-annotated events (re-sorted by timestamp, stable)
        financials: Externally sourced fee/funding totals
        book: Open inventory left by the matching run
        marks: Current mark prices; valuation runs only with a book

    Returns:
        PerformanceReport
    """
    ordered = sort_events(events)
    logger.info(f"Analyzing {len(ordered)} annotated events")

    valuation = None
    if book is not None and marks is not None:
        valuation = value_open_positions(book, marks)

    report = PerformanceReport(
        core=calculate_core_metrics(ordered, financials),
        directional=calculate_directional_bias(ordered),
        risk=calculate_risk_metrics(ordered),
        drawdown=calculate_drawdown(ordered),
        fees=calculate_fee_composition(ordered),
        daily=by_day(ordered),
        hourly=by_hour(ordered),
        weekday=by_weekday(ordered),
        sessions=by_session(ordered),
        weekly=by_week(ordered),
        monthly=by_month(ordered),
        time_series=daily_time_series(ordered, financials),
        symbols=symbol_performance(ordered),
        order_types=order_type_performance(ordered),
        valuation=valuation,
    )

    logger.info(
        f"Report ready: realized P&L {report.core.realized_pnl}, "
        f"win rate {report.core.win_rate:.2f}%, max drawdown {report.drawdown.max_drawdown}"
    )
    return report


class PerformanceAnalyzer:
    """
    Analyzer bound to one annotated event sequence

    Convenience wrapper for callers that query several views of the
    same events.
    """

    def __init__(
        self,
        events: Sequence[AnnotatedEvent],
        financials: Optional[FinancialTotals] = None
    ):
        self.events = sort_events(events)
        self.financials = financials

        logger.info(f"Initialized PerformanceAnalyzer: {len(self.events)} events")

    def report(
        self,
        book: Optional[PositionBook] = None,
        marks: Optional[Mapping[str, Decimal]] = None
    ) -> PerformanceReport:
        return analyze(self.events, self.financials, book=book, marks=marks)

    def core_metrics(self) -> CoreMetrics:
        return calculate_core_metrics(self.events, self.financials)

    def risk_metrics(self) -> RiskMetrics:
        return calculate_risk_metrics(self.events)

    def drawdown(self) -> DrawdownSeries:
        return calculate_drawdown(self.events)

    def symbol_performance(self) -> List[BucketStats]:
        return symbol_performance(self.events)
