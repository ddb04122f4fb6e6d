"""
Performance Analytics and Reporting

Aggregates PnL-annotated events into trading-performance figures:
- Core metrics (realized/net P&L, volume, fees, funding, win rate)
- Directional bias (long vs short activity)
- Risk metrics (extremes, averages, profit factor, expectancy, streaks)
- Drawdown series over cumulative P&L
- Time buckets (day, hour, weekday, session, week, month) and daily net series
- Fee composition, symbol and order-type performance
- Report generation (text, JSON, CSV, DataFrame)

Usage:
    from tradebook.analytics import analyze, ReportGenerator

    report = analyze(result.events, book=result.book, marks=marks)
    print(ReportGenerator().generate_text_report(report))
"""

from .metrics import (
    DailyFinancials,
    FinancialTotals,
    CoreMetrics,
    DirectionalBias,
    RiskMetrics,
    DrawdownPoint,
    DrawdownEpisode,
    DrawdownSeries,
    is_win,
    is_loss,
    win_rate,
    calculate_core_metrics,
    calculate_directional_bias,
    calculate_risk_metrics,
    calculate_consecutive_outcomes,
    calculate_drawdown,
    drawdown_from_cumulative,
    drawdown_episodes,
)

from .breakdowns import (
    WEEKDAY_NAMES,
    BucketStats,
    DailyPoint,
    SymbolFee,
    FeePoint,
    FeeComposition,
    group_fills,
    by_day,
    by_hour,
    by_weekday,
    by_session,
    by_week,
    by_month,
    daily_time_series,
    calculate_fee_composition,
    symbol_performance,
    order_type_performance,
    filter_events,
)

from .analyzer import (
    PerformanceReport,
    PerformanceAnalyzer,
    analyze,
)

from .reporter import (
    TRADE_EXPORT_COLUMNS,
    ReportGenerator,
    trade_row,
    export_trades_csv,
    export_report_json,
    trades_to_dataframe,
    to_serializable,
)

__all__ = [
    # Metrics
    "DailyFinancials",
    "FinancialTotals",
    "CoreMetrics",
    "DirectionalBias",
    "RiskMetrics",
    "DrawdownPoint",
    "DrawdownEpisode",
    "DrawdownSeries",
    "is_win",
    "is_loss",
    "win_rate",
    "calculate_core_metrics",
    "calculate_directional_bias",
    "calculate_risk_metrics",
    "calculate_consecutive_outcomes",
    "calculate_drawdown",
    "drawdown_from_cumulative",
    "drawdown_episodes",

    # Breakdowns
    "WEEKDAY_NAMES",
    "BucketStats",
    "DailyPoint",
    "SymbolFee",
    "FeePoint",
    "FeeComposition",
    "group_fills",
    "by_day",
    "by_hour",
    "by_weekday",
    "by_session",
    "by_week",
    "by_month",
    "daily_time_series",
    "calculate_fee_composition",
    "symbol_performance",
    "order_type_performance",
    "filter_events",

    # Reports
    "PerformanceReport",
    "PerformanceAnalyzer",
    "analyze",
    "TRADE_EXPORT_COLUMNS",
    "ReportGenerator",
    "trade_row",
    "export_trades_csv",
    "export_report_json",
    "trades_to_dataframe",
    "to_serializable",
]
