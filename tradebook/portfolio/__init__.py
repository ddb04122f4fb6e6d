"""
Position Matching and Valuation

Reconciles settled fills into realized and unrealized P&L:
- Realized P&L via FIFO lot matching with pro-rata fee allocation
- Per-instrument long/short inventory queues
- Mark-to-market valuation of whatever remains open

Components:
- PositionMatcher: FIFO matching run producing annotated events
- PositionBook: Open inventory owned by one matching run
- value_open_positions: Unrealized P&L from a book and a mark map

Usage:
    result = PositionMatcher().run(events)
    valuation = value_open_positions(result.book, {"SOL": Decimal("120")})
"""

from .book import (
    DEFAULT_EPSILON,
    PositionSide,
    InventoryLot,
    InstrumentBook,
    PositionBook,
)
from .matcher import (
    MatchResult,
    PositionMatcher,
    average_cost_match,
    match,
    match_by_symbol,
    sort_events,
)
from .valuation import (
    LotValuation,
    ValuationResult,
    parse_mark,
    resolve_mark,
    value_open_positions,
)

__all__ = [
    "DEFAULT_EPSILON",
    "PositionSide",
    "InventoryLot",
    "InstrumentBook",
    "PositionBook",
    "MatchResult",
    "PositionMatcher",
    "average_cost_match",
    "match",
    "match_by_symbol",
    "sort_events",
    "LotValuation",
    "ValuationResult",
    "parse_mark",
    "resolve_mark",
    "value_open_positions",
]
