"""
Trade Event Models

Canonical input and output records of the reconciliation core:
- TradeEvent: one decoded, settled action (fill, fee, funding, loss, transfer)
- AnnotatedEvent: a TradeEvent plus realized PnL from position matching
- Closed enums for event kind, side, market type, order type and status

Usage:
    from tradebook.events import TradeEvent, EventKind, TradeSide

    event = TradeEvent(
        event_id="t1",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        symbol="SOL/USDC",
        side=TradeSide.BUY,
        price=Decimal("100"),
        quantity=Decimal("2"),
    )
"""

from .models import (
    ZERO,
    EventKind,
    TradeSide,
    MarketType,
    OrderType,
    PnLStatus,
    FeeBreakdown,
    TradeEvent,
    AnnotatedEvent,
    validate_event,
)

__all__ = [
    "ZERO",
    "EventKind",
    "TradeSide",
    "MarketType",
    "OrderType",
    "PnLStatus",
    "FeeBreakdown",
    "TradeEvent",
    "AnnotatedEvent",
    "validate_event",
]
