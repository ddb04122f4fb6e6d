"""
Unrealized Valuation

Marks remaining open lots to market. A pure read of the position book:
lots whose instrument has no mark are reported as unpriced and left
out of the total instead of being valued at zero.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from shared.config.settings import settings
from ..errors import UnpricedPosition
from ..events import ZERO
from .book import InventoryLot, PositionBook, PositionSide


@dataclass(frozen=True)
class LotValuation:
    """Mark-to-market value of one open lot"""
    symbol: str
    side: PositionSide
    event_id: str
    entry_price: Decimal
    mark_price: Decimal
    quantity: Decimal
    unrealized_pnl: Decimal

    @property
    def notional(self) -> Decimal:
        return self.mark_price * self.quantity


@dataclass
class ValuationResult:
    """Unrealized P&L of an open book"""
    total_unrealized_pnl: Decimal = ZERO
    positions: List[LotValuation] = field(default_factory=list)
    unpriced: List[UnpricedPosition] = field(default_factory=list)

    def by_symbol(self) -> Dict[str, Dict[str, Decimal]]:
        """Unrealized P&L and open size per symbol and direction"""
        summary: Dict[str, Dict[str, Decimal]] = {}
        for position in self.positions:
            stats = summary.setdefault(position.symbol, {
                "unrealized_pnl": ZERO,
                "long_quantity": ZERO,
                "short_quantity": ZERO,
            })
            stats["unrealized_pnl"] += position.unrealized_pnl
            stats[f"{position.side.value}_quantity"] += position.quantity
        return summary


def resolve_mark(
    symbol: str,
    marks: Mapping[str, Any],
    separators: Optional[Sequence[str]] = None
) -> Optional[Decimal]:
    """
    Look up the mark price of a symbol

    The full symbol ("SOL/USDC") wins over its base asset ("SOL").
    Entries that are None or not numeric count as missing.
    """
    mark = parse_mark(marks.get(symbol))
    if mark is not None:
        return mark

    for separator in separators if separators is not None else settings.analytics.mark_symbol_separators:
        if separator in symbol:
            mark = parse_mark(marks.get(symbol.split(separator, 1)[0]))
            if mark is not None:
                return mark

    return None


def parse_mark(value: Any) -> Optional[Decimal]:
    """Mark price as a Decimal, or None when absent or not a number"""
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning(f"Ignoring unparseable mark price: {value!r}")
        return None


def value_lot(lot: InventoryLot, mark: Decimal) -> LotValuation:
    if lot.side is PositionSide.LONG:
        pnl = (mark - lot.entry_price) * lot.remaining_quantity
    else:
        pnl = (lot.entry_price - mark) * lot.remaining_quantity

    return LotValuation(
        symbol=lot.symbol,
        side=lot.side,
        event_id=lot.event_id,
        entry_price=lot.entry_price,
        mark_price=mark,
        quantity=lot.remaining_quantity,
        unrealized_pnl=pnl,
    )


def value_open_positions(
    book: PositionBook,
    marks: Mapping[str, Any],
    separators: Optional[Sequence[str]] = None
) -> ValuationResult:
    """
    Mark every open lot in the book to market

    Args:
        book: Position book left by a matching run (not modified)
        marks: Symbol (or base asset) -> current mark price
        separators: Symbol separators for base-asset lookup

    Returns:
        ValuationResult with the total, per-lot valuations and unpriced lots
    """
    result = ValuationResult()

    for lot in book.open_lots():
        mark = resolve_mark(lot.symbol, marks, separators)
        if mark is None or not mark.is_finite():
            result.unpriced.append(
                UnpricedPosition(
                    symbol=lot.symbol,
                    side=lot.side.value,
                    event_id=lot.event_id,
                    remaining_quantity=lot.remaining_quantity,
                    entry_price=lot.entry_price,
                )
            )
            continue

        valuation = value_lot(lot, mark)
        result.positions.append(valuation)
        result.total_unrealized_pnl += valuation.unrealized_pnl

    if result.unpriced:
        symbols = sorted({u.symbol for u in result.unpriced})
        logger.warning(f"{len(result.unpriced)} open lots have no mark price: {symbols}")

    logger.debug(
        f"Valued {len(result.positions)} lots: unrealized P&L {result.total_unrealized_pnl}"
    )
    return result
