"""
Position Book

Per-instrument FIFO inventory, one queue per direction:
- InventoryLot: open fragment created by one opening fill
- InstrumentBook: long and short lot queues of a single symbol
- PositionBook: symbol -> InstrumentBook, owned by one matching run

Lots are consumed oldest-first and removed once their remaining
quantity falls within epsilon of zero.
"""
from collections import deque
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Deque, Dict, Iterator, Optional

from loguru import logger

from ..errors import BookConflictError
from ..events import ZERO


DEFAULT_EPSILON = Decimal("1e-12")


class PositionSide(str, Enum):
    """Direction of an open lot"""
    LONG = "long"
    SHORT = "short"


@dataclass
class InventoryLot:
    """
    Open position fragment

    remaining_quantity only ever decreases and never goes below zero.
    """
    event_id: str
    symbol: str
    side: PositionSide

    entry_price: Decimal
    entry_fee: Decimal
    original_quantity: Decimal
    remaining_quantity: Decimal

    opened_at: Optional[datetime] = None

    def allocated_fee(self, quantity: Decimal) -> Decimal:
        """Share of the entry fee carried by `quantity` units of this lot"""
        if self.original_quantity <= 0:
            return ZERO
        return self.entry_fee * (quantity / self.original_quantity)

    def consume(self, quantity: Decimal) -> Decimal:
        """Take up to `quantity` units from the lot, returning the amount taken"""
        taken = min(self.remaining_quantity, quantity)
        self.remaining_quantity = max(ZERO, self.remaining_quantity - taken)
        return taken

    def is_exhausted(self, epsilon: Decimal = DEFAULT_EPSILON) -> bool:
        return self.remaining_quantity <= epsilon


@dataclass
class InstrumentBook:
    """Long and short FIFO lot queues of one instrument"""
    symbol: str
    long_lots: Deque[InventoryLot] = field(default_factory=deque)
    short_lots: Deque[InventoryLot] = field(default_factory=deque)

    def same_queue(self, is_entry: bool) -> Deque[InventoryLot]:
        """Queue an opening fill of this direction is pushed onto"""
        return self.long_lots if is_entry else self.short_lots

    def opposite_queue(self, is_entry: bool) -> Deque[InventoryLot]:
        """Queue a fill of this direction closes against"""
        return self.short_lots if is_entry else self.long_lots

    def lots(self) -> Iterator[InventoryLot]:
        yield from self.long_lots
        yield from self.short_lots

    @property
    def long_quantity(self) -> Decimal:
        return sum((lot.remaining_quantity for lot in self.long_lots), ZERO)

    @property
    def short_quantity(self) -> Decimal:
        return sum((lot.remaining_quantity for lot in self.short_lots), ZERO)

    @property
    def net_quantity(self) -> Decimal:
        """Signed open quantity (long positive, short negative)"""
        return self.long_quantity - self.short_quantity

    @property
    def is_flat(self) -> bool:
        return not self.long_lots and not self.short_lots


class PositionBook:
    """
    Open inventory across all instruments

    A book belongs to exactly one matching run; readers that need a
    stable view take a snapshot().
    """

    def __init__(self):
        self.instruments: Dict[str, InstrumentBook] = {}  # symbol -> InstrumentBook

    def get(self, symbol: str) -> InstrumentBook:
        """Instrument book for `symbol`, created on first use"""
        book = self.instruments.get(symbol)
        if book is None:
            book = InstrumentBook(symbol=symbol)
            self.instruments[symbol] = book
        return book

    def __contains__(self, symbol: str) -> bool:
        return symbol in self.instruments

    def __len__(self) -> int:
        return len(self.instruments)

    @property
    def symbols(self) -> list[str]:
        return list(self.instruments)

    def open_lots(self, symbol: Optional[str] = None) -> Iterator[InventoryLot]:
        """All remaining lots, long before short per instrument"""
        if symbol is not None:
            if symbol in self.instruments:
                yield from self.instruments[symbol].lots()
            return

        for book in self.instruments.values():
            yield from book.lots()

    def snapshot(self) -> "PositionBook":
        """Deep copy safe to hand to readers"""
        copy = PositionBook()
        copy.instruments = deepcopy(self.instruments)
        return copy

    def merge(self, other: "PositionBook") -> None:
        """
        Absorb the instruments of another book

        Raises:
            BookConflictError: both books hold the same symbol
        """
        overlap = set(self.instruments) & set(other.instruments)
        if overlap:
            raise BookConflictError(f"Books overlap on symbols: {sorted(overlap)}")
        self.instruments.update(other.instruments)

    def get_statistics(self) -> Dict:
        """Open inventory statistics"""
        lots = list(self.open_lots())
        stats = {
            "num_instruments": len([b for b in self.instruments.values() if not b.is_flat]),
            "num_lots": len(lots),
            "long_lots": len([l for l in lots if l.side is PositionSide.LONG]),
            "short_lots": len([l for l in lots if l.side is PositionSide.SHORT]),
        }
        logger.debug(f"Position book statistics: {stats}")
        return stats
