"""
Error and diagnostic types

Three kinds of problems surface from the core:
- Validation errors: malformed input events (raised)
- Matching anomalies: exit quantity left over after the opposite
  inventory is exhausted (recorded, processing continues)
- Valuation gaps: open lots with no mark price (recorded, excluded
  from the unrealized total)
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


class TradebookError(Exception):
    """Base exception for the tradebook core"""
    pass


class EventValidationError(TradebookError):
    """A trade event violates a field invariant"""

    def __init__(
        self,
        reason: str,
        event_id: Optional[str] = None,
        field: Optional[str] = None
    ):
        self.reason = reason
        self.event_id = event_id
        self.field = field

        where = f"event {event_id}" if event_id else "event"
        if field:
            where = f"{where} [{field}]"
        super().__init__(f"Invalid {where}: {reason}")


class BookConflictError(TradebookError):
    """Two position books claim the same instrument"""
    pass


@dataclass(frozen=True)
class MatchingDiagnostic:
    """Non-fatal anomaly raised while matching a closing fill"""
    event_id: str
    symbol: str
    unmatched_quantity: Decimal
    timestamp: Optional[datetime] = None
    message: str = ""


@dataclass(frozen=True)
class UnpricedPosition:
    """Open lot excluded from valuation because no mark price was available"""
    symbol: str
    side: str
    event_id: str
    remaining_quantity: Decimal
    entry_price: Decimal
