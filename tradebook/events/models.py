"""
Canonical trade event models

A TradeEvent is one decoded, already-settled action on the account:
a fill, a fee charge, a funding payment, a socialized loss, or a
deposit/withdrawal. Events are immutable facts.

Field invariants (positive fill quantity, finite prices) are checked by
validate_event() rather than at construction, so a malformed event can
still be built and then rejected with an error that names it.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import EventValidationError


ZERO = Decimal("0")


class EventKind(str, Enum):
    """Event kind discriminator"""
    FILL = "fill"
    FEE = "fee"
    FUNDING = "funding"
    SOCIALIZED_LOSS = "socialized_loss"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    @property
    def participates_in_matching(self) -> bool:
        return self is EventKind.FILL


class TradeSide(str, Enum):
    """Direction of an event"""
    BUY = "buy"
    SELL = "sell"
    LONG = "long"
    SHORT = "short"

    @property
    def is_entry_side(self) -> bool:
        """Buy/long is the entry side"""
        return self in (TradeSide.BUY, TradeSide.LONG)


class MarketType(str, Enum):
    """Instrument class the event traded on"""
    SPOT = "spot"
    PERP = "perp"
    UNKNOWN = "unknown"


class OrderType(str, Enum):
    """Order type that produced a fill"""
    MARKET = "market"
    LIMIT = "limit"
    UNKNOWN = "unknown"


class PnLStatus(str, Enum):
    """Outcome of a realized PnL figure"""
    WIN = "win"
    LOSS = "loss"
    BREAKEVEN = "breakeven"

    @classmethod
    def from_pnl(cls, pnl: Decimal) -> "PnLStatus":
        if pnl > 0:
            return cls.WIN
        if pnl < 0:
            return cls.LOSS
        return cls.BREAKEVEN


class FeeBreakdown(BaseModel):
    """Fees attached to an event, as unsigned magnitudes"""

    model_config = ConfigDict(frozen=True)

    maker: Decimal = Field(default=ZERO, ge=0)
    taker: Decimal = Field(default=ZERO, ge=0)
    total: Decimal = Field(default=ZERO, ge=0)
    rebates: Decimal = Field(default=ZERO, ge=0)

    @property
    def net(self) -> Decimal:
        """Fees paid minus rebates received"""
        return self.total - self.rebates


class TradeEvent(BaseModel):
    """
    One canonical trade event

    price is the execution price of this single event; an event is one
    atomic execution, not a position, so entry and exit price coincide.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Identity
    event_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        alias="id",
        description="Unique event identifier"
    )
    timestamp: datetime = Field(description="When the event settled")

    # Context
    symbol: str = Field(description="Instrument symbol (e.g., 'SOL/USDC')")
    side: TradeSide
    kind: EventKind = EventKind.FILL
    market_type: MarketType = MarketType.UNKNOWN
    order_type: OrderType = OrderType.UNKNOWN

    # Execution
    price: Decimal = Field(default=ZERO, allow_inf_nan=True)
    quantity: Decimal = Field(default=ZERO, allow_inf_nan=True)

    # Cash flows
    fees: FeeBreakdown = Field(default_factory=FeeBreakdown)
    funding: Optional[Decimal] = Field(
        default=None,
        description="Funding payment, positive when received"
    )
    socialized_loss: Optional[Decimal] = Field(
        default=None,
        description="Socialized loss magnitude charged to the account"
    )

    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def is_fill(self) -> bool:
        return self.kind.participates_in_matching

    @property
    def is_entry(self) -> bool:
        return self.side.is_entry_side

    @property
    def notional(self) -> Decimal:
        """Executed value (price * quantity)"""
        return self.price * self.quantity

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TradeEvent":
        """
        Build an event from the adapter's plain mapping

        Numeric values are routed through str() so floats keep their
        printed precision. Schema failures are raised as
        EventValidationError naming the event.
        """
        if not isinstance(raw, Mapping):
            raise EventValidationError(f"expected a mapping, got {type(raw).__name__}")
        data = dict(raw)
        for key in ("price", "quantity", "funding", "socialized_loss"):
            if data.get(key) is not None:
                data[key] = _to_decimal(data[key], key, data)

        fees = data.get("fees")
        if isinstance(fees, Mapping):
            data["fees"] = {
                name: _to_decimal(value, f"fees.{name}", data)
                for name, value in fees.items()
                if value is not None
            }

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise EventValidationError(
                first.get("msg", str(e)),
                event_id=_raw_id(data),
                field=field or None
            ) from e


class AnnotatedEvent(TradeEvent):
    """
    TradeEvent augmented with realized PnL

    Opening fills and non-fill events carry pnl = 0 and breakeven status.
    """

    pnl: Decimal = ZERO
    pnl_pct: Decimal = ZERO
    status: PnLStatus = PnLStatus.BREAKEVEN

    matched_quantity: Decimal = ZERO
    matched_notional: Decimal = ZERO
    allocated_fees: Decimal = ZERO
    hold_duration: Optional[timedelta] = Field(
        default=None,
        description="Quantity-weighted time the matched lots were held"
    )

    @property
    def is_closing(self) -> bool:
        """True when this fill closed some inventory"""
        return self.matched_quantity > 0

    @classmethod
    def from_event(cls, event: TradeEvent, **annotations: Any) -> "AnnotatedEvent":
        values = {name: getattr(event, name) for name in TradeEvent.model_fields}
        values.update(annotations)
        return cls.model_validate(values)


def validate_event(event: TradeEvent) -> TradeEvent:
    """
    Check field invariants of an event

    Raises:
        EventValidationError: quantity <= 0 or non-finite/negative
            price on a fill, or non-finite values on any event
    """
    if not event.price.is_finite():
        raise EventValidationError("price must be finite", event.event_id, "price")
    if not event.quantity.is_finite():
        raise EventValidationError("quantity must be finite", event.event_id, "quantity")
    if event.quantity < 0:
        raise EventValidationError("quantity must not be negative", event.event_id, "quantity")

    if event.is_fill:
        if event.quantity <= 0:
            raise EventValidationError("fill quantity must be positive", event.event_id, "quantity")
        if event.price < 0:
            raise EventValidationError("fill price must not be negative", event.event_id, "price")

    for name in ("maker", "taker", "total", "rebates"):
        if not getattr(event.fees, name).is_finite():
            raise EventValidationError("fee must be finite", event.event_id, f"fees.{name}")

    for name in ("funding", "socialized_loss"):
        value = getattr(event, name)
        if value is not None and not value.is_finite():
            raise EventValidationError(f"{name} must be finite", event.event_id, name)

    return event


def _to_decimal(value: Any, field: str, raw: Mapping[str, Any]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise EventValidationError(
            f"not a number: {value!r}",
            event_id=_raw_id(raw),
            field=field
        ) from e


def _raw_id(raw: Mapping[str, Any]) -> Optional[str]:
    value = raw.get("event_id", raw.get("id"))
    return str(value) if value is not None else None
