"""
Grouped Breakdowns

Per-group statistics over annotated fills:
- Time buckets: UTC day, hour of day, weekday, session, ISO week, month
- Daily time series of net P&L, optionally blended with external
  fee/funding totals
- Fee composition by market type and by symbol, with a running fee total
- Symbol and order-type performance
- Event filtering
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence

from shared.config.settings import SessionSettings, settings
from ..events import ZERO, AnnotatedEvent, EventKind, MarketType, OrderType, TradeSide
from .metrics import HUNDRED, FinancialTotals, is_loss, is_win


WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


@dataclass
class BucketStats:
    """Activity and outcome of one group of fills"""
    key: Hashable
    count: int = 0
    closing: int = 0
    wins: int = 0
    losses: int = 0
    pnl: Decimal = ZERO
    volume: Decimal = ZERO

    @property
    def win_rate(self) -> Decimal:
        if self.closing == 0:
            return ZERO
        return Decimal(self.wins) / Decimal(self.closing) * HUNDRED

    def add(self, event: AnnotatedEvent, epsilon: Optional[Decimal] = None) -> None:
        self.count += 1
        self.pnl += event.pnl
        self.volume += event.notional
        if event.is_closing:
            self.closing += 1
            if is_win(event, epsilon):
                self.wins += 1
            elif is_loss(event, epsilon):
                self.losses += 1

    def to_dict(self) -> Dict:
        return {
            "key": self.key,
            "count": self.count,
            "closing": self.closing,
            "pnl": self.pnl,
            "wins": self.wins,
            "losses": self.losses,
            "win_rate": self.win_rate,
            "volume": self.volume,
        }


def group_fills(
    events: Iterable[AnnotatedEvent],
    key: Callable[[AnnotatedEvent], Hashable],
    epsilon: Optional[Decimal] = None
) -> Dict[Hashable, BucketStats]:
    """Group fill events by `key`, preserving first-seen key order"""
    buckets: Dict[Hashable, BucketStats] = {}
    for event in events:
        if not event.is_fill:
            continue
        bucket_key = key(event)
        if bucket_key not in buckets:
            buckets[bucket_key] = BucketStats(key=bucket_key)
        buckets[bucket_key].add(event, epsilon)
    return buckets


def by_day(events: Iterable[AnnotatedEvent]) -> Dict[str, BucketStats]:
    """Fills grouped by UTC calendar day ("YYYY-MM-DD")"""
    return group_fills(events, lambda e: e.timestamp.date().isoformat())


def by_hour(events: Iterable[AnnotatedEvent]) -> Dict[int, BucketStats]:
    """Fills grouped by UTC hour of day, all 24 hours present"""
    grouped = group_fills(events, lambda e: e.timestamp.hour)
    return {hour: grouped.get(hour, BucketStats(key=hour)) for hour in range(24)}


def by_weekday(events: Iterable[AnnotatedEvent]) -> Dict[str, BucketStats]:
    """Fills grouped by weekday name, Monday first, all seven present"""
    grouped = group_fills(events, lambda e: WEEKDAY_NAMES[e.timestamp.weekday()])
    return {name: grouped.get(name, BucketStats(key=name)) for name in WEEKDAY_NAMES}


def by_session(
    events: Iterable[AnnotatedEvent],
    sessions: Optional[SessionSettings] = None
) -> Dict[str, BucketStats]:
    """Fills grouped by trading session of their UTC hour"""
    sessions = sessions or settings.sessions
    grouped = group_fills(events, lambda e: sessions.session_for_hour(e.timestamp.hour))
    return {name: grouped.get(name, BucketStats(key=name)) for name in ("asia", "london", "new_york")}


def by_week(events: Iterable[AnnotatedEvent]) -> Dict[str, BucketStats]:
    """Fills grouped by ISO week ("YYYY-Www")"""
    return group_fills(events, lambda e: _iso_week(e.timestamp))


def by_month(events: Iterable[AnnotatedEvent]) -> Dict[str, BucketStats]:
    """Fills grouped by "YYYY-MM" """
    return group_fills(events, lambda e: e.timestamp.strftime("%Y-%m"))


@dataclass
class DailyPoint:
    """One day of the cumulative P&L time series"""
    date: str
    trade_pnl: Decimal = ZERO
    fees: Decimal = ZERO
    funding: Decimal = ZERO
    trades: int = 0
    net_pnl: Decimal = ZERO
    cumulative_pnl: Decimal = ZERO


def daily_time_series(
    events: Sequence[AnnotatedEvent],
    financials: Optional[FinancialTotals] = None
) -> List[DailyPoint]:
    """
    Cumulative net P&L per calendar day

    net = trade P&L - fees + funding. Fees here are charges outside
    fills (fill fees already sit inside trade P&L). When external daily
    totals are supplied they replace the event-sourced fees/funding for
    their day (net of that day's fill fees, see FinancialTotals), and
    days with no fills still appear.
    """
    days: Dict[str, DailyPoint] = {}
    fill_fees: Dict[str, Decimal] = defaultdict(lambda: ZERO)

    def day(key: str) -> DailyPoint:
        if key not in days:
            days[key] = DailyPoint(date=key)
        return days[key]

    for event in events:
        point = day(event.timestamp.date().isoformat())
        if event.is_fill:
            point.trade_pnl += event.pnl
            point.trades += 1
            fill_fees[point.date] += event.fees.total
        elif event.kind is EventKind.FEE:
            point.fees += event.fees.total
        if event.funding is not None:
            point.funding += event.funding

    if financials is not None:
        for key, totals in financials.daily.items():
            point = day(key)
            point.fees = financials.fees_outside_fills(totals.fees, fill_fees[key])
            point.funding = totals.funding

    cumulative = ZERO
    series = []
    for key in sorted(days):
        point = days[key]
        point.net_pnl = point.trade_pnl - point.fees + point.funding
        cumulative += point.net_pnl
        point.cumulative_pnl = cumulative
        series.append(point)

    return series


@dataclass
class SymbolFee:
    symbol: str
    fees: Decimal
    share: Decimal  # percent of total fees


@dataclass
class FeePoint:
    """Running fee total after one fee-bearing event"""
    timestamp: datetime
    event_id: str
    fee: Decimal
    cumulative_fees: Decimal


@dataclass
class FeeComposition:
    """Where the fees went"""
    total_fees: Decimal = ZERO
    maker_fees: Decimal = ZERO
    taker_fees: Decimal = ZERO
    rebates: Decimal = ZERO
    net_fees: Decimal = ZERO
    fee_pct_of_volume: Decimal = ZERO
    by_market_type: Dict[str, Decimal] = field(default_factory=dict)
    by_symbol: List[SymbolFee] = field(default_factory=list)
    cumulative: List[FeePoint] = field(default_factory=list)

    funding_received: Decimal = ZERO
    funding_paid: Decimal = ZERO
    net_funding: Decimal = ZERO
    socialized_losses: Decimal = ZERO


def calculate_fee_composition(events: Sequence[AnnotatedEvent]) -> FeeComposition:
    """
    Break fees down by instrument class and symbol

    Symbol shares are sorted by fee magnitude, largest first. The
    cumulative series follows event order, so pass time-ordered events.
    """
    composition = FeeComposition(
        by_market_type={MarketType.SPOT.value: ZERO, MarketType.PERP.value: ZERO}
    )
    per_symbol: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    volume = ZERO

    for event in events:
        fees = event.fees
        composition.total_fees += fees.total
        composition.maker_fees += fees.maker
        composition.taker_fees += fees.taker
        composition.rebates += fees.rebates

        market = event.market_type.value
        composition.by_market_type[market] = composition.by_market_type.get(market, ZERO) + fees.total
        if fees.total:
            per_symbol[event.symbol] += fees.total
            composition.cumulative.append(
                FeePoint(
                    timestamp=event.timestamp,
                    event_id=event.event_id,
                    fee=fees.total,
                    cumulative_fees=composition.total_fees,
                )
            )

        if event.is_fill:
            volume += event.notional

        if event.funding is not None:
            if event.funding >= 0:
                composition.funding_received += event.funding
            else:
                composition.funding_paid += abs(event.funding)
        if event.socialized_loss is not None:
            composition.socialized_losses += abs(event.socialized_loss)

    composition.net_fees = composition.total_fees - composition.rebates
    composition.net_funding = composition.funding_received - composition.funding_paid
    if volume > 0:
        composition.fee_pct_of_volume = composition.total_fees / volume * HUNDRED

    total = composition.total_fees
    composition.by_symbol = sorted(
        (
            SymbolFee(
                symbol=symbol,
                fees=amount,
                share=amount / total * HUNDRED if total > 0 else ZERO,
            )
            for symbol, amount in per_symbol.items()
        ),
        key=lambda s: s.fees,
        reverse=True,
    )
    return composition


def symbol_performance(events: Iterable[AnnotatedEvent]) -> List[BucketStats]:
    """Per-symbol stats, highest volume first"""
    grouped = group_fills(events, lambda e: e.symbol)
    return sorted(grouped.values(), key=lambda b: b.volume, reverse=True)


def order_type_performance(events: Iterable[AnnotatedEvent]) -> Dict[str, BucketStats]:
    """Per-order-type stats; every order type is present"""
    grouped = group_fills(events, lambda e: e.order_type.value)
    return {t.value: grouped.get(t.value, BucketStats(key=t.value)) for t in OrderType}


def filter_events(
    events: Iterable[AnnotatedEvent],
    symbol: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    side: Optional[TradeSide] = None,
    min_pnl: Optional[Decimal] = None,
    max_pnl: Optional[Decimal] = None,
    order_type: Optional[OrderType] = None
) -> List[AnnotatedEvent]:
    """Select events matching every given criterion"""
    start = _as_utc(start)
    end = _as_utc(end)

    selected = []
    for event in events:
        if symbol is not None and event.symbol != symbol:
            continue
        if start is not None and event.timestamp < start:
            continue
        if end is not None and event.timestamp > end:
            continue
        if side is not None and event.is_entry != side.is_entry_side:
            continue
        if min_pnl is not None and event.pnl < min_pnl:
            continue
        if max_pnl is not None and event.pnl > max_pnl:
            continue
        if order_type is not None and event.order_type is not order_type:
            continue
        selected.append(event)
    return selected


def _iso_week(timestamp: datetime) -> str:
    year, week, _ = timestamp.isocalendar()
    return f"{year}-W{week:02d}"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
