"""
Performance and Risk Metrics

Reductions over a PnL-annotated event sequence:
- Core metrics: realized P&L, volume, fees, funding, win rate
- Directional bias: long vs short counts and volume
- Risk metrics: extremes, averages, profit factor, expectancy, streaks
- Drawdown: running peak-to-trough series over cumulative P&L

Win rate everywhere is wins / closing fills, where a closing fill is a
fill that matched inventory. Wins and losses are P&L beyond +/- epsilon.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from shared.config.settings import settings
from ..events import ZERO, AnnotatedEvent, EventKind


HUNDRED = Decimal("100")
INFINITY = Decimal("Infinity")


@dataclass
class DailyFinancials:
    """Externally sourced fee/funding totals for one calendar day"""
    fees: Decimal = ZERO
    funding: Decimal = ZERO


@dataclass
class FinancialTotals:
    """
    Account-level cash flows reported outside the event stream

    Any field left as None falls back to the figure summed from events.
    Fee totals are account-wide and include fill fees unless
    includes_fill_fees is False; the fill part is netted out before
    computing net P&L, since fill fees already sit in realized P&L.
    """
    total_fees: Optional[Decimal] = None
    total_funding: Optional[Decimal] = None
    socialized_losses: Optional[Decimal] = None
    daily: Dict[str, DailyFinancials] = field(default_factory=dict)  # "YYYY-MM-DD" -> totals
    includes_fill_fees: bool = True

    def fees_outside_fills(self, external: Decimal, fill_fees: Decimal) -> Decimal:
        """Portion of an external fee figure not already allocated to fills"""
        return external - fill_fees if self.includes_fill_fees else external


@dataclass
class CoreMetrics:
    """Headline P&L figures"""

    # P&L
    realized_pnl: Decimal
    net_pnl: Decimal

    # Activity
    total_volume: Decimal
    num_fills: int
    num_closing_fills: int
    num_winning: int
    num_losing: int
    num_breakeven: int
    win_rate: Decimal

    # Cash flows
    total_fees: Decimal
    total_rebates: Decimal
    total_funding: Decimal
    socialized_losses: Decimal

    avg_trade_duration: Optional[timedelta] = None


@dataclass
class DirectionalBias:
    """Long vs short activity"""
    long_count: int
    short_count: int
    long_volume: Decimal
    short_volume: Decimal
    ratio: Decimal
    label: str  # "bullish", "bearish" or "neutral"


@dataclass
class RiskMetrics:
    """Trade-outcome risk figures"""
    largest_gain: Decimal
    largest_loss: Decimal
    avg_win: Decimal
    avg_loss: Decimal  # absolute value
    gross_profit: Decimal
    gross_loss: Decimal  # absolute value
    profit_factor: Decimal
    expectancy: Decimal
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0


@dataclass(frozen=True)
class DrawdownPoint:
    """Cumulative P&L state after one event"""
    cumulative_pnl: Decimal
    peak: Decimal
    drawdown: Decimal
    pnl: Decimal = ZERO
    timestamp: Optional[datetime] = None
    event_id: Optional[str] = None


@dataclass
class DrawdownEpisode:
    """One peak-to-recovery stretch below the running peak"""
    peak: Decimal
    trough: Decimal
    start: Optional[datetime] = None
    end: Optional[datetime] = None  # None while still under water
    recovered: bool = False

    @property
    def depth(self) -> Decimal:
        return self.peak - self.trough


@dataclass
class DrawdownSeries:
    """Full drawdown path plus its summary scalars"""
    points: List[DrawdownPoint] = field(default_factory=list)
    episodes: List[DrawdownEpisode] = field(default_factory=list)
    max_drawdown: Decimal = ZERO
    current_drawdown: Decimal = ZERO
    peak: Decimal = ZERO


def _epsilon(epsilon: Optional[Decimal]) -> Decimal:
    return epsilon if epsilon is not None else settings.analytics.epsilon


def is_win(event: AnnotatedEvent, epsilon: Optional[Decimal] = None) -> bool:
    return event.pnl > _epsilon(epsilon)


def is_loss(event: AnnotatedEvent, epsilon: Optional[Decimal] = None) -> bool:
    return event.pnl < -_epsilon(epsilon)


def win_rate(events: Iterable[AnnotatedEvent], epsilon: Optional[Decimal] = None) -> Decimal:
    """Wins as a percentage of closing fills"""
    closing = [e for e in events if e.is_fill and e.is_closing]
    if not closing:
        return ZERO
    wins = len([e for e in closing if is_win(e, epsilon)])
    return Decimal(wins) / Decimal(len(closing)) * HUNDRED


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def calculate_core_metrics(
    events: Sequence[AnnotatedEvent],
    financials: Optional[FinancialTotals] = None,
    epsilon: Optional[Decimal] = None
) -> CoreMetrics:
    """
    Calculate headline P&L metrics

    Fill fees are already deducted from realized P&L by the matcher, so
    net P&L only subtracts fees charged outside fills (fee-kind events,
    or the external aggregate net of fill fees).

    Args:
        events: PnL-annotated events
        financials: Optional externally sourced fee/funding totals
        epsilon: Win/loss threshold

    Returns:
        CoreMetrics
    """
    fills = [e for e in events if e.is_fill]
    closing = [e for e in fills if e.is_closing]

    realized = _sum(e.pnl for e in events)
    volume = _sum(e.notional for e in fills)

    event_fees = _sum(e.fees.total for e in events)
    fill_fees = _sum(e.fees.total for e in fills)
    standalone_fees = _sum(e.fees.total for e in events if e.kind is EventKind.FEE)
    rebates = _sum(e.fees.rebates for e in events)
    funding = _sum(e.funding for e in events if e.funding is not None)
    soc_loss = _sum(abs(e.socialized_loss) for e in events if e.socialized_loss is not None)

    if financials is not None:
        if financials.total_fees is not None:
            event_fees = financials.total_fees
            standalone_fees = financials.fees_outside_fills(financials.total_fees, fill_fees)
        if financials.total_funding is not None:
            funding = financials.total_funding
        if financials.socialized_losses is not None:
            soc_loss = financials.socialized_losses

    wins = len([e for e in closing if is_win(e, epsilon)])
    losses = len([e for e in closing if is_loss(e, epsilon)])
    durations = [e.hold_duration for e in closing if e.hold_duration is not None]

    return CoreMetrics(
        realized_pnl=realized,
        net_pnl=realized - standalone_fees + funding - soc_loss,
        total_volume=volume,
        num_fills=len(fills),
        num_closing_fills=len(closing),
        num_winning=wins,
        num_losing=losses,
        num_breakeven=len(closing) - wins - losses,
        win_rate=win_rate(closing, epsilon),
        total_fees=event_fees,
        total_rebates=rebates,
        total_funding=funding,
        socialized_losses=soc_loss,
        avg_trade_duration=sum(durations, timedelta()) / len(durations) if durations else None,
    )


def calculate_directional_bias(
    events: Sequence[AnnotatedEvent],
    bullish_ratio: Optional[Decimal] = None,
    bearish_ratio: Optional[Decimal] = None
) -> DirectionalBias:
    """
    Split fill activity into long and short

    ratio = long / short count, or the raw long count when there are
    no shorts.
    """
    bullish_ratio = bullish_ratio if bullish_ratio is not None else settings.analytics.bullish_ratio
    bearish_ratio = bearish_ratio if bearish_ratio is not None else settings.analytics.bearish_ratio

    fills = [e for e in events if e.is_fill]
    longs = [e for e in fills if e.is_entry]
    shorts = [e for e in fills if not e.is_entry]

    ratio = Decimal(len(longs)) / Decimal(len(shorts)) if shorts else Decimal(len(longs))

    if not fills:
        label = "neutral"
    elif ratio > bullish_ratio:
        label = "bullish"
    elif ratio < bearish_ratio:
        label = "bearish"
    else:
        label = "neutral"

    return DirectionalBias(
        long_count=len(longs),
        short_count=len(shorts),
        long_volume=_sum(e.notional for e in longs),
        short_volume=_sum(e.notional for e in shorts),
        ratio=ratio,
        label=label,
    )


def calculate_risk_metrics(
    events: Sequence[AnnotatedEvent],
    epsilon: Optional[Decimal] = None
) -> RiskMetrics:
    """Calculate extremes, averages, profit factor and streaks"""
    winners = [e.pnl for e in events if is_win(e, epsilon)]
    losers = [e.pnl for e in events if is_loss(e, epsilon)]

    gross_profit = _sum(winners)
    gross_loss = abs(_sum(losers))

    avg_win = gross_profit / len(winners) if winners else ZERO
    avg_loss = gross_loss / len(losers) if losers else ZERO

    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    elif gross_profit > 0:
        profit_factor = INFINITY
    else:
        profit_factor = ZERO

    rate = win_rate(events, epsilon) / HUNDRED
    expectancy = rate * avg_win - (1 - rate) * avg_loss

    max_wins, max_losses = calculate_consecutive_outcomes(events, epsilon)

    return RiskMetrics(
        largest_gain=max(winners, default=ZERO),
        largest_loss=min(losers, default=ZERO),
        avg_win=avg_win,
        avg_loss=avg_loss,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        profit_factor=profit_factor,
        expectancy=expectancy,
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
    )


def calculate_consecutive_outcomes(
    events: Sequence[AnnotatedEvent],
    epsilon: Optional[Decimal] = None
) -> Tuple[int, int]:
    """Longest winning and losing streaks among closing fills"""
    max_wins = max_losses = 0
    current_wins = current_losses = 0

    for event in events:
        if not (event.is_fill and event.is_closing):
            continue
        if is_win(event, epsilon):
            current_wins += 1
            current_losses = 0
            max_wins = max(max_wins, current_wins)
        elif is_loss(event, epsilon):
            current_losses += 1
            current_wins = 0
            max_losses = max(max_losses, current_losses)
        else:
            current_wins = 0
            current_losses = 0

    return max_wins, max_losses


def calculate_drawdown(events: Sequence[AnnotatedEvent]) -> DrawdownSeries:
    """
    Single forward pass over cumulative realized P&L

    Events must already be in ascending timestamp order. The peak starts
    at zero, so an opening loss is a drawdown from flat.
    """
    series = DrawdownSeries()
    cumulative = ZERO

    for event in events:
        cumulative += event.pnl
        series.peak = max(series.peak, cumulative)
        drawdown = series.peak - cumulative
        series.max_drawdown = max(series.max_drawdown, drawdown)
        series.points.append(
            DrawdownPoint(
                cumulative_pnl=cumulative,
                peak=series.peak,
                drawdown=drawdown,
                pnl=event.pnl,
                timestamp=event.timestamp,
                event_id=event.event_id,
            )
        )

    series.current_drawdown = series.peak - cumulative
    series.episodes = drawdown_episodes(series.points)
    return series


def drawdown_from_cumulative(cumulative: Sequence[Decimal]) -> DrawdownSeries:
    """Drawdown path of an already-accumulated P&L series"""
    series = DrawdownSeries()
    last = ZERO
    peak: Optional[Decimal] = None

    for value in cumulative:
        peak = value if peak is None else max(peak, value)
        drawdown = peak - value
        series.max_drawdown = max(series.max_drawdown, drawdown)
        series.points.append(DrawdownPoint(cumulative_pnl=value, peak=peak, drawdown=drawdown))
        last = value

    series.peak = peak if peak is not None else ZERO
    series.current_drawdown = series.peak - last
    series.episodes = drawdown_episodes(series.points)
    return series


def drawdown_episodes(points: Sequence[DrawdownPoint]) -> List[DrawdownEpisode]:
    """
    Split a drawdown path into episodes

    An episode opens on the first point below the peak and closes on the
    first point back at (or above) it. A trailing open episode is kept
    with end=None.
    """
    episodes: List[DrawdownEpisode] = []
    current: Optional[DrawdownEpisode] = None

    for point in points:
        if point.drawdown > 0:
            if current is None:
                current = DrawdownEpisode(
                    peak=point.peak,
                    trough=point.cumulative_pnl,
                    start=point.timestamp,
                )
            elif point.cumulative_pnl < current.trough:
                current.trough = point.cumulative_pnl
        elif current is not None:
            current.end = point.timestamp
            current.recovered = True
            episodes.append(current)
            current = None

    if current is not None:
        episodes.append(current)

    return episodes
