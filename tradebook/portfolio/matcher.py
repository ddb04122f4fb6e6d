"""
Position Matcher

Turns a time-ordered event stream into PnL-annotated events by FIFO
matching closing fills against open inventory:
- Two independent lot queues (long/short) per instrument
- Entry and exit fees allocated pro rata to matched quantity
- Exit quantity left after the opposite queue empties is dropped
  with a diagnostic; it never opens a position of its own
- One annotated output per input event, in processing order

Also provides the average-cost variant and an instrument-sharded
runner for large multi-symbol streams.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from shared.config.settings import settings
from ..errors import MatchingDiagnostic
from ..events import ZERO, AnnotatedEvent, PnLStatus, TradeEvent, validate_event
from .book import InventoryLot, PositionBook, PositionSide


HUNDRED = Decimal("100")


@dataclass
class MatchResult:
    """Output of one matching run"""
    events: List[AnnotatedEvent]
    book: PositionBook
    diagnostics: List[MatchingDiagnostic] = field(default_factory=list)

    @property
    def realized_pnl(self) -> Decimal:
        return sum((e.pnl for e in self.events), ZERO)

    @property
    def closing_events(self) -> List[AnnotatedEvent]:
        return [e for e in self.events if e.is_closing]


def sort_events(events: Iterable[TradeEvent]) -> List[TradeEvent]:
    """Ascending by timestamp; ties keep arrival order"""
    return sorted(events, key=lambda e: e.timestamp)


class PositionMatcher:
    """
    FIFO position matcher

    Each call to run() builds a fresh PositionBook, so the matcher holds
    no state between runs and repeated runs over the same input agree.
    """

    def __init__(self, epsilon: Optional[Decimal] = None):
        """
        Initialize matcher

        Args:
            epsilon: Quantity below which a lot or exit is treated as
                exhausted (defaults to settings.analytics.epsilon)
        """
        self.epsilon = epsilon if epsilon is not None else settings.analytics.epsilon

    def run(self, events: Iterable[TradeEvent]) -> MatchResult:
        """
        Match an event stream

        Raises:
            EventValidationError: an event violates a field invariant;
                nothing is matched in that case
        """
        ordered = sort_events(validate_event(e) for e in events)
        book = PositionBook()
        diagnostics: List[MatchingDiagnostic] = []

        logger.info(f"Matching {len(ordered)} events")

        annotated = [self._process(event, book, diagnostics) for event in ordered]

        result = MatchResult(events=annotated, book=book, diagnostics=diagnostics)
        logger.info(
            f"Matching complete: {len(result.closing_events)} closing fills, "
            f"realized P&L {result.realized_pnl}, {len(diagnostics)} diagnostics"
        )
        return result

    def _process(
        self,
        event: TradeEvent,
        book: PositionBook,
        diagnostics: List[MatchingDiagnostic]
    ) -> AnnotatedEvent:
        if not event.is_fill:
            return AnnotatedEvent.from_event(event)

        instrument = book.get(event.symbol)
        opposite = instrument.opposite_queue(event.is_entry)

        if opposite:
            return self._close(event, opposite, diagnostics)

        instrument.same_queue(event.is_entry).append(
            InventoryLot(
                event_id=event.event_id,
                symbol=event.symbol,
                side=PositionSide.LONG if event.is_entry else PositionSide.SHORT,
                entry_price=event.price,
                entry_fee=event.fees.total,
                original_quantity=event.quantity,
                remaining_quantity=event.quantity,
                opened_at=event.timestamp,
            )
        )
        logger.debug(
            f"Opened lot: {event.symbol} | {event.side.value} {event.quantity} @ {event.price}"
        )
        return AnnotatedEvent.from_event(event)

    def _close(
        self,
        event: TradeEvent,
        queue,
        diagnostics: List[MatchingDiagnostic]
    ) -> AnnotatedEvent:
        """Consume the opposite queue oldest-first for one exit fill"""
        remaining = event.quantity
        total_pnl = ZERO
        matched_qty = ZERO
        matched_notional = ZERO
        allocated_fees = ZERO
        held_seconds = ZERO
        timed_qty = ZERO

        while remaining > self.epsilon and queue:
            lot = queue[0]
            qty = min(lot.remaining_quantity, remaining)

            entry_fee = lot.allocated_fee(qty)
            exit_fee = event.fees.total * (qty / event.quantity)

            entry_value = qty * lot.entry_price
            exit_value = qty * event.price
            if lot.side is PositionSide.LONG:
                gross = exit_value - entry_value
            else:
                gross = entry_value - exit_value

            segment_pnl = gross - entry_fee - exit_fee
            total_pnl += segment_pnl
            matched_qty += qty
            matched_notional += exit_value
            allocated_fees += entry_fee + exit_fee
            if lot.opened_at is not None:
                held_seconds += qty * Decimal(str((event.timestamp - lot.opened_at).total_seconds()))
                timed_qty += qty

            lot.consume(qty)
            remaining -= qty

            logger.debug(
                f"Matched {qty} {event.symbol} against lot {lot.event_id} | "
                f"{lot.entry_price} -> {event.price} | P&L: {segment_pnl}"
            )

            if lot.is_exhausted(self.epsilon):
                queue.popleft()

        if remaining > self.epsilon or matched_qty == 0:
            if matched_qty == 0:
                message = (
                    f"Exit quantity {event.quantity} for {event.symbol} is within epsilon "
                    f"(event {event.event_id}); nothing matched"
                )
            else:
                message = (
                    f"Unmatched exit quantity for {event.symbol}: {remaining} "
                    f"(event {event.event_id}); residual dropped"
                )
            logger.warning(message)
            diagnostics.append(
                MatchingDiagnostic(
                    event_id=event.event_id,
                    symbol=event.symbol,
                    unmatched_quantity=remaining,
                    timestamp=event.timestamp,
                    message=message,
                )
            )

        pnl_pct = total_pnl / matched_notional * HUNDRED if matched_notional != 0 else ZERO
        hold_duration = None
        if timed_qty > 0:
            hold_duration = timedelta(seconds=float(held_seconds / timed_qty))

        return AnnotatedEvent.from_event(
            event,
            pnl=total_pnl,
            pnl_pct=pnl_pct,
            status=PnLStatus.from_pnl(total_pnl),
            matched_quantity=matched_qty,
            matched_notional=matched_notional,
            allocated_fees=allocated_fees,
            hold_duration=hold_duration,
        )


def match(events: Iterable[TradeEvent], epsilon: Optional[Decimal] = None) -> List[AnnotatedEvent]:
    """Match events and return only the annotated sequence"""
    return PositionMatcher(epsilon=epsilon).run(events).events


def match_by_symbol(
    events: Iterable[TradeEvent],
    max_workers: Optional[int] = None,
    epsilon: Optional[Decimal] = None
) -> MatchResult:
    """
    Match each instrument independently on a thread pool

    Instruments share no inventory, so each shard gets its own matcher
    and book. Output is merged back into global timestamp order.
    """
    ordered = sort_events(events)

    shards: Dict[str, List[Tuple[int, TradeEvent]]] = {}
    for index, event in enumerate(ordered):
        shards.setdefault(event.symbol, []).append((index, event))

    logger.info(f"Matching {len(ordered)} events across {len(shards)} instruments")

    def run_shard(shard: Sequence[Tuple[int, TradeEvent]]) -> Tuple[List[int], MatchResult]:
        indices = [index for index, _ in shard]
        return indices, PositionMatcher(epsilon=epsilon).run(event for _, event in shard)

    merged: List[Optional[AnnotatedEvent]] = [None] * len(ordered)
    book = PositionBook()
    diagnostics: List[Tuple[int, MatchingDiagnostic]] = []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        for indices, result in executor.map(run_shard, shards.values()):
            position = dict(zip((e.event_id for e in result.events), indices))
            for index, annotated in zip(indices, result.events):
                merged[index] = annotated
            for diagnostic in result.diagnostics:
                diagnostics.append((position.get(diagnostic.event_id, 0), diagnostic))
            book.merge(result.book)

    return MatchResult(
        events=[e for e in merged if e is not None],
        book=book,
        diagnostics=[d for _, d in sorted(diagnostics, key=lambda pair: pair[0])],
    )


def average_cost_match(events: Iterable[TradeEvent]) -> List[AnnotatedEvent]:
    """
    Average-cost PnL

    Entry fills fold into a per-symbol running average price; exit fills
    realize (price - average) on the quantity still held. Fees are not
    allocated in this method.
    """
    ordered = sort_events(validate_event(e) for e in events)
    costs: Dict[str, Tuple[Decimal, Decimal]] = {}  # symbol -> (avg_price, held_qty)
    result: List[AnnotatedEvent] = []

    for event in ordered:
        if not event.is_fill:
            result.append(AnnotatedEvent.from_event(event))
            continue

        avg_price, held = costs.get(event.symbol, (ZERO, ZERO))

        if event.is_entry:
            new_qty = held + event.quantity
            avg_price = (avg_price * held + event.price * event.quantity) / new_qty
            costs[event.symbol] = (avg_price, new_qty)
            result.append(AnnotatedEvent.from_event(event))
            continue

        qty = min(event.quantity, held)
        pnl = (event.price - avg_price) * qty
        exit_value = event.price * qty
        if qty < event.quantity:
            logger.warning(
                f"Average-cost exit exceeds held quantity for {event.symbol}: "
                f"{event.quantity - qty} unmatched"
            )

        result.append(
            AnnotatedEvent.from_event(
                event,
                pnl=pnl,
                pnl_pct=pnl / exit_value * HUNDRED if exit_value > 0 else ZERO,
                status=PnLStatus.from_pnl(pnl),
                matched_quantity=qty,
                matched_notional=exit_value,
            )
        )

        held = held - qty
        costs[event.symbol] = (avg_price if held > 0 else ZERO, held)

    return result
