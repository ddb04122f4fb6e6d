"""
Unit tests for the position book and unrealized valuation
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from tradebook.errors import BookConflictError
from tradebook.events import FeeBreakdown, TradeEvent, TradeSide
from tradebook.portfolio import (
    InventoryLot,
    PositionBook,
    PositionMatcher,
    PositionSide,
    parse_mark,
    resolve_mark,
    value_open_positions,
)


def fill(event_id, side, price, quantity, symbol, hour=0, fee="0"):
    return TradeEvent(
        event_id=event_id,
        timestamp=datetime(2024, 5, 1, hour, tzinfo=timezone.utc),
        symbol=symbol,
        side=side,
        price=Decimal(price),
        quantity=Decimal(quantity),
        fees=FeeBreakdown(total=Decimal(fee)),
    )


def open_book():
    events = [
        fill("sol1", TradeSide.BUY, "100", "10", "SOL/USDC", hour=1),
        fill("bonk1", TradeSide.SELL, "0.00001", "1000000", "BONK/USDC", hour=2),
    ]
    return PositionMatcher().run(events).book


class TestValuation:
    """Test mark-to-market of open lots"""

    def test_short_bonk_gains_when_price_falls(self):
        """Test a short lot is worth entry minus mark"""
        events = [fill("bonk1", TradeSide.SELL, "0.00001", "1000000", "BONK/USDC")]
        book = PositionMatcher().run(events).book

        result = value_open_positions(book, {"BONK/USDC": Decimal("0.000008")})

        assert result.total_unrealized_pnl == Decimal("2")
        assert result.positions[0].side == PositionSide.SHORT

    def test_marks_keyed_by_base_asset(self):
        """Test marks given per base asset value the pair symbols"""
        marks = {"SOL": Decimal("110"), "BONK": Decimal("0.000008")}

        result = value_open_positions(open_book(), marks)

        assert result.total_unrealized_pnl == Decimal("102")
        assert result.unpriced == []
        assert result.by_symbol()["SOL/USDC"]["long_quantity"] == Decimal("10")
        assert result.by_symbol()["BONK/USDC"]["short_quantity"] == Decimal("1000000")

    def test_missing_mark_reported_not_zeroed(self):
        """Test lots without a mark are excluded and listed"""
        result = value_open_positions(open_book(), {"SOL": Decimal("110")})

        assert result.total_unrealized_pnl == Decimal("100")
        assert len(result.unpriced) == 1
        assert result.unpriced[0].symbol == "BONK/USDC"
        assert result.unpriced[0].remaining_quantity == Decimal("1000000")

    def test_non_finite_mark_is_unpriced(self):
        """Test NaN marks are treated as missing"""
        result = value_open_positions(open_book(), {"SOL": Decimal("NaN"), "BONK": Decimal("0.00001")})

        assert [u.symbol for u in result.unpriced] == ["SOL/USDC"]
        assert result.total_unrealized_pnl == Decimal("0")

    def test_valuation_does_not_mutate_book(self):
        """Test valuation is a pure read"""
        book = open_book()
        before = [(lot.event_id, lot.remaining_quantity) for lot in book.open_lots()]

        value_open_positions(book, {"SOL": Decimal("1"), "BONK": Decimal("1")})

        after = [(lot.event_id, lot.remaining_quantity) for lot in book.open_lots()]
        assert before == after

    def test_partially_closed_lot_valued_on_remainder(self):
        """Test only the remaining quantity is marked"""
        events = [
            fill("b1", TradeSide.BUY, "100", "2", "SOL/USDC", hour=1),
            fill("s1", TradeSide.SELL, "105", "1.5", "SOL/USDC", hour=2),
        ]
        book = PositionMatcher().run(events).book

        result = value_open_positions(book, {"SOL/USDC": Decimal("120")})

        assert result.total_unrealized_pnl == Decimal("10")

    def test_none_mark_is_unpriced(self):
        """Test a null mark leaves the lot unpriced instead of failing"""
        result = value_open_positions(open_book(), {"SOL/USDC": None, "BONK": Decimal("0.00001")})

        assert [u.symbol for u in result.unpriced] == ["SOL/USDC"]
        assert result.total_unrealized_pnl == Decimal("0")

    def test_non_numeric_mark_is_unpriced(self):
        """Test a mark that is not a number is treated as missing"""
        result = value_open_positions(open_book(), {"SOL": "abc", "BONK": "0.000008"})

        assert [u.symbol for u in result.unpriced] == ["SOL/USDC"]
        assert result.total_unrealized_pnl == Decimal("2")


class TestResolveMark:
    """Test mark lookup"""

    def test_full_symbol_wins(self):
        """Test the exact symbol takes precedence over the base asset"""
        marks = {"SOL/USDC": Decimal("101"), "SOL": Decimal("99")}
        assert resolve_mark("SOL/USDC", marks) == Decimal("101")

    def test_dash_separator(self):
        """Test perp-style symbols resolve to their base"""
        assert resolve_mark("SOL-PERP", {"SOL": 150}) == Decimal("150")

    def test_unknown_symbol(self):
        """Test None when nothing matches"""
        assert resolve_mark("JUP/USDC", {"SOL": Decimal("1")}) is None

    def test_none_falls_back_to_base(self):
        """Test a null full-symbol mark falls through to the base asset"""
        assert resolve_mark("SOL/USDC", {"SOL/USDC": None, "SOL": 110}) == Decimal("110")

    def test_parse_mark(self):
        """Test mark values are parsed through str() or rejected as None"""
        assert parse_mark(1.5) == Decimal("1.5")
        assert parse_mark("0.000008") == Decimal("0.000008")
        assert parse_mark(None) is None
        assert parse_mark("abc") is None
        assert parse_mark([1]) is None


class TestPositionBook:
    """Test position book operations"""

    def test_lot_fee_allocation(self):
        """Test allocated entry fee is proportional to quantity"""
        lot = InventoryLot(
            event_id="b1",
            symbol="SOL/USDC",
            side=PositionSide.LONG,
            entry_price=Decimal("100"),
            entry_fee=Decimal("1"),
            original_quantity=Decimal("4"),
            remaining_quantity=Decimal("4"),
        )
        assert lot.allocated_fee(Decimal("1")) == Decimal("0.25")
        assert lot.consume(Decimal("5")) == Decimal("4")
        assert lot.remaining_quantity == Decimal("0")
        assert lot.is_exhausted()

    def test_snapshot_is_independent(self):
        """Test snapshots do not share lots with the live book"""
        book = open_book()
        snapshot = book.snapshot()

        book.get("SOL/USDC").long_lots[0].consume(Decimal("10"))

        assert snapshot.get("SOL/USDC").long_quantity == Decimal("10")

    def test_merge_conflict(self):
        """Test merging two books that share a symbol fails"""
        book = open_book()
        other = PositionBook()
        other.get("SOL/USDC")

        with pytest.raises(BookConflictError):
            book.merge(other)

    def test_statistics(self):
        """Test open inventory statistics"""
        stats = open_book().get_statistics()

        assert stats["num_instruments"] == 2
        assert stats["num_lots"] == 2
        assert stats["long_lots"] == 1
        assert stats["short_lots"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
