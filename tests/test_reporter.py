"""
Unit tests for report generation and exports
"""
import csv
import json
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from tradebook.events import FeeBreakdown, TradeEvent, TradeSide
from tradebook.portfolio import PositionMatcher
from tradebook.analytics import (
    TRADE_EXPORT_COLUMNS,
    ReportGenerator,
    analyze,
    export_report_json,
    export_trades_csv,
    to_serializable,
    trades_to_dataframe,
)


T0 = datetime(2024, 6, 3, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def matched():
    events = [
        TradeEvent(
            event_id="b1",
            timestamp=T0,
            symbol="SOL/USDC",
            side=TradeSide.BUY,
            price=Decimal("100"),
            quantity=Decimal("2"),
            fees=FeeBreakdown(total=Decimal("0.2")),
        ),
        TradeEvent(
            event_id="s1",
            timestamp=T0 + timedelta(hours=2),
            symbol="SOL/USDC",
            side=TradeSide.SELL,
            price=Decimal("110"),
            quantity=Decimal("2"),
            fees=FeeBreakdown(total=Decimal("0.2")),
        ),
    ]
    return PositionMatcher().run(events)


class TestTradeExport:
    """Test CSV and DataFrame exports"""

    def test_column_order(self):
        """Test the export columns are stable"""
        assert TRADE_EXPORT_COLUMNS == [
            "id", "timestamp", "symbol", "side", "price",
            "quantity", "fee_total", "pnl", "pnl_pct", "status",
        ]

    def test_export_csv(self, matched, tmp_path):
        """Test one row per annotated event"""
        path = tmp_path / "out" / "trades.csv"
        rows = export_trades_csv(matched.events, str(path))

        assert rows == 2
        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            assert reader.fieldnames == TRADE_EXPORT_COLUMNS
            records = list(reader)

        assert records[0]["id"] == "b1"
        assert records[1]["side"] == "sell"
        assert Decimal(records[1]["pnl"]) == Decimal("19.6")
        assert records[1]["status"] == "win"

    def test_dataframe(self, matched):
        """Test DataFrame columns and numeric types"""
        df = trades_to_dataframe(matched.events)

        assert list(df.columns) == TRADE_EXPORT_COLUMNS
        assert len(df) == 2
        assert df["pnl"].sum() == pytest.approx(19.6)
        assert str(df["timestamp"].dt.tz) == "UTC"

    def test_empty_dataframe(self):
        """Test empty input keeps the columns"""
        df = trades_to_dataframe([])
        assert list(df.columns) == TRADE_EXPORT_COLUMNS
        assert df.empty


class TestReportGenerator:
    """Test text and JSON reports"""

    def test_text_report(self, matched):
        """Test headline sections are present"""
        report = analyze(matched.events, book=matched.book, marks={})
        text = ReportGenerator().generate_text_report(report)

        assert "PERFORMANCE REPORT" in text
        assert "Realized P&L" in text
        assert "SOL/USDC" in text

    def test_json_report(self, matched):
        """Test the JSON report is loadable and carries a summary"""
        report = analyze(matched.events)
        data = json.loads(ReportGenerator().generate_json_report(report))

        assert data["summary"]["realized_pnl"] == pytest.approx(19.6)
        assert data["summary"]["profit_factor"] == "Infinity"
        assert len(data["hourly"]) == 24
        assert data["symbols"][0]["key"] == "SOL/USDC"
        assert data["symbols"][0]["win_rate"] == pytest.approx(100.0)

    def test_export_report_json(self, matched, tmp_path):
        """Test writing the report to disk"""
        path = tmp_path / "report.json"
        export_report_json(analyze(matched.events), str(path))

        data = json.loads(path.read_text())
        assert data["core"]["num_fills"] == 2

    def test_to_serializable(self):
        """Test Decimal and datetime conversion"""
        value = to_serializable({"a": Decimal("1.5"), "b": [T0], "c": Decimal("NaN")})
        assert value == {"a": 1.5, "b": [T0.isoformat()], "c": "NaN"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
