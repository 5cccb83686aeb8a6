"""Tests for dashboard chart and table helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from src.core.types import Position, PricePoint, Side, Trade
from src.dashboard.components.charts import (
    create_price_chart,
    format_currency,
    format_percent,
    pnl_color,
    positions_table,
    trades_table,
)

NOW = datetime(2026, 1, 15, 12, 30, tzinfo=timezone.utc)


class TestFormatting:
    def test_format_currency(self) -> None:
        assert format_currency(1_234.5) == "$1,234.50"
        assert format_currency(0.0) == "$0.00"
        assert format_currency(-12.3) == "-$12.30"

    def test_format_percent(self) -> None:
        assert format_percent(2.35) == "+2.35%"
        assert format_percent(-1.5) == "-1.50%"

    def test_pnl_color(self) -> None:
        assert pnl_color(1.0) != pnl_color(-1.0)
        assert pnl_color(0.0) == pnl_color(1.0)


class TestPriceChart:
    def test_single_line_trace(self) -> None:
        history = [PricePoint(at=NOW, price=42_000.0), PricePoint(at=NOW, price=42_010.5)]
        fig = create_price_chart(history, "BTC")
        assert len(fig.data) == 1
        assert list(fig.data[0].y) == [42_000.0, 42_010.5]
        assert "BTC" in fig.layout.title.text


class TestTables:
    def test_positions_table(self) -> None:
        position = Position(
            position_id="1",
            symbol="BTC",
            side=Side.LONG,
            quantity=0.25,
            entry_price=41_200.50,
            leverage=10,
            opened_at=NOW,
        )
        df = positions_table([position], {"BTC": 41_700.50})
        assert len(df) == 1
        row = df.iloc[0]
        assert row["PnL"] == "$1,250.00"
        assert row["Leverage"] == "10x"
        assert row["Current"] == "$41,700.50"

    def test_empty_positions_table_keeps_columns(self) -> None:
        df = positions_table([], {})
        assert df.empty
        assert "PnL" in df.columns

    def test_trades_table(self) -> None:
        trades = [
            Trade("t2", "BTC", Side.LONG, 0.1, 42_000.0, -50.0, NOW, "Market Sell"),
            Trade("t1", "BTC", Side.LONG, 0.25, 41_200.50, 0.0, NOW, ""),
        ]
        df = trades_table(trades)
        assert list(df["Reason"]) == ["Market Sell", "Open"]
        assert df.iloc[0]["Realized PnL"] == "-$50.00"
