"""Tests for the order executor (buy / sell / close-all / reset)."""

from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from src.core.exceptions import (
    InsufficientBalanceError,
    InsufficientPositionError,
    InvalidOrderError,
    InvalidQuantityError,
)
from src.core.types import OrderRequest, OrderType, Side
from src.simulator.account_ledger import AccountLedger
from src.simulator.order_engine import OrderExecutor, build_seed_position, build_seed_trade
from src.simulator.position_book import PositionBook
from src.simulator.trade_ledger import TradeLedger

NOW = datetime(2026, 1, 15, tzinfo=timezone.utc)


class _Parts:
    def __init__(self, balance: float = 10_000.0) -> None:
        self.ledger = AccountLedger(balance)
        self.book = PositionBook(clock=lambda: NOW)
        self.trades = TradeLedger()
        self.executor = OrderExecutor(
            self.ledger, self.book, self.trades, max_leverage=100, clock=lambda: NOW,
        )


@pytest.fixture
def parts() -> _Parts:
    return _Parts()


def _order(quantity: float = 0.1, leverage: float = 10, **kw: object) -> OrderRequest:
    return OrderRequest(symbol="BTC", quantity=quantity, leverage=leverage, **kw)  # type: ignore[arg-type]


class TestBuy:
    def test_market_order_reserves_margin_at_market_price(self, parts: _Parts) -> None:
        position = parts.executor.buy(_order(0.1, 10), market_price=42_350.75)

        # 0.1 * 42350.75 / 10 = 423.5075
        assert parts.ledger.balance == pytest.approx(10_000.0 - 423.5075)
        assert position.side == Side.LONG
        assert position.entry_price == 42_350.75
        assert position.leverage == 10
        assert len(parts.book) == 1

    def test_limit_order_backs_margin_with_limit_price(self, parts: _Parts) -> None:
        order = _order(0.1, 10, order_type=OrderType.LIMIT, limit_price=40_000.0)
        position = parts.executor.buy(order, market_price=42_350.75)
        assert position.entry_price == 40_000.0
        assert parts.ledger.balance == pytest.approx(9_600.0)

    def test_limit_order_without_price_rejected(self, parts: _Parts) -> None:
        order = _order(order_type=OrderType.LIMIT)
        with pytest.raises(InvalidOrderError, match="limit_price"):
            parts.executor.buy(order, market_price=42_000.0)
        assert parts.ledger.balance == 10_000.0

    def test_stop_loss_and_take_profit_are_stored(self, parts: _Parts) -> None:
        position = parts.executor.buy(
            _order(stop_loss=41_000.0, take_profit=45_000.0), market_price=42_000.0,
        )
        assert position.stop_loss == 41_000.0
        assert position.take_profit == 45_000.0

    @pytest.mark.parametrize("quantity", [0.0, -0.1, math.nan, math.inf])
    def test_non_positive_quantity_rejected(self, parts: _Parts, quantity: float) -> None:
        with pytest.raises(InvalidQuantityError):
            parts.executor.buy(_order(quantity), market_price=42_000.0)
        assert len(parts.book) == 0
        assert parts.ledger.balance == 10_000.0

    @pytest.mark.parametrize("leverage", [0, 0.5, 101, math.nan])
    def test_leverage_out_of_range_rejected(self, parts: _Parts, leverage: float) -> None:
        with pytest.raises(InvalidOrderError, match="leverage"):
            parts.executor.buy(_order(leverage=leverage), market_price=42_000.0)
        assert len(parts.book) == 0

    @pytest.mark.parametrize("price", [0.0, math.nan, math.inf])
    def test_invalid_market_price_rejected(self, parts: _Parts, price: float) -> None:
        with pytest.raises(InvalidOrderError, match="price must be positive"):
            parts.executor.buy(_order(), market_price=price)
        assert parts.ledger.balance == 10_000.0

    def test_insufficient_balance_changes_nothing(self, parts: _Parts) -> None:
        with pytest.raises(InsufficientBalanceError):
            # 10 * 42350.75 / 10 = 42350.75 > 10000
            parts.executor.buy(_order(10.0, 10), market_price=42_350.75)
        assert parts.ledger.balance == 10_000.0
        assert len(parts.book) == 0
        assert len(parts.trades) == 0


class TestSell:
    def test_fifo_close_with_each_lots_own_leverage(self, parts: _Parts) -> None:
        parts.executor.buy(_order(0.1, 10), market_price=40_000.0)   # margin 400
        parts.executor.buy(_order(0.2, 5), market_price=41_000.0)    # margin 1640
        assert parts.ledger.balance == pytest.approx(7_960.0)

        trades = parts.executor.sell("BTC", Side.LONG, 0.15, current_price=42_000.0)

        assert len(trades) == 2
        # lot 1: (42000 - 40000) * 0.1 * 10
        assert trades[0].quantity == pytest.approx(0.1)
        assert trades[0].realized_pnl == pytest.approx(2_000.0)
        # lot 2: (42000 - 41000) * 0.05 * 5
        assert trades[1].quantity == pytest.approx(0.05)
        assert trades[1].realized_pnl == pytest.approx(250.0)
        assert all(t.close_reason == "Market Sell" for t in trades)
        assert all(t.price == 42_000.0 for t in trades)

        # 7960 + (400 + 2000) + (410 + 250)
        assert parts.ledger.balance == pytest.approx(11_020.0)
        assert parts.ledger.realized_pnl == pytest.approx(2_250.0)

        remaining = parts.book.positions()
        assert len(remaining) == 1
        assert remaining[0].quantity == pytest.approx(0.15)
        assert remaining[0].entry_price == 41_000.0

    def test_trades_are_prepended_newest_first(self, parts: _Parts) -> None:
        parts.trades.reset([build_seed_trade(NOW)])
        parts.executor.buy(_order(0.1), market_price=40_000.0)
        parts.executor.buy(_order(0.2), market_price=41_000.0)
        trades = parts.executor.sell("BTC", Side.LONG, 0.3, current_price=40_500.0)
        ledger = parts.trades.trades()
        assert ledger[0] == trades[-1]
        assert ledger[1] == trades[0]
        assert ledger[-1].trade_id == "t1"

    def test_losing_sell_reduces_balance(self, parts: _Parts) -> None:
        parts.executor.buy(_order(0.1, 10), market_price=40_000.0)
        parts.executor.sell("BTC", Side.LONG, 0.1, current_price=39_500.0)
        # 9600 + 400 - 500
        assert parts.ledger.balance == pytest.approx(9_500.0)
        assert parts.ledger.realized_pnl == pytest.approx(-500.0)

    def test_short_position_close(self, parts: _Parts) -> None:
        parts.executor.buy(_order(0.1, 10, side=Side.SHORT), market_price=42_000.0)
        trades = parts.executor.sell("BTC", Side.SHORT, 0.1, current_price=41_000.0)
        assert trades[0].side == Side.SHORT
        assert trades[0].realized_pnl == pytest.approx(1_000.0)
        assert parts.ledger.balance == pytest.approx(11_000.0)

    def test_exceeding_open_quantity_is_rejected_atomically(self, parts: _Parts) -> None:
        parts.executor.buy(_order(0.1), market_price=40_000.0)
        balance = parts.ledger.balance
        positions = parts.book.positions()

        with pytest.raises(InsufficientPositionError):
            parts.executor.sell("BTC", Side.LONG, 0.2, current_price=41_000.0)

        assert parts.ledger.balance == balance
        assert parts.book.positions() == positions
        assert len(parts.trades) == 0

    def test_sell_other_side_is_rejected(self, parts: _Parts) -> None:
        parts.executor.buy(_order(0.1), market_price=40_000.0)
        with pytest.raises(InsufficientPositionError):
            parts.executor.sell("BTC", Side.SHORT, 0.1, current_price=40_000.0)

    @pytest.mark.parametrize("quantity", [0.0, -0.1, math.nan, math.inf])
    def test_non_positive_quantity_rejected(self, parts: _Parts, quantity: float) -> None:
        parts.executor.buy(_order(0.1), market_price=40_000.0)
        balance = parts.ledger.balance
        positions = parts.book.positions()

        with pytest.raises(InvalidQuantityError):
            parts.executor.sell("BTC", Side.LONG, quantity, current_price=40_000.0)

        assert parts.ledger.balance == balance
        assert parts.book.positions() == positions
        assert len(parts.trades) == 0

    @pytest.mark.parametrize("price", [math.nan, math.inf])
    def test_non_finite_fill_price_rejected(self, parts: _Parts, price: float) -> None:
        parts.executor.buy(_order(0.1), market_price=40_000.0)
        with pytest.raises(InvalidOrderError):
            parts.executor.sell("BTC", Side.LONG, 0.1, current_price=price)
        assert parts.ledger.realized_pnl == 0.0


class TestCloseAll:
    def test_closes_everything_with_per_position_pnl(self, parts: _Parts) -> None:
        parts.executor.buy(_order(0.1, 10), market_price=40_000.0)
        parts.executor.buy(_order(0.1, 20, side=Side.SHORT), market_price=41_000.0)
        # margins: 400 + 205
        trades = parts.executor.close_all(lambda p: 40_500.0)

        assert len(trades) == 2
        # long: 500 * 0.1 * 10 ; short: -1 * -500 * 0.1 * 20
        assert [t.realized_pnl for t in trades] == pytest.approx([500.0, 1_000.0])
        assert all(t.close_reason == "Manual Close All" for t in trades)
        assert len(parts.book) == 0
        assert parts.ledger.balance == pytest.approx(10_000.0 + 1_500.0)

    def test_empty_book_is_noop(self, parts: _Parts) -> None:
        assert parts.executor.close_all(lambda p: 40_000.0) == []
        assert parts.ledger.balance == 10_000.0
        assert len(parts.trades) == 0


class TestReset:
    def test_restores_seeded_state(self, parts: _Parts) -> None:
        parts.executor.buy(_order(0.1), market_price=40_000.0)
        parts.executor.close_all(lambda p: 41_000.0)

        parts.executor.reset()

        assert parts.ledger.balance == 10_000.0
        assert parts.ledger.realized_pnl == 0.0
        assert parts.book.positions() == [build_seed_position(NOW)]
        assert parts.trades.trades() == [build_seed_trade(NOW)]

    def test_seed_position_values(self) -> None:
        seed = build_seed_position(NOW)
        assert (seed.symbol, seed.side, seed.quantity, seed.entry_price, seed.leverage) == (
            "BTC", Side.LONG, 0.25, 41_200.50, 10,
        )
        assert seed.stop_loss == 40_000.0
        assert seed.take_profit == 45_000.0
        assert seed.opened_at < NOW
