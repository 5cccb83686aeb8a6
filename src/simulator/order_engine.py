"""Order execution — turns buy / sell / close-all / reset requests into
position-book and ledger mutations.

Each request is validated up front and then applied as one step: margin
reservation and position mutation either both happen or neither does.

Margin model::

    required_margin = quantity * reference_price / leverage

``reference_price`` is the market price for MARKET orders and the limit
price for LIMIT orders; it also becomes the position's entry price, so
the margin released on close always matches the margin reserved.

Realized P&L of a closed lot uses the lot's *own* recorded leverage::

    pnl = direction * (fill_price - entry_price) * closed_qty * leverage
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import NoReturn

from uuid_extensions import uuid7

from src.core.constants import (
    CLOSE_REASON_CLOSE_ALL,
    CLOSE_REASON_MARKET_SELL,
    CLOSE_REASON_SEED,
    MAX_LEVERAGE,
    MIN_LEVERAGE,
    SEED_AGE_SECONDS,
    SEED_ENTRY_PRICE,
    SEED_LEVERAGE,
    SEED_POSITION_ID,
    SEED_QUANTITY,
    SEED_STOP_LOSS,
    SEED_SYMBOL,
    SEED_TAKE_PROFIT,
    SEED_TRADE_ID,
)
from src.core.exceptions import (
    InsufficientBalanceError,
    InsufficientPositionError,
    InvalidOrderError,
    InvalidQuantityError,
    TradeSimError,
)
from src.core.logging import get_logger
from src.core.types import ClosedLot, OrderRequest, OrderType, Position, Side, Trade
from src.simulator.account_ledger import AccountLedger
from src.simulator.pnl_calculator import PnLCalculator
from src.simulator.position_book import PositionBook
from src.simulator.trade_ledger import TradeLedger

log = get_logger(__name__)


# ── Seed State ──────────────────────────────────────────────────


def build_seed_position(now: datetime) -> Position:
    """The example LONG BTC position every fresh account starts with."""
    return Position(
        position_id=SEED_POSITION_ID,
        symbol=SEED_SYMBOL,
        side=Side.LONG,
        quantity=SEED_QUANTITY,
        entry_price=SEED_ENTRY_PRICE,
        leverage=SEED_LEVERAGE,
        opened_at=now - timedelta(seconds=SEED_AGE_SECONDS),
        stop_loss=SEED_STOP_LOSS,
        take_profit=SEED_TAKE_PROFIT,
    )


def build_seed_trade(now: datetime) -> Trade:
    """The entry record shown for the seed position."""
    return Trade(
        trade_id=SEED_TRADE_ID,
        symbol=SEED_SYMBOL,
        side=Side.LONG,
        quantity=SEED_QUANTITY,
        price=SEED_ENTRY_PRICE,
        realized_pnl=0.0,
        closed_at=now - timedelta(seconds=SEED_AGE_SECONDS),
        close_reason=CLOSE_REASON_SEED,
    )


# ── Order Executor ──────────────────────────────────────────────


class OrderExecutor:
    """Orchestrates one request at a time across ledger, book and trades.

    Args:
        ledger: Cash balance and realized P&L.
        book: Open positions.
        trades: Closed-trade history.
        max_leverage: Upper bound accepted for new orders.
        clock: Source of UTC timestamps (injectable for tests).
    """

    def __init__(
        self,
        ledger: AccountLedger,
        book: PositionBook,
        trades: TradeLedger,
        *,
        max_leverage: float = MAX_LEVERAGE,
        clock: Callable[[], datetime] | None = None,
        pnl_calculator: PnLCalculator | None = None,
    ) -> None:
        self._ledger = ledger
        self._book = book
        self._trades = trades
        self._max_leverage = max_leverage
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._pnl = pnl_calculator or PnLCalculator()

    # ── Buy ─────────────────────────────────────────────────────

    def buy(self, order: OrderRequest, market_price: float) -> Position:
        """Reserve margin and open a new position.

        Args:
            order: What to open.
            market_price: Current price of ``order.symbol``; the fill
                price for market orders.

        Returns:
            A copy of the newly opened ``Position``.

        Raises:
            InvalidQuantityError: If ``order.quantity`` is not positive.
            InvalidOrderError: If leverage or the reference price is
                out of range.
            InsufficientBalanceError: If the margin exceeds the balance.
        """
        self._validate_quantity(order.quantity, order.symbol)
        if not MIN_LEVERAGE <= order.leverage <= self._max_leverage:
            self._reject(
                InvalidOrderError,
                f"leverage must be between {MIN_LEVERAGE} and {self._max_leverage}, "
                f"got {order.leverage}",
                symbol=order.symbol,
                leverage=order.leverage,
            )

        reference_price = self._reference_price(order, market_price)
        required_margin = order.quantity * reference_price / order.leverage

        try:
            self._ledger.reserve_margin(required_margin)
        except InsufficientBalanceError:
            log.warning(
                "order_rejected",
                reason="insufficient_balance",
                symbol=order.symbol,
                quantity=order.quantity,
                required_margin=round(required_margin, 4),
                balance=round(self._ledger.balance, 4),
            )
            raise

        try:
            position = self._book.open(
                symbol=order.symbol,
                side=order.side,
                quantity=order.quantity,
                entry_price=reference_price,
                leverage=order.leverage,
                stop_loss=order.stop_loss,
                take_profit=order.take_profit,
            )
        except (InvalidQuantityError, ValueError):
            # Roll back the reservation.
            self._ledger.release_margin(required_margin, 0.0)
            raise

        log.info(
            "buy_executed",
            position_id=position.position_id,
            symbol=order.symbol,
            side=order.side.value,
            order_type=order.order_type.value,
            quantity=order.quantity,
            entry_price=reference_price,
            leverage=order.leverage,
            required_margin=round(required_margin, 4),
        )
        return position

    # ── Sell ────────────────────────────────────────────────────

    def sell(
        self,
        symbol: str,
        side: Side,
        quantity: float,
        current_price: float,
    ) -> list[Trade]:
        """Reduce *(symbol, side)* exposure FIFO at *current_price*.

        Returns:
            One ``Trade`` per closed lot, in execution order.

        Raises:
            InvalidQuantityError: If *quantity* is not positive.
            InvalidOrderError: If *current_price* is not positive.
            InsufficientPositionError: If *quantity* exceeds the open size.
        """
        self._validate_quantity(quantity, symbol)
        self._validate_price(current_price, symbol)

        available = self._book.open_quantity(symbol, side)
        try:
            lots = self._book.close_quantity(symbol, side, quantity, current_price)
        except InsufficientPositionError:
            log.warning(
                "order_rejected",
                reason="insufficient_position",
                symbol=symbol,
                side=side.value,
                quantity=quantity,
                available=available,
            )
            raise

        trades = self._settle(lots, CLOSE_REASON_MARKET_SELL)

        log.info(
            "sell_executed",
            symbol=symbol,
            side=side.value,
            quantity=quantity,
            fill_price=current_price,
            n_trades=len(trades),
            realized_pnl=round(sum(t.realized_pnl for t in trades), 4),
        )
        return trades

    # ── Close All ───────────────────────────────────────────────

    def close_all(self, price_of: Callable[[Position], float]) -> list[Trade]:
        """Close every open position at the price *price_of* gives it.

        A no-op returning ``[]`` when the book is empty.
        """
        if len(self._book) == 0:
            log.debug("close_all_skipped_empty_book")
            return []

        for position in self._book:
            self._validate_price(price_of(position), position.symbol)

        lots = self._book.close_all(price_of)
        trades = self._settle(lots, CLOSE_REASON_CLOSE_ALL)

        log.info(
            "close_all_executed",
            n_trades=len(trades),
            realized_pnl=round(sum(t.realized_pnl for t in trades), 4),
        )
        return trades

    # ── Reset ───────────────────────────────────────────────────

    def reset(self) -> None:
        """Restore ledger, book and trade history to the seeded state."""
        now = self._clock()
        self._ledger.reset()
        self._book.load([build_seed_position(now)])
        self._trades.reset([build_seed_trade(now)])
        log.info("account_reset", balance=self._ledger.balance)

    # ── Internal ────────────────────────────────────────────────

    def _settle(self, lots: list[ClosedLot], close_reason: str) -> list[Trade]:
        """Release margin and book P&L for each closed lot."""
        closed_at = self._clock()
        trades: list[Trade] = []
        for lot in lots:
            position = lot.position
            pnl = self._pnl.position_pnl(
                position.side,
                position.entry_price,
                lot.fill_price,
                lot.closed_quantity,
                position.leverage,
            )
            self._ledger.release_margin(lot.released_margin, pnl)
            trades.append(
                Trade(
                    trade_id=str(uuid7()),
                    symbol=position.symbol,
                    side=position.side,
                    quantity=lot.closed_quantity,
                    price=lot.fill_price,
                    realized_pnl=pnl,
                    closed_at=closed_at,
                    close_reason=close_reason,
                ),
            )
        self._trades.record(trades)
        return trades

    def _reference_price(self, order: OrderRequest, market_price: float) -> float:
        if order.order_type == OrderType.LIMIT:
            if order.limit_price is None:
                self._reject(
                    InvalidOrderError,
                    "limit order requires a limit_price",
                    symbol=order.symbol,
                )
            price = float(order.limit_price)  # type: ignore[arg-type]
        else:
            price = market_price
        self._validate_price(price, order.symbol)
        return price

    def _validate_quantity(self, quantity: float, symbol: str) -> None:
        if not (math.isfinite(quantity) and quantity > 0):
            self._reject(
                InvalidQuantityError,
                f"quantity must be positive, got {quantity}",
                symbol=symbol,
                quantity=quantity,
            )

    def _validate_price(self, price: float, symbol: str) -> None:
        if not (math.isfinite(price) and price > 0):
            self._reject(
                InvalidOrderError,
                f"price must be positive, got {price}",
                symbol=symbol,
                price=price,
            )

    @staticmethod
    def _reject(error: type[TradeSimError], message: str, **context: object) -> NoReturn:
        log.warning("order_rejected", reason=message, **context)
        raise error(message, context=context)
