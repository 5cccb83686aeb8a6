"""Trading account — the single owned aggregate behind the dashboard.

Bundles :class:`AccountLedger`, :class:`PositionBook` and
:class:`TradeLedger` with the latest price per symbol ("marks") and
exposes the operations the presentation layer is allowed to call.

Typical lifecycle::

    account = TradingAccount()
    account.on_price_tick(42_350.75, symbol="BTC")
    account.buy("BTC", 0.1, leverage=10)
    account.sell("BTC", Side.LONG, 0.05)

    snap = account.snapshot()
    assert snap.equity == snap.balance + snap.unrealized_pnl

Derived figures (unrealized P&L, equity, reserved margin) are never
stored; :meth:`snapshot` recomputes them from the owned state, so a
price tick can never leave them stale.  All writes go through one
re-entrant lock, which keeps a single writer even when the market feed
runs on its own thread.
"""

from __future__ import annotations

import math
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from config.settings import Settings
from src.core.constants import DEFAULT_BALANCE, DEFAULT_SYMBOL, INITIAL_PRICE, MAX_LEVERAGE
from src.core.exceptions import InvalidOrderError
from src.core.logging import get_logger
from src.core.types import (
    AccountSnapshot,
    OrderRequest,
    OrderType,
    Position,
    Side,
    Trade,
)
from src.simulator.account_ledger import AccountLedger
from src.simulator.order_engine import OrderExecutor
from src.simulator.pnl_calculator import PnLCalculator
from src.simulator.position_book import PositionBook
from src.simulator.trade_ledger import TradeLedger

log = get_logger(__name__)

SnapshotObserver = Callable[[AccountSnapshot], None]


class TradingAccount:
    """Owned aggregate of funds, positions and trade history.

    A fresh account starts in the seeded state (one example LONG BTC
    position, one seed trade, default balance); :meth:`reset` returns
    to it.

    Args:
        initial_balance: Starting (and reset) cash balance.
        max_leverage: Highest leverage accepted for new orders.
        initial_marks: Starting price per symbol.
        clock: Source of UTC timestamps (injectable for tests).
    """

    def __init__(
        self,
        initial_balance: float = DEFAULT_BALANCE,
        *,
        max_leverage: float = MAX_LEVERAGE,
        initial_marks: dict[str, float] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()
        self._observers: list[SnapshotObserver] = []

        self._ledger = AccountLedger(initial_balance)
        self._book = PositionBook(clock=self._clock)
        self._trades = TradeLedger()
        self._pnl = PnLCalculator()
        self._executor = OrderExecutor(
            self._ledger,
            self._book,
            self._trades,
            max_leverage=max_leverage,
            clock=self._clock,
            pnl_calculator=self._pnl,
        )

        self._marks: dict[str, float] = dict(
            initial_marks if initial_marks is not None else {DEFAULT_SYMBOL: INITIAL_PRICE},
        )

        self._executor.reset()
        log.info(
            "trading_account_created",
            initial_balance=initial_balance,
            max_leverage=max_leverage,
            marks=self._marks,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> TradingAccount:
        """Build an account from application settings."""
        return cls(
            settings.initial_balance,
            max_leverage=settings.max_leverage,
            initial_marks={settings.default_symbol: settings.initial_price},
        )

    # ── Observers ───────────────────────────────────────────────

    def subscribe(self, observer: SnapshotObserver) -> Callable[[], None]:
        """Call *observer* with a fresh snapshot after every change.

        Returns:
            A callable that removes the subscription.
        """
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    # ── Orders ──────────────────────────────────────────────────

    def open(self, order: OrderRequest) -> Position:
        """Open a position; market orders fill at the symbol's mark.

        Raises:
            InvalidQuantityError: Non-positive quantity.
            InvalidOrderError: Bad leverage / price, or no mark for a
                market order.
            InsufficientBalanceError: Margin exceeds the balance.
        """
        with self._lock:
            market_price = self._marks.get(order.symbol)
            if market_price is None:
                if order.order_type == OrderType.MARKET:
                    raise InvalidOrderError(
                        f"No market price for {order.symbol}",
                        context={"symbol": order.symbol},
                    )
                market_price = float(order.limit_price or 0.0)
            position = self._executor.buy(order, market_price)
        self._notify()
        return position

    def buy(
        self,
        symbol: str,
        quantity: float,
        *,
        leverage: float,
        side: Side = Side.LONG,
        limit_price: float | None = None,
        stop_loss: float | None = None,
        take_profit: float | None = None,
    ) -> Position:
        """Shorthand for :meth:`open`; a *limit_price* makes it a limit order."""
        order = OrderRequest(
            symbol=symbol,
            quantity=quantity,
            side=side,
            leverage=leverage,
            order_type=OrderType.LIMIT if limit_price is not None else OrderType.MARKET,
            limit_price=limit_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        return self.open(order)

    def sell(
        self,
        symbol: str,
        side: Side,
        quantity: float,
        current_price: float | None = None,
    ) -> list[Trade]:
        """Reduce exposure FIFO, at *current_price* or the symbol's mark.

        Raises:
            InvalidQuantityError: Non-positive quantity.
            InvalidOrderError: No usable price.
            InsufficientPositionError: Quantity exceeds the open size.
        """
        with self._lock:
            price = current_price if current_price is not None else self._marks.get(symbol)
            if price is None:
                raise InvalidOrderError(
                    f"No market price for {symbol}",
                    context={"symbol": symbol},
                )
            trades = self._executor.sell(symbol, side, quantity, price)
        self._notify()
        return trades

    def close_all(self, current_price: float | None = None) -> list[Trade]:
        """Close every open position.

        With *current_price* every position fills at that price;
        otherwise each fills at its own symbol's mark.
        """
        with self._lock:
            if current_price is not None:
                trades = self._executor.close_all(lambda _position: current_price)
            else:
                trades = self._executor.close_all(self._price_of)
        if trades:
            self._notify()
        return trades

    def reset(self) -> None:
        """Restore the seeded funds, positions and trades.

        Marks are market data, not account state, and keep their latest
        values.  Explicit user action only.
        """
        with self._lock:
            self._executor.reset()
        self._notify()

    # ── Market Data ─────────────────────────────────────────────

    def on_price_tick(self, price: float, symbol: str = DEFAULT_SYMBOL) -> None:
        """Record the latest *price* for *symbol* and notify observers.

        Non-positive or non-finite prices are ignored with a warning.
        """
        if not (math.isfinite(price) and price > 0):
            log.warning("price_tick_ignored", symbol=symbol, price=price)
            return
        with self._lock:
            self._marks[symbol] = price
        self._notify()

    def mark(self, symbol: str) -> float | None:
        with self._lock:
            return self._marks.get(symbol)

    # ── Snapshots ───────────────────────────────────────────────

    def snapshot(self) -> AccountSnapshot:
        """Recompute derived figures from owned state. No side effects."""
        with self._lock:
            positions = tuple(self._book.positions())
            unrealized = self._pnl.unrealized_pnl(positions, self._price_of)
            balance = self._ledger.balance
            return AccountSnapshot(
                balance=balance,
                equity=self._pnl.equity(balance, unrealized),
                unrealized_pnl=unrealized,
                realized_pnl=self._ledger.realized_pnl,
                reserved_margin=self._pnl.reserved_margin(positions),
                positions=positions,
                trades=tuple(self._trades.trades()),
                marks=dict(self._marks),
            )

    # ── Internal ────────────────────────────────────────────────

    def _price_of(self, position: Position) -> float:
        """Mark for the position's symbol, or its entry price when unpriced."""
        return self._marks.get(position.symbol, position.entry_price)

    def _notify(self) -> None:
        with self._lock:
            observers = list(self._observers)
        if not observers:
            return
        snap = self.snapshot()
        for observer in observers:
            try:
                observer(snap)
            except Exception:
                log.exception("snapshot_observer_failed", observer=repr(observer))
