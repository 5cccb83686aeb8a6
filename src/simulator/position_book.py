"""Position book — ordered set of open positions across all symbols.

Insertion order is significant: reductions consume matching positions
oldest-first (FIFO).  A position that reaches zero quantity is dropped
from the book, never kept as an empty row.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime, timezone

from uuid_extensions import uuid7

from src.core.constants import QUANTITY_EPSILON
from src.core.exceptions import InsufficientPositionError, InvalidQuantityError
from src.core.logging import get_logger
from src.core.types import ClosedLot, Position, Side

log = get_logger(__name__)


class PositionBook:
    """Owns every open position and applies open / close mutations.

    Margin sufficiency is *not* checked here; that is the order
    executor's job.  The book only guarantees that a close either
    happens in full or not at all.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._positions: list[Position] = []
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ── Read Access ─────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[Position]:
        return iter(self._positions)

    def positions(self) -> list[Position]:
        """Return copies of the open positions in insertion order."""
        return [position.copy() for position in self._positions]

    def open_quantity(self, symbol: str, side: Side) -> float:
        """Aggregate open quantity for *(symbol, side)*."""
        return sum(
            p.quantity for p in self._positions if p.symbol == symbol and p.side == side
        )

    # ── Mutations ───────────────────────────────────────────────

    def open(
        self,
        *,
        symbol: str,
        side: Side,
        quantity: float,
        entry_price: float,
        leverage: float,
        stop_loss: float | None = None,
        take_profit: float | None = None,
    ) -> Position:
        """Append a new position to the end of the book.

        Raises:
            InvalidQuantityError: If *quantity* is not a positive finite number.
        """
        if not (math.isfinite(quantity) and quantity > 0):
            raise InvalidQuantityError(
                f"open quantity must be positive, got {quantity}",
                context={"symbol": symbol, "quantity": quantity},
            )

        position = Position(
            position_id=str(uuid7()),
            symbol=symbol,
            side=side,
            quantity=quantity,
            entry_price=entry_price,
            leverage=leverage,
            opened_at=self._clock(),
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        self._positions.append(position)

        log.info(
            "position_opened",
            position_id=position.position_id,
            symbol=symbol,
            side=side.value,
            quantity=quantity,
            entry_price=entry_price,
            leverage=leverage,
        )
        return position.copy()

    def close_quantity(
        self,
        symbol: str,
        side: Side,
        quantity: float,
        fill_price: float,
    ) -> list[ClosedLot]:
        """Close *quantity* units of *(symbol, side)* exposure, oldest first.

        Each lot is either removed outright (its quantity fits in what is
        left to close) or reduced in place, which ends the walk.

        Returns:
            The lots actually closed, in FIFO order.  Their
            ``closed_quantity`` values sum to *quantity*.

        Raises:
            InvalidQuantityError: If *quantity* is not a positive finite number.
            InsufficientPositionError: If the open size is smaller than
                *quantity*.  Nothing is closed in that case.
        """
        if not (math.isfinite(quantity) and quantity > 0):
            raise InvalidQuantityError(
                f"close quantity must be positive, got {quantity}",
                context={"symbol": symbol, "quantity": quantity},
            )

        available = self.open_quantity(symbol, side)
        if quantity > available + QUANTITY_EPSILON:
            raise InsufficientPositionError(
                f"Cannot close {quantity} {symbol} {side.value}; only {available} open",
                context={
                    "symbol": symbol,
                    "side": side.value,
                    "requested": quantity,
                    "available": available,
                },
            )

        remaining = quantity
        closed: list[ClosedLot] = []
        kept: list[Position] = []

        for position in self._positions:
            if remaining <= 0 or position.symbol != symbol or position.side != side:
                kept.append(position)
                continue

            if position.quantity <= remaining + QUANTITY_EPSILON:
                closed.append(ClosedLot(position.copy(), position.quantity, fill_price))
                remaining -= position.quantity
                if remaining < QUANTITY_EPSILON:
                    remaining = 0.0
            else:
                closed.append(ClosedLot(position.copy(), remaining, fill_price))
                position.quantity -= remaining
                remaining = 0.0
                kept.append(position)

        self._positions = kept

        log.info(
            "positions_closed",
            symbol=symbol,
            side=side.value,
            quantity=quantity,
            fill_price=fill_price,
            n_lots=len(closed),
            remaining_open=self.open_quantity(symbol, side),
        )
        return closed

    def close_all(self, price_of: Callable[[Position], float]) -> list[ClosedLot]:
        """Close every open position, any symbol and side, in insertion order."""
        closed = [
            ClosedLot(position.copy(), position.quantity, price_of(position))
            for position in self._positions
        ]
        self._positions = []
        if closed:
            log.info("all_positions_closed", n_lots=len(closed))
        return closed

    def load(self, positions: Iterable[Position]) -> None:
        """Replace the book's contents (seeding and reset)."""
        self._positions = [position.copy() for position in positions]

    def clear(self) -> None:
        self._positions = []
