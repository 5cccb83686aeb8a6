"""Profit-and-loss calculation for leveraged positions.

Unrealized P&L per position::

    pnl = direction * (price - entry_price) / entry_price * notional
        = direction * (price - entry_price) * quantity * leverage

The reduced form is used everywhere.  Nothing here mutates state, so the
figures can be recomputed on every price tick without drift.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from src.core.logging import get_logger
from src.core.types import Position, Side

log = get_logger(__name__)

PriceLookup = Callable[[Position], float]


class PnLCalculator:
    """Stateless calculator for realized / unrealized P&L, equity and margin."""

    # ── Per Position ────────────────────────────────────────────

    @staticmethod
    def position_pnl(
        side: Side,
        entry_price: float,
        price: float,
        quantity: float,
        leverage: float,
    ) -> float:
        """Mark-to-market P&L of *quantity* units opened at *entry_price*.

        Used for unrealized P&L and, with the closed quantity and fill
        price, for the realized P&L of a closed lot.
        """
        return side.direction * (price - entry_price) * quantity * leverage

    @staticmethod
    def pnl_percent(position: Position, price: float) -> float:
        """Return on reserved margin, in percent."""
        margin = position.margin
        if margin <= 0:
            return 0.0
        pnl = PnLCalculator.position_pnl(
            position.side, position.entry_price, price, position.quantity, position.leverage,
        )
        return pnl / margin * 100.0

    # ── Aggregates ──────────────────────────────────────────────

    @staticmethod
    def unrealized_pnl(positions: Iterable[Position], price_of: PriceLookup) -> float:
        """Sum of unrealized P&L across *positions*.

        Args:
            positions: Open positions, any symbol and side.
            price_of: Returns the current price for a position.
        """
        total = 0.0
        n_positions = 0
        for position in positions:
            total += PnLCalculator.position_pnl(
                position.side,
                position.entry_price,
                price_of(position),
                position.quantity,
                position.leverage,
            )
            n_positions += 1

        log.debug(
            "unrealized_pnl_calculated",
            n_positions=n_positions,
            total_unrealized=round(total, 4),
        )
        return total

    @staticmethod
    def reserved_margin(positions: Iterable[Position]) -> float:
        return sum(position.margin for position in positions)

    @staticmethod
    def equity(balance: float, unrealized_pnl: float) -> float:
        return balance + unrealized_pnl
