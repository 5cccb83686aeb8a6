"""Append-only ledger of closed trades, most recent first."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from src.core.logging import get_logger
from src.core.types import Trade

log = get_logger(__name__)


class TradeLedger:
    """Reverse-chronological record of every closed lot.

    Trades are only ever prepended.  ``reset`` is the single path that
    discards history, and it is driven by the explicit account reset.
    """

    def __init__(self, seed: Iterable[Trade] = ()) -> None:
        self._trades: list[Trade] = list(seed)

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(self._trades)

    def record(self, trades: Iterable[Trade]) -> None:
        """Prepend *trades*, given in execution order.

        The last trade executed ends up first in the ledger.
        """
        batch = list(trades)
        for trade in batch:
            self._trades.insert(0, trade)
            log.info(
                "trade_recorded",
                trade_id=trade.trade_id,
                symbol=trade.symbol,
                side=trade.side.value,
                quantity=trade.quantity,
                price=trade.price,
                realized_pnl=round(trade.realized_pnl, 4),
                close_reason=trade.close_reason,
            )

    def trades(self) -> list[Trade]:
        """Return the ledger, newest first (defensive copy)."""
        return list(self._trades)

    def reset(self, seed: Iterable[Trade] = ()) -> None:
        self._trades = list(seed)
