"""Account ledger — cash balance and cumulative realized P&L.

The balance is cash *not* currently reserved as margin.  Opening a
position moves margin out of the balance; closing it moves the margin
back together with the realized gain or loss.
"""

from __future__ import annotations

import math

from src.core.constants import DEFAULT_BALANCE
from src.core.exceptions import InsufficientBalanceError
from src.core.logging import get_logger

log = get_logger(__name__)


class AccountLedger:
    """Arithmetic source of truth for funds."""

    def __init__(self, initial_balance: float = DEFAULT_BALANCE) -> None:
        if initial_balance < 0:
            msg = f"initial_balance must be non-negative, got {initial_balance}"
            raise ValueError(msg)
        self._initial_balance = initial_balance
        self._balance = initial_balance
        self._realized_pnl = 0.0

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def realized_pnl(self) -> float:
        return self._realized_pnl

    @property
    def initial_balance(self) -> float:
        return self._initial_balance

    def reserve_margin(self, amount: float) -> None:
        """Debit *amount* from the balance.

        Raises:
            InsufficientBalanceError: If *amount* exceeds the balance.
                The balance is left untouched.
            ValueError: If *amount* is negative or not finite.
        """
        if not (math.isfinite(amount) and amount >= 0):
            msg = f"margin amount must be a non-negative finite number, got {amount}"
            raise ValueError(msg)
        if amount > self._balance:
            raise InsufficientBalanceError(
                f"Need {amount:.2f} margin but only {self._balance:.2f} available",
                context={"required_margin": amount, "balance": self._balance},
            )
        self._balance -= amount
        log.info(
            "margin_reserved",
            amount=round(amount, 4),
            balance=round(self._balance, 4),
        )

    def release_margin(self, amount: float, pnl: float) -> None:
        """Credit returned margin plus realized *pnl*; book *pnl* as realized."""
        if not (math.isfinite(amount) and amount >= 0):
            msg = f"margin amount must be a non-negative finite number, got {amount}"
            raise ValueError(msg)
        if not math.isfinite(pnl):
            msg = f"realized pnl must be finite, got {pnl}"
            raise ValueError(msg)
        self._balance += amount + pnl
        self._realized_pnl += pnl
        log.info(
            "margin_released",
            amount=round(amount, 4),
            pnl=round(pnl, 4),
            balance=round(self._balance, 4),
            realized_pnl=round(self._realized_pnl, 4),
        )

    def reset(self) -> None:
        self._balance = self._initial_balance
        self._realized_pnl = 0.0
        log.info("account_ledger_reset", balance=self._balance)
