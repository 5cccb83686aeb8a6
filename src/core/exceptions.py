"""Custom exception hierarchy for TradeSim."""

from __future__ import annotations

from typing import Any


class TradeSimError(Exception):
    """Base exception for all TradeSim errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = context or {}


# ── Order Validation ─────────────────────────────────────────────

class InvalidQuantityError(TradeSimError):
    """Order quantity is zero or negative."""


class InvalidOrderError(TradeSimError):
    """Order parameters are unusable (leverage out of range, non-positive price)."""


# ── Accounting ───────────────────────────────────────────────────

class InsufficientBalanceError(TradeSimError):
    """Required margin exceeds the available cash balance."""


class InsufficientPositionError(TradeSimError):
    """Requested close quantity exceeds the open exposure."""
