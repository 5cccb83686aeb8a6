"""System-wide shared types — the single source of truth for all data structures."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from src.core.constants import DEFAULT_LEVERAGE


# ── Enums ────────────────────────────────────────────────────────

class Side(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def direction(self) -> int:
        """+1 for LONG, -1 for SHORT."""
        return 1 if self is Side.LONG else -1


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


# ── Positions & Trades ───────────────────────────────────────────

@dataclass
class Position:
    """An open leveraged exposure.

    Only :class:`~src.simulator.position_book.PositionBook` mutates
    ``quantity``; every other reader works on copies.
    """

    position_id: str
    symbol: str
    side: Side
    quantity: float
    entry_price: float
    leverage: float
    opened_at: datetime
    stop_loss: float | None = None
    take_profit: float | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            msg = f"Position quantity must be positive, got {self.quantity}"
            raise ValueError(msg)
        if self.entry_price <= 0:
            msg = f"Position entry_price must be positive, got {self.entry_price}"
            raise ValueError(msg)
        if self.leverage < 1:
            msg = f"Position leverage must be >= 1, got {self.leverage}"
            raise ValueError(msg)

    @property
    def margin(self) -> float:
        """Capital reserved against this position."""
        return self.quantity * self.entry_price / self.leverage

    @property
    def notional(self) -> float:
        return self.quantity * self.entry_price * self.leverage

    def copy(self) -> Position:
        return replace(self)


@dataclass(frozen=True)
class Trade:
    """Immutable record of a single closed lot."""

    trade_id: str
    symbol: str
    side: Side
    quantity: float
    price: float          # fill price
    realized_pnl: float
    closed_at: datetime
    close_reason: str

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            msg = f"Trade quantity must be positive, got {self.quantity}"
            raise ValueError(msg)
        if self.price <= 0:
            msg = f"Trade price must be positive, got {self.price}"
            raise ValueError(msg)
        if not self.trade_id:
            msg = "Trade trade_id must not be empty"
            raise ValueError(msg)


@dataclass(frozen=True)
class ClosedLot:
    """One position (or slice of it) consumed by a close.

    ``position`` is a copy taken *before* the reduction, so its
    ``quantity`` is the size the lot had when it was picked.
    """

    position: Position
    closed_quantity: float
    fill_price: float

    @property
    def released_margin(self) -> float:
        return self.closed_quantity * self.position.entry_price / self.position.leverage


# ── Orders ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class OrderRequest:
    """Request to open a new position.

    ``limit_price`` is required for ``OrderType.LIMIT`` and ignored for
    market orders, which fill at the current mark.
    """

    symbol: str
    quantity: float
    side: Side = Side.LONG
    leverage: float = DEFAULT_LEVERAGE
    order_type: OrderType = OrderType.MARKET
    limit_price: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None


# ── Market Data ──────────────────────────────────────────────────

@dataclass(frozen=True)
class MarketTick:
    """Latest price observation from the market feed."""

    symbol: str
    price: float
    at: datetime


@dataclass(frozen=True)
class PricePoint:
    """One point of the rolling chart history."""

    at: datetime
    price: float


# ── Account ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class AccountSnapshot:
    """Read-only view of the account handed to the presentation layer."""

    balance: float
    equity: float
    unrealized_pnl: float
    realized_pnl: float
    reserved_margin: float
    positions: tuple[Position, ...] = ()
    trades: tuple[Trade, ...] = ()
    marks: dict[str, float] = field(default_factory=dict)

    @property
    def open_position_count(self) -> int:
        return len(self.positions)
