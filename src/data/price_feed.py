"""Synthetic market feed — random-walk prices with a bounded rolling history.

The feed seeds a chart history of ``history_length`` points spaced one
minute apart and ending now, then moves the price by a uniform
``±step/2`` on every tick.  The oldest point drops out as each new one
arrives, so the history length never changes.
"""

from __future__ import annotations

import asyncio
import math
import random
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

from src.core.constants import (
    DEFAULT_SYMBOL,
    HISTORY_SPACING_SECONDS,
    HISTORY_STEP,
    INITIAL_PRICE,
    MIN_PRICE,
    PRICE_HISTORY_LENGTH,
    PRICE_STEP,
    TICK_INTERVAL_SECONDS,
)
from src.core.logging import get_logger
from src.core.types import MarketTick, PricePoint

log = get_logger(__name__)

TickCallback = Callable[[MarketTick], Awaitable[None] | None]


class SyntheticPriceFeed:
    """Random-walk price generator for one symbol.

    Args:
        symbol: Symbol the ticks are stamped with.
        initial_price: Starting point of the seeded walk.
        history_length: Number of points kept for charting.
        step: Width of the per-tick uniform move.
        history_step: Width of the per-minute move in the seeded history.
        seed: RNG seed for reproducible runs.
        clock: Source of UTC timestamps.
    """

    def __init__(
        self,
        symbol: str = DEFAULT_SYMBOL,
        initial_price: float = INITIAL_PRICE,
        *,
        history_length: int = PRICE_HISTORY_LENGTH,
        step: float = PRICE_STEP,
        history_step: float = HISTORY_STEP,
        seed: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if initial_price <= 0:
            msg = f"initial_price must be positive, got {initial_price}"
            raise ValueError(msg)
        if history_length < 1:
            msg = f"history_length must be at least 1, got {history_length}"
            raise ValueError(msg)

        self.symbol = symbol
        self._step = step
        self._rng = random.Random(seed)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._history: deque[PricePoint] = deque(maxlen=history_length)
        self._stop = asyncio.Event()
        self._seed_history(initial_price, history_length, history_step)

    # ── Read Access ─────────────────────────────────────────────

    @property
    def latest_price(self) -> float:
        return self._history[-1].price

    def history(self) -> list[PricePoint]:
        """Return the rolling history, oldest first."""
        return list(self._history)

    def change_percent(self) -> float:
        """Percent move from the oldest to the newest point in the window."""
        first = self._history[0].price
        return (self.latest_price - first) / first * 100.0

    # ── Ticking ─────────────────────────────────────────────────

    def tick(self) -> MarketTick:
        """Advance the walk by one step and return the new tick."""
        move = self._rng.uniform(-self._step / 2, self._step / 2)
        price = self._round(self.latest_price + move)
        now = self._clock()
        self._history.append(PricePoint(at=now, price=price))

        log.debug("price_tick", symbol=self.symbol, price=price, move=round(move, 4))
        return MarketTick(symbol=self.symbol, price=price, at=now)

    async def run(
        self,
        on_tick: TickCallback,
        interval_seconds: float = TICK_INTERVAL_SECONDS,
        max_ticks: int | None = None,
    ) -> int:
        """Emit a tick every *interval_seconds* until stopped.

        Args:
            on_tick: Sync or async callback receiving each tick.
            interval_seconds: Timer period.
            max_ticks: Stop after this many ticks (``None`` = until
                :meth:`stop`).

        A :meth:`stop` issued before the run starts is honoured and the
        run returns without emitting; call :meth:`restart` first to run a
        stopped feed again.

        Returns:
            Number of ticks emitted.
        """
        emitted = 0
        log.info(
            "price_feed_started",
            symbol=self.symbol,
            interval_seconds=interval_seconds,
            max_ticks=max_ticks,
        )
        while not self._stop.is_set():
            if max_ticks is not None and emitted >= max_ticks:
                break
            result = on_tick(self.tick())
            if asyncio.iscoroutine(result):
                await result
            emitted += 1
            if max_ticks is not None and emitted >= max_ticks:
                break
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass

        log.info("price_feed_stopped", symbol=self.symbol, ticks=emitted)
        return emitted

    def stop(self) -> None:
        self._stop.set()

    def restart(self) -> None:
        """Clear a previous :meth:`stop` so :meth:`run` can go again."""
        self._stop.clear()

    # ── Internal ────────────────────────────────────────────────

    def _seed_history(self, initial_price: float, length: int, history_step: float) -> None:
        now = self._clock()
        price = initial_price
        for i in range(length - 1, -1, -1):
            price = self._round(price + self._rng.uniform(-history_step / 2, history_step / 2))
            at = now - timedelta(seconds=i * HISTORY_SPACING_SECONDS)
            self._history.append(PricePoint(at=at, price=price))

    @staticmethod
    def _round(price: float) -> float:
        return max(round(price, 2), MIN_PRICE)


def ticks_due(
    last_tick_at: datetime,
    now: datetime,
    interval_seconds: float,
    max_ticks: int,
) -> tuple[int, datetime]:
    """Ticks that fell due between *last_tick_at* and *now*.

    Returns the tick count and the timestamp of the last tick applied.
    The fraction of an interval that has not elapsed yet is carried to
    the next call.  When more than *max_ticks* are due the backlog is
    dropped and the clock restarts at *now*.
    """
    elapsed = (now - last_tick_at).total_seconds()
    due = math.floor(elapsed / interval_seconds)
    if due <= 0:
        return 0, last_tick_at
    if due > max_ticks:
        return max_ticks, now
    return due, last_tick_at + timedelta(seconds=due * interval_seconds)
