"""TradeSim headless runner — drives the synthetic feed against a trading account.

Usage:
    python scripts/run_simulation.py
    python scripts/run_simulation.py --ticks 50 --interval 0.1 --seed 7
    python scripts/run_simulation.py --buy-every 5 --sell-every 12 --quantity 0.05

Every ``--buy-every`` ticks a LONG market order is placed; every
``--sell-every`` ticks half of the open LONG exposure is sold.  Rejected
orders are logged and the run continues.  At the end all positions are
closed and the final account summary is printed as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import get_settings
from src.core.exceptions import TradeSimError
from src.core.logging import get_logger, setup_logging
from src.core.types import AccountSnapshot, MarketTick, Side
from src.data.price_feed import SyntheticPriceFeed
from src.simulator.portfolio import TradingAccount

log = get_logger(__name__)


class SimulationRunner:
    """Feeds ticks into a :class:`TradingAccount` and places scripted orders."""

    def __init__(
        self,
        account: TradingAccount,
        feed: SyntheticPriceFeed,
        *,
        quantity: float,
        leverage: int,
        buy_every: int,
        sell_every: int,
    ) -> None:
        self._account = account
        self._feed = feed
        self._quantity = quantity
        self._leverage = leverage
        self._buy_every = buy_every
        self._sell_every = sell_every
        self._ticks = 0
        self._rejections = 0

    @property
    def rejections(self) -> int:
        return self._rejections

    def on_tick(self, tick: MarketTick) -> None:
        self._ticks += 1
        self._account.on_price_tick(tick.price, symbol=tick.symbol)

        try:
            if self._buy_every and self._ticks % self._buy_every == 0:
                self._account.buy(tick.symbol, self._quantity, leverage=self._leverage)
            if self._sell_every and self._ticks % self._sell_every == 0:
                open_qty = sum(
                    p.quantity
                    for p in self._account.snapshot().positions
                    if p.symbol == tick.symbol and p.side == Side.LONG
                )
                if open_qty > 0:
                    self._account.sell(tick.symbol, Side.LONG, open_qty / 2)
        except TradeSimError as exc:
            self._rejections += 1
            log.warning("scripted_order_rejected", tick=self._ticks, error=str(exc))

        snap = self._account.snapshot()
        log.info(
            "tick_processed",
            tick=self._ticks,
            price=tick.price,
            balance=round(snap.balance, 2),
            equity=round(snap.equity, 2),
            unrealized_pnl=round(snap.unrealized_pnl, 2),
            open_positions=snap.open_position_count,
        )

    async def run(self, interval_seconds: float, max_ticks: int) -> int:
        return await self._feed.run(self.on_tick, interval_seconds, max_ticks)

    def stop(self) -> None:
        self._feed.stop()


def _summary(snap: AccountSnapshot, ticks: int, rejections: int) -> dict[str, object]:
    return {
        "ticks": ticks,
        "rejections": rejections,
        "balance": round(snap.balance, 2),
        "equity": round(snap.equity, 2),
        "realized_pnl": round(snap.realized_pnl, 2),
        "open_positions": snap.open_position_count,
        "trades": len(snap.trades),
    }


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the TradeSim engine against a synthetic feed")
    parser.add_argument("--symbol", default=settings.default_symbol)
    parser.add_argument("--ticks", type=int, default=20, help="Number of price ticks")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.tick_interval_seconds,
        help="Seconds between ticks",
    )
    parser.add_argument("--seed", type=int, default=settings.feed_seed)
    parser.add_argument("--quantity", type=float, default=0.1)
    parser.add_argument("--leverage", type=int, default=settings.default_leverage)
    parser.add_argument("--buy-every", type=int, default=4)
    parser.add_argument("--sell-every", type=int, default=10)
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> dict[str, object]:
    args = _parse_args(argv)
    settings = get_settings()
    setup_logging(json_output=settings.log_json, level=settings.log_level)

    feed = SyntheticPriceFeed(
        args.symbol,
        settings.initial_price,
        history_length=settings.price_history_length,
        step=settings.price_step,
        history_step=settings.history_step,
        seed=args.seed,
    )
    account = TradingAccount(
        settings.initial_balance,
        max_leverage=settings.max_leverage,
        initial_marks={args.symbol: feed.latest_price},
    )
    runner = SimulationRunner(
        account,
        feed,
        quantity=args.quantity,
        leverage=args.leverage,
        buy_every=args.buy_every,
        sell_every=args.sell_every,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runner.stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    ticks = await runner.run(args.interval, args.ticks)
    account.close_all()

    summary = _summary(account.snapshot(), ticks, runner.rejections)
    log.info("simulation_finished", **summary)
    print(json.dumps(summary, indent=2))
    return summary


if __name__ == "__main__":
    asyncio.run(main())
