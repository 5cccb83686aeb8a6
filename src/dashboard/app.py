"""TradeSim Dashboard — Streamlit entry point.

Run with::

    streamlit run src/dashboard/app.py

The page owns no accounting state.  It keeps one
:class:`TradingAccount` and one synthetic feed per symbol in
``st.session_state``, advances the feeds by however many ticks are due
on each rerun, and renders ``account.snapshot()``.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import streamlit as st
import structlog
from streamlit_autorefresh import st_autorefresh

from config.settings import Settings, get_settings
from src.core.constants import REFERENCE_PRICES, SYMBOLS
from src.core.exceptions import TradeSimError
from src.core.logging import setup_logging
from src.core.types import AccountSnapshot, OrderRequest, OrderType, Side
from src.dashboard.components.charts import (
    create_price_chart,
    format_currency,
    format_percent,
    positions_table,
    trades_table,
)
from src.data.price_feed import SyntheticPriceFeed, ticks_due
from src.simulator.portfolio import TradingAccount

# ── Logging ─────────────────────────────────────────────────────
_settings = get_settings()
setup_logging(json_output=_settings.log_json, level=_settings.log_level)
log: structlog.stdlib.BoundLogger = structlog.get_logger("dashboard.app")

_STATE_ACCOUNT = "account"
_STATE_FEEDS = "feeds"
_STATE_LAST_TICK = "last_tick_at"


def _configure_page() -> None:
    """Set Streamlit page config — must be the first st call."""
    st.set_page_config(
        page_title="Crypto Trading Dashboard",
        page_icon="📈",
        layout="wide",
    )


def _build_feeds(settings: Settings) -> dict[str, SyntheticPriceFeed]:
    feeds: dict[str, SyntheticPriceFeed] = {}
    for symbol in SYMBOLS:
        if symbol == settings.default_symbol:
            initial = settings.initial_price
        else:
            initial = REFERENCE_PRICES.get(symbol, settings.initial_price)
        # Keep the swing proportional to the price level.
        scale = initial / settings.initial_price
        feeds[symbol] = SyntheticPriceFeed(
            symbol,
            initial,
            history_length=settings.price_history_length,
            step=settings.price_step * scale,
            history_step=settings.history_step * scale,
            seed=settings.feed_seed,
        )
    return feeds


def _init_state(settings: Settings) -> None:
    if _STATE_ACCOUNT in st.session_state:
        return
    feeds = _build_feeds(settings)
    st.session_state[_STATE_FEEDS] = feeds
    st.session_state[_STATE_ACCOUNT] = TradingAccount(
        settings.initial_balance,
        max_leverage=settings.max_leverage,
        initial_marks={symbol: feed.latest_price for symbol, feed in feeds.items()},
    )
    st.session_state[_STATE_LAST_TICK] = datetime.now(timezone.utc)
    log.info("dashboard_session_started", symbols=list(feeds))


def _advance_feeds(settings: Settings) -> None:
    """Apply every tick that fell due since the previous rerun."""
    account: TradingAccount = st.session_state[_STATE_ACCOUNT]
    feeds: dict[str, SyntheticPriceFeed] = st.session_state[_STATE_FEEDS]
    last_tick: datetime = st.session_state[_STATE_LAST_TICK]

    now = datetime.now(timezone.utc)
    due, next_tick_at = ticks_due(
        last_tick,
        now,
        settings.tick_interval_seconds,
        settings.price_history_length,
    )
    if due <= 0:
        return

    for _ in range(due):
        for symbol, feed in feeds.items():
            tick = feed.tick()
            account.on_price_tick(tick.price, symbol=symbol)
    st.session_state[_STATE_LAST_TICK] = next_tick_at
    log.debug("feeds_advanced", ticks=due)


# ── Sections ────────────────────────────────────────────────────


def _render_account(snap: AccountSnapshot) -> None:
    col1, col2, col3, col4, col5 = st.columns(5)
    col1.metric("Balance", format_currency(snap.balance))
    col2.metric("Equity", format_currency(snap.equity))
    col3.metric("Unrealized PnL", format_currency(snap.unrealized_pnl))
    col4.metric("Realized PnL", format_currency(snap.realized_pnl))
    col5.metric("Margin in Use", format_currency(snap.reserved_margin))


def _render_market(symbol: str) -> None:
    feed: SyntheticPriceFeed = st.session_state[_STATE_FEEDS][symbol]
    meta = SYMBOLS[symbol]
    st.subheader(f"{meta['icon']} {meta['name']} ({symbol})")
    st.metric(
        "Price",
        format_currency(feed.latest_price),
        delta=format_percent(feed.change_percent()),
    )
    st.plotly_chart(create_price_chart(feed.history(), symbol), use_container_width=True)


def _run_action(label: str, action: Callable[[], object]) -> None:
    """Run a button action and surface engine rejections to the user."""
    try:
        action()
    except TradeSimError as exc:
        log.info("dashboard_action_rejected", action=label, error=str(exc))
        st.error(str(exc))
    else:
        st.success(f"{label} executed")


def _render_order_form(symbol: str, settings: Settings) -> None:
    account: TradingAccount = st.session_state[_STATE_ACCOUNT]
    mark = account.mark(symbol) or 0.0

    st.subheader(f"Trade {symbol}")
    order_type = OrderType(
        st.radio("Order type", [t.value for t in OrderType], horizontal=True),
    )
    limit_price: float | None = None
    if order_type == OrderType.LIMIT:
        limit_price = st.number_input("Limit price", min_value=0.0, value=mark, format="%.2f")
    quantity = st.number_input(f"Quantity ({symbol})", min_value=0.0, value=0.1, format="%.4f")
    leverage = st.slider("Leverage", 1, settings.max_leverage, settings.default_leverage)
    stop_loss = st.number_input("Stop loss", min_value=0.0, value=0.0, format="%.2f")
    take_profit = st.number_input("Take profit", min_value=0.0, value=0.0, format="%.2f")

    if quantity > 0:
        reference = limit_price if limit_price is not None else mark
        st.caption(f"Required margin: {format_currency(quantity * reference / leverage)}")

    order = OrderRequest(
        symbol=symbol,
        quantity=quantity,
        side=Side.LONG,
        leverage=leverage,
        order_type=order_type,
        limit_price=limit_price,
        stop_loss=stop_loss or None,
        take_profit=take_profit or None,
    )

    buy_col, sell_col, close_col = st.columns(3)
    if buy_col.button("Buy / Long", use_container_width=True):
        _run_action("Buy", lambda: account.open(order))
    if sell_col.button("Sell / Close", use_container_width=True):
        _run_action("Sell", lambda: account.sell(symbol, Side.LONG, quantity))
    if close_col.button("Close All", use_container_width=True):
        _run_action("Close all", account.close_all)


def _render_positions(snap: AccountSnapshot) -> None:
    st.subheader("Open Positions")
    if not snap.positions:
        st.caption("No open positions")
        return
    st.dataframe(positions_table(snap.positions, snap.marks), hide_index=True)


def _render_trades(snap: AccountSnapshot) -> None:
    header, reset_col = st.columns([4, 1])
    header.subheader("Recent Trades")
    if reset_col.button("Reset Account"):
        st.session_state[_STATE_ACCOUNT].reset()
        st.rerun()
    st.dataframe(trades_table(snap.trades), hide_index=True)


def main() -> None:
    """Application entry point."""
    settings = get_settings()
    _configure_page()
    st_autorefresh(
        interval=int(settings.tick_interval_seconds * 1000),
        limit=None,
        key="tradesim_autorefresh",
    )
    _init_state(settings)
    _advance_feeds(settings)

    st.title("Crypto Trading Dashboard")
    st.caption("Simulated leveraged trading against a synthetic price stream")

    symbol: str = st.radio(
        "Symbol", list(SYMBOLS), horizontal=True, label_visibility="collapsed",
    )

    market_col, order_col = st.columns([2, 1])
    with market_col:
        _render_market(symbol)
    with order_col:
        _render_order_form(symbol, settings)

    account: TradingAccount = st.session_state[_STATE_ACCOUNT]
    snap = account.snapshot()
    _render_account(snap)
    _render_positions(snap)
    _render_trades(snap)


if __name__ == "__main__":
    main()
