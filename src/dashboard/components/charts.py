"""Chart and table helpers for the TradeSim dashboard.

Pure functions: they turn engine snapshots and feed history into Plotly
figures, pandas frames and display strings.  Nothing here touches
Streamlit, so it can be tested without a running app.
"""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd
import plotly.graph_objects as go
import structlog

from src.core.constants import COLOR_LOSS, COLOR_PRICE_LINE, COLOR_PROFIT
from src.core.types import Position, PricePoint, Trade
from src.simulator.pnl_calculator import PnLCalculator

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ── Common Plotly Layout (dark theme) ──────────────────────────────
CHART_LAYOUT: dict[str, object] = {
    "template": "plotly_dark",
    "paper_bgcolor": "#111827",
    "plot_bgcolor": "#111827",
    "font": {
        "family": "Inter, sans-serif",
        "size": 12,
        "color": "#F9FAFB",
    },
    "margin": {"l": 60, "r": 20, "t": 40, "b": 40},
    "hoverlabel": {
        "bgcolor": "#1F2937",
        "font_size": 12,
        "font_family": "Inter, sans-serif",
    },
    "xaxis": {
        "gridcolor": "#444444",
        "zerolinecolor": "#444444",
    },
    "yaxis": {
        "gridcolor": "#444444",
        "zerolinecolor": "#444444",
        "tickprefix": "$",
        "tickformat": ",.2f",
    },
}


# ── Formatting ─────────────────────────────────────────────────────


def format_currency(value: float) -> str:
    """Format *value* as USD, e.g. ``$1,234.56`` / ``-$12.30``."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_percent(value: float) -> str:
    """Signed percent with two decimals, e.g. ``+2.35%``."""
    return f"{value:+.2f}%"


def pnl_color(value: float) -> str:
    return COLOR_PROFIT if value >= 0 else COLOR_LOSS


def _apply_base_layout(fig: go.Figure, title: str) -> go.Figure:
    """Apply the shared CHART_LAYOUT to a figure and set its title."""
    fig.update_layout(
        title={"text": title, "x": 0.02, "xanchor": "left"},
        **CHART_LAYOUT,  # type: ignore[arg-type]
    )
    return fig


# ── Public Chart Factories ─────────────────────────────────────────


def create_price_chart(history: Sequence[PricePoint], symbol: str) -> go.Figure:
    """Line chart of the rolling price history.

    Args:
        history: Price points, oldest first.
        symbol: Symbol shown in the title and legend.

    Returns:
        Plotly Figure.
    """
    fig: go.Figure = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=[point.at.strftime("%H:%M") for point in history],
            y=[point.price for point in history],
            mode="lines",
            name=symbol,
            line={"color": COLOR_PRICE_LINE, "width": 2},
            hovertemplate="%{x}<br>%{y:$,.2f}<extra>Price</extra>",
        )
    )

    _apply_base_layout(fig, f"{symbol} / USD")
    fig.update_layout(height=320, showlegend=False, hovermode="x unified")
    logger.debug("price_chart_created", symbol=symbol, points=len(history))
    return fig


# ── Tables ─────────────────────────────────────────────────────────


def positions_table(positions: Sequence[Position], marks: dict[str, float]) -> pd.DataFrame:
    """Open positions with their current mark and unrealized P&L."""
    rows: list[dict[str, object]] = []
    for position in positions:
        price = marks.get(position.symbol, position.entry_price)
        pnl = PnLCalculator.position_pnl(
            position.side,
            position.entry_price,
            price,
            position.quantity,
            position.leverage,
        )
        rows.append(
            {
                "Symbol": position.symbol,
                "Side": position.side.value,
                "Quantity": position.quantity,
                "Entry": format_currency(position.entry_price),
                "Current": format_currency(price),
                "Leverage": f"{position.leverage:g}x",
                "Margin": format_currency(position.margin),
                "PnL": format_currency(pnl),
                "PnL %": format_percent(PnLCalculator.pnl_percent(position, price)),
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "Symbol", "Side", "Quantity", "Entry", "Current",
            "Leverage", "Margin", "PnL", "PnL %",
        ],
    )


def trades_table(trades: Sequence[Trade]) -> pd.DataFrame:
    """Closed trades, in ledger order (most recent first)."""
    rows = [
        {
            "Time": trade.closed_at.strftime("%Y-%m-%d %H:%M:%S"),
            "Symbol": trade.symbol,
            "Side": trade.side.value,
            "Quantity": trade.quantity,
            "Price": format_currency(trade.price),
            "Realized PnL": format_currency(trade.realized_pnl),
            "Reason": trade.close_reason or "Open",
        }
        for trade in trades
    ]
    return pd.DataFrame(
        rows,
        columns=["Time", "Symbol", "Side", "Quantity", "Price", "Realized PnL", "Reason"],
    )
