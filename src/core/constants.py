"""System-wide constants. All magic numbers and strings live here."""

from __future__ import annotations

# ── Account Defaults ─────────────────────────────────────────────
DEFAULT_BALANCE = 10_000.0
DEFAULT_LEVERAGE = 10
MIN_LEVERAGE = 1
MAX_LEVERAGE = 100

# Quantities closer than this are treated as equal (float noise from FIFO decrements)
QUANTITY_EPSILON = 1e-9

# ── Close Reasons ────────────────────────────────────────────────
CLOSE_REASON_MARKET_SELL = "Market Sell"
CLOSE_REASON_CLOSE_ALL = "Manual Close All"
CLOSE_REASON_SEED = ""

# ── Symbols ──────────────────────────────────────────────────────
DEFAULT_SYMBOL = "BTC"

SYMBOLS: dict[str, dict[str, str]] = {
    "BTC": {"name": "Bitcoin", "icon": "₿"},
    "ETH": {"name": "Ethereum", "icon": "Ξ"},
    "SOL": {"name": "Solana", "icon": "◎"},
    "ADA": {"name": "Cardano", "icon": "₳"},
    "DOT": {"name": "Polkadot", "icon": "●"},
}

# Starting price per symbol for the synthetic feeds
REFERENCE_PRICES: dict[str, float] = {
    "BTC": 42_350.75,
    "ETH": 2_245.30,
    "SOL": 98.40,
    "ADA": 0.52,
    "DOT": 7.35,
}

# ── Seed State (restored by reset) ───────────────────────────────
SEED_POSITION_ID = "1"
SEED_TRADE_ID = "t1"
SEED_SYMBOL = "BTC"
SEED_QUANTITY = 0.25
SEED_ENTRY_PRICE = 41_200.50
SEED_LEVERAGE = 10
SEED_STOP_LOSS = 40_000.0
SEED_TAKE_PROFIT = 45_000.0
SEED_AGE_SECONDS = 86_400

# ── Market Feed ──────────────────────────────────────────────────
INITIAL_PRICE = 42_350.75
PRICE_HISTORY_LENGTH = 101
PRICE_STEP = 150.0             # max tick-to-tick swing (uniform ±step/2)
HISTORY_STEP = 200.0           # max swing between seeded history points
HISTORY_SPACING_SECONDS = 60
TICK_INTERVAL_SECONDS = 3.0
MIN_PRICE = 0.01

# ── Dashboard Colors ─────────────────────────────────────────────
COLOR_PRICE_LINE = "#3b82f6"
COLOR_PROFIT = "#22c55e"
COLOR_LOSS = "#ef4444"
