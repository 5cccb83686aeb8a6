"""Leveraged trading simulator — margin accounting, FIFO closes, and P&L tracking."""

from src.simulator.account_ledger import AccountLedger
from src.simulator.order_engine import OrderExecutor
from src.simulator.pnl_calculator import PnLCalculator
from src.simulator.portfolio import TradingAccount
from src.simulator.position_book import PositionBook
from src.simulator.trade_ledger import TradeLedger

__all__ = [
    "AccountLedger",
    "OrderExecutor",
    "PnLCalculator",
    "PositionBook",
    "TradeLedger",
    "TradingAccount",
]
