"""Shared pytest fixtures and the local ``asyncio`` marker runner.

Coroutine tests marked with ``@pytest.mark.asyncio`` are executed with a
fresh event loop, so the suite does not depend on ``pytest-asyncio``.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from src.simulator.portfolio import TradingAccount

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config: pytest.Config) -> None:
    """Register local markers used in the suite."""
    config.addinivalue_line("markers", "asyncio: mark test as asyncio-compatible")


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run ``@pytest.mark.asyncio`` coroutine tests on a fresh loop."""
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    kwargs: dict[str, Any] = {
        arg: pyfuncitem.funcargs[arg]
        for arg in pyfuncitem._fixtureinfo.argnames
    }
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_func(**kwargs))
    finally:
        loop.close()
        asyncio.set_event_loop(None)
    return True


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Frozen UTC clock so seeded state compares equal across resets."""
    return lambda: FIXED_NOW


@pytest.fixture
def account(clock: Callable[[], datetime]) -> TradingAccount:
    """Seeded account with BTC marked at the default initial price."""
    return TradingAccount(clock=clock)
