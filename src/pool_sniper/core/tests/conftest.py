"""
Test fixtures for core event routing and background work.

The engine is mocked; these tests only check what gets started and when.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from pool_sniper.core import EventDispatcher, PoolCache
from pool_sniper.execution import InFlightGuard, TradeResult, TradeState
from pool_sniper.market.models import (
    PoolDiscoveredEvent,
    SwapDirection,
    WalletBalanceChangedEvent,
)

WSOL = "So11111111111111111111111111111111111111112"
RUN_TIMESTAMP = 1_700_000_000


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def mock_engine():
    """Engine whose workflows complete immediately."""
    engine = MagicMock()
    engine.buy = AsyncMock(
        return_value=TradeResult(state=TradeState.CONFIRMED, direction=SwapDirection.BUY)
    )
    engine.sell = AsyncMock(
        return_value=TradeResult(state=TradeState.ABANDONED, direction=SwapDirection.SELL)
    )
    engine.guard = InFlightGuard()
    engine.tracker.get_open_positions.return_value = []
    return engine


@pytest.fixture
def pool_cache():
    return PoolCache()


@pytest.fixture
def dispatcher(mock_engine, pool_cache):
    return EventDispatcher(mock_engine, pool_cache, WSOL, run_timestamp=RUN_TIMESTAMP)


# =============================================================================
# Event Fixtures
# =============================================================================


@pytest.fixture
def new_pool_event():
    """Pool that opened after the bot started."""
    return PoolDiscoveredEvent(
        pool_id="pool_abc",
        base_mint="mint_base",
        quote_mint=WSOL,
        open_time=RUN_TIMESTAMP + 10,
    )


@pytest.fixture
def wallet_event():
    return WalletBalanceChangedEvent(account_id="acct_base", mint="mint_base", amount=100)


class ListFeed:
    """EventFeed that yields a fixed list of events."""

    def __init__(self, events):
        self._events = list(events)
        self.closed = False

    async def events(self):
        try:
            for event in self._events:
                yield event
        finally:
            self.closed = True


@pytest.fixture
def list_feed():
    return ListFeed
