"""
Execution layer test fixtures.

The execution layer talks to the chain through the adapter.
All adapter calls MUST be mocked in tests - never hit a real RPC.
"""
import itertools
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pool_sniper.core.pool_cache import PoolCache
from pool_sniper.execution import (
    ExecutionConfig,
    ExitConfig,
    PositionTracker,
    TradeExecutionEngine,
)
from pool_sniper.filters import FilterPipeline
from pool_sniper.market.models import (
    AssetMetadata,
    ChainStateReference,
    PoolReference,
    PoolReserves,
    SettlementResult,
    TokenAccountInfo,
    TradableAsset,
)

WSOL = "So11111111111111111111111111111111111111112"


# =============================================================================
# Pool Fixtures
# =============================================================================


def make_pool(pool_id="pool_abc", base_mint="mint_base"):
    return PoolReference(
        pool_id=pool_id,
        base=TradableAsset(mint=base_mint, decimals=6),
        quote=TradableAsset(mint=WSOL, decimals=9),
        base_vault=f"{pool_id}_base_vault",
        quote_vault=f"{pool_id}_quote_vault",
        lp_mint=f"{pool_id}_lp",
        open_time=1_700_000_000,
    )


@pytest.fixture
def sample_pool():
    return make_pool()


@pytest.fixture
def token_account():
    """Wallet token account holding 100,000 raw base tokens."""
    return TokenAccountInfo(account_id="acct_base", mint="mint_base", owner="wallet", amount=100_000)


# =============================================================================
# Adapter Fixtures
# =============================================================================


@pytest.fixture
def mock_adapter(token_account):
    """
    Chain adapter with every capability mocked.

    - resolve_pool maps "pool_<x>" to a pool for "mint_<x>" (pool_abc -> mint_base)
    - each get_latest_blockhash call returns a fresh blockhash
    - execute_and_confirm confirms on the first attempt
    """
    adapter = MagicMock()
    adapter.wallet_address = "wallet"
    adapter.quote_mint = WSOL
    adapter.quote_account = "acct_wsol"

    def resolve(pool_id):
        if pool_id == "pool_abc":
            return make_pool()
        return make_pool(pool_id, pool_id.replace("pool_", "mint_"))

    adapter.market.resolve_pool = AsyncMock(side_effect=resolve)
    adapter.market.get_pool_reserves = AsyncMock(
        return_value=PoolReserves(base=1_000_000_000, quote=10_000_000_000)
    )
    adapter.market.get_token_account = AsyncMock(return_value=token_account)

    adapter.metadata.fetch = AsyncMock(return_value=AssetMetadata(name="Pepe Moon", symbol="PEPE"))

    counter = itertools.count(1)
    adapter.chain.get_latest_blockhash = AsyncMock(
        side_effect=lambda: ChainStateReference(blockhash=f"hash_{next(counter)}")
    )
    adapter.builder.build_and_sign = AsyncMock(return_value=b"signed_tx")
    adapter.executor.execute_and_confirm = AsyncMock(
        return_value=SettlementResult(confirmed=True, signature="sig_ok")
    )
    adapter.close = AsyncMock()
    return adapter


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def clock():
    """Mutable fake clock: set clock.now to move time."""
    class Clock:
        now = 1_700_000_100.0

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def exit_config():
    return ExitConfig(
        take_profit_percent=Decimal("100"),
        stop_loss_percent=Decimal("20"),
        max_sell_duration_seconds=120,
    )


@pytest.fixture
def tracker(exit_config, mock_adapter, clock):
    return PositionTracker(exit_config, mock_adapter.market, clock=clock)


@pytest.fixture
def execution_config():
    return ExecutionConfig(
        quote_amount=1_000_000,
        max_buy_retries=3,
        max_sell_retries=3,
        retry_delay_seconds=0.25,
    )


@pytest.fixture
def pool_cache():
    cache = PoolCache()
    cache.save("mint_base", "pool_abc")
    return cache


@pytest.fixture
def no_sleep():
    return AsyncMock()


@pytest.fixture
def engine(execution_config, mock_adapter, tracker, pool_cache, no_sleep):
    """Engine with an empty (always passing) filter pipeline."""
    return TradeExecutionEngine(
        config=execution_config,
        adapter=mock_adapter,
        pipeline=FilterPipeline([]),
        tracker=tracker,
        pool_cache=pool_cache,
        sleep=no_sleep,
    )
