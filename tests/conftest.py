"""
Shared test fixtures for integration tests.

This file provides an in-memory chain adapter that spans every component,
unlike the component-specific fixtures in src/pool_sniper/{component}/tests/conftest.py
"""
import asyncio
import itertools
import time
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from pool_sniper.main import BotConfig
from pool_sniper.market.amm import quote_swap
from pool_sniper.market.models import (
    AssetMetadata,
    ChainStateReference,
    MintInfo,
    PoolReference,
    PoolReserves,
    SettlementResult,
    SwapDirection,
    SwapPlan,
    TokenAccountInfo,
    TradableAsset,
)

WSOL = "So11111111111111111111111111111111111111112"
WALLET = "wallet_test"


# =============================================================================
# In-Memory Chain
# =============================================================================


class FakeMarket:
    """Pools, mints and token accounts held in dicts."""

    def __init__(self) -> None:
        self.pools: Dict[str, PoolReference] = {}
        self.reserves: Dict[str, PoolReserves] = {}
        self.mints: Dict[str, MintInfo] = {}
        self.accounts: Dict[str, TokenAccountInfo] = {
            "acct_wsol": TokenAccountInfo(
                account_id="acct_wsol", mint=WSOL, owner=WALLET, amount=10_000_000_000
            ),
        }

    def add_pool(self, pool: PoolReference, reserves: PoolReserves) -> None:
        self.pools[pool.pool_id] = pool
        self.reserves[pool.pool_id] = reserves
        self.mints[pool.base_mint] = MintInfo(
            supply=1_000_000_000,
            decimals=pool.base.decimals,
            mint_authority_present=False,
            freeze_authority_present=False,
        )

    def credit(self, account_id: str, mint: str, amount: int) -> None:
        current = self.accounts.get(account_id)
        held = current.amount if current else 0
        self.accounts[account_id] = TokenAccountInfo(
            account_id=account_id, mint=mint, owner=WALLET, amount=held + amount
        )

    async def resolve_pool(self, pool_id: str) -> PoolReference:
        return self.pools[pool_id]

    async def get_pool_reserves(self, pool: PoolReference) -> PoolReserves:
        return self.reserves[pool.pool_id]

    async def get_token_balance(self, token_account: str) -> int:
        for pool_id, pool in self.pools.items():
            if token_account == pool.quote_vault:
                return self.reserves[pool_id].quote
            if token_account == pool.base_vault:
                return self.reserves[pool_id].base
        return 0

    async def get_mint_info(self, mint: str) -> MintInfo:
        return self.mints[mint]

    async def get_holder_balance(self, mint: str, owner: str) -> int:
        return 0

    async def get_token_account(self, account_id: str) -> Optional[TokenAccountInfo]:
        return self.accounts.get(account_id)


class FakeMetadata:
    def __init__(self) -> None:
        self.by_mint: Dict[str, AssetMetadata] = {}

    async def fetch(self, mint: str) -> Optional[AssetMetadata]:
        return self.by_mint.get(mint)


class FakeChain:
    def __init__(self) -> None:
        self._counter = itertools.count(1)

    async def get_latest_blockhash(self) -> ChainStateReference:
        return ChainStateReference(blockhash=f"hash_{next(self._counter)}")


class FakeBuilder:
    async def build_and_sign(self, plan: SwapPlan, chain_ref: ChainStateReference):
        return (plan, chain_ref.blockhash)


class FakeExecutor:
    """Confirms every transaction and settles at the constant-product price."""

    def __init__(self, market: FakeMarket) -> None:
        self._market = market
        self.plans: List[SwapPlan] = []

    async def execute_and_confirm(self, transaction, chain_ref) -> SettlementResult:
        plan, _blockhash = transaction
        self.plans.append(plan)

        account_id = f"acct_{plan.pool.base_mint}"
        if plan.direction is SwapDirection.BUY:
            reserves = self._market.reserves[plan.pool.pool_id]
            bought = quote_swap(reserves, plan.amount_in, SwapDirection.BUY).amount_out
            self._market.credit(account_id, plan.pool.base_mint, bought)
        else:
            self._market.accounts[account_id] = TokenAccountInfo(
                account_id=account_id, mint=plan.pool.base_mint, owner=WALLET, amount=0
            )
        return SettlementResult(confirmed=True, signature=f"sig_{len(self.plans)}")


class QueueFeed:
    """EventFeed fed by the test; close() ends the stream."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()

    def push(self, event) -> None:
        self._queue.put_nowait(event)

    def close(self) -> None:
        self._queue.put_nowait(None)

    async def events(self):
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class FakeAdapter:
    """ChainAdapter assembled from the in-memory parts."""

    def __init__(self) -> None:
        self.wallet_address = WALLET
        self.quote_mint = WSOL
        self.quote_account = "acct_wsol"
        self.market = FakeMarket()
        self.metadata = FakeMetadata()
        self.chain = FakeChain()
        self.builder = FakeBuilder()
        self.executor = FakeExecutor(self.market)
        self.feed = QueueFeed()
        self.closed = False

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def make_pool():
    """Build a pool that opens just after now, so the dispatcher accepts it."""
    def _make(name="pepe", open_time=None):
        return PoolReference(
            pool_id=f"pool_{name}",
            base=TradableAsset(mint=f"mint_{name}", decimals=6),
            quote=TradableAsset(mint=WSOL, decimals=9),
            base_vault=f"vault_base_{name}",
            quote_vault=f"vault_quote_{name}",
            lp_mint=f"lp_{name}",
            open_time=open_time if open_time is not None else int(time.time()) + 5,
        )
    return _make


@pytest.fixture
def bot_config():
    """Live-trading config tuned for fast tests."""
    return BotConfig(
        adapter="tests:unused",
        rpc_endpoint="http://fake",
        quote_amount=Decimal("0.01"),
        take_profit_percentage=Decimal("50"),
        stop_loss_percentage=Decimal("20"),
        check_burned=False,
        price_check_interval_seconds=0.05,
        retry_delay_seconds=0,
    )


@pytest.fixture
def wait_until():
    """Poll a condition on the event loop until it holds or times out."""
    async def _wait(condition, timeout=2.0):
        deadline = time.monotonic() + timeout
        while not condition():
            if time.monotonic() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)
    return _wait
