"""
Capabilities the sniper consumes from the chain layer.

These are protocols only. A chain adapter (loaded at startup from
SNIPER_ADAPTER) supplies concrete implementations; SolanaRpcClient and
RpcMetadataProvider cover the read-only parts.
"""
from __future__ import annotations

from typing import Any, AsyncIterator, Optional, Protocol, runtime_checkable

from .models import (
    AssetMetadata,
    ChainStateReference,
    FeedEvent,
    MintInfo,
    PoolReference,
    PoolReserves,
    SettlementResult,
    SwapPlan,
    TokenAccountInfo,
)


@runtime_checkable
class MetadataProvider(Protocol):
    """Fetches descriptive token metadata."""

    async def fetch(self, mint: str) -> Optional[AssetMetadata]:
        """Return metadata for a mint, or None if it has none."""
        ...


@runtime_checkable
class MarketDataProvider(Protocol):
    """Read access to pools, mints and token accounts."""

    async def resolve_pool(self, pool_id: str) -> PoolReference:
        """
        Resolve a pool id to full trade parameters.

        Raises:
            ResolutionError: If the pool or its market cannot be loaded
        """
        ...

    async def get_pool_reserves(self, pool: PoolReference) -> PoolReserves:
        ...

    async def get_token_balance(self, token_account: str) -> int:
        """Raw balance of a token account."""
        ...

    async def get_mint_info(self, mint: str) -> MintInfo:
        ...

    async def get_holder_balance(self, mint: str, owner: str) -> int:
        """Raw balance of `mint` held by `owner` (0 if no account)."""
        ...

    async def get_token_account(self, account_id: str) -> Optional[TokenAccountInfo]:
        ...


@runtime_checkable
class ChainStateProvider(Protocol):
    """Supplies recent chain state for transaction building."""

    async def get_latest_blockhash(self) -> ChainStateReference:
        ...


@runtime_checkable
class TransactionBuilder(Protocol):
    """Compiles and signs a SwapPlan into a submittable transaction."""

    async def build_and_sign(self, plan: SwapPlan, chain_ref: ChainStateReference) -> Any:
        ...


@runtime_checkable
class SettlementExecutor(Protocol):
    """Submits a signed transaction and waits for confirmation."""

    async def execute_and_confirm(
        self,
        transaction: Any,
        chain_ref: ChainStateReference,
    ) -> SettlementResult:
        """
        Submit and confirm.

        A confirmation that does not arrive within the executor's own polling
        horizon is reported as confirmed=False, not raised.
        """
        ...


@runtime_checkable
class EventFeed(Protocol):
    """Stream of pool and wallet notifications."""

    def events(self) -> AsyncIterator[FeedEvent]:
        ...


@runtime_checkable
class ChainAdapter(Protocol):
    """
    Bundle of chain capabilities built by the configured adapter factory.

    Example factory:
        def create_adapter(config: BotConfig) -> ChainAdapter:
            rpc = SolanaRpcClient(config.rpc_endpoint)
            return MyAdapter(rpc=rpc, ...)
    """

    wallet_address: str
    quote_mint: str
    quote_account: str  # Wallet's token account for the quote mint
    market: MarketDataProvider
    metadata: MetadataProvider
    chain: ChainStateProvider
    builder: TransactionBuilder
    executor: SettlementExecutor
    feed: EventFeed

    async def close(self) -> None:
        ...
