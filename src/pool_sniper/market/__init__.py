"""
Market layer - pool and token models, AMM quotes and chain reads.

The decision logic never talks to the chain directly. It goes through the
provider protocols defined here; SolanaRpcClient and RpcMetadataProvider
implement the read-only ones on top of solana-py.
"""
from .amm import SwapQuote, compute_amount_out, quote_swap
from .metadata import RpcMetadataProvider, decode_metadata_account, metadata_address
from .models import (
    AssetMetadata,
    ChainStateReference,
    FeedEvent,
    MintInfo,
    PlanStep,
    PoolDiscoveredEvent,
    PoolReference,
    PoolReserves,
    SettlementResult,
    SwapDirection,
    SwapPlan,
    TokenAccountInfo,
    TokenAmount,
    TradableAsset,
    WalletBalanceChangedEvent,
)
from .providers import (
    ChainAdapter,
    ChainStateProvider,
    EventFeed,
    MarketDataProvider,
    MetadataProvider,
    SettlementExecutor,
    TransactionBuilder,
)
from .rpc_client import SolanaRpcClient, parse_mint_info

__all__ = [
    # Models
    "AssetMetadata",
    "ChainStateReference",
    "FeedEvent",
    "MintInfo",
    "PlanStep",
    "PoolDiscoveredEvent",
    "PoolReference",
    "PoolReserves",
    "SettlementResult",
    "SwapDirection",
    "SwapPlan",
    "TokenAccountInfo",
    "TokenAmount",
    "TradableAsset",
    "WalletBalanceChangedEvent",
    # AMM
    "SwapQuote",
    "compute_amount_out",
    "quote_swap",
    # Providers
    "ChainAdapter",
    "ChainStateProvider",
    "EventFeed",
    "MarketDataProvider",
    "MetadataProvider",
    "SettlementExecutor",
    "TransactionBuilder",
    # RPC
    "SolanaRpcClient",
    "RpcMetadataProvider",
    "decode_metadata_account",
    "metadata_address",
    "parse_mint_info",
]
