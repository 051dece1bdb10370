"""
Value models for pools, tokens, chain state and feed events.

All on-chain amounts are carried as raw integers in base units. Human
amounts only appear at the edges (configuration, logs, alerts) and are
converted through TokenAmount.

IMPORTANT: never do trade arithmetic on floats. Use TokenAmount.raw.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict


# =============================================================================
# TOKENS AND AMOUNTS
# =============================================================================


@dataclass(frozen=True, order=True)
class TokenAmount:
    """Raw on-chain amount with its decimal precision."""

    raw: int
    decimals: int

    @classmethod
    def from_ui(cls, value: Union[str, Decimal, int], decimals: int) -> "TokenAmount":
        """
        Build an amount from a human-readable value.

        Digits beyond the token's precision are truncated.

        Examples:
            >>> TokenAmount.from_ui("0.01", 9).raw
            10000000
        """
        scaled = (Decimal(str(value)) * (Decimal(10) ** decimals)).to_integral_value(
            rounding=ROUND_DOWN
        )
        return cls(raw=int(scaled), decimals=decimals)

    def to_decimal(self) -> Decimal:
        """Human-readable value as an exact Decimal."""
        return Decimal(self.raw).scaleb(-self.decimals)

    def is_zero(self) -> bool:
        return self.raw == 0

    def __str__(self) -> str:
        return f"{self.to_decimal():f}"


class TradableAsset(BaseModel):
    """A token that can be traded in a pool."""

    model_config = ConfigDict(frozen=True)

    mint: str
    decimals: int
    symbol: Optional[str] = None
    name: Optional[str] = None

    def amount(self, raw: int) -> TokenAmount:
        return TokenAmount(raw=raw, decimals=self.decimals)


class AssetMetadata(BaseModel):
    """
    Descriptive token metadata.

    Fetched at most once per filter evaluation and shared by every filter
    in that evaluation.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    symbol: str = ""
    uri: str = ""
    is_mutable: Optional[bool] = None
    mint_authority_present: Optional[bool] = None
    freeze_authority_present: Optional[bool] = None


class MintInfo(BaseModel):
    """Decoded SPL mint account."""

    model_config = ConfigDict(frozen=True)

    supply: int
    decimals: int
    mint_authority_present: bool
    freeze_authority_present: bool


class TokenAccountInfo(BaseModel):
    """Decoded SPL token account."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    mint: str
    owner: str
    amount: int


# =============================================================================
# POOLS
# =============================================================================


class PoolReference(BaseModel):
    """Everything needed to quote and trade against one liquidity pool."""

    model_config = ConfigDict(frozen=True)

    pool_id: str
    base: TradableAsset
    quote: TradableAsset
    base_vault: str
    quote_vault: str
    lp_mint: Optional[str] = None
    open_time: Optional[int] = None  # Unix seconds, None if unknown

    @property
    def base_mint(self) -> str:
        return self.base.mint

    @property
    def quote_mint(self) -> str:
        return self.quote.mint


@dataclass(frozen=True)
class PoolReserves:
    """Raw vault balances of a pool."""

    base: int
    quote: int


# =============================================================================
# CHAIN STATE AND SETTLEMENT
# =============================================================================


class ChainStateReference(BaseModel):
    """Recent blockhash a transaction is built against. Expires quickly."""

    model_config = ConfigDict(frozen=True)

    blockhash: str
    last_valid_block_height: int = 0


class SettlementResult(BaseModel):
    """Outcome of submitting and confirming one transaction."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    confirmed: bool
    signature: Optional[str] = None
    error: Optional[Any] = None


class SwapDirection(str, Enum):
    """Which way a swap goes relative to the quote token."""

    BUY = "buy"  # quote -> base
    SELL = "sell"  # base -> quote


class PlanStep(str, Enum):
    """Instruction kinds a swap transaction is assembled from, in order."""

    COMPUTE_BUDGET = "compute_budget"
    CREATE_OUTPUT_ACCOUNT = "create_output_account"  # Idempotent
    SWAP = "swap"
    CLOSE_INPUT_ACCOUNT = "close_input_account"


@dataclass(frozen=True)
class SwapPlan:
    """
    Instructions for one swap transaction.

    The engine decides what goes in; a TransactionBuilder compiles and signs
    it against a chain state reference.
    """

    pool: PoolReference
    direction: SwapDirection
    owner: str
    amount_in: int
    min_amount_out: int
    input_mint: str
    output_mint: str
    compute_unit_limit: int = 0
    compute_unit_price: int = 0
    close_input_account: bool = False

    @property
    def steps(self) -> tuple[PlanStep, ...]:
        steps = []
        if self.compute_unit_limit > 0 or self.compute_unit_price > 0:
            steps.append(PlanStep.COMPUTE_BUDGET)
        steps.append(PlanStep.CREATE_OUTPUT_ACCOUNT)
        steps.append(PlanStep.SWAP)
        if self.close_input_account:
            steps.append(PlanStep.CLOSE_INPUT_ACCOUNT)
        return tuple(steps)


# =============================================================================
# FEED EVENTS
# =============================================================================


class PoolDiscoveredEvent(BaseModel):
    """A pool account was created or changed."""

    model_config = ConfigDict(frozen=True)

    pool_id: str
    base_mint: str
    quote_mint: str
    open_time: int


class WalletBalanceChangedEvent(BaseModel):
    """A token account owned by our wallet changed."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    mint: str
    amount: int = 0


FeedEvent = Union[PoolDiscoveredEvent, WalletBalanceChangedEvent]
