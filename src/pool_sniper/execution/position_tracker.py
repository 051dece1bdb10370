"""
Position Tracker for open positions and exit conditions.

Records the cost basis of each confirmed buy and decides when a held
token should be sold again.

Exit Logic (first match wins):
    1. Take profit:   pnl >= take_profit_percent          (when > 0)
    2. Stop loss:     pnl <= -stop_loss_percent           (when > 0)
    3. Max duration:  held >= max_sell_duration_seconds   (when > 0)
    4. Timed keyword: held >= sell_timed_name_duration_seconds (when > 0)
                      and the token name contains a configured keyword

PnL is computed in integer basis points from raw amounts and truncated
toward zero, so identical inputs always give identical decisions.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Callable, Dict, List, Optional

from pool_sniper.market.amm import quote_swap
from pool_sniper.market.models import AssetMetadata, PoolReference, SwapDirection
from pool_sniper.market.providers import MarketDataProvider

logger = logging.getLogger(__name__)


@dataclass
class ExitConfig:
    """Configuration for exit conditions."""

    take_profit_percent: Decimal = Decimal("0")
    stop_loss_percent: Decimal = Decimal("0")
    max_sell_duration_seconds: float = 0
    sell_timed_name_keywords: tuple[str, ...] = ()
    sell_timed_name_duration_seconds: float = 0


class ExitKind(str, Enum):
    """Why a position should be sold."""

    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    MAX_DURATION = "max_duration"
    TIMED_KEYWORD = "timed_keyword"


@dataclass(frozen=True)
class ExitReason:
    """A triggered exit condition."""

    kind: ExitKind
    pnl_percent: Decimal
    detail: str

    def __str__(self) -> str:
        return f"{self.kind.value} ({self.detail})"


@dataclass
class Position:
    """An open position created by a confirmed buy."""

    mint: str
    opened_at: float  # Unix timestamp
    cost_basis: int  # Raw quote amount spent
    min_acquired_amount: int  # Raw base amount guaranteed by the swap
    name: str = ""
    symbol: str = ""
    token_account: Optional[str] = None

    def elapsed_seconds(self, now: float) -> float:
        return now - self.opened_at


def compute_pnl_percent(current_value: int, cost_basis: int) -> Decimal:
    """
    Profit/loss in percent with two decimal places.

    Computed as integer basis points truncated toward zero.

    Raises:
        ValueError: If cost_basis is zero
    """
    if cost_basis == 0:
        raise ValueError("Cannot compute PnL with zero cost basis")
    bps = int(Fraction((current_value - cost_basis) * 10_000, cost_basis))
    return Decimal(bps).scaleb(-2)


def check_exit(
    position: Position,
    pnl_percent: Decimal,
    now: float,
    config: ExitConfig,
) -> Optional[ExitReason]:
    """Evaluate exit conditions in priority order. Pure function."""
    if config.take_profit_percent > 0 and pnl_percent >= config.take_profit_percent:
        return ExitReason(
            kind=ExitKind.TAKE_PROFIT,
            pnl_percent=pnl_percent,
            detail=f"{pnl_percent}% >= {config.take_profit_percent}%",
        )

    if config.stop_loss_percent > 0 and pnl_percent <= -config.stop_loss_percent:
        return ExitReason(
            kind=ExitKind.STOP_LOSS,
            pnl_percent=pnl_percent,
            detail=f"{pnl_percent}% <= -{config.stop_loss_percent}%",
        )

    elapsed = position.elapsed_seconds(now)

    if config.max_sell_duration_seconds > 0 and elapsed >= config.max_sell_duration_seconds:
        return ExitReason(
            kind=ExitKind.MAX_DURATION,
            pnl_percent=pnl_percent,
            detail=f"{elapsed:.0f}s >= {config.max_sell_duration_seconds}s",
        )

    if (
        config.sell_timed_name_keywords
        and config.sell_timed_name_duration_seconds > 0
        and elapsed >= config.sell_timed_name_duration_seconds
    ):
        name = position.name.lower()
        keyword = next(
            (k for k in config.sell_timed_name_keywords if k and k.lower() in name),
            None,
        )
        if keyword:
            return ExitReason(
                kind=ExitKind.TIMED_KEYWORD,
                pnl_percent=pnl_percent,
                detail=f"'{keyword}' after {elapsed:.0f}s",
            )

    return None


class PositionTracker:
    """
    Owns open positions and evaluates their exits.

    Positions are only created and removed through open_position and
    close_position.

    Usage:
        tracker = PositionTracker(ExitConfig(take_profit_percent=Decimal("40")), market)

        tracker.open_position(mint, cost_basis=10_000_000, min_acquired_amount=5_000)

        reason = await tracker.evaluate_exit(mint, held_amount, pool)
        if reason:
            ...  # sell, then
            tracker.close_position(mint)
    """

    def __init__(
        self,
        config: ExitConfig,
        market: MarketDataProvider,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the position tracker.

        Args:
            config: Exit thresholds
            market: Source of pool reserves for valuing positions
            clock: Time source (injectable for tests)
        """
        self._config = config
        self._market = market
        self._clock = clock

        # Position by base mint
        self._positions: Dict[str, Position] = {}
        # Token accounts reported before their position was opened
        self._pending_accounts: Dict[str, str] = {}

    @property
    def config(self) -> ExitConfig:
        return self._config

    def open_position(
        self,
        mint: str,
        cost_basis: int,
        min_acquired_amount: int,
        metadata: Optional[AssetMetadata] = None,
        token_account: Optional[str] = None,
    ) -> Position:
        """Record a confirmed buy. Replaces any stale position for the mint."""
        if mint in self._positions:
            logger.warning(f"Replacing existing position for {mint}")

        position = Position(
            mint=mint,
            opened_at=self._clock(),
            cost_basis=cost_basis,
            min_acquired_amount=min_acquired_amount,
            name=metadata.name if metadata else "",
            symbol=metadata.symbol if metadata else "",
            token_account=token_account or self._pending_accounts.get(mint),
        )
        self._pending_accounts.pop(mint, None)
        self._positions[mint] = position
        logger.info(
            f"Opened position {mint} (cost={cost_basis}, min_out={min_acquired_amount})"
        )
        return position

    def close_position(self, mint: str) -> Optional[Position]:
        """Remove the position after a confirmed sell."""
        position = self._positions.pop(mint, None)
        if position:
            logger.info(f"Closed position {mint}")
        return position

    def attach_token_account(self, mint: str, token_account: str) -> None:
        """
        Remember which wallet token account holds the position.

        The wallet can report the account while the buy is still being
        confirmed; it is kept and applied when the position opens.
        """
        position = self._positions.get(mint)
        if position is None:
            self._pending_accounts[mint] = token_account
        elif position.token_account != token_account:
            position.token_account = token_account

    def get_position(self, mint: str) -> Optional[Position]:
        return self._positions.get(mint)

    def has_position(self, mint: str) -> bool:
        return mint in self._positions

    def get_open_positions(self) -> List[Position]:
        return list(self._positions.values())

    async def current_value(self, held_amount: int, pool: PoolReference) -> int:
        """Raw quote received for selling `held_amount` with zero slippage."""
        reserves = await self._market.get_pool_reserves(pool)
        return quote_swap(reserves, held_amount, SwapDirection.SELL).amount_out

    async def evaluate_exit(
        self,
        mint: str,
        held_amount: int,
        pool: PoolReference,
    ) -> Optional[ExitReason]:
        """
        Decide whether the held amount of `mint` should be sold.

        Returns:
            ExitReason if an exit condition matched, otherwise None.
            None as well when there is no position or no cost basis.
        """
        position = self._positions.get(mint)
        if position is None:
            logger.debug(f"No position for {mint}, cannot compute PnL")
            return None
        if position.cost_basis == 0:
            logger.warning(f"Position {mint} has zero cost basis, cannot compute PnL")
            return None
        if held_amount == 0:
            return None

        value = await self.current_value(held_amount, pool)
        pnl = compute_pnl_percent(value, position.cost_basis)
        logger.info(f"[{mint}] PnL {pnl}% (value={value}, cost={position.cost_basis})")

        return check_exit(position, pnl, self._clock(), self._config)
