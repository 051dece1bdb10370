"""
Liquidity burn check.

LP tokens sent to a burn sink can never be redeemed, so a pool whose LP
supply is (mostly) burned cannot be rugged by pulling liquidity.
"""
from __future__ import annotations

import logging
from fractions import Fraction
from typing import Iterable, Optional

from pool_sniper.errors import RpcError
from pool_sniper.market.models import AssetMetadata, PoolReference
from pool_sniper.market.providers import MarketDataProvider

from .protocol import FilterResult

logger = logging.getLogger(__name__)

# System program and the SPL incinerator
BURN_SINKS = (
    "11111111111111111111111111111111",
    "1nc1nerator11111111111111111111111111111111",
)


async def fetch_burned_supply(
    market: MarketDataProvider,
    mint: str,
    sinks: Iterable[str] = BURN_SINKS,
) -> int:
    """
    Sum of `mint` balances held by burn sinks.

    A failed lookup for one sink is logged and counted as zero.
    """
    burned = 0
    for sink in sinks:
        try:
            burned += await market.get_holder_balance(mint, sink)
        except RpcError as e:
            logger.warning(f"Burn sink lookup failed for {mint} at {sink}: {e}")
    return burned


class BurnFilter:
    """Passes when at least `min_burned_fraction` of the LP supply is burned."""

    name = "Burn"
    requires_metadata = False

    def __init__(
        self,
        market: MarketDataProvider,
        min_burned_fraction: Fraction = Fraction(1),
        sinks: Iterable[str] = BURN_SINKS,
    ):
        self._market = market
        self._min_burned_fraction = Fraction(min_burned_fraction)
        self._sinks = tuple(sinks)

    async def evaluate(
        self,
        pool: PoolReference,
        metadata: Optional[AssetMetadata],
    ) -> FilterResult:
        if not pool.lp_mint:
            return FilterResult.failed(self.name, "Pool has no LP mint")

        lp_info = await self._market.get_mint_info(pool.lp_mint)
        if lp_info.supply == 0:
            # Burning reduces supply directly, so an empty supply is fully burned
            return FilterResult.passed()

        burned = await fetch_burned_supply(self._market, pool.lp_mint, self._sinks)
        burned_fraction = Fraction(burned, lp_info.supply)

        if burned_fraction < self._min_burned_fraction:
            percent = float(burned_fraction * 100)
            return FilterResult.failed(
                self.name,
                f"Creator didn't burn LP ({percent:.2f}% burned)",
            )

        return FilterResult.passed()
