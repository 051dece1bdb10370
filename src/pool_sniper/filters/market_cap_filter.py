"""
Market capitalization floor.

Market cap = circulating supply x spot price, in quote units, where
circulating supply excludes tokens held by burn sinks and the spot price is
quote reserve / base reserve. Computed with Fractions end to end.
"""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from fractions import Fraction
from typing import Iterable, Optional

from pool_sniper.market.models import AssetMetadata, PoolReference
from pool_sniper.market.providers import MarketDataProvider

from .burn_filter import BURN_SINKS, fetch_burned_supply
from .protocol import FilterResult

logger = logging.getLogger(__name__)


def market_cap(
    circulating_raw: int,
    base_reserve_raw: int,
    quote_reserve_raw: int,
    quote_decimals: int,
) -> Fraction:
    """
    Market cap in human quote units.

    Base decimals cancel out: supply and reserve are both base-denominated.
    """
    return Fraction(circulating_raw * quote_reserve_raw, base_reserve_raw * 10 ** quote_decimals)


class MarketCapFilter:
    """Fails when market cap is below `min_market_cap`. Disabled when <= 0."""

    name = "MarketCap"
    requires_metadata = False

    def __init__(
        self,
        market: MarketDataProvider,
        min_market_cap: Decimal,
        sinks: Iterable[str] = BURN_SINKS,
    ):
        self._market = market
        self._min_market_cap = Decimal(min_market_cap)
        self._sinks = tuple(sinks)

    async def evaluate(
        self,
        pool: PoolReference,
        metadata: Optional[AssetMetadata],
    ) -> FilterResult:
        if self._min_market_cap <= 0:
            return FilterResult.passed()

        mint_info, burned, reserves = await asyncio.gather(
            self._market.get_mint_info(pool.base_mint),
            fetch_burned_supply(self._market, pool.base_mint, self._sinks),
            self._market.get_pool_reserves(pool),
        )

        circulating = max(mint_info.supply - burned, 0)
        if circulating == 0:
            return FilterResult.failed(self.name, "Circulating supply is zero")

        if reserves.base == 0:
            return FilterResult.failed(self.name, "Base reserve is zero")

        cap = market_cap(circulating, reserves.base, reserves.quote, pool.quote.decimals)
        logger.debug(f"Market cap for {pool.base_mint}: {float(cap):.2f}")

        if cap < Fraction(self._min_market_cap):
            return FilterResult.failed(
                self.name,
                f"Market cap {float(cap):,.2f} is below minimum {self._min_market_cap:,.2f}",
            )
        return FilterResult.passed()
