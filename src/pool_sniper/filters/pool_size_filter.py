"""Quote reserve bounds check."""
from __future__ import annotations

from typing import Optional

from pool_sniper.market.models import AssetMetadata, PoolReference, TokenAmount
from pool_sniper.market.providers import MarketDataProvider

from .protocol import FilterResult


class PoolSizeFilter:
    """
    Passes when the quote-vault balance is within [min_size, max_size].

    Either bound is disabled by a zero amount. Bounds are inclusive.
    """

    name = "PoolSize"
    requires_metadata = False

    def __init__(
        self,
        market: MarketDataProvider,
        min_size: TokenAmount,
        max_size: TokenAmount,
    ):
        self._market = market
        self._min_size = min_size
        self._max_size = max_size

    async def evaluate(
        self,
        pool: PoolReference,
        metadata: Optional[AssetMetadata],
    ) -> FilterResult:
        raw = await self._market.get_token_balance(pool.quote_vault)
        reserve = pool.quote.amount(raw)

        if not self._max_size.is_zero() and reserve.raw > self._max_size.raw:
            return FilterResult.failed(
                self.name, f"Pool size {reserve} > {self._max_size}"
            )

        if not self._min_size.is_zero() and reserve.raw < self._min_size.raw:
            return FilterResult.failed(
                self.name, f"Pool size {reserve} < {self._min_size}"
            )

        return FilterResult.passed()
