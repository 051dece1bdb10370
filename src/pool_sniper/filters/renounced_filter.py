"""Mint authority renounced / freeze authority absent check."""
from __future__ import annotations

from typing import Optional

from pool_sniper.market.models import AssetMetadata, PoolReference
from pool_sniper.market.providers import MarketDataProvider

from .protocol import FilterResult


class RenouncedFreezeFilter:
    """
    Fails when the base mint can still be minted or frozen.

    Authority flags already present in the evaluation's metadata are used
    as-is; otherwise the mint account is read.
    """

    name = "RenouncedFreeze"
    requires_metadata = False

    def __init__(
        self,
        market: MarketDataProvider,
        check_renounced: bool = True,
        check_freezable: bool = True,
    ):
        self._market = market
        self._check_renounced = check_renounced
        self._check_freezable = check_freezable

    async def evaluate(
        self,
        pool: PoolReference,
        metadata: Optional[AssetMetadata],
    ) -> FilterResult:
        if (
            metadata is not None
            and metadata.mint_authority_present is not None
            and metadata.freeze_authority_present is not None
        ):
            mint_authority = metadata.mint_authority_present
            freeze_authority = metadata.freeze_authority_present
        else:
            info = await self._market.get_mint_info(pool.base_mint)
            mint_authority = info.mint_authority_present
            freeze_authority = info.freeze_authority_present

        problems = []
        if self._check_renounced and mint_authority:
            problems.append("mint authority exists")
        if self._check_freezable and freeze_authority:
            problems.append("freeze authority exists")

        if problems:
            return FilterResult.failed(self.name, " and ".join(problems))
        return FilterResult.passed()
