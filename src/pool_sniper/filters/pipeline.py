"""
Filter pipeline.

Runs an ordered list of filters against a pool and stops at the first
failure. Metadata is fetched once per evaluation, and only if at least one
filter asks for it; every filter in that evaluation shares the same
snapshot.

Usage:
    filters = build_filters(FilterConfig(check_mutable=True), market)
    pipeline = FilterPipeline(filters, metadata_provider)

    result = await pipeline.evaluate(pool)
    if not result.ok:
        logger.info(result.message)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Optional, Sequence

import aiohttp

from pool_sniper.market.models import AssetMetadata, PoolReference, TokenAmount
from pool_sniper.market.providers import MarketDataProvider, MetadataProvider

from .burn_filter import BurnFilter
from .market_cap_filter import MarketCapFilter
from .mutable_filter import MutableFilter
from .name_symbol_filter import NameSymbolFilter
from .pool_age_filter import MaxPoolAgeFilter
from .pool_size_filter import PoolSizeFilter
from .protocol import Filter, FilterResult
from .renounced_filter import RenouncedFreezeFilter

logger = logging.getLogger(__name__)


@dataclass
class FilterConfig:
    """Which filters run and with what thresholds."""

    # Liquidity burn
    check_burned: bool = False
    min_burned_fraction: Decimal = Decimal("1")

    # Authorities
    check_renounced: bool = False
    check_freezable: bool = False

    # Metadata
    check_mutable: bool = False
    check_socials: bool = False

    # Pool bounds (None or zero disables)
    min_pool_size: Optional[TokenAmount] = None
    max_pool_size: Optional[TokenAmount] = None
    max_pool_age_seconds: float = 0
    min_market_cap: Decimal = Decimal("0")

    # Blocklists (matched lower-cased)
    blocklist_names: tuple[str, ...] = ()
    blocklist_symbols: tuple[str, ...] = ()


def _is_set(amount: Optional[TokenAmount]) -> bool:
    return amount is not None and not amount.is_zero()


def build_filters(
    config: FilterConfig,
    market: MarketDataProvider,
    http: Optional[aiohttp.ClientSession] = None,
) -> list[Filter]:
    """
    Compose the enabled filters in their fixed evaluation order.

    Order: burn, renounced/freeze, mutable/socials, pool size, name/symbol,
    pool age, market cap.
    """
    filters: list[Filter] = []

    if config.check_burned:
        filters.append(BurnFilter(market, Fraction(config.min_burned_fraction)))

    if config.check_renounced or config.check_freezable:
        filters.append(
            RenouncedFreezeFilter(market, config.check_renounced, config.check_freezable)
        )

    if config.check_mutable or config.check_socials:
        filters.append(MutableFilter(config.check_mutable, config.check_socials, http=http))

    if _is_set(config.min_pool_size) or _is_set(config.max_pool_size):
        decimals = (config.min_pool_size or config.max_pool_size).decimals
        zero = TokenAmount(raw=0, decimals=decimals)
        filters.append(
            PoolSizeFilter(
                market,
                config.min_pool_size or zero,
                config.max_pool_size or zero,
            )
        )

    if config.blocklist_names or config.blocklist_symbols:
        filters.append(NameSymbolFilter(config.blocklist_names, config.blocklist_symbols))

    if config.max_pool_age_seconds > 0:
        filters.append(MaxPoolAgeFilter(config.max_pool_age_seconds))

    if config.min_market_cap > 0:
        filters.append(MarketCapFilter(market, config.min_market_cap))

    return filters


class FilterPipeline:
    """
    Ordered, short-circuiting set of pool filters.

    A filter that raises is reported as a failure naming that filter; the
    pipeline never continues past it.
    """

    def __init__(
        self,
        filters: Sequence[Filter],
        metadata_provider: Optional[MetadataProvider] = None,
    ) -> None:
        self._filters = tuple(filters)
        self._metadata_provider = metadata_provider

    @property
    def filters(self) -> tuple[Filter, ...]:
        return self._filters

    @property
    def requires_metadata(self) -> bool:
        return any(f.requires_metadata for f in self._filters)

    async def evaluate(self, pool: PoolReference) -> FilterResult:
        """
        Run every filter in order against `pool`.

        Returns:
            The first failing FilterResult, or a passing one
        """
        metadata: Optional[AssetMetadata] = None
        if self.requires_metadata:
            metadata = await self._fetch_metadata(pool)

        for f in self._filters:
            try:
                result = await f.evaluate(pool, metadata)
            except Exception as e:
                logger.error(f"Filter {f.name} raised for {pool.base_mint}: {e}")
                return FilterResult(
                    ok=False,
                    message=f"Error in {f.name}: {e}",
                    filter_name=f.name,
                )

            if not result.ok:
                logger.debug(f"Pool {pool.pool_id} excluded: {result.message}")
                return result

        return FilterResult.passed()

    async def _fetch_metadata(self, pool: PoolReference) -> Optional[AssetMetadata]:
        """Fetch the evaluation's metadata snapshot. Failures yield None."""
        if self._metadata_provider is None:
            logger.warning("Filters require metadata but no provider is configured")
            return None

        try:
            metadata = await self._metadata_provider.fetch(pool.base_mint)
        except Exception as e:
            logger.warning(f"Metadata fetch failed for {pool.base_mint}: {e}")
            return None

        if metadata is None:
            logger.warning(f"No metadata found for {pool.base_mint}")
        return metadata

    async def match(
        self,
        pool: PoolReference,
        check_interval: float,
        check_duration: float,
        consecutive_matches: int = 1,
    ) -> FilterResult:
        """
        Re-evaluate until the pool passes `consecutive_matches` times in a row.

        Evaluates every `check_interval` seconds for at most `check_duration`
        seconds. A failing evaluation resets the streak. With a non-positive
        interval or duration this is a single evaluate().
        """
        if check_interval <= 0 or check_duration <= 0:
            return await self.evaluate(pool)

        checks = max(1, int(check_duration // check_interval))
        required = max(1, consecutive_matches)
        streak = 0
        result = FilterResult.passed()

        for check in range(checks):
            result = await self.evaluate(pool)
            if result.ok:
                streak += 1
                logger.debug(
                    f"Filter match {streak}/{required} for {pool.base_mint}"
                )
                if streak >= required:
                    return result
            else:
                streak = 0

            if check < checks - 1:
                await asyncio.sleep(check_interval)

        if result.ok:
            return FilterResult(
                ok=False,
                message=f"Matched {streak}/{required} consecutive checks before window closed",
            )
        return result
