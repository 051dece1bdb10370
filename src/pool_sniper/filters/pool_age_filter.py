"""Pool age ceiling."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from pool_sniper.market.models import AssetMetadata, PoolReference

from .protocol import FilterResult

logger = logging.getLogger(__name__)


class MaxPoolAgeFilter:
    """
    Fails when the pool opened more than `max_age_seconds` ago.

    A pool with no recorded open time passes.
    """

    name = "MaxPoolAge"
    requires_metadata = False

    def __init__(
        self,
        max_age_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        self._max_age_seconds = max_age_seconds
        self._clock = clock

    async def evaluate(
        self,
        pool: PoolReference,
        metadata: Optional[AssetMetadata],
    ) -> FilterResult:
        if not pool.open_time:
            logger.warning(f"Pool {pool.pool_id} has no open time, skipping age check")
            return FilterResult.passed()

        age = self._clock() - pool.open_time
        if age > self._max_age_seconds:
            return FilterResult.failed(
                self.name,
                f"Pool {pool.pool_id} is older than {self._max_age_seconds}s ({age:.0f}s)",
            )
        return FilterResult.passed()
