"""Pools seen since startup, keyed by base mint."""
from __future__ import annotations

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class PoolCache:
    """
    Base mint -> pool id.

    A mint is cached the first time one of its pools is handled, so later
    pool updates for the same mint are ignored and sells can find the pool.
    """

    def __init__(self) -> None:
        self._pools: Dict[str, str] = {}

    def save(self, mint: str, pool_id: str) -> None:
        if mint not in self._pools:
            logger.debug(f"Caching pool {pool_id} for {mint}")
        self._pools[mint] = pool_id

    def get(self, mint: str) -> Optional[str]:
        return self._pools.get(mint)

    def __contains__(self, mint: object) -> bool:
        return mint in self._pools

    def __len__(self) -> int:
        return len(self._pools)
