"""Name / symbol blocklist."""
from __future__ import annotations

from typing import Iterable, Optional

from pool_sniper.market.models import AssetMetadata, PoolReference

from .protocol import FilterResult


class NameSymbolFilter:
    """
    Fails when the token name or symbol is blocklisted.

    Matching is case-insensitive and exact. Missing metadata fails closed.
    """

    name = "NameSymbol"
    requires_metadata = True

    def __init__(
        self,
        blocklist_names: Iterable[str] = (),
        blocklist_symbols: Iterable[str] = (),
    ):
        self._blocklist_names = frozenset(n.strip().lower() for n in blocklist_names if n.strip())
        self._blocklist_symbols = frozenset(s.strip().lower() for s in blocklist_symbols if s.strip())

    async def evaluate(
        self,
        pool: PoolReference,
        metadata: Optional[AssetMetadata],
    ) -> FilterResult:
        if metadata is None:
            return FilterResult.failed(self.name, "Metadata not available")

        if metadata.name.lower() in self._blocklist_names:
            return FilterResult.failed(self.name, f"Blocklisted name: {metadata.name}")

        if metadata.symbol.lower() in self._blocklist_symbols:
            return FilterResult.failed(self.name, f"Blocklisted symbol: {metadata.symbol}")

        return FilterResult.passed()
