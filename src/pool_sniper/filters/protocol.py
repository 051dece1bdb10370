"""
Filter protocol and result type.

Filters are pure eligibility checks: they receive a pool and the metadata
fetched for this evaluation (possibly None) and return a FilterResult.
They may do their own read-only I/O but never touch workflow state.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from pool_sniper.market.models import AssetMetadata, PoolReference


@dataclass(frozen=True)
class FilterResult:
    """Outcome of one filter, or of a whole pipeline evaluation."""

    ok: bool
    message: Optional[str] = None
    filter_name: Optional[str] = None

    @classmethod
    def passed(cls) -> "FilterResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, filter_name: str, reason: str) -> "FilterResult":
        """Failing result with a "<Name> -> <reason>" diagnostic."""
        return cls(ok=False, message=f"{filter_name} -> {reason}", filter_name=filter_name)


@runtime_checkable
class Filter(Protocol):
    """
    Interface every pool filter implements.

    Attributes:
        name: Stable identifier used in diagnostics
        requires_metadata: Whether the pipeline must fetch AssetMetadata
    """

    name: str
    requires_metadata: bool

    async def evaluate(
        self,
        pool: PoolReference,
        metadata: Optional[AssetMetadata],
    ) -> FilterResult:
        ...
