"""
Pool filters - eligibility checks run before any buy.

Each filter is a small class with a stable `name`, a `requires_metadata`
flag and an async `evaluate(pool, metadata)`. FilterPipeline runs them in
order and returns the first failure.
"""
from .burn_filter import BURN_SINKS, BurnFilter, fetch_burned_supply
from .market_cap_filter import MarketCapFilter, market_cap
from .mutable_filter import MutableFilter, OffchainDescriptor
from .name_symbol_filter import NameSymbolFilter
from .pipeline import FilterConfig, FilterPipeline, build_filters
from .pool_age_filter import MaxPoolAgeFilter
from .pool_size_filter import PoolSizeFilter
from .protocol import Filter, FilterResult
from .renounced_filter import RenouncedFreezeFilter

__all__ = [
    # Contract
    "Filter",
    "FilterResult",
    # Pipeline
    "FilterConfig",
    "FilterPipeline",
    "build_filters",
    # Filters
    "BurnFilter",
    "RenouncedFreezeFilter",
    "MutableFilter",
    "PoolSizeFilter",
    "NameSymbolFilter",
    "MaxPoolAgeFilter",
    "MarketCapFilter",
    # Helpers
    "BURN_SINKS",
    "OffchainDescriptor",
    "fetch_burned_supply",
    "market_cap",
]
