"""
Test fixtures for pool filters.

IMPORTANT: Market data and metadata providers are always mocked.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from pool_sniper.market.models import (
    AssetMetadata,
    MintInfo,
    PoolReference,
    PoolReserves,
    TradableAsset,
)


# =============================================================================
# Pool Fixtures
# =============================================================================


@pytest.fixture
def sample_pool():
    """Pool with a 6-decimal base token and a 0-decimal quote for easy math."""
    return PoolReference(
        pool_id="pool_abc",
        base=TradableAsset(mint="mint_base", decimals=6),
        quote=TradableAsset(mint="mint_quote", decimals=0),
        base_vault="vault_base",
        quote_vault="vault_quote",
        lp_mint="mint_lp",
        open_time=1_700_000_000,
    )


@pytest.fixture
def sample_metadata():
    """Immutable metadata with both authorities renounced."""
    return AssetMetadata(
        name="Pepe Coin",
        symbol="PEPE",
        uri="https://example.com/pepe.json",
        is_mutable=False,
        mint_authority_present=False,
        freeze_authority_present=False,
    )


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def mock_market():
    """Market data provider with a healthy pool by default."""
    market = MagicMock()
    market.get_mint_info = AsyncMock(
        return_value=MintInfo(
            supply=1_000_000,
            decimals=6,
            mint_authority_present=False,
            freeze_authority_present=False,
        )
    )
    market.get_holder_balance = AsyncMock(return_value=0)
    market.get_token_balance = AsyncMock(return_value=10)
    market.get_pool_reserves = AsyncMock(return_value=PoolReserves(base=1_000, quote=10))
    return market


@pytest.fixture
def mock_metadata_provider(sample_metadata):
    provider = MagicMock()
    provider.fetch = AsyncMock(return_value=sample_metadata)
    return provider


class StubFilter:
    """Filter returning a fixed result and recording its calls."""

    def __init__(self, name, result=None, requires_metadata=False, error=None):
        self.name = name
        self.requires_metadata = requires_metadata
        self._result = result
        self._error = error
        self.calls = []

    async def evaluate(self, pool, metadata):
        self.calls.append(metadata)
        if self._error is not None:
            raise self._error
        return self._result


@pytest.fixture
def stub_filter():
    return StubFilter
