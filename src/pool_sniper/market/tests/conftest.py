"""
Test fixtures for the market layer.

IMPORTANT: All RPC calls must be mocked.
Never hit a real RPC endpoint in tests.
"""
import struct
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from solana.exceptions import SolanaRpcException
from solders.pubkey import Pubkey

from pool_sniper.market.models import PoolReference, TradableAsset
from pool_sniper.market.rpc_client import SolanaRpcClient


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def sample_pool():
    """A resolved pool with a 6-decimal base and WSOL quote."""
    return PoolReference(
        pool_id=str(Pubkey.new_unique()),
        base=TradableAsset(
            mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", decimals=6, symbol="PEPE"
        ),
        quote=TradableAsset(mint="So11111111111111111111111111111111111111112", decimals=9),
        base_vault=str(Pubkey.new_unique()),
        quote_vault=str(Pubkey.new_unique()),
        lp_mint=str(Pubkey.new_unique()),
        open_time=1_700_000_000,
    )


# =============================================================================
# RPC Fixtures
# =============================================================================


@pytest.fixture
def mock_solana():
    """AsyncClient stand-in; each test sets the responses it needs."""
    client = MagicMock()
    client.get_account_info = AsyncMock()
    client.get_account_info_json_parsed = AsyncMock()
    client.get_token_account_balance = AsyncMock()
    client.get_token_accounts_by_owner_json_parsed = AsyncMock()
    client.get_latest_blockhash = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def rpc_client(mock_solana):
    return SolanaRpcClient("http://localhost:8899", client=mock_solana, retry_delay=0)


class HttpFailure(Exception):
    """Transport error carrying an HTTP response, like httpx.HTTPStatusError."""

    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.response = SimpleNamespace(status_code=status_code)


@pytest.fixture
def transport_error():
    """Build the SolanaRpcException solana-py raises for a failed request."""
    def _build(status_code=None):
        cause = HttpFailure(status_code) if status_code else TimeoutError("timed out")
        error = SolanaRpcException(cause, _build, None, "request")
        error.__cause__ = cause
        return error
    return _build


# =============================================================================
# Account Data Builders
# =============================================================================


def _borsh_string(value: str, width: int) -> bytes:
    raw = value.encode("utf-8").ljust(width, b"\x00")
    return struct.pack("<I", len(raw)) + raw


@pytest.fixture
def build_metadata_account():
    """Build raw Metaplex metadata account bytes."""
    def _build(
        name="Pepe Coin",
        symbol="PEPE",
        uri="https://example.com/pepe.json",
        is_mutable=True,
        creators=0,
        seller_fee=500,
    ):
        data = b"\x04"  # account key
        data += b"\x01" * 32  # update authority
        data += b"\x02" * 32  # mint
        data += _borsh_string(name, 32)
        data += _borsh_string(symbol, 10)
        data += _borsh_string(uri, 200)
        data += struct.pack("<H", seller_fee)
        if creators:
            data += b"\x01" + struct.pack("<I", creators) + b"\x03" * (34 * creators)
        else:
            data += b"\x00"
        data += b"\x01"  # primary sale happened
        data += b"\x01" if is_mutable else b"\x00"
        return data
    return _build


AUTHORITY = "11111111111111111111111111111111"


@pytest.fixture
def mint_parsed():
    """jsonParsed SPL mint account."""
    def _build(supply=1_000_000, decimals=6, mint_authority=True, freeze_authority=False):
        return {
            "type": "mint",
            "info": {
                "supply": str(supply),
                "decimals": decimals,
                "isInitialized": True,
                "mintAuthority": AUTHORITY if mint_authority else None,
                "freezeAuthority": AUTHORITY if freeze_authority else None,
            },
        }
    return _build
