"""
Token metadata lookup.

Metadata lives in a Metaplex metadata account: the PDA of
["metadata", program id, mint] under the token metadata program. Authority
flags come from the mint account itself.
"""
from __future__ import annotations

import asyncio
import logging
import struct
from dataclasses import dataclass
from typing import Optional

from solders.pubkey import Pubkey

from pool_sniper.errors import MetadataFetchError

from .models import AssetMetadata
from .rpc_client import SolanaRpcClient

logger = logging.getLogger(__name__)

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")
METADATA_SEED = b"metadata"

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_CREATOR_SIZE = 34  # address (32) + verified (u8) + share (u8)


@dataclass(frozen=True)
class MetadataAccount:
    """Fields of a decoded Metaplex metadata account."""

    update_authority: bytes
    mint: bytes
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    creator_count: int
    primary_sale_happened: bool
    is_mutable: bool


class _Reader:
    """Sequential little-endian reader over account bytes."""

    def __init__(self, data: bytes):
        self._data = data
        self._offset = 0

    def take(self, size: int) -> bytes:
        end = self._offset + size
        if end > len(self._data):
            raise MetadataFetchError(
                f"Metadata account truncated at offset {self._offset} (need {size} bytes)"
            )
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def unpack(self, layout: struct.Struct) -> int:
        return layout.unpack(self.take(layout.size))[0]

    def string(self) -> str:
        length = self.unpack(_U32)
        # Fixed-width fields are padded with NULs
        return self.take(length).decode("utf-8", errors="replace").rstrip("\x00").strip()


def decode_metadata_account(data: bytes) -> MetadataAccount:
    """
    Decode the borsh layout of a Metaplex metadata account.

    Raises:
        MetadataFetchError: If the data is truncated
    """
    reader = _Reader(data)
    reader.take(1)  # account key
    update_authority = reader.take(32)
    mint = reader.take(32)
    name = reader.string()
    symbol = reader.string()
    uri = reader.string()
    seller_fee = reader.unpack(_U16)

    creator_count = 0
    if reader.unpack(_U8):
        creator_count = reader.unpack(_U32)
        reader.take(creator_count * _CREATOR_SIZE)

    primary_sale_happened = bool(reader.unpack(_U8))
    is_mutable = bool(reader.unpack(_U8))

    return MetadataAccount(
        update_authority=update_authority,
        mint=mint,
        name=name,
        symbol=symbol,
        uri=uri,
        seller_fee_basis_points=seller_fee,
        creator_count=creator_count,
        primary_sale_happened=primary_sale_happened,
        is_mutable=is_mutable,
    )




def metadata_address(mint: str, program_id: Pubkey = METADATA_PROGRAM_ID) -> Pubkey:
    """Metaplex metadata PDA for `mint`."""
    address, _bump = Pubkey.find_program_address(
        [METADATA_SEED, bytes(program_id), bytes(Pubkey.from_string(mint))],
        program_id,
    )
    return address


class RpcMetadataProvider:
    """
    MetadataProvider backed by RPC reads.

    Usage:
        provider = RpcMetadataProvider(rpc)
        metadata = await provider.fetch(mint)
    """

    def __init__(self, rpc: SolanaRpcClient, program_id: Pubkey = METADATA_PROGRAM_ID):
        self._rpc = rpc
        self._program_id = program_id

    async def fetch(self, mint: str) -> Optional[AssetMetadata]:
        """
        Fetch metadata and authority flags for a mint.

        Returns:
            AssetMetadata, or None when the mint has no metadata account
        """
        address = metadata_address(mint, self._program_id)
        data, mint_info = await asyncio.gather(
            self._rpc.get_account_data(str(address)),
            self._rpc.get_mint_info(mint),
        )

        if data is None:
            logger.debug(f"No metadata account for {mint}")
            return None

        try:
            account = decode_metadata_account(data)
        except MetadataFetchError as e:
            e.mint = mint
            raise

        return AssetMetadata(
            name=account.name,
            symbol=account.symbol,
            uri=account.uri,
            is_mutable=account.is_mutable,
            mint_authority_present=mint_info.mint_authority_present,
            freeze_authority_present=mint_info.freeze_authority_present,
        )
