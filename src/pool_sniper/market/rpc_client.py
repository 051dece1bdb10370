"""
Solana read client.

Wraps solana-py's AsyncClient with rate limiting and retries, and converts
its responses into the market models the filters and the engine use.
Transaction submission is not done here; that belongs to the adapter's
SettlementExecutor.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solana.rpc.types import TokenAccountOpts
from solders.pubkey import Pubkey

from pool_sniper.errors import RateLimitError, RpcError

from .models import (
    ChainStateReference,
    MintInfo,
    PoolReference,
    PoolReserves,
    TokenAccountInfo,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_mint_info(parsed: dict) -> MintInfo:
    """Build MintInfo from a jsonParsed SPL mint account."""
    info = parsed["info"]
    return MintInfo(
        supply=int(info["supply"]),
        decimals=int(info["decimals"]),
        mint_authority_present=info.get("mintAuthority") is not None,
        freeze_authority_present=info.get("freezeAuthority") is not None,
    )


def _http_status(error: SolanaRpcException) -> Optional[int]:
    """HTTP status of the transport failure behind `error`, if any."""
    response = getattr(error.__cause__, "response", None)
    return getattr(response, "status_code", None)


class SolanaRpcClient:
    """
    Async Solana reader.

    Features:
        - Rate limiting to avoid provider throttling
        - Automatic retries with exponential backoff on 429/5xx/timeouts
        - JSON-RPC error responses raised as RpcError without retrying

    Usage:
        async with SolanaRpcClient("https://api.mainnet-beta.solana.com") as rpc:
            mint = await rpc.get_mint_info(mint_address)
            balance = await rpc.get_token_balance(vault_address)
    """

    def __init__(
        self,
        endpoint: str,
        client: Optional[AsyncClient] = None,
        commitment: str = "confirmed",
        rate_limit: float = 20.0,  # requests per second
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_delay: float = 0.5,
    ):
        """
        Initialize the RPC client.

        Args:
            endpoint: HTTP RPC endpoint
            client: Optional AsyncClient (created if not provided)
            commitment: Commitment level for reads
            rate_limit: Maximum requests per second
            timeout: Request timeout in seconds
            max_retries: Number of attempts for failed requests
            retry_delay: Base delay between retries (exponential backoff)
        """
        self._commitment = Commitment(commitment)
        self._client = client or AsyncClient(endpoint, commitment=self._commitment, timeout=timeout)
        self._owns_client = client is None
        self._rate_limit = rate_limit
        self._max_retries = max_retries
        self._retry_delay = retry_delay

        # Rate limiting
        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying client if this reader created it."""
        if self._owns_client:
            await self._client.close()

    async def _rate_limit_wait(self) -> None:
        """Wait if necessary to respect rate limits."""
        async with self._rate_lock:
            now = time.time()
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self._rate_limit:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.time())

    async def _request(self, method: str, call: Callable[[], Awaitable[T]]) -> T:
        """
        Run one AsyncClient call with rate limiting and retries.

        Raises:
            RpcError: On HTTP 4xx, JSON-RPC errors, or exhausted retries
        """
        last_error: Optional[RpcError] = None

        for attempt in range(self._max_retries):
            await self._rate_limit_wait()
            try:
                return await call()

            except RPCException as e:
                error = e.args[0] if e.args else e
                raise RpcError(
                    f"{method} failed: {getattr(error, 'message', error)}",
                    code=getattr(error, "code", None),
                ) from e

            except SolanaRpcException as e:
                status = _http_status(e)
                delay = self._retry_delay * (2 ** attempt)

                if status == 429:
                    delay *= 2
                    logger.warning(f"Rate limited on {method}, waiting {delay}s before retry")
                    last_error = RateLimitError("Rate limit exceeded", status_code=429)
                elif status is not None and 400 <= status < 500:
                    raise RpcError(f"{method} failed: HTTP {status}", status_code=status) from e
                else:
                    logger.warning(
                        f"{method} failed: {e.__cause__ or e}, "
                        f"retry {attempt + 1}/{self._max_retries}"
                    )
                    last_error = RpcError(f"{method} failed: {e.__cause__ or e}", status_code=status)

                await asyncio.sleep(delay)

        raise last_error or RpcError(f"{method} failed after retries")

    # =========================================================================
    # Accounts
    # =========================================================================

    async def get_account_data(self, address: str) -> Optional[bytes]:
        """Raw account data, or None if the account does not exist."""
        response = await self._request(
            "getAccountInfo",
            lambda: self._client.get_account_info(Pubkey.from_string(address)),
        )
        if response.value is None:
            return None
        return bytes(response.value.data)

    async def _get_parsed_account(self, address: str) -> Optional[dict]:
        response = await self._request(
            "getAccountInfo",
            lambda: self._client.get_account_info_json_parsed(Pubkey.from_string(address)),
        )
        if response.value is None:
            return None
        return response.value.data.parsed

    async def get_mint_info(self, mint: str) -> MintInfo:
        """
        Fetch a mint account.

        Raises:
            RpcError: If the mint account does not exist
        """
        parsed = await self._get_parsed_account(mint)
        if parsed is None:
            raise RpcError(f"Mint account {mint} not found")
        return parse_mint_info(parsed)

    async def get_token_account(self, account_id: str) -> Optional[TokenAccountInfo]:
        parsed = await self._get_parsed_account(account_id)
        if parsed is None:
            return None

        info = parsed["info"]
        return TokenAccountInfo(
            account_id=account_id,
            mint=info["mint"],
            owner=info["owner"],
            amount=int(info["tokenAmount"]["amount"]),
        )

    # =========================================================================
    # Balances
    # =========================================================================

    async def get_token_balance(self, token_account: str) -> int:
        """Raw balance of a token account."""
        response = await self._request(
            "getTokenAccountBalance",
            lambda: self._client.get_token_account_balance(Pubkey.from_string(token_account)),
        )
        return int(response.value.amount)

    async def get_holder_balance(self, mint: str, owner: str) -> int:
        """Sum of `mint` balances across every token account of `owner`."""
        response = await self._request(
            "getTokenAccountsByOwner",
            lambda: self._client.get_token_accounts_by_owner_json_parsed(
                Pubkey.from_string(owner),
                TokenAccountOpts(mint=Pubkey.from_string(mint)),
            ),
        )
        return sum(
            int(entry.account.data.parsed["info"]["tokenAmount"]["amount"])
            for entry in response.value
        )

    async def get_pool_reserves(self, pool: PoolReference) -> PoolReserves:
        """Fetch both vault balances of a pool concurrently."""
        base, quote = await asyncio.gather(
            self.get_token_balance(pool.base_vault),
            self.get_token_balance(pool.quote_vault),
        )
        return PoolReserves(base=base, quote=quote)

    # =========================================================================
    # Chain state
    # =========================================================================

    async def get_latest_blockhash(self) -> ChainStateReference:
        response = await self._request(
            "getLatestBlockhash",
            lambda: self._client.get_latest_blockhash(self._commitment),
        )
        return ChainStateReference(
            blockhash=str(response.value.blockhash),
            last_valid_block_height=response.value.last_valid_block_height,
        )
