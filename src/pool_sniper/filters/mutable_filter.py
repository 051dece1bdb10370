"""
Metadata mutability and social presence check.

Social links live in the `extensions` map of the off-chain JSON descriptor
the metadata uri points to. Any failure to fetch or parse that descriptor
counts as "no socials", never as a filter fault.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, ValidationError

from pool_sniper.market.models import AssetMetadata, PoolReference

from .protocol import FilterResult

logger = logging.getLogger(__name__)

DESCRIPTOR_TIMEOUT_SECONDS = 5.0


class OffchainDescriptor(BaseModel):
    """The part of the off-chain token JSON this filter reads."""

    model_config = ConfigDict(extra="ignore")

    extensions: Optional[dict[str, Any]] = None

    def has_socials(self) -> bool:
        """True if any extension value is a non-blank string."""
        if not self.extensions:
            return False
        return any(
            isinstance(value, str) and value.strip()
            for value in self.extensions.values()
        )


class MutableFilter:
    """Fails on mutable metadata and/or missing social links."""

    name = "MutableSocials"
    requires_metadata = True

    def __init__(
        self,
        check_mutable: bool = True,
        check_socials: bool = False,
        http: Optional[aiohttp.ClientSession] = None,
        timeout: float = DESCRIPTOR_TIMEOUT_SECONDS,
    ):
        self._check_mutable = check_mutable
        self._check_socials = check_socials
        self._http = http
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def evaluate(
        self,
        pool: PoolReference,
        metadata: Optional[AssetMetadata],
    ) -> FilterResult:
        if metadata is None:
            return FilterResult.failed(self.name, "Metadata not available")

        # Unknown mutability is treated as mutable
        is_mutable = self._check_mutable and metadata.is_mutable is not False
        has_socials = not self._check_socials or await self._has_socials(metadata.uri)

        problems = []
        if is_mutable:
            problems.append("metadata is mutable")
        if not has_socials:
            problems.append("has no socials")

        if problems:
            return FilterResult.failed(self.name, f"Token {' and '.join(problems)}")
        return FilterResult.passed()

    async def _has_socials(self, uri: str) -> bool:
        if not uri or not uri.startswith(("http://", "https://")):
            logger.debug(f"Socials check: unusable uri {uri!r}")
            return False

        descriptor = await self._fetch_descriptor(uri)
        return descriptor is not None and descriptor.has_socials()

    async def _fetch_descriptor(self, uri: str) -> Optional[OffchainDescriptor]:
        """Fetch and parse the descriptor, returning None on any failure."""
        try:
            if self._http is not None:
                return await self._get_descriptor(self._http, uri)
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                return await self._get_descriptor(session, uri)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            # ValueError covers both JSON decoding and pydantic ValidationError
            logger.warning(f"Socials check: failed to fetch {uri}: {e}")
            return None

    async def _get_descriptor(
        self,
        session: aiohttp.ClientSession,
        uri: str,
    ) -> OffchainDescriptor:
        async with session.get(uri, timeout=self._timeout) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)

        if not isinstance(data, dict):
            raise ValueError(f"Descriptor is not an object ({type(data).__name__})")
        try:
            return OffchainDescriptor.model_validate(data)
        except ValidationError as e:
            raise ValueError(str(e)) from e
