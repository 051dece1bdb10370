"""
Exception hierarchy for the sniper.

Workflows never let these escape: the engine catches them at the workflow
boundary and reports the outcome through logging and alerts.
"""
from __future__ import annotations

from typing import Optional


class SniperError(Exception):
    """Base exception for all sniper errors."""


class ConfigError(SniperError):
    """Raised when configuration is missing or malformed."""


class ResolutionError(SniperError):
    """Raised when a pool cannot be resolved to full trade parameters."""

    def __init__(self, message: str, pool_id: Optional[str] = None):
        super().__init__(message)
        self.pool_id = pool_id


class MetadataFetchError(SniperError):
    """Raised when token metadata cannot be fetched or decoded."""

    def __init__(self, message: str, mint: Optional[str] = None):
        super().__init__(message)
        self.mint = mint


class RpcError(SniperError):
    """Base exception for JSON-RPC errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class RateLimitError(RpcError):
    """Rate limit exceeded."""
    pass
