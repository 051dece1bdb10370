"""
Per-asset in-flight guard for sell workflows.

Claiming is a synchronous check-and-set, so on a single event loop no other
workflow can interleave between the check and the set.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class InFlightGuard:
    """
    Set of assets with a sell workflow in progress.

    Usage:
        with guard.hold(mint) as claimed:
            if not claimed:
                return  # Already selling
            ...
    """

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def try_claim(self, mint: str) -> bool:
        """Claim `mint`. Returns False if it is already claimed."""
        if mint in self._in_flight:
            return False
        self._in_flight.add(mint)
        return True

    def release(self, mint: str) -> None:
        self._in_flight.discard(mint)

    def is_in_flight(self, mint: str) -> bool:
        return mint in self._in_flight

    @contextmanager
    def hold(self, mint: str) -> Iterator[bool]:
        """
        Claim for the duration of a block.

        Yields whether the claim succeeded. Only a successful claim is
        released on exit.
        """
        claimed = self.try_claim(mint)
        try:
            yield claimed
        finally:
            if claimed:
                self.release(mint)

    def __len__(self) -> int:
        return len(self._in_flight)

    def __contains__(self, mint: object) -> bool:
        return mint in self._in_flight
