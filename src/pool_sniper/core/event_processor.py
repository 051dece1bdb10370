"""
Event dispatcher for feed notifications.

Turns pool and wallet notifications into buy and sell workflows:

1. Pool discovered: ignored if its base mint is already cached or the pool
   opened before the bot started; otherwise cached and bought.
2. Wallet balance changed: ignored for the quote mint; otherwise sold.

Each workflow runs as its own tracked task so a slow buy never blocks the
feed.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Set

from pool_sniper.market.models import (
    FeedEvent,
    PoolDiscoveredEvent,
    WalletBalanceChangedEvent,
)

from .pool_cache import PoolCache

if TYPE_CHECKING:
    from pool_sniper.execution.engine import TradeExecutionEngine
    from pool_sniper.market.providers import EventFeed

logger = logging.getLogger(__name__)


@dataclass
class DispatcherStats:
    """Counters for dispatched events."""

    pools_seen: int = 0
    pools_ignored: int = 0
    buys_started: int = 0
    wallet_events: int = 0
    sells_started: int = 0


class EventDispatcher:
    """
    Routes feed events to the execution engine.

    Usage:
        dispatcher = EventDispatcher(engine, pool_cache, quote_mint)
        await dispatcher.run(adapter.feed, stop_event)
    """

    def __init__(
        self,
        engine: "TradeExecutionEngine",
        pool_cache: PoolCache,
        quote_mint: str,
        run_timestamp: Optional[float] = None,
        auto_sell: bool = True,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            engine: Engine running the workflows
            pool_cache: Shared base mint -> pool id cache
            quote_mint: Mint of the quote token; its wallet events are ignored
            run_timestamp: Pools opened at or before this Unix time are ignored
                           (defaults to now)
            auto_sell: When False, wallet events never start a sell
        """
        self._engine = engine
        self._pool_cache = pool_cache
        self._quote_mint = quote_mint
        self._run_timestamp = int(run_timestamp if run_timestamp is not None else time.time())
        self._auto_sell = auto_sell

        self._tasks: Set[asyncio.Task] = set()
        self._stats = DispatcherStats()

    @property
    def stats(self) -> DispatcherStats:
        return self._stats

    @property
    def run_timestamp(self) -> int:
        return self._run_timestamp

    @property
    def pending(self) -> int:
        """Number of workflows still running."""
        return len(self._tasks)

    def dispatch(self, event: FeedEvent) -> Optional[asyncio.Task]:
        """
        Start the workflow for an event, if any.

        Returns:
            The spawned task, or None when the event is ignored
        """
        if isinstance(event, PoolDiscoveredEvent):
            return self.on_pool_discovered(event)
        if isinstance(event, WalletBalanceChangedEvent):
            return self.on_wallet_changed(event)

        logger.warning(f"Ignoring unknown event type: {type(event).__name__}")
        return None

    def on_pool_discovered(self, event: PoolDiscoveredEvent) -> Optional[asyncio.Task]:
        self._stats.pools_seen += 1

        if event.base_mint in self._pool_cache or event.open_time <= self._run_timestamp:
            self._stats.pools_ignored += 1
            return None

        self._pool_cache.save(event.base_mint, event.pool_id)
        self._stats.buys_started += 1
        logger.info(f"New pool {event.pool_id} for {event.base_mint}")
        return self._spawn(self._engine.buy(event.pool_id), f"buy_{event.base_mint}")

    def on_wallet_changed(self, event: WalletBalanceChangedEvent) -> Optional[asyncio.Task]:
        self._stats.wallet_events += 1

        if event.mint == self._quote_mint or not self._auto_sell:
            return None

        self._stats.sells_started += 1
        return self._spawn(self._engine.sell(event.account_id), f"sell_{event.mint}")

    async def run(self, feed: "EventFeed", stop_event: asyncio.Event) -> None:
        """Consume the feed until it ends or `stop_event` is set."""
        logger.info("Listening for pool and wallet events...")
        events = feed.events()
        try:
            async for event in events:
                if stop_event.is_set():
                    break
                try:
                    self.dispatch(event)
                except Exception as e:
                    logger.error(f"Error dispatching {type(event).__name__}: {e}")
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()
        logger.info("Event feed stopped")

    async def drain(self) -> None:
        """Wait for every running workflow to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error(f"Workflow {task.get_name()} crashed: {task.exception()}")
