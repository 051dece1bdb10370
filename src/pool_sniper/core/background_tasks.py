"""
BackgroundTasksManager - Manages async background tasks.

Handles periodic tasks:
- Exit monitoring (re-checks open positions so duration exits fire
  without a wallet event)
- Snipe list refresh
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from pool_sniper.execution.engine import TradeExecutionEngine
    from pool_sniper.execution.snipe_list import SnipeListCache

logger = logging.getLogger(__name__)


@dataclass
class BackgroundTaskConfig:
    """Configuration for background tasks."""

    # Exit monitoring
    exit_check_interval_seconds: float = 2.0
    exit_check_enabled: bool = True

    # Snipe list
    snipe_list_refresh_interval_seconds: float = 30.0
    snipe_list_enabled: bool = False


class BackgroundTasksManager:
    """
    Manages background async tasks for the sniper.

    Tasks run in the background and survive errors in a single iteration.
    The manager handles graceful shutdown.

    Usage:
        manager = BackgroundTasksManager(
            engine=engine,
            snipe_list=snipe_list,
            config=BackgroundTaskConfig(),
        )
        await manager.start()
        # ... bot runs ...
        await manager.stop()
    """

    def __init__(
        self,
        engine: Optional["TradeExecutionEngine"] = None,
        snipe_list: Optional["SnipeListCache"] = None,
        config: Optional[BackgroundTaskConfig] = None,
    ) -> None:
        """
        Initialize the background tasks manager.

        Args:
            engine: Engine whose open positions are re-checked for exits
            snipe_list: Snipe list to reload periodically
            config: Task configuration
        """
        self._engine = engine
        self._snipe_list = snipe_list
        self._config = config or BackgroundTaskConfig()

        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        """Whether the manager is running."""
        return self._running

    async def start(self) -> None:
        """Start all background tasks."""
        if self._running:
            logger.warning("BackgroundTasksManager already running")
            return

        logger.info("Starting background tasks...")
        self._running = True
        self._stop_event.clear()

        if self._config.exit_check_enabled and self._engine:
            task = asyncio.create_task(
                self._exit_check_loop(),
                name="exit_check",
            )
            self._tasks.append(task)
            logger.info(
                f"Started exit check task "
                f"(interval={self._config.exit_check_interval_seconds}s)"
            )

        if self._config.snipe_list_enabled and self._snipe_list:
            # Load once up front so the first pools are checked against the list
            self._snipe_list.refresh()
            task = asyncio.create_task(
                self._snipe_list_loop(),
                name="snipe_list_refresh",
            )
            self._tasks.append(task)
            logger.info(
                f"Started snipe list refresh task "
                f"(interval={self._config.snipe_list_refresh_interval_seconds}s)"
            )

        logger.info(f"Background tasks started: {len(self._tasks)} tasks")

    async def stop(self) -> None:
        """Stop all background tasks gracefully."""
        if not self._running:
            return

        logger.info("Stopping background tasks...")
        self._running = False
        self._stop_event.set()

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        logger.info("Background tasks stopped")

    async def _wait_interval(self, interval: float) -> bool:
        """Sleep for `interval` or until stopped. Returns False when stopped."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            return False
        except asyncio.TimeoutError:
            return self._running

    async def _exit_check_loop(self) -> None:
        """
        Periodically re-run the sell workflow for open positions.

        Only positions whose token account is known are checked; the
        account is learned from the first wallet event after a buy.
        """
        interval = self._config.exit_check_interval_seconds

        while self._running:
            try:
                if not await self._wait_interval(interval):
                    break

                await self.check_exits()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in exit check: {e}")
                await asyncio.sleep(5)

    async def check_exits(self) -> int:
        """
        Run one exit check over all open positions.

        Returns:
            Number of sells confirmed
        """
        sold = 0
        for position in self._engine.tracker.get_open_positions():
            if not position.token_account:
                continue
            if self._engine.guard.is_in_flight(position.mint):
                continue

            result = await self._engine.sell(position.token_account)
            if result.confirmed:
                sold += 1

        if sold:
            logger.info(f"Exit check: {sold} positions sold")
        return sold

    async def _snipe_list_loop(self) -> None:
        """Periodically reload the snipe list file."""
        interval = self._config.snipe_list_refresh_interval_seconds

        while self._running:
            try:
                if not await self._wait_interval(interval):
                    break

                self._snipe_list.refresh()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error refreshing snipe list: {e}")
                await asyncio.sleep(5)
