"""
Tests for feed event dispatch.

Pools become buys, wallet changes become sells, and nothing older than
the bot is ever bought.
"""
import asyncio

import pytest

from pool_sniper.core import EventDispatcher
from pool_sniper.market.models import PoolDiscoveredEvent, WalletBalanceChangedEvent

WSOL = "So11111111111111111111111111111111111111112"
RUN_TIMESTAMP = 1_700_000_000


class TestPoolDiscovered:
    """Tests for new pool handling."""

    @pytest.mark.asyncio
    async def test_new_pool_starts_buy(self, dispatcher, mock_engine, pool_cache, new_pool_event):
        task = dispatcher.dispatch(new_pool_event)
        await task

        mock_engine.buy.assert_awaited_once_with("pool_abc")
        assert pool_cache.get("mint_base") == "pool_abc"
        assert dispatcher.stats.buys_started == 1

    @pytest.mark.asyncio
    async def test_cached_mint_ignored(self, dispatcher, mock_engine, pool_cache, new_pool_event):
        """A second pool update for the same mint never buys twice."""
        pool_cache.save("mint_base", "pool_abc")

        assert dispatcher.dispatch(new_pool_event) is None
        mock_engine.buy.assert_not_called()
        assert dispatcher.stats.pools_ignored == 1

    @pytest.mark.asyncio
    async def test_pool_opened_before_start_ignored(self, dispatcher, mock_engine):
        """Pools opened at or before the run timestamp are never bought."""
        for open_time in (RUN_TIMESTAMP - 100, RUN_TIMESTAMP):
            event = PoolDiscoveredEvent(
                pool_id=f"pool_{open_time}",
                base_mint=f"mint_{open_time}",
                quote_mint=WSOL,
                open_time=open_time,
            )
            assert dispatcher.dispatch(event) is None

        mock_engine.buy.assert_not_called()
        assert dispatcher.stats.pools_seen == 2

    def test_run_timestamp_defaults_to_now(self, mock_engine, pool_cache):
        dispatcher = EventDispatcher(mock_engine, pool_cache, WSOL)

        assert dispatcher.run_timestamp > RUN_TIMESTAMP


class TestWalletChanged:
    """Tests for wallet balance changes."""

    @pytest.mark.asyncio
    async def test_token_change_starts_sell(self, dispatcher, mock_engine, wallet_event):
        await dispatcher.dispatch(wallet_event)

        mock_engine.sell.assert_awaited_once_with("acct_base")

    @pytest.mark.asyncio
    async def test_quote_change_ignored(self, dispatcher, mock_engine):
        event = WalletBalanceChangedEvent(account_id="acct_wsol", mint=WSOL, amount=5)

        assert dispatcher.dispatch(event) is None
        mock_engine.sell.assert_not_called()

    @pytest.mark.asyncio
    async def test_auto_sell_off_ignores_wallet(self, mock_engine, pool_cache, wallet_event):
        dispatcher = EventDispatcher(
            mock_engine, pool_cache, WSOL, run_timestamp=RUN_TIMESTAMP, auto_sell=False
        )

        assert dispatcher.dispatch(wallet_event) is None
        assert dispatcher.stats.wallet_events == 1


class TestRun:
    """Tests for consuming a feed."""

    @pytest.mark.asyncio
    async def test_consumes_feed_and_drains(
        self, dispatcher, mock_engine, list_feed, new_pool_event, wallet_event
    ):
        feed = list_feed([new_pool_event, wallet_event])

        await dispatcher.run(feed, asyncio.Event())
        await dispatcher.drain()

        assert mock_engine.buy.await_count == 1
        assert mock_engine.sell.await_count == 1
        assert dispatcher.pending == 0
        assert feed.closed

    @pytest.mark.asyncio
    async def test_stops_when_event_set(self, dispatcher, mock_engine, list_feed, new_pool_event):
        stop = asyncio.Event()
        stop.set()

        await dispatcher.run(list_feed([new_pool_event]), stop)

        mock_engine.buy.assert_not_called()

    @pytest.mark.asyncio
    async def test_crashed_workflow_is_contained(self, dispatcher, mock_engine, new_pool_event):
        mock_engine.buy.side_effect = RuntimeError("boom")

        task = dispatcher.dispatch(new_pool_event)
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0)

        assert dispatcher.pending == 0
