"""
Pool Sniper - Main Entry Point

Watches for newly opened liquidity pools, gates them through the filter
pipeline, buys, and sells again on take-profit, stop-loss or holding-time
exits.

Usage:
    python -m pool_sniper.main
    python -m pool_sniper.main --monitor-only   # Run filters, never buy
    python -m pool_sniper.main --log-level DEBUG

Configuration:
    The bot reads configuration from:
    1. Environment variables (optionally from a .env file)
    2. Command line arguments

Environment Variables:
    SNIPER_ADAPTER            Chain adapter factory, "module:function" (required)
    RPC_ENDPOINT              JSON-RPC endpoint passed to the adapter (required)
    COMMITMENT_LEVEL          Commitment for reads (default: confirmed)
    LOG_LEVEL                 Logging level (DEBUG/INFO/WARNING/ERROR)
    QUOTE_MINT                Quote token mint (default: WSOL)
    QUOTE_DECIMALS            Quote token decimals (default: 9)
    QUOTE_SYMBOL              Quote token symbol (default: WSOL)
    QUOTE_AMOUNT              Quote spent per buy (default: 0.01)
    AUTO_BUY                  "false" = monitor only (default: true)
    AUTO_BUY_DELAY            Delay before buying, ms (default: 0)
    ONE_TOKEN_AT_A_TIME       Serialize buys (default: true)
    MAX_BUY_RETRIES           Buy submission attempts (default: 10)
    BUY_SLIPPAGE              Buy slippage percent (default: 20)
    AUTO_SELL                 Sell on exit conditions (default: true)
    AUTO_SELL_DELAY           Delay before selling, ms (default: 0)
    MAX_SELL_RETRIES          Sell submission attempts (default: 10)
    SELL_SLIPPAGE             Sell slippage percent (default: 20)
    RETRY_DELAY_SECONDS       Pause between submission attempts (default: 0.5)
    COMPUTE_UNIT_LIMIT        Compute unit limit per swap (default: 101337)
    COMPUTE_UNIT_PRICE        Default priority fee, micro-lamports (default: 421197)
    BUY_PRIORITY_FEE_MICROLAMPORTS / SELL_PRIORITY_FEE_MICROLAMPORTS
                              Per-direction priority fee (default: COMPUTE_UNIT_PRICE)
    USE_COMPUTE_BUDGET        Add compute budget instructions (default: true)
    TAKE_PROFIT_PERCENTAGE    Take profit, percent (default: 0 = off)
    STOP_LOSS_PERCENTAGE      Stop loss, percent (default: 0 = off)
    MAX_SELL_DURATION_SECONDS Sell after holding this long (default: 0 = off)
    SELL_TIMED_NAME_KEYWORDS  Comma list; names containing one are sold after
    SELL_TIMED_NAME_DURATION_SECONDS (default: 60)
    PRICE_CHECK_INTERVAL      Exit check interval, ms (default: 2000)
    FILTER_CHECK_INTERVAL     Filter re-check interval, ms (default: 0 = single check)
    FILTER_CHECK_DURATION     Filter re-check window, ms (default: 0)
    CONSECUTIVE_FILTER_MATCHES Passes in a row required (default: 1)
    CHECK_IF_MUTABLE / CHECK_IF_SOCIALS / CHECK_IF_MINT_IS_RENOUNCED /
    CHECK_IF_FREEZABLE / CHECK_IF_BURNED
                              Filter toggles
    MIN_BURNED_FRACTION       LP fraction that must be burned (default: 1)
    MIN_POOL_SIZE / MAX_POOL_SIZE
                              Quote reserve bounds (default: 5 / 50, 0 = off)
    MAX_POOL_AGE_SECONDS      Pool age ceiling (default: 3600, 0 = off)
    MIN_MARKET_CAP            Market cap floor in quote units (default: 0 = off)
    FILTER_BLOCKLIST_NAMES / FILTER_BLOCKLIST_SYMBOLS
                              Comma lists, case-insensitive
    USE_SNIPE_LIST            Only buy listed mints (default: false)
    SNIPE_LIST_PATH           Snipe list file (default: snipe-list.txt)
    SNIPE_LIST_REFRESH_INTERVAL Reload interval, ms (default: 30000)
    TELEGRAM_ALERTS_ENABLED   Send Telegram alerts (default: false)
    TELEGRAM_BOT_TOKEN        Telegram bot token for alerts
    TELEGRAM_CHAT_ID          Telegram chat ID for alerts

Chain Adapter:
    SNIPER_ADAPTER names a factory called as factory(config) that returns a
    ChainAdapter (see pool_sniper.market.providers). The adapter supplies
    the event feed, pool resolution, signing and submission.
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import fcntl
import importlib
import logging
import os
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Generator, List, Optional

import aiohttp

from pool_sniper.core import (
    BackgroundTaskConfig,
    BackgroundTasksManager,
    EventDispatcher,
    PoolCache,
)
from pool_sniper.errors import ConfigError
from pool_sniper.execution import (
    ExecutionConfig,
    ExitConfig,
    PositionTracker,
    SnipeListCache,
    TradeExecutionEngine,
)
from pool_sniper.filters import FilterConfig, FilterPipeline, build_filters
from pool_sniper.market.models import TokenAmount
from pool_sniper.market.providers import ChainAdapter
from pool_sniper.monitoring import AlertManager

# Configure logging before anything else logs
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Default PID file location
DEFAULT_PID_FILE = "/tmp/pool-sniper.pid"

WSOL_MINT = "So11111111111111111111111111111111111111112"

STATS_LOG_INTERVAL = 60  # seconds


class SingletonBotError(Exception):
    """Raised when another bot instance is already running."""
    pass


@contextmanager
def singleton_lock(pid_file: str = DEFAULT_PID_FILE) -> Generator[None, None, None]:
    """
    Context manager that ensures only one bot instance runs at a time.

    Uses file locking (fcntl.LOCK_EX | fcntl.LOCK_NB) to prevent multiple
    instances trading from the same wallet.

    Args:
        pid_file: Path to the PID file (default: /tmp/pool-sniper.pid)

    Raises:
        SingletonBotError: If another instance is already running
    """
    pid_path = Path(pid_file)

    # Read existing PID before opening (which would truncate)
    existing_pid = None
    try:
        existing_pid = pid_path.read_text().strip()
    except FileNotFoundError:
        pass

    # "a+" so the file is not truncated before we hold the lock
    fp = open(pid_path, "a+")

    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fp.close()
        if existing_pid:
            raise SingletonBotError(
                f"Another sniper instance is already running (PID: {existing_pid}). "
                f"Kill it with: kill {existing_pid}"
            )
        raise SingletonBotError(
            "Another sniper instance is already running. "
            "Check for existing processes: ps aux | grep pool_sniper"
        )

    # We have the lock - now truncate and write our PID
    fp.seek(0)
    fp.truncate()
    fp.write(str(os.getpid()))
    fp.flush()

    def cleanup():
        try:
            fcntl.flock(fp.fileno(), fcntl.LOCK_UN)
            fp.close()
            pid_path.unlink(missing_ok=True)
        except (OSError, ValueError):
            pass

    atexit.register(cleanup)

    try:
        logger.info(f"Acquired singleton lock (PID: {os.getpid()}, file: {pid_file})")
        yield
    finally:
        cleanup()
        atexit.unregister(cleanup)


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, "true" if default else "false").strip().lower() == "true"


def _env_list(name: str) -> tuple[str, ...]:
    """Comma-separated, trimmed, lower-cased, empties dropped."""
    raw = os.environ.get(name, "")
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


def _env_ms(name: str, default_ms: str) -> float:
    """Millisecond env value as seconds."""
    return float(Decimal(os.environ.get(name, default_ms)) / 1000)


@dataclass
class BotConfig:
    """Complete bot configuration."""

    # Chain
    adapter: str = ""
    rpc_endpoint: str = ""
    commitment: str = "confirmed"

    # Quote token
    quote_mint: str = WSOL_MINT
    quote_decimals: int = 9
    quote_symbol: str = "WSOL"
    quote_amount: Decimal = Decimal("0.01")

    # Buy
    auto_buy: bool = True
    auto_buy_delay_seconds: float = 0
    one_token_at_a_time: bool = True
    max_buy_retries: int = 10
    buy_slippage: Decimal = Decimal("20")

    # Sell
    auto_sell: bool = True
    auto_sell_delay_seconds: float = 0
    max_sell_retries: int = 10
    sell_slippage: Decimal = Decimal("20")

    # Submission
    retry_delay_seconds: float = 0.5
    use_compute_budget: bool = True
    compute_unit_limit: int = 101337
    compute_unit_price: int = 421197
    buy_priority_fee_microlamports: Optional[int] = None
    sell_priority_fee_microlamports: Optional[int] = None

    # Exits
    take_profit_percentage: Decimal = Decimal("0")
    stop_loss_percentage: Decimal = Decimal("0")
    max_sell_duration_seconds: float = 0
    sell_timed_name_keywords: tuple[str, ...] = ()
    sell_timed_name_duration_seconds: float = 60
    price_check_interval_seconds: float = 2.0

    # Filters
    filter_check_interval_seconds: float = 0
    filter_check_duration_seconds: float = 0
    consecutive_filter_matches: int = 1
    check_mutable: bool = False
    check_socials: bool = False
    check_renounced: bool = False
    check_freezable: bool = False
    check_burned: bool = True
    min_burned_fraction: Decimal = Decimal("1")
    min_pool_size: Decimal = Decimal("5")
    max_pool_size: Decimal = Decimal("50")
    max_pool_age_seconds: float = 3600
    min_market_cap: Decimal = Decimal("0")
    blocklist_names: tuple[str, ...] = ()
    blocklist_symbols: tuple[str, ...] = ()

    # Snipe list
    use_snipe_list: bool = False
    snipe_list_path: str = "snipe-list.txt"
    snipe_list_refresh_interval_seconds: float = 30.0

    # Alerts
    telegram_alerts_enabled: bool = False
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    pid_file: str = field(default=DEFAULT_PID_FILE)

    @classmethod
    def from_env(cls) -> "BotConfig":
        """
        Load configuration from environment variables.

        Raises:
            ConfigError: If a numeric value cannot be parsed
        """
        compute_unit_price = os.environ.get("COMPUTE_UNIT_PRICE", "421197")
        try:
            return cls(
                adapter=os.environ.get("SNIPER_ADAPTER", ""),
                rpc_endpoint=os.environ.get("RPC_ENDPOINT", ""),
                commitment=os.environ.get("COMMITMENT_LEVEL", "confirmed"),
                quote_mint=os.environ.get("QUOTE_MINT", WSOL_MINT),
                quote_decimals=int(os.environ.get("QUOTE_DECIMALS", "9")),
                quote_symbol=os.environ.get("QUOTE_SYMBOL", "WSOL"),
                quote_amount=Decimal(os.environ.get("QUOTE_AMOUNT", "0.01")),
                auto_buy=_env_bool("AUTO_BUY", True),
                auto_buy_delay_seconds=_env_ms("AUTO_BUY_DELAY", "0"),
                one_token_at_a_time=_env_bool("ONE_TOKEN_AT_A_TIME", True),
                max_buy_retries=int(os.environ.get("MAX_BUY_RETRIES", "10")),
                buy_slippage=Decimal(os.environ.get("BUY_SLIPPAGE", "20")),
                auto_sell=_env_bool("AUTO_SELL", True),
                auto_sell_delay_seconds=_env_ms("AUTO_SELL_DELAY", "0"),
                max_sell_retries=int(os.environ.get("MAX_SELL_RETRIES", "10")),
                sell_slippage=Decimal(os.environ.get("SELL_SLIPPAGE", "20")),
                retry_delay_seconds=float(os.environ.get("RETRY_DELAY_SECONDS", "0.5")),
                use_compute_budget=_env_bool("USE_COMPUTE_BUDGET", True),
                compute_unit_limit=int(os.environ.get("COMPUTE_UNIT_LIMIT", "101337")),
                compute_unit_price=int(compute_unit_price),
                buy_priority_fee_microlamports=int(
                    os.environ.get("BUY_PRIORITY_FEE_MICROLAMPORTS", compute_unit_price)
                ),
                sell_priority_fee_microlamports=int(
                    os.environ.get("SELL_PRIORITY_FEE_MICROLAMPORTS", compute_unit_price)
                ),
                take_profit_percentage=Decimal(os.environ.get("TAKE_PROFIT_PERCENTAGE", "0")),
                stop_loss_percentage=Decimal(os.environ.get("STOP_LOSS_PERCENTAGE", "0")),
                max_sell_duration_seconds=float(os.environ.get("MAX_SELL_DURATION_SECONDS", "0")),
                sell_timed_name_keywords=_env_list("SELL_TIMED_NAME_KEYWORDS"),
                sell_timed_name_duration_seconds=float(
                    os.environ.get("SELL_TIMED_NAME_DURATION_SECONDS", "60")
                ),
                price_check_interval_seconds=_env_ms("PRICE_CHECK_INTERVAL", "2000"),
                filter_check_interval_seconds=_env_ms("FILTER_CHECK_INTERVAL", "0"),
                filter_check_duration_seconds=_env_ms("FILTER_CHECK_DURATION", "0"),
                consecutive_filter_matches=int(os.environ.get("CONSECUTIVE_FILTER_MATCHES", "1")),
                check_mutable=_env_bool("CHECK_IF_MUTABLE", False),
                check_socials=_env_bool("CHECK_IF_SOCIALS", False),
                check_renounced=_env_bool("CHECK_IF_MINT_IS_RENOUNCED", False),
                check_freezable=_env_bool("CHECK_IF_FREEZABLE", False),
                check_burned=_env_bool("CHECK_IF_BURNED", True),
                min_burned_fraction=Decimal(os.environ.get("MIN_BURNED_FRACTION", "1")),
                min_pool_size=Decimal(os.environ.get("MIN_POOL_SIZE", "5")),
                max_pool_size=Decimal(os.environ.get("MAX_POOL_SIZE", "50")),
                max_pool_age_seconds=float(os.environ.get("MAX_POOL_AGE_SECONDS", "3600")),
                min_market_cap=Decimal(os.environ.get("MIN_MARKET_CAP", "0")),
                blocklist_names=_env_list("FILTER_BLOCKLIST_NAMES"),
                blocklist_symbols=_env_list("FILTER_BLOCKLIST_SYMBOLS"),
                use_snipe_list=_env_bool("USE_SNIPE_LIST", False),
                snipe_list_path=os.environ.get("SNIPE_LIST_PATH", "snipe-list.txt"),
                snipe_list_refresh_interval_seconds=_env_ms("SNIPE_LIST_REFRESH_INTERVAL", "30000"),
                telegram_alerts_enabled=_env_bool("TELEGRAM_ALERTS_ENABLED", False),
                telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN"),
                telegram_chat_id=os.environ.get("TELEGRAM_CHAT_ID"),
                pid_file=os.environ.get("SNIPER_PID_FILE", DEFAULT_PID_FILE),
            )
        except (ArithmeticError, ValueError) as e:
            # decimal.InvalidOperation is an ArithmeticError
            raise ConfigError(f"Invalid configuration value: {e}") from e

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty if valid)."""
        problems = []

        if not self.adapter:
            problems.append("SNIPER_ADAPTER is required (module:factory)")
        elif ":" not in self.adapter:
            problems.append(f"SNIPER_ADAPTER must look like module:factory, got {self.adapter!r}")

        if not self.rpc_endpoint:
            problems.append("RPC_ENDPOINT is required")

        if self.quote_amount <= 0:
            problems.append("QUOTE_AMOUNT must be positive")

        for name, value in (("BUY_SLIPPAGE", self.buy_slippage), ("SELL_SLIPPAGE", self.sell_slippage)):
            if not 0 <= value < 100:
                problems.append(f"{name} must be in [0, 100), got {value}")

        if self.max_buy_retries < 1:
            problems.append("MAX_BUY_RETRIES must be at least 1")
        if self.max_sell_retries < 1:
            problems.append("MAX_SELL_RETRIES must be at least 1")

        if 0 < self.max_pool_size < self.min_pool_size:
            problems.append(
                f"MIN_POOL_SIZE ({self.min_pool_size}) exceeds MAX_POOL_SIZE ({self.max_pool_size})"
            )

        if self.telegram_alerts_enabled and not (self.telegram_bot_token and self.telegram_chat_id):
            problems.append("TELEGRAM_ALERTS_ENABLED requires TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID")

        return problems

    def quote(self, value: Decimal) -> TokenAmount:
        """Human quote amount as a raw TokenAmount."""
        return TokenAmount.from_ui(value, self.quote_decimals)

    @property
    def filter_config(self) -> FilterConfig:
        """Get filter configuration."""
        return FilterConfig(
            check_burned=self.check_burned,
            min_burned_fraction=self.min_burned_fraction,
            check_renounced=self.check_renounced,
            check_freezable=self.check_freezable,
            check_mutable=self.check_mutable,
            check_socials=self.check_socials,
            min_pool_size=self.quote(self.min_pool_size),
            max_pool_size=self.quote(self.max_pool_size),
            max_pool_age_seconds=self.max_pool_age_seconds,
            min_market_cap=self.min_market_cap,
            blocklist_names=self.blocklist_names,
            blocklist_symbols=self.blocklist_symbols,
        )

    @property
    def execution_config(self) -> ExecutionConfig:
        """Get execution configuration."""
        return ExecutionConfig(
            quote_amount=self.quote(self.quote_amount).raw,
            auto_buy=self.auto_buy,
            auto_buy_delay_seconds=self.auto_buy_delay_seconds,
            one_token_at_a_time=self.one_token_at_a_time,
            max_buy_retries=self.max_buy_retries,
            buy_slippage_percent=self.buy_slippage,
            max_pool_size_raw=self.quote(self.max_pool_size).raw,
            auto_sell=self.auto_sell,
            auto_sell_delay_seconds=self.auto_sell_delay_seconds,
            max_sell_retries=self.max_sell_retries,
            sell_slippage_percent=self.sell_slippage,
            retry_delay_seconds=self.retry_delay_seconds,
            use_compute_budget=self.use_compute_budget,
            compute_unit_limit=self.compute_unit_limit,
            buy_priority_fee=(
                self.buy_priority_fee_microlamports
                if self.buy_priority_fee_microlamports is not None
                else self.compute_unit_price
            ),
            sell_priority_fee=(
                self.sell_priority_fee_microlamports
                if self.sell_priority_fee_microlamports is not None
                else self.compute_unit_price
            ),
            filter_check_interval_seconds=self.filter_check_interval_seconds,
            filter_check_duration_seconds=self.filter_check_duration_seconds,
            consecutive_filter_matches=self.consecutive_filter_matches,
            use_snipe_list=self.use_snipe_list,
        )

    @property
    def exit_config(self) -> ExitConfig:
        """Get exit configuration."""
        return ExitConfig(
            take_profit_percent=self.take_profit_percentage,
            stop_loss_percent=self.stop_loss_percentage,
            max_sell_duration_seconds=self.max_sell_duration_seconds,
            sell_timed_name_keywords=self.sell_timed_name_keywords,
            sell_timed_name_duration_seconds=self.sell_timed_name_duration_seconds,
        )

    @property
    def background_config(self) -> BackgroundTaskConfig:
        """Get background task configuration."""
        return BackgroundTaskConfig(
            exit_check_interval_seconds=self.price_check_interval_seconds,
            exit_check_enabled=self.auto_sell and self.price_check_interval_seconds > 0,
            snipe_list_refresh_interval_seconds=self.snipe_list_refresh_interval_seconds,
            snipe_list_enabled=self.use_snipe_list,
        )


def load_adapter(path: str, config: BotConfig) -> ChainAdapter:
    """
    Import and call a "module:factory" adapter factory.

    Raises:
        ConfigError: If the path is malformed or cannot be imported
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"Adapter path must look like module:factory, got {path!r}")

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot load adapter {path}: {e}") from e

    return factory(config)


class SniperBot:
    """
    Main sniper orchestrator.

    Manages the lifecycle of all components:
    - Chain adapter (feed, market data, signing, submission)
    - Filter pipeline, position tracker and execution engine
    - Event dispatcher and background tasks
    - Alerts
    """

    def __init__(self, config: BotConfig, adapter: Optional[ChainAdapter] = None):
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized on start)
        self._adapter = adapter
        self._http: Optional[aiohttp.ClientSession] = None
        self._engine: Optional[TradeExecutionEngine] = None
        self._dispatcher: Optional[EventDispatcher] = None
        self._background_tasks: Optional[BackgroundTasksManager] = None
        self._alert_manager: Optional[AlertManager] = None

    @property
    def engine(self) -> Optional[TradeExecutionEngine]:
        return self._engine

    @property
    def dispatcher(self) -> Optional[EventDispatcher]:
        return self._dispatcher

    async def start(self) -> None:
        """Start the bot and run until shutdown."""
        logger.info("=" * 60)
        logger.info("POOL SNIPER")
        logger.info("=" * 60)
        self._log_config()
        logger.info("=" * 60)

        self._running = True
        self._shutdown_event.clear()
        self._setup_signal_handlers()

        try:
            await self._init_components()

            if not await self._engine.validate():
                raise ConfigError("Startup validation failed")

            await self._background_tasks.start()

            logger.info("=" * 60)
            logger.info("Bot started successfully")
            logger.info("Press Ctrl+C to stop")
            logger.info("=" * 60)

            await self._run_loop()

        except ConfigError:
            raise
        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the bot gracefully."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        if self._background_tasks:
            try:
                await self._background_tasks.stop()
            except Exception as e:
                logger.warning(f"Error stopping background tasks: {e}")

        if self._dispatcher:
            try:
                await self._dispatcher.drain()
            except Exception as e:
                logger.warning(f"Error draining workflows: {e}")

        if self._engine:
            await self._engine.drain_alerts()

        if self._http:
            await self._http.close()

        if self._adapter:
            try:
                await self._adapter.close()
            except Exception as e:
                logger.warning(f"Error closing adapter: {e}")

        logger.info("Shutdown complete")

    async def request_shutdown(self, reason: str = "manual") -> None:
        """Request a graceful shutdown."""
        if not self._running:
            return
        logger.warning(f"Shutdown requested: {reason}")
        self._shutdown_event.set()

    async def _init_components(self) -> None:
        cfg = self.config

        if self._adapter is None:
            self._adapter = load_adapter(cfg.adapter, cfg)
        adapter = self._adapter

        self._http = aiohttp.ClientSession()

        pipeline = FilterPipeline(
            build_filters(cfg.filter_config, adapter.market, self._http),
            adapter.metadata,
        )
        logger.info(f"Filters: {[f.name for f in pipeline.filters] or 'none'}")

        tracker = PositionTracker(cfg.exit_config, adapter.market)
        pool_cache = PoolCache()
        snipe_list = SnipeListCache(cfg.snipe_list_path) if cfg.use_snipe_list else None

        if cfg.telegram_alerts_enabled:
            self._alert_manager = AlertManager(
                telegram_bot_token=cfg.telegram_bot_token,
                telegram_chat_id=cfg.telegram_chat_id,
            )

        self._engine = TradeExecutionEngine(
            config=cfg.execution_config,
            adapter=adapter,
            pipeline=pipeline,
            tracker=tracker,
            pool_cache=pool_cache,
            snipe_list=snipe_list,
            alerts=self._alert_manager,
        )
        self._dispatcher = EventDispatcher(
            self._engine,
            pool_cache,
            quote_mint=adapter.quote_mint,
            auto_sell=cfg.auto_sell,
        )
        self._background_tasks = BackgroundTasksManager(
            engine=self._engine,
            snipe_list=snipe_list,
            config=cfg.background_config,
        )

    async def _run_loop(self) -> None:
        """Feed events to the dispatcher until shutdown or the feed ends."""
        feed_task = asyncio.create_task(
            self._dispatcher.run(self._adapter.feed, self._shutdown_event),
            name="event_feed",
        )

        shutdown_task = asyncio.create_task(self._shutdown_event.wait(), name="shutdown_wait")

        try:
            while self._running:
                done, _ = await asyncio.wait(
                    {feed_task, shutdown_task},
                    timeout=STATS_LOG_INTERVAL,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if shutdown_task in done:
                    break  # Shutdown requested

                if feed_task in done:
                    if not feed_task.cancelled() and feed_task.exception() is not None:
                        logger.error(f"Event feed failed: {feed_task.exception()}")
                    else:
                        logger.warning("Event feed ended, shutting down")
                    break

                stats = self._engine.stats
                dispatch = self._dispatcher.stats
                logger.info(
                    f"Stats: pools={dispatch.pools_seen}, "
                    f"buys={stats.buys_confirmed}/{dispatch.buys_started}, "
                    f"sells={stats.sells_confirmed}, "
                    f"open={len(self._engine.tracker.get_open_positions())}"
                )
        finally:
            for task in (feed_task, shutdown_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(feed_task, shutdown_task, return_exceptions=True)

    def _log_config(self) -> None:
        cfg = self.config
        logger.info(f"Trading: {'LIVE' if cfg.auto_buy else 'MONITOR ONLY'}")
        logger.info(f"Quote: {cfg.quote_amount} {cfg.quote_symbol} per buy")
        logger.info(f"One token at a time: {cfg.one_token_at_a_time}")
        logger.info(f"Buy: retries={cfg.max_buy_retries}, slippage={cfg.buy_slippage}%")
        logger.info(
            f"Sell: auto={cfg.auto_sell}, retries={cfg.max_sell_retries}, "
            f"slippage={cfg.sell_slippage}%"
        )
        logger.info(
            f"Exits: take_profit={cfg.take_profit_percentage}%, "
            f"stop_loss={cfg.stop_loss_percentage}%, "
            f"max_duration={cfg.max_sell_duration_seconds}s"
        )
        if cfg.sell_timed_name_keywords:
            logger.info(
                f"Timed keyword exit: {', '.join(cfg.sell_timed_name_keywords)} "
                f"after {cfg.sell_timed_name_duration_seconds}s"
            )
        logger.info(f"Snipe list: {cfg.use_snipe_list}")
        if cfg.use_snipe_list:
            logger.info("Filters are disabled when snipe list is on")

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}")
            # stop() still runs the full cleanup
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Pool Sniper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--monitor-only",
        action="store_true",
        help="Run filters and log candidates, never buy",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    try:
        config = BotConfig.from_env()
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if args.monitor_only:
        config.auto_buy = False

    problems = config.validate()
    if problems:
        for problem in problems:
            logger.error(f"Config: {problem}")
        return 1

    bot = SniperBot(config)

    try:
        await bot.start()
        return 0
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        return 0
    except ConfigError as e:
        logger.error(str(e))
        return 1
    except Exception:
        # Already logged by SniperBot.start
        return 1


def main() -> int:
    """Main entry point."""
    args = parse_args()

    load_env_file(args.env_file)

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    pid_file = os.environ.get("SNIPER_PID_FILE", DEFAULT_PID_FILE)
    try:
        with singleton_lock(pid_file):
            try:
                return asyncio.run(main_async(args))
            except KeyboardInterrupt:
                return 0
    except SingletonBotError as e:
        logger.error(str(e))
        print(f"\n❌ {e}\n", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
