"""
Trade Execution Engine - buy and sell workflows.

Buy:  resolve pool -> short-circuit checks -> (global lock) -> filter gate
      -> simulate -> submit with retries -> open position
Sell: read token account -> in-flight guard -> resolve pool -> exit check
      -> simulate -> submit with retries -> close position

Every workflow returns a TradeResult; no exception escapes buy() or sell().
The global acquisition lock and the per-mint guard are always released on
the way out, whatever path is taken.

Each submission attempt fetches its own blockhash. A blockhash from an
earlier attempt may already be expired and is never reused.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Set

from pool_sniper.errors import ResolutionError
from pool_sniper.filters.pipeline import FilterPipeline
from pool_sniper.filters.protocol import FilterResult
from pool_sniper.market.amm import SwapQuote, quote_swap
from pool_sniper.market.models import (
    AssetMetadata,
    PoolReference,
    SettlementResult,
    SwapDirection,
    SwapPlan,
    TokenAccountInfo,
)
from pool_sniper.market.providers import ChainAdapter

from .guards import InFlightGuard
from .position_tracker import PositionTracker
from .snipe_list import SnipeListCache

if TYPE_CHECKING:
    from pool_sniper.core.pool_cache import PoolCache
    from pool_sniper.monitoring.alerting import AlertManager

logger = logging.getLogger(__name__)


@dataclass
class ExecutionConfig:
    """Configuration for buy and sell workflows."""

    # Buy
    quote_amount: int = 0  # Raw quote spent per buy
    auto_buy: bool = True  # False = monitor only
    auto_buy_delay_seconds: float = 0
    one_token_at_a_time: bool = True
    max_buy_retries: int = 10
    buy_slippage_percent: Decimal = Decimal("20")
    max_pool_size_raw: int = 0  # 0 disables the simulated-output cap

    # Sell
    auto_sell: bool = True
    auto_sell_delay_seconds: float = 0
    max_sell_retries: int = 10
    sell_slippage_percent: Decimal = Decimal("20")

    # Submission
    retry_delay_seconds: float = 0.5
    use_compute_budget: bool = True
    compute_unit_limit: int = 101337
    buy_priority_fee: int = 421197  # Micro-lamports per compute unit
    sell_priority_fee: int = 421197

    # Filter gate
    filter_check_interval_seconds: float = 0
    filter_check_duration_seconds: float = 0
    consecutive_filter_matches: int = 1

    # Snipe list (filters are bypassed for listed mints)
    use_snipe_list: bool = False


class TradeState(str, Enum):
    """Terminal state of one buy or sell workflow."""

    CONFIRMED = "confirmed"
    ABANDONED = "abandoned"  # Deliberate pass (filters, caps, no exit)
    FAILED = "failed"  # Resolution error, exhausted retries, unexpected fault
    SKIPPED = "skipped"  # Short-circuited before any work


@dataclass(frozen=True)
class TradeResult:
    """Outcome of a buy or sell workflow."""

    state: TradeState
    direction: SwapDirection
    mint: Optional[str] = None
    attempts: int = 0
    signature: Optional[str] = None
    reason: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.state is TradeState.CONFIRMED


@dataclass
class EngineStats:
    """Workflow outcome counters."""

    buys_confirmed: int = 0
    buys_failed: int = 0
    buys_abandoned: int = 0
    buys_skipped: int = 0
    sells_confirmed: int = 0
    sells_failed: int = 0
    sells_abandoned: int = 0
    sells_skipped: int = 0

    def record(self, result: TradeResult) -> None:
        side = "buys" if result.direction is SwapDirection.BUY else "sells"
        name = f"{side}_{result.state.value}"
        setattr(self, name, getattr(self, name) + 1)


@dataclass
class _Submission:
    attempts: int
    settlement: Optional[SettlementResult] = None
    last_error: Optional[str] = None


class TradeExecutionEngine:
    """
    Orchestrates buy and sell workflows against a chain adapter.

    Usage:
        engine = TradeExecutionEngine(
            config=ExecutionConfig(quote_amount=10_000_000),
            adapter=adapter,
            pipeline=FilterPipeline(filters, adapter.metadata),
            tracker=PositionTracker(exit_config, adapter.market),
            pool_cache=pool_cache,
        )

        if not await engine.validate():
            raise SystemExit(1)

        result = await engine.buy(pool_id)
        result = await engine.sell(token_account_id)
    """

    def __init__(
        self,
        config: ExecutionConfig,
        adapter: ChainAdapter,
        pipeline: FilterPipeline,
        tracker: PositionTracker,
        pool_cache: Optional["PoolCache"] = None,
        snipe_list: Optional[SnipeListCache] = None,
        alerts: Optional["AlertManager"] = None,
        guard: Optional[InFlightGuard] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Workflow configuration
            adapter: Chain capabilities (market data, blockhash, build, submit)
            pipeline: Filter pipeline gating buys
            tracker: Position tracker owning open positions
            pool_cache: Base mint -> pool id map used by sells
            snipe_list: Allow-list consulted when use_snipe_list is on
            alerts: Optional notification sink
            guard: Per-mint sell guard (created if not provided)
            sleep: Awaitable sleep (injectable for tests)
        """
        self._config = config
        self._adapter = adapter
        self._pipeline = pipeline
        self._tracker = tracker
        self._pool_cache = pool_cache
        self._snipe_list = snipe_list
        self._alerts = alerts
        self._guard = guard or InFlightGuard()
        self._sleep = sleep

        self._buy_lock = asyncio.Lock()
        self._alert_tasks: Set[asyncio.Task] = set()
        self._stats = EngineStats()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> ExecutionConfig:
        return self._config

    @property
    def tracker(self) -> PositionTracker:
        return self._tracker

    @property
    def guard(self) -> InFlightGuard:
        return self._guard

    @property
    def buy_lock(self) -> asyncio.Lock:
        return self._buy_lock

    @property
    def stats(self) -> EngineStats:
        return self._stats

    @property
    def quote_mint(self) -> str:
        return self._adapter.quote_mint

    # =========================================================================
    # Startup
    # =========================================================================

    async def validate(self) -> bool:
        """Check that the wallet's quote token account exists."""
        try:
            account = await self._adapter.market.get_token_account(self._adapter.quote_account)
        except Exception as e:
            logger.error(f"Failed to read quote token account {self._adapter.quote_account}: {e}")
            return False

        if account is None:
            logger.error(
                f"Quote token account {self._adapter.quote_account} not found "
                f"for wallet {self._adapter.wallet_address}"
            )
            return False
        return True

    # =========================================================================
    # Buy
    # =========================================================================

    async def buy(self, pool_id: str) -> TradeResult:
        """
        Run the buy workflow for a newly discovered pool.

        Never raises; the outcome is reported in the returned TradeResult.
        """
        result = await self._run_buy(pool_id)
        self._stats.record(result)
        return result

    async def _run_buy(self, pool_id: str) -> TradeResult:
        mint: Optional[str] = None
        try:
            try:
                pool = await self._resolve(pool_id)
            except ResolutionError as e:
                logger.error(f"Failed to resolve pool {pool_id}: {e}")
                return self._buy_result(TradeState.FAILED, reason=str(e))

            mint = pool.base_mint

            # No await between these checks and taking the lock
            if self._config.one_token_at_a_time and self._buy_lock.locked():
                logger.warning(f"Buy lock held, skipping {mint}")
                return self._buy_result(TradeState.SKIPPED, mint, reason="lock_held")

            if self._tracker.has_position(mint):
                logger.debug(f"Already holding {mint}, skipping buy")
                return self._buy_result(TradeState.SKIPPED, mint, reason="position_open")

            if self._config.use_snipe_list and not self._in_snipe_list(mint):
                logger.debug(f"{mint} not in snipe list, skipping buy")
                return self._buy_result(TradeState.SKIPPED, mint, reason="not_in_snipe_list")

            if self._config.one_token_at_a_time:
                async with self._buy_lock:
                    return await self._buy_pool(pool)
            return await self._buy_pool(pool)

        except Exception as e:
            logger.exception(f"Failed to buy {mint or pool_id}: {e}")
            if mint:
                self._notify("alert_buy_failed", mint=mint, reason=str(e))
            return self._buy_result(TradeState.FAILED, mint, reason=str(e))

    async def _buy_pool(self, pool: PoolReference) -> TradeResult:
        mint = pool.base_mint

        # Listed mints are bought without running filters
        if not self._config.use_snipe_list:
            gate = await self._filter_gate(pool)
            if not gate.ok:
                logger.info(f"Skipping {mint}: {gate.message}")
                return self._buy_result(TradeState.ABANDONED, mint, reason=gate.message)

        self._notify("alert_potential_buy", mint=mint, pool_id=pool.pool_id)

        if not self._config.auto_buy:
            logger.info(f"Monitor only: {mint} passed filters, not buying")
            return self._buy_result(TradeState.ABANDONED, mint, reason="monitor_only")

        if self._config.auto_buy_delay_seconds > 0:
            logger.debug(f"Waiting {self._config.auto_buy_delay_seconds}s before buying {mint}")
            await self._sleep(self._config.auto_buy_delay_seconds)

        quote = await self._simulate(
            pool,
            self._config.quote_amount,
            SwapDirection.BUY,
            self._config.buy_slippage_percent,
        )

        if 0 < self._config.max_pool_size_raw < quote.amount_out:
            logger.info(
                f"Skipping {mint}: simulated output {quote.amount_out} exceeds "
                f"max pool size {self._config.max_pool_size_raw}"
            )
            return self._buy_result(TradeState.ABANDONED, mint, reason="max_pool_size_exceeded")

        plan = self._build_plan(pool, SwapDirection.BUY, quote)
        submission = await self._submit(plan, self._config.max_buy_retries)

        if submission.settlement is None:
            reason = submission.last_error or "not confirmed"
            logger.error(f"Buy of {mint} failed after {submission.attempts} attempts: {reason}")
            self._notify("alert_buy_failed", mint=mint, reason=reason)
            return self._buy_result(
                TradeState.FAILED, mint, attempts=submission.attempts, reason=reason
            )

        signature = submission.settlement.signature
        logger.info(f"Confirmed buy of {mint}: {signature}")

        metadata = await self._position_metadata(mint)
        self._tracker.open_position(
            mint,
            cost_basis=quote.amount_in,
            min_acquired_amount=quote.min_amount_out,
            metadata=metadata,
        )
        self._notify(
            "alert_buy_confirmed",
            mint=mint,
            signature=signature,
            quote_spent=str(pool.quote.amount(quote.amount_in)),
        )
        return self._buy_result(
            TradeState.CONFIRMED, mint, attempts=submission.attempts, signature=signature
        )

    async def _filter_gate(self, pool: PoolReference) -> FilterResult:
        cfg = self._config
        if cfg.filter_check_interval_seconds > 0 and cfg.filter_check_duration_seconds > 0:
            return await self._pipeline.match(
                pool,
                cfg.filter_check_interval_seconds,
                cfg.filter_check_duration_seconds,
                cfg.consecutive_filter_matches,
            )
        return await self._pipeline.evaluate(pool)

    async def _resolve(self, pool_id: str) -> PoolReference:
        """Resolve a pool, reporting any adapter failure as ResolutionError."""
        try:
            return await self._adapter.market.resolve_pool(pool_id)
        except ResolutionError:
            raise
        except Exception as e:
            raise ResolutionError(f"resolution failed: {e}", pool_id=pool_id) from e

    def _in_snipe_list(self, mint: str) -> bool:
        return self._snipe_list is not None and self._snipe_list.is_in_list(mint)

    async def _position_metadata(self, mint: str) -> Optional[AssetMetadata]:
        """Metadata for the position's name snapshot, only if keywords need it."""
        if not self._tracker.config.sell_timed_name_keywords:
            return None
        try:
            return await self._adapter.metadata.fetch(mint)
        except Exception as e:
            logger.warning(f"Could not fetch metadata for {mint}: {e}")
            return None

    # =========================================================================
    # Sell
    # =========================================================================

    async def sell(self, token_account_id: str) -> TradeResult:
        """
        Run the sell workflow for a wallet token account that changed.

        Never raises; the outcome is reported in the returned TradeResult.
        """
        result = await self._run_sell(token_account_id)
        self._stats.record(result)
        return result

    async def _run_sell(self, token_account_id: str) -> TradeResult:
        mint: Optional[str] = None
        try:
            account = await self._adapter.market.get_token_account(token_account_id)
            if account is None:
                logger.error(f"Token account {token_account_id} not found, can't sell")
                return self._sell_result(TradeState.FAILED, reason="token_account_not_found")

            mint = account.mint
            if mint == self.quote_mint:
                return self._sell_result(TradeState.SKIPPED, mint, reason="quote_account")

            with self._guard.hold(mint) as claimed:
                if not claimed:
                    logger.debug(f"Sell already in flight for {mint}, skipping")
                    return self._sell_result(TradeState.SKIPPED, mint, reason="in_flight")
                return await self._sell_account(account)

        except Exception as e:
            logger.exception(f"Failed to sell {mint or token_account_id}: {e}")
            if mint:
                self._notify("alert_sell_failed", mint=mint, reason=str(e))
            return self._sell_result(TradeState.FAILED, mint, reason=str(e))

    async def _sell_account(self, account: TokenAccountInfo) -> TradeResult:
        mint = account.mint

        if account.amount == 0:
            logger.info(f"Empty balance for {mint}, can't sell")
            return self._sell_result(TradeState.SKIPPED, mint, reason="empty_balance")

        self._tracker.attach_token_account(mint, account.account_id)

        if not self._config.auto_sell:
            return self._sell_result(TradeState.SKIPPED, mint, reason="auto_sell_disabled")

        pool_id = self._pool_cache.get(mint) if self._pool_cache is not None else None
        if pool_id is None:
            logger.debug(f"No known pool for {mint}, can't sell")
            return self._sell_result(TradeState.ABANDONED, mint, reason="pool_unknown")

        if self._config.auto_sell_delay_seconds > 0:
            logger.debug(f"Waiting {self._config.auto_sell_delay_seconds}s before selling {mint}")
            await self._sleep(self._config.auto_sell_delay_seconds)

        try:
            pool = await self._resolve(pool_id)
        except ResolutionError as e:
            logger.error(f"Failed to resolve pool {pool_id} for {mint}: {e}")
            return self._sell_result(TradeState.FAILED, mint, reason=str(e))

        exit_reason = await self._tracker.evaluate_exit(mint, account.amount, pool)
        if exit_reason is None:
            return self._sell_result(TradeState.ABANDONED, mint, reason="hold")

        logger.info(f"Selling {mint}: {exit_reason}")
        self._notify("alert_sell_triggered", mint=mint, reason=str(exit_reason))

        quote = await self._simulate(
            pool,
            account.amount,
            SwapDirection.SELL,
            self._config.sell_slippage_percent,
        )
        plan = self._build_plan(pool, SwapDirection.SELL, quote)
        submission = await self._submit(plan, self._config.max_sell_retries)

        if submission.settlement is None:
            reason = submission.last_error or "not confirmed"
            logger.error(f"Sell of {mint} failed after {submission.attempts} attempts: {reason}")
            self._notify("alert_sell_failed", mint=mint, reason=reason)
            return self._sell_result(
                TradeState.FAILED, mint, attempts=submission.attempts, reason=reason
            )

        signature = submission.settlement.signature
        logger.info(f"Confirmed sell of {mint}: {signature}")
        self._tracker.close_position(mint)
        self._notify(
            "alert_sell_confirmed",
            mint=mint,
            signature=signature,
            reason=str(exit_reason),
        )
        return self._sell_result(
            TradeState.CONFIRMED,
            mint,
            attempts=submission.attempts,
            signature=signature,
            reason=exit_reason.kind.value,
        )

    # =========================================================================
    # Shared steps
    # =========================================================================

    async def _simulate(
        self,
        pool: PoolReference,
        amount_in: int,
        direction: SwapDirection,
        slippage_percent: Decimal,
    ) -> SwapQuote:
        reserves = await self._adapter.market.get_pool_reserves(pool)
        quote = quote_swap(reserves, amount_in, direction, slippage_percent)
        logger.debug(
            f"Simulated {direction.value} of {pool.base_mint}: in={quote.amount_in} "
            f"out={quote.amount_out} min_out={quote.min_amount_out}"
        )
        return quote

    def _build_plan(
        self,
        pool: PoolReference,
        direction: SwapDirection,
        quote: SwapQuote,
    ) -> SwapPlan:
        cfg = self._config
        if direction is SwapDirection.BUY:
            input_mint, output_mint = pool.quote_mint, pool.base_mint
            priority_fee = cfg.buy_priority_fee
        else:
            input_mint, output_mint = pool.base_mint, pool.quote_mint
            priority_fee = cfg.sell_priority_fee

        return SwapPlan(
            pool=pool,
            direction=direction,
            owner=self._adapter.wallet_address,
            amount_in=quote.amount_in,
            min_amount_out=quote.min_amount_out,
            input_mint=input_mint,
            output_mint=output_mint,
            compute_unit_limit=cfg.compute_unit_limit if cfg.use_compute_budget else 0,
            compute_unit_price=priority_fee if cfg.use_compute_budget else 0,
            close_input_account=direction is SwapDirection.SELL,
        )

    async def _submit(self, plan: SwapPlan, max_retries: int) -> _Submission:
        """
        Build, sign and submit `plan` until confirmed or out of retries.

        Non-confirmation and per-attempt exceptions both use up an attempt.
        """
        mint = plan.pool.base_mint
        side = plan.direction.value
        last_error: Optional[str] = None

        for attempt in range(1, max_retries + 1):
            logger.info(f"Send {side} transaction for {mint}: attempt {attempt}/{max_retries}")
            try:
                chain_ref = await self._adapter.chain.get_latest_blockhash()
                transaction = await self._adapter.builder.build_and_sign(plan, chain_ref)
                settlement = await self._adapter.executor.execute_and_confirm(
                    transaction, chain_ref
                )
            except Exception as e:
                last_error = str(e)
                logger.warning(f"Error during {side} attempt {attempt} for {mint}: {e}")
            else:
                if settlement.confirmed:
                    return _Submission(attempts=attempt, settlement=settlement)
                last_error = str(settlement.error) if settlement.error else "confirmation timeout"
                logger.error(
                    f"{side.capitalize()} transaction for {mint} not confirmed "
                    f"(attempt {attempt}, signature={settlement.signature}): {last_error}"
                )

            if attempt < max_retries:
                await self._sleep(self._config.retry_delay_seconds)

        return _Submission(attempts=max_retries, last_error=last_error)

    # =========================================================================
    # Results and alerts
    # =========================================================================

    def _buy_result(
        self,
        state: TradeState,
        mint: Optional[str] = None,
        **kwargs: Any,
    ) -> TradeResult:
        return TradeResult(state=state, direction=SwapDirection.BUY, mint=mint, **kwargs)

    def _sell_result(
        self,
        state: TradeState,
        mint: Optional[str] = None,
        **kwargs: Any,
    ) -> TradeResult:
        return TradeResult(state=state, direction=SwapDirection.SELL, mint=mint, **kwargs)

    def _notify(self, method: str, **kwargs: Any) -> None:
        """Send an alert in the background. Failures are logged, never raised."""
        if self._alerts is None:
            return

        task = asyncio.create_task(asyncio.to_thread(getattr(self._alerts, method), **kwargs))
        self._alert_tasks.add(task)
        task.add_done_callback(self._alert_done)

    def _alert_done(self, task: asyncio.Task) -> None:
        self._alert_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Alert delivery failed: {task.exception()}")

    async def drain_alerts(self) -> None:
        """Wait for pending alerts to finish sending."""
        if self._alert_tasks:
            await asyncio.gather(*self._alert_tasks, return_exceptions=True)
