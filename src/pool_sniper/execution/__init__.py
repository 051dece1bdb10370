"""
Execution Layer - trade workflows and position tracking.

This module provides:
    - TradeExecutionEngine: buy and sell workflows (use this!)
    - ExecutionConfig: configuration for the workflows
    - TradeResult / TradeState: outcome of a workflow
    - PositionTracker: open positions and exit evaluation
    - Position, ExitConfig, ExitReason, ExitKind
    - InFlightGuard: per-mint sell de-duplication
    - SnipeListCache: allow-list of mints

Usage:
    from pool_sniper.execution import TradeExecutionEngine, ExecutionConfig

    engine = TradeExecutionEngine(ExecutionConfig(), adapter, pipeline, tracker)
    result = await engine.buy(pool_id)
"""

from .engine import (
    EngineStats,
    ExecutionConfig,
    TradeExecutionEngine,
    TradeResult,
    TradeState,
)
from .guards import InFlightGuard
from .position_tracker import (
    ExitConfig,
    ExitKind,
    ExitReason,
    Position,
    PositionTracker,
    check_exit,
    compute_pnl_percent,
)
from .snipe_list import SnipeListCache

__all__ = [
    # Engine
    "TradeExecutionEngine",
    "ExecutionConfig",
    "EngineStats",
    "TradeResult",
    "TradeState",
    # Positions
    "PositionTracker",
    "Position",
    "ExitConfig",
    "ExitKind",
    "ExitReason",
    "check_exit",
    "compute_pnl_percent",
    # Guards
    "InFlightGuard",
    "SnipeListCache",
]
