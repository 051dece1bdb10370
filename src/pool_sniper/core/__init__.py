"""
Core - event routing and background work.

EventDispatcher turns feed events into engine workflows;
BackgroundTasksManager runs the periodic exit check and snipe list reload.
"""
from .background_tasks import BackgroundTaskConfig, BackgroundTasksManager
from .event_processor import DispatcherStats, EventDispatcher
from .pool_cache import PoolCache

__all__ = [
    "BackgroundTaskConfig",
    "BackgroundTasksManager",
    "DispatcherStats",
    "EventDispatcher",
    "PoolCache",
]
