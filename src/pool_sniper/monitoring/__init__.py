"""
Monitoring - operator notifications.

Alerts are best-effort: a failed Telegram call is logged and never
affects a trade.
"""
from .alerting import AlertKind, AlertManager

__all__ = [
    "AlertKind",
    "AlertManager",
]
