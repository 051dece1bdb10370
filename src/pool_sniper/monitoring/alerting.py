"""
Telegram trade alerts.

One alert per workflow milestone (potential buy, buy confirmed/failed,
sell triggered/confirmed/failed). Repeats of the same alert for the same
mint are suppressed for a cooldown window.

Sending is synchronous; the engine runs it off the event loop with
asyncio.to_thread so a slow Telegram call never delays a trade.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

TELEGRAM_SEND_URL = "https://api.telegram.org/bot{token}/sendMessage"
SOLSCAN_TOKEN_URL = "https://solscan.io/token/{mint}"
SOLSCAN_TX_URL = "https://solscan.io/tx/{signature}"

PRIORITY_MARKERS = {
    "critical": "🚨",
    "high": "⚠️",
    "low": "ℹ️",
}


class AlertKind(str, Enum):
    POTENTIAL_BUY = "potential_buy"
    BUY_CONFIRMED = "buy_confirmed"
    BUY_FAILED = "buy_failed"
    SELL_TRIGGERED = "sell_triggered"
    SELL_CONFIRMED = "sell_confirmed"
    SELL_FAILED = "sell_failed"


@dataclass(frozen=True)
class AlertStyle:
    title: str
    priority: str = "normal"
    footer: Optional[str] = None


ALERT_STYLES: Dict[AlertKind, AlertStyle] = {
    AlertKind.POTENTIAL_BUY: AlertStyle("👀 Potential Buy", priority="low"),
    AlertKind.BUY_CONFIRMED: AlertStyle("🟢 Buy Confirmed"),
    AlertKind.BUY_FAILED: AlertStyle("❌ Buy Failed", priority="high"),
    AlertKind.SELL_TRIGGERED: AlertStyle("📉 Sell Triggered"),
    AlertKind.SELL_CONFIRMED: AlertStyle("🔴 Sell Confirmed"),
    AlertKind.SELL_FAILED: AlertStyle(
        "⚠️ Sell Failed", priority="high", footer="Position remains open."
    ),
}

Field = Tuple[str, Optional[str]]


class AlertManager:
    """
    Sends trade alerts to a Telegram chat.

    Usage:
        alerts = AlertManager(telegram_bot_token="...", telegram_chat_id="...")
        alerts.alert_buy_confirmed(mint, signature, "0.01")
        alerts.alert_sell_triggered(mint, "take_profit: pnl 52.10%")
    """

    DEFAULT_COOLDOWN = 60

    def __init__(
        self,
        telegram_bot_token: Optional[str] = None,
        telegram_chat_id: Optional[str] = None,
        enabled: bool = True,
        default_cooldown: int = DEFAULT_COOLDOWN,
        _telegram_api: Optional[Any] = None,  # For testing
    ) -> None:
        self._bot_token = telegram_bot_token
        self._chat_id = telegram_chat_id
        self._enabled = enabled
        self._default_cooldown = default_cooldown
        self._telegram_api = _telegram_api

        # Dedup key -> time until which repeats are suppressed
        self._suppressed_until: Dict[str, float] = {}
        self._total_sent = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    # =========================================================================
    # Trade alerts
    # =========================================================================

    def alert_potential_buy(self, mint: str, pool_id: str) -> bool:
        """A pool passed the filters and may be bought."""
        return self.send_trade_alert(AlertKind.POTENTIAL_BUY, mint, [("Pool", pool_id)])

    def alert_buy_confirmed(self, mint: str, signature: Optional[str], quote_spent: str) -> bool:
        return self.send_trade_alert(
            AlertKind.BUY_CONFIRMED,
            mint,
            [("Spent", quote_spent), ("Tx", _tx_link(signature))],
            dedup_suffix=signature,
        )

    def alert_buy_failed(self, mint: str, reason: str) -> bool:
        return self.send_trade_alert(AlertKind.BUY_FAILED, mint, [("Reason", reason)])

    def alert_sell_triggered(self, mint: str, reason: str) -> bool:
        """An exit condition matched and a sell is starting."""
        return self.send_trade_alert(AlertKind.SELL_TRIGGERED, mint, [("Reason", reason)])

    def alert_sell_confirmed(self, mint: str, signature: Optional[str], reason: str) -> bool:
        return self.send_trade_alert(
            AlertKind.SELL_CONFIRMED,
            mint,
            [("Reason", reason), ("Tx", _tx_link(signature))],
            dedup_suffix=signature,
        )

    def alert_sell_failed(self, mint: str, reason: str) -> bool:
        return self.send_trade_alert(AlertKind.SELL_FAILED, mint, [("Reason", reason)])

    def send_trade_alert(
        self,
        kind: AlertKind,
        mint: str,
        fields: List[Field],
        dedup_suffix: Optional[str] = None,
    ) -> bool:
        """
        Render and send one trade alert.

        Fields whose value is None are left out. The dedup key is the alert
        kind plus `dedup_suffix`, or the mint when no suffix is given.
        """
        style = ALERT_STYLES[kind]
        lines = [f"Token: [{mint}]({SOLSCAN_TOKEN_URL.format(mint=mint)})"]
        lines.extend(f"{label}: {value}" for label, value in fields if value is not None)
        if style.footer:
            lines.append(style.footer)

        return self.send_alert(
            title=style.title,
            message="\n".join(lines),
            dedup_key=f"{kind.value}_{dedup_suffix or mint}",
            priority=style.priority,
        )

    # =========================================================================
    # Sending
    # =========================================================================

    def send_alert(
        self,
        title: str,
        message: str,
        dedup_key: Optional[str] = None,
        cooldown_seconds: Optional[int] = None,
        priority: str = "normal",
    ) -> bool:
        """
        Send an alert unless disabled or a duplicate within the cooldown.

        Returns:
            True if the alert was delivered
        """
        if not self._enabled:
            return False

        cooldown = cooldown_seconds or self._default_cooldown
        if dedup_key and self._is_duplicate(dedup_key):
            logger.debug(f"Deduplicated alert: {dedup_key}")
            return False

        marker = PRIORITY_MARKERS.get(priority)
        header = f"{marker} *{title}*" if marker else f"*{title}*"
        delivered = self._deliver(f"{header}\n\n{message.strip()}")

        if delivered:
            self._total_sent += 1
            if dedup_key:
                self._suppressed_until[dedup_key] = time.time() + cooldown
        return delivered

    def _is_duplicate(self, key: str) -> bool:
        self._prune_expired(time.time())
        return key in self._suppressed_until

    def _prune_expired(self, now: float) -> None:
        """Forget keys whose cooldown has passed."""
        expired = [k for k, until in self._suppressed_until.items() if until <= now]
        for key in expired:
            del self._suppressed_until[key]

    def _deliver(self, text: str) -> bool:
        if self._telegram_api is not None:
            try:
                self._telegram_api.send_message(
                    chat_id=self._chat_id, text=text, parse_mode="Markdown"
                )
            except Exception as e:
                logger.error(f"Telegram API error: {e}")
                return False
            return True

        if not self._bot_token or not self._chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        try:
            response = requests.post(
                TELEGRAM_SEND_URL.format(token=self._bot_token),
                json={"chat_id": self._chat_id, "text": text, "parse_mode": "Markdown"},
                timeout=10,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send Telegram alert: {e}")
            return False

        logger.debug(f"Sent Telegram alert: {text[:50]}...")
        return True

    def clear_dedup_cache(self) -> None:
        self._suppressed_until.clear()
        self._total_sent = 0

    def get_alert_stats(self) -> Dict[str, int]:
        return {
            "unique_alerts": len(self._suppressed_until),
            "total_sent": self._total_sent,
        }


def _tx_link(signature: Optional[str]) -> Optional[str]:
    return SOLSCAN_TX_URL.format(signature=signature) if signature else None
