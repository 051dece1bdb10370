"""
Test fixtures for monitoring.

IMPORTANT: Telegram is always mocked. Never send real messages in tests.
"""
from unittest.mock import MagicMock

import pytest

from pool_sniper.monitoring.alerting import AlertManager


@pytest.fixture
def mock_telegram_api():
    """Mock Telegram client."""
    api = MagicMock()
    api.send_message.return_value = {"ok": True}
    return api


@pytest.fixture
def alert_manager(mock_telegram_api):
    """Alert manager using the mock Telegram client."""
    return AlertManager(
        telegram_bot_token="test_token",
        telegram_chat_id="test_chat",
        _telegram_api=mock_telegram_api,
    )
