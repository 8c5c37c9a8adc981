"""
Telegram Bot API transport for staff notifications.
"""
from typing import Any, Dict, Optional

import requests

from ..utils.logger import get_logger
from config.settings import app_config

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramClient:
    def __init__(self, timeout: Optional[int] = None):
        self.logger = get_logger("telegram_client")
        self.timeout = timeout or app_config.http_timeout_seconds

    def send_message(self, text: str, token: str, chat_id: str) -> Dict[str, Any]:
        """Send an HTML-formatted message; raises on transport or API errors."""
        response = requests.post(
            TELEGRAM_API_URL.format(token=token),
            json={"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        if not data.get("ok", False):
            raise RuntimeError(f"Telegram API error: {data.get('description', 'unknown error')}")
        self.logger.debug("telegram_message_sent", chat_id=chat_id,
                          message_id=data.get("result", {}).get("message_id"))
        return data
