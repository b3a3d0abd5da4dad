"""
Telegram notifier for rebalance summaries and status messages.
"""

import logging
import re
from typing import Iterable, List, Optional

import requests

from engine.interfaces import Notifier

TELEGRAM_SEND_MESSAGE_URL = "https://api.telegram.org/bot{token}/sendMessage"

_MARKDOWN_V2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!])")

logger = logging.getLogger(__name__)


def escape_markdown_v2(text: str) -> str:
    """Escape every character MarkdownV2 treats as markup."""
    return _MARKDOWN_V2_SPECIAL.sub(r"\\\1", text)


def parse_chat_ids(raw: Optional[str]) -> List[str]:
    """Split a comma-separated chat id list, dropping blanks and stray leading '='."""
    if not raw:
        return []
    return [chat_id.strip().lstrip("=") for chat_id in raw.split(",") if chat_id.strip().lstrip("=")]


class TelegramNotifier(Notifier):
    """
    Sends messages to one or more Telegram chats through the Bot API.

    Each chat first gets a MarkdownV2-escaped message; if Telegram rejects it
    or the request fails the plain text is sent instead. Delivery problems are logged and never
    raised.
    """

    def __init__(self,
                 bot_token: Optional[str],
                 chat_ids: Iterable[str],
                 session: Optional[requests.Session] = None,
                 timeout: float = 10.0):
        self.bot_token = bot_token
        self.chat_ids = list(chat_ids)
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_ids)

    def _post(self, chat_id: str, text: str, parse_mode: Optional[str] = None) -> bool:
        """Send one message; a rejection or a request error both count as not delivered."""
        data = {"chat_id": chat_id, "text": text}
        if parse_mode:
            data["parse_mode"] = parse_mode
        try:
            response = self.session.post(
                TELEGRAM_SEND_MESSAGE_URL.format(token=self.bot_token),
                data=data,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"📱 Failed to send to chat {chat_id}: {e}")
            return False
        return response.status_code == 200

    def notify(self, message: str) -> None:
        if not self.enabled:
            return

        for chat_id in self.chat_ids:
            if self._post(chat_id, escape_markdown_v2(message), parse_mode="MarkdownV2"):
                continue
            if not self._post(chat_id, message):
                logger.warning(f"📱 Telegram could not deliver message to chat {chat_id}")
