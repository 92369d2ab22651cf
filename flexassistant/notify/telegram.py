"""Telegram notifier — renders notifications and sends them via the Bot API."""

from __future__ import annotations

import logging

import requests

from flexassistant.notify.base import NotificationError, Notifier
from flexassistant.notify.formatter import MessageFormatter
from flexassistant.utils.config import TelegramConfig

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4000


class TelegramNotifier(Notifier):
    name = "telegram"

    def __init__(
        self,
        config: TelegramConfig,
        formatter: MessageFormatter | None = None,
        timeout: int = 15,
    ):
        if not config.token:
            raise ValueError("Telegram token is not set")
        if not config.chat_id and not config.channel_name:
            raise ValueError("Telegram chat-id or channel-name is required")
        self.config = config
        self.formatter = formatter or MessageFormatter()
        self.timeout = timeout
        self.base_url = f"{TELEGRAM_API_URL}/bot{config.token}"
        self._session = requests.Session()

    @property
    def destination(self) -> int | str:
        """Chat ID when configured, channel username otherwise."""
        if self.config.chat_id:
            return self.config.chat_id
        name = self.config.channel_name
        return name if name.startswith("@") else f"@{name}"

    def notify(self, kind: str, payload: dict) -> None:
        message = self.formatter.render(kind, payload)
        self.send_message(message)

    def send_message(self, text: str, parse_mode: str = "Markdown") -> None:
        """Send a message, split in chunks below the Telegram size limit."""
        for chunk in _chunk_message(text, MAX_MESSAGE_LENGTH):
            data = self._post(chunk, parse_mode)
            if not data.get("ok"):
                # Retry without parse_mode if markdown fails
                logger.debug("Markdown rejected (%s), sending as plain text", data.get("description"))
                data = self._post(chunk, None)
            if not data.get("ok"):
                raise NotificationError(f"sendMessage failed: {data.get('description', data)}")
            logger.debug("Message %s sent to Telegram", data.get("result", {}).get("message_id"))

    def _post(self, text: str, parse_mode: str | None) -> dict:
        body = {
            "chat_id": self.destination,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            body["parse_mode"] = parse_mode
        try:
            resp = self._session.post(
                f"{self.base_url}/sendMessage", json=body, timeout=self.timeout,
            )
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise NotificationError(f"sendMessage failed: {e}") from e


def _chunk_message(text: str, max_len: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split a long message into chunks."""
    if len(text) <= max_len:
        return [text]
    chunks = []
    while text:
        if len(text) <= max_len:
            chunks.append(text)
            break
        # Find a good split point
        split = text.rfind("\n", 0, max_len)
        if split <= 0:
            split = max_len
        chunks.append(text[:split])
        text = text[split:].lstrip("\n")
    return chunks
