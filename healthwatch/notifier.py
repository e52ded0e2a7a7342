"""Telegram notification sink."""

import logging
from urllib.parse import urlparse

import requests

from .config import TelegramConfig

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"

# Telegram rejects longer messages outright.
TELEGRAM_MAX_MESSAGE_CHARS = 4096

REQUEST_TIMEOUT = 10


class NotificationError(Exception):
    """Raised when a message could not be delivered to Telegram."""

    pass


class TelegramNotifier:
    """Sends plain-text messages to one fixed Telegram chat.

    Each ``send`` is a single attempt; the caller decides what a failure
    means.
    """

    def __init__(self, config: TelegramConfig, api_url: str = TELEGRAM_API_URL) -> None:
        self._chat_id = config.chat_id
        self._base_url = f"{api_url}/bot{config.token}"
        self._session = requests.Session()
        if config.proxy:
            self._session.proxies = {"http": config.proxy, "https": config.proxy}
            logger.info("Using proxy for Telegram API: %s", urlparse(config.proxy).hostname)

    def _call(self, method: str, payload: dict | None = None) -> dict:
        """Invoke a Bot API method and return its ``result``.

        Raises:
            NotificationError: On transport errors or an unsuccessful API reply.
        """
        try:
            response = self._session.post(f"{self._base_url}/{method}", json=payload or {}, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            # The exception text embeds the URL, which carries the token.
            raise NotificationError(f"Telegram {method} request failed: {type(e).__name__}")

        try:
            data = response.json()
        except ValueError:
            raise NotificationError(f"Telegram {method} returned non-JSON response (HTTP {response.status_code})")

        if not isinstance(data, dict) or not response.ok or not data.get("ok"):
            description = data.get("description", "unknown error") if isinstance(data, dict) else "unknown error"
            raise NotificationError(f"Telegram {method} failed (HTTP {response.status_code}): {description}")

        return data.get("result") or {}

    def send(self, text: str) -> None:
        """Send a message to the configured chat.

        Raises:
            NotificationError: If the message was not accepted by Telegram.
        """
        if len(text) > TELEGRAM_MAX_MESSAGE_CHARS:
            text = text[: TELEGRAM_MAX_MESSAGE_CHARS - 1] + "…"
        self._call("sendMessage", {"chat_id": self._chat_id, "text": text})
        logger.debug("Telegram message sent to chat %d", self._chat_id)

    def get_me(self) -> dict:
        """Return the bot's own user object, verifying token and connectivity.

        Raises:
            NotificationError: If the Bot API cannot be reached or rejects the token.
        """
        return self._call("getMe")
