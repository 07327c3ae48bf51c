"""Telegram Bot API client."""

import logging
from typing import Any

import httpx

from ..exceptions import DeliveryError, TelegramAPIError

logger = logging.getLogger(__name__)


class TelegramClient:
    """Client for the Telegram Bot API."""

    BASE_URL = "https://api.telegram.org"

    def __init__(self, token: str, transport: httpx.BaseTransport | None = None):
        """Initialize the Telegram client."""
        self.token = token
        self.client = httpx.Client(
            base_url=f"{self.BASE_URL}/bot{token}",
            headers={"Content-Type": "application/json"},
            timeout=60.0,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        """
        Call a Bot API method and return its ``result``.

        Raises:
            TelegramAPIError: On transport errors or an ``ok: false`` reply
        """
        try:
            response = self.client.post(f"/{method}", json=payload or {})
        except httpx.HTTPError as e:
            logger.error(f"Telegram {method} request failed: {e}")
            raise TelegramAPIError(method, str(e)) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error or not data.get("ok"):
            description = data.get("description") or response.text
            logger.error(f"Telegram API error on {method}: {description}")
            raise TelegramAPIError(method, description, response.status_code)

        return data["result"]

    def get_me(self) -> dict[str, Any]:
        """Get the bot's own user record."""
        result: dict[str, Any] = self._call("getMe")
        return result

    def send_message(self, chat_id: str, text: str) -> dict[str, Any]:
        """Send a text message and return the sent message."""
        result: dict[str, Any] = self._call(
            "sendMessage", {"chat_id": chat_id, "text": text}
        )
        return result

    def get_updates(self, offset: int | None = None, timeout: int = 30) -> list[dict]:
        """
        Long-poll for new updates.

        Args:
            offset: Identifier of the first update to return
            timeout: Seconds to wait for updates before returning empty

        Returns:
            List of update objects
        """
        payload: dict[str, Any] = {
            "timeout": timeout,
            "allowed_updates": ["message", "edited_message"],
        }
        if offset is not None:
            payload["offset"] = offset
        updates: list[dict] = self._call("getUpdates", payload)
        return updates

    def set_webhook(self, url: str) -> bool:
        """Register the webhook URL that Telegram should post updates to."""
        result = self._call("setWebhook", {"url": url})
        logger.info(f"Webhook set to {url}")
        return bool(result)

    def delete_webhook(self) -> bool:
        """Remove the webhook so long polling can be used."""
        return bool(self._call("deleteWebhook"))

    def send(self, chat_id: str, text: str) -> None:
        """Message sink interface: deliver text, raising DeliveryError on failure."""
        try:
            self.send_message(chat_id, text)
        except TelegramAPIError as e:
            raise DeliveryError(chat_id, e.description) from e
