"""
Telegram Trigger - Reference adapter for Telegram bot webhooks.

- activate: setWebhook pointing the bot at the workflow's callback URL
- deactivate: deleteWebhook
- inbound updates: message flags (has_voice, message_type), voice
  metadata formatting and, when the bot token is known, the voice file
  URL via getFile

The bot token is the "token" credential. It is attached to the update as
`_botToken` so downstream nodes can call the Bot API.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flowrunner.errors import SubscriptionError
from flowrunner.node_sdk.http import DEFAULT_TIMEOUT, HttpApiError, HttpClient
from .base import TriggerAdapter


logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"
ALLOWED_UPDATES = ["message", "edited_message"]
TOKEN_CREDENTIAL = "token"


def format_duration(seconds: int) -> str:
    """45 -> '45s', 125 -> '2m 5s'."""
    if seconds < 60:
        return f"{seconds}s"
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes}m {remaining}s"


def format_file_size(size: int) -> str:
    """512 -> '512 bytes', 2048 -> '2.0 KB', 3145728 -> '3.0 MB'."""
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


class TelegramTrigger(TriggerAdapter):
    """
    Telegram Bot API trigger adapter.

    Usage:
        adapter = TelegramTrigger()
        adapter.create_subscription({"token": "123:ABC"}, callback_url)
        payload = adapter.normalize(update, {"token": "123:ABC"})
    """

    name = "telegram"
    required_credentials = [TOKEN_CREDENTIAL]

    def __init__(self, api_base: str = DEFAULT_API_BASE, timeout: float = DEFAULT_TIMEOUT):
        self.api_base = api_base.rstrip("/")
        self.client = HttpClient(base_url=self.api_base, timeout=timeout)

    # ==== Subscription lifecycle ====

    def create_subscription(self, credentials: Dict[str, str], callback_url: str) -> None:
        self.check_credentials(credentials)
        token = credentials[TOKEN_CREDENTIAL]

        try:
            response = self.client.post(
                f"/bot{token}/setWebhook",
                json={"url": callback_url, "allowed_updates": ALLOWED_UPDATES},
            )
            response.raise_for_status()
            body = response.json_or_text()
        except HttpApiError as e:
            raise SubscriptionError(f"Failed to register webhook: {e.message}") from e

        if isinstance(body, dict) and body.get("ok") is False:
            raise SubscriptionError(
                f"Failed to register webhook: {body.get('description', 'unknown error')}"
            )
        logger.info(f"Telegram webhook registered at {callback_url}")

    def remove_subscription(self, credentials: Dict[str, str]) -> bool:
        token = (credentials or {}).get(TOKEN_CREDENTIAL)
        if not token:
            return True

        try:
            self.client.post(f"/bot{token}/deleteWebhook").raise_for_status()
        except HttpApiError as e:
            logger.error(f"Failed to delete Telegram webhook: {e.message}")
            return False

        logger.info("Telegram webhook deleted")
        return True

    # ==== Inbound updates ====

    def normalize(self, body: Any, credentials: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        if not isinstance(body, dict):
            return {"json": body}

        update = dict(body)
        token = (credentials or {}).get(TOKEN_CREDENTIAL)
        if token:
            update["_botToken"] = token

        return {"json": self.process_update(update)}

    def process_update(self, update: Dict[str, Any]) -> Dict[str, Any]:
        """Add has_voice/message_type flags and voice metadata to a message."""
        message = update.get("message")
        if not isinstance(message, dict):
            return update

        processed = dict(update)
        if isinstance(message.get("voice"), dict):
            processed["message"] = {
                **message,
                "voice": self._voice_data(message["voice"], update.get("_botToken")),
                "has_voice": True,
                "message_type": "voice",
            }
        else:
            processed["message"] = {
                **message,
                "has_voice": False,
                "message_type": "text" if message.get("text") else "other",
            }
        return processed

    def _voice_data(self, voice: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
        file_id = voice.get("file_id", "")
        data = {
            **voice,
            "message_type": "voice",
            "duration_formatted": format_duration(voice.get("duration") or 0),
            "file_size_formatted": format_file_size(voice.get("file_size") or 0),
        }

        if token:
            try:
                file_url = self.get_file_url(token, file_id)
                data["file_url"] = file_url
                data["download_url"] = file_url
            except HttpApiError as e:
                logger.warning(f"Could not get voice file URL: {e.message}")
                data["file_url_error"] = e.message
        else:
            data["file_url_template"] = (
                f"{self.api_base}/bot{{{{bot_token}}}}/getFile?file_id={file_id}"
            )
            data["download_url_template"] = (
                f"{self.api_base}/file/bot{{{{bot_token}}}}/voice_{voice.get('file_unique_id', '')}"
            )
        return data

    def get_file_url(self, token: str, file_id: str) -> str:
        """
        Resolve a file_id to its download URL.

        Raises:
            HttpApiError: If the Bot API call fails
        """
        response = self.client.post(f"/bot{token}/getFile", json={"file_id": file_id})
        response.raise_for_status()
        body = response.json_or_text()
        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description") if isinstance(body, dict) else None
            raise HttpApiError(f"Telegram API error: {description or 'unknown error'}")
        return f"{self.api_base}/file/bot{token}/{body['result']['file_path']}"


__all__ = [
    "TelegramTrigger",
    "format_duration",
    "format_file_size",
]
