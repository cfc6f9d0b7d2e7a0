"""
Triggers - Inbound adapters that start workflow runs.

- webhook: generic HTTP body pass-through
- telegram: Telegram Bot API webhooks
"""

from typing import Dict, Optional, Type

from flowrunner.config import Settings, get_settings
from flowrunner.errors import NotFound
from .base import TriggerAdapter
from .telegram import TelegramTrigger
from .webhook import WebhookTrigger


ADAPTERS: Dict[str, Type[TriggerAdapter]] = {
    WebhookTrigger.name: WebhookTrigger,
    TelegramTrigger.name: TelegramTrigger,
}


def get_adapter(name: str, settings: Optional[Settings] = None) -> TriggerAdapter:
    """
    Build a trigger adapter by name (settings default to the global ones).

    Raises:
        NotFound: If no adapter has that name
    """
    if name not in ADAPTERS:
        raise NotFound(f"Unknown trigger adapter: {name}")

    settings = settings or get_settings()
    if name == TelegramTrigger.name:
        return TelegramTrigger(
            api_base=settings.telegram_api_base,
            timeout=settings.http_timeout_s,
        )
    return ADAPTERS[name]()


__all__ = [
    "ADAPTERS",
    "TriggerAdapter",
    "WebhookTrigger",
    "TelegramTrigger",
    "get_adapter",
]
