"""
Webhook Trigger - Generic inbound HTTP trigger.

The request body becomes the payload as-is; there is no external
subscription to manage.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .base import TriggerAdapter


class WebhookTrigger(TriggerAdapter):
    name = "webhook"
    required_credentials = []

    def normalize(self, body: Any, credentials: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return {"json": body}


__all__ = ["WebhookTrigger"]
