"""
Trigger Adapter - Contract between an inbound event source and a workflow.

An adapter:
- normalizes an inbound request body into the trigger payload {"json": ...}
- creates/removes the external subscription on activate/deactivate
- names the credentials it needs (checked before any side effect)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from flowrunner.errors import MissingCredentials


logger = logging.getLogger(__name__)


class TriggerAdapter(ABC):
    """
    Base class for trigger adapters.

    Subclasses set `name` and `required_credentials` and implement
    normalize(); subscriptions default to no-ops.
    """

    name: str = "base"
    required_credentials: List[str] = []

    def check_credentials(self, credentials: Optional[Dict[str, str]]) -> None:
        """
        Raises:
            MissingCredentials: If a required credential is absent or empty
        """
        credentials = credentials or {}
        missing = [n for n in self.required_credentials if not credentials.get(n)]
        if missing:
            raise MissingCredentials(missing, adapter=self.name)

    @abstractmethod
    def normalize(self, body: Any, credentials: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Turn an inbound request body into the trigger payload."""
        raise NotImplementedError

    def create_subscription(self, credentials: Dict[str, str], callback_url: str) -> None:
        """
        Register callback_url with the external service.

        Raises:
            SubscriptionError: If the external service refuses
        """

    def remove_subscription(self, credentials: Dict[str, str]) -> bool:
        """Remove the external subscription. Returns False on failure."""
        return True


__all__ = ["TriggerAdapter"]
