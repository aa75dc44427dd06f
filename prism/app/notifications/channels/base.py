"""
base.py — Contract every notification provider implements.

Providers are thin, blocking SDK wrappers. They raise on failure; turning
failures into ``False`` and running calls off the event loop is the
dispatcher's job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class NotificationChannel(str, Enum):
    SMS      = "sms"
    WHATSAPP = "whatsapp"


class ChannelProvider(ABC):
    """A request/response messaging service (SMS, WhatsApp)."""

    name: str = "provider"

    @abstractmethod
    def send_message(self, to: str, body: str, channel: NotificationChannel) -> str:
        """Deliver ``body`` to ``to``. Returns the provider's message id."""

    @abstractmethod
    def verify(self) -> str:
        """Check credentials / connectivity. Returns an account label."""
