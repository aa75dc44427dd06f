"""
channels — Notification provider backends.

Each provider exposes:
    send_message(to, body, channel) → provider message id   (raises on failure)
    verify()                        → account label          (raises on failure)

Providers are blocking and stateless apart from their SDK client.
Validation, concurrency and failure accounting live in the dispatcher.
"""

from __future__ import annotations

from prism.app.core.config import Settings, settings as default_settings
from prism.app.core.errors import ValidationError
from prism.app.notifications.channels.base import ChannelProvider, NotificationChannel
from prism.app.notifications.channels.simulation import SimulatedProvider
from prism.app.notifications.channels.twilio_gateway import TwilioProvider


def build_provider(config: Settings = default_settings) -> ChannelProvider:
    """Provider selected by ``NOTIFICATION_PROVIDER``."""
    kind = config.NOTIFICATION_PROVIDER.lower()
    if kind == "simulation":
        return SimulatedProvider()
    if kind == "twilio":
        return TwilioProvider(
            config.TWILIO_ACCOUNT_SID,
            config.TWILIO_AUTH_TOKEN,
            config.TWILIO_PHONE_NUMBER,
        )
    raise ValidationError(
        f"Unknown notification provider: {config.NOTIFICATION_PROVIDER}",
        field="NOTIFICATION_PROVIDER",
    )


__all__ = [
    "ChannelProvider",
    "NotificationChannel",
    "SimulatedProvider",
    "TwilioProvider",
    "build_provider",
]
