"""
simulation.py — Log-only provider for development and tests.

Selected with ``NOTIFICATION_PROVIDER=simulation`` (the default). Nothing
leaves the process; every send is logged and reported as delivered.
"""

from __future__ import annotations

import logging
import uuid

from prism.app.notifications.channels.base import ChannelProvider, NotificationChannel

logger = logging.getLogger(__name__)


class SimulatedProvider(ChannelProvider):
    name = "simulation"

    def send_message(self, to: str, body: str, channel: NotificationChannel) -> str:
        sid = f"SIM{uuid.uuid4().hex[:16].upper()}"
        preview = body.splitlines()[0] if body else ""
        logger.info(
            "[%s] → %s (%d chars): %s",
            channel.value.upper(), to, len(body), preview[:80],
            extra={"channel": channel.value},
        )
        return sid

    def verify(self) -> str:
        return "simulation"
