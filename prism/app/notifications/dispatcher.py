"""
dispatcher.py — Recipient validation and SMS / WhatsApp fan-out.

═══════════════════════════════════════════════════════════════════════════
BULK FLOW
═══════════════════════════════════════════════════════════════════════════

    recipients ──► validate_recipient ──► invalid ones dropped (not attempts)
                                │
                                ▼  none left → return 0, provider untouched
                      ┌───────────────────┐
                      │  send() × N       │  concurrent, one worker thread
                      │  per recipient    │  each, per-send timeout
                      └─────────┬─────────┘
                                ▼
                      success count (False / timeout / error = not counted)

A recipient that hangs only costs its own timeout. Timed-out sends are not
cancelled at the provider; they finish in their worker thread and their
outcome is discarded. No retries and no exactly-once guarantee.

═══════════════════════════════════════════════════════════════════════════
RECIPIENT FORMAT
═══════════════════════════════════════════════════════════════════════════

    <country code><first digit 1-9><9 more digits>      e.g. +919876543210

The country code comes from ``RECIPIENT_COUNTRY_CODE`` (default +91).
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

from prism.app.core.config import settings
from prism.app.notifications.channels import ChannelProvider, NotificationChannel
from prism.app.notifications.messages import render_alert_message
from prism.app.storage.models import Disaster

logger = logging.getLogger(__name__)


@dataclass
class ProviderCheck:
    is_valid: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "message": self.message}


def _recipient_pattern(country_code: str) -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(country_code)}[1-9]\d{{9}}$")


class NotificationDispatcher:
    """
    Usage:
        dispatcher = NotificationDispatcher(SimulatedProvider())
        text = dispatcher.render_alert_message(disaster)
        sent = await dispatcher.send_bulk(["+919876543210"], text)
    """

    def __init__(
        self,
        provider: ChannelProvider,
        *,
        country_code: Optional[str] = None,
        send_timeout: Optional[float] = None,
        default_channel: Union[NotificationChannel, str, None] = None,
        app_url: Optional[str] = None,
    ):
        self.provider = provider
        self.country_code = country_code or settings.RECIPIENT_COUNTRY_CODE
        self.send_timeout = (
            send_timeout if send_timeout is not None else settings.NOTIFICATION_SEND_TIMEOUT
        )
        self.default_channel = NotificationChannel(
            default_channel or settings.NOTIFICATION_DEFAULT_CHANNEL
        )
        self.app_url = app_url or settings.APP_URL
        self._pattern = _recipient_pattern(self.country_code)

    def validate_recipient(self, recipient: Any) -> bool:
        return isinstance(recipient, str) and bool(self._pattern.match(recipient))

    def render_alert_message(self, disaster: Disaster) -> str:
        return render_alert_message(disaster, app_url=self.app_url)

    def _channel(
        self, channel: Union[NotificationChannel, str, None],
    ) -> Optional[NotificationChannel]:
        """Resolve a channel name; None (after logging) when it is not one we deliver on."""
        if not channel:
            return self.default_channel
        try:
            return NotificationChannel(channel)
        except ValueError:
            logger.error(
                "Unsupported notification channel %r; expected one of %s",
                channel, [c.value for c in NotificationChannel],
            )
            return None

    async def send(
        self,
        recipient: str,
        message: str,
        channel: Union[NotificationChannel, str, None] = None,
    ) -> bool:
        """Send to one recipient. False on bad channel or number, provider error or timeout."""
        chosen = self._channel(channel)
        if chosen is None:
            return False

        if not self.validate_recipient(recipient):
            logger.warning(
                "Rejected %s recipient %r: expected %s followed by 10 digits",
                chosen.value, recipient, self.country_code,
                extra={"channel": chosen.value},
            )
            return False

        try:
            sid = await asyncio.wait_for(
                asyncio.to_thread(self.provider.send_message, recipient, message, chosen),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "%s to %s timed out after %.1fs",
                chosen.value, recipient, self.send_timeout,
                extra={"channel": chosen.value},
            )
            return False
        except Exception as exc:
            logger.error(
                "%s to %s failed via %s: %s",
                chosen.value, recipient, self.provider.name, exc,
                extra={"channel": chosen.value},
            )
            return False

        logger.debug("%s to %s delivered: %s", chosen.value, recipient, sid)
        return True

    async def send_bulk(
        self,
        recipients: Iterable[str],
        message: str,
        channel: Union[NotificationChannel, str, None] = None,
    ) -> int:
        """Send one message to many recipients. Returns the success count."""
        chosen = self._channel(channel)
        if chosen is None:
            return 0
        candidates = list(recipients)
        valid = [r for r in candidates if self.validate_recipient(r)]

        if len(valid) < len(candidates):
            logger.warning(
                "Dropped %d invalid recipient(s) from bulk %s",
                len(candidates) - len(valid), chosen.value,
            )
        if not valid:
            logger.error("No valid recipients for bulk %s", chosen.value)
            return 0

        logger.info(
            "Sending bulk %s to %d recipient(s)", chosen.value, len(valid),
            extra={"recipient_count": len(valid), "channel": chosen.value},
        )
        results = await asyncio.gather(*(self.send(r, message, chosen) for r in valid))
        sent = sum(1 for ok in results if ok)

        logger.info(
            "Bulk %s complete: %d/%d sent", chosen.value, sent, len(valid),
            extra={"recipient_count": len(valid), "channel": chosen.value},
        )
        return sent

    async def validate_provider_setup(self) -> ProviderCheck:
        """Credential / connectivity probe used before operational sends."""
        try:
            label = await asyncio.wait_for(
                asyncio.to_thread(self.provider.verify),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            return ProviderCheck(False, f"{self.provider.name} setup check timed out")
        except Exception as exc:
            logger.error("Provider %s validation failed: %s", self.provider.name, exc)
            return ProviderCheck(False, f"{self.provider.name} setup validation failed: {exc}")

        return ProviderCheck(True, f"{self.provider.name} setup is valid ({label})")
