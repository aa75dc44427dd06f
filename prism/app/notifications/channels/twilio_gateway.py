"""
twilio_gateway.py — SMS and WhatsApp delivery through Twilio.

    App → twilio.rest.Client → Twilio Messages API → carrier / WhatsApp

    SMS:       from_=TWILIO_PHONE_NUMBER            to=+91XXXXXXXXXX
    WhatsApp:  from_=whatsapp:TWILIO_PHONE_NUMBER   to=whatsapp:+91XXXXXXXXXX

The REST client is created on first use so the application starts even
when credentials are absent; the first send or verify then raises
ProviderUnavailableError explaining what is missing.
"""

from __future__ import annotations

import logging
from typing import Optional

from twilio.rest import Client

from prism.app.core.errors import ProviderUnavailableError
from prism.app.notifications.channels.base import ChannelProvider, NotificationChannel

logger = logging.getLogger(__name__)


class TwilioProvider(ChannelProvider):
    name = "twilio"

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        *,
        client: Optional[Client] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client

    def _check_credentials(self) -> None:
        if not self.account_sid or not self.auth_token:
            raise ProviderUnavailableError(self.name, "missing Twilio credentials")
        if not self.account_sid.startswith("AC"):
            raise ProviderUnavailableError(
                self.name, "invalid Account SID format, must start with AC",
            )
        if not self.from_number:
            raise ProviderUnavailableError(self.name, "missing Twilio phone number")

    def _get_client(self) -> Client:
        if self._client is None:
            self._check_credentials()
            self._client = Client(self.account_sid, self.auth_token)
            logger.info("Twilio client initialised")
        return self._client

    def send_message(self, to: str, body: str, channel: NotificationChannel) -> str:
        client = self._get_client()
        sender, target = self.from_number, to
        if channel == NotificationChannel.WHATSAPP:
            sender, target = f"whatsapp:{sender}", f"whatsapp:{to}"

        message = client.messages.create(from_=sender, to=target, body=body)
        logger.info(
            "Twilio %s accepted for %s: %s", channel.value, to, message.sid,
            extra={"channel": channel.value},
        )
        return message.sid

    def verify(self) -> str:
        client = self._get_client()
        account = client.api.accounts(self.account_sid).fetch()
        return account.friendly_name
