"""
test_dispatcher.py — Tests for notification validation, rendering and
bulk delivery.

Covers:
    • Recipient format (+91 followed by 10 digits, first digit 1-9)
    • Alert message template and safety instructions
    • send() / send_bulk() accounting with failing providers
    • Provider setup probe
    • Twilio provider credential checks and WhatsApp addressing

Run with:
    pytest tests/test_dispatcher.py -v
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import MagicMock

import pytest

from prism.app.core.config import Settings
from prism.app.core.errors import ProviderUnavailableError, ValidationError
from prism.app.notifications.channels import (
    ChannelProvider,
    NotificationChannel,
    SimulatedProvider,
    TwilioProvider,
    build_provider,
)
from prism.app.notifications.dispatcher import NotificationDispatcher
from prism.app.notifications.messages import GENERIC_INSTRUCTION, safety_instructions_for
from prism.app.storage.models import Disaster, DisasterType, Location


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

VALID_A = "+919876543210"
VALID_B = "+918765432109"


class RecordingProvider(ChannelProvider):
    name = "recording"

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def send_message(self, to, body, channel):
        self.calls.append((to, channel))
        if to in self.failing:
            raise RuntimeError("carrier rejected")
        return f"MSG{len(self.calls)}"

    def verify(self):
        return "Test Account"


class UnverifiableProvider(RecordingProvider):
    def verify(self):
        raise ProviderUnavailableError(self.name, "missing credentials")


def _make_dispatcher(provider: ChannelProvider) -> NotificationDispatcher:
    return NotificationDispatcher(
        provider,
        country_code="+91",
        send_timeout=2.0,
        default_channel=NotificationChannel.WHATSAPP,
        app_url="https://prism.example.org/",
    )


def _make_disaster(dtype: DisasterType = DisasterType.CYCLONE) -> Disaster:
    return Disaster(
        id=1,
        type=dtype,
        title="Cyclone Warning - Chennai",
        description="Predicted cyclone with severity level 5.",
        location=Location(13.08, 80.27),
        severity=5,
        affected_areas=["Chennai", "Kanchipuram"],
    )


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Recipient validation and rendering
# ═══════════════════════════════════════════════════════════════════════════

class TestValidateRecipient:

    @pytest.mark.parametrize("number", [VALID_A, "+911234567890"])
    def test_valid(self, number):
        assert _make_dispatcher(RecordingProvider()).validate_recipient(number)

    @pytest.mark.parametrize("number", [
        "9876543210",        # no country code
        "+910876543210",     # leading zero
        "+91987654321",      # 9 digits
        "+9198765432100",    # 11 digits
        "+449876543210",     # other country
        "",
        None,
    ])
    def test_invalid(self, number):
        assert not _make_dispatcher(RecordingProvider()).validate_recipient(number)


class TestRenderMessage:

    def test_template(self):
        text = _make_dispatcher(RecordingProvider()).render_alert_message(_make_disaster())
        lines = text.splitlines()
        assert lines[0] == "🚨 URGENT: CYCLONE ALERT 🚨"
        assert "Location: Chennai, Kanchipuram" in lines
        assert "Severity: Level 5" in lines
        assert safety_instructions_for(DisasterType.CYCLONE) in text
        assert lines[-1] == "Track live updates: https://prism.example.org/dashboard/cyclone"

    def test_unknown_type_gets_generic_instruction(self):
        assert safety_instructions_for("volcano") == GENERIC_INSTRUCTION

    def test_every_type_has_instructions(self):
        for dtype in DisasterType:
            assert safety_instructions_for(dtype) != GENERIC_INSTRUCTION


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Delivery
# ═══════════════════════════════════════════════════════════════════════════

class TestSend:

    def test_success(self):
        provider = RecordingProvider()
        assert asyncio.run(_make_dispatcher(provider).send(VALID_A, "hello")) is True
        assert provider.calls == [(VALID_A, NotificationChannel.WHATSAPP)]

    def test_invalid_recipient_not_attempted(self):
        provider = RecordingProvider()
        assert asyncio.run(_make_dispatcher(provider).send("12345", "hello")) is False
        assert provider.calls == []

    def test_provider_error_is_false(self):
        provider = RecordingProvider(failing=[VALID_A])
        assert asyncio.run(_make_dispatcher(provider).send(VALID_A, "hello", "sms")) is False
        assert provider.calls == [(VALID_A, NotificationChannel.SMS)]

    def test_timeout_is_false(self):
        provider = MagicMock(spec=ChannelProvider)
        provider.name = "slow"
        provider.send_message.side_effect = lambda *args: time.sleep(0.5)
        dispatcher = _make_dispatcher(provider)
        dispatcher.send_timeout = 0.05
        assert asyncio.run(dispatcher.send(VALID_A, "hello")) is False

    def test_unknown_channel_is_false(self):
        provider = RecordingProvider()
        assert asyncio.run(_make_dispatcher(provider).send(VALID_A, "hello", "pigeon")) is False
        assert provider.calls == []


class TestSendBulk:

    def test_all_invalid_returns_zero_without_calls(self):
        provider = RecordingProvider()
        sent = asyncio.run(_make_dispatcher(provider).send_bulk(["123", "abc"], "hello"))
        assert sent == 0
        assert provider.calls == []

    def test_counts_only_successes(self):
        provider = RecordingProvider(failing=[VALID_A])
        sent = asyncio.run(_make_dispatcher(provider).send_bulk([VALID_A, VALID_B], "hello"))
        assert sent == 1
        assert {to for to, _ in provider.calls} == {VALID_A, VALID_B}

    def test_invalid_entries_filtered(self):
        provider = RecordingProvider()
        sent = asyncio.run(
            _make_dispatcher(provider).send_bulk([VALID_A, "bad", VALID_B], "hello", "sms")
        )
        assert sent == 2
        assert len(provider.calls) == 2

    def test_unknown_channel_returns_zero(self):
        provider = RecordingProvider()
        sent = asyncio.run(
            _make_dispatcher(provider).send_bulk([VALID_A, VALID_B], "hello", "fax")
        )
        assert sent == 0
        assert provider.calls == []


class TestValidateProviderSetup:

    def test_valid(self):
        check = asyncio.run(_make_dispatcher(RecordingProvider()).validate_provider_setup())
        assert check.is_valid
        assert "Test Account" in check.message
        assert check.to_dict()["isValid"] is True

    def test_invalid(self):
        check = asyncio.run(_make_dispatcher(UnverifiableProvider()).validate_provider_setup())
        assert not check.is_valid
        assert "missing credentials" in check.message

    def test_simulation_is_valid(self):
        check = asyncio.run(_make_dispatcher(SimulatedProvider()).validate_provider_setup())
        assert check.is_valid


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Twilio provider
# ═══════════════════════════════════════════════════════════════════════════

class TestTwilioProvider:

    def test_missing_credentials(self):
        provider = TwilioProvider(None, None, None)
        with pytest.raises(ProviderUnavailableError):
            provider.verify()

    def test_sid_must_start_with_ac(self):
        provider = TwilioProvider("XX123", "token", "+15005550006")
        with pytest.raises(ProviderUnavailableError, match="AC"):
            provider.send_message(VALID_A, "hi", NotificationChannel.SMS)

    def test_whatsapp_addressing(self):
        client = MagicMock()
        client.messages.create.return_value.sid = "SM123"
        provider = TwilioProvider("AC123", "token", "+15005550006", client=client)

        sid = provider.send_message(VALID_A, "hi", NotificationChannel.WHATSAPP)

        assert sid == "SM123"
        client.messages.create.assert_called_once_with(
            from_="whatsapp:+15005550006", to=f"whatsapp:{VALID_A}", body="hi",
        )

    def test_sms_addressing(self):
        client = MagicMock()
        provider = TwilioProvider("AC123", "token", "+15005550006", client=client)
        provider.send_message(VALID_A, "hi", NotificationChannel.SMS)
        client.messages.create.assert_called_once_with(
            from_="+15005550006", to=VALID_A, body="hi",
        )

    def test_verify_returns_friendly_name(self):
        client = MagicMock()
        client.api.accounts.return_value.fetch.return_value.friendly_name = "Prism Ops"
        provider = TwilioProvider("AC123", "token", "+15005550006", client=client)
        assert provider.verify() == "Prism Ops"


class TestBuildProvider:

    def test_simulation(self):
        assert isinstance(build_provider(Settings(NOTIFICATION_PROVIDER="simulation")), SimulatedProvider)

    def test_twilio(self):
        provider = build_provider(Settings(
            NOTIFICATION_PROVIDER="twilio",
            TWILIO_ACCOUNT_SID="AC123",
            TWILIO_AUTH_TOKEN="token",
            TWILIO_PHONE_NUMBER="+15005550006",
        ))
        assert isinstance(provider, TwilioProvider)
        assert provider.account_sid == "AC123"

    def test_unknown(self):
        with pytest.raises(ValidationError):
            build_provider(Settings(NOTIFICATION_PROVIDER="pigeon"))
