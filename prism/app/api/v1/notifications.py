"""
FastAPI route: Notification provider checks.

    GET  /api/notifications/validate — credential / connectivity probe
    POST /api/notifications/test     — send one message to one recipient
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from prism.app.api.deps import get_services
from prism.app.api.schemas import TestNotificationRequest
from prism.app.core.errors import ProviderUnavailableError, ValidationError
from prism.app.services import AppServices

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/validate")
async def validate_provider(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    check = await services.dispatcher.validate_provider_setup()
    return check.to_dict()


@router.post("/test")
async def send_test_notification(
    body: TestNotificationRequest,
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    dispatcher = services.dispatcher
    if not dispatcher.validate_recipient(body.recipient):
        raise ValidationError(
            f"Recipient must be {dispatcher.country_code} followed by 10 digits",
            field="recipient",
        )

    check = await dispatcher.validate_provider_setup()
    if not check.is_valid:
        raise ProviderUnavailableError(dispatcher.provider.name, check.message)

    channel = body.channel or dispatcher.default_channel
    sent = await dispatcher.send(body.recipient, body.message, channel)
    return {
        "success": sent,
        "recipient": body.recipient,
        "channel": channel.value,
        "provider": dispatcher.provider.name,
    }
