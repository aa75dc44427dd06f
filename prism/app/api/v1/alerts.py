"""
FastAPI route: Alerts.

    GET   /api/alerts              — all, ascending id
    GET   /api/alerts/active       — status == active
    GET   /api/alerts/72h          — active and inside the lookback window
    GET   /api/alerts/{id}         — one record
    POST  /api/alerts              — create + broadcast (+ notify recipients)
    PATCH /api/alerts/{id}/status  — activate / resolve + broadcast
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends

from prism.app.api.deps import get_services
from prism.app.api.schemas import AlertCreate, AlertStatusUpdate
from prism.app.core.errors import NotFoundError
from prism.app.live.broadcast_hub import EventKind
from prism.app.services import AppServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(services: AppServices = Depends(get_services)) -> List[Dict[str, Any]]:
    return [a.to_dict() for a in services.repository.list_alerts()]


@router.get("/active")
async def list_active_alerts(
    services: AppServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return [a.to_dict() for a in services.repository.list_active_alerts()]


@router.get("/72h")
async def list_recent_alerts(
    services: AppServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return [a.to_dict() for a in services.repository.list_recent_alerts()]


@router.get("/{alert_id}")
async def get_alert(
    alert_id: int,
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    alert = services.repository.get_alert(alert_id)
    if alert is None:
        raise NotFoundError("Alert", id=alert_id)
    return alert.to_dict()


@router.post("", status_code=201)
async def create_alert(
    body: AlertCreate,
    background_tasks: BackgroundTasks,
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    """
    Store the alert and push it to live subscribers.

    When ``recipients`` are given, the referenced disaster's rendered
    message goes out to them after the response is sent; delivery
    failures are logged, never reported back to this caller.
    """
    alert = services.repository.create_alert(body.to_model())
    await services.hub.publish(EventKind.NEW_ALERT, alert)

    if body.recipients:
        disaster = services.repository.get_disaster(alert.disaster_id)
        if disaster is not None:
            text = services.dispatcher.render_alert_message(disaster)
            background_tasks.add_task(
                services.dispatcher.send_bulk, list(body.recipients), text, body.channel,
            )
            logger.info(
                "Queued notifications for alert %d", alert.id,
                extra={"alert_id": alert.id, "recipient_count": len(body.recipients)},
            )

    return alert.to_dict()


@router.patch("/{alert_id}/status")
async def update_alert_status(
    alert_id: int,
    body: AlertStatusUpdate,
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    alert = services.repository.update_alert_status(alert_id, body.status)
    if alert is None:
        raise NotFoundError("Alert", id=alert_id)
    await services.hub.publish(EventKind.ALERT_UPDATED, alert)
    return alert.to_dict()
