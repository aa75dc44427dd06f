"""
FastAPI route: Disaster records.

    GET  /api/disasters                               — all, ascending id
    GET  /api/disasters/type/{type}                   — by hazard type
    GET  /api/disasters/location/{lat}/{lng}/{radius} — within radius (km)
    GET  /api/disasters/window?since=&until=          — by timestamp
    GET  /api/disasters/{id}                          — one record
    POST /api/disasters                               — create + broadcast
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from prism.app.api.deps import get_services
from prism.app.api.schemas import DisasterCreate
from prism.app.core.errors import NotFoundError
from prism.app.live.broadcast_hub import EventKind
from prism.app.services import AppServices
from prism.app.storage.models import DisasterType

router = APIRouter(prefix="/api/disasters", tags=["disasters"])


@router.get("")
async def list_disasters(services: AppServices = Depends(get_services)) -> List[Dict[str, Any]]:
    return [d.to_dict() for d in services.repository.list_disasters()]


@router.get("/type/{disaster_type}")
async def list_by_type(
    disaster_type: DisasterType,
    services: AppServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return [d.to_dict() for d in services.repository.list_disasters_by_type(disaster_type)]


@router.get("/location/{lat}/{lng}/{radius}")
async def list_near(
    lat: float,
    lng: float,
    radius: float,
    services: AppServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    """Planar approximation (111 km per degree); boundary is inclusive."""
    return [d.to_dict() for d in services.repository.list_disasters_near(lat, lng, radius)]


@router.get("/window")
async def list_in_window(
    since: datetime = Query(..., description="Inclusive lower bound (ISO 8601)"),
    until: Optional[datetime] = Query(None, description="Inclusive upper bound"),
    services: AppServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return [d.to_dict() for d in services.repository.list_disasters_between(since, until)]


@router.get("/{disaster_id}")
async def get_disaster(
    disaster_id: int,
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    disaster = services.repository.get_disaster(disaster_id)
    if disaster is None:
        raise NotFoundError("Disaster", id=disaster_id)
    return disaster.to_dict()


@router.post("", status_code=201)
async def create_disaster(
    body: DisasterCreate,
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    disaster = services.repository.create_disaster(body.to_model())
    await services.hub.publish(EventKind.NEW_DISASTER, disaster)
    return disaster.to_dict()
