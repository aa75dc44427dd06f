"""
FastAPI route: Prediction scheduler.

    POST /api/predictions/scan   — run one scan now (skipped if one is running)
    GET  /api/predictions/status — scheduler state and last scan summary
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from prism.app.api.deps import get_services
from prism.app.services import AppServices

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


@router.post("/scan")
async def trigger_scan(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    summary = await services.scheduler.run_scan()
    if summary is None:
        return {"status": "skipped", "reason": "scan already in progress"}
    return {"status": "completed", "scan": summary.to_dict()}


@router.get("/status")
async def scheduler_status(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    return services.scheduler.status()
