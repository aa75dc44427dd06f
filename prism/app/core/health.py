"""
Deep health probe across the running components.

    component               unhealthy when            degraded when
    ─────────────────────   ───────────────────────   ─────────────────────────────
    repository              counts cannot be read     —
    weather_provider        —                         no OPENWEATHER_API_KEY
    notification_provider   —                         provider setup check fails
    prediction_scheduler    —                         enabled but not running
    live_feed               —                         —

The report status is the worst component status. ``/health/ready`` turns
UNHEALTHY into a 503 so load balancers stop routing to the instance;
DEGRADED still serves traffic.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List

from prism.app.core.config import settings

if TYPE_CHECKING:
    from prism.app.services import AppServices

logger = logging.getLogger(__name__)

_STARTED = time.monotonic()


class HealthStatus(str, Enum):
    HEALTHY   = "healthy"
    DEGRADED  = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def rank(self) -> int:
        return _RANK[self]


_RANK = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latencyMs": round(self.latency_ms, 2),
        }
        if self.message:
            out["message"] = self.message
        if self.details:
            out["details"] = self.details
        return out


@dataclass
class HealthReport:
    components: List[ComponentHealth]
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    uptime_seconds: float = 0.0

    @property
    def status(self) -> HealthStatus:
        return max(
            (c.status for c in self.components),
            key=lambda s: s.rank,
            default=HealthStatus.HEALTHY,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "timestamp": self.checked_at.isoformat(),
            "uptimeSeconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# ---------------------------------------------------------------------------
# Component checks: each fills in the ComponentHealth it is given
# ---------------------------------------------------------------------------

async def _repository(services: "AppServices", comp: ComponentHealth) -> None:
    comp.details = services.repository.counts()


async def _weather_provider(services: "AppServices", comp: ComponentHealth) -> None:
    comp.details = {"baseUrl": services.gateway.base_url}
    if not services.gateway.is_configured:
        comp.status = HealthStatus.DEGRADED
        comp.message = "OPENWEATHER_API_KEY not set, prediction scans find nothing"


async def _notification_provider(services: "AppServices", comp: ComponentHealth) -> None:
    check = await services.dispatcher.validate_provider_setup()
    comp.details = {"provider": services.dispatcher.provider.name}
    comp.message = check.message
    if not check.is_valid:
        comp.status = HealthStatus.DEGRADED


async def _prediction_scheduler(services: "AppServices", comp: ComponentHealth) -> None:
    status = services.scheduler.status()
    comp.details = {k: status[k] for k in ("state", "running", "skippedFirings")}
    if settings.PREDICTION_ENABLED and not status["running"]:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Scheduler enabled but not running"


async def _live_feed(services: "AppServices", comp: ComponentHealth) -> None:
    comp.details = {"subscribers": services.hub.subscriber_count}


CHECKS: Dict[str, Callable[["AppServices", ComponentHealth], Awaitable[None]]] = {
    "repository": _repository,
    "weather_provider": _weather_provider,
    "notification_provider": _notification_provider,
    "prediction_scheduler": _prediction_scheduler,
    "live_feed": _live_feed,
}


async def _run_check(name: str, services: "AppServices") -> ComponentHealth:
    comp = ComponentHealth(name=name)
    start = time.perf_counter()
    try:
        await CHECKS[name](services, comp)
    except Exception as exc:
        logger.exception("Health check %s failed", name)
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(exc)
    comp.latency_ms = (time.perf_counter() - start) * 1000
    return comp


async def run_health_check(services: "AppServices") -> HealthReport:
    """Run every component check concurrently and aggregate the results."""
    components = await asyncio.gather(*(_run_check(name, services) for name in CHECKS))
    return HealthReport(
        components=list(components),
        uptime_seconds=time.monotonic() - _STARTED,
    )
