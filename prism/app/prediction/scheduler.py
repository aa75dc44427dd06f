"""
scheduler.py — Periodic weather scan of monitored areas.

═══════════════════════════════════════════════════════════════════════════
STATE MACHINE
═══════════════════════════════════════════════════════════════════════════

              timer fires / run_scan()
    ┌──────┐ ─────────────────────────► ┌──────────┐
    │ IDLE │                            │ SCANNING │
    └──────┘ ◄───────────────────────── └──────────┘
              all areas visited (or stop requested)

A firing that arrives while SCANNING is skipped, not queued. The guard is
a lock acquired without blocking, so it holds even when request handlers
and the scheduler run on different threads.

═══════════════════════════════════════════════════════════════════════════
PER-AREA STEPS
═══════════════════════════════════════════════════════════════════════════

    1. conditions + forecast from the weather gateway
         either unavailable            → area skipped this cycle
    2. classify severity and warnings
         severity < threshold (3)      → nothing recorded
    3. classify hazard type, create Disaster
         impactRadius = severity × 20 km, windSpeed copied
    4. publish new_disaster            → before the next area is visited
    5. bulk-notify configured recipients (optional)

Any exception inside an area is logged and the scan moves on; writes that
already committed stay committed.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from prism.app.core.config import settings
from prism.app.ingestion.weather_gateway import WeatherGateway
from prism.app.live.broadcast_hub import BroadcastHub, EventKind
from prism.app.notifications.dispatcher import NotificationDispatcher
from prism.app.prediction.severity import SeverityAssessment, classify, classify_type
from prism.app.storage.models import Disaster, DisasterType, Location
from prism.app.storage.repository import DisasterAlertRepository

logger = logging.getLogger(__name__)

IMPACT_KM_PER_SEVERITY = 20.0


class ScanState(str, Enum):
    IDLE     = "idle"
    SCANNING = "scanning"


@dataclass(frozen=True)
class MonitoredArea:
    name: str
    lat: float
    lng: float


# Cities with recurring cyclone / flood exposure
DEFAULT_MONITORED_AREAS: Sequence[MonitoredArea] = (
    MonitoredArea("Mumbai", 19.0760, 72.8777),
    MonitoredArea("Kolkata", 22.5726, 88.3639),
    MonitoredArea("Chennai", 13.0827, 80.2707),
    MonitoredArea("Hyderabad", 17.3850, 78.4867),
    MonitoredArea("Agartala", 23.8315, 91.2868),
    MonitoredArea("Bhubaneswar", 20.2961, 85.8245),
)


@dataclass
class ScanSummary:
    started_at: datetime
    completed_at: Optional[datetime] = None
    areas_total: int = 0
    areas_scanned: int = 0
    areas_skipped: int = 0
    areas_failed: int = 0
    disasters_created: List[int] = field(default_factory=list)
    interrupted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "areasTotal": self.areas_total,
            "areasScanned": self.areas_scanned,
            "areasSkipped": self.areas_skipped,
            "areasFailed": self.areas_failed,
            "disastersCreated": list(self.disasters_created),
            "interrupted": self.interrupted,
        }


def build_predicted_disaster(
    area: MonitoredArea,
    disaster_type: DisasterType,
    assessment: SeverityAssessment,
) -> Disaster:
    """Disaster record for a qualifying scan result."""
    label = disaster_type.value.capitalize()
    description = f"Predicted {disaster_type.value} with severity level {assessment.severity}."
    if assessment.warnings:
        description += " " + ". ".join(assessment.warnings) + "."

    return Disaster(
        type=disaster_type,
        title=f"{label} Warning - {area.name}",
        description=description,
        location=Location(lat=area.lat, lng=area.lng),
        severity=assessment.severity,
        affected_areas=[area.name],
        wind_speed=assessment.conditions.wind_speed_kmh,
        rainfall=assessment.conditions.rainfall_3h_mm,
        movement="Monitoring",
        impact_radius=assessment.severity * IMPACT_KM_PER_SEVERITY,
    )


class PredictionScheduler:
    """
    Usage:
        scheduler = PredictionScheduler(gateway, repository, hub, DEFAULT_MONITORED_AREAS)
        await scheduler.start()
        ...
        await scheduler.stop()

    ``run_scan()`` can also be awaited directly (tests, on-demand scans).
    """

    def __init__(
        self,
        gateway: WeatherGateway,
        repository: DisasterAlertRepository,
        hub: BroadcastHub,
        areas: Sequence[MonitoredArea],
        *,
        interval_seconds: Optional[float] = None,
        severity_threshold: Optional[int] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        alert_recipients: Sequence[str] = (),
        run_on_start: Optional[bool] = None,
    ):
        self.gateway = gateway
        self.repository = repository
        self.hub = hub
        self.areas: List[MonitoredArea] = list(areas)
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None
            else settings.PREDICTION_INTERVAL_SECONDS
        )
        self.severity_threshold = (
            severity_threshold if severity_threshold is not None
            else settings.PREDICTION_SEVERITY_THRESHOLD
        )
        self.dispatcher = dispatcher
        self.alert_recipients = list(alert_recipients)
        self.run_on_start = (
            run_on_start if run_on_start is not None else settings.PREDICTION_RUN_ON_STARTUP
        )

        self._scan_lock = threading.Lock()
        self._state = ScanState.IDLE
        self._stopping = False
        self._timer_task: Optional[asyncio.Task] = None
        self._scan_tasks: Set[asyncio.Task] = set()
        self.last_summary: Optional[ScanSummary] = None
        self.skipped_firings = 0

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    # ── Scanning ──

    async def run_scan(self) -> Optional[ScanSummary]:
        """
        Visit every area once. Returns None without doing anything when a
        scan is already in progress.
        """
        if not self._scan_lock.acquire(blocking=False):
            self.skipped_firings += 1
            logger.warning("Prediction scan already in progress — skipping this firing")
            return None

        self._state = ScanState.SCANNING
        summary = ScanSummary(
            started_at=datetime.now(timezone.utc),
            areas_total=len(self.areas),
        )
        start = time.perf_counter()
        logger.info("Prediction scan started over %d area(s)", len(self.areas))

        try:
            for area in self.areas:
                if self._stopping:
                    summary.interrupted = True
                    logger.info("Prediction scan interrupted by shutdown before %s", area.name)
                    break
                try:
                    await self._scan_area(area, summary)
                except Exception:
                    summary.areas_failed += 1
                    logger.exception(
                        "Prediction failed for %s — continuing", area.name,
                        extra={"area": area.name},
                    )
        finally:
            summary.completed_at = datetime.now(timezone.utc)
            self.last_summary = summary
            self._state = ScanState.IDLE
            self._scan_lock.release()

        logger.info(
            "Prediction scan complete: %d scanned, %d skipped, %d failed, %d disaster(s) in %.1fs",
            summary.areas_scanned, summary.areas_skipped, summary.areas_failed,
            len(summary.disasters_created), time.perf_counter() - start,
            extra={"duration_ms": (time.perf_counter() - start) * 1000},
        )
        return summary

    async def _scan_area(self, area: MonitoredArea, summary: ScanSummary) -> Optional[Disaster]:
        conditions = await self.gateway.get_current_conditions(area.lat, area.lng)
        if conditions is None:
            summary.areas_skipped += 1
            logger.warning("No current conditions for %s — skipped", area.name,
                           extra={"area": area.name})
            return None

        forecast = await self.gateway.get_forecast(area.lat, area.lng)
        if forecast is None:
            summary.areas_skipped += 1
            logger.warning("No forecast for %s — skipped", area.name,
                           extra={"area": area.name})
            return None

        summary.areas_scanned += 1
        assessment = classify(conditions)
        if assessment.severity < self.severity_threshold:
            logger.debug("%s severity %d below threshold", area.name, assessment.severity)
            return None

        disaster_type = classify_type(conditions, forecast)
        disaster = self.repository.create_disaster(
            build_predicted_disaster(area, disaster_type, assessment)
        )
        summary.disasters_created.append(disaster.id)
        logger.info(
            "Predicted %s for %s (severity %d)",
            disaster_type.value, area.name, disaster.severity,
            extra={"disaster_id": disaster.id, "area": area.name,
                   "severity": disaster.severity},
        )

        await self.hub.publish(EventKind.NEW_DISASTER, disaster)

        if self.dispatcher is not None and self.alert_recipients:
            await self.dispatcher.send_bulk(
                self.alert_recipients,
                self.dispatcher.render_alert_message(disaster),
            )
        return disaster

    # ── Timer ──

    def _fire(self) -> None:
        task = asyncio.create_task(self.run_scan())
        self._scan_tasks.add(task)
        task.add_done_callback(self._scan_tasks.discard)

    async def _timer_loop(self) -> None:
        if self.run_on_start:
            self._fire()
        while not self._stopping:
            await asyncio.sleep(self.interval_seconds)
            if not self._stopping:
                self._fire()

    async def start(self) -> None:
        if self.is_running:
            return
        self._stopping = False
        self._timer_task = asyncio.create_task(self._timer_loop())
        logger.info(
            "Prediction scheduler started (every %.0fs, %d areas)",
            self.interval_seconds, len(self.areas),
        )

    async def stop(self, *, grace_seconds: float = 30.0) -> None:
        """
        Stop the timer and wait for an in-flight scan to finish its current
        area. A scan still running after ``grace_seconds`` is cancelled.
        """
        self._stopping = True
        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        pending = list(self._scan_tasks)
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=grace_seconds)
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
        logger.info("Prediction scheduler stopped")

    def status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "running": self.is_running,
            "intervalSeconds": self.interval_seconds,
            "areas": [area.name for area in self.areas],
            "skippedFirings": self.skipped_firings,
            "lastScan": self.last_summary.to_dict() if self.last_summary else None,
        }
