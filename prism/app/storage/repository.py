"""
repository.py — Canonical store for Disaster and Alert records.

The repository is the only owner of the two collections. Every read
returns a copy, so no caller can mutate a canonical record behind the
repository's back; all writes go through the methods below.

═══════════════════════════════════════════════════════════════════════════
CONCURRENCY
═══════════════════════════════════════════════════════════════════════════

A single re-entrant lock guards both collections and both id counters:

    • ids are assigned under the lock → strictly increasing, no collisions
    • a status update is one read-modify-write under the lock → atomic per
      record; concurrent updates resolve last-writer-wins
    • nothing inside the lock performs I/O, so request handlers and the
      scheduler thread never wait on a slow provider

═══════════════════════════════════════════════════════════════════════════
PROXIMITY
═══════════════════════════════════════════════════════════════════════════

Distance is planar: Euclidean distance in degrees multiplied by 111 km.

    d = sqrt((lat1 - lat2)² + (lng1 - lng2)²) × 111

It ignores longitude convergence, so it overstates east-west distances
away from the equator. Clients depend on this exact figure; do not swap
in haversine.
"""

from __future__ import annotations

import copy
import logging
import math
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional, Union

from prism.app.core.config import settings
from prism.app.core.errors import (
    NotFoundError,
    PrismError,
    StorageError,
    ValidationError,
)
from prism.app.storage.models import (
    PRIORITY_MAX,
    PRIORITY_MIN,
    SEVERITY_MAX,
    SEVERITY_MIN,
    Alert,
    AlertStatus,
    Disaster,
    DisasterType,
    Location,
)

logger = logging.getLogger(__name__)

KM_PER_DEGREE = 111.0
DISTANCE_TOLERANCE_KM = 1e-9


def planar_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Euclidean distance in degrees scaled by 111 km/degree."""
    return math.hypot(lat1 - lat2, lng1 - lng2) * KM_PER_DEGREE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _validate_disaster(disaster: Disaster) -> None:
    """Reject out-of-range fields; coerce a plain-string ``type`` in place."""
    try:
        disaster.type = DisasterType(disaster.type)
    except ValueError:
        raise ValidationError(
            f"type must be one of {[t.value for t in DisasterType]}",
            field="type", value=disaster.type,
        )
    if not isinstance(disaster.location, Location):
        raise ValidationError("location must be a Location", field="location")
    if not isinstance(disaster.severity, int) or not (
        SEVERITY_MIN <= disaster.severity <= SEVERITY_MAX
    ):
        raise ValidationError(
            f"severity must be an integer in [{SEVERITY_MIN}, {SEVERITY_MAX}]",
            field="severity", value=disaster.severity,
        )
    if not disaster.affected_areas:
        raise ValidationError("affectedAreas must not be empty", field="affectedAreas")
    if not disaster.title:
        raise ValidationError("title is required", field="title")


def _validate_alert(alert: Alert) -> None:
    if not isinstance(alert.priority, int) or not (
        PRIORITY_MIN <= alert.priority <= PRIORITY_MAX
    ):
        raise ValidationError(
            f"priority must be an integer in [{PRIORITY_MIN}, {PRIORITY_MAX}]",
            field="priority", value=alert.priority,
        )
    if not alert.message:
        raise ValidationError("message is required", field="message")


class DisasterAlertRepository:
    """
    In-process repository for Disasters and Alerts.

    Usage:
        repo = DisasterAlertRepository()
        disaster = repo.create_disaster(Disaster(...))
        alert = repo.create_alert(Alert(disaster_id=disaster.id, message="..."))
        repo.update_alert_status(alert.id, AlertStatus.RESOLVED)
    """

    def __init__(self, *, lookback_hours: Optional[int] = None):
        self._lock = threading.RLock()
        self._disasters: Dict[int, Disaster] = {}
        self._alerts: Dict[int, Alert] = {}
        self._next_disaster_id = 1
        self._next_alert_id = 1
        self.lookback_hours = (
            lookback_hours if lookback_hours is not None else settings.ALERT_LOOKBACK_HOURS
        )

    @contextmanager
    def _guarded(self, operation: str) -> Iterator[None]:
        """Hold the store lock; surface unexpected failures as StorageError."""
        try:
            with self._lock:
                yield
        except PrismError:
            raise
        except Exception as exc:
            logger.exception("Repository operation %s failed", operation)
            raise StorageError(operation, str(exc)) from exc

    # ── Disasters ──

    def create_disaster(self, disaster: Disaster) -> Disaster:
        """Validate, assign an id, store. Returns a copy of the stored record."""
        record = copy.deepcopy(disaster)
        _validate_disaster(record)
        with self._guarded("create_disaster"):
            record.id = self._next_disaster_id
            self._next_disaster_id += 1
            record.timestamp = _as_utc(record.timestamp)
            record.active_alert_count = 0
            record.last_update = max(_utcnow(), record.timestamp)
            self._disasters[record.id] = record
            stored = copy.deepcopy(record)

        logger.info(
            "Disaster %d created: %s (severity %d)",
            stored.id, stored.title, stored.severity,
            extra={"disaster_id": stored.id, "severity": stored.severity},
        )
        return stored

    def get_disaster(self, disaster_id: int) -> Optional[Disaster]:
        """Return the disaster, or None when the id is unknown."""
        with self._guarded("get_disaster"):
            record = self._disasters.get(disaster_id)
            return copy.deepcopy(record) if record else None

    def list_disasters(self) -> List[Disaster]:
        with self._guarded("list_disasters"):
            return [copy.deepcopy(d) for d in self._disasters.values()]

    def list_disasters_by_type(self, disaster_type: Union[DisasterType, str]) -> List[Disaster]:
        value = disaster_type.value if isinstance(disaster_type, DisasterType) else disaster_type
        with self._guarded("list_disasters_by_type"):
            return [copy.deepcopy(d) for d in self._disasters.values() if d.type.value == value]

    def list_disasters_near(self, lat: float, lng: float, radius_km: float) -> List[Disaster]:
        """Disasters within ``radius_km`` of (lat, lng) by planar distance."""
        if radius_km < 0:
            raise ValidationError("radius must be non-negative", field="radius", value=radius_km)
        with self._guarded("list_disasters_near"):
            return [
                copy.deepcopy(d)
                for d in self._disasters.values()
                if planar_distance_km(lat, lng, d.location.lat, d.location.lng)
                <= radius_km + DISTANCE_TOLERANCE_KM
            ]

    def list_disasters_between(
        self,
        since: datetime,
        until: Optional[datetime] = None,
    ) -> List[Disaster]:
        """Disasters whose event time falls in [since, until]."""
        since = _as_utc(since)
        until = _as_utc(until) if until is not None else None
        with self._guarded("list_disasters_between"):
            return [
                copy.deepcopy(d)
                for d in self._disasters.values()
                if d.timestamp >= since and (until is None or d.timestamp <= until)
            ]

    # ── Alerts ──

    def create_alert(self, alert: Alert) -> Alert:
        """
        Store a new alert.

        Raises NotFoundError when ``disaster_id`` does not reference an
        existing disaster.
        """
        _validate_alert(alert)
        with self._guarded("create_alert"):
            if alert.disaster_id not in self._disasters:
                raise NotFoundError("Disaster", id=alert.disaster_id)
            record = copy.deepcopy(alert)
            record.id = self._next_alert_id
            self._next_alert_id += 1
            record.timestamp = _as_utc(record.timestamp)
            self._alerts[record.id] = record
            self._refresh_disaster(record.disaster_id)
            stored = copy.deepcopy(record)

        logger.info(
            "Alert %d created for disaster %d [%s]",
            stored.id, stored.disaster_id, stored.status.value,
            extra={"alert_id": stored.id, "disaster_id": stored.disaster_id},
        )
        return stored

    def get_alert(self, alert_id: int) -> Optional[Alert]:
        with self._guarded("get_alert"):
            record = self._alerts.get(alert_id)
            return copy.deepcopy(record) if record else None

    def list_alerts(self) -> List[Alert]:
        with self._guarded("list_alerts"):
            return [copy.deepcopy(a) for a in self._alerts.values()]

    def list_active_alerts(self) -> List[Alert]:
        with self._guarded("list_active_alerts"):
            return [copy.deepcopy(a) for a in self._alerts.values() if a.is_active]

    def list_recent_alerts(self, now: Optional[datetime] = None) -> List[Alert]:
        """Active alerts issued within the lookback window (default 72 h)."""
        cutoff = _as_utc(now or _utcnow()) - timedelta(hours=self.lookback_hours)
        with self._guarded("list_recent_alerts"):
            return [
                copy.deepcopy(a)
                for a in self._alerts.values()
                if a.is_active and a.timestamp >= cutoff
            ]

    def update_alert_status(
        self,
        alert_id: int,
        status: Union[AlertStatus, str],
    ) -> Optional[Alert]:
        """
        Set an alert's status. Returns the updated alert, or None when the
        id is unknown. Setting the current status again is a no-op.
        """
        try:
            new_status = AlertStatus(status)
        except ValueError:
            raise ValidationError(
                f"status must be one of {[s.value for s in AlertStatus]}",
                field="status", value=status,
            )

        with self._guarded("update_alert_status"):
            record = self._alerts.get(alert_id)
            if record is None:
                return None
            previous = record.status
            record.status = new_status
            self._refresh_disaster(record.disaster_id)
            updated = copy.deepcopy(record)

        if previous != new_status:
            logger.info(
                "Alert %d status %s → %s",
                alert_id, previous.value, new_status.value,
                extra={"alert_id": alert_id},
            )
        return updated

    # ── Bookkeeping ──

    def _refresh_disaster(self, disaster_id: int) -> None:
        """Recount active alerts and bump lastUpdate. Caller holds the lock."""
        disaster = self._disasters.get(disaster_id)
        if disaster is None:
            return
        disaster.active_alert_count = sum(
            1 for a in self._alerts.values()
            if a.disaster_id == disaster_id and a.is_active
        )
        disaster.last_update = max(_utcnow(), disaster.timestamp)

    def counts(self) -> Dict[str, int]:
        """Collection sizes, for health reporting."""
        with self._guarded("counts"):
            return {
                "disasters": len(self._disasters),
                "alerts": len(self._alerts),
                "active_alerts": sum(1 for a in self._alerts.values() if a.is_active),
            }
