"""
models.py — Disaster and Alert records owned by the repository.

Defines:
    • DisasterType — hazard categories (extend by adding members)
    • AlertStatus  — alert lifecycle states
    • Location     — {lat, lng} value type
    • Disaster     — a detected or predicted hazard event
    • Alert        — a notification-worthy message tied to one Disaster

═══════════════════════════════════════════════════════════════════════════
WIRE FORMAT
═══════════════════════════════════════════════════════════════════════════

Records serialise with camelCase keys because the dashboard client and
the live feed consume them directly:

    {
        "id": 3,
        "type": "flood",
        "title": "Flood Warning - Chennai",
        "location": {"lat": 13.0827, "lng": 80.2707},
        "severity": 4,
        "affectedAreas": ["Chennai"],
        "impactRadius": 80.0,
        "activeAlertCount": 1,
        "lastUpdate": "2026-10-19T08:15:00+00:00",
        ...
    }

Severity (1–5) and alert priority (1–3) are independent scales; nothing
in this package converts one into the other.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class DisasterType(str, Enum):
    CYCLONE    = "cyclone"
    EARTHQUAKE = "earthquake"
    FLOOD      = "flood"
    STORM      = "storm"
    HEATWAVE   = "heatwave"


class AlertStatus(str, Enum):
    ACTIVE   = "active"
    RESOLVED = "resolved"


SEVERITY_MIN = 1
SEVERITY_MAX = 5
PRIORITY_MIN = 1
PRIORITY_MAX = 3


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Location:
    """A point in decimal degrees. Compared by value."""
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass
class Disaster:
    """
    A detected or predicted hazard event.

    ``id`` is 0 until the repository assigns one. ``active_alert_count``
    and ``last_update`` are repository bookkeeping, refreshed whenever an
    alert tied to this disaster is created or changes status.
    """
    type: DisasterType
    title: str
    description: str
    location: Location
    severity: int
    affected_areas: List[str]
    timestamp: datetime = field(default_factory=_now)
    id: int = 0

    # Type-specific observations
    wind_speed: Optional[float] = None       # km/h
    movement: Optional[str] = None
    depth: Optional[float] = None            # km
    magnitude: Optional[float] = None
    rainfall: Optional[float] = None         # mm
    water_level: Optional[float] = None      # m

    impact_radius: Optional[float] = None    # km
    evacuation_zone: Optional[List[List[float]]] = None
    active_alert_count: int = 0
    last_update: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "location": self.location.to_dict(),
            "severity": self.severity,
            "timestamp": _iso(self.timestamp),
            "affectedAreas": list(self.affected_areas),
            "windSpeed": self.wind_speed,
            "movement": self.movement,
            "depth": self.depth,
            "magnitude": self.magnitude,
            "rainfall": self.rainfall,
            "waterLevel": self.water_level,
            "impactRadius": self.impact_radius,
            "evacuationZone": self.evacuation_zone,
            "activeAlertCount": self.active_alert_count,
            "lastUpdate": _iso(self.last_update),
        }


@dataclass
class Alert:
    """A notification-worthy event referencing one Disaster by id."""
    disaster_id: int
    message: str
    status: AlertStatus = AlertStatus.ACTIVE
    priority: int = 1
    timestamp: datetime = field(default_factory=_now)
    id: int = 0
    affected_population: Optional[int] = None
    evacuation_required: bool = False
    safety_instructions: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == AlertStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "disasterId": self.disaster_id,
            "message": self.message,
            "timestamp": _iso(self.timestamp),
            "status": self.status.value,
            "priority": self.priority,
            "affectedPopulation": self.affected_population,
            "evacuationRequired": self.evacuation_required,
            "safetyInstructions": self.safety_instructions,
        }
