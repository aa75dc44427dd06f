"""
Pydantic schemas for the disaster / alert API.

Wire format is camelCase (``affectedAreas``, ``disasterId``) to match the
dashboard client; snake_case field names are accepted too.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from prism.app.notifications.channels import NotificationChannel
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


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LocationIn(CamelModel):
    lat: float = Field(..., ge=-90.0, le=90.0, examples=[13.0827])
    lng: float = Field(..., ge=-180.0, le=180.0, examples=[80.2707])


class DisasterCreate(CamelModel):
    """Request body for POST /api/disasters."""
    type: DisasterType
    title: str = Field(..., min_length=1, examples=["Cyclone Warning - Chennai"])
    description: str = ""
    location: LocationIn
    severity: int = Field(..., ge=SEVERITY_MIN, le=SEVERITY_MAX)
    affected_areas: List[str] = Field(..., min_length=1, examples=[["Chennai"]])
    timestamp: Optional[datetime] = None

    wind_speed: Optional[float] = Field(None, ge=0, description="km/h")
    movement: Optional[str] = None
    depth: Optional[float] = Field(None, description="km")
    magnitude: Optional[float] = None
    rainfall: Optional[float] = Field(None, ge=0, description="mm")
    water_level: Optional[float] = Field(None, description="m")
    impact_radius: Optional[float] = Field(None, ge=0, description="km")
    evacuation_zone: Optional[List[List[float]]] = None

    def to_model(self) -> Disaster:
        extra = {"timestamp": self.timestamp} if self.timestamp is not None else {}
        return Disaster(
            type=self.type,
            title=self.title,
            description=self.description,
            location=Location(lat=self.location.lat, lng=self.location.lng),
            severity=self.severity,
            affected_areas=list(self.affected_areas),
            wind_speed=self.wind_speed,
            movement=self.movement,
            depth=self.depth,
            magnitude=self.magnitude,
            rainfall=self.rainfall,
            water_level=self.water_level,
            impact_radius=self.impact_radius,
            evacuation_zone=self.evacuation_zone,
            **extra,
        )


class AlertCreate(CamelModel):
    """
    Request body for POST /api/alerts.

    ``recipients`` / ``channel`` are not stored; when present the rendered
    disaster message is sent to them after the response.
    """
    disaster_id: int = Field(..., ge=1)
    message: str = Field(..., min_length=1)
    status: AlertStatus = AlertStatus.ACTIVE
    priority: int = Field(PRIORITY_MIN, ge=PRIORITY_MIN, le=PRIORITY_MAX)
    timestamp: Optional[datetime] = None
    affected_population: Optional[int] = Field(None, ge=0)
    evacuation_required: bool = False
    safety_instructions: Optional[str] = None

    recipients: Optional[List[str]] = Field(None, examples=[["+919876543210"]])
    channel: Optional[NotificationChannel] = None

    def to_model(self) -> Alert:
        extra = {"timestamp": self.timestamp} if self.timestamp is not None else {}
        return Alert(
            disaster_id=self.disaster_id,
            message=self.message,
            status=self.status,
            priority=self.priority,
            affected_population=self.affected_population,
            evacuation_required=self.evacuation_required,
            safety_instructions=self.safety_instructions,
            **extra,
        )


class AlertStatusUpdate(CamelModel):
    status: AlertStatus


class TestNotificationRequest(CamelModel):
    """Request body for POST /api/notifications/test."""
    recipient: str = Field(..., examples=["+919876543210"])
    message: str = Field(
        "Test notification from Prism disaster alerting.", min_length=1,
    )
    channel: Optional[NotificationChannel] = None
