"""
severity.py — Rule-based severity and hazard-type classification.

Pure functions: no I/O, no state, no exceptions escape.

═══════════════════════════════════════════════════════════════════════════
SEVERITY (1–5)
═══════════════════════════════════════════════════════════════════════════

Severity is the MAXIMUM of two independent bands, never their sum.

    Wind speed (km/h)             Rainfall (mm / 3 h)
    ─────────────────             ───────────────────
    > 118  → 5  hurricane force   > 100 → 5
    >  89  → 4  storm force       >  50 → 4
    >  62  → 3  gale force        >  30 → 3
    >  39  → 2  high wind         >  15 → 2
    else   → 1                    else  → 1

Warnings are raised independently of the final severity:

    wind        > 62 km/h  → "Dangerous wind conditions"
    rainfall    > 30 mm    → "Heavy rainfall alert"
    temperature > 40 °C    → "Extreme heat warning"
    humidity    > 90 %     → "High humidity alert"

═══════════════════════════════════════════════════════════════════════════
HAZARD TYPE
═══════════════════════════════════════════════════════════════════════════

Ordered rules, first match wins:

    1. wind > 118 km/h  or  pressure < 970 hPa         → cyclone
    2. rainfall > 50 mm, or rainfall > 30 mm with a
       forecast slot also above 30 mm                  → flood
    3. temperature > 40 °C                             → heatwave
    4. otherwise                                       → storm
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from prism.app.ingestion.weather_gateway import Conditions, ForecastSeries
from prism.app.storage.models import DisasterType

logger = logging.getLogger(__name__)

ConditionsLike = Union[Conditions, Mapping[str, Any], None]

# (threshold, severity) pairs, checked top-down with strict ">"
WIND_BANDS: Tuple[Tuple[float, int], ...] = ((118.0, 5), (89.0, 4), (62.0, 3), (39.0, 2))
RAINFALL_BANDS: Tuple[Tuple[float, int], ...] = ((100.0, 5), (50.0, 4), (30.0, 3), (15.0, 2))

DANGEROUS_WIND_KMH = 62.0
HEAVY_RAINFALL_MM = 30.0
EXTREME_HEAT_C = 40.0
HIGH_HUMIDITY_PCT = 90.0

CYCLONE_WIND_KMH = 118.0
CYCLONE_PRESSURE_HPA = 970.0
FLOOD_RAINFALL_MM = 50.0
FLOOD_CORROBORATED_MM = 30.0
HEATWAVE_TEMPERATURE_C = 40.0


@dataclass
class SeverityAssessment:
    severity: int
    warnings: List[str] = field(default_factory=list)
    conditions: Conditions = field(default_factory=Conditions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity,
            "warnings": list(self.warnings),
            "conditions": self.conditions.to_dict(),
        }


def _as_conditions(conditions: ConditionsLike) -> Conditions:
    if isinstance(conditions, Conditions):
        return conditions.sanitized()
    if isinstance(conditions, Mapping):
        return Conditions.from_mapping(conditions)
    return Conditions()


def _band(value: float, bands: Tuple[Tuple[float, int], ...]) -> int:
    for threshold, level in bands:
        if value > threshold:
            return level
    return 1


def wind_severity(wind_speed_kmh: float) -> int:
    return _band(wind_speed_kmh, WIND_BANDS)


def rainfall_severity(rainfall_mm: float) -> int:
    return _band(rainfall_mm, RAINFALL_BANDS)


def collect_warnings(conditions: Conditions) -> List[str]:
    warnings: List[str] = []
    if conditions.wind_speed_kmh > DANGEROUS_WIND_KMH:
        warnings.append("Dangerous wind conditions")
    if conditions.rainfall_3h_mm > HEAVY_RAINFALL_MM:
        warnings.append("Heavy rainfall alert")
    if conditions.temperature_c > EXTREME_HEAT_C:
        warnings.append("Extreme heat warning")
    if conditions.humidity_pct > HIGH_HUMIDITY_PCT:
        warnings.append("High humidity alert")
    return warnings


def classify(conditions: ConditionsLike) -> SeverityAssessment:
    """Severity 1–5 and warnings for a weather snapshot."""
    snapshot = _as_conditions(conditions)
    severity = max(
        wind_severity(snapshot.wind_speed_kmh),
        rainfall_severity(snapshot.rainfall_3h_mm),
    )
    return SeverityAssessment(
        severity=severity,
        warnings=collect_warnings(snapshot),
        conditions=snapshot,
    )


def classify_type(
    conditions: ConditionsLike,
    forecast: Optional[ForecastSeries] = None,
) -> DisasterType:
    """Hazard type for a snapshot; falls back to storm on any internal error."""
    try:
        snapshot = _as_conditions(conditions)

        if (
            snapshot.wind_speed_kmh > CYCLONE_WIND_KMH
            or snapshot.pressure_hpa < CYCLONE_PRESSURE_HPA
        ):
            return DisasterType.CYCLONE

        forecast_peak = forecast.peak_rainfall_mm if forecast is not None else 0.0
        if snapshot.rainfall_3h_mm > FLOOD_RAINFALL_MM or (
            snapshot.rainfall_3h_mm > FLOOD_CORROBORATED_MM
            and forecast_peak > FLOOD_CORROBORATED_MM
        ):
            return DisasterType.FLOOD

        if snapshot.temperature_c > HEATWAVE_TEMPERATURE_C:
            return DisasterType.HEATWAVE
    except Exception:
        logger.exception("Type classification failed; defaulting to storm")

    return DisasterType.STORM
