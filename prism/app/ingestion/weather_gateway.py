"""
weather_gateway.py — OpenWeatherMap access for the prediction pipeline.

Fetches current conditions, the 5-day / 3-hour forecast and provider
weather alerts for a coordinate, and turns the provider's JSON into typed
structures with documented defaults.

Unavailable Results
===================
Every public call returns ``None`` (or an empty list for alerts) instead
of raising when the provider cannot answer:

    • network error / timeout      → retried, then None
    • HTTP 429 or 5xx              → retried, then None
    • HTTP 4xx                     → None immediately (bad key, bad coords)
    • non-JSON or malformed body   → None
    • no API key configured        → None, no request made

Callers treat ``None`` as "skip this location this cycle", never as fatal.

Units
=====
The provider is queried with ``units=metric``, which reports wind in m/s.
Classification thresholds are in km/h, so wind speeds are converted here
(× 3.6) and nowhere else.

Defaults
========
Missing fields take neutral values so classification stays total:

    wind_speed_kmh  0.0      rainfall_3h_mm  0.0
    temperature_c   25.0     humidity_pct    0.0
    pressure_hpa    1013.0
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import httpx

from prism.app.core.config import settings

logger = logging.getLogger(__name__)

MS_TO_KMH = 3.6

DEFAULT_WIND_SPEED_KMH = 0.0
DEFAULT_RAINFALL_MM = 0.0
DEFAULT_TEMPERATURE_C = 25.0
DEFAULT_HUMIDITY_PCT = 0.0
DEFAULT_PRESSURE_HPA = 1013.0


class MalformedPayload(ValueError):
    """Provider answered 2xx with a body we cannot interpret."""


def _number(value: Any, default: float) -> float:
    """Coerce a JSON scalar to float; None and non-numeric values fall back."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _rain_3h(rain: Any) -> float:
    """3-hour rainfall; the 1-hour figure is used when that is all we get."""
    if not isinstance(rain, Mapping):
        return DEFAULT_RAINFALL_MM
    if "3h" in rain:
        return _number(rain.get("3h"), DEFAULT_RAINFALL_MM)
    return _number(rain.get("1h"), DEFAULT_RAINFALL_MM)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class Conditions:
    """Weather snapshot at one coordinate. All fields have safe defaults."""
    wind_speed_kmh: float = DEFAULT_WIND_SPEED_KMH
    rainfall_3h_mm: float = DEFAULT_RAINFALL_MM
    temperature_c: float = DEFAULT_TEMPERATURE_C
    humidity_pct: float = DEFAULT_HUMIDITY_PCT
    pressure_hpa: float = DEFAULT_PRESSURE_HPA
    observed_at: Optional[datetime] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Conditions":
        """
        Build from a flat mapping using the classifier's vocabulary:
        ``wind_speed`` (km/h), ``rainfall`` (mm/3h), ``temperature``,
        ``humidity``, ``pressure``. Missing or bad keys take defaults.
        """
        data = data or {}
        return cls(
            wind_speed_kmh=_number(data.get("wind_speed"), DEFAULT_WIND_SPEED_KMH),
            rainfall_3h_mm=_number(data.get("rainfall"), DEFAULT_RAINFALL_MM),
            temperature_c=_number(data.get("temperature"), DEFAULT_TEMPERATURE_C),
            humidity_pct=_number(data.get("humidity"), DEFAULT_HUMIDITY_PCT),
            pressure_hpa=_number(data.get("pressure"), DEFAULT_PRESSURE_HPA),
        )

    def sanitized(self) -> "Conditions":
        """Copy with every None / non-numeric reading replaced by its default."""
        return Conditions(
            wind_speed_kmh=_number(self.wind_speed_kmh, DEFAULT_WIND_SPEED_KMH),
            rainfall_3h_mm=_number(self.rainfall_3h_mm, DEFAULT_RAINFALL_MM),
            temperature_c=_number(self.temperature_c, DEFAULT_TEMPERATURE_C),
            humidity_pct=_number(self.humidity_pct, DEFAULT_HUMIDITY_PCT),
            pressure_hpa=_number(self.pressure_hpa, DEFAULT_PRESSURE_HPA),
            observed_at=self.observed_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wind_speed": self.wind_speed_kmh,
            "rainfall": self.rainfall_3h_mm,
            "temperature": self.temperature_c,
            "humidity": self.humidity_pct,
            "pressure": self.pressure_hpa,
        }


@dataclass
class ForecastPoint:
    """One 3-hour forecast slot."""
    timestamp: datetime
    wind_speed_kmh: float = DEFAULT_WIND_SPEED_KMH
    rainfall_3h_mm: float = DEFAULT_RAINFALL_MM
    temperature_c: float = DEFAULT_TEMPERATURE_C
    pressure_hpa: float = DEFAULT_PRESSURE_HPA


@dataclass
class ForecastSeries:
    """Short-term forecast, ordered by time."""
    points: List[ForecastPoint] = field(default_factory=list)

    @property
    def peak_rainfall_mm(self) -> float:
        return max((p.rainfall_3h_mm for p in self.points), default=0.0)

    @property
    def peak_wind_speed_kmh(self) -> float:
        return max((p.wind_speed_kmh for p in self.points), default=0.0)

    def __len__(self) -> int:
        return len(self.points)


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

def parse_conditions(payload: Any) -> Conditions:
    """
    Parse an OpenWeatherMap ``/weather`` body.

        {"main": {"temp": 31.2, "humidity": 74, "pressure": 1004},
         "wind": {"speed": 9.5}, "rain": {"1h": 3.2}, "dt": 1760860800}
    """
    if not isinstance(payload, Mapping) or not isinstance(payload.get("main"), Mapping):
        raise MalformedPayload("missing 'main' block")

    main = payload["main"]
    wind = payload.get("wind") if isinstance(payload.get("wind"), Mapping) else {}
    observed = payload.get("dt")

    return Conditions(
        wind_speed_kmh=_number(wind.get("speed"), DEFAULT_WIND_SPEED_KMH) * MS_TO_KMH,
        rainfall_3h_mm=_rain_3h(payload.get("rain")),
        temperature_c=_number(main.get("temp"), DEFAULT_TEMPERATURE_C),
        humidity_pct=_number(main.get("humidity"), DEFAULT_HUMIDITY_PCT),
        pressure_hpa=_number(main.get("pressure"), DEFAULT_PRESSURE_HPA),
        observed_at=(
            datetime.fromtimestamp(observed, tz=timezone.utc)
            if isinstance(observed, (int, float)) else None
        ),
    )


def parse_forecast(payload: Any) -> ForecastSeries:
    """Parse an OpenWeatherMap ``/forecast`` body (``list`` of 3-hour slots)."""
    if not isinstance(payload, Mapping) or not isinstance(payload.get("list"), list):
        raise MalformedPayload("missing 'list' array")

    points: List[ForecastPoint] = []
    for slot in payload["list"]:
        if not isinstance(slot, Mapping) or not isinstance(slot.get("dt"), (int, float)):
            continue
        main = slot.get("main") if isinstance(slot.get("main"), Mapping) else {}
        wind = slot.get("wind") if isinstance(slot.get("wind"), Mapping) else {}
        points.append(ForecastPoint(
            timestamp=datetime.fromtimestamp(slot["dt"], tz=timezone.utc),
            wind_speed_kmh=_number(wind.get("speed"), DEFAULT_WIND_SPEED_KMH) * MS_TO_KMH,
            rainfall_3h_mm=_rain_3h(slot.get("rain")),
            temperature_c=_number(main.get("temp"), DEFAULT_TEMPERATURE_C),
            pressure_hpa=_number(main.get("pressure"), DEFAULT_PRESSURE_HPA),
        ))

    points.sort(key=lambda p: p.timestamp)
    return ForecastSeries(points=points)


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class WeatherGateway:
    """
    Stateless request/response wrapper around OpenWeatherMap.

    Usage:
        gateway = WeatherGateway(api_key="...")
        conditions = await gateway.get_current_conditions(13.08, 80.27)
        if conditions is None:
            ...  # provider unavailable, skip this cycle
        await gateway.close()
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENWEATHER_API_KEY
        self.base_url = (base_url or settings.OPENWEATHER_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.WEATHER_FETCH_TIMEOUT
        self.max_retries = (
            max_retries if max_retries is not None else settings.WEATHER_MAX_RETRIES
        )
        self.retry_backoff = (
            retry_backoff if retry_backoff is not None else settings.WEATHER_RETRY_BACKOFF
        )
        self._http_client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _fetch_json(
        self,
        endpoint: str,
        latitude: float,
        longitude: float,
        **extra: Any,
    ) -> Optional[Any]:
        """
        GET ``{base_url}/{endpoint}`` with retry. Returns decoded JSON or
        None when the provider is unavailable.
        """
        if not self.is_configured:
            logger.warning("No OpenWeatherMap API key configured — skipping %s", endpoint)
            return None

        params = {
            "lat": latitude,
            "lon": longitude,
            "appid": self.api_key,
            "units": "metric",
            **extra,
        }
        url = f"{self.base_url}/{endpoint}"
        last_error: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                wait = self.retry_backoff * (2 ** (attempt - 1))
                logger.warning(
                    "Retry %d/%d for %s after %.1fs — %s",
                    attempt, self.max_retries, endpoint, wait, last_error,
                )
                await asyncio.sleep(wait)

            try:
                client = await self._get_client()
                response = await client.get(url, params=params)
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                continue

            if response.status_code == 429 or response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                continue
            if response.status_code >= 400:
                logger.error(
                    "Weather API %s returned %d for (%.4f, %.4f): %s",
                    endpoint, response.status_code, latitude, longitude,
                    response.text[:200],
                )
                return None

            try:
                return response.json()
            except ValueError:
                logger.error("Weather API %s returned non-JSON body", endpoint)
                return None

        logger.error(
            "Weather API %s unavailable for (%.4f, %.4f) after %d attempts: %s",
            endpoint, latitude, longitude, self.max_retries + 1, last_error,
        )
        return None

    async def get_current_conditions(
        self,
        latitude: float,
        longitude: float,
    ) -> Optional[Conditions]:
        payload = await self._fetch_json("weather", latitude, longitude)
        if payload is None:
            return None
        try:
            return parse_conditions(payload)
        except MalformedPayload as exc:
            logger.error("Malformed current-weather payload: %s", exc)
            return None

    async def get_forecast(
        self,
        latitude: float,
        longitude: float,
    ) -> Optional[ForecastSeries]:
        payload = await self._fetch_json("forecast", latitude, longitude)
        if payload is None:
            return None
        try:
            return parse_forecast(payload)
        except MalformedPayload as exc:
            logger.error("Malformed forecast payload: %s", exc)
            return None

    async def get_weather_alerts(
        self,
        latitude: float,
        longitude: float,
    ) -> List[Dict[str, Any]]:
        """Provider-issued alerts (One Call ``alerts`` array); [] on any failure."""
        payload = await self._fetch_json(
            "onecall", latitude, longitude, exclude="minutely,hourly",
        )
        if not isinstance(payload, Mapping):
            return []
        alerts = payload.get("alerts")
        if not isinstance(alerts, list):
            return []
        return [dict(a) for a in alerts if isinstance(a, Mapping)]
