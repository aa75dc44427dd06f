"""
Service container — one instance of every long-lived component.

    repository ◄── scheduler ──► gateway (OpenWeatherMap)
        ▲              │
        │              ├──► hub (live feed)
    API routes ────────┴──► dispatcher ──► provider (simulation | twilio)

Route handlers reach these through ``request.app.state.services`` so
tests can build an app around fakes without touching globals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from prism.app.core.config import Settings, settings as default_settings
from prism.app.ingestion.weather_gateway import WeatherGateway
from prism.app.live.broadcast_hub import BroadcastHub
from prism.app.notifications.channels import build_provider
from prism.app.notifications.dispatcher import NotificationDispatcher
from prism.app.prediction.scheduler import (
    DEFAULT_MONITORED_AREAS,
    MonitoredArea,
    PredictionScheduler,
)
from prism.app.storage.repository import DisasterAlertRepository


@dataclass
class AppServices:
    repository: DisasterAlertRepository
    hub: BroadcastHub
    gateway: WeatherGateway
    dispatcher: NotificationDispatcher
    scheduler: PredictionScheduler


def build_services(
    config: Settings = default_settings,
    *,
    areas: Optional[Sequence[MonitoredArea]] = None,
) -> AppServices:
    """Wire the default component graph from settings."""
    repository = DisasterAlertRepository(lookback_hours=config.ALERT_LOOKBACK_HOURS)
    hub = BroadcastHub(send_timeout=config.BROADCAST_SEND_TIMEOUT)
    gateway = WeatherGateway(
        config.OPENWEATHER_API_KEY,
        base_url=config.OPENWEATHER_BASE_URL,
        timeout=config.WEATHER_FETCH_TIMEOUT,
        max_retries=config.WEATHER_MAX_RETRIES,
        retry_backoff=config.WEATHER_RETRY_BACKOFF,
    )
    dispatcher = NotificationDispatcher(
        build_provider(config),
        country_code=config.RECIPIENT_COUNTRY_CODE,
        send_timeout=config.NOTIFICATION_SEND_TIMEOUT,
        default_channel=config.NOTIFICATION_DEFAULT_CHANNEL,
        app_url=config.APP_URL,
    )
    scheduler = PredictionScheduler(
        gateway,
        repository,
        hub,
        areas if areas is not None else DEFAULT_MONITORED_AREAS,
        interval_seconds=config.PREDICTION_INTERVAL_SECONDS,
        severity_threshold=config.PREDICTION_SEVERITY_THRESHOLD,
        dispatcher=dispatcher,
        alert_recipients=config.PREDICTION_ALERT_RECIPIENTS,
        run_on_start=config.PREDICTION_RUN_ON_STARTUP,
    )
    return AppServices(
        repository=repository,
        hub=hub,
        gateway=gateway,
        dispatcher=dispatcher,
        scheduler=scheduler,
    )
