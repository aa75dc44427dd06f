"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
Every value has a default that works for local development: no weather
API key (scans find nothing) and the simulated notification provider.

Usage:
    from prism.app.core.config import settings
    print(settings.PREDICTION_INTERVAL_SECONDS)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Prism Disaster Alerting"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:5000",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Weather provider (OpenWeatherMap) ──
    OPENWEATHER_API_KEY: Optional[str] = None
    OPENWEATHER_BASE_URL: str = "https://api.openweathermap.org/data/2.5"
    WEATHER_FETCH_TIMEOUT: float = 15.0  # seconds
    WEATHER_MAX_RETRIES: int = 2
    WEATHER_RETRY_BACKOFF: float = 1.0  # seconds; wait = base * 2^attempt

    # ── Prediction scheduler ──
    PREDICTION_ENABLED: bool = True
    PREDICTION_INTERVAL_SECONDS: float = 900.0  # 15 minutes
    PREDICTION_RUN_ON_STARTUP: bool = True
    PREDICTION_SEVERITY_THRESHOLD: int = 3
    PREDICTION_ALERT_RECIPIENTS: List[str] = []

    # ── Notifications ──
    NOTIFICATION_PROVIDER: str = "simulation"  # simulation | twilio
    NOTIFICATION_DEFAULT_CHANNEL: str = "whatsapp"  # sms | whatsapp
    NOTIFICATION_SEND_TIMEOUT: float = 15.0  # seconds per recipient
    RECIPIENT_COUNTRY_CODE: str = "+91"
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None
    APP_URL: str = "http://localhost:5000"  # dashboard link in alert text

    # ── Repository ──
    ALERT_LOOKBACK_HOURS: int = 72

    # ── Live feed ──
    BROADCAST_SEND_TIMEOUT: float = 5.0  # seconds per subscriber
    LIVE_FEED_URL: str = "ws://localhost:8000/ws"
    LIVE_RECONNECT_BASE_SECONDS: float = 1.0
    LIVE_RECONNECT_CAP_SECONDS: float = 30.0

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
