"""
FastAPI application entry point.

Run with:
    uvicorn prism.app.main:app --reload --port 8000

Tests build their own app around fakes:
    app = create_app(services, start_scheduler=False)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from prism.app.core.config import settings
from prism.app.core.logging_config import setup_logging, get_logger
from prism.app.core.errors import register_error_handlers
from prism.app.core.middleware import RequestLoggingMiddleware
from prism.app.core.health import HealthStatus, run_health_check
from prism.app.services import AppServices, build_services

# ── API routers ──
from prism.app.api.v1.disasters import router as disaster_router
from prism.app.api.v1.alerts import router as alert_router
from prism.app.api.v1.notifications import router as notification_router
from prism.app.api.v1.predictions import router as prediction_router
from prism.app.api.v1.live import router as live_router

logger = get_logger(__name__)


def create_app(
    services: Optional[AppServices] = None,
    *,
    start_scheduler: Optional[bool] = None,
) -> FastAPI:
    """
    Build the application around ``services`` (default graph from settings).

    ``start_scheduler`` defaults to ``PREDICTION_ENABLED``.
    """
    setup_logging()
    services = services or build_services()
    run_scheduler = settings.PREDICTION_ENABLED if start_scheduler is None else start_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s v%s [%s]",
            settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        )
        if not services.gateway.is_configured:
            logger.warning("OPENWEATHER_API_KEY not set — prediction scans will find nothing")
        if run_scheduler:
            await services.scheduler.start()
        yield
        if run_scheduler:
            await services.scheduler.stop()
        await services.gateway.close()
        logger.info("Shutting down %s", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Disaster alerting backend. Periodically scans monitored areas "
            "against OpenWeatherMap, classifies severity and hazard type, "
            "stores disasters and alerts, pushes every change to live "
            "WebSocket subscribers, and delivers SMS / WhatsApp notifications."
        ),
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services

    # ── Middleware stack (order matters — outermost first) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)

    app.include_router(disaster_router)
    app.include_router(alert_router)
    app.include_router(notification_router)
    app.include_router(prediction_router)
    app.include_router(live_router)

    # ── Root & health endpoints ──

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "modules": [
                "disaster-store",
                "weather-ingestion",
                "severity-classification",
                "prediction-scheduler",
                "live-feed",
                "notifications",
            ],
            "docs": "/docs",
        }

    @app.get("/health", tags=["health"])
    async def health_check(request: Request):
        """Deep health probe — checks all subsystems."""
        report = await run_health_check(request.app.state.services)
        return report.to_dict()

    @app.get("/health/live", tags=["health"])
    async def liveness():
        """Kubernetes liveness probe — is the process alive?"""
        return {"status": "alive"}

    @app.get("/health/ready", tags=["health"])
    async def readiness(request: Request):
        """Kubernetes readiness probe — can we serve traffic?"""
        report = await run_health_check(request.app.state.services)
        if report.status == HealthStatus.UNHEALTHY:
            return JSONResponse(status_code=503, content=report.to_dict())
        return report.to_dict()

    return app


app = create_app()
