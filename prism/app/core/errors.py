"""
Error taxonomy and its HTTP rendering.

    PrismError
      ├── ValidationError          malformed / out-of-range input     → 422
      ├── NotFoundError            referenced id absent               → 404
      ├── ProviderUnavailableError weather or notification provider   → 503
      └── StorageError             repository failure                 → 500

Each subclass fixes its HTTP status and machine-readable code; raising
sites only supply the message and context. Every error leaves the API as

    {"error": {"code": "NOT_FOUND", "message": "Alert not found",
               "status": 404, "details": {"resource": "Alert", "id": 42}}}

Request-body schema failures are left to FastAPI's own 422 handler.

Usage:
    from prism.app.core.errors import NotFoundError

    raise NotFoundError("Alert", id=42)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from prism.app.core.config import settings

logger = logging.getLogger(__name__)


class PrismError(Exception):
    """Root of every error the application raises on purpose."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return error_body(self.status_code, self.error_code, self.message, self.details)


class ValidationError(PrismError):
    status_code = 422
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        super().__init__(message, field=field, **details)


class NotFoundError(PrismError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(f"{resource} not found", resource=resource, **identifiers)


class ProviderUnavailableError(PrismError):
    """Weather or notification provider could not serve the request."""

    status_code = 503
    error_code = "PROVIDER_UNAVAILABLE"

    def __init__(self, provider: str, message: str = "", **details: Any):
        text = f"Provider '{provider}' unavailable"
        super().__init__(f"{text}: {message}" if message else text, provider=provider, **details)


class StorageError(PrismError):
    status_code = 500
    error_code = "STORAGE_ERROR"

    def __init__(self, operation: str, message: str = "", **details: Any):
        text = f"Storage operation '{operation}' failed"
        super().__init__(f"{text}: {message}" if message else text, operation=operation, **details)


def error_body(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": error_code, "message": message, "status": status_code}
    if details:
        error["details"] = details
    return {"error": error}


def _respond(request: Request, body: Dict[str, Any]) -> JSONResponse:
    # Request location is echoed back outside production only
    if not settings.is_production:
        body["error"]["path"] = request.url.path
        body["error"]["method"] = request.method
    return JSONResponse(status_code=body["error"]["status"], content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Attach the PrismError / ValueError / catch-all handlers to ``app``."""

    @app.exception_handler(PrismError)
    async def on_prism_error(request: Request, exc: PrismError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level, "%s %s → %d %s: %s",
            request.method, request.url.path, exc.status_code, exc.error_code, exc.message,
            extra={"status_code": exc.status_code, "endpoint": request.url.path},
        )
        return _respond(request, exc.to_dict())

    @app.exception_handler(ValueError)
    async def on_value_error(request: Request, exc: ValueError):
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return _respond(request, error_body(422, ValidationError.error_code, str(exc)))

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _respond(request, error_body(500, PrismError.error_code, message))
