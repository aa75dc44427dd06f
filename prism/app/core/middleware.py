"""
Request middleware — correlation IDs and per-connection access logging.

HTTP requests pass through ``RequestLoggingMiddleware``: each gets an
``X-Request-ID`` (taken from the caller when supplied) and an
``X-Process-Time`` header, plus one access-log line.

WebSocket traffic on ``/ws`` never reaches ``BaseHTTPMiddleware``, so the
live route wraps each connection in ``connection_context``. It binds the
same request context for the connection's lifetime and logs open / close
with the session duration:

    async with connection_context(websocket):
        ...receive loop...
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import HTTPConnection, Request
from starlette.responses import Response

from prism.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health/live")


def correlation_id(conn: HTTPConnection) -> str:
    return conn.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]


def client_ip(conn: HTTPConnection) -> str:
    return conn.client.host if conn.client else "unknown"


def _bind(conn: HTTPConnection, request_id: str, method: str) -> None:
    set_request_context(
        request_id=request_id,
        client_ip=client_ip(conn),
        endpoint=conn.url.path,
        method=method,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each HTTP request with a correlation id and log its outcome."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = correlation_id(request)
        path = request.url.path
        _bind(request, request_id, request.method)
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(
                "%s %s → 500 (%.1fms)", request.method, path, elapsed,
                extra={"duration_ms": elapsed, "status_code": 500, "endpoint": path},
            )
            set_request_context()
            raise

        elapsed = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.1f}ms"

        if not path.startswith(_QUIET_PREFIXES):
            level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                level,
                "%s %s → %d (%.1fms) [%s]",
                request.method, path, response.status_code, elapsed, client_ip(request),
                extra={
                    "duration_ms": elapsed,
                    "status_code": response.status_code,
                    "endpoint": path,
                },
            )

        set_request_context()
        return response


@asynccontextmanager
async def connection_context(conn: HTTPConnection) -> AsyncIterator[str]:
    """Bind request context to a live connection; yields its correlation id."""
    request_id = correlation_id(conn)
    path = conn.url.path
    _bind(conn, request_id, "WS")
    start = time.perf_counter()
    logger.info("WS %s opened [%s]", path, client_ip(conn), extra={"endpoint": path})
    try:
        yield request_id
    finally:
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            "WS %s closed after %.1fs", path, elapsed / 1000,
            extra={"duration_ms": elapsed, "endpoint": path},
        )
        set_request_context()
