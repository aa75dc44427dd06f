"""Request-scoped access to the application's service container."""

from __future__ import annotations

from fastapi import Request

from prism.app.services import AppServices


def get_services(request: Request) -> AppServices:
    return request.app.state.services
