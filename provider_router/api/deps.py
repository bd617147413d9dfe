"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from provider_router.services import RoutingServices


def get_services(request: Request) -> RoutingServices:
    """Routing services built during application startup."""
    services: RoutingServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Routing services not initialized. Is the lifespan running?")
    return services
