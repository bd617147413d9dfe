"""Main API router - aggregates all sub-routers.

All routes are versioned under /api/v1 except health checks.
"""

from __future__ import annotations

from fastapi import APIRouter

from provider_router.api import analytics, costs, health, routing, tools

# Public router
public_router = APIRouter()
public_router.include_router(health.router)

# Versioned API router
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(routing.router)
api_v1_router.include_router(analytics.router)
api_v1_router.include_router(costs.router)
api_v1_router.include_router(tools.router)
