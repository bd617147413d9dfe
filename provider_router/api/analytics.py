"""Analytics API endpoints.

GET /api/v1/analytics                        - Routing summary over a window
GET /api/v1/analytics/providers/{task_type}  - Providers ranked for one task type

Figures are computed from the in-memory tracker on every call.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from provider_router.api.deps import get_services
from provider_router.api.schemas import (
    AnalyticsReportResponse,
    ProviderAggregate,
    ProviderComparisonResponse,
)
from provider_router.routing.classifier import TaskCategory
from provider_router.services import RoutingServices

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get(
    "",
    response_model=AnalyticsReportResponse,
    summary="Routing analytics summary",
)
async def get_analytics(
    time_window: float = Query(default=24, gt=0, le=24 * 90, description="Window in hours"),
    user_id: str | None = Query(default=None, description="Restrict to one user"),
    services: RoutingServices = Depends(get_services),
) -> AnalyticsReportResponse:
    report = services.reporter.get_analytics(time_window, user_id=user_id)
    return AnalyticsReportResponse.from_domain(report)


@router.get(
    "/providers/{task_type}",
    response_model=ProviderComparisonResponse,
    summary="Compare providers for a task type",
)
async def compare_providers(
    task_type: TaskCategory,
    time_window: float = Query(default=24, gt=0, le=24 * 90, description="Window in hours"),
    services: RoutingServices = Depends(get_services),
) -> ProviderComparisonResponse:
    aggregates = services.reporter.compare_providers(task_type, time_window)
    return ProviderComparisonResponse(
        task_type=task_type,
        window_hours=time_window,
        providers=[ProviderAggregate.from_domain(a) for a in aggregates],
    )
