"""Routing endpoints.

POST /api/v1/route          - Select a provider/model for a message
POST /api/v1/route/force    - Bypass scoring and pick a provider
POST /api/v1/performance    - Report the outcome of a routed call (204)

Outcome recording runs as a background task after the response is sent;
it never fails the request.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Response, status

from provider_router.api.deps import get_services
from provider_router.api.schemas import (
    ForceRouteRequest,
    PerformanceReport,
    RouteRequest,
    RoutingDecisionModel,
)
from provider_router.services import RoutingServices
from provider_router.telemetry.logging import bind_session_context

log = structlog.get_logger(__name__)

router = APIRouter(tags=["routing"])


@router.post(
    "/route",
    response_model=RoutingDecisionModel,
    summary="Select a provider for a message",
)
async def route_message(
    body: RouteRequest,
    services: RoutingServices = Depends(get_services),
) -> RoutingDecisionModel:
    context = body.context.to_domain()
    bind_session_context(context.session_id, context.user_id)

    decision = services.selector.select_provider(body.message, context)
    return RoutingDecisionModel.from_domain(decision)


@router.post(
    "/route/force",
    response_model=RoutingDecisionModel,
    summary="Force a provider (manual override)",
)
async def force_route(
    body: ForceRouteRequest,
    services: RoutingServices = Depends(get_services),
) -> RoutingDecisionModel:
    decision = services.selector.force_provider(body.provider, body.reason)
    return RoutingDecisionModel.from_domain(decision)


async def record_outcome(services: RoutingServices, report: PerformanceReport) -> None:
    """Record into tracker and ledger, then persist when storage is configured."""
    context = report.context.to_domain()
    bind_session_context(context.session_id, context.user_id)

    outcome = services.selector.record_performance(
        report.decision.to_domain(),
        report.actual_latency_ms,
        report.actual_cost,
        report.success,
        context,
        user_rating=report.user_rating,
        error_kind=report.error_kind,
        input_tokens=report.input_tokens,
        output_tokens=report.output_tokens,
    )
    await services.persist_outcome(outcome)


@router.post(
    "/performance",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Report the outcome of a routed provider call",
)
async def report_performance(
    body: PerformanceReport,
    background_tasks: BackgroundTasks,
    services: RoutingServices = Depends(get_services),
) -> Response:
    background_tasks.add_task(record_outcome, services, body)
    log.debug(
        "api.performance_report_accepted",
        provider=body.decision.provider.value,
        success=body.success,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
