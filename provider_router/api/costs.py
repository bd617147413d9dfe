"""Cost ledger endpoints.

GET  /api/v1/costs  - Costs for a session, a user, or a date range
POST /api/v1/costs  - Price and record a request's token usage

GET query precedence: session_id, then user_id, then the optional
start_date/end_date range (inclusive). Naive datetimes are read as UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from provider_router.api.deps import get_services
from provider_router.api.schemas import (
    CostQueryResponse,
    CostRecordModel,
    TrackCostRequest,
    TrackCostResponse,
)
from provider_router.middleware.prometheus import record_tracked_cost
from provider_router.routing.exceptions import ExportRangeError
from provider_router.routing.ledger import CostRecord
from provider_router.services import RoutingServices

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/costs", tags=["costs"])


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _response(records: list[CostRecord], **scope: str | None) -> CostQueryResponse:
    return CostQueryResponse(
        costs=[CostRecordModel.from_domain(r) for r in records],
        total=sum(r.cost for r in records),
        count=len(records),
        **scope,
    )


@router.get(
    "",
    response_model=CostQueryResponse,
    summary="Query recorded costs",
)
async def get_costs(
    session_id: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    start_date: datetime | None = Query(default=None, description="Inclusive lower bound"),
    end_date: datetime | None = Query(default=None, description="Inclusive upper bound"),
    services: RoutingServices = Depends(get_services),
) -> CostQueryResponse:
    ledger = services.ledger

    if session_id:
        return _response(ledger.get_session_costs(session_id), session_id=session_id)

    if user_id:
        return _response(ledger.get_user_costs(user_id), user_id=user_id)

    try:
        overview = services.reporter.cost_overview(_as_utc(start_date), _as_utc(end_date))
    except ExportRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return _response(overview.records)


@router.post(
    "",
    response_model=TrackCostResponse,
    summary="Track the cost of a request",
)
async def track_cost(
    body: TrackCostRequest,
    services: RoutingServices = Depends(get_services),
) -> TrackCostResponse:
    ledger = services.ledger
    record = ledger.track_cost(
        body.provider,
        body.model,
        body.input_tokens,
        body.output_tokens,
        body.session_id,
        body.user_id,
    )
    record_tracked_cost(record.provider, record.cost)

    policy = ledger.policy
    log.info(
        "api.cost_tracked",
        provider=record.provider,
        model=record.model,
        cost=round(record.cost, 6),
        session_id=record.session_id,
    )
    return TrackCostResponse(
        cost_record=CostRecordModel.from_domain(record),
        needs_approval=policy.needs_approval(record.cost),
        can_auto_approve=policy.can_auto_approve(record.cost),
        payment_required=policy.requires_payment(record.cost),
    )
