"""Request and response models for the routing API.

Pydantic models live at the HTTP boundary only. Each converts to or from
the frozen dataclasses of provider_router.routing, which never see a
pydantic object.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from provider_router.routing.analytics import AnalyticsReport
from provider_router.routing.classifier import TaskCategory
from provider_router.routing.ledger import CostRecord
from provider_router.routing.providers import Provider
from provider_router.routing.router import (
    ConversationContext,
    RoutingDecision,
    UserPreferences,
)
from provider_router.routing.tracker import AggregatedMetrics


# ------------------------------------------------------------------ #
# Routing
# ------------------------------------------------------------------ #


class UserPreferencesModel(BaseModel):
    preferred_provider: Provider | None = None
    cost_sensitive: bool = False
    quality_priority: bool = False
    speed_priority: bool = False

    def to_domain(self) -> UserPreferences:
        return UserPreferences(
            preferred_provider=self.preferred_provider,
            cost_sensitive=self.cost_sensitive,
            quality_priority=self.quality_priority,
            speed_priority=self.speed_priority,
        )


class ConversationContextModel(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=200)
    user_id: str | None = Field(default=None, max_length=200)
    message_history: list[str] = Field(default_factory=list)
    previous_tasks: list[TaskCategory] = Field(default_factory=list)
    user_preferences: UserPreferencesModel | None = None

    def to_domain(self) -> ConversationContext:
        return ConversationContext(
            session_id=self.session_id,
            user_id=self.user_id,
            message_history=tuple(self.message_history),
            previous_tasks=tuple(self.previous_tasks),
            user_preferences=(
                self.user_preferences.to_domain() if self.user_preferences else None
            ),
        )


class RouteRequest(BaseModel):
    message: str = Field(..., max_length=100_000)
    context: ConversationContextModel


class ForceRouteRequest(BaseModel):
    provider: Provider
    reason: str = Field(default="manual override", max_length=500)


class RoutingDecisionModel(BaseModel):
    provider: Provider
    model: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""
    estimated_cost: float = Field(..., ge=0.0)
    estimated_latency_ms: float = Field(..., ge=0.0)
    fallback_providers: list[Provider] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fallbacks_exclude_selected(self) -> RoutingDecisionModel:
        if self.provider in self.fallback_providers:
            raise ValueError("fallback_providers must not contain the selected provider")
        return self

    @classmethod
    def from_domain(cls, decision: RoutingDecision) -> RoutingDecisionModel:
        return cls(
            provider=decision.provider,
            model=decision.model,
            confidence=decision.confidence,
            reasoning=decision.reasoning,
            estimated_cost=decision.estimated_cost,
            estimated_latency_ms=decision.estimated_latency_ms,
            fallback_providers=list(decision.fallback_providers),
        )

    def to_domain(self) -> RoutingDecision:
        return RoutingDecision(
            provider=self.provider,
            model=self.model,
            confidence=self.confidence,
            reasoning=self.reasoning,
            estimated_cost=self.estimated_cost,
            estimated_latency_ms=self.estimated_latency_ms,
            fallback_providers=tuple(dict.fromkeys(self.fallback_providers)),
        )


class PerformanceReport(BaseModel):
    """Outcome of a provider call made on a routing decision."""

    decision: RoutingDecisionModel
    actual_latency_ms: float = Field(..., ge=0.0)
    actual_cost: float = Field(..., ge=0.0)
    success: bool
    context: ConversationContextModel
    user_rating: int | None = Field(default=None, ge=1, le=5)
    error_kind: str | None = Field(default=None, max_length=100)
    input_tokens: int | None = Field(default=None, ge=0)
    output_tokens: int | None = Field(default=None, ge=0)


# ------------------------------------------------------------------ #
# Analytics
# ------------------------------------------------------------------ #


class AnalyticsReportResponse(BaseModel):
    total_requests: int
    total_cost: float
    avg_latency_ms: float
    success_rate: float
    top_providers: dict[str, int]
    task_breakdown: dict[str, int]
    cost_savings: float
    window_hours: float
    user_id: str | None = None

    @classmethod
    def from_domain(cls, report: AnalyticsReport) -> AnalyticsReportResponse:
        return cls(**report.to_dict())


class ProviderAggregate(BaseModel):
    provider: Provider
    task_type: TaskCategory
    avg_latency_ms: float
    avg_cost: float
    success_rate: float
    total_requests: int
    window_hours: float
    avg_rating: float | None = None

    @classmethod
    def from_domain(cls, aggregate: AggregatedMetrics) -> ProviderAggregate:
        return cls(
            provider=aggregate.provider,
            task_type=aggregate.task_type,
            avg_latency_ms=aggregate.avg_latency_ms,
            avg_cost=aggregate.avg_cost,
            success_rate=aggregate.success_rate,
            total_requests=aggregate.total_requests,
            window_hours=aggregate.window_hours,
            avg_rating=aggregate.avg_rating,
        )


class ProviderComparisonResponse(BaseModel):
    task_type: TaskCategory
    window_hours: float
    providers: list[ProviderAggregate]


# ------------------------------------------------------------------ #
# Costs
# ------------------------------------------------------------------ #


class CostRecordModel(BaseModel):
    id: str
    timestamp: datetime
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    session_id: str
    user_id: str | None = None

    @classmethod
    def from_domain(cls, record: CostRecord) -> CostRecordModel:
        return cls(
            id=record.id,
            timestamp=record.timestamp,
            provider=record.provider,
            model=record.model,
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
            cost=record.cost,
            session_id=record.session_id,
            user_id=record.user_id,
        )


class CostQueryResponse(BaseModel):
    costs: list[CostRecordModel]
    total: float
    count: int
    session_id: str | None = None
    user_id: str | None = None


class TrackCostRequest(BaseModel):
    provider: str = Field(..., min_length=1, max_length=50)
    model: str = Field(..., min_length=1, max_length=200)
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    session_id: str = Field(..., min_length=1, max_length=200)
    user_id: str | None = Field(default=None, max_length=200)


class TrackCostResponse(BaseModel):
    cost_record: CostRecordModel
    needs_approval: bool
    can_auto_approve: bool
    payment_required: bool


# ------------------------------------------------------------------ #
# Tools
# ------------------------------------------------------------------ #


class ToolCall(BaseModel):
    id: str
    tool_name: str = Field(..., min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolExecuteRequest(BaseModel):
    tool_calls: list[ToolCall] = Field(..., max_length=50)
    session_id: str = Field(default="tools", min_length=1)
    user_id: str | None = None


class ToolCallResult(BaseModel):
    id: str
    tool_name: str
    success: bool
    result: Any = None
    error: str | None = None


class ToolExecuteResponse(BaseModel):
    results: list[ToolCallResult]
