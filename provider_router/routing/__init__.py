"""Provider routing core.

Classifies incoming chat messages, ranks the available model providers on
observed success rate, latency and cost, and records outcomes so later
decisions improve. Everything here is in-memory and synchronous; the HTTP
layer and the optional database persistence sit on top.

Use TelemetryRepository from provider_router.routing.persistence for durable
storage of recorded outcomes.
"""

from __future__ import annotations

from provider_router.routing.analytics import AnalyticsReport, AnalyticsReporter
from provider_router.routing.classifier import (
    Complexity,
    TaskCategory,
    TaskClassification,
    TaskClassifier,
)
from provider_router.routing.exceptions import ExportRangeError, RoutingError
from provider_router.routing.instrumentation import LoggingRouter
from provider_router.routing.ledger import ApprovalPolicy, CostLedger, CostRecord
from provider_router.routing.providers import Provider, ProviderRegistry
from provider_router.routing.router import (
    ConversationContext,
    ProviderSelector,
    RecordedOutcome,
    Router,
    RouterConfig,
    RoutingDecision,
    UserPreferences,
)
from provider_router.routing.tracker import (
    AggregatedMetrics,
    GlobalSummary,
    PerformanceMetric,
    PerformanceTracker,
)

__all__ = [
    "AggregatedMetrics",
    "AnalyticsReport",
    "AnalyticsReporter",
    "ApprovalPolicy",
    "Complexity",
    "ConversationContext",
    "CostLedger",
    "CostRecord",
    "ExportRangeError",
    "GlobalSummary",
    "LoggingRouter",
    "PerformanceMetric",
    "PerformanceTracker",
    "Provider",
    "ProviderRegistry",
    "ProviderSelector",
    "RecordedOutcome",
    "Router",
    "RouterConfig",
    "RoutingDecision",
    "RoutingError",
    "TaskCategory",
    "TaskClassification",
    "TaskClassifier",
    "UserPreferences",
]
