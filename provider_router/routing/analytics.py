"""Operator analytics over the performance tracker and the cost ledger.

Reports are recomputed on every call from point-in-time snapshots. They are
approximate under concurrent recording and are never cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from provider_router.routing.classifier import TaskCategory
from provider_router.routing.ledger import CostLedger, CostRecord
from provider_router.routing.tracker import AggregatedMetrics, PerformanceTracker, summarize

log = structlog.get_logger(__name__)

# Share of a premium-only baseline that routed traffic is assumed to cost
ROUTED_COST_SHARE = 0.7


def estimated_savings(total_cost: float) -> float:
    """Savings against a premium-only baseline: total / 0.7 - total."""
    return total_cost / ROUTED_COST_SHARE - total_cost


@dataclass(frozen=True)
class AnalyticsReport:
    total_requests: int
    total_cost: float
    avg_latency_ms: float
    success_rate: float
    window_hours: float
    cost_savings: float
    top_providers: dict[str, int] = field(default_factory=dict)
    task_breakdown: dict[str, int] = field(default_factory=dict)
    user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_cost": self.total_cost,
            "avg_latency_ms": self.avg_latency_ms,
            "success_rate": self.success_rate,
            "top_providers": dict(self.top_providers),
            "task_breakdown": dict(self.task_breakdown),
            "cost_savings": self.cost_savings,
            "window_hours": self.window_hours,
            "user_id": self.user_id,
        }


@dataclass(frozen=True)
class CostOverview:
    records: list[CostRecord]
    total: float

    @property
    def count(self) -> int:
        return len(self.records)


class AnalyticsReporter:
    """Builds operator summaries from the tracker and the ledger."""

    def __init__(self, tracker: PerformanceTracker, ledger: CostLedger) -> None:
        self._tracker = tracker
        self._ledger = ledger

    def get_analytics(
        self,
        window_hours: float = 24,
        user_id: str | None = None,
    ) -> AnalyticsReport:
        """Summarize recorded traffic inside the window.

        Args:
            window_hours: Look-back window
            user_id: Restrict the report to one user's requests

        Returns:
            AnalyticsReport; providers ordered by request count, most used first
        """
        summary = summarize(self._tracker.window(window_hours, user_id=user_id))
        top_providers = dict(
            sorted(summary.provider_breakdown.items(), key=lambda item: item[1], reverse=True)
        )

        log.debug(
            "analytics.report_built",
            window_hours=window_hours,
            user_id=user_id,
            total_requests=summary.total_requests,
        )
        return AnalyticsReport(
            total_requests=summary.total_requests,
            total_cost=summary.total_cost,
            avg_latency_ms=summary.avg_latency_ms,
            success_rate=summary.success_rate,
            window_hours=window_hours,
            cost_savings=estimated_savings(summary.total_cost),
            top_providers=top_providers,
            task_breakdown=summary.task_breakdown,
            user_id=user_id,
        )

    def compare_providers(
        self,
        task_type: TaskCategory,
        window_hours: float = 24,
    ) -> list[AggregatedMetrics]:
        return self._tracker.compare_providers(task_type, window_hours)

    def cost_overview(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> CostOverview:
        """Ledger records in [start, end] with their total.

        Raises:
            ExportRangeError: If start is after end
        """
        records = self._ledger.export_costs(start, end)
        return CostOverview(records=records, total=sum(r.cost for r in records))
