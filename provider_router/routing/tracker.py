"""Rolling performance tracking for provider routing decisions.

The PerformanceTracker keeps a bounded, append-only log of per-request
outcomes and computes time-windowed aggregates on demand. Aggregates are
never stored; every read recomputes them from a point-in-time snapshot.

Concurrency:
- Appends and snapshots take a single lock
- The log is a deque(maxlen=capacity), so an append past capacity evicts
  exactly one (the oldest) entry
- Aggregation iterates a copy taken under the lock, outside the lock

Aggregates are approximate: a concurrent append may or may not be visible to
a simultaneous read.
"""

from __future__ import annotations

import threading
from collections import Counter, deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog

from provider_router.routing.classifier import TaskCategory
from provider_router.routing.providers import Provider

log = structlog.get_logger(__name__)

DEFAULT_CAPACITY = 10_000

# Composite score weights
SUCCESS_WEIGHT = 0.4
LATENCY_WEIGHT = 0.3
COST_WEIGHT = 0.3


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class PerformanceMetric:
    """Outcome of one completed request. Immutable once created.

    Attributes:
        provider: Provider that served the request
        model: Model identifier used
        task_type: Task category the request was classified as
        latency_ms: Wall-clock latency of the provider call
        input_tokens: Prompt tokens
        output_tokens: Completion tokens
        cost: Cost in USD
        success: Whether the provider call succeeded
        timestamp: When the request completed (UTC)
        session_id: Chat session the request belongs to
        error_kind: Error class name for failed requests
        user_rating: Optional 1-5 star rating
        user_id: Optional user, used to scope analytics
    """

    provider: Provider
    model: str
    task_type: TaskCategory
    latency_ms: float
    input_tokens: int
    output_tokens: int
    cost: float
    success: bool
    timestamp: datetime
    session_id: str
    error_kind: str | None = None
    user_rating: int | None = None
    user_id: str | None = None

    def __post_init__(self) -> None:
        if self.latency_ms < 0:
            raise ValueError("latency_ms cannot be negative")
        if self.input_tokens < 0 or self.output_tokens < 0:
            raise ValueError("token counts cannot be negative")
        if self.cost < 0:
            raise ValueError("cost cannot be negative")
        if self.user_rating is not None and not 1 <= self.user_rating <= 5:
            raise ValueError(f"user_rating must be 1-5, got {self.user_rating}")


@dataclass(frozen=True)
class AggregatedMetrics:
    """Time-windowed summary for one provider/task pair.

    Only ever built from at least one matching metric, so total_requests >= 1.
    """

    provider: Provider
    task_type: TaskCategory
    avg_latency_ms: float
    avg_cost: float
    success_rate: float
    total_requests: int
    window_hours: float
    avg_rating: float | None = None


@dataclass(frozen=True)
class GlobalSummary:
    """Single-pass aggregate across every provider in a window."""

    total_requests: int
    total_cost: float
    avg_latency_ms: float
    success_rate: float
    provider_breakdown: dict[str, int] = field(default_factory=dict)
    task_breakdown: dict[str, int] = field(default_factory=dict)


def composite_score(metrics: AggregatedMetrics) -> float:
    """Weighted success/latency/cost score in [0, 1].

    success_rate*0.4 + min(1, 1/latency_seconds)*0.3 + min(1, 1/avg_cost)*0.3.
    Zero latency or zero cost earns the full term.
    """
    latency_seconds = metrics.avg_latency_ms / 1000.0
    latency_term = 1.0 if latency_seconds <= 0 else min(1.0, 1.0 / latency_seconds)
    cost_term = 1.0 if metrics.avg_cost <= 0 else min(1.0, 1.0 / metrics.avg_cost)
    return (
        metrics.success_rate * SUCCESS_WEIGHT
        + latency_term * LATENCY_WEIGHT
        + cost_term * COST_WEIGHT
    )


def summarize(metrics: Iterable[PerformanceMetric]) -> GlobalSummary:
    """Aggregate an iterable of metrics in one pass."""
    total = 0
    successes = 0
    total_cost = 0.0
    total_latency = 0.0
    providers: Counter[str] = Counter()
    tasks: Counter[str] = Counter()

    for metric in metrics:
        total += 1
        successes += metric.success
        total_cost += metric.cost
        total_latency += metric.latency_ms
        providers[metric.provider.value] += 1
        tasks[metric.task_type.value] += 1

    return GlobalSummary(
        total_requests=total,
        total_cost=total_cost,
        avg_latency_ms=total_latency / total if total else 0.0,
        success_rate=successes / total if total else 0.0,
        provider_breakdown=dict(providers),
        task_breakdown=dict(tasks),
    )


class PerformanceTracker:
    """Bounded in-memory log of request outcomes with windowed aggregation.

    A single instance is shared by every request handler in the process.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize performance tracker.

        Args:
            capacity: Maximum metrics kept; oldest are evicted first
            clock: Source of "now" for window cut-offs
        """
        if capacity < 1:
            raise ValueError("capacity must be positive")

        self._metrics: deque[PerformanceMetric] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._clock = clock

        log.info("performance_tracker.initialized", capacity=capacity)

    @property
    def capacity(self) -> int:
        return self._metrics.maxlen or 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def track_request(self, metric: PerformanceMetric) -> None:
        """Append a completed request's outcome to the log."""
        with self._lock:
            self._metrics.append(metric)

        log.debug(
            "performance_tracker.request_tracked",
            provider=metric.provider.value,
            task_type=metric.task_type.value,
            latency_ms=metric.latency_ms,
            cost=round(metric.cost, 6),
            success=metric.success,
        )

    def load_history(self, metrics: Iterable[PerformanceMetric]) -> int:
        """Seed the log with historical metrics (oldest first).

        Returns:
            Number of metrics retained after applying the capacity bound
        """
        ordered = sorted(metrics, key=lambda m: m.timestamp)
        with self._lock:
            self._metrics.extend(ordered)
            retained = len(self._metrics)

        log.info(
            "performance_tracker.history_loaded",
            offered=len(ordered),
            retained=retained,
        )
        return retained

    def snapshot(self) -> list[PerformanceMetric]:
        """Point-in-time copy of the log."""
        with self._lock:
            return list(self._metrics)

    def _window(self, window_hours: float) -> list[PerformanceMetric]:
        cutoff = self._clock() - timedelta(hours=window_hours)
        return [m for m in self.snapshot() if m.timestamp >= cutoff]

    def get_aggregated_metrics(
        self,
        provider: Provider,
        task_type: TaskCategory,
        window_hours: float = 24,
    ) -> AggregatedMetrics | None:
        """Aggregate outcomes for a provider/task pair over a window.

        Returns:
            AggregatedMetrics, or None when no request matched (no data is
            not the same as zero performance)
        """
        relevant = [
            m
            for m in self._window(window_hours)
            if m.provider == provider and m.task_type == task_type
        ]
        if not relevant:
            return None

        total = len(relevant)
        rated = [m.user_rating for m in relevant if m.user_rating is not None]

        return AggregatedMetrics(
            provider=provider,
            task_type=task_type,
            avg_latency_ms=sum(m.latency_ms for m in relevant) / total,
            avg_cost=sum(m.cost for m in relevant) / total,
            success_rate=sum(1 for m in relevant if m.success) / total,
            total_requests=total,
            window_hours=window_hours,
            avg_rating=sum(rated) / len(rated) if rated else None,
        )

    def get_provider_metrics(
        self,
        provider: Provider,
        window_hours: float = 24,
    ) -> list[PerformanceMetric]:
        """Raw metrics for one provider inside the window."""
        return [m for m in self._window(window_hours) if m.provider == provider]

    def compare_providers(
        self,
        task_type: TaskCategory,
        window_hours: float = 24,
    ) -> list[AggregatedMetrics]:
        """Aggregates for every provider with data, best composite score first."""
        aggregates = [
            aggregate
            for provider in Provider
            if (aggregate := self.get_aggregated_metrics(provider, task_type, window_hours))
            is not None
        ]
        return sorted(aggregates, key=composite_score, reverse=True)

    def get_global_summary(self, window_hours: float = 24) -> GlobalSummary:
        """Summary across all providers, used by the analytics reporter."""
        return summarize(self._window(window_hours))

    def window(
        self,
        window_hours: float = 24,
        user_id: str | None = None,
    ) -> list[PerformanceMetric]:
        """Metrics inside the window, optionally restricted to one user."""
        recent = self._window(window_hours)
        if user_id is None:
            return recent
        return [m for m in recent if m.user_id == user_id]
