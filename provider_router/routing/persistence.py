"""Durable storage for recorded routing outcomes.

TelemetryRepository writes what Router.record_performance appended to the
in-memory tracker and ledger, and reads recent metrics back so a restarted
process does not route blind.

The session is injected so the caller controls transaction scope.

Usage:
    repository = TelemetryRepository()

    async with session_scope() as session:
        await repository.save_outcome(session, outcome)

    async with session_scope() as session:
        tracker.load_history(await repository.load_recent_metrics(session, 1000))
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from provider_router.models.telemetry import CostEntryRecord, PerformanceMetricRecord
from provider_router.routing.classifier import TaskCategory
from provider_router.routing.providers import Provider
from provider_router.routing.router import RecordedOutcome
from provider_router.routing.tracker import PerformanceMetric

log = structlog.get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def metric_to_row(metric: PerformanceMetric) -> PerformanceMetricRecord:
    return PerformanceMetricRecord(
        timestamp=metric.timestamp,
        provider=metric.provider.value,
        model=metric.model,
        task_type=metric.task_type.value,
        latency_ms=metric.latency_ms,
        input_tokens=metric.input_tokens,
        output_tokens=metric.output_tokens,
        cost=metric.cost,
        success=metric.success,
        error_kind=metric.error_kind,
        user_rating=metric.user_rating,
        session_id=metric.session_id,
        user_id=metric.user_id,
    )


def row_to_metric(row: PerformanceMetricRecord) -> PerformanceMetric:
    """Rebuild a PerformanceMetric from a stored row.

    Raises:
        ValueError: If the row holds an unknown provider or task type
    """
    return PerformanceMetric(
        provider=Provider(row.provider),
        model=row.model,
        task_type=TaskCategory(row.task_type),
        latency_ms=row.latency_ms,
        input_tokens=row.input_tokens,
        output_tokens=row.output_tokens,
        cost=row.cost,
        success=row.success,
        timestamp=_as_utc(row.timestamp),
        session_id=row.session_id,
        error_kind=row.error_kind,
        user_rating=row.user_rating,
        user_id=row.user_id,
    )


class TelemetryRepository:
    """Async reads and writes of performance metrics and cost entries."""

    async def save_outcome(self, session: AsyncSession, outcome: RecordedOutcome) -> int:
        """Add the rows for one recorded outcome to the session.

        Args:
            session: Active async database session
            outcome: What record_performance appended

        Returns:
            Number of rows added (0-2)
        """
        added = 0
        if outcome.metric is not None:
            session.add(metric_to_row(outcome.metric))
            added += 1

        if outcome.cost_record is not None:
            record = outcome.cost_record
            session.add(
                CostEntryRecord(
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
            )
            added += 1

        log.debug("telemetry_repository.outcome_saved", rows=added)
        return added

    async def load_recent_metrics(
        self,
        session: AsyncSession,
        limit: int = 1000,
    ) -> list[PerformanceMetric]:
        """Most recent stored metrics, oldest first.

        Rows with an unknown provider or task type are skipped.
        """
        if limit <= 0:
            return []

        stmt = (
            select(PerformanceMetricRecord)
            .order_by(PerformanceMetricRecord.timestamp.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        rows = result.scalars().all()

        metrics: list[PerformanceMetric] = []
        skipped = 0
        for row in reversed(rows):
            try:
                metrics.append(row_to_metric(row))
            except ValueError:
                skipped += 1

        log.info(
            "telemetry_repository.metrics_loaded",
            loaded=len(metrics),
            skipped=skipped,
        )
        return metrics
