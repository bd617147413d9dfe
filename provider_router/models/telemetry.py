"""Routing telemetry ORM models.

Design principles:
- PerformanceMetricRecord: Append-only log of request outcomes. Recent rows
  are loaded back into the in-memory tracker at startup.
- CostEntryRecord: Append-only log of priced token usage, one row per
  ledger record, keyed by the ledger's own record id.

Both tables are written only by TelemetryRepository and never updated.
Provider and task type are stored as their string values.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from provider_router.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class PerformanceMetricRecord(Base):
    """One completed provider request.

    Attributes:
        id: Hex UUID primary key
        timestamp: When the request completed (UTC)
        provider: Provider value (google / hf / openai / anthropic)
        model: Model identifier
        task_type: Task category value
        latency_ms: Provider call latency
        input_tokens: Prompt tokens
        output_tokens: Completion tokens
        cost: USD cost
        success: Whether the call succeeded
        error_kind: Error class name for failures
        user_rating: Optional 1-5 rating
        session_id: Chat session
        user_id: Optional user
    """

    __tablename__ = "performance_metrics"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    model: Mapped[str] = mapped_column(String(200), nullable=False)
    task_type: Mapped[str] = mapped_column(String(40), nullable=False)
    latency_ms: Mapped[float] = mapped_column(Float, nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_kind: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_rating: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Optional 1-5 star rating",
    )
    session_id: Mapped[str] = mapped_column(String(200), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(200), nullable=True)

    __table_args__ = (
        # Startup preload reads the newest rows first
        Index("ix_performance_metrics_timestamp", "timestamp"),
        Index("ix_performance_metrics_provider_task", "provider", "task_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<PerformanceMetricRecord provider={self.provider} "
            f"task={self.task_type} success={self.success}>"
        )


class CostEntryRecord(Base):
    """One priced request from the cost ledger."""

    __tablename__ = "cost_entries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    model: Mapped[str] = mapped_column(String(200), nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    cost: Mapped[float] = mapped_column(Float, nullable=False)
    session_id: Mapped[str] = mapped_column(String(200), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(200), nullable=True)

    __table_args__ = (
        Index("ix_cost_entries_session", "session_id"),
        Index("ix_cost_entries_user_time", "user_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<CostEntryRecord id={self.id} provider={self.provider} cost={self.cost:.6f}>"
