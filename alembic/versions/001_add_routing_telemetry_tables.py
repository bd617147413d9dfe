"""Add performance_metrics and cost_entries tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Adds:
- performance_metrics table (append-only)
  - id VARCHAR(32) PK          hex UUID
  - timestamp TIMESTAMP WITH TIME ZONE
  - provider VARCHAR(20)
  - model VARCHAR(200)
  - task_type VARCHAR(40)
  - latency_ms FLOAT
  - input_tokens INTEGER
  - output_tokens INTEGER
  - cost FLOAT
  - success BOOLEAN
  - error_kind VARCHAR(100) (nullable)
  - user_rating INTEGER (nullable, 1-5)
  - session_id VARCHAR(200)
  - user_id VARCHAR(200) (nullable)

- cost_entries table (append-only, keyed by the ledger record id)
  - id VARCHAR(32) PK
  - timestamp, provider, model, input_tokens, output_tokens, cost,
    session_id, user_id

Indexes:
- ix_performance_metrics_timestamp       (timestamp)
- ix_performance_metrics_provider_task   (provider, task_type)
- ix_cost_entries_session                (session_id)
- ix_cost_entries_user_time              (user_id, timestamp)
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create performance_metrics and cost_entries tables."""

    # ------------------------------------------------------------------
    # performance_metrics: one row per completed provider call
    # ------------------------------------------------------------------
    op.create_table(
        "performance_metrics",
        sa.Column("id", sa.String(32), primary_key=True, nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("model", sa.String(200), nullable=False),
        sa.Column("task_type", sa.String(40), nullable=False),
        sa.Column("latency_ms", sa.Float(), nullable=False),
        sa.Column("input_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("output_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_kind", sa.String(100), nullable=True),
        sa.Column(
            "user_rating",
            sa.Integer(),
            nullable=True,
            comment="Optional 1-5 star rating",
        ),
        sa.Column("session_id", sa.String(200), nullable=False),
        sa.Column("user_id", sa.String(200), nullable=True),
    )
    op.create_index(
        "ix_performance_metrics_timestamp",
        "performance_metrics",
        ["timestamp"],
    )
    op.create_index(
        "ix_performance_metrics_provider_task",
        "performance_metrics",
        ["provider", "task_type"],
    )

    # ------------------------------------------------------------------
    # cost_entries: one row per cost ledger record
    # ------------------------------------------------------------------
    op.create_table(
        "cost_entries",
        sa.Column("id", sa.String(32), primary_key=True, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("model", sa.String(200), nullable=False),
        sa.Column("input_tokens", sa.Integer(), nullable=False),
        sa.Column("output_tokens", sa.Integer(), nullable=False),
        sa.Column("cost", sa.Float(), nullable=False),
        sa.Column("session_id", sa.String(200), nullable=False),
        sa.Column("user_id", sa.String(200), nullable=True),
    )
    op.create_index("ix_cost_entries_session", "cost_entries", ["session_id"])
    op.create_index("ix_cost_entries_user_time", "cost_entries", ["user_id", "timestamp"])


def downgrade() -> None:
    """Drop cost_entries and performance_metrics tables."""
    op.drop_index("ix_cost_entries_user_time", table_name="cost_entries")
    op.drop_index("ix_cost_entries_session", table_name="cost_entries")
    op.drop_table("cost_entries")

    op.drop_index("ix_performance_metrics_provider_task", table_name="performance_metrics")
    op.drop_index("ix_performance_metrics_timestamp", table_name="performance_metrics")
    op.drop_table("performance_metrics")
