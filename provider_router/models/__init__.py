"""ORM models package.

Import all models here so that SQLAlchemy's metadata is fully populated
when Alembic runs autogenerate.
"""

from provider_router.models.telemetry import CostEntryRecord, PerformanceMetricRecord

__all__ = [
    "CostEntryRecord",
    "PerformanceMetricRecord",
]
