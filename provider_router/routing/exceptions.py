"""Errors surfaced to callers of the routing core.

Only caller-input problems are raised. Classification, candidate and
telemetry failures are recovered inside the core and never reach here.
"""

from __future__ import annotations

from datetime import datetime


class RoutingError(Exception):
    """Base class for errors raised by the routing core."""


class ExportRangeError(RoutingError, ValueError):
    """Cost export requested with a start date after its end date."""

    def __init__(self, start: datetime, end: datetime) -> None:
        self.start = start
        self.end = end
        super().__init__(
            f"Invalid export range: start {start.isoformat()} is after end {end.isoformat()}"
        )
