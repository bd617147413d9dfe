"""Telemetry package: structured logging with request correlation.

Prometheus metrics live in provider_router.middleware.prometheus.
"""

from __future__ import annotations

from provider_router.telemetry.logging import (
    RequestIdMiddleware,
    bind_session_context,
    clear_context,
    configure_logging,
)

__all__ = [
    "RequestIdMiddleware",
    "bind_session_context",
    "clear_context",
    "configure_logging",
]
