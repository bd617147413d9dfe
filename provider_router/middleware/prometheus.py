"""Prometheus metrics endpoint and instrumentation.

Exports metrics in Prometheus exposition format for scraping.

Metrics exported:
- http_requests_total: Counter of HTTP requests by method, endpoint, status
- http_request_duration_seconds: Histogram of HTTP request latencies
- routing_decisions_total: Counter of routing decisions by provider and task type
- routing_default_decisions_total: Counter of default (fallback) decisions by reason
- telemetry_record_failures_total: Counter of swallowed tracker/ledger failures
- tracked_cost_usd_total: Counter of tracked cost by provider
- tool_calls_total: Counter of tool invocations by tool and outcome

Design:
- Uses prometheus_client library for metrics collection
- Middleware captures HTTP request metrics automatically
- Manual instrumentation for routing and telemetry metrics
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

log = structlog.get_logger(__name__)


# Custom registry to avoid conflicts with other prometheus exporters
REGISTRY = CollectorRegistry(auto_describe=True)


# ------------------------------------------------------------------ #
# HTTP Metrics
# ------------------------------------------------------------------ #

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=REGISTRY,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)


# ------------------------------------------------------------------ #
# Routing Metrics
# ------------------------------------------------------------------ #

routing_decisions_total = Counter(
    "routing_decisions_total",
    "Routing decisions by selected provider and task type",
    ["provider", "task_type"],
    registry=REGISTRY,
)

routing_default_decisions_total = Counter(
    "routing_default_decisions_total",
    "Routing decisions that fell back to the default provider",
    ["reason"],
    registry=REGISTRY,
)

telemetry_record_failures_total = Counter(
    "telemetry_record_failures_total",
    "Failures while recording request outcomes (swallowed)",
    ["sink"],
    registry=REGISTRY,
)

tracked_cost_usd_total = Counter(
    "tracked_cost_usd_total",
    "Estimated cost tracked by the cost ledger in USD",
    ["provider"],
    registry=REGISTRY,
)


# ------------------------------------------------------------------ #
# Tool Metrics
# ------------------------------------------------------------------ #

tool_calls_total = Counter(
    "tool_calls_total",
    "Total tool invocations",
    ["tool_name", "success"],
    registry=REGISTRY,
)


# ------------------------------------------------------------------ #
# Instrumentation Functions
# ------------------------------------------------------------------ #


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record HTTP request metrics."""
    http_requests_total.labels(
        method=method,
        endpoint=endpoint,
        status=str(status_code),
    ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=endpoint,
    ).observe(duration_seconds)


def record_routing_decision(provider: str, task_type: str) -> None:
    """Count a scored routing decision."""
    routing_decisions_total.labels(provider=provider, task_type=task_type).inc()


def record_default_decision(reason: str) -> None:
    """Count a decision that bypassed scoring and used the default provider."""
    routing_default_decisions_total.labels(reason=reason).inc()


def record_telemetry_failure(sink: str) -> None:
    """Count a swallowed failure in the tracker or ledger sink."""
    telemetry_record_failures_total.labels(sink=sink).inc()


def record_tracked_cost(provider: str, cost: float) -> None:
    """Accumulate ledger cost for a provider."""
    if cost > 0:
        tracked_cost_usd_total.labels(provider=provider).inc(cost)


def record_tool_call(tool_name: str, success: bool) -> None:
    """Record tool call outcome."""
    tool_calls_total.labels(
        tool_name=tool_name,
        success=str(success).lower(),
    ).inc()


# ------------------------------------------------------------------ #
# Middleware
# ------------------------------------------------------------------ #


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics for Prometheus endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception:
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=500,
                duration_seconds=time.time() - start_time,
            )
            raise

        record_http_request(
            method=request.method,
            endpoint=request.url.path,
            status_code=response.status_code,
            duration_seconds=time.time() - start_time,
        )
        return response


# ------------------------------------------------------------------ #
# Metrics Endpoint
# ------------------------------------------------------------------ #


def get_metrics() -> Response:
    """Generate Prometheus metrics in exposition format."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
        status_code=200,
    )
