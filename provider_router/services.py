"""Process-wide routing services.

One instance of each collaborator is built at startup by build_services()
and stored on app.state; request handlers receive it through the
get_services dependency. Nothing here is a module global, so tests build a
fresh container per test.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from provider_router import database
from provider_router.config import Settings
from provider_router.middleware.prometheus import record_telemetry_failure
from provider_router.routing.analytics import AnalyticsReporter
from provider_router.routing.classifier import TaskClassifier
from provider_router.routing.instrumentation import LoggingRouter
from provider_router.routing.ledger import ApprovalPolicy, CostLedger
from provider_router.routing.persistence import TelemetryRepository
from provider_router.routing.providers import ProviderRegistry
from provider_router.routing.router import (
    ProviderSelector,
    RecordedOutcome,
    Router,
    RouterConfig,
)
from provider_router.routing.tracker import PerformanceTracker
from provider_router.tools.gateway import ToolExecutor, ToolGateway

log = structlog.get_logger(__name__)

RETENTION_INTERVAL_SECONDS = 3600


@dataclass
class RoutingServices:
    """Container for the shared routing collaborators.

    Attributes:
        settings: Settings the services were built from
        registry: Provider availability and catalog
        tracker: Shared performance log
        ledger: Shared cost ledger
        router: The routing engine
        selector: What handlers call (the router wrapped in LoggingRouter)
        reporter: Analytics over tracker and ledger
        tools: Tool executor used by the tool endpoint
        repository: Durable storage, None when DATABASE_URL is unset
    """

    settings: Settings
    registry: ProviderRegistry
    tracker: PerformanceTracker
    ledger: CostLedger
    router: Router
    selector: ProviderSelector
    reporter: AnalyticsReporter
    tools: ToolExecutor
    repository: TelemetryRepository | None = None

    async def persist_outcome(self, outcome: RecordedOutcome) -> None:
        """Write a recorded outcome to the database, if persistence is on.

        Failures are logged and swallowed; the in-memory records stand.
        """
        if self.repository is None or not database.is_initialized():
            return
        if outcome.metric is None and outcome.cost_record is None:
            return

        try:
            async with database.session_scope() as session:
                await self.repository.save_outcome(session, outcome)
        except Exception as exc:
            record_telemetry_failure("database")
            log.warning(
                "services.persist_outcome_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )

    async def preload_history(self) -> int:
        """Seed the tracker with recent stored metrics. Returns the count retained."""
        if self.repository is None or not database.is_initialized():
            return 0

        try:
            async with database.session_scope() as session:
                metrics = await self.repository.load_recent_metrics(
                    session,
                    self.settings.history_preload_limit,
                )
        except Exception as exc:
            record_telemetry_failure("database")
            log.warning(
                "services.preload_history_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return 0

        return self.tracker.load_history(metrics)

    def prune_costs(self) -> int:
        return self.ledger.cleanup(self.settings.cost_retention_days)


def build_services(
    settings: Settings,
    *,
    tools: ToolExecutor | None = None,
) -> RoutingServices:
    """Wire every routing collaborator from settings."""
    registry = ProviderRegistry.from_settings(settings)
    tracker = PerformanceTracker(capacity=settings.tracker_capacity)
    ledger = CostLedger(
        policy=ApprovalPolicy(
            auto_approve_threshold=settings.auto_approve_threshold,
            require_approval_above=settings.require_approval_above,
        )
    )
    router = Router(
        classifier=TaskClassifier(),
        tracker=tracker,
        ledger=ledger,
        registry=registry,
        config=RouterConfig.from_settings(settings),
    )

    log.info(
        "services.built",
        providers=[p.value for p in registry.available_providers],
        persistence=settings.persistence_enabled,
    )
    return RoutingServices(
        settings=settings,
        registry=registry,
        tracker=tracker,
        ledger=ledger,
        router=router,
        selector=LoggingRouter(router),
        reporter=AnalyticsReporter(tracker, ledger),
        tools=tools if tools is not None else ToolGateway(),
        repository=TelemetryRepository() if settings.persistence_enabled else None,
    )


async def run_retention_loop(
    services: RoutingServices,
    interval_seconds: float = RETENTION_INTERVAL_SECONDS,
) -> None:
    """Prune old cost records periodically until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        services.prune_costs()
