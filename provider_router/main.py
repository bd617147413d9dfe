"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure logging
3. Initialize database engine (only when DATABASE_URL is set)
4. Build routing services and preload stored history
5. Start the cost retention loop

Shutdown order:
1. Stop the retention loop
2. Close DB connection pool
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from provider_router.api.router import api_v1_router, public_router
from provider_router.config import Settings, get_settings
from provider_router.database import close_db, init_db
from provider_router.middleware.prometheus import PrometheusMiddleware, get_metrics
from provider_router.services import RoutingServices, build_services, run_retention_loop
from provider_router.telemetry.logging import RequestIdMiddleware, configure_logging

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings

    configure_logging(
        json_logs=settings.is_prod,
        log_level="DEBUG" if settings.debug else "INFO",
    )
    log.info(
        "app.starting",
        environment=settings.environment,
        persistence=settings.persistence_enabled,
    )

    if settings.persistence_enabled:
        init_db(settings)

    services: RoutingServices | None = getattr(app.state, "services", None)
    if services is None:
        services = build_services(settings)
        app.state.services = services

    preloaded = await services.preload_history()
    retention_task = asyncio.create_task(run_retention_loop(services))

    log.info("app.ready", preloaded_metrics=preloaded)
    yield

    retention_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await retention_task

    await close_db()
    log.info("app.shutdown")


def create_app(
    settings: Settings | None = None,
    services: RoutingServices | None = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Settings to use (defaults to get_settings())
        services: Prebuilt services; built in the lifespan when omitted
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Provider Router",
        description=(
            "Routes chat requests to the best available model provider based "
            "on observed success rate, latency and cost."
        ),
        version="0.1.0",
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if services is not None:
        app.state.services = services

    # ------------------------------------------------------------------ #
    # Middleware (added in reverse order - last added = first executed)
    # ------------------------------------------------------------------ #

    cors_origins = ["*"] if settings.is_dev else settings.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.is_prod,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(public_router)
    app.include_router(api_v1_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Any:
        """Prometheus metrics endpoint."""
        return get_metrics()

    # ------------------------------------------------------------------ #
    # Global exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Module-level app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("provider_router.main:app", host="0.0.0.0", port=8000, reload=get_settings().is_dev)
