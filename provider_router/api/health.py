"""Health check endpoints.

/health/live   - Liveness probe: is the process up?
/health/ready  - Readiness probe: are routing services built, and is the
                 database reachable when one is configured?

These are public endpoints, outside /api/v1.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from provider_router import database

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict:
    """Liveness probe - always returns 200 if the process is running."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe - 503 until services exist and storage (if any) answers."""
    services = getattr(request.app.state, "services", None)

    if services is None:
        services_status = "not_initialized"
        providers: list[str] = []
    else:
        services_status = "ok"
        providers = [p.value for p in services.registry.available_providers]

    if not database.is_initialized():
        db_status = "disabled"
    else:
        try:
            engine = database.get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            db_status = "ok"
        except Exception as exc:
            db_status = f"error: {exc}"

    is_ready = services_status == "ok" and db_status in ("ok", "disabled")
    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ready" if is_ready else "not_ready",
            "services": services_status,
            "database": db_status,
            "providers": providers,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )
