"""Tests for the routing endpoints.

POST /api/v1/route, /api/v1/route/force and /api/v1/performance over the
full app with in-memory services.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest
from httpx import AsyncClient

from provider_router.main import create_app
from provider_router.services import RoutingServices


def _route_body(message: str = "hello", **context) -> dict:
    context.setdefault("session_id", "s1")
    context.setdefault("message_history", [message])
    return {"message": message, "context": context}


@pytest.mark.asyncio
async def test_route_returns_decision(client: AsyncClient) -> None:
    """Four available providers and no history: google wins at neutral confidence."""
    response = await client.post("/api/v1/route", json=_route_body())

    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "google"
    assert data["model"] == "gemini-2.5-flash"
    assert data["confidence"] == 0.5
    assert data["fallback_providers"] == ["hf", "openai", "anthropic"]
    assert "x-request-id" in response.headers


@pytest.mark.asyncio
async def test_route_honours_preferences(client: AsyncClient) -> None:
    body = _route_body(user_preferences={"preferred_provider": "openai"})

    response = await client.post("/api/v1/route", json=body)

    assert response.status_code == 200
    assert response.json()["provider"] == "openai"
    assert "openai" not in response.json()["fallback_providers"]


@pytest.mark.asyncio
async def test_route_requires_session_id(client: AsyncClient) -> None:
    response = await client.post("/api/v1/route", json=_route_body(session_id=""))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_route_rejects_unknown_preferred_provider(client: AsyncClient) -> None:
    body = _route_body(user_preferences={"preferred_provider": "mistral"})
    response = await client.post("/api/v1/route", json=body)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_force_route(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/route/force",
        json={"provider": "anthropic", "reason": "debugging"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "anthropic"
    assert data["confidence"] == 1.0
    assert data["reasoning"] == "Forced selection: debugging"
    assert data["fallback_providers"] == []


@pytest.mark.asyncio
async def test_force_route_unknown_provider(client: AsyncClient) -> None:
    response = await client.post("/api/v1/route/force", json={"provider": "acme"})
    assert response.status_code == 422


# ------------------------------------------------------------------ #
# Performance reports
# ------------------------------------------------------------------ #


@pytest.mark.asyncio
async def test_performance_report_is_recorded(
    client: AsyncClient,
    services: RoutingServices,
) -> None:
    """204 immediately; the background task records into tracker and ledger."""
    body = _route_body("write a function to reverse a string", user_id="u1")
    decision = (await client.post("/api/v1/route", json=body)).json()

    response = await client.post(
        "/api/v1/performance",
        json={
            "decision": decision,
            "actual_latency_ms": 850,
            "actual_cost": 0.0042,
            "success": True,
            "context": body["context"],
            "user_rating": 5,
        },
    )

    assert response.status_code == 204
    assert response.content == b""

    metrics = services.tracker.snapshot()
    assert len(metrics) == 1
    assert metrics[0].task_type.value == "code-generation"
    assert metrics[0].user_rating == 5

    records = services.ledger.get_session_costs("s1")
    assert [r.cost for r in records] == [0.0042]
    assert records[0].user_id == "u1"


@pytest.mark.asyncio
async def test_performance_report_validation(client: AsyncClient) -> None:
    decision = {
        "provider": "google",
        "model": "gemini-2.5-flash",
        "confidence": 0.5,
        "estimated_cost": 0.001,
        "estimated_latency_ms": 500,
    }
    base = {
        "decision": decision,
        "actual_latency_ms": 100,
        "actual_cost": 0.001,
        "success": True,
        "context": {"session_id": "s1"},
    }

    bad_rating = await client.post("/api/v1/performance", json={**base, "user_rating": 7})
    negative_cost = await client.post("/api/v1/performance", json={**base, "actual_cost": -1})
    selected_in_fallbacks = await client.post(
        "/api/v1/performance",
        json={**base, "decision": {**decision, "fallback_providers": ["google"]}},
    )

    assert bad_rating.status_code == 422
    assert negative_cost.status_code == 422
    assert selected_in_fallbacks.status_code == 422


@pytest.mark.asyncio
async def test_unhandled_error_returns_500(fake_settings, services: RoutingServices) -> None:
    broken = MagicMock()
    broken.select_provider.side_effect = RuntimeError("boom")
    services.selector = broken
    app = create_app(settings=fake_settings, services=services)

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)  # type: ignore[arg-type]
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        response = await ac.post("/api/v1/route", json=_route_body())

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
