"""
Shared test fixtures for pytest.

Provides:
- fake_settings: Test configuration with every provider credential set
- clock: Controllable UTC clock for tracker/ledger window tests
- classifier, registry, tracker, ledger, router: Fresh routing objects
- make_metric: Factory for PerformanceMetric rows
- services, test_app, client: Full app over httpx ASGITransport
- mock_db_session: Async database session mock
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from provider_router.config import Environment, Settings, get_settings
from provider_router.routing.classifier import TaskCategory, TaskClassifier
from provider_router.routing.ledger import CostLedger
from provider_router.routing.providers import Provider, ProviderRegistry
from provider_router.routing.router import ConversationContext, Router, RouterConfig
from provider_router.routing.tracker import PerformanceMetric, PerformanceTracker
from provider_router.services import RoutingServices, build_services
from provider_router.telemetry.logging import clear_context


# ------------------------------------------------------------------ #
# Session-scoped: clear settings cache between test sessions
# ------------------------------------------------------------------ #

@pytest.fixture(autouse=True, scope="session")
def _clear_settings_cache():
    """Clear the lru_cache on get_settings so test overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Drop session/request ids bound by a previous test."""
    yield
    clear_context()


# ------------------------------------------------------------------ #
# Settings
# ------------------------------------------------------------------ #

@pytest.fixture
def fake_settings() -> Settings:
    """Test environment settings: all four providers available, no database."""
    return Settings(
        _env_file=None,
        environment=Environment.TEST,
        google_generative_ai_api_key="test-google-key",
        openai_api_key="sk-test-openai",
        anthropic_api_key="sk-ant-test",
        hf_token="hf_test",
        database_url=None,
        debug=True,
    )


# ------------------------------------------------------------------ #
# Clock
# ------------------------------------------------------------------ #

class FakeClock:
    """Callable UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ------------------------------------------------------------------ #
# Routing objects
# ------------------------------------------------------------------ #

@pytest.fixture
def classifier() -> TaskClassifier:
    return TaskClassifier()


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry(list(Provider))


@pytest.fixture
def tracker() -> PerformanceTracker:
    return PerformanceTracker(capacity=1000)


@pytest.fixture
def ledger() -> CostLedger:
    return CostLedger()


@pytest.fixture
def router(
    classifier: TaskClassifier,
    tracker: PerformanceTracker,
    ledger: CostLedger,
    registry: ProviderRegistry,
) -> Router:
    return Router(classifier, tracker, ledger, registry, RouterConfig())


@pytest.fixture
def context() -> ConversationContext:
    return ConversationContext(
        session_id="s1",
        user_id="u1",
        message_history=("write a function to reverse a string",),
    )


@pytest.fixture
def make_metric() -> Callable[..., PerformanceMetric]:
    """Build a PerformanceMetric with sensible defaults; override any field."""

    def _make(**overrides: Any) -> PerformanceMetric:
        fields: dict[str, Any] = {
            "provider": Provider.GOOGLE,
            "model": "gemini-2.5-flash",
            "task_type": TaskCategory.GENERAL_CONVERSATION,
            "latency_ms": 500.0,
            "input_tokens": 100,
            "output_tokens": 50,
            "cost": 0.001,
            "success": True,
            "timestamp": datetime.now(UTC),
            "session_id": "s1",
        }
        fields.update(overrides)
        return PerformanceMetric(**fields)

    return _make


# ------------------------------------------------------------------ #
# App & HTTP client
# ------------------------------------------------------------------ #

@pytest.fixture
def services(fake_settings: Settings) -> RoutingServices:
    return build_services(fake_settings)


@pytest.fixture
def test_app(fake_settings: Settings, services: RoutingServices) -> FastAPI:
    """FastAPI app with prebuilt services (the lifespan does not run under ASGITransport)."""
    from provider_router.main import create_app

    return create_app(settings=fake_settings, services=services)


@pytest.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client for testing the FastAPI application.

    Uses httpx.AsyncClient with ASGITransport to test the app without
    spinning up a real HTTP server.
    """
    transport = httpx.ASGITransport(app=test_app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
    ) as ac:
        yield ac


# ------------------------------------------------------------------ #
# Database Fixtures
# ------------------------------------------------------------------ #

@pytest.fixture
def mock_db_session() -> AsyncSession:
    """Mock async database session for unit tests.

    The execute() return value is a MagicMock so that synchronous result
    methods like .scalars() return plain values rather than coroutines.
    """
    mock = AsyncMock(spec=AsyncSession)
    mock.execute = AsyncMock()
    mock.execute.return_value = MagicMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.flush = AsyncMock()
    mock.close = AsyncMock()
    mock.add = MagicMock()
    return mock
