"""Logging decorator for ProviderSelector implementations.

Wraps any ProviderSelector and emits a structured log line before and after
each call, with the elapsed time. The wrapped selector is otherwise used
unchanged, so the decorator can be stacked or removed without touching the
routing logic.
"""

from __future__ import annotations

import time

import structlog

from provider_router.routing.providers import Provider
from provider_router.routing.router import (
    ConversationContext,
    ProviderSelector,
    RecordedOutcome,
    RoutingDecision,
)

log = structlog.get_logger(__name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


class LoggingRouter:
    """ProviderSelector that logs around another ProviderSelector."""

    def __init__(self, inner: ProviderSelector) -> None:
        self._inner = inner

    @property
    def inner(self) -> ProviderSelector:
        return self._inner

    def select_provider(self, message: str, context: ConversationContext) -> RoutingDecision:
        log.debug(
            "routing.select_provider.start",
            session_id=context.session_id,
            message_length=len(message),
        )
        started = time.perf_counter()
        decision = self._inner.select_provider(message, context)
        log.info(
            "routing.select_provider.done",
            session_id=context.session_id,
            provider=decision.provider.value,
            model=decision.model,
            confidence=round(decision.confidence, 3),
            duration_ms=_elapsed_ms(started),
        )
        return decision

    def record_performance(
        self,
        decision: RoutingDecision,
        actual_latency_ms: float,
        actual_cost: float,
        success: bool,
        context: ConversationContext,
        user_rating: int | None = None,
        error_kind: str | None = None,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
    ) -> RecordedOutcome:
        log.debug(
            "routing.record_performance.start",
            session_id=context.session_id,
            provider=decision.provider.value,
            success=success,
        )
        started = time.perf_counter()
        outcome = self._inner.record_performance(
            decision,
            actual_latency_ms,
            actual_cost,
            success,
            context,
            user_rating=user_rating,
            error_kind=error_kind,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        log.debug(
            "routing.record_performance.done",
            session_id=context.session_id,
            tracked=outcome.metric is not None,
            costed=outcome.cost_record is not None,
            duration_ms=_elapsed_ms(started),
        )
        return outcome

    def force_provider(self, provider: Provider, reason: str) -> RoutingDecision:
        log.debug("routing.force_provider.start", provider=str(provider), reason=reason)
        started = time.perf_counter()
        decision = self._inner.force_provider(provider, reason)
        log.info(
            "routing.force_provider.done",
            provider=decision.provider.value,
            model=decision.model,
            duration_ms=_elapsed_ms(started),
        )
        return decision
