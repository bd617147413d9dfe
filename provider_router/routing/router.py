"""Provider router - selects a provider/model pair for each chat request.

Request lifecycle:
    classify -> build candidates -> score/rank -> select -> (provider call,
    outside this package) -> record

Every step is total. A classifier failure degrades to a neutral
classification, no candidates degrades to the default decision, and an
unexpected error anywhere in selection also returns the default decision.
Recording is fire-and-forget: tracker and ledger failures are logged and
swallowed.

Scoring per candidate:
- With history: composite score (success 0.4, latency 0.3, cost 0.3)
  plus 0.1 * average rating
- Without history: neutral 0.5
- +0.2 for the user's preferred provider
- speed_priority: up to +0.15, linear in latency below 3000 ms
- cost_sensitive: up to +0.15, linear in estimated cost below $0.01
- Clamped to [0, 1]

The router owns no mutable state; tracker and ledger are injected.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from provider_router.middleware.prometheus import (
    record_default_decision,
    record_routing_decision,
    record_telemetry_failure,
    record_tracked_cost,
)
from provider_router.routing.classifier import (
    TaskCategory,
    TaskClassification,
    TaskClassifier,
    neutral_classification,
)
from provider_router.routing.ledger import CostLedger, CostRecord
from provider_router.routing.providers import Provider, ProviderRegistry, estimate_latency_ms
from provider_router.routing.tracker import (
    PerformanceMetric,
    PerformanceTracker,
    composite_score,
)

if TYPE_CHECKING:
    from provider_router.config import Settings

log = structlog.get_logger(__name__)

NEUTRAL_SCORE = 0.5
RATING_WEIGHT = 0.1
PREFERRED_PROVIDER_BONUS = 0.2
SPEED_BONUS = 0.15
COST_BONUS = 0.15
SPEED_REFERENCE_MS = 3000.0
COST_REFERENCE_USD = 0.01
MAX_FALLBACKS = 3

DEFAULT_DECISION_CONFIDENCE = 0.5
DEFAULT_DECISION_COST = 0.001
DEFAULT_DECISION_LATENCY_MS = 2000.0
FORCED_ESTIMATE_TOKENS = 100


@dataclass(frozen=True)
class UserPreferences:
    preferred_provider: Provider | None = None
    cost_sensitive: bool = False
    quality_priority: bool = False
    speed_priority: bool = False


@dataclass(frozen=True)
class ConversationContext:
    """Caller-supplied context for one request.

    Attributes:
        session_id: Chat session identifier
        user_id: Optional user identifier
        message_history: Messages so far, latest last
        previous_tasks: Task categories of earlier turns
        user_preferences: Optional routing preferences
    """

    session_id: str
    user_id: str | None = None
    message_history: tuple[str, ...] = ()
    previous_tasks: tuple[TaskCategory, ...] = ()
    user_preferences: UserPreferences | None = None

    @property
    def last_message(self) -> str:
        return self.message_history[-1] if self.message_history else ""


@dataclass(frozen=True)
class RoutingDecision:
    """Which provider/model should serve a request, and what to try next."""

    provider: Provider
    model: str
    confidence: float
    reasoning: str
    estimated_cost: float
    estimated_latency_ms: float
    fallback_providers: tuple[Provider, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be 0.0-1.0, got {self.confidence}")
        if self.provider in self.fallback_providers:
            raise ValueError("fallback_providers must not contain the selected provider")

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "model": self.model,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "estimated_cost": self.estimated_cost,
            "estimated_latency_ms": self.estimated_latency_ms,
            "fallback_providers": [p.value for p in self.fallback_providers],
        }


@dataclass(frozen=True)
class ScoredCandidate:
    provider: Provider
    model: str
    score: float
    reasoning: str
    estimated_cost: float
    estimated_latency_ms: float


@dataclass(frozen=True)
class RecordedOutcome:
    """What record_performance appended; None where a sink failed or was skipped."""

    metric: PerformanceMetric | None = None
    cost_record: CostRecord | None = None


@dataclass(frozen=True)
class RouterConfig:
    enable_intelligent_routing: bool = True
    fallback_enabled: bool = True
    performance_tracking_enabled: bool = True
    cost_optimization_enabled: bool = True
    window_hours: float = 24

    @classmethod
    def from_settings(cls, settings: Settings) -> RouterConfig:
        return cls(
            enable_intelligent_routing=settings.enable_intelligent_routing,
            fallback_enabled=settings.fallback_enabled,
            performance_tracking_enabled=settings.performance_tracking_enabled,
            cost_optimization_enabled=settings.cost_optimization_enabled,
            window_hours=settings.metrics_window_hours,
        )


class ProviderSelector(Protocol):
    """Narrow routing interface used by request handlers."""

    def select_provider(self, message: str, context: ConversationContext) -> RoutingDecision: ...

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
    ) -> RecordedOutcome: ...

    def force_provider(self, provider: Provider, reason: str) -> RoutingDecision: ...


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


class Router:
    """Ranks provider/model candidates and returns a routing decision."""

    def __init__(
        self,
        classifier: TaskClassifier,
        tracker: PerformanceTracker,
        ledger: CostLedger,
        registry: ProviderRegistry,
        config: RouterConfig | None = None,
    ) -> None:
        self._classifier = classifier
        self._tracker = tracker
        self._ledger = ledger
        self._registry = registry
        self._config = config or RouterConfig()

        log.info(
            "router.initialized",
            available=[p.value for p in registry.available_providers],
            intelligent_routing=self._config.enable_intelligent_routing,
            fallback_enabled=self._config.fallback_enabled,
        )

    @property
    def config(self) -> RouterConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Selection
    # ------------------------------------------------------------------ #

    def select_provider(self, message: str, context: ConversationContext) -> RoutingDecision:
        """Select the best provider/model for a user message.

        Never raises; any failure yields the default decision.
        """
        if not self._config.enable_intelligent_routing:
            return self.fallback_decision(
                "Intelligent routing disabled - using default provider",
                reason="disabled",
            )

        try:
            classification = self.classify(message)
            candidates = self._build_candidates(classification.type)
            ranked = self._rank(candidates, classification, context)
        except Exception as exc:
            log.warning(
                "router.selection_failed",
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            return self.fallback_decision(
                "Selection error - using default provider",
                reason="error",
            )

        if not ranked:
            return self.fallback_decision(
                f"No available provider for {classification.type.value} - using default provider",
                reason="no_candidates",
            )

        best, rest = ranked[0], ranked[1:]
        fallbacks = self._fallbacks(best.provider, rest) if self._config.fallback_enabled else ()

        decision = RoutingDecision(
            provider=best.provider,
            model=best.model,
            confidence=best.score,
            reasoning=best.reasoning,
            estimated_cost=best.estimated_cost,
            estimated_latency_ms=best.estimated_latency_ms,
            fallback_providers=fallbacks,
        )

        record_routing_decision(decision.provider.value, classification.type.value)
        log.info(
            "router.provider_selected",
            task_type=classification.type.value,
            provider=decision.provider.value,
            model=decision.model,
            confidence=round(decision.confidence, 3),
            candidates=len(ranked),
            fallbacks=[p.value for p in fallbacks],
        )
        return decision

    def classify(self, message: str) -> TaskClassification:
        """Classify, substituting a neutral classification on failure."""
        try:
            return self._classifier.classify(message)
        except Exception as exc:
            log.warning(
                "router.classification_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return neutral_classification(message if isinstance(message, str) else "")

    def _build_candidates(self, task_type: TaskCategory) -> list[tuple[Provider, str]]:
        candidates = []
        for provider in self._registry.available_providers:
            model = self._registry.recommend_model(provider, task_type)
            if model is not None:
                candidates.append((provider, model))

        if not candidates:
            candidates = [
                (provider, self._registry.default_model(provider))
                for provider in self._registry.available_providers
            ]
            log.debug(
                "router.no_task_models",
                task_type=task_type.value,
                defaults=[p.value for p, _ in candidates],
            )
        return candidates

    def _rank(
        self,
        candidates: list[tuple[Provider, str]],
        classification: TaskClassification,
        context: ConversationContext,
    ) -> list[ScoredCandidate]:
        scored = [
            self._score(provider, model, classification, context)
            for provider, model in candidates
        ]
        # Stable sort: equal scores keep provider order
        return sorted(scored, key=lambda c: c.score, reverse=True)

    def _score(
        self,
        provider: Provider,
        model: str,
        classification: TaskClassification,
        context: ConversationContext,
    ) -> ScoredCandidate:
        performance = self._tracker.get_aggregated_metrics(
            provider,
            classification.type,
            self._config.window_hours,
        )

        if performance is not None:
            score = composite_score(performance)
            reasons = [
                f"Performance: {performance.success_rate:.0%} success, "
                f"{performance.avg_latency_ms:.0f}ms latency, "
                f"${performance.avg_cost:.4f} avg cost"
            ]
            if performance.avg_rating is not None:
                score += performance.avg_rating * RATING_WEIGHT
                reasons.append(f"{performance.avg_rating:.1f} star rating")
        else:
            score = NEUTRAL_SCORE
            reasons = ["No historical performance data"]

        estimated_cost = self.estimate_cost(provider, model, classification.estimated_tokens)
        estimated_latency = self.estimate_latency(provider, model)

        preferences = context.user_preferences
        if preferences is not None:
            if preferences.preferred_provider == provider:
                score += PREFERRED_PROVIDER_BONUS
                reasons.append("preferred provider")
            if preferences.speed_priority:
                score += max(0.0, 1 - estimated_latency / SPEED_REFERENCE_MS) * SPEED_BONUS
            if preferences.cost_sensitive and self._config.cost_optimization_enabled:
                score += max(0.0, 1 - estimated_cost / COST_REFERENCE_USD) * COST_BONUS

        return ScoredCandidate(
            provider=provider,
            model=model,
            score=_clamp(score),
            reasoning=", ".join(reasons),
            estimated_cost=estimated_cost,
            estimated_latency_ms=estimated_latency,
        )

    @staticmethod
    def _fallbacks(selected: Provider, rest: list[ScoredCandidate]) -> tuple[Provider, ...]:
        fallbacks: list[Provider] = []
        for candidate in rest:
            if candidate.provider == selected or candidate.provider in fallbacks:
                continue
            fallbacks.append(candidate.provider)
            if len(fallbacks) == MAX_FALLBACKS:
                break
        return tuple(fallbacks)

    # ------------------------------------------------------------------ #
    # Estimates
    # ------------------------------------------------------------------ #

    def estimate_cost(self, provider: Provider, model: str, estimated_tokens: int) -> float:
        """Ledger price assuming the answer is twice the prompt size."""
        return self._ledger.calculate_cost(
            provider.value, model, estimated_tokens, estimated_tokens * 2
        )

    @staticmethod
    def estimate_latency(provider: Provider, model: str) -> float:
        return estimate_latency_ms(provider, model)

    # ------------------------------------------------------------------ #
    # Overrides and defaults
    # ------------------------------------------------------------------ #

    def force_provider(self, provider: Provider, reason: str) -> RoutingDecision:
        """Bypass scoring (manual override / debugging). No fallbacks."""
        provider = Provider(provider)
        model = self._registry.default_model(provider)

        log.info("router.provider_forced", provider=provider.value, model=model, reason=reason)
        return RoutingDecision(
            provider=provider,
            model=model,
            confidence=1.0,
            reasoning=f"Forced selection: {reason}",
            estimated_cost=self.estimate_cost(provider, model, FORCED_ESTIMATE_TOKENS),
            estimated_latency_ms=self.estimate_latency(provider, model),
            fallback_providers=(),
        )

    def fallback_decision(self, reasoning: str, reason: str = "fallback") -> RoutingDecision:
        """Default decision used whenever scoring cannot produce one."""
        provider = self._registry.default_provider()

        record_default_decision(reason)
        log.info(
            "router.default_decision",
            provider=provider.value,
            reason=reason,
            reasoning=reasoning,
        )
        return RoutingDecision(
            provider=provider,
            model=self._registry.default_model(provider),
            confidence=DEFAULT_DECISION_CONFIDENCE,
            reasoning=reasoning,
            estimated_cost=DEFAULT_DECISION_COST,
            estimated_latency_ms=DEFAULT_DECISION_LATENCY_MS,
            fallback_providers=(),
        )

    # ------------------------------------------------------------------ #
    # Recording
    # ------------------------------------------------------------------ #

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
        """Record the outcome of a routed request. Never raises.

        The task type is recovered by re-classifying the last message in the
        context. Token counts default to the classifier estimate (input) and
        ceil(latency / 10) (output) when the caller does not know them.
        """
        if not self._config.performance_tracking_enabled:
            return RecordedOutcome()

        classification = self.classify(context.last_message)
        prompt_tokens = classification.estimated_tokens if input_tokens is None else input_tokens
        completion_tokens = (
            math.ceil(max(actual_latency_ms, 0) / 10) if output_tokens is None else output_tokens
        )

        metric: PerformanceMetric | None = None
        try:
            metric = PerformanceMetric(
                provider=decision.provider,
                model=decision.model,
                task_type=classification.type,
                latency_ms=actual_latency_ms,
                input_tokens=prompt_tokens,
                output_tokens=completion_tokens,
                cost=actual_cost,
                success=success,
                timestamp=datetime.now(UTC),
                session_id=context.session_id,
                error_kind=error_kind,
                user_rating=user_rating,
                user_id=context.user_id,
            )
            self._tracker.track_request(metric)
        except Exception as exc:
            metric = None
            record_telemetry_failure("tracker")
            log.warning(
                "router.performance_tracking_failed",
                provider=decision.provider.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )

        cost_record: CostRecord | None = None
        try:
            cost_record = self._ledger.track_cost(
                decision.provider.value,
                decision.model,
                prompt_tokens,
                completion_tokens,
                context.session_id,
                context.user_id,
                cost=actual_cost,
            )
            record_tracked_cost(cost_record.provider, cost_record.cost)
        except Exception as exc:
            record_telemetry_failure("ledger")
            log.warning(
                "router.cost_tracking_failed",
                provider=decision.provider.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )

        log.info(
            "router.performance_recorded",
            provider=decision.provider.value,
            model=decision.model,
            task_type=classification.type.value,
            latency_ms=actual_latency_ms,
            success=success,
            tracked=metric is not None,
            costed=cost_record is not None,
        )
        return RecordedOutcome(metric=metric, cost_record=cost_record)
