"""Cost ledger for provider usage.

The CostLedger prices token usage per provider/model family and keeps an
append-only list of immutable CostRecord entries. Records are removed only
by an explicit cleanup(days_old) call.

Pricing is an estimate (USD per 1K tokens), not billing-grade:

    google    / gemini : 0.00025 in, 0.0005 out
    anthropic / claude : 0.0008  in, 0.0024 out
    openai    / gpt    : 0.0015  in, 0.002  out
    hf        / local  : free
    anything else      : default rate (gemini)

Approval policy:
- needs_approval(cost)    -> cost >  require_approval_above (default 0.10)
- can_auto_approve(cost)  -> cost <= auto_approve_threshold (default 0.01)
The predicates are independent; a mid-range cost is neither auto-approved
nor over the approval line.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog

from provider_router.routing.exceptions import ExportRangeError

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TokenRates:
    """USD per 1K tokens."""

    input: float
    output: float


# Keyed by (provider, model family). Family is the model id up to its first "-".
PRICING: dict[tuple[str, str], TokenRates] = {
    ("google", "gemini"): TokenRates(input=0.00025, output=0.0005),
    ("anthropic", "claude"): TokenRates(input=0.0008, output=0.0024),
    ("openai", "gpt"): TokenRates(input=0.0015, output=0.002),
    ("hf", "local"): TokenRates(input=0.0, output=0.0),
}
DEFAULT_RATES = PRICING[("google", "gemini")]


def model_family(model: str) -> str:
    """'gemini-2.5-flash' -> 'gemini'; 'meta-llama/Llama-3.2' -> 'meta'."""
    return model.split("-", 1)[0].lower()


def rates_for(provider: str, model: str) -> TokenRates:
    return PRICING.get((str(provider).lower(), model_family(model)), DEFAULT_RATES)


@dataclass(frozen=True)
class CostRecord:
    """Priced token usage of one request. Immutable once created."""

    id: str
    timestamp: datetime
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    session_id: str
    user_id: str | None = None

    def to_dict(self) -> dict[str, str | int | float | None]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "provider": self.provider,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": self.cost,
            "session_id": self.session_id,
            "user_id": self.user_id,
        }


@dataclass(frozen=True)
class ApprovalPolicy:
    """Thresholds for approving a request's cost."""

    auto_approve_threshold: float = 0.01
    require_approval_above: float = 0.10

    def __post_init__(self) -> None:
        if self.auto_approve_threshold < 0 or self.require_approval_above < 0:
            raise ValueError("approval thresholds cannot be negative")

    def needs_approval(self, cost: float) -> bool:
        return cost > self.require_approval_above

    def can_auto_approve(self, cost: float) -> bool:
        return cost <= self.auto_approve_threshold

    def requires_payment(self, cost: float) -> bool:
        """Approval needed and not coverable by auto-approval."""
        return self.needs_approval(cost) and not self.can_auto_approve(cost)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CostLedger:
    """Prices token usage and records immutable cost entries.

    A single instance is shared by every request handler in the process.
    All mutation goes through track_cost() and cleanup().
    """

    def __init__(
        self,
        policy: ApprovalPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize cost ledger.

        Args:
            policy: Approval thresholds (defaults 0.01 / 0.10)
            clock: Source of "now" for record timestamps and cleanup cut-offs
        """
        self._policy = policy or ApprovalPolicy()
        self._clock = clock
        self._records: list[CostRecord] = []
        self._lock = threading.Lock()

        log.info(
            "cost_ledger.initialized",
            auto_approve_threshold=self._policy.auto_approve_threshold,
            require_approval_above=self._policy.require_approval_above,
        )

    @property
    def policy(self) -> ApprovalPolicy:
        return self._policy

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def calculate_cost(
        self,
        provider: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
    ) -> float:
        """Estimated USD cost of a request.

        Unknown provider/model pairs use the default rate instead of erroring.

        Raises:
            ValueError: If a token count is negative
        """
        if input_tokens < 0 or output_tokens < 0:
            raise ValueError("token counts cannot be negative")

        rates = rates_for(provider, model)
        return (input_tokens * rates.input + output_tokens * rates.output) / 1000

    def track_cost(
        self,
        provider: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        session_id: str,
        user_id: str | None = None,
        cost: float | None = None,
    ) -> CostRecord:
        """Price and record a request's token usage.

        Args:
            provider: Provider identifier
            model: Model identifier
            input_tokens: Prompt tokens
            output_tokens: Completion tokens
            session_id: Chat session
            user_id: Optional user
            cost: Measured cost to record instead of the table estimate

        Returns:
            The appended CostRecord
        """
        if cost is None:
            cost = self.calculate_cost(provider, model, input_tokens, output_tokens)
        elif cost < 0:
            raise ValueError("cost cannot be negative")

        record = CostRecord(
            id=uuid.uuid4().hex,
            timestamp=self._clock(),
            provider=str(provider),
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            session_id=session_id,
            user_id=user_id,
        )
        with self._lock:
            self._records.append(record)

        log.debug(
            "cost_ledger.cost_tracked",
            provider=record.provider,
            model=model,
            cost=round(cost, 6),
            session_id=session_id,
        )
        return record

    def needs_approval(self, cost: float) -> bool:
        return self._policy.needs_approval(cost)

    def can_auto_approve(self, cost: float) -> bool:
        return self._policy.can_auto_approve(cost)

    def _snapshot(self) -> list[CostRecord]:
        with self._lock:
            return list(self._records)

    def get_session_costs(self, session_id: str) -> list[CostRecord]:
        return [r for r in self._snapshot() if r.session_id == session_id]

    def get_session_total(self, session_id: str) -> float:
        return sum(r.cost for r in self.get_session_costs(session_id))

    def get_user_costs(self, user_id: str) -> list[CostRecord]:
        return [r for r in self._snapshot() if r.user_id == user_id]

    def get_user_total(self, user_id: str) -> float:
        return sum(r.cost for r in self.get_user_costs(user_id))

    def export_costs(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[CostRecord]:
        """Records with start <= timestamp <= end (either bound optional).

        Raises:
            ExportRangeError: If start is after end
        """
        if start is not None and end is not None and start > end:
            raise ExportRangeError(start, end)

        return [
            r
            for r in self._snapshot()
            if (start is None or r.timestamp >= start) and (end is None or r.timestamp <= end)
        ]

    def cleanup(self, days_old: float = 30) -> int:
        """Drop records with timestamp < now - days_old.

        Returns:
            Number of records removed
        """
        cutoff = self._clock() - timedelta(days=days_old)
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.timestamp >= cutoff]
            removed = before - len(self._records)

        log.info(
            "cost_ledger.cleanup",
            days_old=days_old,
            removed=removed,
            retained=before - removed,
        )
        return removed
