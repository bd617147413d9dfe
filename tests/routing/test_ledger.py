"""Tests for CostLedger pricing, approval policy, queries, export and cleanup."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from provider_router.routing.exceptions import ExportRangeError
from provider_router.routing.ledger import (
    DEFAULT_RATES,
    ApprovalPolicy,
    CostLedger,
    model_family,
    rates_for,
)


# ------------------------------------------------------------------ #
# Pricing
# ------------------------------------------------------------------ #


class TestPricing:

    def test_gemini_rate(self, ledger: CostLedger):
        record = ledger.track_cost("google", "gemini-2.5-flash", 1000, 500, "s1")
        assert record.cost == pytest.approx(0.0005)

    def test_claude_rate(self, ledger: CostLedger):
        cost = ledger.calculate_cost("anthropic", "claude-3-opus-20240229", 1000, 1000)
        assert cost == pytest.approx(0.0032)

    def test_gpt_rate(self, ledger: CostLedger):
        cost = ledger.calculate_cost("openai", "gpt-4o-mini", 2000, 1000)
        assert cost == pytest.approx(0.005)

    def test_local_models_are_free(self, ledger: CostLedger):
        assert ledger.calculate_cost("hf", "local-llama", 10_000, 10_000) == 0.0

    def test_unknown_pair_uses_default_rate(self, ledger: CostLedger):
        assert rates_for("acme", "rocket-1") == DEFAULT_RATES
        assert ledger.calculate_cost("acme", "rocket-1", 1000, 500) == pytest.approx(0.0005)

    def test_provider_family_must_match(self):
        # gpt family under the wrong provider is not OpenAI pricing
        assert rates_for("google", "gpt-4o") == DEFAULT_RATES

    def test_provider_lookup_ignores_case(self):
        assert rates_for("Anthropic", "claude-3-haiku-20240307") == rates_for(
            "anthropic", "claude-3-haiku-20240307"
        )
        assert rates_for("OpenAI", "gpt-4o").input == 0.0015

    def test_negative_tokens_rejected(self, ledger: CostLedger):
        with pytest.raises(ValueError):
            ledger.calculate_cost("google", "gemini-2.5-flash", -1, 0)

    @pytest.mark.parametrize(
        ("model", "family"),
        [
            ("gemini-2.5-flash", "gemini"),
            ("Claude-3-haiku", "claude"),
            ("gpt4", "gpt4"),
            ("meta-llama/Llama-3.2-3B-Instruct", "meta"),
        ],
    )
    def test_model_family(self, model: str, family: str):
        assert model_family(model) == family


# ------------------------------------------------------------------ #
# Tracking
# ------------------------------------------------------------------ #


def test_track_cost_records_fields(clock):
    ledger = CostLedger(clock=clock)
    record = ledger.track_cost("openai", "gpt-4o", 10, 20, "s1", user_id="u1")

    assert record.timestamp == clock.now
    assert record.session_id == "s1"
    assert record.user_id == "u1"
    assert len(record.id) == 32
    assert len(ledger) == 1


def test_measured_cost_overrides_estimate(ledger: CostLedger):
    record = ledger.track_cost("google", "gemini-2.5-flash", 1000, 500, "s1", cost=0.25)
    assert record.cost == 0.25


def test_negative_measured_cost_rejected(ledger: CostLedger):
    with pytest.raises(ValueError):
        ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "s1", cost=-1.0)


def test_record_ids_are_unique(ledger: CostLedger):
    ids = {ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "s").id for _ in range(50)}
    assert len(ids) == 50


def test_session_and_user_queries(ledger: CostLedger):
    ledger.track_cost("google", "gemini-2.5-flash", 1000, 0, "s1", "alice", cost=0.1)
    ledger.track_cost("google", "gemini-2.5-flash", 1000, 0, "s1", "bob", cost=0.2)
    ledger.track_cost("google", "gemini-2.5-flash", 1000, 0, "s2", "alice", cost=0.3)

    assert len(ledger.get_session_costs("s1")) == 2
    assert ledger.get_session_total("s1") == pytest.approx(0.3)
    assert len(ledger.get_user_costs("alice")) == 2
    assert ledger.get_user_total("alice") == pytest.approx(0.4)
    assert ledger.get_session_total("missing") == 0


# ------------------------------------------------------------------ #
# Approval policy
# ------------------------------------------------------------------ #


class TestApproval:

    def test_defaults(self, ledger: CostLedger):
        assert ledger.needs_approval(0.15) is True
        assert ledger.needs_approval(0.10) is False
        assert ledger.can_auto_approve(0.005) is True
        assert ledger.can_auto_approve(0.01) is True
        assert ledger.can_auto_approve(0.011) is False

    def test_mid_range_is_neither(self, ledger: CostLedger):
        assert ledger.needs_approval(0.05) is False
        assert ledger.can_auto_approve(0.05) is False

    def test_payment_required(self):
        policy = ApprovalPolicy()
        assert policy.requires_payment(0.5) is True
        assert policy.requires_payment(0.005) is False

    def test_custom_thresholds(self):
        ledger = CostLedger(policy=ApprovalPolicy(auto_approve_threshold=0.5, require_approval_above=1.0))
        assert ledger.can_auto_approve(0.4)
        assert not ledger.needs_approval(0.9)

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError):
            ApprovalPolicy(auto_approve_threshold=-0.1)


# ------------------------------------------------------------------ #
# Export and cleanup
# ------------------------------------------------------------------ #


def test_export_inclusive_range(clock):
    ledger = CostLedger(clock=clock)
    start = clock.now
    ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "s", cost=0.1)
    clock.advance(hours=1)
    ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "s", cost=0.2)
    clock.advance(hours=1)
    end = clock.now
    ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "s", cost=0.3)
    clock.advance(hours=1)
    ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "s", cost=0.4)

    assert [r.cost for r in ledger.export_costs(start, end)] == [0.1, 0.2, 0.3]
    assert len(ledger.export_costs()) == 4
    assert len(ledger.export_costs(start=end)) == 2
    assert len(ledger.export_costs(end=start)) == 1


def test_export_rejects_inverted_range(clock, ledger: CostLedger):
    with pytest.raises(ExportRangeError):
        ledger.export_costs(clock.now, clock.now - timedelta(seconds=1))


def test_export_range_error_is_value_error(clock):
    error = ExportRangeError(clock.now, clock.now - timedelta(days=1))
    assert isinstance(error, ValueError)
    assert "after end" in str(error)


def test_cleanup_removes_exactly_old_records(clock):
    ledger = CostLedger(clock=clock)
    ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "old")
    clock.advance(days=20)
    ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "recent")
    clock.advance(days=10, seconds=1)

    removed = ledger.cleanup(days_old=30)

    assert removed == 1
    assert [r.session_id for r in ledger.export_costs()] == ["recent"]
    assert ledger.cleanup(days_old=30) == 0


def test_cleanup_keeps_record_exactly_at_cutoff(clock):
    ledger = CostLedger(clock=clock)
    ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "edge")
    clock.advance(days=30)

    assert ledger.cleanup(days_old=30) == 0
    assert len(ledger) == 1


# ------------------------------------------------------------------ #
# Concurrency
# ------------------------------------------------------------------ #


def _run_threads(*targets) -> None:
    threads = [threading.Thread(target=target) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


def test_concurrent_track_cost_keeps_every_record(ledger: CostLedger):
    def _write() -> None:
        for _ in range(500):
            ledger.track_cost("google", "gemini-2.5-flash", 1000, 500, "s1")

    _run_threads(*[_write] * 8)

    assert len(ledger) == 4000
    assert len({r.id for r in ledger.export_costs()}) == 4000
    assert ledger.get_session_total("s1") == pytest.approx(4000 * 0.0005)


def test_cleanup_alongside_appends(clock):
    ledger = CostLedger(clock=clock)
    for _ in range(100):
        ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "old")
    clock.advance(days=31)
    removed: list[int] = []

    def _write() -> None:
        for _ in range(250):
            ledger.track_cost("google", "gemini-2.5-flash", 1, 1, "new")

    def _prune() -> None:
        for _ in range(50):
            removed.append(ledger.cleanup(days_old=30))

    _run_threads(_write, _write, _prune, _write, _write)

    assert sum(removed) == 100
    assert len(ledger) == 1000
    assert ledger.get_session_costs("old") == []
