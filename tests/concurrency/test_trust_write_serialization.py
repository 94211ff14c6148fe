"""
Concurrent trust writes for one customer.

Threads share a CustomerLockRegistry but each has its own session, as they
would in a worker pool.  Uses a file-backed SQLite database so every
thread gets a real connection.
"""

import threading
from datetime import datetime, timezone

import pytest

from fulfillment_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from fulfillment_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from fulfillment_kernel.domain.clock import DeterministicClock
from fulfillment_kernel.domain.dtos import TrustEvaluation
from fulfillment_kernel.domain.trust_tiers import DEFAULT_TRUST_POLICY, TrustTier
from fulfillment_kernel.selectors.trust_selector import TrustSelector
from fulfillment_kernel.services.customer_locks import CustomerLockRegistry
from fulfillment_kernel.services.trust_override_manager import TrustOverrideManager

pytestmark = pytest.mark.slow_locks

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
WORKERS = 8


@pytest.fixture
def session_factory(tmp_path):
    init_engine_from_url(f"sqlite:///{tmp_path / 'kernel.db'}")
    create_tables(install_triggers=True)
    register_immutability_listeners()
    yield get_session_factory()
    unregister_immutability_listeners()
    reset_engine()


def _run_workers(target, count):
    errors: list[Exception] = []
    barrier = threading.Barrier(count)

    def worker(index):
        barrier.wait()
        try:
            target(index)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    assert not errors, errors


def test_evaluations_produce_gapless_history(session_factory):
    locks = CustomerLockRegistry()

    def evaluate(index):
        session = session_factory()
        try:
            manager = TrustOverrideManager(
                session, clock=DeterministicClock(NOW), locks=locks
            )
            score = 20 + index * 10
            evaluation = TrustEvaluation(
                score=score, tier=DEFAULT_TRUST_POLICY.tier_for_score(score)
            )
            manager.apply_automatic_evaluation("cust-race", evaluation)
        finally:
            session.close()

    _run_workers(evaluate, WORKERS)

    session = session_factory()
    try:
        selector = TrustSelector(session)
        history = list(reversed(selector.get_history("cust-race")))
        profile = selector.get_profile("cust-race")
    finally:
        session.close()

    assert [h.sequence for h in history] == list(range(1, WORKERS + 1))
    assert history[0].previous_tier is None
    for earlier, later in zip(history, history[1:]):
        assert later.previous_tier == earlier.new_tier
        assert later.previous_score == earlier.new_score
    assert profile.score == history[-1].new_score
    assert profile.evaluation_version == WORKERS


def test_override_and_evaluation_never_interleave(session_factory):
    locks = CustomerLockRegistry()

    def act(index):
        session = session_factory()
        try:
            manager = TrustOverrideManager(
                session, clock=DeterministicClock(NOW), locks=locks
            )
            if index % 2 == 0:
                manager.set_override(
                    "cust-mixed",
                    TrustTier.RESTRICTED,
                    f"Chargeback investigation #{index}",
                    actor_id=f"ops-{index}",
                )
            else:
                manager.apply_automatic_evaluation(
                    "cust-mixed", TrustEvaluation(score=90, tier=TrustTier.PREFERRED)
                )
        finally:
            session.close()

    _run_workers(act, WORKERS)

    session = session_factory()
    try:
        selector = TrustSelector(session)
        history = list(reversed(selector.get_history("cust-mixed")))
        profile = selector.get_profile("cust-mixed")
    finally:
        session.close()

    assert profile.manual_override
    assert profile.trust_tier == TrustTier.RESTRICTED
    assert [h.sequence for h in history] == list(range(1, len(history) + 1))
    assert sum(1 for h in history if h.is_manual_override) == WORKERS // 2
    # Once the first override lands, no automatic entry may follow it.
    first_manual = next(i for i, h in enumerate(history) if h.is_manual_override)
    assert all(h.is_manual_override for h in history[first_manual:])
