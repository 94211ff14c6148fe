"""
Tests for TrustEvaluationService: scoring stored order history and
persisting through the override manager.
"""

from decimal import Decimal

from fulfillment_kernel.domain.order_status import OrderStatus
from fulfillment_kernel.domain.trust_scoring import RECENCY
from fulfillment_kernel.domain.trust_tiers import TrustTier
from fulfillment_kernel.exceptions import TrustProfileNotFoundError
from fulfillment_kernel.selectors.trust_selector import TrustSelector
from fulfillment_kernel.services.trust_evaluation_service import TrustEvaluationService
from fulfillment_kernel.services.trust_override_manager import (
    SYSTEM_ACTOR,
    EvaluationOutcome,
    TrustOverrideManager,
)

ACTOR = "ops-tester"
REASON = "Verified business account by phone"


class _FailingManager(TrustOverrideManager):
    """Refuses to write for one customer id."""

    def __init__(self, *args, failing_customer: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.failing_customer = failing_customer

    def apply_automatic_evaluation(self, customer_id, evaluation, actor_id=SYSTEM_ACTOR):
        if customer_id == self.failing_customer:
            raise TrustProfileNotFoundError(customer_id)
        return super().apply_automatic_evaluation(customer_id, evaluation, actor_id)


class TestEvaluate:

    def test_first_evaluation_creates_profile(self, session, evaluation_service):
        result = evaluation_service.evaluate("cust-1")

        assert result.outcome == EvaluationOutcome.CREATED
        assert result.changed
        assert result.evaluation.score == 60
        assert result.profile.trust_tier == TrustTier.VERIFIED
        assert result.history_entry.previous_tier is None
        assert result.history_entry.change_reason.startswith("Automatic evaluation: ")
        assert TrustSelector(session).get_profile("cust-1").persisted

    def test_scores_stored_orders(self, evaluation_service, make_order, advance_order):
        order = make_order(customer_id="cust-2", paid=Decimal("1000"), address="a", age_days=5)
        advance_order(order, OrderStatus.PROCESSING)

        result = evaluation_service.evaluate("cust-2")
        assert result.evaluation.score == 90
        assert result.profile.trust_tier == TrustTier.PREFERRED
        assert result.evaluation.factor(RECENCY).rating == "recent"

    def test_repeat_evaluation_is_idempotent(self, session, evaluation_service):
        evaluation_service.evaluate("cust-1")
        again = evaluation_service.evaluate("cust-1")

        assert again.outcome == EvaluationOutcome.UNCHANGED
        assert again.history_entry is None
        assert again.profile.evaluation_version == 1
        assert TrustSelector(session).count_history("cust-1") == 1

    def test_new_orders_change_the_score(self, session, evaluation_service, make_order):
        evaluation_service.evaluate("cust-1")
        make_order(customer_id="cust-1")

        result = evaluation_service.evaluate("cust-1")
        assert result.outcome == EvaluationOutcome.UPDATED
        assert result.evaluation.score == 80
        assert result.history_entry.previous_tier == TrustTier.VERIFIED
        assert result.history_entry.new_tier == TrustTier.PREFERRED
        assert result.profile.evaluation_version == 2

        history = TrustSelector(session).get_history("cust-1")
        assert [h.sequence for h in history] == [2, 1]

    def test_override_is_respected(self, session, evaluation_service, override_manager):
        override_manager.set_override("cust-1", TrustTier.RESTRICTED, REASON, ACTOR)

        result = evaluation_service.evaluate("cust-1")
        assert result.skipped
        assert not result.changed
        assert result.profile.trust_tier == TrustTier.RESTRICTED
        assert result.profile.score == 50
        assert TrustSelector(session).count_history("cust-1") == 1

    def test_cleared_override_resumes_scoring(self, session, evaluation_service, override_manager):
        override_manager.set_override("cust-1", TrustTier.PREFERRED, REASON, ACTOR)
        override_manager.clear_override("cust-1", ACTOR)

        result = evaluation_service.evaluate("cust-1")
        assert result.outcome == EvaluationOutcome.UPDATED
        assert result.history_entry.previous_tier == TrustTier.PREFERRED
        assert result.history_entry.previous_score == 50
        assert result.profile.trust_tier == TrustTier.VERIFIED
        assert result.profile.score == 60


class TestEvaluateMany:

    def test_batch_counts(self, evaluation_service, override_manager, captured_logs):
        override_manager.set_override("cust-2", TrustTier.TRUSTED, REASON, ACTOR)

        batch = evaluation_service.evaluate_many(["cust-1", "cust-2", "cust-3"])
        assert len(batch.results) == 3
        assert batch.changed_count == 2
        assert batch.skipped_count == 1
        assert batch.failures == ()

        (summary,) = [r for r in captured_logs() if r["message"] == "trust_batch_evaluated"]
        assert summary["evaluated"] == 3
        assert summary["failed"] == 0

    def test_failure_does_not_stop_batch(self, session, clock, locks, captured_logs):
        manager = _FailingManager(
            session, clock=clock, locks=locks, failing_customer="cust-bad"
        )
        service = TrustEvaluationService(session, clock=clock, manager=manager)

        batch = service.evaluate_many(["cust-1", "cust-bad", "cust-3"])
        assert [r.customer_id for r in batch.results] == ["cust-1", "cust-3"]
        (failure,) = batch.failures
        assert failure.customer_id == "cust-bad"
        assert failure.error_type == "TrustProfileNotFoundError"

        failed = [r for r in captured_logs() if r["message"] == "trust_evaluation_failed"]
        assert failed[0]["exc_code"] == "TRUST_PROFILE_NOT_FOUND"
        assert TrustSelector(session).find_profile("cust-3") is not None
