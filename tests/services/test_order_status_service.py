"""
Tests for OrderStatusService: order facts, the guarded status write, the
optimistic concurrency check and translation of trigger failures.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from fulfillment_kernel.domain.clock import as_utc
from fulfillment_kernel.domain.dtos import GuidanceAction, TransitionCheck
from fulfillment_kernel.domain.order_status import OrderStatus, PaymentStatus
from fulfillment_kernel.domain.transition_guard import (
    REQUIRES_DELIVERY_ADDRESS,
    REQUIRES_FULL_PAYMENT,
    REQUIRES_TRACKING,
    REQUIRES_VERIFIED_DEPOSIT,
)
from fulfillment_kernel.exceptions import (
    ConflictError,
    OpaqueBackendError,
    OrderNotFoundError,
    ValidationError,
)
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.selectors.order_selector import OrderSelector
from fulfillment_kernel.services import order_status_service as service_module

ACTOR = "ops-tester"


def _stored_status(session, order_id) -> OrderStatus:
    return OrderSelector(session).current_status(order_id)


@pytest.fixture
def bypass_guard(monkeypatch):
    """Let every transition past the in-process guard so the triggers decide."""
    monkeypatch.setattr(
        service_module,
        "check_transition",
        lambda snapshot, target: TransitionCheck(target=OrderStatus(target)),
    )


class TestOrderFacts:

    def test_place_order(self, session, order_service, clock, captured_logs):
        order = order_service.place_order("cust-1", "ORD-1", Decimal("1000"), actor_id=ACTOR)
        session.commit()

        assert order.status == OrderStatus.PENDING_PAYMENT.value
        assert order.payment_status == PaymentStatus.UNPAID.value
        assert order.balance_remaining == Decimal("1000.00")
        assert order.currency == "GHS"
        assert order.version == 1
        assert as_utc(order.created_at) == clock.now_utc()
        assert any(r["message"] == "order_placed" for r in captured_logs())

    def test_negative_total_rejected(self, order_service):
        with pytest.raises(ValidationError) as exc_info:
            order_service.place_order("cust-1", "ORD-1", Decimal("-1"))
        assert exc_info.value.field == "total_amount"

    def test_blank_customer_rejected(self, order_service):
        with pytest.raises(ValidationError):
            order_service.place_order("  ", "ORD-1", Decimal("10"))

    def test_partial_verified_payment(self, session, order_service, make_order, clock):
        order = make_order(total=Decimal("1000"))
        order_service.record_payment(order.id, Decimal("400"), actor_id=ACTOR)
        session.commit()

        assert order.payment_status == PaymentStatus.PARTIALLY_PAID.value
        assert order.amount_paid == Decimal("400.00")
        assert order.balance_remaining == Decimal("600.00")
        assert as_utc(order.payment_verified_at) == clock.now_utc()
        assert order.payment_verified_by == ACTOR

    def test_payments_accumulate_to_overpaid(self, session, order_service, make_order):
        order = make_order(total=Decimal("100"), paid=Decimal("60"))
        order_service.record_payment(order.id, Decimal("60"))
        session.commit()

        assert order.payment_status == PaymentStatus.OVERPAID.value
        assert order.balance_remaining == Decimal("0")

    def test_unverified_payment_leaves_marker_unset(self, make_order):
        order = make_order(total=Decimal("100"), paid=Decimal("100"), verified=False)
        assert order.payment_status == PaymentStatus.FULLY_PAID.value
        assert order.payment_verified_at is None

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_payment_rejected(self, order_service, make_order, amount):
        order = make_order()
        with pytest.raises(ValidationError):
            order_service.record_payment(order.id, amount)

    def test_payment_for_unknown_order(self, order_service):
        with pytest.raises(OrderNotFoundError):
            order_service.record_payment(uuid4(), Decimal("10"))

    def test_tracking_requires_both_fields(self, order_service, make_order):
        order = make_order()
        with pytest.raises(ValidationError) as exc_info:
            order_service.set_tracking(order.id, "DHL", " ")
        assert exc_info.value.field == "tracking_number"

    def test_failed_delivery_counter(self, session, order_service, make_order):
        order = make_order()
        order_service.record_failed_delivery(order.id)
        order_service.record_failed_delivery(order.id)
        session.commit()
        assert order.failed_delivery_count == 2


class TestChangeStatus:

    def test_full_lifecycle(self, session, order_service, make_order, clock, captured_logs):
        order = make_order(total=Decimal("250"), paid=Decimal("250"), address="addr-1")

        for target in (OrderStatus.PROCESSING, OrderStatus.READY_TO_SHIP):
            result = order_service.change_status(order.id, target, actor_id=ACTOR)
            assert result.allowed
            session.commit()

        order_service.set_tracking(order.id, "DHL", "TRK-100")
        clock.advance(60)
        for target in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            assert order_service.change_status(order.id, target, actor_id=ACTOR).allowed
            session.commit()

        stored = session.get(Order, order.id, populate_existing=True)
        assert stored.status == OrderStatus.DELIVERED.value
        assert stored.version == 5
        assert as_utc(stored.status_changed_at) == clock.now_utc()
        changes = [r for r in captured_logs() if r["message"] == "order_status_changed"]
        assert [r["to_status"] for r in changes] == [
            "processing", "ready_to_ship", "shipped", "delivered",
        ]
        assert all(r["order_id"] == str(order.id) for r in changes)

    def test_blocked_transition_is_data(self, session, order_service, make_order, captured_logs):
        order = make_order()
        result = order_service.change_status(order.id, OrderStatus.PROCESSING)

        assert not result.allowed
        assert result.reasons == [REQUIRES_VERIFIED_DEPOSIT]
        assert result.status == OrderStatus.PENDING_PAYMENT
        assert result.guidance.title == "Payment Required"
        assert result.guidance.action == GuidanceAction.VERIFY_PAYMENT
        assert _stored_status(session, order.id) == OrderStatus.PENDING_PAYMENT
        assert any(r["message"] == "order_transition_blocked" for r in captured_logs())

    def test_shipping_checklist_from_store(self, order_service, make_order, advance_order):
        order = make_order(total=Decimal("1000"), paid=Decimal("500"))
        advance_order(order, OrderStatus.PROCESSING)

        result = order_service.change_status(order.id, OrderStatus.READY_TO_SHIP)
        assert result.reasons == [REQUIRES_FULL_PAYMENT, REQUIRES_DELIVERY_ADDRESS]
        assert result.guidance.description == (
            "Cannot proceed to shipping. Outstanding balance: GHS 500.00"
        )

    def test_ship_requires_tracking(self, order_service, make_order, advance_order):
        order = make_order(paid=Decimal("1000"), address="addr-1")
        advance_order(order, OrderStatus.PROCESSING, OrderStatus.READY_TO_SHIP)

        result = order_service.change_status(order.id, OrderStatus.SHIPPED)
        assert result.reasons == [REQUIRES_TRACKING]
        assert result.guidance.title == "Tracking Details Required"

    def test_check_does_not_write(self, session, order_service, make_order):
        order = make_order(paid=Decimal("1000"), address="addr-1")
        assert order_service.check(order.id, OrderStatus.PROCESSING).allowed
        assert _stored_status(session, order.id) == OrderStatus.PENDING_PAYMENT

    def test_unknown_order(self, order_service):
        with pytest.raises(OrderNotFoundError):
            order_service.change_status(uuid4(), OrderStatus.CANCELLED)


class TestOptimisticConcurrency:

    def test_stale_expected_status_conflicts(self, session, order_service, make_order, advance_order):
        order = make_order(paid=Decimal("1000"), address="addr-1")
        advance_order(order, OrderStatus.PROCESSING, OrderStatus.READY_TO_SHIP)

        with pytest.raises(ConflictError) as exc_info:
            order_service.change_status(
                order.id, OrderStatus.READY_TO_SHIP, expected_status=OrderStatus.PROCESSING
            )

        error = exc_info.value
        assert error.code == "ORDER_STATUS_CONFLICT"
        assert error.expected_status == "processing"
        assert error.actual_status == "ready_to_ship"
        assert _stored_status(session, order.id) == OrderStatus.READY_TO_SHIP

    def test_stale_expected_status_still_runs_guard(self, order_service, make_order, advance_order):
        order = make_order(paid=Decimal("1000"), address="addr-1")
        advance_order(order, OrderStatus.PROCESSING)

        # Guard is evaluated from the caller's view, so no write is attempted.
        result = order_service.change_status(
            order.id, OrderStatus.DELIVERED, expected_status=OrderStatus.PENDING_PAYMENT
        )
        assert not result.allowed
        assert result.previous_status == OrderStatus.PENDING_PAYMENT

    def test_conflict_is_not_retried(self, session, order_service, make_order, advance_order, captured_logs):
        order = make_order(paid=Decimal("1000"), address="addr-1")
        advance_order(order, OrderStatus.PROCESSING, OrderStatus.CANCELLED)

        with pytest.raises(ConflictError):
            order_service.change_status(
                order.id, OrderStatus.CANCELLED, expected_status=OrderStatus.PROCESSING
            )
        assert [r["message"] for r in captured_logs()].count("order_status_conflict") == 1


class TestTriggerBackstop:
    """With the in-process guard bypassed the database rejects the write."""

    def test_unverified_processing_translated(self, session, order_service, make_order, bypass_guard):
        order = make_order()
        with pytest.raises(OpaqueBackendError) as exc_info:
            order_service.change_status(order.id, OrderStatus.PROCESSING)
        session.rollback()

        error = exc_info.value
        assert "without verified payment" in error.message
        assert error.guidance.title == "Payment Required"
        assert _stored_status(session, order.id) == OrderStatus.PENDING_PAYMENT

    def test_unpaid_shipping_translated(self, session, order_service, make_order, advance_order, bypass_guard):
        order = make_order(total=Decimal("1000"), paid=Decimal("500"), address="addr-1")
        advance_order(order, OrderStatus.PROCESSING)

        with pytest.raises(OpaqueBackendError) as exc_info:
            order_service.change_status(order.id, OrderStatus.READY_TO_SHIP)
        session.rollback()

        assert exc_info.value.guidance.title == "Balance Payment Required"
        assert exc_info.value.guidance.action == GuidanceAction.REQUEST_BALANCE

    def test_missing_address_translated(self, session, order_service, make_order, advance_order, bypass_guard):
        order = make_order(paid=Decimal("1000"))
        advance_order(order, OrderStatus.PROCESSING)

        with pytest.raises(OpaqueBackendError) as exc_info:
            order_service.change_status(order.id, OrderStatus.READY_TO_SHIP)
        session.rollback()

        assert exc_info.value.guidance.title == "Address Required"

    def test_invalid_edge_translated(self, session, order_service, make_order, bypass_guard, captured_logs):
        order = make_order()
        with pytest.raises(OpaqueBackendError) as exc_info:
            order_service.change_status(order.id, OrderStatus.DELIVERED)
        session.rollback()

        assert exc_info.value.guidance.title == "Invalid Status Change"
        assert any(r["message"] == "order_status_write_rejected" for r in captured_logs())

    def test_missing_tracking_translated(self, session, order_service, make_order, advance_order, bypass_guard):
        order = make_order(paid=Decimal("1000"), address="addr-1")
        advance_order(order, OrderStatus.PROCESSING, OrderStatus.READY_TO_SHIP)

        with pytest.raises(OpaqueBackendError) as exc_info:
            order_service.change_status(order.id, OrderStatus.SHIPPED)
        session.rollback()

        assert exc_info.value.guidance.title == "Tracking Details Required"


class TestOrderSelector:

    def test_customer_history_signals(self, session, order_service, make_order, advance_order):
        pending = make_order(customer_id="cust-h", age_days=10)
        failed = make_order(customer_id="cust-h", paid=Decimal("1000"), address="a", age_days=5)
        advance_order(failed, OrderStatus.PROCESSING)
        order_service.record_failed_delivery(failed.id)
        session.commit()
        make_order(customer_id="someone-else")

        records = OrderSelector(session).customer_history("cust-h")
        assert [r.order_id for r in records] == [pending.id, failed.id]
        assert records[0].had_pending_or_unverified_payment
        assert not records[1].had_pending_or_unverified_payment
        assert records[1].had_delivery_failure_or_cancellation

    def test_unverified_processing_counts_as_pending(self, session, make_order, advance_order):
        order = make_order(paid=Decimal("1000"), address="a")
        advance_order(order, OrderStatus.PROCESSING)
        stored = session.get(Order, order.id)
        stored.payment_verified_at = None
        session.commit()

        (record,) = OrderSelector(session).customer_history(order.customer_id)
        assert record.had_pending_or_unverified_payment

    def test_blocked_orders(self, session, make_order, advance_order):
        awaiting_proof = make_order(customer_id="c-1")
        balance_due = make_order(customer_id="c-1", total=Decimal("800"), paid=Decimal("300"))
        advance_order(balance_due, OrderStatus.PROCESSING)
        ready = make_order(customer_id="c-1", paid=Decimal("1000"), address="a")
        advance_order(ready, OrderStatus.PROCESSING, OrderStatus.READY_TO_SHIP)
        cancelled = make_order(customer_id="c-1")
        advance_order(cancelled, OrderStatus.CANCELLED)

        blocked = {b.order_id: b.reason for b in OrderSelector(session).blocked_orders("c-1")}
        assert blocked == {
            awaiting_proof.id: "Waiting for customer to submit payment proof",
            balance_due.id: "Waiting for balance payment of GHS 500.00",
        }

    def test_snapshot_not_found(self, session):
        with pytest.raises(OrderNotFoundError):
            OrderSelector(session).get_snapshot(uuid4())

    def test_snapshot_reflects_tracking(self, session, order_service, make_order):
        order = make_order()
        order_service.set_tracking(order.id, "DHL", "TRK-1")
        session.commit()
        snapshot = OrderSelector(session).get_snapshot(order.id)
        assert snapshot.has_tracking
        assert snapshot.order_id == order.id
