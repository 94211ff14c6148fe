"""
OrderStatusService -- the order store and its guarded status write path.

Responsibility:
    Creates orders and records the facts the transition guard depends on
    (payments, delivery address, tracking, failed deliveries).
    ``change_status`` runs the guard first, then performs an optimistic,
    conditional status write and translates any trigger failure into
    actionable guidance.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.

Invariants enforced:
    - Blocked transitions are data: ``StatusChangeResult.allowed`` is False
      and carries the full checklist plus guidance.  Nothing is written.
    - Optimistic status write:
      ``UPDATE orders SET status = :target WHERE id = :id AND status = :expected``;
      zero rows means someone else moved the order (ConflictError).  The
      service never retries.
    - balance_remaining is zero iff payment_status is fully_paid or overpaid.

Failure modes:
    - ValidationError: negative total, non-positive payment, blank address
      or tracking fields.
    - OrderNotFoundError: unknown order id.
    - ConflictError: stored status no longer equals the expected status.
    - OpaqueBackendError: the database rejected the write; ``guidance``
      holds the translated message.  The caller must roll back.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from fulfillment_kernel.db.types import round_money
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import ParsedError, TransitionCheck
from fulfillment_kernel.domain.error_translator import (
    extract_message,
    parse_status_transition_error,
)
from fulfillment_kernel.domain.order_status import (
    DEFAULT_CURRENCY,
    OrderStatus,
    derive_payment_state,
)
from fulfillment_kernel.domain.transition_guard import check_transition, guidance_for_check
from fulfillment_kernel.exceptions import (
    ConflictError,
    OpaqueBackendError,
    OrderNotFoundError,
    ValidationError,
)
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.services.base import BaseService

logger = get_logger("services.order_status_service")


@dataclass(frozen=True)
class StatusChangeResult:
    """Outcome of a status change attempt.

    When ``allowed`` is False nothing was written; ``check`` lists every
    unmet condition and ``guidance`` describes the first one.
    """

    order_id: UUID
    previous_status: OrderStatus
    target: OrderStatus
    check: TransitionCheck
    guidance: ParsedError | None = None

    @property
    def allowed(self) -> bool:
        return self.check.allowed

    @property
    def reasons(self) -> list[str]:
        return self.check.reasons

    @property
    def status(self) -> OrderStatus:
        return self.target if self.allowed else self.previous_status


def _require_text(field: str, value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(field, "must not be blank")
    return text


class OrderStatusService(BaseService[Order]):
    """Order writes: creation, payment facts, logistics and status changes."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Order facts
    # ------------------------------------------------------------------

    def place_order(
        self,
        customer_id: str,
        order_number: str,
        total_amount: Decimal,
        currency: str = DEFAULT_CURRENCY,
        delivery_address_id: str | None = None,
        actor_id: str | None = None,
    ) -> Order:
        """Create an order in ``pending_payment`` with nothing paid."""
        customer_id = _require_text("customer_id", customer_id)
        order_number = _require_text("order_number", order_number)
        total = round_money(total_amount)
        if total < 0:
            raise ValidationError("total_amount", "must not be negative")

        payment_status, balance = derive_payment_state(total, Decimal("0"))
        now = self._clock.now_utc()
        order = Order(
            customer_id=customer_id,
            order_number=order_number,
            status=OrderStatus.PENDING_PAYMENT.value,
            total_amount=total,
            amount_paid=Decimal("0"),
            payment_status=payment_status.value,
            balance_remaining=balance,
            currency=currency or DEFAULT_CURRENCY,
            delivery_address_id=delivery_address_id,
            failed_delivery_count=0,
            version=1,
            created_at=now,
            status_changed_at=now,
            created_by=actor_id,
        )
        self.session.add(order)
        self.session.flush()

        logger.info(
            "order_placed",
            extra={
                "order_id": str(order.id),
                "order_number": order_number,
                "customer_id": customer_id,
                "total_amount": total,
                "currency": order.currency,
            },
        )
        return order

    def record_payment(
        self,
        order_id: UUID,
        amount: Decimal,
        verified: bool = True,
        actor_id: str | None = None,
    ) -> Order:
        """
        Add a payment to the order and re-derive its payment state.

        A verified payment stamps ``payment_verified_at``; the stamp is what
        makes a deposit count for the processing transition.
        """
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("amount", "payment amount must be positive")

        order = self._load(order_id)
        order.amount_paid = round_money(order.amount_paid + amount)
        payment_status, balance = derive_payment_state(
            order.total_amount, order.amount_paid
        )
        order.payment_status = payment_status.value
        order.balance_remaining = balance
        if verified:
            order.payment_verified_at = self._clock.now_utc()
            order.payment_verified_by = actor_id
        order.updated_by = actor_id
        self.session.flush()

        logger.info(
            "order_payment_recorded",
            extra={
                "order_id": str(order.id),
                "amount": amount,
                "amount_paid": order.amount_paid,
                "payment_status": order.payment_status,
                "balance_remaining": balance,
                "verified": verified,
            },
        )
        return order

    def set_delivery_address(
        self, order_id: UUID, delivery_address_id: str, actor_id: str | None = None
    ) -> Order:
        order = self._load(order_id)
        order.delivery_address_id = _require_text(
            "delivery_address_id", delivery_address_id
        )
        order.updated_by = actor_id
        self.session.flush()
        return order

    def set_tracking(
        self,
        order_id: UUID,
        carrier: str,
        tracking_number: str,
        actor_id: str | None = None,
    ) -> Order:
        order = self._load(order_id)
        order.carrier = _require_text("carrier", carrier)
        order.tracking_number = _require_text("tracking_number", tracking_number)
        order.updated_by = actor_id
        self.session.flush()
        return order

    def record_failed_delivery(self, order_id: UUID, actor_id: str | None = None) -> Order:
        order = self._load(order_id)
        order.failed_delivery_count = (order.failed_delivery_count or 0) + 1
        order.updated_by = actor_id
        self.session.flush()

        logger.info(
            "order_delivery_failed",
            extra={
                "order_id": str(order.id),
                "failed_delivery_count": order.failed_delivery_count,
            },
        )
        return order

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def check(self, order_id: UUID, target: OrderStatus | str) -> TransitionCheck:
        """Guard checklist against the stored order, without writing."""
        return check_transition(self._load(order_id).to_snapshot(), target)

    def change_status(
        self,
        order_id: UUID,
        target: OrderStatus | str,
        expected_status: OrderStatus | str | None = None,
        actor_id: str | None = None,
    ) -> StatusChangeResult:
        """
        Move an order to ``target``.

        ``expected_status`` is the status the caller last saw; it defaults
        to the stored status at call time.  The guard is evaluated as if
        the order were in ``expected_status``.

        Returns:
            StatusChangeResult; ``allowed`` False means the guard blocked
            the change and nothing was written.

        Raises:
            OrderNotFoundError, ConflictError, OpaqueBackendError.
        """
        target = OrderStatus(target)
        order = self._load(order_id)
        snapshot = order.to_snapshot()
        expected = (
            OrderStatus(expected_status) if expected_status is not None else snapshot.status
        )
        if expected != snapshot.status:
            snapshot = dataclasses.replace(snapshot, status=expected)

        with LogContext.bind(order_id=str(order_id), actor_id=actor_id):
            check = check_transition(snapshot, target)
            if not check.allowed:
                guidance = guidance_for_check(check, snapshot)
                logger.info(
                    "order_transition_blocked",
                    extra={
                        "from_status": expected.value,
                        "to_status": target.value,
                        "reasons": check.reasons,
                    },
                )
                return StatusChangeResult(
                    order_id=order_id,
                    previous_status=expected,
                    target=target,
                    check=check,
                    guidance=guidance,
                )

            rowcount = self._write_status(order_id, expected, target, actor_id)
            if rowcount == 0:
                self._raise_conflict(order_id, expected)

            self.session.expire(order)
            logger.info(
                "order_status_changed",
                extra={"from_status": expected.value, "to_status": target.value},
            )
            return StatusChangeResult(
                order_id=order_id,
                previous_status=expected,
                target=target,
                check=check,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, order_id: UUID) -> Order:
        order = self.session.get(Order, order_id, populate_existing=True)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def _write_status(
        self,
        order_id: UUID,
        expected: OrderStatus,
        target: OrderStatus,
        actor_id: str | None,
    ) -> int:
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected.value)
            .values(
                status=target.value,
                version=Order.version + 1,
                status_changed_at=self._clock.now_utc(),
                updated_by=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            return self.session.execute(stmt).rowcount
        except DBAPIError as exc:
            message = extract_message(exc)
            guidance = parse_status_transition_error(exc)
            logger.warning(
                "order_status_write_rejected",
                extra={
                    "from_status": expected.value,
                    "to_status": target.value,
                    "backend_message": message,
                    "guidance_title": guidance.title,
                },
            )
            raise OpaqueBackendError(message, guidance) from exc

    def _raise_conflict(self, order_id: UUID, expected: OrderStatus) -> None:
        current = self.session.execute(
            select(Order.status).where(Order.id == order_id)
        ).scalar_one_or_none()
        if current is None:
            raise OrderNotFoundError(str(order_id))
        logger.warning(
            "order_status_conflict",
            extra={"expected_status": expected.value, "actual_status": current},
        )
        raise ConflictError(str(order_id), expected.value, current)
