"""
Module: fulfillment_kernel.selectors.order_selector
Responsibility: Read access to orders as guard snapshots, as scoring input
    (a customer's order history) and as a blocked-order summary for list
    views.
Architecture position: Kernel > Selectors.

Scoring signals derived per order:
    - had_pending_or_unverified_payment: status is pending_payment, or the
      order is processing without a verified-payment marker.
    - had_delivery_failure_or_cancellation: at least one failed delivery,
      or the order was cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.blockers import get_blocker_reason
from fulfillment_kernel.domain.clock import as_utc
from fulfillment_kernel.domain.dtos import CustomerOrderRecord, OrderSnapshot
from fulfillment_kernel.domain.order_status import TERMINAL_STATUSES, OrderStatus
from fulfillment_kernel.exceptions import OrderNotFoundError
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class BlockedOrderSummary:
    order_id: UUID
    order_number: str
    customer_id: str
    status: OrderStatus
    reason: str


def to_order_record(order: Order) -> CustomerOrderRecord:
    status = OrderStatus(order.status)
    pending = status == OrderStatus.PENDING_PAYMENT or (
        status == OrderStatus.PROCESSING and order.payment_verified_at is None
    )
    issue = (order.failed_delivery_count or 0) > 0 or status == OrderStatus.CANCELLED
    return CustomerOrderRecord(
        status=status,
        created_at=as_utc(order.created_at),
        total_amount=order.total_amount,
        had_pending_or_unverified_payment=pending,
        had_delivery_failure_or_cancellation=issue,
        order_id=order.id,
    )


class OrderSelector(BaseSelector[Order]):
    """Read-only order queries returning domain DTOs."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _get(self, order_id: UUID) -> Order | None:
        return self.session.get(Order, order_id)

    def get_snapshot(self, order_id: UUID) -> OrderSnapshot:
        """
        Raises:
            OrderNotFoundError: If no order has ``order_id``.
        """
        order = self._get(order_id)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order.to_snapshot()

    def current_status(self, order_id: UUID) -> OrderStatus | None:
        """Status straight from the database, bypassing the identity map."""
        status = self.session.execute(
            select(Order.status).where(Order.id == order_id)
        ).scalar_one_or_none()
        return OrderStatus(status) if status is not None else None

    def customer_history(self, customer_id: str) -> list[CustomerOrderRecord]:
        """All of a customer's orders as scoring records, oldest first."""
        orders = self.session.scalars(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at, Order.order_number)
        ).all()
        return [to_order_record(o) for o in orders]

    def blocked_orders(self, customer_id: str | None = None) -> list[BlockedOrderSummary]:
        """Non-terminal orders that currently have a blocker, oldest first."""
        stmt = select(Order).where(
            Order.status.not_in([s.value for s in TERMINAL_STATUSES])
        )
        if customer_id is not None:
            stmt = stmt.where(Order.customer_id == customer_id)
        stmt = stmt.order_by(Order.created_at, Order.order_number)

        summaries = []
        for order in self.session.scalars(stmt):
            reason = get_blocker_reason(order.to_snapshot())
            if reason is not None:
                summaries.append(
                    BlockedOrderSummary(
                        order_id=order.id,
                        order_number=order.order_number,
                        customer_id=order.customer_id,
                        status=OrderStatus(order.status),
                        reason=reason,
                    )
                )
        return summaries
