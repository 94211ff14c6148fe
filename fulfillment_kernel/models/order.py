"""
Module: fulfillment_kernel.models.order
Responsibility: ORM persistence for customer orders: fulfillment status,
    payment state, delivery address reference and shipment tracking.
Architecture position: Kernel > Models.  May import from db/ and the domain
    vocabulary (order_status) only.  MUST NOT import from services/ or
    selectors/.

Invariants enforced:
    - status moves forward along ORDER_LIFECYCLE or into cancelled; enforced
      by db/immutability.py (ORM) and the orders trigger (database).
    - Orders are never physically deleted; cancellation is a status.
    - balance_remaining is zero iff payment_status is fully_paid or overpaid
      (maintained by OrderStatusService.record_payment).
    - version increments on every status write (optimistic concurrency).

Failure modes:
    - IntegrityError on duplicate order_number (uq_order_number).
    - DBAPIError raised by the status trigger on an invalid edge or unmet
      precondition; OrderStatusService wraps it as OpaqueBackendError.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_kernel.db.base import TrackedBase
from fulfillment_kernel.domain.dtos import OrderSnapshot, TrackingInfo
from fulfillment_kernel.domain.order_status import (
    DEFAULT_CURRENCY,
    OrderStatus,
    PaymentStatus,
)


class Order(TrackedBase):
    """
    A customer order moving through the fulfillment lifecycle.

    Guarantees:
        - Created in pending_payment.
        - status and payment_status hold the string values of OrderStatus
          and PaymentStatus.
    """

    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_order_number"),
        Index("idx_order_customer", "customer_id"),
        Index("idx_order_status", "status"),
        Index("idx_order_customer_created", "customer_id", "created_at"),
    )

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=OrderStatus.PENDING_PAYMENT.value,
    )

    # Amounts
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    payment_status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=PaymentStatus.UNPAID.value,
    )

    balance_remaining: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default=DEFAULT_CURRENCY,
    )

    # Explicit verified-payment marker; a deposit counts only once set
    payment_verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    payment_verified_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Logistics
    delivery_address_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    carrier: Mapped[str | None] = mapped_column(String(100), nullable=True)

    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    failed_delivery_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status_changed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_snapshot(self) -> OrderSnapshot:
        tracking = None
        if self.carrier is not None or self.tracking_number is not None:
            tracking = TrackingInfo(
                carrier=self.carrier, tracking_number=self.tracking_number
            )
        return OrderSnapshot(
            status=OrderStatus(self.status),
            payment_status=PaymentStatus(self.payment_status)
            if self.payment_status
            else None,
            balance_remaining=self.balance_remaining,
            currency=self.currency or DEFAULT_CURRENCY,
            delivery_address_id=self.delivery_address_id,
            tracking=tracking,
            payment_verified_at=self.payment_verified_at,
            order_id=self.id,
        )

    def __repr__(self) -> str:
        return f"<Order {self.order_number}: {self.status} ({self.payment_status})>"
