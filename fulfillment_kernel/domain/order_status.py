"""
Order lifecycle table (``fulfillment_kernel.domain.order_status``).

Responsibility
--------------
Declares the order and payment status vocabularies and the single edge
table that defines which status changes are legal.  Adding a status means
updating ``ORDER_LIFECYCLE`` here and nothing else in the guard.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Forward-only: every edge in ``ORDER_LIFECYCLE`` moves forward or into
  ``CANCELLED``.
* Terminal states (``DELIVERED``, ``CANCELLED``) have no outgoing edges.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

DEFAULT_CURRENCY = "GHS"


class OrderStatus(str, Enum):
    """Fulfillment progress of an order."""

    PENDING_PAYMENT = "pending_payment"
    PROCESSING = "processing"
    PAYMENT_RECEIVED = "payment_received"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """How much of the order total has been paid."""

    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    FULLY_PAID = "fully_paid"
    OVERPAID = "overpaid"


TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

SETTLED_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.FULLY_PAID, PaymentStatus.OVERPAID}
)

# Source status -> allowed target statuses.
ORDER_LIFECYCLE: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.CANCELLED}
    ),
    OrderStatus.PROCESSING: frozenset(
        {
            OrderStatus.PAYMENT_RECEIVED,
            OrderStatus.READY_TO_SHIP,
            OrderStatus.CANCELLED,
        }
    ),
    OrderStatus.PAYMENT_RECEIVED: frozenset(
        {OrderStatus.READY_TO_SHIP, OrderStatus.CANCELLED}
    ),
    OrderStatus.READY_TO_SHIP: frozenset(
        {OrderStatus.SHIPPED, OrderStatus.CANCELLED}
    ),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def is_terminal(status: OrderStatus | str) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def is_settled(payment_status: PaymentStatus | str | None) -> bool:
    """True when the balance is fully covered (fully paid or overpaid)."""
    if payment_status is None:
        return False
    return PaymentStatus(payment_status) in SETTLED_PAYMENT_STATUSES


def allowed_targets(status: OrderStatus | str) -> frozenset[OrderStatus]:
    return ORDER_LIFECYCLE[OrderStatus(status)]


def is_valid_edge(source: OrderStatus | str, target: OrderStatus | str) -> bool:
    return OrderStatus(target) in ORDER_LIFECYCLE[OrderStatus(source)]


def derive_payment_state(
    total_amount: Decimal, amount_paid: Decimal
) -> tuple[PaymentStatus, Decimal]:
    """Derive ``(payment_status, balance_remaining)`` from amounts.

    The balance is zero exactly when the status is fully paid or overpaid.
    """
    if amount_paid > total_amount:
        return PaymentStatus.OVERPAID, Decimal("0")
    if amount_paid == total_amount:
        return PaymentStatus.FULLY_PAID, Decimal("0")
    if amount_paid <= 0:
        return PaymentStatus.UNPAID, total_amount
    return PaymentStatus.PARTIALLY_PAID, total_amount - amount_paid


# ---------------------------------------------------------------------------
# Display metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderStatusDisplay:
    """Operator and customer facing labels for a status."""

    label: str
    customer_label: str
    description: str
    group: str  # active | completed | cancelled


ORDER_STATUS_DISPLAY: dict[OrderStatus, OrderStatusDisplay] = {
    OrderStatus.PENDING_PAYMENT: OrderStatusDisplay(
        "Pending Payment", "Payment Required",
        "Awaiting payment confirmation", "active",
    ),
    OrderStatus.PROCESSING: OrderStatusDisplay(
        "Processing", "Being Prepared",
        "Order is being processed", "active",
    ),
    OrderStatus.PAYMENT_RECEIVED: OrderStatusDisplay(
        "Payment Received", "Payment Confirmed",
        "Payment has been confirmed", "active",
    ),
    OrderStatus.READY_TO_SHIP: OrderStatusDisplay(
        "Ready to Ship", "Ready for Dispatch",
        "Order is packed and ready", "active",
    ),
    OrderStatus.SHIPPED: OrderStatusDisplay(
        "Shipped", "On the Way",
        "Order has been shipped", "active",
    ),
    OrderStatus.DELIVERED: OrderStatusDisplay(
        "Delivered", "Delivered",
        "Order has been delivered", "completed",
    ),
    OrderStatus.CANCELLED: OrderStatusDisplay(
        "Cancelled", "Cancelled",
        "Order has been cancelled", "cancelled",
    ),
}

_UNKNOWN_STATUS_DISPLAY = OrderStatusDisplay(
    "Unknown", "Processing", "Status unknown", "active"
)


def get_status_display(status: OrderStatus | str) -> OrderStatusDisplay:
    try:
        return ORDER_STATUS_DISPLAY[OrderStatus(status)]
    except ValueError:
        return _UNKNOWN_STATUS_DISPLAY


def get_status_label(status: OrderStatus | str, customer_facing: bool = True) -> str:
    display = get_status_display(status)
    return display.customer_label if customer_facing else display.label
