"""
BlockerResolver -- single dominant reason an order cannot progress.

Responsibility:
    Produces one human-readable sentence describing why an order is stuck,
    independent of any target status.  Used by list and summary views where
    a full checklist would be too noisy.

Architecture position:
    Kernel > Domain -- pure function, zero I/O.

Precedence:
    Rules are evaluated top to bottom and the first match wins.  Payment
    blockers come before address blockers.
"""

from __future__ import annotations

from decimal import Decimal

from fulfillment_kernel.domain.dtos import OrderSnapshot
from fulfillment_kernel.domain.order_status import (
    OrderStatus,
    PaymentStatus,
    is_settled,
)

WAITING_FOR_ADDRESS = "Waiting for customer to provide delivery address"
WAITING_FOR_FULL_PAYMENT = "Order cannot proceed until fully paid"
WAITING_FOR_PAYMENT_PROOF = "Waiting for customer to submit payment proof"

_ADDRESS_STAGES = frozenset({OrderStatus.PROCESSING, OrderStatus.READY_TO_SHIP})


def format_balance(amount: Decimal | None) -> str:
    """Render a balance without grouping separators or rounding.

    Amounts with fewer than two decimal places are padded to two; extra
    places are kept as given.
    """
    text = format(amount if amount is not None else Decimal("0"), "f")
    whole, _, fraction = text.partition(".")
    return f"{whole}.{fraction.ljust(2, '0')}"


def balance_blocker(currency: str, amount: Decimal | None) -> str:
    return f"Waiting for balance payment of {currency} {format_balance(amount)}"


def get_blocker_reason(order: OrderSnapshot) -> str | None:
    """Return the dominant reason ``order`` cannot progress, or None.

    Terminal orders (delivered, cancelled) never have a blocker.
    """
    status = order.status
    payment_status = order.payment_status

    if status == OrderStatus.PROCESSING and payment_status == PaymentStatus.PARTIALLY_PAID:
        return balance_blocker(order.currency, order.balance_remaining)

    if status in _ADDRESS_STAGES and not order.has_delivery_address:
        return WAITING_FOR_ADDRESS

    if status == OrderStatus.PAYMENT_RECEIVED and not is_settled(payment_status):
        return WAITING_FOR_FULL_PAYMENT

    if status == OrderStatus.PENDING_PAYMENT and (
        payment_status is None or payment_status == PaymentStatus.UNPAID
    ):
        return WAITING_FOR_PAYMENT_PROOF

    return None
