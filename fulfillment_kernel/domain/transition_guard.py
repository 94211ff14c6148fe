"""
TransitionGuard -- precondition checklist for an order status change.

Responsibility:
    Given an order snapshot and a desired target status, lists every unmet
    condition.  Used both to disable UI actions ahead of time and to
    pre-validate before ``OrderStatusService`` attempts a write.

Architecture position:
    Kernel > Domain -- pure function, zero I/O.  Shares its vocabulary with
    the blocker resolver and its guidance table with the error translator.

Invariants enforced:
    - Edges outside ``ORDER_LIFECYCLE`` are rejected regardless of payment
      or address state (single ``VALID_EDGE`` reason).
    - Conditions are never short-circuited, so the caller gets a complete
      checklist.
    - Monotonic: removing a satisfied precondition from an order never
      shrinks the reason list for a fixed target.
"""

from __future__ import annotations

from fulfillment_kernel.domain.dtos import (
    OrderSnapshot,
    ParsedError,
    Requirement,
    TransitionCheck,
    UnmetRequirement,
)
from fulfillment_kernel.domain.error_translator import guidance_for_requirement
from fulfillment_kernel.domain.order_status import (
    OrderStatus,
    PaymentStatus,
    allowed_targets,
    get_status_label,
    is_settled,
    is_valid_edge,
)

REQUIRES_VERIFIED_DEPOSIT = "Requires verified deposit"
REQUIRES_FULL_PAYMENT = "Requires full payment"
REQUIRES_DELIVERY_ADDRESS = "Requires delivery address"
REQUIRES_TRACKING = "Requires carrier and tracking number"

_SHIPPING_TARGETS = frozenset({OrderStatus.READY_TO_SHIP, OrderStatus.SHIPPED})


def invalid_transition_reason(source: OrderStatus, target: OrderStatus) -> str:
    return (
        f"Invalid status transition from "
        f"{get_status_label(source, customer_facing=False)} to "
        f"{get_status_label(target, customer_facing=False)}"
    )


def has_verified_deposit(order: OrderSnapshot) -> bool:
    """A deposit counts only when paid and explicitly marked verified."""
    return (
        order.payment_status is not None
        and order.payment_status != PaymentStatus.UNPAID
        and order.payment_verified_at is not None
    )


def _shipping_requirements(order: OrderSnapshot) -> list[UnmetRequirement]:
    unmet: list[UnmetRequirement] = []
    if not is_settled(order.payment_status):
        unmet.append(UnmetRequirement(Requirement.FULL_PAYMENT, REQUIRES_FULL_PAYMENT))
    if not order.has_delivery_address:
        unmet.append(
            UnmetRequirement(Requirement.DELIVERY_ADDRESS, REQUIRES_DELIVERY_ADDRESS)
        )
    return unmet


def check_transition(order: OrderSnapshot, target: OrderStatus | str) -> TransitionCheck:
    """Enumerate every unmet condition for moving ``order`` to ``target``."""
    target = OrderStatus(target)

    if not is_valid_edge(order.status, target):
        return TransitionCheck(
            target=target,
            unmet=(
                UnmetRequirement(
                    Requirement.VALID_EDGE,
                    invalid_transition_reason(order.status, target),
                ),
            ),
        )

    unmet: list[UnmetRequirement] = []
    if target == OrderStatus.PROCESSING and not has_verified_deposit(order):
        unmet.append(
            UnmetRequirement(Requirement.VERIFIED_DEPOSIT, REQUIRES_VERIFIED_DEPOSIT)
        )
    if target in _SHIPPING_TARGETS:
        unmet.extend(_shipping_requirements(order))
    if target == OrderStatus.SHIPPED and not order.has_tracking:
        unmet.append(UnmetRequirement(Requirement.TRACKING_DETAILS, REQUIRES_TRACKING))

    return TransitionCheck(target=target, unmet=tuple(unmet))


def can_proceed_to_shipping(order: OrderSnapshot) -> TransitionCheck:
    """Payment and address checklist for shipping, independent of status."""
    return TransitionCheck(
        target=OrderStatus.READY_TO_SHIP,
        unmet=tuple(_shipping_requirements(order)),
    )


def available_transitions(order: OrderSnapshot) -> dict[OrderStatus, TransitionCheck]:
    """Check every lifecycle target reachable from the order's status."""
    return {
        target: check_transition(order, target)
        for target in sorted(allowed_targets(order.status), key=lambda s: s.value)
    }


def guidance_for_check(
    check: TransitionCheck, order: OrderSnapshot | None = None
) -> ParsedError | None:
    """Guidance for the first unmet condition, in the translator's vocabulary."""
    if check.allowed:
        return None
    first = check.unmet[0]
    return guidance_for_requirement(
        first.requirement,
        balance=order.balance_remaining if order is not None else None,
        currency=order.currency if order is not None else None,
        reason=first.reason,
    )
