"""
Typed Exception Hierarchy for the Fulfillment Kernel.

===============================================================================
WHEN THE KERNEL RAISES
===============================================================================

Expected business outcomes are DATA, not exceptions:

  - A blocked status change is a ``TransitionCheck`` / ``StatusChangeResult``
    with ``allowed=False`` and a list of reasons.
  - An automatic trust evaluation on an overridden profile is a
    ``TrustEvaluationResult`` with ``skipped=True``.

Exceptions are reserved for genuinely exceptional conditions: malformed
input to a mutation, missing rows, concurrency conflicts and storage
failures.

Every exception has:
  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FulfillmentKernelError (base)
    |
    +-- ValidationError
    |   +-- OverrideReasonTooShortError
    |   +-- InvalidTrustTierError
    |
    +-- OrderError
    |   +-- OrderNotFoundError
    |   +-- InvalidStatusTransitionError
    |
    +-- TrustError
    |   +-- TrustProfileNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- OpaqueBackendError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed input to a mutating operation
                | OVERRIDE_REASON_TOO_SHORT   | Override reason under the minimum length
                | INVALID_TRUST_TIER          | Unknown tier name
----------------|-----------------------------|-----------------------------------------
Order           | ORDER_NOT_FOUND             | Order ID doesn't exist
                | INVALID_STATUS_TRANSITION   | ORM-level edit outside the edge table
----------------|-----------------------------|-----------------------------------------
Trust           | TRUST_PROFILE_NOT_FOUND     | Customer has no trust profile yet
----------------|-----------------------------|-----------------------------------------
Concurrency     | ORDER_STATUS_CONFLICT       | Status changed by another actor first
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of an append-only row
----------------|-----------------------------|-----------------------------------------
Backend         | OPAQUE_BACKEND_ERROR        | Storage failure with only free text

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CONFLICTS ARE NEVER RETRIED BY THE KERNEL:

    try:
        service.change_status(order_id, target, expected_status=current)
    except ConflictError as e:
        snapshot = selector.get_snapshot(e.order_id)   # re-fetch
        check = check_transition(snapshot, target)     # re-run the guard

2. BACKEND FAILURES CARRY GUIDANCE:

    except OpaqueBackendError as e:
        show(e.guidance.title, e.guidance.description)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fulfillment_kernel.domain.dtos import ParsedError


class FulfillmentKernelError(Exception):
    """
    Base exception for all fulfillment kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FULFILLMENT_KERNEL_ERROR"


# Validation exceptions


class ValidationError(FulfillmentKernelError):
    """Caller supplied malformed input to a mutating operation.

    Surfaced immediately and never retried automatically.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class OverrideReasonTooShortError(ValidationError):
    """Manual override reason is shorter than the required minimum."""

    code: str = "OVERRIDE_REASON_TOO_SHORT"

    def __init__(self, length: int, min_length: int):
        self.length = length
        self.min_length = min_length
        super().__init__(
            "reason",
            f"override reason must be at least {min_length} characters "
            f"(got {length})",
        )


class InvalidTrustTierError(ValidationError):
    """Tier name is not one of the known trust tiers."""

    code: str = "INVALID_TRUST_TIER"

    def __init__(self, tier: str):
        self.tier = tier
        super().__init__("tier", f"unknown trust tier '{tier}'")


# Order exceptions


class OrderError(FulfillmentKernelError):
    """Base exception for order-related errors."""

    code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class InvalidStatusTransitionError(OrderError):
    """
    Status edit outside the lifecycle edge table.

    Raised by the ORM listeners when code mutates ``Order.status`` directly.
    The normal write path checks the guard first and never gets here.
    """

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, order_id: str, from_status: str, to_status: str):
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid order status transition from {from_status} to {to_status}"
        )


# Trust exceptions


class TrustError(FulfillmentKernelError):
    """Base exception for trust profile errors."""

    code: str = "TRUST_ERROR"


class TrustProfileNotFoundError(TrustError):
    """Customer has no trust profile."""

    code: str = "TRUST_PROFILE_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Trust profile not found for customer {customer_id}")


# Concurrency exceptions


class ConcurrencyError(FulfillmentKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """
    Optimistic-concurrency check failed on an order status write.

    The caller must re-fetch the order and re-run the transition guard
    before retrying. The kernel never retries on its own.
    """

    code: str = "ORDER_STATUS_CONFLICT"

    def __init__(
        self,
        order_id: str,
        expected_status: str,
        actual_status: str | None,
    ):
        self.order_id = order_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Order {order_id} status conflict: expected {expected_status}, "
            f"found {actual_status}"
        )


# Immutability exceptions


class ImmutabilityError(FulfillmentKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Backend exceptions


class OpaqueBackendError(FulfillmentKernelError):
    """
    Persistence failure that only carries free text.

    The database enforces order invariants with triggers that raise plain
    messages. This wrapper keeps the raw ``message`` and ``details`` and
    always carries the translated ``guidance`` for display.
    """

    code: str = "OPAQUE_BACKEND_ERROR"

    def __init__(
        self,
        message: str | None,
        guidance: ParsedError,
        details: str | None = None,
    ):
        self.message = message
        self.details = details
        self.guidance = guidance
        super().__init__(message or details or guidance.description)
