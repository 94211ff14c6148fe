"""
Kernel Invariants Contract.

These invariants are structural law. They are hardcoded in the transition
guard, the trust write path, and the database triggers. No TrustPolicy or
configuration set may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across the transition guard, OrderStatusService,
TrustOverrideManager, the ORM listeners in db.immutability, and the SQL
triggers installed by db.triggers.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Configuration may influence *how* a customer is scored, but never
    *whether* these rules apply.
    """

    FORWARD_ONLY_STATUS = "forward_only_status"
    """Order status moves only along the lifecycle edge table or sideways
    into cancelled. Enforced by the transition guard, ORM listeners and
    the order status triggers."""

    TERMINAL_STATES = "terminal_states"
    """Delivered and cancelled orders never change status again."""

    PAYMENT_BEFORE_FULFILLMENT = "payment_before_fulfillment"
    """Processing needs a verified deposit; shipping needs full payment and
    a delivery address. Enforced by the guard and by triggers."""

    ORDERS_NOT_DELETED = "orders_not_deleted"
    """Cancellation is a status. Order rows are never deleted."""

    OPTIMISTIC_STATUS_WRITE = "optimistic_status_write"
    """A status write only applies if the stored status still equals the
    expected source status (ConflictError otherwise)."""

    OVERRIDE_LOCK = "override_lock"
    """Automatic evaluation never mutates a manually overridden profile."""

    AUDITED_TRUST_MUTATION = "audited_trust_mutation"
    """Every tier or score mutation appends exactly one history entry in
    the same transaction. History rows are append-only."""

    SERIALIZED_TRUST_WRITES = "serialized_trust_writes"
    """Trust writes for one customer are serialized through
    TrustOverrideManager; different customers are independent."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "fulfillment_config",
)
