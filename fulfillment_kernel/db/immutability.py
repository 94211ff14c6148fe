"""
ORM-Level Order and Audit Protection (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

Two kinds of rows must never be rewritten by application code:

  - Orders are never physically deleted, and their status never moves
    backward.  Cancellation is a status, not a deletion.
  - Trust history rows are the audit trail for tier changes.  They are
    append-only.

This module is the FIRST layer of defense:

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/<dialect>/*.sql (database triggers)
    - Catches raw SQL and bulk UPDATE statements
    - Also rejects status writes whose payment/address/tracking
      preconditions are unmet, with free-text messages that
      domain/error_translator.py understands

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | Rule
-----------------------|------------------------------------------------------
Order                  | No DELETE.  status edits must follow ORDER_LIFECYCLE.
CustomerTrustHistory   | No UPDATE, no DELETE.

The normal status write path (OrderStatusService.change_status) issues a
conditional Core UPDATE, which does not pass through these mapper events;
it runs the transition guard itself and relies on Layer 2 as the backstop.

===============================================================================
USAGE
===============================================================================

    from fulfillment_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup (idempotent)

TESTS ONLY:

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from fulfillment_kernel.domain.order_status import is_valid_edge
from fulfillment_kernel.exceptions import (
    ImmutabilityViolationError,
    InvalidStatusTransitionError,
)
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_order_status_edit(mapper, connection, target):
    """Reject ORM edits of Order.status outside the lifecycle edge table."""
    history = inspect(target).attrs.status.history
    if not history.has_changes() or not history.deleted:
        return

    old_status = history.deleted[0]
    new_status = target.status
    if old_status == new_status or is_valid_edge(old_status, new_status):
        return

    logger.error(
        "invalid_status_edit_blocked",
        extra={
            "entity_type": "Order",
            "entity_id": str(target.id),
            "from_status": old_status,
            "to_status": new_status,
        },
    )
    raise InvalidStatusTransitionError(
        order_id=str(target.id),
        from_status=old_status,
        to_status=new_status,
    )


def _check_order_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Order",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Order",
        entity_id=str(target.id),
        reason="Orders cannot be deleted; cancel the order instead",
    )


def _check_trust_history_immutability(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "CustomerTrustHistory",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="CustomerTrustHistory",
        entity_id=str(target.id),
        reason="Trust history entries are immutable and cannot be modified",
    )


def _check_trust_history_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "CustomerTrustHistory",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="CustomerTrustHistory",
        entity_id=str(target.id),
        reason="Trust history entries cannot be deleted",
    )


def _listeners():
    from fulfillment_kernel.models.order import Order
    from fulfillment_kernel.models.trust import CustomerTrustHistory

    return (
        (Order, "before_update", _check_order_status_edit),
        (Order, "before_delete", _check_order_delete),
        (CustomerTrustHistory, "before_update", _check_trust_history_immutability),
        (CustomerTrustHistory, "before_delete", _check_trust_history_delete),
    )


def register_immutability_listeners():
    """Register the ORM listeners.  Safe to call more than once."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the ORM listeners.

    WARNING: Only use this in tests that need to bypass Layer 1 to prove
    Layer 2 catches the same violation.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
