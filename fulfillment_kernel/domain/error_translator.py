"""
ErrorTranslator -- free-text backend failures to actionable guidance.

Responsibility:
    The persistence layer enforces order invariants in database triggers
    that surface only as text.  This module pattern-matches that text
    against an ordered phrase table and returns a ``ParsedError`` with a
    title, description and recommended follow-up action.

Architecture position:
    Kernel > Domain -- pure function, zero I/O.  The guidance table is also
    used by ``transition_guard.guidance_for_check`` so proactive checks and
    after-the-fact failures render with one vocabulary.

Invariants enforced:
    - First matching rule wins; rules are checked in table order.
    - Never raises.  Unrecognised or absent input falls through to
      ``Status Update Failed``.

Maintenance:
    When a new trigger message is introduced in ``db/sql``, add its phrase
    here and pin it with a regression test.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from fulfillment_kernel.domain.blockers import format_balance
from fulfillment_kernel.domain.dtos import GuidanceAction, ParsedError, Requirement

_BALANCE_PATTERN = re.compile(r"Balance:?\s*([\d,.\s]+)", re.IGNORECASE)

GENERIC_FAILURE = "Please check order requirements and try again."


@dataclass(frozen=True)
class _Rule:
    phrases: tuple[str, ...]
    build: Callable[[str], ParsedError]


PAYMENT_REQUIRED = ParsedError(
    title="Payment Required",
    description="This order needs a verified deposit before processing can begin.",
    action=GuidanceAction.VERIFY_PAYMENT,
    action_label="Verify Payment",
)

ADDRESS_REQUIRED = ParsedError(
    title="Address Required",
    description="Customer must provide a delivery address before shipping.",
    action=GuidanceAction.REQUEST_ADDRESS,
    action_label="Request Address",
)

INVALID_STATUS_CHANGE = ParsedError(
    title="Invalid Status Change",
    description="This status transition is not allowed. Please check order requirements.",
    action=GuidanceAction.VIEW_ORDER,
    action_label="View Order Details",
)

TRACKING_REQUIRED = ParsedError(
    title="Tracking Details Required",
    description="Please provide carrier and tracking information before marking as shipped.",
)


def balance_required(balance: str) -> ParsedError:
    return ParsedError(
        title="Balance Payment Required",
        description=f"Cannot proceed to shipping. Outstanding balance: {balance}",
        action=GuidanceAction.REQUEST_BALANCE,
        action_label="Request Balance Payment",
    )


def status_update_failed(message: str | None) -> ParsedError:
    return ParsedError(
        title="Status Update Failed",
        description=message or GENERIC_FAILURE,
    )


def extract_balance(message: str) -> str | None:
    """Return the first balance embedded as ``Balance: X`` verbatim, if any."""
    for match in _BALANCE_PATTERN.finditer(message):
        value = match.group(1).strip()
        if value:
            return value
    return None


def _fixed(guidance: ParsedError) -> Callable[[str], ParsedError]:
    return lambda _message: guidance


def _balance_from_message(message: str) -> ParsedError:
    return balance_required(extract_balance(message) or "outstanding")


# Checked in order; first match wins.
_RULES: tuple[_Rule, ...] = (
    _Rule(
        ("without verified payment", "payment must be verified", "verified deposit"),
        _fixed(PAYMENT_REQUIRED),
    ),
    _Rule(("fully paid", "balance remaining"), _balance_from_message),
    _Rule(
        ("delivery address", "confirmed delivery address"), _fixed(ADDRESS_REQUIRED)
    ),
    _Rule(("status transition",), _fixed(INVALID_STATUS_CHANGE)),
    _Rule(("tracking", "carrier"), _fixed(TRACKING_REQUIRED)),
)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def extract_message(error: Any) -> str:
    """Pull the free-text message out of whatever the backend surfaced.

    Accepts a mapping or object carrying ``message``/``details``, an
    exception, a bare string, or None.
    """
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    if isinstance(error, Mapping):
        return _as_text(error.get("message")) or _as_text(error.get("details"))

    message = _as_text(getattr(error, "message", None)) or _as_text(
        getattr(error, "details", None)
    )
    if message:
        return message
    if isinstance(error, BaseException):
        orig = getattr(error, "orig", None)
        if orig is not None:
            return _as_text(orig)
        return _as_text(error)
    return ""


def _match(message: str) -> ParsedError | None:
    for rule in _RULES:
        if any(phrase in message for phrase in rule.phrases):
            return rule.build(message)
    return None


def parse_status_transition_error(error: Any) -> ParsedError:
    """Translate an opaque status-change failure into ``ParsedError``.

    Never raises; malformed input yields ``Status Update Failed``.
    """
    try:
        message = extract_message(error)
    except Exception:
        message = ""
    return _match(message) or status_update_failed(message)


def guidance_for_requirement(
    requirement: Requirement,
    balance: Decimal | None = None,
    currency: str | None = None,
    reason: str | None = None,
) -> ParsedError:
    """Guidance for a guard requirement, using the translator's table."""
    if requirement == Requirement.VERIFIED_DEPOSIT:
        return PAYMENT_REQUIRED
    if requirement == Requirement.FULL_PAYMENT:
        if balance is not None and balance > 0:
            amount = format_balance(balance)
            return balance_required(f"{currency} {amount}" if currency else amount)
        return balance_required("outstanding")
    if requirement == Requirement.DELIVERY_ADDRESS:
        return ADDRESS_REQUIRED
    if requirement == Requirement.VALID_EDGE:
        return INVALID_STATUS_CHANGE
    if requirement == Requirement.TRACKING_DETAILS:
        return TRACKING_REQUIRED
    return status_update_failed(reason)
