"""
Data Transfer Objects for the fulfillment kernel.

Immutable value objects passed between the pure domain functions and the
services.  They hold no ORM state, so guard, translator and scoring code can
be called from any layer (and from tests) without a database session.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from fulfillment_kernel.domain.order_status import (
    DEFAULT_CURRENCY,
    OrderStatus,
    PaymentStatus,
)
from fulfillment_kernel.domain.trust_tiers import DEFAULT_SCORE, DEFAULT_TIER, TrustTier


# ---------------------------------------------------------------------------
# Order snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrackingInfo:
    """Carrier and tracking number for a shipment."""

    carrier: str | None
    tracking_number: str | None

    @property
    def is_complete(self) -> bool:
        return bool(
            self.carrier and self.carrier.strip()
            and self.tracking_number and self.tracking_number.strip()
        )


@dataclass(frozen=True)
class OrderSnapshot:
    """Read-only view of an order as seen by the guard and blocker resolver.

    ``payment_status`` may be None for rows that predate payment tracking;
    it is treated as unpaid.
    """

    status: OrderStatus
    payment_status: PaymentStatus | None = None
    balance_remaining: Decimal | None = None
    currency: str = DEFAULT_CURRENCY
    delivery_address_id: str | None = None
    tracking: TrackingInfo | None = None
    payment_verified_at: datetime | None = None
    order_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", OrderStatus(self.status))
        if self.payment_status is not None:
            object.__setattr__(
                self, "payment_status", PaymentStatus(self.payment_status)
            )
        if not self.currency:
            object.__setattr__(self, "currency", DEFAULT_CURRENCY)

    @property
    def has_delivery_address(self) -> bool:
        return bool(self.delivery_address_id)

    @property
    def has_tracking(self) -> bool:
        return self.tracking is not None and self.tracking.is_complete

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> OrderSnapshot:
        """Build a snapshot from a plain row/dict (snake_case keys)."""
        tracking = data.get("tracking_info")
        if isinstance(tracking, Mapping):
            tracking = TrackingInfo(
                carrier=tracking.get("carrier"),
                tracking_number=tracking.get("tracking_number"),
            )
        elif tracking is None and (
            data.get("carrier") or data.get("tracking_number")
        ):
            tracking = TrackingInfo(
                carrier=data.get("carrier"),
                tracking_number=data.get("tracking_number"),
            )
        balance = data.get("balance_remaining")
        return cls(
            status=data["status"],
            payment_status=data.get("payment_status"),
            balance_remaining=Decimal(str(balance)) if balance is not None else None,
            currency=data.get("currency") or DEFAULT_CURRENCY,
            delivery_address_id=data.get("delivery_address_id"),
            tracking=tracking,
            payment_verified_at=data.get("payment_verified_at"),
            order_id=data.get("id"),
        )


# ---------------------------------------------------------------------------
# Transition guard output
# ---------------------------------------------------------------------------


class Requirement(str, Enum):
    """A precondition the guard can report as unmet."""

    VALID_EDGE = "valid_edge"
    VERIFIED_DEPOSIT = "verified_deposit"
    FULL_PAYMENT = "full_payment"
    DELIVERY_ADDRESS = "delivery_address"
    TRACKING_DETAILS = "tracking_details"


@dataclass(frozen=True)
class UnmetRequirement:
    requirement: Requirement
    reason: str


@dataclass(frozen=True)
class TransitionCheck:
    """Result of checking one target status against an order.

    ``reasons`` lists every unmet condition, in checklist order.
    """

    target: OrderStatus
    unmet: tuple[UnmetRequirement, ...] = ()

    @property
    def reasons(self) -> list[str]:
        return [u.reason for u in self.unmet]

    @property
    def allowed(self) -> bool:
        return len(self.unmet) == 0

    def has(self, requirement: Requirement) -> bool:
        return any(u.requirement == requirement for u in self.unmet)


# ---------------------------------------------------------------------------
# Guidance (shared by the guard and the error translator)
# ---------------------------------------------------------------------------


class GuidanceAction(str, Enum):
    """Follow-up action a UI can offer next to a failure."""

    VERIFY_PAYMENT = "verify-payment"
    REQUEST_BALANCE = "request-balance"
    REQUEST_ADDRESS = "request-address"
    VIEW_ORDER = "view-order"


@dataclass(frozen=True)
class ParsedError:
    """Human-readable guidance for a blocked or failed status change."""

    title: str
    description: str
    action: GuidanceAction | None = None
    action_label: str | None = None


# ---------------------------------------------------------------------------
# Trust scoring input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomerOrderRecord:
    """One order in a customer's history, reduced to scoring signals."""

    status: OrderStatus
    created_at: datetime
    total_amount: Decimal = Decimal("0")
    had_pending_or_unverified_payment: bool = False
    had_delivery_failure_or_cancellation: bool = False
    order_id: UUID | None = None


@dataclass(frozen=True)
class ScoreFactor:
    """One additive adjustment that contributed to a trust score."""

    name: str  # payment_behavior | recency | order_trend | issue_frequency
    rating: str  # e.g. excellent, growing, low
    points: int
    detail: str


@dataclass(frozen=True)
class TrustEvaluation:
    """Pure scoring result: clamped score, derived tier, and its factors."""

    score: int
    tier: TrustTier
    factors: tuple[ScoreFactor, ...] = field(default_factory=tuple)
    explanation: str = ""

    def factor(self, name: str) -> ScoreFactor | None:
        return next((f for f in self.factors if f.name == name), None)


# ---------------------------------------------------------------------------
# Trust read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrustProfileInfo:
    customer_id: str
    trust_tier: TrustTier
    score: int
    manual_override: bool = False
    override_reason: str | None = None
    override_by: str | None = None
    override_at: datetime | None = None
    last_evaluated_at: datetime | None = None
    evaluation_version: int = 0
    persisted: bool = True


@dataclass(frozen=True)
class TrustHistoryInfo:
    id: UUID
    customer_id: str
    previous_tier: TrustTier | None
    new_tier: TrustTier
    previous_score: int | None
    new_score: int
    change_reason: str
    changed_by: str | None
    is_manual_override: bool
    created_at: datetime
    sequence: int = 0


def default_trust_profile(customer_id: str) -> TrustProfileInfo:
    """Profile reported for a customer who has never been evaluated."""
    return TrustProfileInfo(
        customer_id=customer_id,
        trust_tier=DEFAULT_TIER,
        score=DEFAULT_SCORE,
        persisted=False,
    )
