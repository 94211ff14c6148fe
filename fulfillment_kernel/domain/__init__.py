"""
Pure domain layer.

Order lifecycle rules, transition guard, blocker resolver, error
translator and trust scoring, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Ambient time (a Clock is injected)

All domain objects are immutable and deterministic.
"""

from fulfillment_kernel.domain.blockers import get_blocker_reason
from fulfillment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fulfillment_kernel.domain.dtos import (
    CustomerOrderRecord,
    GuidanceAction,
    OrderSnapshot,
    ParsedError,
    Requirement,
    ScoreFactor,
    TrackingInfo,
    TransitionCheck,
    TrustEvaluation,
    TrustHistoryInfo,
    TrustProfileInfo,
    UnmetRequirement,
    default_trust_profile,
)
from fulfillment_kernel.domain.error_translator import parse_status_transition_error
from fulfillment_kernel.domain.order_status import (
    ORDER_LIFECYCLE,
    OrderStatus,
    PaymentStatus,
    derive_payment_state,
)
from fulfillment_kernel.domain.transition_guard import (
    can_proceed_to_shipping,
    check_transition,
    guidance_for_check,
)
from fulfillment_kernel.domain.trust_scoring import TrustScoringEngine
from fulfillment_kernel.domain.trust_tiers import (
    DEFAULT_TRUST_POLICY,
    TrustPolicy,
    TrustTier,
    is_tier_eligible,
)

__all__ = [
    "Clock",
    "CustomerOrderRecord",
    "DEFAULT_TRUST_POLICY",
    "DeterministicClock",
    "GuidanceAction",
    "ORDER_LIFECYCLE",
    "OrderSnapshot",
    "OrderStatus",
    "ParsedError",
    "PaymentStatus",
    "Requirement",
    "ScoreFactor",
    "SystemClock",
    "TrackingInfo",
    "TransitionCheck",
    "TrustEvaluation",
    "TrustHistoryInfo",
    "TrustPolicy",
    "TrustProfileInfo",
    "TrustScoringEngine",
    "TrustTier",
    "UnmetRequirement",
    "can_proceed_to_shipping",
    "check_transition",
    "default_trust_profile",
    "derive_payment_state",
    "get_blocker_reason",
    "guidance_for_check",
    "is_tier_eligible",
    "parse_status_transition_error",
]
