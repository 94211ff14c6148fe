"""
Trust tiers and the trust policy (``fulfillment_kernel.domain.trust_tiers``).

Responsibility
--------------
Declares the trust tier vocabulary, the tier metadata used by downstream
policy (eligibilities such as credit terms), and ``TrustPolicy`` -- the
frozen set of scoring weights and tier cut points the scoring engine runs
with.  ``DEFAULT_TRUST_POLICY`` carries the built-in values; the
``fulfillment_config`` package builds a ``TrustPolicy`` from YAML.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The kernel never
imports ``fulfillment_config``; configuration flows in as a ``TrustPolicy``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class TrustTier(str, Enum):
    NEW = "new"
    VERIFIED = "verified"
    TRUSTED = "trusted"
    PREFERRED = "preferred"
    RESTRICTED = "restricted"


DEFAULT_TIER = TrustTier.NEW
DEFAULT_SCORE = 50


@dataclass(frozen=True)
class TierDefinition:
    label: str
    description: str
    customer_label: str
    eligibilities: tuple[str, ...]


TRUST_TIER_CONFIG: dict[TrustTier, TierDefinition] = {
    TrustTier.NEW: TierDefinition(
        label="New",
        description="New customer with no order history yet",
        customer_label="New Account",
        eligibilities=(),
    ),
    TrustTier.VERIFIED: TierDefinition(
        label="Verified",
        description="Completed at least one order with on-time payment",
        customer_label="Verified",
        eligibilities=("Standard payment terms",),
    ),
    TrustTier.TRUSTED: TierDefinition(
        label="Trusted",
        description="Consistent payment history, reliable customer",
        customer_label="Trusted",
        eligibilities=("Priority processing", "Extended payment terms eligible"),
    ),
    TrustTier.PREFERRED: TierDefinition(
        label="Preferred",
        description="High volume, excellent payment record",
        customer_label="Preferred",
        eligibilities=(
            "Credit terms eligible",
            "Priority processing",
            "Subscription eligible",
        ),
    ),
    TrustTier.RESTRICTED: TierDefinition(
        label="Restricted",
        description="Payment issues or unresolved disputes",
        # Customers never see the word "restricted".
        customer_label="Account Review Required",
        eligibilities=("Upfront payment only",),
    ),
}

_TIER_ORDER: dict[TrustTier, int] = {
    TrustTier.RESTRICTED: 0,
    TrustTier.NEW: 1,
    TrustTier.VERIFIED: 2,
    TrustTier.TRUSTED: 3,
    TrustTier.PREFERRED: 4,
}


def get_tier_definition(tier: TrustTier | str) -> TierDefinition:
    try:
        return TRUST_TIER_CONFIG[TrustTier(tier)]
    except ValueError:
        return TRUST_TIER_CONFIG[DEFAULT_TIER]


def tier_order(tier: TrustTier | str) -> int:
    """Rank used for sorting (higher is better)."""
    try:
        return _TIER_ORDER[TrustTier(tier)]
    except ValueError:
        return _TIER_ORDER[DEFAULT_TIER]


def compare_tiers(a: TrustTier | str, b: TrustTier | str) -> int:
    """Positive if ``a`` ranks above ``b``, negative if below, 0 if equal."""
    return tier_order(a) - tier_order(b)


def is_tier_eligible(tier: TrustTier | str, benefit: str) -> bool:
    """Check a tier against a downstream benefit.

    benefit: ``credit`` | ``priority`` | ``subscription``.
    """
    tier = TrustTier(tier)
    if benefit == "credit":
        return tier == TrustTier.PREFERRED
    if benefit == "priority":
        return tier in (TrustTier.TRUSTED, TrustTier.PREFERRED)
    if benefit == "subscription":
        return tier == TrustTier.PREFERRED
    return False


def requires_upfront_payment(tier: TrustTier | str) -> bool:
    return TrustTier(tier) == TrustTier.RESTRICTED


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TierThreshold:
    """Scores at or above ``min_score`` map to ``tier``."""

    tier: TrustTier
    min_score: int


@dataclass(frozen=True)
class TrustPolicy:
    """Scoring weights, windows and tier cut points.

    ``tier_thresholds`` must be sorted by descending ``min_score`` and end
    with a threshold of 0 so every score maps to a tier.
    """

    base_score: int = 50
    min_score: int = 0
    max_score: int = 100

    # Payment behavior: orders stuck in pending/unverified payment
    payment_excellent_points: int = 20
    payment_good_points: int = 10
    payment_poor_points: int = -10
    payment_good_max_pending: int = 1

    # Recency: days since the most recent order
    recency_recent_days: int = 30
    recency_recent_points: int = 15
    recency_active_days: int = 60
    recency_active_points: int = 5
    recency_lapsing_days: int = 90
    recency_lapsing_points: int = -5
    recency_inactive_points: int = -15

    # Order volume trend: trailing window vs the window before it
    trend_window_days: int = 90
    trend_growth_ratio: Decimal = Decimal("1.2")
    trend_decline_ratio: Decimal = Decimal("0.8")
    trend_growing_points: int = 10
    trend_declining_points: int = -10

    # Issues: delivery failures and cancellations
    issues_none_points: int = 5
    issues_medium_max: int = 2
    issues_medium_points: int = 0
    issues_high_points: int = -5

    tier_thresholds: tuple[TierThreshold, ...] = (
        TierThreshold(TrustTier.PREFERRED, 80),
        TierThreshold(TrustTier.TRUSTED, 65),
        TierThreshold(TrustTier.VERIFIED, 40),
        TierThreshold(TrustTier.NEW, 20),
        TierThreshold(TrustTier.RESTRICTED, 0),
    )

    min_override_reason_length: int = 10
    history_page_size: int = 50

    def tier_for_score(self, score: int) -> TrustTier:
        for threshold in self.tier_thresholds:
            if score >= threshold.min_score:
                return threshold.tier
        return self.tier_thresholds[-1].tier


DEFAULT_TRUST_POLICY = TrustPolicy()


def tier_for_score(score: int, policy: TrustPolicy = DEFAULT_TRUST_POLICY) -> TrustTier:
    """Step function from a clamped score to a tier."""
    return policy.tier_for_score(score)
