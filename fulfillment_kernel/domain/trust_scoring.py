"""
Module: fulfillment_kernel.domain.trust_scoring
Responsibility:
    Score a customer's order history into a 0-100 trust score and a
    discrete tier.  Four independent adjustments (payment behavior,
    recency, order-volume trend, issue frequency) are added to a base score
    and the sum is clamped.

Architecture position:
    Kernel > Domain -- pure calculation, zero I/O.  Time arrives through an
    injected ``Clock`` or an explicit ``as_of`` argument; weights and tier
    cut points arrive as a ``TrustPolicy``.

Invariants enforced:
    - Score is always within ``[policy.min_score, policy.max_score]``.
    - Identical history, ``as_of`` and policy give an identical evaluation.
    - A previous trend window with zero orders is "stable", never growth.

Failure modes:
    - None for well-formed records.  An empty history is valid and scores
      as an inactive customer.

Usage:
    engine = TrustScoringEngine(policy, clock)
    evaluation = engine.evaluate(records)
    evaluation.score, evaluation.tier, evaluation.factors
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from fulfillment_kernel.domain.clock import Clock, SystemClock, as_utc
from fulfillment_kernel.domain.dtos import (
    CustomerOrderRecord,
    ScoreFactor,
    TrustEvaluation,
)
from fulfillment_kernel.domain.trust_tiers import (
    DEFAULT_TRUST_POLICY,
    TrustPolicy,
    get_tier_definition,
)
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("domain.trust_scoring")

PAYMENT_BEHAVIOR = "payment_behavior"
RECENCY = "recency"
ORDER_TREND = "order_trend"
ISSUE_FREQUENCY = "issue_frequency"

_FACTOR_LABELS = {
    PAYMENT_BEHAVIOR: "Payment behavior",
    RECENCY: "Recency",
    ORDER_TREND: "Order trend",
    ISSUE_FREQUENCY: "Issue frequency",
}

NO_SIGNIFICANT_FACTORS = "no significant factors"


def summarize_factors(factors: Sequence[ScoreFactor], limit: int = 2) -> str:
    """Describe the dominant factors, largest absolute adjustment first.

    Zero-point factors are left out.  Ties keep the factor order.
    """
    dominant = sorted(
        (f for f in factors if f.points != 0),
        key=lambda f: abs(f.points),
        reverse=True,
    )[:limit]
    if not dominant:
        return NO_SIGNIFICANT_FACTORS
    return "; ".join(
        f"{_FACTOR_LABELS.get(f.name, f.name)} {f.rating} ({f.points:+d})"
        for f in dominant
    )


class TrustScoringEngine:
    """Pure trust scoring formula parameterised by a ``TrustPolicy``."""

    def __init__(
        self,
        policy: TrustPolicy = DEFAULT_TRUST_POLICY,
        clock: Clock | None = None,
    ):
        self._policy = policy
        self._clock = clock or SystemClock()

    @property
    def policy(self) -> TrustPolicy:
        return self._policy

    def evaluate(
        self,
        history: Sequence[CustomerOrderRecord],
        as_of: datetime | None = None,
    ) -> TrustEvaluation:
        now = as_utc(as_of) if as_of is not None else self._clock.now_utc()
        policy = self._policy

        factors = (
            self._payment_behavior(history),
            self._recency(history, now),
            self._order_trend(history, now),
            self._issue_frequency(history),
        )
        raw = policy.base_score + sum(f.points for f in factors)
        score = max(policy.min_score, min(policy.max_score, raw))
        tier = policy.tier_for_score(score)

        explanation = (
            f"Score {score} ({get_tier_definition(tier).label}): "
            f"{summarize_factors(factors)}"
        )

        logger.debug(
            "trust_score_computed",
            extra={
                "order_count": len(history),
                "raw_score": raw,
                "score": score,
                "tier": tier.value,
            },
        )
        return TrustEvaluation(
            score=score, tier=tier, factors=factors, explanation=explanation
        )

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def _payment_behavior(self, history: Sequence[CustomerOrderRecord]) -> ScoreFactor:
        policy = self._policy
        pending = sum(1 for r in history if r.had_pending_or_unverified_payment)
        if pending == 0:
            rating, points = "excellent", policy.payment_excellent_points
        elif pending <= policy.payment_good_max_pending:
            rating, points = "good", policy.payment_good_points
        else:
            rating, points = "poor", policy.payment_poor_points
        return ScoreFactor(
            PAYMENT_BEHAVIOR, rating, points,
            f"{pending} order(s) awaiting payment or verification",
        )

    def _recency(
        self, history: Sequence[CustomerOrderRecord], now: datetime
    ) -> ScoreFactor:
        policy = self._policy
        if not history:
            return ScoreFactor(
                RECENCY, "inactive", policy.recency_inactive_points, "No orders yet"
            )

        latest = max(as_utc(r.created_at) for r in history)
        days = int((now - latest).total_seconds() // 86_400)
        if days < policy.recency_recent_days:
            rating, points = "recent", policy.recency_recent_points
        elif days < policy.recency_active_days:
            rating, points = "active", policy.recency_active_points
        elif days < policy.recency_lapsing_days:
            rating, points = "lapsing", policy.recency_lapsing_points
        else:
            rating, points = "inactive", policy.recency_inactive_points
        return ScoreFactor(RECENCY, rating, points, f"Last order {days} day(s) ago")

    def _order_trend(
        self, history: Sequence[CustomerOrderRecord], now: datetime
    ) -> ScoreFactor:
        policy = self._policy
        window = timedelta(days=policy.trend_window_days)
        recent_start = now - window
        previous_start = now - 2 * window

        recent = previous = 0
        for record in history:
            created = as_utc(record.created_at)
            if created > recent_start:
                recent += 1
            elif created > previous_start:
                previous += 1

        detail = f"{recent} order(s) in the last {policy.trend_window_days} days vs {previous} before"
        if previous == 0:
            return ScoreFactor(ORDER_TREND, "stable", 0, detail)
        if Decimal(recent) > Decimal(previous) * policy.trend_growth_ratio:
            return ScoreFactor(ORDER_TREND, "growing", policy.trend_growing_points, detail)
        if Decimal(recent) < Decimal(previous) * policy.trend_decline_ratio:
            return ScoreFactor(
                ORDER_TREND, "declining", policy.trend_declining_points, detail
            )
        return ScoreFactor(ORDER_TREND, "stable", 0, detail)

    def _issue_frequency(self, history: Sequence[CustomerOrderRecord]) -> ScoreFactor:
        policy = self._policy
        issues = sum(1 for r in history if r.had_delivery_failure_or_cancellation)
        if issues == 0:
            rating, points = "low", policy.issues_none_points
        elif issues <= policy.issues_medium_max:
            rating, points = "medium", policy.issues_medium_points
        else:
            rating, points = "high", policy.issues_high_points
        return ScoreFactor(
            ISSUE_FREQUENCY, rating, points,
            f"{issues} order(s) with delivery failures or cancellations",
        )
