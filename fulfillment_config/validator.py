"""
Configuration Validator (``fulfillment_config.validator``).

Responsibility
--------------
Validates a parsed trust policy document before it is bridged into a
``TrustPolicy``.

Invariants enforced
-------------------
* ``config_id`` is present.
* Score bounds are ordered and the base score lies within them.
* Tier thresholds name known tiers, strictly descend, and end at the
  minimum score so every score maps to a tier.
* Recency day cut points strictly ascend.
* Trend ratios straddle 1 (growth above, decline below).
* Override reason length and history page size are positive.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``)  -> the policy MUST NOT be
  used.
* Warnings  -> the policy is usable but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fulfillment_config.loader import SECTION_FIELDS, build_trust_policy
from fulfillment_kernel.domain.trust_tiers import TrustTier


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_policy(data: dict[str, Any]) -> ConfigValidationResult:
    """
    Validate a trust policy document.

    Postconditions:
        - Returns a ``ConfigValidationResult``; never raises for malformed
          content.
    """
    result = ConfigValidationResult()

    if not data.get("config_id"):
        result.add_error("config_id is required")

    _check_known_keys(data, result)
    _check_thresholds_shape(data.get("tier_thresholds"), result)
    if not result.is_valid:
        return result

    try:
        policy = build_trust_policy(data)
    except (TypeError, ValueError, KeyError) as exc:
        result.add_error(f"Cannot build trust policy: {exc}")
        return result

    if policy.min_score >= policy.max_score:
        result.add_error(
            f"scoring.min_score ({policy.min_score}) must be below "
            f"scoring.max_score ({policy.max_score})"
        )
    if not policy.min_score <= policy.base_score <= policy.max_score:
        result.add_error(
            f"scoring.base_score ({policy.base_score}) must lie within "
            f"[{policy.min_score}, {policy.max_score}]"
        )

    scores = [t.min_score for t in policy.tier_thresholds]
    if any(a <= b for a, b in zip(scores, scores[1:])):
        result.add_error("tier_thresholds must strictly descend by min_score")
    if scores and scores[-1] != policy.min_score:
        result.add_error(
            f"last tier threshold must be {policy.min_score} so every score maps to a tier"
        )
    tiers = [t.tier for t in policy.tier_thresholds]
    if len(set(tiers)) != len(tiers):
        result.add_error("tier_thresholds lists a tier more than once")
    missing = set(TrustTier) - set(tiers)
    if missing:
        result.add_warning(
            "tiers never assigned automatically: "
            + ", ".join(sorted(t.value for t in missing))
        )

    if not (
        0
        < policy.recency_recent_days
        < policy.recency_active_days
        < policy.recency_lapsing_days
    ):
        result.add_error("recency day cut points must be positive and strictly ascending")

    if policy.trend_window_days <= 0:
        result.add_error("order_trend.window_days must be positive")
    if policy.trend_growth_ratio <= 1:
        result.add_error("order_trend.growth_ratio must be greater than 1")
    if not 0 < policy.trend_decline_ratio < 1:
        result.add_error("order_trend.decline_ratio must be between 0 and 1")

    if policy.payment_good_max_pending < 0:
        result.add_error("payment_behavior.good_max_pending must not be negative")
    if policy.issues_medium_max < 0:
        result.add_error("issue_frequency.medium_max must not be negative")

    if policy.min_override_reason_length < 1:
        result.add_error("overrides.min_reason_length must be at least 1")
    if policy.history_page_size < 1:
        result.add_error("history.page_size must be at least 1")

    return result


def _check_known_keys(data: dict[str, Any], result: ConfigValidationResult) -> None:
    for section, fields in SECTION_FIELDS.items():
        values = data.get(section)
        if values is None:
            continue
        if not isinstance(values, dict):
            result.add_error(f"{section} must be a mapping")
            continue
        for key in values:
            if key not in fields:
                result.add_warning(f"{section}.{key} is not a recognised setting")


def _check_thresholds_shape(items: Any, result: ConfigValidationResult) -> None:
    if items is None:
        return
    if not isinstance(items, list) or not items:
        result.add_error("tier_thresholds must be a non-empty list")
        return
    for index, item in enumerate(items):
        if not isinstance(item, dict) or "tier" not in item or "min_score" not in item:
            result.add_error(f"tier_thresholds[{index}] needs 'tier' and 'min_score'")
