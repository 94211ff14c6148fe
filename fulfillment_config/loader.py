"""
Configuration Loader (``fulfillment_config.loader``).

Responsibility
--------------
Reads a trust policy YAML file and bridges its sections into the kernel's
frozen ``TrustPolicy`` dataclass.  This is internal tooling; runtime
callers use ``fulfillment_config.get_active_policy()``.

Architecture position
---------------------
**Config layer** -- sits above ``fulfillment_kernel``.  The kernel never
imports this package; configuration reaches it only as a ``TrustPolicy``.

Invariants enforced
-------------------
* Keys absent from a section keep the kernel default for that field.
  ``config_id`` is always required.
* ``compute_checksum`` is a deterministic SHA-256 of the parsed document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown tier name or non-numeric ratio  -> ``ValueError``.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from fulfillment_kernel.domain.trust_tiers import (
    DEFAULT_TRUST_POLICY,
    TierThreshold,
    TrustPolicy,
    TrustTier,
)

# YAML section -> {yaml key: TrustPolicy field}
SECTION_FIELDS: dict[str, dict[str, str]] = {
    "scoring": {
        "base_score": "base_score",
        "min_score": "min_score",
        "max_score": "max_score",
    },
    "payment_behavior": {
        "excellent_points": "payment_excellent_points",
        "good_points": "payment_good_points",
        "poor_points": "payment_poor_points",
        "good_max_pending": "payment_good_max_pending",
    },
    "recency": {
        "recent_days": "recency_recent_days",
        "recent_points": "recency_recent_points",
        "active_days": "recency_active_days",
        "active_points": "recency_active_points",
        "lapsing_days": "recency_lapsing_days",
        "lapsing_points": "recency_lapsing_points",
        "inactive_points": "recency_inactive_points",
    },
    "order_trend": {
        "window_days": "trend_window_days",
        "growth_ratio": "trend_growth_ratio",
        "decline_ratio": "trend_decline_ratio",
        "growing_points": "trend_growing_points",
        "declining_points": "trend_declining_points",
    },
    "issue_frequency": {
        "none_points": "issues_none_points",
        "medium_max": "issues_medium_max",
        "medium_points": "issues_medium_points",
        "high_points": "issues_high_points",
    },
    "overrides": {
        "min_reason_length": "min_override_reason_length",
    },
    "history": {
        "page_size": "history_page_size",
    },
}

DECIMAL_FIELDS = frozenset({"trend_growth_ratio", "trend_decline_ratio"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    """Parse a ratio given as a YAML number or string, without float drift."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Cannot parse decimal from {value!r}") from None


def parse_tier_thresholds(items: list[dict[str, Any]]) -> tuple[TierThreshold, ...]:
    """Parse ``tier_thresholds`` entries; order is preserved as written."""
    thresholds = []
    for item in items:
        try:
            tier = TrustTier(item["tier"])
        except ValueError:
            raise ValueError(f"Unknown trust tier {item['tier']!r}") from None
        thresholds.append(TierThreshold(tier=tier, min_score=int(item["min_score"])))
    return tuple(thresholds)


def policy_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten the YAML sections into ``TrustPolicy`` field overrides."""
    overrides: dict[str, Any] = {}
    for section, fields in SECTION_FIELDS.items():
        values = data.get(section) or {}
        for key, field_name in fields.items():
            if key not in values:
                continue
            value = values[key]
            if field_name in DECIMAL_FIELDS:
                overrides[field_name] = parse_decimal(value)
            else:
                overrides[field_name] = int(value)
    if data.get("tier_thresholds"):
        overrides["tier_thresholds"] = parse_tier_thresholds(data["tier_thresholds"])
    return overrides


def build_trust_policy(
    data: dict[str, Any], base: TrustPolicy = DEFAULT_TRUST_POLICY
) -> TrustPolicy:
    """Bridge a parsed policy document into a frozen ``TrustPolicy``."""
    return dataclasses.replace(base, **policy_overrides(data))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
