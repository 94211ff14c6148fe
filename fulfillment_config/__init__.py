"""
fulfillment_config -- single public entrypoint for trust policy configuration.

Responsibility:
    Provides the only way to obtain the trust policy at runtime through
    ``get_active_policy()``.  Returns the kernel's frozen ``TrustPolicy``;
    YAML loading is internal.

Architecture position:
    Configuration -- sits above ``fulfillment_kernel``.  The kernel MUST
    NEVER import from ``fulfillment_config``; the loader bridges YAML into
    a kernel ``TrustPolicy``.

Invariants enforced:
    - Single entrypoint: all runtime policy flows through
      ``get_active_policy()``.
    - Validation: a policy that fails ``validate_policy`` is never returned.
    - Deterministic: the same YAML always yields the same policy and
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the policy file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- validation failures.

Audit relevance:
    Every successful call emits a ``FULFILLMENT_CONFIG_TRACE`` log entry
    with the config id, version and checksum, tying each trust evaluation
    back to the policy that produced it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from fulfillment_config.loader import build_trust_policy, compute_checksum, load_yaml_file
from fulfillment_config.validator import ConfigValidationResult, validate_policy
from fulfillment_kernel.domain.trust_tiers import TrustPolicy

__all__ = [
    "ConfigValidationResult",
    "LoadedPolicy",
    "get_active_policy",
    "load_policy",
    "validate_policy",
]

_logger = logging.getLogger("fulfillment_kernel.config")

DEFAULT_POLICY_PATH = Path(__file__).parent / "sets" / "default.yaml"


@dataclass(frozen=True)
class LoadedPolicy:
    """A validated policy together with its provenance."""

    config_id: str
    version: int
    checksum: str
    policy: TrustPolicy
    warnings: tuple[str, ...] = ()


def load_policy(config_path: Path | None = None) -> LoadedPolicy:
    """
    Load, validate and bridge a policy file.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_POLICY_PATH
    data = load_yaml_file(path)

    validation = validate_policy(data)
    if not validation.is_valid:
        raise ValueError(
            f"Trust policy validation failed for {path}:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )

    return LoadedPolicy(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        policy=build_trust_policy(data),
        warnings=tuple(validation.warnings),
    )


def get_active_policy(config_path: Path | None = None) -> TrustPolicy:
    """The only public configuration entrypoint.

    Args:
        config_path: Override path to a policy YAML file.  Defaults to
            ``fulfillment_config/sets/default.yaml``.
    """
    loaded = load_policy(config_path)

    _logger.info(
        "FULFILLMENT_CONFIG_TRACE",
        extra={
            "trace_type": "FULFILLMENT_CONFIG_TRACE",
            "config_set_id": loaded.config_id,
            "config_set_version": loaded.version,
            "checksum": loaded.checksum,
            "tier_threshold_count": len(loaded.policy.tier_thresholds),
            "warning_count": len(loaded.warnings),
        },
    )
    for warning in loaded.warnings:
        _logger.warning("config_validation_warning", extra={"detail": warning})

    return loaded.policy
