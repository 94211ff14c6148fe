"""
TrustOverrideManager -- the single serialized write path for trust profiles.

Responsibility:
    Owns every mutation of ``CustomerTrustProfile``: manual overrides,
    clearing overrides, and the results of automatic evaluations.  Every
    tier or score change is written together with exactly one history
    entry, in one transaction.

Architecture position:
    Kernel > Services -- orchestrator.  Unlike flush-only services it owns
    its transaction boundary: with ``auto_commit=True`` (default) each
    public method commits on success and rolls back on failure.

Invariants enforced:
    - Serialized writes per customer: a ``CustomerLockRegistry`` lock is
      held across read, compute, write and commit; the profile row is read
      ``FOR UPDATE``.  First-profile creation races are resolved by the
      unique customer_id constraint and a savepoint retry.
    - Audited mutation: tier/score changes append one history entry in the
      same transaction.
    - Override lock: while ``manual_override`` is set, automatic
      evaluation writes nothing.

Failure modes:
    - OverrideReasonTooShortError (a ValidationError): reason under the
      configured minimum after trimming.  Raised before anything is read
      or written.
    - InvalidTrustTierError: unknown tier name.
    - TrustProfileNotFoundError: clear_override for a customer without a
      profile.

Audit relevance:
    Manual overrides record who, when and why.  Restricting a customer is
    flagged back to the caller with a warning.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import (
    TrustEvaluation,
    TrustHistoryInfo,
    TrustProfileInfo,
)
from fulfillment_kernel.domain.trust_scoring import summarize_factors
from fulfillment_kernel.domain.trust_tiers import (
    DEFAULT_SCORE,
    DEFAULT_TIER,
    DEFAULT_TRUST_POLICY,
    TrustPolicy,
    TrustTier,
)
from fulfillment_kernel.exceptions import (
    InvalidTrustTierError,
    OverrideReasonTooShortError,
    TrustProfileNotFoundError,
)
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_kernel.models.trust import CustomerTrustProfile
from fulfillment_kernel.selectors.trust_selector import history_to_info, profile_to_info
from fulfillment_kernel.services.customer_locks import (
    DEFAULT_CUSTOMER_LOCKS,
    CustomerLockRegistry,
)
from fulfillment_kernel.services.trust_history_store import TrustHistoryStore

logger = get_logger("services.trust_override_manager")

T = TypeVar("T")

SYSTEM_ACTOR = "system"

RESTRICTION_WARNING = (
    "Customer will be limited to upfront-payment-only orders while restricted"
)


class EvaluationOutcome(str, Enum):
    """What an automatic evaluation did to the stored profile."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED_OVERRIDE = "skipped_override"


@dataclass(frozen=True)
class OverrideResult:
    """Result of set_override / clear_override."""

    profile: TrustProfileInfo
    history_entry: TrustHistoryInfo | None = None
    warning: str | None = None
    changed: bool = True


@dataclass(frozen=True)
class EvaluationWrite:
    """Result of apply_automatic_evaluation."""

    outcome: EvaluationOutcome
    profile: TrustProfileInfo
    history_entry: TrustHistoryInfo | None = None

    @property
    def written(self) -> bool:
        return self.outcome in (EvaluationOutcome.CREATED, EvaluationOutcome.UPDATED)


def automatic_change_reason(evaluation: TrustEvaluation) -> str:
    return f"Automatic evaluation: {summarize_factors(evaluation.factors)}"


class TrustOverrideManager:
    """
    Serialized writer for trust profiles and their history.

    Set ``auto_commit=False`` to leave commit/rollback to the caller; the
    row lock still applies, but the in-process customer lock is released
    before the caller commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: TrustPolicy = DEFAULT_TRUST_POLICY,
        locks: CustomerLockRegistry | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy
        self._locks = locks or DEFAULT_CUSTOMER_LOCKS
        self._auto_commit = auto_commit
        self._history = TrustHistoryStore(session)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_override(
        self,
        customer_id: str,
        new_tier: TrustTier | str,
        reason: str,
        actor_id: str | None = None,
    ) -> OverrideResult:
        """
        Lock a customer's tier by hand.

        The profile keeps its score; the tier, reason, actor and timestamp
        are recorded and one history entry with ``is_manual_override=True``
        is appended.  Creates a default profile first if none exists.

        Raises:
            OverrideReasonTooShortError: reason too short after trimming.
            InvalidTrustTierError: unknown tier.
        """
        tier = self._validate_tier(new_tier)
        reason = self._validate_reason(reason)

        def operation() -> OverrideResult:
            now = self._clock.now_utc()
            profile = self._load_for_update(customer_id)
            if profile is None:
                profile = self._create_profile(
                    customer_id, DEFAULT_TIER, DEFAULT_SCORE, actor_id
                )

            previous_tier = TrustTier(profile.trust_tier)
            previous_score = profile.score
            warning = None
            if tier == TrustTier.RESTRICTED and previous_tier != TrustTier.RESTRICTED:
                warning = RESTRICTION_WARNING

            profile.manual_override = True
            profile.trust_tier = tier.value
            profile.override_reason = reason
            profile.override_by = actor_id
            profile.override_at = now
            profile.last_evaluated_at = now
            profile.updated_by = actor_id

            entry = self._history.append(
                profile,
                previous_tier=previous_tier,
                previous_score=previous_score,
                change_reason=f"Manual override: {reason}",
                changed_by=actor_id,
                is_manual_override=True,
                created_at=now,
            )

            logger.info(
                "trust_override_set",
                extra={
                    "customer_id": customer_id,
                    "previous_tier": previous_tier.value,
                    "new_tier": tier.value,
                    "restricting": warning is not None,
                },
            )
            return OverrideResult(
                profile=profile_to_info(profile),
                history_entry=history_to_info(entry),
                warning=warning,
            )

        return self._run(customer_id, actor_id, operation)

    def clear_override(self, customer_id: str, actor_id: str | None = None) -> OverrideResult:
        """
        Return a customer to automatic scoring.

        Tier and score are left as they are until the next automatic
        evaluation; no history entry is written.  Clearing a profile that
        is not overridden changes nothing.

        Raises:
            TrustProfileNotFoundError: the customer has no profile.
        """

        def operation() -> OverrideResult:
            profile = self._load_for_update(customer_id)
            if profile is None:
                raise TrustProfileNotFoundError(customer_id)

            if not profile.manual_override:
                return OverrideResult(profile=profile_to_info(profile), changed=False)

            profile.manual_override = False
            profile.override_reason = None
            profile.override_by = None
            profile.override_at = None
            profile.updated_by = actor_id
            self._session.flush()

            logger.info(
                "trust_override_cleared",
                extra={"customer_id": customer_id, "tier": profile.trust_tier},
            )
            return OverrideResult(profile=profile_to_info(profile))

        return self._run(customer_id, actor_id, operation)

    def apply_automatic_evaluation(
        self,
        customer_id: str,
        evaluation: TrustEvaluation,
        actor_id: str | None = SYSTEM_ACTOR,
    ) -> EvaluationWrite:
        """
        Persist an automatic evaluation result.

        - Overridden profile: nothing is written.
        - No profile: profile and one history entry are created.
        - Tier or score changed: profile updated, one history entry.
        - Otherwise: nothing is written.
        """

        def operation() -> EvaluationWrite:
            profile = self._load_for_update(customer_id)

            if profile is not None and profile.manual_override:
                logger.info(
                    "trust_evaluation_skipped",
                    extra={
                        "customer_id": customer_id,
                        "reason": "manual_override",
                        "tier": profile.trust_tier,
                    },
                )
                return EvaluationWrite(
                    EvaluationOutcome.SKIPPED_OVERRIDE, profile_to_info(profile)
                )

            if profile is not None and (
                profile.trust_tier == evaluation.tier.value
                and profile.score == evaluation.score
            ):
                return EvaluationWrite(
                    EvaluationOutcome.UNCHANGED, profile_to_info(profile)
                )

            now = self._clock.now_utc()
            if profile is None:
                outcome = EvaluationOutcome.CREATED
                previous_tier = None
                previous_score = None
                profile = self._create_profile(
                    customer_id, evaluation.tier, evaluation.score, actor_id
                )
            else:
                outcome = EvaluationOutcome.UPDATED
                previous_tier = TrustTier(profile.trust_tier)
                previous_score = profile.score
                profile.trust_tier = evaluation.tier.value
                profile.score = evaluation.score
                profile.updated_by = actor_id

            profile.last_evaluated_at = now
            profile.evaluation_version = (profile.evaluation_version or 0) + 1

            entry = self._history.append(
                profile,
                previous_tier=previous_tier,
                previous_score=previous_score,
                change_reason=automatic_change_reason(evaluation),
                changed_by=actor_id,
                is_manual_override=False,
                created_at=now,
            )

            logger.info(
                "trust_evaluation_applied",
                extra={
                    "customer_id": customer_id,
                    "outcome": outcome.value,
                    "previous_tier": previous_tier.value if previous_tier else None,
                    "new_tier": evaluation.tier.value,
                    "previous_score": previous_score,
                    "new_score": evaluation.score,
                },
            )
            return EvaluationWrite(outcome, profile_to_info(profile), history_to_info(entry))

        return self._run(customer_id, actor_id, operation)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_tier(self, tier: TrustTier | str) -> TrustTier:
        try:
            return TrustTier(tier)
        except ValueError:
            raise InvalidTrustTierError(str(tier)) from None

    def _validate_reason(self, reason: str | None) -> str:
        trimmed = (reason or "").strip()
        minimum = self._policy.min_override_reason_length
        if len(trimmed) < minimum:
            logger.warning(
                "trust_override_rejected",
                extra={"reason_length": len(trimmed), "min_length": minimum},
            )
            raise OverrideReasonTooShortError(len(trimmed), minimum)
        return trimmed

    def _run(
        self, customer_id: str, actor_id: str | None, operation: Callable[[], T]
    ) -> T:
        with self._locks.hold(customer_id), LogContext.bind(
            customer_id=customer_id, actor_id=actor_id
        ):
            try:
                result = operation()
                if self._auto_commit:
                    self._session.commit()
                return result
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                raise

    def _load_for_update(self, customer_id: str) -> CustomerTrustProfile | None:
        return self._session.execute(
            select(CustomerTrustProfile)
            .where(CustomerTrustProfile.customer_id == customer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _supports_savepoints(self) -> bool:
        # pysqlite's SAVEPOINT handling commits the outer transaction on
        # release; SQLite has a single writer and the customer lock covers
        # in-process races.
        return self._session.get_bind().dialect.name != "sqlite"

    def _create_profile(
        self,
        customer_id: str,
        tier: TrustTier,
        score: int,
        actor_id: str | None,
    ) -> CustomerTrustProfile:
        """
        Insert the customer's first profile.

        If another writer inserted it first, the savepoint is rolled back and
        the winner's row is returned locked instead.
        """
        profile = CustomerTrustProfile(
            customer_id=customer_id,
            trust_tier=tier.value,
            score=score,
            manual_override=False,
            evaluation_version=0,
            history_sequence=0,
            created_at=self._clock.now_utc(),
            created_by=actor_id,
        )

        if not self._supports_savepoints():
            self._session.add(profile)
            self._session.flush()
            return profile

        savepoint = self._session.begin_nested()
        try:
            self._session.add(profile)
            self._session.flush()
            savepoint.commit()
            return profile
        except IntegrityError:
            logger.debug(
                "trust_profile_create_race_retry",
                extra={"customer_id": customer_id},
            )
            savepoint.rollback()
            existing = self._load_for_update(customer_id)
            if existing is None:
                raise
            return existing
