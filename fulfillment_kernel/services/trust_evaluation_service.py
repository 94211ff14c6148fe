"""
TrustEvaluationService -- automatic (re-)evaluation of customer trust.

Responsibility:
    Loads a customer's order history, runs the pure ``TrustScoringEngine``
    and hands the result to ``TrustOverrideManager`` for persistence.
    ``evaluate_many`` is the entrypoint an external scheduler calls for a
    batch of customers.

Architecture position:
    Kernel > Services.  Reads through ``OrderSelector``; writes only through
    TrustOverrideManager's serialized write path.

Invariants enforced:
    - Idempotent: evaluating twice with no intervening order changes writes
      at most once (the manager skips unchanged results).
    - Override lock: overridden profiles are reported as skipped and left
      untouched.
    - Batch isolation: one customer's failure is reported and does not
      stop the remaining customers.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import (
    TrustEvaluation,
    TrustHistoryInfo,
    TrustProfileInfo,
)
from fulfillment_kernel.domain.trust_scoring import TrustScoringEngine
from fulfillment_kernel.domain.trust_tiers import DEFAULT_TRUST_POLICY, TrustPolicy
from fulfillment_kernel.exceptions import FulfillmentKernelError
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.selectors.order_selector import OrderSelector
from fulfillment_kernel.services.customer_locks import CustomerLockRegistry
from fulfillment_kernel.services.trust_override_manager import (
    SYSTEM_ACTOR,
    EvaluationOutcome,
    TrustOverrideManager,
)

logger = get_logger("services.trust_evaluation_service")


@dataclass(frozen=True)
class TrustEvaluationResult:
    """What one automatic evaluation computed and what it wrote."""

    customer_id: str
    evaluation: TrustEvaluation
    outcome: EvaluationOutcome
    profile: TrustProfileInfo
    history_entry: TrustHistoryInfo | None = None

    @property
    def skipped(self) -> bool:
        return self.outcome == EvaluationOutcome.SKIPPED_OVERRIDE

    @property
    def changed(self) -> bool:
        return self.outcome in (EvaluationOutcome.CREATED, EvaluationOutcome.UPDATED)


@dataclass(frozen=True)
class EvaluationFailure:
    customer_id: str
    error_type: str
    message: str


@dataclass(frozen=True)
class BatchEvaluationResult:
    results: tuple[TrustEvaluationResult, ...] = field(default_factory=tuple)
    failures: tuple[EvaluationFailure, ...] = field(default_factory=tuple)

    @property
    def changed_count(self) -> int:
        return sum(1 for r in self.results if r.changed)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.skipped)


class TrustEvaluationService:
    """Score customers from their order history and persist the result."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: TrustPolicy = DEFAULT_TRUST_POLICY,
        locks: CustomerLockRegistry | None = None,
        manager: TrustOverrideManager | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._engine = TrustScoringEngine(policy, self._clock)
        self._orders = OrderSelector(session)
        self._manager = manager or TrustOverrideManager(
            session, clock=self._clock, policy=policy, locks=locks
        )

    def evaluate(self, customer_id: str) -> TrustEvaluationResult:
        """
        Re-evaluate one customer.

        The score is computed from the history visible at call time; the
        manager then decides inside the customer lock whether to write.
        """
        history = self._orders.customer_history(customer_id)
        evaluation = self._engine.evaluate(history)
        write = self._manager.apply_automatic_evaluation(
            customer_id, evaluation, actor_id=SYSTEM_ACTOR
        )
        return TrustEvaluationResult(
            customer_id=customer_id,
            evaluation=evaluation,
            outcome=write.outcome,
            profile=write.profile,
            history_entry=write.history_entry,
        )

    def evaluate_many(self, customer_ids: Iterable[str]) -> BatchEvaluationResult:
        """Evaluate each customer independently, collecting failures."""
        results: list[TrustEvaluationResult] = []
        failures: list[EvaluationFailure] = []

        for customer_id in customer_ids:
            try:
                results.append(self.evaluate(customer_id))
            except (FulfillmentKernelError, SQLAlchemyError) as exc:
                self._session.rollback()
                logger.error(
                    "trust_evaluation_failed",
                    extra={"customer_id": customer_id},
                    exc_info=exc,
                )
                failures.append(
                    EvaluationFailure(
                        customer_id=customer_id,
                        error_type=type(exc).__name__,
                        message=str(exc),
                    )
                )

        logger.info(
            "trust_batch_evaluated",
            extra={
                "evaluated": len(results),
                "changed": sum(1 for r in results if r.changed),
                "skipped": sum(1 for r in results if r.skipped),
                "failed": len(failures),
            },
        )
        return BatchEvaluationResult(results=tuple(results), failures=tuple(failures))
