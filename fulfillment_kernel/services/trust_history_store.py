"""
TrustHistoryStore -- append-only writer for trust tier transitions.

Responsibility:
    Appends one ``CustomerTrustHistory`` row per tier/score mutation.
    There is no update or delete method; the ORM listeners and the
    database triggers reject both.

Architecture position:
    Kernel > Services.  Flush-only.  Called exclusively by
    TrustOverrideManager, which holds the customer lock and the profile row
    lock, so the per-customer sequence it is handed is never contended.

Invariants enforced:
    - Append-only.
    - Sequence numbers are issued from the locked profile row
      (``history_sequence``), so each customer's chain is gapless.
"""

from datetime import datetime

from fulfillment_kernel.domain.trust_tiers import TrustTier
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.trust import CustomerTrustHistory, CustomerTrustProfile
from fulfillment_kernel.services.base import BaseService

logger = get_logger("services.trust_history_store")


class TrustHistoryStore(BaseService[CustomerTrustHistory]):
    """Appends trust history rows within the caller's transaction."""

    def append(
        self,
        profile: CustomerTrustProfile,
        previous_tier: TrustTier | None,
        previous_score: int | None,
        change_reason: str,
        changed_by: str | None,
        is_manual_override: bool,
        created_at: datetime,
    ) -> CustomerTrustHistory:
        """
        Record the transition to the profile's current tier and score.

        Preconditions: ``profile`` is locked by the caller and already
            carries the new tier and score.
        Postconditions: one history row is flushed and
            ``profile.history_sequence`` is advanced by one.
        """
        profile.history_sequence = (profile.history_sequence or 0) + 1
        entry = CustomerTrustHistory(
            customer_id=profile.customer_id,
            sequence=profile.history_sequence,
            previous_tier=previous_tier.value if previous_tier is not None else None,
            new_tier=profile.trust_tier,
            previous_score=previous_score,
            new_score=profile.score,
            change_reason=change_reason,
            changed_by=changed_by,
            is_manual_override=is_manual_override,
            created_at=created_at,
            created_by=changed_by,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "trust_history_appended",
            extra={
                "customer_id": profile.customer_id,
                "sequence": entry.sequence,
                "previous_tier": entry.previous_tier,
                "new_tier": entry.new_tier,
                "previous_score": previous_score,
                "new_score": entry.new_score,
                "is_manual_override": is_manual_override,
            },
        )
        return entry
