"""
Module: fulfillment_kernel.models.trust
Responsibility: ORM persistence for customer trust profiles (one per
    customer) and the append-only trust history.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One profile per customer (uq_trust_profile_customer).  A concurrent
      first-profile insert fails with IntegrityError and is retried as an
      update by TrustOverrideManager.
    - History rows are immutable: no UPDATE, no DELETE (ORM listeners and
      database triggers).
    - Every tier or score change on a profile is accompanied by exactly one
      history row written in the same transaction (TrustOverrideManager is
      the only writer).
    - History sequence numbers per customer are gapless and unique
      (uq_trust_history_customer_seq).

Audit relevance:
    The history table is the audit trail for manual overrides and automatic
    re-evaluations: who changed a tier, from what, to what, and why.
"""

from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_kernel.db.base import TrackedBase


class CustomerTrustProfile(TrackedBase):
    """Current trust tier and score for a customer."""

    __tablename__ = "customer_trust_profiles"

    __table_args__ = (
        UniqueConstraint("customer_id", name="uq_trust_profile_customer"),
        Index("idx_trust_profile_tier", "trust_tier"),
    )

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    trust_tier: Mapped[str] = mapped_column(String(20), nullable=False)

    score: Mapped[int] = mapped_column(Integer, nullable=False)

    # While set, automatic evaluation must not touch tier or score
    manual_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    override_reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    override_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    override_at: Mapped[datetime | None] = mapped_column(nullable=True)

    last_evaluated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    evaluation_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Last history sequence number issued for this customer
    history_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        flag = " (override)" if self.manual_override else ""
        return f"<CustomerTrustProfile {self.customer_id}: {self.trust_tier}/{self.score}{flag}>"


class CustomerTrustHistory(TrackedBase):
    """One tier/score transition.  Append-only."""

    __tablename__ = "customer_trust_history"

    __table_args__ = (
        UniqueConstraint("customer_id", "sequence", name="uq_trust_history_customer_seq"),
        Index("idx_trust_history_customer_created", "customer_id", "created_at"),
    )

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Per-customer position in the audit chain, starting at 1
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    previous_tier: Mapped[str | None] = mapped_column(String(20), nullable=True)

    new_tier: Mapped[str] = mapped_column(String(20), nullable=False)

    previous_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    new_score: Mapped[int] = mapped_column(Integer, nullable=False)

    change_reason: Mapped[str] = mapped_column(String(2000), nullable=False)

    changed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_manual_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<CustomerTrustHistory {self.customer_id}: "
            f"{self.previous_tier}->{self.new_tier}>"
        )
