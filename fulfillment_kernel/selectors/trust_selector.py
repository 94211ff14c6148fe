"""
Module: fulfillment_kernel.selectors.trust_selector
Responsibility: Read access to trust profiles and the trust history.
Architecture position: Kernel > Selectors.

Customers who were never evaluated have no profile row; ``get_profile``
reports them with the default tier and score (``persisted=False``).
History is returned newest first and capped at a page size.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import as_utc
from fulfillment_kernel.domain.dtos import (
    TrustHistoryInfo,
    TrustProfileInfo,
    default_trust_profile,
)
from fulfillment_kernel.domain.trust_tiers import TrustTier
from fulfillment_kernel.models.trust import CustomerTrustHistory, CustomerTrustProfile
from fulfillment_kernel.selectors.base import BaseSelector

DEFAULT_HISTORY_PAGE_SIZE = 50


def profile_to_info(profile: CustomerTrustProfile) -> TrustProfileInfo:
    return TrustProfileInfo(
        customer_id=profile.customer_id,
        trust_tier=TrustTier(profile.trust_tier),
        score=profile.score,
        manual_override=profile.manual_override,
        override_reason=profile.override_reason,
        override_by=profile.override_by,
        override_at=as_utc(profile.override_at) if profile.override_at else None,
        last_evaluated_at=as_utc(profile.last_evaluated_at)
        if profile.last_evaluated_at
        else None,
        evaluation_version=profile.evaluation_version,
        persisted=True,
    )


def history_to_info(entry: CustomerTrustHistory) -> TrustHistoryInfo:
    return TrustHistoryInfo(
        id=entry.id,
        customer_id=entry.customer_id,
        previous_tier=TrustTier(entry.previous_tier) if entry.previous_tier else None,
        new_tier=TrustTier(entry.new_tier),
        previous_score=entry.previous_score,
        new_score=entry.new_score,
        change_reason=entry.change_reason,
        changed_by=entry.changed_by,
        is_manual_override=entry.is_manual_override,
        created_at=as_utc(entry.created_at),
        sequence=entry.sequence,
    )


class TrustSelector(BaseSelector[CustomerTrustProfile]):
    """Read-only trust profile and history queries."""

    def __init__(self, session: Session, history_page_size: int = DEFAULT_HISTORY_PAGE_SIZE):
        super().__init__(session)
        self.history_page_size = history_page_size

    def find_profile(self, customer_id: str) -> TrustProfileInfo | None:
        profile = self.session.scalars(
            select(CustomerTrustProfile).where(
                CustomerTrustProfile.customer_id == customer_id
            )
        ).one_or_none()
        return profile_to_info(profile) if profile is not None else None

    def get_profile(self, customer_id: str) -> TrustProfileInfo:
        """Stored profile, or the default new/50 profile if none exists."""
        return self.find_profile(customer_id) or default_trust_profile(customer_id)

    def get_history(
        self, customer_id: str, limit: int | None = None
    ) -> list[TrustHistoryInfo]:
        """Newest first; at most ``limit`` (default: the page size) entries."""
        limit = self.history_page_size if limit is None else limit
        entries = self.session.scalars(
            select(CustomerTrustHistory)
            .where(CustomerTrustHistory.customer_id == customer_id)
            .order_by(CustomerTrustHistory.sequence.desc())
            .limit(limit)
        ).all()
        return [history_to_info(e) for e in entries]

    def count_history(self, customer_id: str) -> int:
        return self.session.scalar(
            select(func.count())
            .select_from(CustomerTrustHistory)
            .where(CustomerTrustHistory.customer_id == customer_id)
        ) or 0
