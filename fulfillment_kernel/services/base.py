"""
BaseService -- abstract base for flush-only kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    services that write within the caller's transaction.  They use
    ``session.flush()`` and never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: flush-only services never commit or roll
      back.  The caller, or an owning service such as
      ``TrustOverrideManager`` with ``auto_commit=True``, owns the
      transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from fulfillment_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Abstract base class for flush-only services."""

    def __init__(self, session: Session):
        self.session = session
