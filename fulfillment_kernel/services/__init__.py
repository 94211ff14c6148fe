"""
Kernel services.

OrderStatusService and TrustHistoryStore are flush-only; the caller owns
the transaction.  TrustOverrideManager owns its own transactions and is the
only writer of trust profiles.
"""

from fulfillment_kernel.services.customer_locks import (
    DEFAULT_CUSTOMER_LOCKS,
    CustomerLockRegistry,
)
from fulfillment_kernel.services.order_status_service import (
    OrderStatusService,
    StatusChangeResult,
)
from fulfillment_kernel.services.trust_evaluation_service import (
    BatchEvaluationResult,
    EvaluationFailure,
    TrustEvaluationResult,
    TrustEvaluationService,
)
from fulfillment_kernel.services.trust_history_store import TrustHistoryStore
from fulfillment_kernel.services.trust_override_manager import (
    RESTRICTION_WARNING,
    EvaluationOutcome,
    EvaluationWrite,
    OverrideResult,
    TrustOverrideManager,
)

__all__ = [
    "BatchEvaluationResult",
    "CustomerLockRegistry",
    "DEFAULT_CUSTOMER_LOCKS",
    "EvaluationFailure",
    "EvaluationOutcome",
    "EvaluationWrite",
    "OrderStatusService",
    "OverrideResult",
    "RESTRICTION_WARNING",
    "StatusChangeResult",
    "TrustEvaluationResult",
    "TrustEvaluationService",
    "TrustHistoryStore",
    "TrustOverrideManager",
]
