"""Read-only query selectors."""

from fulfillment_kernel.selectors.order_selector import BlockedOrderSummary, OrderSelector
from fulfillment_kernel.selectors.trust_selector import TrustSelector

__all__ = ["BlockedOrderSummary", "OrderSelector", "TrustSelector"]
