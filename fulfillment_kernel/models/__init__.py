"""Domain models for the fulfillment kernel."""

from fulfillment_kernel.models.order import Order
from fulfillment_kernel.models.trust import CustomerTrustHistory, CustomerTrustProfile

__all__ = [
    "CustomerTrustHistory",
    "CustomerTrustProfile",
    "Order",
]
