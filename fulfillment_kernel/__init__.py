"""
Fulfillment Kernel

Order fulfillment guards and customer trust scoring with:
- Forward-only order lifecycle with payment/address/tracking preconditions
- Structured guidance for blocked transitions and backend invariant failures
- Trust tier scoring with audited manual overrides
- Append-only trust history written through one serialized path
"""

__version__ = "0.1.0"
