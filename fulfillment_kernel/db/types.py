"""
Module: fulfillment_kernel.db.types
Responsibility: Canonical precision and rounding for order amounts.  Every
    amount written to an ``orders`` money column passes through
    ``round_money`` first so Python-side comparisons match what the
    database stores in Numeric(18, 2).
Architecture position: Kernel > DB.  May be imported by models/ and
    services/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats: amounts are Decimal end to end.
    - Half-up rounding to two decimal places.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


def round_money(value: Decimal | int | str) -> Decimal:
    """
    Quantize an amount to two decimal places (half-up).

    Raises:
        decimal.InvalidOperation: if ``value`` is not numeric.
    """
    return Decimal(str(value)).quantize(_QUANTUM, rounding=DEFAULT_ROUNDING)
