"""
Exact conversion between human amounts and on-chain integer units.

Upstream prices are floats (63.333333333333336 after a currency conversion).
They are truncated to the token's decimal grid before encoding, never rounded
up, and every comparison happens on integers.
"""

from decimal import Decimal, ROUND_DOWN


def truncate(amount: float | str | Decimal, decimals: int) -> Decimal:
    """Drop digits beyond `decimals` places."""
    quantum = Decimal(1).scaleb(-decimals)
    return Decimal(str(amount)).quantize(quantum, rounding=ROUND_DOWN)


def to_base_units(amount: float | str | Decimal, decimals: int) -> int:
    return int(truncate(amount, decimals).scaleb(decimals))


def from_base_units(units: int, decimals: int) -> Decimal:
    return Decimal(units).scaleb(-decimals)


def minimum_accepted(expected_units: int, tolerance_percent: float) -> int:
    """
    Lowest balance accepted as full payment.

    With the default 0.1% this equals expected - expected // 1000.
    """
    allowance = (Decimal(expected_units) * Decimal(str(tolerance_percent)) / 100).to_integral_value(rounding=ROUND_DOWN)
    return expected_units - int(allowance)
