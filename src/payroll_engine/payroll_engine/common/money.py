"""Integer minor-unit helpers.

All amounts are ints in the currency's minor unit. Fractional intermediates
(rates, multipliers, half days) go through Decimal and are quantized once,
ROUND_HALF_UP, when they become an amount.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # floats only arrive from loosely typed config; go through str to keep the literal
        return Decimal(str(value))
    return Decimal(value)


def to_minor(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def multiply(amount: int, *factors: Number) -> int:
    result = Decimal(amount)
    for f in factors:
        result *= to_decimal(f)
    return to_minor(result)


def divide(amount: int, divisor: Number) -> int:
    divisor = to_decimal(divisor)
    if divisor == 0:
        return 0
    return to_minor(Decimal(amount) / divisor)
