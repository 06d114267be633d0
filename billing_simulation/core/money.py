"""
Currency helpers.

Bills are stored as floats (they travel through JSON) but every rounding
decision goes through Decimal with ROUND_HALF_UP so that 2.675 → 2.68 and
health scores of 50.5 → 51, matching what a billing office would print.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

_CENT = Decimal("0.01")


def round_currency(value: float) -> float:
    """Round to cents, half-up."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, half-up."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sum_currency(values: Iterable[float]) -> float:
    total = Decimal("0")
    for value in values:
        total += Decimal(str(value))
    return float(total.quantize(_CENT, rounding=ROUND_HALF_UP))


def format_money(value: float) -> str:
    return f"${value:,.2f}"
