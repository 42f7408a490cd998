"""
portfolio_engines.splitting -- Dividing a total across n parts.

``SplitFunction`` is the pluggable policy the round and investment
synthesizers use to divide a company's total funding.  ``even_split`` is the
default: equal shares rounded down to the quantum, with the rounding
remainder assigned to the last share so the parts always sum to the total.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import ROUND_DOWN, Decimal

SplitFunction = Callable[[Decimal, int], tuple[Decimal, ...]]

CENT = Decimal("0.01")


def even_split(total: Decimal, parts: int, quantum: Decimal = CENT) -> tuple[Decimal, ...]:
    """
    Split ``total`` into ``parts`` near-equal shares.

    Guarantees:
        - ``sum(result) == total`` exactly.
        - All shares but the last are equal; the last carries the remainder.

    Raises:
        ValueError: ``parts`` < 1.
    """
    if parts < 1:
        raise ValueError(f"cannot split into {parts} parts")
    share = (total / parts).quantize(quantum, rounding=ROUND_DOWN)
    head = [share] * (parts - 1)
    return tuple(head) + (total - share * (parts - 1),)
