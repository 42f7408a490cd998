"""Utility modules for the portfolio kernel."""

from portfolio_kernel.utils.idempotency import generate_synthesis_key
from portfolio_kernel.utils.parsing import safe_decimal, safe_int

__all__ = [
    "generate_synthesis_key",
    "safe_decimal",
    "safe_int",
]
