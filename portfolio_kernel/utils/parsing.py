"""Tolerant numeric parsing for raw company records."""

from decimal import Decimal, InvalidOperation
from typing import Any

_ZERO = Decimal("0")

# Largest decimal exponent a stored amount can carry (Numeric(38, 9)).
_MAX_ADJUSTED_EXPONENT = 28


def _bounded(value: Decimal) -> Decimal:
    if not value.is_finite() or value.adjusted() > _MAX_ADJUSTED_EXPONENT:
        return _ZERO
    return value


def safe_decimal(value: Any) -> Decimal:
    """Parse a number from a raw field; blank, None, garbage and
    out-of-range magnitudes become 0."""
    if value is None or isinstance(value, bool):
        return _ZERO
    if isinstance(value, Decimal):
        return _bounded(value)
    text = str(value).strip().replace(",", "")
    if not text:
        return _ZERO
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return _ZERO
    return _bounded(parsed)


def safe_int(value: Any) -> int:
    """Parse an integer from a raw field, truncating any fraction."""
    return int(safe_decimal(value))
