"""
Module: portfolio_engines.normalization
Responsibility:
    Detect monetary values that were stored in millions instead of base
    currency units, and compute their corrected values.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The batch task reads
    ``AmountRow`` values through the ledger and writes back the
    ``FieldCorrection`` values this module plans.

Invariants enforced:
    - Currency rule: ``normalize_amount(x) == x * factor`` iff
      ``0 < x < threshold``; every other value is returned unchanged.
      Repeat application is a no-op for every x with ``x * factor >=
      threshold`` (all x >= 1 under the default configuration).
    - Ratio rule: valuation-impact weights are never currency-rescaled.
      A weight above ``ratio_ceiling`` was scaled like currency by mistake;
      it is divided by ``ratio_factor`` and capped at the ceiling, which
      makes the ratio rule idempotent for every input.
    - Each field of a record is judged on its own.

Failure modes:
    - None.  ``None`` values are left alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.records import AmountRow, LedgerEntity

DEFAULT_THRESHOLD = Decimal("1000000")
DEFAULT_FACTOR = Decimal("1000000")
DEFAULT_RATIO_CEILING = Decimal("1")

# Fields holding a fraction rather than a currency amount.
RATIO_FIELDS: frozenset[tuple[LedgerEntity, str]] = frozenset(
    {(LedgerEntity.MILESTONE, "valuation_impact")}
)


def normalize_amount(
    value: Decimal,
    threshold: Decimal = DEFAULT_THRESHOLD,
    factor: Decimal = DEFAULT_FACTOR,
) -> Decimal:
    """Rescale a currency value that looks like it was stored in millions."""
    if Decimal("0") < value < threshold:
        return value * factor
    return value


def normalize_ratio(
    value: Decimal,
    ceiling: Decimal = DEFAULT_RATIO_CEILING,
    factor: Decimal = DEFAULT_FACTOR,
) -> Decimal:
    """Undo currency scaling wrongly applied to a fractional weight."""
    if value > ceiling:
        return min(value / factor, ceiling)
    return value


@dataclass(frozen=True)
class NormalizationRules:
    threshold: Decimal = DEFAULT_THRESHOLD
    factor: Decimal = DEFAULT_FACTOR
    ratio_ceiling: Decimal = DEFAULT_RATIO_CEILING
    ratio_factor: Decimal = DEFAULT_FACTOR

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError("threshold must be positive")
        if self.factor <= 1 or self.ratio_factor <= 1:
            raise ValueError("rescale factors must exceed 1")
        if self.ratio_ceiling <= 0:
            raise ValueError("ratio_ceiling must be positive")


@dataclass(frozen=True)
class FieldCorrection:
    """One field of one stored record whose value must be rewritten."""

    entity: LedgerEntity
    record_id: UUID
    company_id: UUID
    field: str
    old_value: Decimal
    new_value: Decimal


class UnitNormalizer:
    """Plans per-field corrections for stored amount rows."""

    def __init__(self, rules: NormalizationRules | None = None):
        self._rules = rules or NormalizationRules()

    @property
    def rules(self) -> NormalizationRules:
        return self._rules

    def normalize_field(
        self, entity: LedgerEntity, field: str, value: Decimal,
    ) -> Decimal:
        if (entity, field) in RATIO_FIELDS:
            return normalize_ratio(
                value, self._rules.ratio_ceiling, self._rules.ratio_factor,
            )
        return normalize_amount(value, self._rules.threshold, self._rules.factor)

    @traced_engine("unit_normalizer", "1.0", fingerprint_fields=("row",))
    def plan(self, row: AmountRow) -> tuple[FieldCorrection, ...]:
        corrections = []
        for field, value in row.values.items():
            if value is None:
                continue
            new_value = self.normalize_field(row.entity, field, value)
            if new_value != value:
                corrections.append(
                    FieldCorrection(
                        entity=row.entity,
                        record_id=row.record_id,
                        company_id=row.company_id,
                        field=field,
                        old_value=value,
                        new_value=new_value,
                    )
                )
        return tuple(corrections)
