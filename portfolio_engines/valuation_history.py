"""
Module: portfolio_engines.valuation_history
Responsibility:
    Synthesize a strictly increasing valuation history, one snapshot per
    funding round, starting from a tenth of the current valuation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - No snapshots when the round count is zero or the valuation is not
      positive.
    - ``new > previous`` for every snapshot, and each snapshot's previous
      valuation equals the prior snapshot's new valuation.
    - Snapshot k is dated inside calendar year ``base_year + k - 1``.

Failure modes:
    - SynthesisInvariantError when rounding to cents erases the growth
      (valuations below a few cents).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from portfolio_engines.sampling import SynthesisRandom
from portfolio_engines.splitting import CENT
from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.records import (
    CompanyAggregate,
    SynthesisKind,
    ValuationSnapshot,
)
from portfolio_kernel.exceptions import SynthesisInvariantError
from portfolio_kernel.utils.idempotency import generate_synthesis_key


@dataclass(frozen=True)
class ValuationRules:
    seed_fraction: Decimal = Decimal("0.1")
    growth_ratio: tuple[Decimal, Decimal] = (Decimal("1.5"), Decimal("2.5"))
    base_year: int = 2020

    def __post_init__(self) -> None:
        if self.growth_ratio[0] <= Decimal("1"):
            raise ValueError("growth ratio must stay above 1 for monotonic growth")
        if not Decimal("0") < self.seed_fraction:
            raise ValueError("seed_fraction must be positive")

    def year_window(self, ordinal: int) -> tuple[datetime, datetime]:
        year = self.base_year + ordinal - 1
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc) - timedelta(seconds=1)
        return start, end


class ValuationHistorySynthesizer:
    """Generates ``ValuationSnapshot`` records for one company."""

    kind = SynthesisKind.VALUATION_SNAPSHOT

    def __init__(
        self,
        rules: ValuationRules | None = None,
        seed: int | str | None = None,
    ):
        self._rules = rules or ValuationRules()
        self._seed = seed

    @traced_engine("valuation_history", "1.0", fingerprint_fields=("company",))
    def synthesize(
        self,
        company: CompanyAggregate,
        rng: SynthesisRandom | None = None,
    ) -> tuple[ValuationSnapshot, ...]:
        n = company.provenance.funding_round_count
        if n <= 0 or company.valuation <= 0:
            return ()

        rng = rng or SynthesisRandom.for_key(self._seed, self.kind, company.company_id)
        rules = self._rules
        previous = (company.valuation * rules.seed_fraction).quantize(
            CENT, rounding=ROUND_HALF_UP,
        )

        snapshots = []
        for ordinal in range(1, n + 1):
            new = (previous * rng.ratio(*rules.growth_ratio)).quantize(
                CENT, rounding=ROUND_HALF_UP,
            )
            try:
                snapshots.append(
                    ValuationSnapshot(
                        company_id=company.company_id,
                        previous_valuation=previous,
                        new_valuation=new,
                        change_reason=f"Funding Round {ordinal}",
                        created_at=rng.timestamp_between(*rules.year_window(ordinal)),
                        synthesis_key=generate_synthesis_key(
                            self.kind, company.company_id, ordinal,
                        ),
                    )
                )
            except ValueError as exc:
                raise SynthesisInvariantError(
                    self.kind.value, str(company.company_id), str(exc),
                ) from exc
            previous = new
        return tuple(snapshots)
