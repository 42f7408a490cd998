"""
Module: portfolio_engines.rollup
Responsibility:
    Derive a company's ``total_investment`` and ``investor_count`` from its
    investment ledger, and detect stored aggregates that have drifted away
    from it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The reconcile batch task
    reads the ledger, calls ``compute_rollup`` and writes the result back.

Invariants enforced:
    - The rollup is a pure function of the ledger lines: same ledger, same
      rollup, whatever the stored aggregate says.
    - ``investor_count`` counts distinct investor identities.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.records import CompanyAggregate, Investment, RollupFields


@traced_engine("rollup", "1.0")
def compute_rollup(investments: Iterable[Investment]) -> RollupFields:
    total = Decimal("0")
    investors = set()
    for line in investments:
        total += line.amount
        investors.add(line.investor_id)
    return RollupFields(total_investment=total, investor_count=len(investors))


@dataclass(frozen=True)
class RollupDrift:
    """Stored aggregate vs. the rollup of the ledger, for one company."""

    company_id: str
    stored: RollupFields
    computed: RollupFields

    @property
    def has_drift(self) -> bool:
        return (
            self.stored.total_investment != self.computed.total_investment
            or self.stored.investor_count != self.computed.investor_count
        )


def detect_drift(company: CompanyAggregate, computed: RollupFields) -> RollupDrift:
    return RollupDrift(
        company_id=str(company.company_id),
        stored=RollupFields(
            total_investment=company.total_investment,
            investor_count=company.investor_count,
        ),
        computed=computed,
    )
