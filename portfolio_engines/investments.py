"""
Module: portfolio_engines.investments
Responsibility:
    Synthesize the investment ledger lines that back a company's total
    funding.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - No investments when the round count or the total funding is zero.
    - ``min(2n, max_investors)`` lines whose amounts sum to the total.
    - ``0 < ownership_percentage <= ownership_cap``; a non-positive
      valuation yields the cap.
    - Every line uses the investor identity returned by the injected
      ``InvestorIdentity`` (the company's placeholder owner by default).

Failure modes:
    - SynthesisInvariantError when a line fails DTO validation.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from portfolio_engines.sampling import SynthesisRandom
from portfolio_engines.splitting import SplitFunction, even_split
from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.records import (
    CompanyAggregate,
    Investment,
    InvestmentType,
    SynthesisKind,
)
from portfolio_kernel.exceptions import SynthesisInvariantError
from portfolio_kernel.utils.idempotency import generate_synthesis_key

# (company, ordinal) -> investor id
InvestorIdentity = Callable[[CompanyAggregate, int], UUID]

OWNERSHIP_QUANTUM = Decimal("0.0001")
HUNDRED = Decimal("100")


def placeholder_investor(company: CompanyAggregate, ordinal: int) -> UUID:
    return company.owner_id


def ownership_percentage(
    amount: Decimal, valuation: Decimal, cap: Decimal,
) -> Decimal:
    """``amount / valuation * 100`` clamped to ``(0, cap]``."""
    if valuation <= 0:
        return cap
    pct = (amount / valuation * HUNDRED).quantize(
        OWNERSHIP_QUANTUM, rounding=ROUND_HALF_UP,
    )
    return min(max(pct, OWNERSHIP_QUANTUM), cap)


@dataclass(frozen=True)
class InvestmentRules:
    investors_per_round: int = 2
    max_investors: int = 10
    ownership_cap: Decimal = Decimal("15")
    investment_type: InvestmentType = InvestmentType.TRADITIONAL
    created_window: tuple[datetime, datetime] = (
        datetime(2020, 1, 1, tzinfo=timezone.utc),
        datetime(2024, 12, 31, tzinfo=timezone.utc),
    )

    def __post_init__(self) -> None:
        if self.investors_per_round < 1 or self.max_investors < 1:
            raise ValueError("investor counts must be >= 1")
        if not Decimal("0") < self.ownership_cap <= HUNDRED:
            raise ValueError("ownership_cap must be within (0, 100]")

    def investor_count(self, rounds: int) -> int:
        return min(self.investors_per_round * rounds, self.max_investors)


class InvestmentSynthesizer:
    """Generates ``Investment`` ledger lines for one company."""

    kind = SynthesisKind.INVESTMENT

    def __init__(
        self,
        rules: InvestmentRules | None = None,
        split: SplitFunction = even_split,
        investor_identity: InvestorIdentity = placeholder_investor,
        seed: int | str | None = None,
    ):
        self._rules = rules or InvestmentRules()
        self._split = split
        self._investor_identity = investor_identity
        self._seed = seed

    @traced_engine("investments", "1.0", fingerprint_fields=("company",))
    def synthesize(
        self,
        company: CompanyAggregate,
        rng: SynthesisRandom | None = None,
    ) -> tuple[Investment, ...]:
        n = company.provenance.funding_round_count
        total = company.provenance.total_funding
        if n <= 0 or total <= 0:
            return ()

        rng = rng or SynthesisRandom.for_key(self._seed, self.kind, company.company_id)
        rules = self._rules
        amounts = self._split(total, rules.investor_count(n))

        lines = []
        for ordinal, amount in enumerate(amounts, start=1):
            try:
                lines.append(
                    Investment(
                        company_id=company.company_id,
                        investor_id=self._investor_identity(company, ordinal),
                        amount=amount,
                        ownership_percentage=ownership_percentage(
                            amount, company.valuation, rules.ownership_cap,
                        ),
                        investment_type=rules.investment_type,
                        created_at=rng.timestamp_between(*rules.created_window),
                        synthesis_key=generate_synthesis_key(
                            self.kind, company.company_id, ordinal,
                        ),
                    )
                )
            except ValueError as exc:
                raise SynthesisInvariantError(
                    self.kind.value, str(company.company_id), str(exc),
                ) from exc
        return tuple(lines)
