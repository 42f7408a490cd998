"""
Module: portfolio_engines.milestones
Responsibility:
    Derive verified milestones from a company's provenance figures
    (acquisitions, revenue, profit, head count).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - One Acquisition milestone per acquisition.
    - At most one Revenue Target, one Profitability and one Team Growth
      milestone.
    - Every weight is a fraction in [0, 1].
    - A company with nothing to report yields an empty tuple.

Failure modes:
    - SynthesisInvariantError when a milestone fails DTO validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from portfolio_engines.sampling import SynthesisRandom
from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.records import (
    CompanyAggregate,
    Milestone,
    MilestoneType,
    SynthesisKind,
)
from portfolio_kernel.exceptions import SynthesisInvariantError
from portfolio_kernel.utils.idempotency import generate_synthesis_key


def _utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def _millions(value: Decimal) -> str:
    return f"{value.normalize():f}"


@dataclass(frozen=True)
class MilestoneRules:
    acquisition_impact: Decimal = Decimal("0.10")
    revenue_threshold: Decimal = Decimal("100")
    revenue_high_impact: Decimal = Decimal("0.20")
    revenue_low_impact: Decimal = Decimal("0.10")
    profitability_impact: Decimal = Decimal("0.25")
    team_growth_impact: Decimal = Decimal("0.05")
    # (head count that must be strictly exceeded, band label), highest first
    team_bands: tuple[tuple[int, str], ...] = ((500, "500+"), (100, "100+"), (50, "50+"))
    acquisition_window: tuple[datetime, datetime] = (_utc(2021, 1, 1), _utc(2023, 12, 31))
    team_window: tuple[datetime, datetime] = (_utc(2022, 1, 1), _utc(2023, 12, 31))
    fiscal_year_close: datetime = _utc(2023, 3, 31)

    def __post_init__(self) -> None:
        weights = (
            self.acquisition_impact,
            self.revenue_high_impact,
            self.revenue_low_impact,
            self.profitability_impact,
            self.team_growth_impact,
        )
        if any(not Decimal("0") <= w <= Decimal("1") for w in weights):
            raise ValueError("milestone weights must be fractions in [0, 1]")
        thresholds = [t for t, _ in self.team_bands]
        if thresholds != sorted(thresholds, reverse=True):
            raise ValueError("team_bands must be ordered from highest threshold")

    def team_band(self, employees: int) -> str | None:
        for threshold, label in self.team_bands:
            if employees > threshold:
                return label
        return None


class MilestoneSynthesizer:
    """Generates ``Milestone`` records for one company."""

    kind = SynthesisKind.MILESTONE

    def __init__(
        self,
        rules: MilestoneRules | None = None,
        seed: int | str | None = None,
    ):
        self._rules = rules or MilestoneRules()
        self._seed = seed

    @traced_engine("milestones", "1.0", fingerprint_fields=("company",))
    def synthesize(
        self,
        company: CompanyAggregate,
        rng: SynthesisRandom | None = None,
    ) -> tuple[Milestone, ...]:
        rng = rng or SynthesisRandom.for_key(self._seed, self.kind, company.company_id)
        rules = self._rules
        p = company.provenance

        # (type, description, weight, verified_at)
        drafts: list[tuple[MilestoneType, str, Decimal, datetime]] = []

        for k in range(1, p.acquisitions + 1):
            drafts.append((
                MilestoneType.ACQUISITION,
                f"Successfully completed acquisition #{k}",
                rules.acquisition_impact,
                rng.timestamp_between(*rules.acquisition_window),
            ))

        if p.revenue > 0:
            weight = (
                rules.revenue_high_impact
                if p.revenue > rules.revenue_threshold
                else rules.revenue_low_impact
            )
            drafts.append((
                MilestoneType.REVENUE_TARGET,
                f"Achieved ₹{_millions(p.revenue)}M revenue in FY 2022-23",
                weight,
                rules.fiscal_year_close,
            ))

        if p.profit > 0:
            drafts.append((
                MilestoneType.PROFITABILITY,
                f"Achieved profitability with ₹{_millions(p.profit)}M profit",
                rules.profitability_impact,
                rules.fiscal_year_close,
            ))

        band = rules.team_band(p.employees)
        if band is not None:
            drafts.append((
                MilestoneType.TEAM_GROWTH,
                f"Scaled team to {band} employees",
                rules.team_growth_impact,
                rng.timestamp_between(*rules.team_window),
            ))

        milestones = []
        for ordinal, (mtype, description, weight, verified_at) in enumerate(drafts, start=1):
            try:
                milestones.append(
                    Milestone(
                        company_id=company.company_id,
                        milestone_type=mtype,
                        description=description,
                        valuation_impact=weight,
                        verified=True,
                        verified_at=verified_at,
                        created_at=verified_at,
                        synthesis_key=generate_synthesis_key(
                            self.kind, company.company_id, ordinal,
                        ),
                    )
                )
            except ValueError as exc:
                raise SynthesisInvariantError(
                    self.kind.value, str(company.company_id), str(exc),
                ) from exc
        return tuple(milestones)
