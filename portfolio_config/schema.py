"""
Synthesis settings schema.

The human-authored, reviewable source of every tunable constant used by
synthesis and batch processing.  YAML files are parsed into these frozen
types by the loader; ``portfolio_config.bridges`` turns them into the rule
objects the engines consume.  Every default reproduces the behaviour of the
reference dataset, so an empty file is a valid configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

# ---------------------------------------------------------------------------
# Engine sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizerSettings:
    threshold: Decimal = Decimal("1000000")
    factor: Decimal = Decimal("1000000")
    ratio_ceiling: Decimal = Decimal("1")
    ratio_factor: Decimal = Decimal("1000000")


@dataclass(frozen=True)
class RoundSettings:
    labels: tuple[str, ...] = (
        "Pre-Seed", "Seed", "Series A", "Series B", "Series C", "Growth",
    )
    default_latest_label: str = "Seed"
    raised_ratio: tuple[Decimal, Decimal] = (Decimal("0.7"), Decimal("1.0"))
    cap_ratio: tuple[Decimal, Decimal] = (Decimal("3.0"), Decimal("5.0"))
    minimum_investment_floor: Decimal = Decimal("1000")
    minimum_investment_rate: Decimal = Decimal("0.001")
    start_window: tuple[date, date] = (date(2020, 1, 1), date(2023, 12, 31))
    end_window: tuple[date, date] = (date(2023, 1, 1), date(2024, 12, 31))


@dataclass(frozen=True)
class InvestmentSettings:
    investors_per_round: int = 2
    max_investors: int = 10
    ownership_cap: Decimal = Decimal("15")
    investment_type: str = "traditional"
    created_window: tuple[date, date] = (date(2020, 1, 1), date(2024, 12, 31))


@dataclass(frozen=True)
class MilestoneSettings:
    acquisition_impact: Decimal = Decimal("0.10")
    revenue_threshold: Decimal = Decimal("100")
    revenue_high_impact: Decimal = Decimal("0.20")
    revenue_low_impact: Decimal = Decimal("0.10")
    profitability_impact: Decimal = Decimal("0.25")
    team_growth_impact: Decimal = Decimal("0.05")
    team_bands: tuple[tuple[int, str], ...] = ((500, "500+"), (100, "100+"), (50, "50+"))
    acquisition_window: tuple[date, date] = (date(2021, 1, 1), date(2023, 12, 31))
    team_window: tuple[date, date] = (date(2022, 1, 1), date(2023, 12, 31))
    fiscal_year_close: date = date(2023, 3, 31)


@dataclass(frozen=True)
class ValuationSettings:
    seed_fraction: Decimal = Decimal("0.1")
    growth_ratio: tuple[Decimal, Decimal] = (Decimal("1.5"), Decimal("2.5"))
    base_year: int = 2020


# ---------------------------------------------------------------------------
# Runtime sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchSettings:
    """Chunking and pacing of a synthesis run."""

    chunk_size: int = 50
    delay_seconds: float = 0.2
    seed: int | None = None
    top_n: int = 5


@dataclass(frozen=True)
class IntakeSettings:
    """Company loader settings.  ``owner_id`` None means a fresh UUID per run."""

    chunk_size: int = 50
    delay_seconds: float = 0.2
    funding_unit_factor: Decimal = Decimal("1000000")
    owner_id: str | None = None


@dataclass(frozen=True)
class SynthesisSettings:
    """Root settings object returned by ``get_active_settings()``."""

    normalizer: NormalizerSettings = field(default_factory=NormalizerSettings)
    rounds: RoundSettings = field(default_factory=RoundSettings)
    investments: InvestmentSettings = field(default_factory=InvestmentSettings)
    milestones: MilestoneSettings = field(default_factory=MilestoneSettings)
    valuation: ValuationSettings = field(default_factory=ValuationSettings)
    batch: BatchSettings = field(default_factory=BatchSettings)
    intake: IntakeSettings = field(default_factory=IntakeSettings)
    source: str = "<defaults>"
    checksum: str = ""
