"""
portfolio_kernel.domain.records -- Frozen ledger record DTOs.

ZERO I/O.  These are the values exchanged between the ledger, the pure
synthesis engines and the batch tasks.  ORM models convert to and from them
via ``to_dto()`` / ``from_dto()``.

Invariants enforced at construction:
    - FundingRound: target > 0, 0 <= raised <= target, start < end.
    - Investment: amount > 0, 0 < ownership_percentage <= 100.
    - Milestone: 0 <= valuation_impact <= 1 once normalized.
    - ValuationSnapshot: new_valuation > previous_valuation (monotonic growth).
    - CompanyAggregate: investor_count >= 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

ZERO = Decimal("0")


class SynthesisKind(str, Enum):
    """Kind of derived record produced by a synthesizer."""

    FUNDING_ROUND = "funding_round"
    INVESTMENT = "investment"
    MILESTONE = "milestone"
    VALUATION_SNAPSHOT = "valuation_snapshot"


class LedgerEntity(str, Enum):
    """Tables whose monetary fields the unit normalizer inspects."""

    COMPANY = "company"
    FUNDING_ROUND = "funding_round"
    INVESTMENT = "investment"
    MILESTONE = "milestone"


class MilestoneType(str, Enum):
    ACQUISITION = "Acquisition"
    REVENUE_TARGET = "Revenue Target"
    PROFITABILITY = "Profitability"
    TEAM_GROWTH = "Team Growth"


class InvestmentType(str, Enum):
    TRADITIONAL = "traditional"
    BLOCKCHAIN = "blockchain"


# =============================================================================
# Company aggregate
# =============================================================================


@dataclass(frozen=True)
class CompanyProvenance:
    """Raw figures the company was loaded with.

    ``total_funding`` is in base currency units.  ``revenue`` and ``profit``
    stay in the reporting unit of the source (millions).
    """

    industry: str = "Technology"
    employees: int = 0
    founded_year: int | None = None
    headquarters: str | None = None
    revenue: Decimal = ZERO
    profit: Decimal = ZERO
    acquisitions: int = 0
    funding_round_count: int = 0
    total_funding: Decimal = ZERO
    latest_round_label: str | None = None


@dataclass(frozen=True)
class CompanyAggregate:
    """Top-level record holding a company's summary financial figures."""

    company_id: UUID
    name: str
    valuation: Decimal
    total_investment: Decimal
    investor_count: int
    owner_id: UUID
    provenance: CompanyProvenance = field(default_factory=CompanyProvenance)
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.investor_count < 0:
            raise ValueError(
                f"investor_count must be >= 0, got {self.investor_count}"
            )


@dataclass(frozen=True)
class RollupFields:
    """Aggregate fields derived from the investment ledger."""

    total_investment: Decimal
    investor_count: int

    def as_fields(self) -> dict[str, Decimal | int]:
        return {
            "total_investment": self.total_investment,
            "investor_count": self.investor_count,
        }


# =============================================================================
# Derived records
# =============================================================================


@dataclass(frozen=True)
class FundingRound:
    company_id: UUID
    ordinal: int
    round_name: str
    target_amount: Decimal
    raised_amount: Decimal
    valuation_cap: Decimal
    minimum_investment: Decimal
    start_time: datetime
    end_time: datetime
    is_completed: bool = True
    is_active: bool = False
    synthesis_key: str | None = None
    record_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.target_amount <= ZERO:
            raise ValueError("target_amount must be positive")
        if not ZERO <= self.raised_amount <= self.target_amount:
            raise ValueError(
                f"raised_amount {self.raised_amount} outside "
                f"[0, target {self.target_amount}]"
            )
        if self.start_time >= self.end_time:
            raise ValueError("start_time must precede end_time")


@dataclass(frozen=True)
class Investment:
    company_id: UUID
    investor_id: UUID
    amount: Decimal
    ownership_percentage: Decimal
    investment_type: InvestmentType = InvestmentType.TRADITIONAL
    created_at: datetime | None = None
    synthesis_key: str | None = None
    record_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.amount <= ZERO:
            raise ValueError(f"Investment amount must be positive, got {self.amount}")
        if not ZERO < self.ownership_percentage <= Decimal("100"):
            raise ValueError(
                f"ownership_percentage {self.ownership_percentage} outside (0, 100]"
            )


@dataclass(frozen=True)
class Milestone:
    company_id: UUID
    milestone_type: MilestoneType
    description: str
    valuation_impact: Decimal
    verified: bool = True
    verified_at: datetime | None = None
    created_at: datetime | None = None
    synthesis_key: str | None = None
    record_id: UUID | None = None

    def __post_init__(self) -> None:
        if not ZERO <= self.valuation_impact <= Decimal("1"):
            raise ValueError(
                f"valuation_impact {self.valuation_impact} is not a fraction"
            )


@dataclass(frozen=True)
class ValuationSnapshot:
    company_id: UUID
    previous_valuation: Decimal
    new_valuation: Decimal
    change_reason: str
    created_at: datetime | None = None
    synthesis_key: str | None = None
    record_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.new_valuation <= self.previous_valuation:
            raise ValueError(
                f"new_valuation {self.new_valuation} must exceed "
                f"previous_valuation {self.previous_valuation}"
            )


@dataclass(frozen=True)
class AmountRow:
    """Monetary fields of one stored record, as read by the unit normalizer."""

    entity: LedgerEntity
    record_id: UUID
    company_id: UUID
    values: dict[str, Decimal | None] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.entity.value}:{self.record_id}"


# Monetary and ratio columns per table, in the order the normalizer visits them.
AMOUNT_FIELDS: dict[LedgerEntity, tuple[str, ...]] = {
    LedgerEntity.COMPANY: ("valuation", "total_investment", "total_funding"),
    LedgerEntity.FUNDING_ROUND: ("target_amount", "raised_amount"),
    LedgerEntity.INVESTMENT: ("amount",),
    LedgerEntity.MILESTONE: ("valuation_impact",),
}
