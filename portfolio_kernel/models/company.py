"""
ORM model for company aggregates.

Contract:
    CompanyModel persists the top-level company record together with the raw
    provenance figures it was loaded with.  ``to_dto()`` returns a frozen
    ``CompanyAggregate``.

Invariants enforced:
    - ``name`` is UNIQUE.
    - ``investor_count >= 0`` (CHECK).
    - ``total_investment`` / ``investor_count`` are written only by the
      rollup reconciler and the unit normalizer.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_kernel.db.base import TrackedBase, UUIDString
from portfolio_kernel.domain.records import CompanyAggregate, CompanyProvenance


class CompanyModel(TrackedBase):
    """Persistent company aggregate."""

    __tablename__ = "companies"

    __table_args__ = (
        CheckConstraint("investor_count >= 0", name="ck_companies_investor_count"),
        Index("ix_companies_industry", "industry"),
        Index("ix_companies_owner", "owner_id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    industry: Mapped[str] = mapped_column(String(100), nullable=False, default="Technology")
    valuation: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_investment: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    investor_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Provenance
    employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    founded_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    headquarters: Mapped[str | None] = mapped_column(String(255), nullable=True)
    revenue: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    profit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    acquisitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    funding_round_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_funding: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    latest_round_label: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self) -> CompanyAggregate:
        return CompanyAggregate(
            company_id=self.id,
            name=self.name,
            valuation=self.valuation,
            total_investment=self.total_investment,
            investor_count=self.investor_count,
            owner_id=self.owner_id,
            is_active=self.is_active,
            provenance=CompanyProvenance(
                industry=self.industry,
                employees=self.employees,
                founded_year=self.founded_year,
                headquarters=self.headquarters,
                revenue=self.revenue,
                profit=self.profit,
                acquisitions=self.acquisitions,
                funding_round_count=self.funding_round_count,
                total_funding=self.total_funding,
                latest_round_label=self.latest_round_label,
            ),
        )

    @classmethod
    def from_dto(cls, dto: CompanyAggregate, description: str = "") -> CompanyModel:
        p = dto.provenance
        return cls(
            id=dto.company_id,
            name=dto.name,
            description=description,
            industry=p.industry,
            valuation=dto.valuation,
            total_investment=dto.total_investment,
            investor_count=dto.investor_count,
            owner_id=dto.owner_id,
            is_active=dto.is_active,
            employees=p.employees,
            founded_year=p.founded_year,
            headquarters=p.headquarters,
            revenue=p.revenue,
            profit=p.profit,
            acquisitions=p.acquisitions,
            funding_round_count=p.funding_round_count,
            total_funding=p.total_funding,
            latest_round_label=p.latest_round_label,
        )
