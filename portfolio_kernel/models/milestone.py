"""
ORM model for company milestones.

``valuation_impact`` is a ratio, not currency.  Legacy rows may hold it
currency-scaled; ``to_dto()`` therefore only works on normalized rows and
the unit normalizer reads the raw column instead.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_kernel.db.base import Base, UUIDString
from portfolio_kernel.domain.records import Milestone, MilestoneType


class MilestoneModel(Base):
    __tablename__ = "milestones"

    __table_args__ = (
        Index("ix_milestones_company", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    milestone_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    valuation_impact: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    synthesis_key: Mapped[str | None] = mapped_column(
        String(200), nullable=True, unique=True,
    )

    def to_dto(self) -> Milestone:
        return Milestone(
            company_id=self.company_id,
            milestone_type=MilestoneType(self.milestone_type),
            description=self.description,
            valuation_impact=self.valuation_impact,
            verified=self.verified,
            verified_at=self.verified_at,
            created_at=self.created_at,
            synthesis_key=self.synthesis_key,
            record_id=self.id,
        )

    @classmethod
    def from_dto(cls, dto: Milestone) -> MilestoneModel:
        model = cls(
            company_id=dto.company_id,
            milestone_type=dto.milestone_type.value,
            description=dto.description,
            valuation_impact=dto.valuation_impact,
            verified=dto.verified,
            verified_at=dto.verified_at,
            synthesis_key=dto.synthesis_key,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model
