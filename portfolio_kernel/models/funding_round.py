"""
ORM model for funding rounds.

Invariants enforced:
    - ``target_amount > 0`` (CHECK).
    - ``start_time < end_time`` (CHECK).
    - ``0 <= raised_amount <= target_amount`` (CHECK).
    - ``synthesis_key`` is UNIQUE; NULL for rounds written outside synthesis.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_kernel.db.base import Base, UUIDString
from portfolio_kernel.domain.records import FundingRound


class FundingRoundModel(Base):
    """Persistent funding round belonging to one company."""

    __tablename__ = "funding_rounds"

    __table_args__ = (
        CheckConstraint("target_amount > 0", name="ck_funding_rounds_target"),
        CheckConstraint("start_time < end_time", name="ck_funding_rounds_window"),
        CheckConstraint(
            "raised_amount >= 0 AND raised_amount <= target_amount",
            name="ck_funding_rounds_raised",
        ),
        Index("ix_funding_rounds_company", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    round_name: Mapped[str] = mapped_column(String(100), nullable=False)
    target_amount: Mapped[Decimal] = mapped_column(nullable=False)
    raised_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    valuation_cap: Mapped[Decimal | None] = mapped_column(nullable=True)
    minimum_investment: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("100"))
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    synthesis_key: Mapped[str | None] = mapped_column(
        String(200), nullable=True, unique=True,
    )

    def to_dto(self) -> FundingRound:
        return FundingRound(
            company_id=self.company_id,
            ordinal=self.ordinal,
            round_name=self.round_name,
            target_amount=self.target_amount,
            raised_amount=self.raised_amount,
            valuation_cap=self.valuation_cap,
            minimum_investment=self.minimum_investment,
            start_time=self.start_time,
            end_time=self.end_time,
            is_completed=self.is_completed,
            is_active=self.is_active,
            synthesis_key=self.synthesis_key,
            record_id=self.id,
        )

    @classmethod
    def from_dto(cls, dto: FundingRound) -> FundingRoundModel:
        return cls(
            company_id=dto.company_id,
            ordinal=dto.ordinal,
            round_name=dto.round_name,
            target_amount=dto.target_amount,
            raised_amount=dto.raised_amount,
            valuation_cap=dto.valuation_cap,
            minimum_investment=dto.minimum_investment,
            start_time=dto.start_time,
            end_time=dto.end_time,
            is_active=dto.is_active,
            is_completed=dto.is_completed,
            synthesis_key=dto.synthesis_key,
        )
