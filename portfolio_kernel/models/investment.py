"""
ORM model for the investment ledger.

The investment table is the sole source of truth for a company's
``total_investment`` and ``investor_count`` rollups.

Invariants enforced:
    - ``amount > 0`` (CHECK).
    - ``ownership_percentage`` within (0, 100] (CHECK).
    - ``synthesis_key`` is UNIQUE; NULL for investments from other writers.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_kernel.db.base import Base, UUIDString
from portfolio_kernel.domain.records import Investment, InvestmentType


class InvestmentModel(Base):
    """One ledger line: an investor's stake in a company."""

    __tablename__ = "investments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_investments_amount"),
        CheckConstraint(
            "ownership_percentage > 0 AND ownership_percentage <= 100",
            name="ck_investments_ownership",
        ),
        Index("ix_investments_company", "company_id"),
        Index("ix_investments_investor", "investor_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    investor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    ownership_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    investment_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvestmentType.TRADITIONAL.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    synthesis_key: Mapped[str | None] = mapped_column(
        String(200), nullable=True, unique=True,
    )

    def to_dto(self) -> Investment:
        return Investment(
            company_id=self.company_id,
            investor_id=self.investor_id,
            amount=self.amount,
            ownership_percentage=self.ownership_percentage,
            investment_type=InvestmentType(self.investment_type),
            created_at=self.created_at,
            synthesis_key=self.synthesis_key,
            record_id=self.id,
        )

    @classmethod
    def from_dto(cls, dto: Investment) -> InvestmentModel:
        model = cls(
            company_id=dto.company_id,
            investor_id=dto.investor_id,
            amount=dto.amount,
            ownership_percentage=dto.ownership_percentage,
            investment_type=dto.investment_type.value,
            synthesis_key=dto.synthesis_key,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model
