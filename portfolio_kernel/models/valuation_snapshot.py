"""
ORM model for valuation history.

Invariants enforced:
    - ``new_valuation > previous_valuation`` (CHECK): valuations only grow.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_kernel.db.base import Base, UUIDString
from portfolio_kernel.domain.records import ValuationSnapshot


class ValuationSnapshotModel(Base):
    __tablename__ = "valuation_history"

    __table_args__ = (
        CheckConstraint(
            "new_valuation > previous_valuation",
            name="ck_valuation_history_growth",
        ),
        Index("ix_valuation_history_company", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    previous_valuation: Mapped[Decimal] = mapped_column(nullable=False)
    new_valuation: Mapped[Decimal] = mapped_column(nullable=False)
    change_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    synthesis_key: Mapped[str | None] = mapped_column(
        String(200), nullable=True, unique=True,
    )

    def to_dto(self) -> ValuationSnapshot:
        return ValuationSnapshot(
            company_id=self.company_id,
            previous_valuation=self.previous_valuation,
            new_valuation=self.new_valuation,
            change_reason=self.change_reason or "",
            created_at=self.created_at,
            synthesis_key=self.synthesis_key,
            record_id=self.id,
        )

    @classmethod
    def from_dto(cls, dto: ValuationSnapshot) -> ValuationSnapshotModel:
        model = cls(
            company_id=dto.company_id,
            previous_valuation=dto.previous_valuation,
            new_valuation=dto.new_valuation,
            change_reason=dto.change_reason,
            synthesis_key=dto.synthesis_key,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model
