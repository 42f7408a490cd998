"""
SqlAlchemyLedger -- ``Ledger`` implementation over a SQLAlchemy Session.

Contract:
    Every read and write runs inside its own SAVEPOINT.  A database error
    rolls back that savepoint only, leaving the enclosing unit of work usable,
    and is re-raised as ``PersistenceError`` naming the operation and company.

    ``delete_synthesized`` only removes rows carrying a ``synthesis_key``;
    rows written by any other writer (NULL key) are never touched.

    ``checkpoint()`` commits the session.  Nothing else in this class commits.

Failure modes:
    - FatalSetupError from ``ping()`` when the database cannot be reached.
    - PersistenceError from every other method on a database error, or when
      a company to update does not exist.
    - ValueError for programming errors (unknown field, foreign company id
      in an insert batch).
"""

from __future__ import annotations

from collections.abc import Generator, Mapping, Sequence
from contextlib import contextmanager
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction

from portfolio_kernel.domain.clock import Clock, SystemClock
from portfolio_kernel.domain.records import (
    AMOUNT_FIELDS,
    AmountRow,
    CompanyAggregate,
    FundingRound,
    Investment,
    LedgerEntity,
    Milestone,
    SynthesisKind,
    ValuationSnapshot,
)
from portfolio_kernel.exceptions import FatalSetupError, PersistenceError
from portfolio_kernel.ledger import WRITABLE_COMPANY_FIELDS, CompanyFilter
from portfolio_kernel.logging_config import get_logger
from portfolio_kernel.models import (
    CompanyModel,
    FundingRoundModel,
    InvestmentModel,
    MilestoneModel,
    ValuationSnapshotModel,
)

logger = get_logger("services.ledger")

_ENTITY_MODELS: dict[LedgerEntity, type] = {
    LedgerEntity.COMPANY: CompanyModel,
    LedgerEntity.FUNDING_ROUND: FundingRoundModel,
    LedgerEntity.INVESTMENT: InvestmentModel,
    LedgerEntity.MILESTONE: MilestoneModel,
}

_SYNTHESIZED_MODELS: dict[SynthesisKind, type] = {
    SynthesisKind.FUNDING_ROUND: FundingRoundModel,
    SynthesisKind.INVESTMENT: InvestmentModel,
    SynthesisKind.MILESTONE: MilestoneModel,
    SynthesisKind.VALUATION_SNAPSHOT: ValuationSnapshotModel,
}


class SqlAlchemyLedger:
    """
    Relational ledger of companies and their derived records.

    Args:
        session: The session all reads and writes go through.  The caller
            owns its lifetime.
        clock: Used to stamp ``updated_at`` on aggregate writes.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _guarded(
        self, operation: str, company_id: UUID | None = None,
    ) -> Generator[None, None, None]:
        """Run the block in a SAVEPOINT and translate database errors."""
        try:
            with self._session.begin_nested():
                yield
                self._session.flush()
        except SQLAlchemyError as exc:
            detail = str(getattr(exc, "orig", None) or exc)
            logger.warning(
                "ledger_operation_failed",
                extra={
                    "operation": operation,
                    "company_id": str(company_id) if company_id else None,
                    "detail": detail,
                },
            )
            raise PersistenceError(
                operation,
                detail,
                company_id=str(company_id) if company_id else None,
            ) from exc

    def _insert(
        self,
        operation: str,
        company_id: UUID,
        records: Sequence[Any],
        model_cls: type,
    ) -> int:
        for record in records:
            if record.company_id != company_id:
                raise ValueError(
                    f"{operation}: record for company {record.company_id} "
                    f"in batch for company {company_id}"
                )
        if not records:
            return 0
        with self._guarded(operation, company_id):
            self._session.add_all([model_cls.from_dto(r) for r in records])
        logger.debug(
            "ledger_records_inserted",
            extra={
                "operation": operation,
                "company_id": str(company_id),
                "count": len(records),
            },
        )
        return len(records)

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def ping(self) -> None:
        try:
            self._session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error("ledger_unreachable", extra={"detail": str(exc)})
            raise FatalSetupError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Companies and investments
    # ------------------------------------------------------------------

    def read_companies(
        self, company_filter: CompanyFilter | None = None,
    ) -> list[CompanyAggregate]:
        f = company_filter or CompanyFilter()
        stmt = select(CompanyModel).order_by(CompanyModel.name)
        if f.company_ids:
            stmt = stmt.where(CompanyModel.id.in_(f.company_ids))
        if f.names:
            stmt = stmt.where(CompanyModel.name.in_(f.names))
        if f.active_only:
            stmt = stmt.where(CompanyModel.is_active.is_(True))
        if f.limit is not None:
            stmt = stmt.limit(f.limit)

        with self._guarded("read_companies"):
            models = self._session.scalars(stmt).all()
        return [m.to_dto() for m in models]

    def read_investments(self, company_id: UUID) -> list[Investment]:
        stmt = (
            select(InvestmentModel)
            .where(InvestmentModel.company_id == company_id)
            .order_by(InvestmentModel.created_at, InvestmentModel.id)
        )
        with self._guarded("read_investments", company_id):
            models = self._session.scalars(stmt).all()
        return [m.to_dto() for m in models]

    def write_company_aggregate(
        self, company_id: UUID, fields: Mapping[str, Decimal | int],
    ) -> None:
        unknown = set(fields) - WRITABLE_COMPANY_FIELDS
        if unknown:
            raise ValueError(
                f"Not writable on a company aggregate: {sorted(unknown)}"
            )
        with self._guarded("write_company_aggregate", company_id):
            company = self._session.get(CompanyModel, company_id)
            if company is None:
                raise PersistenceError(
                    "write_company_aggregate",
                    "company not found",
                    company_id=str(company_id),
                )
            for name, value in fields.items():
                setattr(company, name, value)
            company.updated_at = self._clock.now()

    def top_companies_by_investment(self, limit: int = 5) -> list[CompanyAggregate]:
        stmt = (
            select(CompanyModel)
            .order_by(CompanyModel.total_investment.desc(), CompanyModel.name)
            .limit(limit)
        )
        with self._guarded("top_companies_by_investment"):
            models = self._session.scalars(stmt).all()
        return [m.to_dto() for m in models]

    # ------------------------------------------------------------------
    # Derived records
    # ------------------------------------------------------------------

    def insert_rounds(
        self, company_id: UUID, records: Sequence[FundingRound],
    ) -> int:
        return self._insert("insert_rounds", company_id, records, FundingRoundModel)

    def insert_investments(
        self, company_id: UUID, records: Sequence[Investment],
    ) -> int:
        return self._insert(
            "insert_investments", company_id, records, InvestmentModel,
        )

    def insert_milestones(
        self, company_id: UUID, records: Sequence[Milestone],
    ) -> int:
        return self._insert("insert_milestones", company_id, records, MilestoneModel)

    def insert_valuation_snapshots(
        self, company_id: UUID, records: Sequence[ValuationSnapshot],
    ) -> int:
        return self._insert(
            "insert_valuation_snapshots",
            company_id,
            records,
            ValuationSnapshotModel,
        )

    def delete_synthesized(self, company_id: UUID, kind: SynthesisKind) -> int:
        model_cls = _SYNTHESIZED_MODELS[kind]
        owned = (
            select(model_cls.id)
            .where(model_cls.company_id == company_id)
            .where(model_cls.synthesis_key.is_not(None))
        )
        with self._guarded("delete_synthesized", company_id):
            ids = self._session.scalars(owned).all()
            if ids:
                self._session.execute(
                    delete(model_cls)
                    .where(model_cls.id.in_(ids))
                    .execution_options(synchronize_session="fetch")
                )
        deleted = len(ids)
        logger.debug(
            "ledger_synthesized_deleted",
            extra={
                "company_id": str(company_id),
                "kind": kind.value,
                "count": deleted,
            },
        )
        return deleted

    # ------------------------------------------------------------------
    # Amount fields (unit normalizer)
    # ------------------------------------------------------------------

    def read_amount_rows(self, entity: LedgerEntity) -> list[AmountRow]:
        model_cls = _ENTITY_MODELS[entity]
        field_names = AMOUNT_FIELDS[entity]
        owner_col = model_cls.id if entity is LedgerEntity.COMPANY else model_cls.company_id
        stmt = (
            select(
                model_cls.id,
                owner_col,
                *(getattr(model_cls, name) for name in field_names),
            )
            .order_by(model_cls.id)
        )
        if entity is not LedgerEntity.COMPANY:
            # Synthesized records are written in base units.
            stmt = stmt.where(model_cls.synthesis_key.is_(None))
        with self._guarded("read_amount_rows"):
            rows = self._session.execute(stmt).all()
        return [
            AmountRow(
                entity=entity,
                record_id=row[0],
                company_id=row[1],
                values=dict(zip(field_names, row[2:])),
            )
            for row in rows
        ]

    def write_record_field(
        self, entity: LedgerEntity, record_id: UUID, field: str, value: Decimal,
    ) -> None:
        if field not in AMOUNT_FIELDS[entity]:
            raise ValueError(f"{field!r} is not an amount field of {entity.value}")
        model_cls = _ENTITY_MODELS[entity]
        with self._guarded("write_record_field"):
            record = self._session.get(model_cls, record_id)
            if record is None:
                raise PersistenceError(
                    "write_record_field",
                    f"{entity.value} {record_id} not found",
                )
            setattr(record, field, value)

    # ------------------------------------------------------------------
    # Transaction boundaries
    # ------------------------------------------------------------------

    def unit_of_work(self) -> SessionTransaction:
        return self._session.begin_nested()

    def checkpoint(self) -> None:
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("checkpoint", str(exc)) from exc
        logger.debug("ledger_checkpoint")
