"""
CompanyIntakeService -- loads flat company records into the ledger.

Contract:
    Raw records are the flat JSON objects exported by the source dataset
    (``CompanyName``, ``Total Funding`` in millions, ``Funding Rounds``,
    ``Latest Funding Round``, ``Employees`` ...).  Each becomes one
    ``companies`` row with its provenance figures attached.  The synthesis
    core never creates companies; this service is the persistence-side
    loader that does.

    - Records without a name are skipped (``ValidationSkip``).
    - Names already present in the ledger are skipped.
    - Inserts are chunked.  A failed chunk is retried record by record so
      one bad row costs only itself.
    - A fixed delay separates chunks.

Failure modes:
    - Per-record insert failures are counted in ``IntakeResult.errors`` and
      never abort the load.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio_kernel.domain.records import CompanyAggregate, CompanyProvenance
from portfolio_kernel.exceptions import ValidationSkip
from portfolio_kernel.ledger import chunked
from portfolio_kernel.logging_config import get_logger
from portfolio_kernel.models import CompanyModel
from portfolio_kernel.utils.parsing import safe_decimal, safe_int

logger = get_logger("services.company_intake")

DEFAULT_INDUSTRY = "Technology"
MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000


@dataclass(frozen=True)
class IntakeResult:
    """Outcome of one intake run."""

    total: int
    processed: int
    skipped: int
    errors: int
    failed_names: tuple[str, ...] = ()

    @property
    def success_rate(self) -> float:
        attempted = self.total - self.skipped
        if attempted <= 0:
            return 0.0
        return self.processed / attempted * 100


def _text(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    return str(value).strip()


def build_description(raw: Mapping[str, Any], name: str) -> str:
    industry = _text(raw, "Industry") or DEFAULT_INDUSTRY
    parts = [f"{name} is a {industry} company"]
    if _text(raw, "Founded At"):
        parts.append(f" founded in {_text(raw, 'Founded At')}")
    if _text(raw, "Headquarters"):
        parts.append(f". Based in {_text(raw, 'Headquarters')}")
    if safe_int(raw.get("Employees")):
        parts.append(f" with {_text(raw, 'Employees')} employees")
    parts.append(".")

    total_funding = safe_decimal(raw.get("Total Funding"))
    if total_funding > 0:
        parts.append(
            f" The company has raised ${total_funding:.2f}M in total funding"
        )
    if safe_int(raw.get("Funding Rounds")):
        parts.append(f" across {safe_int(raw.get('Funding Rounds'))} funding rounds")
    if _text(raw, "Latest Funding Round"):
        parts.append(
            f" with the latest being a {_text(raw, 'Latest Funding Round')} round"
        )
    parts.append(".")
    return "".join(parts)[:MAX_DESCRIPTION_LENGTH]


def parse_raw_company(
    raw: Mapping[str, Any],
    owner_id: UUID,
    funding_unit_factor: Decimal = Decimal("1000000"),
) -> tuple[CompanyAggregate, str]:
    """
    Turn one raw record into a company aggregate and its description.

    ``Total Funding`` arrives in millions; valuation and total investment
    are stored in base units.  The initial investor count is the number of
    funding rounds until the first reconcile replaces it.

    Raises:
        ValidationSkip: The record has no company name.
    """
    name = _text(raw, "CompanyName")
    if not name:
        raise ValidationSkip("missing company name")
    name = name[:MAX_NAME_LENGTH]

    total_funding = safe_decimal(raw.get("Total Funding")) * funding_unit_factor
    round_count = max(safe_int(raw.get("Funding Rounds")), 0)
    founded = safe_int(raw.get("Founded At"))
    status = raw.get("Status")

    provenance = CompanyProvenance(
        industry=(_text(raw, "Industry") or DEFAULT_INDUSTRY)[:100],
        employees=max(safe_int(raw.get("Employees")), 0),
        founded_year=founded or None,
        headquarters=_text(raw, "Headquarters") or None,
        revenue=safe_decimal(raw.get("FY 2022-23 Revenue")),
        profit=safe_decimal(raw.get("Profit_Loss")),
        acquisitions=max(safe_int(raw.get("Number of Acquisitions")), 0),
        funding_round_count=round_count,
        total_funding=total_funding,
        latest_round_label=_text(raw, "Latest Funding Round") or None,
    )
    company = CompanyAggregate(
        company_id=uuid4(),
        name=name,
        valuation=total_funding,
        total_investment=total_funding,
        investor_count=round_count,
        owner_id=owner_id,
        provenance=provenance,
        is_active=status in (1, "1"),
    )
    return company, build_description(raw, name)


class CompanyIntakeService:
    """
    Chunked loader for raw company records.

    Args:
        session: Session rows are written through.  Each chunk is committed.
        chunk_size: Records per insert batch.
        delay_seconds: Pause between chunks.
        funding_unit_factor: Multiplier from the source funding unit to base
            currency units.
        sleep: Injectable for tests.
    """

    def __init__(
        self,
        session: Session,
        chunk_size: int = 50,
        delay_seconds: float = 0.2,
        funding_unit_factor: Decimal = Decimal("1000000"),
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session = session
        self._chunk_size = chunk_size
        self._delay_seconds = delay_seconds
        self._funding_unit_factor = funding_unit_factor
        self._sleep = sleep

    def existing_names(self) -> set[str]:
        return set(self._session.scalars(select(CompanyModel.name)).all())

    def ingest(
        self, records: Iterable[Mapping[str, Any]], owner_id: UUID,
    ) -> IntakeResult:
        raw_records = list(records)
        known = self.existing_names()
        pending: list[CompanyModel] = []
        skipped = 0

        for index, raw in enumerate(raw_records):
            try:
                company, description = parse_raw_company(
                    raw, owner_id, self._funding_unit_factor,
                )
            except ValidationSkip as exc:
                skipped += 1
                logger.info(
                    "intake_record_skipped",
                    extra={"record_index": index, "reason": exc.reason},
                )
                continue
            if company.name in known:
                skipped += 1
                logger.info(
                    "intake_record_skipped",
                    extra={
                        "record_index": index,
                        "reason": "already present",
                        "company_name": company.name,
                    },
                )
                continue
            known.add(company.name)
            pending.append(CompanyModel.from_dto(company, description=description))

        logger.info(
            "intake_started",
            extra={
                "total": len(raw_records),
                "pending": len(pending),
                "skipped": skipped,
            },
        )

        processed = 0
        failed: list[str] = []
        chunks = list(chunked(pending, self._chunk_size))
        for chunk_index, chunk in enumerate(chunks):
            inserted, chunk_failed = self._insert_chunk(chunk)
            processed += inserted
            failed.extend(chunk_failed)
            self._session.commit()
            logger.info(
                "intake_chunk_completed",
                extra={
                    "chunk": chunk_index + 1,
                    "chunks": len(chunks),
                    "inserted": inserted,
                    "failed": len(chunk_failed),
                },
            )
            if chunk_index + 1 < len(chunks) and self._delay_seconds > 0:
                self._sleep(self._delay_seconds)

        result = IntakeResult(
            total=len(raw_records),
            processed=processed,
            skipped=skipped,
            errors=len(failed),
            failed_names=tuple(failed),
        )
        logger.info(
            "intake_completed",
            extra={
                "total": result.total,
                "processed": result.processed,
                "skipped": result.skipped,
                "errors": result.errors,
                "success_rate": round(result.success_rate, 2),
            },
        )
        return result

    def _insert_chunk(self, chunk: Sequence[CompanyModel]) -> tuple[int, list[str]]:
        try:
            with self._session.begin_nested():
                self._session.add_all(chunk)
                self._session.flush()
            return len(chunk), []
        except SQLAlchemyError as exc:
            logger.warning(
                "intake_chunk_failed",
                extra={"size": len(chunk), "detail": str(exc)},
            )

        inserted = 0
        failed: list[str] = []
        for model in chunk:
            # The rolled-back chunk was expunged; retry with fresh instances.
            retry = _clone(model)
            try:
                with self._session.begin_nested():
                    self._session.add(retry)
                    self._session.flush()
                inserted += 1
            except SQLAlchemyError as exc:
                failed.append(model.name)
                logger.warning(
                    "intake_record_failed",
                    extra={"company_name": model.name, "detail": str(exc)},
                )
        return inserted, failed


def _clone(model: CompanyModel) -> CompanyModel:
    return CompanyModel.from_dto(model.to_dto(), description=model.description)
