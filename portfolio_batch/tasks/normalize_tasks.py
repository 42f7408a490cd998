"""
Batch task: unit normalization of stored monetary fields.

One item per stored record (companies, funding rounds, investments,
milestones).  Records carrying a synthesis key are never read: they are
written in base units from the normalized aggregate.  Each field is corrected on its own; a failed field write is
counted and the remaining fields of the record are still attempted.
"""

from __future__ import annotations

from portfolio_batch.domain.types import BatchItemStatus, StageName
from portfolio_batch.tasks.base import BatchItemInput, BatchTaskResult
from portfolio_engines.normalization import UnitNormalizer
from portfolio_kernel.domain.records import AMOUNT_FIELDS, AmountRow
from portfolio_kernel.exceptions import PersistenceError
from portfolio_kernel.ledger import CompanyFilter, Ledger
from portfolio_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.tasks.normalize")


class NormalizeUnitsTask:
    """Rescales amounts that were stored in millions."""

    def __init__(self, normalizer: UnitNormalizer | None = None):
        self._normalizer = normalizer or UnitNormalizer()

    @property
    def stage(self) -> StageName:
        return StageName.NORMALIZE

    @property
    def description(self) -> str:
        return "Rescale monetary fields stored in millions to base units"

    def prepare_items(
        self,
        ledger: Ledger,
        company_filter: CompanyFilter | None = None,
    ) -> tuple[BatchItemInput, ...]:
        selected = None
        if company_filter is not None and not company_filter.is_empty:
            selected = {c.company_id for c in ledger.read_companies(company_filter)}

        rows: list[AmountRow] = []
        for entity in AMOUNT_FIELDS:
            rows.extend(
                row for row in ledger.read_amount_rows(entity)
                if selected is None or row.company_id in selected
            )
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=row.key,
                company_id=row.company_id,
                payload={"row": row},
            )
            for i, row in enumerate(rows)
        )

    def execute_item(self, item: BatchItemInput, ledger: Ledger) -> BatchTaskResult:
        row: AmountRow = item.payload["row"]
        corrections = self._normalizer.plan(row)
        if not corrections:
            return BatchTaskResult(status=BatchItemStatus.UNCHANGED)

        written: list[str] = []
        failed: list[str] = []
        with LogContext.bind(entity=row.entity.value):
            for correction in corrections:
                try:
                    ledger.write_record_field(
                        correction.entity,
                        correction.record_id,
                        correction.field,
                        correction.new_value,
                    )
                except PersistenceError as exc:
                    failed.append(correction.field)
                    logger.warning(
                        "normalize_field_failed",
                        extra={"field": correction.field, "detail": exc.detail},
                    )
                    continue
                written.append(correction.field)
                logger.info(
                    "normalize_field_corrected",
                    extra={
                        "field": correction.field,
                        "old_value": correction.old_value,
                        "new_value": correction.new_value,
                    },
                )

        result_data = {"written": written, "failed": failed}
        if failed:
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                result_data=result_data,
                error_code=PersistenceError.code,
                error_message=f"could not write {', '.join(failed)}",
            )
        return BatchTaskResult(status=BatchItemStatus.UPDATED, result_data=result_data)
