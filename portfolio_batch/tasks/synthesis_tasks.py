"""
Batch tasks: per-company synthesis of derived records.

Each task replaces a company's synthesized set of one kind: the previous
set (rows carrying a synthesis key) is deleted and the freshly synthesized
set inserted, inside the unit of work the executor opens for the company.
Running a stage twice therefore leaves exactly one set behind.

Rows without a synthesis key were written by someone else and are left
alone.
"""

from __future__ import annotations

from portfolio_batch.domain.types import BatchItemStatus, StageName
from portfolio_batch.tasks.base import (
    BatchItemInput,
    BatchTaskResult,
    company_items,
    insert_with_fallback,
)
from portfolio_engines.investments import InvestmentSynthesizer
from portfolio_engines.milestones import MilestoneSynthesizer
from portfolio_engines.rounds import RoundSynthesizer
from portfolio_engines.valuation_history import ValuationHistorySynthesizer
from portfolio_kernel.domain.records import CompanyAggregate
from portfolio_kernel.exceptions import PersistenceError, ValidationSkip
from portfolio_kernel.ledger import CompanyFilter, Ledger
from portfolio_kernel.logging_config import get_logger

logger = get_logger("batch.tasks.synthesis")


class _SynthesisTask:
    """Delete-then-regenerate of one synthesized record kind."""

    _stage: StageName
    _description: str
    _insert_method: str

    def __init__(self, synthesizer):
        self._synthesizer = synthesizer

    @property
    def stage(self) -> StageName:
        return self._stage

    @property
    def description(self) -> str:
        return self._description

    def prepare_items(
        self,
        ledger: Ledger,
        company_filter: CompanyFilter | None = None,
    ) -> tuple[BatchItemInput, ...]:
        return company_items(ledger, company_filter)

    def execute_item(self, item: BatchItemInput, ledger: Ledger) -> BatchTaskResult:
        company: CompanyAggregate = item.payload["company"]
        kind = self._synthesizer.kind
        records = self._synthesizer.synthesize(company)
        deleted = ledger.delete_synthesized(company.company_id, kind)

        if not records:
            if deleted:
                return BatchTaskResult(
                    status=BatchItemStatus.UPDATED,
                    result_data={"deleted": deleted, "inserted": 0},
                )
            raise ValidationSkip(f"no {kind.value} records to synthesize", item.item_key)

        outcome = insert_with_fallback(
            getattr(ledger, self._insert_method), company.company_id, records,
        )
        result_data = {
            "deleted": deleted,
            "inserted": outcome.inserted,
            "used_fallback": outcome.used_fallback,
        }
        logger.info(
            "synthesis_written",
            extra={"kind": kind.value, **result_data},
        )
        if outcome.has_failures:
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                result_data={**result_data, "failed_keys": list(outcome.failed_keys)},
                error_code=PersistenceError.code,
                error_message=(
                    f"{len(outcome.failed_keys)} of {len(records)} "
                    f"{kind.value} records not inserted"
                ),
            )
        return BatchTaskResult(status=BatchItemStatus.UPDATED, result_data=result_data)


class FundingRoundSynthesisTask(_SynthesisTask):
    _stage = StageName.ROUNDS
    _description = "Synthesize funding rounds from round count and total funding"
    _insert_method = "insert_rounds"

    def __init__(self, synthesizer: RoundSynthesizer | None = None):
        super().__init__(synthesizer or RoundSynthesizer())


class InvestmentSynthesisTask(_SynthesisTask):
    _stage = StageName.INVESTMENTS
    _description = "Synthesize the investment ledger backing total funding"
    _insert_method = "insert_investments"

    def __init__(self, synthesizer: InvestmentSynthesizer | None = None):
        super().__init__(synthesizer or InvestmentSynthesizer())


class MilestoneSynthesisTask(_SynthesisTask):
    _stage = StageName.MILESTONES
    _description = "Synthesize milestones from acquisitions, revenue, profit and head count"
    _insert_method = "insert_milestones"

    def __init__(self, synthesizer: MilestoneSynthesizer | None = None):
        super().__init__(synthesizer or MilestoneSynthesizer())


class ValuationHistorySynthesisTask(_SynthesisTask):
    _stage = StageName.VALUATION_HISTORY
    _description = "Synthesize a monotonically increasing valuation history"
    _insert_method = "insert_valuation_snapshots"

    def __init__(self, synthesizer: ValuationHistorySynthesizer | None = None):
        super().__init__(synthesizer or ValuationHistorySynthesizer())
