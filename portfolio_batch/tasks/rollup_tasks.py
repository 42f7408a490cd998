"""
Batch tasks: rollup reconciliation and verify-only drift detection.

``ReconcileRollupsTask`` is the only writer of a company's
``total_investment`` and ``investor_count``; it always writes the rollup of
the investment ledger.  ``VerifyRollupsTask`` computes the same rollup and
only reports companies whose stored aggregate disagrees.
"""

from __future__ import annotations

from portfolio_batch.domain.types import BatchItemStatus, StageName
from portfolio_batch.tasks.base import BatchItemInput, BatchTaskResult, company_items
from portfolio_engines.rollup import compute_rollup, detect_drift
from portfolio_kernel.domain.records import CompanyAggregate
from portfolio_kernel.ledger import CompanyFilter, Ledger
from portfolio_kernel.logging_config import get_logger

logger = get_logger("batch.tasks.rollup")


def _drift_data(drift) -> dict:
    return {
        "stored_total_investment": str(drift.stored.total_investment),
        "stored_investor_count": drift.stored.investor_count,
        "total_investment": str(drift.computed.total_investment),
        "investor_count": drift.computed.investor_count,
    }


class ReconcileRollupsTask:
    """Recompute and write company rollups from the investment ledger."""

    @property
    def stage(self) -> StageName:
        return StageName.RECONCILE

    @property
    def description(self) -> str:
        return "Recompute total_investment and investor_count from investments"

    def prepare_items(
        self,
        ledger: Ledger,
        company_filter: CompanyFilter | None = None,
    ) -> tuple[BatchItemInput, ...]:
        return company_items(ledger, company_filter)

    def execute_item(self, item: BatchItemInput, ledger: Ledger) -> BatchTaskResult:
        company: CompanyAggregate = item.payload["company"]
        rollup = compute_rollup(ledger.read_investments(company.company_id))
        drift = detect_drift(company, rollup)
        ledger.write_company_aggregate(company.company_id, rollup.as_fields())
        logger.info("rollup_written", extra=_drift_data(drift))
        return BatchTaskResult(
            status=BatchItemStatus.UPDATED if drift.has_drift else BatchItemStatus.UNCHANGED,
            result_data=_drift_data(drift),
        )


class VerifyRollupsTask:
    """Report stored rollups that disagree with the ledger, without writing."""

    @property
    def stage(self) -> StageName:
        return StageName.VERIFY_ROLLUPS

    @property
    def description(self) -> str:
        return "Detect companies whose stored rollup has drifted from the ledger"

    def prepare_items(
        self,
        ledger: Ledger,
        company_filter: CompanyFilter | None = None,
    ) -> tuple[BatchItemInput, ...]:
        return company_items(ledger, company_filter)

    def execute_item(self, item: BatchItemInput, ledger: Ledger) -> BatchTaskResult:
        company: CompanyAggregate = item.payload["company"]
        drift = detect_drift(
            company, compute_rollup(ledger.read_investments(company.company_id)),
        )
        if not drift.has_drift:
            return BatchTaskResult(status=BatchItemStatus.UNCHANGED)
        logger.warning("rollup_drift_detected", extra=_drift_data(drift))
        return BatchTaskResult(
            status=BatchItemStatus.DRIFTED, result_data=_drift_data(drift),
        )
