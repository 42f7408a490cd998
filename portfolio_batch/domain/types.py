"""
portfolio_batch.domain.types -- Pure frozen dataclasses for the batch system.

ZERO I/O.  Enum status fields and tuples for immutable collections.

Counter semantics of a stage:
    processed  every item the stage attempted
    updated    items whose records were written or replaced
    unchanged  items already consistent with the ledger (nothing to write)
    drifted    verify-only items whose stored rollup disagrees with the ledger
    skipped    items that had nothing to synthesize (ValidationSkip)
    errors     items that failed, fully or partly
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from portfolio_kernel.domain.records import CompanyAggregate


# =============================================================================
# Enums
# =============================================================================


class StageName(str, Enum):
    """Registered batch stages, in pipeline order."""

    NORMALIZE = "normalize"
    ROUNDS = "rounds"
    INVESTMENTS = "investments"
    MILESTONES = "milestones"
    VALUATION_HISTORY = "valuation_history"
    RECONCILE = "reconcile"
    VERIFY_ROLLUPS = "verify_rollups"


DEFAULT_PIPELINE: tuple[StageName, ...] = (
    StageName.NORMALIZE,
    StageName.ROUNDS,
    StageName.INVESTMENTS,
    StageName.MILESTONES,
    StageName.VALUATION_HISTORY,
    StageName.RECONCILE,
)


class BatchRunStatus(str, Enum):
    """Outcome of a stage or of a whole run."""

    COMPLETED = "completed"  # No item failed
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed
    FAILED = "failed"  # Every item failed, or the stage could not start


class BatchItemStatus(str, Enum):
    """Per-item outcome within a stage."""

    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DRIFTED = "drifted"
    SKIPPED = "skipped"
    FAILED = "failed"


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class BatchItemResult:
    """Result of processing one item (a company, or one stored record)."""

    item_index: int
    item_key: str
    status: BatchItemStatus
    company_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None


def _count(items: tuple[BatchItemResult, ...], status: BatchItemStatus) -> int:
    return sum(1 for r in items if r.status == status)


@dataclass(frozen=True)
class StageRunResult:
    """Result of one stage over the selected companies."""

    stage: StageName
    status: BatchRunStatus
    item_results: tuple[BatchItemResult, ...] = ()
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def processed(self) -> int:
        return len(self.item_results)

    @property
    def updated(self) -> int:
        return _count(self.item_results, BatchItemStatus.UPDATED)

    @property
    def unchanged(self) -> int:
        return _count(self.item_results, BatchItemStatus.UNCHANGED)

    @property
    def drifted(self) -> int:
        return _count(self.item_results, BatchItemStatus.DRIFTED)

    @property
    def skipped(self) -> int:
        return _count(self.item_results, BatchItemStatus.SKIPPED)

    @property
    def errors(self) -> int:
        return _count(self.item_results, BatchItemStatus.FAILED)

    @property
    def failed_keys(self) -> tuple[str, ...]:
        return tuple(
            r.item_key for r in self.item_results
            if r.status == BatchItemStatus.FAILED
        )

    @property
    def failed_company_ids(self) -> tuple[str, ...]:
        return tuple(sorted({
            r.company_id for r in self.item_results
            if r.status == BatchItemStatus.FAILED and r.company_id
        }))

    def counters(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "drifted": self.drifted,
            "skipped": self.skipped,
            "errors": self.errors,
        }


def stage_status(item_results: tuple[BatchItemResult, ...]) -> BatchRunStatus:
    failed = _count(item_results, BatchItemStatus.FAILED)
    if failed == 0:
        return BatchRunStatus.COMPLETED
    if failed == len(item_results):
        return BatchRunStatus.FAILED
    return BatchRunStatus.PARTIALLY_COMPLETED


@dataclass(frozen=True)
class RunSummary:
    """Run-end summary: per-stage counters plus the subset to re-run."""

    run_id: str
    status: BatchRunStatus
    stages: tuple[StageRunResult, ...] = ()
    top_companies: tuple[CompanyAggregate, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def stage(self, name: StageName) -> StageRunResult | None:
        for result in self.stages:
            if result.stage == name:
                return result
        return None

    @property
    def failed_company_ids(self) -> tuple[str, ...]:
        ids: set[str] = set()
        for result in self.stages:
            ids.update(result.failed_company_ids)
        return tuple(sorted(ids))

    @property
    def total_errors(self) -> int:
        return sum(result.errors for result in self.stages)

    def as_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "stages": {
                result.stage.value: {
                    "status": result.status.value,
                    **result.counters(),
                    "failed_keys": list(result.failed_keys),
                }
                for result in self.stages
            },
            "failed_company_ids": list(self.failed_company_ids),
            "top_companies": [
                {
                    "name": c.name,
                    "total_investment": str(c.total_investment),
                    "investor_count": c.investor_count,
                }
                for c in self.top_companies
            ],
        }


def run_status(stages: tuple[StageRunResult, ...]) -> BatchRunStatus:
    if all(s.status == BatchRunStatus.COMPLETED for s in stages):
        return BatchRunStatus.COMPLETED
    if stages and all(s.status == BatchRunStatus.FAILED for s in stages):
        return BatchRunStatus.FAILED
    return BatchRunStatus.PARTIALLY_COMPLETED
