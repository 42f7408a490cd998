"""Pure batch DTOs: stage names, statuses and run results."""

from portfolio_batch.domain.types import (
    DEFAULT_PIPELINE,
    BatchItemResult,
    BatchItemStatus,
    BatchRunStatus,
    RunSummary,
    StageName,
    StageRunResult,
    run_status,
    stage_status,
)

__all__ = [
    "DEFAULT_PIPELINE",
    "BatchItemResult",
    "BatchItemStatus",
    "BatchRunStatus",
    "RunSummary",
    "StageName",
    "StageRunResult",
    "run_status",
    "stage_status",
]
