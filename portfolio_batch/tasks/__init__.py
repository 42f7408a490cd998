"""Batch stage tasks and the registry that maps stage names to them."""

from portfolio_batch.tasks.base import (
    BatchItemInput,
    BatchTaskResult,
    FallbackInsertResult,
    StageTask,
    TaskRegistry,
    company_items,
    insert_with_fallback,
)
from portfolio_batch.tasks.normalize_tasks import NormalizeUnitsTask
from portfolio_batch.tasks.rollup_tasks import ReconcileRollupsTask, VerifyRollupsTask
from portfolio_batch.tasks.synthesis_tasks import (
    FundingRoundSynthesisTask,
    InvestmentSynthesisTask,
    MilestoneSynthesisTask,
    ValuationHistorySynthesisTask,
)

__all__ = [
    "BatchItemInput",
    "BatchTaskResult",
    "FallbackInsertResult",
    "FundingRoundSynthesisTask",
    "InvestmentSynthesisTask",
    "MilestoneSynthesisTask",
    "NormalizeUnitsTask",
    "ReconcileRollupsTask",
    "StageTask",
    "TaskRegistry",
    "ValuationHistorySynthesisTask",
    "VerifyRollupsTask",
    "company_items",
    "insert_with_fallback",
]
