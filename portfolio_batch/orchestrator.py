"""
SynthesisOrchestrator -- DI container and run driver for portfolio synthesis.

Contract:
    Wires a TaskRegistry from the active settings (through
    ``portfolio_config.bridges``), builds the ledger and the executor, and
    runs the requested stages in pipeline order.

Architecture: portfolio_batch (top-level).  This is the canonical entry point
    for running synthesis; the scripts are thin wrappers around it.

Invariants enforced:
    - Clock injection: ledger and executor receive the same Clock.
    - The ledger is pinged before any stage runs; an unreachable ledger is
      the only condition that aborts a run.
    - Every requested stage is resolved before the first one runs, so an
      unknown stage name never leaves a run half done.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from uuid import uuid4

from sqlalchemy.orm import Session

from portfolio_batch.domain.types import (
    DEFAULT_PIPELINE,
    RunSummary,
    StageName,
    StageRunResult,
    run_status,
)
from portfolio_batch.services.executor import BatchExecutor
from portfolio_batch.tasks.base import StageTask, TaskRegistry
from portfolio_batch.tasks.normalize_tasks import NormalizeUnitsTask
from portfolio_batch.tasks.rollup_tasks import ReconcileRollupsTask, VerifyRollupsTask
from portfolio_batch.tasks.synthesis_tasks import (
    FundingRoundSynthesisTask,
    InvestmentSynthesisTask,
    MilestoneSynthesisTask,
    ValuationHistorySynthesisTask,
)
from portfolio_config.bridges import (
    build_investment_rules,
    build_milestone_rules,
    build_normalization_rules,
    build_round_rules,
    build_valuation_rules,
)
from portfolio_config.schema import SynthesisSettings
from portfolio_engines.investments import InvestmentSynthesizer
from portfolio_engines.milestones import MilestoneSynthesizer
from portfolio_engines.normalization import UnitNormalizer
from portfolio_engines.rounds import RoundSynthesizer
from portfolio_engines.valuation_history import ValuationHistorySynthesizer
from portfolio_kernel.domain.clock import Clock, SystemClock
from portfolio_kernel.domain.records import CompanyAggregate
from portfolio_kernel.exceptions import PersistenceError
from portfolio_kernel.ledger import CompanyFilter, Ledger
from portfolio_kernel.logging_config import LogContext, get_logger
from portfolio_kernel.services.ledger_service import SqlAlchemyLedger

logger = get_logger("batch.orchestrator")


def build_task_registry(
    settings: SynthesisSettings,
    seed: int | str | None = None,
) -> TaskRegistry:
    """Create a TaskRegistry with every stage configured from ``settings``.

    ``seed`` overrides ``settings.batch.seed`` when given.
    """
    effective_seed = seed if seed is not None else settings.batch.seed
    registry = TaskRegistry()
    registry.register(NormalizeUnitsTask(
        UnitNormalizer(build_normalization_rules(settings.normalizer)),
    ))
    registry.register(FundingRoundSynthesisTask(
        RoundSynthesizer(build_round_rules(settings.rounds), seed=effective_seed),
    ))
    registry.register(InvestmentSynthesisTask(
        InvestmentSynthesizer(
            build_investment_rules(settings.investments), seed=effective_seed,
        ),
    ))
    registry.register(MilestoneSynthesisTask(
        MilestoneSynthesizer(
            build_milestone_rules(settings.milestones), seed=effective_seed,
        ),
    ))
    registry.register(ValuationHistorySynthesisTask(
        ValuationHistorySynthesizer(
            build_valuation_rules(settings.valuation), seed=effective_seed,
        ),
    ))
    registry.register(ReconcileRollupsTask())
    registry.register(VerifyRollupsTask())
    return registry


class SynthesisOrchestrator:
    """Runs synthesis stages over a ledger.

    Contract:
        - ``from_session()`` creates a fully wired orchestrator.
        - ``run()`` executes the stages and returns a ``RunSummary``.

    Non-goals:
        - Does NOT manage the session lifecycle beyond the executor's
          per-chunk checkpoints; the caller owns the session.
    """

    def __init__(
        self,
        ledger: Ledger,
        task_registry: TaskRegistry,
        settings: SynthesisSettings | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._ledger = ledger
        self._task_registry = task_registry
        self._settings = settings or SynthesisSettings()
        self._clock = clock or SystemClock()
        self._executor = BatchExecutor(
            ledger,
            clock=self._clock,
            chunk_size=self._settings.batch.chunk_size,
            delay_seconds=self._settings.batch.delay_seconds,
            sleep=sleep,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_session(
        cls,
        session: Session,
        settings: SynthesisSettings | None = None,
        clock: Clock | None = None,
        seed: int | str | None = None,
        sleep: Callable[[float], None] = time.sleep,
        task_registry: TaskRegistry | None = None,
    ) -> SynthesisOrchestrator:
        """Create a fully wired orchestrator from a session.

        Args:
            session: SQLAlchemy session for persistence.
            settings: Active settings.  Defaults to the built-in defaults.
            clock: Optional clock for deterministic testing.
            seed: Overrides the configured synthesis seed.
            sleep: Pause between chunks; tests pass a no-op.
            task_registry: Optional pre-configured registry.  If None, one
                is built from ``settings``.
        """
        effective_settings = settings or SynthesisSettings()
        effective_clock = clock or SystemClock()
        registry = (
            task_registry
            if task_registry is not None
            else build_task_registry(effective_settings, seed)
        )
        return cls(
            ledger=SqlAlchemyLedger(session, clock=effective_clock),
            task_registry=registry,
            settings=effective_settings,
            clock=effective_clock,
            sleep=sleep,
        )

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(
        self,
        stages: Sequence[StageName | str] | None = None,
        company_filter: CompanyFilter | None = None,
        run_id: str | None = None,
    ) -> RunSummary:
        """Run ``stages`` (default: the full pipeline) in order.

        Raises:
            FatalSetupError: the ledger is unreachable.
            TaskNotRegisteredError: a requested stage has no task.
        """
        run_id = run_id or str(uuid4())
        started_at = self._clock.now()

        with LogContext.bind(run_id=run_id):
            self._ledger.ping()
            tasks = self._resolve(stages)
            logger.info(
                "run_started",
                extra={"stages": [task.stage.value for task in tasks]},
            )

            results: list[StageRunResult] = []
            for task in tasks:
                result = self._executor.run_stage(task, company_filter)
                results.append(result)

            ran = {task.stage for task in tasks}
            top = self._top_companies() if StageName.RECONCILE in ran else ()

            summary = RunSummary(
                run_id=run_id,
                status=run_status(tuple(results)),
                stages=tuple(results),
                top_companies=top,
                started_at=started_at,
                completed_at=self._clock.now(),
            )
            logger.info("run_summary", extra={"summary": summary.as_dict()})
            return summary

    def _resolve(self, stages: Sequence[StageName | str] | None) -> list[StageTask]:
        requested = stages if stages else DEFAULT_PIPELINE
        return [self._task_registry.get(stage) for stage in requested]

    def _top_companies(self) -> tuple[CompanyAggregate, ...]:
        try:
            return tuple(
                self._ledger.top_companies_by_investment(self._settings.batch.top_n)
            )
        except PersistenceError as exc:
            logger.warning("top_companies_unavailable", extra={"detail": exc.detail})
            return ()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    @property
    def settings(self) -> SynthesisSettings:
        return self._settings
