"""
BatchExecutor -- chunked, sequential execution of one stage.

Contract:
    ``run_stage()`` prepares the stage's items, then processes them in
    order, chunk by chunk:

    - each item runs inside its own ledger unit of work (a SAVEPOINT).  An
      exception rolls that unit back; a reported result keeps whatever the
      task managed to write (best-effort degrade, never all-or-nothing).
    - after each chunk the ledger is checkpointed (committed).
    - between chunks the executor sleeps for a fixed delay.

Architecture: portfolio_batch/services.  Talks to storage only through the
    ``Ledger`` interface.

Invariants enforced:
    - One item's failure never aborts the stage.
    - Only ``FatalSetupError`` escapes ``run_stage()``.
    - All timestamps come from the injected Clock.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from portfolio_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunStatus,
    StageRunResult,
    stage_status,
)
from portfolio_batch.tasks.base import BatchItemInput, StageTask
from portfolio_kernel.domain.clock import Clock, SystemClock
from portfolio_kernel.exceptions import (
    FatalSetupError,
    PersistenceError,
    PortfolioKernelError,
    ValidationSkip,
)
from portfolio_kernel.ledger import CompanyFilter, Ledger, chunked
from portfolio_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.executor")


class BatchExecutor:
    """Runs stage tasks over a ledger with per-item isolation.

    Non-goals:
        - No retries: failed items are reported so a caller can re-run
          exactly that subset.
        - No timeouts or cancellation.
    """

    def __init__(
        self,
        ledger: Ledger,
        clock: Clock | None = None,
        chunk_size: int = 50,
        delay_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._chunk_size = chunk_size
        self._delay_seconds = delay_seconds
        self._sleep = sleep

    def run_stage(
        self,
        task: StageTask,
        company_filter: CompanyFilter | None = None,
    ) -> StageRunResult:
        start = time.monotonic()
        started_at = self._clock.now()

        with LogContext.bind(stage=task.stage.value):
            logger.info("stage_started", extra={"description": task.description})
            try:
                items = task.prepare_items(self._ledger, company_filter)
            except FatalSetupError:
                raise
            except PortfolioKernelError as exc:
                logger.error(
                    "stage_prepare_failed",
                    extra={"error_code": exc.code, "detail": str(exc)},
                )
                return StageRunResult(
                    stage=task.stage,
                    status=BatchRunStatus.FAILED,
                    error_message=f"prepare_items failed: {exc}",
                    started_at=started_at,
                    completed_at=self._clock.now(),
                    duration_ms=int((time.monotonic() - start) * 1000),
                )

            results: list[BatchItemResult] = []
            chunks = list(chunked(items, self._chunk_size))
            for chunk_index, chunk in enumerate(chunks):
                chunk_results = [self._execute_item(task, item) for item in chunk]
                results.extend(self._checkpoint(chunk_results))
                logger.info(
                    "chunk_completed",
                    extra={
                        "chunk": chunk_index + 1,
                        "chunks": len(chunks),
                        "size": len(chunk),
                    },
                )
                if chunk_index + 1 < len(chunks) and self._delay_seconds > 0:
                    self._sleep(self._delay_seconds)

            item_results = tuple(results)
            result = StageRunResult(
                stage=task.stage,
                status=stage_status(item_results),
                item_results=item_results,
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            logger.info(
                "stage_completed",
                extra={"status": result.status.value, **result.counters()},
            )
            return result

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _execute_item(self, task: StageTask, item: BatchItemInput) -> BatchItemResult:
        item_start = time.monotonic()
        started_at = self._clock.now()
        company_id = str(item.company_id) if item.company_id else None

        def finish(
            status: BatchItemStatus,
            error_code: str | None = None,
            error_message: str | None = None,
            result_data: dict | None = None,
        ) -> BatchItemResult:
            return BatchItemResult(
                item_index=item.item_index,
                item_key=item.item_key,
                status=status,
                company_id=company_id,
                error_code=error_code,
                error_message=error_message,
                result_data=result_data,
                duration_ms=int((time.monotonic() - item_start) * 1000),
                started_at=started_at,
                completed_at=self._clock.now(),
            )

        with LogContext.bind(company_id=company_id, record_id=item.item_key):
            try:
                with self._ledger.unit_of_work():
                    outcome = task.execute_item(item, self._ledger)
            except ValidationSkip as exc:
                logger.debug("item_skipped", extra={"reason": exc.reason})
                return finish(BatchItemStatus.SKIPPED, result_data={"reason": exc.reason})
            except FatalSetupError:
                raise
            except PortfolioKernelError as exc:
                logger.warning(
                    "item_failed",
                    extra={"error_code": exc.code, "detail": str(exc)},
                )
                return finish(BatchItemStatus.FAILED, exc.code, str(exc))
            except Exception as exc:
                logger.exception("item_failed_unhandled")
                return finish(BatchItemStatus.FAILED, "UNHANDLED_EXCEPTION", str(exc))

            if outcome.status == BatchItemStatus.FAILED:
                logger.warning(
                    "item_failed",
                    extra={
                        "error_code": outcome.error_code,
                        "detail": outcome.error_message,
                    },
                )
            return finish(
                outcome.status,
                outcome.error_code,
                outcome.error_message,
                outcome.result_data,
            )

    def _checkpoint(self, chunk_results: list[BatchItemResult]) -> list[BatchItemResult]:
        """Commit the chunk.  A failed commit loses the chunk's writes."""
        try:
            self._ledger.checkpoint()
        except PersistenceError as exc:
            logger.error("checkpoint_failed", extra={"detail": exc.detail})
            return [
                r if r.status in (BatchItemStatus.FAILED, BatchItemStatus.SKIPPED)
                else BatchItemResult(
                    item_index=r.item_index,
                    item_key=r.item_key,
                    status=BatchItemStatus.FAILED,
                    company_id=r.company_id,
                    error_code=exc.code,
                    error_message=str(exc),
                    duration_ms=r.duration_ms,
                    started_at=r.started_at,
                    completed_at=r.completed_at,
                )
                for r in chunk_results
            ]
        return chunk_results
