"""
StageTask protocol, supporting types, TaskRegistry and the insert fallback.

Contract:
    ``StageTask`` is the interface every batch stage implements.
    ``TaskRegistry`` stores tasks keyed by ``StageName``.
    ``insert_with_fallback`` retries a failed batch insert record by record.

Architecture:
    portfolio_batch/tasks.  Tasks talk to storage only through the
    ``Ledger`` interface; they never see a Session.

Invariants enforced:
    - One task per stage in a registry.
    - A task never commits; the executor owns the unit of work and the
      checkpoint after each chunk.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from portfolio_batch.domain.types import BatchItemStatus, StageName
from portfolio_kernel.exceptions import PersistenceError, TaskNotRegisteredError
from portfolio_kernel.ledger import CompanyFilter, Ledger
from portfolio_kernel.logging_config import get_logger

logger = get_logger("batch.tasks")


# =============================================================================
# Supporting DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchItemInput:
    """One unit of work, created by ``StageTask.prepare_items()``."""

    item_index: int
    item_key: str
    company_id: UUID | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchTaskResult:
    """What ``StageTask.execute_item()`` reports back to the executor."""

    status: BatchItemStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None


# =============================================================================
# StageTask Protocol
# =============================================================================


@runtime_checkable
class StageTask(Protocol):
    """
    Interface for batch stage implementations.

    Contract:
        - ``stage``: the registry key.
        - ``prepare_items()``: reads the eligible items, returns a tuple.
        - ``execute_item()``: processes ONE item inside a ledger unit of
          work.  Raising ``ValidationSkip`` marks the item skipped; any
          other exception marks it failed and rolls its unit back.

    Non-goals:
        - Does NOT commit or sleep; the executor does both.
    """

    @property
    def stage(self) -> StageName: ...

    @property
    def description(self) -> str: ...

    def prepare_items(
        self,
        ledger: Ledger,
        company_filter: CompanyFilter | None = None,
    ) -> tuple[BatchItemInput, ...]: ...

    def execute_item(self, item: BatchItemInput, ledger: Ledger) -> BatchTaskResult: ...


# =============================================================================
# TaskRegistry
# =============================================================================


class TaskRegistry:
    """Registry mapping stage names to StageTask implementations."""

    def __init__(self) -> None:
        self._tasks: dict[StageName, StageTask] = {}

    def register(self, task: StageTask) -> None:
        """Raises ValueError if the stage already has a task."""
        if task.stage in self._tasks:
            raise ValueError(f"Stage '{task.stage.value}' is already registered")
        self._tasks[task.stage] = task

    def get(self, stage: StageName | str) -> StageTask:
        """Raises TaskNotRegisteredError if no task handles the stage."""
        name = stage.value if isinstance(stage, StageName) else str(stage)
        task = self._tasks.get(name)  # str-Enum keys match their values
        if task is None:
            raise TaskNotRegisteredError(name, self.list_tasks())
        return task

    def list_tasks(self) -> tuple[str, ...]:
        return tuple(sorted(s.value for s in self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, stage: object) -> bool:
        return stage in self._tasks


# =============================================================================
# Helpers shared by tasks
# =============================================================================


def company_items(
    ledger: Ledger, company_filter: CompanyFilter | None = None,
) -> tuple[BatchItemInput, ...]:
    """One item per selected company, carrying the aggregate snapshot."""
    companies = ledger.read_companies(company_filter)
    return tuple(
        BatchItemInput(
            item_index=i,
            item_key=str(company.company_id),
            company_id=company.company_id,
            payload={"company": company},
        )
        for i, company in enumerate(companies)
    )


@dataclass(frozen=True)
class FallbackInsertResult:
    inserted: int
    failed_keys: tuple[str, ...] = ()
    used_fallback: bool = False

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_keys)


def insert_with_fallback(
    insert: Callable[[UUID, Sequence[Any]], int],
    company_id: UUID,
    records: Sequence[Any],
) -> FallbackInsertResult:
    """
    Insert ``records`` in one call; on failure retry them one at a time.

    Records that still fail are reported by synthesis key (or ordinal
    position when they carry none) and do not stop the remaining records.
    """
    if not records:
        return FallbackInsertResult(inserted=0)
    try:
        return FallbackInsertResult(inserted=insert(company_id, records))
    except PersistenceError as exc:
        logger.warning(
            "batch_insert_failed_retrying_individually",
            extra={
                "company_id": str(company_id),
                "operation": exc.operation,
                "record_count": len(records),
            },
        )

    inserted = 0
    failed: list[str] = []
    for position, record in enumerate(records):
        try:
            inserted += insert(company_id, [record])
        except PersistenceError as exc:
            key = getattr(record, "synthesis_key", None) or f"#{position}"
            failed.append(key)
            logger.warning(
                "record_insert_failed",
                extra={
                    "company_id": str(company_id),
                    "synthesis_key": key,
                    "detail": exc.detail,
                },
            )
    return FallbackInsertResult(
        inserted=inserted, failed_keys=tuple(failed), used_fallback=True,
    )
