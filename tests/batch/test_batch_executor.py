"""
Tests for portfolio_batch.services.executor.

Validates BatchExecutor: chunking, per-chunk checkpoint, inter-chunk delay,
SAVEPOINT-per-item rollback, status mapping and error isolation.

Uses in-memory SQLite for fast unit tests (no PostgreSQL required).
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from portfolio_batch.domain.types import (
    BatchItemStatus,
    BatchRunStatus,
    StageName,
)
from portfolio_batch.services.executor import BatchExecutor
from portfolio_batch.tasks.base import (
    BatchItemInput,
    BatchTaskResult,
    company_items,
)
from portfolio_kernel.exceptions import (
    FatalSetupError,
    PersistenceError,
    ValidationSkip,
)
from portfolio_kernel.models import CompanyModel


# =============================================================================
# Test tasks
# =============================================================================


class ScriptedTask:
    """Task whose per-item behaviour is scripted by item key."""

    stage = StageName.RECONCILE
    description = "Scripted test task"

    def __init__(self, count=3, script=None):
        self._count = count
        self._script = script or {}
        self.executed = []

    def prepare_items(self, ledger, company_filter=None):
        return tuple(
            BatchItemInput(item_index=i, item_key=f"item-{i:03d}")
            for i in range(self._count)
        )

    def execute_item(self, item, ledger):
        self.executed.append(item.item_key)
        action = self._script.get(item.item_key)
        if isinstance(action, Exception):
            raise action
        if action is not None:
            return action
        return BatchTaskResult(status=BatchItemStatus.UPDATED)


class InvestorCountTask:
    """Writes investor_count, then optionally fails after the write."""

    stage = StageName.RECONCILE
    description = "Write then maybe fail"

    def __init__(self, fail_for=()):
        self._fail_for = set(fail_for)

    def prepare_items(self, ledger, company_filter=None):
        return company_items(ledger, company_filter)

    def execute_item(self, item, ledger):
        ledger.write_company_aggregate(item.company_id, {"investor_count": 5})
        if item.payload["company"].name in self._fail_for:
            raise RuntimeError("failed after write")
        return BatchTaskResult(status=BatchItemStatus.UPDATED)


class BrokenPrepareTask(ScriptedTask):

    def prepare_items(self, ledger, company_filter=None):
        raise PersistenceError("read_companies", "connection reset")


def _executor(ledger, clock, sleeps, chunk_size=2):
    return BatchExecutor(
        ledger, clock=clock, chunk_size=chunk_size, delay_seconds=0.2, sleep=sleeps.append,
    )


# =============================================================================
# Tests
# =============================================================================


class TestRunStage:

    def test_all_items_processed(self, ledger, clock):
        sleeps = []
        task = ScriptedTask(count=5)

        result = _executor(ledger, clock, sleeps).run_stage(task)

        assert result.status == BatchRunStatus.COMPLETED
        assert result.processed == 5
        assert result.updated == 5
        assert task.executed == [f"item-{i:03d}" for i in range(5)]
        assert [r.item_index for r in result.item_results] == list(range(5))

    def test_delay_between_chunks_only(self, ledger, clock):
        sleeps = []

        _executor(ledger, clock, sleeps, chunk_size=2).run_stage(ScriptedTask(count=5))

        assert sleeps == [0.2, 0.2]

    def test_no_items(self, ledger, clock):
        sleeps = []

        result = _executor(ledger, clock, sleeps).run_stage(ScriptedTask(count=0))

        assert result.status == BatchRunStatus.COMPLETED
        assert result.processed == 0
        assert sleeps == []

    def test_checkpoint_after_each_chunk(self, ledger, clock):
        with patch.object(ledger, "checkpoint", wraps=ledger.checkpoint) as checkpoint:
            _executor(ledger, clock, []).run_stage(ScriptedTask(count=5))

        assert checkpoint.call_count == 3

    def test_status_mapping(self, ledger, clock):
        task = ScriptedTask(count=5, script={
            "item-000": ValidationSkip("nothing to do"),
            "item-001": PersistenceError("insert_rounds", "boom", company_id="c1"),
            "item-002": ValueError("unexpected"),
            "item-003": BatchTaskResult(status=BatchItemStatus.UNCHANGED),
            "item-004": BatchTaskResult(
                status=BatchItemStatus.FAILED,
                error_code="PERSISTENCE_ERROR",
                error_message="1 of 4 records not inserted",
            ),
        })

        result = _executor(ledger, clock, []).run_stage(task)

        statuses = [r.status for r in result.item_results]
        assert statuses == [
            BatchItemStatus.SKIPPED,
            BatchItemStatus.FAILED,
            BatchItemStatus.FAILED,
            BatchItemStatus.UNCHANGED,
            BatchItemStatus.FAILED,
        ]
        assert [r.error_code for r in result.item_results] == [
            None, "PERSISTENCE_ERROR", "UNHANDLED_EXCEPTION", None, "PERSISTENCE_ERROR",
        ]
        assert result.item_results[0].result_data == {"reason": "nothing to do"}
        assert result.status == BatchRunStatus.PARTIALLY_COMPLETED
        assert result.failed_keys == ("item-001", "item-002", "item-004")
        assert result.counters() == {
            "processed": 5,
            "updated": 0,
            "unchanged": 1,
            "drifted": 0,
            "skipped": 1,
            "errors": 3,
        }

    def test_all_failed(self, ledger, clock):
        task = ScriptedTask(count=2, script={
            "item-000": RuntimeError("x"),
            "item-001": RuntimeError("y"),
        })

        result = _executor(ledger, clock, []).run_stage(task)

        assert result.status == BatchRunStatus.FAILED

    def test_fatal_setup_error_escapes(self, ledger, clock):
        task = ScriptedTask(count=3, script={"item-001": FatalSetupError("gone")})

        with pytest.raises(FatalSetupError):
            _executor(ledger, clock, []).run_stage(task)

    def test_prepare_failure_fails_the_stage(self, ledger, clock):
        result = _executor(ledger, clock, []).run_stage(BrokenPrepareTask())

        assert result.status == BatchRunStatus.FAILED
        assert "connection reset" in result.error_message
        assert result.processed == 0

    def test_timestamps_come_from_the_clock(self, ledger, clock):
        result = _executor(ledger, clock, []).run_stage(ScriptedTask(count=1))

        assert result.started_at == clock.now()
        assert result.item_results[0].completed_at == clock.now()


class TestItemIsolation:

    def test_exception_rolls_back_only_that_item(self, ledger, clock, company_factory, session):
        company_factory(name="A")
        company_factory(name="B")
        company_factory(name="C")

        result = _executor(ledger, clock, []).run_stage(InvestorCountTask(fail_for={"B"}))

        assert [r.status for r in result.item_results] == [
            BatchItemStatus.UPDATED,
            BatchItemStatus.FAILED,
            BatchItemStatus.UPDATED,
        ]
        session.expire_all()
        counts = {m.name: m.investor_count for m in session.query(CompanyModel).all()}
        assert counts == {"A": 5, "B": 0, "C": 5}

    def test_failed_item_reports_company(self, ledger, clock, company_factory):
        company = company_factory(name="B")

        result = _executor(ledger, clock, []).run_stage(InvestorCountTask(fail_for={"B"}))

        assert result.failed_company_ids == (str(company.company_id),)

    def test_failed_checkpoint_fails_the_chunk(self, ledger, clock, company_factory):
        company_factory(name="A", total_investment="1")
        task = ScriptedTask(count=3, script={"item-002": ValidationSkip("skip")})

        with patch.object(
            ledger, "checkpoint", side_effect=PersistenceError("checkpoint", "disk full"),
        ):
            result = _executor(ledger, clock, [], chunk_size=10).run_stage(task)

        assert [r.status for r in result.item_results] == [
            BatchItemStatus.FAILED,
            BatchItemStatus.FAILED,
            BatchItemStatus.SKIPPED,
        ]
        assert result.item_results[0].error_code == "PERSISTENCE_ERROR"

    def test_log_context_carries_stage_and_company(self, ledger, clock, company_factory, captured_logs):
        company = company_factory(name="B")

        _executor(ledger, clock, []).run_stage(InvestorCountTask(fail_for={"B"}))

        failed = [r for r in captured_logs() if r["message"] == "item_failed_unhandled"]
        assert failed[0]["stage"] == "reconcile"
        assert failed[0]["company_id"] == str(company.company_id)
        assert failed[0]["exc_type"] == "RuntimeError"

    def test_invalid_chunk_size(self, ledger):
        with pytest.raises(ValueError):
            BatchExecutor(ledger, chunk_size=0)


def test_decimal_amounts_survive_checkpoint(ledger, clock, company_factory, session):
    company = company_factory(name="A")

    class WriteTotal(InvestorCountTask):
        def execute_item(self, item, ledger):
            ledger.write_company_aggregate(
                item.company_id, {"total_investment": Decimal("1234.56")},
            )
            return BatchTaskResult(status=BatchItemStatus.UPDATED)

    _executor(ledger, clock, []).run_stage(WriteTotal())

    session.expire_all()
    assert session.get(CompanyModel, company.company_id).total_investment == Decimal("1234.56")
