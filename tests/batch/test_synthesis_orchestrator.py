"""
End-to-end tests for SynthesisOrchestrator over in-memory SQLite.

Covers the full default pipeline, re-run idempotence, seeded determinism,
verify-only runs and run-level failure handling.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from portfolio_batch import SynthesisOrchestrator, build_task_registry
from portfolio_batch.domain.types import BatchRunStatus, StageName
from portfolio_config.schema import BatchSettings, SynthesisSettings
from portfolio_kernel.exceptions import FatalSetupError, TaskNotRegisteredError
from portfolio_kernel.ledger import CompanyFilter
from portfolio_kernel.models import (
    CompanyModel,
    FundingRoundModel,
    InvestmentModel,
    ValuationSnapshotModel,
)

SETTINGS = SynthesisSettings(batch=BatchSettings(chunk_size=2, delay_seconds=0.0, seed=7))


def _no_sleep(seconds):
    return None


@pytest.fixture
def orchestrator(session, clock):
    return SynthesisOrchestrator.from_session(
        session, settings=SETTINGS, clock=clock, sleep=_no_sleep,
    )


def _investment_snapshot(session):
    rows = session.scalars(
        select(InvestmentModel).order_by(InvestmentModel.synthesis_key)
    ).all()
    return [(r.synthesis_key, r.amount, r.created_at) for r in rows]


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


class TestBuildTaskRegistry:

    def test_every_stage_registered(self):
        registry = build_task_registry(SynthesisSettings())

        assert registry.list_tasks() == tuple(sorted(s.value for s in StageName))

    def test_seed_override(self, company_factory):
        company = company_factory(rounds=2, total_funding="10000000")
        configured = build_task_registry(SETTINGS)
        overridden = build_task_registry(SETTINGS, seed=8)

        def amounts(registry):
            task = registry.get(StageName.ROUNDS)
            return [r.raised_amount for r in task._synthesizer.synthesize(company)]

        assert amounts(configured) == amounts(build_task_registry(SETTINGS, seed=7))
        assert amounts(configured) != amounts(overridden)


class TestFullPipeline:

    def test_pipeline_populates_the_ledger(self, orchestrator, company_factory, session):
        company_factory(rounds=2, total_funding="10000000", valuation="50000000")

        summary = orchestrator.run()

        assert summary.status == BatchRunStatus.COMPLETED
        assert [s.stage for s in summary.stages] == [
            StageName.NORMALIZE,
            StageName.ROUNDS,
            StageName.INVESTMENTS,
            StageName.MILESTONES,
            StageName.VALUATION_HISTORY,
            StageName.RECONCILE,
        ]
        assert _count(session, FundingRoundModel) == 2
        assert _count(session, InvestmentModel) == 4
        assert _count(session, ValuationSnapshotModel) == 2
        assert summary.stage(StageName.MILESTONES).skipped == 1

        model = session.scalars(select(CompanyModel)).one()
        assert model.total_investment == Decimal("10000000")
        assert model.investor_count == 1
        assert summary.stage(StageName.RECONCILE).updated == 1

    def test_rerun_is_idempotent(self, orchestrator, company_factory, session):
        company_factory(rounds=2, total_funding="10000000", valuation="50000000")
        orchestrator.run()
        first = _investment_snapshot(session)

        summary = orchestrator.run()

        assert _investment_snapshot(session) == first
        assert _count(session, FundingRoundModel) == 2
        assert summary.stage(StageName.NORMALIZE).updated == 0
        assert summary.stage(StageName.RECONCILE).unchanged == 1

    def test_rerun_keeps_sub_million_lines(self, orchestrator, company_factory, session):
        company_factory(rounds=2, total_funding="2000000", valuation="50000000")
        orchestrator.run()
        first = _investment_snapshot(session)
        assert min(amount for _, amount, _ in first) < Decimal("1000000")

        partial = orchestrator.run([StageName.NORMALIZE, StageName.RECONCILE])
        full = orchestrator.run()

        assert partial.stage(StageName.NORMALIZE).updated == 0
        assert partial.stage(StageName.RECONCILE).unchanged == 1
        assert full.stage(StageName.NORMALIZE).updated == 0
        assert _investment_snapshot(session) == first
        model = session.scalars(select(CompanyModel)).one()
        assert model.total_investment == Decimal("2000000")
        for round_ in session.scalars(select(FundingRoundModel)):
            assert round_.raised_amount <= round_.target_amount

    def test_same_seed_same_records(self, session, clock, company_factory):
        company_factory(rounds=3, total_funding="30000000")
        SynthesisOrchestrator.from_session(
            session, settings=SETTINGS, clock=clock, sleep=_no_sleep,
        ).run([StageName.INVESTMENTS])
        first = _investment_snapshot(session)

        SynthesisOrchestrator.from_session(
            session, settings=SETTINGS, clock=clock, sleep=_no_sleep, seed=7,
        ).run([StageName.INVESTMENTS])

        assert _investment_snapshot(session) == first

    def test_top_companies_reported_after_reconcile(self, orchestrator, company_factory):
        company_factory(name="Small", rounds=1, total_funding="2000000")
        company_factory(name="Large", rounds=1, total_funding="9000000")

        summary = orchestrator.run()

        assert [c.name for c in summary.top_companies] == ["Large", "Small"]
        assert summary.as_dict()["top_companies"][0]["name"] == "Large"

    def test_company_filter(self, orchestrator, company_factory, session):
        company_factory(name="Keep", rounds=1, total_funding="2000000")
        company_factory(name="Drop", rounds=1, total_funding="2000000")

        orchestrator.run([StageName.ROUNDS], company_filter=CompanyFilter(names=("Keep",)))

        assert _count(session, FundingRoundModel) == 1


class TestStageSelection:

    def test_verify_only_reports_drift(self, orchestrator, company_factory, session):
        company = company_factory(rounds=2, total_funding="10000000")
        orchestrator.run()
        orchestrator.ledger.write_company_aggregate(
            company.company_id, {"total_investment": Decimal("5")},
        )
        orchestrator.ledger.checkpoint()

        summary = orchestrator.run([StageName.VERIFY_ROLLUPS])

        verify = summary.stage(StageName.VERIFY_ROLLUPS)
        assert verify.drifted == 1
        assert summary.top_companies == ()
        session.expire_all()
        assert session.get(CompanyModel, company.company_id).total_investment == Decimal("5")

    def test_stages_run_in_requested_order(self, orchestrator, company_factory):
        company_factory()

        summary = orchestrator.run(["reconcile", "rounds"])

        assert [s.stage for s in summary.stages] == [StageName.RECONCILE, StageName.ROUNDS]

    def test_unknown_stage_aborts_before_any_work(self, orchestrator, company_factory, session):
        company_factory()

        with pytest.raises(TaskNotRegisteredError):
            orchestrator.run(["rounds", "forecasts"])

        assert _count(session, FundingRoundModel) == 0


class TestRunFailures:

    def test_unreachable_ledger_aborts(self, orchestrator):
        with patch.object(orchestrator.ledger, "ping", side_effect=FatalSetupError("down")):
            with pytest.raises(FatalSetupError):
                orchestrator.run()

    def test_summary_is_logged(self, orchestrator, company_factory, captured_logs):
        company_factory()

        summary = orchestrator.run([StageName.ROUNDS], run_id="run-1")

        logged = [r for r in captured_logs() if r["message"] == "run_summary"]
        assert logged[0]["run_id"] == "run-1"
        assert logged[0]["summary"] == summary.as_dict()
        assert summary.as_dict()["stages"]["rounds"]["updated"] == 1

    def test_failed_companies_collected(self, orchestrator, company_factory):
        company = company_factory()

        with patch.object(
            orchestrator.ledger, "insert_rounds", side_effect=RuntimeError("boom"),
        ):
            summary = orchestrator.run([StageName.ROUNDS])

        assert summary.status == BatchRunStatus.FAILED
        assert summary.failed_company_ids == (str(company.company_id),)
        assert summary.total_errors == 1
