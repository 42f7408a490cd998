"""
Tests for SqlAlchemyLedger over an in-memory SQLite session.

Covers:
- Company reads and filters
- Aggregate writes (allowed fields only)
- Derived record inserts, re-synthesis deletes
- Amount rows for the normalizer
- Error translation to PersistenceError / FatalSetupError
"""

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from portfolio_engines.investments import InvestmentSynthesizer
from portfolio_engines.rounds import RoundSynthesizer
from portfolio_kernel.domain.records import (
    Investment,
    LedgerEntity,
    SynthesisKind,
)
from portfolio_kernel.exceptions import FatalSetupError, PersistenceError
from portfolio_kernel.ledger import CompanyFilter, Ledger, chunked
from portfolio_kernel.models import CompanyModel, FundingRoundModel, InvestmentModel
from tests.conftest import TEST_OWNER_ID


class TestLedgerProtocol:

    def test_sqlalchemy_ledger_satisfies_protocol(self, ledger):
        assert isinstance(ledger, Ledger)

    def test_ping(self, ledger):
        ledger.ping()

    def test_ping_failure_is_fatal(self, ledger, session):
        with patch.object(
            session, "execute", side_effect=OperationalError("SELECT 1", {}, Exception("down")),
        ):
            with pytest.raises(FatalSetupError):
                ledger.ping()


class TestReadCompanies:

    def test_ordered_by_name(self, ledger, company_factory):
        company_factory(name="Zeta")
        company_factory(name="Alpha")

        names = [c.name for c in ledger.read_companies()]

        assert names == ["Alpha", "Zeta"]

    def test_filters(self, ledger, company_factory, session):
        alpha = company_factory(name="Alpha")
        company_factory(name="Beta")
        gamma = company_factory(name="Gamma")
        session.get(CompanyModel, gamma.company_id).is_active = False
        session.flush()

        by_id = ledger.read_companies(CompanyFilter(company_ids=(alpha.company_id,)))
        by_name = ledger.read_companies(CompanyFilter(names=("Beta",)))
        active = ledger.read_companies(CompanyFilter(active_only=True))
        limited = ledger.read_companies(CompanyFilter(limit=1))

        assert [c.name for c in by_id] == ["Alpha"]
        assert [c.name for c in by_name] == ["Beta"]
        assert [c.name for c in active] == ["Alpha", "Beta"]
        assert [c.name for c in limited] == ["Alpha"]

    def test_provenance_round_trips(self, ledger, company_factory):
        company_factory(name="Acme", rounds=4, total_funding="2500000", employees=80)

        (company,) = ledger.read_companies()

        assert company.provenance.funding_round_count == 4
        assert company.provenance.total_funding == Decimal("2500000")
        assert company.provenance.employees == 80
        assert company.owner_id == TEST_OWNER_ID

    def test_empty_filter(self):
        assert CompanyFilter().is_empty
        assert not CompanyFilter(limit=3).is_empty


class TestWriteCompanyAggregate:

    def test_partial_update(self, ledger, company_factory, session, clock):
        company = company_factory()
        clock.advance(60)

        ledger.write_company_aggregate(
            company.company_id,
            {"total_investment": Decimal("600"), "investor_count": 2},
        )

        model = session.get(CompanyModel, company.company_id)
        assert model.total_investment == Decimal("600")
        assert model.investor_count == 2
        assert model.valuation == company.valuation
        assert model.updated_at == clock.now()

    def test_unwritable_field_rejected(self, ledger, company_factory):
        company = company_factory()

        with pytest.raises(ValueError):
            ledger.write_company_aggregate(company.company_id, {"name": "Other"})

    def test_unknown_company(self, ledger):
        with pytest.raises(PersistenceError) as exc_info:
            ledger.write_company_aggregate(uuid4(), {"investor_count": 1})

        assert exc_info.value.operation == "write_company_aggregate"

    def test_constraint_violation_is_translated(self, ledger, company_factory):
        company = company_factory()

        with pytest.raises(PersistenceError) as exc_info:
            ledger.write_company_aggregate(company.company_id, {"investor_count": -1})

        assert exc_info.value.company_id == str(company.company_id)


class TestDerivedRecords:

    def test_insert_and_read_investments(self, ledger, company_factory):
        company = company_factory(rounds=2, total_funding="1000000")
        lines = InvestmentSynthesizer(seed=1).synthesize(company)

        inserted = ledger.insert_investments(company.company_id, lines)
        stored = ledger.read_investments(company.company_id)

        assert inserted == 4
        assert sum(line.amount for line in stored) == Decimal("1000000")
        assert {line.synthesis_key for line in stored} == {
            line.synthesis_key for line in lines
        }

    def test_insert_rejects_foreign_records(self, ledger, company_factory):
        company = company_factory()
        other = company_factory(name="Other")
        rounds = RoundSynthesizer(seed=1).synthesize(other)

        with pytest.raises(ValueError):
            ledger.insert_rounds(company.company_id, rounds)

    def test_duplicate_synthesis_key_is_a_persistence_error(self, ledger, company_factory):
        company = company_factory()
        rounds = RoundSynthesizer(seed=1).synthesize(company)
        ledger.insert_rounds(company.company_id, rounds)

        with pytest.raises(PersistenceError) as exc_info:
            ledger.insert_rounds(company.company_id, rounds[:1])

        assert exc_info.value.operation == "insert_rounds"
        # The failed insert rolled back only its own savepoint.
        assert len(ledger.session.scalars(select(FundingRoundModel)).all()) == 3

    def test_delete_synthesized_leaves_foreign_rows(self, ledger, company_factory, session):
        company = company_factory(rounds=1, total_funding="1000")
        ledger.insert_investments(
            company.company_id, InvestmentSynthesizer(seed=1).synthesize(company),
        )
        ledger.insert_investments(company.company_id, [
            Investment(
                company_id=company.company_id,
                investor_id=uuid4(),
                amount=Decimal("5"),
                ownership_percentage=Decimal("1"),
            ),
        ])

        deleted = ledger.delete_synthesized(company.company_id, SynthesisKind.INVESTMENT)

        remaining = session.scalars(select(InvestmentModel)).all()
        assert deleted == 2
        assert len(remaining) == 1
        assert remaining[0].synthesis_key is None

    def test_delete_synthesized_is_scoped_to_company(self, ledger, company_factory):
        a = company_factory(name="A", rounds=2)
        b = company_factory(name="B", rounds=2)
        for company in (a, b):
            ledger.insert_rounds(
                company.company_id, RoundSynthesizer(seed=1).synthesize(company),
            )

        assert ledger.delete_synthesized(a.company_id, SynthesisKind.FUNDING_ROUND) == 2
        assert ledger.delete_synthesized(a.company_id, SynthesisKind.FUNDING_ROUND) == 0
        assert ledger.delete_synthesized(b.company_id, SynthesisKind.FUNDING_ROUND) == 2


class TestAmountRows:

    def test_company_rows(self, ledger, company_factory):
        company = company_factory(total_funding="2.5", valuation="2.5")

        (row,) = ledger.read_amount_rows(LedgerEntity.COMPANY)

        assert row.record_id == company.company_id
        assert row.company_id == company.company_id
        assert row.values["valuation"] == Decimal("2.5")
        assert row.values["total_funding"] == Decimal("2.5")
        assert row.key == f"company:{company.company_id}"

    def test_write_record_field(self, ledger, company_factory, session):
        company = company_factory(valuation="3")

        ledger.write_record_field(
            LedgerEntity.COMPANY, company.company_id, "valuation", Decimal("3000000"),
        )

        assert session.get(CompanyModel, company.company_id).valuation == Decimal("3000000")

    def test_write_record_field_rejects_other_fields(self, ledger, company_factory):
        company = company_factory()

        with pytest.raises(ValueError):
            ledger.write_record_field(
                LedgerEntity.COMPANY, company.company_id, "investor_count", Decimal("1"),
            )

    def test_raised_above_target_is_rejected(self, ledger, company_factory, session):
        company = company_factory(rounds=1, total_funding="1000000")
        ledger.insert_rounds(company.company_id, RoundSynthesizer(seed=1).synthesize(company))
        stored = session.scalars(select(FundingRoundModel)).one()
        record_id, target = stored.id, stored.target_amount

        with pytest.raises(PersistenceError) as exc_info:
            ledger.write_record_field(
                LedgerEntity.FUNDING_ROUND, record_id, "raised_amount", target + 1,
            )

        assert exc_info.value.operation == "write_record_field"
        session.expire_all()
        assert session.get(FundingRoundModel, record_id).raised_amount <= target

    def test_synthesized_records_have_no_amount_rows(self, ledger, company_factory):
        company = company_factory(rounds=2, total_funding="2000000")
        ledger.insert_investments(
            company.company_id, InvestmentSynthesizer(seed=1).synthesize(company),
        )
        ledger.insert_investments(company.company_id, [
            Investment(
                company_id=company.company_id,
                investor_id=uuid4(),
                amount=Decimal("5"),
                ownership_percentage=Decimal("1"),
            ),
        ])

        (row,) = ledger.read_amount_rows(LedgerEntity.INVESTMENT)

        assert row.values["amount"] == Decimal("5")

    def test_write_record_field_missing_record(self, ledger):
        with pytest.raises(PersistenceError):
            ledger.write_record_field(
                LedgerEntity.INVESTMENT, uuid4(), "amount", Decimal("1"),
            )


class TestTransactions:

    def test_unit_of_work_rolls_back_on_error(self, ledger, company_factory, session):
        company = company_factory()

        with pytest.raises(RuntimeError):
            with ledger.unit_of_work():
                ledger.write_company_aggregate(company.company_id, {"investor_count": 9})
                raise RuntimeError("abort")

        session.expire_all()
        assert session.get(CompanyModel, company.company_id).investor_count == 0

    def test_checkpoint_commits(self, ledger, company_factory, session):
        company = company_factory()
        ledger.write_company_aggregate(company.company_id, {"investor_count": 4})

        ledger.checkpoint()
        session.rollback()
        session.expire_all()

        assert session.get(CompanyModel, company.company_id).investor_count == 4

    def test_failed_checkpoint_is_a_persistence_error(self, ledger, session):
        with patch.object(
            session, "commit", side_effect=OperationalError("COMMIT", {}, Exception("gone")),
        ):
            with pytest.raises(PersistenceError) as exc_info:
                ledger.checkpoint()

        assert exc_info.value.operation == "checkpoint"

    def test_top_companies_by_investment(self, ledger, company_factory):
        company_factory(name="Small", total_investment="10")
        company_factory(name="Large", total_investment="1000")
        company_factory(name="Medium", total_investment="100")

        top = ledger.top_companies_by_investment(limit=2)

        assert [c.name for c in top] == ["Large", "Medium"]


class TestChunked:

    def test_chunks(self):
        assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))
