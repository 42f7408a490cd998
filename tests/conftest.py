"""
Pytest fixtures for the portfolio synthesis test suite.

Provides:
- In-memory SQLite sessions with SAVEPOINT support
- A SqlAlchemyLedger over that session
- A deterministic clock
- A company factory for seeding the ledger
- Captured structured log output
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import portfolio_kernel.models  # noqa: F401  (registers tables)
from portfolio_kernel.db.base import Base
from portfolio_kernel.db.engine import enable_sqlite_savepoints
from portfolio_kernel.domain.clock import DeterministicClock
from portfolio_kernel.domain.records import CompanyAggregate, CompanyProvenance
from portfolio_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from portfolio_kernel.models import CompanyModel
from portfolio_kernel.services.ledger_service import SqlAlchemyLedger

# Placeholder investor identity for companies created by the factory.
TEST_OWNER_ID = UUID("00000000-0000-4000-8000-000000000001")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture portfolio_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.run()
            logs = captured_logs()
            assert any(r["message"] == "run_summary" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("portfolio_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """A fresh in-memory SQLite database per test."""
    eng = enable_sqlite_savepoints(create_engine("sqlite://"))
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    sess = factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def ledger(session, clock) -> SqlAlchemyLedger:
    return SqlAlchemyLedger(session, clock=clock)


# =============================================================================
# Test data
# =============================================================================


def make_company(
    name: str = "Acme Labs",
    rounds: int = 3,
    total_funding: Decimal | str = "3000000",
    valuation: Decimal | str | None = None,
    total_investment: Decimal | str = "0",
    investor_count: int = 0,
    company_id: UUID | None = None,
    **provenance,
) -> CompanyAggregate:
    """Build a CompanyAggregate; valuation defaults to the total funding."""
    total_funding = Decimal(str(total_funding))
    return CompanyAggregate(
        company_id=company_id or uuid4(),
        name=name,
        valuation=Decimal(str(valuation)) if valuation is not None else total_funding,
        total_investment=Decimal(str(total_investment)),
        investor_count=investor_count,
        owner_id=TEST_OWNER_ID,
        provenance=CompanyProvenance(
            funding_round_count=rounds,
            total_funding=total_funding,
            **provenance,
        ),
    )


@pytest.fixture
def company_factory(session):
    """
    Insert companies into the test database and return their aggregates.

    Usage::

        def test_x(company_factory):
            company = company_factory(name="Acme", rounds=2, total_funding="1000000")
    """

    def _create(**kwargs) -> CompanyAggregate:
        company = make_company(**kwargs)
        session.add(CompanyModel.from_dto(company))
        session.flush()
        return company

    return _create
