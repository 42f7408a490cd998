"""Kernel services: the SQLAlchemy ledger and the company intake loader."""

from portfolio_kernel.services.company_intake import (
    CompanyIntakeService,
    IntakeResult,
    build_description,
    parse_raw_company,
)
from portfolio_kernel.services.ledger_service import SqlAlchemyLedger

__all__ = [
    "CompanyIntakeService",
    "IntakeResult",
    "SqlAlchemyLedger",
    "build_description",
    "parse_raw_company",
]
