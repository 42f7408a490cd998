"""
Pure domain layer.

Frozen record DTOs and the clock abstraction, with NO dependencies on
SQLAlchemy, the database or I/O.
"""

from portfolio_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from portfolio_kernel.domain.records import (
    AMOUNT_FIELDS,
    AmountRow,
    CompanyAggregate,
    CompanyProvenance,
    FundingRound,
    Investment,
    InvestmentType,
    LedgerEntity,
    Milestone,
    MilestoneType,
    RollupFields,
    SynthesisKind,
    ValuationSnapshot,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AMOUNT_FIELDS",
    "AmountRow",
    "CompanyAggregate",
    "CompanyProvenance",
    "FundingRound",
    "Investment",
    "InvestmentType",
    "LedgerEntity",
    "Milestone",
    "MilestoneType",
    "RollupFields",
    "SynthesisKind",
    "ValuationSnapshot",
]
