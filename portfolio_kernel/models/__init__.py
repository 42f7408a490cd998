"""ORM models. Importing this package registers every table on Base.metadata."""

from portfolio_kernel.models.company import CompanyModel
from portfolio_kernel.models.funding_round import FundingRoundModel
from portfolio_kernel.models.investment import InvestmentModel
from portfolio_kernel.models.milestone import MilestoneModel
from portfolio_kernel.models.valuation_snapshot import ValuationSnapshotModel

__all__ = [
    "CompanyModel",
    "FundingRoundModel",
    "InvestmentModel",
    "MilestoneModel",
    "ValuationSnapshotModel",
]
