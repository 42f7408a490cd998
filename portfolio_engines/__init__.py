"""
Module: portfolio_engines
Responsibility:
    Re-exports the pure synthesis, normalization and rollup engines.  This
    is the import surface for ``portfolio_batch``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import ``portfolio_kernel.domain``, ``portfolio_kernel.utils`` and
    the kernel exceptions.  MUST NOT import ``portfolio_batch`` or
    ``portfolio_config``.

Invariants enforced:
    - Engines never read the clock; date windows are parameters.
    - Decimal-only arithmetic for amounts.
    - Given the same seed, the same company always synthesizes the same
      records.
"""

from portfolio_engines.investments import (
    InvestmentRules,
    InvestmentSynthesizer,
    InvestorIdentity,
    ownership_percentage,
    placeholder_investor,
)
from portfolio_engines.milestones import MilestoneRules, MilestoneSynthesizer
from portfolio_engines.normalization import (
    FieldCorrection,
    NormalizationRules,
    UnitNormalizer,
    normalize_amount,
    normalize_ratio,
)
from portfolio_engines.rollup import RollupDrift, compute_rollup, detect_drift
from portfolio_engines.rounds import ROUND_TAXONOMY, RoundRules, RoundSynthesizer
from portfolio_engines.sampling import SynthesisRandom
from portfolio_engines.splitting import SplitFunction, even_split
from portfolio_engines.tracer import traced_engine
from portfolio_engines.valuation_history import (
    ValuationHistorySynthesizer,
    ValuationRules,
)

__all__ = [
    "FieldCorrection",
    "InvestmentRules",
    "InvestmentSynthesizer",
    "InvestorIdentity",
    "MilestoneRules",
    "MilestoneSynthesizer",
    "NormalizationRules",
    "ROUND_TAXONOMY",
    "RollupDrift",
    "RoundRules",
    "RoundSynthesizer",
    "SplitFunction",
    "SynthesisRandom",
    "UnitNormalizer",
    "ValuationHistorySynthesizer",
    "ValuationRules",
    "compute_rollup",
    "detect_drift",
    "even_split",
    "normalize_amount",
    "normalize_ratio",
    "ownership_percentage",
    "placeholder_investor",
    "traced_engine",
]
