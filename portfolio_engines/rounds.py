"""
Module: portfolio_engines.rounds
Responsibility:
    Synthesize a plausible funding-round history for a company from its
    round count and total funding.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Randomness comes from an
    injected ``SynthesisRandom``; no clock access.

Invariants enforced:
    - No rounds when the round count or the total funding is zero.
    - Exactly ``n`` rounds; targets sum to the total funding exactly.
    - Labels follow the taxonomy for the first six rounds and read
      "Round k" beyond; the final round carries the company's latest-round
      label.
    - ``raised <= target`` and ``start < end`` for every round.
    - Rounds are completed and inactive.

Failure modes:
    - SynthesisInvariantError when a generated round fails DTO validation
      (e.g. a total too small to give every round a positive target).

Usage:
    synthesizer = RoundSynthesizer(seed=7)
    rounds = synthesizer.synthesize(company)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_DOWN, Decimal

from portfolio_engines.sampling import SynthesisRandom
from portfolio_engines.splitting import CENT, SplitFunction, even_split
from portfolio_engines.tracer import traced_engine
from portfolio_kernel.domain.records import CompanyAggregate, FundingRound, SynthesisKind
from portfolio_kernel.exceptions import SynthesisInvariantError
from portfolio_kernel.logging_config import get_logger
from portfolio_kernel.utils.idempotency import generate_synthesis_key

logger = get_logger("engines.rounds")

ROUND_TAXONOMY: tuple[str, ...] = (
    "Pre-Seed",
    "Seed",
    "Series A",
    "Series B",
    "Series C",
    "Growth",
)


def _utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@dataclass(frozen=True)
class RoundRules:
    """Constants of round synthesis.  Ratio ranges are half-open [low, high)."""

    labels: tuple[str, ...] = ROUND_TAXONOMY
    default_latest_label: str = "Seed"
    raised_ratio: tuple[Decimal, Decimal] = (Decimal("0.7"), Decimal("1.0"))
    cap_ratio: tuple[Decimal, Decimal] = (Decimal("3.0"), Decimal("5.0"))
    minimum_investment_floor: Decimal = Decimal("1000")
    minimum_investment_rate: Decimal = Decimal("0.001")
    start_window: tuple[datetime, datetime] = (_utc(2020, 1, 1), _utc(2023, 12, 31))
    end_window: tuple[datetime, datetime] = (_utc(2023, 1, 1), _utc(2024, 12, 31))

    def __post_init__(self) -> None:
        if not self.labels:
            raise ValueError("labels must not be empty")
        if self.raised_ratio[1] > Decimal("1"):
            raise ValueError("raised ratio may not exceed 1.0")
        if self.start_window[1] >= self.end_window[1]:
            raise ValueError("start window must close before the end window")

    def label_for(self, ordinal: int) -> str:
        if ordinal <= len(self.labels):
            return self.labels[ordinal - 1]
        return f"Round {ordinal}"


class RoundSynthesizer:
    """
    Generates ``FundingRound`` records for one company.

    Args:
        rules: Round constants; defaults match the reference dataset.
        split: Divides total funding across rounds.
        seed: Seed for per-company random streams; ``None`` is unseeded.
    """

    kind = SynthesisKind.FUNDING_ROUND

    def __init__(
        self,
        rules: RoundRules | None = None,
        split: SplitFunction = even_split,
        seed: int | str | None = None,
    ):
        self._rules = rules or RoundRules()
        self._split = split
        self._seed = seed

    @traced_engine("rounds", "1.0", fingerprint_fields=("company",))
    def synthesize(
        self,
        company: CompanyAggregate,
        rng: SynthesisRandom | None = None,
    ) -> tuple[FundingRound, ...]:
        n = company.provenance.funding_round_count
        total = company.provenance.total_funding
        if n <= 0 or total <= 0:
            logger.debug(
                "rounds_not_applicable",
                extra={"company_id": str(company.company_id), "rounds": n},
            )
            return ()

        rng = rng or SynthesisRandom.for_key(self._seed, self.kind, company.company_id)
        rules = self._rules
        targets = self._split(total, n)
        latest_label = company.provenance.latest_round_label or rules.default_latest_label

        rounds = []
        for ordinal, target in enumerate(targets, start=1):
            raised = (target * rng.ratio(*rules.raised_ratio)).quantize(
                CENT, rounding=ROUND_DOWN,
            )
            cap = (target * rng.ratio(*rules.cap_ratio)).quantize(CENT)
            minimum = max(
                rules.minimum_investment_floor,
                (target * rules.minimum_investment_rate).quantize(CENT),
            )
            start = rng.timestamp_between(*rules.start_window)
            end = rng.timestamp_between(
                max(start + timedelta(seconds=1), rules.end_window[0]),
                rules.end_window[1],
            )
            name = latest_label if ordinal == n else rules.label_for(ordinal)
            try:
                rounds.append(
                    FundingRound(
                        company_id=company.company_id,
                        ordinal=ordinal,
                        round_name=name,
                        target_amount=target,
                        raised_amount=raised,
                        valuation_cap=cap,
                        minimum_investment=minimum,
                        start_time=start,
                        end_time=end,
                        is_completed=True,
                        is_active=False,
                        synthesis_key=generate_synthesis_key(
                            self.kind, company.company_id, ordinal,
                        ),
                    )
                )
            except ValueError as exc:
                raise SynthesisInvariantError(
                    self.kind.value, str(company.company_id), str(exc),
                ) from exc

        return tuple(rounds)
