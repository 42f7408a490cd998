"""
Config -> Engine Bridges.

Functions that convert settings sections into the rule objects the pure
engines consume.  These live in portfolio_config (the producer) because the
engines must never import portfolio_config.

Usage:
    from portfolio_config.bridges import build_round_rules

    settings = get_active_settings()
    synthesizer = RoundSynthesizer(build_round_rules(settings.rounds))
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from portfolio_config.schema import (
    InvestmentSettings,
    MilestoneSettings,
    NormalizerSettings,
    RoundSettings,
    ValuationSettings,
)
from portfolio_engines.investments import InvestmentRules
from portfolio_engines.milestones import MilestoneRules
from portfolio_engines.normalization import NormalizationRules
from portfolio_engines.rounds import RoundRules
from portfolio_engines.valuation_history import ValuationRules
from portfolio_kernel.domain.records import InvestmentType
from portfolio_kernel.exceptions import ConfigurationError


def _at_midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _window(window: tuple[date, date]) -> tuple[datetime, datetime]:
    return _at_midnight(window[0]), _at_midnight(window[1])


def build_normalization_rules(settings: NormalizerSettings) -> NormalizationRules:
    try:
        return NormalizationRules(
            threshold=settings.threshold,
            factor=settings.factor,
            ratio_ceiling=settings.ratio_ceiling,
            ratio_factor=settings.ratio_factor,
        )
    except ValueError as exc:
        raise ConfigurationError("normalizer", str(exc)) from exc


def build_round_rules(settings: RoundSettings) -> RoundRules:
    try:
        return RoundRules(
            labels=settings.labels,
            default_latest_label=settings.default_latest_label,
            raised_ratio=settings.raised_ratio,
            cap_ratio=settings.cap_ratio,
            minimum_investment_floor=settings.minimum_investment_floor,
            minimum_investment_rate=settings.minimum_investment_rate,
            start_window=_window(settings.start_window),
            end_window=_window(settings.end_window),
        )
    except ValueError as exc:
        raise ConfigurationError("rounds", str(exc)) from exc


def build_investment_rules(settings: InvestmentSettings) -> InvestmentRules:
    try:
        return InvestmentRules(
            investors_per_round=settings.investors_per_round,
            max_investors=settings.max_investors,
            ownership_cap=settings.ownership_cap,
            investment_type=InvestmentType(settings.investment_type),
            created_window=_window(settings.created_window),
        )
    except ValueError as exc:
        raise ConfigurationError("investments", str(exc)) from exc


def build_milestone_rules(settings: MilestoneSettings) -> MilestoneRules:
    try:
        return MilestoneRules(
            acquisition_impact=settings.acquisition_impact,
            revenue_threshold=settings.revenue_threshold,
            revenue_high_impact=settings.revenue_high_impact,
            revenue_low_impact=settings.revenue_low_impact,
            profitability_impact=settings.profitability_impact,
            team_growth_impact=settings.team_growth_impact,
            team_bands=settings.team_bands,
            acquisition_window=_window(settings.acquisition_window),
            team_window=_window(settings.team_window),
            fiscal_year_close=_at_midnight(settings.fiscal_year_close),
        )
    except ValueError as exc:
        raise ConfigurationError("milestones", str(exc)) from exc


def build_valuation_rules(settings: ValuationSettings) -> ValuationRules:
    try:
        return ValuationRules(
            seed_fraction=settings.seed_fraction,
            growth_ratio=settings.growth_ratio,
            base_year=settings.base_year,
        )
    except ValueError as exc:
        raise ConfigurationError("valuation", str(exc)) from exc
