"""
Tests for the milestone synthesizer.
"""

from decimal import Decimal

import pytest

from portfolio_engines.milestones import MilestoneRules, MilestoneSynthesizer
from portfolio_kernel.domain.records import MilestoneType
from tests.conftest import make_company


class TestMilestoneSynthesizer:

    def setup_method(self):
        self.synthesizer = MilestoneSynthesizer(seed=42)
        self.rules = MilestoneRules()

    def test_nothing_to_report_yields_no_milestones(self):
        assert self.synthesizer.synthesize(make_company()) == ()

    def test_full_profile(self):
        company = make_company(
            acquisitions=2,
            revenue=Decimal("150"),
            profit=Decimal("10"),
            employees=120,
        )

        milestones = self.synthesizer.synthesize(company)

        assert [m.milestone_type for m in milestones] == [
            MilestoneType.ACQUISITION,
            MilestoneType.ACQUISITION,
            MilestoneType.REVENUE_TARGET,
            MilestoneType.PROFITABILITY,
            MilestoneType.TEAM_GROWTH,
        ]
        assert [m.valuation_impact for m in milestones] == [
            Decimal("0.10"),
            Decimal("0.10"),
            Decimal("0.20"),
            Decimal("0.25"),
            Decimal("0.05"),
        ]
        assert [m.description for m in milestones] == [
            "Successfully completed acquisition #1",
            "Successfully completed acquisition #2",
            "Achieved ₹150M revenue in FY 2022-23",
            "Achieved profitability with ₹10M profit",
            "Scaled team to 100+ employees",
        ]
        assert [m.synthesis_key for m in milestones] == [
            f"milestone:{company.company_id}:{k}" for k in range(1, 6)
        ]

    def test_revenue_at_threshold_gets_low_weight(self):
        (milestone,) = self.synthesizer.synthesize(make_company(revenue=Decimal("100")))

        assert milestone.milestone_type is MilestoneType.REVENUE_TARGET
        assert milestone.valuation_impact == Decimal("0.10")

    def test_fractional_revenue_description(self):
        (milestone,) = self.synthesizer.synthesize(make_company(revenue=Decimal("12.5")))

        assert milestone.description == "Achieved ₹12.5M revenue in FY 2022-23"

    def test_loss_gives_no_profitability_milestone(self):
        milestones = self.synthesizer.synthesize(make_company(profit=Decimal("-3")))

        assert milestones == ()

    @pytest.mark.parametrize(
        "employees, band",
        [(50, None), (51, "50+"), (100, "50+"), (101, "100+"), (500, "100+"), (501, "500+")],
    )
    def test_team_bands(self, employees, band):
        milestones = self.synthesizer.synthesize(make_company(employees=employees))

        if band is None:
            assert milestones == ()
        else:
            (milestone,) = milestones
            assert milestone.description == f"Scaled team to {band} employees"

    def test_all_milestones_verified(self):
        milestones = self.synthesizer.synthesize(
            make_company(acquisitions=3, revenue=Decimal("1"), employees=60),
        )

        assert all(m.verified for m in milestones)

    def test_verification_dates(self):
        milestones = self.synthesizer.synthesize(
            make_company(acquisitions=4, revenue=Decimal("5"), profit=Decimal("1"), employees=600),
        )

        by_type = {}
        for m in milestones:
            by_type.setdefault(m.milestone_type, []).append(m)
        low, high = self.rules.acquisition_window
        assert all(low <= m.verified_at <= high for m in by_type[MilestoneType.ACQUISITION])
        assert by_type[MilestoneType.REVENUE_TARGET][0].verified_at == self.rules.fiscal_year_close
        assert by_type[MilestoneType.PROFITABILITY][0].verified_at == self.rules.fiscal_year_close
        low, high = self.rules.team_window
        assert low <= by_type[MilestoneType.TEAM_GROWTH][0].verified_at <= high

    def test_same_seed_same_milestones(self):
        company = make_company(acquisitions=3, employees=70)

        assert MilestoneSynthesizer(seed=4).synthesize(company) == (
            MilestoneSynthesizer(seed=4).synthesize(company)
        )


class TestMilestoneRules:

    def test_weights_must_be_fractions(self):
        with pytest.raises(ValueError):
            MilestoneRules(profitability_impact=Decimal("25"))

    def test_bands_must_be_ordered(self):
        with pytest.raises(ValueError):
            MilestoneRules(team_bands=((50, "50+"), (500, "500+")))

    def test_team_band_uses_strict_threshold(self):
        assert self.rules_band(500) == "100+"
        assert self.rules_band(10) is None

    @staticmethod
    def rules_band(employees):
        return MilestoneRules().team_band(employees)
