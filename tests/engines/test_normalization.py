"""
Tests for the unit normalizer.

Covers:
- Currency rescaling of values stored in millions
- Ratio handling of milestone valuation-impact weights
- Idempotence of both rules
- Per-field correction planning over stored rows
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given
from hypothesis import strategies as st

from portfolio_engines.normalization import (
    NormalizationRules,
    UnitNormalizer,
    normalize_amount,
    normalize_ratio,
)
from portfolio_kernel.domain.records import AmountRow, LedgerEntity

amounts = st.decimals(
    min_value=Decimal("1"),
    max_value=Decimal("1000000000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
ratios = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1000000000"),
    places=6,
    allow_nan=False,
    allow_infinity=False,
)


class TestNormalizeAmount:

    def test_value_in_millions_is_rescaled(self):
        assert normalize_amount(Decimal("2.5")) == Decimal("2500000")

    def test_value_just_below_threshold_is_rescaled(self):
        assert normalize_amount(Decimal("999999")) == Decimal("999999000000")

    def test_threshold_itself_is_left_alone(self):
        assert normalize_amount(Decimal("1000000")) == Decimal("1000000")

    def test_large_value_is_left_alone(self):
        assert normalize_amount(Decimal("25000000")) == Decimal("25000000")

    @pytest.mark.parametrize("value", [Decimal("0"), Decimal("-5")])
    def test_zero_and_negative_values_are_left_alone(self, value):
        assert normalize_amount(value) == value

    def test_custom_threshold_and_factor(self):
        assert normalize_amount(
            Decimal("5"), threshold=Decimal("1000"), factor=Decimal("1000"),
        ) == Decimal("5000")

    @given(amounts)
    def test_idempotent_for_values_of_at_least_one(self, value):
        once = normalize_amount(value)
        assert normalize_amount(once) == once


class TestNormalizeRatio:

    def test_fraction_is_left_alone(self):
        assert normalize_ratio(Decimal("0.25")) == Decimal("0.25")

    def test_ceiling_itself_is_left_alone(self):
        assert normalize_ratio(Decimal("1")) == Decimal("1")

    def test_currency_scaled_weight_is_scaled_back(self):
        assert normalize_ratio(Decimal("250000")) == Decimal("0.25")

    def test_result_is_capped_at_the_ceiling(self):
        assert normalize_ratio(Decimal("5000000")) == Decimal("1")

    @given(ratios)
    def test_idempotent_for_every_non_negative_value(self, value):
        once = normalize_ratio(value)
        assert normalize_ratio(once) == once
        assert once <= Decimal("1") or once == value


class TestUnitNormalizer:

    def setup_method(self):
        self.normalizer = UnitNormalizer()

    def test_each_field_is_judged_on_its_own(self):
        row = AmountRow(
            entity=LedgerEntity.COMPANY,
            record_id=uuid4(),
            company_id=uuid4(),
            values={
                "valuation": Decimal("5"),
                "total_investment": Decimal("2000000"),
                "total_funding": Decimal("3.5"),
            },
        )

        corrections = self.normalizer.plan(row)

        assert [(c.field, c.old_value, c.new_value) for c in corrections] == [
            ("valuation", Decimal("5"), Decimal("5000000")),
            ("total_funding", Decimal("3.5"), Decimal("3500000")),
        ]

    def test_consistent_row_needs_no_correction(self):
        row = AmountRow(
            entity=LedgerEntity.INVESTMENT,
            record_id=uuid4(),
            company_id=uuid4(),
            values={"amount": Decimal("250000")},
        )

        assert self.normalizer.plan(row) == ()

    def test_missing_values_are_skipped(self):
        row = AmountRow(
            entity=LedgerEntity.FUNDING_ROUND,
            record_id=uuid4(),
            company_id=uuid4(),
            values={"target_amount": None, "raised_amount": Decimal("4")},
        )

        corrections = self.normalizer.plan(row)

        assert len(corrections) == 1
        assert corrections[0].field == "raised_amount"

    def test_milestone_weight_is_never_currency_rescaled(self):
        row = AmountRow(
            entity=LedgerEntity.MILESTONE,
            record_id=uuid4(),
            company_id=uuid4(),
            values={"valuation_impact": Decimal("0.2")},
        )

        assert self.normalizer.plan(row) == ()

    def test_milestone_weight_scaled_like_currency_is_repaired(self):
        record_id = uuid4()
        row = AmountRow(
            entity=LedgerEntity.MILESTONE,
            record_id=record_id,
            company_id=uuid4(),
            values={"valuation_impact": Decimal("100000")},
        )

        (correction,) = self.normalizer.plan(row)

        assert correction.record_id == record_id
        assert correction.new_value == Decimal("0.1")

    def test_custom_rules_are_applied(self):
        normalizer = UnitNormalizer(
            NormalizationRules(threshold=Decimal("1000"), factor=Decimal("1000")),
        )

        assert normalizer.normalize_field(
            LedgerEntity.INVESTMENT, "amount", Decimal("2"),
        ) == Decimal("2000")


class TestNormalizationRules:

    def test_factor_must_exceed_one(self):
        with pytest.raises(ValueError):
            NormalizationRules(factor=Decimal("1"))

    def test_threshold_must_be_positive(self):
        with pytest.raises(ValueError):
            NormalizationRules(threshold=Decimal("0"))
