"""
Tests for the revenue split.

Covers:
- exact sum of shares, rounding in the platform's favour
- platform vs coach-referral payout recipients
- config validation and invalid inputs
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from coachpay.engine import (
    ConfigurationMissing,
    InvalidSplitConfig,
    InvalidSplitInput,
    LeadSource,
    RevenueSplitCalculator,
    SplitConfig,
    validate_split_config,
)

CONFIG = SplitConfig(
    version=1,
    platform_fee_percent=Decimal("30"),
    coach_cost_percent=Decimal("50"),
    lead_cost_percent=Decimal("20"),
)


@pytest.fixture
def calculator():
    return RevenueSplitCalculator()


# ── ₹5,999 enrollment ─────────────────────────────────────


class TestStandardEnrollment:
    def test_platform_lead_breakdown(self, calculator):
        result = calculator.calculate(
            Decimal("5999"), Decimal("180"), LeadSource.platform(), CONFIG,
            servicing_coach_id=7,
        )
        b = result.breakdown
        assert b.net_base == Decimal("5819.00")
        assert b.coach_share == Decimal("2909.50")
        assert b.lead_bonus_share == Decimal("1163.80")
        assert b.platform_share == Decimal("1745.70")
        assert b.lead_bonus_recipient == "platform"
        assert b.platform_retained == Decimal("2909.50")

    def test_platform_lead_pays_servicing_coach_only(self, calculator):
        result = calculator.calculate(
            Decimal("5999"), Decimal("180"), LeadSource.platform(), CONFIG,
            servicing_coach_id=7,
        )
        assert len(result.drafts) == 1
        draft = result.drafts[0]
        assert draft.coach_id == 7
        assert draft.coach_cost_amount == Decimal("2909.50")
        assert draft.lead_bonus_amount == Decimal("0.00")

    def test_referral_combines_shares_for_referring_coach(self, calculator):
        result = calculator.calculate(
            Decimal("5999"), Decimal("180"), LeadSource.coach_referral(3), CONFIG,
            servicing_coach_id=7,
        )
        assert len(result.drafts) == 1
        draft = result.drafts[0]
        assert draft.coach_id == 3
        assert draft.gross_amount == Decimal("4073.30")
        assert result.breakdown.lead_bonus_recipient == "coach"
        assert result.breakdown.platform_retained == Decimal("1745.70")

    def test_referral_needs_no_servicing_coach(self, calculator):
        result = calculator.calculate(
            Decimal("5999"), Decimal("180"), LeadSource.coach_referral(3), CONFIG,
        )
        assert result.drafts[0].coach_id == 3


class TestRounding:
    def test_shares_sum_to_net_exactly(self, calculator):
        config = SplitConfig(
            platform_fee_percent=Decimal("33.34"),
            coach_cost_percent=Decimal("33.33"),
            lead_cost_percent=Decimal("33.33"),
        )
        b = calculator.calculate(
            Decimal("100.01"), Decimal("0"), LeadSource.platform(), config,
            servicing_coach_id=1,
        ).breakdown
        assert b.coach_share == Decimal("33.33")
        assert b.lead_bonus_share == Decimal("33.33")
        assert b.platform_share == Decimal("33.35")
        assert b.coach_share + b.lead_bonus_share + b.platform_share == b.net_base

    def test_odd_amount_sums_exactly(self, calculator):
        b = calculator.calculate(
            Decimal("999.99"), Decimal("17.77"), LeadSource.coach_referral(2), CONFIG,
        ).breakdown
        assert b.coach_share + b.lead_bonus_share + b.platform_share == b.net_base

    def test_zero_fee_produces_no_payouts(self, calculator):
        result = calculator.calculate(
            Decimal("0"), Decimal("0"), LeadSource.platform(), CONFIG,
            servicing_coach_id=1,
        )
        assert result.drafts == []


# ── invalid input ─────────────────────────────────────────


class TestInvalidInput:
    def test_deductions_above_gross(self, calculator):
        with pytest.raises(InvalidSplitInput):
            calculator.calculate(
                Decimal("100"), Decimal("101"), LeadSource.platform(), CONFIG,
                servicing_coach_id=1,
            )

    def test_negative_amount(self, calculator):
        with pytest.raises(InvalidSplitInput):
            calculator.calculate(
                Decimal("-5"), Decimal("0"), LeadSource.platform(), CONFIG,
                servicing_coach_id=1,
            )

    def test_sub_paise_amount(self, calculator):
        with pytest.raises(InvalidSplitInput):
            calculator.calculate(
                Decimal("10.005"), Decimal("0"), LeadSource.platform(), CONFIG,
                servicing_coach_id=1,
            )

    def test_platform_lead_without_servicing_coach(self, calculator):
        with pytest.raises(InvalidSplitInput) as exc:
            calculator.calculate(Decimal("5999"), Decimal("180"), LeadSource.platform(), CONFIG)
        assert exc.value.details["gross_fee"] == "5999.00"

    def test_missing_config(self, calculator):
        with pytest.raises(ConfigurationMissing):
            calculator.calculate(
                Decimal("5999"), Decimal("180"), LeadSource.platform(), None,
                servicing_coach_id=1,
            )


class TestConfigValidation:
    def test_sum_within_epsilon_accepted(self):
        config = SplitConfig(
            platform_fee_percent=Decimal("33.33"),
            coach_cost_percent=Decimal("33.33"),
            lead_cost_percent=Decimal("33.33"),
        )
        assert validate_split_config(config) is config

    def test_sum_outside_epsilon_rejected(self):
        config = SplitConfig(
            platform_fee_percent=Decimal("30"),
            coach_cost_percent=Decimal("50"),
            lead_cost_percent=Decimal("19"),
        )
        with pytest.raises(InvalidSplitConfig) as exc:
            validate_split_config(config)
        assert exc.value.details["lead_cost_percent"] == "19"

    def test_percent_out_of_range_rejected(self):
        config = SplitConfig(
            platform_fee_percent=Decimal("-10"),
            coach_cost_percent=Decimal("90"),
            lead_cost_percent=Decimal("20"),
        )
        with pytest.raises(InvalidSplitConfig):
            validate_split_config(config)

    def test_coach_facing_shares_above_hundred_rejected(self):
        config = SplitConfig(
            platform_fee_percent=Decimal("0"),
            coach_cost_percent=Decimal("60"),
            lead_cost_percent=Decimal("40.01"),
        )
        with pytest.raises(InvalidSplitConfig) as exc:
            validate_split_config(config)
        assert exc.value.details["lead_cost_percent"] == "40.01"

    def test_calculation_refuses_negative_platform_share(self, calculator):
        config = SplitConfig(
            platform_fee_percent=Decimal("0"),
            coach_cost_percent=Decimal("60"),
            lead_cost_percent=Decimal("40.01"),
        )
        with pytest.raises(InvalidSplitConfig):
            calculator.calculate(Decimal("10000"), Decimal("0"), LeadSource.coach_referral(3), config)

    def test_all_to_coaches_leaves_platform_at_zero(self, calculator):
        config = SplitConfig(
            platform_fee_percent=Decimal("0"),
            coach_cost_percent=Decimal("60"),
            lead_cost_percent=Decimal("40"),
        )
        result = calculator.calculate(Decimal("99.99"), Decimal("0"), LeadSource.coach_referral(3), config)
        breakdown = result.breakdown
        assert breakdown.platform_share >= 0
        assert breakdown.coach_share + breakdown.lead_bonus_share <= breakdown.net_base


class TestLeadSource:
    def test_referral_requires_coach(self):
        with pytest.raises(ValidationError):
            LeadSource(kind="coach_referral")

    def test_platform_cannot_carry_coach(self):
        with pytest.raises(ValidationError):
            LeadSource(kind="platform", coach_id=4)

    def test_parse_and_format(self):
        assert LeadSource.parse("platform") == LeadSource.platform()
        source = LeadSource.parse("coach-referral:12")
        assert source.coach_id == 12
        assert str(source) == "coach-referral:12"

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            LeadSource.parse("coach-referral:abc")
