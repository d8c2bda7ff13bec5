"""
Tests for withholding rate resolution.

Covers:
- threshold gate on year-to-date payouts
- standard vs penal rate by tax identity
- missing configuration
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from coachpay.engine import ConfigurationMissing, TaxConfig, TaxWithholdingResolver
from coachpay.engine.tax import is_valid_aadhaar, is_valid_pan
from coachpay.engine.types import RateKind

CONFIG = TaxConfig(
    standard_rate=Decimal("10"),
    penal_rate=Decimal("20"),
    threshold=Decimal("30000"),
)


@pytest.fixture
def resolver():
    return TaxWithholdingResolver()


# ── threshold ─────────────────────────────────────────────


class TestThreshold:
    def test_below_threshold_withholds_nothing(self, resolver):
        decision = resolver.resolve("pan", "ABCDE1234F", False, Decimal("12000"), CONFIG)
        assert decision.threshold_met is False
        assert decision.effective_rate == 0
        assert decision.withholding_for(Decimal("12000")) == Decimal("0.00")

    def test_exactly_at_threshold_is_not_met(self, resolver):
        decision = resolver.resolve("pan", "ABCDE1234F", False, Decimal("30000"), CONFIG)
        assert decision.threshold_met is False

    def test_above_threshold_applies_rate(self, resolver):
        decision = resolver.resolve("pan", "ABCDE1234F", False, Decimal("30000.01"), CONFIG)
        assert decision.threshold_met is True
        assert decision.rate == Decimal("10")
        assert decision.withholding_for(Decimal("4073.30")) == Decimal("407.33")

    def test_withholding_rounds_half_up(self, resolver):
        decision = resolver.resolve("pan", "ABCDE1234F", False, Decimal("50000"), CONFIG)
        assert decision.withholding_for(Decimal("1234.55")) == Decimal("123.46")

    def test_zero_amount_withholds_nothing(self, resolver):
        decision = resolver.resolve("pan", "ABCDE1234F", False, Decimal("50000"), CONFIG)
        assert decision.withholding_for(Decimal("0")) == Decimal("0.00")


# ── rate kind ─────────────────────────────────────────────


class TestRateKind:
    def test_valid_pan_gets_standard_rate(self, resolver):
        decision = resolver.resolve("pan", "ABCDE1234F", False, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.STANDARD

    def test_lowercase_spaced_pan_is_normalized(self, resolver):
        decision = resolver.resolve("pan", " abcde 1234f ", False, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.STANDARD

    def test_malformed_pan_gets_penal_rate(self, resolver):
        decision = resolver.resolve("pan", "ABCD1234F", False, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.PENAL
        assert decision.rate == Decimal("20")

    def test_linked_aadhaar_gets_standard_rate(self, resolver):
        decision = resolver.resolve("aadhaar", "234567890123", True, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.STANDARD

    def test_unverified_aadhaar_gets_penal_rate(self, resolver):
        decision = resolver.resolve("aadhaar", "234567890123", False, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.PENAL

    def test_no_identifier_gets_penal_rate(self, resolver):
        decision = resolver.resolve(None, None, False, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.PENAL

    def test_unknown_identifier_type_gets_penal_rate(self, resolver):
        decision = resolver.resolve("passport", "ABCDE1234F", True, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.PENAL

    def test_resolve_for_coach_reads_row_fields(self, resolver):
        coach = SimpleNamespace(
            tax_id_type="aadhaar",
            tax_id_value="2345 6789 0123",
            tax_linkage_verified=True,
        )
        decision = resolver.resolve_for_coach(coach, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.STANDARD

    def test_missing_coach_is_penal(self, resolver):
        decision = resolver.resolve_for_coach(None, Decimal("40000"), CONFIG)
        assert decision.rate_kind == RateKind.PENAL


# ── configuration ─────────────────────────────────────────


class TestConfiguration:
    def test_missing_config_raises(self, resolver):
        with pytest.raises(ConfigurationMissing):
            resolver.resolve("pan", "ABCDE1234F", False, Decimal("40000"), None)

    def test_incomplete_config_lists_missing_fields(self, resolver):
        partial = TaxConfig(standard_rate=Decimal("10"))
        with pytest.raises(ConfigurationMissing) as exc:
            resolver.resolve("pan", "ABCDE1234F", False, Decimal("40000"), partial)
        assert exc.value.details["missing"] == ["penal_rate", "threshold"]


class TestIdentifierFormats:
    def test_pan_format(self):
        assert is_valid_pan("ABCDE1234F")
        assert not is_valid_pan("ABCDE12345")
        assert not is_valid_pan(None)

    def test_aadhaar_format(self):
        assert is_valid_aadhaar("234567890123")
        assert not is_valid_aadhaar("134567890123")  # cannot start with 0 or 1
        assert not is_valid_aadhaar("23456789012")
