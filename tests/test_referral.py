"""
Tests for referral attribution.

Covers:
- code resolution against active coaches
- first-touch stamping
- attribution conflict reporting
- referral code generation and masking of identifiers
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from coachpay.engine import (
    AttributionConflict,
    LeadSource,
    ReferralAttributionTracker,
    SourceKind,
    generate_referral_code,
    normalize_code,
)
from coachpay.utils.masking import mask_aadhaar, mask_bank_account, mask_pan, mask_tax_id

NOW = datetime(2026, 9, 14, tzinfo=timezone.utc)


def _make_coach(id, code, **kwargs):
    defaults = {"id": id, "referral_code": code, "is_active": True, "exit_status": "none"}
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


@pytest.fixture
def tracker():
    return ReferralAttributionTracker(clock=lambda: NOW)


# ── resolution ────────────────────────────────────────────


class TestResolve:
    def test_code_is_case_insensitive(self, tracker):
        coaches = [_make_coach(4, "PRIYA7K2Q")]
        assert tracker.resolve("  priya7k2q ", coaches) == LeadSource.coach_referral(4)

    def test_unknown_code_is_platform(self, tracker):
        assert tracker.resolve("NOPE", [_make_coach(4, "PRIYA7K2Q")]) == LeadSource.platform()

    def test_no_code_is_platform(self, tracker):
        assert tracker.resolve(None, []).kind == SourceKind.PLATFORM

    def test_exited_coach_cannot_refer(self, tracker):
        coaches = [_make_coach(4, "PRIYA7K2Q", exit_status="exited")]
        assert tracker.resolve("PRIYA7K2Q", coaches) == LeadSource.platform()

    def test_inactive_coach_cannot_refer(self, tracker):
        coaches = [_make_coach(4, "PRIYA7K2Q", is_active=False)]
        assert tracker.resolve("PRIYA7K2Q", coaches) == LeadSource.platform()

    def test_coach_pending_exit_still_refers(self, tracker):
        coaches = [_make_coach(4, "PRIYA7K2Q", exit_status="pending")]
        assert tracker.resolve("PRIYA7K2Q", coaches).coach_id == 4


# ── first touch ───────────────────────────────────────────


class TestFirstTouch:
    def test_unstamped_lead_is_stamped(self, tracker):
        lead = SimpleNamespace(id=1, source_kind=None, source_coach_id=None)
        decision = tracker.decide_stamp(lead, LeadSource.coach_referral(4))
        assert decision.stamp is True
        assert decision.source.coach_id == 4

    def test_second_touch_keeps_first_source(self, tracker):
        lead = SimpleNamespace(id=1, source_kind="coach_referral", source_coach_id=4)
        decision = tracker.decide_stamp(lead, LeadSource.coach_referral(9))
        assert decision.stamp is False
        assert decision.source == LeadSource.coach_referral(4)

    def test_platform_lead_not_restamped_by_referral(self, tracker):
        lead = SimpleNamespace(id=1, source_kind="platform", source_coach_id=None)
        decision = tracker.decide_stamp(lead, LeadSource.coach_referral(4))
        assert decision.stamp is False
        assert decision.source == LeadSource.platform()

    def test_visit_record_uses_clock(self, tracker):
        visit = tracker.record_visit("priya7k2q", _make_coach(4, "PRIYA7K2Q"), lead_id=3)
        assert visit.referral_code == "PRIYA7K2Q"
        assert visit.coach_id == 4
        assert visit.visited_at == NOW

    def test_visit_with_unknown_code_has_no_coach(self, tracker):
        visit = tracker.record_visit("nope", None)
        assert visit.coach_id is None


class TestConsistency:
    def test_mismatch_reported(self):
        conflict = ReferralAttributionTracker.check_consistency(
            LeadSource.coach_referral(4), LeadSource.platform(), {"lead_id": 1},
        )
        assert isinstance(conflict, AttributionConflict)
        assert conflict.details["expected"] == "coach-referral:4"
        assert conflict.details["actual"] == "platform"

    def test_match_or_no_expectation_is_fine(self):
        source = LeadSource.platform()
        assert ReferralAttributionTracker.check_consistency(source, source, {}) is None
        assert ReferralAttributionTracker.check_consistency(None, source, {}) is None


# ── codes and masking ─────────────────────────────────────


class TestCodes:
    def test_generated_code_uses_first_name(self):
        code = generate_referral_code("Priya Sharma", length=4)
        assert code.startswith("PRIYA")
        assert len(code) == len("PRIYA") + 4

    def test_generated_code_without_letters(self):
        assert generate_referral_code("  ", length=3).startswith("COACH")

    def test_normalize_code(self):
        assert normalize_code(" ab12 ") == "AB12"
        assert normalize_code("   ") is None


class TestMasking:
    def test_mask_pan(self):
        assert mask_pan("ABCDE1234F") == "AB*****34F"

    def test_mask_aadhaar(self):
        assert mask_aadhaar("2345 6789 0123") == "********0123"

    def test_mask_bank_account(self):
        assert mask_bank_account("123456789012") == "****9012"

    def test_mask_tax_id_by_type(self):
        assert mask_tax_id("pan", "ABCDE1234F") == "AB*****34F"
        assert mask_tax_id("aadhaar", "234567890123") == "********0123"
        assert mask_tax_id(None, "ABCDE1234F") is None
