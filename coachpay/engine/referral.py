"""
Referral attribution.

A referral code resolves (case-insensitively, active coaches only) to a
coach-referral source; anything else is a platform lead. The first
successfully stamped source of a lead is permanent. Visits are telemetry
and never override the lead's own stamped source.
"""

import logging
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from coachpay.engine.errors import AttributionConflict
from coachpay.engine.types import ExitStatus, LeadSource, source_from_row

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(code: Optional[str]) -> Optional[str]:
    """Canonical form of a referral code (trimmed, upper-case)."""
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


def generate_referral_code(name: str, length: int = 4) -> str:
    """
    Generate a referral code for a newly approved coach.

    Example:
        "Priya Sharma" -> "PRIYA7K2Q"
    """
    parts = name.split()
    prefix = re.sub(r"[^A-Za-z]", "", parts[0] if parts else "")[:6].upper()
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix or 'COACH'}{suffix}"


class StampDecision(BaseModel):
    """Whether a lead's source should be written, and the effective source."""

    model_config = ConfigDict(frozen=True)

    stamp: bool
    source: LeadSource
    previous: Optional[LeadSource] = None


class VisitRecord(BaseModel):
    """Fields of a ReferralVisit row to append."""

    model_config = ConfigDict(frozen=True)

    referral_code: str
    coach_id: Optional[int] = None
    lead_id: Optional[int] = None
    visited_at: datetime


class ReferralAttributionTracker:
    """Resolves referral codes and decides first-touch stamping."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._clock = clock

    @staticmethod
    def can_refer(coach) -> bool:
        exit_status = ExitStatus(coach.exit_status or ExitStatus.NONE)
        return bool(coach.is_active) and exit_status != ExitStatus.EXITED

    def find_coach(self, code: Optional[str], coaches: Iterable[Any]) -> Optional[Any]:
        """Active coach owning the code, or None."""
        code = normalize_code(code)
        if code is None:
            return None
        for coach in coaches:
            if normalize_code(coach.referral_code) == code and self.can_refer(coach):
                return coach
        return None

    def resolve(self, code: Optional[str], coaches: Iterable[Any]) -> LeadSource:
        """Source for a code; platform on any miss."""
        coach = self.find_coach(code, coaches)
        if coach is None:
            if normalize_code(code):
                logger.info(f"Referral code {normalize_code(code)!r} did not match an active coach")
            return LeadSource.platform()
        return LeadSource.coach_referral(coach.id)

    def decide_stamp(self, lead, source: LeadSource) -> StampDecision:
        """
        First touch wins: stamp only when the lead has no source yet.

        A second touchpoint with a different source is normal and keeps
        the existing attribution.
        """
        existing = source_from_row(lead)
        if existing is None:
            return StampDecision(stamp=True, source=source)

        if existing != source:
            logger.debug(
                f"Lead {lead.id} already attributed to {existing}; ignoring {source}"
            )
        return StampDecision(stamp=False, source=existing, previous=existing)

    def record_visit(
        self,
        code: str,
        coach,
        lead_id: Optional[int] = None,
    ) -> VisitRecord:
        return VisitRecord(
            referral_code=normalize_code(code) or "",
            coach_id=coach.id if coach is not None else None,
            lead_id=lead_id,
            visited_at=self._clock(),
        )

    @staticmethod
    def check_consistency(
        expected: Optional[LeadSource],
        actual: Optional[LeadSource],
        context: dict,
    ) -> Optional[AttributionConflict]:
        """
        Compare a source a caller relied on with the stored one.

        Returns an AttributionConflict to be logged (never raised to the
        user) when they disagree.
        """
        if expected is None or actual is None or expected == actual:
            return None
        return AttributionConflict(
            "Stored attribution differs from the expected source",
            details={**context, "expected": str(expected), "actual": str(actual)},
        )
