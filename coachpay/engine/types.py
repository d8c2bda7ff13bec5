"""
Value types shared by the engine components.

Statuses are closed enums and lead source is a tagged variant, so an
invalid combination (e.g. a coach referral without a coach) cannot be
constructed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

# Minor currency unit (paise)
MINOR_UNIT = Decimal("0.01")
HUNDRED = Decimal("100")
SYSTEM_ACTOR = "system"


class ExitStatus(str, Enum):
    """Coach exit lifecycle."""
    NONE = "none"
    PENDING = "pending"
    EXITED = "exited"


class TaxIdType(str, Enum):
    """Tax identifier on file for a coach."""
    PAN = "pan"
    AADHAAR = "aadhaar"


class LeadStatus(str, Enum):
    """Lifecycle of a lead."""
    OPEN = "open"
    CONVERTED = "converted"
    CANCELLED = "cancelled"


class SourceKind(str, Enum):
    """Who sourced a lead."""
    PLATFORM = "platform"
    COACH_REFERRAL = "coach_referral"


class AssignmentType(str, Enum):
    """Assignment state of a lead."""
    UNASSIGNED = "unassigned"
    AUTO = "auto"            # Auto-assigned by the matcher
    PENDING = "pending"      # No eligible coach, needs a human
    MANUAL = "manual"        # Assigned or reassigned by an admin


class PayoutStatus(str, Enum):
    """Status of a payout record."""
    PENDING = "pending"
    BATCHED = "batched"
    PAID = "paid"


class ClawbackReason(str, Enum):
    """Why money is clawed back from a coach."""
    REFUND = "refund"
    NO_SHOW = "no_show"


class RateKind(str, Enum):
    """Which withholding rate applies."""
    STANDARD = "standard"
    PENAL = "penal"


class LeadSource(BaseModel):
    """Frozen attribution of a lead: platform, or a referring coach."""

    model_config = ConfigDict(frozen=True)

    kind: SourceKind
    coach_id: Optional[int] = None

    @model_validator(mode="after")
    def _check_variant(self):
        if self.kind == SourceKind.COACH_REFERRAL and self.coach_id is None:
            raise ValueError("coach_referral source requires coach_id")
        if self.kind == SourceKind.PLATFORM and self.coach_id is not None:
            raise ValueError("platform source cannot carry coach_id")
        return self

    @classmethod
    def platform(cls) -> "LeadSource":
        return cls(kind=SourceKind.PLATFORM)

    @classmethod
    def coach_referral(cls, coach_id: int) -> "LeadSource":
        return cls(kind=SourceKind.COACH_REFERRAL, coach_id=coach_id)

    @classmethod
    def parse(cls, value: str) -> "LeadSource":
        """Parse ``platform`` or ``coach-referral:<coachId>``."""
        if value == "platform":
            return cls.platform()
        prefix, _, coach_id = value.partition(":")
        if prefix != "coach-referral" or not coach_id.isdigit():
            raise ValueError(f"Unrecognised lead source: {value!r}")
        return cls.coach_referral(int(coach_id))

    @property
    def is_referral(self) -> bool:
        return self.kind == SourceKind.COACH_REFERRAL

    def __str__(self) -> str:
        if self.is_referral:
            return f"coach-referral:{self.coach_id}"
        return "platform"


class SplitConfig(BaseModel):
    """One version of the revenue split percentages."""

    model_config = ConfigDict(frozen=True)

    version: Optional[int] = None
    platform_fee_percent: Decimal
    coach_cost_percent: Decimal
    lead_cost_percent: Decimal

    @property
    def total_percent(self) -> Decimal:
        return self.platform_fee_percent + self.coach_cost_percent + self.lead_cost_percent


class TaxConfig(BaseModel):
    """Withholding policy. Rates are percentages (10 = 10%)."""

    model_config = ConfigDict(frozen=True)

    standard_rate: Optional[Decimal] = None
    penal_rate: Optional[Decimal] = None
    threshold: Optional[Decimal] = None


class AssignmentDecision(BaseModel):
    """Outcome of a matcher call, ready to be written with a guarded update."""

    model_config = ConfigDict(frozen=True)

    assignment_type: AssignmentType
    coach_id: Optional[int] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    previous_type: AssignmentType
    changed: bool = True
    reason: Optional[str] = None


def source_from_row(row) -> Optional[LeadSource]:
    """Read a LeadSource from a row with source_kind/source_coach_id columns.

    Returns None while the row is unstamped.
    """
    kind = getattr(row, "source_kind", None)
    if kind is None:
        return None
    return LeadSource(kind=SourceKind(kind), coach_id=getattr(row, "source_coach_id", None))
