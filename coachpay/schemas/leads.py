"""Lead intake and assignment schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from coachpay.engine.types import AssignmentType


class LeadCreate(BaseModel):
    """Inbound lead or discovery-call booking."""

    parent_name: str = Field(..., min_length=1, max_length=120)
    parent_email: Optional[str] = Field(None, max_length=255)
    parent_phone: Optional[str] = Field(None, max_length=20)
    child_name: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = None
    referral_code: Optional[str] = Field(None, max_length=32)


class AssignmentResponse(BaseModel):
    """Outcome of an assignment attempt."""

    lead_id: int
    assignment_type: AssignmentType
    coach_id: Optional[int] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    source: str
    changed: bool = True
    reason: Optional[str] = None


class ManualAssignRequest(BaseModel):
    """Admin assignment of a lead to a coach."""

    coach_id: int


class PendingCountResponse(BaseModel):
    pending_manual: int


class ReferralVisitCreate(BaseModel):
    referral_code: str = Field(..., min_length=1, max_length=32)
    lead_id: Optional[int] = None


class ReferralVisitResponse(BaseModel):
    id: int
    referral_code: str
    coach_id: Optional[int] = None
    visited_at: datetime


class ReferralCodeResponse(BaseModel):
    coach_id: int
    referral_code: str
