"""Payment capture and enrollment schemas."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class PaymentCaptured(BaseModel):
    """Payment gateway capture notification."""

    lead_id: int
    gross_fee: Decimal = Field(..., ge=0, decimal_places=2)
    deductions: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    payment_reference: Optional[str] = Field(None, max_length=100)
    expected_source: Optional[str] = Field(
        None,
        description="'platform' or 'coach-referral:<coachId>' as seen by the caller",
    )


class PayoutDraftResponse(BaseModel):
    coach_id: int
    coach_cost_amount: Decimal
    lead_bonus_amount: Decimal
    gross_amount: Decimal


class EnrollmentResponse(BaseModel):
    """Enrollment with its committed split."""

    enrollment_id: int
    lead_id: int
    source: str
    servicing_coach_id: Optional[int] = None
    gross_fee: Decimal
    deductions: Decimal
    net_base: Decimal
    platform_share: Decimal
    coach_share: Decimal
    lead_bonus_share: Decimal
    lead_bonus_recipient: str
    config_version: Optional[int] = None
    payouts: List[PayoutDraftResponse]


class DisputeRequest(BaseModel):
    disputed: bool = True
