"""Payment gateway callbacks."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.db import get_db
from coachpay.engine import LeadSource
from coachpay.schemas import EnrollmentResponse, PaymentCaptured, PayoutDraftResponse
from coachpay.services.settlement import capture_enrollment

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/captured", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def payment_captured(
    data: PaymentCaptured,
    db: AsyncSession = Depends(get_db),
):
    """
    Convert a captured payment into an enrollment.

    Computes and commits the revenue split and the coach payout records.
    """
    expected = None
    if data.expected_source:
        try:
            expected = LeadSource.parse(data.expected_source)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(e))

    enrollment, split = await capture_enrollment(
        db,
        lead_id=data.lead_id,
        gross_fee=data.gross_fee,
        deductions=data.deductions,
        payment_reference=data.payment_reference,
        expected_source=expected,
    )
    breakdown = split.breakdown
    return EnrollmentResponse(
        enrollment_id=enrollment.id,
        lead_id=enrollment.lead_id,
        source=str(breakdown.source),
        servicing_coach_id=enrollment.servicing_coach_id,
        gross_fee=breakdown.gross_fee,
        deductions=breakdown.deductions,
        net_base=breakdown.net_base,
        platform_share=breakdown.platform_share,
        coach_share=breakdown.coach_share,
        lead_bonus_share=breakdown.lead_bonus_share,
        lead_bonus_recipient=breakdown.lead_bonus_recipient,
        config_version=breakdown.config_version,
        payouts=[
            PayoutDraftResponse(
                coach_id=d.coach_id,
                coach_cost_amount=d.coach_cost_amount,
                lead_bonus_amount=d.lead_bonus_amount,
                gross_amount=d.gross_amount,
            )
            for d in split.drafts
        ],
    )
