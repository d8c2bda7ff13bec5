"""Lead intake and referral telemetry endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.db import get_db
from coachpay.schemas import (
    AssignmentResponse,
    LeadCreate,
    ReferralVisitCreate,
    ReferralVisitResponse,
)
from coachpay.services import attribution
from coachpay.services.intake import create_lead

router = APIRouter(tags=["Intake"])


@router.post("/leads", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def submit_lead(
    data: LeadCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a lead, attribute it and try to assign a coach."""
    lead, source, decision = await create_lead(db, **data.model_dump())
    return AssignmentResponse(
        lead_id=lead.id,
        assignment_type=lead.assignment_type,
        coach_id=lead.assigned_coach_id,
        assigned_by=lead.assigned_by,
        assigned_at=lead.assigned_at,
        source=str(source),
        changed=decision.changed,
        reason=decision.reason,
    )


@router.post(
    "/referrals/visits",
    response_model=ReferralVisitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_referral_visit(
    data: ReferralVisitCreate,
    db: AsyncSession = Depends(get_db),
):
    """Record a visit through a coach's referral link."""
    visit = await attribution.record_visit(db, data.referral_code, lead_id=data.lead_id)
    await db.commit()
    return ReferralVisitResponse(
        id=visit.id,
        referral_code=visit.referral_code,
        coach_id=visit.coach_id,
        visited_at=visit.visited_at,
    )
