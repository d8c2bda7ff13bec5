"""Admin lead assignment endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.api.deps import get_actor
from coachpay.db import get_db
from coachpay.engine.types import source_from_row
from coachpay.schemas import AssignmentResponse, ManualAssignRequest, PendingCountResponse
from coachpay.services.assignment import assign_lead_manually, count_pending_manual

router = APIRouter(prefix="/leads")


@router.post("/{lead_id}/assign", response_model=AssignmentResponse)
async def assign_lead(
    lead_id: int,
    data: ManualAssignRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Assign or reassign a lead to a coach."""
    lead, decision = await assign_lead_manually(db, lead_id, data.coach_id, actor)
    source = source_from_row(lead)
    return AssignmentResponse(
        lead_id=lead.id,
        assignment_type=lead.assignment_type,
        coach_id=lead.assigned_coach_id,
        assigned_by=lead.assigned_by,
        assigned_at=lead.assigned_at,
        source=str(source) if source else "unattributed",
        changed=decision.changed,
        reason=decision.reason,
    )


@router.get("/pending-count", response_model=PendingCountResponse)
async def pending_count(db: AsyncSession = Depends(get_db)):
    """Leads waiting for manual assignment."""
    return PendingCountResponse(pending_manual=await count_pending_manual(db))
