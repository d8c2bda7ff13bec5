"""
Lead assignment service.

Auto-assigns a new lead to the eligible coach with the fewest open
leads (longest idle on ties), or flags it pending-manual when nobody is
eligible. The state change is a conditional update on
assignment_type = 'unassigned', so concurrent attempts on the same lead
produce exactly one assignment.
"""

import logging
from datetime import datetime
from typing import Dict, Optional, Tuple

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.engine import (
    AssignmentDecision,
    AssignmentMatcher,
    AssignmentType,
    RecordNotFound,
    below_capacity,
    by_load_then_idle,
)
from coachpay.engine.types import SYSTEM_ACTOR, LeadStatus
from coachpay.models import AuditAction, Coach, Lead
from coachpay.utils.audit import log_action

logger = logging.getLogger(__name__)

matcher = AssignmentMatcher()

ASSIGNED_STATES = (AssignmentType.AUTO, AssignmentType.MANUAL)


async def get_lead(db: AsyncSession, lead_id: int) -> Lead:
    lead = await db.get(Lead, lead_id)
    if lead is None:
        raise RecordNotFound(f"Lead {lead_id} not found", details={"lead_id": lead_id})
    return lead


async def get_coach(db: AsyncSession, coach_id: int) -> Coach:
    coach = await db.get(Coach, coach_id)
    if coach is None:
        raise RecordNotFound(f"Coach {coach_id} not found", details={"coach_id": coach_id})
    return coach


async def get_open_loads(db: AsyncSession) -> Dict[int, int]:
    """Number of open, assigned leads per coach."""
    result = await db.execute(
        select(Lead.assigned_coach_id, func.count(Lead.id))
        .where(
            and_(
                Lead.status == LeadStatus.OPEN,
                Lead.assignment_type.in_(ASSIGNED_STATES),
                Lead.assigned_coach_id.is_not(None),
            )
        )
        .group_by(Lead.assigned_coach_id)
    )
    return {coach_id: count for coach_id, count in result.all()}


async def get_last_assigned(db: AsyncSession) -> Dict[int, Optional[datetime]]:
    """Most recent assignment time per coach."""
    result = await db.execute(
        select(Lead.assigned_coach_id, func.max(Lead.assigned_at))
        .where(Lead.assigned_coach_id.is_not(None))
        .group_by(Lead.assigned_coach_id)
    )
    return {coach_id: last for coach_id, last in result.all()}


async def _match(db: AsyncSession, lead: Lead) -> AssignmentDecision:
    coaches = (await db.execute(select(Coach))).scalars().all()
    loads = await get_open_loads(db)
    last_assigned = await get_last_assigned(db)
    return matcher.match(
        lead,
        coaches,
        rank=by_load_then_idle(loads, last_assigned),
        constraint=below_capacity(loads),
    )


async def auto_assign_lead(db: AsyncSession, lead_id: int) -> Tuple[Lead, AssignmentDecision]:
    """
    Auto-assign a lead, or mark it pending-manual.

    Leads already out of the unassigned state are left untouched; a
    pending-manual lead is never retried automatically.

    Returns:
        (lead, decision); decision.changed is False when nothing was written
    """
    lead = await get_lead(db, lead_id)
    decision = await _match(db, lead)
    if not decision.changed:
        return lead, decision

    result = await db.execute(
        update(Lead)
        .where(
            and_(
                Lead.id == lead.id,
                Lead.assignment_type == AssignmentType.UNASSIGNED,
            )
        )
        .values(
            assignment_type=decision.assignment_type,
            assigned_coach_id=decision.coach_id,
            assigned_by=decision.assigned_by,
            assigned_at=decision.assigned_at,
        )
    )
    await db.refresh(lead)

    if result.rowcount == 0:
        # Lost the race: re-run against the winner's state, which no-ops
        logger.info(f"Lead {lead.id} assigned concurrently; keeping {lead.assignment_type.value}")
        return lead, await _match(db, lead)

    action = (
        AuditAction.AUTO_ASSIGN
        if decision.assignment_type == AssignmentType.AUTO
        else AuditAction.PENDING_MANUAL
    )
    await log_action(
        db,
        SYSTEM_ACTOR,
        action,
        target_type="lead",
        target_id=lead.id,
        action_metadata={"coach_id": decision.coach_id, "reason": decision.reason},
    )
    await db.commit()

    if decision.assignment_type == AssignmentType.PENDING:
        logger.warning(f"Lead {lead.id} needs manual assignment: no eligible coach")
    return lead, decision


async def assign_lead_manually(
    db: AsyncSession,
    lead_id: int,
    coach_id: int,
    admin_id: str,
) -> Tuple[Lead, AssignmentDecision]:
    """
    Assign or reassign a lead to a specific coach.

    Raises:
        RecordNotFound: Lead or coach missing
        LeadClosed: Lead is cancelled
        IneligibleCoach: Coach is inactive or exited
    """
    lead = await get_lead(db, lead_id)
    coach = await get_coach(db, coach_id)
    previous_coach_id = lead.assigned_coach_id

    decision = matcher.assign_manually(lead, coach, admin_id)
    if not decision.changed:
        logger.debug(f"Lead {lead.id} already manually assigned to coach {coach.id}")
        return lead, decision

    await db.execute(
        update(Lead)
        .where(Lead.id == lead.id)
        .values(
            assignment_type=decision.assignment_type,
            assigned_coach_id=decision.coach_id,
            assigned_by=decision.assigned_by,
            assigned_at=decision.assigned_at,
        )
    )
    await log_action(
        db,
        admin_id,
        AuditAction.MANUAL_ASSIGN,
        target_type="lead",
        target_id=lead.id,
        action_metadata={
            "coach_id": coach.id,
            "previous_coach_id": previous_coach_id,
            "previous_type": decision.previous_type.value,
        },
    )
    await db.commit()
    await db.refresh(lead)

    logger.info(
        f"Lead {lead.id} manually assigned to coach {coach.name} (id={coach.id}) by {admin_id}"
    )
    return lead, decision


async def count_pending_manual(db: AsyncSession) -> int:
    """Open leads waiting for a human to assign them."""
    result = await db.execute(
        select(func.count(Lead.id)).where(
            and_(
                Lead.assignment_type == AssignmentType.PENDING,
                Lead.status == LeadStatus.OPEN,
            )
        )
    )
    return result.scalar_one()
