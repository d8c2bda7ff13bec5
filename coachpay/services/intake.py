"""
Lead intake: create the lead, attribute it, then try to assign a coach.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.engine import AssignmentDecision, LeadSource
from coachpay.models import Lead
from coachpay.services.assignment import auto_assign_lead
from coachpay.services.attribution import record_visit, resolve_source, stamp_lead_source

logger = logging.getLogger(__name__)


async def create_lead(
    db: AsyncSession,
    parent_name: str,
    parent_email: Optional[str] = None,
    parent_phone: Optional[str] = None,
    child_name: Optional[str] = None,
    notes: Optional[str] = None,
    referral_code: Optional[str] = None,
) -> Tuple[Lead, LeadSource, AssignmentDecision]:
    """
    Register an inbound lead.

    A referral code that does not resolve to an active coach still gets a
    visit row, and the lead is attributed to the platform.
    """
    lead = Lead(
        parent_name=parent_name,
        parent_email=parent_email,
        parent_phone=parent_phone,
        child_name=child_name,
        notes=notes,
    )
    db.add(lead)
    await db.flush()
    await db.refresh(lead)

    if referral_code:
        await record_visit(db, referral_code, lead_id=lead.id)

    source = await resolve_source(db, referral_code)
    source = await stamp_lead_source(db, lead, source, referral_code)
    await db.commit()

    logger.info(f"Lead {lead.id} created ({source})")
    lead, decision = await auto_assign_lead(db, lead.id)
    return lead, source, decision
