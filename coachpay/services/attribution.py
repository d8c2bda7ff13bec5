"""
Referral attribution service.

Resolves referral codes against active coaches, appends visit telemetry,
and stamps a lead's source exactly once with a conditional update.
Also issues referral codes to coaches who have none.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.config import settings
from coachpay.engine import (
    LeadSource,
    RecordNotFound,
    ReferralAttributionTracker,
    SettlementError,
    generate_referral_code,
    normalize_code,
)
from coachpay.engine.types import SYSTEM_ACTOR, source_from_row
from coachpay.models import AuditAction, Coach, Lead, ReferralVisit
from coachpay.utils.audit import log_action

logger = logging.getLogger(__name__)

tracker = ReferralAttributionTracker()

MAX_CODE_ATTEMPTS = 5


async def find_coach_by_code(db: AsyncSession, code: Optional[str]) -> Optional[Coach]:
    """Coach owning a referral code (case-insensitive), if it may still refer."""
    code = normalize_code(code)
    if code is None:
        return None

    result = await db.execute(
        select(Coach).where(func.upper(Coach.referral_code) == code)
    )
    return tracker.find_coach(code, result.scalars().all())


async def resolve_source(db: AsyncSession, code: Optional[str]) -> LeadSource:
    """Lead source implied by a referral code; platform on any miss."""
    coach = await find_coach_by_code(db, code)
    return tracker.resolve(code, [coach] if coach else [])


async def record_visit(
    db: AsyncSession,
    code: str,
    lead_id: Optional[int] = None,
) -> ReferralVisit:
    """Append a referral visit. Unknown codes are kept with no coach."""
    coach = await find_coach_by_code(db, code)
    record = tracker.record_visit(code, coach, lead_id)

    visit = ReferralVisit(**record.model_dump())
    db.add(visit)
    await db.flush()

    logger.debug(f"Referral visit {visit.id}: code={record.referral_code} coach={record.coach_id}")
    return visit


async def stamp_lead_source(
    db: AsyncSession,
    lead: Lead,
    source: LeadSource,
    referral_code: Optional[str] = None,
    actor: str = SYSTEM_ACTOR,
) -> LeadSource:
    """
    Write the lead's source if it has none yet.

    The update only matches an unstamped row, so of two concurrent
    touchpoints exactly one wins and the other reads back the winner.

    Returns:
        The lead's effective (first-touch) source
    """
    decision = tracker.decide_stamp(lead, source)
    if not decision.stamp:
        return decision.source

    result = await db.execute(
        update(Lead)
        .where(and_(Lead.id == lead.id, Lead.source_kind.is_(None)))
        .values(
            source_kind=source.kind,
            source_coach_id=source.coach_id,
            source_stamped_at=datetime.now(timezone.utc),
            referral_code_used=normalize_code(referral_code),
        )
    )
    await db.refresh(lead)
    stored = source_from_row(lead)

    if result.rowcount == 0:
        logger.info(f"Lead {lead.id} was stamped concurrently as {stored}; keeping it")
        return stored

    await log_action(
        db,
        actor,
        AuditAction.LEAD_ATTRIBUTED,
        target_type="lead",
        target_id=lead.id,
        action_metadata={"source": str(stored), "referral_code": normalize_code(referral_code)},
    )
    logger.info(f"Lead {lead.id} attributed to {stored}")
    return stored


async def mark_referral_converted(db: AsyncSession, lead: Lead) -> Optional[ReferralVisit]:
    """Flag the earliest visit that brought in a converted referral lead."""
    source = source_from_row(lead)
    if source is None or not source.is_referral:
        return None

    result = await db.execute(
        select(ReferralVisit)
        .where(
            and_(
                ReferralVisit.lead_id == lead.id,
                ReferralVisit.coach_id == source.coach_id,
                ReferralVisit.converted == False,
            )
        )
        .order_by(ReferralVisit.visited_at, ReferralVisit.id)
        .limit(1)
    )
    visit = result.scalar_one_or_none()
    if visit is None:
        return None

    await db.execute(
        update(ReferralVisit)
        .where(and_(ReferralVisit.id == visit.id, ReferralVisit.converted == False))
        .values(converted=True, converted_at=datetime.now(timezone.utc))
    )
    await db.refresh(visit)
    return visit


async def issue_referral_code(db: AsyncSession, coach_id: int) -> Coach:
    """
    Give a coach a referral code if they have none yet.

    Codes are the coach's first name plus a random suffix of
    ``referral_code_length`` characters. A code taken by any coach, active
    or not, is never reissued.

    Raises:
        RecordNotFound: Coach missing
        SettlementError: No free code after MAX_CODE_ATTEMPTS tries
    """
    coach = await db.get(Coach, coach_id)
    if coach is None:
        raise RecordNotFound(f"Coach {coach_id} not found", details={"coach_id": coach_id})
    if coach.referral_code:
        return coach

    name = coach.name
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_referral_code(name, settings.referral_code_length)
        taken = await db.scalar(
            select(func.count(Coach.id)).where(func.upper(Coach.referral_code) == code)
        )
        if taken:
            continue

        try:
            result = await db.execute(
                update(Coach)
                .where(and_(Coach.id == coach_id, Coach.referral_code.is_(None)))
                .values(referral_code=code)
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            continue

        await db.refresh(coach)
        if result.rowcount == 1:
            logger.info(f"Coach {coach_id} issued referral code {code}")
        return coach

    raise SettlementError(
        "Could not generate a unique referral code",
        details={"coach_id": coach_id, "attempts": MAX_CODE_ATTEMPTS},
    )
