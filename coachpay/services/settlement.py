"""
Payment capture and revenue split.

The capture handler is the only writer of an enrollment's frozen source.
It resolves the config version in force when the lead was created,
computes the split before anything is written, then persists the
enrollment, its payout records and the audit entry in one commit. A
failed split is audited (with its input snapshot) and blocks the
enrollment.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.config import settings
from coachpay.engine import (
    DuplicateCapture,
    LeadClosed,
    LeadSource,
    RecordNotFound,
    ReferralAttributionTracker,
    RevenueSplitCalculator,
    SettlementError,
    SplitResult,
)
from coachpay.engine.types import SYSTEM_ACTOR, LeadStatus, PayoutStatus, source_from_row
from coachpay.models import AuditAction, Enrollment, Lead, PayoutRecord, PayoutRecordKind
from coachpay.services.assignment import get_lead
from coachpay.services.attribution import mark_referral_converted, stamp_lead_source
from coachpay.services.revenue_config import get_config_for, record_failure
from coachpay.utils.audit import log_action

logger = logging.getLogger(__name__)


async def _check_not_captured(
    db: AsyncSession,
    lead_id: int,
    payment_reference: Optional[str],
) -> None:
    conditions = [Enrollment.lead_id == lead_id]
    if payment_reference:
        conditions.append(Enrollment.payment_reference == payment_reference)

    result = await db.execute(select(Enrollment.id).where(or_(*conditions)).limit(1))
    existing = result.scalar_one_or_none()
    if existing is not None:
        raise DuplicateCapture(
            "Payment already captured",
            details={
                "lead_id": lead_id,
                "payment_reference": payment_reference,
                "enrollment_id": existing,
            },
        )


async def _report_conflict(
    db: AsyncSession,
    lead: Lead,
    expected: Optional[LeadSource],
    actual: LeadSource,
) -> None:
    conflict = ReferralAttributionTracker.check_consistency(
        expected, actual, {"lead_id": lead.id}
    )
    if conflict is None:
        return
    logger.warning(f"Attribution conflict on lead {lead.id}: {conflict.details}")
    await log_action(
        db,
        SYSTEM_ACTOR,
        AuditAction.ATTRIBUTION_CONFLICT,
        target_type="lead",
        target_id=lead.id,
        action_metadata=conflict.details,
    )


async def capture_enrollment(
    db: AsyncSession,
    lead_id: int,
    gross_fee: Decimal,
    deductions: Decimal,
    payment_reference: Optional[str] = None,
    expected_source: Optional[LeadSource] = None,
) -> Tuple[Enrollment, SplitResult]:
    """
    Turn a captured payment into an enrollment with its revenue split.

    Args:
        db: Database session
        lead_id: Lead the parent paid for
        gross_fee: Amount captured
        deductions: Gateway charges and tax on sale
        payment_reference: Gateway payment id, rejected if seen before
        expected_source: Source the caller believes the lead has. A
            mismatch is logged as a data-integrity issue; the stored
            source always wins.

    Returns:
        (enrollment, split result)

    Raises:
        RecordNotFound: Lead missing
        DuplicateCapture: Lead or payment already converted
        LeadClosed: Lead is cancelled
        ConfigurationMissing: No split config was effective for the lead
        InvalidSplitInput: Amounts or attribution cannot be split
    """
    lead = await get_lead(db, lead_id)
    await _check_not_captured(db, lead.id, payment_reference)

    if lead.status == LeadStatus.CANCELLED:
        raise LeadClosed("Cannot enroll a cancelled lead", details={"lead_id": lead.id})

    source = source_from_row(lead)
    if source is None:
        source = await stamp_lead_source(db, lead, LeadSource.platform())
        await db.commit()

    await _report_conflict(db, lead, expected_source, source)

    servicing_coach_id = lead.assigned_coach_id
    calculator = RevenueSplitCalculator(settings.split_epsilon)
    try:
        config = await get_config_for(db, lead.created_at)
        split = calculator.calculate(
            gross_fee,
            deductions,
            source,
            config.to_split_config(),
            servicing_coach_id=servicing_coach_id,
        )
    except SettlementError as e:
        e.details.setdefault("lead_id", lead.id)
        e.details.setdefault("payment_reference", payment_reference)
        e.details.setdefault("gross_fee", str(gross_fee))
        e.details.setdefault("deductions", str(deductions))
        await record_failure(db, SYSTEM_ACTOR, AuditAction.ENROLLMENT_SPLIT_FAILED, e, "lead", lead.id)
        raise

    breakdown = split.breakdown
    enrollment = Enrollment(
        lead_id=lead.id,
        payment_reference=payment_reference,
        gross_fee=breakdown.gross_fee,
        deductions=breakdown.deductions,
        net_base=breakdown.net_base,
        platform_share=breakdown.platform_share,
        coach_share=breakdown.coach_share,
        lead_bonus_share=breakdown.lead_bonus_share,
        source_kind=source.kind,
        source_coach_id=source.coach_id,
        servicing_coach_id=servicing_coach_id,
        split_config_id=config.id,
        config_snapshot=config.snapshot(),
    )
    db.add(enrollment)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateCapture(
            "Payment already captured",
            details={"lead_id": lead_id, "payment_reference": payment_reference},
        ) from e

    now = datetime.now(timezone.utc)
    for draft in split.drafts:
        db.add(
            PayoutRecord(
                coach_id=draft.coach_id,
                enrollment_id=enrollment.id,
                kind=PayoutRecordKind.SHARE,
                gross_amount=draft.gross_amount,
                coach_cost_amount=draft.coach_cost_amount,
                lead_bonus_amount=draft.lead_bonus_amount,
                status=PayoutStatus.PENDING,
                earned_at=now,
            )
        )

    await db.execute(
        update(Lead)
        .where(and_(Lead.id == lead.id, Lead.status == LeadStatus.OPEN))
        .values(status=LeadStatus.CONVERTED)
    )
    await mark_referral_converted(db, lead)

    await log_action(
        db,
        SYSTEM_ACTOR,
        AuditAction.ENROLLMENT_SPLIT,
        target_type="enrollment",
        target_id=enrollment.id,
        action_metadata={
            **breakdown.as_dict(),
            "lead_id": lead.id,
            "servicing_coach_id": servicing_coach_id,
            "payment_reference": payment_reference,
            "config": config.snapshot(),
            "payout_records": [d.model_dump() for d in split.drafts],
        },
    )
    await db.commit()
    await db.refresh(lead)

    logger.info(
        f"Enrollment {enrollment.id} for lead {lead.id}: net {breakdown.net_base}, "
        f"coach {breakdown.coach_share}, platform {breakdown.platform_share}, "
        f"lead bonus {breakdown.lead_bonus_share} -> {breakdown.lead_bonus_recipient}"
    )
    return enrollment, split


async def set_enrollment_disputed(
    db: AsyncSession,
    enrollment_id: int,
    disputed: bool,
    actor: str,
) -> Enrollment:
    """Hold (or release) an enrollment's payout records from batching."""
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise RecordNotFound(
            f"Enrollment {enrollment_id} not found",
            details={"enrollment_id": enrollment_id},
        )

    enrollment.is_disputed = disputed
    await log_action(
        db,
        actor,
        AuditAction.DISPUTE_ENROLLMENT,
        target_type="enrollment",
        target_id=enrollment.id,
        action_metadata={"disputed": disputed},
    )
    await db.commit()

    logger.info(f"Enrollment {enrollment.id} disputed={disputed} by {actor}")
    return enrollment
