"""
Clawbacks and monthly payout runs.

A payout run loads everything the batcher needs, computes the whole
batch in memory, and only then writes it: batch lines first (guarded by
the (period, coach) unique constraint), then guarded status updates on
the consumed records and clawbacks. Any failure aborts the run with
nothing persisted except the failure audit entry.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.engine import (
    BatchAlreadyExists,
    IneligibleCoach,
    InvalidSplitInput,
    PayoutBatch,
    PayoutBatcher,
    PayoutPeriod,
    RecordNotFound,
    SettlementError,
    TaxWithholdingResolver,
    financial_year,
)
from coachpay.engine.split import to_money
from coachpay.engine.types import ClawbackReason, PayoutStatus
from coachpay.models import (
    AuditAction,
    BatchLineStatus,
    ClawbackEvent,
    Coach,
    Enrollment,
    PayoutBatchLine,
    PayoutRecord,
    PayoutRecordKind,
)
from coachpay.services.revenue_config import get_config_for, record_failure
from coachpay.utils.audit import log_action
from coachpay.utils.masking import mask_bank_account, mask_tax_id

logger = logging.getLogger(__name__)

batcher = PayoutBatcher(TaxWithholdingResolver())


# ── Clawbacks ──────────────────────────────────────────────


async def record_clawback(
    db: AsyncSession,
    enrollment_id: int,
    reason: ClawbackReason,
    actor: str,
    amount: Optional[Decimal] = None,
    coach_id: Optional[int] = None,
) -> ClawbackEvent:
    """
    Record a refund or coach-caused no-show against an enrollment.

    Defaults to the coach holding the enrollment's share and the full
    share amount. The event is unconfirmed until an admin confirms fault.
    """
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise RecordNotFound(
            f"Enrollment {enrollment_id} not found",
            details={"enrollment_id": enrollment_id},
        )

    result = await db.execute(
        select(PayoutRecord).where(
            and_(
                PayoutRecord.enrollment_id == enrollment.id,
                PayoutRecord.kind == PayoutRecordKind.SHARE,
            )
        )
    )
    shares = result.scalars().all()
    if coach_id is None and shares:
        coach_id = shares[0].coach_id

    share_total = sum(
        (r.gross_amount for r in shares if r.coach_id == coach_id),
        Decimal("0.00"),
    )
    details = {
        "enrollment_id": enrollment.id,
        "coach_id": coach_id,
        "share_total": str(share_total),
        "amount": None if amount is None else str(amount),
    }
    if coach_id is None or share_total <= 0:
        raise InvalidSplitInput("Enrollment has no coach share to claw back", details=details)

    amount = share_total if amount is None else to_money(amount, "amount")
    if amount <= 0 or amount > share_total:
        raise InvalidSplitInput(
            "Clawback amount must be positive and not exceed the coach's share",
            details=details,
        )

    clawback = ClawbackEvent(
        enrollment_id=enrollment.id,
        coach_id=coach_id,
        reason=reason,
        amount=amount,
        confirmed=False,
    )
    db.add(clawback)
    await db.flush()

    await log_action(
        db,
        actor,
        AuditAction.RECORD_CLAWBACK,
        target_type="clawback",
        target_id=clawback.id,
        action_metadata={**details, "amount": str(amount), "reason": reason.value},
    )
    await db.commit()
    await db.refresh(clawback)

    logger.info(
        f"Clawback {clawback.id} recorded: {reason.value} {amount} "
        f"against enrollment {enrollment.id} (coach {coach_id})"
    )
    return clawback


async def confirm_clawback(db: AsyncSession, clawback_id: int, actor: str) -> ClawbackEvent:
    """Confirm coach fault so the next payout run applies the clawback."""
    result = await db.execute(
        update(ClawbackEvent)
        .where(and_(ClawbackEvent.id == clawback_id, ClawbackEvent.confirmed == False))
        .values(
            confirmed=True,
            confirmed_by=actor,
            confirmed_at=datetime.now(timezone.utc),
        )
    )

    clawback = await db.get(ClawbackEvent, clawback_id, populate_existing=True)
    if clawback is None:
        raise RecordNotFound(
            f"Clawback {clawback_id} not found",
            details={"clawback_id": clawback_id},
        )
    if result.rowcount == 0:
        logger.debug(f"Clawback {clawback_id} already confirmed by {clawback.confirmed_by}")
        return clawback

    await log_action(
        db,
        actor,
        AuditAction.CONFIRM_CLAWBACK,
        target_type="clawback",
        target_id=clawback.id,
        action_metadata={"amount": str(clawback.amount), "coach_id": clawback.coach_id},
    )
    await db.commit()

    logger.info(f"Clawback {clawback.id} confirmed by {actor}")
    return clawback


# ── Batch inputs ───────────────────────────────────────────


async def _batched_coach_ids(db: AsyncSession, period: PayoutPeriod) -> set:
    result = await db.execute(
        select(PayoutBatchLine.coach_id).where(PayoutBatchLine.period == period.label)
    )
    return set(result.scalars().all())


async def _ytd_totals(db: AsyncSession, period: PayoutPeriod, coach_ids) -> Dict[int, Decimal]:
    """Amount due already batched to each coach earlier in the financial year."""
    result = await db.execute(
        select(PayoutBatchLine.coach_id, func.sum(PayoutBatchLine.taxable_amount))
        .where(
            and_(
                PayoutBatchLine.coach_id.in_(list(coach_ids)),
                PayoutBatchLine.financial_year == financial_year(period.start),
                PayoutBatchLine.period < period.label,
            )
        )
        .group_by(PayoutBatchLine.coach_id)
    )
    return {coach_id: Decimal(total or 0) for coach_id, total in result.all()}


async def _opening_balances(db: AsyncSession, period: PayoutPeriod, coach_ids) -> Dict[int, Decimal]:
    """Carry-forward of each coach's latest earlier batch line."""
    result = await db.execute(
        select(PayoutBatchLine.coach_id, PayoutBatchLine.carry_forward)
        .where(
            and_(
                PayoutBatchLine.coach_id.in_(list(coach_ids)),
                PayoutBatchLine.period < period.label,
            )
        )
        .order_by(PayoutBatchLine.period.desc())
    )
    balances: Dict[int, Decimal] = {}
    for coach_id, carry_forward in result.all():
        balances.setdefault(coach_id, Decimal(carry_forward))
    return balances


async def _load_inputs(db: AsyncSession, period: PayoutPeriod):
    excluded = await _batched_coach_ids(db, period)

    clawbacks = (
        await db.execute(
            select(ClawbackEvent).where(
                and_(
                    ClawbackEvent.applied_period.is_(None),
                    ClawbackEvent.coach_id.not_in(list(excluded)),
                )
            )
        )
    ).scalars().all()

    clawback_enrollments = {c.enrollment_id for c in clawbacks}
    records = (
        await db.execute(
            select(PayoutRecord).where(
                and_(
                    PayoutRecord.kind == PayoutRecordKind.SHARE,
                    PayoutRecord.coach_id.not_in(list(excluded)),
                    or_(
                        PayoutRecord.status == PayoutStatus.PENDING,
                        and_(
                            PayoutRecord.status == PayoutStatus.PAID,
                            PayoutRecord.enrollment_id.in_(list(clawback_enrollments)),
                        ),
                    ),
                )
            )
        )
    ).scalars().all()

    disputed = (
        await db.execute(select(Enrollment.id).where(Enrollment.is_disputed == True))
    ).scalars().all()

    coach_ids = {r.coach_id for r in records} | {c.coach_id for c in clawbacks}
    coaches = (
        await db.execute(select(Coach).where(Coach.id.in_(list(coach_ids))))
    ).scalars().all()

    return {
        "records": records,
        "clawbacks": clawbacks,
        "coaches": {c.id: c for c in coaches},
        "ytd_totals": await _ytd_totals(db, period, coach_ids),
        "opening_balances": await _opening_balances(db, period, coach_ids),
        "disputed_enrollment_ids": disputed,
    }


# ── Payout run ─────────────────────────────────────────────


async def run_payout_batch(
    db: AsyncSession,
    period: PayoutPeriod,
    actor: str,
    commit: bool = False,
) -> Tuple[PayoutBatch, List[PayoutBatchLine]]:
    """
    Compute (and optionally commit) the payout batch for a period.

    Coaches that already have a line for the period are left out, so a
    repeated run only picks up coaches not yet paid for it.

    Args:
        db: Database session
        period: Month being paid out
        actor: Admin id, or "system" for the scheduled run
        commit: False for a preview that writes nothing

    Returns:
        (batch, persisted lines); lines are empty in preview mode

    Raises:
        ConfigurationMissing: No tax configuration effective for the period
        BatchAlreadyExists: A concurrent run committed the same lines
    """
    mode = "commit" if commit else "preview"
    try:
        config = await get_config_for(db, period.end)
        inputs = await _load_inputs(db, period)
        batch = batcher.build(period, tax_config=config.to_tax_config(), **inputs)
    except SettlementError as e:
        e.details.update({"period": period.label, "mode": mode})
        if commit:
            await record_failure(db, actor, AuditAction.PAYOUT_BATCH_FAILED, e, "payout_batch")
        else:
            logger.error(f"Payout preview {period.label} failed: {e.message} | snapshot={e.details}")
        raise

    if not commit:
        return batch, []

    lines = await _persist_batch(db, batch, actor)
    logger.info(
        f"Payout batch {period.label} committed by {actor}: {len(lines)} lines, "
        f"net {batch.total_net}, withholding {batch.total_withholding}"
    )
    return batch, lines


async def _abort(db: AsyncSession, batch: PayoutBatch, actor: str, message: str, **details) -> None:
    await db.rollback()
    error = BatchAlreadyExists(
        message,
        details={"period": batch.period.label, "batch_key": batch.batch_key, **details},
    )
    await record_failure(db, actor, AuditAction.PAYOUT_BATCH_FAILED, error, "payout_batch")
    raise error


async def _persist_batch(db: AsyncSession, batch: PayoutBatch, actor: str) -> List[PayoutBatchLine]:
    period = batch.period.label
    now = datetime.now(timezone.utc)
    rows: List[PayoutBatchLine] = []

    for line in batch.lines:
        row = PayoutBatchLine(
            period=period,
            coach_id=line.coach_id,
            batch_key=line.line_key,
            gross_amount=line.gross_amount,
            opening_balance=line.opening_balance,
            clawback_amount=line.clawback_amount,
            taxable_amount=line.taxable_amount,
            withholding_rate=line.withholding.effective_rate,
            withholding_amount=line.withholding_amount,
            net_amount=line.net_amount,
            carry_forward=line.carry_forward,
            financial_year=batch.financial_year,
            quarter=batch.quarter,
            status=BatchLineStatus.BATCHED,
        )
        db.add(row)
        rows.append(row)

    try:
        await db.flush()
    except IntegrityError:
        await _abort(db, batch, actor, f"Payout batch for {period} already committed")

    for line, row in zip(batch.lines, rows):
        if line.record_ids:
            result = await db.execute(
                update(PayoutRecord)
                .where(
                    and_(
                        PayoutRecord.id.in_(line.record_ids),
                        PayoutRecord.status == PayoutStatus.PENDING,
                    )
                )
                .values(status=PayoutStatus.BATCHED, period=period, batch_line_id=row.id)
            )
            if result.rowcount != len(line.record_ids):
                await _abort(
                    db, batch, actor,
                    "Payout records were consumed by a concurrent run",
                    coach_id=line.coach_id,
                )

        for adjustment in line.adjustments:
            result = await db.execute(
                update(ClawbackEvent)
                .where(
                    and_(
                        ClawbackEvent.id == adjustment.clawback_id,
                        ClawbackEvent.applied_period.is_(None),
                    )
                )
                .values(applied_period=period, after_payment=adjustment.after_payment)
            )
            if result.rowcount != 1:
                await _abort(
                    db, batch, actor,
                    "Clawback was applied by a concurrent run",
                    clawback_id=adjustment.clawback_id,
                )
            db.add(
                PayoutRecord(
                    coach_id=adjustment.coach_id,
                    enrollment_id=adjustment.enrollment_id,
                    kind=PayoutRecordKind.CLAWBACK,
                    gross_amount=-adjustment.amount,
                    coach_cost_amount=-adjustment.amount,
                    lead_bonus_amount=Decimal("0.00"),
                    status=PayoutStatus.BATCHED,
                    period=period,
                    batch_line_id=row.id,
                    clawback_id=adjustment.clawback_id,
                    earned_at=now,
                )
            )

    await log_action(
        db,
        actor,
        AuditAction.PAYOUT_BATCH_RUN,
        target_type="payout_batch",
        action_metadata={
            "period": period,
            "batch_key": batch.batch_key,
            "financial_year": batch.financial_year,
            "quarter": batch.quarter,
            "total_net": batch.total_net,
            "total_withholding": batch.total_withholding,
            "skipped_clawback_ids": list(batch.skipped_clawback_ids),
            "lines": [
                {
                    "coach_id": line.coach_id,
                    "record_ids": list(line.record_ids),
                    "clawback_ids": list(line.clawback_ids),
                    "gross": line.gross_amount,
                    "opening": line.opening_balance,
                    "clawback": line.clawback_amount,
                    "taxable": line.taxable_amount,
                    "rate": line.withholding.effective_rate,
                    "rate_kind": line.withholding.rate_kind.value,
                    "withholding": line.withholding_amount,
                    "net": line.net_amount,
                    "carry_forward": line.carry_forward,
                }
                for line in batch.lines
            ],
        },
    )
    await db.commit()
    return rows


# ── Paying out ─────────────────────────────────────────────


async def mark_line_paid(
    db: AsyncSession,
    line_id: int,
    payment_reference: str,
    actor: str,
) -> PayoutBatchLine:
    """
    Record the bank transfer for a batch line.

    Paid lines are final. A line with a positive net amount needs a coach
    with payouts enabled and a bank account on file.
    """
    line = await db.get(PayoutBatchLine, line_id)
    if line is None:
        raise RecordNotFound(f"Payout line {line_id} not found", details={"line_id": line_id})
    if line.status == BatchLineStatus.PAID:
        logger.debug(f"Payout line {line_id} already paid ({line.payment_reference})")
        return line

    coach = await db.get(Coach, line.coach_id)
    if line.net_amount > 0 and (not coach.payout_enabled or not coach.bank_account_number):
        raise IneligibleCoach(
            "Coach has no payout destination on file",
            details={"line_id": line.id, "coach_id": coach.id},
        )

    result = await db.execute(
        update(PayoutBatchLine)
        .where(
            and_(
                PayoutBatchLine.id == line.id,
                PayoutBatchLine.status == BatchLineStatus.BATCHED,
            )
        )
        .values(
            status=BatchLineStatus.PAID,
            payment_reference=payment_reference,
            paid_at=datetime.now(timezone.utc),
        )
    )
    if result.rowcount == 0:
        await db.refresh(line)
        return line

    await db.execute(
        update(PayoutRecord)
        .where(
            and_(
                PayoutRecord.batch_line_id == line.id,
                PayoutRecord.status == PayoutStatus.BATCHED,
            )
        )
        .values(status=PayoutStatus.PAID)
    )
    await log_action(
        db,
        actor,
        AuditAction.PAYOUT_PAID,
        target_type="payout_line",
        target_id=line.id,
        action_metadata={
            "period": line.period,
            "coach_id": coach.id,
            "net": line.net_amount,
            "withholding": line.withholding_amount,
            "payment_reference": payment_reference,
            "bank_account": mask_bank_account(coach.bank_account_number),
        },
    )
    await db.commit()
    await db.refresh(line)

    logger.info(f"Payout line {line.id} ({line.period}, coach {coach.id}) paid: {payment_reference}")
    return line


# ── Reporting ──────────────────────────────────────────────


async def list_batch_lines(db: AsyncSession, period: PayoutPeriod) -> List[Tuple[PayoutBatchLine, Coach]]:
    result = await db.execute(
        select(PayoutBatchLine, Coach)
        .join(Coach, Coach.id == PayoutBatchLine.coach_id)
        .where(PayoutBatchLine.period == period.label)
        .order_by(PayoutBatchLine.coach_id)
    )
    return list(result.tuples().all())


async def withholding_summary(db: AsyncSession, fy: str) -> List[dict]:
    """Per-coach withholding totals for a financial year, by quarter."""
    result = await db.execute(
        select(
            PayoutBatchLine.coach_id,
            PayoutBatchLine.quarter,
            func.sum(PayoutBatchLine.taxable_amount),
            func.sum(PayoutBatchLine.withholding_amount),
        )
        .where(PayoutBatchLine.financial_year == fy)
        .group_by(PayoutBatchLine.coach_id, PayoutBatchLine.quarter)
        .order_by(PayoutBatchLine.coach_id, PayoutBatchLine.quarter)
    )
    rows = result.all()

    coaches = {
        c.id: c
        for c in (
            await db.execute(select(Coach).where(Coach.id.in_([r[0] for r in rows])))
        ).scalars().all()
    }

    summary: Dict[int, dict] = {}
    for coach_id, qtr, taxable, withheld in rows:
        coach = coaches[coach_id]
        entry = summary.setdefault(
            coach_id,
            {
                "coach_id": coach_id,
                "coach_name": coach.name,
                "tax_id": mask_tax_id(coach.tax_id_type, coach.tax_id_value),
                "financial_year": fy,
                "taxable_total": Decimal("0.00"),
                "withholding_total": Decimal("0.00"),
                "quarters": {},
            },
        )
        entry["taxable_total"] += Decimal(taxable or 0)
        entry["withholding_total"] += Decimal(withheld or 0)
        entry["quarters"][qtr] = Decimal(withheld or 0)
    return list(summary.values())
