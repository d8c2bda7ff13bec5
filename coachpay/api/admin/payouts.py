"""Admin clawback, payout and withholding endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.api.deps import get_actor, parse_period
from coachpay.db import get_db
from coachpay.models import BatchLineStatus
from coachpay.schemas import (
    BatchLineResponse,
    ClawbackCreate,
    ClawbackResponse,
    DisputeRequest,
    MarkPaidRequest,
    PayoutRunRequest,
    PayoutRunResponse,
    WithholdingSummaryResponse,
)
from coachpay.services import payouts as payout_service
from coachpay.services.settlement import set_enrollment_disputed
from coachpay.utils.masking import mask_bank_account, mask_tax_id

router = APIRouter()


# ── Clawbacks ──────────────────────────────────────────────


@router.post("/clawbacks", response_model=ClawbackResponse, status_code=status.HTTP_201_CREATED)
async def create_clawback(
    data: ClawbackCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Record a refund or no-show. It applies once confirmed."""
    return await payout_service.record_clawback(
        db,
        data.enrollment_id,
        data.reason,
        actor,
        amount=data.amount,
        coach_id=data.coach_id,
    )


@router.post("/clawbacks/{clawback_id}/confirm", response_model=ClawbackResponse)
async def confirm_clawback(
    clawback_id: int,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Confirm coach fault for a clawback."""
    return await payout_service.confirm_clawback(db, clawback_id, actor)


@router.post("/enrollments/{enrollment_id}/dispute")
async def dispute_enrollment(
    enrollment_id: int,
    data: DisputeRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Hold or release an enrollment's payouts."""
    enrollment = await set_enrollment_disputed(db, enrollment_id, data.disputed, actor)
    return {"enrollment_id": enrollment.id, "is_disputed": enrollment.is_disputed}


# ── Payout runs ────────────────────────────────────────────


@router.post("/payouts/run", response_model=PayoutRunResponse)
async def run_payouts(
    data: PayoutRunRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Preview or commit the payout batch for a month."""
    period = parse_period(data.period)
    batch, rows = await payout_service.run_payout_batch(db, period, actor, commit=data.commit)
    line_ids = {row.coach_id: row.id for row in rows}

    return PayoutRunResponse(
        period=period.label,
        mode="commit" if data.commit else "preview",
        batch_key=batch.batch_key,
        financial_year=batch.financial_year,
        quarter=batch.quarter,
        total_net=batch.total_net,
        total_withholding=batch.total_withholding,
        skipped_clawback_ids=list(batch.skipped_clawback_ids),
        lines=[
            BatchLineResponse(
                line_id=line_ids.get(line.coach_id),
                coach_id=line.coach_id,
                gross_amount=line.gross_amount,
                opening_balance=line.opening_balance,
                clawback_amount=line.clawback_amount,
                taxable_amount=line.taxable_amount,
                withholding_rate=line.withholding.effective_rate,
                withholding_amount=line.withholding_amount,
                net_amount=line.net_amount,
                carry_forward=line.carry_forward,
                record_ids=list(line.record_ids),
                clawback_ids=list(line.clawback_ids),
                status=BatchLineStatus.BATCHED.value if data.commit else None,
            )
            for line in batch.lines
        ],
    )


@router.get("/payouts/{period}", response_model=List[BatchLineResponse])
async def get_payout_lines(
    period: str,
    db: AsyncSession = Depends(get_db),
):
    """Committed lines for a month, with masked tax and bank details."""
    rows = await payout_service.list_batch_lines(db, parse_period(period))
    return [
        BatchLineResponse(
            line_id=line.id,
            coach_id=coach.id,
            coach_name=coach.name,
            tax_id=mask_tax_id(coach.tax_id_type, coach.tax_id_value),
            bank_account=mask_bank_account(coach.bank_account_number),
            gross_amount=line.gross_amount,
            opening_balance=line.opening_balance,
            clawback_amount=line.clawback_amount,
            taxable_amount=line.taxable_amount,
            withholding_rate=line.withholding_rate,
            withholding_amount=line.withholding_amount,
            net_amount=line.net_amount,
            carry_forward=line.carry_forward,
            status=line.status.value,
            payment_reference=line.payment_reference,
            paid_at=line.paid_at,
        )
        for line, coach in rows
    ]


@router.post("/payouts/lines/{line_id}/paid", response_model=BatchLineResponse)
async def mark_paid(
    line_id: int,
    data: MarkPaidRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Record the bank transfer for a batch line."""
    line = await payout_service.mark_line_paid(db, line_id, data.payment_reference, actor)
    return BatchLineResponse(
        line_id=line.id,
        coach_id=line.coach_id,
        gross_amount=line.gross_amount,
        opening_balance=line.opening_balance,
        clawback_amount=line.clawback_amount,
        taxable_amount=line.taxable_amount,
        withholding_rate=line.withholding_rate,
        withholding_amount=line.withholding_amount,
        net_amount=line.net_amount,
        carry_forward=line.carry_forward,
        status=line.status.value,
        payment_reference=line.payment_reference,
        paid_at=line.paid_at,
    )


@router.get("/tds", response_model=List[WithholdingSummaryResponse])
async def get_withholding_summary(
    financial_year: str = Query(..., pattern=r"^\d{4}-\d{2}$", examples=["2026-27"]),
    db: AsyncSession = Depends(get_db),
):
    """Per-coach withholding for a financial year, by quarter."""
    return await payout_service.withholding_summary(db, financial_year)
