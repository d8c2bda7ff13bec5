"""Clawback and payout batch schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from coachpay.engine.types import ClawbackReason


class ClawbackCreate(BaseModel):
    """Refund or coach-caused no-show against an enrollment."""

    enrollment_id: int
    reason: ClawbackReason
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    coach_id: Optional[int] = None


class ClawbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    enrollment_id: int
    coach_id: int
    reason: ClawbackReason
    amount: Decimal
    confirmed: bool
    confirmed_by: Optional[str] = None
    applied_period: Optional[str] = None
    after_payment: bool


class PayoutRunRequest(BaseModel):
    """Payout run for a month. Preview unless commit is set."""

    period: str = Field(..., pattern=r"^\d{4}-\d{2}$", examples=["2026-09"])
    commit: bool = False


class BatchLineResponse(BaseModel):
    """One coach's line, with masked tax and bank details."""

    line_id: Optional[int] = None
    coach_id: int
    coach_name: Optional[str] = None
    tax_id: Optional[str] = None
    bank_account: Optional[str] = None
    gross_amount: Decimal
    opening_balance: Decimal
    clawback_amount: Decimal
    taxable_amount: Decimal
    withholding_rate: Decimal
    withholding_amount: Decimal
    net_amount: Decimal
    carry_forward: Decimal
    record_ids: List[int] = []
    clawback_ids: List[int] = []
    status: Optional[str] = None
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None


class PayoutRunResponse(BaseModel):
    period: str
    mode: str
    batch_key: str
    financial_year: str
    quarter: str
    total_net: Decimal
    total_withholding: Decimal
    skipped_clawback_ids: List[int]
    lines: List[BatchLineResponse]


class MarkPaidRequest(BaseModel):
    payment_reference: str = Field(..., min_length=1, max_length=100)


class WithholdingSummaryResponse(BaseModel):
    """Per-coach withholding for a financial year."""

    coach_id: int
    coach_name: str
    tax_id: Optional[str] = None
    financial_year: str
    taxable_total: Decimal
    withholding_total: Decimal
    quarters: Dict[str, Decimal]
