"""
Payout ledger models.

PayoutRecord rows are never deleted. Refunds and no-shows are reversed
with compensating negative records (kind=clawback) in a later batch.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coachpay.engine.types import ClawbackReason, PayoutStatus
from coachpay.models.base import BaseModel, Money, Percent, enum_column

if TYPE_CHECKING:
    from coachpay.models.enrollment import Enrollment


class PayoutRecordKind(str, Enum):
    """What a payout record represents."""
    SHARE = "share"          # Coach cost (+ lead bonus) for an enrollment
    CLAWBACK = "clawback"    # Compensating negative entry


class BatchLineStatus(str, Enum):
    """Status of a per-coach batch line."""
    BATCHED = "batched"
    PAID = "paid"


class PayoutRecord(BaseModel):
    """A coach's share of one enrollment, or a clawback against it."""

    __tablename__ = "payout_records"

    coach_id: Mapped[int] = mapped_column(
        ForeignKey("coaches.id"),
        nullable=False,
        index=True,
    )
    enrollment_id: Mapped[int] = mapped_column(
        ForeignKey("enrollments.id"),
        nullable=False,
        index=True,
    )
    kind: Mapped[PayoutRecordKind] = mapped_column(
        enum_column(PayoutRecordKind),
        default=PayoutRecordKind.SHARE,
        nullable=False,
    )

    gross_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    coach_cost_amount: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0"),
        nullable=False,
    )
    lead_bonus_amount: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0"),
        nullable=False,
    )

    status: Mapped[PayoutStatus] = mapped_column(
        enum_column(PayoutStatus),
        default=PayoutStatus.PENDING,
        nullable=False,
        index=True,
    )
    period: Mapped[Optional[str]] = mapped_column(
        String(7),
        nullable=True,
        comment="YYYY-MM of the batch that consumed this record",
    )
    batch_line_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("payout_batch_lines.id"),
        nullable=True,
        index=True,
    )
    clawback_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("clawback_events.id"),
        nullable=True,
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    enrollment: Mapped["Enrollment"] = relationship(
        "Enrollment",
        back_populates="payout_records",
    )

    def __repr__(self) -> str:
        return (
            f"<PayoutRecord(id={self.id}, coach_id={self.coach_id}, "
            f"gross={self.gross_amount}, status={self.status})>"
        )


class ClawbackEvent(BaseModel):
    """
    A refund or coach-caused no-show against an enrollment.

    Only confirmed events are applied by a payout run.
    """

    __tablename__ = "clawback_events"

    enrollment_id: Mapped[int] = mapped_column(
        ForeignKey("enrollments.id"),
        nullable=False,
        index=True,
    )
    coach_id: Mapped[int] = mapped_column(
        ForeignKey("coaches.id"),
        nullable=False,
        index=True,
    )
    reason: Mapped[ClawbackReason] = mapped_column(
        enum_column(ClawbackReason),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    confirmed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    applied_period: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    after_payment: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Applied against a later period because the record was already paid",
    )

    def __repr__(self) -> str:
        return f"<ClawbackEvent(id={self.id}, enrollment_id={self.enrollment_id}, amount={self.amount})>"


class PayoutBatchLine(BaseModel):
    """One coach's line in a monthly payout batch."""

    __tablename__ = "payout_batch_lines"
    __table_args__ = (
        UniqueConstraint("period", "coach_id", name="uq_payout_batch_lines_period_coach"),
    )

    period: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    coach_id: Mapped[int] = mapped_column(
        ForeignKey("coaches.id"),
        nullable=False,
        index=True,
    )
    batch_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    gross_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    opening_balance: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Carried-forward deficit from earlier periods (<= 0)",
    )
    clawback_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    taxable_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    withholding_rate: Mapped[Decimal] = mapped_column(Percent, nullable=False)
    withholding_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    carry_forward: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Residual clawback opening the next period (<= 0)",
    )

    financial_year: Mapped[str] = mapped_column(String(7), nullable=False)
    quarter: Mapped[str] = mapped_column(String(2), nullable=False)

    status: Mapped[BatchLineStatus] = mapped_column(
        enum_column(BatchLineStatus),
        default=BatchLineStatus.BATCHED,
        nullable=False,
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    records: Mapped[List["PayoutRecord"]] = relationship("PayoutRecord")

    def __repr__(self) -> str:
        return f"<PayoutBatchLine(period='{self.period}', coach_id={self.coach_id}, net={self.net_amount})>"
