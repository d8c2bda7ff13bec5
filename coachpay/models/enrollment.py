"""
Enrollment model.

Created on successful payment capture. The lead source and servicing
coach are copied from the Lead at creation time and frozen: the revenue
split reads these columns, never the live Lead.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coachpay.engine.types import SourceKind
from coachpay.models.base import BaseModel, Money, enum_column

if TYPE_CHECKING:
    from coachpay.models.lead import Lead
    from coachpay.models.payout import PayoutRecord


class Enrollment(BaseModel):
    """A paid enrollment backed by exactly one lead."""

    __tablename__ = "enrollments"

    lead_id: Mapped[int] = mapped_column(
        ForeignKey("leads.id"),
        unique=True,
        nullable=False,
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        comment="Gateway payment id, used to reject duplicate captures",
    )

    gross_fee: Mapped[Decimal] = mapped_column(Money, nullable=False)
    deductions: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Gateway charges and tax on sale",
    )
    net_base: Mapped[Decimal] = mapped_column(Money, nullable=False)

    # Split breakdown as committed at capture time
    platform_share: Mapped[Decimal] = mapped_column(Money, nullable=False)
    coach_share: Mapped[Decimal] = mapped_column(Money, nullable=False)
    lead_bonus_share: Mapped[Decimal] = mapped_column(Money, nullable=False)

    # Frozen attribution
    source_kind: Mapped[SourceKind] = mapped_column(
        enum_column(SourceKind),
        nullable=False,
    )
    source_coach_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("coaches.id"),
        nullable=True,
    )
    servicing_coach_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("coaches.id"),
        nullable=True,
    )

    split_config_id: Mapped[int] = mapped_column(
        ForeignKey("revenue_split_configs.id"),
        nullable=False,
    )
    config_snapshot: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Percentages in force when the split was computed",
    )

    is_disputed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    captured_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    lead: Mapped["Lead"] = relationship("Lead")
    payout_records: Mapped[List["PayoutRecord"]] = relationship(
        "PayoutRecord",
        back_populates="enrollment",
    )

    def __repr__(self) -> str:
        return f"<Enrollment(id={self.id}, lead_id={self.lead_id}, net_base={self.net_base})>"
