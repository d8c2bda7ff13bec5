"""
ReferralVisit model: append-only telemetry of referral-link touchpoints.

Visits carry no attribution authority. Only Lead.source_kind does.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from coachpay.models.base import Base


class ReferralVisit(Base):
    """A single visit carrying a referral code."""

    __tablename__ = "referral_visits"

    id: Mapped[int] = mapped_column(primary_key=True)
    referral_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    coach_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("coaches.id"),
        nullable=True,
        index=True,
        comment="Resolved coach, null when the code did not match an active coach",
    )
    lead_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("leads.id"),
        nullable=True,
        index=True,
    )
    visited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    converted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    converted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ReferralVisit(id={self.id}, code='{self.referral_code}', converted={self.converted})>"
