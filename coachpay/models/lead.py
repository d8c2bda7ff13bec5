"""
Lead / discovery call model.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coachpay.engine.types import AssignmentType, LeadStatus, SourceKind
from coachpay.models.base import BaseModel, enum_column

if TYPE_CHECKING:
    from coachpay.models.coach import Coach


class Lead(BaseModel):
    """
    An inbound lead or discovery call.

    Source attribution (source_kind/source_coach_id) is written once by a
    conditional update and never changes afterwards. Assignment fields
    move through AssignmentType transitions only.
    """

    __tablename__ = "leads"

    parent_name: Mapped[str] = mapped_column(String(120), nullable=False)
    parent_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    parent_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    child_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[LeadStatus] = mapped_column(
        enum_column(LeadStatus),
        default=LeadStatus.OPEN,
        nullable=False,
        index=True,
    )

    # Source attribution (null until stamped)
    source_kind: Mapped[Optional[SourceKind]] = mapped_column(
        enum_column(SourceKind),
        nullable=True,
    )
    source_coach_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("coaches.id"),
        nullable=True,
    )
    source_stamped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    referral_code_used: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Assignment
    assignment_type: Mapped[AssignmentType] = mapped_column(
        enum_column(AssignmentType),
        default=AssignmentType.UNASSIGNED,
        nullable=False,
        index=True,
    )
    assigned_coach_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("coaches.id"),
        nullable=True,
        index=True,
    )
    assigned_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    assigned_coach: Mapped[Optional["Coach"]] = relationship(
        "Coach",
        back_populates="assigned_leads",
        foreign_keys=[assigned_coach_id],
    )

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, assignment={self.assignment_type}, source={self.source_kind})>"
