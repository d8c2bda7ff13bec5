"""
Coach model.

Coaches are created at onboarding approval and never hard-deleted:
an exit is a soft status change so historical attribution survives.
"""

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from coachpay.engine.referral import normalize_code
from coachpay.engine.types import ExitStatus, TaxIdType
from coachpay.models.base import BaseModel, enum_column

if TYPE_CHECKING:
    from coachpay.models.lead import Lead


class Coach(BaseModel):
    """A coach who can be assigned leads and receives payouts."""

    __tablename__ = "coaches"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    # Matching
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    exit_status: Mapped[ExitStatus] = mapped_column(
        enum_column(ExitStatus),
        default=ExitStatus.NONE,
        nullable=False,
    )
    capacity: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Declared maximum number of open leads",
    )

    # Tax identity
    tax_id_type: Mapped[Optional[TaxIdType]] = mapped_column(
        enum_column(TaxIdType),
        nullable=True,
    )
    tax_id_value: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    tax_linkage_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Aadhaar confirmed linked to a valid PAN by the registry",
    )

    # Payout destination
    payout_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bank_account_number: Mapped[Optional[str]] = mapped_column(String(34), nullable=True)
    bank_ifsc: Mapped[Optional[str]] = mapped_column(String(11), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Stored upper-case, looked up case-insensitively
    referral_code: Mapped[Optional[str]] = mapped_column(
        String(32),
        unique=True,
        index=True,
        nullable=True,
    )

    assigned_leads: Mapped[List["Lead"]] = relationship(
        "Lead",
        back_populates="assigned_coach",
        foreign_keys="Lead.assigned_coach_id",
    )

    @validates("referral_code")
    def _normalize_referral_code(self, key, value):
        return normalize_code(value)

    def __repr__(self) -> str:
        return f"<Coach(id={self.id}, name='{self.name}', exit_status={self.exit_status})>"


# Codes are unique regardless of case, even if written around the validator
Index("uq_coaches_referral_code_upper", func.upper(Coach.referral_code), unique=True)
