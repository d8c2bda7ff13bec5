"""
AuditLog model for money-affecting actions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from coachpay.models.base import Base, enum_column


class AuditAction(str, Enum):
    """Types of auditable actions."""
    LEAD_ATTRIBUTED = "lead_attributed"
    ATTRIBUTION_CONFLICT = "attribution_conflict"
    AUTO_ASSIGN = "auto_assign"
    PENDING_MANUAL = "pending_manual"
    MANUAL_ASSIGN = "manual_assign"
    SAVE_SPLIT_CONFIG = "save_split_config"
    REJECT_SPLIT_CONFIG = "reject_split_config"
    ENROLLMENT_SPLIT = "enrollment_split"
    ENROLLMENT_SPLIT_FAILED = "enrollment_split_failed"
    DISPUTE_ENROLLMENT = "dispute_enrollment"
    RECORD_CLAWBACK = "record_clawback"
    CONFIRM_CLAWBACK = "confirm_clawback"
    PAYOUT_BATCH_RUN = "payout_batch_run"
    PAYOUT_BATCH_FAILED = "payout_batch_failed"
    PAYOUT_PAID = "payout_paid"


class AuditLog(Base):
    """
    One money-affecting action or failure.

    action_metadata holds the input snapshot so the computation can be
    replayed; tax ids and bank accounts in it are masked.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_target", "target_type", "target_id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    actor: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    action: Mapped[AuditAction] = mapped_column(enum_column(AuditAction), nullable=False, index=True)
    # lead, enrollment, clawback, payout_batch, payout_line, revenue_config
    target_type: Mapped[Optional[str]] = mapped_column(String(50))
    target_id: Mapped[Optional[int]] = mapped_column(Integer)
    action_metadata: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action.value} by {self.actor} on {self.target_type}:{self.target_id}>"
