"""
Database models for coachpay.

All models are exported here for convenient imports:
    from coachpay.models import Coach, Lead, Enrollment, etc.
"""

from coachpay.models.audit import AuditAction, AuditLog
from coachpay.models.base import Base, BaseModel, TimestampMixin
from coachpay.models.coach import Coach
from coachpay.models.enrollment import Enrollment
from coachpay.models.lead import Lead
from coachpay.models.payout import (
    BatchLineStatus,
    ClawbackEvent,
    PayoutBatchLine,
    PayoutRecord,
    PayoutRecordKind,
)
from coachpay.models.referral import ReferralVisit
from coachpay.models.revenue_config import RevenueSplitConfig

__all__ = [
    # Base
    "Base",
    "BaseModel",
    "TimestampMixin",
    # Coach
    "Coach",
    # Lead
    "Lead",
    # Enrollment
    "Enrollment",
    # Payouts
    "PayoutRecord",
    "PayoutRecordKind",
    "ClawbackEvent",
    "PayoutBatchLine",
    "BatchLineStatus",
    # Referral
    "ReferralVisit",
    # Config
    "RevenueSplitConfig",
    # Audit
    "AuditLog",
    "AuditAction",
]
