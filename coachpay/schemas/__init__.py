"""Request and response schemas."""

from coachpay.schemas.leads import (
    AssignmentResponse,
    LeadCreate,
    ManualAssignRequest,
    PendingCountResponse,
    ReferralCodeResponse,
    ReferralVisitCreate,
    ReferralVisitResponse,
)
from coachpay.schemas.payments import (
    DisputeRequest,
    EnrollmentResponse,
    PaymentCaptured,
    PayoutDraftResponse,
)
from coachpay.schemas.payouts import (
    BatchLineResponse,
    ClawbackCreate,
    ClawbackResponse,
    MarkPaidRequest,
    PayoutRunRequest,
    PayoutRunResponse,
    WithholdingSummaryResponse,
)
from coachpay.schemas.revenue_config import RevenueConfigCreate, RevenueConfigResponse

__all__ = [
    "LeadCreate",
    "AssignmentResponse",
    "ManualAssignRequest",
    "PendingCountResponse",
    "ReferralVisitCreate",
    "ReferralCodeResponse",
    "ReferralVisitResponse",
    "PaymentCaptured",
    "PayoutDraftResponse",
    "EnrollmentResponse",
    "DisputeRequest",
    "ClawbackCreate",
    "ClawbackResponse",
    "PayoutRunRequest",
    "PayoutRunResponse",
    "BatchLineResponse",
    "MarkPaidRequest",
    "WithholdingSummaryResponse",
    "RevenueConfigCreate",
    "RevenueConfigResponse",
]
