"""
Pure settlement engine.

No I/O happens here: services load rows, call these components and
write the results with guarded updates.
"""

from coachpay.engine.errors import (
    AttributionConflict,
    BatchAlreadyExists,
    ConfigurationMissing,
    DuplicateCapture,
    IneligibleCoach,
    InvalidSplitConfig,
    InvalidSplitInput,
    LeadClosed,
    RecordNotFound,
    SettlementError,
)
from coachpay.engine.matcher import AssignmentMatcher, below_capacity, by_load_then_idle, by_lowest_load
from coachpay.engine.payouts import BatchLine, ClawbackAdjustment, PayoutBatch, PayoutBatcher
from coachpay.engine.periods import PayoutPeriod, financial_year, quarter
from coachpay.engine.referral import ReferralAttributionTracker, generate_referral_code, normalize_code
from coachpay.engine.split import (
    PayoutDraft,
    RevenueSplitCalculator,
    SplitBreakdown,
    SplitResult,
    validate_split_config,
)
from coachpay.engine.tax import TaxWithholdingResolver, WithholdingDecision
from coachpay.engine.types import (
    AssignmentDecision,
    AssignmentType,
    LeadSource,
    SourceKind,
    SplitConfig,
    TaxConfig,
)

__all__ = [
    # Errors
    "SettlementError",
    "ConfigurationMissing",
    "InvalidSplitConfig",
    "InvalidSplitInput",
    "IneligibleCoach",
    "LeadClosed",
    "BatchAlreadyExists",
    "AttributionConflict",
    "RecordNotFound",
    "DuplicateCapture",
    # Types
    "AssignmentDecision",
    "AssignmentType",
    "LeadSource",
    "SourceKind",
    "SplitConfig",
    "TaxConfig",
    # Tax
    "TaxWithholdingResolver",
    "WithholdingDecision",
    # Split
    "RevenueSplitCalculator",
    "SplitBreakdown",
    "SplitResult",
    "PayoutDraft",
    "validate_split_config",
    # Matching
    "AssignmentMatcher",
    "by_lowest_load",
    "by_load_then_idle",
    "below_capacity",
    # Payouts
    "PayoutBatcher",
    "PayoutBatch",
    "BatchLine",
    "ClawbackAdjustment",
    "PayoutPeriod",
    "financial_year",
    "quarter",
    # Referral
    "ReferralAttributionTracker",
    "generate_referral_code",
    "normalize_code",
]
