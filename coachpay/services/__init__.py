"""Business logic services."""

from coachpay.services.assignment import assign_lead_manually, auto_assign_lead, count_pending_manual
from coachpay.services.attribution import record_visit, stamp_lead_source
from coachpay.services.intake import create_lead
from coachpay.services.payouts import (
    confirm_clawback,
    mark_line_paid,
    record_clawback,
    run_payout_batch,
)
from coachpay.services.revenue_config import get_active_config, get_config_for, save_config
from coachpay.services.settlement import capture_enrollment, set_enrollment_disputed

__all__ = [
    "auto_assign_lead",
    "assign_lead_manually",
    "count_pending_manual",
    "record_visit",
    "stamp_lead_source",
    "create_lead",
    "capture_enrollment",
    "set_enrollment_disputed",
    "record_clawback",
    "confirm_clawback",
    "run_payout_batch",
    "mark_line_paid",
    "get_config_for",
    "get_active_config",
    "save_config",
]
