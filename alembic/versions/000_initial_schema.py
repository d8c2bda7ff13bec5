"""Initial database schema

Revision ID: 000_initial_schema
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "000_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create all initial tables."""

    # Coaches table
    op.create_table(
        "coaches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), default=True, nullable=False),
        sa.Column("is_available", sa.Boolean(), default=True, nullable=False),
        sa.Column("exit_status", sa.Enum("none", "pending", "exited", name="exitstatus"), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("tax_id_type", sa.Enum("pan", "aadhaar", name="taxidtype"), nullable=True),
        sa.Column("tax_id_value", sa.String(20), nullable=True),
        sa.Column("tax_linkage_verified", sa.Boolean(), default=False, nullable=False),
        sa.Column("payout_enabled", sa.Boolean(), default=False, nullable=False),
        sa.Column("bank_account_number", sa.String(34), nullable=True),
        sa.Column("bank_ifsc", sa.String(11), nullable=True),
        sa.Column("bank_name", sa.String(100), nullable=True),
        sa.Column("referral_code", sa.String(32), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_coaches_email", "coaches", ["email"], unique=True)
    op.create_index("ix_coaches_referral_code", "coaches", ["referral_code"], unique=True)
    op.create_index(
        "uq_coaches_referral_code_upper",
        "coaches",
        [sa.text("upper(referral_code)")],
        unique=True,
    )

    # Leads table
    op.create_table(
        "leads",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("parent_name", sa.String(120), nullable=False),
        sa.Column("parent_email", sa.String(255), nullable=True),
        sa.Column("parent_phone", sa.String(20), nullable=True),
        sa.Column("child_name", sa.String(120), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.Enum("open", "converted", "cancelled", name="leadstatus"), nullable=False),
        sa.Column("source_kind", sa.Enum("platform", "coach_referral", name="sourcekind"), nullable=True),
        sa.Column("source_coach_id", sa.Integer(), sa.ForeignKey("coaches.id"), nullable=True),
        sa.Column("source_stamped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("referral_code_used", sa.String(32), nullable=True),
        sa.Column(
            "assignment_type",
            sa.Enum("unassigned", "auto", "pending", "manual", name="assignmenttype"),
            nullable=False,
        ),
        sa.Column("assigned_coach_id", sa.Integer(), sa.ForeignKey("coaches.id"), nullable=True),
        sa.Column("assigned_by", sa.String(100), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_leads_status", "leads", ["status"])
    op.create_index("ix_leads_assignment_type", "leads", ["assignment_type"])
    op.create_index("ix_leads_assigned_coach_id", "leads", ["assigned_coach_id"])

    # Revenue split config versions
    op.create_table(
        "revenue_split_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("platform_fee_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("coach_cost_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("lead_cost_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("tds_standard_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("tds_penal_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("tds_threshold_annual", sa.Numeric(12, 2), nullable=False),
        sa.Column("payout_day_of_month", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("effective_from", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_revenue_split_configs_effective_from", "revenue_split_configs", ["effective_from"])

    # Enrollments table
    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("leads.id"), nullable=False, unique=True),
        sa.Column("payment_reference", sa.String(100), nullable=True, unique=True),
        sa.Column("gross_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("deductions", sa.Numeric(12, 2), nullable=False),
        sa.Column("net_base", sa.Numeric(12, 2), nullable=False),
        sa.Column("platform_share", sa.Numeric(12, 2), nullable=False),
        sa.Column("coach_share", sa.Numeric(12, 2), nullable=False),
        sa.Column("lead_bonus_share", sa.Numeric(12, 2), nullable=False),
        sa.Column("source_kind", postgresql.ENUM(name="sourcekind", create_type=False), nullable=False),
        sa.Column("source_coach_id", sa.Integer(), sa.ForeignKey("coaches.id"), nullable=True),
        sa.Column("servicing_coach_id", sa.Integer(), sa.ForeignKey("coaches.id"), nullable=True),
        sa.Column("split_config_id", sa.Integer(), sa.ForeignKey("revenue_split_configs.id"), nullable=False),
        sa.Column("config_snapshot", sa.JSON(), nullable=False),
        sa.Column("is_disputed", sa.Boolean(), default=False, nullable=False),
        sa.Column("captured_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
    )

    # Clawback events
    op.create_table(
        "clawback_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("enrollments.id"), nullable=False),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("coaches.id"), nullable=False),
        sa.Column("reason", sa.Enum("refund", "no_show", name="clawbackreason"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("confirmed", sa.Boolean(), default=False, nullable=False),
        sa.Column("confirmed_by", sa.String(100), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("applied_period", sa.String(7), nullable=True),
        sa.Column("after_payment", sa.Boolean(), default=False, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_clawback_events_enrollment_id", "clawback_events", ["enrollment_id"])
    op.create_index("ix_clawback_events_coach_id", "clawback_events", ["coach_id"])

    # Payout batch lines
    op.create_table(
        "payout_batch_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("coaches.id"), nullable=False),
        sa.Column("batch_key", sa.String(64), nullable=False),
        sa.Column("gross_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("opening_balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("clawback_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("taxable_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("withholding_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("withholding_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("net_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("carry_forward", sa.Numeric(12, 2), nullable=False),
        sa.Column("financial_year", sa.String(7), nullable=False),
        sa.Column("quarter", sa.String(2), nullable=False),
        sa.Column("status", sa.Enum("batched", "paid", name="batchlinestatus"), nullable=False),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("period", "coach_id", name="uq_payout_batch_lines_period_coach"),
    )
    op.create_index("ix_payout_batch_lines_period", "payout_batch_lines", ["period"])
    op.create_index("ix_payout_batch_lines_coach_id", "payout_batch_lines", ["coach_id"])
    op.create_index("ix_payout_batch_lines_batch_key", "payout_batch_lines", ["batch_key"])

    # Payout records (append-only ledger)
    op.create_table(
        "payout_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("coaches.id"), nullable=False),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("enrollments.id"), nullable=False),
        sa.Column("kind", sa.Enum("share", "clawback", name="payoutrecordkind"), nullable=False),
        sa.Column("gross_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("coach_cost_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("lead_bonus_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.Enum("pending", "batched", "paid", name="payoutstatus"), nullable=False),
        sa.Column("period", sa.String(7), nullable=True),
        sa.Column("batch_line_id", sa.Integer(), sa.ForeignKey("payout_batch_lines.id"), nullable=True),
        sa.Column("clawback_id", sa.Integer(), sa.ForeignKey("clawback_events.id"), nullable=True),
        sa.Column("earned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_payout_records_coach_id", "payout_records", ["coach_id"])
    op.create_index("ix_payout_records_enrollment_id", "payout_records", ["enrollment_id"])
    op.create_index("ix_payout_records_status", "payout_records", ["status"])
    op.create_index("ix_payout_records_batch_line_id", "payout_records", ["batch_line_id"])

    # Referral visits (telemetry)
    op.create_table(
        "referral_visits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("referral_code", sa.String(32), nullable=False),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("coaches.id"), nullable=True),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("leads.id"), nullable=True),
        sa.Column("visited_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("converted", sa.Boolean(), default=False, nullable=False),
        sa.Column("converted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_referral_visits_referral_code", "referral_visits", ["referral_code"])
    op.create_index("ix_referral_visits_coach_id", "referral_visits", ["coach_id"])
    op.create_index("ix_referral_visits_lead_id", "referral_visits", ["lead_id"])

    # Audit logs
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor", sa.String(100), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "lead_attributed",
                "attribution_conflict",
                "auto_assign",
                "pending_manual",
                "manual_assign",
                "save_split_config",
                "reject_split_config",
                "enrollment_split",
                "enrollment_split_failed",
                "dispute_enrollment",
                "record_clawback",
                "confirm_clawback",
                "payout_batch_run",
                "payout_batch_failed",
                "payout_paid",
                name="auditaction",
            ),
            nullable=False,
        ),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("action_metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_actor", "audit_logs", ["actor"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("audit_logs")
    op.drop_table("referral_visits")
    op.drop_table("payout_records")
    op.drop_table("payout_batch_lines")
    op.drop_table("clawback_events")
    op.drop_table("enrollments")
    op.drop_table("revenue_split_configs")
    op.drop_table("leads")
    op.drop_table("coaches")

    for enum_name in (
        "auditaction",
        "payoutstatus",
        "payoutrecordkind",
        "batchlinestatus",
        "clawbackreason",
        "assignmenttype",
        "sourcekind",
        "leadstatus",
        "taxidtype",
        "exitstatus",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
