"""
Versioned revenue split configuration.

Admins append new versions; nothing is edited in place. A lead is settled
with the latest version whose effective_from is not after the lead was
created, so enrollments already frozen are never affected by a change.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.config import settings
from coachpay.engine import ConfigurationMissing, SplitConfig, validate_split_config
from coachpay.engine.errors import SettlementError
from coachpay.models import AuditAction, RevenueSplitConfig
from coachpay.utils.audit import log_action

logger = logging.getLogger(__name__)


async def record_failure(
    db: AsyncSession,
    actor: str,
    action: AuditAction,
    error: SettlementError,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
) -> None:
    """
    Persist a money-rule failure with its input snapshot, then commit.

    Called before any write of the failed operation has been staged, so
    the commit carries only the audit entry.
    """
    logger.error(f"{action.value} failed: {error.message} | snapshot={error.details}")
    await log_action(
        db,
        actor,
        action,
        target_type=target_type,
        target_id=target_id,
        action_metadata={"error": error.message, "type": type(error).__name__, **error.details},
    )
    await db.commit()


async def get_config_for(db: AsyncSession, at: datetime) -> RevenueSplitConfig:
    """
    Config version in force at a moment.

    Raises:
        ConfigurationMissing: No version was effective yet
    """
    result = await db.execute(
        select(RevenueSplitConfig)
        .where(RevenueSplitConfig.effective_from <= at)
        .order_by(RevenueSplitConfig.effective_from.desc(), RevenueSplitConfig.id.desc())
        .limit(1)
    )
    config = result.scalar_one_or_none()
    if config is None:
        raise ConfigurationMissing(
            "No revenue split configuration effective",
            details={"at": at.isoformat()},
        )
    return config


async def get_active_config(db: AsyncSession) -> RevenueSplitConfig:
    """Latest version effective now."""
    return await get_config_for(db, datetime.now(timezone.utc))


async def save_config(
    db: AsyncSession,
    actor: str,
    platform_fee_percent: Decimal,
    coach_cost_percent: Decimal,
    lead_cost_percent: Decimal,
    tds_standard_rate: Decimal,
    tds_penal_rate: Decimal,
    tds_threshold_annual: Decimal,
    payout_day_of_month: int = 7,
    effective_from: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> RevenueSplitConfig:
    """
    Validate and append a new config version.

    Raises:
        InvalidSplitConfig: Percentages rejected; nothing is saved
    """
    candidate = SplitConfig(
        platform_fee_percent=platform_fee_percent,
        coach_cost_percent=coach_cost_percent,
        lead_cost_percent=lead_cost_percent,
    )
    try:
        validate_split_config(candidate, settings.split_epsilon)
    except SettlementError as e:
        e.details.update({
            "tds_standard_rate": str(tds_standard_rate),
            "tds_penal_rate": str(tds_penal_rate),
            "tds_threshold_annual": str(tds_threshold_annual),
        })
        await record_failure(db, actor, AuditAction.REJECT_SPLIT_CONFIG, e, "revenue_config")
        raise

    config = RevenueSplitConfig(
        platform_fee_percent=platform_fee_percent,
        coach_cost_percent=coach_cost_percent,
        lead_cost_percent=lead_cost_percent,
        tds_standard_rate=tds_standard_rate,
        tds_penal_rate=tds_penal_rate,
        tds_threshold_annual=tds_threshold_annual,
        payout_day_of_month=payout_day_of_month,
        effective_from=effective_from or datetime.now(timezone.utc),
        created_by=actor,
        notes=notes,
    )
    db.add(config)
    await db.flush()

    await log_action(
        db,
        actor,
        AuditAction.SAVE_SPLIT_CONFIG,
        target_type="revenue_config",
        target_id=config.id,
        action_metadata=config.snapshot(),
    )
    logger.info(
        f"Revenue config v{config.id} saved by {actor}: "
        f"coach {coach_cost_percent}% / platform {platform_fee_percent}% / lead {lead_cost_percent}%"
    )
    return config
