"""
Background job definitions using APScheduler.

Jobs include:
- Payout run for the previous month, on the payout day of the active
  revenue config
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from coachpay.db import get_db_context
from coachpay.engine import PayoutPeriod
from coachpay.engine.types import SYSTEM_ACTOR
from coachpay.services.payouts import run_payout_batch
from coachpay.services.revenue_config import get_active_config

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone="UTC")


async def monthly_payout_job(now: Optional[datetime] = None):
    """
    Commit the payout batch for the month that just ended.

    Fires daily; only the day matching the config's payout_day_of_month
    runs a batch, so changing the payout day needs no restart.
    """
    now = now or datetime.now(timezone.utc)
    period = PayoutPeriod.containing(now).previous()
    try:
        async with get_db_context() as db:
            config = await get_active_config(db)
            if now.day != config.payout_day_of_month:
                logger.debug(f"Payout day is {config.payout_day_of_month}, skipping {now.date()}")
                return

            logger.info(f"Running payout job for {period.label}")
            batch, lines = await run_payout_batch(db, period, SYSTEM_ACTOR, commit=True)
            logger.info(
                f"Payout job {period.label}: {len(lines)} lines, net {batch.total_net}"
            )
    except Exception as e:
        logger.error(f"Payout job error for {period.label}: {e}")


def setup_scheduler():
    """
    Configure and add all scheduled jobs.

    Called during application startup.
    """
    scheduler.add_job(
        monthly_payout_job,
        trigger=CronTrigger(hour=2, minute=0, timezone="UTC"),
        id="monthly_payout",
        name="Monthly coach payout run",
        replace_existing=True,
    )

    logger.info("Scheduler configured: daily check for the configured payout day")
