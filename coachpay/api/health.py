"""
Health endpoints for the load balancer and the on-call dashboard.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.config import settings
from coachpay.db import get_db
from coachpay.scheduler.jobs import scheduler
from coachpay.services.assignment import count_pending_manual

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    return {"status": "healthy", "service": settings.app_name}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Database reachability plus the operational signals an operator watches:
    leads stuck without a coach and whether the payout job is scheduled.
    """
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return {"status": "not_ready", "database": f"error: {e}"}

    return {
        "status": "ready",
        "database": "connected",
        "pending_manual_leads": await count_pending_manual(db),
        "payout_scheduler": "running" if scheduler.running else "stopped",
    }


@router.get("/live")
async def liveness_check():
    return {"status": "alive"}
