"""Admin revenue split configuration endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.api.deps import get_actor
from coachpay.db import get_db
from coachpay.models import RevenueSplitConfig
from coachpay.schemas import RevenueConfigCreate, RevenueConfigResponse
from coachpay.services.revenue_config import get_active_config, save_config

router = APIRouter(prefix="/revenue-config")


@router.get("", response_model=RevenueConfigResponse)
async def get_current_config(db: AsyncSession = Depends(get_db)):
    """Config version in force now."""
    return await get_active_config(db)


@router.get("/history", response_model=List[RevenueConfigResponse])
async def get_config_history(db: AsyncSession = Depends(get_db)):
    """All config versions, newest first."""
    result = await db.execute(
        select(RevenueSplitConfig).order_by(RevenueSplitConfig.effective_from.desc())
    )
    return result.scalars().all()


@router.post("", response_model=RevenueConfigResponse, status_code=status.HTTP_201_CREATED)
async def create_config(
    data: RevenueConfigCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Validate and append a new config version."""
    config = await save_config(db, actor, **data.model_dump())
    await db.commit()
    await db.refresh(config)
    return config
