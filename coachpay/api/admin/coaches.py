"""Admin coach onboarding endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.api.deps import get_actor
from coachpay.db import get_db
from coachpay.schemas import ReferralCodeResponse
from coachpay.services.attribution import issue_referral_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coaches")


@router.post("/{coach_id}/referral-code", response_model=ReferralCodeResponse)
async def create_referral_code(
    coach_id: int,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Issue the coach's referral code; an existing code is returned as is."""
    coach = await issue_referral_code(db, coach_id)
    logger.info(f"Referral code for coach {coach.id} requested by {actor}")
    return ReferralCodeResponse(coach_id=coach.id, referral_code=coach.referral_code)
