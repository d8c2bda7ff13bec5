"""Revenue split configuration schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RevenueConfigCreate(BaseModel):
    """New config version. Percentages must sum to 100."""

    platform_fee_percent: Decimal = Field(..., ge=0, le=100)
    coach_cost_percent: Decimal = Field(..., ge=0, le=100)
    lead_cost_percent: Decimal = Field(..., ge=0, le=100)
    tds_standard_rate: Decimal = Field(..., ge=0, le=100)
    tds_penal_rate: Decimal = Field(..., ge=0, le=100)
    tds_threshold_annual: Decimal = Field(..., ge=0)
    payout_day_of_month: int = Field(7, ge=1, le=28)
    effective_from: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class RevenueConfigResponse(BaseModel):
    """Stored config version."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    platform_fee_percent: Decimal
    coach_cost_percent: Decimal
    lead_cost_percent: Decimal
    tds_standard_rate: Decimal
    tds_penal_rate: Decimal
    tds_threshold_annual: Decimal
    payout_day_of_month: int
    effective_from: datetime
    created_by: str
    notes: Optional[str] = None
