"""
Versioned revenue split / withholding configuration.

Rows are append-only. A lead uses the latest version whose
effective_from is not after the lead's creation time.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from coachpay.engine.types import SplitConfig, TaxConfig
from coachpay.models.base import BaseModel, Money, Percent


class RevenueSplitConfig(BaseModel):
    """One version of the money rules."""

    __tablename__ = "revenue_split_configs"

    platform_fee_percent: Mapped[Decimal] = mapped_column(Percent, nullable=False)
    coach_cost_percent: Mapped[Decimal] = mapped_column(Percent, nullable=False)
    lead_cost_percent: Mapped[Decimal] = mapped_column(Percent, nullable=False)

    # Withholding (percent values, e.g. 10.00)
    tds_standard_rate: Mapped[Decimal] = mapped_column(Percent, nullable=False)
    tds_penal_rate: Mapped[Decimal] = mapped_column(Percent, nullable=False)
    tds_threshold_annual: Mapped[Decimal] = mapped_column(Money, nullable=False)

    payout_day_of_month: Mapped[int] = mapped_column(Integer, default=7, nullable=False)

    effective_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<RevenueSplitConfig(id={self.id}, "
            f"{self.coach_cost_percent}/{self.platform_fee_percent}/{self.lead_cost_percent})>"
        )

    def to_split_config(self) -> SplitConfig:
        return SplitConfig(
            version=self.id,
            platform_fee_percent=self.platform_fee_percent,
            coach_cost_percent=self.coach_cost_percent,
            lead_cost_percent=self.lead_cost_percent,
        )

    def to_tax_config(self) -> TaxConfig:
        return TaxConfig(
            standard_rate=self.tds_standard_rate,
            penal_rate=self.tds_penal_rate,
            threshold=self.tds_threshold_annual,
        )

    def snapshot(self) -> dict:
        """JSON-safe copy stored on enrollments and audit entries."""
        return {
            "id": self.id,
            "platform_fee_percent": str(self.platform_fee_percent),
            "coach_cost_percent": str(self.coach_cost_percent),
            "lead_cost_percent": str(self.lead_cost_percent),
            "tds_standard_rate": str(self.tds_standard_rate),
            "tds_penal_rate": str(self.tds_penal_rate),
            "tds_threshold_annual": str(self.tds_threshold_annual),
        }
