"""
Revenue split between platform and coaches for one enrollment.

Rules:
- net base = gross fee - gateway/tax-on-sale deductions
- coach cost share goes to the servicing coach (platform lead) or to the
  referring coach (coach-referral lead)
- lead cost share is retained by the platform for platform leads, and paid
  to the referring coach for coach-referral leads, combined with the coach
  cost share in a single payout record
- coach-facing shares are rounded down to the minor unit; the platform
  share takes the remainder so the three shares sum to net base exactly

The lead source is the one frozen on the enrollment. It is never
recomputed from the current lead.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict

from coachpay.engine.errors import ConfigurationMissing, InvalidSplitConfig, InvalidSplitInput
from coachpay.engine.types import HUNDRED, MINOR_UNIT, LeadSource, SplitConfig

DEFAULT_SPLIT_EPSILON = Decimal("0.01")

Amount = Union[Decimal, int, str]


class PayoutDraft(BaseModel):
    """A PayoutRecord to be persisted for one coach and one enrollment."""

    model_config = ConfigDict(frozen=True)

    coach_id: int
    enrollment_id: Optional[int] = None
    coach_cost_amount: Decimal
    lead_bonus_amount: Decimal = Decimal("0.00")

    @property
    def gross_amount(self) -> Decimal:
        return self.coach_cost_amount + self.lead_bonus_amount


class SplitBreakdown(BaseModel):
    """How one enrollment's net base was divided."""

    model_config = ConfigDict(frozen=True)

    gross_fee: Decimal
    deductions: Decimal
    net_base: Decimal
    platform_share: Decimal
    coach_share: Decimal
    lead_bonus_share: Decimal
    source: LeadSource
    config_version: Optional[int] = None

    @property
    def lead_bonus_recipient(self) -> str:
        return "coach" if self.source.is_referral else "platform"

    @property
    def platform_retained(self) -> Decimal:
        """Everything the platform keeps, lead bonus included for platform leads."""
        if self.source.is_referral:
            return self.platform_share
        return self.platform_share + self.lead_bonus_share

    def as_dict(self) -> dict:
        return {
            "gross_fee": str(self.gross_fee),
            "deductions": str(self.deductions),
            "net_base": str(self.net_base),
            "platform_share": str(self.platform_share),
            "coach_share": str(self.coach_share),
            "lead_bonus_share": str(self.lead_bonus_share),
            "lead_bonus_recipient": self.lead_bonus_recipient,
            "source": str(self.source),
            "config_version": self.config_version,
        }


class SplitResult(BaseModel):
    """Breakdown plus the payout record drafts it produces."""

    model_config = ConfigDict(frozen=True)

    breakdown: SplitBreakdown
    drafts: List[PayoutDraft]


def to_money(value: Amount, field: str) -> Decimal:
    """Convert to Decimal, rejecting values finer than the minor unit."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidSplitInput(f"{field} is not a number", details={field: str(value)}) from e
    if not amount.is_finite() or amount != amount.quantize(MINOR_UNIT):
        raise InvalidSplitInput(
            f"{field} must be a whole number of minor units",
            details={field: str(value)},
        )
    return amount.quantize(MINOR_UNIT)


def validate_split_config(
    config: Optional[SplitConfig],
    epsilon: Decimal = DEFAULT_SPLIT_EPSILON,
) -> SplitConfig:
    """
    Check a split configuration before it is saved or used.

    Raises:
        ConfigurationMissing: No configuration supplied
        InvalidSplitConfig: A percentage is outside 0-100, or the three
            do not sum to 100 within epsilon
    """
    if config is None:
        raise ConfigurationMissing("Revenue split configuration is missing")

    percents = {
        "platform_fee_percent": config.platform_fee_percent,
        "coach_cost_percent": config.coach_cost_percent,
        "lead_cost_percent": config.lead_cost_percent,
    }
    details = {k: str(v) for k, v in percents.items()}
    details["version"] = config.version

    for name, value in percents.items():
        if value < 0 or value > HUNDRED:
            raise InvalidSplitConfig(f"{name} must be between 0 and 100", details=details)

    if abs(config.total_percent - HUNDRED) > epsilon:
        raise InvalidSplitConfig(
            f"Split percentages sum to {config.total_percent}, expected 100",
            details=details,
        )
    if config.coach_cost_percent + config.lead_cost_percent > HUNDRED:
        raise InvalidSplitConfig(
            "Coach and lead shares exceed 100; platform share would be negative",
            details=details,
        )
    return config


class RevenueSplitCalculator:
    """Computes the platform / coach / lead-bonus split of an enrollment."""

    def __init__(self, epsilon: Decimal = DEFAULT_SPLIT_EPSILON):
        self.epsilon = epsilon

    def calculate(
        self,
        gross_fee: Amount,
        deductions: Amount,
        source: LeadSource,
        config: Optional[SplitConfig],
        servicing_coach_id: Optional[int] = None,
        enrollment_id: Optional[int] = None,
    ) -> SplitResult:
        """
        Split one enrollment.

        Args:
            gross_fee: Amount the parent paid
            deductions: Gateway charges and tax on sale
            source: Frozen lead source of the enrollment
            config: Split percentages in force for the lead
            servicing_coach_id: Coach delivering the sessions; required
                for platform-sourced enrollments
            enrollment_id: Copied onto the payout drafts

        Returns:
            SplitResult with the breakdown and payout drafts
        """
        config = validate_split_config(config, self.epsilon)
        gross = to_money(gross_fee, "gross_fee")
        deduct = to_money(deductions, "deductions")

        snapshot = {
            "gross_fee": str(gross),
            "deductions": str(deduct),
            "source": str(source),
            "servicing_coach_id": servicing_coach_id,
            "enrollment_id": enrollment_id,
            "config_version": config.version,
        }
        if gross < 0 or deduct < 0:
            raise InvalidSplitInput("Amounts cannot be negative", details=snapshot)
        if deduct > gross:
            raise InvalidSplitInput("Deductions exceed the gross fee", details=snapshot)
        if not source.is_referral and servicing_coach_id is None:
            raise InvalidSplitInput(
                "Platform-sourced enrollment has no servicing coach",
                details=snapshot,
            )

        net_base = gross - deduct
        coach_share = self._coach_facing(net_base, config.coach_cost_percent)
        lead_bonus_share = self._coach_facing(net_base, config.lead_cost_percent)
        platform_share = net_base - coach_share - lead_bonus_share
        if platform_share < 0:
            raise InvalidSplitInput("Platform share would be negative", details=snapshot)

        breakdown = SplitBreakdown(
            gross_fee=gross,
            deductions=deduct,
            net_base=net_base,
            platform_share=platform_share,
            coach_share=coach_share,
            lead_bonus_share=lead_bonus_share,
            source=source,
            config_version=config.version,
        )
        return SplitResult(
            breakdown=breakdown,
            drafts=self._drafts(breakdown, servicing_coach_id, enrollment_id),
        )

    @staticmethod
    def _coach_facing(net_base: Decimal, percent: Decimal) -> Decimal:
        # Round down: coach totals are never inflated by rounding
        return (net_base * percent / HUNDRED).quantize(MINOR_UNIT, rounding=ROUND_DOWN)

    @staticmethod
    def _drafts(
        breakdown: SplitBreakdown,
        servicing_coach_id: Optional[int],
        enrollment_id: Optional[int],
    ) -> List[PayoutDraft]:
        if breakdown.source.is_referral:
            draft = PayoutDraft(
                coach_id=breakdown.source.coach_id,
                enrollment_id=enrollment_id,
                coach_cost_amount=breakdown.coach_share,
                lead_bonus_amount=breakdown.lead_bonus_share,
            )
        else:
            draft = PayoutDraft(
                coach_id=servicing_coach_id,
                enrollment_id=enrollment_id,
                coach_cost_amount=breakdown.coach_share,
            )

        if draft.gross_amount <= 0:
            return []
        return [draft]
