"""
Tax withholding (TDS) rate resolution for coach payouts.

Rules:
- Year-to-date payouts at or below the annual threshold: no withholding
- Above the threshold:
  - standard rate for a PAN, or an Aadhaar verified as linked to a PAN
  - penal rate for an unlinked/unverified Aadhaar, a malformed
    identifier, or no identifier on file

Rates and threshold always come from a TaxConfig passed by the caller.
"""

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from coachpay.engine.errors import ConfigurationMissing
from coachpay.engine.types import HUNDRED, MINOR_UNIT, RateKind, TaxConfig, TaxIdType

PAN_REGEX = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
AADHAAR_REGEX = re.compile(r"^[2-9][0-9]{11}$")


class WithholdingDecision(BaseModel):
    """Applicable rate and whether the threshold gate is open."""

    model_config = ConfigDict(frozen=True)

    rate: Decimal
    rate_kind: RateKind
    threshold_met: bool
    ytd_total: Decimal

    @property
    def effective_rate(self) -> Decimal:
        """Rate actually applied: zero while under the threshold."""
        return self.rate if self.threshold_met else Decimal("0")

    def withholding_for(self, amount: Decimal) -> Decimal:
        if amount <= 0 or not self.threshold_met:
            return Decimal("0.00")
        return (amount * self.rate / HUNDRED).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def normalize_tax_id(value: Optional[str]) -> Optional[str]:
    """Strip separators and upper-case an identifier."""
    if not value:
        return None
    cleaned = re.sub(r"[\s\-]", "", value).upper()
    return cleaned or None


def is_valid_pan(value: Optional[str]) -> bool:
    value = normalize_tax_id(value)
    return bool(value and PAN_REGEX.match(value))


def is_valid_aadhaar(value: Optional[str]) -> bool:
    value = normalize_tax_id(value)
    return bool(value and AADHAAR_REGEX.match(value))


class TaxWithholdingResolver:
    """Resolves the withholding rate for a coach's payout."""

    def check_config(self, config: Optional[TaxConfig]) -> TaxConfig:
        """Raise ConfigurationMissing unless every rule input is present."""
        if config is None:
            raise ConfigurationMissing("Tax withholding configuration is missing")

        missing = [
            name
            for name in ("standard_rate", "penal_rate", "threshold")
            if getattr(config, name) is None
        ]
        if missing:
            raise ConfigurationMissing(
                f"Tax withholding configuration incomplete: {', '.join(missing)}",
                details={"missing": missing},
            )
        return config

    def resolve(
        self,
        tax_id_type: Union[TaxIdType, str, None],
        tax_id_value: Optional[str],
        linkage_verified: bool,
        ytd_total: Decimal,
        config: Optional[TaxConfig],
    ) -> WithholdingDecision:
        """
        Resolve the withholding rate.

        Args:
            tax_id_type: "pan", "aadhaar" or None when nothing is on file
            tax_id_value: The identifier itself
            linkage_verified: Registry confirmed the Aadhaar is linked to a PAN.
                A failed registry lookup must be passed as False.
            ytd_total: Cumulative payouts this financial year, including
                the amount being paid now
            config: Rates and threshold in force

        Returns:
            WithholdingDecision
        """
        config = self.check_config(config)
        ytd_total = Decimal(ytd_total)

        if self._qualifies_for_standard(tax_id_type, tax_id_value, linkage_verified):
            rate, kind = config.standard_rate, RateKind.STANDARD
        else:
            rate, kind = config.penal_rate, RateKind.PENAL

        return WithholdingDecision(
            rate=rate,
            rate_kind=kind,
            threshold_met=ytd_total > config.threshold,
            ytd_total=ytd_total,
        )

    def resolve_for_coach(
        self,
        coach,
        ytd_total: Decimal,
        config: Optional[TaxConfig],
    ) -> WithholdingDecision:
        """Resolve using the tax fields of a coach row (or None)."""
        return self.resolve(
            getattr(coach, "tax_id_type", None),
            getattr(coach, "tax_id_value", None),
            bool(getattr(coach, "tax_linkage_verified", False)),
            ytd_total,
            config,
        )

    @staticmethod
    def _qualifies_for_standard(tax_id_type, tax_id_value, linkage_verified) -> bool:
        if tax_id_type is None:
            return False
        try:
            tax_id_type = TaxIdType(tax_id_type)
        except ValueError:
            # Unknown identifier types count as nothing on file
            return False
        if tax_id_type == TaxIdType.PAN:
            return is_valid_pan(tax_id_value)
        return is_valid_aadhaar(tax_id_value) and linkage_verified is True
