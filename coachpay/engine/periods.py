"""
Payout periods and Indian financial-year helpers.

Financial year runs April to March ("2026-27"); quarters are Q1 (Apr-Jun)
to Q4 (Jan-Mar).
"""

from datetime import date, datetime, timezone
from typing import Union

from pydantic import BaseModel, ConfigDict, Field


class PayoutPeriod(BaseModel):
    """A calendar month of payouts, [start, end) in UTC."""

    model_config = ConfigDict(frozen=True)

    year: int = Field(ge=2000, le=9999)
    month: int = Field(ge=1, le=12)

    @classmethod
    def parse(cls, label: str) -> "PayoutPeriod":
        """Parse a ``YYYY-MM`` label."""
        year, sep, month = label.partition("-")
        if not sep or not year.isdigit() or not month.isdigit():
            raise ValueError(f"Invalid period {label!r}, expected YYYY-MM")
        return cls(year=int(year), month=int(month))

    @classmethod
    def containing(cls, moment: Union[date, datetime]) -> "PayoutPeriod":
        return cls(year=moment.year, month=moment.month)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=timezone.utc)

    @property
    def end(self) -> datetime:
        return self.next().start

    def next(self) -> "PayoutPeriod":
        if self.month == 12:
            return PayoutPeriod(year=self.year + 1, month=1)
        return PayoutPeriod(year=self.year, month=self.month + 1)

    def previous(self) -> "PayoutPeriod":
        if self.month == 1:
            return PayoutPeriod(year=self.year - 1, month=12)
        return PayoutPeriod(year=self.year, month=self.month - 1)

    def __str__(self) -> str:
        return self.label


def financial_year(moment: Union[date, datetime]) -> str:
    """Financial year label, e.g. 2026-27 for any date Apr 2026 - Mar 2027."""
    start = moment.year if moment.month >= 4 else moment.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def quarter(moment: Union[date, datetime]) -> str:
    month = moment.month
    if 4 <= month <= 6:
        return "Q1"
    if 7 <= month <= 9:
        return "Q2"
    if 10 <= month <= 12:
        return "Q3"
    return "Q4"


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
