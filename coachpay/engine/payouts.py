"""
Monthly payout batching.

For each coach with pending payout records (or confirmed clawbacks) in the
period:

    amount due = gross shares + opening balance - clawbacks
    if negative: due is 0 and the residual carries forward as the next
                 period's (negative) opening balance
    withholding = resolver(ytd + due) applied to the amount due
    net = due - withholding

The batcher is pure: it never mutates its inputs. It reports the record
and clawback identities it consumed, and the batch key is derived from
those identities, so running it again after the caller has committed the
result finds nothing left to consume.

A clawback against an enrollment whose record was already paid is
applied in this (the next open) period and flagged after_payment. Paid
batches are never reopened.
"""

import hashlib
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from coachpay.engine.errors import SettlementError
from coachpay.engine.periods import PayoutPeriod, as_utc, financial_year, quarter
from coachpay.engine.split import to_money
from coachpay.engine.tax import TaxWithholdingResolver, WithholdingDecision
from coachpay.engine.types import ClawbackReason, PayoutStatus, TaxConfig

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class ClawbackAdjustment(BaseModel):
    """A clawback applied in this batch as a compensating negative entry."""

    model_config = ConfigDict(frozen=True)

    clawback_id: int
    coach_id: int
    enrollment_id: int
    reason: ClawbackReason
    amount: Decimal
    after_payment: bool = False


class BatchLine(BaseModel):
    """One coach's payout for the period."""

    model_config = ConfigDict(frozen=True)

    coach_id: int
    line_key: str
    record_ids: Tuple[int, ...]
    adjustments: Tuple[ClawbackAdjustment, ...]
    gross_amount: Decimal
    opening_balance: Decimal
    clawback_amount: Decimal
    taxable_amount: Decimal
    withholding: WithholdingDecision
    withholding_amount: Decimal
    net_amount: Decimal
    carry_forward: Decimal
    ytd_after: Decimal

    @property
    def clawback_ids(self) -> Tuple[int, ...]:
        return tuple(a.clawback_id for a in self.adjustments)


class PayoutBatch(BaseModel):
    """Result of a batch run for one period."""

    model_config = ConfigDict(frozen=True)

    period: PayoutPeriod
    batch_key: str
    financial_year: str
    quarter: str
    lines: Tuple[BatchLine, ...]
    skipped_clawback_ids: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def consumed_record_ids(self) -> Set[int]:
        return {rid for line in self.lines for rid in line.record_ids}

    @property
    def applied_clawback_ids(self) -> Set[int]:
        return {cid for line in self.lines for cid in line.clawback_ids}

    @property
    def total_net(self) -> Decimal:
        return sum((line.net_amount for line in self.lines), ZERO)

    @property
    def total_withholding(self) -> Decimal:
        return sum((line.withholding_amount for line in self.lines), ZERO)


def _key(*parts: Any) -> str:
    return hashlib.sha256("|".join(str(p) for p in parts).encode()).hexdigest()


class PayoutBatcher:
    """Aggregates settled shares per coach into a monthly payout batch."""

    def __init__(self, resolver: Optional[TaxWithholdingResolver] = None):
        self.resolver = resolver or TaxWithholdingResolver()

    def build(
        self,
        period: PayoutPeriod,
        records: Iterable[Any],
        clawbacks: Iterable[Any],
        tax_config: Optional[TaxConfig],
        coaches: Mapping[int, Any],
        ytd_totals: Optional[Mapping[int, Decimal]] = None,
        opening_balances: Optional[Mapping[int, Decimal]] = None,
        disputed_enrollment_ids: Iterable[int] = (),
    ) -> PayoutBatch:
        """
        Compute the batch for a period.

        Args:
            period: Month being paid out
            records: PayoutRecords. Only pending, non-disputed records earned
                before the period end are consumed; paid records are used to
                detect clawbacks after payment.
            clawbacks: ClawbackEvents; unconfirmed or already-applied ones
                are not consumed
            tax_config: Withholding policy in force for the run
            coaches: Coach rows by id (tax identity)
            ytd_totals: Amount paid to each coach so far this financial year
            opening_balances: Carried-forward deficit per coach (<= 0)
            disputed_enrollment_ids: Enrollments held out of payouts

        Returns:
            PayoutBatch

        Raises:
            ConfigurationMissing: Tax configuration absent (the whole run fails)
        """
        ytd_totals = ytd_totals or {}
        opening_balances = opening_balances or {}
        disputed = set(disputed_enrollment_ids)

        pending, paid_pairs = self._partition_records(records, period, disputed)
        applicable, skipped = self._partition_clawbacks(clawbacks, disputed)

        by_coach: Dict[int, List[Any]] = defaultdict(list)
        for record in pending:
            by_coach[record.coach_id].append(record)

        adjustments_by_coach: Dict[int, List[ClawbackAdjustment]] = defaultdict(list)
        for clawback in applicable:
            after_payment = (clawback.coach_id, clawback.enrollment_id) in paid_pairs
            if after_payment:
                logger.info(
                    f"Clawback {clawback.id} hits paid enrollment {clawback.enrollment_id}; "
                    f"applying to coach {clawback.coach_id} in {period.label}"
                )
            adjustments_by_coach[clawback.coach_id].append(
                ClawbackAdjustment(
                    clawback_id=clawback.id,
                    coach_id=clawback.coach_id,
                    enrollment_id=clawback.enrollment_id,
                    reason=ClawbackReason(clawback.reason),
                    amount=to_money(clawback.amount, "clawback_amount"),
                    after_payment=after_payment,
                )
            )

        lines = []
        for coach_id in sorted(set(by_coach) | set(adjustments_by_coach)):
            lines.append(
                self._build_line(
                    period,
                    coach_id,
                    by_coach.get(coach_id, []),
                    adjustments_by_coach.get(coach_id, []),
                    coaches.get(coach_id),
                    Decimal(ytd_totals.get(coach_id, ZERO)),
                    Decimal(opening_balances.get(coach_id, ZERO)),
                    tax_config,
                )
            )

        batch = PayoutBatch(
            period=period,
            batch_key=_key(period.label, *(line.line_key for line in lines)),
            financial_year=financial_year(period.start),
            quarter=quarter(period.start),
            lines=tuple(lines),
            skipped_clawback_ids=tuple(sorted(skipped)),
        )
        logger.info(
            f"Payout batch {period.label}: {len(lines)} coaches, "
            f"net {batch.total_net}, withholding {batch.total_withholding}"
        )
        return batch

    @staticmethod
    def _partition_records(records, period: PayoutPeriod, disputed: Set[int]):
        pending: Dict[int, Any] = {}
        paid_pairs: Set[Tuple[int, int]] = set()

        for record in records:
            status = PayoutStatus(record.status)
            if status == PayoutStatus.PAID:
                paid_pairs.add((record.coach_id, record.enrollment_id))
                continue
            if status != PayoutStatus.PENDING:
                continue
            if record.enrollment_id in disputed:
                continue
            earned_at = getattr(record, "earned_at", None)
            if earned_at is not None and as_utc(earned_at) >= period.end:
                continue
            # Keyed by id: a record listed twice is consumed once
            pending[record.id] = record

        return list(pending.values()), paid_pairs

    @staticmethod
    def _partition_clawbacks(clawbacks, disputed: Set[int]):
        applicable: Dict[int, Any] = {}
        skipped: Set[int] = set()

        for clawback in clawbacks:
            if getattr(clawback, "applied_period", None):
                continue
            # Unconfirmed fault, or held with its disputed enrollment
            if not clawback.confirmed or clawback.enrollment_id in disputed:
                skipped.add(clawback.id)
                continue
            if Decimal(clawback.amount) <= 0:
                raise SettlementError(
                    "Clawback amount must be positive",
                    details={"clawback_id": clawback.id, "amount": str(clawback.amount)},
                )
            applicable[clawback.id] = clawback

        return sorted(applicable.values(), key=lambda c: c.id), skipped

    def _build_line(
        self,
        period: PayoutPeriod,
        coach_id: int,
        records: List[Any],
        adjustments: List[ClawbackAdjustment],
        coach,
        ytd_total: Decimal,
        opening_balance: Decimal,
        tax_config: Optional[TaxConfig],
    ) -> BatchLine:
        record_ids = tuple(sorted(r.id for r in records))
        gross = sum((to_money(r.gross_amount, "gross_amount") for r in records), ZERO)
        opening = min(opening_balance, ZERO)
        clawback_total = sum((a.amount for a in adjustments), ZERO)

        due = gross + opening - clawback_total
        carry_forward = ZERO
        if due < 0:
            carry_forward = due
            due = ZERO

        decision = self.resolver.resolve_for_coach(coach, ytd_total + due, tax_config)
        withholding = decision.withholding_for(due)

        return BatchLine(
            coach_id=coach_id,
            line_key=_key(
                period.label,
                coach_id,
                ",".join(map(str, record_ids)),
                ",".join(str(a.clawback_id) for a in adjustments),
            ),
            record_ids=record_ids,
            adjustments=tuple(adjustments),
            gross_amount=gross,
            opening_balance=opening,
            clawback_amount=clawback_total,
            taxable_amount=due,
            withholding=decision,
            withholding_amount=withholding,
            net_amount=due - withholding,
            carry_forward=carry_forward,
            ytd_after=ytd_total + due,
        )
