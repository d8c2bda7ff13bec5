"""
Coach assignment for inbound leads and discovery calls.

State machine per lead:
    unassigned -> auto | pending -> manual (any number of times)

The matcher owns the eligibility filter and the state transition. Which
eligible coach wins is decided by a ranking key supplied by the caller.
An empty eligible set is a normal outcome: the lead goes to pending-manual
with no coach.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Mapping, Optional

from coachpay.engine.errors import IneligibleCoach, LeadClosed
from coachpay.engine.types import (
    SYSTEM_ACTOR,
    AssignmentDecision,
    AssignmentType,
    ExitStatus,
    LeadStatus,
)

logger = logging.getLogger(__name__)

RankKey = Callable[[Any], Any]
Constraint = Callable[[Any], bool]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_eligible(coach) -> bool:
    """Active, available and not on the way out."""
    exit_status = ExitStatus(coach.exit_status or ExitStatus.NONE)
    return (
        bool(coach.is_active)
        and bool(coach.is_available)
        and exit_status == ExitStatus.NONE
    )


# ── Ranking and constraint helpers ───────────────────────


def by_lowest_load(loads: Mapping[int, int]) -> RankKey:
    """Rank by number of open leads, fewest first."""
    return lambda coach: loads.get(coach.id, 0)


def by_load_then_idle(
    loads: Mapping[int, int],
    last_assigned_at: Mapping[int, Optional[datetime]],
) -> RankKey:
    """Rank by open leads, then by longest time since last assignment."""

    def key(coach):
        last = last_assigned_at.get(coach.id)
        idle_key = last.timestamp() if last is not None else float("-inf")
        return (loads.get(coach.id, 0), idle_key)

    return key


def below_capacity(loads: Mapping[int, int]) -> Constraint:
    """Keep coaches whose open leads are under their declared capacity."""

    def check(coach) -> bool:
        capacity = getattr(coach, "capacity", None)
        return capacity is None or loads.get(coach.id, 0) < capacity

    return check


class AssignmentMatcher:
    """Assigns leads to coaches, or flags them for manual assignment."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock

    def eligible_coaches(
        self,
        coaches: Iterable[Any],
        constraint: Optional[Constraint] = None,
    ) -> List[Any]:
        eligible = [c for c in coaches if is_eligible(c)]
        if constraint is not None:
            eligible = [c for c in eligible if constraint(c)]
        return eligible

    def match(
        self,
        lead,
        coaches: Iterable[Any],
        rank: RankKey,
        constraint: Optional[Constraint] = None,
    ) -> AssignmentDecision:
        """
        Auto-assign an unassigned lead.

        Args:
            lead: Lead row (assignment_type, assigned_coach_id, status)
            coaches: Candidate pool
            rank: Sort key; the lowest-ranked eligible coach wins, ties
                broken by coach id
            constraint: Extra servicing filter (e.g. below_capacity)

        Returns:
            AssignmentDecision. changed=False when the lead has already
            left the unassigned state, so a losing concurrent attempt
            becomes a no-op.
        """
        current = AssignmentType(lead.assignment_type)
        self._check_open(lead)

        if current != AssignmentType.UNASSIGNED:
            return AssignmentDecision(
                assignment_type=current,
                coach_id=lead.assigned_coach_id,
                assigned_by=getattr(lead, "assigned_by", None),
                assigned_at=getattr(lead, "assigned_at", None),
                previous_type=current,
                changed=False,
                reason="already_decided",
            )

        now = self._clock()
        eligible = self.eligible_coaches(coaches, constraint)

        if not eligible:
            logger.info(f"Lead {lead.id}: no eligible coach, marking pending-manual")
            return AssignmentDecision(
                assignment_type=AssignmentType.PENDING,
                coach_id=None,
                assigned_by=SYSTEM_ACTOR,
                assigned_at=now,
                previous_type=current,
                reason="no_eligible_coach",
            )

        selected = min(eligible, key=lambda c: (rank(c), c.id))
        logger.info(f"Lead {lead.id}: auto-assigned to coach {selected.id}")
        return AssignmentDecision(
            assignment_type=AssignmentType.AUTO,
            coach_id=selected.id,
            assigned_by=SYSTEM_ACTOR,
            assigned_at=now,
            previous_type=current,
        )

    def assign_manually(self, lead, coach, admin_id: str) -> AssignmentDecision:
        """
        Assign or reassign a lead by hand.

        Permitted from any assignment state, including over an
        auto-assignment. The coach need not be available, but must be
        active and not exited.

        Raises:
            LeadClosed: The lead is cancelled
            IneligibleCoach: The coach is inactive or has exited
        """
        if not admin_id:
            raise ValueError("admin_id is required for manual assignment")

        current = AssignmentType(lead.assignment_type)
        self._check_open(lead)

        exit_status = ExitStatus(coach.exit_status or ExitStatus.NONE)
        if not coach.is_active or exit_status == ExitStatus.EXITED:
            raise IneligibleCoach(
                "Cannot assign an inactive or exited coach",
                details={
                    "lead_id": lead.id,
                    "coach_id": coach.id,
                    "is_active": bool(coach.is_active),
                    "exit_status": exit_status.value,
                },
            )

        if current == AssignmentType.MANUAL and lead.assigned_coach_id == coach.id:
            return AssignmentDecision(
                assignment_type=current,
                coach_id=coach.id,
                assigned_by=lead.assigned_by,
                assigned_at=lead.assigned_at,
                previous_type=current,
                changed=False,
                reason="already_assigned",
            )

        return AssignmentDecision(
            assignment_type=AssignmentType.MANUAL,
            coach_id=coach.id,
            assigned_by=str(admin_id),
            assigned_at=self._clock(),
            previous_type=current,
        )

    @staticmethod
    def _check_open(lead) -> None:
        status = getattr(lead, "status", None)
        if status is not None and LeadStatus(status) == LeadStatus.CANCELLED:
            raise LeadClosed(
                "Cannot assign a coach to a cancelled lead",
                details={"lead_id": lead.id},
            )
