"""Shift creation and assignment with per-member overlap validation."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from shiftguard.domain.models import Shift, ShiftAssignment
from shiftguard.domain.repositories import (
    COMMITTED_ASSIGNMENT_STATUSES,
    MembershipRepository,
    ShiftAssignmentRepository,
    ShiftRepository,
)
from shiftguard.errors import OverlapError
from shiftguard.intervals import (
    MAX_SHIFT_HOURS,
    OverlapResult,
    TimeInterval,
    as_utc,
    summarize_conflicts,
    validate_no_overlap,
    validate_shift_times,
)

from . import audit

logger = logging.getLogger(__name__)


class ShiftOverlapError(OverlapError):
    """Assigning the shift would double-book the member."""

    def __init__(self, membership_id: str, result: OverlapResult):
        conflicts = "; ".join(summarize_conflicts(result))
        super().__init__(f"SHIFT_OVERLAP_FOR_MEMBER {membership_id}: {conflicts}", membership_id, result)


def check_shift_overlap(
    session: Session,
    membership_id: str,
    start: datetime,
    end: datetime,
    shift_id: Optional[str] = None,
    max_hours: float = MAX_SHIFT_HOURS,
) -> OverlapResult:
    """
    Check a prospective shift against every committed shift of the member,
    across all schedules.

    Args:
        session: Database session
        membership_id: Member the shift is for
        start: Shift start
        end: Shift end
        shift_id: Id of the shift being edited, so its stored version is ignored
        max_hours: Longest allowed shift

    Returns:
        OverlapResult (conflicts ordered by start time)

    Raises:
        InvalidRange: If the times are out of order or the shift is too long
    """
    start, end = as_utc(start), as_utc(end)
    validate_shift_times(start, end, max_hours)

    existing = ShiftAssignmentRepository.get_committed_intervals(session, membership_id)
    candidate = TimeInterval(id=shift_id, owner_id=membership_id, start=start, end=end)
    result = validate_no_overlap(candidate, existing)

    if result.has_overlap:
        logger.info(
            "Shift %s for member %s overlaps %d committed shift(s)",
            shift_id or "<new>",
            membership_id,
            len(result.conflicts),
        )
    return result


def create_shift(
    session: Session,
    restaurant_id: str,
    start: datetime,
    end: datetime,
    schedule_name: Optional[str] = None,
    role: Optional[str] = None,
    max_hours: float = MAX_SHIFT_HOURS,
) -> Shift:
    start, end = as_utc(start), as_utc(end)
    validate_shift_times(start, end, max_hours)
    shift = Shift(
        restaurant_id=restaurant_id,
        schedule_name=schedule_name,
        start=start,
        end=end,
        role=role,
    )
    return ShiftRepository.create(session, shift)


def assign_shift(
    session: Session,
    shift_id: str,
    membership_id: str,
    actor_id: str,
    max_hours: float = MAX_SHIFT_HOURS,
) -> ShiftAssignment:
    """
    Assign a member to a shift after checking it against their other shifts.

    Validation and insert happen in one transaction; the unique
    ``(shift_id, membership_id)`` constraint backs up concurrent callers.

    Raises:
        NotFound: Unknown shift or membership
        ShiftOverlapError: The member already works during part of the shift
    """
    shift = ShiftRepository.require(session, shift_id)
    membership = MembershipRepository.require(session, membership_id)

    current = ShiftAssignmentRepository.find(session, shift_id, membership_id)
    if current is not None and current.status in COMMITTED_ASSIGNMENT_STATUSES:
        return current

    result = check_shift_overlap(
        session, membership_id, shift.start, shift.end, shift_id=shift.id, max_hours=max_hours
    )
    if result.has_overlap:
        raise ShiftOverlapError(membership_id, result)

    if current is not None:
        current.status = "assigned"
        assignment = current
    else:
        assignment = ShiftAssignmentRepository.create(
            session,
            ShiftAssignment(shift_id=shift.id, membership_id=membership_id, status="assigned"),
            commit=False,
        )

    audit.record_audit(
        session,
        actor_id=actor_id,
        entity_type="shift",
        entity_id=shift.id,
        action=audit.SHIFT_ASSIGN,
        restaurant_id=membership.restaurant_id,
        after={"membership_id": membership_id, "status": "assigned"},
    )
    session.commit()
    logger.info("Assigned member %s to shift %s", membership_id, shift.id)
    return assignment
