"""Clock-in/out, edits and manager closes of time entries."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from shiftguard.domain.models import TimeEntryRecord
from shiftguard.domain.repositories import (
    MembershipRepository,
    ReportDailyRepository,
    ShiftAssignmentRepository,
    TimeEntryRepository,
)
from shiftguard.config import restaurant_zone
from shiftguard.errors import AlreadyClockedIn, NotFound, OverlapError, PermissionDenied
from shiftguard.intervals import as_utc, ensure_valid_range, summarize_conflicts, validate_no_overlap
from shiftguard.permissions import SIGNED_PERIOD_REASON, Role, can_edit_time_entry
from shiftguard.time_entries import (
    MAX_ADJUSTMENT_MINUTES,
    TimeEntry,
    apply_time_entry_edit,
    as_interval,
    close_by_manager,
    close_hanging_time_entry,
    entry_period_date,
)

from . import audit
from .access import require_manager

logger = logging.getLogger(__name__)


def _snapshot(entry: TimeEntry) -> Dict[str, Any]:
    return {
        "clock_in": entry.clock_in.isoformat(),
        "clock_out": entry.clock_out.isoformat() if entry.clock_out else None,
        "reason": entry.reason,
        "adjustment_minutes": entry.adjustment_minutes,
        "status": entry.status,
    }


def _ensure_no_entry_overlap(session: Session, entry: TimeEntry) -> None:
    """Reject a closed entry that overlaps another closed entry of the same member."""
    if entry.clock_out is None or entry.clock_out <= entry.clock_in:
        return
    existing = TimeEntryRepository.get_closed_intervals(session, entry.membership_id)
    result = validate_no_overlap(as_interval(entry), existing)
    if result.has_overlap:
        raise OverlapError(
            f"TIME_ENTRY_OVERLAP for member {entry.membership_id}: " + "; ".join(summarize_conflicts(result)),
            entry.membership_id,
            result,
        )


def _ensure_period_unsigned(session: Session, restaurant_id: str, clock_in_at: datetime, tz: tzinfo) -> None:
    """Refuse writes to entries whose calendar day has a signed report."""
    day = entry_period_date(clock_in_at, tz)
    if ReportDailyRepository.get_signature_state(session, restaurant_id, day).is_signed:
        logger.info("Write to %s on %s refused: %s", restaurant_id, day.isoformat(), SIGNED_PERIOD_REASON)
        raise PermissionDenied(SIGNED_PERIOD_REASON)


def clock_in(
    session: Session,
    membership_id: str,
    at: Optional[datetime] = None,
    reason: Optional[str] = None,
    tz: Optional[tzinfo] = None,
) -> TimeEntryRecord:
    """
    Open a new time entry for a member.

    Raises:
        NotFound: Unknown membership
        PermissionDenied: Membership is not active, or the day is signed
        AlreadyClockedIn: The member already has an open entry
    """
    membership = MembershipRepository.require(session, membership_id)
    if membership.status != "active":
        raise PermissionDenied("Membership is not active")
    if TimeEntryRepository.get_open_for_membership(session, membership_id) is not None:
        raise AlreadyClockedIn(f"ALREADY_CLOCKED_IN: member {membership_id} has an open time entry")

    started = as_utc(at) if at is not None else datetime.now(timezone.utc)
    _ensure_period_unsigned(session, membership.restaurant_id, started, restaurant_zone(tz))
    record = TimeEntryRecord(
        membership_id=membership_id,
        clock_in=started,
        reason=reason,
    )
    TimeEntryRepository.create(session, record, commit=False)
    audit.record_audit(
        session,
        actor_id=membership_id,
        entity_type="time_entry",
        entity_id=record.id,
        action=audit.TIME_ENTRY_CREATE,
        restaurant_id=membership.restaurant_id,
        after={"clock_in": as_utc(record.clock_in).isoformat()},
    )
    session.commit()
    logger.info("Member %s clocked in at %s", membership_id, record.clock_in)
    return record


def clock_out(
    session: Session,
    membership_id: str,
    at: Optional[datetime] = None,
    adjustment_minutes: Optional[int] = None,
    reason: Optional[str] = None,
    tz: Optional[tzinfo] = None,
) -> TimeEntryRecord:
    """
    Close the member's open time entry.

    Raises:
        NotFound: No open entry (NO_OPEN_TIME_ENTRY)
        PermissionDenied: The entry's day is signed
        InvalidRange: Clock-out is not after clock-in
        OverlapError: The closed entry would overlap another closed entry
    """
    record = TimeEntryRepository.get_open_for_membership(session, membership_id)
    if record is None:
        raise NotFound(f"NO_OPEN_TIME_ENTRY for member {membership_id}")
    membership = MembershipRepository.require(session, membership_id)

    entry = TimeEntryRepository.to_value(record)
    _ensure_period_unsigned(session, membership.restaurant_id, entry.clock_in, restaurant_zone(tz))
    changes: Dict[str, Any] = {"clock_out": as_utc(at) if at is not None else datetime.now(timezone.utc)}
    if adjustment_minutes is not None:
        changes["adjustment_minutes"] = adjustment_minutes
    if reason is not None:
        changes["reason"] = reason
    updated = apply_time_entry_edit(entry, **changes)
    _ensure_no_entry_overlap(session, updated)

    TimeEntryRepository.apply_value(record, updated)
    audit.record_audit(
        session,
        actor_id=membership_id,
        entity_type="time_entry",
        entity_id=record.id,
        action=audit.TIME_ENTRY_CLOCK_OUT,
        restaurant_id=membership.restaurant_id,
        before=_snapshot(entry),
        after=_snapshot(updated),
    )
    session.commit()
    return record


def edit_time_entry(
    session: Session,
    entry_id: str,
    acting_identity: str,
    acting_role: "Role | str",
    tz: Optional[tzinfo] = None,
    max_adjustment_minutes: int = MAX_ADJUSTMENT_MINUTES,
    **changes: Any,
) -> TimeEntryRecord:
    """
    Edit clock_in, clock_out, reason or adjustment_minutes of an entry.

    The period containing the entry, and the period it would move to, must
    both be unsigned.

    Args:
        session: Database session
        entry_id: Time entry to edit
        acting_identity: Membership id of the editor
        acting_role: Editor's role
        tz: Restaurant zone used to find the entry's calendar day (configured zone if omitted)
        **changes: Fields to change

    Raises:
        NotFound: Unknown entry
        PermissionDenied: The mutability guard refused the edit
        InvalidRange: Resulting clock-out is not after clock-in
        OverlapError: Resulting entry overlaps another closed entry
    """
    record = TimeEntryRepository.require(session, entry_id)
    entry = TimeEntryRepository.to_value(record)
    membership = MembershipRepository.require(session, entry.membership_id)
    tz = restaurant_zone(tz)

    state = ReportDailyRepository.get_signature_state(
        session, membership.restaurant_id, entry_period_date(entry.clock_in, tz)
    )
    decision = can_edit_time_entry(entry, state, acting_identity, acting_role)
    if not decision:
        logger.info("Edit of time entry %s refused: %s", entry_id, decision.reason)
        raise PermissionDenied(decision.reason)

    if changes.get("clock_in") is not None:
        changes["clock_in"] = as_utc(changes["clock_in"])
    if changes.get("clock_out") is not None:
        changes["clock_out"] = as_utc(changes["clock_out"])
    updated = apply_time_entry_edit(entry, max_adjustment_minutes=max_adjustment_minutes, **changes)

    target_day = entry_period_date(updated.clock_in, tz)
    if target_day != entry_period_date(entry.clock_in, tz):
        target_state = ReportDailyRepository.get_signature_state(session, membership.restaurant_id, target_day)
        if target_state.is_signed:
            raise PermissionDenied(SIGNED_PERIOD_REASON)

    _ensure_no_entry_overlap(session, updated)

    TimeEntryRepository.apply_value(record, updated)
    after = _snapshot(updated)
    after["edited_by"] = Role.parse(acting_role).value
    audit.record_audit(
        session,
        actor_id=acting_identity,
        entity_type="time_entry",
        entity_id=record.id,
        action=audit.TIME_ENTRY_EDIT,
        restaurant_id=membership.restaurant_id,
        before=_snapshot(entry),
        after=after,
    )
    session.commit()
    return record


def close_hanging_entry(
    session: Session,
    entry_id: str,
    closed_by: str,
    close_time: Optional[datetime] = None,
    validate_close_time: bool = False,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> TimeEntryRecord:
    """
    Manager close of an entry the employee never clocked out of.

    The member's committed shifts are offered as candidates so the entry
    closes at the end of the shift it started in.

    Args:
        session: Database session
        entry_id: Open time entry
        closed_by: Membership id of the closing manager
        close_time: Explicit clock-out, overriding shift lookup
        validate_close_time: Also reject a close time not after clock-in
        now: Fallback instant when no shift matches
        tz: Restaurant zone for the entry's calendar day (configured zone if omitted)

    Raises:
        NotFound: Unknown entry
        PermissionDenied: ``closed_by`` is not a manager of the entry's restaurant,
            or the entry's day is signed
        AlreadyClosed: Entry already has a clock-out
    """
    record = TimeEntryRepository.require(session, entry_id)
    entry = TimeEntryRepository.to_value(record)
    membership = MembershipRepository.require(session, entry.membership_id)
    _ensure_period_unsigned(session, membership.restaurant_id, entry.clock_in, restaurant_zone(tz))
    require_manager(session, closed_by, membership.restaurant_id, "close time entries")

    candidates = ShiftAssignmentRepository.get_committed_intervals(session, entry.membership_id)
    updated = close_hanging_time_entry(
        entry,
        candidates,
        explicit_close_time=as_utc(close_time) if close_time is not None else None,
        now=now,
    )
    if validate_close_time:
        ensure_valid_range(updated.clock_in, updated.clock_out)
    _ensure_no_entry_overlap(session, updated)

    TimeEntryRepository.apply_value(record, updated)
    audit.record_audit(
        session,
        actor_id=closed_by,
        entity_type="time_entry",
        entity_id=record.id,
        action=audit.TIME_ENTRY_CLOSE_HANGING,
        restaurant_id=membership.restaurant_id,
        before=_snapshot(entry),
        after=_snapshot(updated),
    )
    session.commit()
    logger.info("Time entry %s closed by manager %s at %s", entry_id, closed_by, updated.clock_out)
    return record


def close_entry_by_manager(
    session: Session,
    entry_id: str,
    closed_by: str,
    clock_out_at: datetime,
    reason: str,
    tz: Optional[tzinfo] = None,
) -> TimeEntryRecord:
    """
    Force-close an open entry at a given time, approving it.

    Raises:
        NotFound: Unknown entry
        PermissionDenied: ``closed_by`` is not a manager of the entry's restaurant,
            or the entry's day is signed
        AlreadyClosed: Entry already has a clock-out
        InvalidRange: ``clock_out_at`` is not after clock-in
    """
    if not reason:
        raise ValueError("A reason is required to close a time entry")
    record = TimeEntryRepository.require(session, entry_id)
    entry = TimeEntryRepository.to_value(record)
    membership = MembershipRepository.require(session, entry.membership_id)
    _ensure_period_unsigned(session, membership.restaurant_id, entry.clock_in, restaurant_zone(tz))
    require_manager(session, closed_by, membership.restaurant_id, "close time entries")

    updated = close_by_manager(entry, as_utc(clock_out_at), reason)
    _ensure_no_entry_overlap(session, updated)

    TimeEntryRepository.apply_value(record, updated)
    after = _snapshot(updated)
    after["closed_by"] = closed_by
    audit.record_audit(
        session,
        actor_id=closed_by,
        entity_type="time_entry",
        entity_id=record.id,
        action=audit.TIME_ENTRY_CLOSE_BY_MANAGER,
        restaurant_id=membership.restaurant_id,
        before=_snapshot(entry),
        after=after,
    )
    session.commit()
    return record

