"""Clock-in/clock-out records and the operations that close or edit them."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional, Tuple

from .errors import AlreadyClosed, InvalidRange
from .intervals import TimeInterval, as_utc, calculate_actual_hours

CLOSED_BY_MANAGER_NOTE = "Closed by manager"
MAX_ADJUSTMENT_MINUTES = 480

_UNSET = object()


@dataclass(frozen=True)
class TimeEntry:
    """A recorded clock-in with optional clock-out, owned by one membership."""

    id: Optional[str]
    membership_id: str
    clock_in: datetime
    clock_out: Optional[datetime] = None
    adjustment_minutes: int = 0
    reason: Optional[str] = None
    status: str = "pending"

    @property
    def is_open(self) -> bool:
        return self.clock_out is None


def entry_period_date(clock_in: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of ``clock_in`` in the restaurant's zone (UTC if none given)."""
    local = as_utc(clock_in).astimezone(tz or timezone.utc)
    return local.date()


def period_bounds(day: date, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """UTC ``[start, end)`` of a calendar day in the restaurant's zone."""
    zone = tz or timezone.utc
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def worked_hours(entry: TimeEntry) -> Optional[float]:
    if entry.clock_out is None:
        return None
    return calculate_actual_hours(entry.clock_in, entry.clock_out, entry.adjustment_minutes)


def as_interval(entry: TimeEntry) -> TimeInterval:
    if entry.clock_out is None:
        raise InvalidRange(f"Time entry {entry.id} has no clock-out")
    return TimeInterval(
        id=entry.id,
        owner_id=entry.membership_id,
        start=entry.clock_in,
        end=entry.clock_out,
        label="time_entry",
    )


def _append_note(reason: Optional[str], note: str) -> str:
    if reason:
        return f"{reason} ({note})"
    return note


def close_hanging_time_entry(
    entry: TimeEntry,
    candidate_intervals: Iterable[TimeInterval],
    explicit_close_time: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> TimeEntry:
    """
    Set the clock-out of an entry the employee never closed.

    The close time is, in order: ``explicit_close_time``; the end of the first
    assigned shift containing ``clock_in``; the current instant. It is not
    checked against ``clock_in``.

    Raises:
        AlreadyClosed: If the entry already has a clock-out
    """
    if entry.clock_out is not None:
        raise AlreadyClosed(f"Time entry {entry.id} already has clockOut")

    close_time = explicit_close_time
    if close_time is None:
        for interval in candidate_intervals:
            if interval.contains(entry.clock_in):
                close_time = interval.end
                break
    if close_time is None:
        close_time = now if now is not None else datetime.now(timezone.utc)

    return replace(
        entry,
        clock_out=close_time,
        reason=_append_note(entry.reason, CLOSED_BY_MANAGER_NOTE),
    )


def close_by_manager(entry: TimeEntry, clock_out: datetime, reason: str) -> TimeEntry:
    """
    Force-close an open entry at a given time and approve it.

    Raises:
        AlreadyClosed: If the entry already has a clock-out
        InvalidRange: If ``clock_out`` is not after ``clock_in``
    """
    if entry.clock_out is not None:
        raise AlreadyClosed(f"Time entry {entry.id} already has clockOut time")
    if clock_out <= entry.clock_in:
        raise InvalidRange("clockOut must be after clockIn")
    return replace(entry, clock_out=clock_out, status="approved", reason=reason)


def apply_time_entry_edit(
    entry: TimeEntry,
    clock_in=_UNSET,
    clock_out=_UNSET,
    reason=_UNSET,
    adjustment_minutes=_UNSET,
    max_adjustment_minutes: int = MAX_ADJUSTMENT_MINUTES,
) -> TimeEntry:
    """
    Patch the given fields of an entry. Omitted fields keep their value;
    ``clock_out=None`` reopens the entry.

    Raises:
        InvalidRange: If the resulting clock-out is not after clock-in, or the
            adjustment is outside ``±max_adjustment_minutes``
    """
    changes = {}
    if clock_in is not _UNSET:
        changes["clock_in"] = clock_in
    if clock_out is not _UNSET:
        changes["clock_out"] = clock_out
    if reason is not _UNSET:
        changes["reason"] = reason
    if adjustment_minutes is not _UNSET:
        if abs(int(adjustment_minutes)) > max_adjustment_minutes:
            raise InvalidRange(
                f"Adjustment must be within ±{max_adjustment_minutes} minutes, got {adjustment_minutes}"
            )
        changes["adjustment_minutes"] = int(adjustment_minutes)

    updated = replace(entry, **changes)
    if updated.clock_out is not None and updated.clock_out <= updated.clock_in:
        raise InvalidRange("clockOut must be after clockIn")
    return updated
