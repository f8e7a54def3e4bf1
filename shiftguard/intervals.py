"""Half-open interval overlap checks for shifts and time entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional, Sequence

from .errors import InvalidRange

MAX_SHIFT_HOURS = 24


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TimeInterval:
    """A ``[start, end)`` range owned by one membership."""

    id: Optional[str]
    owner_id: Optional[str]
    start: datetime
    end: datetime
    label: Optional[str] = field(default=None, compare=False)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


@dataclass(frozen=True)
class OverlapConflict:
    conflicting_id: Optional[str]
    overlap_start: datetime
    overlap_end: datetime
    overlap_minutes: float


@dataclass(frozen=True)
class OverlapResult:
    has_overlap: bool
    conflicts: List[OverlapConflict]

    def __bool__(self) -> bool:
        return self.has_overlap


def ensure_valid_range(start: datetime, end: datetime) -> None:
    if start >= end:
        raise InvalidRange(f"Start {start.isoformat()} must be before end {end.isoformat()}")


def validate_shift_times(start: datetime, end: datetime, max_hours: float = MAX_SHIFT_HOURS) -> None:
    """
    Check a shift's ordering and maximum duration.

    Raises:
        InvalidRange: If start is not before end or the shift is longer than ``max_hours``
    """
    ensure_valid_range(start, end)
    if end - start > timedelta(hours=max_hours):
        raise InvalidRange(f"Shift duration cannot exceed {max_hours:g} hours")


def overlap_minutes(start: datetime, end: datetime) -> float:
    """Exact minutes between two instants. Never rounded."""
    return (end - start).total_seconds() / 60.0


def intervals_overlap(a: TimeInterval, b: TimeInterval) -> bool:
    # Touching endpoints are not a conflict.
    return a.start < b.end and b.start < a.end


def validate_no_overlap(candidate: TimeInterval, existing: Iterable[TimeInterval]) -> OverlapResult:
    """
    Compare a candidate interval against the owner's other committed intervals.

    ``existing`` must already be filtered to the candidate's owner. An entry
    with the same id as the candidate is its own stored version and is skipped.
    Conflicts are reported in the order ``existing`` was supplied.

    Args:
        candidate: Interval being created or edited (``start < end``)
        existing: Other committed intervals of the same owner

    Returns:
        OverlapResult with one OverlapConflict per conflicting interval
    """
    conflicts: List[OverlapConflict] = []

    for other in existing:
        if candidate.id is not None and other.id == candidate.id:
            continue
        if not intervals_overlap(candidate, other):
            continue

        window_start = max(candidate.start, other.start)
        window_end = min(candidate.end, other.end)
        conflicts.append(
            OverlapConflict(
                conflicting_id=other.id,
                overlap_start=window_start,
                overlap_end=window_end,
                overlap_minutes=overlap_minutes(window_start, window_end),
            )
        )

    return OverlapResult(has_overlap=bool(conflicts), conflicts=conflicts)


def sort_by_start(intervals: Iterable[TimeInterval]) -> List[TimeInterval]:
    return sorted(intervals, key=lambda interval: (interval.start, interval.end))


def calculate_actual_hours(start: datetime, end: datetime, adjustment_minutes: int = 0) -> float:
    """
    Hours worked between two instants plus a manual adjustment.

    Instants are compared in UTC so DST transitions in the restaurant's zone
    lengthen or shorten the result as they did on the wall clock.

    Returns:
        Hours rounded to 2 decimal places
    """
    worked = (as_utc(end) - as_utc(start)).total_seconds() / 3600.0
    return round(worked + adjustment_minutes / 60.0, 2)


def format_overlap_conflict(conflict: OverlapConflict, tz: Optional[tzinfo] = None) -> str:
    def _hm(value: datetime) -> str:
        if tz is not None:
            value = as_utc(value).astimezone(tz)
        return value.strftime("%H:%M")

    return (
        f"Conflict with shift {conflict.conflicting_id or 'unknown'}: "
        f"{_hm(conflict.overlap_start)} - {_hm(conflict.overlap_end)} "
        f"({conflict.overlap_minutes:g} minutes)"
    )


def summarize_conflicts(result: OverlapResult, tz: Optional[tzinfo] = None) -> Sequence[str]:
    return [format_overlap_conflict(conflict, tz) for conflict in result.conflicts]
