"""CSV import utilities to load data into database."""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pandas as pd
from sqlalchemy.orm import Session

from shiftguard.domain.models import Membership, Shift, ShiftAssignment, TimeEntryRecord
from shiftguard.intervals import validate_shift_times

logger = logging.getLogger(__name__)


def _read(csv_path: str | Path) -> pd.DataFrame:
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()
    return df


def _optional(value) -> Optional[str]:
    value = str(value).strip()
    return value or None


def _rate(value) -> Optional[Decimal]:
    value = _optional(value)
    return Decimal(value) if value else None


def _utc(value: str) -> pd.Timestamp:
    """Parse an ISO timestamp; values without an offset are taken as UTC."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def import_memberships_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import memberships from CSV into database.

    Expected columns: id, user_id, restaurant_id, role, and optionally
    display_name, status, hourly_rate_default, hourly_rate_manager.

    Returns:
        Number of memberships imported
    """
    df = _read(csv_path)
    if "role" in df.columns:
        df["role"] = df["role"].str.strip().str.lower()

    memberships = []
    for _, row in df.iterrows():
        memberships.append(
            Membership(
                id=str(row["id"]).strip(),
                user_id=str(row["user_id"]).strip(),
                restaurant_id=str(row["restaurant_id"]).strip(),
                role=row.get("role") or "employee",
                status=_optional(row.get("status", "")) or "active",
                display_name=_optional(row.get("display_name", "")),
                hourly_rate_default=_rate(row.get("hourly_rate_default", "")),
                hourly_rate_manager=_rate(row.get("hourly_rate_manager", "")),
            )
        )

    # Bulk insert
    session.add_all(memberships)
    session.commit()

    logger.info("Imported %d memberships from %s", len(memberships), csv_path)
    return len(memberships)


def import_shifts_csv(session: Session, csv_path: str | Path, max_hours: float = 24.0) -> int:
    """
    Import shifts from CSV into database.

    Expected columns: id, restaurant_id, start, end, and optionally
    schedule_name, role, membership_id, status. A non-empty membership_id
    creates an assignment with the given status (default ``assigned``).
    Rows are inserted as given; overlap checks apply to assignments made
    through the services.

    Returns:
        Number of shifts imported
    """
    df = _read(csv_path)

    shifts = []
    assignments = []
    for _, row in df.iterrows():
        start = _utc(row["start"]).to_pydatetime()
        end = _utc(row["end"]).to_pydatetime()
        validate_shift_times(start, end, max_hours)
        shift = Shift(
            id=str(row["id"]).strip(),
            restaurant_id=str(row["restaurant_id"]).strip(),
            schedule_name=_optional(row.get("schedule_name", "")),
            role=_optional(row.get("role", "")),
            start=start,
            end=end,
        )
        shifts.append(shift)

        membership_id = _optional(row.get("membership_id", ""))
        if membership_id:
            assignments.append(
                ShiftAssignment(
                    shift_id=shift.id,
                    membership_id=membership_id,
                    status=_optional(row.get("status", "")) or "assigned",
                )
            )

    # Bulk insert
    session.add_all(shifts)
    session.add_all(assignments)
    session.commit()

    logger.info("Imported %d shifts (%d assignments) from %s", len(shifts), len(assignments), csv_path)
    return len(shifts)


def import_time_entries_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import time entries from CSV into database.

    Expected columns: id, membership_id, clock_in, and optionally clock_out,
    adjustment_minutes, reason, status.

    Returns:
        Number of time entries imported
    """
    df = _read(csv_path)

    entries = []
    for _, row in df.iterrows():
        clock_out = _optional(row.get("clock_out", ""))
        adjustment = _optional(row.get("adjustment_minutes", ""))
        entries.append(
            TimeEntryRecord(
                id=str(row["id"]).strip(),
                membership_id=str(row["membership_id"]).strip(),
                clock_in=_utc(row["clock_in"]).to_pydatetime(),
                clock_out=_utc(clock_out).to_pydatetime() if clock_out else None,
                adjustment_minutes=int(adjustment) if adjustment else 0,
                reason=_optional(row.get("reason", "")),
                status=_optional(row.get("status", "")) or "pending",
            )
        )

    # Bulk insert
    session.add_all(entries)
    session.commit()

    logger.info("Imported %d time entries from %s", len(entries), csv_path)
    return len(entries)
