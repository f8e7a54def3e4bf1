"""Daily report generation and signing."""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from shiftguard.domain.models import Membership, ReportDaily, TimeEntryRecord
from shiftguard.domain.repositories import MembershipRepository, ReportDailyRepository, TimeEntryRepository
from shiftguard.config import restaurant_zone
from shiftguard.errors import AlreadyExists, InvalidRange
from shiftguard.intervals import as_utc
from shiftguard.permissions import Role
from shiftguard.rates import MANAGER_RATE_ROLES, effective_hourly_rate
from shiftguard.signatures import SignatureAction, SignatureLog, apply_signature_transition
from shiftguard.time_entries import period_bounds

from . import audit
from .access import require_manager

logger = logging.getLogger(__name__)

TOTAL_COLUMNS = [
    "membership_id",
    "user_id",
    "name",
    "role",
    "total_hours",
    "hourly_rate",
    "total_amount",
    "entries",
]


def _entry_rows(entries: List[TimeEntryRecord], memberships: Dict[str, Membership]) -> pd.DataFrame:
    rows = []
    for entry in entries:
        member = memberships[entry.membership_id]
        role = Role.parse(member.role)
        rate = effective_hourly_rate(
            role,
            member.hourly_rate_default,
            member.hourly_rate_manager,
            working_as_manager=role in MANAGER_RATE_ROLES,
        )
        rows.append(
            {
                "membership_id": member.id,
                "user_id": member.user_id,
                "name": member.display_name or "Unknown",
                "role": role.value,
                "clock_in": as_utc(entry.clock_in),
                "clock_out": as_utc(entry.clock_out),
                "adjustment_minutes": entry.adjustment_minutes or 0,
                "hourly_rate": float(rate),
            }
        )
    return pd.DataFrame(rows)


def build_daily_totals(entries: List[TimeEntryRecord], memberships: Dict[str, Membership]) -> pd.DataFrame:
    """
    Hours and pay per member for a set of closed time entries.

    Each entry counts whole worked minutes plus its adjustment, converted to
    hours at 2 decimals before being priced and summed.

    Returns:
        DataFrame with one row per membership (TOTAL_COLUMNS)
    """
    if not entries:
        return pd.DataFrame(columns=TOTAL_COLUMNS)

    df = _entry_rows(entries, memberships)
    worked = (df["clock_out"] - df["clock_in"]).dt.total_seconds() // 60
    df["hours"] = ((worked + df["adjustment_minutes"]) / 60).round(2)
    df["amount"] = (df["hours"] * df["hourly_rate"]).round(2)

    totals = (
        df.groupby(["membership_id", "user_id", "name", "role", "hourly_rate"], sort=False)
        .agg(total_hours=("hours", "sum"), total_amount=("amount", "sum"), entries=("hours", "size"))
        .reset_index()
    )
    totals["total_hours"] = totals["total_hours"].round(2)
    totals["total_amount"] = totals["total_amount"].round(2)
    return totals[TOTAL_COLUMNS]


def _totals_payload(totals: pd.DataFrame) -> Dict[str, Any]:
    employees = [
        {
            "membership_id": row.membership_id,
            "user_id": row.user_id,
            "name": row.name,
            "role": row.role,
            "total_hours": float(row.total_hours),
            "hourly_rate": float(row.hourly_rate),
            "total_amount": float(row.total_amount),
            "entries": int(row.entries),
        }
        for row in totals.itertuples(index=False)
    ]
    return {
        "employees": employees,
        "summary": {
            "total_employees": len(employees),
            "total_hours": round(float(totals["total_hours"].sum()), 2) if employees else 0.0,
            "total_amount": round(float(totals["total_amount"].sum()), 2) if employees else 0.0,
        },
    }


def totals_to_json(totals: pd.DataFrame, restaurant_id: str, day: date) -> Dict[str, Any]:
    return {"date": day.isoformat(), "restaurant_id": restaurant_id, **_totals_payload(totals)}


def _period_totals(
    session: Session,
    restaurant_id: str,
    first_day: date,
    last_day: date,
    tz: tzinfo,
) -> pd.DataFrame:
    """Totals for closed entries clocked in from ``first_day`` through ``last_day``."""
    window_start, _ = period_bounds(first_day, tz)
    _, window_end = period_bounds(last_day, tz)
    entries = TimeEntryRepository.get_closed_for_restaurant(session, restaurant_id, window_start, window_end)
    memberships = {
        m.id: m for m in (MembershipRepository.get_by_id(session, e.membership_id) for e in entries) if m
    }
    return build_daily_totals(entries, memberships)


def generate_period_summary(
    session: Session,
    restaurant_id: str,
    first_day: date,
    last_day: date,
    actor_id: str,
    tz: Optional[tzinfo] = None,
) -> Dict[str, Any]:
    """
    Per-member hours and pay over an inclusive range of calendar days.

    Summaries are computed on demand and not stored.

    Raises:
        InvalidRange: ``last_day`` is before ``first_day``
        PermissionDenied: Actor does not manage the restaurant
    """
    if last_day < first_day:
        raise InvalidRange(f"Period end {last_day.isoformat()} is before start {first_day.isoformat()}")
    require_manager(session, actor_id, restaurant_id, "view summaries")

    totals = _period_totals(session, restaurant_id, first_day, last_day, restaurant_zone(tz))
    summary = {
        "restaurant_id": restaurant_id,
        "period_start": first_day.isoformat(),
        "period_end": last_day.isoformat(),
        **_totals_payload(totals),
    }
    logger.info(
        "Summary for %s %s..%s: %d employee(s), %.2fh",
        restaurant_id,
        first_day.isoformat(),
        last_day.isoformat(),
        summary["summary"]["total_employees"],
        summary["summary"]["total_hours"],
    )
    return summary


def generate_weekly_summary(
    session: Session,
    restaurant_id: str,
    week_start: date,
    actor_id: str,
    tz: Optional[tzinfo] = None,
) -> Dict[str, Any]:
    """Monday through Sunday summary. ``week_start`` must be a Monday."""
    if week_start.weekday() != 0:
        raise InvalidRange(f"Week start {week_start.isoformat()} must be a Monday")
    summary = generate_period_summary(
        session, restaurant_id, week_start, week_start + timedelta(days=6), actor_id, tz=tz
    )
    summary["week_start"] = week_start.isoformat()
    return summary


def generate_monthly_summary(
    session: Session,
    restaurant_id: str,
    year: int,
    month: int,
    actor_id: str,
    tz: Optional[tzinfo] = None,
) -> Dict[str, Any]:
    first_day = date(year, month, 1)
    last_day = date(year, month, calendar.monthrange(year, month)[1])
    summary = generate_period_summary(session, restaurant_id, first_day, last_day, actor_id, tz=tz)
    summary["month"] = f"{year:04d}-{month:02d}"
    return summary


def generate_daily_report(
    session: Session,
    restaurant_id: str,
    day: date,
    actor_id: str,
    tz: Optional[tzinfo] = None,
) -> ReportDaily:
    """
    Compute and store the totals for one restaurant day. The new report is unsigned.

    Args:
        session: Database session
        restaurant_id: Restaurant to report on
        day: Calendar day in the restaurant's zone
        actor_id: Membership id of the requesting manager
        tz: Restaurant zone (configured zone if omitted)

    Raises:
        PermissionDenied: Actor does not manage the restaurant
        AlreadyExists: A report for that day already exists
    """
    require_manager(session, actor_id, restaurant_id, "generate reports")
    if ReportDailyRepository.get_for_day(session, restaurant_id, day) is not None:
        raise AlreadyExists(f"Report for {restaurant_id} on {day.isoformat()} already exists")

    totals = _period_totals(session, restaurant_id, day, day, restaurant_zone(tz))
    totals_json = totals_to_json(totals, restaurant_id, day)

    report = ReportDailyRepository.create(
        session,
        ReportDaily(restaurant_id=restaurant_id, date=day, totals_json=totals_json),
        commit=False,
    )
    audit.record_audit(
        session,
        actor_id=actor_id,
        entity_type="report_daily",
        entity_id=report.id,
        action=audit.REPORT_DAILY_GENERATE,
        restaurant_id=restaurant_id,
        after=totals_json["summary"],
    )
    session.commit()
    logger.info(
        "Daily report %s for %s on %s: %d employee(s), %.2fh",
        report.id,
        restaurant_id,
        day.isoformat(),
        totals_json["summary"]["total_employees"],
        totals_json["summary"]["total_hours"],
    )
    return report


def _transition(
    session: Session,
    report_id: str,
    action: SignatureAction,
    actor_id: str,
    reason: Optional[str],
    now: Optional[datetime],
) -> ReportDaily:
    report = ReportDailyRepository.require(session, report_id)
    verb = "sign reports" if action is SignatureAction.SIGNED else "unsign reports"
    require_manager(session, actor_id, report.restaurant_id, verb)

    state = ReportDailyRepository.state_of(report)
    new_state, entry = apply_signature_transition(state, action, actor_id, reason=reason, now=now)
    ReportDailyRepository.append_signature_entry(session, report, new_state, entry)

    before = {
        "signed_by": state.signed_by,
        "signed_at": state.signed_at.isoformat() if state.signed_at else None,
    }
    after = {
        "signed_by": new_state.signed_by,
        "signed_at": new_state.signed_at.isoformat() if new_state.signed_at else None,
    }
    if action is SignatureAction.UNSIGNED:
        after["reason"] = entry.reason
    audit.record_audit(
        session,
        actor_id=actor_id,
        entity_type="report_daily",
        entity_id=report.id,
        action=audit.REPORT_DAILY_SIGN if action is SignatureAction.SIGNED else audit.REPORT_DAILY_UNSIGN,
        restaurant_id=report.restaurant_id,
        before=before,
        after=after,
    )
    session.commit()
    logger.info("Report %s %s by %s", report.id, action.value, actor_id)
    return report


def sign_daily_report(
    session: Session,
    report_id: str,
    actor_id: str,
    now: Optional[datetime] = None,
) -> ReportDaily:
    """
    Sign a daily report, freezing every time entry of that day.

    Raises:
        NotFound: Unknown report
        PermissionDenied: Actor does not manage the restaurant
        AlreadySigned: Report is already signed
    """
    return _transition(session, report_id, SignatureAction.SIGNED, actor_id, None, now)


def unsign_daily_report(
    session: Session,
    report_id: str,
    actor_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReportDaily:
    """
    Revoke a report's signature. The log entry keeps the revoked signer and time.

    Raises:
        NotFound: Unknown report
        PermissionDenied: Actor does not manage the restaurant
        NotSigned: Report is not signed
    """
    return _transition(session, report_id, SignatureAction.UNSIGNED, actor_id, reason, now)


def get_signature_log(session: Session, report_id: str) -> SignatureLog:
    report = ReportDailyRepository.require(session, report_id)
    return ReportDailyRepository.get_signature_log(session, report)
