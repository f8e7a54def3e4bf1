"""Repository classes for data access."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from shiftguard.errors import NotFound
from shiftguard.intervals import TimeInterval, as_utc
from shiftguard.signatures import SignatureAction, SignatureLog, SignatureLogEntry, SignatureState
from shiftguard.time_entries import TimeEntry

from .models import (
    AuditLog,
    Membership,
    ReportDaily,
    Shift,
    ShiftAssignment,
    SignatureLogRecord,
    TimeEntryRecord,
)

logger = logging.getLogger(__name__)

COMMITTED_ASSIGNMENT_STATUSES = ("assigned", "completed")


def _utc_or_none(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


def _save(session: Session, obj, commit: bool):
    session.add(obj)
    if commit:
        session.commit()
        session.refresh(obj)
    else:
        session.flush()
    return obj


class MembershipRepository:
    """Repository for membership data access."""

    @staticmethod
    def get_by_id(session: Session, membership_id: str) -> Optional[Membership]:
        return session.get(Membership, membership_id)

    @staticmethod
    def require(session: Session, membership_id: str) -> Membership:
        membership = session.get(Membership, membership_id)
        if membership is None:
            raise NotFound(f"Membership {membership_id} not found")
        return membership

    @staticmethod
    def create(session: Session, membership: Membership, commit: bool = True) -> Membership:
        return _save(session, membership, commit)


class ShiftRepository:
    """Repository for shift data access."""

    @staticmethod
    def get_by_id(session: Session, shift_id: str) -> Optional[Shift]:
        return session.get(Shift, shift_id)

    @staticmethod
    def require(session: Session, shift_id: str) -> Shift:
        shift = session.get(Shift, shift_id)
        if shift is None:
            raise NotFound(f"Shift {shift_id} not found")
        return shift

    @staticmethod
    def create(session: Session, shift: Shift, commit: bool = True) -> Shift:
        shift.start = as_utc(shift.start)
        shift.end = as_utc(shift.end)
        return _save(session, shift, commit)

    @staticmethod
    def to_interval(shift: Shift, owner_id: Optional[str] = None) -> TimeInterval:
        return TimeInterval(
            id=shift.id,
            owner_id=owner_id,
            start=as_utc(shift.start),
            end=as_utc(shift.end),
            label=shift.schedule_name,
        )


class ShiftAssignmentRepository:
    """Repository for shift assignments; the interval source for overlap checks."""

    @staticmethod
    def find(session: Session, shift_id: str, membership_id: str) -> Optional[ShiftAssignment]:
        return (
            session.query(ShiftAssignment)
            .filter(
                ShiftAssignment.shift_id == shift_id,
                ShiftAssignment.membership_id == membership_id,
            )
            .first()
        )

    @staticmethod
    def get_committed_intervals(session: Session, membership_id: str) -> List[TimeInterval]:
        """All shifts of a member with assignment status assigned/completed, ordered by start."""
        rows = (
            session.query(Shift)
            .join(ShiftAssignment, ShiftAssignment.shift_id == Shift.id)
            .filter(
                ShiftAssignment.membership_id == membership_id,
                ShiftAssignment.status.in_(COMMITTED_ASSIGNMENT_STATUSES),
            )
            .order_by(Shift.start)
            .all()
        )
        return [ShiftRepository.to_interval(shift, owner_id=membership_id) for shift in rows]

    @staticmethod
    def create(session: Session, assignment: ShiftAssignment, commit: bool = True) -> ShiftAssignment:
        return _save(session, assignment, commit)


class TimeEntryRepository:
    """Repository for time entry data access."""

    @staticmethod
    def get_by_id(session: Session, entry_id: str) -> Optional[TimeEntryRecord]:
        return session.get(TimeEntryRecord, entry_id)

    @staticmethod
    def require(session: Session, entry_id: str) -> TimeEntryRecord:
        record = session.get(TimeEntryRecord, entry_id)
        if record is None:
            raise NotFound(f"TimeEntry {entry_id} not found")
        return record

    @staticmethod
    def get_open_for_membership(session: Session, membership_id: str) -> Optional[TimeEntryRecord]:
        return (
            session.query(TimeEntryRecord)
            .filter(
                TimeEntryRecord.membership_id == membership_id,
                TimeEntryRecord.clock_out.is_(None),
            )
            .order_by(TimeEntryRecord.clock_in.desc())
            .first()
        )

    @staticmethod
    def get_closed_intervals(session: Session, membership_id: str) -> List[TimeInterval]:
        rows = (
            session.query(TimeEntryRecord)
            .filter(
                TimeEntryRecord.membership_id == membership_id,
                TimeEntryRecord.clock_out.isnot(None),
            )
            .order_by(TimeEntryRecord.clock_in)
            .all()
        )
        return [
            TimeInterval(
                id=row.id,
                owner_id=membership_id,
                start=as_utc(row.clock_in),
                end=as_utc(row.clock_out),
                label="time_entry",
            )
            for row in rows
        ]

    @staticmethod
    def get_closed_for_restaurant(
        session: Session,
        restaurant_id: str,
        window_start: datetime,
        window_end: datetime,
    ) -> List[TimeEntryRecord]:
        """Closed entries whose clock-in falls in ``[window_start, window_end)``."""
        return (
            session.query(TimeEntryRecord)
            .join(Membership, Membership.id == TimeEntryRecord.membership_id)
            .filter(
                Membership.restaurant_id == restaurant_id,
                TimeEntryRecord.clock_in >= as_utc(window_start),
                TimeEntryRecord.clock_in < as_utc(window_end),
                TimeEntryRecord.clock_out.isnot(None),
            )
            .order_by(TimeEntryRecord.clock_in)
            .all()
        )

    @staticmethod
    def to_value(record: TimeEntryRecord) -> TimeEntry:
        return TimeEntry(
            id=record.id,
            membership_id=record.membership_id,
            clock_in=as_utc(record.clock_in),
            clock_out=_utc_or_none(record.clock_out),
            adjustment_minutes=record.adjustment_minutes or 0,
            reason=record.reason,
            status=record.status,
        )

    @staticmethod
    def apply_value(record: TimeEntryRecord, entry: TimeEntry) -> TimeEntryRecord:
        record.clock_in = as_utc(entry.clock_in)
        record.clock_out = _utc_or_none(entry.clock_out)
        record.adjustment_minutes = entry.adjustment_minutes
        record.reason = entry.reason
        record.status = entry.status
        return record

    @staticmethod
    def create(session: Session, record: TimeEntryRecord, commit: bool = True) -> TimeEntryRecord:
        record.clock_in = as_utc(record.clock_in)
        record.clock_out = _utc_or_none(record.clock_out)
        return _save(session, record, commit)


class ReportDailyRepository:
    """Repository for daily reports; the signature source for the mutability guard."""

    @staticmethod
    def get_by_id(session: Session, report_id: str) -> Optional[ReportDaily]:
        return session.get(ReportDaily, report_id)

    @staticmethod
    def require(session: Session, report_id: str) -> ReportDaily:
        report = session.get(ReportDaily, report_id)
        if report is None:
            raise NotFound(f"Report {report_id} not found")
        return report

    @staticmethod
    def get_for_day(session: Session, restaurant_id: str, day: date) -> Optional[ReportDaily]:
        return (
            session.query(ReportDaily)
            .filter(ReportDaily.restaurant_id == restaurant_id, ReportDaily.date == day)
            .first()
        )

    @staticmethod
    def get_signature_state(session: Session, restaurant_id: str, day: date) -> SignatureState:
        """State of the period; unsigned when no report exists for that day."""
        report = ReportDailyRepository.get_for_day(session, restaurant_id, day)
        if report is None:
            return SignatureState.unsigned()
        return ReportDailyRepository.state_of(report)

    @staticmethod
    def state_of(report: ReportDaily) -> SignatureState:
        if report.signed_by and report.signed_at:
            return SignatureState.signed(report.signed_by, as_utc(report.signed_at))
        return SignatureState.unsigned()

    @staticmethod
    def get_signature_log(session: Session, report: ReportDaily) -> SignatureLog:
        rows = (
            session.query(SignatureLogRecord)
            .filter(SignatureLogRecord.report_id == report.id)
            .order_by(SignatureLogRecord.position)
            .all()
        )
        return SignatureLog(
            [
                SignatureLogEntry(
                    action=SignatureAction(row.action),
                    by_identity=row.by_identity,
                    at=as_utc(row.at),
                    reason=row.reason,
                    previous_signed_by=row.previous_signed_by,
                    previous_signed_at=_utc_or_none(row.previous_signed_at),
                )
                for row in rows
            ]
        )

    @staticmethod
    def append_signature_entry(
        session: Session,
        report: ReportDaily,
        state: SignatureState,
        entry: SignatureLogEntry,
    ) -> SignatureLogRecord:
        """
        Store a transition: update the report's state and insert the next log row.

        Does not commit; the caller commits both changes together.
        """
        last_position = (
            session.query(func.max(SignatureLogRecord.position))
            .filter(SignatureLogRecord.report_id == report.id)
            .scalar()
        )
        row = SignatureLogRecord(
            report_id=report.id,
            position=(last_position or 0) + 1,
            action=entry.action.value,
            by_identity=entry.by_identity,
            at=as_utc(entry.at),
            reason=entry.reason,
            previous_signed_by=entry.previous_signed_by,
            previous_signed_at=_utc_or_none(entry.previous_signed_at),
        )
        report.signed_by = state.signed_by
        report.signed_at = _utc_or_none(state.signed_at)
        session.add(row)
        session.flush()
        logger.debug("Report %s signature log position %d: %s by %s", report.id, row.position, row.action, row.by_identity)
        return row

    @staticmethod
    def create(session: Session, report: ReportDaily, commit: bool = True) -> ReportDaily:
        return _save(session, report, commit)


class AuditLogRepository:
    """Repository for audit log data access."""

    @staticmethod
    def create(session: Session, entry: AuditLog, commit: bool = True) -> AuditLog:
        return _save(session, entry, commit)

    @staticmethod
    def query(
        session: Session,
        restaurant_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Newest-first page of audit rows plus the total count for the filters."""
        q = session.query(AuditLog)
        if restaurant_id:
            q = q.filter(AuditLog.restaurant_id == restaurant_id)
        if entity_type:
            q = q.filter(AuditLog.entity_type == entity_type)
        if action:
            q = q.filter(AuditLog.action == action)
        total = q.count()
        logs = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()
        return {"logs": logs, "total": total, "limit": limit, "offset": offset}

    @staticmethod
    def get_by_entity(session: Session, entity_type: str, entity_id: str) -> List[AuditLog]:
        return (
            session.query(AuditLog)
            .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .all()
        )
