"""SQLAlchemy models for restaurant staff scheduling and time tracking."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Membership(Base):
    """A user's role and pay rates in one restaurant."""

    __tablename__ = "memberships"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    restaurant_id = Column(String(64), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="employee")  # employee, manager, owner, super_admin
    status = Column(String(20), nullable=False, default="active")
    display_name = Column(String(200), nullable=True)

    hourly_rate_default = Column(Numeric(10, 2), nullable=True)
    hourly_rate_manager = Column(Numeric(10, 2), nullable=True)

    # Relationships
    assignments = relationship("ShiftAssignment", back_populates="membership")
    time_entries = relationship("TimeEntryRecord", back_populates="membership")

    def __repr__(self) -> str:
        return f"<Membership(id={self.id}, user={self.user_id}, restaurant={self.restaurant_id}, role='{self.role}')>"


class Shift(Base):
    """A planned work period in a schedule."""

    __tablename__ = "shifts"

    id = Column(String(32), primary_key=True, default=_new_id)
    restaurant_id = Column(String(64), nullable=False, index=True)
    schedule_name = Column(String(100), nullable=True)
    start = Column(DateTime(timezone=True), nullable=False)  # stored as UTC
    end = Column(DateTime(timezone=True), nullable=False)  # stored as UTC
    role = Column(String(50), nullable=True)  # e.g. "manager", "kitchen"

    # Relationships
    assignments = relationship("ShiftAssignment", back_populates="shift")

    def __repr__(self) -> str:
        return f"<Shift(id={self.id}, start={self.start}, end={self.end}, role={self.role})>"


class ShiftAssignment(Base):
    """Assignment linking a membership to a shift."""

    __tablename__ = "shift_assignments"
    __table_args__ = (UniqueConstraint("shift_id", "membership_id", name="uq_assignment_shift_member"),)

    id = Column(String(32), primary_key=True, default=_new_id)
    shift_id = Column(String(32), ForeignKey("shifts.id"), nullable=False)
    membership_id = Column(String(32), ForeignKey("memberships.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="assigned")  # assigned, completed, cancelled

    # Relationships
    shift = relationship("Shift", back_populates="assignments")
    membership = relationship("Membership", back_populates="assignments")

    def __repr__(self) -> str:
        return f"<ShiftAssignment(id={self.id}, shift={self.shift_id}, member={self.membership_id}, status={self.status})>"


class TimeEntryRecord(Base):
    """A clock-in/clock-out pair as stored."""

    __tablename__ = "time_entries"

    id = Column(String(32), primary_key=True, default=_new_id)
    membership_id = Column(String(32), ForeignKey("memberships.id"), nullable=False, index=True)
    clock_in = Column(DateTime(timezone=True), nullable=False)
    clock_out = Column(DateTime(timezone=True), nullable=True)
    adjustment_minutes = Column(Integer, nullable=False, default=0)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved

    # Relationships
    membership = relationship("Membership", back_populates="time_entries")

    def __repr__(self) -> str:
        return f"<TimeEntryRecord(id={self.id}, member={self.membership_id}, in={self.clock_in}, out={self.clock_out})>"


class ReportDaily(Base):
    """Per-restaurant daily totals; its signature freezes that day's time entries."""

    __tablename__ = "reports_daily"
    __table_args__ = (UniqueConstraint("restaurant_id", "date", name="uq_report_restaurant_date"),)

    id = Column(String(32), primary_key=True, default=_new_id)
    restaurant_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    totals_json = Column(JSON, nullable=True)
    signed_by = Column(String(64), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Relationships
    signature_log = relationship(
        "SignatureLogRecord",
        back_populates="report",
        order_by="SignatureLogRecord.position",
    )

    def __repr__(self) -> str:
        return f"<ReportDaily(id={self.id}, restaurant={self.restaurant_id}, date={self.date}, signed_by={self.signed_by})>"


class SignatureLogRecord(Base):
    """One sign/unsign transition of a daily report. Rows are only ever inserted."""

    __tablename__ = "signature_log"
    __table_args__ = (UniqueConstraint("report_id", "position", name="uq_signature_log_position"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(String(32), ForeignKey("reports_daily.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    action = Column(String(10), nullable=False)  # signed, unsigned
    by_identity = Column(String(64), nullable=False)
    at = Column(DateTime(timezone=True), nullable=False)
    reason = Column(Text, nullable=True)
    previous_signed_by = Column(String(64), nullable=True)
    previous_signed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    report = relationship("ReportDaily", back_populates="signature_log")

    def __repr__(self) -> str:
        return f"<SignatureLogRecord(report={self.report_id}, pos={self.position}, action={self.action}, by={self.by_identity})>"


class AuditLog(Base):
    """Record of a state-changing operation, with before/after snapshots."""

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(String(64), nullable=False, index=True)
    restaurant_id = Column(String(64), nullable=True, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    action = Column(String(50), nullable=False, index=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, entity={self.entity_type}:{self.entity_id})>"
