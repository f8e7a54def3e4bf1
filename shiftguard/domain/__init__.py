"""Domain models and data access layer."""

from .models import AuditLog, Base, Membership, ReportDaily, Shift, ShiftAssignment, SignatureLogRecord, TimeEntryRecord
from .repositories import (
    AuditLogRepository,
    MembershipRepository,
    ReportDailyRepository,
    ShiftAssignmentRepository,
    ShiftRepository,
    TimeEntryRepository,
)

__all__ = [
    "AuditLog",
    "Base",
    "Membership",
    "ReportDaily",
    "Shift",
    "ShiftAssignment",
    "SignatureLogRecord",
    "TimeEntryRecord",
    "AuditLogRepository",
    "MembershipRepository",
    "ReportDailyRepository",
    "ShiftAssignmentRepository",
    "ShiftRepository",
    "TimeEntryRepository",
]
