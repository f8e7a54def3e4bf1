"""Services that load state, call the consistency core and commit the result."""

from .audit import get_audit_logs, get_entity_history, record_audit
from .reports import (
    generate_daily_report,
    generate_monthly_summary,
    generate_period_summary,
    generate_weekly_summary,
    get_signature_log,
    sign_daily_report,
    unsign_daily_report,
)
from .shifts import ShiftOverlapError, assign_shift, check_shift_overlap, create_shift
from .time_tracking import close_entry_by_manager, close_hanging_entry, clock_in, clock_out, edit_time_entry

__all__ = [
    "get_audit_logs",
    "get_entity_history",
    "record_audit",
    "generate_daily_report",
    "generate_monthly_summary",
    "generate_period_summary",
    "generate_weekly_summary",
    "get_signature_log",
    "sign_daily_report",
    "unsign_daily_report",
    "ShiftOverlapError",
    "assign_shift",
    "check_shift_overlap",
    "create_shift",
    "close_entry_by_manager",
    "close_hanging_entry",
    "clock_in",
    "clock_out",
    "edit_time_entry",
]
