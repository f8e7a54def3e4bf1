"""Tests for the shift, time tracking and report services."""

from datetime import date, timezone

import pytest

from shiftguard.domain.models import Membership, ShiftAssignment, TimeEntryRecord
from shiftguard.domain.repositories import ShiftAssignmentRepository, TimeEntryRepository
from shiftguard.errors import (
    AlreadyClockedIn,
    AlreadyClosed,
    AlreadyExists,
    AlreadySigned,
    InvalidRange,
    NotFound,
    NotSigned,
    OverlapError,
    PermissionDenied,
)
from shiftguard.intervals import as_utc
from shiftguard.permissions import SIGNED_PERIOD_REASON
from shiftguard.services import audit
from shiftguard.services.reports import (
    generate_daily_report,
    generate_monthly_summary,
    generate_weekly_summary,
    get_signature_log,
    sign_daily_report,
    unsign_daily_report,
)
from shiftguard.services.shifts import ShiftOverlapError, assign_shift, check_shift_overlap, create_shift
from shiftguard.services.time_tracking import (
    clock_in,
    clock_out,
    close_entry_by_manager,
    close_hanging_entry,
    edit_time_entry,
)

from conftest import utc

DAY = date(2025, 3, 3)


def _entry(session, membership_id, start, end=None, adjustment=0, reason=None):
    return TimeEntryRepository.create(
        session,
        TimeEntryRecord(
            membership_id=membership_id,
            clock_in=start,
            clock_out=end,
            adjustment_minutes=adjustment,
            reason=reason,
        ),
    )


# Shifts


def test_assign_shift_rejects_overlap(db_session, staff):
    lunch = create_shift(db_session, "r1", utc(3, 9), utc(3, 17), schedule_name="week 10")
    close = create_shift(db_session, "r1", utc(3, 16), utc(3, 18), schedule_name="week 10 bar")
    assign_shift(db_session, lunch.id, "m-ben", "m-manager")

    with pytest.raises(ShiftOverlapError) as exc_info:
        assign_shift(db_session, close.id, "m-ben", "m-manager")

    err = exc_info.value
    assert err.owner_id == "m-ben"
    assert err.result.conflicts[0].conflicting_id == lunch.id
    assert err.result.conflicts[0].overlap_minutes == 60
    assert "SHIFT_OVERLAP_FOR_MEMBER" in str(err)
    assert ShiftAssignmentRepository.find(db_session, close.id, "m-ben") is None


def test_assign_back_to_back_shift(db_session, staff):
    day = create_shift(db_session, "r1", utc(3, 9), utc(3, 17))
    evening = create_shift(db_session, "r1", utc(3, 17), utc(3, 20))
    assign_shift(db_session, day.id, "m-ben", "m-manager")

    assignment = assign_shift(db_session, evening.id, "m-ben", "m-manager")

    assert assignment.status == "assigned"
    assert len(ShiftAssignmentRepository.get_committed_intervals(db_session, "m-ben")) == 2


def test_assign_same_shift_twice_returns_existing(db_session, staff):
    shift = create_shift(db_session, "r1", utc(3, 9), utc(3, 17))
    first = assign_shift(db_session, shift.id, "m-ben", "m-manager")
    second = assign_shift(db_session, shift.id, "m-ben", "m-manager")

    assert first.id == second.id
    assert len(audit.get_entity_history(db_session, "shift", shift.id)) == 1


def test_overlap_is_per_member(db_session, staff):
    a = create_shift(db_session, "r1", utc(3, 9), utc(3, 17))
    b = create_shift(db_session, "r1", utc(3, 10), utc(3, 14))
    assign_shift(db_session, a.id, "m-ben", "m-manager")
    assign_shift(db_session, b.id, "m-cara", "m-manager")

    assert not check_shift_overlap(db_session, "m-cara", utc(3, 15), utc(3, 18)).has_overlap


def test_cancelled_assignments_are_ignored(db_session, staff):
    shift = create_shift(db_session, "r1", utc(3, 9), utc(3, 17))
    db_session.add(ShiftAssignment(shift_id=shift.id, membership_id="m-ben", status="cancelled"))
    db_session.commit()

    assert not check_shift_overlap(db_session, "m-ben", utc(3, 10), utc(3, 12)).has_overlap


def test_check_shift_overlap_excludes_edited_shift(db_session, staff):
    shift = create_shift(db_session, "r1", utc(3, 9), utc(3, 17))
    assign_shift(db_session, shift.id, "m-ben", "m-manager")

    assert not check_shift_overlap(db_session, "m-ben", utc(3, 8), utc(3, 18), shift_id=shift.id).has_overlap
    assert check_shift_overlap(db_session, "m-ben", utc(3, 8), utc(3, 18)).has_overlap


def test_shift_validation(db_session, staff):
    with pytest.raises(InvalidRange):
        create_shift(db_session, "r1", utc(3, 17), utc(3, 9))
    with pytest.raises(InvalidRange):
        check_shift_overlap(db_session, "m-ben", utc(3, 0), utc(4, 1))
    with pytest.raises(NotFound):
        assign_shift(db_session, "missing", "m-ben", "m-manager")


# Time tracking


def test_clock_in_and_out(db_session, staff):
    record = clock_in(db_session, "m-ben", at=utc(3, 9))
    with pytest.raises(AlreadyClockedIn):
        clock_in(db_session, "m-ben", at=utc(3, 10))

    closed = clock_out(db_session, "m-ben", at=utc(3, 17), adjustment_minutes=-15)

    assert closed.id == record.id
    assert as_utc(closed.clock_out) == utc(3, 17)
    assert closed.adjustment_minutes == -15
    with pytest.raises(NotFound):
        clock_out(db_session, "m-ben", at=utc(3, 18))

    actions = [row.action for row in audit.get_entity_history(db_session, "time_entry", record.id)]
    assert set(actions) == {audit.TIME_ENTRY_CREATE, audit.TIME_ENTRY_CLOCK_OUT}


def test_clock_out_before_clock_in(db_session, staff):
    clock_in(db_session, "m-ben", at=utc(3, 9))
    with pytest.raises(InvalidRange):
        clock_out(db_session, "m-ben", at=utc(3, 8))


def test_clock_out_rejects_overlapping_entry(db_session, staff):
    _entry(db_session, "m-ben", utc(3, 9), utc(3, 12))
    clock_in(db_session, "m-ben", at=utc(3, 11))

    with pytest.raises(OverlapError) as exc_info:
        clock_out(db_session, "m-ben", at=utc(3, 13))

    assert exc_info.value.result.conflicts[0].overlap_minutes == 60


def test_clock_in_unknown_or_inactive_member(db_session, staff):
    with pytest.raises(NotFound):
        clock_in(db_session, "m-nobody")

    staff["cara"].status = "inactive"
    db_session.commit()
    with pytest.raises(PermissionDenied):
        clock_in(db_session, "m-cara")


def test_close_hanging_at_shift_end(db_session, staff):
    shift = create_shift(db_session, "r1", utc(3, 8), utc(3, 16))
    assign_shift(db_session, shift.id, "m-ben", "m-manager")
    entry = _entry(db_session, "m-ben", utc(3, 9, 30), reason="badge broken")

    closed = close_hanging_entry(db_session, entry.id, "m-manager", now=utc(4, 3))

    assert as_utc(closed.clock_out) == utc(3, 16)
    assert closed.reason == "badge broken (Closed by manager)"
    history = audit.get_entity_history(db_session, "time_entry", entry.id)
    assert history[0].action == audit.TIME_ENTRY_CLOSE_HANGING
    assert history[0].before["clock_out"] is None


def test_close_hanging_without_shift_uses_now(db_session, staff):
    entry = _entry(db_session, "m-ben", utc(3, 9, 30))
    closed = close_hanging_entry(db_session, entry.id, "m-manager", now=utc(3, 22))
    assert as_utc(closed.clock_out) == utc(3, 22)


def test_close_hanging_requires_manager_of_restaurant(db_session, staff):
    entry = _entry(db_session, "m-ben", utc(3, 9, 30))

    with pytest.raises(PermissionDenied):
        close_hanging_entry(db_session, entry.id, "m-cara")
    with pytest.raises(PermissionDenied):
        close_hanging_entry(db_session, entry.id, "m-outsider")


def test_close_hanging_close_time_check_is_optional(db_session, staff):
    entry = _entry(db_session, "m-ben", utc(3, 9, 30))

    with pytest.raises(InvalidRange):
        close_hanging_entry(db_session, entry.id, "m-manager", close_time=utc(3, 9), validate_close_time=True)

    closed = close_hanging_entry(db_session, entry.id, "m-manager", close_time=utc(3, 9))
    assert as_utc(closed.clock_out) == utc(3, 9)

    with pytest.raises(AlreadyClosed):
        close_hanging_entry(db_session, entry.id, "m-manager")


def test_close_entry_by_manager(db_session, staff):
    entry = _entry(db_session, "m-ben", utc(3, 9))

    closed = close_entry_by_manager(db_session, entry.id, "m-manager", utc(3, 17), "confirmed with Ben")

    assert closed.status == "approved"
    assert closed.reason == "confirmed with Ben"
    history = audit.get_entity_history(db_session, "time_entry", entry.id)
    assert history[0].after["closed_by"] == "m-manager"


def test_edit_own_entry(db_session, staff):
    entry = _entry(db_session, "m-ben", utc(3, 9), utc(3, 17))

    edited = edit_time_entry(db_session, entry.id, "m-ben", "employee", clock_out=utc(3, 17, 30), reason="closing")

    assert as_utc(edited.clock_out) == utc(3, 17, 30)
    assert edited.reason == "closing"


def test_employee_cannot_edit_other_entry(db_session, staff):
    entry = _entry(db_session, "m-ben", utc(3, 9), utc(3, 17))
    with pytest.raises(PermissionDenied) as exc_info:
        edit_time_entry(db_session, entry.id, "m-cara", "employee", reason="x")
    assert "own entries" in exc_info.value.reason


# Reports and signatures


def _day_of_work(session):
    _entry(session, "m-manager", utc(3, 8), utc(3, 12), adjustment=30)
    _entry(session, "m-ben", utc(3, 9), utc(3, 17))
    _entry(session, "m-cara", utc(3, 9), utc(3, 9, 20))
    # next day, not in the report
    _entry(session, "m-ben", utc(4, 9), utc(4, 17))
    # still open, not in the report
    _entry(session, "m-cara", utc(3, 18))


def test_generate_daily_report_totals(db_session, staff):
    _day_of_work(db_session)

    report = generate_daily_report(db_session, "r1", DAY, "m-manager")

    totals = report.totals_json
    by_member = {row["membership_id"]: row for row in totals["employees"]}
    assert by_member["m-manager"]["total_hours"] == 4.5
    assert by_member["m-manager"]["hourly_rate"] == 40.0
    assert by_member["m-manager"]["total_amount"] == 180.0
    assert by_member["m-ben"]["total_hours"] == 8.0
    assert by_member["m-ben"]["total_amount"] == 200.0
    assert by_member["m-cara"]["total_hours"] == 0.33
    assert totals["summary"]["total_employees"] == 3
    assert totals["summary"]["total_hours"] == pytest.approx(12.83)
    assert totals["summary"]["total_amount"] == pytest.approx(386.6)
    assert report.signed_by is None


def test_generate_daily_report_once_per_day(db_session, staff):
    generate_daily_report(db_session, "r1", DAY, "m-manager")
    with pytest.raises(AlreadyExists):
        generate_daily_report(db_session, "r1", DAY, "m-manager")


def test_generate_daily_report_requires_manager(db_session, staff):
    with pytest.raises(PermissionDenied):
        generate_daily_report(db_session, "r1", DAY, "m-ben")


def test_empty_day_report(db_session, staff):
    report = generate_daily_report(db_session, "r1", DAY, "m-manager")
    assert report.totals_json["employees"] == []
    assert report.totals_json["summary"] == {"total_employees": 0, "total_hours": 0.0, "total_amount": 0.0}


def test_signed_day_freezes_entries(db_session, staff):
    entry = _entry(db_session, "m-ben", utc(3, 9), utc(3, 17))
    report = generate_daily_report(db_session, "r1", DAY, "m-manager")
    sign_daily_report(db_session, report.id, "m-manager", now=utc(3, 22))

    for actor, role in [("m-ben", "employee"), ("m-manager", "manager"), ("m-manager", "owner")]:
        with pytest.raises(PermissionDenied) as exc_info:
            edit_time_entry(db_session, entry.id, actor, role, reason="late fix")
        assert exc_info.value.reason == SIGNED_PERIOD_REASON

    unsign_daily_report(db_session, report.id, "m-manager", reason="late fix", now=utc(4, 8))
    edited = edit_time_entry(db_session, entry.id, "m-manager", "manager", reason="late fix")
    assert edited.reason == "late fix"


def test_edit_cannot_move_entry_into_signed_day(db_session, staff):
    entry = _entry(db_session, "m-ben", utc(4, 9), utc(4, 17))
    report = generate_daily_report(db_session, "r1", DAY, "m-manager")
    sign_daily_report(db_session, report.id, "m-manager")

    with pytest.raises(PermissionDenied):
        edit_time_entry(db_session, entry.id, "m-manager", "manager", clock_in=utc(3, 20), clock_out=utc(3, 23))


def test_signature_log_history(db_session, staff):
    report = generate_daily_report(db_session, "r1", DAY, "m-manager")

    sign_daily_report(db_session, report.id, "m-manager", now=utc(3, 22))
    with pytest.raises(AlreadySigned):
        sign_daily_report(db_session, report.id, "m-manager", now=utc(3, 23))
    db_session.rollback()
    unsign_daily_report(db_session, report.id, "m-manager", now=utc(4, 8))
    with pytest.raises(NotSigned):
        unsign_daily_report(db_session, report.id, "m-manager")
    db_session.rollback()
    report = sign_daily_report(db_session, report.id, "m-manager", now=utc(4, 9))

    log = get_signature_log(db_session, report.id)
    assert [e.action.value for e in log] == ["signed", "unsigned", "signed"]
    assert log.entries[1].reason == "No reason provided"
    assert log.entries[1].previous_signed_by == "m-manager"
    assert log.entries[1].previous_signed_at == utc(3, 22)
    assert [row.position for row in report.signature_log] == [1, 2, 3]
    assert as_utc(report.signed_at) == utc(4, 9)


def test_sign_requires_manager_of_restaurant(db_session, staff):
    report = generate_daily_report(db_session, "r1", DAY, "m-manager")
    with pytest.raises(PermissionDenied):
        sign_daily_report(db_session, report.id, "m-ben")
    with pytest.raises(PermissionDenied):
        sign_daily_report(db_session, report.id, "m-outsider")
    with pytest.raises(NotFound):
        sign_daily_report(db_session, "missing", "m-manager")


def test_audit_log_query(db_session, staff):
    report = generate_daily_report(db_session, "r1", DAY, "m-manager")
    sign_daily_report(db_session, report.id, "m-manager")

    page = audit.get_audit_logs(db_session, restaurant_id="r1", entity_type="report_daily")
    assert page["total"] == 2
    assert page["logs"][0].action == audit.REPORT_DAILY_SIGN

    only_sign = audit.get_audit_logs(db_session, action=audit.REPORT_DAILY_SIGN)
    assert only_sign["total"] == 1
    assert audit.get_audit_logs(db_session, restaurant_id="r2")["total"] == 0


def _signed_day_with_open_entry(session):
    entry = _entry(session, "m-ben", utc(3, 9, 30))
    report = generate_daily_report(session, "r1", DAY, "m-manager")
    sign_daily_report(session, report.id, "m-manager", now=utc(3, 22))
    return entry, report


def test_signed_day_blocks_clock_out(db_session, staff):
    entry, report = _signed_day_with_open_entry(db_session)

    with pytest.raises(PermissionDenied) as exc_info:
        clock_out(db_session, "m-ben", at=utc(3, 17))

    assert exc_info.value.reason == SIGNED_PERIOD_REASON
    assert TimeEntryRepository.get_by_id(db_session, entry.id).clock_out is None

    unsign_daily_report(db_session, report.id, "m-manager", reason="Ben forgot to clock out")
    closed = clock_out(db_session, "m-ben", at=utc(3, 17))
    assert as_utc(closed.clock_out) == utc(3, 17)


def test_signed_day_blocks_manager_closes(db_session, staff):
    shift = create_shift(db_session, "r1", utc(3, 8), utc(3, 16))
    assign_shift(db_session, shift.id, "m-ben", "m-manager")
    entry, _ = _signed_day_with_open_entry(db_session)

    with pytest.raises(PermissionDenied) as exc_info:
        close_hanging_entry(db_session, entry.id, "m-manager", now=utc(3, 17))
    assert exc_info.value.reason == SIGNED_PERIOD_REASON

    with pytest.raises(PermissionDenied) as exc_info:
        close_entry_by_manager(db_session, entry.id, "m-manager", utc(3, 17), "confirmed by phone")
    assert exc_info.value.reason == SIGNED_PERIOD_REASON

    assert TimeEntryRepository.get_by_id(db_session, entry.id).clock_out is None
    assert audit.get_entity_history(db_session, "time_entry", entry.id) == []


def test_signed_day_blocks_clock_in(db_session, staff):
    _signed_day_with_open_entry(db_session)

    with pytest.raises(PermissionDenied):
        clock_in(db_session, "m-cara", at=utc(3, 18))
    assert TimeEntryRepository.get_open_for_membership(db_session, "m-cara") is None

    # next day is still open
    assert clock_in(db_session, "m-cara", at=utc(4, 9)).membership_id == "m-cara"


def test_signed_day_uses_configured_zone(db_session, staff):
    # 23:30 UTC on March 3rd is 00:30 on March 4th in Warsaw
    entry = _entry(db_session, "m-ben", utc(3, 23, 30), utc(4, 1))
    report = generate_daily_report(db_session, "r1", date(2025, 3, 4), "m-manager")
    assert report.totals_json["summary"]["total_employees"] == 1
    sign_daily_report(db_session, report.id, "m-manager")

    with pytest.raises(PermissionDenied) as exc_info:
        edit_time_entry(db_session, entry.id, "m-manager", "manager", reason="after signing")
    assert exc_info.value.reason == SIGNED_PERIOD_REASON

    # in UTC the entry belongs to the unsigned March 3rd
    edited = edit_time_entry(db_session, entry.id, "m-manager", "manager", tz=timezone.utc, reason="utc day")
    assert edited.reason == "utc day"


def test_overlap_rejection_keeps_pending_work(db_session, staff):
    first = create_shift(db_session, "r1", utc(3, 9), utc(3, 17))
    second = create_shift(db_session, "r1", utc(3, 12), utc(3, 20))
    assign_shift(db_session, first.id, "m-ben", "m-manager")

    db_session.add(Membership(id="m-dan", user_id="u-dan", restaurant_id="r1", role="employee"))
    with pytest.raises(ShiftOverlapError):
        assign_shift(db_session, second.id, "m-ben", "m-manager")
    db_session.commit()

    assert db_session.get(Membership, "m-dan") is not None


# Weekly and monthly summaries


def _month_of_work(session):
    _entry(session, "m-manager", utc(5, 8), utc(5, 12), adjustment=30)
    _entry(session, "m-ben", utc(3, 9), utc(3, 17))
    # Sunday
    _entry(session, "m-ben", utc(9, 10), utc(9, 14))
    # next Monday
    _entry(session, "m-ben", utc(10, 9), utc(10, 17))
    # March 1st 00:30 in Warsaw
    _entry(session, "m-cara", utc(28, 23, 30, month=2), utc(1, 1, 30))
    # April 1st 00:30 in Warsaw (summer time)
    _entry(session, "m-cara", utc(31, 22, 30), utc(31, 23, 30))


def test_weekly_summary(db_session, staff):
    _month_of_work(db_session)

    summary = generate_weekly_summary(db_session, "r1", DAY, "m-manager")

    by_member = {row["membership_id"]: row for row in summary["employees"]}
    assert set(by_member) == {"m-ben", "m-manager"}
    assert by_member["m-ben"]["total_hours"] == 12.0
    assert by_member["m-ben"]["entries"] == 2
    assert by_member["m-ben"]["total_amount"] == 300.0
    assert summary["period_start"] == "2025-03-03"
    assert summary["period_end"] == "2025-03-09"
    assert summary["summary"]["total_hours"] == pytest.approx(16.5)
    assert summary["summary"]["total_amount"] == pytest.approx(480.0)


def test_weekly_summary_requires_monday(db_session, staff):
    with pytest.raises(InvalidRange):
        generate_weekly_summary(db_session, "r1", date(2025, 3, 4), "m-manager")


def test_monthly_summary_uses_restaurant_days(db_session, staff):
    _month_of_work(db_session)

    summary = generate_monthly_summary(db_session, "r1", 2025, 3, "m-manager")

    by_member = {row["membership_id"]: row for row in summary["employees"]}
    assert summary["month"] == "2025-03"
    assert summary["period_end"] == "2025-03-31"
    assert by_member["m-ben"]["total_hours"] == 20.0
    assert by_member["m-ben"]["entries"] == 3
    assert by_member["m-cara"]["total_hours"] == 2.0
    assert by_member["m-cara"]["entries"] == 1
    assert summary["summary"]["total_hours"] == pytest.approx(26.5)
    assert summary["summary"]["total_amount"] == pytest.approx(720.0)


def test_summary_requires_manager(db_session, staff):
    with pytest.raises(PermissionDenied):
        generate_monthly_summary(db_session, "r1", 2025, 3, "m-ben")
    with pytest.raises(PermissionDenied):
        generate_weekly_summary(db_session, "r1", DAY, "m-outsider")
