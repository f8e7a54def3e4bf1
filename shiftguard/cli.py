"""Command-line interface for shift overlap checks, time entry closes and report signing."""

from __future__ import annotations

import argparse
import logging
from datetime import date, datetime

from shiftguard.config import GuardConfig, load_config
from shiftguard.domain.db import get_session, init_database
from shiftguard.intervals import summarize_conflicts
from shiftguard.io.import_csv import import_memberships_csv, import_shifts_csv, import_time_entries_csv
from shiftguard.services.audit import get_audit_logs
from shiftguard.services.reports import (
    generate_daily_report,
    generate_monthly_summary,
    generate_weekly_summary,
    get_signature_log,
    sign_daily_report,
    unsign_daily_report,
)
from shiftguard.services.shifts import check_shift_overlap
from shiftguard.services.time_tracking import close_hanging_entry


def _config(args: argparse.Namespace) -> GuardConfig:
    cfg = load_config(args.config)
    if args.db:
        cfg.db_url = args.db
    return cfg


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database."""
    cfg = _config(args)
    init_database(cfg.db_url)
    print(f"[OK] Database initialized: {cfg.db_url}")


def _cmd_import_csv(args: argparse.Namespace) -> None:
    """Import CSV data into database."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        if args.memberships:
            count = import_memberships_csv(session, args.memberships)
            print(f"[OK] Imported {count} memberships")

        if args.shifts:
            count = import_shifts_csv(session, args.shifts, max_hours=cfg.max_shift_hours)
            print(f"[OK] Imported {count} shifts")

        if args.time_entries:
            count = import_time_entries_csv(session, args.time_entries)
            print(f"[OK] Imported {count} time entries")

        session.close()
        print("[OK] CSV import complete")

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Import failed: {e}")
        raise


def _cmd_check_overlap(args: argparse.Namespace) -> None:
    """Check a prospective shift against a member's committed shifts."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        result = check_shift_overlap(
            session,
            args.membership,
            datetime.fromisoformat(args.start),
            datetime.fromisoformat(args.end),
            shift_id=args.shift,
            max_hours=cfg.max_shift_hours,
        )
        session.close()

        if result.has_overlap:
            print(f"[WARN] {len(result.conflicts)} conflict(s) for member {args.membership}")
            for line in summarize_conflicts(result, cfg.tz):
                print(f"  {line}")
        else:
            print(f"[OK] No overlap for member {args.membership}")

    except Exception as e:
        session.close()
        print(f"[ERROR] Overlap check failed: {e}")
        raise


def _cmd_daily_report(args: argparse.Namespace) -> None:
    """Generate the daily report for a restaurant."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        report = generate_daily_report(
            session, args.restaurant, date.fromisoformat(args.date), args.actor, tz=cfg.tz
        )
        summary = report.totals_json["summary"]
        session.close()
        print(
            f"[OK] Report {report.id}: {summary['total_employees']} employees, "
            f"{summary['total_hours']:.2f}h, {summary['total_amount']:.2f}"
        )

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Report generation failed: {e}")
        raise


def _cmd_summary(args: argparse.Namespace) -> None:
    """Print weekly or monthly hour totals per member."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        if args.week:
            data = generate_weekly_summary(
                session, args.restaurant, date.fromisoformat(args.week), args.actor, tz=cfg.tz
            )
        else:
            year, month = (int(part) for part in args.month.split("-"))
            data = generate_monthly_summary(session, args.restaurant, year, month, args.actor, tz=cfg.tz)
        session.close()

        for row in data["employees"]:
            print(f"  {row['name']:<20} {row['total_hours']:>8.2f}h {row['total_amount']:>10.2f} ({row['entries']} entries)")
        summary = data["summary"]
        print(
            f"[OK] {data['period_start']}..{data['period_end']}: {summary['total_employees']} employees, "
            f"{summary['total_hours']:.2f}h, {summary['total_amount']:.2f}"
        )

    except Exception as e:
        session.close()
        print(f"[ERROR] Summary failed: {e}")
        raise


def _cmd_sign(args: argparse.Namespace) -> None:
    """Sign a daily report."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        report = sign_daily_report(session, args.report, args.actor)
        print(f"[OK] Report {report.id} signed by {report.signed_by} at {report.signed_at}")
        session.close()

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Sign failed: {e}")
        raise


def _cmd_unsign(args: argparse.Namespace) -> None:
    """Revoke the signature of a daily report."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        report = unsign_daily_report(session, args.report, args.actor, reason=args.reason)
        log = get_signature_log(session, report.id)
        print(f"[OK] Report {report.id} unsigned ({len(log)} signature log entries)")
        session.close()

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Unsign failed: {e}")
        raise


def _cmd_close_hanging(args: argparse.Namespace) -> None:
    """Close a time entry that has no clock-out."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        close_time = datetime.fromisoformat(args.close_time) if args.close_time else None
        record = close_hanging_entry(
            session,
            args.entry,
            args.actor,
            close_time=close_time,
            validate_close_time=cfg.validate_hanging_close,
            tz=cfg.tz,
        )
        print(f"[OK] Time entry {record.id} closed at {record.clock_out}")
        session.close()

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Close failed: {e}")
        raise


def _cmd_audit(args: argparse.Namespace) -> None:
    """Print recent audit log rows."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        page = get_audit_logs(
            session,
            restaurant_id=args.restaurant,
            entity_type=args.entity_type,
            action=args.action,
            limit=args.limit,
        )
        for row in page["logs"]:
            print(f"{row.created_at} {row.action:<28} {row.entity_type}:{row.entity_id} by {row.actor_id}")
        print(f"[OK] {len(page['logs'])} of {page['total']} audit rows")
        session.close()

    except Exception as e:
        session.close()
        print(f"[ERROR] Audit query failed: {e}")
        raise


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="shiftguard",
        description="Shift overlap and time entry consistency tools",
    )

    # Global options
    parser.add_argument("--db", help="Database URL (overrides config)")
    parser.add_argument("--config", help="Path to config YAML")

    sub = parser.add_subparsers(dest="command", required=True)

    # init-db command
    init = sub.add_parser("init-db", help="Initialize database")
    init.set_defaults(func=_cmd_init_db)

    # import-csv command
    imp = sub.add_parser("import-csv", help="Import CSV data into database")
    imp.add_argument("--memberships", help="Path to memberships CSV")
    imp.add_argument("--shifts", help="Path to shifts CSV")
    imp.add_argument("--time-entries", dest="time_entries", help="Path to time entries CSV")
    imp.set_defaults(func=_cmd_import_csv)

    # check-overlap command
    chk = sub.add_parser("check-overlap", help="Check a shift against a member's other shifts")
    chk.add_argument("--membership", required=True, help="Membership ID")
    chk.add_argument("--start", required=True, help="ISO 8601 start")
    chk.add_argument("--end", required=True, help="ISO 8601 end")
    chk.add_argument("--shift", help="Shift ID when re-validating an existing shift")
    chk.set_defaults(func=_cmd_check_overlap)

    # daily-report command
    rep = sub.add_parser("daily-report", help="Generate a daily report")
    rep.add_argument("--restaurant", required=True, help="Restaurant ID")
    rep.add_argument("--date", required=True, help="Day (YYYY-MM-DD)")
    rep.add_argument("--actor", required=True, help="Membership ID of the manager")
    rep.set_defaults(func=_cmd_daily_report)

    # summary command
    smr = sub.add_parser("summary", help="Weekly or monthly hours per member")
    smr.add_argument("--restaurant", required=True, help="Restaurant ID")
    smr.add_argument("--actor", required=True, help="Membership ID of the manager")
    period = smr.add_mutually_exclusive_group(required=True)
    period.add_argument("--week", help="Monday of the week (YYYY-MM-DD)")
    period.add_argument("--month", help="Month (YYYY-MM)")
    smr.set_defaults(func=_cmd_summary)

    # sign command
    sgn = sub.add_parser("sign", help="Sign a daily report")
    sgn.add_argument("--report", required=True, help="Report ID")
    sgn.add_argument("--actor", required=True, help="Membership ID of the manager")
    sgn.set_defaults(func=_cmd_sign)

    # unsign command
    uns = sub.add_parser("unsign", help="Revoke a daily report signature")
    uns.add_argument("--report", required=True, help="Report ID")
    uns.add_argument("--actor", required=True, help="Membership ID of the manager")
    uns.add_argument("--reason", help="Why the signature is revoked")
    uns.set_defaults(func=_cmd_unsign)

    # close-hanging command
    hang = sub.add_parser("close-hanging", help="Close a time entry without clock-out")
    hang.add_argument("--entry", required=True, help="Time entry ID")
    hang.add_argument("--actor", required=True, help="Membership ID of the manager")
    hang.add_argument("--close-time", dest="close_time", help="Optional ISO 8601 clock-out")
    hang.set_defaults(func=_cmd_close_hanging)

    # audit command
    aud = sub.add_parser("audit", help="List audit log rows")
    aud.add_argument("--restaurant", help="Restaurant ID filter")
    aud.add_argument("--entity-type", dest="entity_type", help="Entity type filter")
    aud.add_argument("--action", help="Action filter")
    aud.add_argument("--limit", type=int, default=100)
    aud.set_defaults(func=_cmd_audit)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, _config(args).log_level.upper(), logging.INFO),
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
