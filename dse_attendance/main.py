"""Command-line entry point for the DSE leave tracker."""
import argparse
import logging
import sys
from datetime import date, datetime
from typing import List, Optional

from dse_attendance.utilities import config, utils
from dse_attendance.utilities.errors import LeaveError
from dse_attendance.loaders import database
from dse_attendance.pipelines import pipeline
from dse_attendance.transformers import data_processor, email_service, leave_service

logger = logging.getLogger(__name__)


def parse_date(date_str: str) -> date:
    """Parse date string in YYYY-MM-DD format."""
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date format: {date_str}. Use YYYY-MM-DD")


def _ask(question: str) -> bool:
    answer = input(f"{question} [y/N] ").strip().lower()
    return answer in ("y", "yes")


def _bulk_confirm(assume_yes: bool):
    def confirm(count: int, date_key: str) -> bool:
        print(f"{count} employee(s) will be marked on leave for {date_key}.")
        return assume_yes or _ask("Proceed?")
    return confirm


def _leave_confirm(assume_yes: bool):
    def confirm(name: str, date_key: str) -> bool:
        return assume_yes or _ask(f"Are you sure you want to apply leave for {name} on {date_key}?")
    return confirm


def cmd_import_leaves(engine, args) -> int:
    day = args.date or datetime.now().date()
    plan = pipeline.prepare_bulk_leave(engine, args.file)

    for match in plan.matched:
        print(f"  ✓ {match.source_name} -> {match.canonical_name}")
    for match in plan.unmatched:
        print(f"  ✗ {match.source_name} (no match)")

    stats = pipeline.apply_bulk_leave(
        engine, plan, day, _bulk_confirm(args.yes), reason=args.reason
    )
    if stats.cancelled:
        print("Cancelled; nothing was written.")
        return 0

    print(
        f"Updated {stats.updated}, skipped {stats.skipped}, "
        f"unmatched {len(stats.unmatched)}, failed {len(stats.errors)} for {stats.date_key}"
    )
    for error in stats.errors:
        print(f"  ! {error}")
    return 1 if stats.errors else 0


def cmd_add_leave(engine, args) -> int:
    day = args.date or datetime.now().date()
    records = pipeline.add_leave(engine, args.name, day, args.reason, _leave_confirm(args.yes))
    if not records:
        print("Cancelled; nothing was written.")
    else:
        print("Leave successfully added!")
    return 0


def cmd_summary(engine, args) -> int:
    window = utils.create_month_window(args.month, args.year)
    month, year = window.start.month, window.start.year
    records = leave_service.filter_records(
        pipeline.load_snapshot(engine),
        search=args.search,
        branch=args.branch,
        dse_type=args.type,
    )

    stats = leave_service.summarize_period(records, month, year)
    print(f"Leave summary for {window.description}")
    print(f"  Total employees:      {stats.total_employees}")
    print(f"  Total leaves:         {stats.total_leaves}")
    print(f"  Avg leaves/employee:  {stats.average_leaves}")
    print(f"  High leave employees: {stats.high_leave_employees}")

    print("\nLeaves by branch")
    for _, row in leave_service.branch_leave_totals(records).iterrows():
        print(f"  {row['branch']}: {row['leaves']}")

    print("\nLeave distribution")
    for bucket, count in leave_service.leave_distribution(records).items():
        print(f"  {bucket}: {count}")

    print(f"\nTop {config.TOP_LEAVE_LIMIT} by total leaves")
    for row in leave_service.process_attendance(leave_service.top_leave_takers(records), month, year):
        print(
            f"  {data_processor.format_display_name(row.get(config.NAME_COLUMN))}: "
            f"{row['total_leaves']} total, {row['leaves_in_period']} in {window.description}"
        )
    return 0


def cmd_on_leave(engine, args) -> int:
    day = args.date or datetime.now().date()
    records = pipeline.load_snapshot(engine)
    date_key = utils.resolve_date_column(records[0].keys(), day) if records else None

    on_leave = leave_service.employees_on_leave(records, date_key) if date_key else []
    print(f"{len(on_leave)} employee(s) on leave on {utils.format_date_key(day)}")
    for record in on_leave:
        reason = record.get(f"{date_key}{config.REASON_SUFFIX}") or config.DEFAULT_LEAVE_REASON
        print(
            f"  {data_processor.format_display_name(record.get(config.NAME_COLUMN))} "
            f"({record.get(config.BRANCH_COLUMN)}): {reason}"
        )
    return 0


def cmd_history(engine, args) -> int:
    records = pipeline.load_snapshot(engine)
    result = data_processor.match_name(args.name, [r.get(config.NAME_COLUMN) for r in records])
    if not result.matched:
        print(f"No employee matches '{args.name}'")
        return 1

    record = next(r for r in records if r.get(config.NAME_COLUMN) == result.canonical_name)
    events = leave_service.get_leave_events(record)
    print(f"{data_processor.format_display_name(result.canonical_name)}: {len(events)} leave(s)")
    for event in events:
        print(f"  {event.date}: {event.reason}")
    return 0


def cmd_report(engine, args) -> int:
    day = args.date or datetime.now().date()
    report = pipeline.high_leave_report(engine, day)

    if report.empty:
        print("No employees on leave with repeated leaves this month.")
    else:
        print(report.to_string(index=False))

    if args.export:
        pipeline.export_report(report, args.export)
    if args.email:
        email_service.send_high_leave_report(report, day)
    return 0


def cmd_names(engine, args) -> int:
    names = database.fetch_dse_names(engine)
    print(f"{len(names)} DSE name(s)")
    for name in names:
        print(f"  {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Track DSE leave and attendance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mark everyone flagged 'L' in today's sheet as on leave
  dse-leave import-leaves leave_sheet.xlsx

  # Record a leave for tomorrow
  dse-leave add-leave "S_Ajay-Chaubepur" --date 2025-09-03 --reason "Family function"

  # Monthly statistics for one branch
  dse-leave summary --month 6 --year 2025 --branch Kanpur

  # Today's high-leave report, saved and mailed to HR
  dse-leave report --export high_leave.xlsx --email
        """,
    )
    parser.add_argument("--db-url", help="Database URL (defaults to DSE_DB_URL)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set logging level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    imports = subparsers.add_parser("import-leaves", help="Bulk-mark leave from a spreadsheet")
    imports.add_argument("file", help="Excel file with DSE names and a leave column")
    imports.add_argument("--date", type=parse_date, help="Leave date (default: today)")
    imports.add_argument("--reason", default=config.BULK_LEAVE_REASON, help="Reason stored for every employee")
    imports.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    imports.set_defaults(handler=cmd_import_leaves)

    add = subparsers.add_parser("add-leave", help="Record one leave for today or tomorrow")
    add.add_argument("name", help="Exact DSE name as stored in the attendance table")
    add.add_argument("--date", type=parse_date, help="Leave date (default: today)")
    add.add_argument("--reason", required=True, help="Leave reason")
    add.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    add.set_defaults(handler=cmd_add_leave)

    summary = subparsers.add_parser("summary", help="Monthly leave statistics")
    summary.add_argument("--month", type=int, choices=range(1, 13), metavar="1-12")
    summary.add_argument("--year", type=int)
    summary.add_argument("--branch")
    summary.add_argument("--type")
    summary.add_argument("--search", help="Part of the employee name")
    summary.set_defaults(handler=cmd_summary)

    on_leave = subparsers.add_parser("on-leave", help="Employees on leave on a date")
    on_leave.add_argument("--date", type=parse_date, help="Date (default: today)")
    on_leave.set_defaults(handler=cmd_on_leave)

    history = subparsers.add_parser("history", help="Leave history of one employee")
    history.add_argument("name")
    history.set_defaults(handler=cmd_history)

    report = subparsers.add_parser("report", help="High-leave report for a day")
    report.add_argument("--date", type=parse_date, help="Report date (default: today)")
    report.add_argument("--export", help="Write the report to this .xlsx file")
    report.add_argument("--email", action="store_true", help="Email the report to HR")
    report.set_defaults(handler=cmd_report)

    names = subparsers.add_parser("names", help="List all DSE names")
    names.set_defaults(handler=cmd_names)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with CLI argument parsing."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger.info("=" * 70)
    logger.info("DSE LEAVE TRACKER: %s", args.command)
    logger.info("=" * 70)

    try:
        engine = database.create_db_engine(args.db_url)
        return args.handler(engine, args)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except LeaveError as exc:
        logger.error("✗ %s", exc)
        return 2
    except Exception as exc:
        logger.exception("Fatal error: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
