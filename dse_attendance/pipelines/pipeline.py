"""Orchestration of leave imports, single leave entries, and reports."""
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from sqlalchemy.engine import Engine

from dse_attendance.utilities import config, utils
from dse_attendance.utilities.errors import (
    DuplicateLeaveError,
    EmployeeNotFoundError,
    LeaveValidationError,
    StoreError,
    UnknownDateColumnError,
)
from dse_attendance.utilities.models import BulkLeavePlan, BulkLeaveStats
from dse_attendance.extractors import excel_reader
from dse_attendance.loaders import database
from dse_attendance.transformers import data_processor, email_service, leave_service

logger = logging.getLogger(__name__)

# confirm(count, date_key) for bulk imports
BulkConfirm = Callable[[int, str], bool]
# confirm(display_name, date_key) for single leave entries
LeaveConfirm = Callable[[str, str], bool]


def load_snapshot(engine: Engine) -> List[Dict[str, Any]]:
    """Fetch the full attendance table; raises StoreError on failure."""
    records = database.fetch_attendance_records(engine)
    logger.info("Loaded %d attendance rows", len(records))
    return records


def prepare_bulk_leave(engine: Engine, file_path: str | Path) -> BulkLeavePlan:
    """
    Read a leave spreadsheet and match its names to attendance rows.

    Args:
        engine: Database engine
        file_path: Uploaded workbook

    Returns:
        BulkLeavePlan ready for confirmation
    """
    logger.info("=" * 70)
    logger.info("PREPARING BULK LEAVE IMPORT: %s", Path(file_path).name)
    logger.info("=" * 70)

    extraction = excel_reader.load_leave_sheet(file_path)
    records = load_snapshot(engine)
    matches = data_processor.reconcile_names(extraction.entries, records)

    plan = BulkLeavePlan(extraction=extraction, matches=matches, records=records)
    logger.info(
        "Spreadsheet rows on leave: %d | matched: %d | unmatched: %d",
        len(extraction.entries),
        len(plan.matched),
        len(plan.unmatched),
    )
    for match in plan.unmatched:
        logger.warning("⚠ No attendance record for '%s'", match.source_name)
    return plan


def apply_bulk_leave(
    engine: Engine,
    plan: BulkLeavePlan,
    day: date,
    confirm: BulkConfirm,
    reason: str = config.BULK_LEAVE_REASON,
) -> BulkLeaveStats:
    """
    Mark every matched employee of a plan as on leave for one day.

    Each employee is updated in its own transaction. A failed update is
    reported in stats.errors and does not undo the others. Employees
    already on leave that day are skipped so their reason is kept.

    Args:
        engine: Database engine
        plan: Result of prepare_bulk_leave
        day: Leave date
        confirm: Called with the number of employees and the date column
            before anything is written; returning False cancels
        reason: Reason stored for every updated employee

    Returns:
        BulkLeaveStats, including the re-fetched snapshot when writes ran

    Raises:
        UnknownDateColumnError: If the table has no column for the date
    """
    stats = BulkLeaveStats(
        extracted=len(plan.extraction.entries),
        unmatched=[match.source_name for match in plan.unmatched],
        records=plan.records,
    )

    columns = database.get_table_columns(engine)
    date_column = utils.resolve_date_column(columns, day)
    if date_column is None:
        raise UnknownDateColumnError(
            f"The attendance table has no column for {utils.format_date_key(day)}"
        )
    stats.date_key = date_column

    targets: Dict[Any, str] = {}
    for match in plan.matched:
        if match.record_id in targets:
            logger.info("'%s' maps to an employee already in this import; skipping", match.source_name)
            continue
        targets[match.record_id] = match.canonical_name
    stats.matched = len(targets)

    if not targets:
        logger.warning("No matched employees to update")
        return stats

    if not confirm(len(targets), date_column):
        logger.info("Bulk leave import cancelled by operator")
        stats.cancelled = True
        return stats

    current = {record.get(config.ID_COLUMN): record for record in plan.records}

    for record_id, name in targets.items():
        if current.get(record_id, {}).get(date_column) == config.LEAVE_MARK:
            stats.skipped += 1
            logger.info("%s already on leave for %s; skipped", name, date_column)
            continue
        try:
            updated = database.update_leave(engine, record_id, date_column, reason, columns=columns)
        except Exception as exc:
            stats.errors.append(f"Failed to mark {name} on leave for {date_column}: {exc}")
            logger.error("✗ Update failed for %s: %s", name, exc)
            continue
        if updated:
            stats.updated += 1
        else:
            stats.errors.append(f"No attendance row updated for {name} (id {record_id})")

    try:
        stats.records = load_snapshot(engine)
    except StoreError as exc:
        stats.errors.append(f"Leave written but the attendance data could not be reloaded: {exc}")
        logger.error("✗ Reload after bulk leave failed: %s", exc)

    if stats.errors:
        logger.warning(
            "⚠ Bulk leave finished with %d error(s): %d updated, %d skipped",
            len(stats.errors),
            stats.updated,
            stats.skipped,
        )
    else:
        logger.info("✓ Bulk leave complete: %d updated, %d skipped", stats.updated, stats.skipped)
    return stats


def run_bulk_leave_import(
    engine: Engine,
    file_path: str | Path,
    day: date,
    confirm: BulkConfirm,
    reason: str = config.BULK_LEAVE_REASON,
) -> BulkLeaveStats:
    """Extract, reconcile, confirm and apply a spreadsheet leave import."""
    plan = prepare_bulk_leave(engine, file_path)
    return apply_bulk_leave(engine, plan, day, confirm, reason=reason)


def add_leave(
    engine: Engine,
    name: str,
    day: date,
    reason: str,
    confirm: LeaveConfirm,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """
    Record a single leave day for one employee.

    Args:
        engine: Database engine
        name: Exact dse_name of the employee
        day: Leave date; today or tomorrow only
        reason: Leave reason (required)
        confirm: Called with the display name and date column before writing
        today: Reference date (defaults to the current date)

    Returns:
        The re-fetched attendance snapshot, or an empty list when cancelled

    Raises:
        LeaveValidationError: If the request is incomplete or out of range
        EmployeeNotFoundError: If no row carries that name
        DuplicateLeaveError: If the employee is already on leave that day
        UnknownDateColumnError: If the table has no column for the date
    """
    today = today or datetime.now().date()

    if not name or not reason or not reason.strip():
        raise LeaveValidationError("Employee, date and reason are all required")

    if not today <= day <= today + timedelta(days=config.MAX_LEAVE_DAYS_AHEAD):
        raise LeaveValidationError("You can only apply leave for today or tomorrow.")

    columns = database.get_table_columns(engine)
    date_column = utils.resolve_date_column(columns, day)
    if date_column is None:
        raise UnknownDateColumnError(
            f"The attendance table has no column for {utils.format_date_key(day)}"
        )

    records = load_snapshot(engine)
    record = next((row for row in records if row.get(config.NAME_COLUMN) == name), None)
    if record is None:
        raise EmployeeNotFoundError(f"Employee {name} not found")

    if record.get(date_column) == config.LEAVE_MARK:
        raise DuplicateLeaveError(f"Leave already exists for {name} on {date_column}")

    display_name = data_processor.format_display_name(name)
    if not confirm(display_name, date_column):
        logger.info("Leave for %s cancelled by operator", display_name)
        return []

    database.update_leave(engine, record[config.ID_COLUMN], date_column, reason.strip(), columns=columns)
    logger.info("✓ Leave recorded for %s on %s", display_name, date_column)

    refreshed = load_snapshot(engine)
    updated = next(
        (row for row in refreshed if row.get(config.ID_COLUMN) == record[config.ID_COLUMN]),
        {**record, date_column: config.LEAVE_MARK},
    )
    notify_if_high_leave(engine, updated, day, today=today)
    return refreshed


def notify_if_high_leave(
    engine: Engine,
    record: Dict[str, Any],
    day: date,
    today: Optional[date] = None,
) -> bool:
    """
    Alert HR once an employee reaches the monthly leave threshold.

    Only leave in the current month counts and each employee is alerted at
    most once per month. Failures are logged and never raised.

    Returns:
        True if an alert was sent and recorded
    """
    today = today or datetime.now().date()

    if not config.NOTIFY_HIGH_LEAVE:
        return False
    if not utils.create_month_window(today.month, today.year).contains(day):
        return False

    leave_count = leave_service.count_leaves_in_period(record, day.month, day.year)
    if leave_count < config.NOTIFY_LEAVE_THRESHOLD:
        return False

    employee_id = str(record.get(config.ID_COLUMN))
    if employee_id in database.fetch_notified_employee_ids(engine, day.month, day.year):
        logger.debug("HR already notified about %s this month", employee_id)
        return False

    events = leave_service.get_leave_events(record)
    employee_name = data_processor.format_display_name(record.get(config.NAME_COLUMN))

    try:
        delivered = email_service.send_high_leave_notification(record, leave_count, events)
        if not delivered:
            logger.warning("⚠ Leave alert for %s was not delivered; will retry on the next leave", employee_name)
            return False
        database.insert_leave_notification(
            engine, record, employee_name, leave_count, events, day.month, day.year
        )
        database.mark_employee_notified(
            engine, record, employee_name, leave_count, day.month, day.year
        )
    except Exception as exc:
        logger.error("✗ Failed to send leave notification for %s: %s", employee_name, exc)
        return False

    logger.info("Notification sent to HR for employee: %s", employee_name)
    return True


def high_leave_report(engine: Engine, day: Optional[date] = None) -> pd.DataFrame:
    """Build the high-leave report for a day from a fresh snapshot."""
    day = day or datetime.now().date()
    return leave_service.build_high_leave_report(load_snapshot(engine), day)


def export_report(report: pd.DataFrame, file_path: str | Path) -> Path:
    """
    Write a report to an Excel workbook.

    Returns:
        Path of the written file
    """
    path = Path(file_path)
    report.to_excel(path, sheet_name="High Leave Employees", index=False)
    logger.info("Report with %d rows written to %s", len(report), path)
    return path
