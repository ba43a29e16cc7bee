"""Business logic for leave aggregation and dashboard statistics."""
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from dse_attendance.utilities import config, utils
from dse_attendance.utilities.models import LeaveEvent, LeaveStatistics
from dse_attendance.transformers import data_processor

logger = logging.getLogger(__name__)

AttendanceRow = Mapping[str, Any]


def _is_leave_entry(key: str, value: Any) -> bool:
    return not str(key).endswith(config.REASON_SUFFIX) and value == config.LEAVE_MARK


def calculate_total_leaves(record: AttendanceRow) -> int:
    """Count every column of the record holding the leave mark."""
    return sum(1 for key, value in record.items() if _is_leave_entry(key, value))


def _event_sort_key(event: LeaveEvent):
    parsed = utils.parse_date_key(event.date)
    if parsed is None:
        return (0, date.min, event.date)
    return (1, parsed, event.date)


def get_leave_events(record: AttendanceRow) -> List[LeaveEvent]:
    """
    List the leave days of one employee, most recent first.

    Columns that are not D-Mon-YY dates are placed after all dated
    leaves, ordered by column name descending.

    Args:
        record: Attendance row

    Returns:
        LeaveEvent list
    """
    events = []
    for key, value in record.items():
        if not _is_leave_entry(key, value):
            continue
        reason = record.get(f"{key}{config.REASON_SUFFIX}") or config.DEFAULT_LEAVE_REASON
        events.append(LeaveEvent(date=key, reason=str(reason)))

    return sorted(events, key=_event_sort_key, reverse=True)


def count_leaves_in_period(record: AttendanceRow, month: int, year: int) -> int:
    """
    Count leave days falling in a given month.

    Args:
        record: Attendance row
        month: Month number 1-12
        year: Four-digit year

    Returns:
        Number of leave days in that month
    """
    count = 0
    for event in get_leave_events(record):
        parsed = utils.parse_date_key(event.date)
        if parsed is not None and parsed.month == month and parsed.year == year:
            count += 1
    return count


def employees_on_leave(records: Sequence[AttendanceRow], date_key: str) -> List[AttendanceRow]:
    """Return the records marked on leave for one date column."""
    return [record for record in records if record.get(date_key) == config.LEAVE_MARK]


def process_attendance(
    records: Sequence[AttendanceRow],
    month: int,
    year: int,
) -> List[Dict[str, Any]]:
    """
    Attach total_leaves and leaves_in_period to every record.

    Returns:
        New dictionaries; the input records are left untouched
    """
    processed = []
    for record in records:
        row = dict(record)
        row["total_leaves"] = calculate_total_leaves(record)
        row["leaves_in_period"] = count_leaves_in_period(record, month, year)
        processed.append(row)
    return processed


def filter_records(
    records: Sequence[AttendanceRow],
    search: Optional[str] = None,
    branch: Optional[str] = None,
    dse_type: Optional[str] = None,
) -> List[AttendanceRow]:
    """
    Filter records the way the dashboard search box and dropdowns do.

    Args:
        records: Attendance rows
        search: Case-insensitive fragment of the display name
        branch: Exact branch
        dse_type: Exact DSE type

    Returns:
        Matching records in input order
    """
    needle = (search or "").lower()
    filtered = []
    for record in records:
        display = data_processor.format_display_name(record.get(config.NAME_COLUMN)).lower()
        if needle and needle not in display:
            continue
        if branch and record.get(config.BRANCH_COLUMN) != branch:
            continue
        if dse_type and record.get(config.TYPE_COLUMN) != dse_type:
            continue
        filtered.append(record)
    return filtered


def summarize_period(records: Sequence[AttendanceRow], month: int, year: int) -> LeaveStatistics:
    """
    Compute the headline figures for one month.

    Args:
        records: Attendance rows
        month: Month number 1-12
        year: Four-digit year

    Returns:
        LeaveStatistics for the month
    """
    counts = [count_leaves_in_period(record, month, year) for record in records]
    total_employees = len(counts)
    total_leaves = sum(counts)
    average = round(total_leaves / total_employees, 1) if total_employees else 0.0
    high_leave = sum(1 for count in counts if count > config.HIGH_LEAVE_THRESHOLD)

    return LeaveStatistics(
        total_employees=total_employees,
        total_leaves=total_leaves,
        average_leaves=average,
        high_leave_employees=high_leave,
    )


def branch_leave_totals(records: Sequence[AttendanceRow]) -> pd.DataFrame:
    """All-time leave totals per branch, in order of first appearance."""
    if not records:
        return pd.DataFrame(columns=["branch", "leaves"])

    frame = pd.DataFrame({
        "branch": [record.get(config.BRANCH_COLUMN) for record in records],
        "leaves": [calculate_total_leaves(record) for record in records],
    })
    frame["branch"] = frame["branch"].fillna("Unknown")
    return frame.groupby("branch", sort=False, as_index=False)["leaves"].sum()


def leave_distribution(records: Sequence[AttendanceRow]) -> Dict[str, int]:
    """Split employees into the 0-2 and 3+ all-time leave buckets."""
    totals = [calculate_total_leaves(record) for record in records]
    low = sum(1 for total in totals if total <= config.DISTRIBUTION_CUTOFF)
    return {
        f"0-{config.DISTRIBUTION_CUTOFF} Leaves": low,
        f"{config.DISTRIBUTION_CUTOFF + 1}+ Leaves": len(totals) - low,
    }


def top_leave_takers(
    records: Sequence[AttendanceRow],
    limit: int = config.TOP_LEAVE_LIMIT,
) -> List[AttendanceRow]:
    """Records with the most leaves overall, highest first."""
    ranked = sorted(records, key=calculate_total_leaves, reverse=True)
    return ranked[:limit]


def build_high_leave_report(
    records: Sequence[AttendanceRow],
    day: date,
    min_leaves: int = config.REPORT_MIN_MONTHLY_LEAVES,
) -> pd.DataFrame:
    """
    Build the daily high-leave report.

    Lists employees on leave on `day` who already have at least
    `min_leaves` leave days in that month.

    Args:
        records: Attendance rows
        day: Report date
        min_leaves: Minimum leave days in the month

    Returns:
        DataFrame with config.REPORT_COLUMNS, most leaves first
    """
    rows = []
    seen = set()
    for date_key in utils.date_key_candidates(day):
        reason_key = f"{date_key}{config.REASON_SUFFIX}"
        for record in employees_on_leave(records, date_key):
            if id(record) in seen:
                continue
            seen.add(id(record))
            leaves = count_leaves_in_period(record, day.month, day.year)
            if leaves < min_leaves:
                continue
            rows.append({
                "Employee Name": data_processor.format_display_name(record.get(config.NAME_COLUMN)),
                "Branch": record.get(config.BRANCH_COLUMN),
                "Type": record.get(config.TYPE_COLUMN),
                "TBE": record.get("tbe"),
                "BE": record.get("be"),
                "Leaves This Month": leaves,
                "Today's Reason": record.get(reason_key) or config.DEFAULT_LEAVE_REASON,
            })

    if not rows:
        return pd.DataFrame(columns=config.REPORT_COLUMNS)

    report = pd.DataFrame(rows, columns=config.REPORT_COLUMNS)
    report = report.sort_values("Leaves This Month", ascending=False, kind="stable")
    logger.info("High-leave report for %s: %d employees", day.isoformat(), len(report))
    return report.reset_index(drop=True)
