"""Configuration constants and settings for the DSE leave tracker."""
import os
from typing import FrozenSet, List, Tuple


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


# ============================================================================
# DATABASE CONFIGURATION
# ============================================================================

DB_URL = os.getenv(
    "DSE_DB_URL",
    "mysql+pymysql://dashboard@localhost:3306/dse_dashboard",
)

ATTENDANCE_TABLE = os.getenv("DSE_ATTENDANCE_TABLE", "dse_attendance")
NOTIFICATION_TABLE = "leave_notifications"
NOTIFICATION_STATUS_TABLE = "notification_status"

ID_COLUMN = "id"
NAME_COLUMN = "dse_name"
BRANCH_COLUMN = "branch"
TYPE_COLUMN = "dse_type"
CREATED_AT_COLUMN = "created_at"

# ============================================================================
# EMAIL/MAILER CONFIGURATION
# ============================================================================

SMTP_SERVER = os.getenv("DSE_SMTP_SERVER", "localhost")
SMTP_PORT = int(os.getenv("DSE_SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("DSE_SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("DSE_SMTP_PASSWORD", "")
EMAIL_FROM = os.getenv("DSE_EMAIL_FROM", "leave-tracker@localhost")
EMAIL_FROM_NAME = "DSE Leave Tracker"

# HR recipients for high-leave alerts and reports
HR_RECIPIENTS = _env_list("DSE_HR_RECIPIENTS")

NOTIFY_HIGH_LEAVE = bool(int(os.getenv("DSE_NOTIFY_HIGH_LEAVE", "1")))

# ============================================================================
# ATTENDANCE COLUMNS
# ============================================================================

LEAVE_MARK = "L"
REASON_SUFFIX = "_reason"
DEFAULT_LEAVE_REASON = "No reason provided"
BULK_LEAVE_REASON = "Marked on leave via spreadsheet upload"

MONTH_ABBREVIATIONS: Tuple[str, ...] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# ============================================================================
# NAME MATCHING
# ============================================================================

NAME_PREFIX_PATTERN = r"^[MSTW]_"
SEPARATOR_MATCH_MIN_LENGTH = 3
CONTAINMENT_MATCH_MIN_LENGTH = 5
CONTAINMENT_MATCH_MIN_RATIO = 0.7

# ============================================================================
# SPREADSHEET LAYOUT
# ============================================================================

SPREADSHEET_EXTENSIONS: FrozenSet[str] = frozenset({".xlsx", ".xls"})
DEFAULT_NAME_COLUMN = 0
DEFAULT_LEAVE_COLUMN = 6
HEADER_NAME_TOKEN = "dse name"
HEADER_LEAVE_TOKEN = "leave"
HEADER_LIKE_NAMES: FrozenSet[str] = frozenset({"dse name", "name", "dse type", "old dse"})
DIAGNOSTIC_SAMPLE_ROWS = 5

# ============================================================================
# BUSINESS RULES
# ============================================================================

# More than this many leaves in a month marks a high-leave employee on the dashboard
HIGH_LEAVE_THRESHOLD = 3

# HR is alerted once an employee reaches this many leaves in the current month
NOTIFY_LEAVE_THRESHOLD = 3

# Daily high-leave report: on leave today with at least this many leaves this month
REPORT_MIN_MONTHLY_LEAVES = 2

# Leave distribution buckets: "0-2 Leaves" vs "3+ Leaves"
DISTRIBUTION_CUTOFF = 2

TOP_LEAVE_LIMIT = 10

# Single leave entries are accepted for today or up to this many days ahead
MAX_LEAVE_DAYS_AHEAD = 1

REPORT_COLUMNS = [
    "Employee Name",
    "Branch",
    "Type",
    "TBE",
    "BE",
    "Leaves This Month",
    "Today's Reason",
]
