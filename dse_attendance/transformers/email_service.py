"""Email notifications to HR about employee leave."""
import logging
import smtplib
from datetime import date
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Mapping, Optional, Sequence

import pandas as pd

from dse_attendance.utilities import config
from dse_attendance.utilities.models import LeaveEvent
from dse_attendance.transformers import data_processor

logger = logging.getLogger(__name__)


def build_high_leave_message(
    record: Mapping[str, Any],
    leave_count: int,
    events: Sequence[LeaveEvent],
) -> str:
    """
    Build the HR alert for an employee who reached the monthly leave limit.

    Args:
        record: Attendance row of the employee
        leave_count: Leave days this month
        events: Leave days to list

    Returns:
        Plain-text email body
    """
    name = data_processor.format_display_name(record.get(config.NAME_COLUMN))
    branch = record.get(config.BRANCH_COLUMN) or "Unknown"

    body_lines = [
        "LEAVE NOTIFICATION ALERT",
        "",
        f"Employee {name} from {branch} branch has reached {leave_count} leaves this month.",
        "",
        "Leave details:",
    ]
    body_lines.extend(f"  {event.date}: {event.reason}" for event in events)
    body_lines.append("")
    body_lines.append("Please review this employee's leave pattern.")
    return "\n".join(body_lines)


def build_report_message(report: pd.DataFrame, day: date) -> str:
    """
    Build the daily high-leave report body.

    Args:
        report: DataFrame from leave_service.build_high_leave_report
        day: Report date

    Returns:
        Plain-text email body
    """
    body_lines = [
        f"HIGH LEAVE EMPLOYEES REPORT - {day.strftime('%B %d, %Y')}",
        f"Employees on leave today with {config.REPORT_MIN_MONTHLY_LEAVES}+ leaves this month: {len(report)}",
        "",
    ]

    for _, row in report.iterrows():
        tbe = row["TBE"] if pd.notna(row["TBE"]) and row["TBE"] else "N/A"
        be = row["BE"] if pd.notna(row["BE"]) and row["BE"] else "N/A"
        reason = row["Today's Reason"]
        body_lines.append(f"* {row['Employee Name']} ({row['Branch']})")
        body_lines.append(f"  Type: {row['Type']} | TBE: {tbe} | BE: {be}")
        body_lines.append(f"  Leaves: {row['Leaves This Month']} | Reason: {reason}")
        body_lines.append("")

    return "\n".join(body_lines).rstrip() + "\n"


def _send_email_via_smtp(recipient: str, subject: str, message_text: str) -> None:
    """
    Send a plain-text email through the configured SMTP server.

    Args:
        recipient: Email recipient address
        subject: Subject line
        message_text: Email body text

    Raises:
        RuntimeError: If email sending fails
    """
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((str(Header(config.EMAIL_FROM_NAME, "utf-8")), config.EMAIL_FROM))
    msg["To"] = recipient
    msg.attach(MIMEText(message_text, "plain", "utf-8"))

    try:
        logger.debug("Connecting to SMTP server %s:%s", config.SMTP_SERVER, config.SMTP_PORT)
        with smtplib.SMTP(config.SMTP_SERVER, config.SMTP_PORT, timeout=30) as server:
            server.starttls()
            if config.SMTP_USERNAME:
                logger.debug("Logging in as %s", config.SMTP_USERNAME)
                server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD)
            server.sendmail(config.EMAIL_FROM, recipient, msg.as_string())
    except smtplib.SMTPAuthenticationError as exc:
        raise RuntimeError(
            f"SMTP Authentication failed: {exc}. Check DSE_SMTP_USERNAME and DSE_SMTP_PASSWORD."
        ) from exc
    except (smtplib.SMTPException, OSError) as exc:
        raise RuntimeError(f"Email sending failed: {type(exc).__name__} - {exc}") from exc


def _send_to_hr(subject: str, body: str, recipients: Optional[Sequence[str]] = None) -> int:
    targets = list(recipients) if recipients is not None else config.HR_RECIPIENTS
    if not targets:
        logger.info("No HR recipients configured; skipping '%s'", subject)
        return 0

    success_count = 0
    for recipient in targets:
        try:
            _send_email_via_smtp(recipient, subject, body)
            logger.info("✓ '%s' sent to %s", subject, recipient)
            success_count += 1
        except RuntimeError as exc:
            logger.error("✗ Failed to send '%s' to %s: %s", subject, recipient, exc)

    logger.info("Email '%s' delivered to %d/%d recipients", subject, success_count, len(targets))
    return success_count


def send_high_leave_notification(
    record: Mapping[str, Any],
    leave_count: int,
    events: Sequence[LeaveEvent],
    recipients: Optional[Sequence[str]] = None,
) -> int:
    """
    Alert HR that an employee reached the monthly leave threshold.

    Returns:
        Number of recipients the alert was delivered to
    """
    name = data_processor.format_display_name(record.get(config.NAME_COLUMN))
    subject = f"Leave Alert: {name} ({leave_count} leaves)"
    body = build_high_leave_message(record, leave_count, events)
    return _send_to_hr(subject, body, recipients)


def send_high_leave_report(
    report: pd.DataFrame,
    day: date,
    recipients: Optional[Sequence[str]] = None,
) -> int:
    """
    Email the daily high-leave report to HR.

    Returns:
        Number of recipients the report was delivered to
    """
    subject = f"High Leave Employees Report - {day.isoformat()}"
    return _send_to_hr(subject, build_report_message(report, day), recipients)
