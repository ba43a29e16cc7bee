from datetime import date

import pandas as pd
import pytest
from sqlalchemy import text

from dse_attendance.loaders import database
from dse_attendance.pipelines import pipeline
from dse_attendance.transformers import email_service
from dse_attendance.utilities import config
from dse_attendance.utilities.errors import (
    DuplicateLeaveError,
    EmployeeNotFoundError,
    LeaveValidationError,
    NoLeaveRowsError,
    StoreError,
    UnknownDateColumnError,
)

HEADER = ["DSE Name", "Branch", "Type", "TBE", "BE", "Old DSE", "Leave"]
DAY = date(2025, 9, 2)


def _always(answer):
    calls = []

    def confirm(*args):
        calls.append(args)
        return answer

    confirm.calls = calls
    return confirm


@pytest.fixture
def update_spy(monkeypatch):
    calls = []
    original = database.update_leave

    def spy(*args, **kwargs):
        calls.append(args)
        return original(*args, **kwargs)

    monkeypatch.setattr(database, "update_leave", spy)
    return calls


@pytest.fixture
def sent_alerts(monkeypatch):
    alerts = []
    monkeypatch.setattr(config, "NOTIFY_HIGH_LEAVE", True)
    monkeypatch.setattr(config, "HR_RECIPIENTS", ["hr@example.com"])
    monkeypatch.setattr(
        email_service,
        "_send_email_via_smtp",
        lambda recipient, subject, text: alerts.append((recipient, subject)),
    )
    return alerts


def _record(records, record_id):
    return next(r for r in records if r["id"] == record_id)


def test_bulk_import_marks_matched_employee(seeded_engine, leave_sheet, update_spy):
    path = leave_sheet([
        HEADER,
        ["S_Ajay-Chaubepur", "Kanpur", "small", "", "", "", "L"],
        ["Rajesh Kumar", "Kanpur", "medium", "", "", "", ""],
    ])
    confirm = _always(True)

    stats = pipeline.run_bulk_leave_import(seeded_engine, path, DAY, confirm)

    assert confirm.calls == [(1, "02-Sep-25")]
    assert stats.updated == 1
    assert stats.errors == []
    assert len(update_spy) == 1
    assert update_spy[0][1:3] == ("e1", "02-Sep-25")

    ajay = _record(stats.records, "e1")
    assert ajay["02-Sep-25"] == "L"
    assert ajay["02-Sep-25_reason"] == config.BULK_LEAVE_REASON
    assert _record(stats.records, "e3")["02-Sep-25"] is None


def test_bulk_import_reports_unmatched_names(seeded_engine, leave_sheet):
    path = leave_sheet([
        HEADER,
        ["S_Ajay-Chaubepur", "Kanpur", "small", "", "", "", "L"],
        ["Unknown Person", "Kanpur", "small", "", "", "", "L"],
    ])

    plan = pipeline.prepare_bulk_leave(seeded_engine, path)

    assert [m.canonical_name for m in plan.matched] == ["Ajay Chaubepur"]
    assert [m.source_name for m in plan.unmatched] == ["Unknown Person"]


def test_bulk_import_cancelled_writes_nothing(seeded_engine, leave_sheet, update_spy):
    path = leave_sheet([HEADER, ["S_Ajay-Chaubepur", "Kanpur", "small", "", "", "", "L"]])

    stats = pipeline.run_bulk_leave_import(seeded_engine, path, DAY, _always(False))

    assert stats.cancelled
    assert update_spy == []
    records = database.fetch_attendance_records(seeded_engine)
    assert _record(records, "e1")["02-Sep-25"] is None


def test_bulk_import_skips_employees_already_on_leave(seeded_engine, leave_sheet, update_spy):
    path = leave_sheet([
        HEADER,
        ["Mukesh Sahu", "Unnao", "top", "", "", "", "L"],
        ["Ajay Chaubepur", "Kanpur", "small", "", "", "", "L"],
    ])

    stats = pipeline.run_bulk_leave_import(seeded_engine, path, DAY, _always(True), reason="Strike")

    assert stats.skipped == 1
    assert stats.updated == 1
    assert [call[1] for call in update_spy] == ["e1"]
    assert _record(stats.records, "e2")["02-Sep-25_reason"] == "Wedding"


def test_bulk_import_deduplicates_repeated_names(seeded_engine, leave_sheet, update_spy):
    path = leave_sheet([
        HEADER,
        ["S_Ajay-Chaubepur", "Kanpur", "small", "", "", "", "L"],
        ["Ajay Chaubepur", "Kanpur", "small", "", "", "", "L"],
    ])
    confirm = _always(True)

    stats = pipeline.run_bulk_leave_import(seeded_engine, path, DAY, confirm)

    assert confirm.calls == [(1, "02-Sep-25")]
    assert stats.matched == 1
    assert len(update_spy) == 1


def test_bulk_import_collects_update_failures(seeded_engine, leave_sheet, monkeypatch):
    original = database.update_leave

    def flaky(engine, record_id, *args, **kwargs):
        if record_id == "e1":
            raise RuntimeError("lock wait timeout")
        return original(engine, record_id, *args, **kwargs)

    monkeypatch.setattr(database, "update_leave", flaky)
    path = leave_sheet([
        HEADER,
        ["Ajay Chaubepur", "Kanpur", "small", "", "", "", "L"],
        ["Rajesh Kumar", "Kanpur", "medium", "", "", "", "L"],
    ])

    stats = pipeline.run_bulk_leave_import(seeded_engine, path, DAY, _always(True))

    assert stats.updated == 1
    assert len(stats.errors) == 1
    assert "Ajay Chaubepur" in stats.errors[0]
    assert _record(stats.records, "e3")["02-Sep-25"] == "L"


def test_bulk_import_keeps_stats_when_reload_fails(seeded_engine, leave_sheet, monkeypatch):
    path = leave_sheet([HEADER, ["Ajay Chaubepur", "Kanpur", "small", "", "", "", "L"]])
    plan = pipeline.prepare_bulk_leave(seeded_engine, path)

    def unavailable(engine, *args, **kwargs):
        raise StoreError("connection lost")

    monkeypatch.setattr(database, "fetch_attendance_records", unavailable)

    stats = pipeline.apply_bulk_leave(seeded_engine, plan, DAY, _always(True))

    assert stats.updated == 1
    assert len(stats.errors) == 1
    assert "connection lost" in stats.errors[0]
    assert stats.records is plan.records


def test_bulk_import_unknown_date_column(seeded_engine, leave_sheet):
    path = leave_sheet([HEADER, ["Ajay Chaubepur", "Kanpur", "small", "", "", "", "L"]])
    confirm = _always(True)

    with pytest.raises(UnknownDateColumnError):
        pipeline.run_bulk_leave_import(seeded_engine, path, date(2025, 10, 1), confirm)

    assert confirm.calls == []


def test_bulk_import_sheet_without_leave(seeded_engine, leave_sheet):
    path = leave_sheet([HEADER, ["Ajay Chaubepur", "Kanpur", "small", "", "", "", "P"]])

    with pytest.raises(NoLeaveRowsError):
        pipeline.run_bulk_leave_import(seeded_engine, path, DAY, _always(True))


def test_add_leave_records_leave(seeded_engine, monkeypatch):
    monkeypatch.setattr(config, "NOTIFY_HIGH_LEAVE", False)
    confirm = _always(True)

    records = pipeline.add_leave(
        seeded_engine, "Rajesh Kumar", date(2025, 9, 3), " Family function ", confirm, today=DAY
    )

    assert confirm.calls == [("Rajesh Kumar", "03-Sep-25")]
    rajesh = _record(records, "e3")
    assert rajesh["03-Sep-25"] == "L"
    assert rajesh["03-Sep-25_reason"] == "Family function"


@pytest.mark.parametrize(
    "name, day, reason",
    [
        ("Rajesh Kumar", DAY, ""),
        ("Rajesh Kumar", DAY, "   "),
        ("", DAY, "sick"),
        ("Rajesh Kumar", date(2025, 9, 1), "sick"),
        ("Rajesh Kumar", date(2025, 9, 4), "sick"),
    ],
)
def test_add_leave_validation(seeded_engine, name, day, reason):
    with pytest.raises(LeaveValidationError):
        pipeline.add_leave(seeded_engine, name, day, reason, _always(True), today=DAY)


def test_add_leave_unknown_employee(seeded_engine):
    with pytest.raises(EmployeeNotFoundError):
        pipeline.add_leave(seeded_engine, "Nobody Here", DAY, "sick", _always(True), today=DAY)


def test_add_leave_duplicate(seeded_engine):
    with pytest.raises(DuplicateLeaveError):
        pipeline.add_leave(seeded_engine, "W_Mukesh Sahu 2", DAY, "sick", _always(True), today=DAY)


def test_add_leave_store_failure(seeded_engine, monkeypatch):
    monkeypatch.setattr(config, "NOTIFY_HIGH_LEAVE", False)
    with seeded_engine.begin() as conn:
        conn.execute(text(
            "CREATE TRIGGER block_updates BEFORE UPDATE ON dse_attendance "
            "BEGIN SELECT RAISE(ABORT, 'locked'); END"
        ))

    with pytest.raises(StoreError):
        pipeline.add_leave(seeded_engine, "Rajesh Kumar", DAY, "sick", _always(True), today=DAY)


def test_add_leave_cancelled(seeded_engine, update_spy):
    records = pipeline.add_leave(seeded_engine, "Rajesh Kumar", DAY, "sick", _always(False), today=DAY)

    assert records == []
    assert update_spy == []


def test_add_leave_alerts_hr_once_per_month(seeded_engine, sent_alerts):
    pipeline.add_leave(
        seeded_engine, "W_Mukesh Sahu 2", date(2025, 9, 3), "trip", _always(True), today=DAY
    )

    assert sent_alerts == [("hr@example.com", "Leave Alert: W_Mukesh Sahu (3 leaves)")]
    assert database.fetch_notified_employee_ids(seeded_engine, 9, 2025) == {"e2"}

    record = _record(database.fetch_attendance_records(seeded_engine), "e2")
    assert not pipeline.notify_if_high_leave(seeded_engine, record, date(2025, 9, 3), today=DAY)
    assert len(sent_alerts) == 1


def test_no_alert_below_threshold(seeded_engine, sent_alerts):
    pipeline.add_leave(seeded_engine, "Ajay Chaubepur", DAY, "sick", _always(True), today=DAY)

    assert sent_alerts == []
    assert database.fetch_notified_employee_ids(seeded_engine, 9, 2025) == set()


HIGH_LEAVE_RECORD = {
    "id": "e2",
    "dse_name": "W_Mukesh Sahu 2",
    "branch": "Unnao",
    "01-Sep-25": "L",
    "02-Sep-25": "L",
    "03-Sep-25": "L",
}


def test_undelivered_alert_is_not_recorded(seeded_engine, monkeypatch):
    monkeypatch.setattr(config, "NOTIFY_HIGH_LEAVE", True)
    monkeypatch.setattr(config, "HR_RECIPIENTS", ["hr@example.com"])

    def smtp_down(recipient, subject, message_text):
        raise RuntimeError("Email sending failed: SMTPServerDisconnected")

    monkeypatch.setattr(email_service, "_send_email_via_smtp", smtp_down)

    assert not pipeline.notify_if_high_leave(seeded_engine, HIGH_LEAVE_RECORD, DAY, today=DAY)
    assert database.fetch_notified_employee_ids(seeded_engine, 9, 2025) == set()


def test_alert_without_recipients_is_not_recorded(seeded_engine, monkeypatch):
    monkeypatch.setattr(config, "NOTIFY_HIGH_LEAVE", True)
    monkeypatch.setattr(config, "HR_RECIPIENTS", [])

    assert not pipeline.notify_if_high_leave(seeded_engine, HIGH_LEAVE_RECORD, DAY, today=DAY)
    assert database.fetch_notified_employee_ids(seeded_engine, 9, 2025) == set()


def test_no_alert_for_other_month(seeded_engine, sent_alerts):
    record = {"id": "e9", "dse_name": "A", "01-Sep-25": "L", "02-Sep-25": "L", "03-Sep-25": "L"}

    assert not pipeline.notify_if_high_leave(seeded_engine, record, DAY, today=date(2025, 10, 1))
    assert sent_alerts == []


def test_high_leave_report_and_export(seeded_engine, tmp_path):
    report = pipeline.high_leave_report(seeded_engine, DAY)

    assert list(report["Employee Name"]) == ["W_Mukesh Sahu"]
    assert list(report["Leaves This Month"]) == [2]

    path = pipeline.export_report(report, tmp_path / "report.xlsx")
    exported = pd.read_excel(path, sheet_name="High Leave Employees")
    assert list(exported.columns) == config.REPORT_COLUMNS
    assert exported.loc[0, "Today's Reason"] == "Wedding"
