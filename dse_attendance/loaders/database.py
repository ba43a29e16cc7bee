"""Database operations for the DSE attendance table."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

import pandas as pd
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine

from dse_attendance.utilities import config
from dse_attendance.utilities.errors import StoreError
from dse_attendance.utilities.models import LeaveEvent

logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Hide credentials in a database URL for logging."""
    if "@" in url and "://" in url:
        scheme, rest = url.split("://", 1)
        if "@" in rest:
            host_part = rest.split("@", 1)[1]
            return f"{scheme}://***:***@{host_part}"
    return url


def create_db_engine(db_url: Optional[str] = None) -> Engine:
    """
    Create and return a database engine.

    Args:
        db_url: Database URL (uses config default if not provided)

    Returns:
        SQLAlchemy Engine instance

    Raises:
        StoreError: If the connection test fails
    """
    url = db_url or config.DB_URL
    masked_url = _mask_url(url)

    try:
        logger.debug("Creating database engine: %s", masked_url)
        engine = create_engine(url, pool_pre_ping=True, pool_recycle=3600, future=True)
        logger.debug("Testing database connection with SELECT 1...")
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.debug("✓ Database connection test successful")
        return engine
    except Exception as exc:
        logger.error("✗ Database connection failed to %s", masked_url)
        logger.error("Error: %s - %s", type(exc).__name__, exc)
        raise StoreError(f"Failed to connect to database: {type(exc).__name__} - {exc}") from exc


def _quote_identifier(engine: Engine, name: str) -> str:
    """Quote a table or column name for the engine's dialect."""
    return engine.dialect.identifier_preparer.quote(str(name))


def get_table_columns(engine: Engine, table_name: str = config.ATTENDANCE_TABLE) -> List[str]:
    """
    List the column names of a table.

    Raises:
        StoreError: If the table cannot be inspected
    """
    try:
        return [column["name"] for column in inspect(engine).get_columns(table_name)]
    except Exception as exc:
        logger.error("Failed to inspect table %s: %s", table_name, exc)
        raise StoreError(f"Could not read columns of {table_name}: {exc}") from exc


def _frame_to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    cleaned = df.astype(object).where(pd.notna(df), None)
    return cleaned.to_dict(orient="records")


def fetch_attendance_records(
    engine: Engine,
    table_name: str = config.ATTENDANCE_TABLE,
) -> List[Dict[str, Any]]:
    """
    Fetch every attendance row, newest first when rows carry created_at.

    Args:
        engine: Database engine
        table_name: Attendance table

    Returns:
        List of row dictionaries, NULLs as None

    Raises:
        StoreError: If the table cannot be read
    """
    columns = get_table_columns(engine, table_name)
    query = f"SELECT * FROM {_quote_identifier(engine, table_name)}"
    if config.CREATED_AT_COLUMN in columns:
        query += f" ORDER BY {_quote_identifier(engine, config.CREATED_AT_COLUMN)} DESC"

    try:
        df = pd.read_sql(text(query), engine)
    except Exception as exc:
        logger.error("Failed to read %s: %s", table_name, exc)
        raise StoreError(f"Could not fetch attendance data: {exc}") from exc

    records = _frame_to_records(df)
    logger.debug("Fetched %d attendance rows from %s", len(records), table_name)
    return records


def fetch_dse_names(engine: Engine, table_name: str = config.ATTENDANCE_TABLE) -> List[str]:
    """Fetch the distinct non-null DSE names, sorted."""
    name_column = _quote_identifier(engine, config.NAME_COLUMN)
    query = text(
        f"SELECT DISTINCT {name_column} AS name FROM {_quote_identifier(engine, table_name)} "
        f"WHERE {name_column} IS NOT NULL ORDER BY {name_column}"
    )
    try:
        with engine.connect() as conn:
            names = [row[0] for row in conn.execute(query)]
    except Exception as exc:
        logger.error("Failed to read DSE names: %s", exc)
        raise StoreError(f"Could not fetch DSE names: {exc}") from exc

    return [name for name in names if name]


def update_leave(
    engine: Engine,
    record_id: Any,
    date_column: str,
    reason: str,
    columns: Optional[Sequence[str]] = None,
    table_name: str = config.ATTENDANCE_TABLE,
) -> int:
    """
    Mark one attendance row as on leave for a date.

    Writes the leave mark into the date column and the reason into the
    matching "_reason" column, in a single transaction.

    Args:
        engine: Database engine
        record_id: Primary key of the row
        date_column: Existing date column, e.g. "02-Sep-25"
        reason: Leave reason text
        columns: Known table columns (inspected when not given)
        table_name: Attendance table

    Returns:
        Number of rows updated
    """
    known_columns = set(columns) if columns is not None else set(get_table_columns(engine, table_name))
    reason_column = f"{date_column}{config.REASON_SUFFIX}"

    assignments = [f"{_quote_identifier(engine, date_column)} = :mark"]
    params: Dict[str, Any] = {"mark": config.LEAVE_MARK, "record_id": record_id}

    if reason_column in known_columns:
        assignments.append(f"{_quote_identifier(engine, reason_column)} = :reason")
        params["reason"] = reason
    else:
        logger.warning("Table %s has no column %s; reason not stored", table_name, reason_column)

    update_stmt = text(
        f"UPDATE {_quote_identifier(engine, table_name)} "
        f"SET {', '.join(assignments)} "
        f"WHERE {_quote_identifier(engine, config.ID_COLUMN)} = :record_id"
    )

    try:
        with engine.begin() as conn:
            result = conn.execute(update_stmt, params)
    except Exception as exc:
        logger.error("Failed to mark %s on leave for %s: %s", record_id, date_column, exc)
        raise StoreError(f"Could not update leave for {record_id} on {date_column}: {exc}") from exc

    return result.rowcount


def fetch_notified_employee_ids(engine: Engine, month: int, year: int) -> Set[str]:
    """
    Fetch the employees already alerted to HR for a month.

    Returns:
        Set of employee ids as strings (empty if the table cannot be read)
    """
    query = text(
        f"SELECT employee_id FROM {_quote_identifier(engine, config.NOTIFICATION_STATUS_TABLE)} "
        "WHERE month = :month AND year = :year"
    )
    try:
        df = pd.read_sql(query, engine, params={"month": month, "year": year})
    except Exception as exc:
        logger.warning("Failed to read notification status: %s", exc)
        return set()

    return {str(value) for value in df["employee_id"].dropna()}


def insert_leave_notification(
    engine: Engine,
    record: Dict[str, Any],
    employee_name: str,
    leave_count: int,
    events: Sequence[LeaveEvent],
    month: int,
    year: int,
) -> None:
    """Store the HR alert that was sent for an employee."""
    payload = pd.DataFrame([{
        "employee_id": str(record.get(config.ID_COLUMN)),
        "employee_name": employee_name,
        "branch": record.get(config.BRANCH_COLUMN) or "Unknown",
        "total_leaves": leave_count,
        "leave_dates": ", ".join(event.date for event in events),
        "leave_reasons": " | ".join(event.reason for event in events),
        "hr_email": ", ".join(config.HR_RECIPIENTS),
        "month": month,
        "year": year,
    }])
    payload.to_sql(name=config.NOTIFICATION_TABLE, con=engine, if_exists="append", index=False)


def mark_employee_notified(
    engine: Engine,
    record: Dict[str, Any],
    employee_name: str,
    leave_count: int,
    month: int,
    year: int,
) -> None:
    """Record that an employee has been alerted for a month."""
    payload = pd.DataFrame([{
        "employee_id": str(record.get(config.ID_COLUMN)),
        "employee_name": employee_name,
        "leave_count": leave_count,
        "notified_at": datetime.now().isoformat(timespec="seconds"),
        "month": month,
        "year": year,
    }])
    payload.to_sql(name=config.NOTIFICATION_STATUS_TABLE, con=engine, if_exists="append", index=False)
