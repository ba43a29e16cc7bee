"""Spreadsheet reading and leave-row extraction for bulk leave imports."""
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import pandas as pd

from dse_attendance.utilities import config
from dse_attendance.utilities.errors import NoLeaveRowsError, SpreadsheetReadError
from dse_attendance.utilities.models import ExtractedLeave, ExtractionResult

logger = logging.getLogger(__name__)


def read_spreadsheet_rows(file_path: str | Path) -> List[List[Any]]:
    """
    Read the first sheet of a workbook as raw rows.

    Args:
        file_path: Path to an .xlsx or .xls file

    Returns:
        List of rows, blank cells as None

    Raises:
        SpreadsheetReadError: If the file is missing, not a spreadsheet,
            or cannot be parsed
    """
    path = Path(file_path)

    if not path.exists():
        raise SpreadsheetReadError(f"File {path} does not exist")

    if path.suffix.lower() not in config.SPREADSHEET_EXTENSIONS:
        raise SpreadsheetReadError(
            f"File {path} is not an Excel workbook; upload an .xlsx or .xls file"
        )

    try:
        frame = pd.read_excel(path, sheet_name=0, header=None, dtype=object)
    except ImportError as exc:
        raise SpreadsheetReadError(
            f"File {path} needs an Excel engine that is not installed: {exc}"
        ) from exc
    except Exception as exc:
        raise SpreadsheetReadError(
            f"File {path} could not be read; it may be corrupted or password protected: {exc}"
        ) from exc

    frame = frame.astype(object).where(pd.notna(frame), None)
    rows = frame.values.tolist()
    logger.info("Read %d rows from %s", len(rows), path.name)
    return rows


def _cell_text(cell: Any) -> str:
    if cell is None:
        return ""
    return str(cell).strip()


def _cell_at(row: Sequence[Any], index: int) -> Any:
    return row[index] if 0 <= index < len(row) else None


def detect_header(first_row: Sequence[Any]) -> bool:
    """
    Decide whether the first row of the sheet is a header row.

    Args:
        first_row: Cells of row 0

    Returns:
        True if data starts on the next row
    """
    lowered = [_cell_text(cell).lower() for cell in first_row]
    if any(config.HEADER_NAME_TOKEN in cell for cell in lowered):
        return True
    if lowered and lowered[0] == "name":
        return True
    return any(config.HEADER_LEAVE_TOKEN in cell for cell in lowered)


def detect_columns(header_row: Optional[Sequence[Any]]) -> Tuple[int, int]:
    """
    Locate the name and leave-flag columns.

    Defaults to column 0 for names and column 6 for the leave flag. Header
    cells that read exactly "DSE Name" or "Leave" move the respective
    column; the right-most such cell wins.

    Args:
        header_row: Header cells, or None when the sheet has no header

    Returns:
        Tuple of (name_column, leave_column)
    """
    name_column = config.DEFAULT_NAME_COLUMN
    leave_column = config.DEFAULT_LEAVE_COLUMN

    if not header_row:
        return name_column, leave_column

    lowered = [_cell_text(cell).lower() for cell in header_row]

    if config.HEADER_NAME_TOKEN in (lowered[0] if lowered else ""):
        name_column = 0
    if len(lowered) > 6 and config.HEADER_LEAVE_TOKEN in lowered[6]:
        leave_column = 6

    for index, cell in enumerate(lowered):
        if cell == config.HEADER_NAME_TOKEN:
            name_column = index
        if cell == config.HEADER_LEAVE_TOKEN:
            leave_column = index

    return name_column, leave_column


def is_leave_flag(cell: Any) -> bool:
    """A cell marks leave when it reads "L" (any case, trimmed) or is boolean True."""
    if isinstance(cell, bool):
        return cell
    if isinstance(cell, str):
        return cell.strip().upper() == config.LEAVE_MARK
    return False


def extract_leave_rows(rows: Sequence[Sequence[Any]]) -> ExtractionResult:
    """
    Pull the employees marked on leave out of raw spreadsheet rows.

    Rows without a name, stray header rows and rows whose flag cell is not
    a leave mark are dropped.

    Args:
        rows: Raw rows from read_spreadsheet_rows

    Returns:
        ExtractionResult with the leave entries and detected layout
    """
    if not rows:
        return ExtractionResult(
            name_column=config.DEFAULT_NAME_COLUMN,
            leave_column=config.DEFAULT_LEAVE_COLUMN,
        )

    header_detected = detect_header(rows[0])
    name_column, leave_column = detect_columns(rows[0] if header_detected else None)
    start_row = 1 if header_detected else 0

    entries: List[ExtractedLeave] = []
    for row in rows[start_row:]:
        name = _cell_text(_cell_at(row, name_column))
        if not name or name.lower() in config.HEADER_LIKE_NAMES:
            continue
        if is_leave_flag(_cell_at(row, leave_column)):
            entries.append(ExtractedLeave(name=name, has_leave=True))

    logger.info(
        "Extracted %d leave rows (header=%s, name column %d, leave column %d)",
        len(entries),
        header_detected,
        name_column,
        leave_column,
    )

    return ExtractionResult(
        entries=entries,
        name_column=name_column,
        leave_column=leave_column,
        header_detected=header_detected,
        start_row=start_row,
        sample_rows=[list(row) for row in rows[start_row:start_row + config.DIAGNOSTIC_SAMPLE_ROWS]],
    )


def load_leave_sheet(file_path: str | Path) -> ExtractionResult:
    """
    Read a leave spreadsheet and extract the rows marked on leave.

    Args:
        file_path: Path to the uploaded workbook

    Returns:
        ExtractionResult with at least one entry

    Raises:
        SpreadsheetReadError: If the workbook cannot be read
        NoLeaveRowsError: If no row is marked on leave
    """
    rows = read_spreadsheet_rows(file_path)
    result = extract_leave_rows(rows)

    if not result.entries:
        logger.warning(
            "No leave rows found in %s (name column %d, leave column %d)",
            Path(file_path).name,
            result.name_column,
            result.leave_column,
        )
        raise NoLeaveRowsError(result.name_column, result.leave_column, result.sample_rows)

    return result
