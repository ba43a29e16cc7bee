"""Exceptions raised by the DSE leave tracker."""
from typing import Any, List, Sequence


class LeaveError(Exception):
    """Base exception for leave tracking failures."""


class StoreError(LeaveError):
    """Raised when the attendance table cannot be read or written."""


class SpreadsheetReadError(LeaveError):
    """Raised when an uploaded spreadsheet cannot be opened or parsed."""


class NoLeaveRowsError(LeaveError):
    """Raised when a spreadsheet was read but no leave rows were found."""

    def __init__(
        self,
        name_column: int,
        leave_column: int,
        sample_rows: Sequence[Sequence[Any]],
    ):
        self.name_column = name_column
        self.leave_column = leave_column
        self.sample_rows: List[List[Any]] = [list(row) for row in sample_rows]
        super().__init__(
            "No employees marked 'L' were found in the spreadsheet "
            f"(name column {name_column}, leave column {leave_column}). "
            f"First rows scanned: {self.sample_rows}"
        )


class LeaveValidationError(LeaveError):
    """Raised when a leave request is incomplete or outside the allowed dates."""


class EmployeeNotFoundError(LeaveError):
    """Raised when no attendance row exists for the requested employee."""


class DuplicateLeaveError(LeaveError):
    """Raised when the employee is already marked on leave for that date."""


class UnknownDateColumnError(LeaveError):
    """Raised when the attendance table has no column for the requested date."""
