"""Data models for the DSE leave tracker."""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional


@dataclass
class DateWindow:
    """Represents a date range for processing."""
    start: date
    end: date
    description: str

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class LeaveEvent:
    """A single leave day of one employee."""
    date: str
    reason: str


@dataclass(frozen=True)
class ExtractedLeave:
    """A spreadsheet row flagged as on leave."""
    name: str
    has_leave: bool = True


@dataclass
class ExtractionResult:
    """Leave rows pulled from a spreadsheet plus the layout that was detected."""
    entries: List[ExtractedLeave] = field(default_factory=list)
    name_column: int = 0
    leave_column: int = 6
    header_detected: bool = False
    start_row: int = 0
    sample_rows: List[List[Any]] = field(default_factory=list)


@dataclass(frozen=True)
class NameMatchResult:
    """Outcome of reconciling one spreadsheet name with the attendance table."""
    source_name: str
    matched: bool
    canonical_name: Optional[str] = None
    record_id: Any = None


@dataclass
class BulkLeavePlan:
    """Everything needed to confirm and apply a spreadsheet leave import."""
    extraction: ExtractionResult
    matches: List[NameMatchResult] = field(default_factory=list)
    records: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def matched(self) -> List[NameMatchResult]:
        return [match for match in self.matches if match.matched]

    @property
    def unmatched(self) -> List[NameMatchResult]:
        return [match for match in self.matches if not match.matched]


@dataclass
class BulkLeaveStats:
    """Statistics from a bulk leave import."""
    date_key: str = ""
    extracted: int = 0
    matched: int = 0
    updated: int = 0
    skipped: int = 0
    cancelled: bool = False
    unmatched: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    records: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class LeaveStatistics:
    """Headline leave figures for one month."""
    total_employees: int = 0
    total_leaves: int = 0
    average_leaves: float = 0.0
    high_leave_employees: int = 0
