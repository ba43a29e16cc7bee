"""Name cleaning, normalization, and reconciliation for the leave tracker."""
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from dse_attendance.utilities import config
from dse_attendance.utilities.models import ExtractedLeave, NameMatchResult

logger = logging.getLogger(__name__)

_PREFIX_RE = re.compile(config.NAME_PREFIX_PATTERN, re.IGNORECASE)
_DOT_DIGIT_SUFFIX_RE = re.compile(r"\.\d.*$", re.DOTALL)
_SPACED_INDEX_RE = re.compile(r"\s+\d+$")
_TRAILING_DIGITS_RE = re.compile(r"\d+$")
_TRAILING_DOTS_RE = re.compile(r"\.+$")
_SEPARATORS_RE = re.compile(r"[\s_-]+")


def _normalize_once(value: str) -> str:
    value = _PREFIX_RE.sub("", value)
    value = _DOT_DIGIT_SUFFIX_RE.sub("", value)
    value = _SPACED_INDEX_RE.sub("", value)
    value = _TRAILING_DIGITS_RE.sub("", value)
    value = _TRAILING_DOTS_RE.sub("", value)
    return value.strip().lower()


def normalize_name(name: Optional[str]) -> str:
    """
    Reduce a free-text DSE name to its comparison key.

    Strips the S_/M_/T_/W_ prefix, phone-number style ".123" suffixes,
    trailing indexes and dots, then trims and lower-cases. The steps are
    repeated until the value stops changing.

    Args:
        name: Raw name from the database or a spreadsheet

    Returns:
        Normalized name ("" for empty input)
    """
    if not name:
        return ""

    current = str(name)
    while True:
        cleaned = _normalize_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


def format_display_name(name: Optional[str]) -> str:
    """
    Format a DSE name for reports and search.

    Args:
        name: Raw dse_name value

    Returns:
        Name without the S_ prefix, phone suffix and trailing digits
    """
    if not name:
        return "Unknown"

    formatted = str(name)
    if formatted.startswith("S_"):
        formatted = formatted[2:]

    last_dot = formatted.rfind(".")
    if last_dot > 0:
        formatted = formatted[:last_dot]

    formatted = _TRAILING_DIGITS_RE.sub("", formatted)
    return formatted.strip()


def _strip_separators(value: str) -> str:
    return _SEPARATORS_RE.sub("", value)


def match_name(source_name: Optional[str], canonical_names: Sequence[str]) -> NameMatchResult:
    """
    Match a spreadsheet name against the canonical attendance names.

    Tiers are tried in order and the first hit wins:
      1. exact match after normalization
      2. match ignoring hyphens, underscores and spaces (source longer
         than 3 characters)
      3. one name contains the other, both longer than 5 characters and
         the shorter covering more than 70% of the longer

    Args:
        source_name: Name as written in the spreadsheet
        canonical_names: Names from the attendance table

    Returns:
        NameMatchResult (matched=False when no tier hits)
    """
    source = source_name or ""
    normalized_source = normalize_name(source)
    if not normalized_source:
        return NameMatchResult(source_name=source, matched=False)

    candidates = [(name, normalize_name(name)) for name in canonical_names if name]

    for canonical, normalized in candidates:
        if normalized == normalized_source:
            return NameMatchResult(source_name=source, matched=True, canonical_name=canonical)

    stripped_source = _strip_separators(normalized_source)
    if len(stripped_source) > config.SEPARATOR_MATCH_MIN_LENGTH:
        for canonical, normalized in candidates:
            if _strip_separators(normalized) == stripped_source:
                return NameMatchResult(source_name=source, matched=True, canonical_name=canonical)

    if len(normalized_source) > config.CONTAINMENT_MATCH_MIN_LENGTH:
        for canonical, normalized in candidates:
            if len(normalized) <= config.CONTAINMENT_MATCH_MIN_LENGTH:
                continue
            if normalized_source in normalized or normalized in normalized_source:
                shorter, longer = sorted((normalized_source, normalized), key=len)
                if len(shorter) / len(longer) > config.CONTAINMENT_MATCH_MIN_RATIO:
                    return NameMatchResult(source_name=source, matched=True, canonical_name=canonical)

    return NameMatchResult(source_name=source, matched=False)


def reconcile_names(
    entries: Sequence[ExtractedLeave],
    records: Sequence[Mapping[str, Any]],
) -> List[NameMatchResult]:
    """
    Match every extracted leave entry to an attendance record.

    Args:
        entries: Leave rows from the spreadsheet
        records: Current attendance snapshot

    Returns:
        One NameMatchResult per entry, in input order
    """
    canonical_names: List[str] = []
    ids_by_name: Dict[str, Any] = {}
    for record in records:
        name = record.get(config.NAME_COLUMN)
        if not name:
            continue
        canonical_names.append(name)
        ids_by_name.setdefault(name, record.get(config.ID_COLUMN))

    results: List[NameMatchResult] = []
    for entry in entries:
        result = match_name(entry.name, canonical_names)
        if result.matched:
            result = NameMatchResult(
                source_name=result.source_name,
                matched=True,
                canonical_name=result.canonical_name,
                record_id=ids_by_name.get(result.canonical_name),
            )
        else:
            logger.debug("No attendance record matches '%s'", entry.name)
        results.append(result)

    matched = sum(1 for result in results if result.matched)
    logger.info("Reconciled %d/%d spreadsheet names", matched, len(results))
    return results
