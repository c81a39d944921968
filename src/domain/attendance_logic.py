"""
Attendance Logic Module

Interprets per-day attendance codes: parsing into tagged values,
numeric totals, and per-cell classification against the calendar.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional

from .entities import AttendanceCategory, CellKind, DayInfo

WEEKEND_MARKERS = ('CN', 'Red')
LEAVE_MARKER = 'P'
FULL_DAY = '1'
HALF_DAY = '0.5'

# Leading decimal number, the way spreadsheet cells are read ("1.5x" -> 1.5)
_LEADING_NUMBER = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')


def parse_number(raw: Optional[str]) -> Optional[float]:
    """Parse the leading number of a cell, or None if there is none."""
    if not raw:
        return None
    match = _LEADING_NUMBER.match(raw)
    if not match:
        return None
    return float(match.group(1))


@dataclass(frozen=True)
class AttendanceValue:
    """
    Tagged attendance cell value.

    The raw string is kept so that markers and unrecognized text
    round-trip verbatim through storage and the clipboard.
    """
    kind: CellKind
    raw: str = ""
    number: float = 0.0

    @classmethod
    def parse(cls, raw: Optional[str]) -> "AttendanceValue":
        """Build a tagged value from a stored/pasted string."""
        raw = raw or ""
        if raw in WEEKEND_MARKERS:
            return cls(CellKind.WEEKEND, raw)
        if raw == LEAVE_MARKER:
            return cls(CellKind.LEAVE, raw)
        number = parse_number(raw)
        if number is not None:
            return cls(CellKind.NUMERIC, raw, number)
        if not raw.strip():
            return cls(CellKind.EMPTY, "")
        return cls(CellKind.UNRECOGNIZED, raw)

    @property
    def contribution(self) -> float:
        """Numeric contribution to the attendance total."""
        return self.number if self.kind == CellKind.NUMERIC else 0.0

    def to_string(self) -> str:
        return self.raw


def total(attendance: Optional[Mapping[int, str]]) -> float:
    """
    Sum the numeric interpretation of every value in an attendance map.

    Non-numeric values contribute 0. The result is not rounded.
    """
    if not attendance:
        return 0
    result = 0
    for value in attendance.values():
        number = parse_number(value)
        if number is not None:
            result += number
    return result


def classify(value: Optional[str], is_weekend: bool) -> AttendanceCategory:
    """
    Classify one cell into exactly one category.

    Exact markers are checked before the generic numeric parse, and the
    numeric parse before emptiness, so the weekend default never shadows
    an explicit entry.
    """
    value = value or ""
    if value in WEEKEND_MARKERS:
        return AttendanceCategory.HOLIDAY
    if value == LEAVE_MARKER:
        return AttendanceCategory.LEAVE
    if value == HALF_DAY:
        return AttendanceCategory.HALF_DAY
    if value == FULL_DAY:
        return AttendanceCategory.FULL_DAY

    number = parse_number(value)
    if number is not None:
        if number == 1:
            return AttendanceCategory.FULL_DAY
        if number == 0.5:
            return AttendanceCategory.HALF_DAY
        return AttendanceCategory.OTHER_NUMERIC

    if value == "":
        if is_weekend:
            return AttendanceCategory.EMPTY_WEEKEND
        return AttendanceCategory.EMPTY_WEEKDAY

    return AttendanceCategory.UNRECOGNIZED


def cell_style(value: Optional[str], is_weekend: bool) -> Optional[str]:
    """
    Get the display color name for a cell.

    Returns:
        'red', 'blue', 'yellow', 'green', 'orange', 'pale_yellow' or None
    """
    value = value or ""
    if value in WEEKEND_MARKERS:
        return 'red'
    if value == HALF_DAY:
        return 'blue'
    if value == FULL_DAY:
        return 'yellow' if is_weekend else 'green'
    if value == LEAVE_MARKER:
        return 'orange'
    if not value and is_weekend:
        return 'pale_yellow'
    return None


@dataclass
class EmployeeStats:
    """
    Attendance statistics of one employee for one month.

    Attributes:
        total_days: Number of full days
        total_work: Sum of worked days (rounded to 2 decimals)
        half_days: Number of half days
        leave_days: Number of approved leave days
        weekend_days: Weekend markers plus empty weekend days
        empty_days: Empty weekdays (missing)
    """
    total_days: int = 0
    total_work: float = 0.0
    half_days: int = 0
    leave_days: int = 0
    weekend_days: int = 0
    empty_days: int = 0


def calculate_employee_stats(
    attendance: Optional[Dict[int, str]],
    days: Iterable[DayInfo]
) -> EmployeeStats:
    """
    Calculate monthly statistics from an attendance map.

    Args:
        attendance: Day number -> attendance code
        days: Day descriptors of the month

    Returns:
        EmployeeStats; all zero when there is no attendance at all
    """
    stats = EmployeeStats()
    if attendance is None:
        return stats

    work = 0.0
    for day in days:
        value = attendance.get(day.day, "")
        category = classify(value, day.is_weekend)

        if category in (AttendanceCategory.HOLIDAY, AttendanceCategory.EMPTY_WEEKEND):
            stats.weekend_days += 1
        elif category == AttendanceCategory.LEAVE:
            stats.leave_days += 1
        elif category == AttendanceCategory.HALF_DAY:
            stats.half_days += 1
        elif category == AttendanceCategory.FULL_DAY:
            stats.total_days += 1
        elif category == AttendanceCategory.EMPTY_WEEKDAY:
            stats.empty_days += 1

        work += AttendanceValue.parse(value).contribution

    stats.total_work = round(work, 2)
    return stats
