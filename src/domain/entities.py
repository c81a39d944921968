"""
Domain Entities Module

Core domain entities using dataclasses for the timesheet system.
These entities represent the core business concepts independent of infrastructure.
"""

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional


def new_id() -> str:
    """Generate a record id; ids created later sort after earlier ones."""
    return f"{time.time_ns():x}{secrets.token_hex(3)}"


class EmployeeRole(Enum):
    """Account role of an employee."""
    ADMIN = "admin"
    STAFF = "staff"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "EmployeeRole":
        """Map a stored role string to a role, defaulting to staff."""
        if value == cls.ADMIN.value:
            return cls.ADMIN
        return cls.STAFF


class CellKind(Enum):
    """Kind of a single attendance cell value."""
    NUMERIC = auto()       # 1, 0.5, 2 ...
    WEEKEND = auto()       # CN / Red marker
    LEAVE = auto()         # P (approved leave)
    UNRECOGNIZED = auto()  # any other text, stored verbatim
    EMPTY = auto()         # unset


class AttendanceCategory(Enum):
    """Category of a cell once the calendar is taken into account."""
    FULL_DAY = auto()
    HALF_DAY = auto()
    LEAVE = auto()
    HOLIDAY = auto()         # weekend/holiday marker
    EMPTY_WEEKDAY = auto()   # missing
    EMPTY_WEEKEND = auto()
    OTHER_NUMERIC = auto()   # numeric but neither 1 nor 0.5
    UNRECOGNIZED = auto()    # zero contribution


@dataclass
class Employee:
    """
    Represents an employee record (master list or grid row).

    Attributes:
        id: Stable identifier, the only field used to correlate records
        code: Short human-entered employee code (MSNV)
        name: Display name
        department: Target (work site) name
        shift: Shift time range, e.g. "08:00 - 17:00"
        attendance: Day number (1..31) -> attendance code
    """
    id: str
    code: str = ""
    name: str = ""
    department: str = ""
    shift: str = ""
    attendance: Dict[int, str] = field(default_factory=dict)

    # Authentication
    password: str = ""
    role: EmployeeRole = EmployeeRole.STAFF

    # Banking
    bank_account: str = ""

    # Payroll - salary components
    daily_rate: float = 0.0
    standard_hours: float = 0.0
    shift_salary: float = 0.0
    responsibility_salary: float = 0.0
    support_salary: float = 0.0
    management_salary: float = 0.0
    bonus: float = 0.0

    # Payroll - deductions & advances
    advance1: float = 0.0
    advance2: float = 0.0
    advance3: float = 0.0
    refund: float = 0.0
    social_insurance: float = 0.0
    uniform: float = 0.0
    penalty: float = 0.0
    note: str = ""


@dataclass
class RosterEntry:
    """One assignment of an employee to a target."""
    employee_id: str
    shift: str = ""


@dataclass
class Target:
    """
    Represents a work site (Mục Tiêu).

    The roster order is significant: it drives grid row ordering.
    """
    id: str
    name: str
    roster: List[RosterEntry] = field(default_factory=list)

    def has_employee(self, employee_id: str) -> bool:
        """Check if the roster already references an employee."""
        return any(entry.employee_id == employee_id for entry in self.roster)


@dataclass(frozen=True)
class DayInfo:
    """
    Calendar descriptor for one day column of the grid.

    Attributes:
        day: Day number within the month (1-based)
        weekday_label: Short English weekday label ("Sun".."Sat")
        is_weekend: True for Saturday and Sunday
    """
    day: int
    weekday_label: str
    is_weekend: bool


@dataclass(frozen=True)
class Selection:
    """
    Rectangular cell selection over (row, column) grid coordinates.

    Bounds are unordered; the normalized rectangle is computed on read.
    """
    start_row: int
    start_col: int
    end_row: int
    end_col: int

    @property
    def min_row(self) -> int:
        return min(self.start_row, self.end_row)

    @property
    def max_row(self) -> int:
        return max(self.start_row, self.end_row)

    @property
    def min_col(self) -> int:
        return min(self.start_col, self.end_col)

    @property
    def max_col(self) -> int:
        return max(self.start_col, self.end_col)

    @property
    def height(self) -> int:
        return self.max_row - self.min_row + 1

    @property
    def width(self) -> int:
        return self.max_col - self.min_col + 1

    @property
    def is_single_cell(self) -> bool:
        return self.start_row == self.end_row and self.start_col == self.end_col

    def contains(self, row: int, col: int) -> bool:
        """Check if a cell lies inside the normalized rectangle."""
        return (
            self.min_row <= row <= self.max_row
            and self.min_col <= col <= self.max_col
        )
