"""
Excel Parser Module

Imports monthly attendance, the employee list and target rosters from
spreadsheets.

Header columns are located heuristically by substring match on the
header text; unusable rows are skipped and reported by row number
rather than aborting the import.
"""

import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from domain.calendar_model import WEEKDAY_LABELS
from domain.entities import Employee, EmployeeRole, RosterEntry, Target, new_id
from domain.exceptions import SpreadsheetFormatError
from domain.reconciliation import DEFAULT_SHIFT, UNASSIGNED_DEPARTMENT
from domain.validation import find_by_code, normalize_code
from infrastructure.logger import get_logger

logger = get_logger("ExcelParser")

DEFAULT_PASSWORD = "123"
MAX_DAYS = 31


@dataclass
class ImportResult:
    """Rows read from a spreadsheet plus per-row error messages."""
    employees: List[Employee] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class HeaderLayout:
    """0-based column positions found in the header row."""
    row: int
    code_col: Optional[int] = None
    name_col: Optional[int] = None
    department_col: Optional[int] = None
    id_col: Optional[int] = None
    day_start_col: Optional[int] = None
    day_count: int = 0


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _is_day_one(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 1
    try:
        return int(str(value).strip()) == 1
    except ValueError:
        return False


def _load_sheets(file_path: Path) -> List[Tuple[str, List[List[Any]]]]:
    """
    (title, rows) of every worksheet, values only.

    Raises:
        SpreadsheetFormatError: If the file cannot be opened as a workbook
    """
    try:
        wb = load_workbook(file_path, data_only=True, read_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as e:
        logger.error(f"Cannot open spreadsheet {file_path}: {e}")
        raise SpreadsheetFormatError(
            "Cannot read the spreadsheet file. Please check its format."
        ) from e

    try:
        return [
            (ws.title, [list(row) for row in ws.iter_rows(values_only=True)])
            for ws in wb.worksheets
        ]
    finally:
        wb.close()


def _matches(cell: str, keywords: Sequence[str]) -> bool:
    return any(k in cell for k in keywords)


class ExcelTimesheetParser:
    """
    Parses timesheet spreadsheets exported by this tool or filled in by hand.

    Recognised header keywords (case-insensitive substrings):
    - code: 'mã', 'msnv', 'code'
    - department: 'mục', 'tiêu', 'phòng', 'department'
    - name: 'tên', 'họ', 'name'
    - id: a cell that is exactly 'id'
    The first day column is the first header cell whose value is 1.
    Data starts two rows below the header (the row in between holds
    weekday labels).
    """

    MAX_HEADER_SEARCH_ROWS = 10

    CODE_KEYWORDS = ('mã', 'msnv', 'code')
    DEPARTMENT_KEYWORDS = ('mục', 'tiêu', 'phòng', 'department')
    NAME_KEYWORDS = ('tên', 'họ', 'name')

    def __init__(
        self,
        default_shift: str = DEFAULT_SHIFT,
        unassigned_department: str = UNASSIGNED_DEPARTMENT,
        default_password: str = DEFAULT_PASSWORD
    ):
        self.default_shift = default_shift
        self.unassigned_department = unassigned_department
        self.default_password = default_password

    def parse_file(self, file_path: Path, master_employees: Sequence[Employee]) -> ImportResult:
        """
        Parse the first worksheet of a workbook.

        Args:
            file_path: Path to the .xlsx file
            master_employees: Current master list used to match rows

        Returns:
            ImportResult with matched/new employees and row errors

        Raises:
            SpreadsheetFormatError: If the file cannot be opened as a workbook
        """
        logger.info(f"Importing timesheet: {Path(file_path).name}")
        _, rows = _load_sheets(file_path)[0]

        result = self.parse_rows(rows, master_employees)
        logger.info(
            f"Import finished: {len(result.employees)} rows, {len(result.errors)} errors"
        )
        return result

    def find_header(self, rows: Sequence[Sequence[Any]]) -> Optional[HeaderLayout]:
        """Locate the header row within the first MAX_HEADER_SEARCH_ROWS rows."""
        for row_idx, row in enumerate(rows[:self.MAX_HEADER_SEARCH_ROWS]):
            if not row:
                continue
            layout = HeaderLayout(row=row_idx)
            for col_idx, value in enumerate(row):
                cell = _text(value).lower()
                if cell == 'id':
                    layout.id_col = col_idx
                elif any(k in cell for k in self.CODE_KEYWORDS):
                    if layout.code_col is None:
                        layout.code_col = col_idx
                elif any(k in cell for k in self.DEPARTMENT_KEYWORDS):
                    if layout.department_col is None:
                        layout.department_col = col_idx
                elif any(k in cell for k in self.NAME_KEYWORDS):
                    if layout.name_col is None:
                        layout.name_col = col_idx
                elif layout.day_start_col is None and _is_day_one(value):
                    layout.day_start_col = col_idx
            if layout.code_col is not None or layout.name_col is not None:
                layout.day_count = self._count_days(row, layout.day_start_col)
                logger.debug(f"Header found at row {row_idx + 1}: {layout}")
                return layout
        return None

    def parse_rows(
        self,
        rows: Sequence[Sequence[Any]],
        master_employees: Sequence[Employee]
    ) -> ImportResult:
        """Parse already-loaded cell values (list of rows)."""
        result = ImportResult()
        layout = self.find_header(rows)
        if layout is None:
            result.errors.append(
                f"No valid header row found in the first {self.MAX_HEADER_SEARCH_ROWS} rows."
            )
            return result
        if layout.day_start_col is None:
            result.errors.append("No day columns found; attendance was not imported.")

        by_id = {emp.id: emp for emp in master_employees}
        by_code = {normalize_code(emp.code): emp for emp in master_employees if emp.code}
        by_name = {}
        for emp in master_employees:
            by_name.setdefault(emp.name.strip(), emp)
        seen_codes = set()

        for row_idx in range(layout.row + 2, len(rows)):
            row = rows[row_idx]
            row_number = row_idx + 1
            if not row or all(_text(v) == "" for v in row):
                continue

            code = self._cell(row, layout.code_col)
            name = self._cell(row, layout.name_col)
            if not code and not name:
                continue

            attendance = self._read_attendance(row, layout)
            if attendance and all(v in WEEKDAY_LABELS for v in attendance.values()):
                continue

            row_id = self._cell(row, layout.id_col)
            existing = (
                by_id.get(row_id)
                or (by_code.get(normalize_code(code)) if code else None)
                or (by_name.get(name) if name else None)
            )

            if not code and existing is None:
                message = f"Row {row_number}: missing employee code for '{name}'"
                logger.warning(message)
                result.errors.append(message)
                continue

            final_code = code or existing.code
            key = normalize_code(final_code)
            if key in seen_codes:
                message = f"Row {row_number}: duplicate employee code '{final_code}'"
                logger.warning(message)
                result.errors.append(message)
                continue
            seen_codes.add(key)

            department = self._cell(row, layout.department_col)
            result.employees.append(Employee(
                id=existing.id if existing else new_id(),
                code=final_code,
                name=name or (existing.name if existing else ""),
                department=department or (existing.department if existing else "") or self.unassigned_department,
                shift=(existing.shift if existing else "") or self.default_shift,
                attendance=attendance,
                password=(existing.password if existing else "") or self.default_password,
                role=existing.role if existing else EmployeeRole.STAFF
            ))

        return result

    @staticmethod
    def _cell(row: Sequence[Any], col: Optional[int]) -> str:
        if col is None or col >= len(row):
            return ""
        return _text(row[col])

    @staticmethod
    def _count_days(header: Sequence[Any], day_start_col: Optional[int]) -> int:
        """Number of consecutive day-number header cells (1, 2, 3 ...)."""
        if day_start_col is None:
            return 0
        count = 0
        for value in header[day_start_col:day_start_col + MAX_DAYS]:
            try:
                if int(float(_text(value))) != count + 1:
                    break
            except ValueError:
                break
            count += 1
        return count

    @staticmethod
    def _read_attendance(row: Sequence[Any], layout: HeaderLayout) -> Dict[int, str]:
        attendance: Dict[int, str] = {}
        if layout.day_start_col is None:
            return attendance
        for day in range(1, layout.day_count + 1):
            col = layout.day_start_col + day - 1
            if col >= len(row):
                break
            value = _text(row[col])
            if value:
                attendance[day] = value
        return attendance


def import_timesheet(
    file_path: Path,
    master_employees: Sequence[Employee],
    parser: Optional[ExcelTimesheetParser] = None
) -> ImportResult:
    """Import a timesheet spreadsheet with default settings."""
    return (parser or ExcelTimesheetParser()).parse_file(Path(file_path), master_employees)


@dataclass
class TargetImportResult:
    """Targets read from a spreadsheet or JSON file plus error messages."""
    targets: List[Target] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class EmployeeListParser:
    """
    Parses the employee master list (one employee per row, no attendance).

    Recognised header keywords (case-insensitive substrings):
    - code: 'mã', 'msnv', 'code'
    - name: 'tên', 'họ', 'name'
    - department: 'phòng', 'ban', 'department'
    - role: 'quyền', 'role'
    - password: 'mật', 'khẩu', 'password'
    The header row must contain both a code and a name column.
    """

    MAX_HEADER_SEARCH_ROWS = 10

    CODE_KEYWORDS = ('mã', 'msnv', 'code')
    NAME_KEYWORDS = ('tên', 'họ', 'name')
    DEPARTMENT_KEYWORDS = ('phòng', 'ban', 'department')
    ROLE_KEYWORDS = ('quyền', 'role')
    PASSWORD_KEYWORDS = ('mật', 'khẩu', 'password')
    ADMIN_KEYWORDS = ('quản', 'admin')

    def __init__(
        self,
        default_shift: str = DEFAULT_SHIFT,
        unassigned_department: str = UNASSIGNED_DEPARTMENT,
        default_password: str = DEFAULT_PASSWORD
    ):
        self.default_shift = default_shift
        self.unassigned_department = unassigned_department
        self.default_password = default_password

    def parse_file(self, file_path: Path, existing: Sequence[Employee]) -> ImportResult:
        """
        Parse the first worksheet of an employee list workbook.

        Raises:
            SpreadsheetFormatError: If the file cannot be opened as a workbook
        """
        logger.info(f"Importing employee list: {Path(file_path).name}")
        _, rows = _load_sheets(file_path)[0]
        result = self.parse_rows(rows, existing)
        logger.info(
            f"Employee import finished: {len(result.employees)} new, {len(result.errors)} errors"
        )
        return result

    def _find_header(self, rows: Sequence[Sequence[Any]]) -> Optional[Dict[str, int]]:
        for row_idx, row in enumerate(rows[:self.MAX_HEADER_SEARCH_ROWS]):
            columns: Dict[str, int] = {}
            for col_idx, value in enumerate(row or ()):
                cell = _text(value).lower()
                if _matches(cell, self.PASSWORD_KEYWORDS):
                    columns.setdefault('password', col_idx)
                elif _matches(cell, self.ROLE_KEYWORDS):
                    columns.setdefault('role', col_idx)
                elif _matches(cell, self.CODE_KEYWORDS):
                    columns.setdefault('code', col_idx)
                elif _matches(cell, self.NAME_KEYWORDS):
                    columns.setdefault('name', col_idx)
                elif _matches(cell, self.DEPARTMENT_KEYWORDS):
                    columns.setdefault('department', col_idx)
            if 'code' in columns and 'name' in columns:
                columns['row'] = row_idx
                return columns
        return None

    def parse_rows(
        self,
        rows: Sequence[Sequence[Any]],
        existing: Sequence[Employee]
    ) -> ImportResult:
        """Rows whose code already exists are reported, not imported."""
        result = ImportResult()
        columns = self._find_header(rows)
        if columns is None:
            result.errors.append("No valid header found. The file needs code and name columns.")
            return result

        taken = {normalize_code(emp.code) for emp in existing if emp.code}
        seen = set()
        for row_idx in range(columns['row'] + 1, len(rows)):
            row = rows[row_idx] or []
            row_number = row_idx + 1
            code = ExcelTimesheetParser._cell(row, columns['code'])
            name = ExcelTimesheetParser._cell(row, columns['name'])
            if not code and not name:
                continue

            error = None
            if not code:
                error = f"Row {row_number}: missing employee code for '{name}'"
            elif not name:
                error = f"Row {row_number}: missing name for employee code '{code}'"
            elif normalize_code(code) in taken:
                error = f"Row {row_number}: employee code '{code}' already exists"
            elif normalize_code(code) in seen:
                error = f"Row {row_number}: duplicate employee code '{code}'"
            if error:
                logger.warning(error)
                result.errors.append(error)
                continue
            seen.add(normalize_code(code))

            role_text = ExcelTimesheetParser._cell(row, columns.get('role')).lower()
            result.employees.append(Employee(
                id=new_id(),
                code=code,
                name=name,
                department=(
                    ExcelTimesheetParser._cell(row, columns.get('department'))
                    or self.unassigned_department
                ),
                shift=self.default_shift,
                password=(
                    ExcelTimesheetParser._cell(row, columns.get('password'))
                    or self.default_password
                ),
                role=EmployeeRole.ADMIN if _matches(role_text, self.ADMIN_KEYWORDS) else EmployeeRole.STAFF
            ))
        return result


class TargetListParser:
    """
    Parses target rosters from a workbook.

    Each sheet is read on its own. A sheet whose header has a target
    column ('mục', 'tiêu', 'địa', 'target') lists rows of several
    targets, grouped by that column. Any other sheet is one target named
    by its "MỤC TIÊU: <name>" title, or by the sheet name. The summary
    and instruction sheets written by the exporter are skipped.

    Employees are matched by code (case-insensitive); a missing shift
    falls back to the default shift.
    """

    MAX_HEADER_SEARCH_ROWS = 5

    CODE_KEYWORDS = ('mã', 'msnv', 'code')
    TARGET_KEYWORDS = ('mục', 'tiêu', 'địa', 'target')
    SHIFT_KEYWORDS = ('ca', 'trực', 'giờ', 'shift')
    TITLE_PREFIX = 'MỤC TIÊU:'
    SKIPPED_SHEETS = ('Tổng Quan', 'Hướng Dẫn')

    def __init__(self, default_shift: str = DEFAULT_SHIFT):
        self.default_shift = default_shift

    def parse_file(self, file_path: Path, employees: Sequence[Employee]) -> TargetImportResult:
        """
        Parse every worksheet of a roster workbook.

        Raises:
            SpreadsheetFormatError: If the file cannot be opened as a workbook
        """
        logger.info(f"Importing targets: {Path(file_path).name}")
        result = self.parse_sheets(_load_sheets(file_path), employees)
        logger.info(
            f"Target import finished: {len(result.targets)} targets, {len(result.errors)} errors"
        )
        return result

    def parse_sheets(
        self,
        sheets: Sequence[Tuple[str, Sequence[Sequence[Any]]]],
        employees: Sequence[Employee]
    ) -> TargetImportResult:
        result = TargetImportResult()
        rosters: Dict[str, List[RosterEntry]] = {}
        for title, rows in sheets:
            if title in self.SKIPPED_SHEETS:
                continue
            self._parse_sheet(title, rows, employees, rosters, result.errors)

        for name, roster in rosters.items():
            if roster:
                result.targets.append(Target(id=new_id(), name=name, roster=roster))
        return result

    def _find_header(self, rows: Sequence[Sequence[Any]]) -> Optional[Dict[str, int]]:
        for row_idx, row in enumerate(rows[:self.MAX_HEADER_SEARCH_ROWS]):
            columns: Dict[str, int] = {}
            for col_idx, value in enumerate(row or ()):
                cell = _text(value).lower()
                if cell.startswith(self.TITLE_PREFIX.lower()):
                    continue
                if _matches(cell, self.CODE_KEYWORDS):
                    columns.setdefault('code', col_idx)
                elif _matches(cell, self.TARGET_KEYWORDS):
                    columns.setdefault('target', col_idx)
                elif _matches(cell, self.SHIFT_KEYWORDS):
                    columns.setdefault('shift', col_idx)
            if 'code' in columns:
                columns['row'] = row_idx
                return columns
        return None

    def _sheet_target_name(self, title: str, rows: Sequence[Sequence[Any]]) -> str:
        for row in rows[:self.MAX_HEADER_SEARCH_ROWS]:
            first = _text(row[0]) if row else ""
            if first.upper().startswith(self.TITLE_PREFIX):
                name = first[len(self.TITLE_PREFIX):].strip()
                if name:
                    return name
        return title.strip()

    def _parse_sheet(
        self,
        title: str,
        rows: Sequence[Sequence[Any]],
        employees: Sequence[Employee],
        rosters: Dict[str, List[RosterEntry]],
        errors: List[str]
    ) -> None:
        columns = self._find_header(rows)
        if columns is None:
            errors.append(f"Sheet '{title}': no employee code column found")
            return
        sheet_target = self._sheet_target_name(title, rows)

        for row_idx in range(columns['row'] + 1, len(rows)):
            row = rows[row_idx] or []
            code = ExcelTimesheetParser._cell(row, columns['code'])
            if not code:
                continue
            location = f"Sheet '{title}' row {row_idx + 1}"

            if 'target' in columns:
                name = ExcelTimesheetParser._cell(row, columns['target'])
                if not name:
                    errors.append(f"{location}: missing target name for employee code '{code}'")
                    continue
            else:
                name = sheet_target

            emp = find_by_code(employees, code)
            if emp is None:
                errors.append(f"{location}: employee code '{code}' not found")
                continue
            roster = rosters.setdefault(name, [])
            if any(entry.employee_id == emp.id for entry in roster):
                errors.append(f"{location}: employee code '{code}' is already in target '{name}'")
                continue
            shift = ExcelTimesheetParser._cell(row, columns.get('shift')) or self.default_shift
            roster.append(RosterEntry(employee_id=emp.id, shift=shift))


def import_employees(
    file_path: Path,
    existing: Sequence[Employee],
    parser: Optional[EmployeeListParser] = None
) -> ImportResult:
    """Import an employee list spreadsheet with default settings."""
    return (parser or EmployeeListParser()).parse_file(Path(file_path), existing)


def import_targets(
    file_path: Path,
    employees: Sequence[Employee],
    parser: Optional[TargetListParser] = None
) -> TargetImportResult:
    """Import a target roster spreadsheet with default settings."""
    return (parser or TargetListParser()).parse_file(Path(file_path), employees)
