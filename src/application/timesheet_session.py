"""
Timesheet Session Module

Application layer state holder for one interactive timesheet.

Owns the employee master list, the target list and the grid snapshot
for the displayed month. Every grid edit is expressed as a new snapshot
passed to commit(), which reconciles it against the master list and
rosters, applies the result in memory, issues the persistence calls in
the background and schedules a debounced write of the month's
attendance.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from config.config_manager import AppConfig
from domain import clipboard
from domain.attendance_logic import EmployeeStats, calculate_employee_stats, total
from domain.calendar_model import generate_days_info
from domain.entities import DayInfo, Employee, RosterEntry, Selection, Target, new_id
from domain.exceptions import NotFoundError, StoreError, TimesheetError, ValidationError
from domain.payroll_calculator import PayrollCalculator, PayrollLine, PayrollSummary
from domain.reconciliation import (
    Mutation, MutationKind, ReconciliationEngine, ReconciliationResult
)
from domain.shift_options import add_shift, all_shifts, format_shift, remove_shift, replace_shift
from domain.sorting import create_rows_from_target, sort_rows
from domain.validation import find_by_code, normalize_code, validate_employee, validate_target
from infrastructure import backup
from infrastructure.excel_parser import (
    EmployeeListParser, ExcelTimesheetParser, ImportResult, TargetImportResult, TargetListParser
)
from infrastructure.excel_writer import TimesheetExcelWriter
from infrastructure.logger import get_logger
from infrastructure.repository import TimesheetRepository
from infrastructure.scheduler import DebouncedTask, TaskTracker

logger = get_logger("TimesheetSession")

# Grid row fields editable through update_info()
INFO_FIELDS = ('code', 'name', 'department', 'shift')

# Image -> extracted employee rows (attendance filled in)
ImageExtractor = Callable[[bytes], Awaitable[Sequence[Employee]]]


def merge_month(employees: Sequence[Employee], records: Sequence[Employee]) -> List[Employee]:
    """One grid row per master employee, with that month's attendance."""
    attendance_by_id = {record.id: record.attendance for record in records}
    return [
        replace(emp, attendance=dict(attendance_by_id.get(emp.id, {})))
        for emp in employees
    ]



def _mutation_key(mutation: Mutation) -> str:
    """Ordering key: calls for one stored document run in commit order."""
    collection = "targets" if mutation.kind.name.endswith("TARGET") else "employees"
    return f"{collection}/{mutation.entity_id}"


@dataclass
class MergeSummary:
    """Outcome of merging imported or extracted rows into the grid."""
    merged: int = 0
    added: int = 0
    errors: List[str] = field(default_factory=list)


class TimesheetSession:
    """
    Interactive timesheet session.

    Months are 0-based in memory and 1-based in storage. Snapshots are
    replaced, never mutated in place.

    Args:
        repository: Persistence adapter
        config: Application configuration (defaults when omitted)
        tracker: Background task tracker for persistence calls
        extractor: Optional image extraction service
        today: Date used to pick the initial month
    """

    def __init__(
        self,
        repository: TimesheetRepository,
        config: Optional[AppConfig] = None,
        tracker: Optional[TaskTracker] = None,
        extractor: Optional[ImageExtractor] = None,
        today: Optional[date] = None
    ):
        self.config = config or AppConfig()
        self._repository = repository
        self._tracker = tracker or TaskTracker()
        self._extractor = extractor

        grid_settings = self.config.grid
        self._reconciler = ReconciliationEngine(
            default_shift=grid_settings.default_shift,
            unassigned_department=grid_settings.unassigned_department
        )
        self._saver = DebouncedTask(
            grid_settings.save_debounce_ms / 1000,
            self._save_attendance,
            tracker=self._tracker,
            description="save attendance"
        )
        self._payroll = PayrollCalculator(self.config.payroll.default_daily_rate)
        self._parser = ExcelTimesheetParser(
            default_shift=grid_settings.default_shift,
            unassigned_department=grid_settings.unassigned_department,
            default_password=self.config.payroll.default_password
        )
        self._employee_parser = EmployeeListParser(
            default_shift=grid_settings.default_shift,
            unassigned_department=grid_settings.unassigned_department,
            default_password=self.config.payroll.default_password
        )
        self._target_parser = TargetListParser(default_shift=grid_settings.default_shift)
        self._writer = TimesheetExcelWriter()

        today = today or date.today()
        self._year = today.year
        self._month = today.month - 1
        self._employees: List[Employee] = []
        self._targets: List[Target] = []
        self._grid: List[Employee] = []
        self._last_conflicts: List[str] = []
        self._custom_shifts: List[str] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def year(self) -> int:
        return self._year

    @property
    def month(self) -> int:
        """0-based month."""
        return self._month

    @property
    def days(self) -> Sequence[DayInfo]:
        return generate_days_info(self._year, self._month)

    @property
    def employees(self) -> List[Employee]:
        return list(self._employees)

    @property
    def targets(self) -> List[Target]:
        return list(self._targets)

    @property
    def grid(self) -> List[Employee]:
        return list(self._grid)

    @property
    def sorted_rows(self) -> List[Employee]:
        """Grid rows in display order."""
        return sort_rows(self._grid, self._targets, self._employees)

    @property
    def last_conflicts(self) -> List[str]:
        """Code conflicts reported by the most recent commit."""
        return list(self._last_conflicts)

    @property
    def save_pending(self) -> bool:
        return self._saver.pending

    @property
    def total_attendance(self) -> float:
        return sum(total(emp.attendance) for emp in self._grid)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def load(self, year: Optional[int] = None, month: Optional[int] = None) -> None:
        """Load the master list, targets and a month's attendance."""
        self._employees = await self._repository.get_all_employees()
        self._targets = await self._repository.get_all_targets()
        self._custom_shifts = await self._repository.get_custom_shifts()
        logger.info(f"Loaded {len(self._employees)} employees and {len(self._targets)} targets")
        await self.load_month(
            self._year if year is None else year,
            self._month if month is None else month
        )

    async def load_month(self, year: int, month: int) -> None:
        """
        Switch the displayed month.

        A pending attendance write is not cancelled; it still targets the
        month it was scheduled for.
        """
        generate_days_info(year, month)
        records = await self._repository.get_timesheet(year, month + 1)
        self._year, self._month = year, month
        self._grid = merge_month(self._employees, records)
        logger.info(f"Month {year}-{month + 1:02d} loaded: {len(self._grid)} rows")

    # ------------------------------------------------------------------
    # Commit pipeline
    # ------------------------------------------------------------------
    def commit(self, new_grid: Sequence[Employee]) -> ReconciliationResult:
        """
        Commit a new grid snapshot.

        In-memory state is updated before any persistence call is issued;
        persistence failures are logged and never roll it back.
        """
        new_grid = list(new_grid)
        result = self._reconciler.reconcile(self._grid, new_grid, self._employees, self._targets)

        self._grid = new_grid
        self._employees = result.employees
        self._targets = result.targets
        self._last_conflicts = result.conflicts

        for conflict in result.conflicts:
            logger.warning(f"Code conflict: {conflict}")
        if not result.diff.is_empty:
            logger.info(
                f"Reconciled grid: {len(result.diff.added)} added, "
                f"{len(result.diff.changed)} changed, {len(result.diff.removed_ids)} removed, "
                f"{len(result.mutations)} persistence calls"
            )

        for mutation in result.mutations:
            self._tracker.spawn(
                self._apply_mutation(mutation),
                f"{mutation.kind.name.lower()} {mutation.entity_id}",
                key=_mutation_key(mutation)
            )

        self._saver.schedule(self._year, self._month, list(new_grid))
        return result

    async def _apply_mutation(self, mutation: Mutation) -> None:
        repo = self._repository
        if mutation.kind == MutationKind.CREATE_EMPLOYEE:
            await repo.create_employee(mutation.payload)
        elif mutation.kind == MutationKind.UPDATE_EMPLOYEE:
            await repo.update_employee(mutation.entity_id, mutation.payload)
        elif mutation.kind == MutationKind.DELETE_EMPLOYEE:
            await repo.delete_employee(mutation.entity_id)
        elif mutation.kind == MutationKind.CREATE_TARGET:
            await repo.create_target(mutation.payload)
        elif mutation.kind == MutationKind.UPDATE_TARGET:
            await repo.update_target(mutation.entity_id, {'roster': mutation.payload.roster})

    async def _save_attendance(self, year: int, month: int, snapshot: Sequence[Employee]) -> None:
        await self._repository.save_all_timesheets(year, month + 1, snapshot)

    # ------------------------------------------------------------------
    # Grid edits
    # ------------------------------------------------------------------
    def _row_exists(self, row_id: str) -> bool:
        return any(emp.id == row_id for emp in self._grid)

    def update_cell(self, row_id: str, day: int, value: str) -> ReconciliationResult:
        """Set one attendance cell; unknown rows are ignored."""
        new_grid = [
            replace(emp, attendance={**emp.attendance, day: value}) if emp.id == row_id else emp
            for emp in self._grid
        ]
        return self.commit(new_grid)

    def update_info(self, row_id: str, field_name: str, value: str) -> ReconciliationResult:
        if field_name not in INFO_FIELDS:
            raise ValueError(f"Field is not editable from the grid: {field_name}")
        new_grid = [
            replace(emp, **{field_name: value}) if emp.id == row_id else emp
            for emp in self._grid
        ]
        return self.commit(new_grid)

    def add_row(
        self,
        code: str = "",
        name: str = "",
        department: Optional[str] = None,
        shift: Optional[str] = None
    ) -> Employee:
        """Append a row; it becomes an employee once it has a code or name."""
        row = Employee(
            id=new_id(),
            code=code,
            name=name,
            department=self.config.grid.unassigned_department if department is None else department,
            shift=self.config.grid.default_shift if shift is None else shift,
            password=self.config.payroll.default_password
        )
        self.commit(self._grid + [row])
        return row

    def remove_rows(self, row_ids: Sequence[str]) -> ReconciliationResult:
        """Remove rows; their employees are deleted from the master list."""
        doomed = set(row_ids)
        return self.commit([emp for emp in self._grid if emp.id not in doomed])

    def add_target_rows(self, target_id: str) -> List[Employee]:
        """Add rows for roster members of a target that are not in the grid."""
        target = self._find_target(target_id)
        rows = create_rows_from_target(
            target, self._employees, [emp.code for emp in self._grid]
        )
        rows = [row for row in rows if not self._row_exists(row.id)]
        if rows:
            self.commit(self._grid + rows)
        return rows

    def _map_back(self, new_sorted: Sequence[Employee]) -> List[Employee]:
        by_id = {emp.id: emp for emp in new_sorted}
        return [by_id.get(emp.id, emp) for emp in self._grid]

    def copy(self, selection: Optional[Selection]) -> str:
        return clipboard.serialize(selection, self.sorted_rows, self.days)

    def paste(self, text: str, selection: Optional[Selection]) -> ReconciliationResult:
        new_sorted = clipboard.deserialize(text, selection, self.sorted_rows, self.days)
        return self.commit(self._map_back(new_sorted))

    def fill(self, selection: Optional[Selection]) -> ReconciliationResult:
        new_sorted = clipboard.fill(selection, self.sorted_rows, self.days)
        return self.commit(self._map_back(new_sorted))

    def clear(self, selection: Optional[Selection]) -> ReconciliationResult:
        new_sorted = clipboard.clear(selection, self.sorted_rows, self.days)
        return self.commit(self._map_back(new_sorted))

    # ------------------------------------------------------------------
    # Import / extraction merge
    # ------------------------------------------------------------------
    def merge_imported(self, imported: Sequence[Employee]) -> MergeSummary:
        """
        Merge rows read from a spreadsheet or an image.

        Rows whose code is already in the grid get their attendance merged.
        Codes known to the master list are added as rows of that employee;
        unknown codes become new rows and are created by reconciliation.
        """
        summary = MergeSummary()
        new_grid = list(self._grid)
        for emp in imported:
            key = normalize_code(emp.code)
            index = next(
                (i for i, row in enumerate(new_grid) if key and normalize_code(row.code) == key),
                None
            )
            if index is not None:
                row = new_grid[index]
                new_grid[index] = replace(row, attendance={**row.attendance, **emp.attendance})
                summary.merged += 1
                continue

            master = find_by_code(self._employees, emp.code)
            if master is not None:
                new_grid.append(replace(master, attendance=dict(emp.attendance)))
            else:
                new_grid.append(replace(
                    emp,
                    id=emp.id if emp.id and not self._row_exists(emp.id) else new_id(),
                    attendance=dict(emp.attendance)
                ))
            summary.added += 1

        result = self.commit(new_grid)
        summary.errors.extend(result.conflicts)
        logger.info(f"Merged {summary.merged} rows, added {summary.added} rows")
        return summary

    def import_spreadsheet(self, path: Path) -> ImportResult:
        """
        Import a spreadsheet into the displayed month.

        Raises:
            SpreadsheetFormatError: If the file is not a readable workbook
        """
        result = self._parser.parse_file(Path(path), self._employees)
        if result.employees:
            summary = self.merge_imported(result.employees)
            result.errors.extend(summary.errors)
        for error in result.errors:
            logger.warning(f"Import: {error}")
        return result

    async def merge_extracted(self, image: bytes) -> MergeSummary:
        """
        Extract rows from an image and merge them.

        Raises:
            ValidationError: If no extraction service is configured
        """
        if self._extractor is None:
            raise ValidationError("Image extraction is not configured.")
        extracted = await self._extractor(image)
        logger.info(f"Extracted {len(extracted)} rows from image")
        return self.merge_imported(extracted)

    # ------------------------------------------------------------------
    # Statistics, payroll and export
    # ------------------------------------------------------------------
    def _find_row(self, row_id: str) -> Employee:
        for emp in self._grid:
            if emp.id == row_id:
                return emp
        raise NotFoundError(f"Row not found: {row_id}")

    def stats(self, row_id: str) -> EmployeeStats:
        return calculate_employee_stats(self._find_row(row_id).attendance, self.days)

    def payroll_summary(self, row_id: str) -> PayrollSummary:
        row = self._find_row(row_id)
        return self._payroll.calculate_summary(row, calculate_employee_stats(row.attendance, self.days))

    def payroll_lines(self) -> List[PayrollLine]:
        return self._payroll.calculate_lines(self.sorted_rows)

    def _export_dir(self, output: Optional[Path]) -> Path:
        return Path(output or self.config.paths.export_dir or ".")

    def export_timesheet(self, output: Optional[Path] = None) -> Path:
        return self._writer.export_timesheet(
            self.sorted_rows, self._year, self._month, self._export_dir(output)
        )

    def export_payroll(self, output: Optional[Path] = None) -> Path:
        return self._writer.export_payroll(
            self.sorted_rows, self._year, self._month, self._export_dir(output),
            calculator=self._payroll, default_shift=self.config.grid.default_shift
        )

    def write_template(self, output: Optional[Path] = None) -> Path:
        return self._writer.write_template(self._year, self._month, self._export_dir(output))

    # ------------------------------------------------------------------
    # Explicit employee / target management
    # ------------------------------------------------------------------
    def _find_employee(self, employee_id: str) -> Employee:
        for emp in self._employees:
            if emp.id == employee_id:
                return emp
        raise NotFoundError(f"Employee not found: {employee_id}")

    def _find_target(self, target_id: str) -> Target:
        for target in self._targets:
            if target.id == target_id:
                return target
        raise NotFoundError(f"Target not found: {target_id}")

    async def add_employee(self, employee: Employee) -> Employee:
        """
        Add an employee to the master list and the grid.

        Raises:
            ValidationError: If code or name is empty
            DuplicateCodeError: If the code is already used
        """
        validate_employee(employee, self._employees)
        record = replace(
            employee,
            id=employee.id or new_id(),
            attendance={},
            password=employee.password or self.config.payroll.default_password
        )
        await self._repository.create_employee(record)
        self._employees = self._employees + [record]
        if not self._row_exists(record.id):
            self._grid = self._grid + [record]
        return record

    async def update_employee(self, employee_id: str, **changes) -> Employee:
        """
        Patch master fields of an employee; grid rows follow.

        Raises:
            NotFoundError: If the employee does not exist
            ValidationError / DuplicateCodeError: If the result is invalid
        """
        current = self._find_employee(employee_id)
        if 'id' in changes or 'attendance' in changes:
            raise ValidationError("Employee id and attendance cannot be patched.")
        updated = replace(current, **changes)
        validate_employee(updated, self._employees)
        await self._repository.update_employee(employee_id, changes)
        self._employees = [updated if emp.id == employee_id else emp for emp in self._employees]
        self._grid = [
            replace(updated, attendance=emp.attendance) if emp.id == employee_id else emp
            for emp in self._grid
        ]
        return updated

    async def delete_employee(self, employee_id: str) -> None:
        """
        Delete an employee and remove it from every roster and the grid.

        The master record is deleted first. Rosters are then stripped in
        memory and each affected target is persisted on its own; a failed
        roster write is logged and does not stop the others.

        Raises:
            NotFoundError: If the employee does not exist
            StoreError: If the employee record cannot be deleted
        """
        self._find_employee(employee_id)
        await self._repository.delete_employee(employee_id)
        self._employees = [emp for emp in self._employees if emp.id != employee_id]
        self._grid = [emp for emp in self._grid if emp.id != employee_id]

        stripped = []
        new_targets = []
        for target in self._targets:
            if target.has_employee(employee_id):
                target = replace(target, roster=[
                    entry for entry in target.roster if entry.employee_id != employee_id
                ])
                stripped.append(target)
            new_targets.append(target)
        self._targets = new_targets

        for target in stripped:
            try:
                await self._repository.update_target(target.id, {'roster': target.roster})
            except StoreError as e:
                logger.error(f"Failed to remove {employee_id} from target {target.name}: {e}")

    async def add_target(self, name: str, roster: Sequence[RosterEntry] = ()) -> Target:
        """
        Create a target.

        Raises:
            ValidationError: If the name is empty or already used
        """
        target = Target(id=new_id(), name=name.strip(), roster=list(roster))
        validate_target(target)
        if any(t.name == target.name for t in self._targets):
            raise ValidationError(f"Target '{target.name}' already exists.")
        await self._repository.create_target(target)
        self._targets = self._targets + [target]
        return target

    async def update_target(
        self,
        target_id: str,
        name: Optional[str] = None,
        roster: Optional[Sequence[RosterEntry]] = None
    ) -> Target:
        current = self._find_target(target_id)
        patch: Dict[str, object] = {}
        if name is not None:
            patch['name'] = name.strip()
        if roster is not None:
            patch['roster'] = list(roster)
        updated = replace(current, **patch)
        validate_target(updated)
        if patch:
            await self._repository.update_target(target_id, patch)
        self._targets = [updated if t.id == target_id else t for t in self._targets]
        return updated

    async def delete_target(self, target_id: str) -> None:
        """Delete a target; its employees stay in the master list."""
        self._find_target(target_id)
        await self._repository.delete_target(target_id)
        self._targets = [t for t in self._targets if t.id != target_id]

    # ------------------------------------------------------------------
    # Employee list and target files
    # ------------------------------------------------------------------
    async def import_employees(self, path: Path) -> ImportResult:
        """
        Add the employees listed in a spreadsheet.

        Rows with existing codes are reported and skipped. A row that
        fails to persist is reported and does not stop the others.

        Raises:
            SpreadsheetFormatError: If the file is not a readable workbook
        """
        result = self._employee_parser.parse_file(Path(path), self._employees)
        added = []
        for emp in result.employees:
            try:
                added.append(await self.add_employee(emp))
            except TimesheetError as e:
                result.errors.append(f"Employee '{emp.code}': {e}")
        result.employees = added
        for error in result.errors:
            logger.warning(f"Employee import: {error}")
        return result

    def export_employees(self, output: Optional[Path] = None) -> Path:
        return self._writer.export_employees(self._employees, self._export_dir(output))

    async def _merge_targets(self, result: TargetImportResult) -> TargetImportResult:
        """Replace rosters of same-named targets and create the rest."""
        merged = []
        for target in result.targets:
            existing = next((t for t in self._targets if t.name == target.name), None)
            try:
                if existing is not None:
                    merged.append(await self.update_target(existing.id, roster=target.roster))
                else:
                    merged.append(await self.add_target(target.name, target.roster))
            except TimesheetError as e:
                result.errors.append(f"Target '{target.name}': {e}")
        result.targets = merged
        for error in result.errors:
            logger.warning(f"Target import: {error}")
        return result

    async def import_targets(self, path: Path) -> TargetImportResult:
        """
        Import target rosters from a spreadsheet.

        Raises:
            SpreadsheetFormatError: If the file is not a readable workbook
        """
        return await self._merge_targets(self._target_parser.parse_file(Path(path), self._employees))

    async def import_targets_json(self, path: Path) -> TargetImportResult:
        """
        Import targets from a JSON file. Roster entries must reference
        known employees; unknown ones are reported and dropped.

        Raises:
            FileFormatError: If the file is not readable JSON
        """
        result = backup.import_targets_json(Path(path))
        known = {emp.id for emp in self._employees}
        for index, target in enumerate(result.targets):
            unknown = [entry.employee_id for entry in target.roster if entry.employee_id not in known]
            if unknown:
                result.errors.append(f"Target '{target.name}': unknown employees {', '.join(unknown)}")
                result.targets[index] = replace(target, roster=[
                    entry for entry in target.roster if entry.employee_id in known
                ])
        return await self._merge_targets(result)

    def export_targets(self, output: Optional[Path] = None) -> Path:
        return self._writer.export_targets(self._targets, self._employees, self._export_dir(output))

    def export_targets_json(self, output: Optional[Path] = None) -> Path:
        return backup.export_targets_json(self._targets, self._export_dir(output))

    def write_target_template(self, output: Optional[Path] = None) -> Path:
        return self._writer.write_target_template(self._export_dir(output))

    # ------------------------------------------------------------------
    # Shift options
    # ------------------------------------------------------------------
    @property
    def shift_options(self) -> List[str]:
        """Default shifts followed by custom ones."""
        return all_shifts(self._custom_shifts)

    @property
    def custom_shifts(self) -> List[str]:
        return list(self._custom_shifts)

    async def _save_shifts(self, shifts: List[str]) -> List[str]:
        if shifts != self._custom_shifts:
            await self._repository.save_custom_shifts(shifts)
            self._custom_shifts = shifts
        return self.shift_options

    async def add_shift_option(self, start: str, end: str) -> List[str]:
        """
        Offer a new shift label built from HH:MM times.

        Raises:
            ValidationError: If a time is malformed
        """
        return await self._save_shifts(add_shift(self._custom_shifts, format_shift(start, end)))

    async def remove_shift_option(self, shift: str) -> List[str]:
        return await self._save_shifts(remove_shift(self._custom_shifts, shift))

    async def update_shift_option(self, old: str, start: str, end: str) -> List[str]:
        """
        Rename a custom shift; editing a default shift adds a custom one.

        Raises:
            ValidationError: If a time is malformed or the label already exists
        """
        return await self._save_shifts(
            replace_shift(self._custom_shifts, old, format_shift(start, end))
        )

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------
    async def flush(self) -> None:
        """Write pending attendance now and wait for background persistence."""
        await self._saver.drain()
        await self._tracker.drain()

    async def aclose(self) -> None:
        await self.flush()
        logger.info("Timesheet session closed")
