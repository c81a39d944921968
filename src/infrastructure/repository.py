"""
Timesheet Repository Module

Persistence adapter for employees, targets and month-scoped attendance
on top of a DocumentStore.

Layout (month is 1-based):
    employees/{id}
    targets/{id}
    timesheets/{year}/{month}/{employee_id}
    settings/shifts

Records are stored with camelCase keys. Collections may come back as
lists when their keys are sequential integers; both shapes are read.
"""

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from domain.entities import Employee, EmployeeRole, RosterEntry, Target
from infrastructure.document_store import DocumentStore
from infrastructure.logger import get_logger

logger = get_logger("Repository")

EMPLOYEES = "employees"
TARGETS = "targets"
TIMESHEETS = "timesheets"
SHIFTS = "settings/shifts"

# Employee attribute -> stored key
_TEXT_FIELDS = {
    'code': 'code',
    'name': 'name',
    'department': 'department',
    'shift': 'shift',
    'password': 'password',
    'bank_account': 'bankAccount',
    'note': 'note',
}
_NUMBER_FIELDS = {
    'daily_rate': 'dailyRate',
    'standard_hours': 'standardHours',
    'shift_salary': 'shiftSalary',
    'responsibility_salary': 'responsibilitySalary',
    'support_salary': 'supportSalary',
    'management_salary': 'managementSalary',
    'bonus': 'bonus',
    'advance1': 'advance1',
    'advance2': 'advance2',
    'advance3': 'advance3',
    'refund': 'refund',
    'social_insurance': 'socialInsurance',
    'uniform': 'uniform',
    'penalty': 'penalty',
}


def _entries(data: Any) -> List[tuple]:
    """(key, value) pairs of a dict- or list-shaped collection, skipping holes."""
    if isinstance(data, dict):
        return [(str(k), v) for k, v in data.items() if v is not None]
    if isinstance(data, list):
        return [(str(i), v) for i, v in enumerate(data) if v is not None]
    return []


def _to_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def attendance_from_record(data: Any) -> Dict[int, str]:
    attendance: Dict[int, str] = {}
    for key, value in _entries(data):
        try:
            day = int(key)
        except ValueError:
            continue
        attendance[day] = str(value)
    return attendance


def attendance_to_record(attendance: Dict[int, str]) -> Dict[str, str]:
    return {str(day): value for day, value in sorted(attendance.items())}


def employee_from_record(key: str, data: Dict[str, Any]) -> Employee:
    """Build an Employee from a stored record; missing numbers read as zero."""
    kwargs: Dict[str, Any] = {'id': str(data.get('id') or key)}
    for attr, stored in _TEXT_FIELDS.items():
        value = data.get(stored)
        kwargs[attr] = "" if value is None else str(value)
    for attr, stored in _NUMBER_FIELDS.items():
        kwargs[attr] = _to_number(data.get(stored))
    kwargs['role'] = EmployeeRole.from_value(data.get('role'))
    kwargs['attendance'] = attendance_from_record(data.get('attendance'))
    return Employee(**kwargs)


def employee_to_record(employee: Employee, include_attendance: bool = False) -> Dict[str, Any]:
    record: Dict[str, Any] = {'id': employee.id}
    for attr, stored in _TEXT_FIELDS.items():
        record[stored] = getattr(employee, attr)
    for attr, stored in _NUMBER_FIELDS.items():
        record[stored] = getattr(employee, attr)
    record['role'] = employee.role.value
    if include_attendance:
        record['attendance'] = attendance_to_record(employee.attendance)
    return record


def employee_patch_to_record(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Translate an attribute-keyed patch into stored keys."""
    record: Dict[str, Any] = {}
    for attr, value in patch.items():
        if attr in _TEXT_FIELDS:
            record[_TEXT_FIELDS[attr]] = value
        elif attr in _NUMBER_FIELDS:
            record[_NUMBER_FIELDS[attr]] = value
        elif attr == 'role':
            record['role'] = value.value if isinstance(value, EmployeeRole) else value
        elif attr == 'attendance':
            record['attendance'] = attendance_to_record(value)
        else:
            raise ValueError(f"Unknown employee field: {attr}")
    return record


def target_from_record(key: str, data: Dict[str, Any]) -> Target:
    roster = []
    for _, entry in _entries(data.get('roster')):
        if isinstance(entry, dict) and entry.get('employeeId'):
            roster.append(RosterEntry(
                employee_id=str(entry['employeeId']),
                shift=str(entry.get('shift') or "")
            ))
    return Target(id=str(data.get('id') or key), name=str(data.get('name') or ""), roster=roster)


def roster_to_record(roster: Iterable[RosterEntry]) -> List[Dict[str, str]]:
    return [{'employeeId': entry.employee_id, 'shift': entry.shift} for entry in roster]


def target_to_record(target: Target) -> Dict[str, Any]:
    return {'id': target.id, 'name': target.name, 'roster': roster_to_record(target.roster)}


def timesheet_record(employee: Employee) -> Dict[str, Any]:
    """Month-scoped record: identity fields plus attendance."""
    return {
        'id': employee.id,
        'code': employee.code,
        'name': employee.name,
        'department': employee.department,
        'shift': employee.shift,
        'attendance': attendance_to_record(employee.attendance),
    }


class TimesheetRepository:
    """
    Async persistence for the timesheet engine.

    All calls may raise StoreError; callers decide whether to surface or
    log the failure.
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------
    async def get_all_employees(self) -> List[Employee]:
        data = await self._store.get(EMPLOYEES)
        employees = [
            replace(employee_from_record(key, value), attendance={})
            for key, value in _entries(data) if isinstance(value, dict)
        ]
        logger.debug(f"Loaded {len(employees)} employees")
        return employees

    async def get_employee_by_id(self, employee_id: str) -> Optional[Employee]:
        data = await self._store.get(f"{EMPLOYEES}/{employee_id}")
        if not isinstance(data, dict):
            return None
        return replace(employee_from_record(employee_id, data), attendance={})

    async def create_employee(self, employee: Employee) -> str:
        """Store a new employee; an empty id gets a generated key."""
        employee_id = employee.id or self._store.push_key(EMPLOYEES)
        record = employee_to_record(replace(employee, id=employee_id, attendance={}))
        await self._store.set(f"{EMPLOYEES}/{employee_id}", record)
        logger.info(f"Employee created: {employee_id} ({employee.code} {employee.name})")
        return employee_id

    async def update_employee(self, employee_id: str, patch: Dict[str, Any]) -> None:
        await self._store.update(f"{EMPLOYEES}/{employee_id}", employee_patch_to_record(patch))
        logger.info(f"Employee updated: {employee_id} {sorted(patch)}")

    async def delete_employee(self, employee_id: str) -> None:
        await self._store.remove(f"{EMPLOYEES}/{employee_id}")
        logger.info(f"Employee deleted: {employee_id}")

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------
    async def get_all_targets(self) -> List[Target]:
        data = await self._store.get(TARGETS)
        targets = [
            target_from_record(key, value)
            for key, value in _entries(data) if isinstance(value, dict)
        ]
        logger.debug(f"Loaded {len(targets)} targets")
        return targets

    async def get_target_by_id(self, target_id: str) -> Optional[Target]:
        data = await self._store.get(f"{TARGETS}/{target_id}")
        if not isinstance(data, dict):
            return None
        return target_from_record(target_id, data)

    async def create_target(self, target: Target) -> str:
        target_id = target.id or self._store.push_key(TARGETS)
        await self._store.set(f"{TARGETS}/{target_id}", target_to_record(replace(target, id=target_id)))
        logger.info(f"Target created: {target_id} ({target.name})")
        return target_id

    async def update_target(self, target_id: str, patch: Dict[str, Any]) -> None:
        """Patch a target; 'roster' may be given as RosterEntry objects."""
        record: Dict[str, Any] = {}
        for key, value in patch.items():
            if key == 'roster':
                record['roster'] = roster_to_record(value)
            elif key == 'name':
                record['name'] = value
            else:
                raise ValueError(f"Unknown target field: {key}")
        await self._store.update(f"{TARGETS}/{target_id}", record)
        logger.info(f"Target updated: {target_id} {sorted(patch)}")

    async def delete_target(self, target_id: str) -> None:
        await self._store.remove(f"{TARGETS}/{target_id}")
        logger.info(f"Target deleted: {target_id}")

    # ------------------------------------------------------------------
    # Shift options
    # ------------------------------------------------------------------
    async def get_custom_shifts(self) -> List[str]:
        """Custom shift labels, stored as a list or an index-keyed dict."""
        data = await self._store.get(SHIFTS)
        return [str(value) for _, value in _entries(data) if value]

    async def save_custom_shifts(self, shifts: Iterable[str]) -> None:
        shifts = list(shifts)
        await self._store.set(SHIFTS, shifts or None)
        logger.info(f"Custom shifts saved: {len(shifts)} shifts")

    # ------------------------------------------------------------------
    # Timesheets
    # ------------------------------------------------------------------
    async def get_timesheet(self, year: int, month: int) -> List[Employee]:
        """Attendance records of one month (1-based), keyed by employee id."""
        data = await self._store.get(f"{TIMESHEETS}/{year}/{month}")
        return [
            employee_from_record(key, value)
            for key, value in _entries(data) if isinstance(value, dict)
        ]

    async def save_timesheet(self, year: int, month: int, employee: Employee) -> None:
        await self._store.set(f"{TIMESHEETS}/{year}/{month}/{employee.id}", timesheet_record(employee))

    async def save_all_timesheets(self, year: int, month: int, employees: Iterable[Employee]) -> None:
        """Overwrite the whole month with the given snapshot."""
        records = {emp.id: timesheet_record(emp) for emp in employees}
        await self._store.set(f"{TIMESHEETS}/{year}/{month}", records or None)
        logger.info(f"Timesheet saved: {year}-{month:02d} ({len(records)} rows)")

    async def import_initial_data(
        self,
        employees: Optional[Iterable[Employee]] = None,
        targets: Optional[Iterable[Target]] = None
    ) -> None:
        """Replace the employee and/or target collections in one go."""
        patch: Dict[str, Any] = {}
        if employees is not None:
            patch[EMPLOYEES] = {emp.id: employee_to_record(emp) for emp in employees}
        if targets is not None:
            patch[TARGETS] = {t.id: target_to_record(t) for t in targets}
        if patch:
            await self._store.update("", patch)
            logger.info(f"Initial data imported: {', '.join(sorted(patch))}")
