"""
Reconciliation Engine Module

Keeps the grid, the employee master list and the target rosters
consistent after a grid snapshot is committed.

The engine is pure: it computes the new in-memory master list and
target list together with the ordered list of persistence mutations
that bring the backing store to the same state. Issuing those
mutations is left to the application layer.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Sequence

from .entities import Employee, RosterEntry, Target, new_id
from .validation import find_by_code

DEFAULT_SHIFT = '08:00 - 17:00'
UNASSIGNED_DEPARTMENT = 'Chưa xác định'

# Fields of a grid row that are written back to the master record
SYNCED_FIELDS = ('code', 'name', 'department')


class MutationKind(Enum):
    """Persistence call to issue for one entity."""
    CREATE_EMPLOYEE = auto()
    UPDATE_EMPLOYEE = auto()
    DELETE_EMPLOYEE = auto()
    CREATE_TARGET = auto()
    UPDATE_TARGET = auto()


@dataclass(frozen=True)
class Mutation:
    """
    One persistence call.

    Attributes:
        kind: What to do
        entity_id: Id of the employee or target
        payload: Employee for creates, field patch dict for employee
            updates, final Target for target creates and updates
    """
    kind: MutationKind
    entity_id: str
    payload: Any = None


@dataclass
class EmployeeChange:
    """A grid row whose synced fields differ from its master record."""
    before: Employee
    after: Employee


@dataclass
class EmployeeDiff:
    """Classification of a grid snapshot against the master list."""
    added: List[Employee] = field(default_factory=list)
    changed: List[EmployeeChange] = field(default_factory=list)
    removed_ids: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.changed or self.removed_ids)


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation pass."""
    employees: List[Employee]
    targets: List[Target]
    mutations: List[Mutation] = field(default_factory=list)
    diff: EmployeeDiff = field(default_factory=EmployeeDiff)
    conflicts: List[str] = field(default_factory=list)

    def mutations_of(self, kind: MutationKind) -> List[Mutation]:
        return [m for m in self.mutations if m.kind == kind]


def _is_blank_row(emp: Employee) -> bool:
    return not emp.code.strip() and not emp.name.strip()


def diff_employees(
    previous_grid: Sequence[Employee],
    new_grid: Sequence[Employee],
    master_employees: Sequence[Employee]
) -> EmployeeDiff:
    """
    Classify rows of the new grid as added, changed or removed.

    A row is added when its id is not in the master list, changed when
    its code, name or department differs from the master record, and
    removed when its id was in the previous grid but not the new one.
    Rows with neither code nor name are not added yet.
    """
    master_by_id = {emp.id: emp for emp in master_employees}
    diff = EmployeeDiff()

    for row in new_grid:
        master = master_by_id.get(row.id)
        if master is None:
            if not _is_blank_row(row):
                diff.added.append(row)
        elif any(getattr(row, name) != getattr(master, name) for name in SYNCED_FIELDS):
            diff.changed.append(EmployeeChange(before=master, after=row))

    new_ids = {row.id for row in new_grid}
    seen = set()
    for row in previous_grid:
        if row.id not in new_ids and row.id not in seen:
            diff.removed_ids.append(row.id)
            seen.add(row.id)
    return diff


def _find_target_index(targets: Sequence[Target], name: str) -> Optional[int]:
    for index, target in enumerate(targets):
        if target.name == name:
            return index
    return None


class ReconciliationEngine:
    """
    Three-way reconciliation between grid, master list and rosters.

    Steps run in a fixed order (adds, changes, department sync,
    removals) and later steps observe the in-memory state produced by
    earlier ones. Every insert checks for existence first, so reconciling
    the same pair of snapshots twice produces no further mutations.

    Args:
        default_shift: Shift used for roster entries created by department sync
        unassigned_department: Placeholder department that never gets a target
        id_factory: Generator for ids of auto-created targets
    """

    def __init__(
        self,
        default_shift: str = DEFAULT_SHIFT,
        unassigned_department: str = UNASSIGNED_DEPARTMENT,
        id_factory: Callable[[], str] = new_id
    ):
        self.default_shift = default_shift
        self.unassigned_department = unassigned_department
        self._id_factory = id_factory

    def reconcile(
        self,
        previous_grid: Sequence[Employee],
        new_grid: Sequence[Employee],
        master_employees: Sequence[Employee],
        targets: Sequence[Target]
    ) -> ReconciliationResult:
        """
        Reconcile a committed grid snapshot.

        Inputs are never mutated; records that change are replaced with
        new objects in the returned lists.

        Returns:
            ReconciliationResult with the new master list, target list,
            ordered mutations and any code conflicts
        """
        diff = diff_employees(previous_grid, new_grid, master_employees)
        employees = list(master_employees)
        target_list = list(targets)
        conflicts: List[str] = []

        created_employees: List[Employee] = []
        employee_updates: List[Mutation] = []
        deleted_ids: List[str] = []
        created_target_ids: List[str] = []
        touched_target_ids: List[str] = []

        def touch(target_id: str) -> None:
            if target_id not in created_target_ids and target_id not in touched_target_ids:
                touched_target_ids.append(target_id)

        def set_roster(index: int, roster: List[RosterEntry]) -> None:
            target_list[index] = replace(target_list[index], roster=roster)
            touch(target_list[index].id)

        # Adds
        added: List[Employee] = []
        for row in diff.added:
            if any(emp.id == row.id for emp in employees):
                continue
            clash = find_by_code(employees, row.code, exclude_id=row.id)
            if clash is not None:
                conflicts.append(
                    f"Code '{row.code}' is already used by {clash.name or clash.id}; "
                    f"row '{row.name}' was not added"
                )
                continue
            record = replace(row, attendance={})
            employees.append(record)
            created_employees.append(record)
            added.append(record)

        # Changes
        department_moves = []
        for change in diff.changed:
            index = next(
                (i for i, emp in enumerate(employees) if emp.id == change.after.id),
                None
            )
            if index is None:
                continue
            current = employees[index]
            patch: Dict[str, str] = {}
            for name in SYNCED_FIELDS:
                value = getattr(change.after, name)
                if value != getattr(current, name):
                    patch[name] = value
            if 'code' in patch:
                clash = find_by_code(employees, patch['code'], exclude_id=current.id)
                if clash is not None:
                    conflicts.append(
                        f"Code '{patch['code']}' is already used by {clash.name or clash.id}; "
                        f"code of '{current.name}' was kept"
                    )
                    del patch['code']
            if not patch:
                continue
            employees[index] = replace(current, **patch)
            employee_updates.append(
                Mutation(MutationKind.UPDATE_EMPLOYEE, current.id, dict(patch))
            )
            if 'department' in patch:
                department_moves.append((current.id, current.department, patch['department']))

        # Department <-> roster sync
        for employee_id, old_department, new_department in department_moves:
            old_index = _find_target_index(target_list, old_department)
            if old_index is not None and target_list[old_index].has_employee(employee_id):
                set_roster(old_index, [
                    entry for entry in target_list[old_index].roster
                    if entry.employee_id != employee_id
                ])
            new_index = _find_target_index(target_list, new_department)
            if new_index is not None and not target_list[new_index].has_employee(employee_id):
                set_roster(new_index, target_list[new_index].roster + [
                    RosterEntry(employee_id=employee_id, shift=self.default_shift)
                ])

        for record in added:
            department = record.department.strip()
            if not department or department == self.unassigned_department:
                continue
            entry = RosterEntry(employee_id=record.id, shift=record.shift or self.default_shift)
            index = _find_target_index(target_list, record.department)
            if index is None:
                target = Target(id=self._id_factory(), name=record.department, roster=[entry])
                target_list.append(target)
                created_target_ids.append(target.id)
            elif not target_list[index].has_employee(record.id):
                set_roster(index, target_list[index].roster + [entry])

        # Removals
        for employee_id in diff.removed_ids:
            if any(emp.id == employee_id for emp in employees):
                employees = [emp for emp in employees if emp.id != employee_id]
                deleted_ids.append(employee_id)
            for index, target in enumerate(target_list):
                if target.has_employee(employee_id):
                    set_roster(index, [
                        entry for entry in target.roster if entry.employee_id != employee_id
                    ])

        targets_by_id = {target.id: target for target in target_list}
        mutations: List[Mutation] = []
        mutations.extend(
            Mutation(MutationKind.CREATE_EMPLOYEE, emp.id, emp) for emp in created_employees
        )
        mutations.extend(employee_updates)
        mutations.extend(
            Mutation(MutationKind.CREATE_TARGET, target_id, targets_by_id[target_id])
            for target_id in created_target_ids
        )
        mutations.extend(
            Mutation(MutationKind.UPDATE_TARGET, target_id, targets_by_id[target_id])
            for target_id in touched_target_ids
        )
        mutations.extend(
            Mutation(MutationKind.DELETE_EMPLOYEE, employee_id) for employee_id in deleted_ids
        )

        return ReconciliationResult(
            employees=employees,
            targets=target_list,
            mutations=mutations,
            diff=diff,
            conflicts=conflicts
        )
