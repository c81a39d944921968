"""
Sorting Utilities Module

Orders grid rows by their position in the target rosters.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence, Tuple

from .entities import Employee, Target


def build_roster_positions(
    targets: Sequence[Target],
    master_employees: Sequence[Employee]
) -> Dict[str, Tuple[int, int]]:
    """
    Map employee code -> (target index, roster index).

    Roster entries reference employee ids and are resolved to codes through
    the master list. A code listed by several targets keeps the position of
    the last one scanned.
    """
    code_by_id = {emp.id: emp.code for emp in master_employees}
    positions: Dict[str, Tuple[int, int]] = {}
    for target_index, target in enumerate(targets):
        for roster_index, entry in enumerate(target.roster):
            code = code_by_id.get(entry.employee_id)
            if code:
                positions[code] = (target_index, roster_index)
    return positions


def sort_rows(
    grid_rows: Sequence[Employee],
    targets: Sequence[Target],
    master_employees: Sequence[Employee]
) -> List[Employee]:
    """
    Sort grid rows by target order, then roster order.

    Rows assigned to a target come first. Unassigned rows are ordered by
    row id so that editing their code or name does not move them.

    Returns:
        Sorted list (new list, does not modify original)
    """
    positions = build_roster_positions(targets, master_employees)

    def sort_key(emp: Employee) -> tuple:
        position = positions.get(emp.code) if emp.code else None
        if position is None:
            return (1, 0, 0, emp.id or "")
        return (0, position[0], position[1], emp.id or "")

    return sorted(grid_rows, key=sort_key)


def create_rows_from_target(
    target: Target,
    master_employees: Sequence[Employee],
    existing_codes: Iterable[str]
) -> List[Employee]:
    """
    Create empty-attendance rows for roster members missing from the grid.

    Rows are copies of the master records (same id, code, name and
    department) so reconciliation recognises them as existing employees
    and leaves their roster assignments alone.
    """
    by_id = {emp.id: emp for emp in master_employees}
    present = {code for code in existing_codes if code}
    rows = []
    for entry in target.roster:
        emp = by_id.get(entry.employee_id)
        if emp is None or emp.code in present:
            continue
        rows.append(replace(
            emp,
            shift=entry.shift or emp.shift,
            attendance={}
        ))
        present.add(emp.code)
    return rows
