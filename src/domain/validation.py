"""
Validation Module

Checks applied to explicit employee and target actions before anything
is changed.
"""

from typing import Iterable, Optional

from .entities import Employee, Target
from .exceptions import DuplicateCodeError, ValidationError


def normalize_code(code: Optional[str]) -> str:
    """Code comparison key: trimmed and case-folded."""
    return (code or "").strip().lower()


def find_by_code(
    employees: Iterable[Employee],
    code: Optional[str],
    exclude_id: Optional[str] = None
) -> Optional[Employee]:
    """Find an employee by code (case-insensitive), ignoring one id."""
    key = normalize_code(code)
    if not key:
        return None
    for emp in employees:
        if emp.id != exclude_id and normalize_code(emp.code) == key:
            return emp
    return None


def validate_employee(
    employee: Employee,
    master_employees: Iterable[Employee]
) -> None:
    """
    Validate an employee about to be added or edited explicitly.

    Raises:
        ValidationError: If code or name is empty
        DuplicateCodeError: If another record already uses the code
    """
    if not employee.code.strip() or not employee.name.strip():
        raise ValidationError("Employee code and name are required.")
    if find_by_code(master_employees, employee.code, exclude_id=employee.id):
        raise DuplicateCodeError(employee.code)


def validate_target(target: Target) -> None:
    """
    Validate a target about to be saved explicitly.

    Raises:
        ValidationError: If the name is empty or the roster lists an employee twice
    """
    if not target.name.strip():
        raise ValidationError("Target name is required.")
    seen = set()
    for entry in target.roster:
        if entry.employee_id in seen:
            raise ValidationError(
                f"Employee '{entry.employee_id}' is listed twice in target '{target.name}'."
            )
        seen.add(entry.employee_id)
