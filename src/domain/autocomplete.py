"""
Autocomplete Engine Module

Incremental suggestions from the employee master list while a grid row's
code or name is being typed. Input-method composition (multi-keystroke
characters such as Vietnamese or CJK) suppresses recomputation so that a
half-composed character is never used as a search term.
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional, Sequence

from .entities import Employee

FIELD_CODE = 'code'
FIELD_NAME = 'name'
SEARCHABLE_FIELDS = (FIELD_CODE, FIELD_NAME)

DEFAULT_SUGGESTION_LIMIT = 5
DEFAULT_BLUR_DELAY = 0.2

# (delay_seconds, callback) -> handle with cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]


def field_key(row_id: str, field_name: str) -> str:
    return f"{row_id}-{field_name}"


def _check_field(field_name: str) -> None:
    if field_name not in SEARCHABLE_FIELDS:
        raise ValueError(f"Unsupported autocomplete field: {field_name}")


def _call_later(delay: float, callback: Callable[[], None]):
    return asyncio.get_running_loop().call_later(delay, callback)


@dataclass
class AutocompleteState:
    """Published suggestion state; active_field is "<row_id>-<field>" or None."""
    active_field: Optional[str] = None
    suggestions: List[Employee] = field(default_factory=list)
    search_term: str = ""


def search(
    employees: Sequence[Employee],
    term: Optional[str],
    field_name: str,
    limit: int = DEFAULT_SUGGESTION_LIMIT
) -> List[Employee]:
    """
    Case-insensitive substring search on code or name.

    Returns at most `limit` employees, none for an empty or blank term.
    """
    _check_field(field_name)
    if not term or not term.strip():
        return []
    needle = term.lower().strip()
    matches = []
    for emp in employees:
        haystack = getattr(emp, field_name) or ""
        if needle in haystack.lower():
            matches.append(emp)
            if len(matches) >= limit:
                break
    return matches


class AutocompleteEngine:
    """
    Suggestion state machine for the code/name cells of grid rows.

    Operations that write to the grid take the current snapshot and return
    a new one; the engine never mutates rows.

    Args:
        master_employees: Employee master list to search
        limit: Maximum number of suggestions
        blur_delay: Seconds before a blurred field's suggestions close
        scheduler: Delayed-callback primitive, defaults to the running
            event loop's call_later
    """

    def __init__(
        self,
        master_employees: Sequence[Employee] = (),
        limit: int = DEFAULT_SUGGESTION_LIMIT,
        blur_delay: float = DEFAULT_BLUR_DELAY,
        scheduler: Optional[Scheduler] = None
    ):
        self._master = list(master_employees)
        self._limit = limit
        self._blur_delay = blur_delay
        self._scheduler = scheduler or _call_later
        self._state = AutocompleteState()
        self._composing = False

    @property
    def state(self) -> AutocompleteState:
        return self._state

    @property
    def is_composing(self) -> bool:
        return self._composing

    def set_master(self, employees: Sequence[Employee]) -> None:
        self._master = list(employees)

    def search(self, term: Optional[str], field_name: str) -> List[Employee]:
        return search(self._master, term, field_name, self._limit)

    def composition_start(self) -> None:
        self._composing = True

    def composition_end(self) -> None:
        self._composing = False

    def _publish(self, row_id: str, field_name: str, term: str) -> None:
        self._state = AutocompleteState(
            active_field=field_key(row_id, field_name),
            suggestions=self.search(term, field_name),
            search_term=term
        )

    def on_input(
        self,
        grid: Sequence[Employee],
        row_id: str,
        field_name: str,
        value: str
    ) -> List[Employee]:
        """
        Write the typed value through and refresh suggestions.

        Returns:
            The new grid snapshot (always contains the raw value)
        """
        _check_field(field_name)
        new_grid = [
            replace(emp, **{field_name: value}) if emp.id == row_id else emp
            for emp in grid
        ]
        if not self._composing:
            self._publish(row_id, field_name, value)
        return new_grid

    def on_focus(self, row_id: str, field_name: str, current_value: str) -> None:
        """Re-open suggestions for the value already in the field."""
        _check_field(field_name)
        self._publish(row_id, field_name, current_value or "")

    def on_blur(self, row_id: str, field_name: str):
        """
        Close the field's suggestions after the grace delay.

        A pointer-down on a suggestion fires before the blur takes effect;
        the close is skipped if another field became active meanwhile.
        """
        key = field_key(row_id, field_name)
        return self._scheduler(self._blur_delay, lambda: self._close_if_active(key))

    def _close_if_active(self, key: str) -> None:
        if self._state.active_field == key:
            self._state = replace(self._state, active_field=None)

    def select_suggestion(
        self,
        grid: Sequence[Employee],
        row_id: str,
        employee: Employee
    ) -> List[Employee]:
        """
        Copy code, name and department from the chosen employee into a row.

        Returns:
            The new grid snapshot
        """
        new_grid = [
            replace(
                emp,
                code=employee.code,
                name=employee.name,
                department=employee.department
            ) if emp.id == row_id else emp
            for emp in grid
        ]
        self._state = AutocompleteState()
        return new_grid

    def dismiss_all(self) -> None:
        """Pointer-down outside every suggestion popover."""
        self._state = replace(self._state, active_field=None)

    def is_field_active(self, row_id: str, field_name: str) -> bool:
        return self._state.active_field == field_key(row_id, field_name)
