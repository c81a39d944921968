"""
Shift Options Module

Shift labels offered when rostering employees: a fixed default set plus
custom labels kept in the store. Labels use the 24h "HH:MM - HH:MM" form.
"""

import re
from typing import List, Sequence

from .exceptions import ValidationError

DEFAULT_SHIFTS = (
    '06:00 - 14:00',
    '08:00 - 17:00',
    '14:00 - 22:00',
    '18:00 - 06:00',
    '22:00 - 06:00',
    '00:00 - 08:00',
    '12:00 - 20:00',
    '20:00 - 04:00',
)

_TIME = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


def format_shift(start: str, end: str) -> str:
    """
    Build a shift label from start and end times.

    Raises:
        ValidationError: If a time is not HH:MM (24h)
    """
    start, end = start.strip(), end.strip()
    for value in (start, end):
        if not _TIME.match(value):
            raise ValidationError(f"Invalid shift time '{value}', expected HH:MM (24h).")
    return f"{start} - {end}"


def all_shifts(custom: Sequence[str]) -> List[str]:
    """Defaults first, then custom labels not already offered."""
    options = list(DEFAULT_SHIFTS)
    for shift in custom:
        if shift and shift not in options:
            options.append(shift)
    return options


def add_shift(custom: Sequence[str], shift: str) -> List[str]:
    """New custom list with the shift appended; known labels are ignored."""
    if shift in DEFAULT_SHIFTS or shift in custom:
        return list(custom)
    return list(custom) + [shift]


def remove_shift(custom: Sequence[str], shift: str) -> List[str]:
    """New custom list without the shift. Defaults cannot be removed."""
    return [s for s in custom if s != shift]


def replace_shift(custom: Sequence[str], old: str, new: str) -> List[str]:
    """
    Rename a custom shift. Editing a default adds the new label instead.

    Raises:
        ValidationError: If the new label is already offered
    """
    if new == old:
        return list(custom)
    if new in all_shifts(custom):
        raise ValidationError(f"Shift '{new}' already exists.")
    if old in custom:
        return [new if s == old else s for s in custom]
    return list(custom) + [new]
