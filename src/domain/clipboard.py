"""
Clipboard Transfer Module

Converts grid selections to and from the tab/newline text block used by
spreadsheet programs, and implements fill and clear over a selection.

All functions are copy-on-write: the input snapshot is never mutated and
only touched rows are copied.
"""

import re
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .entities import DayInfo, Employee, Selection

CELL_DELIMITER = "\t"
ROW_DELIMITER = "\n"

_LINE_BREAK = re.compile(r'\r\n|\n|\r')


def serialize(
    selection: Optional[Selection],
    grid: Sequence[Employee],
    days: Sequence[DayInfo]
) -> str:
    r"""
    Serialize the selected cells as tab-separated rows.

    Unset cells become empty strings. Rows are joined by line breaks, not
    terminated by one, so a text ending in "\n" means the last cell is empty.
    Cells outside the grid are not emitted.
    """
    if selection is None:
        return ""

    lines = []
    for r in range(selection.min_row, min(selection.max_row, len(grid) - 1) + 1):
        attendance = grid[r].attendance
        values = []
        for c in range(selection.min_col, min(selection.max_col, len(days) - 1) + 1):
            values.append(attendance.get(days[c].day, "") or "")
        lines.append(CELL_DELIMITER.join(values))
    return ROW_DELIMITER.join(lines)


def parse_clipboard_rows(text: str, selection: Optional[Selection] = None) -> List[List[str]]:
    r"""
    Split clipboard text into rows of cells.

    Any newline convention is accepted. One trailing empty row is dropped
    as a copy artifact, unless the block including it has exactly the
    shape of the selection (a copied column whose last cell is empty).

    The exception also applies to a single-cell copy that carries a
    trailing line break, as spreadsheets produce:

        >>> parse_clipboard_rows("P\r\n", Selection(0, 0, 1, 0))
        [['P'], ['']]
        >>> parse_clipboard_rows("P\r\n", Selection(0, 0, 2, 0))
        [['P']]

    Over a two-row column the first paste writes P and clears the second
    cell instead of broadcasting P.
    """
    rows = [line.split(CELL_DELIMITER) for line in _LINE_BREAK.split(text)]
    if len(rows) > 1 and rows[-1] == [""]:
        keep = (
            selection is not None
            and len(rows) == selection.height
            and all(len(row) == selection.width for row in rows)
        )
        if not keep:
            rows.pop()
    return rows


def _write_cells(
    grid: Sequence[Employee],
    days: Sequence[DayInfo],
    writes: Dict[int, Dict[int, str]]
) -> List[Employee]:
    """Apply {row_index: {day: value}} writes, copying only touched rows."""
    result = list(grid)
    for r, values in writes.items():
        emp = result[r]
        attendance = dict(emp.attendance)
        attendance.update(values)
        result[r] = replace(emp, attendance=attendance)
    return result


def _broadcast(
    selection: Selection,
    grid: Sequence[Employee],
    days: Sequence[DayInfo],
    value: str
) -> List[Employee]:
    writes: Dict[int, Dict[int, str]] = {}
    for r in range(selection.min_row, selection.max_row + 1):
        if r >= len(grid):
            break
        row_writes = {}
        for c in range(selection.min_col, selection.max_col + 1):
            if c >= len(days):
                break
            row_writes[days[c].day] = value
        writes[r] = row_writes
    return _write_cells(grid, days, writes)


def deserialize(
    text: str,
    selection: Optional[Selection],
    grid: Sequence[Employee],
    days: Sequence[DayInfo]
) -> List[Employee]:
    """
    Write pasted text into a new grid snapshot.

    A single scalar pasted over a multi-cell selection is broadcast to
    every selected cell. Otherwise the block is written from the
    selection's top-left corner (or (0, 0) without a selection); parts
    falling outside the grid are dropped. Values are trimmed.
    """
    if not text:
        return list(grid)

    rows = parse_clipboard_rows(text, selection)
    is_single_value = len(rows) == 1 and len(rows[0]) == 1

    if is_single_value and selection is not None and not selection.is_single_cell:
        return _broadcast(selection, grid, days, rows[0][0].strip())

    start_row = selection.min_row if selection else 0
    start_col = selection.min_col if selection else 0

    writes: Dict[int, Dict[int, str]] = {}
    for r_offset, cells in enumerate(rows):
        target_row = start_row + r_offset
        if target_row >= len(grid):
            continue
        row_writes = {}
        for c_offset, value in enumerate(cells):
            target_col = start_col + c_offset
            if target_col < len(days):
                row_writes[days[target_col].day] = value.strip()
        writes[target_row] = row_writes
    return _write_cells(grid, days, writes)


def fill(
    selection: Optional[Selection],
    grid: Sequence[Employee],
    days: Sequence[DayInfo]
) -> List[Employee]:
    """Broadcast the top-left cell's value across the selection."""
    if selection is None or selection.min_row >= len(grid) or selection.min_col >= len(days):
        return list(grid)
    source = grid[selection.min_row].attendance.get(days[selection.min_col].day, "") or ""
    return _broadcast(selection, grid, days, source)


def clear(
    selection: Optional[Selection],
    grid: Sequence[Employee],
    days: Sequence[DayInfo]
) -> List[Employee]:
    """Set every selected cell to the empty string."""
    if selection is None:
        return list(grid)
    return _broadcast(selection, grid, days, "")
