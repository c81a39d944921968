"""
Selection Engine Module

Rectangular range selection over the (row, column) grid: click, drag and
programmatic extension. Coordinates index the displayed (sorted) rows and
the day columns of the month.
"""

from typing import Optional

from .entities import Selection

PRIMARY_BUTTON = 0


class SelectionEngine:
    """
    Tracks the active selection rectangle and the dragging flag.

    Read-only operations on an empty selection are no-ops; click
    establishes a new 1x1 selection.
    """

    def __init__(self):
        self._selection: Optional[Selection] = None
        self._dragging = False

    @property
    def selection(self) -> Optional[Selection]:
        return self._selection

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    def begin_selection(self, row: int, col: int, button: int = PRIMARY_BUTTON) -> None:
        """Start a drag at a cell. Only the primary pointer button starts a drag."""
        if button != PRIMARY_BUTTON:
            return
        self._dragging = True
        self._selection = Selection(row, col, row, col)

    def extend_selection(self, row: int, col: int) -> None:
        """Move the end corner while dragging."""
        if not self._dragging or self._selection is None:
            return
        self._selection = Selection(
            self._selection.start_row,
            self._selection.start_col,
            row,
            col
        )

    def click_select(self, row: int, col: int) -> None:
        """Select a single cell without entering drag mode."""
        self._selection = Selection(row, col, row, col)

    def end_drag(self) -> None:
        """
        Leave drag mode.

        Wired to a global pointer-release listener, since a drag may end
        outside the grid.
        """
        self._dragging = False

    def select(self, selection: Optional[Selection]) -> None:
        """Set the selection programmatically."""
        self._selection = selection

    def clear(self) -> None:
        """Forget the selection (navigation away from the grid)."""
        self._selection = None
        self._dragging = False

    def is_selected(self, row: int, col: int) -> bool:
        if self._selection is None:
            return False
        return self._selection.contains(row, col)
