"""
Unit tests for the selection engine.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities import Selection
from domain.selection import SelectionEngine


class TestSelectionRectangle:
    """Tests for the Selection value object."""

    def test_normalized_bounds(self):
        sel = Selection(start_row=4, start_col=1, end_row=2, end_col=3)
        assert (sel.min_row, sel.max_row) == (2, 4)
        assert (sel.min_col, sel.max_col) == (1, 3)
        assert sel.height == 3
        assert sel.width == 3

    def test_drag_direction_independence(self):
        """Both corner orders cover the same cells."""
        a = Selection(1, 2, 3, 5)
        b = Selection(3, 5, 1, 2)
        for row in range(6):
            for col in range(8):
                assert a.contains(row, col) == b.contains(row, col)

    def test_single_cell(self):
        assert Selection(1, 1, 1, 1).is_single_cell
        assert not Selection(1, 1, 1, 2).is_single_cell


class TestSelectionEngine:
    """Tests for SelectionEngine."""

    def test_drag(self):
        engine = SelectionEngine()
        engine.begin_selection(2, 3)
        assert engine.is_dragging
        engine.extend_selection(0, 1)
        engine.end_drag()

        assert not engine.is_dragging
        assert engine.selection == Selection(2, 3, 0, 1)
        assert engine.is_selected(1, 2)
        assert not engine.is_selected(3, 2)

    def test_extend_only_while_dragging(self):
        engine = SelectionEngine()
        engine.click_select(1, 1)
        engine.extend_selection(5, 5)
        assert engine.selection == Selection(1, 1, 1, 1)

    def test_secondary_button_ignored(self):
        engine = SelectionEngine()
        engine.begin_selection(1, 1, button=2)
        assert engine.selection is None
        assert not engine.is_dragging

    def test_click_select_replaces_selection(self):
        engine = SelectionEngine()
        engine.begin_selection(0, 0)
        engine.extend_selection(3, 3)
        engine.end_drag()
        engine.click_select(5, 6)
        assert engine.selection == Selection(5, 6, 5, 6)
        assert not engine.is_dragging

    def test_empty_selection_is_read_only_noop(self):
        engine = SelectionEngine()
        assert engine.is_selected(0, 0) is False
        engine.end_drag()
        engine.extend_selection(1, 1)
        assert engine.selection is None

    def test_clear(self):
        engine = SelectionEngine()
        engine.begin_selection(1, 1)
        engine.clear()
        assert engine.selection is None
        assert not engine.is_dragging


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
