"""
Unit tests for the autocomplete engine.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.autocomplete import (
    AutocompleteEngine, FIELD_CODE, FIELD_NAME, field_key, search
)
from domain.entities import Employee


class FakeScheduler:
    """Collects delayed callbacks so tests can fire them explicitly."""

    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((delay, callback))
        return None

    def run_all(self):
        calls, self.calls = self.calls, []
        for _, callback in calls:
            callback()


@pytest.fixture
def master():
    return [
        Employee(id="1", code="NV001", name="Nguyễn Văn An", department="Kho A"),
        Employee(id="2", code="NV002", name="Trần Thị Bình", department="Kho B"),
        Employee(id="3", code="NV003", name="Lê Văn Cường", department="Văn Phòng"),
        Employee(id="4", code="NV004", name="Phạm An", department="Kho A"),
        Employee(id="5", code="NV005", name="Đỗ Minh", department="Kho B"),
        Employee(id="6", code="NV006", name="Hồ Lan", department="Kho C"),
    ]


@pytest.fixture
def grid():
    return [Employee(id="r1"), Employee(id="r2", code="X")]


class TestSearch:
    """Tests for search()."""

    def test_case_insensitive_substring(self, master):
        result = search(master, "an", FIELD_NAME)
        assert [e.id for e in result] == ["1", "4", "6"]

    def test_code_field(self, master):
        assert [e.id for e in search(master, "nv002", FIELD_CODE)] == ["2"]

    def test_capped_at_five(self, master):
        assert len(search(master, "NV", FIELD_CODE)) == 5

    def test_blank_term(self, master):
        assert search(master, "", FIELD_CODE) == []
        assert search(master, "   ", FIELD_CODE) == []
        assert search(master, None, FIELD_NAME) == []

    def test_unknown_field(self, master):
        with pytest.raises(ValueError):
            search(master, "a", "department")


class TestAutocompleteEngine:
    """Tests for AutocompleteEngine."""

    def test_input_writes_through_and_publishes(self, master, grid):
        engine = AutocompleteEngine(master, scheduler=FakeScheduler())

        new_grid = engine.on_input(grid, "r1", FIELD_CODE, "NV00")

        assert new_grid[0].code == "NV00"
        assert grid[0].code == ""
        assert engine.state.active_field == field_key("r1", FIELD_CODE)
        assert engine.state.search_term == "NV00"
        assert len(engine.state.suggestions) == 5

    def test_composition_suppresses_recompute(self, master, grid):
        engine = AutocompleteEngine(master, scheduler=FakeScheduler())
        engine.composition_start()

        new_grid = engine.on_input(grid, "r1", FIELD_NAME, "Ng")

        assert new_grid[0].name == "Ng"
        assert engine.state.active_field is None
        assert engine.state.suggestions == []

        engine.composition_end()
        engine.on_input(new_grid, "r1", FIELD_NAME, "Nguyễn")
        assert [e.id for e in engine.state.suggestions] == ["1"]

    def test_focus_reopens_suggestions(self, master):
        engine = AutocompleteEngine(master, scheduler=FakeScheduler())
        engine.on_focus("r2", FIELD_CODE, "NV003")
        assert engine.is_field_active("r2", FIELD_CODE)
        assert [e.id for e in engine.state.suggestions] == ["3"]

    def test_blur_closes_after_delay(self, master):
        scheduler = FakeScheduler()
        engine = AutocompleteEngine(master, blur_delay=0.2, scheduler=scheduler)
        engine.on_focus("r1", FIELD_CODE, "NV")

        engine.on_blur("r1", FIELD_CODE)

        assert engine.is_field_active("r1", FIELD_CODE)
        assert scheduler.calls[0][0] == 0.2
        scheduler.run_all()
        assert engine.state.active_field is None

    def test_blur_close_skipped_when_field_changed(self, master):
        scheduler = FakeScheduler()
        engine = AutocompleteEngine(master, scheduler=scheduler)
        engine.on_focus("r1", FIELD_CODE, "NV")
        engine.on_blur("r1", FIELD_CODE)
        engine.on_focus("r2", FIELD_NAME, "An")

        scheduler.run_all()

        assert engine.is_field_active("r2", FIELD_NAME)

    def test_select_suggestion(self, master, grid):
        engine = AutocompleteEngine(master, scheduler=FakeScheduler())
        engine.on_focus("r1", FIELD_CODE, "NV002")

        new_grid = engine.select_suggestion(grid, "r1", master[1])

        assert new_grid[0].code == "NV002"
        assert new_grid[0].name == "Trần Thị Bình"
        assert new_grid[0].department == "Kho B"
        assert new_grid[0].id == "r1"
        assert engine.state.active_field is None
        assert engine.state.suggestions == []

    def test_dismiss_all(self, master):
        engine = AutocompleteEngine(master, scheduler=FakeScheduler())
        engine.on_focus("r1", FIELD_CODE, "NV")
        engine.dismiss_all()
        assert engine.state.active_field is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
