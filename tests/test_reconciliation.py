"""
Unit tests for grid / master list / roster reconciliation.
"""

import itertools

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities import Employee, RosterEntry, Target
from domain.reconciliation import (
    DEFAULT_SHIFT, MutationKind, ReconciliationEngine, UNASSIGNED_DEPARTMENT,
    diff_employees
)


@pytest.fixture
def engine():
    counter = itertools.count(1)
    return ReconciliationEngine(id_factory=lambda: f"new-target-{next(counter)}")


@pytest.fixture
def master():
    return [
        Employee(id="1", code="001", name="An", department="Kho A"),
        Employee(id="2", code="002", name="Bình", department="Kho A"),
        Employee(id="3", code="003", name="Cường", department="Kho B"),
    ]


@pytest.fixture
def targets():
    return [
        Target(id="tA", name="Kho A", roster=[RosterEntry("1"), RosterEntry("2")]),
        Target(id="tB", name="Kho B", roster=[RosterEntry("3"), RosterEntry("2")]),
    ]


def grid_from(master):
    return [Employee(id=e.id, code=e.code, name=e.name, department=e.department) for e in master]


class TestDiffEmployees:
    """Tests for diff_employees()."""

    def test_classification(self, master):
        previous = grid_from(master)
        new = [
            previous[0],
            Employee(id="2", code="002", name="Bình Mới", department="Kho A"),
            Employee(id="9", code="009", name="Mới"),
        ]

        diff = diff_employees(previous, new, master)

        assert [e.id for e in diff.added] == ["9"]
        assert [c.after.id for c in diff.changed] == ["2"]
        assert diff.changed[0].before.name == "Bình"
        assert diff.removed_ids == ["3"]

    def test_blank_rows_are_not_added(self, master):
        diff = diff_employees([], [Employee(id="x", code="  ")], master)
        assert diff.added == []
        assert diff.is_empty

    def test_attendance_changes_are_not_master_changes(self, master):
        previous = grid_from(master)
        new = [e for e in previous]
        new[0] = Employee(id="1", code="001", name="An", department="Kho A", attendance={1: "1"})
        assert diff_employees(previous, new, master).is_empty


class TestReconcileAdds:

    def test_new_row_creates_employee_and_roster_entry(self, engine, master, targets):
        previous = grid_from(master)
        new = previous + [Employee(id="9", code="009", name="Dũng", department="Kho B",
                                   attendance={1: "1"})]

        result = engine.reconcile(previous, new, master, targets)

        created = result.mutations_of(MutationKind.CREATE_EMPLOYEE)
        assert [m.entity_id for m in created] == ["9"]
        assert created[0].payload.attendance == {}
        assert result.employees[-1].id == "9"

        target_b = next(t for t in result.targets if t.id == "tB")
        assert target_b.roster[-1] == RosterEntry("9", DEFAULT_SHIFT)
        assert [m.entity_id for m in result.mutations_of(MutationKind.UPDATE_TARGET)] == ["tB"]

    def test_unknown_department_creates_target(self, engine, master, targets):
        previous = grid_from(master)
        new = previous + [Employee(id="9", code="009", name="Dũng",
                                   department="Kho Mới", shift="06:00 - 14:00")]

        result = engine.reconcile(previous, new, master, targets)

        created = result.mutations_of(MutationKind.CREATE_TARGET)
        assert len(created) == 1
        target = created[0].payload
        assert target.id == "new-target-1"
        assert target.name == "Kho Mới"
        assert target.roster == [RosterEntry("9", "06:00 - 14:00")]
        assert result.mutations_of(MutationKind.UPDATE_TARGET) == []

    def test_two_new_rows_share_auto_created_target(self, engine, master, targets):
        previous = grid_from(master)
        new = previous + [
            Employee(id="8", code="008", name="E", department="Kho C"),
            Employee(id="9", code="009", name="F", department="Kho C"),
        ]

        result = engine.reconcile(previous, new, master, targets)

        created = result.mutations_of(MutationKind.CREATE_TARGET)
        assert len(created) == 1
        assert [e.employee_id for e in created[0].payload.roster] == ["8", "9"]

    @pytest.mark.parametrize("department", ["", "   ", UNASSIGNED_DEPARTMENT])
    def test_unassigned_department_gets_no_target(self, engine, master, targets, department):
        previous = grid_from(master)
        new = previous + [Employee(id="9", code="009", name="G", department=department)]

        result = engine.reconcile(previous, new, master, targets)

        assert len(result.mutations_of(MutationKind.CREATE_EMPLOYEE)) == 1
        assert result.mutations_of(MutationKind.CREATE_TARGET) == []
        assert result.mutations_of(MutationKind.UPDATE_TARGET) == []
        assert result.targets == targets

    def test_duplicate_code_is_a_conflict(self, engine, master, targets):
        previous = grid_from(master)
        new = previous + [Employee(id="9", code="001", name="Trùng")]

        result = engine.reconcile(previous, new, master, targets)

        assert result.mutations == []
        assert len(result.conflicts) == 1
        assert "001" in result.conflicts[0]
        assert len(result.employees) == 3


class TestReconcileChanges:

    def test_code_change_keeps_id(self, engine, master, targets):
        """Changing a code is an update of the same record, never a delete/create."""
        master = master[:2]
        previous = grid_from(master)
        new = [previous[0], Employee(id="2", code="004", name="Bình", department="Kho A")]

        result = engine.reconcile(previous, new, master, targets)

        assert [m.kind for m in result.mutations] == [MutationKind.UPDATE_EMPLOYEE]
        assert result.mutations[0].entity_id == "2"
        assert result.mutations[0].payload == {"code": "004"}
        assert result.employees[1].id == "2"
        assert result.employees[1].code == "004"

    def test_department_move_updates_both_rosters(self, engine, master, targets):
        previous = grid_from(master)
        new = list(previous)
        new[0] = Employee(id="1", code="001", name="An", department="Kho B")

        result = engine.reconcile(previous, new, master, targets)

        by_id = {t.id: t for t in result.targets}
        assert not by_id["tA"].has_employee("1")
        assert by_id["tB"].roster[-1] == RosterEntry("1", DEFAULT_SHIFT)
        assert [m.entity_id for m in result.mutations_of(MutationKind.UPDATE_TARGET)] == ["tA", "tB"]
        assert result.mutations[0].payload == {"department": "Kho B"}

    def test_move_to_unknown_department_only_leaves_old_roster(self, engine, master, targets):
        previous = grid_from(master)
        new = list(previous)
        new[0] = Employee(id="1", code="001", name="An", department="Nowhere")

        result = engine.reconcile(previous, new, master, targets)

        assert result.mutations_of(MutationKind.CREATE_TARGET) == []
        assert [m.entity_id for m in result.mutations_of(MutationKind.UPDATE_TARGET)] == ["tA"]

    def test_changed_code_clash_keeps_old_code(self, engine, master, targets):
        previous = grid_from(master)
        new = list(previous)
        new[1] = Employee(id="2", code="001", name="Bình B", department="Kho A")

        result = engine.reconcile(previous, new, master, targets)

        assert result.conflicts
        assert result.mutations[0].payload == {"name": "Bình B"}
        assert result.employees[1].code == "002"


class TestReconcileRemovals:

    def test_removal_strips_every_roster(self, engine, master, targets):
        previous = grid_from(master)
        new = [previous[0], previous[2]]

        result = engine.reconcile(previous, new, master, targets)

        assert [m.entity_id for m in result.mutations_of(MutationKind.DELETE_EMPLOYEE)] == ["2"]
        assert all(not t.has_employee("2") for t in result.targets)
        assert [m.entity_id for m in result.mutations_of(MutationKind.UPDATE_TARGET)] == ["tA", "tB"]
        assert [e.id for e in result.employees] == ["1", "3"]

    def test_removing_row_unknown_to_master(self, engine, master, targets):
        previous = grid_from(master) + [Employee(id="x")]
        result = engine.reconcile(previous, grid_from(master), master, targets)
        assert result.mutations == []


class TestReconcileInvariants:

    def test_inputs_not_mutated(self, engine, master, targets):
        previous = grid_from(master)
        new = [previous[0]]
        rosters_before = [list(t.roster) for t in targets]

        engine.reconcile(previous, new, master, targets)

        assert [list(t.roster) for t in targets] == rosters_before
        assert len(master) == 3

    def test_idempotent(self, engine, master, targets):
        previous = grid_from(master)
        new = previous[:2] + [Employee(id="9", code="009", name="H", department="Kho X")]
        first = engine.reconcile(previous, new, master, targets)

        second = engine.reconcile(new, new, first.employees, first.targets)

        assert second.mutations == []
        assert second.targets == first.targets
        assert second.employees == first.employees

    def test_mutation_order(self, engine, master, targets):
        previous = grid_from(master)
        new = [
            Employee(id="1", code="001", name="An", department="Kho B"),
            previous[1],
            Employee(id="9", code="009", name="I", department="Kho Y"),
        ]

        result = engine.reconcile(previous, new, master, targets)

        kinds = [m.kind for m in result.mutations]
        assert kinds == [
            MutationKind.CREATE_EMPLOYEE,
            MutationKind.UPDATE_EMPLOYEE,
            MutationKind.CREATE_TARGET,
            MutationKind.UPDATE_TARGET,
            MutationKind.UPDATE_TARGET,
            MutationKind.DELETE_EMPLOYEE,
        ]

    def test_roster_references_stay_valid(self, engine, master, targets):
        previous = grid_from(master)
        new = [previous[2], Employee(id="9", code="009", name="J", department="Kho A")]

        result = engine.reconcile(previous, new, master, targets)

        ids = {e.id for e in result.employees}
        for target in result.targets:
            assert all(entry.employee_id in ids for entry in target.roster)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
