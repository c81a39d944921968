"""
Tests for JSON backup export.
"""

import json
from datetime import datetime

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities import Employee, RosterEntry, Target
from domain.exceptions import FileFormatError
from infrastructure.backup import (
    BACKUP_VERSION, default_backup_name, default_targets_name, export_backup,
    export_targets_json, import_targets_json, write_backup
)
from infrastructure.document_store import InMemoryDocumentStore
from infrastructure.repository import TimesheetRepository


@pytest.fixture
def repo():
    return TimesheetRepository(InMemoryDocumentStore())


class TestBackup:
    """Tests for export_backup() and write_backup()."""

    @pytest.mark.asyncio
    async def test_export_contents(self, repo):
        await repo.create_employee(Employee(id="1", code="001", name="An", bank_account="99"))
        await repo.create_target(Target(id="t", name="Kho", roster=[RosterEntry("1", "S")]))

        backup = await export_backup(repo)

        assert backup["version"] == BACKUP_VERSION
        assert datetime.fromisoformat(backup["exportedAt"])
        employees = backup["data"]["employees"]
        assert employees[0]["code"] == "001"
        assert employees[0]["bankAccount"] == "99"
        assert backup["data"]["targets"][0]["roster"] == [{"employeeId": "1", "shift": "S"}]

    @pytest.mark.asyncio
    async def test_empty_store(self, repo):
        backup = await export_backup(repo)
        assert backup["data"] == {"employees": [], "targets": []}

    def test_default_name(self):
        assert default_backup_name(datetime(2024, 3, 5)) == "timesheet-backup-2024-03-05.json"

    @pytest.mark.asyncio
    async def test_write_to_directory(self, repo, tmp_path):
        await repo.create_employee(Employee(id="1", code="001", name="Nguyễn Văn An"))

        path = await write_backup(repo, tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith("timesheet-backup-")
        text = path.read_text(encoding="utf-8")
        assert "Nguyễn Văn An" in text
        assert json.loads(text)["data"]["employees"][0]["id"] == "1"

    @pytest.mark.asyncio
    async def test_write_to_file(self, repo, tmp_path):
        target = tmp_path / "backup.json"
        assert await write_backup(repo, target) == target
        assert target.exists()


class TestTargetsJson:
    """Tests for export_targets_json() and import_targets_json()."""

    def test_export_then_import(self, tmp_path):
        targets = [
            Target(id="t1", name="Kho A", roster=[RosterEntry("1", "06:00 - 14:00")]),
            Target(id="t2", name="Cổng", roster=[]),
        ]

        path = export_targets_json(targets, tmp_path)

        assert path.name.startswith("MucTieu_")
        assert json.loads(path.read_text(encoding="utf-8"))[0] == {
            "id": "t1", "name": "Kho A",
            "roster": [{"employeeId": "1", "shift": "06:00 - 14:00"}],
        }
        result = import_targets_json(path)
        assert result.errors == []
        assert result.targets == targets

    @pytest.mark.asyncio
    async def test_reads_backup_document(self, repo, tmp_path):
        await repo.create_target(Target(id="t", name="Kho", roster=[RosterEntry("1", "S")]))
        path = await write_backup(repo, tmp_path / "backup.json")

        result = import_targets_json(path)

        assert [(t.id, t.name) for t in result.targets] == [("t", "Kho")]

    def test_items_without_name(self, tmp_path):
        path = tmp_path / "targets.json"
        path.write_text(json.dumps([{"roster": []}, {"name": " Kho "}, "x"]), encoding="utf-8")

        result = import_targets_json(path)

        assert [t.name for t in result.targets] == ["Kho"]
        assert result.targets[0].id
        assert result.errors == ["Item 1: missing target name", "Item 3: missing target name"]

    def test_not_an_array(self, tmp_path):
        path = tmp_path / "targets.json"
        path.write_text('{"name": "Kho"}', encoding="utf-8")

        result = import_targets_json(path)

        assert result.targets == []
        assert result.errors == ["Wrong file format: expected a JSON array of targets."]

    def test_broken_json(self, tmp_path):
        path = tmp_path / "targets.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(FileFormatError):
            import_targets_json(path)

    def test_default_name(self):
        assert default_targets_name(datetime(2024, 3, 5)) == "MucTieu_2024-03-05.json"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
