"""
Tests for the document stores and the timesheet repository.
"""

import json

import httpx
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config.config_manager import StoreSettings
from domain.entities import Employee, EmployeeRole, RosterEntry, Target
from domain.exceptions import StoreError
from infrastructure.document_store import (
    DocumentStore, FirebaseRestStore, InMemoryDocumentStore, create_store
)
from infrastructure.repository import (
    TimesheetRepository, employee_from_record, employee_patch_to_record,
    employee_to_record, target_from_record
)


@pytest.fixture
def repo():
    return TimesheetRepository(InMemoryDocumentStore())


class TestInMemoryDocumentStore:
    """Tests for InMemoryDocumentStore."""

    @pytest.mark.asyncio
    async def test_set_get_remove(self):
        store = InMemoryDocumentStore()
        await store.set("a/b/c", {"x": 1})
        assert await store.get("a/b/c") == {"x": 1}
        assert await store.get("a") == {"b": {"c": {"x": 1}}}

        await store.remove("a/b/c")
        assert await store.get("a/b/c") is None

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        store = InMemoryDocumentStore()
        value = {"list": [1]}
        await store.set("k", value)
        value["list"].append(2)
        read = await store.get("k")
        read["list"].append(3)

        assert await store.get("k") == {"list": [1]}

    @pytest.mark.asyncio
    async def test_update_merges_children(self):
        store = InMemoryDocumentStore({"e": {"1": {"name": "A", "code": "1"}}})
        await store.update("e/1", {"name": "B", "code": None})
        assert await store.get("e/1") == {"name": "B"}

    @pytest.mark.asyncio
    async def test_update_at_root(self):
        store = InMemoryDocumentStore({"keep": 1, "replace": {"old": True}})
        await store.update("", {"replace": {"new": True}})
        assert store.data == {"keep": 1, "replace": {"new": True}}

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryDocumentStore(), DocumentStore)

    def test_push_keys_are_unique(self):
        store = InMemoryDocumentStore()
        assert store.push_key("employees") != store.push_key("employees")


class TestFirebaseRestStore:
    """Tests for FirebaseRestStore against a mocked transport."""

    @pytest.mark.asyncio
    async def test_request_mapping(self):
        seen = []

        def handler(request):
            body = json.loads(request.content) if request.content else None
            seen.append((request.method, request.url.path, dict(request.url.params), body))
            return httpx.Response(200, json={"name": "A"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            store = FirebaseRestStore(client, "https://db.example.com/", auth_token="secret")
            assert await store.get("employees/1") == {"name": "A"}
            await store.set("employees/1", {"name": "B"})
            await store.update("employees/1", {"code": "X"})
            await store.set("employees/1", None)

        assert seen == [
            ("GET", "/employees/1.json", {"auth": "secret"}, None),
            ("PUT", "/employees/1.json", {"auth": "secret"}, {"name": "B"}),
            ("PATCH", "/employees/1.json", {"auth": "secret"}, {"code": "X"}),
            ("DELETE", "/employees/1.json", {"auth": "secret"}, None),
        ]

    @pytest.mark.asyncio
    async def test_http_error_becomes_store_error(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            store = FirebaseRestStore(client, "https://db.example.com")
            with pytest.raises(StoreError) as exc_info:
                await store.get("targets")

        assert exc_info.value.path == "targets"
        assert "500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_becomes_store_error(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            store = FirebaseRestStore(client, "https://db.example.com")
            with pytest.raises(StoreError):
                await store.set("employees/1", {"a": 1})

    def test_requires_client_and_url(self):
        with pytest.raises(ValueError):
            FirebaseRestStore(None, "https://db.example.com")
        with pytest.raises(ValueError):
            FirebaseRestStore(httpx.AsyncClient(), "")


class TestCreateStore:

    def test_memory(self):
        assert isinstance(create_store(StoreSettings(backend="memory")), InMemoryDocumentStore)

    @pytest.mark.asyncio
    async def test_firebase(self):
        async with httpx.AsyncClient() as client:
            store = create_store(
                StoreSettings(backend="firebase", base_url="https://db.example.com"),
                http_client=client
            )
        assert isinstance(store, FirebaseRestStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store(StoreSettings(backend="sqlite"))


class TestRecordMapping:

    def test_employee_round_trip(self):
        emp = Employee(
            id="7", code="NV7", name="Bảy", department="Kho", shift="08:00 - 17:00",
            role=EmployeeRole.ADMIN, bank_account="123", daily_rate=250000, bonus=10
        )
        record = employee_to_record(emp)

        assert record["bankAccount"] == "123"
        assert record["dailyRate"] == 250000
        assert record["role"] == "admin"
        assert "attendance" not in record
        assert employee_from_record("7", record) == emp

    def test_missing_fields_default(self):
        emp = employee_from_record("k1", {"name": "A", "dailyRate": "abc", "role": "boss"})
        assert emp.id == "k1"
        assert emp.code == ""
        assert emp.daily_rate == 0.0
        assert emp.role == EmployeeRole.STAFF

    def test_attendance_keys_become_ints(self):
        emp = employee_from_record("1", {"attendance": {"1": "1", "15": "P", "x": "?"}})
        assert emp.attendance == {1: "1", 15: "P"}

    def test_list_shaped_attendance(self):
        emp = employee_from_record("1", {"attendance": [None, "1", None, "0.5"]})
        assert emp.attendance == {1: "1", 3: "0.5"}

    def test_patch_translation(self):
        assert employee_patch_to_record({"social_insurance": 5, "code": "A"}) == {
            "socialInsurance": 5, "code": "A"
        }
        with pytest.raises(ValueError):
            employee_patch_to_record({"salary": 1})

    def test_target_skips_invalid_roster_entries(self):
        target = target_from_record("t", {
            "name": "Kho",
            "roster": [None, {"employeeId": "1", "shift": "S"}, {"shift": "no id"}, "junk"]
        })
        assert target.id == "t"
        assert target.roster == [RosterEntry("1", "S")]


class TestTimesheetRepository:
    """Tests for TimesheetRepository."""

    @pytest.mark.asyncio
    async def test_employee_crud(self, repo):
        emp_id = await repo.create_employee(
            Employee(id="", code="001", name="An", attendance={1: "1"})
        )
        assert emp_id

        loaded = await repo.get_employee_by_id(emp_id)
        assert loaded.code == "001"
        assert loaded.attendance == {}

        await repo.update_employee(emp_id, {"name": "An Mới"})
        assert (await repo.get_all_employees())[0].name == "An Mới"

        await repo.delete_employee(emp_id)
        assert await repo.get_all_employees() == []
        assert await repo.get_employee_by_id(emp_id) is None

    @pytest.mark.asyncio
    async def test_list_shaped_collection(self):
        store = InMemoryDocumentStore({
            "employees": [None, {"code": "A", "name": "X"}, {"code": "B", "name": "Y"}]
        })
        employees = await TimesheetRepository(store).get_all_employees()
        assert [(e.id, e.code) for e in employees] == [("1", "A"), ("2", "B")]

    @pytest.mark.asyncio
    async def test_target_crud(self, repo):
        target_id = await repo.create_target(Target(id="t1", name="Kho", roster=[RosterEntry("1")]))
        await repo.update_target(target_id, {"roster": [RosterEntry("1"), RosterEntry("2", "S")]})

        target = await repo.get_target_by_id("t1")
        assert [e.employee_id for e in target.roster] == ["1", "2"]
        assert target.roster[1].shift == "S"

        with pytest.raises(ValueError):
            await repo.update_target(target_id, {"color": "red"})

        await repo.delete_target(target_id)
        assert await repo.get_all_targets() == []

    @pytest.mark.asyncio
    async def test_timesheet_month_is_one_based(self, repo):
        await repo.save_all_timesheets(2024, 1, [
            Employee(id="1", code="001", attendance={1: "1", 2: "P"}),
        ])

        data = repo.store.data
        assert data["timesheets"]["2024"]["1"]["1"]["attendance"] == {"1": "1", "2": "P"}

        records = await repo.get_timesheet(2024, 1)
        assert records[0].attendance == {1: "1", 2: "P"}
        assert await repo.get_timesheet(2024, 2) == []

    @pytest.mark.asyncio
    async def test_save_all_overwrites_month(self, repo):
        await repo.save_all_timesheets(2024, 3, [Employee(id="1"), Employee(id="2")])
        await repo.save_all_timesheets(2024, 3, [Employee(id="2", attendance={5: "1"})])

        records = await repo.get_timesheet(2024, 3)
        assert [r.id for r in records] == ["2"]

        await repo.save_all_timesheets(2024, 3, [])
        assert await repo.get_timesheet(2024, 3) == []

    @pytest.mark.asyncio
    async def test_save_single_timesheet(self, repo):
        await repo.save_timesheet(2024, 5, Employee(id="9", code="X", attendance={3: "0.5"}))
        records = await repo.get_timesheet(2024, 5)
        assert records[0].code == "X"
        assert records[0].attendance == {3: "0.5"}

    @pytest.mark.asyncio
    async def test_import_initial_data(self, repo):
        await repo.create_employee(Employee(id="old", code="OLD"))
        await repo.import_initial_data(
            employees=[Employee(id="1", code="001")],
            targets=[Target(id="t", name="Kho")]
        )

        assert [e.id for e in await repo.get_all_employees()] == ["1"]
        assert [t.name for t in await repo.get_all_targets()] == ["Kho"]

    @pytest.mark.asyncio
    async def test_custom_shifts(self, repo):
        assert await repo.get_custom_shifts() == []

        await repo.save_custom_shifts(["07:30 - 16:30", "09:00 - 18:00"])
        assert await repo.get_custom_shifts() == ["07:30 - 16:30", "09:00 - 18:00"]
        assert repo.store.data["settings"]["shifts"] == ["07:30 - 16:30", "09:00 - 18:00"]

        await repo.save_custom_shifts([])
        assert await repo.get_custom_shifts() == []

    @pytest.mark.asyncio
    async def test_custom_shifts_stored_as_dict(self):
        store = InMemoryDocumentStore({"settings": {"shifts": {"0": "07:30 - 16:30", "2": "09:00 - 18:00"}}})
        assert await TimesheetRepository(store).get_custom_shifts() == ["07:30 - 16:30", "09:00 - 18:00"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
