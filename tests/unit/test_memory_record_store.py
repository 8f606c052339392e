import pytest

from scrubber.database.exceptions import StoreError
from scrubber.database.record_store import RecordUpdate
from scrubber.database.repositories.memory_record_store import InMemoryRecordStore
from scrubber.rules.models import EntitySpec


def _store() -> InMemoryRecordStore:
    return InMemoryRecordStore(
        {
            "people": [
                {"id": 3, "dtype": "employee", "name": "c"},
                {"id": 1, "dtype": "employee", "name": "a"},
                {"id": 2, "dtype": "customer", "name": "b"},
                {"id": 4, "dtype": "employee", "name": "d"},
            ]
        }
    )


class TestListEligible:
    def test_pages_in_primary_key_order(self) -> None:
        store = _store()
        spec = EntitySpec(name="people")

        first = store.list_eligible(spec, None, 3)
        second = store.list_eligible(spec, first.next_token, 3)

        assert [r["id"] for r in first.records] == [1, 2, 3]
        assert [r["id"] for r in second.records] == [4]
        assert second.next_token is None

    def test_discriminator_filters_rows(self) -> None:
        spec = EntitySpec(name="employees", table="people", discriminator="employee")
        page = _store().list_eligible(spec, None, 10)
        assert [r["id"] for r in page.records] == [1, 3, 4]

    def test_records_are_copies(self) -> None:
        store = _store()
        spec = EntitySpec(name="people")
        store.list_eligible(spec, None, 1).records[0]["name"] = "changed"
        assert store.rows("people")[1]["name"] == "a"

    def test_unknown_table(self) -> None:
        with pytest.raises(StoreError, match="Unknown table"):
            _store().list_eligible(EntitySpec(name="nope"), None, 1)


class TestApplyUpdates:
    def test_updates_rows_by_key(self) -> None:
        store = _store()
        spec = EntitySpec(name="people")

        store.apply_updates(spec, [RecordUpdate(key={"id": 2}, fields={"name": "x"})])

        assert [r["name"] for r in store.rows("people")] == ["c", "a", "x", "d"]

    def test_all_or_nothing(self) -> None:
        store = _store()
        spec = EntitySpec(name="people")
        updates = [
            RecordUpdate(key={"id": 1}, fields={"name": "x"}),
            RecordUpdate(key={"id": 99}, fields={"name": "y"}),
        ]

        with pytest.raises(StoreError, match="no row with key"):
            store.apply_updates(spec, updates)
        assert [r["name"] for r in store.rows("people")] == ["c", "a", "b", "d"]


class TestTruncateAndCount:
    def test_count_respects_discriminator(self) -> None:
        spec = EntitySpec(name="customers", table="people", discriminator="customer")
        assert _store().count(spec) == 1

    def test_truncate_whole_table(self) -> None:
        store = _store()
        assert store.truncate(EntitySpec(name="people")) == 4
        assert store.rows("people") == []


class TestTableColumns:
    def test_columns_from_rows(self) -> None:
        columns = _store().table_columns(EntitySpec(name="people"))
        assert columns == frozenset({"id", "dtype", "name"})

    def test_unknown_table(self) -> None:
        assert _store().table_columns(EntitySpec(name="ghosts")) is None

    def test_empty_table_has_no_known_columns(self) -> None:
        store = InMemoryRecordStore({"logs": []})
        assert store.table_columns(EntitySpec(name="logs")) == frozenset()
