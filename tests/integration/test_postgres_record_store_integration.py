from typing import Any

import psycopg
import pytest
from psycopg import sql

from scrubber.database.exceptions import StoreError
from scrubber.database.record_store import RecordUpdate
from scrubber.database.repositories.postgres_record_store import PostgresRecordStore
from scrubber.generators.factory import GeneratorFactory
from scrubber.processor.models import RunOptions
from scrubber.processor.orchestrator import Orchestrator
from scrubber.rules.loader import build_entity_specs
from scrubber.rules.models import EntitySpec


def fetch_rows(db_conn: psycopg.Connection[Any], table: str) -> list[tuple[Any, ...]]:
    with db_conn.cursor() as cur:
        cur.execute(
            sql.SQL("SELECT id, dtype, email, status, anonymized FROM {} ORDER BY id").format(
                sql.Identifier(table)
            )
        )
        rows = cur.fetchall()
    db_conn.commit()
    return rows


@pytest.mark.integration
class TestPostgresRecordStore:
    def test_pages_through_all_rows(self, people_table: str) -> None:
        store = PostgresRecordStore()
        spec = EntitySpec(name="people", table=people_table)

        ids: list[int] = []
        token: Any = None
        while True:
            page = store.list_eligible(spec, token, 3)
            ids.extend(r["id"] for r in page.records)
            token = page.next_token
            if token is None:
                break

        assert ids == list(range(1, 11))

    def test_discriminator_scopes_reads_and_counts(self, people_table: str) -> None:
        store = PostgresRecordStore()
        spec = EntitySpec(name="employees", table=people_table, discriminator="employee")

        page = store.list_eligible(spec, None, 100)

        assert [r["id"] for r in page.records] == [1, 3, 5, 7, 9]
        assert store.count(spec) == 5

    def test_failed_update_rolls_back_whole_page(
        self, people_table: str, db_conn: psycopg.Connection[Any]
    ) -> None:
        store = PostgresRecordStore()
        spec = EntitySpec(name="people", table=people_table)
        updates = [
            RecordUpdate(key={"id": 1}, fields={"email": "new@example.com"}),
            RecordUpdate(key={"id": 999}, fields={"email": "ghost@example.com"}),
        ]

        with pytest.raises(StoreError):
            store.apply_updates(spec, updates)

        assert fetch_rows(db_conn, people_table)[0][2] == "user1@corp.com"

    def test_table_columns(self, people_table: str) -> None:
        store = PostgresRecordStore()

        columns = store.table_columns(EntitySpec(name="people", table=people_table))

        assert columns == frozenset({"id", "dtype", "email", "status", "anonymized"})
        assert store.table_columns(EntitySpec(name="scrubber_no_such_table")) is None

    def test_truncate_discriminator_slice(
        self, people_table: str, db_conn: psycopg.Connection[Any]
    ) -> None:
        store = PostgresRecordStore()
        spec = EntitySpec(name="customers", table=people_table, discriminator="customer")

        assert store.truncate(spec) == 5
        assert [row[1] for row in fetch_rows(db_conn, people_table)] == ["employee"] * 5


@pytest.mark.integration
class TestAnonymizationRun:
    def _orchestrator(self) -> Orchestrator:
        return Orchestrator(
            stores={"default": PostgresRecordStore()}, factory=GeneratorFactory(seed=11)
        )

    def _specs(self, table: str) -> list[EntitySpec]:
        return build_entity_specs(
            [
                {
                    "name": "people",
                    "table": table,
                    "exclude_patterns": [{"id": "<=5"}, {"anonymized": "true"}],
                    "marker_column": "anonymized",
                    "properties": [{"name": "email", "type": "email", "weight": 1}],
                }
            ]
        )

    def test_end_to_end_with_exclusion_and_rerun(
        self, people_table: str, db_conn: psycopg.Connection[Any]
    ) -> None:
        specs = self._specs(people_table)

        first = self._orchestrator().run_all(specs, RunOptions(batch_size=4))
        second = self._orchestrator().run_all(specs, RunOptions(batch_size=4))

        stats = first.entities["people@default"]
        assert (stats.processed, stats.updated, stats.per_property) == (10, 5, {"email": 5})
        assert second.entities["people@default"].updated == 0

        rows = fetch_rows(db_conn, people_table)
        assert [row[2] for row in rows[:5]] == [f"user{i}@corp.com" for i in range(1, 6)]
        assert all(not row[2].endswith("@corp.com") and row[4] for row in rows[5:])
        assert all(row[3] == "active" for row in rows)

    def test_dry_run_writes_nothing(
        self, people_table: str, db_conn: psycopg.Connection[Any]
    ) -> None:
        before = fetch_rows(db_conn, people_table)

        report = self._orchestrator().run_all(
            self._specs(people_table), RunOptions(dry_run=True)
        )

        assert report.entities["people@default"].updated == 5
        assert fetch_rows(db_conn, people_table) == before
