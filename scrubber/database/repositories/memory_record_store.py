import copy
from typing import Any

from scrubber.database.exceptions import StoreError
from scrubber.database.record_store import BaseRecordStore, RecordPage, RecordUpdate
from scrubber.rules.models import EntitySpec, Record


class InMemoryRecordStore(BaseRecordStore):
    """Record store backed by plain lists of dicts, keyed by table name.

    Used for local dry runs over exported fixtures and in tests.
    """

    def __init__(self, tables: dict[str, list[Record]] | None = None) -> None:
        self._tables: dict[str, list[Record]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }

    def rows(self, table: str) -> list[Record]:
        """Snapshot of the current rows of *table*."""
        return copy.deepcopy(self._tables.get(table, []))

    def list_eligible(
        self, spec: EntitySpec, page_token: Any, page_size: int
    ) -> RecordPage:
        offset = int(page_token or 0)
        rows = sorted(self._scoped_rows(spec), key=lambda row: self._sort_key(spec, row))
        page = [dict(row) for row in rows[offset:offset + page_size]]
        next_offset = offset + len(page)
        return RecordPage(
            records=page,
            next_token=next_offset if next_offset < len(rows) else None,
        )

    def apply_updates(self, spec: EntitySpec, updates: list[RecordUpdate]) -> None:
        rows = self._table(spec)
        targets: list[tuple[Record, dict[str, Any]]] = []
        for update in updates:
            row = next(
                (r for r in rows if all(r.get(k) == v for k, v in update.key.items())),
                None,
            )
            if row is None:
                raise StoreError(
                    f"{spec.table_name}: no row with key {update.key}; page not applied"
                )
            targets.append((row, update.fields))
        for row, fields in targets:
            row.update(fields)

    def truncate(self, spec: EntitySpec) -> int:
        rows = self._table(spec)
        keep = [row for row in rows if not self._in_scope(spec, row)]
        deleted = len(rows) - len(keep)
        rows[:] = keep
        return deleted

    def count(self, spec: EntitySpec) -> int:
        return len(self._scoped_rows(spec))

    def table_columns(self, spec: EntitySpec) -> frozenset[str] | None:
        """Columns seen in the stored rows; empty for a table with no rows."""
        rows = self._tables.get(spec.table_name)
        if rows is None:
            return None
        return frozenset(column for row in rows for column in row)

    def _table(self, spec: EntitySpec) -> list[Record]:
        try:
            return self._tables[spec.table_name]
        except KeyError as exc:
            raise StoreError(f"Unknown table '{spec.table_name}'") from exc

    def _scoped_rows(self, spec: EntitySpec) -> list[Record]:
        return [row for row in self._table(spec) if self._in_scope(spec, row)]

    @staticmethod
    def _in_scope(spec: EntitySpec, row: Record) -> bool:
        if spec.discriminator is None:
            return True
        return row.get(spec.discriminator_column) == spec.discriminator

    @staticmethod
    def _sort_key(spec: EntitySpec, row: Record) -> tuple[Any, ...]:
        # None sorts first, like NULLS FIRST.
        return tuple(
            (row.get(column) is not None, row.get(column)) for column in spec.primary_key
        )
