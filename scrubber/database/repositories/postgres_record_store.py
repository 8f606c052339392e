from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from scrubber.database.connection import DEFAULT_CONNECTION, get_connection
from scrubber.database.exceptions import StoreError
from scrubber.database.record_store import BaseRecordStore, RecordPage, RecordUpdate
from scrubber.logging.logger import Log
from scrubber.rules.models import EntitySpec


class PostgresRecordStore(BaseRecordStore):
    """Record store over one named PostgreSQL connection pool.

    Pages use keyset pagination on the primary key, so rows rewritten by
    earlier pages never shift later ones. Each ``apply_updates`` call runs in
    its own transaction.
    """

    def __init__(self, connection_name: str = DEFAULT_CONNECTION) -> None:
        self._connection_name = connection_name

    @property
    def connection_name(self) -> str:
        return self._connection_name

    def list_eligible(
        self, spec: EntitySpec, page_token: Any, page_size: int
    ) -> RecordPage:
        """Fetch up to *page_size* rows with a primary key after *page_token*."""
        conditions: list[sql.Composable] = []
        params: list[Any] = []
        if spec.discriminator is not None:
            conditions.append(
                sql.SQL("{} = %s").format(sql.Identifier(spec.discriminator_column))
            )
            params.append(spec.discriminator)
        if page_token is not None:
            conditions.append(
                sql.SQL("({}) > ({})").format(
                    self._pk_columns(spec),
                    sql.SQL(", ").join(sql.Placeholder() * len(spec.primary_key)),
                )
            )
            params.extend(page_token)

        query = sql.SQL("SELECT * FROM {table}{where} ORDER BY {pk} LIMIT %s").format(
            table=self._table(spec),
            where=self._where(conditions),
            pk=self._pk_columns(spec),
        )
        params.append(page_size)

        try:
            with get_connection(self._connection_name) as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall()
                conn.commit()
        except psycopg.Error as exc:
            raise StoreError(f"Failed to read {spec.table_name}: {exc}") from exc

        next_token = None
        if len(rows) == page_size:
            last = rows[-1]
            next_token = tuple(last[column] for column in spec.primary_key)
        return RecordPage(records=[dict(row) for row in rows], next_token=next_token)

    def apply_updates(self, spec: EntitySpec, updates: list[RecordUpdate]) -> None:
        """Apply every update in one transaction; roll back all of them on failure.

        Raises:
            StoreError: on a driver error or when an update matches no row.
        """
        if not updates:
            return
        try:
            with get_connection(self._connection_name) as conn:
                try:
                    with conn.cursor() as cur:
                        for update in updates:
                            cur.execute(*self._update_statement(spec, update))
                            if cur.rowcount == 0:
                                raise StoreError(
                                    f"{spec.table_name}: no row with key {update.key}"
                                )
                    conn.commit()
                except (psycopg.Error, StoreError):
                    conn.rollback()
                    raise
        except psycopg.Error as exc:
            raise StoreError(f"Failed to update {spec.table_name}: {exc}") from exc

    def truncate(self, spec: EntitySpec) -> int:
        """Delete the discriminator slice, or TRUNCATE ... CASCADE the whole table."""
        table = self._table(spec)
        try:
            with get_connection(self._connection_name) as conn:
                try:
                    with conn.cursor() as cur:
                        if spec.discriminator is not None:
                            cur.execute(
                                sql.SQL("DELETE FROM {} WHERE {} = %s").format(
                                    table, sql.Identifier(spec.discriminator_column)
                                ),
                                (spec.discriminator,),
                            )
                            deleted = cur.rowcount
                        else:
                            cur.execute(sql.SQL("SELECT COUNT(*) FROM {}").format(table))
                            row = cur.fetchone()
                            deleted = row[0] if row else 0
                            cur.execute(sql.SQL("TRUNCATE TABLE {} CASCADE").format(table))
                    conn.commit()
                except psycopg.Error:
                    conn.rollback()
                    raise
        except psycopg.Error as exc:
            raise StoreError(f"Failed to truncate {spec.table_name}: {exc}") from exc
        Log.debug(f"Truncated {deleted} rows from {spec.table_name} on {self._connection_name}")
        return deleted

    def count(self, spec: EntitySpec) -> int:
        conditions: list[sql.Composable] = []
        params: list[Any] = []
        if spec.discriminator is not None:
            conditions.append(
                sql.SQL("{} = %s").format(sql.Identifier(spec.discriminator_column))
            )
            params.append(spec.discriminator)
        query = sql.SQL("SELECT COUNT(*) FROM {}{}").format(
            self._table(spec), self._where(conditions)
        )
        try:
            with get_connection(self._connection_name) as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
                conn.commit()
        except psycopg.Error as exc:
            raise StoreError(f"Failed to count {spec.table_name}: {exc}") from exc
        return int(row[0]) if row else 0

    def table_columns(self, spec: EntitySpec) -> frozenset[str] | None:
        """Look the table up in information_schema; unqualified names follow search_path."""
        schema, _, table = spec.table_name.rpartition(".")
        if schema:
            schema_filter = sql.SQL("table_schema = %s")
            params: list[Any] = [table, schema]
        else:
            schema_filter = sql.SQL("table_schema = ANY(current_schemas(false))")
            params = [table]
        query = sql.SQL(
            "SELECT column_name FROM information_schema.columns "
            "WHERE table_name = %s AND {}"
        ).format(schema_filter)
        try:
            with get_connection(self._connection_name) as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall()
                conn.commit()
        except psycopg.Error as exc:
            raise StoreError(f"Failed to inspect {spec.table_name}: {exc}") from exc
        if not rows:
            return None
        return frozenset(row[0] for row in rows)

    @staticmethod
    def _table(spec: EntitySpec) -> sql.Identifier:
        return sql.Identifier(*spec.table_name.split("."))

    @staticmethod
    def _pk_columns(spec: EntitySpec) -> sql.Composable:
        return sql.SQL(", ").join(sql.Identifier(column) for column in spec.primary_key)

    @staticmethod
    def _where(conditions: list[sql.Composable]) -> sql.Composable:
        if not conditions:
            return sql.SQL("")
        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions)

    def _update_statement(
        self, spec: EntitySpec, update: RecordUpdate
    ) -> tuple[sql.Composable, list[Any]]:
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in update.fields
        )
        predicate = sql.SQL(" AND ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in update.key
        )
        query = sql.SQL("UPDATE {} SET {} WHERE {}").format(
            self._table(spec), assignments, predicate
        )
        params = [self._adapt(value) for value in update.fields.values()]
        params.extend(update.key.values())
        return query, params

    @staticmethod
    def _adapt(value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return Jsonb(value)
        return value
