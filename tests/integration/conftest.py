import os
import uuid
from collections.abc import Generator
from typing import Any

import psycopg
import pytest
from psycopg import sql

from scrubber.config.settings import Settings
from scrubber.database.connection import close_pools, get_connection, init_pools


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "scrubber_test")
    return Settings(app_env="test", db_pool_max_size=2)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pools(test_settings)
        with get_connection() as conn:
            conn.execute("SELECT 1")
    except Exception as e:
        close_pools()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pools()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def people_table(db_conn: psycopg.Connection[Any]) -> Generator[str, None, None]:
    """A throwaway table with ten rows: ids 1..10, two discriminator values."""
    table = f"scrubber_people_{uuid.uuid4().hex[:8]}"
    with db_conn.cursor() as cur:
        cur.execute(
            sql.SQL(
                """
                CREATE TABLE {} (
                    id integer PRIMARY KEY,
                    dtype text NOT NULL,
                    email text,
                    status text NOT NULL,
                    anonymized boolean NOT NULL DEFAULT false
                )
                """
            ).format(sql.Identifier(table))
        )
        for i in range(1, 11):
            cur.execute(
                sql.SQL(
                    "INSERT INTO {} (id, dtype, email, status) VALUES (%s, %s, %s, %s)"
                ).format(sql.Identifier(table)),
                (i, "employee" if i % 2 else "customer", f"user{i}@corp.com", "active"),
            )
    db_conn.commit()
    try:
        yield table
    finally:
        with db_conn.cursor() as cur:
            cur.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(table)))
        db_conn.commit()

