from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from scrubber.config.settings import Settings

DEFAULT_CONNECTION = "default"

_pools: dict[str, ConnectionPool] = {}


def default_conninfo(settings: Settings) -> str:
    """Build the libpq conninfo string for the default connection."""
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password}"
    )


def init_pools(settings: Settings) -> None:
    """Initialize one connection pool per configured connection name."""
    conninfos = {DEFAULT_CONNECTION: default_conninfo(settings)}
    conninfos.update(settings.db_extra_connections)
    for name, conninfo in conninfos.items():
        if name not in _pools:
            _pools[name] = ConnectionPool(
                conninfo, min_size=1, max_size=settings.db_pool_max_size, open=True
            )


def close_pools() -> None:
    """Close every open connection pool."""
    for pool in _pools.values():
        pool.close()
    _pools.clear()


def connection_names() -> list[str]:
    return sorted(_pools)


@contextmanager
def get_connection(
    name: str = DEFAULT_CONNECTION,
) -> Generator[psycopg.Connection[Any], None, None]:
    """Yield a connection from the named pool. Caller manages commit/rollback."""
    pool = _pools.get(name)
    if pool is None:
        raise RuntimeError(
            f"Connection pool '{name}' not initialized. Call init_pools() first."
        )
    with pool.connection() as conn:
        yield conn
