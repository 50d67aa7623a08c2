"""PostgreSQL connection pool and transaction helpers."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import psycopg2
import psycopg2.pool
from psycopg2.extensions import connection as PgConnection

from . import app_context
from .config import DatabaseConfig

logger = logging.getLogger(__name__)


class Database:
    """Owns the process-wide connection pool.

    Constructed by the application startup hook and registered through
    :func:`soleo.app_context.configure`; repositories borrow connections via
    :func:`managed_connection` instead of opening their own.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._pool: Optional[psycopg2.pool.ThreadedConnectionPool] = None

    def open(self) -> None:
        if self._pool is not None:
            return
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            self.config.min_connections,
            self.config.max_connections,
            **self.config.connect_kwargs(),
        )
        logger.info(
            "Database pool opened",
            extra={
                "db_host": self.config.host,
                "db_name": self.config.dbname,
                "pool_max": self.config.max_connections,
            },
        )

    def close(self) -> None:
        if self._pool is None:
            return
        self._pool.closeall()
        self._pool = None
        logger.info("Database pool closed")

    def acquire(self) -> PgConnection:
        if self._pool is None:
            raise RuntimeError("Database pool is not open")
        return self._pool.getconn()

    def release(self, connection: PgConnection) -> None:
        if self._pool is None:
            connection.close()
            return
        self._pool.putconn(connection)


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None) -> Iterator[Tuple[PgConnection, bool]]:
    """Context manager that manages transaction boundaries for optional connections.

    A caller-supplied connection is yielded untouched and the caller keeps
    ownership of the transaction. Otherwise a pooled connection is borrowed,
    committed on success, rolled back on error and handed back to the pool.
    """

    if conn is not None:
        yield conn, False
        return

    database = app_context.get_database()
    connection = database.acquire()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        database.release(connection)


__all__ = ["Database", "managed_connection"]
