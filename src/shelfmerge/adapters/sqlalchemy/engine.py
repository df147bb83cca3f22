"""Engine construction for SQLite library stores."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL

if TYPE_CHECKING:
    from pathlib import Path
    from sqlite3 import Connection as SQLiteConnection

    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.pool import ConnectionPoolEntry


def store_url(path: Path, *, read_only: bool) -> URL:
    """Return the SQLAlchemy URL for the store at ``path``.

    Read-only stores are opened through an SQLite URI with ``mode=ro`` so the
    driver itself refuses writes and never creates a missing file.
    """

    if read_only:
        return URL.create(
            "sqlite+pysqlite",
            database=f"file:{path.resolve().as_posix()}",
            query={"mode": "ro", "uri": "true"},
        )
    return URL.create("sqlite+pysqlite", database=str(path))


def create_store_engine(path: Path, *, read_only: bool, timeout: float = 1.0) -> Engine:
    """Create an engine for one store file.

    Writable engines take over transaction control from the pysqlite driver so
    that SAVEPOINTs nest correctly inside an explicit ``BEGIN``.
    """

    engine = create_engine(
        store_url(path, read_only=read_only),
        connect_args={"timeout": timeout},
    )
    if not read_only:
        event.listen(engine, "connect", _disable_driver_transactions)
        event.listen(engine, "begin", _emit_begin)
    return engine


def _disable_driver_transactions(
    dbapi_connection: SQLiteConnection,
    connection_record: ConnectionPoolEntry,
) -> None:
    _ = connection_record
    dbapi_connection.isolation_level = None


def _emit_begin(connection: Connection) -> None:
    connection.exec_driver_sql("BEGIN")
