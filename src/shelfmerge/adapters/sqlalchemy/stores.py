"""SQLAlchemy Core implementations of the store ports.

Rows are read and written as plain mappings against reflected tables. Store
schemas drift between application versions, so nothing here assumes the
baseline metadata beyond the ``id`` primary key.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import MetaData, Table, and_, insert, select, update
from sqlalchemy.exc import IntegrityError, NoSuchTableError, OperationalError, SQLAlchemyError

from shelfmerge.adapters.sqlalchemy.engine import create_store_engine
from shelfmerge.adapters.sqlalchemy.migrations import add_missing_columns, ensure_schema
from shelfmerge.domain.errors import (
    ConstraintViolationError,
    DestinationUnavailableError,
    DuplicateRowError,
    MergeError,
)
from shelfmerge.domain.model import ID_COLUMN

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from pathlib import Path

    from sqlalchemy import Select
    from sqlalchemy.engine import Connection, Engine

    from shelfmerge.adapters.sqlalchemy.migrations import SchemaChanges
    from shelfmerge.domain.ports import Row


log = logging.getLogger(__name__)

_UNAVAILABLE_MARKERS = (
    "database is locked",
    "readonly database",
    "disk i/o error",
    "unable to open database",
    "database or disk is full",
)


class _ReflectedTables:
    """Per-store cache of reflected table definitions."""

    def __init__(self) -> None:
        self._tables: dict[str, Table | None] = {}

    def get(self, connection: Connection, name: str) -> Table | None:
        if name not in self._tables:
            try:
                self._tables[name] = Table(name, MetaData(), autoload_with=connection)
            except NoSuchTableError:
                self._tables[name] = None
        return self._tables[name]

    def invalidate(self, name: str | None = None) -> None:
        if name is None:
            self._tables.clear()
        else:
            self._tables.pop(name, None)


class SqlAlchemySourceStore:
    """Read-only store opened for one merge pass."""

    def __init__(self, path: Path, engine: Engine) -> None:
        self._path = path
        self._engine = engine
        self._tables = _ReflectedTables()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    def column_names(self, table: str) -> frozenset[str]:
        with self._engine.connect() as connection:
            reflected = self._tables.get(connection, table)
        return _column_names(reflected)

    def iter_rows(self, table: str, columns: Iterable[str]) -> Iterator[Row]:
        with self._engine.connect() as connection:
            reflected = self._tables.get(connection, table)
            if reflected is None:
                return
            statement = _select_rows(reflected, columns)
            for row in connection.execute(statement).mappings():
                yield dict(row)

    def close(self) -> None:
        self._engine.dispose()


class SqlAlchemyDestinationStore:
    """The active user's store, written through one long-lived connection.

    Every read and write shares the connection so that rows inserted earlier
    in a table transaction are visible to later lookups.
    """

    def __init__(self, path: Path, engine: Engine) -> None:
        self._path = path
        self._engine = engine
        self._connection: Connection | None = None
        self._tables = _ReflectedTables()

    @classmethod
    def open(cls, path: Path, *, timeout: float = 1.0) -> SqlAlchemyDestinationStore:
        """Open ``path`` for writing and bring it up to the baseline schema."""

        if not path.is_file():
            raise DestinationUnavailableError(f"Destination store not found: {path}")
        store = cls(path, create_store_engine(path, read_only=False, timeout=timeout))
        try:
            store.migrate()
        except MergeError:
            store.close()
            raise
        except SQLAlchemyError as exc:
            store.close()
            raise DestinationUnavailableError(f"Cannot prepare {path.name}: {exc}") from exc
        return store

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            try:
                self._connection = self._engine.connect()
            except SQLAlchemyError as exc:
                raise DestinationUnavailableError(f"Cannot open {self.name}: {exc}") from exc
        return self._connection

    def migrate(self) -> SchemaChanges:
        with self._fresh_transaction():
            changes = ensure_schema(self.connection)
        self._tables.invalidate()
        return changes

    def column_names(self, table: str) -> frozenset[str]:
        return _column_names(self._tables.get(self.connection, table))

    def iter_rows(self, table: str, columns: Iterable[str]) -> Iterator[Row]:
        reflected = self._tables.get(self.connection, table)
        if reflected is None:
            return iter(())
        rows = self.connection.execute(_select_rows(reflected, columns)).mappings().all()
        return iter([dict(row) for row in rows])

    def add_columns(self, table: str, columns: Iterable[str]) -> frozenset[str]:
        try:
            added = add_missing_columns(self.connection, table, columns)
        except SQLAlchemyError as exc:
            raise MergeError(f"Cannot add columns to {table}: {exc}") from exc
        finally:
            self._tables.invalidate(table)
        return added

    def find_id(self, table: str, criteria: Mapping[str, object]) -> int | None:
        reflected = self._require(table)
        if not criteria or any(column not in reflected.c for column in criteria):
            return None
        statement = (
            select(reflected.c[ID_COLUMN])
            .where(and_(*(reflected.c[column] == value for column, value in criteria.items())))
            .order_by(reflected.c[ID_COLUMN])
            .limit(1)
        )
        return self.connection.execute(statement).scalar_one_or_none()

    def fetch_row(self, table: str, row_id: int, columns: Iterable[str]) -> Row | None:
        reflected = self._require(table)
        statement = _select_rows(reflected, columns).where(reflected.c[ID_COLUMN] == row_id)
        row = self.connection.execute(statement).mappings().first()
        return dict(row) if row is not None else None

    def insert_row(self, table: str, values: Mapping[str, object]) -> int:
        reflected = self._require(table)
        statement = insert(reflected).values(_known_values(reflected, values))
        try:
            result = self.connection.execute(statement)
        except IntegrityError as exc:
            raise _translate_integrity_error(table, exc) from exc
        except OperationalError as exc:
            if _is_unavailable(exc):
                raise DestinationUnavailableError(f"{table}: {exc.orig}") from exc
            raise
        primary_key = result.inserted_primary_key
        if primary_key is None or primary_key[0] is None:
            raise MergeError(f"Insert into {table} returned no id")
        return int(primary_key[0])

    def update_row(self, table: str, row_id: int, values: Mapping[str, object]) -> None:
        reflected = self._require(table)
        statement = (
            update(reflected)
            .where(reflected.c[ID_COLUMN] == row_id)
            .values(_known_values(reflected, values))
        )
        try:
            self.connection.execute(statement)
        except IntegrityError as exc:
            raise _translate_integrity_error(table, exc) from exc
        except OperationalError as exc:
            if _is_unavailable(exc):
                raise DestinationUnavailableError(f"{table}: {exc.orig}") from exc
            raise

    @contextmanager
    def table_transaction(self) -> Iterator[None]:
        try:
            with self._fresh_transaction():
                yield
        except BaseException:
            # Columns added inside the transaction are gone again.
            self._tables.invalidate()
            raise

    @contextmanager
    def row_savepoint(self) -> Iterator[None]:
        with self.connection.begin_nested():
            yield

    def close(self) -> None:
        if self._connection is not None:
            if self._connection.in_transaction():
                self._connection.commit()
            self._connection.close()
            self._connection = None
        self._engine.dispose()

    @contextmanager
    def _fresh_transaction(self) -> Iterator[None]:
        connection = self.connection
        if connection.in_transaction():
            # Close the read transaction started implicitly by a lookup.
            connection.commit()
        with connection.begin():
            yield

    def _require(self, table: str) -> Table:
        reflected = self._tables.get(self.connection, table)
        if reflected is None:
            raise MergeError(f"Destination has no table {table}")
        return reflected


def open_destination_store(path: Path, *, timeout: float = 1.0) -> SqlAlchemyDestinationStore:
    return SqlAlchemyDestinationStore.open(path, timeout=timeout)


def _column_names(table: Table | None) -> frozenset[str]:
    if table is None:
        return frozenset()
    return frozenset(column.name for column in table.columns)


def _select_rows(table: Table, columns: Iterable[str]) -> Select[Any]:
    selected = [table.c[column] for column in dict.fromkeys(columns) if column in table.c]
    statement = select(*selected)
    if ID_COLUMN in table.c:
        statement = statement.order_by(table.c[ID_COLUMN])
    return statement


def _known_values(table: Table, values: Mapping[str, object]) -> dict[str, object]:
    unknown = [column for column in values if column not in table.c or column == ID_COLUMN]
    if unknown:
        raise MergeError(f"Unknown columns for {table.name}: {sorted(unknown)}")
    return dict(values)


def _translate_integrity_error(table: str, exc: IntegrityError) -> MergeError:
    message = str(exc.orig)
    if "UNIQUE constraint failed" in message:
        return DuplicateRowError(f"{table}: {message}")
    return ConstraintViolationError(f"{table}: {message}")


def _is_unavailable(exc: OperationalError) -> bool:
    message = str(exc.orig).lower()
    return any(marker in message for marker in _UNAVAILABLE_MARKERS)
