"""Additive forward migrations for library stores.

Stores are never versioned: every store is brought up to the baseline
metadata by creating missing tables and adding missing columns as nullable.
Nothing is ever dropped or renamed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import Column, Text, inspect
from sqlalchemy.exc import SQLAlchemyError

from shelfmerge.adapters.sqlalchemy.engine import create_store_engine
from shelfmerge.adapters.sqlalchemy.tables import metadata as baseline_metadata

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from sqlalchemy import MetaData, Table
    from sqlalchemy.engine import Connection


log = logging.getLogger(__name__)


@dataclass(slots=True)
class SchemaChanges:
    created_tables: list[str] = field(default_factory=list)
    added_columns: dict[str, list[str]] = field(default_factory=dict)
    created_indexes: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created_tables or self.added_columns or self.created_indexes)


def ensure_schema(connection: Connection, metadata: MetaData = baseline_metadata) -> SchemaChanges:
    """Bring the store behind ``connection`` up to ``metadata``. Idempotent."""

    changes = SchemaChanges()
    existing = set(inspect(connection).get_table_names())
    for table in metadata.sorted_tables:
        if table.name in existing:
            added = add_missing_columns(connection, table.name, table.columns.keys(), metadata)
            if added:
                changes.added_columns[table.name] = sorted(added)
        else:
            table.create(connection)
            changes.created_tables.append(table.name)

    changes.created_indexes.extend(_ensure_indexes(connection, metadata, changes.created_tables))
    if changes.changed:
        log.info(
            "Migrated store: %d table(s) created, %d table(s) extended, %d index(es) created",
            len(changes.created_tables),
            len(changes.added_columns),
            len(changes.created_indexes),
        )
    return changes


def add_missing_columns(
    connection: Connection,
    table_name: str,
    column_names: Iterable[str],
    metadata: MetaData = baseline_metadata,
) -> frozenset[str]:
    """Add each named column that ``table_name`` lacks, as a nullable column."""

    live = {column["name"] for column in inspect(connection).get_columns(table_name)}
    missing = [name for name in dict.fromkeys(column_names) if name not in live]
    if not missing:
        return frozenset()

    operations = Operations(MigrationContext.configure(connection))
    known = metadata.tables.get(table_name)
    for name in missing:
        operations.add_column(table_name, _nullable_column(known, name))
        log.debug("Added column %s.%s", table_name, name)
    return frozenset(missing)


def migrate_store(path: Path, *, timeout: float = 1.0) -> SchemaChanges:
    """Open the store at ``path`` for writing and apply :func:`ensure_schema`."""

    engine = create_store_engine(path, read_only=False, timeout=timeout)
    try:
        with engine.begin() as connection:
            return ensure_schema(connection)
    finally:
        engine.dispose()


def _nullable_column(table: Table | None, name: str) -> Column[object]:
    # SQLite rejects ADD COLUMN with non-constant defaults, so none are carried.
    if table is not None and name in table.c:
        return Column(name, table.c[name].type, nullable=True)
    return Column(name, Text, nullable=True)


def _ensure_indexes(
    connection: Connection,
    metadata: MetaData,
    created_tables: list[str],
) -> list[str]:
    created: list[str] = []
    for table in metadata.sorted_tables:
        if table.name in created_tables or not table.indexes:
            continue
        live = _live_index_names(connection, table.name)
        for index in table.indexes:
            if index.name in live:
                continue
            try:
                with connection.begin_nested():
                    index.create(connection)
            except SQLAlchemyError as exc:
                log.warning("Could not create index %s on %s: %s", index.name, table.name, exc)
                continue
            created.append(str(index.name))
    return created


def _live_index_names(connection: Connection, table_name: str) -> set[str]:
    # The inspector skips partial indexes on some SQLAlchemy releases.
    result = connection.exec_driver_sql(f'PRAGMA index_list("{table_name}")')
    return {str(row[1]) for row in result}
