"""Ports for reading source stores and writing the destination store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from contextlib import AbstractContextManager
    from pathlib import Path


type Row = Mapping[str, object]


@runtime_checkable
class SourceStore(Protocol):
    """Read-only view of one candidate store."""

    @property
    def path(self) -> Path: ...

    @property
    def name(self) -> str: ...

    def column_names(self, table: str) -> frozenset[str]:
        """Return the live columns of ``table``; empty when the table is missing."""
        ...

    def iter_rows(self, table: str, columns: Iterable[str]) -> Iterator[Row]: ...

    def close(self) -> None: ...


@runtime_checkable
class DestinationStore(SourceStore, Protocol):
    """Single-writer view of the active user's store."""

    def add_columns(self, table: str, columns: Iterable[str]) -> frozenset[str]:
        """Add missing nullable columns and return the ones actually created."""
        ...

    def find_id(self, table: str, criteria: Mapping[str, object]) -> int | None: ...

    def fetch_row(self, table: str, row_id: int, columns: Iterable[str]) -> Row | None: ...

    def insert_row(self, table: str, values: Mapping[str, object]) -> int: ...

    def update_row(self, table: str, row_id: int, values: Mapping[str, object]) -> None: ...

    def table_transaction(self) -> AbstractContextManager[None]:
        """Scope all writes for one table; rolled back if the block raises."""
        ...

    def row_savepoint(self) -> AbstractContextManager[None]:
        """Scope one row write inside the current table transaction."""
        ...
