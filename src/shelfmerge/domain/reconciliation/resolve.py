"""Identity resolution of source rows against the destination store.

Each entity schema declares an ordered chain of identity keys. The first key
that yields a destination match wins and no further keys are tried:

- external id: exact value of one catalogue id column
- compound: exact values of several natural-key columns
- title set: any overlap between normalised title variants

Rows are expected to have their foreign keys remapped already, so compound
keys that include parent columns compare destination-local ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shelfmerge.domain.model import ID_COLUMN, KeyKind

from .contracts import (
    NewEntityResolution,
    ResolvedEntityResolution,
    UnresolvableEntityResolution,
)
from .normalize import key_values, title_variants
from .remap import as_id

if TYPE_CHECKING:
    from collections.abc import Mapping

    from shelfmerge.domain.model import EntitySchema, IdentityKey
    from shelfmerge.domain.ports import DestinationStore

    from .contracts import EntityResolution


log = logging.getLogger(__name__)

type TitleIndex = list[tuple[int, frozenset[str]]]


@dataclass(slots=True)
class IdentityResolver:
    """Resolve rows of any catalogued table against one destination store.

    The title index for a table is built once per resolver on first use, then
    extended as rows are inserted and refreshed as their titles are updated, so one resolver should live for exactly one
    source store pass.
    """

    destination: DestinationStore
    _title_indexes: dict[tuple[str, IdentityKey], TitleIndex] = field(default_factory=dict)

    def resolve(
        self,
        schema: EntitySchema,
        row: Mapping[str, object],
        *,
        source_columns: frozenset[str],
    ) -> EntityResolution:
        destination_columns = self.destination.column_names(schema.table)
        attempted = False
        for key in schema.identity:
            if key.kind is KeyKind.TITLE_SET:
                variants = _row_titles(row, key, source_columns)
                if not variants:
                    continue
                attempted = True
                target_id = self._match_titles(schema, key, variants, destination_columns)
            else:
                if not set(key.columns) <= (source_columns & destination_columns):
                    continue
                values = key_values(row, key)
                if values is None:
                    continue
                attempted = True
                target_id = self.destination.find_id(
                    schema.table, dict(zip(key.columns, values, strict=True))
                )
            if target_id is not None:
                return ResolvedEntityResolution(
                    target_id=target_id,
                    matched_key=key,
                    reason=f"matched_{key.kind}",
                )

        if not attempted:
            return UnresolvableEntityResolution(reason="no_identity_values")
        return NewEntityResolution(reason="no_match")

    def remember(self, schema: EntitySchema, row_id: int, row: Mapping[str, object]) -> None:
        """Add a freshly inserted destination row to any built title index."""

        for (table, key), index in self._title_indexes.items():
            if table != schema.table:
                continue
            variants = title_variants(row.get(column) for column in key.columns)
            if variants:
                index.append((row_id, variants))

    def refresh(self, schema: EntitySchema, row_id: int) -> None:
        """Re-read the titles of an updated destination row into any built index."""

        destination_columns = self.destination.column_names(schema.table)
        for (table, key), index in self._title_indexes.items():
            if table != schema.table:
                continue
            columns = [column for column in key.columns if column in destination_columns]
            row = self.destination.fetch_row(table, row_id, columns) if columns else None
            variants = title_variants(row.get(column) for column in columns) if row else None
            index[:] = [entry for entry in index if entry[0] != row_id]
            if variants:
                index.append((row_id, variants))

    def forget(self, table: str) -> None:
        """Drop cached titles for ``table`` (after its writes were rolled back)."""

        for cache_key in [cache_key for cache_key in self._title_indexes if cache_key[0] == table]:
            del self._title_indexes[cache_key]

    def _match_titles(
        self,
        schema: EntitySchema,
        key: IdentityKey,
        variants: frozenset[str],
        destination_columns: frozenset[str],
    ) -> int | None:
        index = self._title_index(schema, key, destination_columns)
        for row_id, candidate_variants in index:
            if variants & candidate_variants:
                return row_id
        return None

    def _title_index(
        self,
        schema: EntitySchema,
        key: IdentityKey,
        destination_columns: frozenset[str],
    ) -> TitleIndex:
        cache_key = (schema.table, key)
        index = self._title_indexes.get(cache_key)
        if index is not None:
            return index

        columns = [column for column in key.columns if column in destination_columns]
        index = []
        if columns:
            for row in self.destination.iter_rows(schema.table, (ID_COLUMN, *columns)):
                row_id = as_id(row.get(ID_COLUMN))
                variants = title_variants(row.get(column) for column in columns)
                if row_id is not None and variants:
                    index.append((row_id, variants))
        log.debug("Indexed %d titled rows of %s", len(index), schema.table)
        self._title_indexes[cache_key] = index
        return index


def _row_titles(
    row: Mapping[str, object],
    key: IdentityKey,
    source_columns: frozenset[str],
) -> frozenset[str]:
    return title_variants(row.get(column) for column in key.columns if column in source_columns)
