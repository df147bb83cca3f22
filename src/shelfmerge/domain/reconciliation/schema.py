"""Schema reconciliation between one source table and the destination table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shelfmerge.domain.errors import MergeError
from shelfmerge.domain.model import ID_COLUMN, METADATA_COLUMNS

from .contracts import ColumnSet, SchemaMismatch

if TYPE_CHECKING:
    from shelfmerge.domain.model import EntitySchema
    from shelfmerge.domain.ports import DestinationStore, SourceStore

    from .contracts import ColumnOutcome


log = logging.getLogger(__name__)


@dataclass(slots=True)
class SchemaReconciler:
    """Compute the usable column overlap for a table, backfilling the destination.

    Known columns that the source carries but the destination lacks (older
    destination schema) are added to the destination as nullable columns.
    Failing to add one is logged and the column is left out of the overlap.
    """

    destination: DestinationStore

    def reconcile(self, schema: EntitySchema, source: SourceStore) -> ColumnOutcome:
        source_columns = source.column_names(schema.table)
        if not source_columns:
            return SchemaMismatch(
                table=schema.table,
                reason="table missing from source",
                table_missing=True,
            )
        if ID_COLUMN not in source_columns:
            return SchemaMismatch(table=schema.table, reason="source table has no id column")

        destination_columns = self.destination.column_names(schema.table)
        if not destination_columns:
            return SchemaMismatch(table=schema.table, reason="table missing from destination")

        added = self._backfill(schema, source_columns, destination_columns)
        if added:
            destination_columns = self.destination.column_names(schema.table)

        common = tuple(sorted((source_columns & destination_columns) - {ID_COLUMN}))
        if not common:
            return SchemaMismatch(table=schema.table, reason="no common columns")
        if not set(common) - METADATA_COLUMNS:
            return SchemaMismatch(table=schema.table, reason="only metadata columns in common")

        return ColumnSet(
            table=schema.table,
            common=common,
            source=source_columns,
            destination=destination_columns,
            added=added,
        )

    def _backfill(
        self,
        schema: EntitySchema,
        source_columns: frozenset[str],
        destination_columns: frozenset[str],
    ) -> frozenset[str]:
        missing = (source_columns & (schema.known_columns | schema.excluded)) - destination_columns
        if not missing:
            return frozenset()
        try:
            added = self.destination.add_columns(schema.table, sorted(missing))
        except MergeError as exc:
            log.warning("Could not add columns %s to %s: %s", sorted(missing), schema.table, exc)
            return frozenset()
        if added:
            log.info("Added columns %s to destination table %s", sorted(added), schema.table)
        return added
