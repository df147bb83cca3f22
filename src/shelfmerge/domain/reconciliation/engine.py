"""Merge orchestrator.

Drives one run: every candidate store passes the integrity gate, then every
mergeable table is processed in dependency order. Failures are contained at
the smallest granularity that still leaves the destination consistent:

- a row that cannot be written is skipped inside its own savepoint
- a table that raises is rolled back and its id map is discarded, so
  children of that table are skipped rather than linked to missing rows
- a store that raises outside a table is abandoned for the next one

Only errors reaching the destination store itself abort the whole run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shelfmerge.domain.errors import (
    ConstraintViolationError,
    DestinationUnavailableError,
    DuplicateRowError,
)
from shelfmerge.domain.model import (
    ID_COLUMN,
    MERGE_ORDER,
    UPDATED_AT_COLUMN,
    KeyKind,
    MergeIssue,
    MergePolicy,
    MergeTrigger,
    StoreStatus,
)

from .contracts import (
    ForeignKeyUnresolved,
    NewEntityResolution,
    ResolvedEntityResolution,
    RowMerged,
    RowSkipped,
    SchemaMismatch,
    StoreRejection,
    UnresolvableEntityResolution,
)
from .policy import ColumnPolicy, insert_values, update_values, utc_now_text
from .remap import as_id, remap_foreign_keys
from .report import BUSY_REASON, MergeSummary, StoreReport
from .resolve import IdentityResolver
from .schema import SchemaReconciler

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from pathlib import Path

    from shelfmerge.domain.model import EntitySchema
    from shelfmerge.domain.ports import DestinationStore, SourceStore

    from .contracts import ColumnSet, IdMap, IdMapsByType, RowOutcome


log = logging.getLogger(__name__)

type OpenSource = Callable[[Path], SourceStore | StoreRejection]
type BusyProbe = Callable[[], bool]


@dataclass(slots=True)
class _StorePass:
    """Mutable state for merging one source store."""

    source: SourceStore
    report: StoreReport
    resolver: IdentityResolver
    id_maps: IdMapsByType = field(default_factory=dict)


@dataclass(slots=True)
class MergeOrchestrator:
    """Fold source stores into one destination store."""

    destination: DestinationStore
    policy: MergePolicy = MergePolicy.CURRENT_USER
    schemas: Sequence[EntitySchema] = MERGE_ORDER
    clock: Callable[[], str] = utc_now_text

    def run(
        self,
        candidates: Iterable[Path],
        *,
        open_source: OpenSource,
        is_busy: BusyProbe | None = None,
        trigger: MergeTrigger = MergeTrigger.MANUAL,
    ) -> MergeSummary:
        """Merge every candidate store, or defer when a background job is active.

        Raises ``DestinationUnavailableError`` only; every other failure is
        recorded on the returned summary.
        """

        if is_busy is not None and is_busy():
            log.info("Merge (%s) deferred: a background job is using the store", trigger)
            return MergeSummary.deferred(BUSY_REASON, trigger=trigger, policy=self.policy)

        summary = MergeSummary(merged=False, trigger=trigger, policy=self.policy)
        for path in candidates:
            opened = open_source(path)
            if isinstance(opened, StoreRejection):
                log.warning("Skipping store %s (%s): %s", path.name, opened.kind, opened.message)
                summary.add_store(StoreReport.rejected(opened))
                continue
            try:
                report = self.merge_store(opened)
            finally:
                opened.close()
            summary.add_store(report)

        summary.merged = True
        log.info(
            "Merge (%s, policy %s) finished: %d store(s), %d new row(s)",
            trigger,
            self.policy,
            len(summary.stores),
            summary.total_inserted,
        )
        return summary

    def merge_store(self, source: SourceStore) -> StoreReport:
        """Merge every mergeable table of ``source`` in dependency order."""

        state = _StorePass(
            source=source,
            report=StoreReport(path=source.path),
            resolver=IdentityResolver(self.destination),
        )
        log.info("Merging store %s", source.name)
        try:
            for schema in self.schemas:
                if schema.is_mergeable:
                    self._merge_table_guarded(schema, state)
        except DestinationUnavailableError:
            raise
        except Exception as exc:
            log.exception("Aborted store %s", source.name)
            state.report.status = StoreStatus.PARTIAL
            state.report.record(MergeIssue.TABLE_ABORTED, f"store aborted: {exc}")

        log.info(
            "Store %s: %d new row(s), %d diagnostic(s)",
            source.name,
            state.report.total_inserted,
            len(state.report.diagnostics),
        )
        return state.report

    def _merge_table_guarded(self, schema: EntitySchema, state: _StorePass) -> None:
        try:
            with self.destination.table_transaction():
                inserted, id_map = self._merge_table(schema, state)
        except DestinationUnavailableError:
            raise
        except Exception as exc:
            log.exception("Aborted table %s of store %s", schema.table, state.source.name)
            state.report.status = StoreStatus.PARTIAL
            state.report.record(MergeIssue.TABLE_ABORTED, str(exc), table=schema.table)
            state.resolver.forget(schema.table)
            state.id_maps.pop(schema.entity_type, None)
            return

        state.id_maps[schema.entity_type] = id_map
        if inserted:
            state.report.inserted[schema.entity_type] = inserted

    def _merge_table(self, schema: EntitySchema, state: _StorePass) -> tuple[int, IdMap]:
        reconciler = SchemaReconciler(self.destination)
        columns = reconciler.reconcile(schema, state.source)
        if isinstance(columns, SchemaMismatch):
            if columns.table_missing:
                log.debug("Store %s has no table %s", state.source.name, schema.table)
            else:
                log.warning(
                    "Skipping table %s of store %s: %s",
                    schema.table,
                    state.source.name,
                    columns.reason,
                )
                state.report.record(MergeIssue.SCHEMA_MISMATCH, columns.reason, table=schema.table)
            return 0, {}

        column_policy = ColumnPolicy(schema)
        id_map: IdMap = {}
        inserted = 0
        for row in state.source.iter_rows(schema.table, (ID_COLUMN, *columns.common)):
            source_id = as_id(row.get(ID_COLUMN))
            outcome = self._merge_row(column_policy, columns, row, state)
            match outcome:
                case RowMerged(target_id=target_id, created=created):
                    if source_id is not None:
                        id_map[source_id] = target_id
                    inserted += int(created)
                case RowSkipped(issue=None, message=message):
                    log.debug("%s row %s: %s", schema.table, source_id, message)
                case RowSkipped(issue=issue, message=message):
                    log.warning(
                        "Skipped %s row %s from %s: %s",
                        schema.table,
                        source_id,
                        state.source.name,
                        message,
                    )
                    state.report.record(issue, message, table=schema.table, row_id=source_id)
        return inserted, id_map

    def _merge_row(
        self,
        column_policy: ColumnPolicy,
        columns: ColumnSet,
        row: Mapping[str, object],
        state: _StorePass,
    ) -> RowOutcome:
        schema = column_policy.schema
        remapped = remap_foreign_keys(schema, row, state.id_maps)
        if isinstance(remapped, ForeignKeyUnresolved):
            return RowSkipped(
                issue=MergeIssue.FOREIGN_KEY_UNRESOLVED,
                message=(
                    f"{remapped.column}={remapped.source_value!r} has no merged "
                    f"{remapped.parent} in the destination"
                ),
            )

        if remapped.nulled:
            log.debug(
                "Cleared %s of %s row %s from %s: parent not merged",
                ", ".join(remapped.nulled),
                schema.table,
                row.get(ID_COLUMN),
                state.source.name,
            )
        values = remapped.values
        resolution = state.resolver.resolve(schema, values, source_columns=columns.source)
        match resolution:
            case UnresolvableEntityResolution(reason=reason):
                return RowSkipped(issue=MergeIssue.UNRESOLVABLE, message=reason or "unresolvable")
            case ResolvedEntityResolution(target_id=target_id):
                return self._update(column_policy, columns, target_id, values, state)
            case NewEntityResolution():
                return self._insert(column_policy, columns, values, state)

    def _insert(
        self,
        column_policy: ColumnPolicy,
        columns: ColumnSet,
        values: Mapping[str, object],
        state: _StorePass,
    ) -> RowOutcome:
        schema = column_policy.schema
        payload = insert_values(column_policy, columns, values, now=self.clock())
        try:
            with self.destination.row_savepoint():
                new_id = self.destination.insert_row(schema.table, payload)
        except DuplicateRowError as exc:
            # Already present under a key outside the identity chain.
            retry = state.resolver.resolve(schema, values, source_columns=columns.source)
            if isinstance(retry, ResolvedEntityResolution):
                return RowMerged(target_id=retry.target_id, created=False)
            return RowSkipped(
                issue=MergeIssue.CONSTRAINT_VIOLATION,
                message=f"duplicate not matched by identity: {exc}",
            )
        except ConstraintViolationError as exc:
            return RowSkipped(issue=MergeIssue.CONSTRAINT_VIOLATION, message=str(exc))

        state.resolver.remember(schema, new_id, payload)
        return RowMerged(target_id=new_id, created=True)

    def _update(
        self,
        column_policy: ColumnPolicy,
        columns: ColumnSet,
        target_id: int,
        values: Mapping[str, object],
        state: _StorePass,
    ) -> RowOutcome:
        schema = column_policy.schema
        wanted = {*column_policy.updatable(columns), UPDATED_AT_COLUMN}
        if schema.provenance_column is not None:
            wanted.add(schema.provenance_column)
        current = self.destination.fetch_row(
            schema.table,
            target_id,
            sorted(wanted & columns.destination),
        )
        if current is None:
            return RowSkipped(
                issue=MergeIssue.UNRESOLVABLE,
                message=f"matched destination row {target_id} disappeared",
            )

        changes = update_values(
            column_policy,
            columns,
            values,
            current,
            merge_policy=self.policy,
            now=self.clock(),
        )
        if changes:
            try:
                with self.destination.row_savepoint():
                    self.destination.update_row(schema.table, target_id, changes)
            except (DuplicateRowError, ConstraintViolationError) as exc:
                log.warning("Kept %s row %d unchanged: %s", schema.table, target_id, exc)
                return RowMerged(target_id=target_id, created=False)
            if any(
                key.kind is KeyKind.TITLE_SET and not changes.keys().isdisjoint(key.columns)
                for key in schema.identity
            ):
                state.resolver.refresh(schema, target_id)
        return RowMerged(target_id=target_id, created=False)
