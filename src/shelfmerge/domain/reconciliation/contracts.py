"""Outcome values passed between merge stages.

Every stage returns one of these values instead of raising, so the
orchestrator can decide per outcome whether to skip a row, a table or a
store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from pathlib import Path

    from shelfmerge.domain.model import EntityType, IdentityKey, MergeIssue, RejectionKind


type IdMap = dict[int, int]
"""Source-local id to destination-local id for one entity type."""

type IdMapsByType = dict[EntityType, IdMap]


@dataclass(frozen=True, slots=True, kw_only=True)
class StoreRejection:
    """A candidate store that failed the integrity gate."""

    path: Path
    kind: RejectionKind
    message: str


@dataclass(frozen=True, slots=True, kw_only=True)
class ColumnSet:
    """Columns usable for one table of one source store."""

    table: str
    common: tuple[str, ...]
    source: frozenset[str]
    destination: frozenset[str]
    added: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True, kw_only=True)
class SchemaMismatch:
    """No usable column overlap for a table."""

    table: str
    reason: str
    table_missing: bool = False


type ColumnOutcome = ColumnSet | SchemaMismatch


class ResolutionStatus(StrEnum):
    NEW = "new"
    RESOLVED = "resolved"
    UNRESOLVABLE = "unresolvable"


@dataclass(slots=True, kw_only=True)
class NewEntityResolution:
    """No destination row matched; the row should be inserted."""

    status: Literal[ResolutionStatus.NEW] = ResolutionStatus.NEW
    reason: str | None = None


@dataclass(slots=True, kw_only=True)
class ResolvedEntityResolution:
    """The row matched exactly one destination row."""

    target_id: int
    matched_key: IdentityKey
    reason: str | None = None
    status: Literal[ResolutionStatus.RESOLVED] = ResolutionStatus.RESOLVED


@dataclass(slots=True, kw_only=True)
class UnresolvableEntityResolution:
    """The row carries no identity values at all and cannot be matched or inserted."""

    reason: str | None = None
    status: Literal[ResolutionStatus.UNRESOLVABLE] = ResolutionStatus.UNRESOLVABLE


type EntityResolution = (
    NewEntityResolution | ResolvedEntityResolution | UnresolvableEntityResolution
)


@dataclass(slots=True, kw_only=True)
class RemappedRow:
    """Row whose foreign keys now carry destination-local ids."""

    values: dict[str, object]
    nulled: tuple[str, ...] = ()


@dataclass(slots=True, kw_only=True)
class ForeignKeyUnresolved:
    """A mandatory parent could not be found in the destination."""

    column: str
    parent: EntityType
    source_value: object = None


type RemapOutcome = RemappedRow | ForeignKeyUnresolved


@dataclass(slots=True, kw_only=True)
class RowMerged:
    target_id: int
    created: bool


@dataclass(slots=True, kw_only=True)
class RowSkipped:
    """Row left untouched; ``issue`` is None for an expected duplicate."""

    issue: MergeIssue | None
    message: str


type RowOutcome = RowMerged | RowSkipped
