"""Schema description of the entity tables a store may contain.

Each ``EntitySchema`` is the fixed policy for one table: how a row is
identified across stores, which columns reference other entities, and which
columns are shared metadata versus private per-user state. The merge engine
validates live store schemas against these descriptions instead of building
statements from whatever columns happen to exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Final

from .enums import EntityCategory, EntityType

ID_COLUMN: Final[str] = "id"
CREATED_AT_COLUMN: Final[str] = "created_at"
UPDATED_AT_COLUMN: Final[str] = "updated_at"
METADATA_COLUMNS: Final[frozenset[str]] = frozenset(
    {ID_COLUMN, CREATED_AT_COLUMN, UPDATED_AT_COLUMN}
)


class KeyKind(StrEnum):
    EXTERNAL_ID = "external_id"
    COMPOUND = "compound"
    TITLE_SET = "title_set"


@dataclass(frozen=True, slots=True)
class IdentityKey:
    """One step of an identity fallback chain."""

    kind: KeyKind
    columns: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.columns:
            raise ValueError("Identity key must name at least one column")
        if self.kind is KeyKind.EXTERNAL_ID and len(self.columns) != 1:
            raise ValueError("External id keys match exactly one column")


def external_id(column: str) -> IdentityKey:
    return IdentityKey(KeyKind.EXTERNAL_ID, (column,))


def compound(*columns: str) -> IdentityKey:
    return IdentityKey(KeyKind.COMPOUND, columns)


def title_set(*columns: str) -> IdentityKey:
    return IdentityKey(KeyKind.TITLE_SET, columns)


@dataclass(frozen=True, slots=True)
class ForeignKeyRef:
    column: str
    parent: EntityType
    required: bool = True


@dataclass(frozen=True, slots=True, kw_only=True)
class EntitySchema:
    entity_type: EntityType
    table: str
    category: EntityCategory
    identity: tuple[IdentityKey, ...] = ()
    foreign_keys: tuple[ForeignKeyRef, ...] = ()
    mergeable: frozenset[str] = field(default_factory=frozenset)
    fill_only: frozenset[str] = field(default_factory=frozenset)
    excluded: frozenset[str] = field(default_factory=frozenset)
    provenance_column: str | None = None
    authoritative_sources: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        overlap = (self.mergeable | self.fill_only) & self.excluded
        if overlap:
            raise ValueError(
                f"{self.table}: columns both merged and excluded: {sorted(overlap)}"
            )
        if self.mergeable & self.fill_only:
            raise ValueError(f"{self.table}: fill-only columns must not be mergeable")
        if (self.mergeable | self.fill_only) & METADATA_COLUMNS:
            raise ValueError(f"{self.table}: metadata columns cannot be merged")
        if self.provenance_column is not None and not self.authoritative_sources:
            raise ValueError(f"{self.table}: provenance column without authoritative sources")

    @property
    def is_mergeable(self) -> bool:
        return self.category is not EntityCategory.USER_PROGRESS

    @property
    def foreign_key_columns(self) -> frozenset[str]:
        return frozenset(ref.column for ref in self.foreign_keys)

    @property
    def identity_columns(self) -> frozenset[str]:
        return frozenset(column for key in self.identity for column in key.columns)

    @property
    def known_columns(self) -> frozenset[str]:
        """Columns the engine is allowed to copy when inserting a new row."""

        return (
            self.identity_columns
            | self.foreign_key_columns
            | self.mergeable
            | self.fill_only
            | {CREATED_AT_COLUMN}
        ) - self.excluded
