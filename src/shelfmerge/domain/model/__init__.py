"""Domain model: entity kinds, table descriptions and the fixed catalogue."""

from __future__ import annotations

from .catalog import (
    AUTHORITATIVE_SERIES_SOURCE,
    CATALOG,
    MERGE_ORDER,
    progress_schemas,
    schema_for,
    schema_for_table,
)
from .enums import (
    EntityCategory,
    EntityType,
    MergeIssue,
    MergePolicy,
    MergeTrigger,
    RejectionKind,
    StoreStatus,
)
from .schema import (
    CREATED_AT_COLUMN,
    ID_COLUMN,
    METADATA_COLUMNS,
    UPDATED_AT_COLUMN,
    EntitySchema,
    ForeignKeyRef,
    IdentityKey,
    KeyKind,
    compound,
    external_id,
    title_set,
)

__all__ = [
    "AUTHORITATIVE_SERIES_SOURCE",
    "CATALOG",
    "CREATED_AT_COLUMN",
    "ID_COLUMN",
    "MERGE_ORDER",
    "METADATA_COLUMNS",
    "UPDATED_AT_COLUMN",
    "EntityCategory",
    "EntitySchema",
    "EntityType",
    "ForeignKeyRef",
    "IdentityKey",
    "KeyKind",
    "MergeIssue",
    "MergePolicy",
    "MergeTrigger",
    "RejectionKind",
    "StoreStatus",
    "compound",
    "external_id",
    "progress_schemas",
    "schema_for",
    "schema_for_table",
    "title_set",
]
