"""Reconciliation of independently keyed library stores."""

from __future__ import annotations

from .contracts import (
    ColumnSet,
    EntityResolution,
    ForeignKeyUnresolved,
    IdMap,
    IdMapsByType,
    NewEntityResolution,
    RemappedRow,
    ResolutionStatus,
    ResolvedEntityResolution,
    SchemaMismatch,
    StoreRejection,
    UnresolvableEntityResolution,
)
from .engine import MergeOrchestrator
from .normalize import has_value, normalize_title, title_variants
from .policy import ColumnPolicy, parse_timestamp, resolve_value
from .remap import remap_foreign_keys
from .report import BUSY_REASON, Diagnostic, MergeSummary, StoreReport
from .resolve import IdentityResolver
from .schema import SchemaReconciler

__all__ = [
    "BUSY_REASON",
    "ColumnPolicy",
    "ColumnSet",
    "Diagnostic",
    "EntityResolution",
    "ForeignKeyUnresolved",
    "IdMap",
    "IdMapsByType",
    "IdentityResolver",
    "MergeOrchestrator",
    "MergeSummary",
    "NewEntityResolution",
    "RemappedRow",
    "ResolutionStatus",
    "ResolvedEntityResolution",
    "SchemaMismatch",
    "SchemaReconciler",
    "StoreRejection",
    "StoreReport",
    "UnresolvableEntityResolution",
    "has_value",
    "normalize_title",
    "parse_timestamp",
    "remap_foreign_keys",
    "resolve_value",
    "title_variants",
]
