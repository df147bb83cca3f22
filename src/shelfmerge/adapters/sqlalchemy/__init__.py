"""SQLAlchemy adapters for SQLite library stores."""

from __future__ import annotations

from .engine import create_store_engine, store_url
from .integrity import classify_failure, open_source_store
from .locator import locate_candidate_stores
from .migrations import SchemaChanges, ensure_schema, migrate_store
from .stores import SqlAlchemyDestinationStore, SqlAlchemySourceStore, open_destination_store
from .tables import metadata

__all__ = [
    "SchemaChanges",
    "SqlAlchemyDestinationStore",
    "SqlAlchemySourceStore",
    "classify_failure",
    "create_store_engine",
    "ensure_schema",
    "locate_candidate_stores",
    "metadata",
    "migrate_store",
    "open_destination_store",
    "open_source_store",
    "store_url",
]
