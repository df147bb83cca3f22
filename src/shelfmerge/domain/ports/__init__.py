"""Domain port definitions for adapters."""

from __future__ import annotations

from .stores import DestinationStore, Row, SourceStore

__all__ = [
    "DestinationStore",
    "Row",
    "SourceStore",
]
