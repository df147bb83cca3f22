"""Exceptions raised by store adapters and understood by the merge engine."""

from __future__ import annotations


class MergeError(RuntimeError):
    """Base class for failures surfaced through the store ports."""


class DuplicateRowError(MergeError):
    """An insert collided with a row that already satisfies a uniqueness constraint."""


class ConstraintViolationError(MergeError):
    """A write failed an integrity constraint other than an expected duplicate."""


class DestinationUnavailableError(MergeError):
    """The destination store could not be opened, migrated, or written."""
