"""Column policy and conflict resolution.

Responsibilities of this module:
- decide which columns of an entity table may be copied or updated
- pick the surviving value of a mergeable column under a merge policy
- build minimal insert and update payloads

Values are only ever written when they carry data and differ from what the
destination already holds, so re-running a merge does not touch rows again.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from shelfmerge.domain.model import (
    CREATED_AT_COLUMN,
    METADATA_COLUMNS,
    UPDATED_AT_COLUMN,
    MergePolicy,
)

from .normalize import has_value

if TYPE_CHECKING:
    from collections.abc import Mapping

    from shelfmerge.domain.model import EntitySchema

    from .contracts import ColumnSet


TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"


def utc_now_text() -> str:
    """Return "now" in the same text format SQLite's ``datetime('now')`` uses."""

    return datetime.now(UTC).strftime(TIMESTAMP_FORMAT)


@dataclass(frozen=True, slots=True)
class ColumnPolicy:
    """Which live columns of one table the merge may read or write."""

    schema: EntitySchema

    @property
    def excluded(self) -> frozenset[str]:
        return self.schema.excluded

    @property
    def mergeable(self) -> frozenset[str]:
        return self.schema.mergeable

    def insertable(self, columns: ColumnSet) -> tuple[str, ...]:
        allowed = self.schema.known_columns
        return tuple(column for column in columns.common if column in allowed)

    def updatable(self, columns: ColumnSet) -> tuple[str, ...]:
        allowed = (self.schema.mergeable | self.schema.fill_only) - self.schema.excluded
        return tuple(
            column
            for column in columns.common
            if column in allowed and column not in self.schema.foreign_key_columns
        )

    def is_authoritative(self, row: Mapping[str, object]) -> bool:
        """Return whether ``row`` is tagged as coming from an authoritative source."""

        column = self.schema.provenance_column
        if column is None:
            return False
        tag = row.get(column)
        if not isinstance(tag, str):
            return False
        lowered = tag.casefold()
        return any(source.casefold() in lowered for source in self.schema.authoritative_sources)


def resolve_value(
    column: str,
    source_value: object,
    destination_value: object,
    *,
    source_updated_at: object = None,
    destination_updated_at: object = None,
    policy: MergePolicy = MergePolicy.CURRENT_USER,
    source_authoritative: bool = False,
    destination_authoritative: bool = False,
) -> object:
    """Pick the surviving value of one mergeable column.

    A provenance-tagged side wins over an untagged one before the policy is
    consulted. When the winning side holds no value the other side is used.
    Equal timestamps favour the destination.
    """

    if column in METADATA_COLUMNS:
        return destination_value

    if source_authoritative != destination_authoritative:
        preferred = source_value if source_authoritative else destination_value
        if has_value(preferred):
            return preferred

    match policy:
        case MergePolicy.SOURCE:
            source_first = True
        case MergePolicy.NEWEST:
            source_first = _timestamp(source_updated_at, missing=0.0) > _timestamp(
                destination_updated_at, missing=0.0
            )
        case MergePolicy.OLDEST:
            source_first = _timestamp(source_updated_at, missing=math.inf) < _timestamp(
                destination_updated_at, missing=math.inf
            )
        case _:
            source_first = False

    first, second = (
        (source_value, destination_value) if source_first else (destination_value, source_value)
    )
    return first if has_value(first) else second


def parse_timestamp(value: object) -> float | None:
    """Parse a stored timestamp into epoch seconds; naive values are UTC."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)):
        return float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            pass
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.timestamp()


def _timestamp(value: object, *, missing: float) -> float:
    parsed = parse_timestamp(value)
    return missing if parsed is None else parsed


def values_differ(left: object, right: object) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        return left.strip() != right.strip()
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left != right
    if left is None or right is None:
        return left is not right
    return str(left).strip() != str(right).strip()


def insert_values(
    policy: ColumnPolicy,
    columns: ColumnSet,
    row: Mapping[str, object],
    *,
    now: str,
) -> dict[str, object]:
    """Build the payload for inserting ``row`` as a new destination row."""

    payload = {
        column: row[column]
        for column in policy.insertable(columns)
        if column in row and row[column] is not None
    }
    if CREATED_AT_COLUMN in columns.destination and CREATED_AT_COLUMN not in payload:
        payload[CREATED_AT_COLUMN] = now
    if UPDATED_AT_COLUMN in columns.destination:
        payload[UPDATED_AT_COLUMN] = now
    return payload


def update_values(
    policy: ColumnPolicy,
    columns: ColumnSet,
    source_row: Mapping[str, object],
    destination_row: Mapping[str, object],
    *,
    merge_policy: MergePolicy,
    now: str,
) -> dict[str, object]:
    """Build the minimal update for an existing destination row.

    Returns an empty mapping when nothing would change. Fill-only columns are
    written only while the destination holds no value.
    """

    source_authoritative = policy.is_authoritative(source_row)
    destination_authoritative = policy.is_authoritative(destination_row)
    changes: dict[str, object] = {}
    for column in policy.updatable(columns):
        source_value = source_row.get(column)
        destination_value = destination_row.get(column)
        if column in policy.schema.fill_only:
            if has_value(destination_value) or not has_value(source_value):
                continue
            resolved = source_value
        else:
            resolved = resolve_value(
                column,
                source_value,
                destination_value,
                source_updated_at=source_row.get(UPDATED_AT_COLUMN),
                destination_updated_at=destination_row.get(UPDATED_AT_COLUMN),
                policy=merge_policy,
                source_authoritative=source_authoritative,
                destination_authoritative=destination_authoritative,
            )
        if has_value(resolved) and values_differ(resolved, destination_value):
            changes[column] = resolved

    if changes and UPDATED_AT_COLUMN in columns.destination:
        changes[UPDATED_AT_COLUMN] = now
    return changes
