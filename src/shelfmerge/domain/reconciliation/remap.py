"""Foreign-key remapping from source-local ids to destination-local ids."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .contracts import ForeignKeyUnresolved, RemappedRow

if TYPE_CHECKING:
    from collections.abc import Mapping

    from shelfmerge.domain.model import EntitySchema

    from .contracts import IdMapsByType, RemapOutcome


def remap_foreign_keys(
    schema: EntitySchema,
    row: Mapping[str, object],
    id_maps: IdMapsByType,
) -> RemapOutcome:
    """Substitute destination ids for every foreign key of ``row``.

    A parent is only known if its own merge step mapped it during this store
    pass. Mandatory references that cannot be mapped discard the row; optional
    ones are cleared.
    """

    values = dict(row)
    nulled: list[str] = []
    for ref in schema.foreign_keys:
        source_value = values.get(ref.column)
        source_id = as_id(source_value)
        target_id = None
        if source_id is not None:
            target_id = id_maps.get(ref.parent, {}).get(source_id)

        if target_id is not None:
            values[ref.column] = target_id
            continue
        if ref.required:
            return ForeignKeyUnresolved(
                column=ref.column,
                parent=ref.parent,
                source_value=source_value,
            )
        if ref.column in values:
            if source_value is not None:
                nulled.append(ref.column)
            values[ref.column] = None
    return RemappedRow(values=values, nulled=tuple(nulled))


def as_id(value: object) -> int | None:
    """Coerce a stored row id to ``int``; anything non-integral is None."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        return int(text) if text.lstrip("-").isdigit() else None
    return None
