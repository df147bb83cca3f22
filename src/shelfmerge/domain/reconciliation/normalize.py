"""Identity value extraction and title normalisation.

Responsibilities of this module:
- decide whether a stored value counts as present
- turn identity key columns into comparable lookup values
- expand title columns into a set of normalised variants

No store access happens here.
"""

from __future__ import annotations

import json
import re
import unicodedata
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from shelfmerge.domain.model import IdentityKey


_TITLE_SEPARATORS = re.compile(r"[/\\|]")
_LATIN_LIMIT = "\u0250"  # end of Latin Extended-B


def has_value(value: object) -> bool:
    """Return whether ``value`` carries data (None and blank strings do not)."""

    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def key_values(row: Mapping[str, object], key: IdentityKey) -> tuple[object, ...] | None:
    """Return the stored values for ``key`` or None when any is missing or blank."""

    values: list[object] = []
    for column in key.columns:
        value = row.get(column)
        if not has_value(value):
            return None
        values.append(value)
    return tuple(values)


def normalize_title(value: str | None) -> str | None:
    if value is None:
        return None
    text = unicodedata.normalize("NFKC", value)
    text = text.casefold()
    text = unicodedata.normalize("NFC", _strip_latin_diacritics(text))
    text = "".join(
        ch
        for ch in text
        if not unicodedata.category(ch).startswith(("P", "Z")) and not ch.isspace()
    )
    return text or None


def _strip_latin_diacritics(text: str) -> str:
    # Kana voicing marks decompose into combining characters too; keep those.
    kept: list[str] = []
    for ch in unicodedata.normalize("NFKD", text):
        if unicodedata.combining(ch) and kept and kept[-1] < _LATIN_LIMIT:
            continue
        kept.append(ch)
    return "".join(kept)


def title_variants(values: Iterable[object]) -> frozenset[str]:
    """Normalise every title in ``values``, splitting multi-title strings.

    A string holding a JSON array contributes each of its elements.
    """

    variants: set[str] = set()
    for value in values:
        for raw in _expand_title_value(value):
            for part in _TITLE_SEPARATORS.split(raw):
                normalized = normalize_title(part.strip())
                if normalized:
                    variants.add(normalized)
    return frozenset(variants)


def _expand_title_value(value: object) -> list[str]:
    if not has_value(value):
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if has_value(item)]
    text = str(value).strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            return [text]
        if isinstance(parsed, list):
            return [str(item) for item in parsed if has_value(item)]
    return [text]
