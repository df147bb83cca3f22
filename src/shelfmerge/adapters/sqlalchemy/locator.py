"""Discovery of candidate source stores in the databases directory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


log = logging.getLogger(__name__)


def locate_candidate_stores(
    directory: Path,
    active_store: str,
    *,
    suffix: str = ".db",
    transient_prefix: str = "temp_",
) -> list[Path]:
    """Return every store file in ``directory`` except the active and transient ones.

    File names are compared case-insensitively because store names derive from
    case-insensitive user names. The result is sorted by file name.
    """

    if not directory.is_dir():
        log.info("Store directory %s does not exist", directory)
        return []

    active = active_store.casefold()
    suffix = suffix.casefold()
    prefix = transient_prefix.casefold()
    candidates = [
        entry
        for entry in directory.iterdir()
        if entry.is_file()
        and entry.name.casefold().endswith(suffix)
        and entry.name.casefold() != active
        and not entry.name.casefold().startswith(prefix)
    ]
    return sorted(candidates, key=lambda entry: entry.name.casefold())
