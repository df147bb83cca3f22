from __future__ import annotations

from typing import TYPE_CHECKING

from shelfmerge.adapters.sqlalchemy import locate_candidate_stores

if TYPE_CHECKING:
    from pathlib import Path


def _touch(directory: Path, *names: str) -> None:
    for name in names:
        (directory / name).write_bytes(b"")


def test_excludes_active_and_transient_stores(tmp_path: Path) -> None:
    _touch(tmp_path, "alice.db", "Bob.db", "carol.db", "temp_restore.db", "notes.txt")
    (tmp_path / "archive.db").mkdir()

    found = locate_candidate_stores(tmp_path, "ALICE.db")

    assert [path.name for path in found] == ["Bob.db", "carol.db"]


def test_transient_prefix_is_case_insensitive(tmp_path: Path) -> None:
    _touch(tmp_path, "TEMP_import.DB", "dave.DB")

    found = locate_candidate_stores(tmp_path, "alice.db")

    assert [path.name for path in found] == ["dave.DB"]


def test_custom_suffix_and_prefix(tmp_path: Path) -> None:
    _touch(tmp_path, "alice.sqlite", "bob.sqlite", "bob.db", "tmp-x.sqlite")

    found = locate_candidate_stores(tmp_path, "alice.sqlite", suffix=".sqlite", transient_prefix="tmp-")

    assert [path.name for path in found] == ["bob.sqlite"]


def test_missing_directory_yields_nothing(tmp_path: Path) -> None:
    assert locate_candidate_stores(tmp_path / "absent", "alice.db") == []
