from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING

import pytest

from shelfmerge.adapters.sqlalchemy import SqlAlchemyDestinationStore, open_source_store
from shelfmerge.domain.model import (
    EntityType,
    MergeIssue,
    MergePolicy,
    RejectionKind,
    StoreStatus,
)
from shelfmerge.domain.reconciliation import BUSY_REASON, MergeOrchestrator, StoreRejection
from tests.helpers.stores import (
    add_row,
    create_legacy_store,
    create_store,
    rows,
    snapshot,
    write_garbage,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from pathlib import Path

    from shelfmerge.domain.ports import Row, SourceStore
    from shelfmerge.domain.reconciliation import MergeSummary

OWNERS = "manga_manga_tomes_proprietaires"
SERIES_PRIVATE = ("statut_lecture", "score_utilisateur", "notes_privees", "volumes_lus")


def _merge(
    destination_path: Path,
    *sources: Path,
    policy: MergePolicy = MergePolicy.CURRENT_USER,
    open_source: Callable[[Path], SourceStore | StoreRejection] = open_source_store,
) -> MergeSummary:
    destination = SqlAlchemyDestinationStore.open(destination_path, timeout=0.2)
    try:
        return MergeOrchestrator(destination, policy=policy).run(sources, open_source=open_source)
    finally:
        destination.close()


def _one_piece_stores(make_store: Callable[..., Path]) -> tuple[Path, Path]:
    alice = make_store("alice", "alice")
    add_row(
        alice,
        "manga_series",
        titre="One Piece",
        mal_id=13,
        description="Pirates",
        statut_lecture="En cours",
        score_utilisateur=9.0,
        notes_privees="mine",
        volumes_lus=40,
    )

    bob = make_store("bob", "bob")
    series_id = add_row(
        bob,
        "manga_series",
        titre="One Piece",
        mal_id=13,
        description="Another description",
        genres="Action, Aventure",
        statut_lecture="Terminé",
        score_utilisateur=2.0,
        notes_privees="theirs",
        volumes_lus=105,
    )
    tome_id = add_row(bob, "manga_tomes", serie_id=series_id, numero=5, prix=6.9)
    add_row(bob, OWNERS, serie_id=series_id, tome_id=tome_id, user_id=1)
    return alice, bob


def test_merging_bob_into_alice(make_store: Callable[..., Path]) -> None:
    alice, bob = _one_piece_stores(make_store)

    summary = _merge(alice, bob)

    assert summary.merged
    assert summary.inserted == {
        EntityType.USER: 1,
        EntityType.TOME: 1,
        EntityType.TOME_OWNERSHIP: 1,
    }
    assert summary.diagnostics == []

    [series] = rows(alice, "manga_series")
    assert series["description"] == "Pirates"
    assert series["genres"] == "Action, Aventure"

    users = {row["name"]: row["id"] for row in rows(alice, "users")}
    assert set(users) == {"alice", "bob"}
    [tome] = rows(alice, "manga_tomes")
    assert (tome["serie_id"], tome["numero"]) == (series["id"], 5)
    [owner] = rows(alice, OWNERS)
    assert (owner["serie_id"], owner["tome_id"], owner["user_id"]) == (
        series["id"],
        tome["id"],
        users["bob"],
    )


def test_second_merge_changes_nothing(make_store: Callable[..., Path]) -> None:
    alice, bob = _one_piece_stores(make_store)
    tables = ("users", "manga_series", "manga_tomes", OWNERS)
    _merge(alice, bob)
    before = snapshot(alice, tables)

    summary = _merge(alice, bob)

    assert summary.merged
    assert summary.total_inserted == 0
    assert snapshot(alice, tables) == before


def test_excluded_columns_survive_source_policy(make_store: Callable[..., Path]) -> None:
    alice, bob = _one_piece_stores(make_store)
    add_row(bob, "manga_user_data", serie_id=1, user_id=1, statut_lecture="Terminé", volumes_lus=105)

    _merge(alice, bob, policy=MergePolicy.SOURCE)

    [series] = rows(alice, "manga_series")
    assert series["description"] == "Another description"
    assert {column: series[column] for column in SERIES_PRIVATE} == {
        "statut_lecture": "En cours",
        "score_utilisateur": 9.0,
        "notes_privees": "mine",
        "volumes_lus": 40,
    }
    assert rows(alice, "manga_user_data") == []


def test_ownership_stays_unique_per_entity_and_user(make_store: Callable[..., Path]) -> None:
    alice, bob = _one_piece_stores(make_store)
    carol = make_store("carol", "carol", "bob")
    series_id = add_row(carol, "manga_series", titre="ONE PIECE")
    tome_id = add_row(carol, "manga_tomes", serie_id=series_id, numero=5)
    add_row(carol, OWNERS, serie_id=series_id, tome_id=tome_id, user_id=2)
    add_row(carol, OWNERS, serie_id=series_id, tome_id=tome_id, user_id=1)

    summary = _merge(alice, bob, carol)

    assert summary.inserted[EntityType.TOME_OWNERSHIP] == 2
    pairs = Counter((row["tome_id"], row["user_id"]) for row in rows(alice, OWNERS))
    assert len(pairs) == 2
    assert max(pairs.values()) == 1


def test_written_children_reference_existing_parents(make_store: Callable[..., Path]) -> None:
    alice, bob = _one_piece_stores(make_store)
    add_row(bob, "tv_shows", titre="Dark", tmdb_id=70523)
    add_row(bob, "tv_seasons", show_id=1, numero=1)
    add_row(bob, "tv_episodes", show_id=1, season_id=1, saison_numero=1, episode_numero=1)

    _merge(alice, bob)

    parents = ("users", "manga_series", "manga_tomes", "tv_shows", "tv_seasons")
    ids = {table: {row["id"] for row in rows(alice, table)} for table in parents}
    for tome in rows(alice, "manga_tomes"):
        assert tome["serie_id"] in ids["manga_series"]
    for owner in rows(alice, OWNERS):
        assert owner["serie_id"] in ids["manga_series"]
        assert owner["tome_id"] in ids["manga_tomes"]
        assert owner["user_id"] in ids["users"]
    [episode] = rows(alice, "tv_episodes")
    assert episode["show_id"] in ids["tv_shows"]
    assert episode["season_id"] in ids["tv_seasons"]


def test_corrupt_store_does_not_block_healthy_ones(make_store: Callable[..., Path], databases_dir: Path) -> None:
    alice = make_store("alice", "alice")
    bob = make_store("bob", "bob")
    carol = make_store("carol", "carol")
    add_row(carol, "movies", titre="Inception", tmdb_id=27205)
    broken = write_garbage(databases_dir / "dave.db")

    summary = _merge(alice, bob, broken, carol)

    assert summary.merged
    assert summary.inserted == {EntityType.USER: 2, EntityType.MOVIE: 1}
    reports = {report.name: report for report in summary.stores}
    assert reports["dave.db"].status is StoreStatus.REJECTED
    assert reports["dave.db"].rejection is RejectionKind.CORRUPT
    assert reports["bob.db"].status is StoreStatus.MERGED
    assert reports["bob.db"].inserted == {EntityType.USER: 1}
    assert reports["carol.db"].inserted == {EntityType.USER: 1, EntityType.MOVIE: 1}


def test_busy_probe_defers_the_run(make_store: Callable[..., Path]) -> None:
    alice, bob = _one_piece_stores(make_store)
    opened: list[Path] = []

    def open_source(path: Path) -> SourceStore | StoreRejection:
        opened.append(path)
        return open_source_store(path)

    destination = SqlAlchemyDestinationStore.open(alice)
    try:
        summary = MergeOrchestrator(destination).run(
            [bob],
            open_source=open_source,
            is_busy=lambda: True,
        )
    finally:
        destination.close()

    assert summary.skipped
    assert not summary.merged
    assert summary.reason == BUSY_REASON
    assert opened == []
    assert [row["name"] for row in rows(alice, "users")] == ["alice"]


def test_newest_policy_prefers_recent_rows(make_store: Callable[..., Path]) -> None:
    alice = make_store("alice", "alice")
    add_row(alice, "movies", titre="Dune", tmdb_id=438631, synopsis="old", updated_at="2024-01-01 00:00:00")
    add_row(alice, "movies", titre="Heat", tmdb_id=949, synopsis="mine", updated_at="2025-01-01 00:00:00")
    bob = make_store("bob", "bob")
    add_row(bob, "movies", titre="Dune", tmdb_id=438631, synopsis="new", updated_at="2024-06-01 00:00:00")
    add_row(bob, "movies", titre="Heat", tmdb_id=949, synopsis="theirs", updated_at="2024-06-01 00:00:00")

    _merge(alice, bob, policy=MergePolicy.NEWEST)

    synopses = {row["titre"]: row["synopsis"] for row in rows(alice, "movies")}
    assert synopses == {"Dune": "new", "Heat": "mine"}


def test_authoritative_series_keeps_its_values(make_store: Callable[..., Path]) -> None:
    alice = make_store("alice", "alice")
    add_row(alice, "manga_series", titre="Vagabond", mal_id=656, description="curated", source_donnees="nautiljon")
    bob = make_store("bob", "bob")
    add_row(bob, "manga_series", titre="Vagabond", mal_id=656, description="scraped", source_donnees="mal")

    _merge(alice, bob, policy=MergePolicy.SOURCE)

    [series] = rows(alice, "manga_series")
    assert series["description"] == "curated"
    assert series["source_donnees"] == "nautiljon"


def test_unknown_optional_parent_is_cleared_on_insert(
    make_store: Callable[..., Path],
    caplog: pytest.LogCaptureFixture,
) -> None:
    alice = make_store("alice", "alice")
    bob = make_store("bob", "bob")
    add_row(bob, "manga_series", titre="Blame!", user_id_ajout=42)

    with caplog.at_level(logging.DEBUG, logger="shelfmerge.domain.reconciliation.engine"):
        summary = _merge(alice, bob)

    assert summary.inserted[EntityType.SERIES] == 1
    [series] = rows(alice, "manga_series")
    assert series["user_id_ajout"] is None
    assert "Cleared user_id_ajout of manga_series row 1 from bob.db" in caplog.text


def test_constraint_violation_skips_only_the_row(make_store: Callable[..., Path], databases_dir: Path) -> None:
    alice = make_store("alice", "alice")
    legacy = create_legacy_store(
        databases_dir / "legacy.db",
        [
            "CREATE TABLE manga_series (id INTEGER PRIMARY KEY, titre TEXT, mal_id INTEGER, description TEXT)",
            "INSERT INTO manga_series (id, titre, mal_id, description) VALUES (1, NULL, 99, 'untitled')",
            "INSERT INTO manga_series (id, titre, mal_id, description) VALUES (2, 'Akira', 664, 'Neo-Tokyo')",
        ],
    )

    summary = _merge(alice, legacy)

    [report] = summary.stores
    assert report.status is StoreStatus.MERGED
    assert [(d.issue, d.table, d.row_id) for d in report.diagnostics] == [
        (MergeIssue.CONSTRAINT_VIOLATION, "manga_series", 1)
    ]
    assert [row["titre"] for row in rows(alice, "manga_series")] == ["Akira"]


def test_row_without_identity_is_reported(make_store: Callable[..., Path], databases_dir: Path) -> None:
    alice = make_store("alice", "alice")
    legacy = create_legacy_store(
        databases_dir / "legacy.db",
        [
            "CREATE TABLE manga_series (id INTEGER PRIMARY KEY, titre TEXT, mal_id INTEGER)",
            "INSERT INTO manga_series (id, titre, mal_id) VALUES (1, ' ', NULL)",
        ],
    )

    summary = _merge(alice, legacy)

    assert [d.issue for d in summary.diagnostics] == [MergeIssue.UNRESOLVABLE]
    assert rows(alice, "manga_series") == []


class _FailingSeriesSource:
    """Source that fails halfway through reading ``manga_series``."""

    def __init__(self, inner: SourceStore) -> None:
        self._inner = inner

    @property
    def path(self) -> Path:
        return self._inner.path

    @property
    def name(self) -> str:
        return self._inner.name

    def column_names(self, table: str) -> frozenset[str]:
        return self._inner.column_names(table)

    def iter_rows(self, table: str, columns: Iterable[str]) -> Iterator[Row]:
        loaded = list(self._inner.iter_rows(table, columns))
        if table != "manga_series":
            yield from loaded
            return
        yield loaded[0]
        raise RuntimeError("read error")

    def close(self) -> None:
        self._inner.close()


def test_aborted_table_discards_children(make_store: Callable[..., Path]) -> None:
    alice = make_store("alice", "alice")
    bob = make_store("bob", "bob")
    naruto = add_row(bob, "manga_series", titre="Naruto", mal_id=20)
    add_row(bob, "manga_series", titre="Bleach", mal_id=269)
    add_row(bob, "manga_tomes", serie_id=naruto, numero=1)

    def open_failing(path: Path) -> SourceStore | StoreRejection:
        opened = open_source_store(path)
        if isinstance(opened, StoreRejection):
            return opened
        return _FailingSeriesSource(opened)

    summary = _merge(alice, bob, open_source=open_failing)

    [report] = summary.stores
    assert report.status is StoreStatus.PARTIAL
    assert [(d.issue, d.table) for d in report.diagnostics] == [
        (MergeIssue.TABLE_ABORTED, "manga_series"),
        (MergeIssue.FOREIGN_KEY_UNRESOLVED, "manga_tomes"),
    ]
    assert report.inserted == {EntityType.USER: 1}
    assert rows(alice, "manga_series") == []
    assert rows(alice, "manga_tomes") == []
    assert {row["name"] for row in rows(alice, "users")} == {"alice", "bob"}


def test_padded_user_name_keeps_ownership(make_store: Callable[..., Path]) -> None:
    alice = make_store("alice", "alice", "bob ")
    add_row(alice, "manga_series", titre="One Piece", mal_id=13)
    bob = make_store("bob", "bob ")
    series_id = add_row(bob, "manga_series", titre="One Piece", mal_id=13)
    tome_id = add_row(bob, "manga_tomes", serie_id=series_id, numero=5)
    add_row(bob, OWNERS, serie_id=series_id, tome_id=tome_id, user_id=1)

    summary = _merge(alice, bob)

    assert summary.diagnostics == []
    assert summary.inserted == {EntityType.TOME: 1, EntityType.TOME_OWNERSHIP: 1}
    users = {row["name"]: row["id"] for row in rows(alice, "users")}
    assert set(users) == {"alice", "bob "}
    [owner] = rows(alice, OWNERS)
    assert owner["user_id"] == users["bob "]


def test_unmatched_duplicate_is_reported(make_store: Callable[..., Path]) -> None:
    alice = make_store("alice", "alice")
    add_row(alice, "users", name="carol", sync_uuid="u-1")
    bob = make_store("bob")
    user_id = add_row(bob, "users", name="caroline", sync_uuid="u-1")
    series_id = add_row(bob, "manga_series", titre="Monster", mal_id=1)
    tome_id = add_row(bob, "manga_tomes", serie_id=series_id, numero=1)
    add_row(bob, OWNERS, serie_id=series_id, tome_id=tome_id, user_id=user_id)

    summary = _merge(alice, bob)

    [report] = summary.stores
    assert [(d.issue, d.table) for d in report.diagnostics] == [
        (MergeIssue.CONSTRAINT_VIOLATION, "users"),
        (MergeIssue.FOREIGN_KEY_UNRESOLVED, OWNERS),
    ]
    assert report.diagnostics[0].row_id == user_id
    assert [row["name"] for row in rows(alice, "users")] == ["alice", "carol"]
    assert rows(alice, OWNERS) == []


def test_updated_titles_are_matched_later_in_the_pass(make_store: Callable[..., Path]) -> None:
    alice = make_store("alice", "alice")
    add_row(alice, "manga_series", titre="Old Name", mal_id=5)
    bob = make_store("bob", "bob")
    add_row(bob, "manga_series", titre="Vinland Saga")
    add_row(bob, "manga_series", titre="Berserk", titre_alternatif="Berserk Deluxe", mal_id=5)
    add_row(bob, "manga_series", titre="Berserk Deluxe")

    summary = _merge(alice, bob)

    assert summary.inserted[EntityType.SERIES] == 1
    titles = sorted((row["titre"], row["titre_alternatif"]) for row in rows(alice, "manga_series"))
    assert titles == [("Old Name", "Berserk Deluxe"), ("Vinland Saga", None)]
