from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shelfmerge.domain.model import EntityType, KeyKind, schema_for
from shelfmerge.domain.reconciliation import (
    IdentityResolver,
    NewEntityResolution,
    ResolvedEntityResolution,
    UnresolvableEntityResolution,
)
from tests.helpers.stores import add_row, create_store

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from shelfmerge.adapters.sqlalchemy import SqlAlchemyDestinationStore

SERIES = schema_for(EntityType.SERIES)
SERIES_COLUMNS = frozenset({"id", "titre", "titre_original", "mal_id", "anilist_id"})


@pytest.fixture
def destination(
    databases_dir: Path,
    open_destination: Callable[[Path], SqlAlchemyDestinationStore],
) -> SqlAlchemyDestinationStore:
    path = create_store(databases_dir / "alice.db", "alice")
    add_row(path, "manga_series", titre="Bleach", mal_id=12)
    add_row(path, "manga_series", titre="ナルト", titre_original="Naruto")
    add_row(path, "manga_series", titre="Berserk", anilist_id=30002)
    return open_destination(path)


def test_title_set_matches_across_title_columns(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)

    outcome = resolver.resolve(SERIES, {"id": 9, "titre": "Naruto"}, source_columns=frozenset({"id", "titre"}))

    assert isinstance(outcome, ResolvedEntityResolution)
    assert outcome.target_id == 2
    assert outcome.matched_key.kind is KeyKind.TITLE_SET


def test_external_id_wins_over_title(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)

    outcome = resolver.resolve(
        SERIES,
        {"id": 1, "titre": "Naruto", "mal_id": 12},
        source_columns=SERIES_COLUMNS,
    )

    assert isinstance(outcome, ResolvedEntityResolution)
    assert outcome.target_id == 1
    assert outcome.matched_key.columns == ("mal_id",)


def test_chain_falls_through_to_next_key(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)

    outcome = resolver.resolve(
        SERIES,
        {"id": 1, "titre": "Kenpuu Denki", "mal_id": 2, "anilist_id": 30002},
        source_columns=SERIES_COLUMNS,
    )

    assert isinstance(outcome, ResolvedEntityResolution)
    assert outcome.target_id == 3
    assert outcome.matched_key.columns == ("anilist_id",)


def test_unknown_row_is_new(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)

    outcome = resolver.resolve(
        SERIES,
        {"id": 1, "titre": "One Piece", "mal_id": 13},
        source_columns=SERIES_COLUMNS,
    )

    assert isinstance(outcome, NewEntityResolution)


def test_row_without_identity_values_is_unresolvable(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)

    outcome = resolver.resolve(
        SERIES,
        {"id": 1, "titre": "  ", "mal_id": None},
        source_columns=SERIES_COLUMNS,
    )

    assert isinstance(outcome, UnresolvableEntityResolution)


def test_key_columns_missing_from_source_are_skipped(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)

    # mal_id is present in the row mapping but not a column of the source table.
    outcome = resolver.resolve(
        SERIES,
        {"id": 1, "titre": "One Piece", "mal_id": 12},
        source_columns=frozenset({"id", "titre"}),
    )

    assert isinstance(outcome, NewEntityResolution)


def test_remembered_rows_join_the_title_index(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)
    columns = frozenset({"id", "titre"})
    assert isinstance(resolver.resolve(SERIES, {"titre": "Monster"}, source_columns=columns), NewEntityResolution)

    with destination.table_transaction():
        new_id = destination.insert_row("manga_series", {"titre": "Monster"})
        resolver.remember(SERIES, new_id, {"titre": "Monster"})

        outcome = resolver.resolve(SERIES, {"titre": "MONSTER"}, source_columns=columns)

    assert isinstance(outcome, ResolvedEntityResolution)
    assert outcome.target_id == new_id


def test_refresh_reindexes_updated_titles(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)
    columns = frozenset({"id", "titre"})
    assert isinstance(resolver.resolve(SERIES, {"titre": "Monster"}, source_columns=columns), NewEntityResolution)

    with destination.table_transaction():
        destination.update_row("manga_series", 1, {"titre": "Monster"})
        resolver.refresh(SERIES, 1)

        renamed = resolver.resolve(SERIES, {"titre": "Monster"}, source_columns=columns)
        stale = resolver.resolve(SERIES, {"titre": "Bleach"}, source_columns=columns)

    assert isinstance(renamed, ResolvedEntityResolution)
    assert renamed.target_id == 1
    assert isinstance(stale, NewEntityResolution)


def test_forget_drops_cached_titles(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)
    columns = frozenset({"id", "titre"})
    resolver.resolve(SERIES, {"titre": "Monster"}, source_columns=columns)
    resolver.remember(SERIES, 99, {"titre": "Monster"})

    resolver.forget("manga_series")
    outcome = resolver.resolve(SERIES, {"titre": "Monster"}, source_columns=columns)

    assert isinstance(outcome, NewEntityResolution)


def test_compound_key_matches_user_by_name(destination: SqlAlchemyDestinationStore) -> None:
    resolver = IdentityResolver(destination)

    outcome = resolver.resolve(
        schema_for(EntityType.USER),
        {"id": 5, "name": "alice"},
        source_columns=frozenset({"id", "name"}),
    )

    assert isinstance(outcome, ResolvedEntityResolution)
    assert outcome.target_id == 1
