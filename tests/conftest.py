from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shelfmerge.adapters.sqlalchemy import SqlAlchemyDestinationStore, create_store_engine
from shelfmerge.config import MergeConfig, StorageConfig
from tests.helpers.stores import create_store

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SHELFMERGE_DATA_DIR",
        "SHELFMERGE_MERGE_POLICY",
        "SHELFMERGE_LOCK_TIMEOUT",
        "SHELFMERGE_MIGRATE_SOURCES",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def storage(tmp_path: Path) -> StorageConfig:
    return StorageConfig(data_dir=tmp_path / "data")


@pytest.fixture
def databases_dir(storage: StorageConfig) -> Path:
    directory = storage.databases_dir()
    directory.mkdir(parents=True, exist_ok=True)
    return directory


@pytest.fixture
def merge_config() -> MergeConfig:
    return MergeConfig(lock_timeout=0.2)


@pytest.fixture
def make_store(databases_dir: Path) -> Callable[..., Path]:
    """Create ``<name>.db`` in the databases directory holding the given users."""

    def factory(name: str, *users: str) -> Path:
        return create_store(databases_dir / f"{name}.db", *users)

    return factory


@pytest.fixture
def open_destination() -> Iterator[Callable[[Path], SqlAlchemyDestinationStore]]:
    opened: list[SqlAlchemyDestinationStore] = []

    def factory(path: Path) -> SqlAlchemyDestinationStore:
        store = SqlAlchemyDestinationStore.open(path, timeout=0.2)
        opened.append(store)
        return store

    try:
        yield factory
    finally:
        for store in opened:
            store.close()


@pytest.fixture
def unmigrated_destination() -> Iterator[Callable[[Path], SqlAlchemyDestinationStore]]:
    """Open a destination without bringing it up to the baseline schema."""

    opened: list[SqlAlchemyDestinationStore] = []

    def factory(path: Path) -> SqlAlchemyDestinationStore:
        store = SqlAlchemyDestinationStore(path, create_store_engine(path, read_only=False))
        opened.append(store)
        return store

    try:
        yield factory
    finally:
        for store in opened:
            store.close()

