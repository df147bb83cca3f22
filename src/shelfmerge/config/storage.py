"""Store location configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "shelfmerge"
DATABASES_DIRNAME: Final[str] = "databases"
STORE_SUFFIX: Final[str] = ".db"
TRANSIENT_PREFIX: Final[str] = "temp_"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    databases_dirname: str = DATABASES_DIRNAME
    store_suffix: str = STORE_SUFFIX
    transient_prefix: str = TRANSIENT_PREFIX

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def databases_dir(self) -> Path:
        return self.resolve_data_dir() / self.databases_dirname

    def store_filename(self, user_name: str) -> str:
        return f"{user_name.strip().lower()}{self.store_suffix}"

    def store_path(self, user_name: str) -> Path:
        return self.databases_dir() / self.store_filename(user_name)


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config(*, data_dir: Path | None = None) -> StorageConfig:
    if data_dir is not None:
        return StorageConfig(data_dir=data_dir)
    env_dir = os.getenv("SHELFMERGE_DATA_DIR")
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())
