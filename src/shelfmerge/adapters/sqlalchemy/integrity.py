"""Integrity gate for candidate source stores."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from shelfmerge.adapters.sqlalchemy.engine import create_store_engine
from shelfmerge.adapters.sqlalchemy.stores import SqlAlchemySourceStore
from shelfmerge.domain.model import RejectionKind
from shelfmerge.domain.reconciliation import StoreRejection

if TYPE_CHECKING:
    from pathlib import Path


log = logging.getLogger(__name__)

_LOCKED_MARKERS = ("database is locked", "database table is locked")
_CORRUPT_MARKERS = ("file is not a database", "malformed", "not a database")


def open_source_store(path: Path, *, timeout: float = 1.0) -> SqlAlchemySourceStore | StoreRejection:
    """Open ``path`` read-only and accept it only if ``PRAGMA integrity_check`` passes."""

    if not path.is_file():
        return StoreRejection(path=path, kind=RejectionKind.UNREADABLE, message="not a file")

    engine = create_store_engine(path, read_only=True, timeout=timeout)
    try:
        with engine.connect() as connection:
            results = connection.exec_driver_sql("PRAGMA integrity_check").scalars().all()
    except SQLAlchemyError as exc:
        engine.dispose()
        rejection = StoreRejection(path=path, kind=classify_failure(exc), message=str(exc))
        log.debug("Integrity gate rejected %s: %s", path.name, rejection.kind)
        return rejection

    if [str(result).lower() for result in results] != ["ok"]:
        engine.dispose()
        detail = "; ".join(str(result) for result in results[:5])
        return StoreRejection(path=path, kind=RejectionKind.CORRUPT, message=detail)

    return SqlAlchemySourceStore(path, engine)


def classify_failure(exc: BaseException) -> RejectionKind:
    message = str(getattr(exc, "orig", None) or exc).lower()
    if any(marker in message for marker in _LOCKED_MARKERS):
        return RejectionKind.LOCKED
    if any(marker in message for marker in _CORRUPT_MARKERS):
        return RejectionKind.CORRUPT
    return RejectionKind.UNREADABLE
