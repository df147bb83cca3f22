"""Application orchestration entry points."""

from __future__ import annotations

from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from shelfmerge.adapters.sqlalchemy import (
    locate_candidate_stores,
    migrate_store,
    open_destination_store,
    open_source_store,
)
from shelfmerge.config import get_merge_config, get_storage_config
from shelfmerge.domain.errors import DestinationUnavailableError
from shelfmerge.domain.model import MergePolicy, MergeTrigger
from shelfmerge.domain.reconciliation import BUSY_REASON, MergeOrchestrator, MergeSummary

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from pathlib import Path

    from shelfmerge.adapters.sqlalchemy import SchemaChanges
    from shelfmerge.config import MergeConfig, StorageConfig


log = getLogger(__name__)


def list_candidate_stores(user_name: str, *, storage: StorageConfig | None = None) -> list[Path]:
    """Return the stores that would be merged into ``user_name``'s store."""

    effective_storage = storage or get_storage_config()
    return locate_candidate_stores(
        effective_storage.databases_dir(),
        effective_storage.store_filename(user_name),
        suffix=effective_storage.store_suffix,
        transient_prefix=effective_storage.transient_prefix,
    )


def migrate_stores(paths: Iterable[Path], *, timeout: float = 1.0) -> dict[Path, SchemaChanges]:
    """Forward-migrate every store in ``paths``; failures are logged and skipped."""

    migrated: dict[Path, SchemaChanges] = {}
    for path in paths:
        try:
            migrated[path] = migrate_store(path, timeout=timeout)
        except SQLAlchemyError as exc:
            log.warning("Could not migrate store %s: %s", path.name, exc)
    return migrated


def merge_user_stores(
    user_name: str,
    *,
    policy: MergePolicy | str | None = None,
    storage: StorageConfig | None = None,
    config: MergeConfig | None = None,
    is_busy: Callable[[], bool] | None = None,
    trigger: MergeTrigger = MergeTrigger.MANUAL,
) -> MergeSummary:
    """Merge every other user's store into ``user_name``'s store.

    Never raises: a deferred run is reported through ``skipped`` and a
    destination failure through ``error``.
    """

    effective_config = config or get_merge_config()
    effective_policy = MergePolicy.parse(policy) if policy is not None else effective_config.policy
    if not user_name.strip():
        log.warning("No active user, nothing to merge")
        return MergeSummary.failed("no active user", trigger=trigger, policy=effective_policy)

    if is_busy is not None and is_busy():
        log.info("Merge (%s) deferred: a background job is using the store", trigger)
        return MergeSummary.deferred(BUSY_REASON, trigger=trigger, policy=effective_policy)

    effective_storage = storage or get_storage_config()
    destination_path = effective_storage.store_path(user_name)
    candidates = list_candidate_stores(user_name, storage=effective_storage)
    log.info(
        "Starting merge (%s) into %s: %d candidate store(s), policy %s",
        trigger,
        destination_path.name,
        len(candidates),
        effective_policy,
    )

    if effective_config.migrate_sources and candidates:
        migrate_stores(candidates, timeout=effective_config.lock_timeout)

    try:
        destination = open_destination_store(
            destination_path,
            timeout=effective_config.lock_timeout,
        )
    except DestinationUnavailableError as exc:
        log.error("Merge aborted: %s", exc)  # noqa: TRY400
        return MergeSummary.failed(str(exc), trigger=trigger, policy=effective_policy)

    orchestrator = MergeOrchestrator(destination, policy=effective_policy)
    try:
        return orchestrator.run(
            candidates,
            open_source=partial(open_source_store, timeout=effective_config.lock_timeout),
            trigger=trigger,
        )
    except DestinationUnavailableError as exc:
        log.error("Merge aborted: %s", exc)  # noqa: TRY400
        return MergeSummary.failed(str(exc), trigger=trigger, policy=effective_policy)
    except Exception as exc:
        log.exception("Merge failed")
        return MergeSummary.failed(str(exc), trigger=trigger, policy=effective_policy)
    finally:
        destination.close()
