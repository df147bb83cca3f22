"""Merge run configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from shelfmerge.domain.model import MergePolicy

from .env import env_flag, env_float, optional_env_var

DEFAULT_LOCK_TIMEOUT = 1.0

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MergeConfig:
    """Caller-supplied preferences for a merge run."""

    policy: MergePolicy = MergePolicy.CURRENT_USER
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    migrate_sources: bool = False


def get_merge_config() -> MergeConfig:
    raw_policy = optional_env_var("SHELFMERGE_MERGE_POLICY")
    policy = MergePolicy.parse(raw_policy)
    if raw_policy is not None and not MergePolicy.is_known(raw_policy):
        log.warning("Unknown merge policy %r, falling back to %s", raw_policy, policy)
    return MergeConfig(
        policy=policy,
        lock_timeout=env_float("SHELFMERGE_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT),
        migrate_sources=env_flag("SHELFMERGE_MIGRATE_SOURCES"),
    )
